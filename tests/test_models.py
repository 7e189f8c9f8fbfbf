"""Tests for story data models."""

import pytest

from storyomatic.models import (
    Choice,
    DebugEntry,
    LastAction,
    SavedStory,
    Segment,
    StorySettings,
    StoryState,
    StorySummary,
    next_timestamp,
)


class TestStorySettings:
    def test_defaults(self):
        settings = StorySettings(genre="Horror")
        assert settings.perspective == "third"
        assert settings.protagonist_gender == "other"
        assert settings.language == "en"
        assert settings.prompt_strategy == "v1"
        assert settings.style_inspiration is None

    def test_settings_are_immutable(self, sample_settings):
        with pytest.raises(Exception):
            sample_settings.genre = "Horror"

    def test_from_dict_ignores_unknown_keys(self):
        settings = StorySettings.from_dict({"genre": "Mystery", "future_field": 1})
        assert settings == StorySettings(genre="Mystery")


class TestStoryState:
    def test_status_transitions(self, sample_state):
        assert StoryState().status == "idle"
        assert sample_state.status == "ready"

        sample_state.is_loading = True
        assert sample_state.status == "loading"

        sample_state.is_loading = False
        sample_state.error = "boom"
        assert sample_state.status == "error"

    def test_round_trip_through_dict(self, sample_state):
        sample_state.last_action = LastAction(type="choice", data=Choice(id="c1", text="Go left"))
        sample_state.debug_log.append(DebugEntry(timestamp="2024-01-01T00:00:00+00:00", type="request", data={"a": 1}))
        sample_state.summary = StorySummary(text="So far...", generated_at=sample_state.last_modified)

        restored = StoryState.from_dict(sample_state.to_dict())

        assert restored == sample_state
        assert isinstance(restored.last_action.data, Choice)
        assert isinstance(restored.settings, StorySettings)

    def test_start_action_restores_settings(self, sample_settings):
        action = LastAction.from_dict(LastAction(type="start", data=sample_settings).to_dict())
        assert action.data == sample_settings

    def test_touch_strictly_increases_last_modified(self, sample_state):
        before = sample_state.last_modified
        sample_state.touch()
        assert sample_state.last_modified > before

    def test_summary_valid_only_when_not_stale(self, sample_state):
        assert not sample_state.has_valid_summary()

        sample_state.summary = StorySummary(text="Summary", generated_at=next_timestamp(sample_state.last_modified))
        assert sample_state.has_valid_summary()

        sample_state.touch()
        sample_state.touch()
        assert not sample_state.has_valid_summary()


class TestTimestamps:
    def test_next_timestamp_after_future_value(self):
        future = "2999-01-01T00:00:00+00:00"
        assert next_timestamp(future) > future

    def test_next_timestamp_without_previous(self):
        assert next_timestamp()


class TestSavedStory:
    def test_round_trip(self, sample_state):
        story = SavedStory(
            id="story-1",
            title="The Test Tale",
            state=sample_state,
            last_modified=sample_state.last_modified,
            summary="B...",
        )
        assert SavedStory.from_dict(story.to_dict()) == story

    def test_segment_from_dict_defaults_choices(self):
        segment = Segment.from_dict({"id": "s1", "content": "Text"})
        assert segment.choices == []
