"""Tests for the command line interface."""
import json
from unittest.mock import patch

import pytest

from storyomatic.cli import main
from storyomatic.library import StoryLibrary
from storyomatic.settings import load_user_settings
from storyomatic.storage import get_current_story


def segment(content, choices=("Open the door", "Walk away")):
    return json.dumps({"content": content, "choices": list(choices)})


@pytest.fixture
def library_dir(tmp_path, monkeypatch):
    path = tmp_path / "stories"
    monkeypatch.setenv("STORYOMATIC_LIBRARY_DIR", str(path))
    return path


@pytest.fixture
def run(provider_factory):
    """Run the CLI with generation answered by the given replies."""
    def _run(argv, *replies):
        with patch("storyomatic.generator.resolve_provider", return_value=provider_factory(*replies)):
            main(argv)
    return _run


def test_list_empty(library_dir, capsys):
    main(["list"])
    assert "No stories yet" in capsys.readouterr().out


def test_genres(capsys):
    main(["genres"])
    out = capsys.readouterr().out
    assert "Noir" in out
    assert "Horror" in out


def test_unknown_genre_is_rejected():
    with pytest.raises(SystemExit) as exc_info:
        main(["new", "--genre", "Westerns"])
    assert exc_info.value.code == 2


class TestStoryCommands:
    def test_new_sets_current_story(self, library_dir, run, capsys):
        run(["new", "--genre", "Horror", "--title", "Night Shift"], segment("The lights went out."))

        stories = StoryLibrary.from_directory(library_dir).get_all_stories()
        assert [s.title for s in stories] == ["Night Shift"]
        assert get_current_story(library_dir) == stories[0].id
        assert "The lights went out." in capsys.readouterr().out

    def test_choose_and_summary(self, library_dir, run, capsys):
        run(["new", "--genre", "Noir"], "Rain City", segment("Rain again."))
        run(["choose", "1"], segment("The door creaked."))

        story = StoryLibrary.from_directory(library_dir).get_all_stories()[0]
        assert [s.content for s in story.state.segments] == ["Rain again."]
        assert story.state.current_segment.content == "The door creaked."

        capsys.readouterr()
        run(["summary"], "A detective opened a door.")
        assert "A detective opened a door." in capsys.readouterr().out

    def test_custom_choice_with_nudge(self, library_dir, run):
        run(["new", "--genre", "Noir", "--title", "T"], segment("Start."))
        run(["choose", "--custom", "Light a cigarette", "--nudge", "Dialogue"], segment("Smoke curled."))

        story = StoryLibrary.from_directory(library_dir).get_all_stories()[0]
        assert story.state.last_action.data.text == "Light a cigarette"
        assert len(story.state.last_action.data.instructions) == 1

    def test_invalid_choice_number(self, library_dir, run):
        run(["new", "--genre", "Noir", "--title", "T"], segment("Start."))
        with pytest.raises(SystemExit):
            run(["choose", "5"])

    def test_settings_edit(self, library_dir, run):
        run(["new", "--genre", "Noir", "--title", "T"], segment("Start."))
        run(["settings", "--genre", "Horror"], segment("ignored", ["Scream", "Hide"]))

        story = StoryLibrary.from_directory(library_dir).get_all_stories()[0]
        assert story.state.settings.genre == "Horror"
        assert "Genre(Noir->Horror)" in story.state.current_segment.content
        assert [c.text for c in story.state.current_segment.choices] == ["Scream", "Hide"]

    def test_generation_failure_exits_with_message(self, library_dir, run, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run(["new", "--genre", "Noir", "--title", "T"], "not json")
        assert exc_info.value.code == 1
        assert "unreadable response" in capsys.readouterr().out

    def test_delete_clears_current_story(self, library_dir, run):
        run(["new", "--genre", "Noir", "--title", "T"], segment("Start."))
        story_id = get_current_story(library_dir)

        main(["delete", story_id])

        assert StoryLibrary.from_directory(library_dir).get_all_stories() == []
        assert get_current_story(library_dir) is None

    def test_show_without_story(self, library_dir):
        with pytest.raises(SystemExit):
            main(["show"])


def test_setup_saves_settings():
    with patch("storyomatic.cli.getpass", return_value=""):
        main(["setup", "--provider", "groq", "--strategy", "v2", "--language", "ro"])

    settings = load_user_settings()
    assert settings.text_provider == "groq"
    assert settings.default_prompt_strategy == "v2"
    assert settings.default_language == "ro"
