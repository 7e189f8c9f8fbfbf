"""Tests for template loading, prompt strategies and the strategy manager."""

import re

import pytest

from storyomatic.exceptions import GenreNotFoundError, TemplateNotFoundError, UnknownStrategyError
from storyomatic.models import Choice, StorySettings
from storyomatic.prompts import (
    STRATEGY_VERSIONS,
    BasePromptStrategy,
    PromptManager,
    PromptStrategyV1,
    PromptStrategyV2,
    TemplateLoader,
    get_prompt_strategy,
)
from storyomatic.prompts.loader import TEMPLATE_FILES

TOKEN = re.compile(r"\{\{(\w+)\}\}")


class TestTemplateLoader:
    def test_every_registered_template_loads(self):
        loader = TemplateLoader()
        for name in TEMPLATE_FILES:
            assert loader.load_template(name).strip()

    def test_unknown_template_raises(self):
        with pytest.raises(TemplateNotFoundError):
            TemplateLoader().load_template("v3/segment.md")

    def test_registered_but_missing_file_raises(self, tmp_path):
        with pytest.raises(TemplateNotFoundError):
            TemplateLoader(templates_dir=tmp_path).load_template("title")

    def test_templates_are_cached(self, tmp_path):
        (tmp_path / "title.md").write_text("Title for {{settingsDesc}}", encoding="utf-8")
        loader = TemplateLoader(templates_dir=tmp_path)
        first = loader.load_template("title")
        (tmp_path / "title.md").write_text("changed", encoding="utf-8")
        assert loader.load_template("title") == first

    def test_filling_every_token_leaves_no_placeholders(self):
        loader = TemplateLoader()
        for name in TEMPLATE_FILES:
            tokens = set(TOKEN.findall(loader.load_template(name)))
            filled = loader.fill_template(name, {t: f"<{t}>" for t in tokens})
            assert "{{" not in filled, name

    def test_unmatched_tokens_pass_through(self, tmp_path):
        (tmp_path / "title.md").write_text("{{settingsDesc}} in {{language}}", encoding="utf-8")
        loader = TemplateLoader(templates_dir=tmp_path)
        assert loader.fill_template("title", {"settingsDesc": "a tale"}) == "a tale in {{language}}"


class TestPromptManager:
    def test_every_version_implements_the_contract(self, sample_settings):
        manager = PromptManager()
        for version in STRATEGY_VERSIONS:
            strategy = manager.create_strategy(version)
            settings = StorySettings(genre="Epic Fantasy", prompt_strategy=version)
            assert strategy.generate_title("a fantasy story", settings)
            assert strategy.generate_segment("Once", settings)
            assert strategy.summarize_story("Once", settings)
            assert strategy.handle_choice(Choice(id="c", text="Go"), _state(sample_settings)).context

    def test_v1_is_an_alias_of_base(self):
        manager = PromptManager()
        assert manager.create_strategy("v1") is manager.create_strategy("base")
        assert isinstance(manager.create_strategy("v2"), PromptStrategyV2)

    @pytest.mark.parametrize("version", ["v3", "", "V1", "default"])
    def test_unknown_version_raises(self, version):
        with pytest.raises(UnknownStrategyError):
            PromptManager().create_strategy(version)

    def test_module_shortcut(self):
        assert isinstance(get_prompt_strategy("base"), BasePromptStrategy)


def _state(settings):
    from storyomatic.models import Segment, StoryState

    return StoryState(
        segments=[Segment(id="a", content="A")],
        current_segment=Segment(id="b", content="B"),
        settings=settings,
    )


class TestBaseStrategy:
    def test_handle_choice_concatenates_choice_text(self, sample_state):
        result = BasePromptStrategy().handle_choice(Choice(id="c", text="C"), sample_state)
        assert result.context == "A\n\nB\n\nC"
        assert result.extra_params == {}

    def test_handle_choice_appends_instructions(self, sample_state):
        choice = Choice(id="c", text="C", instructions=["Add dialogue", "Raise the stakes"])
        result = BasePromptStrategy().handle_choice(choice, sample_state)
        assert result.context == "A\n\nB\n\nC\n\nInstructions for next scene:\nAdd dialogue\nRaise the stakes"

    def test_segment_prompt_carries_genre_and_settings(self, sample_settings):
        prompt = BasePromptStrategy().generate_segment("Once upon a time", sample_settings)
        assert "Fantasy" in prompt
        assert "Once upon a time" in prompt
        assert "Write in the style of Ursula K. Le Guin" in prompt
        assert "third person limited" in prompt
        assert "English" in prompt
        assert "{{" not in prompt

    def test_title_prompt_uses_language_name(self):
        settings = StorySettings(genre="Epic Fantasy", language="ro")
        prompt = BasePromptStrategy().generate_title("fantasy story", settings)
        assert "Romanian" in prompt
        assert "fantasy story" in prompt

    def test_unknown_genre_raises(self):
        with pytest.raises(GenreNotFoundError):
            BasePromptStrategy().generate_segment("ctx", StorySettings(genre="Nope"))

    def test_v1_strategy_uses_versioned_templates(self, sample_settings):
        prompt = PromptStrategyV1().generate_segment("ctx", sample_settings)
        assert "ctx" in prompt
        assert "{{" not in prompt


class TestV2Strategy:
    def test_handle_choice_passes_choice_as_parameter(self, sample_state):
        result = PromptStrategyV2().handle_choice(Choice(id="c", text="C"), sample_state)
        assert result.context == "A\n\nB"
        assert result.extra_params["choice_text"] == "C"
        assert result.extra_params["include_choice_in_prompt"] is True
        assert "instructions" not in result.extra_params

    def test_handle_choice_forwards_instructions(self, sample_state):
        choice = Choice(id="c", text="C", instructions=["Add dialogue"])
        result = PromptStrategyV2().handle_choice(choice, sample_state)
        assert result.extra_params["instructions"] == ["Add dialogue"]

    def test_segment_prompt_places_choice_and_defaults(self, sample_settings):
        prompt = PromptStrategyV2().generate_segment(
            "A\n\nB",
            sample_settings,
            {"choice_text": "Open the door", "include_choice_in_prompt": True, "instructions": ["Add dialogue"]},
        )
        assert "Open the door" in prompt
        assert "medium" in prompt
        assert "balanced" in prompt
        assert "Instructions for next scene:\nAdd dialogue" in prompt
        assert "{{" not in prompt

    def test_segment_prompt_without_choice(self, sample_settings):
        prompt = PromptStrategyV2().generate_segment("Once", sample_settings)
        assert "No choice yet. Continue from the story so far." in prompt

    def test_segment_prompt_uses_complexity_and_tone(self):
        settings = StorySettings(genre="Horror", complexity_level="high", emotional_tone="dark")
        prompt = PromptStrategyV2().generate_segment("Once", settings)
        assert "Complexity level: high" in prompt
        assert "Emotional tone: dark" in prompt
