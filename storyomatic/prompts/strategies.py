"""Prompt strategies: how prompts are worded and how story context is assembled.

The story engine only talks to the four-method ``PromptStrategy`` contract, so
prompt wording can change without touching the state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..formatting import language_name, perspective_text, style_text
from ..genres import get_genre
from ..models import Choice, StorySettings, StoryState
from .loader import TemplateLoader


@dataclass
class ChoiceContext:
    """Context for the next generation call plus strategy-specific parameters."""
    context: str
    extra_params: Dict[str, Any] = field(default_factory=dict)


def join_story(*parts: Optional[str]) -> str:
    """Join non-empty story fragments with blank lines."""
    return "\n\n".join(p for p in parts if p)


def instructions_block(instructions: List[str]) -> str:
    if not instructions:
        return ""
    return "Instructions for next scene:\n" + "\n".join(instructions)


class PromptStrategy(ABC):
    """Abstract base class for prompt strategies."""

    @abstractmethod
    def generate_title(self, settings_desc: str, settings: StorySettings) -> str:
        """Build the prompt that asks for a story title."""
        pass

    @abstractmethod
    def generate_segment(
        self,
        context: str,
        settings: StorySettings,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Build the prompt that asks for the next segment as JSON."""
        pass

    @abstractmethod
    def summarize_story(self, context: str, settings: StorySettings) -> str:
        """Build the prompt that asks for a summary of the story so far."""
        pass

    @abstractmethod
    def handle_choice(self, choice: Choice, story_state: StoryState) -> ChoiceContext:
        """Assemble the context for continuing the story after ``choice``."""
        pass


class BasePromptStrategy(PromptStrategy):
    """Generic templates; the chosen text is concatenated into the context."""

    template_names = {
        "title": "title",
        "segment": "segment",
        "summary": "summary",
    }

    def __init__(self, template_loader: Optional[TemplateLoader] = None):
        self.template_loader = template_loader or TemplateLoader()

    def generate_title(self, settings_desc: str, settings: StorySettings) -> str:
        return self.template_loader.fill_template(self.template_names["title"], {
            "settingsDesc": settings_desc,
            "language": language_name(settings.language),
        })

    def _segment_params(self, context: str, settings: StorySettings) -> Dict[str, str]:
        genre = get_genre(settings.genre)
        return {
            "genre": settings.genre,
            "genreDescription": genre.description,
            "genreRestrictions": genre.restrictions,
            "genreAuthors": ", ".join(genre.authors),
            "perspective": perspective_text(settings.perspective),
            "protagonistGender": settings.protagonist_gender,
            "styleInspiration": style_text(settings.style_inspiration),
            "language": language_name(settings.language),
            "context": context,
        }

    def generate_segment(
        self,
        context: str,
        settings: StorySettings,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> str:
        return self.template_loader.fill_template(
            self.template_names["segment"], self._segment_params(context, settings)
        )

    def summarize_story(self, context: str, settings: StorySettings) -> str:
        return self.template_loader.fill_template(self.template_names["summary"], {
            "language": language_name(settings.language),
            "context": context,
        })

    def handle_choice(self, choice: Choice, story_state: StoryState) -> ChoiceContext:
        current = story_state.current_segment.content if story_state.current_segment else None
        context = join_story(
            *(s.content for s in story_state.segments),
            current,
            choice.text,
            instructions_block(choice.instructions),
        )
        return ChoiceContext(context=context)


class PromptStrategyV1(BasePromptStrategy):
    """Base behaviour with the versioned v1 templates."""

    template_names = {
        "title": "v1/title.md",
        "segment": "v1/segment.md",
        "summary": "v1/summary.md",
    }


class PromptStrategyV2(BasePromptStrategy):
    """Passes the chosen text as a side parameter and lets the template place it."""

    template_names = {
        "title": "v2/title.md",
        "segment": "v2/segment.md",
        "summary": "v2/summary.md",
    }

    def handle_choice(self, choice: Choice, story_state: StoryState) -> ChoiceContext:
        current = story_state.current_segment.content if story_state.current_segment else None
        context = join_story(*(s.content for s in story_state.segments), current)

        extra_params: Dict[str, Any] = {
            "choice_text": choice.text,
            "include_choice_in_prompt": True,
        }
        if choice.instructions:
            extra_params["instructions"] = list(choice.instructions)
        return ChoiceContext(context=context, extra_params=extra_params)

    def generate_segment(
        self,
        context: str,
        settings: StorySettings,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> str:
        extra_params = extra_params or {}
        params = self._segment_params(context, settings)
        params.update({
            "complexityLevel": settings.complexity_level or "medium",
            "emotionalTone": settings.emotional_tone or "balanced",
            "includeSensoryDetails": "true",
        })

        if extra_params.get("include_choice_in_prompt"):
            params["choiceText"] = extra_params.get("choice_text", "")
        else:
            params["choiceText"] = "No choice yet. Continue from the story so far."
        params["instructions"] = instructions_block(extra_params.get("instructions") or [])

        return self.template_loader.fill_template(self.template_names["segment"], params)
