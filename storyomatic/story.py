"""Story engine: one story's state and the operations that advance it.

Each operation flips ``is_loading`` on, calls the generation client and
records the outcome on the state. Failures are stored in ``state.error`` with
an ``error`` debug entry so the caller can offer :meth:`StoryManager.handle_retry`.
Only :meth:`StoryManager.start_story` and :meth:`StoryManager.show_summary`
also re-raise, since they have nothing else to return.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError, StoryBusyError, StoryNotFoundError, StoryomaticError
from .formatting import build_initial_prompt, describe_settings, settings_change_block, settings_changes
from .generator import generate_story_segment, generate_story_summary, generate_title
from .library import StoryLibrary
from .models import (
    Choice,
    DebugEntry,
    LastAction,
    Segment,
    StorySettings,
    StoryState,
    StorySummary,
    new_id,
    next_timestamp,
    utc_now,
)
from .prompts import get_prompt_strategy
from .prompts.strategies import join_story
from .providers import TextProvider

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


def _choices_from_text(texts: List[str]) -> List[Choice]:
    return [Choice(id=new_id(), text=text) for text in texts]


def _error_message(error: Exception) -> str:
    return str(error) or DEFAULT_ERROR_MESSAGE


class StoryManager:
    """Drives a single story through idle, loading, ready and error."""

    def __init__(
        self,
        library: StoryLibrary,
        provider: Optional[TextProvider] = None,
        state: Optional[StoryState] = None,
    ):
        self.library = library
        self.provider = provider
        self.state = state or StoryState()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _claim(self) -> None:
        """Move from idle to loading in one step, or raise ``StoryBusyError``."""
        if not self._lock.acquire(blocking=False):
            raise StoryBusyError(self.state.id)
        try:
            if self.state.is_loading:
                raise StoryBusyError(self.state.id)
            self.state.is_loading = True
        finally:
            self._lock.release()

    def _log(self, entry_type: str, data: Any) -> None:
        self.state.debug_log.append(DebugEntry(timestamp=utc_now(), type=entry_type, data=data))

    def _fail(self, error: Exception, **details: Any) -> None:
        message = _error_message(error)
        logger.warning("Story %s: generation failed: %s", self.state.id or "(unsaved)", message)
        self.state.is_loading = False
        self.state.error = message
        self._log("error", {"error": message, **details})
        self.state.touch()

    def _persist(self) -> None:
        if self.state.id:
            self.library.update_story(self.state.id, self.state)

    def _require_settings(self, settings: Optional[StorySettings]) -> StorySettings:
        if settings is None:
            raise ConfigurationError("Story settings are required but not found")
        return settings

    def story_context(self) -> str:
        """Every segment of the story so far, separated by blank lines."""
        current = self.state.current_segment.content if self.state.current_segment else None
        return join_story(*(s.content for s in self.state.segments), current)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start_story(self, settings: StorySettings) -> StoryState:
        """Begin a new story, generate its opening scene and save it.

        Raises whatever the title or segment request raised, after recording
        it on the state.
        """
        self._claim()

        self.state = StoryState(
            title=settings.opening_title or None,
            is_loading=True,
            last_action=LastAction(type="start", data=settings),
            settings=settings,
        )

        initial_prompt = build_initial_prompt(settings)
        try:
            title = settings.opening_title
            if not title:
                title = generate_title(describe_settings(settings), settings, provider=self.provider)

            # A hand-written opening is sent as the context instead of the
            # synthesized instruction, and shown as-is.
            starting_context = settings.opening_sentence or initial_prompt
            result = generate_story_segment(starting_context, settings, provider=self.provider)
        except Exception as e:
            self._fail(e)
            raise

        self.state.title = title
        self.state.current_segment = Segment(
            id=new_id(),
            content=settings.opening_sentence or result.content,
            choices=_choices_from_text(result.choices),
        )
        self.state.is_loading = False
        self.state.error = None
        self._log("request", {
            "initial_prompt": initial_prompt,
            "use_custom_title": bool(settings.opening_title),
            "use_custom_opening": bool(settings.opening_sentence),
        })
        self._log("response", {"content": result.content, "choices": result.choices})
        self.state.touch()

        saved = self.library.save_story(title, self.state)
        self.state.id = saved.id
        self.state.last_modified = saved.state.last_modified
        logger.info("Started story %r (%s)", title, saved.id)
        return self.state

    def handle_choice(self, choice: Choice) -> StoryState:
        """Move the current segment into history and generate what happens next.

        On failure the history entry and the placeholder segment stay in place.
        """
        if self.state.current_segment is None:
            raise StoryomaticError("No story in progress", help_text="Start a story before choosing")
        self._claim()

        # Context is built from the story as it was when the choice was made.
        before = dataclasses.replace(self.state)

        self.state.segments = self.state.segments + [self.state.current_segment]
        placeholder = choice.text
        if choice.settings:
            placeholder += settings_change_block([choice.settings])
        self.state.current_segment = Segment(id=new_id(), content=placeholder, choices=[])
        self.state.placeholder_id = self.state.current_segment.id
        self.state.error = None
        self.state.last_action = LastAction(type="choice", data=choice)
        self.state.touch()

        try:
            settings = self._require_settings(self.state.settings)
            strategy = get_prompt_strategy(settings.prompt_strategy)
            choice_context = strategy.handle_choice(choice, before)
            result = generate_story_segment(
                choice_context.context,
                settings,
                choice_context.extra_params,
                provider=self.provider,
            )
        except Exception as e:
            self._fail(e, choice=choice.to_dict())
            return self.state

        self.state.current_segment = Segment(
            id=new_id(),
            content=result.content,
            choices=_choices_from_text(result.choices),
        )
        self.state.placeholder_id = None
        self.state.is_loading = False
        self.state.error = None
        self._log("request", {
            "context": choice_context.context,
            "extra_params": choice_context.extra_params,
            "action": "handle_choice",
            "prompt_strategy": settings.prompt_strategy,
        })
        self._log("response", {"content": result.content, "choices": result.choices})
        self.state.touch()
        self._persist()
        return self.state

    def regenerate_choices(self) -> StoryState:
        """Ask for a fresh pair of choices, keeping the current text."""
        if self.state.current_segment is None:
            return self.state
        self._claim()
        return self._regenerate()

    def _regenerate(self) -> StoryState:
        # Caller holds the loading claim
        current = self.state.current_segment
        self.state.current_segment = Segment(id=current.id, content=current.content, choices=[])
        self.state.error = None
        self.state.touch()

        settings = self.state.settings
        try:
            if self.state.id:
                # Settings may have been edited through another manager
                saved = self.library.get_story(self.state.id)
                if saved is not None and saved.state.settings is not None:
                    settings = saved.state.settings
            settings = self._require_settings(settings)
            strategy = get_prompt_strategy(settings.prompt_strategy)
            # The current text stands in for a choice so each strategy builds
            # its usual context.
            dummy_choice = Choice(id="regenerate", text=current.content)
            choice_context = strategy.handle_choice(dummy_choice, self.state)
            result = generate_story_segment(
                choice_context.context,
                settings,
                choice_context.extra_params,
                provider=self.provider,
            )
        except Exception as e:
            self._fail(e, settings=settings.to_dict() if settings else None)
            return self.state

        self.state.current_segment = Segment(
            id=current.id,
            content=current.content,
            choices=_choices_from_text(result.choices),
        )
        self.state.settings = settings
        self.state.is_loading = False
        self.state.error = None
        self._log("request", {
            "context": choice_context.context,
            "extra_params": choice_context.extra_params,
            "action": "regenerate_choices",
            "prompt_strategy": settings.prompt_strategy,
        })
        self._log("response", {"choices": result.choices})
        self.state.touch()
        self._persist()
        return self.state

    def handle_retry(self) -> StoryState:
        """Replay the last start or choice. Does nothing if there is none."""
        action = self.state.last_action
        if action is None:
            return self.state
        if self.state.is_loading:
            raise StoryBusyError(self.state.id)

        if action.type == "start":
            return self.start_story(action.data)

        if action.type == "choice":
            current = self.state.current_segment
            placeholder_id = self.state.placeholder_id
            if placeholder_id and current is not None and current.id == placeholder_id and self.state.segments:
                # Put back the segment the unanswered choice was made from
                self.state.current_segment = self.state.segments[-1]
                self.state.segments = self.state.segments[:-1]
                self.state.placeholder_id = None
            return self.handle_choice(action.data)

        logger.debug("Nothing to retry for last action %r", action.type)
        return self.state

    def edit_settings(self, new_settings: StorySettings) -> StoryState:
        """Apply edited settings, mark the change in the story and refresh choices.

        The story language can't change after the start.
        """
        self._claim()
        old_settings = self.state.settings
        language = old_settings.language if old_settings else "en"
        updated = dataclasses.replace(new_settings, language=language)

        changes = settings_changes(old_settings, updated)
        current = self.state.current_segment
        if current is not None and changes:
            self.state.current_segment = Segment(
                id=current.id,
                content=current.content + settings_change_block(changes),
                choices=current.choices,
            )
            logger.info("Story %s settings changed: %s", self.state.id, ", ".join(changes))

        self.state.settings = updated
        self.state.touch()
        try:
            self._persist()
        except Exception as e:
            self._fail(e, settings=updated.to_dict())
            raise

        if current is None:
            self.state.is_loading = False
            return self.state
        return self._regenerate()

    def load_story(self, story_id: str) -> StoryState:
        self._claim()
        try:
            saved = self.library.get_story(story_id)
        finally:
            self.state.is_loading = False
        if saved is None:
            raise StoryNotFoundError(story_id)
        self.state = saved.state
        self.state.id = saved.id
        if not self.state.title:
            self.state.title = saved.title
        # A story saved mid-request can't still be loading after a restart
        self.state.is_loading = False
        return self.state

    def show_summary(self) -> str:
        """Return the cached summary, generating a new one if the story moved on.

        A failed request is recorded like any other and then re-raised.
        """
        if self.state.has_valid_summary():
            return self.state.summary.text

        self._claim()
        try:
            settings = self._require_settings(self.state.settings)
            text = generate_story_summary(self.story_context(), settings, provider=self.provider)
        except Exception as e:
            self._fail(e, action="show_summary")
            raise
        self.state.is_loading = False
        self.state.error = None

        self.state.summary = StorySummary(text=text, generated_at=next_timestamp(self.state.last_modified))
        if self.state.id:
            self.library.update_story(self.state.id, {
                "summary": self.state.summary,
                "last_modified": self.state.last_modified,
            })
        return text

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict view of the state with its coarse status."""
        data = self.state.to_dict()
        data["status"] = self.state.status
        return data
