"""Generation client: builds prompts through the active strategy and validates replies."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .exceptions import ConfigurationError, MalformedResponseError
from .models import StorySettings
from .prompts import get_prompt_strategy
from .providers import TextProvider, get_text_provider
from .settings import get_api_key_for_provider, load_user_settings

logger = logging.getLogger(__name__)

FALLBACK_CHOICES = ("Retry the adventure", "Take a different path")

GENERATION_TEMPERATURE = 0.7
GENERATION_TOP_P = 0.8

_FENCE_START = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```\s*$")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


@dataclass
class SegmentResult:
    content: str
    choices: List[str]


def resolve_provider(provider: Optional[TextProvider] = None) -> TextProvider:
    """Return ``provider`` or build the one configured in user settings."""
    if provider is not None:
        return provider

    settings = load_user_settings()
    provider_name = settings.text_provider
    api_key = get_api_key_for_provider(provider_name, settings)
    if not api_key and provider_name != "huggingface":
        raise ConfigurationError(
            f"{provider_name} API key is not configured",
            help_text="Run `storyomatic setup` or set the provider's API key environment variable",
        )
    return get_text_provider(provider_name, api_key=api_key)


def _model_override() -> Optional[str]:
    return load_user_settings().default_text_model or None


def _complete(provider: TextProvider, prompt: str, json_mode: bool = False) -> str:
    result = provider.generate(
        prompt,
        temperature=GENERATION_TEMPERATURE,
        top_p=GENERATION_TOP_P,
        json_mode=json_mode,
        model=_model_override(),
    )
    logger.info(
        "Generated text using %s (%s), cost: $%.4f",
        result.provider,
        result.model,
        result.estimated_cost,
    )
    return result.content


def clean_response(text: str) -> str:
    """Strip surrounding code fences and control characters from a raw reply."""
    cleaned = _FENCE_START.sub("", text, count=1)
    cleaned = _FENCE_END.sub("", cleaned, count=1)
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    return cleaned.strip()


def _valid_choices(choices: Any) -> bool:
    if not isinstance(choices, list) or len(choices) < 2:
        return False
    return all(isinstance(c, str) and c.strip() for c in choices[:2])


def parse_segment_response(raw: str) -> SegmentResult:
    """Parse the ``{content, choices}`` contract.

    Unparseable JSON and a missing or non-string ``content`` raise
    ``MalformedResponseError``. Bad ``choices`` are replaced with
    ``FALLBACK_CHOICES`` so the story can still continue.
    """
    try:
        result = json.loads(clean_response(raw))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Failed to parse JSON response: {e}", raw_response=raw) from e

    if not isinstance(result, dict):
        raise MalformedResponseError(
            f"Invalid response format: expected an object, got {type(result).__name__}",
            raw_response=raw,
        )

    content = result.get("content")
    if not content or not isinstance(content, str):
        raise MalformedResponseError(
            f"Invalid response format: missing or invalid content (type: {type(content).__name__})",
            raw_response=raw,
        )

    choices = result.get("choices")
    if _valid_choices(choices):
        final_choices = list(choices[:2])
    else:
        logger.warning("Response choices missing or malformed (%r); using fallback choices", choices)
        final_choices = list(FALLBACK_CHOICES)

    return SegmentResult(content=content, choices=final_choices)


def generate_story_segment(
    context: str,
    settings: StorySettings,
    extra_params: Optional[Mapping[str, Any]] = None,
    provider: Optional[TextProvider] = None,
) -> SegmentResult:
    """Ask for the next segment and return it with exactly two choices."""
    strategy = get_prompt_strategy(settings.prompt_strategy)
    prompt = strategy.generate_segment(context, settings, extra_params)

    provider = resolve_provider(provider)
    raw = _complete(provider, prompt, json_mode=True)
    return parse_segment_response(raw)


def generate_title(
    settings_desc: str,
    settings: StorySettings,
    provider: Optional[TextProvider] = None,
) -> str:
    strategy = get_prompt_strategy(settings.prompt_strategy)
    prompt = strategy.generate_title(settings_desc, settings)

    provider = resolve_provider(provider)
    return _complete(provider, prompt).strip()


def generate_story_summary(
    context: str,
    settings: StorySettings,
    provider: Optional[TextProvider] = None,
) -> str:
    strategy = get_prompt_strategy(settings.prompt_strategy)
    prompt = strategy.summarize_story(context, settings)
    logger.debug("Generating summary with context: %s...", context[:100])

    provider = resolve_provider(provider)
    return _complete(provider, prompt).strip()
