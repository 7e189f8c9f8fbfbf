"""Natural-language fragments derived from story settings."""

from __future__ import annotations

from typing import List, Optional

from .models import StorySettings

PERSPECTIVE_TEXT = {
    "first": 'first person ("I/We")',
    "second": 'second person ("You")',
    "third": "third person limited",
}

LANGUAGE_NAMES = {
    "en": "English",
    "ro": "Romanian",
}


def perspective_text(perspective: str) -> str:
    return PERSPECTIVE_TEXT.get(perspective, PERSPECTIVE_TEXT["third"])


def language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, "English")


def style_text(style_inspiration: Optional[str]) -> str:
    if style_inspiration:
        return f"Write in the style of {style_inspiration}"
    return "Use your own style"


def format_perspective(perspective: str) -> str:
    """Title-cased perspective label for display."""
    labels = {
        "first": 'First Person ("I/We")',
        "second": 'Second Person ("You")',
        "third": "Third Person Limited",
    }
    return labels.get(perspective, perspective)


def format_gender(gender: str) -> str:
    return gender[:1].upper() + gender[1:]


def describe_settings(settings: StorySettings) -> str:
    """Short description used to ask for a title, e.g. "horror story with a female protagonist"."""
    desc = f"{settings.genre.lower()} story with a {settings.protagonist_gender} protagonist"
    if settings.style_inspiration:
        desc += f" in the style of {settings.style_inspiration}"
    return desc


def build_initial_prompt(settings: StorySettings) -> str:
    """Opening instruction used as context when the reader supplied no opening text."""
    prompt = f"Write the first scene of a {settings.genre.lower()} story "
    prompt += f"from a {perspective_text(settings.perspective)} perspective, "
    prompt += f"with a {settings.protagonist_gender} protagonist. "

    if settings.style_inspiration:
        prompt += f"Write in the style of {settings.style_inspiration}. "

    if settings.opening_sentence:
        prompt += f'Start with this opening: "{settings.opening_sentence}" '

    return prompt


def settings_changes(old: Optional[StorySettings], new: StorySettings) -> List[str]:
    """Human-readable diff of the settings that shape the narrative."""
    old_genre = old.genre if old else None
    old_perspective = old.perspective if old else None
    old_gender = old.protagonist_gender if old else None
    old_style = old.style_inspiration if old else None

    changes = []
    if old_genre != new.genre:
        changes.append(f"Genre({old_genre}->{new.genre})")
    if old_perspective != new.perspective:
        changes.append(f"Perspective({old_perspective}->{new.perspective})")
    if old_gender != new.protagonist_gender:
        changes.append(f"Protagonist({old_gender}->{new.protagonist_gender})")
    if (old_style or None) != (new.style_inspiration or None):
        changes.append(f"Style({old_style or 'none'}->{new.style_inspiration or 'none'})")
    return changes


def settings_change_block(changes: List[str]) -> str:
    """Fenced marker appended to story text so later prompts can see where settings changed."""
    if not changes:
        return ""
    return f"\n\n```\nSettings Changed: {', '.join(changes)}\n```\n\n"
