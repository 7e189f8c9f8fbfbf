"""Text generation provider abstractions."""

from .text import TextGenerationResult, TextProvider, get_text_provider

__all__ = [
    "TextProvider",
    "TextGenerationResult",
    "get_text_provider",
]
