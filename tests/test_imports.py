"""Tests to verify all required packages and modules can be imported."""
import importlib

import pytest


@pytest.mark.parametrize("module", [
    "storyomatic.__main__",
    "storyomatic.cli",
    "storyomatic.exceptions",
    "storyomatic.formatting",
    "storyomatic.generator",
    "storyomatic.genres",
    "storyomatic.instructions",
    "storyomatic.library",
    "storyomatic.models",
    "storyomatic.settings",
    "storyomatic.storage",
    "storyomatic.story",
    "storyomatic.webapp",
    "storyomatic.api.catalog",
    "storyomatic.api.dependencies",
    "storyomatic.api.stories",
    "storyomatic.prompts",
    "storyomatic.prompts.loader",
    "storyomatic.prompts.manager",
    "storyomatic.prompts.strategies",
    "storyomatic.providers",
    "storyomatic.providers.text",
])
def test_core_modules(module):
    assert importlib.import_module(module) is not None


class TestRequiredPackages:
    """Test that all required third-party packages are available."""

    def test_fastapi_available(self):
        import fastapi
        assert fastapi is not None

    def test_uvicorn_available(self):
        import uvicorn
        assert uvicorn is not None

    def test_requests_available(self):
        import requests
        assert requests is not None

    def test_openai_available(self):
        """Test OpenAI SDK is available."""
        import openai
        assert openai is not None

    def test_gemini_available(self):
        import google.generativeai
        assert google.generativeai is not None

    def test_rich_available(self):
        import rich
        assert rich is not None

    def test_dotenv_available(self):
        import dotenv
        assert dotenv is not None


def test_text_provider_classes_available():
    from storyomatic.providers.text import (
        GeminiProvider,
        GroqProvider,
        HuggingFaceProvider,
        OpenAIProvider,
        OpenRouterProvider,
        TextProvider,
    )
    for cls in (GeminiProvider, GroqProvider, HuggingFaceProvider, OpenAIProvider, OpenRouterProvider):
        assert issubclass(cls, TextProvider)
