import json
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest

from storyomatic.library import StoryLibrary
from storyomatic.models import Choice, Segment, StorySettings, StoryState
from storyomatic.providers.text import TextGenerationResult
from storyomatic.storage import MemoryStore


@pytest.fixture
def tmp_library_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for story storage."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_settings() -> StorySettings:
    """Create sample StorySettings for testing."""
    return StorySettings(
        genre="Epic Fantasy",
        perspective="third",
        protagonist_gender="female",
        style_inspiration="Ursula K. Le Guin",
        language="en",
        prompt_strategy="v1",
    )


@pytest.fixture
def sample_state(sample_settings: StorySettings) -> StoryState:
    """A story with one past segment "A" and current segment "B"."""
    return StoryState(
        title="The Test Tale",
        segments=[Segment(id="seg-a", content="A", choices=[])],
        current_segment=Segment(
            id="seg-b",
            content="B",
            choices=[Choice(id="c1", text="Go left"), Choice(id="c2", text="Go right")],
        ),
        settings=sample_settings,
    )


@pytest.fixture
def segment_json() -> str:
    """A well-formed segment reply from the generation endpoint."""
    return json.dumps({
        "content": "The forest opened onto a silver lake.",
        "choices": ["Swim across", "Follow the shore"],
    })


def make_provider(*contents: str) -> MagicMock:
    """Mock provider returning ``contents`` in order, one per generate() call."""
    provider = MagicMock()
    provider.generate.side_effect = [
        TextGenerationResult(content=c, provider="mock", model="mock-model", estimated_cost=0.0)
        for c in contents
    ]
    provider.provider_name = "Mock"
    return provider


@pytest.fixture
def provider_factory():
    """Build a mock provider with a scripted sequence of replies."""
    return make_provider


@pytest.fixture
def mock_text_provider(segment_json: str) -> MagicMock:
    """Mock provider that always answers with the same segment JSON."""
    provider = MagicMock()
    provider.generate.return_value = TextGenerationResult(
        content=segment_json, provider="mock", model="mock-model", estimated_cost=0.0
    )
    provider.provider_name = "Mock"
    return provider


@pytest.fixture
def memory_library() -> StoryLibrary:
    """Story library backed by an in-memory store."""
    return StoryLibrary(MemoryStore())


@pytest.fixture(autouse=True)
def isolated_user_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point user settings at an empty temp config so no real keys or models leak in."""
    monkeypatch.setattr("storyomatic.settings.CONFIG_PATH", tmp_path / "config" / "config.json")
    monkeypatch.delenv("STORYOMATIC_LIBRARY_DIR", raising=False)
