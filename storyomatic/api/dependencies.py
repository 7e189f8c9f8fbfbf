"""FastAPI dependencies and helpers shared by the story routes."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, HTTPException, Path as PathParam

from ..exceptions import (
    APIError,
    ConfigurationError,
    InvalidModelError,
    MalformedResponseError,
    RateLimitError,
    StoryBusyError,
    StoryNotFoundError,
    StoryomaticError,
)
from ..library import StoryLibrary
from ..providers import TextProvider
from ..settings import get_library_dir
from ..storage import validate_key
from ..story import StoryManager

# Thread executor for blocking generation calls
executor = ThreadPoolExecutor(max_workers=4)

# One manager per story id, so the busy flag is shared between requests
_managers: Dict[str, StoryManager] = {}
_managers_lock = threading.Lock()


def get_library() -> StoryLibrary:
    return StoryLibrary.from_directory(get_library_dir())


def get_provider() -> Optional[TextProvider]:
    """Provider for new managers; None builds one from user settings per call."""
    return None


def reset_managers() -> None:
    with _managers_lock:
        _managers.clear()


def forget_manager(story_id: str) -> None:
    with _managers_lock:
        _managers.pop(story_id, None)


def remember_manager(manager: StoryManager) -> None:
    if manager.state.id:
        with _managers_lock:
            _managers[manager.state.id] = manager


def to_http_exception(error: StoryomaticError) -> HTTPException:
    """Map engine errors onto HTTP status codes."""
    if isinstance(error, StoryNotFoundError):
        status = 404
    elif isinstance(error, StoryBusyError):
        status = 409
    elif isinstance(error, (ConfigurationError, InvalidModelError)):
        status = 400
    elif isinstance(error, RateLimitError):
        status = 429
    elif isinstance(error, (MalformedResponseError, APIError)):
        status = 502
    else:
        status = 500
    return HTTPException(status_code=status, detail=error.message)


async def run_engine(func: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking engine call in the executor, translating its errors."""
    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(executor, func, *args)
    except StoryomaticError as e:
        raise to_http_exception(e) from e


def get_validated_story_id(story_id: str = PathParam(..., description="Story id")) -> str:
    """Validate a story id from the path.

    Raises:
        HTTPException: 400 if the id contains anything but letters, digits, _ and -
    """
    try:
        return validate_key(story_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def get_story_manager(
    story_id: str = Depends(get_validated_story_id),
    library: StoryLibrary = Depends(get_library),
    provider: Optional[TextProvider] = Depends(get_provider),
) -> StoryManager:
    """Return the cached manager for ``story_id``, loading the story on first use.

    Raises:
        HTTPException: 404 if the story does not exist
    """
    with _managers_lock:
        manager = _managers.get(story_id)
    if manager is not None:
        return manager

    manager = StoryManager(library, provider=provider)
    await run_engine(manager.load_story, story_id)
    with _managers_lock:
        # Another request may have loaded it meanwhile; keep the first one
        return _managers.setdefault(story_id, manager)
