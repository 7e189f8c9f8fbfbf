"""Key-value text stores backing the story library."""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

CURRENT_FILENAME = ".current"


def read_text(path: Path) -> str:
    with path.open("r", encoding="utf-8") as f:
        return f.read()


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        f.write(text)


def set_current_story(base_dir: Path, story_id: str) -> None:
    write_text(Path(base_dir) / CURRENT_FILENAME, story_id)


def get_current_story(base_dir: Path) -> Optional[str]:
    path = Path(base_dir) / CURRENT_FILENAME
    if path.exists():
        return read_text(path).strip() or None
    return None


def clear_current_story(base_dir: Path) -> None:
    path = Path(base_dir) / CURRENT_FILENAME
    if path.exists():
        path.unlink()


def validate_key(key: str) -> str:
    """Validate a store key so it can't escape the store directory.

    Raises:
        ValueError: If key is empty or contains dangerous characters
    """
    if not key:
        raise ValueError("Key cannot be empty")

    # SECURITY: Prevent path traversal
    if ".." in key or "/" in key or "\\" in key:
        raise ValueError("Invalid key: contains path traversal characters")
    if not re.match(r"^[A-Za-z0-9_\-]+$", key):
        raise ValueError("Invalid key: must contain only letters, numbers, underscores and hyphens")
    if len(key) > 100:
        raise ValueError("Invalid key: too long (max 100 characters)")

    return key


class KeyValueStore(ABC):
    """Minimal string store, in the spirit of browser local storage."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """One ``<key>.json`` file per key under ``base_dir``.

    Writes go through a temporary file and an atomic rename. There is no
    locking, so two processes writing the same key race (last write wins).
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{validate_key(key)}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except IOError as e:
            logger.error("Failed to read file %s: %s", path, e)
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
