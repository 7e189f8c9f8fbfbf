"""Story library: persisted stories keyed by id, newest first."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .models import SavedStory, StoryState, new_id, next_timestamp
from .storage import JsonFileStore, KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "story_library"
SUMMARY_LENGTH = 150

# All stories share one stored list, so every read-modify-write must be serialized
_write_lock = threading.RLock()


def summarize_state(state: StoryState) -> Optional[str]:
    """Short library blurb: first line of the latest segment, truncated."""
    latest = state.current_segment or (state.segments[-1] if state.segments else None)
    if latest is None or not latest.content:
        return None
    return latest.content.split("\n")[0][:SUMMARY_LENGTH] + "..."


def _latest_timestamp(records: List[Dict[str, Any]]) -> Optional[str]:
    # New writes stamp after every stored record, so newest-first is write order
    stamps = [r.get("last_modified") for r in records if r.get("last_modified")]
    return max(stamps) if stamps else None


def _as_state_dict(value: Any) -> Any:
    return value.to_dict() if hasattr(value, "to_dict") else value


class StoryLibrary:
    """Read-modify-write access to the list of saved stories.

    Every operation re-reads the whole list from the store. Writes within one
    process are serialized; there is no version check, so two editors of the
    same story (or two processes) can still overwrite each other.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    @classmethod
    def from_directory(cls, base_dir: Path) -> "StoryLibrary":
        return cls(JsonFileStore(base_dir))

    def _load(self) -> List[Dict[str, Any]]:
        raw = self.store.get_item(STORAGE_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse stories from store: %s", e)
            return []
        if not isinstance(data, list):
            logger.warning("Story store holds %s instead of a list; ignoring it", type(data).__name__)
            return []
        return data

    def _write(self, records: List[Dict[str, Any]]) -> None:
        self.store.set_item(STORAGE_KEY, json.dumps(records, ensure_ascii=False))

    def save_story(self, title: str, state: StoryState) -> SavedStory:
        """Store ``state`` as a new story and return the record with its new id."""
        with _write_lock:
            records = self._load()

            story_id = new_id()
            timestamp = next_timestamp(_latest_timestamp(records))
            stored_state = StoryState.from_dict(state.to_dict())
            stored_state.id = story_id
            stored_state.last_modified = timestamp

            story = SavedStory(
                id=story_id,
                title=state.title or title,
                state=stored_state,
                last_modified=timestamp,
                summary=summarize_state(stored_state) or "New story",
            )
            records.append(story.to_dict())
            self._write(records)
        logger.info("Saved story %s (%s)", story.title, story.id)
        return story

    def get_all_stories(self) -> List[SavedStory]:
        stories = []
        for record in self._load():
            try:
                stories.append(SavedStory.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping corrupted story record: %s", e)
        stories.sort(key=lambda s: s.last_modified, reverse=True)
        return stories

    def get_story(self, story_id: str) -> Optional[SavedStory]:
        for story in self.get_all_stories():
            if story.id == story_id:
                return story
        return None

    def update_story(
        self,
        story_id: str,
        state: Union[StoryState, Mapping[str, Any]],
    ) -> Optional[SavedStory]:
        """Merge ``state`` into the stored story.

        ``state`` may be a full ``StoryState`` or a partial mapping using the
        ``StoryState.to_dict`` keys; fields absent from a partial update keep
        their stored value, and settings are merged key by key.
        """
        if isinstance(state, StoryState):
            updates = state.to_dict()
        else:
            updates = {k: _as_state_dict(v) for k, v in state.items()}
        new_settings = updates.pop("settings", None)

        with _write_lock:
            records = self._load()
            index = next((i for i, r in enumerate(records) if r.get("id") == story_id), None)
            if index is None:
                return None

            existing = SavedStory.from_dict(records[index])
            merged = existing.state.to_dict()

            old_settings = merged.get("settings") or {}
            old_summary = merged.get("summary")
            merged.update(updates)
            if new_settings is not None:
                merged["settings"] = {**old_settings, **new_settings}
            merged["summary"] = updates.get("summary") or old_summary
            merged["id"] = story_id

            timestamp = next_timestamp(_latest_timestamp(records))
            if "last_modified" not in updates:
                merged["last_modified"] = timestamp

            updated_state = StoryState.from_dict(merged)
            updated = SavedStory(
                id=story_id,
                title=existing.title,
                state=updated_state,
                last_modified=timestamp,
                summary=summarize_state(updated_state) or existing.summary,
            )

            records[index] = updated.to_dict()
            self._write(records)
        return updated

    def delete_story(self, story_id: str) -> None:
        with _write_lock:
            records = [r for r in self._load() if r.get("id") != story_id]
            self._write(records)
