from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

PERSPECTIVES = ("first", "second", "third")
PROTAGONIST_GENDERS = ("male", "female", "other")
LANGUAGES = ("en", "ro")
COMPLEXITY_LEVELS = ("low", "medium", "high")
EMOTIONAL_TONES = ("light", "balanced", "dark")


def utc_now() -> str:
    """Current time as an ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def next_timestamp(previous: Optional[str] = None) -> str:
    """Like utc_now, but strictly later than ``previous``."""
    now = datetime.now(timezone.utc)
    if previous:
        floor = _parse_ts(previous) + timedelta(microseconds=1)
        if now < floor:
            now = floor
    return now.isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    # Stored records may carry keys from newer versions; drop them.
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass(frozen=True)
class StorySettings:
    genre: str
    perspective: str = "third"  # first, second, third
    protagonist_gender: str = "other"  # male, female, other
    style_inspiration: Optional[str] = None
    language: str = "en"  # en, ro
    prompt_strategy: str = "v1"  # base, v1 (alias of base), v2
    opening_sentence: Optional[str] = None
    opening_title: Optional[str] = None

    # Only read by strategies that support them (v2)
    complexity_level: Optional[str] = None  # low, medium, high
    emotional_tone: Optional[str] = None  # light, balanced, dark

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorySettings":
        return cls(**_known_fields(cls, data))


@dataclass
class Choice:
    id: str
    text: str
    instructions: List[str] = field(default_factory=list)  # narrative nudges for the next call
    settings: Optional[str] = None  # settings-change annotation

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Choice":
        data = _known_fields(cls, data)
        data["instructions"] = list(data.get("instructions") or [])
        return cls(**data)


@dataclass
class Segment:
    id: str
    content: str
    choices: List[Choice] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        return cls(
            id=data["id"],
            content=data.get("content", ""),
            choices=[Choice.from_dict(c) for c in data.get("choices") or []],
        )


@dataclass
class LastAction:
    """Tagged record of the last generation-triggering action, kept for retry."""

    type: str  # start, choice
    data: Any  # StorySettings for "start", Choice for "choice"

    def to_dict(self) -> Dict[str, Any]:
        payload = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        return {"type": self.type, "data": payload}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LastAction":
        action_type = data.get("type", "")
        payload = data.get("data")
        if action_type == "start" and isinstance(payload, dict):
            payload = StorySettings.from_dict(payload)
        elif action_type == "choice" and isinstance(payload, dict):
            payload = Choice.from_dict(payload)
        return cls(type=action_type, data=payload)


@dataclass
class DebugEntry:
    timestamp: str
    type: str  # request, response, error
    data: Any

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DebugEntry":
        return cls(**_known_fields(cls, data))


@dataclass
class StorySummary:
    text: str
    generated_at: str  # ISO format timestamp

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorySummary":
        return cls(**_known_fields(cls, data))


@dataclass
class StoryState:
    id: Optional[str] = None
    title: Optional[str] = None
    segments: List[Segment] = field(default_factory=list)
    current_segment: Optional[Segment] = None
    is_loading: bool = False
    error: Optional[str] = None
    last_action: Optional[LastAction] = None
    debug_log: List[DebugEntry] = field(default_factory=list)
    settings: Optional[StorySettings] = None
    summary: Optional[StorySummary] = None
    # Id of the segment standing in for an unanswered choice
    placeholder_id: Optional[str] = None
    last_modified: str = field(default_factory=utc_now)

    @property
    def status(self) -> str:
        """Coarse machine state: idle, loading, ready or error."""
        if self.is_loading:
            return "loading"
        if self.error:
            return "error"
        if self.current_segment is None:
            return "idle"
        return "ready"

    def has_valid_summary(self) -> bool:
        """A cached summary is only valid if nothing changed after it was generated."""
        if self.summary is None or not self.summary.text:
            return False
        return _parse_ts(self.summary.generated_at) >= _parse_ts(self.last_modified)

    def touch(self) -> None:
        # Any change after a summary must invalidate it, even within one clock tick
        previous = self.last_modified
        if self.summary is not None and self.summary.generated_at > previous:
            previous = self.summary.generated_at
        self.last_modified = next_timestamp(previous)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "segments": [s.to_dict() for s in self.segments],
            "current_segment": self.current_segment.to_dict() if self.current_segment else None,
            "is_loading": self.is_loading,
            "error": self.error,
            "last_action": self.last_action.to_dict() if self.last_action else None,
            "debug_log": [e.to_dict() for e in self.debug_log],
            "settings": self.settings.to_dict() if self.settings else None,
            "summary": self.summary.to_dict() if self.summary else None,
            "placeholder_id": self.placeholder_id,
            "last_modified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoryState":
        current = data.get("current_segment")
        last_action = data.get("last_action")
        settings = data.get("settings")
        summary = data.get("summary")
        return cls(
            id=data.get("id"),
            title=data.get("title"),
            segments=[Segment.from_dict(s) for s in data.get("segments") or []],
            current_segment=Segment.from_dict(current) if current else None,
            is_loading=bool(data.get("is_loading", False)),
            error=data.get("error"),
            last_action=LastAction.from_dict(last_action) if last_action else None,
            debug_log=[DebugEntry.from_dict(e) for e in data.get("debug_log") or []],
            settings=StorySettings.from_dict(settings) if settings else None,
            summary=StorySummary.from_dict(summary) if summary else None,
            placeholder_id=data.get("placeholder_id"),
            last_modified=data.get("last_modified") or utc_now(),
        )


@dataclass
class SavedStory:
    id: str
    title: str
    state: StoryState
    last_modified: str
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "state": self.state.to_dict(),
            "last_modified": self.last_modified,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedStory":
        return cls(
            id=data["id"],
            title=data.get("title") or "Untitled",
            state=StoryState.from_dict(data.get("state") or {}),
            last_modified=data.get("last_modified") or utc_now(),
            summary=data.get("summary") or "",
        )


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)
