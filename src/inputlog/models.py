"""Domain models for recorded writing sessions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(str, Enum):
    INSERT = "insert"
    DELETE = "delete"
    PASTE = "paste"
    NAVIGATION = "navigation"
    FOCUS = "focus"
    BLUR = "blur"

    @property
    def is_text_change(self) -> bool:
        return self in TEXT_EVENT_TYPES


TEXT_EVENT_TYPES = frozenset({EventType.INSERT, EventType.DELETE, EventType.PASTE})


class SessionStatus(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"


@dataclass(slots=True, frozen=True)
class LogEvent:
    """A single logged action; written once and never mutated.

    ``timestamp`` is absolute (epoch milliseconds) and ``relative_time`` is the
    number of milliseconds elapsed since the session started.
    """

    id: str
    type: EventType
    timestamp: int
    relative_time: int
    position: int
    pause_before: int
    content: Optional[str] = None
    action_details: Optional[str] = None

    @property
    def affected_length(self) -> int:
        """Characters spliced in or removed; unrecorded deletes count as one."""
        return len(self.content) if self.content else 1


@dataclass(slots=True, frozen=True)
class WritingSession:
    """A finished (or snapshotted) recording, treated as read-only input."""

    id: str
    student_name: str
    start_time: int
    end_time: Optional[int]
    events: tuple[LogEvent, ...]
    final_text: str
    total_active_time: int
    total_pause_time: int = 0

    @property
    def duration_ms(self) -> int:
        if self.end_time is not None:
            return max(self.end_time - self.start_time, 0)
        return self.total_active_time

    @property
    def replay_duration(self) -> int:
        """Span a replay must cover: never shorter than the last event."""
        last = max((e.relative_time for e in self.events), default=0)
        return max(self.total_active_time, last)


@dataclass(slots=True, frozen=True)
class PauseInfo:
    id: str
    duration: int
    start_time: int
    context: str
    location: str


@dataclass(slots=True)
class DeletionGroup:
    """A run of quick successive deletions.

    ``replacement`` is filled in after the group is emitted, once the text
    typed over the deleted span is known.
    """

    id: str
    type: str
    content: str
    count: int
    char_count: int
    time: int
    position: int
    end_timestamp: int
    replacement: Optional[str] = None


@dataclass(slots=True)
class InsertionGroup:
    id: str
    content: str
    time: int
    count: int
    position: int
    level: str


@dataclass(slots=True, frozen=True)
class AutosaveSnapshot:
    """In-progress recorder state persisted while a session is being written."""

    student_name: str
    text: str
    status: SessionStatus
    start_time: int
    events: tuple[LogEvent, ...]
    last_event_time: int
    timestamp: int
