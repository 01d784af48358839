"""JSON export/import for sessions and autosave snapshots."""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import AutosaveSnapshot, EventType, LogEvent, SessionStatus, WritingSession

INVALID_LOG_MESSAGE = "Invalid log file format. Please upload a valid Inputlog JSON export."
UNREADABLE_LOG_MESSAGE = "Error reading file. The file might be corrupted."


class InvalidLogError(ValueError):
    """An imported log is missing required fields or is not JSON at all."""


class EventPayload(BaseModel):
    id: Union[str, int] = ""
    type: EventType
    timestamp: int
    relative_time: int = Field(alias="relativeTime")
    position: int
    pause_before: int = Field(default=0, alias="pauseBefore")
    content: Optional[str] = None
    action_details: Optional[str] = Field(default=None, alias="actionDetails")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_event(self) -> LogEvent:
        return LogEvent(
            id=str(self.id),
            type=self.type,
            timestamp=self.timestamp,
            relative_time=self.relative_time,
            position=self.position,
            pause_before=self.pause_before,
            content=self.content,
            action_details=self.action_details,
        )


class SessionPayload(BaseModel):
    id: Union[str, int]
    student_name: str = Field(default="", alias="studentName")
    start_time: int = Field(default=0, alias="startTime")
    end_time: Optional[int] = Field(default=None, alias="endTime")
    events: list[EventPayload]
    final_text: str = Field(alias="finalText")
    total_active_time: Optional[int] = Field(default=None, alias="totalActiveTime")
    total_pause_time: int = Field(default=0, alias="totalPauseTime")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_session(self) -> WritingSession:
        active = self.total_active_time
        if active is None and self.end_time is not None:
            active = self.end_time - self.start_time
        if active is None:
            active = max((e.relative_time for e in self.events), default=0)
        return WritingSession(
            id=str(self.id),
            student_name=self.student_name,
            start_time=self.start_time,
            end_time=self.end_time,
            events=tuple(e.to_event() for e in self.events),
            final_text=self.final_text,
            total_active_time=active,
            total_pause_time=self.total_pause_time,
        )


class AutosavePayload(BaseModel):
    student_name: str = Field(default="", alias="studentName")
    text: str = ""
    status: SessionStatus = SessionStatus.PAUSED
    start_time: int = Field(alias="startTime")
    events: list[EventPayload] = Field(default_factory=list)
    last_event_time: int = Field(default=0, alias="lastEventTime")
    timestamp: int

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def event_to_dict(event: LogEvent) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": event.id,
        "type": event.type.value,
        "timestamp": event.timestamp,
        "relativeTime": event.relative_time,
        "position": event.position,
        "pauseBefore": event.pause_before,
    }
    if event.content is not None:
        payload["content"] = event.content
    if event.action_details is not None:
        payload["actionDetails"] = event.action_details
    return payload


def session_to_dict(session: WritingSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "studentName": session.student_name,
        "startTime": session.start_time,
        "endTime": session.end_time,
        "events": [event_to_dict(e) for e in session.events],
        "finalText": session.final_text,
        "totalActiveTime": session.total_active_time,
        "totalPauseTime": session.total_pause_time,
    }


def dump_session(session: WritingSession) -> str:
    return json.dumps(session_to_dict(session), indent=2, ensure_ascii=False)


def session_from_dict(data: Any) -> WritingSession:
    """Validate an exported session; nothing is loaded if validation fails."""
    if (
        not isinstance(data, dict)
        or not data.get("id")
        or not isinstance(data.get("events"), list)
        or data.get("finalText") is None
    ):
        raise InvalidLogError(INVALID_LOG_MESSAGE)
    try:
        return SessionPayload.model_validate(data).to_session()
    except ValidationError as exc:
        raise InvalidLogError(f"{INVALID_LOG_MESSAGE} ({exc.error_count()} invalid fields)") from exc


def load_session(raw: Union[str, bytes]) -> WritingSession:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidLogError(UNREADABLE_LOG_MESSAGE) from exc
    return session_from_dict(data)


def snapshot_to_dict(snapshot: AutosaveSnapshot) -> dict[str, Any]:
    return {
        "studentName": snapshot.student_name,
        "text": snapshot.text,
        "status": snapshot.status.value,
        "startTime": snapshot.start_time,
        "events": [event_to_dict(e) for e in snapshot.events],
        "lastEventTime": snapshot.last_event_time,
        "timestamp": snapshot.timestamp,
    }


def snapshot_from_dict(data: Any) -> AutosaveSnapshot:
    try:
        payload = AutosavePayload.model_validate(data)
    except ValidationError as exc:
        raise InvalidLogError("Autosave snapshot is corrupted.") from exc
    return AutosaveSnapshot(
        student_name=payload.student_name,
        text=payload.text,
        status=payload.status,
        start_time=payload.start_time,
        events=tuple(e.to_event() for e in payload.events),
        last_event_time=payload.last_event_time,
        timestamp=payload.timestamp,
    )


def backup_session(snapshot: AutosaveSnapshot, now_ms: int) -> WritingSession:
    """Build a downloadable raw session from an autosave snapshot."""
    return WritingSession(
        id=f"BACKUP-{now_ms}",
        student_name=snapshot.student_name or "Unknown",
        start_time=snapshot.start_time,
        end_time=now_ms,
        events=snapshot.events,
        final_text=snapshot.text,
        total_active_time=now_ms - snapshot.start_time,
        total_pause_time=0,
    )
