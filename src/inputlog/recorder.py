"""Capture-path session builder with periodic autosave."""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .config import AnalysisSettings, RecorderSettings
from .db import clear_autosave, database_connection, load_autosave, save_autosave
from .diffing import capture_change
from .models import AutosaveSnapshot, EventType, LogEvent, SessionStatus, WritingSession
from .sessionio import snapshot_from_dict, snapshot_to_dict

logger = logging.getLogger(__name__)

SESSION_RESTORED = "Session Restored"


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class AutosaveStore:
    """Keeps the single in-progress snapshot in the SQLite database."""

    def __init__(self, db_path: Path, settings: Optional[RecorderSettings] = None) -> None:
        self.db_path = Path(db_path)
        self.settings = settings or RecorderSettings()

    def save(self, snapshot: AutosaveSnapshot) -> None:
        with database_connection(self.db_path, check_same_thread=False) as conn:
            save_autosave(conn, snapshot_to_dict(snapshot), snapshot.timestamp)

    def load(self, now_ms: Optional[int] = None) -> Optional[AutosaveSnapshot]:
        """Return the saved snapshot unless it is missing, corrupted or stale."""
        now_ms = now_ms if now_ms is not None else wall_clock_ms()
        with database_connection(self.db_path, check_same_thread=False) as conn:
            row = load_autosave(conn)
        if row is None:
            return None
        try:
            snapshot = snapshot_from_dict(json.loads(row["payload"]))
        except ValueError:
            logger.warning("Ignoring unreadable autosave snapshot in %s", self.db_path)
            return None
        if now_ms - snapshot.timestamp >= self.settings.autosave_max_age_ms:
            logger.info("Ignoring autosave snapshot older than %s", self.settings.autosave_max_age)
            return None
        return snapshot

    def clear(self) -> None:
        with database_connection(self.db_path, check_same_thread=False) as conn:
            clear_autosave(conn)


@dataclass(slots=True)
class RecorderState:
    status: SessionStatus = SessionStatus.IDLE
    student_name: str = ""
    text: str = ""
    start_time: int = 0
    last_event_time: int = 0
    last_relative_time: int = 0
    events: list[LogEvent] = field(default_factory=list)
    last_autosave: int = 0


class SessionRecorder:
    """Owns the event log of the session being written.

    There is a single writer per recorder; every mutation goes through the
    lock so the web surface can share one instance across request threads.
    """

    def __init__(
        self,
        settings: Optional[RecorderSettings] = None,
        *,
        store: Optional[AutosaveStore] = None,
        analysis_settings: Optional[AnalysisSettings] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.settings = settings or RecorderSettings()
        self.analysis_settings = analysis_settings or AnalysisSettings()
        self._store = store
        self._clock = clock or wall_clock_ms
        self._state = RecorderState()
        self._lock = threading.Lock()

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def text(self) -> str:
        return self._state.text

    @property
    def student_name(self) -> str:
        return self._state.student_name

    @property
    def events(self) -> tuple[LogEvent, ...]:
        with self._lock:
            return tuple(self._state.events)

    def start(self, student_name: str) -> None:
        name = student_name.strip()
        if not name:
            raise ValueError("A student name is required to start a session.")
        # The previous save is only discarded once a new session begins.
        if self._store is not None:
            self._store.clear()
        now = self._clock()
        with self._lock:
            self._state = RecorderState(
                status=SessionStatus.RECORDING,
                student_name=name,
                start_time=now,
                last_event_time=now,
                last_autosave=now,
            )
            self._append_locked(EventType.FOCUS, 0, "", None, now)
        logger.info("Recording started for %s.", name)

    def pause(self) -> None:
        with self._lock:
            if self._state.status != SessionStatus.RECORDING:
                return
            self._state.status = SessionStatus.PAUSED
        self.autosave(force=True)
        logger.info("Recording paused.")

    def resume(self) -> None:
        with self._lock:
            if self._state.status != SessionStatus.PAUSED:
                return
            self._state.status = SessionStatus.RECORDING
        logger.info("Recording resumed.")

    def finish(self) -> Optional[WritingSession]:
        """Close the log and return the finished session (``None`` if idle)."""
        with self._lock:
            if self._state.status == SessionStatus.IDLE:
                return None
        # Keep a last snapshot in case the caller fails to persist the session.
        self.autosave(force=True)
        end_time = self._clock()
        with self._lock:
            state = self._state
            state.status = SessionStatus.FINISHED
            threshold = self.analysis_settings.pause_threshold_ms
            session = WritingSession(
                id=str(uuid.uuid4()),
                student_name=state.student_name,
                start_time=state.start_time,
                end_time=end_time,
                events=tuple(state.events),
                final_text=state.text,
                total_active_time=max(end_time - state.start_time, 0),
                total_pause_time=sum(
                    e.pause_before for e in state.events if e.pause_before > threshold
                ),
            )
        logger.info("Recording finished: %d events.", len(session.events))
        return session

    def record_change(self, new_text: str) -> list[LogEvent]:
        """Log the edit that turned the current text into ``new_text``.

        Edits arriving while not recording are dropped so that the log always
        replays to the recorder's text.
        """
        with self._lock:
            state = self._state
            if state.status != SessionStatus.RECORDING:
                logger.debug("Ignoring edit while %s.", state.status.value)
                return []
            now = self._clock()
            relative = max(now - state.start_time, state.last_relative_time)
            events = capture_change(
                state.text,
                new_text,
                timestamp=now,
                relative_time=relative,
                pause_before=relative - state.last_relative_time,
            )
            for event in events:
                self._push_locked(event)
            state.text = new_text
        self.autosave_if_needed()
        return events

    def navigate(self, position: int, key: str) -> Optional[LogEvent]:
        if self._state.status != SessionStatus.RECORDING:
            return None
        return self.log_event(EventType.NAVIGATION, position, action_details=key)

    def focus(self) -> Optional[LogEvent]:
        if self._state.status != SessionStatus.RECORDING:
            return None
        return self.log_event(EventType.FOCUS, -1, content="Window Focused")

    def blur(self) -> Optional[LogEvent]:
        if self._state.status != SessionStatus.RECORDING:
            return None
        return self.log_event(EventType.BLUR, -1, content="Window Blurred")

    def log_event(
        self,
        event_type: EventType,
        position: int,
        *,
        content: Optional[str] = None,
        action_details: Optional[str] = None,
    ) -> Optional[LogEvent]:
        """Append a signal; while paused only window signals are kept."""
        with self._lock:
            status = self._state.status
            if status not in (SessionStatus.RECORDING, SessionStatus.PAUSED):
                return None
            if (
                status == SessionStatus.PAUSED
                and event_type not in (EventType.FOCUS, EventType.BLUR)
                and action_details != SESSION_RESTORED
            ):
                return None
            return self._append_locked(event_type, position, content, action_details, self._clock())

    def snapshot(self) -> AutosaveSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> AutosaveSnapshot:
        state = self._state
        return AutosaveSnapshot(
            student_name=state.student_name,
            text=state.text,
            status=state.status,
            start_time=state.start_time,
            events=tuple(state.events),
            last_event_time=state.last_event_time,
            timestamp=self._clock(),
        )

    def restore(self, snapshot: AutosaveSnapshot) -> None:
        """Resume an autosaved session in the paused state."""
        with self._lock:
            last_relative = max((e.relative_time for e in snapshot.events), default=0)
            self._state = RecorderState(
                status=SessionStatus.PAUSED,
                student_name=snapshot.student_name,
                text=snapshot.text,
                start_time=snapshot.start_time,
                last_event_time=snapshot.last_event_time,
                last_relative_time=last_relative,
                events=list(snapshot.events),
                last_autosave=self._clock(),
            )
        self.log_event(EventType.INSERT, 0, content="", action_details=SESSION_RESTORED)
        logger.info("Restored autosaved session for %s.", snapshot.student_name)

    def autosave_if_needed(self) -> None:
        with self._lock:
            if self._state.status != SessionStatus.RECORDING:
                return
            elapsed = self._clock() - self._state.last_autosave
        if elapsed >= self.settings.autosave_interval_ms:
            self.autosave()

    def autosave(self, force: bool = False) -> None:
        if self._store is None:
            return
        # The write happens under the lock so snapshots reach the store in order.
        with self._lock:
            status = self._state.status
            if not force and status != SessionStatus.RECORDING:
                return
            if status not in (SessionStatus.RECORDING, SessionStatus.PAUSED):
                return
            snapshot = self._snapshot_locked()
            try:
                self._store.save(snapshot)
            except Exception:
                logger.exception("Autosave failed; continuing to record.")
                return
            self._state.last_autosave = snapshot.timestamp
        logger.debug("Autosaved %d events.", len(snapshot.events))

    def _append_locked(
        self,
        event_type: EventType,
        position: int,
        content: Optional[str],
        action_details: Optional[str],
        now: int,
    ) -> LogEvent:
        state = self._state
        relative = max(now - state.start_time, state.last_relative_time)
        event = LogEvent(
            id=str(uuid.uuid4()),
            type=event_type,
            timestamp=now,
            relative_time=relative,
            position=position,
            pause_before=relative - state.last_relative_time,
            content=content,
            action_details=action_details,
        )
        self._push_locked(event)
        return event

    def _push_locked(self, event: LogEvent) -> None:
        state = self._state
        state.events.append(event)
        state.last_event_time = event.timestamp
        state.last_relative_time = event.relative_time
        logger.debug("Logged %s at %d (+%d ms).", event.type.value, event.position, event.pause_before)
