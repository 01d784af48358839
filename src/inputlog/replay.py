"""Reconstruct document text from an event log and drive playback."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from .models import EventType, LogEvent, WritingSession

logger = logging.getLogger(__name__)

PLAYBACK_SPEEDS: tuple[int, ...] = (1, 2, 5, 10)


def apply_event(text: str, event: LogEvent) -> str:
    """Apply one event's text operation to ``text``.

    Positions and lengths outside the buffer are clamped so that hand-edited
    or damaged logs can still be inspected.
    """
    if event.type in (EventType.INSERT, EventType.PASTE):
        position = _clamp(event.position, 0, len(text))
        return text[:position] + (event.content or "") + text[position:]
    if event.type == EventType.DELETE:
        position = _clamp(event.position, 0, len(text))
        end = _clamp(position + event.affected_length, position, len(text))
        return text[:position] + text[end:]
    return text


def reconstruct_text(events: Iterable[LogEvent], target_time: float) -> str:
    """Return the document as it was at ``target_time`` ms after the start."""
    text = ""
    for event in events:
        if event.type.is_text_change and event.relative_time <= target_time:
            text = apply_event(text, event)
    return text


def verify_session(session: WritingSession) -> list[str]:
    """List violations of the log's ordering and reconstruction invariants."""
    problems: list[str] = []
    previous = 0
    for index, event in enumerate(session.events):
        if event.relative_time < previous:
            problems.append(
                f"event {index} ({event.id}) goes back in time: "
                f"{event.relative_time} < {previous}"
            )
        elif event.pause_before != event.relative_time - previous:
            problems.append(
                f"event {index} ({event.id}) has pause_before={event.pause_before}, "
                f"expected {event.relative_time - previous}"
            )
        previous = max(previous, event.relative_time)

    text = ""
    for event in session.events:
        if not event.type.is_text_change:
            continue
        if event.position < 0 or event.position > len(text):
            problems.append(f"event {event.id} position {event.position} is out of range")
        elif event.type == EventType.DELETE and event.position + event.affected_length > len(text):
            problems.append(f"event {event.id} deletes past the end of the document")
        text = apply_event(text, event)

    if text != session.final_text:
        problems.append("replaying the log does not reproduce the final text")
    return problems


class ReplayClock:
    """Virtual playback clock advanced by measured wall-clock frame deltas."""

    def __init__(
        self,
        duration: float,
        *,
        time_source: Optional[Callable[[], float]] = None,
    ) -> None:
        self.duration = max(float(duration), 0.0)
        self._time_source = time_source or time.monotonic
        self._current = 0.0
        self._speed = 1
        self._playing = False
        self._last_frame: Optional[float] = None

    @property
    def current_time(self) -> float:
        return self._current

    @property
    def speed(self) -> int:
        return self._speed

    @property
    def is_playing(self) -> bool:
        return self._playing

    def play(self) -> None:
        if self._playing:
            return
        if self._current >= self.duration:
            self._current = 0.0
        self._playing = True
        self._last_frame = self._time_source()

    def pause(self) -> None:
        self._playing = False
        self._last_frame = None

    def toggle(self) -> None:
        if self._playing:
            self.pause()
        else:
            self.play()

    def reset(self) -> None:
        self.pause()
        self._current = 0.0

    def seek(self, target: float) -> None:
        self.pause()
        self._current = _clamp(float(target), 0.0, self.duration)

    def set_speed(self, speed: int) -> None:
        if speed not in PLAYBACK_SPEEDS:
            raise ValueError(f"Unsupported playback speed: {speed}")
        self._speed = speed

    def tick(self) -> float:
        """Advance by the wall-clock time elapsed since the previous frame."""
        if not self._playing or self._last_frame is None:
            return self._current
        now = self._time_source()
        # time_source is in seconds, the log in milliseconds.
        delta = max(now - self._last_frame, 0.0) * 1000.0
        self._last_frame = now
        next_time = self._current + delta * self._speed
        if next_time >= self.duration:
            self._current = self.duration
            self.pause()
            logger.debug("Playback reached the end at %.0f ms.", self.duration)
        else:
            self._current = next_time
        return self._current


class ReplayPlayer:
    """Pair a session with a clock; renders the text at the clock's position."""

    def __init__(
        self,
        session: WritingSession,
        *,
        time_source: Optional[Callable[[], float]] = None,
    ) -> None:
        self.session = session
        self._events = tuple(e for e in session.events if e.type.is_text_change)
        self.clock = ReplayClock(session.replay_duration, time_source=time_source)

    def text_at(self, target_time: float) -> str:
        return reconstruct_text(self._events, target_time)

    def current_text(self) -> str:
        return self.text_at(self.clock.current_time)

    def advance(self) -> str:
        self.clock.tick()
        return self.current_text()


def _clamp(value, lower, upper):
    return max(lower, min(value, upper))
