"""Helpers for building event logs in tests."""

from __future__ import annotations

from typing import Iterable, Optional

from inputlog.models import EventType, LogEvent, WritingSession
from inputlog.replay import reconstruct_text

BASE_TS = 1_700_000_000_000

Step = tuple[str, int, Optional[str], int]


def typing_steps(text: str, start: int = 0, gap: int = 100, first_gap: Optional[int] = None) -> list[Step]:
    steps: list[Step] = []
    for offset, char in enumerate(text):
        pause = gap if offset or first_gap is None else first_gap
        steps.append(("insert", start + offset, char, pause))
    return steps


def make_session(
    steps: Iterable[Step],
    *,
    session_id: str = "session-1",
    final_text: Optional[str] = None,
) -> WritingSession:
    events: list[LogEvent] = []
    relative = 0
    for index, (kind, position, content, gap) in enumerate(steps):
        relative += gap
        events.append(
            LogEvent(
                id=f"e{index}",
                type=EventType(kind),
                timestamp=BASE_TS + relative,
                relative_time=relative,
                position=position,
                pause_before=gap,
                content=content,
            )
        )
    text = final_text if final_text is not None else reconstruct_text(events, relative)
    return WritingSession(
        id=session_id,
        student_name="Ada",
        start_time=BASE_TS,
        end_time=BASE_TS + relative,
        events=tuple(events),
        final_text=text,
        total_active_time=relative,
    )
