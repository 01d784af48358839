"""Turn before/after text snapshots into insert and delete events."""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from .models import EventType, LogEvent


def diff_spans(old_text: str, new_text: str) -> tuple[int, str, str]:
    """Return ``(position, removed, inserted)`` for the edit ``old -> new``.

    The common prefix and suffix are trimmed from both sides without letting
    them overlap, so ``old[:p] + inserted + old[p + len(removed):] == new``.
    """
    limit = min(len(old_text), len(new_text))
    prefix = 0
    while prefix < limit and old_text[prefix] == new_text[prefix]:
        prefix += 1

    suffix = 0
    while (
        prefix + suffix < limit
        and old_text[len(old_text) - 1 - suffix] == new_text[len(new_text) - 1 - suffix]
    ):
        suffix += 1

    removed = old_text[prefix : len(old_text) - suffix]
    inserted = new_text[prefix : len(new_text) - suffix]
    return prefix, removed, inserted


def capture_change(
    old_text: str,
    new_text: str,
    *,
    timestamp: int,
    relative_time: int,
    pause_before: int,
    id_factory: Optional[Callable[[], str]] = None,
) -> list[LogEvent]:
    """Describe one user-visible edit as zero, one or two events.

    A delete (if any) always precedes the insert so that both positions are
    valid against the buffer the replay engine holds at that point. The
    second event of a replacement carries no extra pause.
    """
    make_id = id_factory or (lambda: str(uuid.uuid4()))
    position, removed, inserted = diff_spans(old_text, new_text)
    events: list[LogEvent] = []

    if removed:
        events.append(
            LogEvent(
                id=make_id(),
                type=EventType.DELETE,
                timestamp=timestamp,
                relative_time=relative_time,
                position=position,
                pause_before=pause_before,
                content=removed,
                action_details="Delete/Backspace",
            )
        )

    if inserted:
        is_paste = len(inserted) > 1
        events.append(
            LogEvent(
                id=make_id(),
                type=EventType.PASTE if is_paste else EventType.INSERT,
                timestamp=timestamp,
                relative_time=relative_time,
                position=position,
                pause_before=0 if events else pause_before,
                content=inserted,
                action_details="Paste/Replace" if is_paste else "Type",
            )
        )

    return events
