"""Segment an event log into pauses, deletion groups and insertion groups."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from .config import AnalysisSettings
from .models import (
    DeletionGroup,
    EventType,
    InsertionGroup,
    LogEvent,
    PauseInfo,
    WritingSession,
)
from .replay import apply_event

logger = logging.getLogger(__name__)

TYPO = "Typo"
REVISION = "Revision"
SENTENCE = "Sentence"
PARAGRAPH = "Paragraph"

START_OF_DOC = "(Start of doc)"
_CANCEL_CHECK_EVERY = 512


class AnalysisCancelled(Exception):
    """Raised when a running analysis is asked to stop."""


@dataclass(slots=True)
class SessionAnalysis:
    pauses: list[PauseInfo]
    deletion_groups: list[DeletionGroup]
    insertion_groups: list[InsertionGroup]


@dataclass(slots=True)
class _SegmentationState:
    text: str = ""
    deletions: list[LogEvent] = field(default_factory=list)
    insertions: list[LogEvent] = field(default_factory=list)
    replacement: list[LogEvent] = field(default_factory=list)
    last_deletion_group: Optional[DeletionGroup] = None
    tracking_replacement: bool = False


def classify_pause_location(text: str) -> str:
    """Coarse location of a pause from the last character written before it."""
    if not text:
        return "Start"
    last_char = text[-1]
    if last_char == "\n":
        return "Paragraph"
    if last_char in ".?!":
        return "Sentence"
    if last_char == " ":
        return "Word"
    return "Mid-word"


def classify_insertion_level(content: str, settings: AnalysisSettings) -> str:
    if "\n" in content or len(content) > settings.paragraph_min_chars:
        return PARAGRAPH
    return SENTENCE


def is_sequential(buffer: list[LogEvent], event: LogEvent, settings: AnalysisSettings) -> bool:
    """Whether ``event`` continues the run held in ``buffer``.

    Deletions only need to follow quickly (backspacing walks positions
    backwards); insertions must continue exactly where the last one ended.
    """
    if not buffer:
        return True
    last = buffer[-1]
    if event.type == EventType.DELETE:
        return event.timestamp - last.timestamp < settings.deletion_gap_ms
    return event.position == last.position + last.affected_length


def analyze_session(
    session: WritingSession,
    settings: Optional[AnalysisSettings] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
) -> SessionAnalysis:
    """Walk the log once and emit pauses, deletion and insertion groups."""
    settings = settings or AnalysisSettings()
    state = _SegmentationState()
    pauses: list[PauseInfo] = []
    deletion_groups: list[DeletionGroup] = []
    insertion_groups: list[InsertionGroup] = []

    def flush_replacement() -> None:
        if state.last_deletion_group is not None and state.replacement:
            state.last_deletion_group.replacement = "".join(
                e.content or "" for e in state.replacement
            )
        state.last_deletion_group = None
        state.tracking_replacement = False
        state.replacement = []

    def flush_deletions() -> None:
        if not state.deletions:
            return
        first = state.deletions[0]
        char_count = sum(e.affected_length for e in state.deletions)
        group = DeletionGroup(
            id=first.id,
            type=TYPO if char_count < settings.typo_max_chars else REVISION,
            content="".join(e.content or "" for e in state.deletions),
            count=len(state.deletions),
            char_count=char_count,
            time=first.relative_time,
            position=first.position,
            end_timestamp=state.deletions[-1].timestamp,
        )
        deletion_groups.append(group)
        state.last_deletion_group = group
        state.deletions = []

    def flush_insertions() -> None:
        if not state.insertions:
            return
        first = state.insertions[0]
        content = "".join(e.content or "" for e in state.insertions)
        insertion_groups.append(
            InsertionGroup(
                id=first.id,
                content=content,
                time=first.relative_time,
                count=len(state.insertions),
                position=first.position,
                level=classify_insertion_level(content, settings),
            )
        )
        state.insertions = []

    def starts_replacement(event: LogEvent) -> bool:
        group = state.last_deletion_group
        return (
            group is not None
            and event.position == group.position
            and event.timestamp - group.end_timestamp < settings.replacement_window_ms
        )

    for index, event in enumerate(session.events):
        if cancel_event is not None and index % _CANCEL_CHECK_EVERY == 0 and cancel_event.is_set():
            raise AnalysisCancelled(f"analysis of session {session.id} cancelled")

        if event.pause_before > settings.pause_threshold_ms:
            pauses.append(_pause_info(event, state.text, settings))

        if event.type in (EventType.INSERT, EventType.PASTE) and event.content:
            flush_deletions()
            if starts_replacement(event) or (
                state.tracking_replacement
                and is_sequential(state.replacement, event, settings)
            ):
                state.tracking_replacement = True
                state.replacement.append(event)
            else:
                flush_replacement()
                if event.position < len(state.text):
                    if not is_sequential(state.insertions, event, settings):
                        flush_insertions()
                    state.insertions.append(event)
                else:
                    flush_insertions()
            state.text = apply_event(state.text, event)

        elif event.type == EventType.DELETE:
            flush_insertions()
            flush_replacement()
            if not is_sequential(state.deletions, event, settings):
                flush_deletions()
            state.deletions.append(event)
            state.text = apply_event(state.text, event)

        else:
            # Non-text events and empty restore markers end every open run.
            flush_deletions()
            flush_insertions()
            flush_replacement()

    flush_deletions()
    flush_insertions()
    flush_replacement()

    logger.debug(
        "Segmented session %s: %d pauses, %d deletion groups, %d insertion groups.",
        session.id,
        len(pauses),
        len(deletion_groups),
        len(insertion_groups),
    )
    return SessionAnalysis(
        pauses=pauses,
        deletion_groups=deletion_groups,
        insertion_groups=insertion_groups,
    )


def _pause_info(event: LogEvent, text: str, settings: AnalysisSettings) -> PauseInfo:
    context = text[-settings.context_chars :].replace("\n", "↵") if text else ""
    return PauseInfo(
        id=event.id,
        duration=event.pause_before,
        start_time=event.relative_time - event.pause_before,
        context=context or START_OF_DOC,
        location=classify_pause_location(text),
    )
