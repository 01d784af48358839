"""Summary statistics and console reporting for analysed sessions."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

from .config import AnalysisSettings
from .models import EventType, LogEvent, WritingSession
from .segmentation import REVISION, TYPO, SessionAnalysis


@dataclass(slots=True, frozen=True)
class NetCharPoint:
    time_seconds: int
    chars: int


@dataclass(slots=True, frozen=True)
class SummaryStats:
    words: int
    wpm: float
    typos: int
    revisions: int
    insertions: int
    pauses: int
    total_pause_ms: int
    net_chars: tuple[NetCharPoint, ...]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def count_words(text: str) -> int:
    return len(text.split())


def words_per_minute(words: int, active_ms: float) -> float:
    if active_ms <= 0:
        return 0.0
    return words / (active_ms / 1000.0 / 60.0)


def net_char_series(
    events: Iterable[LogEvent], duration_ms: float, bucket_count: int
) -> tuple[NetCharPoint, ...]:
    """Inserted minus deleted event counts at ``bucket_count + 1`` time marks.

    Single sweep over the events; the log is already ordered by relative time.
    """
    ordered = sorted(events, key=lambda e: e.relative_time)
    bucket_size = duration_ms / bucket_count if bucket_count > 0 else 0.0
    points: list[NetCharPoint] = []
    net = 0
    index = 0
    for bucket in range(bucket_count + 1):
        threshold = bucket * bucket_size
        while index < len(ordered) and ordered[index].relative_time <= threshold:
            event_type = ordered[index].type
            if event_type in (EventType.INSERT, EventType.PASTE):
                net += 1
            elif event_type == EventType.DELETE:
                net -= 1
            index += 1
        points.append(NetCharPoint(time_seconds=round(threshold / 1000), chars=max(0, net)))
    return tuple(points)


def summarize(
    session: WritingSession,
    analysis: SessionAnalysis,
    settings: Optional[AnalysisSettings] = None,
) -> SummaryStats:
    settings = settings or AnalysisSettings()
    words = count_words(session.final_text)
    return SummaryStats(
        words=words,
        wpm=round(words_per_minute(words, session.total_active_time), 1),
        typos=sum(1 for g in analysis.deletion_groups if g.type == TYPO),
        revisions=sum(1 for g in analysis.deletion_groups if g.type == REVISION),
        insertions=len(analysis.insertion_groups),
        pauses=len(analysis.pauses),
        total_pause_ms=sum(p.duration for p in analysis.pauses),
        net_chars=net_char_series(session.events, session.duration_ms, settings.bucket_count),
    )


def burst_lengths(events: Iterable[LogEvent], pause_threshold_ms: int) -> list[int]:
    """Lengths (in insert events) of the runs typed between long pauses."""
    lengths: list[int] = []
    current = 0
    for event in events:
        if event.type != EventType.INSERT:
            continue
        if event.pause_before > pause_threshold_ms:
            if current > 0:
                lengths.append(current)
            current = 1
        else:
            current += 1
    if current > 0:
        lengths.append(current)
    return lengths


def feedback_inputs(
    session: WritingSession,
    stats: SummaryStats,
    settings: Optional[AnalysisSettings] = None,
) -> dict[str, Any]:
    """Statistics handed to an external feedback generator along with the text."""
    settings = settings or AnalysisSettings()
    bursts = burst_lengths(session.events, settings.pause_threshold_ms)
    return {
        "word_count": stats.words,
        "duration_seconds": round(session.duration_ms / 1000.0, 1),
        "pause_count": stats.pauses,
        "burst_count": len(bursts),
        "average_burst_length": round(sum(bursts) / len(bursts)) if bursts else 0,
        "deletion_count": sum(1 for e in session.events if e.type == EventType.DELETE),
        "typos": stats.typos,
        "revisions": stats.revisions,
        "non_linear_insertions": stats.insertions,
        "final_text": session.final_text,
    }


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, session: WritingSession, analysis: Optional[SessionAnalysis]) -> None:
        self.session = session
        self.analysis = analysis

    def print_summary(self, *, details: bool = False) -> None:
        session = self.session
        print(f"Session {session.id} by {session.student_name or 'Unknown'}")
        print("-" * 40)
        print(f"Duration:    {format_duration(session.duration_ms / 1000)}")
        print(f"Events:      {len(session.events)}")
        if self.analysis is None:
            print("No statistics available; the raw log can still be exported.")
            return

        stats = summarize(session, self.analysis)
        print(f"Words:       {stats.words}")
        print(f"WPM:         {stats.wpm:.1f}")
        print(f"Pauses:      {stats.pauses} ({format_duration(stats.total_pause_ms / 1000)})")
        print(f"Typos:       {stats.typos}")
        print(f"Revisions:   {stats.revisions}")
        print(f"Insertions:  {stats.insertions}")
        if not details:
            return

        if self.analysis.pauses:
            print()
            print("Pauses:")
            for pause in self.analysis.pauses:
                print(
                    f"  {format_clock(pause.start_time):>6} {pause.duration / 1000:>6.1f}s "
                    f"{pause.location:<10} ...{pause.context}"
                )
        if self.analysis.deletion_groups:
            print()
            print("Deletions:")
            for group in self.analysis.deletion_groups:
                replaced = f" -> {group.replacement!r}" if group.replacement else ""
                print(
                    f"  {format_clock(group.time):>6} {group.type:<9} "
                    f"{group.content!r}{replaced}"
                )
        if self.analysis.insertion_groups:
            print()
            print("Insertions:")
            for group in self.analysis.insertion_groups:
                print(
                    f"  {format_clock(group.time):>6} {group.level:<10} "
                    f"@{group.position:<5} {group.content[:45]!r}"
                )


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_clock(ms: float) -> str:
    minutes, secs = divmod(int(ms // 1000), 60)
    return f"{minutes}:{secs:02d}"
