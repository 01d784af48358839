"""Configuration models and helpers for recording and analysis."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


def _ms(value: timedelta) -> int:
    return int(round(value.total_seconds() * 1000))


@dataclass(slots=True)
class AnalysisSettings:
    """Thresholds used by the segmentation pipeline and summary statistics."""

    pause_threshold: timedelta = timedelta(seconds=2)
    deletion_gap: timedelta = timedelta(seconds=2)
    replacement_window: timedelta = timedelta(seconds=5)
    # Deletion groups removing fewer characters than this are typos.
    typo_max_chars: int = 3
    # Insertion groups longer than this (or containing a newline) are paragraphs.
    paragraph_min_chars: int = 80
    context_chars: int = 20
    bucket_count: int = 50

    @property
    def pause_threshold_ms(self) -> int:
        return _ms(self.pause_threshold)

    @property
    def deletion_gap_ms(self) -> int:
        return _ms(self.deletion_gap)

    @property
    def replacement_window_ms(self) -> int:
        return _ms(self.replacement_window)

    @classmethod
    def from_milliseconds(
        cls,
        pause_ms: float,
        deletion_gap_ms: float | None = None,
        replacement_window_ms: float = 5000.0,
        **overrides: int,
    ) -> "AnalysisSettings":
        gap = deletion_gap_ms if deletion_gap_ms is not None else pause_ms
        return cls(
            pause_threshold=timedelta(milliseconds=pause_ms),
            deletion_gap=timedelta(milliseconds=gap),
            replacement_window=timedelta(milliseconds=replacement_window_ms),
            **overrides,
        )


@dataclass(slots=True)
class RecorderSettings:
    """Runtime configuration for the session recorder."""

    autosave_interval: timedelta = timedelta(seconds=2)
    autosave_max_age: timedelta = timedelta(hours=48)

    @property
    def autosave_interval_ms(self) -> int:
        return _ms(self.autosave_interval)

    @property
    def autosave_max_age_ms(self) -> int:
        return _ms(self.autosave_max_age)

    @classmethod
    def from_intervals(
        cls,
        autosave_seconds: float,
        max_age_hours: float | None = None,
    ) -> "RecorderSettings":
        max_age = max_age_hours if max_age_hours is not None else 48.0
        return cls(
            autosave_interval=timedelta(seconds=autosave_seconds),
            autosave_max_age=timedelta(hours=max_age),
        )
