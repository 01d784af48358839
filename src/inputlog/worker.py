"""Run session analysis off the capture path."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .config import AnalysisSettings
from .models import WritingSession
from .reporting import SummaryStats, summarize
from .segmentation import AnalysisCancelled, SessionAnalysis, analyze_session

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AnalysisReport:
    analysis: SessionAnalysis
    stats: SummaryStats


def safe_analyze(
    session: WritingSession,
    settings: Optional[AnalysisSettings] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[AnalysisReport]:
    """Analyse ``session``; on failure log it and return ``None``."""
    try:
        analysis = analyze_session(session, settings, cancel_event=cancel_event)
        return AnalysisReport(analysis=analysis, stats=summarize(session, analysis, settings))
    except AnalysisCancelled:
        raise
    except Exception:
        logger.exception("Analysis of session %s failed; no statistics available.", session.id)
        return None


class AnalysisTask:
    """Analyse one session in a background thread; the result is delivered once."""

    def __init__(
        self,
        session: WritingSession,
        settings: Optional[AnalysisSettings] = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._report: Optional[AnalysisReport] = None
        self._cancelled = False

    def start(self) -> "AnalysisTask":
        with self._lock:
            if self._thread is not None:
                return self
            self._thread = threading.Thread(target=self._run, daemon=True)
            self._thread.start()
            logger.debug("Analysis thread started for session %s.", self._session.id)
        return self

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self._done.is_set()

    def result(self, timeout: Optional[float] = None) -> Optional[AnalysisReport]:
        """Wait for the analysis; ``None`` if it failed or was cancelled."""
        if not self._done.wait(timeout):
            raise TimeoutError(f"analysis of session {self._session.id} still running")
        return self._report

    def _run(self) -> None:
        try:
            self._report = safe_analyze(
                self._session, self._settings, cancel_event=self._cancel
            )
        except AnalysisCancelled:
            self._cancelled = True
            logger.info("Analysis of session %s cancelled.", self._session.id)
        finally:
            self._done.set()


def analyze_in_background(
    session: WritingSession,
    settings: Optional[AnalysisSettings] = None,
) -> AnalysisTask:
    return AnalysisTask(session, settings).start()
