"""Run the HTTP service under uvicorn."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import AnalysisSettings, RecorderSettings
from .paths import get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)

DOCS_OPEN_DELAY = 1.0


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8766,
    db_path: Optional[Path] = None,
    recorder_settings: Optional[RecorderSettings] = None,
    analysis_settings: Optional[AnalysisSettings] = None,
    open_browser: bool = False,
    log_level: str = "info",
) -> None:
    """Serve the API until interrupted; optionally open the docs page once it is up."""
    resolved_db_path = db_path or get_db_path()
    app = create_app(
        db_path=resolved_db_path,
        recorder_settings=recorder_settings or RecorderSettings(),
        analysis_settings=analysis_settings,
    )
    if open_browser:
        schedule_docs(f"http://{host}:{port}/docs")

    logger.info("Serving sessions from %s on %s:%d", resolved_db_path, host, port)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def schedule_docs(url: str, delay: float = DOCS_OPEN_DELAY) -> threading.Timer:
    timer = threading.Timer(delay, open_docs, args=(url,))
    timer.daemon = True
    timer.start()
    return timer


def open_docs(url: str) -> bool:
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Could not start a browser for %s", url)
        return False
    if not opened:
        logger.warning("No browser available; API docs are at %s", url)
    return opened
