"""Where Inputlog Lite keeps its files."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "InputlogLite"
HOME_ENV_VAR = "INPUTLOG_LITE_HOME"
DB_FILENAME = "sessions.sqlite3"

_dirs = PlatformDirs(appname=APP_NAME, appauthor=False)


def get_data_dir() -> Path:
    """Per-user data directory, or ``$INPUTLOG_LITE_HOME`` when it is set."""
    override = os.environ.get(HOME_ENV_VAR, "").strip()
    data_dir = Path(override).expanduser() if override else _dirs.user_data_path
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    return get_data_dir() / DB_FILENAME


def export_filename(student_name: str, now_ms: int) -> str:
    """Download name for a session; unsafe characters become underscores."""
    safe_name = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in student_name.strip())
    return f"inputlog_lite_{safe_name or 'student'}_{now_ms}.json"
