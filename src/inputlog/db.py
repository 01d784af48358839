"""SQLite storage for finished session logs and the autosave snapshot."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from .models import WritingSession
from .sessionio import session_to_dict

AUTOSAVE_KEY = "inputlog_autosave_v1"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            student_name TEXT NOT NULL,
            start_time INTEGER NOT NULL,
            end_time INTEGER,
            event_count INTEGER NOT NULL,
            payload TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_sessions_start_time
            ON sessions(start_time);

        CREATE TABLE IF NOT EXISTS autosave (
            key TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            saved_at INTEGER NOT NULL
        );
        """
    )


def upsert_session(conn: sqlite3.Connection, session: WritingSession) -> None:
    """Store the whole session as one JSON document."""
    conn.execute(
        """
        INSERT INTO sessions (id, student_name, start_time, end_time, event_count, payload)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            student_name = excluded.student_name,
            start_time = excluded.start_time,
            end_time = excluded.end_time,
            event_count = excluded.event_count,
            payload = excluded.payload
        """,
        (
            session.id,
            session.student_name,
            session.start_time,
            session.end_time,
            len(session.events),
            json.dumps(session_to_dict(session), ensure_ascii=False),
        ),
    )


def fetch_sessions(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    """List stored sessions, newest first, without their payloads."""
    return list(
        conn.execute(
            """
            SELECT id, student_name, start_time, end_time, event_count
            FROM sessions
            ORDER BY start_time DESC;
            """
        )
    )


def fetch_session_payload(conn: sqlite3.Connection, session_id: str) -> Optional[str]:
    row = conn.execute(
        "SELECT payload FROM sessions WHERE id = ?", (session_id,)
    ).fetchone()
    return row["payload"] if row else None


def delete_session(conn: sqlite3.Connection, session_id: str) -> None:
    cur = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    if cur.rowcount == 0:
        raise ValueError(f"No session found for id={session_id}")


def save_autosave(conn: sqlite3.Connection, payload: dict[str, Any], saved_at: int) -> None:
    conn.execute(
        """
        INSERT INTO autosave (key, payload, saved_at) VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET
            payload = excluded.payload,
            saved_at = excluded.saved_at
        """,
        (AUTOSAVE_KEY, json.dumps(payload, ensure_ascii=False), saved_at),
    )


def load_autosave(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
    return conn.execute(
        "SELECT payload, saved_at FROM autosave WHERE key = ?", (AUTOSAVE_KEY,)
    ).fetchone()


def clear_autosave(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM autosave WHERE key = ?", (AUTOSAVE_KEY,))
