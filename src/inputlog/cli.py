"""Command-line interface for Inputlog Lite."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

import typer

from .config import AnalysisSettings
from .models import WritingSession
from .paths import export_filename, get_db_path
from .sessionio import InvalidLogError, load_session

app = typer.Typer(help="Keystroke-level writing process logger and analyser.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def analyze(
    log_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported session JSON."),
    details: bool = typer.Option(False, "--details", help="List every pause and group."),
    as_json: bool = typer.Option(False, "--json", help="Print statistics as JSON."),
    pause_ms: float = typer.Option(
        2000.0,
        "--pause-threshold",
        min=1.0,
        help="Gap in milliseconds above which a pause is recorded.",
    ),
) -> None:
    """Print pauses, deletion and insertion statistics for a session."""
    from .reporting import SummaryPrinter, feedback_inputs
    from .worker import safe_analyze

    session = _read_session(log_file)
    settings = AnalysisSettings.from_milliseconds(pause_ms, deletion_gap_ms=2000.0)
    report = safe_analyze(session, settings)
    if as_json:
        payload = {
            "session_id": session.id,
            "stats": report.stats.to_dict() if report else None,
            "feedback_inputs": feedback_inputs(session, report.stats, settings) if report else None,
        }
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    SummaryPrinter(session, report.analysis if report else None).print_summary(details=details)


@app.command()
def replay(
    log_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported session JSON."),
    at: Optional[float] = typer.Option(
        None, "--at", min=0.0, help="Seconds after the start to reconstruct."
    ),
    play: bool = typer.Option(False, "--play", help="Animate the session in the terminal."),
    speed: int = typer.Option(10, "--speed", help="Playback speed multiplier (1, 2, 5 or 10)."),
    fps: float = typer.Option(10.0, "--fps", min=1.0, max=60.0, help="Frames per second."),
) -> None:
    """Reconstruct the document at a point in time, or play it back."""
    from .replay import ReplayPlayer

    session = _read_session(log_file)
    player = ReplayPlayer(session)
    if not play:
        target = at * 1000.0 if at is not None else float(session.replay_duration)
        typer.echo(player.text_at(target))
        return

    try:
        player.clock.set_speed(speed)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--speed") from exc
    if at is not None:
        player.clock.seek(at * 1000.0)
    player.clock.play()
    try:
        while player.clock.is_playing:
            text = player.advance()
            typer.clear()
            typer.echo(f"[{player.clock.current_time / 1000:7.1f}s x{speed}]")
            typer.echo(text)
            time.sleep(1.0 / fps)
    except KeyboardInterrupt:
        player.clock.pause()


@app.command()
def verify(
    log_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported session JSON."),
) -> None:
    """Check that the log replays to its final text and is time-ordered."""
    from .replay import verify_session

    session = _read_session(log_file)
    problems = verify_session(session)
    if not problems:
        typer.echo(f"Session {session.id}: {len(session.events)} events, consistent.")
        return
    for problem in problems:
        typer.echo(problem, err=True)
    raise typer.Exit(code=1)


@app.command("import")
def import_log(
    log_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported session JSON."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the session SQLite database."
    ),
) -> None:
    """Store an exported session in the local database."""
    from .db import database_connection, upsert_session

    session = _read_session(log_file)
    with database_connection(db_path or get_db_path()) as conn:
        upsert_session(conn, session)
    typer.echo(f"Imported session {session.id} ({len(session.events)} events).")


@app.command("list")
def list_sessions(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the session SQLite database."
    ),
) -> None:
    """List stored sessions."""
    from .db import database_connection, fetch_sessions
    from .reporting import format_duration

    with database_connection(db_path or get_db_path()) as conn:
        rows = fetch_sessions(conn)
    if not rows:
        typer.echo("No sessions stored.")
        return
    for row in rows:
        duration = ""
        if row["end_time"] is not None:
            duration = format_duration((row["end_time"] - row["start_time"]) / 1000)
        typer.echo(f"{row['id']:<38} {row['student_name'][:20]:<20} {row['event_count']:>7} {duration}")


@app.command()
def export(
    session_id: str = typer.Argument(..., help="Identifier of a stored session."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", path_type=Path, help="Destination file."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the session SQLite database."
    ),
) -> None:
    """Write a stored session to a JSON file."""
    from .db import database_connection, fetch_session_payload
    from .recorder import wall_clock_ms
    from .sessionio import dump_session

    with database_connection(db_path or get_db_path()) as conn:
        payload = fetch_session_payload(conn, session_id)
    if payload is None:
        typer.echo(f"No session found for id={session_id}", err=True)
        raise typer.Exit(code=1)
    session = load_session(payload)
    target = output or Path(export_filename(session.student_name, wall_clock_ms()))
    target.write_text(dump_session(session), encoding="utf-8")
    typer.echo(f"Wrote {target}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the service."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the service."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the session SQLite database."
    ),
    autosave_seconds: float = typer.Option(
        2.0,
        "--autosave-interval",
        min=0.5,
        help="Seconds between autosaves while recording.",
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the interactive API docs in your default browser.",
    ),
) -> None:
    """Start the HTTP service for recording, replay and analysis."""
    from .config import RecorderSettings
    from .server_runner import run_server

    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        recorder_settings=RecorderSettings.from_intervals(autosave_seconds),
        open_browser=open_browser,
    )


def _read_session(path: Path) -> WritingSession:
    try:
        return load_session(path.read_bytes())
    except InvalidLogError as exc:
        typer.echo(f"{path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


if __name__ == "__main__":
    app()
