"""FastAPI application exposing recording, replay and analysis over HTTP."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from .config import AnalysisSettings, RecorderSettings
from .db import (
    database_connection,
    delete_session,
    fetch_session_payload,
    fetch_sessions,
    upsert_session,
)
from .models import LogEvent, WritingSession
from .paths import export_filename, get_db_path
from .recorder import AutosaveStore, SessionRecorder, wall_clock_ms
from .replay import reconstruct_text, verify_session
from .reporting import feedback_inputs
from .sessionio import (
    InvalidLogError,
    backup_session,
    event_to_dict,
    load_session,
    session_to_dict,
)
from .worker import AnalysisTask

logger = logging.getLogger(__name__)


class StartPayload(BaseModel):
    student_name: str

    model_config = ConfigDict(extra="forbid")


class ChangePayload(BaseModel):
    text: str

    model_config = ConfigDict(extra="forbid")


class NavigationPayload(BaseModel):
    position: int
    key: str

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    recorder_settings: Optional[RecorderSettings] = None,
    analysis_settings: Optional[AnalysisSettings] = None,
    analysis_timeout: float = 30.0,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_analysis = analysis_settings or AnalysisSettings()
    store = AutosaveStore(resolved_db_path, recorder_settings)
    recorder = SessionRecorder(
        recorder_settings, store=store, analysis_settings=resolved_analysis
    )

    app = FastAPI(title="Inputlog Lite", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.recorder = recorder

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        recorder.autosave(force=True)

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        current: SessionRecorder = request.app.state.recorder
        return {
            "status": current.status.value,
            "student_name": current.student_name,
            "event_count": len(current.events),
            "database_path": str(request.app.state.db_path),
            "pause_threshold_ms": resolved_analysis.pause_threshold_ms,
        }

    @app.post("/api/recording/start")
    def start_recording(payload: StartPayload, request: Request) -> Dict[str, Any]:
        try:
            request.app.state.recorder.start(payload.student_name)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"status": request.app.state.recorder.status.value}

    @app.post("/api/recording/change")
    def record_change(payload: ChangePayload, request: Request) -> Dict[str, Any]:
        events = request.app.state.recorder.record_change(payload.text)
        return {"events": [event_to_dict(e) for e in events]}

    @app.post("/api/recording/navigation")
    def record_navigation(payload: NavigationPayload, request: Request) -> Dict[str, Any]:
        event = request.app.state.recorder.navigate(payload.position, payload.key)
        return {"event": _optional_event(event)}

    @app.post("/api/recording/focus")
    def record_focus(request: Request) -> Dict[str, Any]:
        return {"event": _optional_event(request.app.state.recorder.focus())}

    @app.post("/api/recording/blur")
    def record_blur(request: Request) -> Dict[str, Any]:
        return {"event": _optional_event(request.app.state.recorder.blur())}

    @app.post("/api/recording/pause")
    def pause_recording(request: Request) -> Dict[str, Any]:
        request.app.state.recorder.pause()
        return {"status": request.app.state.recorder.status.value}

    @app.post("/api/recording/resume")
    def resume_recording(request: Request) -> Dict[str, Any]:
        request.app.state.recorder.resume()
        return {"status": request.app.state.recorder.status.value}

    @app.post("/api/recording/finish")
    def finish_recording(request: Request) -> Dict[str, Any]:
        session = request.app.state.recorder.finish()
        if session is None:
            raise HTTPException(status_code=409, detail="No session is being recorded")
        with database_connection(request.app.state.db_path) as conn:
            upsert_session(conn, session)
        return _session_summary(session)

    @app.get("/api/autosave")
    def autosave_status() -> Dict[str, Any]:
        snapshot = store.load()
        if snapshot is None:
            return {"available": False}
        return {
            "available": True,
            "student_name": snapshot.student_name,
            "event_count": len(snapshot.events),
            "saved_at": snapshot.timestamp,
        }

    @app.post("/api/autosave/restore")
    def restore_autosave(request: Request) -> Dict[str, Any]:
        snapshot = store.load()
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No recent autosave found")
        request.app.state.recorder.restore(snapshot)
        return {"status": request.app.state.recorder.status.value, "text": snapshot.text}

    @app.get("/api/autosave/backup")
    def download_backup() -> JSONResponse:
        snapshot = store.load()
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No recent autosave found")
        session = backup_session(snapshot, wall_clock_ms())
        filename = f"BACKUP_RECOVERY_{snapshot.student_name or 'student'}.json"
        return _download(session, filename)

    @app.get("/api/sessions")
    def list_sessions(request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            rows = fetch_sessions(conn)
        return {
            "sessions": [
                {
                    "id": row["id"],
                    "student_name": row["student_name"],
                    "start_time": row["start_time"],
                    "end_time": row["end_time"],
                    "event_count": row["event_count"],
                }
                for row in rows
            ]
        }

    @app.post("/api/sessions/import")
    async def import_session(request: Request) -> Dict[str, Any]:
        raw = await request.body()
        try:
            session = load_session(raw)
        except InvalidLogError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        with database_connection(request.app.state.db_path) as conn:
            upsert_session(conn, session)
        logger.info("Imported session %s (%d events).", session.id, len(session.events))
        return _session_summary(session)

    @app.get("/api/sessions/{session_id}")
    def export_session(session_id: str, request: Request) -> JSONResponse:
        session = _load_stored_session(request, session_id)
        return _download(session, export_filename(session.student_name, wall_clock_ms()))

    @app.delete("/api/sessions/{session_id}")
    def remove_session(session_id: str, request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            try:
                delete_session(conn, session_id)
            except ValueError as exc:
                raise HTTPException(status_code=404, detail="Session not found") from exc
        return {"deleted": session_id}

    @app.get("/api/sessions/{session_id}/replay")
    def replay(
        session_id: str,
        request: Request,
        t: float = Query(
            default=0.0,
            description="Elapsed time in milliseconds since the session started.",
        ),
    ) -> Dict[str, Any]:
        session = _load_stored_session(request, session_id)
        clamped = max(0.0, min(t, float(session.replay_duration)))
        return {
            "time": clamped,
            "duration": session.replay_duration,
            "text": reconstruct_text(session.events, clamped),
        }

    @app.get("/api/sessions/{session_id}/verify")
    def verify(session_id: str, request: Request) -> Dict[str, Any]:
        session = _load_stored_session(request, session_id)
        problems = verify_session(session)
        return {"consistent": not problems, "problems": problems}

    @app.get("/api/sessions/{session_id}/analysis")
    def analysis(session_id: str, request: Request) -> Dict[str, Any]:
        session = _load_stored_session(request, session_id)
        task = AnalysisTask(session, resolved_analysis).start()
        try:
            report = task.result(timeout=analysis_timeout)
        except TimeoutError:
            task.cancel()
            logger.warning("Analysis of session %s timed out.", session_id)
            report = None
        if report is None:
            return {
                "session_id": session_id,
                "analysis": None,
                "error": "No statistics available; the raw log can still be exported.",
            }
        return {
            "session_id": session_id,
            "analysis": {
                "pauses": [asdict(p) for p in report.analysis.pauses],
                "deletion_groups": [asdict(g) for g in report.analysis.deletion_groups],
                "insertion_groups": [asdict(g) for g in report.analysis.insertion_groups],
            },
            "stats": report.stats.to_dict(),
            "feedback_inputs": feedback_inputs(session, report.stats, resolved_analysis),
        }

    return app


def _load_stored_session(request: Request, session_id: str) -> WritingSession:
    with database_connection(request.app.state.db_path) as conn:
        payload = fetch_session_payload(conn, session_id)
    if payload is None:
        raise HTTPException(status_code=404, detail="Session not found")
    try:
        return load_session(payload)
    except InvalidLogError as exc:
        logger.exception("Stored session %s is unreadable.", session_id)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _session_summary(session: WritingSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "student_name": session.student_name,
        "event_count": len(session.events),
        "total_active_time": session.total_active_time,
        "final_text": session.final_text,
    }


def _optional_event(event: Optional[LogEvent]) -> Optional[Dict[str, Any]]:
    return event_to_dict(event) if event is not None else None


def _download(session: WritingSession, filename: str) -> JSONResponse:
    return JSONResponse(
        session_to_dict(session),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
