from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from inputlog.config import RecorderSettings
from inputlog.models import AutosaveSnapshot, EventType, SessionStatus
from inputlog.recorder import SESSION_RESTORED, AutosaveStore, SessionRecorder
from inputlog.replay import reconstruct_text, verify_session
from inputlog.segmentation import analyze_session


def _recorder(clock, db_path=None, **settings):
    store = AutosaveStore(db_path, RecorderSettings(**settings)) if db_path else None
    return SessionRecorder(RecorderSettings(**settings), store=store, clock=clock)


def test_start_logs_focus_event(clock):
    recorder = _recorder(clock)
    recorder.start("  Ada ")

    assert recorder.status == SessionStatus.RECORDING
    assert recorder.student_name == "Ada"
    (event,) = recorder.events
    assert event.type == EventType.FOCUS
    assert event.position == 0
    assert event.relative_time == 0


def test_start_requires_a_name(clock):
    recorder = _recorder(clock)
    with pytest.raises(ValueError):
        recorder.start("   ")
    assert recorder.status == SessionStatus.IDLE


def test_finished_session_replays_to_final_text(clock):
    recorder = _recorder(clock)
    recorder.start("Ada")
    for text, gap in [("H", 100), ("Hi", 150), ("Hx", 3300), ("Hx there", 200), ("Hx here", 400)]:
        clock.advance(gap)
        recorder.record_change(text)
    clock.advance(500)
    session = recorder.finish()

    assert session is not None
    assert recorder.status == SessionStatus.FINISHED
    assert session.final_text == "Hx here"
    assert session.total_active_time == 100 + 150 + 3300 + 200 + 400 + 500
    assert verify_session(session) == []
    assert reconstruct_text(session.events, session.total_active_time) == "Hx here"
    assert session.total_pause_time == 3300


def test_replacement_edit_emits_delete_then_insert(clock):
    recorder = _recorder(clock)
    recorder.start("Ada")
    clock.advance(100)
    recorder.record_change("cat")
    clock.advance(100)
    events = recorder.record_change("cut")

    assert [(e.type, e.position, e.content) for e in events] == [
        (EventType.DELETE, 1, "a"),
        (EventType.INSERT, 1, "u"),
    ]


def test_window_signals_and_navigation(clock):
    recorder = _recorder(clock)
    assert recorder.focus() is None

    recorder.start("Ada")
    clock.advance(10)
    blur = recorder.blur()
    clock.advance(10)
    nav = recorder.navigate(3, "ArrowLeft")

    assert blur.position == -1
    assert blur.content == "Window Blurred"
    assert nav.type == EventType.NAVIGATION
    assert nav.action_details == "ArrowLeft"
    assert nav.pause_before == 10


def test_paused_recorder_keeps_only_window_signals(clock):
    recorder = _recorder(clock)
    recorder.start("Ada")
    clock.advance(100)
    recorder.record_change("a")
    recorder.pause()

    clock.advance(100)
    assert recorder.record_change("ab") == []
    assert recorder.text == "a"
    assert recorder.log_event(EventType.NAVIGATION, 1) is None
    assert recorder.log_event(EventType.BLUR, -1) is not None

    recorder.resume()
    clock.advance(100)
    assert len(recorder.record_change("ab")) == 1


def test_finish_without_session_returns_none(clock):
    assert _recorder(clock).finish() is None


def test_relative_time_never_goes_backwards(clock):
    recorder = _recorder(clock)
    recorder.start("Ada")
    clock.advance(500)
    recorder.record_change("a")
    clock.advance(-200)
    recorder.record_change("ab")

    first, second = recorder.events[1:]
    assert second.relative_time == first.relative_time
    assert second.pause_before == 0


def test_autosave_is_throttled_and_forced_on_pause(clock, db_path):
    recorder = _recorder(clock, db_path, autosave_interval=timedelta(seconds=2))
    store = recorder._store
    recorder.start("Ada")
    clock.advance(500)
    recorder.record_change("a")
    assert store.load(clock()) is None

    clock.advance(2000)
    recorder.record_change("ab")
    saved = store.load(clock())
    assert saved is not None
    assert saved.text == "ab"

    clock.advance(100)
    recorder.record_change("abc")
    assert store.load(clock()).text == "ab"

    recorder.pause()
    saved = store.load(clock())
    assert saved.text == "abc"
    assert saved.status == SessionStatus.PAUSED


def test_stale_autosave_is_ignored(clock, db_path):
    store = AutosaveStore(db_path)
    snapshot = AutosaveSnapshot(
        student_name="Ada",
        text="x",
        status=SessionStatus.RECORDING,
        start_time=clock(),
        events=(),
        last_event_time=clock(),
        timestamp=clock(),
    )
    store.save(snapshot)

    assert store.load(clock() + 1000) == snapshot
    assert store.load(clock() + 48 * 3600 * 1000) is None


def test_new_session_clears_previous_autosave(clock, db_path):
    recorder = _recorder(clock, db_path)
    recorder.start("Ada")
    clock.advance(100)
    recorder.record_change("draft")
    recorder.pause()
    assert recorder._store.load(clock()) is not None

    recorder.start("Grace")
    assert recorder._store.load(clock()) is None


def test_restore_resumes_in_paused_state(clock, db_path):
    first = _recorder(clock, db_path)
    first.start("Ada")
    clock.advance(100)
    first.record_change("draft")
    first.pause()
    snapshot = first._store.load(clock())

    clock.advance(1000)
    second = _recorder(clock, db_path)
    second.restore(snapshot)

    assert second.status == SessionStatus.PAUSED
    assert second.text == "draft"
    marker = second.events[-1]
    assert marker.action_details == SESSION_RESTORED
    assert marker.content == ""
    assert marker.relative_time == 1100

    second.resume()
    clock.advance(100)
    second.record_change("drafts")
    session = second.finish()
    assert verify_session(session) == []
    assert analyze_session(session).insertion_groups == []


class _SlowStore:
    """Records snapshots only after an edit from another thread had a chance to run."""

    def __init__(self):
        self.saved = []
        self.recorder = None
        self.worker = None

    def save(self, snapshot):
        if self.worker is None:
            self.worker = threading.Thread(target=self._edit_and_save)
            self.worker.start()
            self.worker.join(timeout=0.2)
        self.saved.append(snapshot)

    def _edit_and_save(self):
        self.recorder.record_change("ab")
        self.recorder.autosave(force=True)

    def clear(self):
        self.saved.clear()


def test_concurrent_autosaves_store_the_newest_snapshot_last(clock):
    store = _SlowStore()
    recorder = SessionRecorder(RecorderSettings(), store=store, clock=clock)
    store.recorder = recorder
    recorder.start("Ada")
    clock.advance(100)
    recorder.record_change("a")

    recorder.autosave(force=True)
    store.worker.join(timeout=5)

    assert not store.worker.is_alive()
    assert [s.text for s in store.saved] == ["a", "ab"]
    assert store.saved[-1].events == recorder.events
