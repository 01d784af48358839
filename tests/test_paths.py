from __future__ import annotations

from types import SimpleNamespace

from inputlog import paths


def test_home_override(monkeypatch, tmp_path):
    home = tmp_path / "inputlog-home"
    monkeypatch.setenv(paths.HOME_ENV_VAR, str(home))

    assert paths.get_data_dir() == home
    assert home.is_dir()
    assert paths.get_db_path() == home / "sessions.sqlite3"


def test_blank_override_uses_platform_dir(monkeypatch, tmp_path):
    monkeypatch.setenv(paths.HOME_ENV_VAR, "  ")
    monkeypatch.setattr(paths, "_dirs", SimpleNamespace(user_data_path=tmp_path / "data"))

    assert paths.get_data_dir() == tmp_path / "data"


def test_export_filename_is_sanitised():
    assert paths.export_filename(" Ada Lovelace/1 ", 42) == "inputlog_lite_Ada_Lovelace_1_42.json"
    assert paths.export_filename("", 42) == "inputlog_lite_student_42.json"
