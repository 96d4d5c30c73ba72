from coursesite.infrastructure.logging import log_paths


def test_log_dir_is_created(tmp_path, monkeypatch):
    log_dir = tmp_path / "state" / "coursesite" / "log"
    monkeypatch.setattr(
        log_paths.platformdirs, "user_log_dir", lambda appname, appauthor=None: str(log_dir)
    )

    assert log_paths.get_log_dir() == log_dir
    assert log_dir.is_dir()
    assert log_paths.get_main_log_path() == log_dir / "coursesite.log"
