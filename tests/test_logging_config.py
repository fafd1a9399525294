"""
Tests for context_capture.logging_config.
"""
from context_capture.logging_config import build_logging_config


def test_rotating_files_under_log_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("UVICORN_LOG_FILE", raising=False)
    config = build_logging_config(tmp_path, "DEBUG")

    assert config["handlers"]["file"]["filename"] == str(tmp_path / "context-capture.log")
    assert config["handlers"]["file"]["class"] == "logging.handlers.RotatingFileHandler"
    assert config["loggers"]["context_capture"]["level"] == "DEBUG"
    assert config["loggers"]["uvicorn.access"]["handlers"] == ["access_stream", "access_file"]


def test_file_name_override(tmp_path, monkeypatch):
    monkeypatch.setenv("UVICORN_LOG_FILE", "custom.log")

    config = build_logging_config(tmp_path, "INFO")

    assert config["handlers"]["file"]["filename"] == str(tmp_path / "custom.log")
