"""Logging setup shared by the server entry point and the uvicorn loggers."""

from __future__ import annotations

import logging.config
import os
from pathlib import Path
from typing import Any, Dict, Optional

_ROTATE_BYTES = 5 * 1024 * 1024
_ROTATE_COUNT = 5

_logging_configured = False


def _rotating(formatter: str, path: Path) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": formatter,
        "filename": str(path),
        "maxBytes": _ROTATE_BYTES,
        "backupCount": _ROTATE_COUNT,
        "encoding": "utf-8",
        "delay": True,
    }


def build_logging_config(log_dir: Path, level: str) -> Dict[str, Any]:
    """Return a ``dictConfig`` mapping that writes to stderr and rotating files."""
    log_path = log_dir / os.getenv("UVICORN_LOG_FILE", "context-capture.log")
    access_log_path = log_dir / os.getenv("UVICORN_ACCESS_LOG_FILE", "context-capture-access.log")
    app_logger = {"handlers": ["default", "file"], "level": level, "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(levelprefix)s %(asctime)s %(name)s: %(message)s",
                "use_colors": None,
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": "%(levelprefix)s %(client_addr)s - \"%(request_line)s\" %(status_code)s",
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
            "file": _rotating("default", log_path),
            "access_stream": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
            "access_file": _rotating("access", access_log_path),
        },
        "loggers": {
            "context_capture": dict(app_logger),
            "uvicorn": dict(app_logger),
            "uvicorn.error": dict(app_logger),
            "uvicorn.access": {
                "handlers": ["access_stream", "access_file"],
                "level": level,
                "propagate": False,
            },
        },
        "root": {"handlers": ["default"], "level": "WARNING"},
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Install the logging config once per process."""
    global _logging_configured
    if _logging_configured:
        return

    log_dir = Path(os.getenv("UVICORN_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_level = (level or os.getenv("UVICORN_LOG_LEVEL", "INFO")).upper()

    logging.config.dictConfig(build_logging_config(log_dir, log_level))
    _logging_configured = True


__all__ = ["build_logging_config", "configure_logging"]
