"""
Request Context and Configuration State for Logging.

The request ID lives in a ContextVar so every log line emitted while
handling one HTTP request (including from worker threads that copy the
context) carries the same correlation ID. Level and configuration are
process-wide module state.

Environment Variables:
    - PIPER_SERVER_LOG_LEVEL: Override log level (1-4 or name)
    - PIPER_SERVER_LOG_DIR: Directory for the JSONL log file
    - PIPER_SERVER_JSONL_FILE: JSONL filename
    - PIPER_SERVER_LOG_ROTATE_BYTES: Max log file size
    - PIPER_SERVER_LOG_ROTATE_BACKUP: Number of backup files
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

# "-" marks log lines emitted outside any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Return the request ID of the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request ID to the current context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(name: str) -> int | None:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging configuration from the settings file and environment.

    Priority (highest first):
        1. PIPER_SERVER_LOG_* environment variables
        2. logging section of the settings file (PIPER_SERVER_SETTINGS,
           default config/settings.yaml)
        3. Defaults applied by configure_logging()
    """
    from piper_server.core.config import load_settings

    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("PIPER_SERVER_SETTINGS", "config/settings.yaml")
    settings = load_settings(settings_path, missing_ok=True)
    cfg.update(settings.raw.get("logging", {}) or {})

    if os.getenv("PIPER_SERVER_LOG_LEVEL"):
        cfg["level"] = os.environ["PIPER_SERVER_LOG_LEVEL"]
    if os.getenv("PIPER_SERVER_LOG_DIR"):
        cfg["log_dir"] = os.environ["PIPER_SERVER_LOG_DIR"]
    if os.getenv("PIPER_SERVER_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["PIPER_SERVER_JSONL_FILE"]

    rotate_bytes = _env_int("PIPER_SERVER_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _env_int("PIPER_SERVER_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
