"""
piper-tts-server Structured Logging.

    - Numeric log levels (1-4) for simplified configuration
    - Colored console output for humans
    - Rotating JSONL file output for machines
    - Request ID correlation across one request's log lines

Log Levels:
    1 = MINIMAL  - Startup, shutdown, failures
    2 = NORMAL   - Request lifecycle, engine loads (default)
    3 = VERBOSE  - Per-stage timing
    4 = DEBUG    - Internal state

Configuration:
    export PIPER_SERVER_LOG_LEVEL=3   # VERBOSE
    export PIPER_SERVER_NO_COLOR=1    # Disable colors

    In settings.yaml:
        logging:
          level: 2
          log_dir: logs
          jsonl_file: piper-server.jsonl

Usage:
    from piper_server.core.logging import get_logger, info, warn, verbose

    log = get_logger("piper-server.mymodule")
    info(log, "speak_started", chars=42, voice="en_US-lessac-medium")
    verbose(log, "phonemized", seconds=0.012)
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from .levels import LogLevel, LEVEL_MAP, LEVEL_NAMES, coerce_level
from .context import (
    get_request_id,
    set_request_id,
    get_level,
    set_level,
    get_level_name,
    is_configured,
    set_configured,
    get_log_config,
    set_log_config,
    read_logging_config,
)
from .formatters import (
    Colors,
    ColoredConsoleFormatter,
    JsonlFormatter,
    get_tag_color,
    supports_color,
)

DEFAULT_JSONL_FILE = "piper-server.jsonl"
DEFAULT_ROTATE_BYTES = 10 * 1024 * 1024
DEFAULT_ROTATE_BACKUPS = 5


def _file_handler(log_config: Dict[str, Any]) -> Optional[RotatingFileHandler]:
    """Rotating JSONL handler, or None when no log_dir is configured."""
    log_dir = log_config.get("log_dir")
    if not log_dir:
        return None

    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path / str(log_config.get("jsonl_file", DEFAULT_JSONL_FILE)),
        maxBytes=int(log_config.get("rotate_max_bytes", DEFAULT_ROTATE_BYTES)),
        backupCount=int(log_config.get("rotate_backup_count", DEFAULT_ROTATE_BACKUPS)),
        encoding="utf-8",
        delay=True,
    )
    # Level filtering happens in _log; the file records everything that gets through
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(JsonlFormatter())
    return handler


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install the console handler and, when log_dir is set, the JSONL file handler.

    Idempotent unless force=True. An explicit level wins over the
    settings file and PIPER_SERVER_LOG_LEVEL.
    """
    if is_configured() and not force:
        return

    log_config = read_logging_config()
    set_log_config(log_config)

    chosen = coerce_level(level if level is not None else log_config.get("level", LogLevel.NORMAL))
    set_level(chosen)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.setLevel(logging.NOTSET)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(LEVEL_MAP.get(chosen, logging.INFO))
    console.setFormatter(ColoredConsoleFormatter())
    root.addHandler(console)

    file_handler = _file_handler(log_config)
    if file_handler is not None:
        root.addHandler(file_handler)

    set_configured(True)


def _log(logger: logging.Logger, py_level: int, tag: str, numeric_level: int, message: str, fields: Dict[str, Any]) -> None:
    if numeric_level > get_level():
        return

    logger.log(
        py_level,
        message,
        extra={
            "tag": tag,
            "numeric_level": int(numeric_level),
            "request_id": get_request_id(),
            "event": fields.pop("event", None),
            "seconds": fields.pop("seconds", None),
            "extra_data": fields or None,
        },
    )


def get_logger(name: str = "piper-server") -> logging.Logger:
    """Named stdlib logger; configures logging on first use."""
    configure_logging()
    return logging.getLogger(name)


# Emit helpers. Keyword fields end up in "extra" (JSONL) or as key=value
# pairs (console); "event" and "seconds" are rendered specially.

def info(logger: logging.Logger, message: str, **fields: Any) -> None:
    """Request lifecycle and engine loads. Shown from NORMAL up."""
    _log(logger, logging.INFO, "INFO", LogLevel.NORMAL, message, fields)


def success(logger: logging.Logger, message: str, **fields: Any) -> None:
    """A request or load that completed. Shown from NORMAL up."""
    _log(logger, logging.INFO, "SUCCESS", LogLevel.NORMAL, message, fields)


def warn(logger: logging.Logger, message: str, **fields: Any) -> None:
    """Recoverable problems such as a skipped voice. Shown from NORMAL up."""
    _log(logger, logging.WARNING, "WARN", LogLevel.NORMAL, message, fields)


def error(logger: logging.Logger, message: str, **fields: Any) -> None:
    """Unexpected failures. Always shown."""
    _log(logger, logging.ERROR, "ERROR", LogLevel.MINIMAL, message, fields)


def fail(logger: logging.Logger, message: str, **fields: Any) -> None:
    """A request that ended with an error response. Always shown."""
    _log(logger, logging.ERROR, "FAIL", LogLevel.MINIMAL, message, fields)


def verbose(logger: logging.Logger, message: str, **fields: Any) -> None:
    """Per-stage timings. Shown from VERBOSE up."""
    _log(logger, logging.DEBUG, "INFO", LogLevel.VERBOSE, message, fields)


def debug(logger: logging.Logger, message: str, **fields: Any) -> None:
    """Internal state. Shown only at DEBUG."""
    _log(logger, logging.DEBUG, "DEBUG", LogLevel.DEBUG, message, fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "Colors",
    "supports_color",
    "get_tag_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "get_level_name",
    "get_log_config",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
