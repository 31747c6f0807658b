"""
Log Level Definitions and Mapping.

piper-tts-server uses four numeric levels instead of Python's five
named ones. They map naturally onto verbosity flags (-v, -vv, -vvv):

    1 = MINIMAL  -> logging.WARNING (30)
    2 = NORMAL   -> logging.INFO    (20)
    3 = VERBOSE  -> logging.DEBUG   (10)
    4 = DEBUG    -> logging.DEBUG - 5 (5, TRACE)

Usage:
    from piper_server.core.logging.levels import LogLevel, coerce_level

    level = coerce_level("VERBOSE")   # LogLevel.VERBOSE
    level = coerce_level(3)           # LogLevel.VERBOSE
    level = coerce_level("INFO")      # LogLevel.NORMAL
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Numeric log levels, increasing verbosity."""
    MINIMAL = 1  # Startup, shutdown, failures
    NORMAL = 2   # Request lifecycle, engine loads (default)
    VERBOSE = 3  # Per-stage timing
    DEBUG = 4    # Internal state


LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG - 5,
}

LEVEL_NAMES = {
    1: "MINIMAL",
    2: "NORMAL",
    3: "VERBOSE",
    4: "DEBUG",
}

_NAME_TO_LEVEL = {
    "MINIMAL": LogLevel.MINIMAL,
    "NORMAL": LogLevel.NORMAL,
    "VERBOSE": LogLevel.VERBOSE,
    "DEBUG": LogLevel.DEBUG,
    "TRACE": LogLevel.DEBUG,
    # Python level names
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
    "1": LogLevel.MINIMAL,
    "2": LogLevel.NORMAL,
    "3": LogLevel.VERBOSE,
    "4": LogLevel.DEBUG,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Convert an int, string or LogLevel to a LogLevel.

    Integers 1-4 are taken literally; larger integers are read as Python
    logging levels (WARNING -> MINIMAL, INFO -> NORMAL, lower -> DEBUG).
    Unknown values fall back to NORMAL.

    Examples:
        >>> coerce_level("debug")
        <LogLevel.DEBUG: 4>
        >>> coerce_level(logging.WARNING)
        <LogLevel.MINIMAL: 1>
    """
    if isinstance(value, LogLevel):
        return value

    if isinstance(value, int):
        if 1 <= value <= 4:
            return LogLevel(value)
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        if value >= logging.INFO:
            return LogLevel.NORMAL
        return LogLevel.DEBUG

    if isinstance(value, str):
        return _NAME_TO_LEVEL.get(value.upper().strip(), LogLevel.NORMAL)

    return LogLevel.NORMAL
