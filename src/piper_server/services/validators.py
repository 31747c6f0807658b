"""
Input Validation for the Speech Service.

Runs at the HTTP and CLI boundary, before any DSL, phonemizer or model
work starts.

Validation Rules:
    - text: required, at most 10000 characters (code points)
    - voice: required

Text is not stripped or normalized: whitespace-only text is valid input
and renders to silence.

Usage:
    from piper_server.services.validators import validate_text, validate_voice, ValidationError

    try:
        text = validate_text(request.text)
        voice = validate_voice(request.voice)
    except ValidationError as e:
        return error_response(e.code, e.message)
"""
from __future__ import annotations

from typing import Optional

from piper_server.core.config import Defaults
from piper_server.core.logging import debug, get_logger

_LOG = get_logger("piper-server.validators")


class ValidationError(Exception):
    """
    Input validation failed.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable reason, e.g. "TEXT_TOO_LONG".
    """

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


def validate_text(text: Optional[str], max_length: int = Defaults.LIMITS_MAX_TEXT_CHARS) -> str:
    """
    Validate text input.

    Raises:
        ValidationError: TEXT_REQUIRED or TEXT_TOO_LONG
    """
    if not text:
        raise ValidationError("Text cannot be empty", "TEXT_REQUIRED")

    if len(text) > max_length:
        debug(_LOG, "text_rejected", chars=len(text), max_chars=max_length)
        raise ValidationError(
            f"Text too long ({len(text)} > {max_length} chars)",
            "TEXT_TOO_LONG",
        )

    return text


def validate_voice(voice: Optional[str]) -> str:
    """
    Validate the voice identifier.

    Only emptiness is checked here; unknown voices are reported as
    VOICE_NOT_FOUND by the service.

    Raises:
        ValidationError: VOICE_REQUIRED
    """
    if not voice:
        raise ValidationError("Voice cannot be empty", "VOICE_REQUIRED")
    return voice
