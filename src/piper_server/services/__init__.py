"""
piper-tts-server Services Layer.

Components:
    - speech_service.py: SpeechService (text + voice -> WAV orchestration)
    - validators.py: Boundary input validation
"""
from .speech_service import (
    ErrorCode,
    InvalidFormat,
    InvalidInputError,
    QueueFullError,
    SpeakResult,
    SpeechService,
    SynthesisError,
    TimeoutError,
    TTSError,
    VoiceNotFound,
)

__all__ = [
    "SpeechService",
    "SpeakResult",
    "TTSError",
    "InvalidInputError",
    "VoiceNotFound",
    "InvalidFormat",
    "SynthesisError",
    "TimeoutError",
    "QueueFullError",
    "ErrorCode",
]
