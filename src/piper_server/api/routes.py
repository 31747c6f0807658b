"""
HTTP API Routes.

Endpoints:
    POST /api/speak    - Synthesize annotated text, returns audio/wav
    GET  /api/voices   - List installed voices
    GET  /api/health   - Liveness check with server version
    GET  /metrics      - Prometheus metrics

Error Handling:
    Every failure is returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>",
        "request_id": "<rid>"
    }

    HTTP status codes are mapped from error codes:
        - BAD_REQUEST      -> 400
        - VOICE_NOT_FOUND  -> 404
        - TIMEOUT          -> 408
        - QUEUE_FULL       -> 503
        - INVALID_FORMAT, SYNTHESIS_FAILED, INTERNAL_ERROR -> 500

Example:
    curl -X POST http://localhost:3000/api/speak \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Hello [pause] world", "voice": "en_US-lessac-medium"}' \\
        --output speech.wav
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from piper_server import __version__
from piper_server.api.dependencies import get_speech_service
from piper_server.api.schemas import HealthResponse, SpeakRequest, VoiceInfoModel, VoicesResponse
from piper_server.core.logging import fail, get_logger, set_request_id
from piper_server.core.metrics import metrics
from piper_server.services.speech_service import (
    ErrorCode,
    InvalidInputError,
    SpeechService,
    TTSError,
)
from piper_server.services.validators import ValidationError, validate_text, validate_voice

router = APIRouter()

_LOG = get_logger("piper-server.api")

STATUS_MAP = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.VOICE_NOT_FOUND: 404,
    ErrorCode.INVALID_FORMAT: 500,
    ErrorCode.SYNTHESIS_FAILED: 500,
    ErrorCode.TIMEOUT: 408,
    ErrorCode.QUEUE_FULL: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}


def new_request_id() -> str:
    """Short unique ID bound to the logging context of the current request."""
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def error_response(error: TTSError, request_id: str) -> JSONResponse:
    """
    Build the JSON error response for a TTSError.

    Example Response:
        {
            "ok": false,
            "error": "VOICE_NOT_FOUND",
            "message": "Voice 'xx' not found",
            "request_id": "abc123"
        }
    """
    body = error.to_dict()
    body["request_id"] = request_id
    return JSONResponse(
        status_code=STATUS_MAP.get(error.code, 500),
        content=body,
        headers={"X-Request-Id": request_id},
    )


def internal_error(request_id: str) -> JSONResponse:
    return error_response(TTSError("Internal server error", ErrorCode.INTERNAL_ERROR), request_id)


@router.post("/api/speak", response_class=Response)
def speak(
    req: SpeakRequest,
    service: SpeechService = Depends(get_speech_service),
):
    """
    Synthesize text with one voice.

    Returns:
        Response: WAV audio bytes with headers:
            - X-Request-Id: Request identifier for log correlation
            - X-Sample-Rate: Sample rate of the returned audio
    """
    rid = new_request_id()

    try:
        text = validate_text(req.text, max_length=service.config.limits.max_text_chars)
        voice = validate_voice(req.voice)
    except ValidationError as e:
        return error_response(InvalidInputError(e.message, {"reason": e.code}), rid)

    try:
        result = service.speak(text, voice)
    except TTSError as e:
        return error_response(e, rid)
    except Exception as e:
        # Log internally, do not expose details
        fail(_LOG, "speak_unhandled", error=str(e), error_type=type(e).__name__)
        return internal_error(rid)

    headers = {
        "X-Request-Id": rid,
        "X-Sample-Rate": str(result.sample_rate),
    }
    return Response(content=result.wav_bytes, media_type="audio/wav", headers=headers)


@router.get("/api/voices", response_model=VoicesResponse)
def voices(service: SpeechService = Depends(get_speech_service)):
    """
    List voices in the voices directory, sorted by id.

    Voices whose sidecar cannot be loaded are left out.
    """
    rid = new_request_id()
    try:
        found = service.voices()
    except OSError as e:
        fail(_LOG, "voices_unreadable", error=str(e))
        return internal_error(rid)

    return VoicesResponse(
        voices=[VoiceInfoModel(id=v.id, name=v.name, language=v.language) for v in found]
    )


@router.get("/api/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok", version=__version__)


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics in text exposition format."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
