"""
API Request/Response Schemas.

Example Request (POST /api/speak):
    {
        "text": "Hello [pause] [emphasis]world[/emphasis]",
        "voice": "en_US-lessac-medium"
    }

Length and emptiness rules are enforced by services/validators.py rather
than Field constraints, so violations come back in the same error format
as every other failure.
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class SpeakRequest(BaseModel):
    """
    Speech synthesis request.

    Attributes:
        text: Text with optional inline markup ([pause], [slow]...[/slow], ...).
        voice: Voice identifier, the file stem of <voice>.onnx in the voices
            directory (e.g., "en_GB-alba-medium").
    """
    text: str = Field(..., description="Text to synthesize (1-10000 characters, markup allowed)")
    voice: str = Field(..., description="Voice identifier, e.g. en_US-lessac-medium")


class VoiceInfoModel(BaseModel):
    id: str = Field(..., description="Voice identifier")
    name: str = Field(..., description="Display name derived from the identifier")
    language: str = Field(..., description="espeak-ng voice used for phonemization")


class VoicesResponse(BaseModel):
    voices: List[VoiceInfoModel] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = Field("ok", description="Always 'ok' while the process serves requests")
    version: str = Field(..., description="Server version")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    ok: bool = False
    error: str = Field(..., description="Stable error code, e.g. VOICE_NOT_FOUND")
    message: str = Field(..., description="Human-readable description")
    request_id: str = Field(..., description="Request ID for log correlation")
