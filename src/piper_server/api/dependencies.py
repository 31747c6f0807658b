"""
FastAPI Dependency Injection Providers.

    get_settings()        - loads and caches configuration
    get_speech_service()  - returns the process-wide SpeechService

The service owns the engine cache, so sharing one instance across all
requests is what keeps each voice model loaded exactly once.

Usage in Route Handlers:
    @router.post("/api/speak")
    def speak(req: SpeakRequest, service: SpeechService = Depends(get_speech_service)):
        ...

Tests override get_speech_service through app.dependency_overrides.
"""
from __future__ import annotations

import os
from functools import lru_cache

from piper_server.core.config import Settings, load_settings
from piper_server.services.speech_service import SpeechService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load settings once per process.

    The path comes from PIPER_SERVER_SETTINGS (default config/settings.yaml);
    a missing file means all defaults.
    """
    path = os.getenv("PIPER_SERVER_SETTINGS", "config/settings.yaml")
    return load_settings(path, missing_ok=True)


def get_speech_service() -> SpeechService:
    return get_service(get_settings())
