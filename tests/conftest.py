"""Shared fixtures: a temporary voices directory and fakes for espeak-ng and ONNX Runtime."""
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, List, Sequence

import numpy as np
import pytest

VOICE_ID = "en_US-test-medium"
SAMPLE_RATE = 16000

ID_MAP = {
    "^": [1],
    "$": [2],
    "_": [0],
    "h": [20],
    "e": [21],
    "l": [22],
    "o": [23],
    " ": [3],
}


def write_voice(voices_dir: Path, voice_id: str, sidecar: object = None) -> None:
    """Write a model placeholder and its JSON sidecar."""
    voices_dir.mkdir(parents=True, exist_ok=True)
    (voices_dir / f"{voice_id}.onnx").write_bytes(b"not-a-real-model")
    if sidecar is None:
        sidecar = {
            "audio": {"sample_rate": SAMPLE_RATE},
            "espeak": {"voice": "en-us"},
            "phoneme_id_map": ID_MAP,
            "inference": {"noise_scale": 0.5, "length_scale": 1.2, "noise_w": 0.7},
        }
    text = sidecar if isinstance(sidecar, str) else json.dumps(sidecar)
    (voices_dir / f"{voice_id}.onnx.json").write_text(text, encoding="utf-8")


class FakePhonemizer:
    """Returns the input lowercased and records every call."""

    def __init__(self, fail_with: Exception | None = None):
        self.calls: List[tuple] = []
        self.fail_with = fail_with

    def phonemize(self, text: str, language: str) -> str:
        self.calls.append((text, language))
        if self.fail_with is not None:
            raise self.fail_with
        return text.lower()


class FakeEngine:
    """Emits ten samples at 0.25 per input id."""

    def __init__(self, voice_id: str, delay: float = 0.0):
        self.voice_id = voice_id
        self.delay = delay
        self.calls: List[List[int]] = []

    def synthesize(self, phoneme_ids: Sequence[int]) -> np.ndarray:
        self.calls.append(list(phoneme_ids))
        if self.delay:
            threading.Event().wait(self.delay)
        return np.full(len(phoneme_ids) * 10, 0.25, dtype=np.float32)


class FakeEngineFactory:
    """Counts constructions; optionally fails or builds slow engines."""

    def __init__(self, fail_with: Exception | None = None, delay: float = 0.0):
        self.built: Dict[str, int] = {}
        self.engines: List[FakeEngine] = []
        self.fail_with = fail_with
        self.delay = delay
        self._lock = threading.Lock()

    @property
    def total(self) -> int:
        return sum(self.built.values())

    def __call__(self, descriptor) -> FakeEngine:
        with self._lock:
            self.built[descriptor.voice_id] = self.built.get(descriptor.voice_id, 0) + 1
        if self.fail_with is not None:
            raise self.fail_with
        engine = FakeEngine(descriptor.voice_id, delay=self.delay)
        self.engines.append(engine)
        return engine


@pytest.fixture
def voices_dir(tmp_path: Path) -> Path:
    """A voices directory holding one valid voice, VOICE_ID."""
    d = tmp_path / "voices"
    write_voice(d, VOICE_ID)
    return d


@pytest.fixture
def make_settings(voices_dir: Path):
    """Build Settings pointing at the temporary voices directory."""
    from piper_server.core.config import Settings

    def _make(**sections) -> Settings:
        raw = {"voices": {"dir": str(voices_dir)}}
        raw.update(sections)
        return Settings(raw=raw)

    return _make


@pytest.fixture
def make_service(make_settings):
    """Build a SpeechService with fake collaborators; closed after the test."""
    from piper_server.services.speech_service import SpeechService

    created = []

    def _make(phonemizer=None, factory=None, **sections):
        service = SpeechService(
            make_settings(**sections),
            phonemizer=phonemizer or FakePhonemizer(),
            engine_factory=factory or FakeEngineFactory(),
        )
        created.append(service)
        return service

    yield _make

    for service in created:
        service.close()
