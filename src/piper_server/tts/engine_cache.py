"""
Per-Voice Engine Cache.

Loading a Piper model takes hundreds of milliseconds and tens of megabytes,
so each voice gets exactly one engine for the lifetime of the process.

Lookup paths:
    hit   Plain dict read, no lock. Concurrent hits never wait on each other
          or on a load in progress for a different voice.
    miss  The first caller registers a Future for the voice under a short
          lock, builds the engine with the lock released, then publishes it.
          Callers arriving for the same voice meanwhile wait on that Future
          and receive the same engine (or the same error).

A failed build is reported to the builder and every waiter, and nothing is
remembered: the next call for that voice tries again.

Usage:
    cache = EngineCache("./voices")
    engine = cache.get_or_create("en_US-lessac-medium")
    samples = engine.synthesize(ids)
"""
from __future__ import annotations

import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Dict, List, Optional

from piper_server.core.logging import error, get_logger, info, verbose
from piper_server.core.metrics import metrics
from piper_server.tts.engine import EngineFactory, SynthesisEngine, create_engine
from piper_server.tts.voice import VoiceDescriptor, load_voice
from piper_server.utils.timeit import timeit

_LOG = get_logger("piper-server.engine_cache")

DescriptorLoader = Callable[[Path, str], VoiceDescriptor]


class EngineLoadError(Exception):
    """Engine construction failed for a voice whose descriptor loaded fine."""

    def __init__(self, voice_id: str, reason: str):
        self.voice_id = voice_id
        self.reason = reason
        super().__init__(f"failed to load engine for {voice_id}: {reason}")


class EngineCache:
    """
    Thread-safe voice_id -> engine map with single-flight construction.

    Args:
        voices_dir: Directory searched when no descriptor is supplied.
        factory: Builds an engine from a descriptor.
        loader: Loads a descriptor from (voices_dir, voice_id).
    """

    def __init__(
        self,
        voices_dir: str | Path,
        factory: EngineFactory = create_engine,
        loader: DescriptorLoader = load_voice,
    ):
        self.voices_dir = Path(voices_dir)
        self._factory = factory
        self._loader = loader
        self._engines: Dict[str, SynthesisEngine] = {}
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._engines)

    def __contains__(self, voice_id: object) -> bool:
        return voice_id in self._engines

    def get(self, voice_id: str) -> Optional[SynthesisEngine]:
        """Return the cached engine without loading anything."""
        return self._engines.get(voice_id)

    def loaded_voices(self) -> List[str]:
        return sorted(self._engines)

    def clear(self) -> None:
        """Drop every cached engine. In-flight builds are unaffected."""
        with self._lock:
            self._engines.clear()
        metrics.set_engines_loaded(0)

    def get_or_create(self, voice_id: str, descriptor: Optional[VoiceDescriptor] = None) -> SynthesisEngine:
        """
        Return the engine for voice_id, building it on first use.

        Args:
            voice_id: Voice to look up.
            descriptor: Already-loaded descriptor for voice_id; when given,
                the sidecar is not read again.

        Raises:
            VoiceNotFoundError, VoiceFormatError: From descriptor loading.
            EngineLoadError: The engine factory failed.
        """
        engine = self._engines.get(voice_id)
        if engine is not None:
            metrics.record_cache("hit")
            return engine

        with self._lock:
            engine = self._engines.get(voice_id)
            if engine is not None:
                metrics.record_cache("hit")
                return engine
            future = self._inflight.get(voice_id)
            building = future is None
            if building:
                future = Future()
                self._inflight[voice_id] = future

        if not building:
            verbose(_LOG, "engine_load_wait", voice=voice_id)
            return future.result()

        metrics.record_cache("miss")
        try:
            engine = self._build(voice_id, descriptor)
        except BaseException as e:
            with self._lock:
                self._inflight.pop(voice_id, None)
            future.set_exception(e)
            raise

        with self._lock:
            self._engines[voice_id] = engine
            self._inflight.pop(voice_id, None)
            count = len(self._engines)
        future.set_result(engine)
        metrics.set_engines_loaded(count)
        return engine

    def _build(self, voice_id: str, descriptor: Optional[VoiceDescriptor]) -> SynthesisEngine:
        if descriptor is None:
            descriptor = self._loader(self.voices_dir, voice_id)
        if descriptor.voice_id != voice_id:
            raise EngineLoadError(voice_id, f"descriptor belongs to {descriptor.voice_id!r}")

        info(_LOG, "engine_load_start", voice=voice_id)
        try:
            with timeit("engine_load") as t:
                engine = self._factory(descriptor)
        except Exception as e:
            metrics.record_engine_load(voice_id, ok=False)
            error(_LOG, "engine_load_failed", voice=voice_id, error=str(e))
            raise EngineLoadError(voice_id, str(e)) from e

        if getattr(engine, "voice_id", None) != voice_id:
            metrics.record_engine_load(voice_id, ok=False)
            raise EngineLoadError(voice_id, f"factory returned an engine for {getattr(engine, 'voice_id', None)!r}")

        metrics.record_engine_load(voice_id, ok=True, duration=t.seconds)
        info(_LOG, "engine_load_done", voice=voice_id, seconds=t.seconds)
        return engine
