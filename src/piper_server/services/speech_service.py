"""
SpeechService - Text to WAV Pipeline.

This module provides the SpeechService class, the single place where a
validated (text, voice) pair becomes audio. The HTTP routes and the CLI
both go through it.

Architecture:
    load descriptor → render markup → phonemize → encode ids
        → engine (cached per voice) → synthesize → encode WAV

The descriptor is read once per request and handed to the engine cache, so
the sidecar is never parsed twice for one request. Everything after
rendering is blocking work and runs on the service's worker pool, inside a
concurrency slot, bounded by synthesis.timeout_s.

Error Handling:
    - TTSError: Base exception with a stable error code
    - VoiceNotFound: Model or sidecar missing (404)
    - InvalidFormat: Sidecar unparsable (500)
    - SynthesisError: Phonemizer, model load, inference or encoding failed (500)
    - TimeoutError: No slot in time, or the pipeline overran (408)
    - QueueFullError: Too many requests waiting (503)

No step is retried and no fallback voice is substituted.

Example:
    >>> from piper_server.core.config import Settings
    >>> service = SpeechService(Settings(raw={"voices": {"dir": "./voices"}}))
    >>> result = service.speak("Hello [pause] world", "en_US-lessac-medium")
    >>> result.wav_bytes[:4]
    b'RIFF'
"""
from __future__ import annotations

import contextvars
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from piper_server.core.config import ServiceConfig, Settings
from piper_server.core.logging import debug, error, fail, get_logger, info, success, verbose
from piper_server.core.metrics import metrics
from piper_server.dsl import process
from piper_server.tts.concurrency import ConcurrencyController, QueueFull, SlotTimeout
from piper_server.tts.engine import EngineFactory, InferenceError, create_engine
from piper_server.tts.engine_cache import EngineCache, EngineLoadError
from piper_server.tts.phonemes import phonemes_to_ids
from piper_server.tts.phonemizer import EspeakPhonemizer, Phonemizer, PhonemizerError
from piper_server.tts.voice import (
    VoiceDescriptor,
    VoiceFormatError,
    VoiceInfo,
    VoiceNotFoundError,
    list_voices,
    load_voice,
)
from piper_server.utils.audio import encode_wav
from piper_server.utils.timeit import timeit

_LOG = get_logger("piper-server.service")


# =============================================================================
# Error Codes and Exceptions
# =============================================================================

class ErrorCode:
    """
    Stable error codes returned in the "error" field of API responses.
    """
    BAD_REQUEST = "BAD_REQUEST"             # Empty or oversized text, empty voice
    VOICE_NOT_FOUND = "VOICE_NOT_FOUND"     # Model or sidecar missing
    INVALID_FORMAT = "INVALID_FORMAT"       # Sidecar unparsable
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"   # Phonemizer / engine / encoder failure
    TIMEOUT = "TIMEOUT"                     # Slot wait or pipeline overran
    QUEUE_FULL = "QUEUE_FULL"               # Wait queue at capacity
    INTERNAL_ERROR = "INTERNAL_ERROR"       # Unexpected error


class TTSError(Exception):
    """
    Base exception for speech errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API error body (without request_id)."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidInputError(TTSError):
    """Raised when text or voice fails validation."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.BAD_REQUEST, details)


class VoiceNotFound(TTSError):
    """Raised when the requested voice has no model or no sidecar."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.VOICE_NOT_FOUND, details)


class InvalidFormat(TTSError):
    """Raised when a voice sidecar cannot be parsed."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_FORMAT, details)


class SynthesisError(TTSError):
    """Raised when phonemization, model loading, inference or encoding fails."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


class TimeoutError(TTSError):
    """Raised when a request cannot get a slot or finish in time."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.TIMEOUT, details)


class QueueFullError(TTSError):
    """Raised when the wait queue is full."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.QUEUE_FULL, details)


def _voice_error(e: Exception) -> TTSError:
    if isinstance(e, VoiceNotFoundError):
        return VoiceNotFound(f"Voice '{e.voice_id}' not found", {"voice": e.voice_id, "reason": e.reason})
    if isinstance(e, VoiceFormatError):
        return InvalidFormat(str(e), {"voice": e.voice_id})
    raise TypeError(f"not a voice error: {e!r}")


# =============================================================================
# Result
# =============================================================================

@dataclass
class SpeakResult:
    """
    Result of one speak request.

    Attributes:
        wav_bytes: Complete WAV file.
        sample_rate: Sample rate of the WAV.
        voice_id: Voice used.
        rendered_text: Markup-free text sent to the phonemizer.
        phoneme_count: Number of model input ids.
        timings: Per-stage durations in seconds.
    """
    wav_bytes: bytes
    sample_rate: int
    voice_id: str
    rendered_text: str
    phoneme_count: int
    timings: Dict[str, float] = field(default_factory=dict)


# =============================================================================
# Main Service Class
# =============================================================================

class SpeechService:
    """
    Orchestrates descriptor loading, markup rendering, phonemization and
    synthesis for one voices directory.

    The phonemizer, engine factory and engine cache can be injected; tests
    substitute fakes for espeak-ng and ONNX Runtime this way.
    """

    def __init__(
        self,
        settings: Settings,
        phonemizer: Optional[Phonemizer] = None,
        engine_factory: Optional[EngineFactory] = None,
        engine_cache: Optional[EngineCache] = None,
    ):
        self._settings = settings
        self._config: ServiceConfig = settings.get_service_config()
        self._voices_dir = self._config.voices.dir

        self._phonemizer: Phonemizer = phonemizer or EspeakPhonemizer(
            binary=self._config.phonemizer.binary,
            timeout_s=self._config.phonemizer.timeout_s,
        )
        self._engines = engine_cache or EngineCache(
            self._voices_dir,
            factory=engine_factory or create_engine,
        )

        self._controller: Optional[ConcurrencyController] = None
        if self._config.concurrency.enabled:
            self._controller = ConcurrencyController(
                max_concurrent=self._config.concurrency.max_concurrent,
                max_queue=self._config.concurrency.max_queue,
            )
        self._slot_timeout = self._config.concurrency.timeout_s

        self._synthesis_timeout = self._config.synthesis.timeout_s
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.synthesis.max_workers,
            thread_name_prefix="piper-synth",
        )
        self._text_preview_chars = self._config.logging.text_preview_chars

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def voices_dir(self) -> str:
        return self._voices_dir

    @property
    def engines(self) -> EngineCache:
        return self._engines

    @property
    def controller(self) -> Optional[ConcurrencyController]:
        """The concurrency controller (None if disabled)."""
        return self._controller

    # =========================================================================
    # Voices
    # =========================================================================

    def voices(self) -> List[VoiceInfo]:
        """Voices available in the voices directory, sorted by id."""
        return list_voices(self._voices_dir)

    def load_descriptor(self, voice_id: str) -> VoiceDescriptor:
        """
        Load the descriptor for voice_id.

        Raises:
            VoiceNotFound: Model or sidecar missing.
            InvalidFormat: Sidecar unparsable.
        """
        try:
            return load_voice(self._voices_dir, voice_id)
        except (VoiceNotFoundError, VoiceFormatError) as e:
            raise _voice_error(e) from e

    # =========================================================================
    # Synthesis Core
    # =========================================================================

    def _pipeline(self, descriptor: VoiceDescriptor, rendered: str, timings: Dict[str, float]) -> tuple[bytes, int]:
        """Blocking part of a request. Runs on the worker pool."""
        with timeit("phonemize") as t:
            phonemes = self._phonemizer.phonemize(rendered, descriptor.language)
        timings["phonemize"] = t.seconds
        verbose(_LOG, "stage", event="phonemize", seconds=round(t.seconds, 4), phonemes=len(phonemes))

        with timeit("encode_ids") as t:
            ids = phonemes_to_ids(phonemes, descriptor.phoneme_id_map)
        timings["encode_ids"] = t.seconds
        debug(_LOG, "phoneme_ids", count=len(ids))

        with timeit("engine") as t:
            engine = self._engines.get_or_create(descriptor.voice_id, descriptor)
        timings["engine"] = t.seconds

        with timeit("synthesize") as t:
            samples = engine.synthesize(ids)
        timings["synthesize"] = t.seconds
        verbose(_LOG, "stage", event="synthesize", seconds=round(t.seconds, 4), samples=len(samples))

        with timeit("encode_wav") as t:
            wav_bytes = encode_wav(samples, descriptor.sample_rate)
        timings["encode_wav"] = t.seconds

        return wav_bytes, len(ids)

    def _run_pipeline(
        self,
        descriptor: VoiceDescriptor,
        rendered: str,
        timings: Dict[str, float],
        on_done: Optional[Callable[[], None]] = None,
    ) -> tuple[bytes, int]:
        """
        Run the blocking pipeline on the pool and translate its errors.

        on_done runs on the worker once the pipeline has finished, before
        the result is published, or here if the task is cancelled before it
        starts. After a TimeoutError the worker may still be running.

        Raises:
            SynthesisError: Phonemizer, engine or encoder failure.
            TimeoutError: The pipeline took longer than synthesis.timeout_s.
        """
        def work() -> tuple[bytes, int]:
            try:
                return self._pipeline(descriptor, rendered, timings)
            finally:
                if on_done is not None:
                    on_done()

        ctx = contextvars.copy_context()
        try:
            future = self._executor.submit(ctx.run, work)
        except RuntimeError:
            if on_done is not None:
                on_done()
            raise
        try:
            return future.result(timeout=self._synthesis_timeout)
        except FutureTimeout:
            if future.cancel() and on_done is not None:
                on_done()
            raise TimeoutError(
                f"Synthesis timeout after {self._synthesis_timeout}s",
                {"timeout_s": self._synthesis_timeout},
            )
        except PhonemizerError as e:
            raise SynthesisError(f"Phonemization failed: {e}", {"stage": "phonemize"}) from e
        except EngineLoadError as e:
            raise SynthesisError(str(e), {"stage": "engine"}) from e
        except InferenceError as e:
            raise SynthesisError(str(e), {"stage": "synthesize"}) from e
        except (VoiceNotFoundError, VoiceFormatError) as e:
            raise _voice_error(e) from e
        except TTSError:
            raise
        except Exception as e:
            error(_LOG, "synthesis_failed", error=str(e), error_type=type(e).__name__)
            raise SynthesisError(
                f"Synthesis failed: {e}",
                {"error_type": type(e).__name__},
            ) from e

    def _with_slot(self, descriptor: VoiceDescriptor, rendered: str, timings: Dict[str, float]) -> tuple[bytes, int]:
        if self._controller is None:
            return self._run_pipeline(descriptor, rendered, timings)
        try:
            self._controller.acquire(timeout=self._slot_timeout)
        except SlotTimeout:
            raise TimeoutError(
                f"Timed out after {self._slot_timeout}s waiting for a synthesis slot",
                {"timeout_s": self._slot_timeout},
            )
        except QueueFull as e:
            raise QueueFullError(str(e))

        debug(_LOG, "concurrency_acquired",
              active=self._controller.active_count,
              queue=self._controller.queue_depth)
        # Released by the worker, so a timed-out pipeline keeps its slot until it ends.
        return self._run_pipeline(descriptor, rendered, timings, on_done=self._controller.release)

    # =========================================================================
    # Public API: speak()
    # =========================================================================

    def speak(self, text: str, voice_id: str) -> SpeakResult:
        """
        Synthesize annotated text with one voice.

        Inputs are expected to be validated already (see validators.py).

        Returns:
            SpeakResult with the WAV bytes and pipeline metadata.

        Raises:
            VoiceNotFound, InvalidFormat, SynthesisError, TimeoutError,
            QueueFullError
        """
        timings: Dict[str, float] = {}
        preview = text[:self._text_preview_chars] if self._text_preview_chars > 0 else ""
        info(_LOG, "speak", voice=voice_id, chars=len(text), text_preview=preview)

        try:
            with timeit("request_total") as total_t:
                with timeit("load_voice") as t:
                    descriptor = self.load_descriptor(voice_id)
                timings["load_voice"] = t.seconds

                with timeit("render") as t:
                    rendered = process(text)
                timings["render"] = t.seconds
                debug(_LOG, "rendered", text=rendered)

                wav_bytes, phoneme_count = self._with_slot(descriptor, rendered, timings)

        except TTSError as e:
            fail(_LOG, "speak_failed", voice=voice_id, error=e.code, detail=e.message)
            metrics.record_request(voice=voice_id, status=e.code, duration=total_t.seconds if total_t.timing else 0.0)
            raise

        timings["total"] = total_t.seconds
        success(_LOG, "speak_done", voice=voice_id, bytes=len(wav_bytes), seconds=round(timings["total"], 3))
        metrics.record_request(voice=voice_id, status="success", duration=timings["total"], audio_bytes=len(wav_bytes))

        return SpeakResult(
            wav_bytes=wav_bytes,
            sample_rate=descriptor.sample_rate,
            voice_id=voice_id,
            rendered_text=rendered,
            phoneme_count=phoneme_count,
            timings=timings,
        )

    def close(self) -> None:
        """Stop the worker pool and drop cached engines."""
        self._executor.shutdown(wait=False)
        self._engines.clear()


# =============================================================================
# Singleton Management
# =============================================================================

_service: Optional[SpeechService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> SpeechService:
    """
    Get or create the global SpeechService instance.

    Thread-safe lazy singleton: the engine cache lives on the service, so
    one service per process means one engine per voice per process.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = SpeechService(settings)
    return _service


def reset_service() -> None:
    """Close and forget the global service (for tests)."""
    global _service
    with _service_lock:
        if _service is not None:
            _service.close()
        _service = None
