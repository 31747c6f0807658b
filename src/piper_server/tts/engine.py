"""
Piper Synthesis Engine.

One engine wraps the ONNX Runtime session of one voice. Piper VITS graphs
take three inputs and return the waveform as their first output:

    input          int64   [1, N]   phoneme ids
    input_lengths  int64   [1]      N
    scales         float32 [3]      noise_scale, length_scale, noise_w
    sid            int64   [1]      speaker id (multi-speaker models only)

Engines are immutable after construction and InferenceSession.run may be
called from several threads at once, so one engine serves every request
for its voice.

Implementing another backend:
    Anything with a ``voice_id`` attribute and a
    ``synthesize(ids) -> np.ndarray`` method satisfies SynthesisEngine;
    pass a factory building it to EngineCache.
"""
from __future__ import annotations

from typing import Callable, Protocol, Sequence

import numpy as np
import onnxruntime as ort

from piper_server.core.logging import debug, get_logger, info
from piper_server.tts.voice import InferenceParams, VoiceDescriptor
from piper_server.utils.timeit import timeit


class InferenceError(Exception):
    """The ONNX session failed to load or to run."""


class SynthesisEngine(Protocol):
    voice_id: str

    def synthesize(self, phoneme_ids: Sequence[int]) -> np.ndarray:
        ...


EngineFactory = Callable[[VoiceDescriptor], SynthesisEngine]


class PiperOnnxEngine:
    """
    ONNX Runtime engine for one Piper voice.

    Attributes:
        voice_id: Voice this engine was built for.
        sample_rate: Output sample rate from the voice sidecar.
        inference: Scales passed to every run.
    """

    def __init__(self, descriptor: VoiceDescriptor, providers: Sequence[str] | None = None):
        self.voice_id = descriptor.voice_id
        self.sample_rate = descriptor.sample_rate
        self.inference: InferenceParams = descriptor.inference
        self.logger = get_logger(f"piper-server.engine.{descriptor.voice_id}")

        options = ort.SessionOptions()
        options.log_severity_level = 3
        try:
            with timeit("load_model") as t:
                self._session = ort.InferenceSession(
                    str(descriptor.model_path),
                    sess_options=options,
                    providers=list(providers or ["CPUExecutionProvider"]),
                )
        except Exception as e:
            raise InferenceError(f"failed to load model {descriptor.model_path}: {e}") from e

        self._input_names = {i.name for i in self._session.get_inputs()}
        self._scales = np.array(self.inference.as_scales(), dtype=np.float32)
        info(
            self.logger,
            "engine_loaded",
            voice=self.voice_id,
            providers=self._session.get_providers(),
            seconds=t.timing.seconds if t.timing else None,
        )

    def synthesize(self, phoneme_ids: Sequence[int]) -> np.ndarray:
        """
        Run the model on one id sequence.

        Returns:
            Flat float32 samples, nominally in [-1, 1]. Empty input gives
            an empty array without running the model.

        Raises:
            InferenceError: If the session raises.
        """
        if len(phoneme_ids) == 0:
            return np.zeros(0, dtype=np.float32)

        ids = np.asarray(phoneme_ids, dtype=np.int64)
        feeds = {
            "input": ids.reshape(1, -1),
            "input_lengths": np.array([ids.shape[0]], dtype=np.int64),
            "scales": self._scales,
        }
        if "sid" in self._input_names:
            feeds["sid"] = np.array([0], dtype=np.int64)

        try:
            outputs = self._session.run(None, feeds)
        except Exception as e:
            raise InferenceError(f"inference failed for {self.voice_id}: {e}") from e

        if not outputs:
            raise InferenceError(f"model for {self.voice_id} returned no output")

        audio = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        debug(self.logger, "inference_done", ids=int(ids.shape[0]), samples=int(audio.shape[0]))
        return audio


def create_engine(descriptor: VoiceDescriptor) -> PiperOnnxEngine:
    """Default EngineFactory: a CPU ONNX Runtime engine."""
    return PiperOnnxEngine(descriptor)
