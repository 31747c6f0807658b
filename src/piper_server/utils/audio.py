"""
WAV Encoding.

All audio returned by piper-tts-server uses one format:
    - RIFF/WAVE container
    - PCM 16-bit signed, little-endian
    - Mono
    - Sample rate taken from the voice sidecar

Samples arrive from the model as float32 nominally in [-1, 1]. Each one is
scaled by 32767, clamped to the int16 range and truncated toward zero, so
out-of-range values saturate instead of wrapping.

Example:
    >>> import numpy as np
    >>> wav = encode_wav(np.zeros(22050, dtype=np.float32), 22050)
    >>> wav[:4]
    b'RIFF'
"""
from __future__ import annotations

import io
from typing import Sequence, Union

import numpy as np
import soundfile as sf

from piper_server.core.logging import debug, get_logger

_LOG = get_logger("piper-server.audio")

PCM16_SCALE = 32767.0
PCM16_MIN = -32768
PCM16_MAX = 32767

Samples = Union[np.ndarray, Sequence[float]]


def float_to_pcm16(samples: Samples) -> np.ndarray:
    """Scale, clamp and truncate float samples to int16. NaN maps to silence."""
    wav = np.asarray(samples, dtype=np.float32).reshape(-1)
    wav = np.nan_to_num(wav, nan=0.0, posinf=1.0, neginf=-1.0)
    scaled = np.clip(wav.astype(np.float64) * PCM16_SCALE, PCM16_MIN, PCM16_MAX)
    return scaled.astype(np.int16)


def encode_wav(samples: Samples, sample_rate: int) -> bytes:
    """
    Serialize samples as a mono 16-bit PCM WAV file.

    Args:
        samples: Float samples; multi-dimensional input is flattened.
        sample_rate: Sample rate in Hz, at least 1.

    Returns:
        Complete WAV file bytes. Empty input yields a header with a
        zero-length data chunk.

    Raises:
        ValueError: If sample_rate < 1.
    """
    if sample_rate < 1:
        raise ValueError(f"sample_rate must be >= 1, got {sample_rate}")

    pcm = float_to_pcm16(samples)

    buf = io.BytesIO()
    sf.write(buf, pcm, int(sample_rate), format="WAV", subtype="PCM_16")
    out = buf.getvalue()

    debug(_LOG, "wav_encoded", bytes=len(out), samples=int(pcm.shape[0]), sr=sample_rate)
    return out
