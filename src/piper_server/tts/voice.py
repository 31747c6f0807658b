"""
Voice Descriptors.

A voice is a pair of files in the voices directory:

    <voices_dir>/<voice_id>.onnx        Piper VITS model
    <voices_dir>/<voice_id>.onnx.json   sidecar configuration

Sidecar fields read here (everything else is ignored):

    {
      "audio": {"sample_rate": 22050},             # required
      "espeak": {"voice": "en-us"},                # optional, default "en"
      "phoneme_id_map": {"^": [1], "a": [14]},     # optional, default {}
      "inference": {                               # optional, per-field defaults
        "noise_scale": 0.667,
        "length_scale": 1.0,
        "noise_w": 0.8
      }
    }

Voice ids follow Piper's "<language>-<name>-<quality>" naming, e.g.
"en_GB-alba-medium", which display_name() turns into "Alba".
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from piper_server.core.logging import get_logger, warn

_LOG = get_logger("piper-server.voice")

DEFAULT_LANGUAGE = "en"
DEFAULT_NOISE_SCALE = 0.667
DEFAULT_LENGTH_SCALE = 1.0
DEFAULT_NOISE_W = 0.8

MODEL_SUFFIX = ".onnx"
CONFIG_SUFFIX = ".onnx.json"


class VoiceNotFoundError(Exception):
    """The voice id does not name a model + sidecar pair in the voices directory."""

    def __init__(self, voice_id: str, reason: str = ""):
        self.voice_id = voice_id
        self.reason = reason
        msg = f"voice not found: {voice_id}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class VoiceFormatError(Exception):
    """The sidecar exists but cannot be parsed into a descriptor."""

    def __init__(self, voice_id: str, reason: str):
        self.voice_id = voice_id
        self.reason = reason
        super().__init__(f"invalid voice config for {voice_id}: {reason}")


@dataclass(frozen=True)
class InferenceParams:
    noise_scale: float = DEFAULT_NOISE_SCALE
    length_scale: float = DEFAULT_LENGTH_SCALE
    noise_w: float = DEFAULT_NOISE_W

    def as_scales(self) -> List[float]:
        """Scales in the order the Piper graph expects."""
        return [self.noise_scale, self.length_scale, self.noise_w]


@dataclass(frozen=True)
class VoiceDescriptor:
    """
    Everything needed to phonemize and synthesize with one voice.

    Attributes:
        voice_id: File stem shared by the model and its sidecar.
        model_path: Path to the .onnx model.
        config_path: Path to the .onnx.json sidecar.
        sample_rate: Output sample rate in Hz.
        phoneme_id_map: Phoneme symbol -> list of model input ids.
        language: espeak-ng voice used for phonemization.
        inference: Synthesis scalars.
    """
    voice_id: str
    model_path: Path
    config_path: Path
    sample_rate: int
    phoneme_id_map: Mapping[str, Sequence[int]] = field(default_factory=dict)
    language: str = DEFAULT_LANGUAGE
    inference: InferenceParams = field(default_factory=InferenceParams)


@dataclass(frozen=True)
class VoiceInfo:
    """Public listing entry for a voice."""
    id: str
    name: str
    language: str


def display_name(voice_id: str) -> str:
    """
    Human-friendly name for a voice id.

    Examples:
        >>> display_name("en_GB-alba-medium")
        'Alba'
        >>> display_name("custom")
        'custom'
    """
    parts = voice_id.split("-")
    if len(parts) >= 2 and parts[1]:
        name = parts[1]
        return name[0].upper() + name[1:]
    return voice_id


def _is_plain_id(voice_id: str) -> bool:
    if not voice_id or voice_id in (".", ".."):
        return False
    return "/" not in voice_id and "\\" not in voice_id and "\x00" not in voice_id


def _as_float(voice_id: str, section: Dict[str, Any], key: str, default: float) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise VoiceFormatError(voice_id, f"inference.{key} must be a number")
    return float(value)


def _parse_inference(voice_id: str, raw: Any) -> InferenceParams:
    if raw is None:
        return InferenceParams()
    if not isinstance(raw, dict):
        raise VoiceFormatError(voice_id, "inference must be an object")
    return InferenceParams(
        noise_scale=_as_float(voice_id, raw, "noise_scale", DEFAULT_NOISE_SCALE),
        length_scale=_as_float(voice_id, raw, "length_scale", DEFAULT_LENGTH_SCALE),
        noise_w=_as_float(voice_id, raw, "noise_w", DEFAULT_NOISE_W),
    )


def _parse_id_map(voice_id: str, raw: Any) -> Dict[str, List[int]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise VoiceFormatError(voice_id, "phoneme_id_map must be an object")

    id_map: Dict[str, List[int]] = {}
    for symbol, ids in raw.items():
        if not isinstance(ids, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in ids
        ):
            raise VoiceFormatError(voice_id, f"phoneme_id_map[{symbol!r}] must be a list of integers")
        id_map[symbol] = list(ids)
    return id_map


def _parse_language(voice_id: str, raw: Any) -> str:
    if raw is None:
        return DEFAULT_LANGUAGE
    if not isinstance(raw, dict):
        raise VoiceFormatError(voice_id, "espeak must be an object")
    language = raw.get("voice", DEFAULT_LANGUAGE)
    if not isinstance(language, str) or not language:
        raise VoiceFormatError(voice_id, "espeak.voice must be a non-empty string")
    return language


def load_voice(voices_dir: str | Path, voice_id: str) -> VoiceDescriptor:
    """
    Load and validate the descriptor for one voice.

    Raises:
        VoiceNotFoundError: The id is not a plain file stem, or the model or
            sidecar file is missing.
        VoiceFormatError: The sidecar is not valid JSON or has a missing or
            malformed field.
    """
    if not _is_plain_id(voice_id):
        raise VoiceNotFoundError(voice_id, "invalid voice id")

    base = Path(voices_dir)
    model_path = base / f"{voice_id}{MODEL_SUFFIX}"
    config_path = base / f"{voice_id}{CONFIG_SUFFIX}"

    if not model_path.is_file():
        raise VoiceNotFoundError(voice_id)
    if not config_path.is_file():
        raise VoiceNotFoundError(voice_id, "missing config file")

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise VoiceFormatError(voice_id, f"unparsable JSON: {e}") from e

    if not isinstance(raw, dict):
        raise VoiceFormatError(voice_id, "top level must be an object")

    audio = raw.get("audio")
    if not isinstance(audio, dict):
        raise VoiceFormatError(voice_id, "missing audio section")
    sample_rate = audio.get("sample_rate")
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, int) or sample_rate <= 0:
        raise VoiceFormatError(voice_id, "audio.sample_rate must be a positive integer")

    return VoiceDescriptor(
        voice_id=voice_id,
        model_path=model_path,
        config_path=config_path,
        sample_rate=sample_rate,
        phoneme_id_map=_parse_id_map(voice_id, raw.get("phoneme_id_map")),
        language=_parse_language(voice_id, raw.get("espeak")),
        inference=_parse_inference(voice_id, raw.get("inference")),
    )


def list_voices(voices_dir: str | Path) -> List[VoiceInfo]:
    """
    Enumerate usable voices, sorted by id.

    Every *.onnx file with a loadable sidecar yields one entry. Voices
    that fail to load are skipped and logged. A missing directory yields
    an empty list.
    """
    base = Path(voices_dir)
    if not base.is_dir():
        return []

    voices: List[VoiceInfo] = []
    for model_path in sorted(base.glob(f"*{MODEL_SUFFIX}")):
        voice_id = model_path.stem
        try:
            descriptor = load_voice(base, voice_id)
        except (VoiceNotFoundError, VoiceFormatError, OSError) as e:
            warn(_LOG, "voice_skipped", voice=voice_id, error=str(e))
            continue
        voices.append(VoiceInfo(id=voice_id, name=display_name(voice_id), language=descriptor.language))

    return voices
