"""
Configuration Management for piper-tts-server.

Settings are read once from YAML into a raw dict (Settings), then turned
into typed, range-checked dataclasses (ServiceConfig) when a SpeechService
is built. Every default lives in the Defaults class.

Configuration Hierarchy (highest priority first):
    1. Environment variables (PIPER_SERVER_VOICES_DIR, HOST, PORT, etc.)
    2. settings file (config/settings.yaml, or PIPER_SERVER_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    voices:
      dir: ./voices

    phonemizer:
      binary: espeak-ng
      timeout_s: 10

    synthesis:
      max_workers: 4
      timeout_s: 60

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict
import os
import yaml

from piper_server.core.logging.levels import coerce_level


class ConfigValidationError(Exception):
    """A settings value is out of range or has the wrong type."""


def _check(
    name: str,
    value: int | float,
    *,
    above: float | None = None,
    at_least: float | None = None,
    at_most: float | None = None,
) -> None:
    if above is not None and not value > above:
        raise ConfigValidationError(f"{name} must be greater than {above}, got {value}")
    if at_least is not None and value < at_least:
        raise ConfigValidationError(f"{name} must be at least {at_least}, got {value}")
    if at_most is not None and value > at_most:
        raise ConfigValidationError(f"{name} must be at most {at_most}, got {value}")


class Defaults:
    """
    Centralized default configuration values.

    Every default lives here so the YAML file, the environment and the
    code agree on one value.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Voices
    # ─────────────────────────────────────────────────────────────────────────
    VOICES_DIR = "./voices"             # Directory of <id>.onnx + <id>.onnx.json

    # ─────────────────────────────────────────────────────────────────────────
    # Phonemizer (espeak-ng subprocess)
    # ─────────────────────────────────────────────────────────────────────────
    PHONEMIZER_BINARY = "espeak-ng"
    PHONEMIZER_TIMEOUT_S = 10.0

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis worker pool
    # ─────────────────────────────────────────────────────────────────────────
    SYNTHESIS_MAX_WORKERS = 4           # Threads running phonemize + inference
    SYNTHESIS_TIMEOUT_S = 60.0          # Upper bound for one request's pipeline

    # ─────────────────────────────────────────────────────────────────────────
    # Concurrency Control
    # ─────────────────────────────────────────────────────────────────────────
    CONCURRENCY_ENABLED = True
    CONCURRENCY_MAX_CONCURRENT = 4      # Max simultaneous synthesis operations
    CONCURRENCY_MAX_QUEUE = 32          # Max queued requests before rejection
    CONCURRENCY_TIMEOUT_S = 30.0        # Timeout for acquiring synthesis slot

    # ─────────────────────────────────────────────────────────────────────────
    # Request limits
    # ─────────────────────────────────────────────────────────────────────────
    LIMITS_MAX_TEXT_CHARS = 10000

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80     # Characters to show in text preview
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG

    # ─────────────────────────────────────────────────────────────────────────
    # HTTP server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "0.0.0.0"
    SERVER_PORT = 3000


@dataclass
class VoicesConfig:
    """Where voice models and their JSON sidecars are looked up."""
    dir: str = Defaults.VOICES_DIR


@dataclass
class PhonemizerConfig:
    """
    espeak-ng phonemizer configuration.

    The binary is invoked once per request; timeout_s bounds a hung
    process so the request fails instead of waiting forever.
    """
    binary: str = Defaults.PHONEMIZER_BINARY
    timeout_s: float = Defaults.PHONEMIZER_TIMEOUT_S


@dataclass
class SynthesisConfig:
    """Worker pool for the blocking phonemize + inference pipeline."""
    max_workers: int = Defaults.SYNTHESIS_MAX_WORKERS
    timeout_s: float = Defaults.SYNTHESIS_TIMEOUT_S


@dataclass
class ConcurrencyConfig:
    """
    Concurrency control configuration.

    Limits simultaneous synthesis operations so a burst of requests
    queues (and eventually gets rejected) instead of starving the CPU.
    """
    enabled: bool = Defaults.CONCURRENCY_ENABLED
    max_concurrent: int = Defaults.CONCURRENCY_MAX_CONCURRENT
    max_queue: int = Defaults.CONCURRENCY_MAX_QUEUE
    timeout_s: float = Defaults.CONCURRENCY_TIMEOUT_S


@dataclass
class LimitsConfig:
    max_text_chars: int = Defaults.LIMITS_MAX_TEXT_CHARS


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, engine loads (default)
        3 = VERBOSE: Per-stage timing, detailed flow
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServerConfig:
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT


@dataclass
class ServiceConfig:
    """
    Validated configuration for SpeechService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.synthesis.max_workers)  # Typed access
    """
    voices: VoicesConfig = field(default_factory=VoicesConfig)
    phonemizer: PhonemizerConfig = field(default_factory=PhonemizerConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Reads the raw configuration dictionary, applies defaults for
        missing values, validates constraints and returns typed
        configuration.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        voices = VoicesConfig(dir=settings.voices_dir)
        if not voices.dir:
            raise ConfigValidationError("voices.dir must not be empty")

        phon_raw = raw.get("phonemizer", {}) or {}
        phonemizer = PhonemizerConfig(
            binary=settings.espeak_binary,
            timeout_s=float(phon_raw.get("timeout_s", Defaults.PHONEMIZER_TIMEOUT_S)),
        )
        _check("phonemizer.timeout_s", phonemizer.timeout_s, above=0)

        synth_raw = raw.get("synthesis", {}) or {}
        synthesis = SynthesisConfig(
            max_workers=int(synth_raw.get("max_workers", Defaults.SYNTHESIS_MAX_WORKERS)),
            timeout_s=float(synth_raw.get("timeout_s", Defaults.SYNTHESIS_TIMEOUT_S)),
        )
        _check("synthesis.max_workers", synthesis.max_workers, above=0)
        _check("synthesis.timeout_s", synthesis.timeout_s, above=0)

        concurrency_raw = raw.get("concurrency", {}) or {}
        concurrency = ConcurrencyConfig(
            enabled=bool(concurrency_raw.get("enabled", Defaults.CONCURRENCY_ENABLED)),
            max_concurrent=int(concurrency_raw.get("max_concurrent", Defaults.CONCURRENCY_MAX_CONCURRENT)),
            max_queue=int(concurrency_raw.get("max_queue", Defaults.CONCURRENCY_MAX_QUEUE)),
            timeout_s=float(concurrency_raw.get("timeout_s", Defaults.CONCURRENCY_TIMEOUT_S)),
        )
        _check("concurrency.max_concurrent", concurrency.max_concurrent, above=0)
        _check("concurrency.max_queue", concurrency.max_queue, at_least=0)
        _check("concurrency.timeout_s", concurrency.timeout_s, above=0)

        limits_raw = raw.get("limits", {}) or {}
        limits = LimitsConfig(
            max_text_chars=int(limits_raw.get("max_text_chars", Defaults.LIMITS_MAX_TEXT_CHARS)),
        )
        _check("limits.max_text_chars", limits.max_text_chars, above=0)

        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Names ("verbose", "INFO") go through the logging package; numbers are range-checked below
        if isinstance(log_level_raw, str):
            log_level = int(coerce_level(log_level_raw))
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        _check("logging.text_preview_chars", logging_cfg.text_preview_chars, at_least=0)
        _check("logging.level", logging_cfg.level, at_least=1, at_most=4)

        server = ServerConfig(host=settings.host, port=settings.port)
        _check("server.port", server.port, at_least=1, at_most=65535)

        return cls(
            voices=voices,
            phonemizer=phonemizer,
            synthesis=synthesis,
            concurrency=concurrency,
            limits=limits,
            logging=logging_cfg,
            server=server,
        )


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get a validated ServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def voices_dir(self) -> str:
        """Directory holding voice models and sidecars."""
        return str((self.raw.get("voices", {}) or {}).get("dir", Defaults.VOICES_DIR))

    @property
    def espeak_binary(self) -> str:
        """Name or path of the espeak-ng executable."""
        return str((self.raw.get("phonemizer", {}) or {}).get("binary", Defaults.PHONEMIZER_BINARY))

    @property
    def host(self) -> str:
        return str((self.raw.get("server", {}) or {}).get("host", Defaults.SERVER_HOST))

    @property
    def port(self) -> int:
        return int((self.raw.get("server", {}) or {}).get("port", Defaults.SERVER_PORT))

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    if not isinstance(raw.get(name), dict):
        raw[name] = {}
    return raw[name]


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    voices_dir = os.getenv("PIPER_SERVER_VOICES_DIR") or os.getenv("VOICES_DIR")
    if voices_dir:
        _section(raw, "voices")["dir"] = voices_dir

    espeak = os.getenv("PIPER_SERVER_ESPEAK")
    if espeak:
        _section(raw, "phonemizer")["binary"] = espeak

    host = os.getenv("HOST")
    if host:
        _section(raw, "server")["host"] = host

    port = os.getenv("PORT")
    if port:
        try:
            _section(raw, "server")["port"] = int(port)
        except ValueError:
            raise ConfigValidationError(f"PORT must be a number, got {port!r}")

    return raw


def load_settings(path: str = "config/settings.yaml", missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - PIPER_SERVER_VOICES_DIR / VOICES_DIR: voices.dir
        - PIPER_SERVER_ESPEAK: phonemizer.binary
        - HOST / PORT: server.host / server.port

    Args:
        path: Path to the YAML configuration file.
        missing_ok: Fall back to defaults when the file does not exist.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist and
            missing_ok is False.
    """
    p = Path(path)
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif not missing_ok:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    return Settings(raw=_apply_env_overrides(raw))
