"""
espeak-ng Phonemizer.

Runs ``espeak-ng --ipa -q -v <language> --stdin`` once per request and
returns the trimmed IPA transcription. Text goes through stdin, so it is
never parsed as command-line options.

The Phonemizer protocol is what SpeechService depends on; tests pass a
fake instead of spawning processes.
"""
from __future__ import annotations

import shutil
import subprocess
from typing import Protocol

from piper_server.core.config import Defaults
from piper_server.core.logging import debug, get_logger

_LOG = get_logger("piper-server.phonemizer")


class PhonemizerError(Exception):
    """espeak-ng could not be run or exited with an error."""


class Phonemizer(Protocol):
    def phonemize(self, text: str, language: str) -> str:
        ...


class EspeakPhonemizer:
    """
    Phonemizer backed by the espeak-ng executable.

    Args:
        binary: Executable name or path.
        timeout_s: Upper bound for one invocation.
    """

    def __init__(self, binary: str = Defaults.PHONEMIZER_BINARY, timeout_s: float = Defaults.PHONEMIZER_TIMEOUT_S):
        self.binary = binary
        self.timeout_s = timeout_s

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def phonemize(self, text: str, language: str) -> str:
        if not text:
            return ""

        cmd = [self.binary, "--ipa", "-q", "-v", language, "--stdin"]
        try:
            proc = subprocess.run(
                cmd,
                input=text,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=self.timeout_s,
                check=False,
            )
        except FileNotFoundError as e:
            raise PhonemizerError(f"failed to run {self.binary} (is espeak-ng installed?): {e}") from e
        except subprocess.TimeoutExpired as e:
            raise PhonemizerError(f"{self.binary} timed out after {self.timeout_s}s") from e

        if proc.returncode != 0:
            raise PhonemizerError(f"{self.binary} failed: {proc.stderr.strip()}")

        phonemes = proc.stdout.strip()
        debug(_LOG, "phonemized", language=language, chars=len(text), phonemes=len(phonemes))
        return phonemes
