"""Tests for the espeak-ng phonemizer wrapper (subprocess is mocked)."""
from __future__ import annotations

import subprocess

import pytest

from piper_server.tts import phonemizer as phonemizer_mod
from piper_server.tts.phonemizer import EspeakPhonemizer, PhonemizerError


class _Recorder:
    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.result


def _completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=["espeak-ng"], returncode=returncode, stdout=stdout, stderr=stderr)


class TestEspeakPhonemizer:
    """Tests for EspeakPhonemizer.phonemize()."""

    def test_invocation(self, monkeypatch):
        run = _Recorder(_completed(stdout=" həlˈoʊ wˈɜːld\n"))
        monkeypatch.setattr(phonemizer_mod.subprocess, "run", run)

        out = EspeakPhonemizer(binary="espeak-ng", timeout_s=5).phonemize("hello world", "en-us")

        assert out == "həlˈoʊ wˈɜːld"
        cmd, kwargs = run.calls[0]
        assert cmd == ["espeak-ng", "--ipa", "-q", "-v", "en-us", "--stdin"]
        assert kwargs["input"] == "hello world"
        assert kwargs["timeout"] == 5
        assert kwargs["text"] is True

    def test_option_like_text_goes_through_stdin(self, monkeypatch):
        run = _Recorder(_completed(stdout="x"))
        monkeypatch.setattr(phonemizer_mod.subprocess, "run", run)

        EspeakPhonemizer().phonemize("--help", "en")

        cmd, kwargs = run.calls[0]
        assert "--help" not in cmd
        assert kwargs["input"] == "--help"

    def test_empty_text_skips_process(self, monkeypatch):
        run = _Recorder(_completed())
        monkeypatch.setattr(phonemizer_mod.subprocess, "run", run)

        assert EspeakPhonemizer().phonemize("", "en") == ""
        assert run.calls == []

    def test_binary_missing(self, monkeypatch):
        monkeypatch.setattr(phonemizer_mod.subprocess, "run", _Recorder(exc=FileNotFoundError("espeak-ng")))
        with pytest.raises(PhonemizerError, match="espeak-ng"):
            EspeakPhonemizer().phonemize("hi", "en")

    def test_timeout(self, monkeypatch):
        exc = subprocess.TimeoutExpired(cmd="espeak-ng", timeout=1)
        monkeypatch.setattr(phonemizer_mod.subprocess, "run", _Recorder(exc=exc))
        with pytest.raises(PhonemizerError, match="timed out"):
            EspeakPhonemizer(timeout_s=1).phonemize("hi", "en")

    def test_nonzero_exit(self, monkeypatch):
        run = _Recorder(_completed(stderr="unknown voice xx\n", returncode=1))
        monkeypatch.setattr(phonemizer_mod.subprocess, "run", run)
        with pytest.raises(PhonemizerError, match="unknown voice xx"):
            EspeakPhonemizer().phonemize("hi", "xx")

    def test_is_available(self, monkeypatch):
        monkeypatch.setattr(phonemizer_mod.shutil, "which", lambda name: None)
        assert EspeakPhonemizer().is_available() is False
        monkeypatch.setattr(phonemizer_mod.shutil, "which", lambda name: "/usr/bin/" + name)
        assert EspeakPhonemizer().is_available() is True
