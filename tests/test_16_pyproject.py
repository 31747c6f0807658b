"""Tests for pyproject.toml and package installation."""
from __future__ import annotations

from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]


class TestPackageInstallation:
    """Test that the package is properly installed."""

    def test_version_defined(self):
        import piper_server

        assert isinstance(piper_server.__version__, str)
        assert piper_server.__version__

    def test_core_modules_importable(self):
        from piper_server import cli, main
        from piper_server.api import routes, schemas
        from piper_server.core import config, metrics
        from piper_server.dsl import renderer, tokenizer
        from piper_server.tts import engine, engine_cache, phonemes, phonemizer, voice

        for module in (cli, main, routes, schemas, config, metrics, renderer, tokenizer,
                       engine, engine_cache, phonemes, phonemizer, voice):
            assert module is not None


class TestPyproject:
    def test_metadata(self):
        tomllib = pytest.importorskip("tomllib")

        with (ROOT / "pyproject.toml").open("rb") as f:
            data = tomllib.load(f)

        project = data["project"]
        assert project["name"] == "piper-tts-server"
        assert project["scripts"]["piper-server"] == "piper_server.cli:main"

        import piper_server
        assert project["version"] == piper_server.__version__

        deps = " ".join(project["dependencies"])
        for name in ("fastapi", "uvicorn", "numpy", "soundfile", "onnxruntime", "prometheus_client", "pyyaml"):
            assert name in deps
