"""Tests for Prometheus metrics."""
from __future__ import annotations

from piper_server.core.metrics import SpeechMetrics


class TestSpeechMetrics:
    def test_samples(self):
        m = SpeechMetrics()
        m.record_request(voice="v1", status="success", duration=0.2, audio_bytes=1000)
        m.record_request(voice="v1", status="VOICE_NOT_FOUND", duration=0.01)
        m.record_engine_load("v1", ok=True, duration=0.5)
        m.record_cache("miss")
        m.record_cache("hit")
        m.set_engines_loaded(1)
        m.set_queue_depth(3)

        sample = m.registry.get_sample_value
        assert sample("piper_requests_total", {"voice": "v1", "status": "success"}) == 1.0
        assert sample("piper_requests_total", {"voice": "v1", "status": "VOICE_NOT_FOUND"}) == 1.0
        assert sample("piper_request_duration_seconds_count", {"voice": "v1"}) == 2.0
        assert sample("piper_audio_bytes_total") == 1000.0
        assert sample("piper_engine_loads_total", {"voice": "v1", "result": "ok"}) == 1.0
        assert sample("piper_engine_load_seconds_count") == 1.0
        assert sample("piper_engine_cache_total", {"result": "hit"}) == 1.0
        assert sample("piper_engine_cache_total", {"result": "miss"}) == 1.0
        assert sample("piper_engines_loaded") == 1.0
        assert sample("piper_queue_depth") == 3.0

    def test_exposition(self):
        m = SpeechMetrics()
        m.record_request(voice="v1", status="success", duration=0.2)

        content, content_type = m.get_metrics_response()
        text = content.decode("utf-8")

        assert content_type.startswith("text/plain")
        assert "# TYPE piper_requests_total counter" in text
        assert 'voice="v1"' in text
        assert 'status="success"' in text

    def test_instances_are_isolated(self):
        a = SpeechMetrics()
        b = SpeechMetrics()
        a.record_cache("hit")

        assert b.registry.get_sample_value("piper_engine_cache_total", {"result": "hit"}) is None
