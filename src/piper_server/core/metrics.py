"""
Prometheus Metrics for the Speech Service.

Metrics Exposed:
    piper_requests_total            - Counter of /api/speak requests by voice and status
    piper_request_duration_seconds  - Histogram of end-to-end speak latency
    piper_audio_bytes_total         - Counter of WAV bytes returned
    piper_engine_loads_total        - Counter of engine loads by voice and result
    piper_engine_load_seconds       - Histogram of engine construction time
    piper_engine_cache_total        - Counter of engine cache lookups (hit/miss)
    piper_engines_loaded            - Gauge of engines resident in the cache
    piper_concurrent_requests       - Gauge of in-flight synthesis operations
    piper_queue_depth               - Gauge of requests waiting for a slot

Usage:
    from piper_server.core.metrics import metrics

    metrics.record_request(voice="en_US-lessac-medium", status="success",
                           duration=0.41, audio_bytes=88244)
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class SpeechMetrics:
    """
    Metrics collector backed by a private CollectorRegistry.

    A private registry keeps test instances from colliding with each other
    or with the process-wide default registry.
    """

    def __init__(self) -> None:
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "piper_requests_total",
            "Total speak requests",
            ["voice", "status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "piper_request_duration_seconds",
            "Speak request duration in seconds",
            ["voice"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "piper_audio_bytes_total",
            "Total WAV bytes generated",
            registry=self._registry,
        )
        self._engine_loads = Counter(
            "piper_engine_loads_total",
            "Engine construction attempts",
            ["voice", "result"],
            registry=self._registry,
        )
        self._engine_load_seconds = Histogram(
            "piper_engine_load_seconds",
            "Engine construction time in seconds",
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )
        self._engine_cache = Counter(
            "piper_engine_cache_total",
            "Engine cache lookups",
            ["result"],
            registry=self._registry,
        )
        self._engines_loaded = Gauge(
            "piper_engines_loaded",
            "Number of engines resident in the cache",
            registry=self._registry,
        )
        self._concurrent_requests = Gauge(
            "piper_concurrent_requests",
            "Current number of concurrent synthesis operations",
            registry=self._registry,
        )
        self._queue_depth = Gauge(
            "piper_queue_depth",
            "Requests waiting for a synthesis slot",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, voice: str, status: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record a completed speak request.

        Args:
            voice: Voice identifier
            status: "success" or an error code
            duration: Request duration in seconds
            audio_bytes: Size of the returned WAV in bytes
        """
        self._requests_total.labels(voice=voice, status=status).inc()
        self._request_duration.labels(voice=voice).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_engine_load(self, voice: str, ok: bool, duration: float | None = None) -> None:
        self._engine_loads.labels(voice=voice, result="ok" if ok else "error").inc()
        if ok and duration is not None:
            self._engine_load_seconds.observe(duration)

    def record_cache(self, result: str) -> None:
        """Record an engine cache lookup ("hit" or "miss")."""
        self._engine_cache.labels(result=result).inc()

    def set_engines_loaded(self, count: int) -> None:
        self._engines_loaded.set(count)

    def set_concurrent_requests(self, count: int) -> None:
        self._concurrent_requests.set(count)

    def set_queue_depth(self, depth: int) -> None:
        self._queue_depth.set(depth)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus exposition format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Import this to record metrics: from piper_server.core.metrics import metrics
metrics = SpeechMetrics()
