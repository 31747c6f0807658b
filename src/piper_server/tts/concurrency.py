"""
Concurrency Control for Synthesis.

Limits how many phonemize + inference pipelines run at once so a burst of
requests queues (and eventually gets rejected) instead of oversubscribing
the CPU that ONNX Runtime already parallelizes internally.

Backpressure Strategy:
    1. If a slot is free: acquire immediately
    2. If the queue has space: wait for a slot, up to the timeout
    3. If the queue is full: reject immediately (503 Queue Full)

Usage:
    controller = ConcurrencyController(max_concurrent=4, max_queue=32)

    with controller.acquire_sync(timeout=30.0):
        samples = engine.synthesize(ids)

    stats = controller.stats()
    print(f"Active: {stats.current_active}/{stats.max_concurrent}")
"""
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from piper_server.core.metrics import metrics


class QueueFull(RuntimeError):
    """The wait queue is at capacity."""


class SlotTimeout(TimeoutError):
    """No slot became free before the timeout."""


@dataclass
class ConcurrencyStats:
    """Statistics for concurrency controller."""
    max_concurrent: int
    current_active: int
    current_waiting: int
    total_processed: int
    total_rejected: int


class ConcurrencyController:
    """
    Counting semaphore with a bounded wait queue.

    Args:
        max_concurrent: Maximum simultaneous holders
        max_queue: Maximum callers waiting for a slot before rejection
    """

    def __init__(self, max_concurrent: int = 4, max_queue: int = 32):
        self.max_concurrent = max_concurrent
        self.max_queue = max_queue

        self._lock = threading.Lock()
        self._condition = threading.Condition(self._lock)

        self._active = 0
        self._waiting = 0
        self._total_processed = 0
        self._total_rejected = 0

    @property
    def queue_depth(self) -> int:
        with self._lock:
            return self._waiting

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    def stats(self) -> ConcurrencyStats:
        with self._lock:
            return ConcurrencyStats(
                max_concurrent=self.max_concurrent,
                current_active=self._active,
                current_waiting=self._waiting,
                total_processed=self._total_processed,
                total_rejected=self._total_rejected,
            )

    def _publish(self) -> None:
        # Caller holds the lock
        metrics.set_concurrent_requests(self._active)
        metrics.set_queue_depth(self._waiting)

    def release(self) -> None:
        """Release a slot and wake one waiter."""
        with self._condition:
            self._active = max(0, self._active - 1)
            self._total_processed += 1
            self._publish()
            self._condition.notify()

    def acquire(self, timeout: float = 30.0) -> None:
        """
        Take a slot, waiting up to timeout seconds. Pair with release().

        Raises:
            QueueFull: If max_queue callers are already waiting
            SlotTimeout: If no slot frees up within timeout seconds
        """
        deadline = time.monotonic() + timeout

        with self._condition:
            if self._active >= self.max_concurrent:
                if self._waiting >= self.max_queue:
                    self._total_rejected += 1
                    raise QueueFull(f"Queue full ({self._waiting} waiting)")

                self._waiting += 1
                self._publish()
                try:
                    while self._active >= self.max_concurrent:
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            self._total_rejected += 1
                            raise SlotTimeout(f"Timeout after {timeout}s waiting for synthesis slot")
                        self._condition.wait(timeout=remaining)
                finally:
                    self._waiting = max(0, self._waiting - 1)
                    self._publish()

            self._active += 1
            self._publish()

    @contextmanager
    def acquire_sync(self, timeout: float = 30.0) -> Iterator[None]:
        """Hold a slot for the duration of the with-block."""
        self.acquire(timeout)
        try:
            yield
        finally:
            self.release()
