"""Tests for concurrency control."""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from piper_server.tts.concurrency import ConcurrencyController, QueueFull, SlotTimeout


class TestConcurrencyController:
    """Test ConcurrencyController basic functionality."""

    def test_controller_creation(self):
        controller = ConcurrencyController(max_concurrent=3, max_queue=5)
        assert controller.max_concurrent == 3
        assert controller.max_queue == 5

    def test_acquire_and_release(self):
        controller = ConcurrencyController(max_concurrent=2)

        with controller.acquire_sync(timeout=1):
            assert controller.active_count == 1

        assert controller.active_count == 0
        assert controller.stats().total_processed == 1

    def test_acquire_then_release(self):
        controller = ConcurrencyController(max_concurrent=1, max_queue=0)

        controller.acquire(timeout=1)
        with pytest.raises(QueueFull):
            controller.acquire(timeout=1)
        controller.release()

        assert controller.active_count == 0
        controller.acquire(timeout=1)
        assert controller.active_count == 1
        controller.release()

    def test_released_on_exception(self):
        controller = ConcurrencyController(max_concurrent=1)

        with pytest.raises(RuntimeError):
            with controller.acquire_sync(timeout=1):
                raise RuntimeError("boom")

        assert controller.active_count == 0

    def test_stats(self):
        controller = ConcurrencyController(max_concurrent=2, max_queue=5)
        stats = controller.stats()

        assert stats.max_concurrent == 2
        assert stats.current_active == 0
        assert stats.current_waiting == 0
        assert stats.total_rejected == 0


class TestBackpressure:
    """Queue limits and timeouts."""

    def test_queue_full_rejects_immediately(self):
        controller = ConcurrencyController(max_concurrent=1, max_queue=0)

        with controller.acquire_sync(timeout=1):
            start = time.monotonic()
            with pytest.raises(QueueFull):
                with controller.acquire_sync(timeout=5):
                    pass
            assert time.monotonic() - start < 1

        assert controller.stats().total_rejected == 1

    def test_timeout_while_waiting(self):
        controller = ConcurrencyController(max_concurrent=1, max_queue=1)

        with controller.acquire_sync(timeout=1):
            with pytest.raises(SlotTimeout):
                with controller.acquire_sync(timeout=0.05):
                    pass
            assert controller.queue_depth == 0

    def test_waiter_gets_slot_after_release(self):
        controller = ConcurrencyController(max_concurrent=1, max_queue=1)
        holding = threading.Event()
        release = threading.Event()

        def holder():
            with controller.acquire_sync(timeout=1):
                holding.set()
                release.wait(timeout=5)

        def waiter():
            with controller.acquire_sync(timeout=5):
                return controller.active_count

        with ThreadPoolExecutor(max_workers=2) as pool:
            held = pool.submit(holder)
            assert holding.wait(timeout=5)
            waiting = pool.submit(waiter)

            deadline = time.monotonic() + 5
            while controller.queue_depth == 0 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert controller.queue_depth == 1

            release.set()
            held.result(timeout=5)
            assert waiting.result(timeout=5) == 1

        assert controller.stats().total_processed == 2

    def test_never_exceeds_limit(self):
        controller = ConcurrencyController(max_concurrent=2, max_queue=16)
        peak = []
        lock = threading.Lock()
        active = [0]

        def work():
            with controller.acquire_sync(timeout=5):
                with lock:
                    active[0] += 1
                    peak.append(active[0])
                time.sleep(0.01)
                with lock:
                    active[0] -= 1

        with ThreadPoolExecutor(max_workers=8) as pool:
            for f in [pool.submit(work) for _ in range(16)]:
                f.result(timeout=10)

        assert max(peak) <= 2
