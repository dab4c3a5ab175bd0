"""
Unit tests for the deferred task queue.

A fake clock drives time so no test sleeps.
"""

import threading
import time

import pytest

from src.core.errors import ConfigurationError
from src.sync.tasks import InMemoryTaskQueue, ThreadedScheduler


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue(clock):
    return InMemoryTaskQueue(max_attempts=3, retry_backoff_seconds=10, clock=clock)


class TestScheduling:
    """Tests for deferred scheduling and draining."""

    def test_due_task_runs(self, queue):
        seen = []
        queue.register_handler("echo", seen.append)
        queue.schedule_deferred("echo", {"n": 1})

        assert queue.drain() == 1
        assert seen == [{"n": 1}]

    def test_delayed_task_waits(self, queue, clock):
        seen = []
        queue.register_handler("echo", seen.append)
        task = queue.schedule_deferred("echo", {"n": 1}, delay_seconds=30)

        assert task.run_at == 1030.0
        assert queue.drain() == 0
        assert queue.next_due_in() == 30.0

        clock.advance(30)
        assert queue.drain() == 1
        assert seen == [{"n": 1}]

    def test_include_delayed_runs_everything(self, queue):
        seen = []
        queue.register_handler("echo", lambda p: seen.append(p["n"]))
        queue.schedule_deferred("echo", {"n": 2}, delay_seconds=60)
        queue.schedule_deferred("echo", {"n": 1})

        assert queue.drain(include_delayed=True) == 2
        assert seen == [1, 2]

    def test_same_due_time_keeps_fifo_order(self, queue):
        seen = []
        queue.register_handler("echo", lambda p: seen.append(p["n"]))
        for n in range(5):
            queue.schedule_deferred("echo", {"n": n})

        queue.drain()

        assert seen == [0, 1, 2, 3, 4]

    def test_pending_filters_by_kind(self, queue):
        queue.schedule_deferred("a")
        queue.schedule_deferred("b")
        queue.schedule_deferred("a")

        assert len(queue.pending("a")) == 2
        assert len(queue.pending()) == 3

    def test_max_tasks(self, queue):
        queue.register_handler("noop", lambda p: None)
        for _ in range(3):
            queue.schedule_deferred("noop")

        assert queue.drain(max_tasks=2) == 2
        assert len(queue.pending()) == 1


class TestFailures:
    """Tests for retry and isolation."""

    def test_failed_task_retried_with_backoff(self, queue, clock):
        calls = []

        def flaky(payload):
            calls.append(clock())
            if len(calls) < 3:
                raise RuntimeError("transient")

        queue.register_handler("flaky", flaky)
        queue.schedule_deferred("flaky")

        queue.drain()
        assert len(calls) == 1
        assert queue.next_due_in() == 10.0

        clock.advance(10)
        queue.drain()
        assert queue.next_due_in() == 20.0

        clock.advance(20)
        queue.drain()
        assert len(calls) == 3
        assert queue.completed == 1
        assert queue.failed == 0

    def test_task_dropped_after_max_attempts(self, queue):
        def broken(payload):
            raise RuntimeError("permanent")

        queue.register_handler("broken", broken)
        queue.schedule_deferred("broken")

        assert queue.drain(include_delayed=True) == 3
        assert queue.failed == 1
        assert queue.pending() == []

    def test_failure_does_not_stop_siblings(self, queue):
        seen = []

        def handler(payload):
            if payload["n"] == 1:
                raise ValueError("bad record")
            seen.append(payload["n"])

        queue.max_attempts = 1
        queue.register_handler("item", handler)
        for n in range(3):
            queue.schedule_deferred("item", {"n": n})

        queue.drain()

        assert seen == [0, 2]
        assert (queue.completed, queue.failed) == (2, 1)

    def test_non_retryable_kind_runs_once(self, queue):
        calls = []

        def job(payload):
            calls.append(payload)
            raise RuntimeError("upstream down")

        queue.register_handler("job", job, retry=False)
        queue.schedule_deferred("job")

        assert queue.drain(include_delayed=True) == 1
        assert len(calls) == 1
        assert queue.failed == 1
        assert queue.pending() == []

    def test_configuration_error_never_retried(self, queue):
        calls = []

        def needs_key(payload):
            calls.append(payload)
            raise ConfigurationError("FLASHCARD_API_KEY environment variable is not set")

        queue.register_handler("needs_key", needs_key)
        queue.schedule_deferred("needs_key")

        assert queue.drain(include_delayed=True) == 1
        assert len(calls) == 1
        assert queue.failed == 1

    def test_reregistering_restores_retry(self, queue):
        def broken(payload):
            raise RuntimeError("transient")

        queue.register_handler("kind", broken, retry=False)
        queue.register_handler("kind", broken)
        queue.schedule_deferred("kind")

        assert queue.drain(include_delayed=True) == 3

    def test_unknown_kind_is_dropped(self, queue):
        queue.schedule_deferred("nobody-listens")

        assert queue.drain() == 1
        assert queue.failed == 1


class TestPeriodic:
    """Tests for periodic registrations."""

    def test_first_run_after_one_interval(self, queue, clock):
        queue.register_periodic("refresh", 3600, "refresh")

        assert queue.enqueue_due_periodic() == 0
        clock.advance(3600)
        assert queue.enqueue_due_periodic() == 1
        assert [t.kind for t in queue.pending()] == ["refresh"]

    def test_missed_runs_coalesce(self, queue, clock):
        queue.register_periodic("sync", 60, "sync")

        clock.advance(600)

        assert queue.enqueue_due_periodic() == 1
        assert queue.enqueue_due_periodic() == 0
        assert queue.next_periodic_in() == 60.0

    def test_trigger_enqueues_immediately(self, queue):
        queue.register_periodic("sync", 60, "sync", {"source": "cron"})

        task = queue.trigger("sync")

        assert task.payload == {"source": "cron"}
        assert queue.pending("sync") == [task]

    def test_interval_must_be_positive(self, queue):
        with pytest.raises(ValueError):
            queue.register_periodic("bad", 0, "bad")


class TestThreadedScheduler:
    """Tests for the background scheduler."""

    def test_runs_scheduled_task_and_stops(self):
        done = threading.Event()
        scheduler = ThreadedScheduler(workers=1, poll_seconds=0.05)
        scheduler.register_handler("ping", lambda payload: done.set())
        scheduler.start()
        try:
            scheduler.schedule_deferred("ping")
            assert done.wait(timeout=5)
        finally:
            scheduler.stop()

        assert not scheduler.is_running
        assert scheduler.completed == 1

    def test_configuration_error_runs_once_in_background(self):
        attempts = []
        scheduler = ThreadedScheduler(workers=1, max_attempts=3, retry_backoff_seconds=0, poll_seconds=0.05)

        def needs_key(payload):
            attempts.append(payload)
            raise ConfigurationError("missing key")

        scheduler.register_handler("sync_flashcards", needs_key)
        scheduler.start()
        try:
            scheduler.schedule_deferred("sync_flashcards")
            deadline = time.monotonic() + 5
            while scheduler.failed == 0 and time.monotonic() < deadline:
                time.sleep(0.05)
            time.sleep(0.2)
        finally:
            scheduler.stop()

        assert len(attempts) == 1
        assert scheduler.failed == 1

    def test_stop_without_start_is_noop(self):
        ThreadedScheduler().stop()
