"""
Deferred task queue and scheduler for the sync pipeline.

Producers enqueue ``{kind, payload}`` with an optional delay; a worker drains
due tasks and dispatches them to the handler registered for ``kind``. This
decouples deciding what needs doing from when it runs, and isolates failures
to the single task that raised.

Two implementations of the Scheduler protocol:
- InMemoryTaskQueue: drained explicitly on the caller's thread (tests, CLI)
- ThreadedScheduler: background dispatcher thread plus a worker pool that
  also fires periodic registrations (API server, ``worker`` command)

Retry policy (max attempts, backoff) belongs to the scheduler, not to the
task handlers. Only kinds registered with ``retry=True`` are re-queued, and a
ConfigurationError is never retried.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

from src.core.errors import ConfigurationError

TaskHandler = Callable[[dict[str, Any]], Any]


@dataclass(order=True)
class Task:
    """A unit of deferred work."""

    run_at: float
    seq: int
    kind: str = field(compare=False)
    payload: dict[str, Any] = field(compare=False, default_factory=dict)
    attempts: int = field(compare=False, default=0)


@dataclass
class PeriodicJob:
    """A task kind enqueued every ``interval_seconds``."""

    name: str
    interval_seconds: float
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)
    next_run_at: float = 0.0
    runs: int = 0


class Scheduler(Protocol):
    """What the orchestrator needs from a scheduler."""

    def register_periodic(
        self,
        name: str,
        interval_seconds: float,
        kind: str,
        payload: dict[str, Any] | None = None,
    ) -> PeriodicJob: ...

    def schedule_deferred(
        self,
        kind: str,
        payload: dict[str, Any] | None = None,
        delay_seconds: float = 0.0,
    ) -> Task: ...


class UnknownTaskError(KeyError):
    """No handler is registered for a task kind."""


class TaskQueue:
    """
    Thread-safe priority queue of tasks ordered by due time.

    Usage:
        queue = TaskQueue()
        queue.register_handler("insert_question", handle_insert)
        queue.schedule_deferred("insert_question", {"question_id": 1})
        task = queue.pop_due()
        queue.execute(task)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self._clock = clock
        self._heap: list[Task] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self._handlers: dict[str, TaskHandler] = {}
        self._no_retry: set[str] = set()
        self._periodic: dict[str, PeriodicJob] = {}
        self.completed = 0
        self.failed = 0

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register_handler(self, kind: str, handler: TaskHandler, retry: bool = True) -> None:
        """
        Bind ``kind`` to ``handler``.

        Args:
            retry: Re-queue failed tasks of this kind until max_attempts;
                when False a failure drops the task after one attempt
        """
        self._handlers[kind] = handler
        if retry:
            self._no_retry.discard(kind)
        else:
            self._no_retry.add(kind)

    def has_handler(self, kind: str) -> bool:
        return kind in self._handlers

    def register_periodic(
        self,
        name: str,
        interval_seconds: float,
        kind: str,
        payload: dict[str, Any] | None = None,
    ) -> PeriodicJob:
        """Register ``kind`` to be enqueued every ``interval_seconds``, first run after one interval."""
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        job = PeriodicJob(
            name=name,
            interval_seconds=interval_seconds,
            kind=kind,
            payload=dict(payload or {}),
            next_run_at=self._clock() + interval_seconds,
        )
        with self._lock:
            self._periodic[name] = job
        logger.info("Registered periodic job {} ({}) every {}s", name, kind, interval_seconds)
        return job

    @property
    def periodic_jobs(self) -> dict[str, PeriodicJob]:
        return dict(self._periodic)

    # =========================================================================
    # QUEUE OPERATIONS
    # =========================================================================

    def schedule_deferred(
        self,
        kind: str,
        payload: dict[str, Any] | None = None,
        delay_seconds: float = 0.0,
    ) -> Task:
        task = Task(
            run_at=self._clock() + max(delay_seconds, 0.0),
            seq=next(self._seq),
            kind=kind,
            payload=dict(payload or {}),
        )
        self._push(task)
        logger.debug("Scheduled {} in {}s", kind, delay_seconds)
        return task

    def _push(self, task: Task) -> None:
        with self._lock:
            heapq.heappush(self._heap, task)
        self._on_push()

    def _on_push(self) -> None:
        """Hook for subclasses that need to wake a dispatcher."""

    def pop_due(self, include_delayed: bool = False) -> Task | None:
        """Pop the earliest task if it is due (or any task when include_delayed)."""
        with self._lock:
            if not self._heap:
                return None
            if not include_delayed and self._heap[0].run_at > self._clock():
                return None
            return heapq.heappop(self._heap)

    def next_due_in(self) -> float | None:
        """Seconds until the next queued task is due (None if empty)."""
        with self._lock:
            if not self._heap:
                return None
            return max(self._heap[0].run_at - self._clock(), 0.0)

    def pending(self, kind: str | None = None) -> list[Task]:
        with self._lock:
            tasks = sorted(self._heap)
        if kind:
            tasks = [t for t in tasks if t.kind == kind]
        return tasks

    def enqueue_due_periodic(self) -> int:
        """Enqueue every periodic job whose time has come. Missed runs coalesce into one."""
        now = self._clock()
        due: list[PeriodicJob] = []
        with self._lock:
            for job in self._periodic.values():
                if job.next_run_at <= now:
                    due.append(job)
                    job.next_run_at = now + job.interval_seconds
                    job.runs += 1
        for job in due:
            logger.info("Periodic trigger: {}", job.name)
            self.schedule_deferred(job.kind, job.payload)
        return len(due)

    def next_periodic_in(self) -> float | None:
        with self._lock:
            if not self._periodic:
                return None
            soonest = min(job.next_run_at for job in self._periodic.values())
        return max(soonest - self._clock(), 0.0)

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def execute(self, task: Task) -> bool:
        """
        Run a task's handler.

        A failing task of a retryable kind is re-queued with linear backoff
        until max_attempts is reached, then dropped and logged. Non-retryable
        kinds and ConfigurationError are dropped on the first failure.
        Failures never propagate to the caller, so sibling tasks keep running.

        Returns:
            True if the handler completed
        """
        handler = self._handlers.get(task.kind)
        task.attempts += 1

        if handler is None:
            self.failed += 1
            logger.error("No handler registered for task kind {!r}; dropping", task.kind)
            return False

        try:
            handler(task.payload)
        except Exception as exc:  # Isolate per-task failures
            if self._should_retry(task, exc):
                task.run_at = self._clock() + self.retry_backoff_seconds * task.attempts
                logger.warning(
                    "Task {} failed (attempt {}/{}): {}; retrying",
                    task.kind,
                    task.attempts,
                    self.max_attempts,
                    exc,
                )
                self._push(task)
            else:
                self.failed += 1
                logger.error(
                    "Task {} failed after {} attempts: {}", task.kind, task.attempts, exc
                )
            return False

        self.completed += 1
        return True

    def _should_retry(self, task: Task, exc: Exception) -> bool:
        if isinstance(exc, ConfigurationError) or task.kind in self._no_retry:
            return False
        return task.attempts < self.max_attempts


class InMemoryTaskQueue(TaskQueue):
    """Task queue drained explicitly on the caller's thread."""

    def drain(self, include_delayed: bool = False, max_tasks: int | None = None) -> int:
        """
        Execute queued tasks until none are due.

        Args:
            include_delayed: Ignore run_at and run delayed tasks (and retries) now
            max_tasks: Stop after this many executions

        Returns:
            Number of tasks executed (including failed attempts)
        """
        executed = 0
        while max_tasks is None or executed < max_tasks:
            task = self.pop_due(include_delayed=include_delayed)
            if task is None:
                break
            self.execute(task)
            executed += 1
        return executed

    def trigger(self, name: str) -> Task:
        """Enqueue a registered periodic job immediately."""
        job = self._periodic[name]
        return self.schedule_deferred(job.kind, job.payload)


class ThreadedScheduler(TaskQueue):
    """
    Background scheduler: one dispatcher thread plus a worker pool.

    Usage:
        scheduler = ThreadedScheduler(workers=2)
        orchestrator = SyncOrchestrator(scheduler=scheduler)
        orchestrator.register_jobs()
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        workers: int = 2,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 5.0,
        poll_seconds: float = 1.0,
    ) -> None:
        super().__init__(max_attempts=max_attempts, retry_backoff_seconds=retry_backoff_seconds)
        self.workers = workers
        self.poll_seconds = poll_seconds
        self._wakeup = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler already running")
            return

        self._stop_event.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="sync-worker"
        )
        self._thread = threading.Thread(
            target=self._dispatch_loop,
            name="sync-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("Scheduler started (workers={})", self.workers)

    def stop(self, wait: bool = True) -> None:
        if not self.is_running:
            return

        logger.info("Stopping scheduler...")
        self._stop_event.set()
        self._wakeup.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        if self._executor:
            self._executor.shutdown(wait=wait, cancel_futures=not wait)
        self._thread = None
        self._executor = None
        logger.info("Scheduler stopped")

    def _on_push(self) -> None:
        self._wakeup.set()

    def _dispatch_loop(self) -> None:
        while not self._stop_event.is_set():
            self.enqueue_due_periodic()

            while (task := self.pop_due()) is not None:
                if self._executor is None:
                    break
                self._executor.submit(self.execute, task)

            waits = [w for w in (self.next_due_in(), self.next_periodic_in()) if w is not None]
            timeout = min(waits + [self.poll_seconds])
            self._wakeup.wait(timeout=timeout)
            self._wakeup.clear()
