"""
Sync Orchestrator - sequences the ingestion and reconciliation jobs.

Jobs:
- sync_flashcards: flashcard ingestion (synchronous), then a deferred
  reconcile_solved after the settling delay so the reconciler reads the
  freshly inserted cards
- refresh_catalog: catalog ingestion, which fans out one deferred
  insert_question task per new question
- reconcile_solved: recompute every question's solved flag

Triggers are periodic registrations on the scheduler or on-demand calls
(API endpoint, CLI). Overlapping runs are safe: every write is either an
insert-if-absent or a full recompute, so concurrent runs converge.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from loguru import logger

from config import Settings, get_settings
from src.db.database import SessionScope, session_scope
from src.db.models import SyncRun
from src.db.stores import SyncRunStore
from src.feeds.flashcard_feed import FlashcardFeedClient
from src.feeds.question_feed import QuestionFeedClient
from src.sync.catalog_ingestion import (
    INSERT_QUESTION_TASK,
    CatalogIngestionResult,
    CatalogIngestionService,
    insert_question,
)
from src.sync.flashcard_ingestion import FlashcardIngestionResult, FlashcardIngestionService
from src.sync.reconciler import ReconcileResult, SolvedStatusReconciler
from src.sync.tasks import Scheduler, TaskQueue

REFRESH_CATALOG_TASK = "refresh_catalog"
SYNC_FLASHCARDS_TASK = "sync_flashcards"
RECONCILE_TASK = "reconcile_solved"

T = TypeVar("T")


class SyncOrchestrator:
    """
    Entry point for every pipeline job.

    The orchestrator depends on a Scheduler but does not implement one;
    pass an InMemoryTaskQueue for inline runs or a ThreadedScheduler for a
    long-running process.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        settings: Settings | None = None,
        scope: SessionScope | None = None,
        question_feed: QuestionFeedClient | None = None,
        flashcard_feed_factory: Callable[[Settings], FlashcardFeedClient] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._scheduler = scheduler
        self._scope = scope or session_scope
        self._question_feed = question_feed
        self._flashcard_feed_factory = flashcard_feed_factory or (
            lambda s: FlashcardFeedClient(settings=s)
        )

        if isinstance(scheduler, TaskQueue):
            self.register_handlers(scheduler)

    @property
    def settings(self) -> Settings:
        return self._settings

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register_handlers(self, queue: TaskQueue) -> None:
        """
        Bind task kinds to orchestrator jobs.

        Only per-record inserts are retried; a failed feed job waits for its
        next periodic trigger.
        """
        queue.register_handler(INSERT_QUESTION_TASK, self._handle_insert_question)
        queue.register_handler(RECONCILE_TASK, lambda _payload: self.reconcile(), retry=False)
        queue.register_handler(
            REFRESH_CATALOG_TASK, lambda _payload: self.refresh_catalog(), retry=False
        )
        queue.register_handler(
            SYNC_FLASHCARDS_TASK, lambda _payload: self.sync_flashcards(), retry=False
        )

    def register_jobs(self) -> None:
        """Register the periodic catalog and flashcard triggers."""
        self._scheduler.register_periodic(
            REFRESH_CATALOG_TASK,
            self._settings.catalog_refresh_interval_hours * 3600,
            REFRESH_CATALOG_TASK,
        )
        self._scheduler.register_periodic(
            SYNC_FLASHCARDS_TASK,
            self._settings.flashcard_sync_interval_minutes * 60,
            SYNC_FLASHCARDS_TASK,
        )

    # =========================================================================
    # JOBS
    # =========================================================================

    def sync_flashcards(self) -> FlashcardIngestionResult:
        """
        Ingest flashcards now and schedule reconciliation after the settling delay.

        Raises:
            ConfigurationError: If the flashcard API key is missing
            UpstreamFetchError: If the flashcard service request fails
        """

        def _job() -> FlashcardIngestionResult:
            service = FlashcardIngestionService(
                feed_client=self._flashcard_feed_factory(self._settings),
                settings=self._settings,
                scope=self._scope,
            )
            return service.run()

        result = self._run_recorded(SYNC_FLASHCARDS_TASK, _job)

        delay = self._settings.reconcile_delay_seconds
        self._scheduler.schedule_deferred(RECONCILE_TASK, {}, delay_seconds=delay)
        logger.info(f"Reconciliation scheduled in {delay:.0f}s")
        return result

    def refresh_catalog(self) -> CatalogIngestionResult:
        """
        Ingest the question feed; inserts run as deferred tasks.

        Raises:
            UpstreamFetchError: If the question feed request fails
        """

        def _job() -> CatalogIngestionResult:
            service = CatalogIngestionService(
                scheduler=self._scheduler,
                feed_client=self._question_feed,
                settings=self._settings,
                scope=self._scope,
            )
            return service.run()

        return self._run_recorded(REFRESH_CATALOG_TASK, _job)

    def reconcile(self) -> ReconcileResult:
        """Recompute solved flags immediately."""
        return self._run_recorded(
            RECONCILE_TASK, lambda: SolvedStatusReconciler(scope=self._scope).run()
        )

    def recent_runs(self, limit: int = 20, job: str | None = None) -> list[dict[str, Any]]:
        with self._scope() as session:
            return [run.to_dict() for run in SyncRunStore(session).recent(limit=limit, job=job)]

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _handle_insert_question(self, payload: dict[str, Any]) -> bool:
        return insert_question(payload, scope=self._scope)

    def _run_recorded(self, job: str, fn: Callable[[], T]) -> T:
        """Run a job and record its outcome in sync_runs; errors propagate."""
        logger.info(f"Starting job {job}")
        with self._scope() as session:
            run_id = SyncRunStore(session).add(SyncRun(job=job, status="running")).id

        try:
            result = fn()
        except Exception as e:
            logger.error(f"Job {job} failed: {e}")
            self._finish_run(run_id, status="error", error=str(e))
            raise

        stats = result.to_dict() if hasattr(result, "to_dict") else {}
        self._finish_run(run_id, status="success", stats=stats)
        logger.info(f"Job {job} finished: {stats}")
        return result

    def _finish_run(
        self,
        run_id: int,
        status: str,
        stats: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        try:
            with self._scope() as session:
                run = session.get(SyncRun, run_id)
                if run is None:
                    return
                run.status = status
                run.finished_at = datetime.now()
                run.stats = stats
                run.error = error
        except Exception as e:  # Audit write errors are logged only
            logger.warning(f"Failed to record sync run {run_id}: {e}")
