"""Ingestion, reconciliation and scheduling for the sync pipeline."""

from src.sync.catalog_ingestion import (
    CatalogIngestionResult,
    CatalogIngestionService,
    build_question,
    insert_question,
)
from src.sync.flashcard_ingestion import FlashcardIngestionResult, FlashcardIngestionService
from src.sync.orchestrator import SyncOrchestrator
from src.sync.reconciler import ReconcileResult, SolvedStatusReconciler
from src.sync.tasks import InMemoryTaskQueue, Scheduler, TaskQueue, ThreadedScheduler
from src.sync.titles import build_solved_title_set, extract_bold_spans, normalize_title

__all__ = [
    "CatalogIngestionResult",
    "CatalogIngestionService",
    "build_question",
    "insert_question",
    "FlashcardIngestionResult",
    "FlashcardIngestionService",
    "SyncOrchestrator",
    "ReconcileResult",
    "SolvedStatusReconciler",
    "InMemoryTaskQueue",
    "Scheduler",
    "TaskQueue",
    "ThreadedScheduler",
    "build_solved_title_set",
    "extract_bold_spans",
    "normalize_title",
]
