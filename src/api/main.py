"""
FastAPI application for solved-sync.

Provides REST API for:
- Manual triggers of the flashcard sync, catalog refresh and reconciliation
- Filtered/sorted catalog queries for the presentation layer
- Debug listings of questions and flashcards

On startup the in-process scheduler is started; the periodic catalog and
flashcard jobs are registered unless SCHEDULER_ENABLED=false.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from src.core.logging_setup import configure_logging
from src.db.database import check_connection, init_db
from src.query.engine import QuestionQueryService
from src.sync.orchestrator import SyncOrchestrator
from src.sync.tasks import ThreadedScheduler

settings = get_settings()


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        check_connection()
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    configure_logging(settings)
    logger.info("Starting solved-sync service...")
    init_db()

    scheduler = ThreadedScheduler(
        workers=settings.scheduler_workers,
        max_attempts=settings.task_max_attempts,
        retry_backoff_seconds=settings.task_retry_backoff_seconds,
    )
    orchestrator = SyncOrchestrator(scheduler=scheduler, settings=settings)
    app.state.scheduler = scheduler
    app.state.orchestrator = orchestrator
    app.state.query_service = QuestionQueryService()

    # Manual triggers queue deferred work, so the scheduler always runs;
    # the flag only controls the periodic jobs.
    if settings.scheduler_enabled:
        orchestrator.register_jobs()
    else:
        logger.info("Periodic jobs disabled; manual triggers only")
    scheduler.start()

    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down solved-sync service...")
    scheduler.stop()


app = FastAPI(
    title="Solved Sync",
    description="""
    Keeps a rated practice-question catalog in sync with a flashcard deck.

    ## Data Flow

    ```
    Question feed ──▶ questions ◀── reconciler ◀── flashcards ◀── Flashcard API
                          │
                          ▼
                    query engine ──▶ table UI
    ```
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for the table UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "solved-sync",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = _check_database_health()
    scheduler = getattr(app.state, "scheduler", None)

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.utcnow().isoformat(),
        "components": {
            "database": db_status,
            "flashcard_api": "configured" if settings.has_flashcard_credentials() else "not_configured",
            "scheduler": "running" if scheduler is not None and scheduler.is_running else "stopped",
        },
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


# ========================================
# Import and mount routers
# ========================================

from src.api.routers import questions_router, sync_router

app.include_router(sync_router.router, prefix="/api/sync", tags=["Sync"])
app.include_router(questions_router.router, prefix="/api", tags=["Catalog"])
