"""
Sync operations router.

Endpoints for triggering the pipeline on demand and checking recent runs.
The same jobs also run on the periodic scheduler started with the server.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field

from src.api.dependencies import OrchestratorDep
from src.core.errors import ConfigurationError, UpstreamFetchError

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class SyncResponse(BaseModel):
    """Response model for sync operations."""

    success: bool
    message: str
    stats: dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat())


class SyncStatusResponse(BaseModel):
    """Response model for sync status."""

    status: str
    runs: list[dict[str, Any]]
    schedule: dict[str, Any]


def _raise_for(exc: Exception, action: str) -> None:
    if isinstance(exc, ConfigurationError):
        raise HTTPException(status_code=500, detail=f"{action} failed: {exc}") from exc
    if isinstance(exc, UpstreamFetchError):
        raise HTTPException(status_code=502, detail=f"{action} failed: {exc}") from exc
    raise HTTPException(status_code=500, detail=f"{action} failed: {exc}") from exc


# ========================================
# Sync Endpoints
# ========================================


@router.get("/flashcards", response_model=SyncResponse, summary="Sync flashcards now")
def sync_flashcards(orchestrator: OrchestratorDep) -> SyncResponse:
    """
    Manual trigger: ingest flashcards, then reconcile after the settling delay.

    Call this after adding cards to see solved flags update without waiting
    for the periodic sync.
    """
    logger.info("Flashcard sync requested")
    try:
        result = orchestrator.sync_flashcards()
    except Exception as e:
        logger.exception("Flashcard sync failed with exception")
        _raise_for(e, "Flashcard sync")

    return SyncResponse(
        success=True,
        message="Flashcard sync triggered",
        stats=result.to_dict(),
    )


@router.post("/catalog", response_model=SyncResponse, summary="Refresh the question catalog")
def refresh_catalog(orchestrator: OrchestratorDep) -> SyncResponse:
    """Fetch the question feed and schedule inserts for new questions."""
    logger.info("Catalog refresh requested")
    try:
        result = orchestrator.refresh_catalog()
    except Exception as e:
        logger.exception("Catalog refresh failed with exception")
        _raise_for(e, "Catalog refresh")

    return SyncResponse(
        success=True,
        message=f"Fetched {result.fetched} questions, scheduled {result.scheduled} inserts",
        stats=result.to_dict(),
    )


@router.post("/reconcile", response_model=SyncResponse, summary="Recompute solved flags")
def reconcile(orchestrator: OrchestratorDep) -> SyncResponse:
    """Run the solved-status reconciler immediately."""
    try:
        result = orchestrator.reconcile()
    except Exception as e:
        logger.exception("Reconciliation failed with exception")
        _raise_for(e, "Reconciliation")

    return SyncResponse(
        success=True,
        message=f"{result.matched} of {result.total} questions solved",
        stats=result.to_dict(),
    )


@router.get("/status", response_model=SyncStatusResponse, summary="Get sync status")
def get_sync_status(
    orchestrator: OrchestratorDep,
    limit: int = Query(20, ge=1, le=200),
) -> SyncStatusResponse:
    """Recent job runs (newest first) and the configured schedule."""
    runs = orchestrator.recent_runs(limit=limit)
    status = "running" if any(r["status"] == "running" for r in runs) else "ready"
    return SyncStatusResponse(
        status=status,
        runs=runs,
        schedule=orchestrator.settings.get_sync_config(),
    )
