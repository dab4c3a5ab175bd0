"""FastAPI dependencies resolved from application state."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.query.engine import QuestionQueryService
from src.sync.orchestrator import SyncOrchestrator


def get_orchestrator(request: Request) -> SyncOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Sync orchestrator not initialized")
    return orchestrator


def get_query_service(request: Request) -> QuestionQueryService:
    service = getattr(request.app.state, "query_service", None)
    if service is None:
        service = QuestionQueryService()
        request.app.state.query_service = service
    return service


OrchestratorDep = Annotated[SyncOrchestrator, Depends(get_orchestrator)]
QueryServiceDep = Annotated[QuestionQueryService, Depends(get_query_service)]
