"""API routers for solved-sync."""

from src.api.routers import questions_router, sync_router

__all__ = [
    "sync_router",
    "questions_router",
]
