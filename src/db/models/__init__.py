# SQLAlchemy models
from .base import Base
from .catalog import Flashcard, Question
from .sync_run import SyncRun

__all__ = [
    "Base",
    "Question",
    "Flashcard",
    "SyncRun",
]
