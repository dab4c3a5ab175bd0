"""
Table models for the question catalog and the flashcard store.

Questions are keyed by the external question id and flashcards by the
external card id, so both tables are unique-by-id at the schema level.
Neither table is ever pruned by the sync pipeline.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Float, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Question(Base):
    """A rated practice question from the catalog feed."""

    __tablename__ = "questions"

    question_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    contest_name: Mapped[str] = mapped_column(Text, nullable=False)
    problem_index: Mapped[str] = mapped_column(Text, nullable=False, default="")
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    # Only the reconciler writes this column
    solved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "title": self.title,
            "contest_name": self.contest_name,
            "problem_index": self.problem_index,
            "rating": self.rating,
            "url": self.url,
            "solved": self.solved,
        }

    def __repr__(self) -> str:
        return f"<Question {self.question_id} {self.title!r} solved={self.solved}>"


class Flashcard(Base):
    """A card pulled from the flashcard service. Immutable after insert."""

    __tablename__ = "flashcards"

    card_id: Mapped[str] = mapped_column(Text, primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    def __repr__(self) -> str:
        return f"<Flashcard {self.card_id}>"
