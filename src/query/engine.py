"""
Query engine for the question catalog.

Filters are conjunctive: keyword (case-insensitive substring of the title),
contest number (substring of the contest name), inclusive rating bounds.
Results are sorted by question id or rating, descending unless asked
otherwise. Ties keep the order of the underlying scan. The whole result set
is returned; the catalog is small enough (low thousands) not to page.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.db.database import SessionScope, session_scope
from src.db.models import Question
from src.db.stores import CatalogStore, FlashcardStore

SortBy = Literal["id", "rating"]
SortOrder = Literal["asc", "desc"]


class QuestionQuery(BaseModel):
    """Filter and sort parameters for a catalog query."""

    model_config = ConfigDict(populate_by_name=True)

    keyword: str | None = Field(None, description="Substring of the title, any case")
    contest_number: str | None = Field(
        None, alias="contestNumber", description="Substring of the contest name"
    )
    rating_min: float | None = Field(None, alias="ratingMin", description="Inclusive lower bound")
    rating_max: float | None = Field(None, alias="ratingMax", description="Inclusive upper bound")
    sort_by: SortBy = Field("id", alias="sortBy")
    sort_order: SortOrder = Field("desc", alias="sortOrder")

    @field_validator("keyword", "contest_number")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


def _matches(question: Question, query: QuestionQuery, keyword: str | None) -> bool:
    if keyword is not None and keyword not in question.title.lower():
        return False
    if query.contest_number is not None and query.contest_number not in question.contest_name:
        return False
    if query.rating_min is not None and question.rating < query.rating_min:
        return False
    if query.rating_max is not None and question.rating > query.rating_max:
        return False
    return True


def filter_questions(questions: Iterable[Question], query: QuestionQuery) -> list[Question]:
    """Apply the query's filters and sort to an in-memory list of questions."""
    keyword = query.keyword.lower() if query.keyword else None
    filtered = [q for q in questions if _matches(q, query, keyword)]

    if query.sort_by == "rating":
        key = lambda q: q.rating  # noqa: E731
    else:
        key = lambda q: q.question_id  # noqa: E731

    filtered.sort(key=key, reverse=query.sort_order == "desc")
    return filtered


class QuestionQueryService:
    """Read-side access used by the API and CLI."""

    def __init__(self, scope: SessionScope | None = None) -> None:
        self._scope = scope or session_scope

    def search(self, query: QuestionQuery | None = None) -> list[dict]:
        query = query or QuestionQuery()
        with self._scope() as session:
            questions = CatalogStore(session).all()
            return [q.to_dict() for q in filter_questions(questions, query)]

    def list_all(self) -> list[dict]:
        with self._scope() as session:
            return [q.to_dict() for q in CatalogStore(session).all()]

    def list_unsolved(self) -> list[dict]:
        with self._scope() as session:
            return [q.to_dict() for q in CatalogStore(session).unsolved()]

    def list_flashcards(self) -> list[dict]:
        with self._scope() as session:
            return [
                {"card_id": card.card_id, "content": card.content}
                for card in FlashcardStore(session).all()
            ]

    def stats(self) -> dict[str, int]:
        with self._scope() as session:
            catalog = CatalogStore(session)
            total = catalog.count()
            unsolved = len(catalog.unsolved())
            flashcards = len(FlashcardStore(session).all())
        return {
            "questions": total,
            "solved": total - unsolved,
            "unsolved": unsolved,
            "flashcards": flashcards,
        }
