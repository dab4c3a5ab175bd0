"""
Store access for questions and flashcards.

Inserts are conditional on the primary key: PostgreSQL and SQLite use
INSERT ... ON CONFLICT DO NOTHING, other dialects fall back to a lookup
inside a savepoint. Either way a concurrent duplicate insert is a no-op
instead of a uniqueness violation.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.db.models import Flashcard, Question, SyncRun

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert_if_absent(session: Session, model: type, key: str, values: dict[str, Any]) -> bool:
    """Insert a row unless one with the same primary key exists. Returns True if inserted."""
    dialect = session.get_bind().dialect.name
    insert_fn = _DIALECT_INSERTS.get(dialect)

    if insert_fn is not None:
        stmt = insert_fn(model).values(**values).on_conflict_do_nothing(index_elements=[key])
        result = session.execute(stmt)
        return (result.rowcount or 0) > 0

    if session.get(model, values[key]) is not None:
        return False
    try:
        with session.begin_nested():
            session.add(model(**values))
    except IntegrityError:
        return False
    return True


class CatalogStore:
    """Data access for the questions table."""

    def __init__(self, session: Session):
        self.session = session

    def existing_ids(self) -> set[int]:
        return set(self.session.scalars(select(Question.question_id)))

    def get(self, question_id: int) -> Question | None:
        return self.session.get(Question, question_id)

    def insert_if_absent(self, values: dict[str, Any]) -> bool:
        """Insert a new question with solved=False unless the id is already stored."""
        row = dict(values)
        row["solved"] = False
        return _insert_if_absent(self.session, Question, "question_id", row)

    def all(self) -> list[Question]:
        return list(self.session.scalars(select(Question)))

    def unsolved(self) -> list[Question]:
        stmt = select(Question).where(Question.solved.is_(False))
        return list(self.session.scalars(stmt))

    def set_solved(self, question: Question, solved: bool) -> None:
        question.solved = solved

    def reset_solved(self) -> int:
        """Mark every question unsolved. Returns the number of rows changed."""
        result = self.session.execute(
            update(Question).where(Question.solved.is_(True)).values(solved=False)
        )
        return result.rowcount or 0

    def count(self) -> int:
        return self.session.scalar(select(func.count(Question.question_id))) or 0


class FlashcardStore:
    """Data access for the flashcards table."""

    def __init__(self, session: Session):
        self.session = session

    def exists(self, card_id: str) -> bool:
        return self.session.get(Flashcard, card_id) is not None

    def insert_if_absent(self, card_id: str, content: str) -> bool:
        return _insert_if_absent(
            self.session, Flashcard, "card_id", {"card_id": card_id, "content": content}
        )

    def all(self) -> list[Flashcard]:
        return list(self.session.scalars(select(Flashcard)))

    def contents(self) -> Iterable[str]:
        return self.session.scalars(select(Flashcard.content))


class SyncRunStore:
    """Data access for the sync_runs audit table."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, run: SyncRun) -> SyncRun:
        self.session.add(run)
        self.session.flush()
        return run

    def recent(self, limit: int = 20, job: str | None = None) -> list[SyncRun]:
        stmt = select(SyncRun).order_by(SyncRun.id.desc()).limit(limit)
        if job:
            stmt = stmt.where(SyncRun.job == job)
        return list(self.session.scalars(stmt))

    def last_success(self, job: str) -> SyncRun | None:
        stmt = (
            select(SyncRun)
            .where(SyncRun.job == job, SyncRun.status == "success")
            .order_by(SyncRun.id.desc())
            .limit(1)
        )
        return self.session.scalar(stmt)
