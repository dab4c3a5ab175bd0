"""
Solved-status reconciler.

Recomputes ``Question.solved`` from scratch on every run: builds the set of
titles bolded in flashcards, then checks every catalog question's normalized
title for membership. Only rows whose flag changes are written, so repeated
runs with unchanged data are a fixed point and do no writes.

Matching is exact after normalization (lowercase, trim, number prefix
stripped on the card side). A title renamed on either side stops matching.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from loguru import logger

from src.db.database import SessionScope, session_scope
from src.db.stores import CatalogStore, FlashcardStore
from src.sync.titles import build_solved_title_set, normalize_title


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation pass."""

    matched: int = 0
    total: int = 0
    updated: int = 0
    solved_titles: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class SolvedStatusReconciler:
    """Infers solved flags for catalog questions from flashcard content."""

    def __init__(self, scope: SessionScope | None = None) -> None:
        self._scope = scope or session_scope

    def run(self) -> ReconcileResult:
        result = ReconcileResult()

        with self._scope() as session:
            cards = FlashcardStore(session)
            catalog = CatalogStore(session)

            solved_titles = build_solved_title_set(cards.contents())
            result.solved_titles = len(solved_titles)
            logger.debug(f"Solved titles extracted from cards: {len(solved_titles)}")

            for question in catalog.all():
                result.total += 1
                is_solved = normalize_title(question.title) in solved_titles

                if is_solved != question.solved:
                    catalog.set_solved(question, is_solved)
                    result.updated += 1

                if is_solved:
                    result.matched += 1

        logger.info(
            "Reconciliation complete: {} of {} questions solved ({} changed)",
            result.matched,
            result.total,
            result.updated,
        )
        return result

    def reset_solved(self) -> int:
        """Mark every question unsolved; the next run recomputes the flags."""
        with self._scope() as session:
            changed = CatalogStore(session).reset_solved()
        logger.warning(f"Reset solved flag on {changed} questions")
        return changed
