"""
Flashcard ingestion: flashcard service -> flashcards table.

Cards are inserted only when their id is unseen; stored cards are never
updated, so edits made upstream after the first sync are not picked up.
Each card is written in its own savepoint: one bad card is logged and
counted, the rest still land.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from loguru import logger

from config import Settings, get_settings
from src.db.database import SessionScope, session_scope
from src.db.stores import FlashcardStore
from src.feeds.flashcard_feed import FlashcardFeedClient


@dataclass
class FlashcardIngestionResult:
    """Counts for one flashcard ingestion run."""

    fetched: int = 0
    added: int = 0
    existing: int = 0
    empty: int = 0
    errors: int = 0
    error_details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["error_details"] = self.error_details[:10]  # Limit to 10 errors
        return data


class FlashcardIngestionService:
    """Pulls the first page of cards and stores the unseen ones."""

    def __init__(
        self,
        feed_client: FlashcardFeedClient | None = None,
        settings: Settings | None = None,
        scope: SessionScope | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        # Raises ConfigurationError without an API key
        self._feed = feed_client or FlashcardFeedClient(settings=self._settings)
        self._scope = scope or session_scope

    def run(self) -> FlashcardIngestionResult:
        """
        Ingest flashcards.

        Raises:
            UpstreamFetchError: If the card listing cannot be fetched
        """
        cards = self._feed.fetch_cards()
        result = FlashcardIngestionResult(fetched=len(cards))

        with self._scope() as session:
            store = FlashcardStore(session)

            for card in cards:
                if not card.content:
                    result.empty += 1
                    continue

                if store.exists(card.id):
                    result.existing += 1
                    continue

                try:
                    with session.begin_nested():
                        inserted = store.insert_if_absent(card.id, card.content)
                except Exception as e:  # Isolate per-card failures
                    logger.error(f"Failed to store flashcard {card.id}: {e}")
                    result.errors += 1
                    result.error_details.append(f"{card.id}: {e}")
                    continue

                if inserted:
                    result.added += 1
                else:
                    result.existing += 1

        logger.info(
            f"Flashcard ingestion: fetched {result.fetched}, added {result.added}, "
            f"{result.existing} already stored, {result.empty} empty, {result.errors} errors"
        )
        return result
