"""
Catalog ingestion: question feed -> questions table.

One run:
1. Fetches the whole rating feed (aborts on any upstream failure)
2. Snapshots the stored question ids once
3. Schedules one deferred ``insert_question`` task per unseen record

The snapshot only saves work; the insert task itself is an atomic
insert-if-absent on ``question_id``, so overlapping runs cannot create
duplicates. A failing insert affects only its own record.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from loguru import logger

from config import Settings, get_settings
from src.db.database import SessionScope, session_scope
from src.db.stores import CatalogStore
from src.feeds.models import FeedQuestion
from src.feeds.question_feed import QuestionFeedClient
from src.sync.tasks import Scheduler

UNKNOWN_CONTEST = "Unknown Contest"
INSERT_QUESTION_TASK = "insert_question"


@dataclass
class CatalogIngestionResult:
    """Counts for one catalog ingestion run."""

    fetched: int = 0
    scheduled: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def build_question(record: FeedQuestion, url_template: str) -> dict[str, Any]:
    """
    Map a feed record to question column values.

    contest_name falls back through the English id, the localized id and the
    contest slug to "Unknown Contest". A missing slug is rendered into the URL
    as-is and not validated.
    """
    contest_name = (
        record.contest_id_en
        or record.contest_id_zh
        or record.contest_slug
        or UNKNOWN_CONTEST
    )
    return {
        "question_id": record.question_id,
        "title": record.title,
        "contest_name": contest_name,
        "problem_index": record.problem_index or "",
        "rating": record.rating,
        "url": url_template.format(slug=record.title_slug),
    }


class CatalogIngestionService:
    """Fetches the question feed and fans out inserts for new questions."""

    def __init__(
        self,
        scheduler: Scheduler,
        feed_client: QuestionFeedClient | None = None,
        settings: Settings | None = None,
        scope: SessionScope | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._scheduler = scheduler
        self._feed = feed_client or QuestionFeedClient(settings=self._settings)
        self._scope = scope or session_scope

    def run(self) -> CatalogIngestionResult:
        """
        Ingest the question feed.

        Returns:
            Result whose ``fetched`` is the number of feed records (not inserts)

        Raises:
            UpstreamFetchError: If the feed cannot be fetched
        """
        records = self._feed.fetch_questions()
        result = CatalogIngestionResult(fetched=len(records))

        with self._scope() as session:
            existing_ids = CatalogStore(session).existing_ids()

        template = self._settings.problem_url_template
        for record in records:
            if record.question_id in existing_ids:
                result.skipped += 1
                continue

            self._scheduler.schedule_deferred(
                INSERT_QUESTION_TASK, build_question(record, template)
            )
            result.scheduled += 1

        logger.info(
            f"Catalog ingestion: fetched {result.fetched}, "
            f"scheduled {result.scheduled} inserts, skipped {result.skipped} known"
        )
        return result


def insert_question(values: dict[str, Any], scope: SessionScope | None = None) -> bool:
    """
    Deferred task body: insert one question if its id is not stored yet.

    Returns:
        True if a row was inserted
    """
    with (scope or session_scope)() as session:
        inserted = CatalogStore(session).insert_if_absent(values)

    if inserted:
        logger.debug("Inserted question {} {!r}", values["question_id"], values["title"])
    else:
        logger.debug("Question {} already stored; skipped", values["question_id"])
    return inserted
