"""
Client for the public question rating feed.

The feed is a single JSON array of question records (rating, id, title,
slug, contest identifiers, problem index). No authentication, no paging.
"""

from __future__ import annotations

from typing import Any

import requests
from loguru import logger
from pydantic import ValidationError

from config import Settings, get_settings
from src.core.errors import UpstreamFetchError
from src.feeds.http import DEFAULT_RETRIES, build_session
from src.feeds.models import FeedQuestion

SOURCE_NAME = "Question feed"


class QuestionFeedClient:
    """Fetches and validates the question rating feed."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        retries: int = DEFAULT_RETRIES,
    ) -> None:
        settings = settings or get_settings()
        self.url = url or settings.question_feed_url
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.session = session or build_session(retries=retries)

    def fetch_raw(self) -> list[dict[str, Any]]:
        """
        GET the feed and return the decoded JSON array.

        Raises:
            UpstreamFetchError: On network failure, non-success status or a
                payload that is not a JSON array
        """
        logger.info("Fetching question feed from {}", self.url)
        try:
            response = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamFetchError(SOURCE_NAME, reason=str(exc)) from exc

        if not response.ok:
            raise UpstreamFetchError(
                SOURCE_NAME,
                status_code=response.status_code,
                reason=response.reason,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamFetchError(
                SOURCE_NAME, status_code=response.status_code, reason="invalid JSON"
            ) from exc

        if not isinstance(data, list):
            raise UpstreamFetchError(
                SOURCE_NAME,
                status_code=response.status_code,
                reason=f"expected a JSON array, got {type(data).__name__}",
            )
        return data

    def fetch_questions(self) -> list[FeedQuestion]:
        """Fetch the feed and validate each record, skipping malformed ones."""
        records = self.fetch_raw()
        questions: list[FeedQuestion] = []
        invalid = 0

        for record in records:
            try:
                questions.append(FeedQuestion.model_validate(record))
            except ValidationError as exc:
                invalid += 1
                record_id = record.get("ID", "?") if isinstance(record, dict) else "?"
                logger.warning(
                    "Skipping malformed question record {}: {}", record_id, exc.errors()[:1]
                )

        if invalid:
            logger.warning(f"Skipped {invalid} malformed question records")
        logger.info(f"Fetched {len(questions)} questions from feed")
        return questions
