"""
Client for the flashcard service card listing.

Authenticates with HTTP Basic auth, the API key as user and an empty
password. Only the first page (``limit`` cards) is requested.
"""

from __future__ import annotations

import requests
from loguru import logger
from requests.auth import HTTPBasicAuth

from config import Settings, get_settings
from src.core.errors import ConfigurationError, UpstreamFetchError
from src.feeds.http import DEFAULT_RETRIES, build_session
from src.feeds.models import FeedCard, FeedCardPage

SOURCE_NAME = "Flashcard API"


class FlashcardFeedClient:
    """Fetches cards from the flashcard service."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        limit: int | None = None,
        timeout: float | None = None,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        retries: int = DEFAULT_RETRIES,
    ) -> None:
        """
        Initialize the client.

        Raises:
            ConfigurationError: If no API key is passed or configured
        """
        settings = settings or get_settings()
        if api_key is None and settings.flashcard_api_key is not None:
            api_key = settings.flashcard_api_key.get_secret_value()
        if not api_key:
            raise ConfigurationError(
                "FLASHCARD_API_KEY environment variable is not set"
            )

        self.base_url = base_url or settings.flashcard_api_url
        self.limit = limit or settings.flashcard_page_limit
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.session = session or build_session(retries=retries)
        self._auth = HTTPBasicAuth(api_key, "")

        logger.debug(
            "Initialized flashcard client: url={}, limit={}, timeout={}s",
            self.base_url,
            self.limit,
            self.timeout,
        )

    def fetch_cards(self) -> list[FeedCard]:
        """
        Fetch the first page of cards.

        Raises:
            UpstreamFetchError: On network failure, authentication failure or
                any other non-success status
        """
        logger.info("Fetching flashcards from {} (limit={})", self.base_url, self.limit)
        try:
            response = self.session.get(
                self.base_url,
                params={"limit": self.limit},
                auth=self._auth,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
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
            page = FeedCardPage.model_validate(response.json())
        except ValueError as exc:
            raise UpstreamFetchError(
                SOURCE_NAME, status_code=response.status_code, reason="invalid JSON"
            ) from exc

        logger.info(f"Fetched {len(page.docs)} flashcards")
        return page.docs
