"""
Integration Tests for the REST API.

Drives the FastAPI app through TestClient against an in-memory database.
Most tests skip the lifespan, so no background scheduler starts and the
orchestrator runs on an in-memory queue drained by the tests.
"""
import time
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.core.errors import UpstreamFetchError
from src.feeds.models import FeedCard, FeedQuestion
from src.query.engine import QuestionQueryService
from src.sync.orchestrator import RECONCILE_TASK, SyncOrchestrator
from src.sync.tasks import InMemoryTaskQueue

pytestmark = pytest.mark.integration


@pytest.fixture
def queue():
    return InMemoryTaskQueue(max_attempts=1, retry_backoff_seconds=0)


@pytest.fixture
def card_feed():
    feed = Mock()
    feed.fetch_cards.return_value = [FeedCard(id="c1", content="**3044. Most Frequent Prime**")]
    return feed


@pytest.fixture
def client(queue, scope, settings, sample_feed_record, card_feed):
    question_feed = Mock()
    question_feed.fetch_questions.return_value = [FeedQuestion.model_validate(sample_feed_record)]

    app.state.orchestrator = SyncOrchestrator(
        scheduler=queue,
        settings=settings,
        scope=scope,
        question_feed=question_feed,
        flashcard_feed_factory=lambda s: card_feed,
    )
    app.state.query_service = QuestionQueryService(scope=scope)
    yield TestClient(app)
    del app.state.orchestrator
    del app.state.query_service


class TestHealth:
    """Health and info endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "solved-sync"

    def test_health_reports_components(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["components"]["database"] == "ok"
        assert body["components"]["scheduler"] == "stopped"


class TestSyncEndpoints:
    """Manual triggers."""

    def test_flashcard_trigger_schedules_reconcile(self, client, queue):
        response = client.get("/api/sync/flashcards")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Flashcard sync triggered"
        assert body["stats"]["added"] == 1
        assert len(queue.pending(RECONCILE_TASK)) == 1

    def test_upstream_failure_is_502(self, client, card_feed):
        card_feed.fetch_cards.side_effect = UpstreamFetchError("Flashcard API", 401, "Unauthorized", "bad key")

        response = client.get("/api/sync/flashcards")

        assert response.status_code == 502
        assert "401" in response.json()["detail"]

    def test_full_pipeline(self, client, queue):
        assert client.post("/api/sync/catalog").status_code == 200
        queue.drain()
        client.get("/api/sync/flashcards")
        queue.drain(include_delayed=True)

        rows = client.get("/api/questions").json()
        assert rows[0]["question_id"] == 3044
        assert rows[0]["solved"] is True

        status = client.get("/api/sync/status").json()
        assert status["status"] == "ready"
        assert {r["job"] for r in status["runs"]} == {"refresh_catalog", "sync_flashcards", "reconcile_solved"}
        assert status["schedule"]["reconcile_delay_seconds"] == 30

    def test_reconcile_endpoint(self, client, add_questions, add_cards):
        add_questions((1, "Two Sum", 1200.0, "Weekly Contest 1"))
        add_cards(("c9", "**1. Two Sum**"))

        body = client.post("/api/sync/reconcile").json()

        assert body["message"] == "1 of 1 questions solved"


class TestQuestionEndpoints:
    """Catalog read endpoints."""

    @pytest.fixture
    def seeded(self, add_questions):
        add_questions(
            (1, "Two Sum", 1200.0, "Weekly Contest 1"),
            (2, "Longest Path", 1800.0, "Weekly Contest 385"),
            (3, "Shortest Path", 2200.0, "Biweekly Contest 38"),
        )

    def test_default_sort_is_id_desc(self, client, seeded):
        rows = client.get("/api/questions").json()
        assert [r["question_id"] for r in rows] == [3, 2, 1]

    def test_filter_and_sort_params(self, client, seeded):
        params = {"keyword": "path", "ratingMin": 1500, "ratingMax": 2300, "sortBy": "rating", "sortOrder": "asc"}

        rows = client.get("/api/questions", params=params).json()

        assert [r["rating"] for r in rows] == [1800.0, 2200.0]

    def test_contest_number_param(self, client, seeded):
        rows = client.get("/api/questions", params={"contestNumber": "385"}).json()
        assert [r["question_id"] for r in rows] == [2]

    def test_invalid_sort_rejected(self, client, seeded):
        assert client.get("/api/questions", params={"sortBy": "title"}).status_code == 422

    def test_unsolved_and_stats(self, client, seeded):
        assert len(client.get("/api/questions/unsolved").json()) == 3
        assert client.get("/api/stats").json()["questions"] == 3

    def test_flashcard_listing(self, client, add_cards):
        add_cards(("c1", "**Two Sum**"))
        assert client.get("/api/flashcards").json() == [{"card_id": "c1", "content": "**Two Sum**"}]


class TestLifespan:
    """Startup wiring with the real background scheduler."""

    @pytest.fixture
    def manual_only(self, monkeypatch, settings, card_feed):
        monkeypatch.setattr(
            "src.api.main.settings",
            settings.model_copy(update={"scheduler_enabled": False, "reconcile_delay_seconds": 0}),
        )
        monkeypatch.setattr("src.sync.orchestrator.FlashcardFeedClient", lambda settings: card_feed)
        yield
        for name in ("scheduler", "orchestrator", "query_service"):
            if hasattr(app.state, name):
                delattr(app.state, name)

    def test_manual_trigger_reconciles_with_periodic_jobs_disabled(self, manual_only):
        with TestClient(app) as client:
            scheduler = app.state.scheduler
            assert scheduler.is_running
            assert scheduler.periodic_jobs == {}

            response = client.get("/api/sync/flashcards")
            assert response.status_code == 200

            deadline = time.monotonic() + 5
            while scheduler.completed < 1 and time.monotonic() < deadline:
                time.sleep(0.05)

            assert scheduler.completed == 1
            assert scheduler.failed == 0
            assert scheduler.pending(RECONCILE_TASK) == []
            runs = app.state.orchestrator.recent_runs(limit=1, job=RECONCILE_TASK)
            assert runs[0]["status"] == "success"

        assert not scheduler.is_running
