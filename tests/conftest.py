"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Every test runs against an in-memory SQLite database; no network access.
"""
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Settings are cached on first import; point them at throwaway resources.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from sqlalchemy.orm import sessionmaker  # noqa: E402

from config import Settings  # noqa: E402
from src.db.database import build_session_scope, make_engine  # noqa: E402
from src.db.models import Base, Flashcard, Question  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (API + database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Settings with a dummy flashcard key and no file logging."""
    return Settings(
        database_url="sqlite://",
        flashcard_api_key="test-key",
        log_file=None,
        reconcile_delay_seconds=30,
        task_max_attempts=3,
        task_retry_backoff_seconds=0,
    )


@pytest.fixture
def engine():
    """Fresh in-memory database with all tables created."""
    test_engine = make_engine("sqlite://")
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def scope(engine):
    """Transactional session scope bound to the test database."""
    return build_session_scope(sessionmaker(bind=engine, autoflush=False))


@pytest.fixture
def add_questions(scope):
    """Insert questions directly: add_questions((id, title, rating, contest), ...)."""

    def _add(*rows, solved=False):
        with scope() as session:
            for question_id, title, rating, contest in rows:
                session.add(
                    Question(
                        question_id=question_id,
                        title=title,
                        contest_name=contest,
                        problem_index="Q1",
                        rating=rating,
                        url=f"https://example.test/{question_id}",
                        solved=solved,
                    )
                )

    return _add


@pytest.fixture
def add_cards(scope):
    """Insert flashcards directly: add_cards((card_id, content), ...)."""

    def _add(*rows):
        with scope() as session:
            for card_id, content in rows:
                session.add(Flashcard(card_id=card_id, content=content))

    return _add


@pytest.fixture
def sample_feed_record():
    """Provide a sample question feed record."""
    return {
        "Rating": 2299.4,
        "ID": 3044,
        "Title": "Most Frequent Prime",
        "TitleZH": "出现频率最高的质数",
        "TitleSlug": "most-frequent-prime",
        "ContestSlug": "weekly-contest-385",
        "ProblemIndex": "Q3",
        "ContestID_en": "Weekly Contest 385",
        "ContestID_zh": "第 385 场周赛",
    }
