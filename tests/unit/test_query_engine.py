"""
Unit tests for the catalog query engine.
"""

import pytest
from pydantic import ValidationError

from src.db.models import Question
from src.query.engine import QuestionQuery, QuestionQueryService, filter_questions


def _q(question_id, title, rating, contest="Weekly Contest 100"):
    return Question(
        question_id=question_id,
        title=title,
        contest_name=contest,
        problem_index="Q1",
        rating=rating,
        url="",
        solved=False,
    )


@pytest.fixture
def catalog():
    return [
        _q(1, "Two Sum", 1200.0, "Weekly Contest 100"),
        _q(2, "Longest Path", 1800.0, "Weekly Contest 385"),
        _q(3, "Shortest Path Visiting All Nodes", 2200.0, "Biweekly Contest 38"),
        _q(4, "Path Crossing", 2500.0, "Weekly Contest 385"),
    ]


def _ids(questions):
    return [q.question_id for q in questions]


class TestQuestionQuery:
    """Tests for query parameter parsing."""

    def test_defaults(self):
        query = QuestionQuery()
        assert query.sort_by == "id"
        assert query.sort_order == "desc"
        assert query.keyword is None

    def test_url_aliases(self):
        query = QuestionQuery.model_validate(
            {"contestNumber": "385", "ratingMin": 1500, "ratingMax": 2500, "sortBy": "rating", "sortOrder": "asc"}
        )
        assert query.contest_number == "385"
        assert (query.rating_min, query.rating_max) == (1500, 2500)
        assert (query.sort_by, query.sort_order) == ("rating", "asc")

    def test_blank_strings_are_no_filter(self):
        query = QuestionQuery(keyword="  ", contest_number="")
        assert query.keyword is None
        assert query.contest_number is None

    @pytest.mark.parametrize("field,value", [("sort_by", "title"), ("sort_order", "up")])
    def test_invalid_sort_rejected(self, field, value):
        with pytest.raises(ValidationError):
            QuestionQuery(**{field: value})


class TestFilterQuestions:
    """Tests for filter_questions()."""

    def test_no_filters_sorts_by_id_desc(self, catalog):
        assert _ids(filter_questions(catalog, QuestionQuery())) == [4, 3, 2, 1]

    def test_keyword_case_insensitive(self, catalog):
        result = filter_questions(catalog, QuestionQuery(keyword="PATH"))
        assert _ids(result) == [4, 3, 2]

    def test_rating_range_sorted_by_rating_asc(self, catalog):
        query = QuestionQuery(keyword="path", rating_min=1500, rating_max=2300, sort_by="rating", sort_order="asc")

        result = filter_questions(catalog, query)

        assert [q.rating for q in result] == [1800.0, 2200.0]

    def test_rating_bounds_inclusive(self, catalog):
        query = QuestionQuery(rating_min=1800, rating_max=2200)
        assert _ids(filter_questions(catalog, query)) == [3, 2]

    def test_contest_number_substring(self, catalog):
        result = filter_questions(catalog, QuestionQuery(contest_number="385"))
        assert _ids(result) == [4, 2]

    def test_filters_are_conjunctive(self, catalog):
        query = QuestionQuery(keyword="path", contest_number="385", rating_max=2000)
        assert _ids(filter_questions(catalog, query)) == [2]

    def test_empty_result(self, catalog):
        assert filter_questions(catalog, QuestionQuery(rating_min=3000)) == []


class TestQuestionQueryService:
    """Tests for the database-backed query service."""

    def test_search_reads_from_database(self, scope, add_questions):
        add_questions(
            (1, "Two Sum", 1200.0, "Weekly Contest 1"),
            (2, "Longest Path", 1800.0, "Weekly Contest 2"),
        )
        service = QuestionQueryService(scope=scope)

        rows = service.search(QuestionQuery(sort_order="asc"))

        assert [r["question_id"] for r in rows] == [1, 2]
        assert rows[0]["title"] == "Two Sum"

    def test_unsolved_and_stats(self, scope, add_questions, add_cards):
        add_questions((1, "Two Sum", 1200.0, "W"), solved=True)
        add_questions((2, "Longest Path", 1800.0, "W"))
        add_cards(("c1", "**Two Sum**"))
        service = QuestionQueryService(scope=scope)

        assert [r["question_id"] for r in service.list_unsolved()] == [2]
        assert service.stats() == {"questions": 2, "solved": 1, "unsolved": 1, "flashcards": 1}
        assert service.list_flashcards() == [{"card_id": "c1", "content": "**Two Sum**"}]
