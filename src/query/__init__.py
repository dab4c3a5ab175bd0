"""Filtered and sorted read access to the question catalog."""

from src.query.engine import QuestionQuery, QuestionQueryService, filter_questions

__all__ = ["QuestionQuery", "QuestionQueryService", "filter_questions"]
