"""Clients for the external question and flashcard feeds."""

from src.feeds.flashcard_feed import FlashcardFeedClient
from src.feeds.models import FeedCard, FeedCardPage, FeedQuestion
from src.feeds.question_feed import QuestionFeedClient

__all__ = [
    "FlashcardFeedClient",
    "QuestionFeedClient",
    "FeedCard",
    "FeedCardPage",
    "FeedQuestion",
]
