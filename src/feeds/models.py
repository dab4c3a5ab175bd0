"""
Wire models for the external feeds.

Field aliases match the upstream JSON exactly; unknown fields are ignored so
new upstream columns never break ingestion.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FeedQuestion(BaseModel):
    """One record of the question rating feed."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    rating: float = Field(..., alias="Rating")
    question_id: int = Field(..., alias="ID")
    title: str = Field(..., alias="Title")
    title_zh: str | None = Field(None, alias="TitleZH")
    title_slug: str | None = Field(None, alias="TitleSlug")
    contest_slug: str | None = Field(None, alias="ContestSlug")
    contest_id_en: str | None = Field(None, alias="ContestID_en")
    contest_id_zh: str | None = Field(None, alias="ContestID_zh")
    problem_index: str | None = Field(None, alias="ProblemIndex")


class FeedCard(BaseModel):
    """One card of the flashcard listing."""

    model_config = ConfigDict(extra="ignore")

    id: str
    content: str | None = None


class FeedCardPage(BaseModel):
    """Flashcard listing envelope."""

    model_config = ConfigDict(extra="ignore")

    docs: list[FeedCard] = Field(default_factory=list)
    bookmark: str | None = None
