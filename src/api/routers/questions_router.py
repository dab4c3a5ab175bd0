"""
Catalog read endpoints used by the presentation layer.

Query parameter names follow the table UI's URL state
(keyword, contestNumber, ratingMin, ratingMax, sortBy, sortOrder).
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ValidationError

from src.api.dependencies import QueryServiceDep
from src.query.engine import QuestionQuery, SortBy, SortOrder

router = APIRouter()


class QuestionDTO(BaseModel):
    """Serialized question returned by the API."""

    question_id: int
    title: str
    contest_name: str
    problem_index: str
    rating: float
    url: str
    solved: bool


class FlashcardDTO(BaseModel):
    """Serialized flashcard (debug listing)."""

    card_id: str
    content: str


@router.get("/questions", response_model=list[QuestionDTO], summary="Filtered question list")
def search_questions(
    service: QueryServiceDep,
    keyword: str | None = Query(None, description="Substring of the title, any case"),
    contest_number: str | None = Query(None, alias="contestNumber"),
    rating_min: float | None = Query(None, alias="ratingMin"),
    rating_max: float | None = Query(None, alias="ratingMax"),
    sort_by: SortBy = Query("id", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> list[dict]:
    try:
        query = QuestionQuery(
            keyword=keyword,
            contest_number=contest_number,
            rating_min=rating_min,
            rating_max=rating_max,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return service.search(query)


@router.get("/questions/all", response_model=list[QuestionDTO], summary="Every question")
def list_questions(service: QueryServiceDep) -> list[dict]:
    return service.list_all()


@router.get("/questions/unsolved", response_model=list[QuestionDTO], summary="Unsolved questions")
def list_unsolved(service: QueryServiceDep) -> list[dict]:
    return service.list_unsolved()


@router.get("/flashcards", response_model=list[FlashcardDTO], summary="Every stored flashcard")
def list_flashcards(service: QueryServiceDep) -> list[dict]:
    return service.list_flashcards()


@router.get("/stats", summary="Catalog and flashcard counts")
def get_stats(service: QueryServiceDep) -> dict[str, int]:
    return service.stats()
