from __future__ import annotations

from fastapi import APIRouter, Depends, status

from trustwork.api.deps import get_unit_of_work
from trustwork.api.schemas.reviews import (
    RatingSummaryResponse,
    ReviewCreateRequest,
    ReviewOut,
)
from trustwork.domain.services import ReviewService
from trustwork.infrastructure.repositories import UnitOfWork

router = APIRouter(tags=["Reviews"])


@router.post("/reviews", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
async def create_review(
    payload: ReviewCreateRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> ReviewOut:
    review = await ReviewService(uow).create_review(
        payload.assignment_id,
        ratings=payload.ratings,
        text=payload.text,
        would_recommend=payload.would_recommend,
    )
    return ReviewOut.model_validate(review)


@router.get("/users/{user_id}/reviews", response_model=list[ReviewOut])
async def reviews_for_user(
    user_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[ReviewOut]:
    reviews = await ReviewService(uow).reviews_for_user(user_id)
    return [ReviewOut.model_validate(review) for review in reviews]


@router.get("/assignments/{assignment_id}/reviews", response_model=list[ReviewOut])
async def reviews_for_assignment(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[ReviewOut]:
    reviews = await ReviewService(uow).reviews_for_assignment(assignment_id)
    return [ReviewOut.model_validate(review) for review in reviews]


@router.get("/users/{user_id}/rating", response_model=RatingSummaryResponse)
async def rating_summary(
    user_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> RatingSummaryResponse:
    summary = await ReviewService(uow).rating_summary(user_id)
    return RatingSummaryResponse(
        user_id=summary.user_id,
        average_rating=summary.average_rating,
        review_count=summary.review_count,
        as_worker_rating=summary.as_worker_rating,
        as_worker_review_count=summary.as_worker_review_count,
        as_employer_rating=summary.as_employer_rating,
        as_employer_review_count=summary.as_employer_review_count,
        recommend_rate=summary.recommend_rate,
        category_averages=summary.category_averages,
    )
