from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from trustwork.infrastructure.db.models import ReviewerRole


class ReviewCreateRequest(BaseModel):
    assignment_id: str
    ratings: dict[str, int]
    text: str
    would_recommend: bool


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    assignment_id: str
    reviewer_id: str
    reviewee_id: str
    reviewer_role: ReviewerRole
    ratings: dict[str, int]
    overall_rating: float
    text: str
    would_recommend: bool
    window_start: datetime
    window_end: datetime
    created_at: datetime


class ReviewEligibilityResponse(BaseModel):
    allowed: bool
    reason: str
    window_end: datetime | None = None
    reviewer_role: ReviewerRole | None = None


class RatingSummaryResponse(BaseModel):
    user_id: str
    average_rating: float
    review_count: int
    as_worker_rating: float
    as_worker_review_count: int
    as_employer_rating: float
    as_employer_review_count: int
    recommend_rate: float
    category_averages: dict[str, float]
