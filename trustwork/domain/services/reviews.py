from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

import structlog

from trustwork.core.clock import as_utc
from trustwork.core.errors import (
    AlreadyCompleted,
    IllegalTransition,
    Unauthorized,
    ValidationFailed,
)
from trustwork.domain.services.scoring import round_half_up
from trustwork.infrastructure.db.models import (
    Assignment,
    AssignmentStatus,
    Profile,
    ProfileRole,
    Review,
    ReviewerRole,
)
from trustwork.infrastructure.repositories import UnitOfWork

logger = structlog.get_logger()

CATEGORIES: dict[ReviewerRole, tuple[str, ...]] = {
    # employer rating the worker
    ReviewerRole.EMPLOYER: (
        "technical_skills",
        "communication",
        "work_quality",
        "professionalism",
    ),
    # worker rating the employer
    ReviewerRole.EMPLOYEE: (
        "work_environment",
        "management",
        "compensation",
        "career_growth",
    ),
}


@dataclass(slots=True, frozen=True)
class ReviewEligibility:
    allowed: bool
    reason: str
    window_end: datetime | None = None
    reviewer_role: ReviewerRole | None = None


@dataclass(slots=True)
class RatingSummary:
    user_id: str
    average_rating: float = 0.0
    review_count: int = 0
    as_worker_rating: float = 0.0
    as_worker_review_count: int = 0
    as_employer_rating: float = 0.0
    as_employer_review_count: int = 0
    recommend_rate: float = 0.0
    category_averages: dict[str, float] = field(default_factory=dict)


def overall_rating(ratings: Mapping[str, int]) -> float:
    """round(mean * 10) / 10, halves rounded up."""
    mean = Decimal(sum(ratings.values())) / Decimal(len(ratings))
    return float(round_half_up(mean, 1))


def mean_rating(values: Sequence[float]) -> float:
    """Mean of overall ratings to two places; 0.0 when there are none."""
    if not values:
        return 0.0
    total = sum((Decimal(str(value)) for value in values), Decimal(0))
    return float(round_half_up(total / len(values), 2))


class ReviewService:
    """Bilateral post-engagement reviews inside the review window."""

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow
        self.store = uow.store

    @property
    def actor_id(self) -> str:
        return self.store.actor.user_id

    async def can_review(self, assignment_id: str) -> ReviewEligibility:
        return await self.uow.run(self._can_review, assignment_id)

    async def _can_review(self, assignment_id: str) -> ReviewEligibility:
        assignment = await self.store.get(Assignment, assignment_id)
        if assignment.status != AssignmentStatus.COMPLETED or assignment.completed_at is None:
            return ReviewEligibility(allowed=False, reason="not_completed")
        role = _reviewer_role(assignment, self.actor_id)
        if role is None:
            return ReviewEligibility(allowed=False, reason="not_participant")
        window_end = self._window_end(assignment)
        if self.uow.now() > window_end:
            return ReviewEligibility(
                allowed=False, reason="window_closed", window_end=window_end, reviewer_role=role
            )
        existing = await self.store.find(
            Review, Review.assignment_id == assignment_id, Review.reviewer_id == self.actor_id
        )
        if existing is not None:
            return ReviewEligibility(
                allowed=False, reason="already_reviewed", window_end=window_end, reviewer_role=role
            )
        return ReviewEligibility(
            allowed=True, reason="ok", window_end=window_end, reviewer_role=role
        )

    async def create_review(
        self,
        assignment_id: str,
        *,
        ratings: Mapping[str, int],
        text: str,
        would_recommend: bool,
    ) -> Review:
        return await self.uow.run(
            self._create, assignment_id, dict(ratings), text, would_recommend
        )

    async def _create(
        self,
        assignment_id: str,
        ratings: dict[str, int],
        text: str,
        would_recommend: bool,
    ) -> Review:
        assignment = await self.store.get(Assignment, assignment_id)
        if assignment.status != AssignmentStatus.COMPLETED or assignment.completed_at is None:
            raise IllegalTransition(
                "Reviews open only after completion",
                assignment_id=assignment_id,
                status=assignment.status.value,
            )
        role = _reviewer_role(assignment, self.actor_id)
        if role is None:
            raise Unauthorized("Only participants can review", assignment_id=assignment_id)

        window_start = as_utc(assignment.completed_at)
        window_end = self._window_end(assignment)
        if self.uow.now() > window_end:
            raise ValidationFailed(
                "Review window has closed", assignment_id=assignment_id, window_end=window_end
            )
        existing = await self.store.find(
            Review, Review.assignment_id == assignment_id, Review.reviewer_id == self.actor_id
        )
        if existing is not None:
            raise AlreadyCompleted("You already reviewed this assignment", review_id=existing.id)

        text = self._validate_text(text)
        self._validate_ratings(role, ratings)
        overall = overall_rating(ratings)
        reviewee_id = assignment.worker_id if role == ReviewerRole.EMPLOYER else assignment.owner_id

        review = await self.store.insert(
            Review(
                assignment_id=assignment_id,
                reviewer_id=self.actor_id,
                reviewee_id=reviewee_id,
                reviewer_role=role,
                ratings=ratings,
                overall_rating=overall,
                text=text,
                would_recommend=would_recommend,
                window_start=window_start,
                window_end=window_end,
                created_at=self.uow.now(),
            )
        )
        await self._project_rating(reviewee_id, role)
        await self.store.emit("review.created", review.id)
        logger.info(
            "review_created",
            review_id=review.id,
            assignment_id=assignment_id,
            reviewer_role=role.value,
            overall_rating=overall,
        )
        return review

    async def reviews_for_user(self, user_id: str) -> list[Review]:
        return await self.uow.run(
            self.store.query,
            Review,
            Review.reviewee_id == user_id,
            order_by=[Review.created_at.desc(), Review.id],
        )

    async def reviews_for_assignment(self, assignment_id: str) -> list[Review]:
        return await self.uow.run(self._for_assignment, assignment_id)

    async def _for_assignment(self, assignment_id: str) -> list[Review]:
        await self.store.get(Assignment, assignment_id)
        return await self.store.query(
            Review,
            Review.assignment_id == assignment_id,
            order_by=[Review.created_at, Review.id],
        )

    async def rating_summary(self, user_id: str) -> RatingSummary:
        return await self.uow.run(self._summary, user_id)

    async def _summary(self, user_id: str) -> RatingSummary:
        profile = await self.store.find(Profile, Profile.user_id == user_id)
        reviews = await self.store.query(Review, Review.reviewee_id == user_id)
        summary = RatingSummary(user_id=user_id)
        if profile is not None:
            summary.average_rating = profile.average_rating
            summary.review_count = profile.review_count
            summary.as_worker_rating = profile.as_worker_rating
            summary.as_worker_review_count = profile.as_worker_review_count
            summary.as_employer_rating = profile.as_employer_rating
            summary.as_employer_review_count = profile.as_employer_review_count
        if reviews:
            recommended = sum(1 for review in reviews if review.would_recommend)
            summary.recommend_rate = round(recommended / len(reviews), 4)
            totals: dict[str, list[int]] = {}
            for review in reviews:
                for category, value in review.ratings.items():
                    totals.setdefault(category, []).append(value)
            summary.category_averages = {
                category: float(round_half_up(Decimal(sum(values)) / len(values), 2))
                for category, values in sorted(totals.items())
            }
        return summary

    async def _project_rating(self, reviewee_id: str, role: ReviewerRole) -> None:
        # Reviewee's profile is not writable by the reviewer
        system = self.store.elevated()
        profile = await system.find(Profile, Profile.user_id == reviewee_id)
        if profile is None:
            fallback = (
                ProfileRole.JOB_SEEKER if role == ReviewerRole.EMPLOYER else ProfileRole.EMPLOYER
            )
            profile = await system.insert(Profile.blank(reviewee_id, fallback))

        # Aggregates are recomputed from the stored reviews, never from prior means
        received = await system.query(Review, Review.reviewee_id == reviewee_id)
        as_worker = [
            r.overall_rating for r in received if r.reviewer_role == ReviewerRole.EMPLOYER
        ]
        as_employer = [
            r.overall_rating for r in received if r.reviewer_role == ReviewerRole.EMPLOYEE
        ]
        await system.update(
            profile,
            average_rating=mean_rating([r.overall_rating for r in received]),
            review_count=len(received),
            as_worker_rating=mean_rating(as_worker),
            as_worker_review_count=len(as_worker),
            as_employer_rating=mean_rating(as_employer),
            as_employer_review_count=len(as_employer),
        )

    def _window_end(self, assignment: Assignment) -> datetime:
        days = self.uow.settings.review_window_days
        return as_utc(assignment.completed_at) + timedelta(days=days)

    def _validate_text(self, text: str) -> str:
        settings = self.uow.settings
        text = (text or "").strip()
        if not settings.review_text_min <= len(text) <= settings.review_text_max:
            raise ValidationFailed(
                f"Review text must be {settings.review_text_min}-{settings.review_text_max} "
                "characters",
                length=len(text),
            )
        return text

    @staticmethod
    def _validate_ratings(role: ReviewerRole, ratings: Mapping[str, int]) -> None:
        expected = set(CATEGORIES[role])
        provided = set(ratings)
        if provided != expected:
            raise ValidationFailed(
                "Ratings must cover exactly the categories for this reviewer",
                missing=sorted(expected - provided),
                unexpected=sorted(provided - expected),
            )
        for category, value in ratings.items():
            if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
                raise ValidationFailed(
                    "Each rating must be an integer from 1 to 5", category=category, value=value
                )


def _reviewer_role(assignment: Assignment, user_id: str) -> ReviewerRole | None:
    if user_id == assignment.owner_id:
        return ReviewerRole.EMPLOYER
    if assignment.worker_id is not None and user_id == assignment.worker_id:
        return ReviewerRole.EMPLOYEE
    return None
