from __future__ import annotations

import pytest

from trustwork.core.clock import FrozenClock
from trustwork.core.errors import (
    AlreadyCompleted,
    IllegalTransition,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from trustwork.domain.services import ReviewService
from trustwork.domain.services.reviews import mean_rating, overall_rating
from trustwork.infrastructure.db.models import Profile, ReviewerRole

from tests.conftest import MakeUow
from tests.utils import (
    EMPLOYER,
    EMPLOYER_RATINGS,
    REVIEW_TEXT,
    SEEKER,
    SEEKER_2,
    WORKER_RATINGS,
    complete_engagement,
    start_engagement,
)


@pytest.mark.parametrize(
    ("ratings", "expected"),
    [
        ({"a": 5, "b": 4, "c": 4, "d": 4}, 4.3),
        ({"a": 4, "b": 4, "c": 3, "d": 5}, 4.0),
        ({"a": 1, "b": 2, "c": 2, "d": 2}, 1.8),
        ({"a": 5, "b": 5, "c": 5, "d": 5}, 5.0),
    ],
)
def test_overall_rating_rounds_half_up(ratings: dict[str, int], expected: float) -> None:
    assert overall_rating(ratings) == expected


def test_mean_rating() -> None:
    assert mean_rating([]) == 0.0
    assert mean_rating([4.3]) == 4.3
    assert mean_rating([4.3, 4.0]) == 4.15
    assert mean_rating([4.3, 4.3, 3.8, 4.5]) == 4.23


@pytest.mark.asyncio
async def test_review_window_boundary(make_uow: MakeUow, clock: FrozenClock) -> None:
    gig_id = await complete_engagement(make_uow)
    employer = ReviewService(make_uow(EMPLOYER))

    clock.advance(days=30, seconds=-1)
    review = await employer.create_review(
        gig_id, ratings=EMPLOYER_RATINGS, text=REVIEW_TEXT, would_recommend=True
    )

    assert review.overall_rating == 4.3
    assert review.reviewer_role == ReviewerRole.EMPLOYER
    assert review.reviewee_id == SEEKER

    with pytest.raises(AlreadyCompleted):
        await employer.create_review(
            gig_id, ratings=EMPLOYER_RATINGS, text=REVIEW_TEXT, would_recommend=True
        )

    clock.advance(seconds=2)
    worker = ReviewService(make_uow(SEEKER))
    with pytest.raises(ValidationFailed):
        await worker.create_review(
            gig_id, ratings=WORKER_RATINGS, text=REVIEW_TEXT, would_recommend=True
        )
    eligibility = await worker.can_review(gig_id)
    assert eligibility.reason == "window_closed"


@pytest.mark.asyncio
async def test_can_review_reasons(make_uow: MakeUow) -> None:
    running, _ = await start_engagement(make_uow)
    assert (await ReviewService(make_uow(EMPLOYER)).can_review(running)).reason == (
        "not_completed"
    )

    done = await complete_engagement(make_uow, worker=SEEKER_2)
    outsider = ReviewService(make_uow(SEEKER))
    assert (await outsider.can_review(done)).reason == "not_participant"

    worker = ReviewService(make_uow(SEEKER_2))
    before = await worker.can_review(done)
    assert before.allowed is True
    assert before.reviewer_role == ReviewerRole.EMPLOYEE
    await worker.create_review(
        done, ratings=WORKER_RATINGS, text=REVIEW_TEXT, would_recommend=False
    )
    assert (await worker.can_review(done)).reason == "already_reviewed"


@pytest.mark.asyncio
async def test_reviews_need_completed_assignment_and_participant(make_uow: MakeUow) -> None:
    running, _ = await start_engagement(make_uow)
    with pytest.raises(IllegalTransition):
        await ReviewService(make_uow(EMPLOYER)).create_review(
            running, ratings=EMPLOYER_RATINGS, text=REVIEW_TEXT, would_recommend=True
        )

    done = await complete_engagement(make_uow, worker=SEEKER_2)
    with pytest.raises(Unauthorized):
        await ReviewService(make_uow(SEEKER)).create_review(
            done, ratings=WORKER_RATINGS, text=REVIEW_TEXT, would_recommend=True
        )


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["Too short to count.", "x" * 501, " " * 120])
    async def test_text_length(self, make_uow: MakeUow, text: str) -> None:
        gig_id = await complete_engagement(make_uow)

        with pytest.raises(ValidationFailed):
            await ReviewService(make_uow(EMPLOYER)).create_review(
                gig_id, ratings=EMPLOYER_RATINGS, text=text, would_recommend=True
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "ratings",
        [
            WORKER_RATINGS,
            {**EMPLOYER_RATINGS, "technical_skills": 6},
            {**EMPLOYER_RATINGS, "communication": 0},
            {**EMPLOYER_RATINGS, "work_quality": 3.5},
            {k: v for k, v in EMPLOYER_RATINGS.items() if k != "professionalism"},
        ],
    )
    async def test_ratings_must_match_reviewer_categories(
        self, make_uow: MakeUow, ratings: dict
    ) -> None:
        gig_id = await complete_engagement(make_uow)

        with pytest.raises(ValidationFailed):
            await ReviewService(make_uow(EMPLOYER)).create_review(
                gig_id, ratings=ratings, text=REVIEW_TEXT, would_recommend=True
            )


@pytest.mark.asyncio
async def test_reviews_project_onto_profiles(make_uow: MakeUow, clock: FrozenClock) -> None:
    gig_id = await complete_engagement(make_uow)
    await ReviewService(make_uow(EMPLOYER)).create_review(
        gig_id, ratings=EMPLOYER_RATINGS, text=REVIEW_TEXT, would_recommend=True
    )
    clock.advance(days=1)
    await ReviewService(make_uow(SEEKER)).create_review(
        gig_id, ratings=WORKER_RATINGS, text=REVIEW_TEXT, would_recommend=False
    )

    reader = make_uow(SEEKER_2)
    worker_profile = await reader.run(reader.store.get, Profile, SEEKER)
    employer_profile = await reader.run(reader.store.get, Profile, EMPLOYER)

    assert worker_profile.average_rating == 4.3
    assert worker_profile.as_worker_rating == 4.3
    assert worker_profile.as_worker_review_count == 1
    assert worker_profile.as_employer_review_count == 0
    assert employer_profile.average_rating == 4.0
    assert employer_profile.as_employer_rating == 4.0
    assert employer_profile.review_count == 1


@pytest.mark.asyncio
async def test_rating_summary_aggregates_received_reviews(
    make_uow: MakeUow, clock: FrozenClock
) -> None:
    first = await complete_engagement(make_uow)
    second = await complete_engagement(make_uow)
    employer = ReviewService(make_uow(EMPLOYER))
    await employer.create_review(
        first, ratings=EMPLOYER_RATINGS, text=REVIEW_TEXT, would_recommend=True
    )
    clock.advance(hours=1)
    await employer.create_review(
        second,
        ratings={**EMPLOYER_RATINGS, "technical_skills": 3},
        text=REVIEW_TEXT,
        would_recommend=False,
    )

    public = ReviewService(make_uow(SEEKER_2))
    summary = await public.rating_summary(SEEKER)
    received = await public.reviews_for_user(SEEKER)

    assert summary.review_count == 2
    assert summary.average_rating == 4.05
    assert summary.recommend_rate == 0.5
    assert summary.category_averages["technical_skills"] == 4.0
    assert summary.category_averages["communication"] == 4.0
    assert [r.assignment_id for r in received] == [second, first]


@pytest.mark.asyncio
async def test_profile_average_does_not_drift_across_reviews(
    make_uow: MakeUow, clock: FrozenClock
) -> None:
    # Overall ratings 4.3, 4.3, 3.8, 4.5: the true mean 4.225 rounds to 4.23
    ratings = [
        EMPLOYER_RATINGS,
        EMPLOYER_RATINGS,
        {**EMPLOYER_RATINGS, "technical_skills": 3},
        {**EMPLOYER_RATINGS, "communication": 5},
    ]
    gigs = [await complete_engagement(make_uow) for _ in ratings]
    for gig_id, review_ratings in zip(gigs, ratings, strict=True):
        clock.advance(minutes=1)
        await ReviewService(make_uow(EMPLOYER)).create_review(
            gig_id, ratings=review_ratings, text=REVIEW_TEXT, would_recommend=True
        )

    reader = make_uow(SEEKER_2)
    profile = await reader.run(reader.store.get, Profile, SEEKER)

    assert profile.review_count == 4
    assert profile.average_rating == 4.23
    assert profile.as_worker_rating == 4.23
    assert profile.as_worker_review_count == 4
    assert profile.as_employer_rating == 0.0


@pytest.mark.asyncio
async def test_reviews_for_assignment_lists_both_sides_in_order(
    make_uow: MakeUow, clock: FrozenClock
) -> None:
    gig_id = await complete_engagement(make_uow)
    other_gig = await complete_engagement(make_uow)
    await ReviewService(make_uow(EMPLOYER)).create_review(
        gig_id, ratings=EMPLOYER_RATINGS, text=REVIEW_TEXT, would_recommend=True
    )
    await ReviewService(make_uow(EMPLOYER)).create_review(
        other_gig, ratings=EMPLOYER_RATINGS, text=REVIEW_TEXT, would_recommend=True
    )
    clock.advance(hours=3)
    await ReviewService(make_uow(SEEKER)).create_review(
        gig_id, ratings=WORKER_RATINGS, text=REVIEW_TEXT, would_recommend=False
    )

    public = ReviewService(make_uow(SEEKER_2))
    reviews = await public.reviews_for_assignment(gig_id)

    assert [r.reviewer_role for r in reviews] == [ReviewerRole.EMPLOYER, ReviewerRole.EMPLOYEE]
    assert {r.assignment_id for r in reviews} == {gig_id}
    with pytest.raises(NotFound):
        await public.reviews_for_assignment("gig-missing")
