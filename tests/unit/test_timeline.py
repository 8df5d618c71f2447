from __future__ import annotations

from datetime import timedelta

import pytest

from trustwork.core.clock import FrozenClock
from trustwork.core.errors import Unauthorized
from trustwork.domain.services import (
    ApplicationService,
    AssignmentLifecycle,
    MilestoneDraft,
    MilestoneService,
    ReviewService,
    TimelineProjector,
)

from tests.conftest import MakeUow
from tests.utils import (
    ADMIN,
    EMPLOYER,
    EMPLOYER_RATINGS,
    REVIEW_TEXT,
    SEEKER,
    SEEKER_2,
    T0,
    apply_to,
    post_assignment,
)


async def _full_engagement(make_uow: MakeUow, clock: FrozenClock) -> tuple[str, str, str]:
    gig_id = await post_assignment(make_uow)
    hired = await apply_to(make_uow, gig_id, SEEKER)
    passed_over = await apply_to(make_uow, gig_id, SEEKER_2)
    await ApplicationService(make_uow(EMPLOYER)).accept(hired)

    employer = MilestoneService(make_uow(EMPLOYER))
    worker = MilestoneService(make_uow(SEEKER))
    (milestone,) = await employer.create_milestones(gig_id, [MilestoneDraft("Schema", 150.0)])
    clock.advance(hours=1)
    await worker.submit(milestone.id, links=["https://git.example.com/pr/3"])
    clock.advance(hours=1)
    await employer.approve(milestone.id)
    clock.advance(hours=1)
    await AssignmentLifecycle(make_uow(SEEKER)).complete(gig_id)
    clock.advance(hours=1)
    await ReviewService(make_uow(EMPLOYER)).create_review(
        gig_id, ratings=EMPLOYER_RATINGS, text=REVIEW_TEXT, would_recommend=True
    )
    return gig_id, hired, passed_over


@pytest.mark.asyncio
async def test_timeline_orders_by_time_then_source(
    make_uow: MakeUow, clock: FrozenClock
) -> None:
    gig_id, hired, passed_over = await _full_engagement(make_uow, clock)

    events = await TimelineProjector(make_uow(EMPLOYER)).project(gig_id)

    assert [(e.kind, e.at - T0) for e in events] == [
        ("status_changed", timedelta(0)),
        ("application_accepted", timedelta(0)),
        ("application_rejected", timedelta(0)),
        ("milestone_submitted", timedelta(hours=1)),
        ("milestone_approved", timedelta(hours=2)),
        ("status_changed", timedelta(hours=3)),
        ("review_created", timedelta(hours=4)),
    ]
    assert events[0].payload == {"from": "open", "to": "in_progress", "reason": None}
    assert events[1].payload["application_id"] == hired
    assert events[2].payload["applicant_id"] == SEEKER_2
    assert events[2].source_id == passed_over
    assert events[5].actor == SEEKER
    assert events[6].payload["overall_rating"] == 4.3


@pytest.mark.asyncio
async def test_timeline_is_rebuilt_identically(make_uow: MakeUow, clock: FrozenClock) -> None:
    gig_id, _, _ = await _full_engagement(make_uow, clock)

    first = await TimelineProjector(make_uow(SEEKER)).project(gig_id)
    second = await TimelineProjector(make_uow(SEEKER)).project(gig_id)

    assert first == second


@pytest.mark.asyncio
async def test_timeline_visibility(make_uow: MakeUow, clock: FrozenClock) -> None:
    gig_id, _, _ = await _full_engagement(make_uow, clock)

    with pytest.raises(Unauthorized):
        await TimelineProjector(make_uow(SEEKER_2)).project(gig_id)

    events = await TimelineProjector(make_uow(ADMIN, is_admin=True)).project(gig_id)
    assert len(events) == 7


@pytest.mark.asyncio
async def test_open_assignment_has_empty_timeline(make_uow: MakeUow) -> None:
    gig_id = await post_assignment(make_uow)
    await apply_to(make_uow, gig_id, SEEKER)

    assert await TimelineProjector(make_uow(EMPLOYER)).project(gig_id) == []
