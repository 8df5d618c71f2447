from __future__ import annotations

from datetime import timedelta

import pytest

from trustwork.core.clock import FrozenClock, as_utc
from trustwork.core.errors import (
    AlreadyCompleted,
    IllegalTransition,
    RevisionsExhausted,
    Unauthorized,
    ValidationFailed,
)
from trustwork.domain.services import AssignmentLifecycle, MilestoneDraft, MilestoneService
from trustwork.infrastructure.db.models import (
    MilestoneEvent,
    MilestoneEventKind,
    MilestoneStatus,
)

from tests.conftest import MakeUow
from tests.utils import EMPLOYER, SEEKER, SEEKER_2, T0, start_engagement

LINK = "https://git.example.com/acme/billing/pull/7"


async def _running_milestone(
    make_uow: MakeUow, **draft: object
) -> tuple[str, str, MilestoneService, MilestoneService]:
    gig_id, _ = await start_engagement(make_uow)
    employer = MilestoneService(make_uow(EMPLOYER))
    worker = MilestoneService(make_uow(SEEKER))
    draft.setdefault("title", "API skeleton")
    draft.setdefault("amount", 400.0)
    (milestone,) = await employer.create_milestones(gig_id, [MilestoneDraft(**draft)])
    return gig_id, milestone.id, employer, worker


@pytest.mark.asyncio
async def test_revision_cap_then_approval(make_uow: MakeUow) -> None:
    _, milestone_id, employer, worker = await _running_milestone(make_uow, max_revisions=2)

    await worker.submit(milestone_id, links=[LINK])
    await employer.request_revision(milestone_id, "Missing pagination")
    await worker.submit(milestone_id, links=[LINK])
    revised = await employer.request_revision(milestone_id, "Tests fail on CI")
    assert revised.status == MilestoneStatus.REVISION_REQUESTED
    assert revised.revision_count == 1

    third = await worker.submit(milestone_id, files=["report.pdf"], notes="Final pass")
    assert third.revision_count == 2
    assert third.submission_count == 3

    with pytest.raises(RevisionsExhausted):
        await employer.request_revision(milestone_id, "One more tweak")

    approved = await employer.approve(milestone_id, "Looks great")
    assert approved.status == MilestoneStatus.APPROVED
    assert approved.client_notes == "Looks great"


@pytest.mark.asyncio
async def test_default_revision_budget(make_uow: MakeUow) -> None:
    gig_id, _, employer, _ = await _running_milestone(make_uow)

    milestones = await employer.list_for_assignment(gig_id)

    assert milestones[0].max_revisions == 2
    assert milestones[0].revision_count == 0
    assert milestones[0].position == 0


@pytest.mark.asyncio
async def test_submission_needs_file_or_link(make_uow: MakeUow) -> None:
    _, milestone_id, _, worker = await _running_milestone(make_uow)

    with pytest.raises(ValidationFailed):
        await worker.submit(milestone_id, files=["", "  "], notes="nothing attached")


@pytest.mark.asyncio
async def test_roles_are_enforced(make_uow: MakeUow) -> None:
    gig_id, milestone_id, employer, worker = await _running_milestone(make_uow)

    with pytest.raises(Unauthorized):
        await employer.submit(milestone_id, links=[LINK])
    await worker.submit(milestone_id, links=[LINK])
    with pytest.raises(Unauthorized):
        await worker.approve(milestone_id)
    with pytest.raises(Unauthorized):
        await MilestoneService(make_uow(SEEKER)).create_milestones(
            gig_id, [MilestoneDraft("Extra", 10.0)]
        )
    with pytest.raises(Unauthorized):
        await MilestoneService(make_uow(SEEKER_2)).list_for_assignment(gig_id)


@pytest.mark.asyncio
async def test_review_requires_submission(make_uow: MakeUow) -> None:
    _, milestone_id, employer, worker = await _running_milestone(make_uow)

    with pytest.raises(IllegalTransition):
        await employer.approve(milestone_id)
    await worker.submit(milestone_id, links=[LINK])
    with pytest.raises(IllegalTransition):
        await worker.submit(milestone_id, links=[LINK])
    with pytest.raises(ValidationFailed):
        await employer.request_revision(milestone_id, "   ")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "drafts",
    [[], [MilestoneDraft(" ", 10.0)], [MilestoneDraft("Docs", -1.0)]],
)
async def test_invalid_drafts_are_rejected(make_uow: MakeUow, drafts: list) -> None:
    gig_id, _ = await start_engagement(make_uow)

    with pytest.raises(ValidationFailed):
        await MilestoneService(make_uow(EMPLOYER)).create_milestones(gig_id, drafts)


@pytest.mark.asyncio
async def test_payment_release(make_uow: MakeUow, clock: FrozenClock) -> None:
    _, milestone_id, employer, worker = await _running_milestone(make_uow)
    await worker.submit(milestone_id, links=[LINK])

    with pytest.raises(IllegalTransition):
        await employer.release_payment(milestone_id)

    await employer.approve(milestone_id)
    clock.advance(hours=1)
    paid = await employer.release_payment(milestone_id)

    assert paid.payment_released is True
    assert as_utc(paid.payment_released_at) == T0 + timedelta(hours=1)
    with pytest.raises(AlreadyCompleted):
        await employer.release_payment(milestone_id)


@pytest.mark.asyncio
async def test_payment_can_be_released_after_completion(make_uow: MakeUow) -> None:
    gig_id, milestone_id, employer, worker = await _running_milestone(make_uow)
    await worker.submit(milestone_id, links=[LINK])
    await employer.approve(milestone_id)
    await AssignmentLifecycle(make_uow(SEEKER)).complete(gig_id)

    paid = await employer.release_payment(milestone_id)

    assert paid.payment_released is True


@pytest.mark.asyncio
async def test_summary_tracks_escrow(make_uow: MakeUow) -> None:
    gig_id, _ = await start_engagement(make_uow)
    employer = MilestoneService(make_uow(EMPLOYER))
    worker = MilestoneService(make_uow(SEEKER))
    design, build, launch = await employer.create_milestones(
        gig_id,
        [
            MilestoneDraft("Design", 100.1),
            MilestoneDraft("Build", 200.2),
            MilestoneDraft("Launch", 300.3),
        ],
    )
    for milestone in (design, build):
        await worker.submit(milestone.id, links=[LINK])
        await employer.approve(milestone.id)
    await employer.release_payment(design.id)

    summary = await employer.summary(gig_id)

    assert summary.total_amount == 600.6
    assert summary.approved_amount == 300.3
    assert summary.released_amount == 100.1
    assert summary.escrow_amount == 500.5
    assert summary.percent_complete == 66.7
    assert summary.counts == {"approved": 2, "pending": 1}
    assert [m.position for m in await worker.list_for_assignment(gig_id)] == [0, 1, 2]
    assert launch.status == MilestoneStatus.PENDING


@pytest.mark.asyncio
async def test_each_step_is_recorded_as_an_event(make_uow: MakeUow) -> None:
    _, milestone_id, employer, worker = await _running_milestone(make_uow)
    await worker.submit(milestone_id, links=[LINK])
    await employer.request_revision(milestone_id, "Add docs")
    await worker.submit(milestone_id, links=[LINK])
    await employer.approve(milestone_id)
    await employer.release_payment(milestone_id)

    events = await worker.uow.run(
        worker.store.query,
        MilestoneEvent,
        MilestoneEvent.milestone_id == milestone_id,
        order_by=MilestoneEvent.id,
    )

    assert [(e.kind, e.actor_id) for e in events] == [
        (MilestoneEventKind.SUBMITTED, SEEKER),
        (MilestoneEventKind.REVISION_REQUESTED, EMPLOYER),
        (MilestoneEventKind.SUBMITTED, SEEKER),
        (MilestoneEventKind.APPROVED, EMPLOYER),
        (MilestoneEventKind.PAYMENT_RELEASED, EMPLOYER),
    ]
