from __future__ import annotations

import pytest

from trustwork.core.clock import FrozenClock
from trustwork.core.errors import IllegalTransition, NotFound, Unauthorized, ValidationFailed
from trustwork.domain.services import (
    ApplicationService,
    AssessmentEngine,
    AssignmentLifecycle,
    MilestoneDraft,
    MilestoneService,
)
from trustwork.infrastructure.db.models import (
    Application,
    ApplicationStatus,
    Assignment,
    AssignmentStatus,
    Milestone,
    MilestoneStatus,
    OutboxEvent,
    Profile,
)

from tests.conftest import MakeUow
from tests.utils import (
    DEVELOPER,
    EMPLOYER,
    FOUNDATION,
    SEEKER,
    SEEKER_2,
    SEEKER_3,
    apply_to,
    complete_engagement,
    post_assignment,
    start_engagement,
)

CANCEL_REASON = "Client budget was withdrawn"


@pytest.mark.asyncio
async def test_accepting_one_application_rejects_the_rest(make_uow: MakeUow) -> None:
    gig_id = await post_assignment(make_uow)
    a = await apply_to(make_uow, gig_id, SEEKER)
    b = await apply_to(make_uow, gig_id, SEEKER_2)
    c = await apply_to(make_uow, gig_id, SEEKER_3)
    employer = make_uow(EMPLOYER)
    service = ApplicationService(employer)

    result = await service.accept(a)

    assert result.rejected_ids == sorted([b, c])
    assert result.assignment.status == AssignmentStatus.IN_PROGRESS
    assert result.assignment.worker_id == SEEKER
    statuses = {
        app.id: app.status for app in await service.list_for_assignment(gig_id)
    }
    assert statuses == {
        a: ApplicationStatus.ACCEPTED,
        b: ApplicationStatus.REJECTED,
        c: ApplicationStatus.REJECTED,
    }
    history = await AssignmentLifecycle(employer).status_history(gig_id)
    assert [(h.from_status, h.to_status) for h in history] == [
        (AssignmentStatus.OPEN, AssignmentStatus.IN_PROGRESS)
    ]
    assert history[0].actor_id == EMPLOYER

    with pytest.raises(IllegalTransition):
        await service.accept(b)


@pytest.mark.asyncio
async def test_start_work_is_idempotent_for_the_hired_worker(make_uow: MakeUow) -> None:
    gig_id, application_id = await start_engagement(make_uow)
    lifecycle = AssignmentLifecycle(make_uow(EMPLOYER))

    again = await lifecycle.start_work(gig_id, application_id)

    assert again.status == AssignmentStatus.IN_PROGRESS
    assert len(await lifecycle.status_history(gig_id)) == 1


@pytest.mark.asyncio
async def test_only_the_worker_completes(make_uow: MakeUow) -> None:
    gig_id, application_id = await start_engagement(make_uow)

    with pytest.raises(Unauthorized):
        await AssignmentLifecycle(make_uow(EMPLOYER)).complete(gig_id)

    worker = make_uow(SEEKER)
    done = await AssignmentLifecycle(worker).complete(gig_id, "Shipped v1")

    assert done.status == AssignmentStatus.COMPLETED
    assert done.completion_notes == "Shipped v1"
    profile = await worker.run(worker.store.get, Profile, SEEKER)
    assert profile.completed_engagements == 1
    application = await worker.run(worker.store.get, Application, application_id)
    assert application.frozen is True


@pytest.mark.asyncio
async def test_completed_engagement_unlocks_next_tier(make_uow: MakeUow) -> None:
    engine = AssessmentEngine(make_uow(SEEKER))
    assert (await engine.can_attempt(SEEKER, DEVELOPER)).reason == "unlock_not_met"

    await complete_engagement(make_uow)

    assert (await engine.can_attempt(SEEKER, DEVELOPER)).reason == "ok"


@pytest.mark.asyncio
async def test_repeated_transition_is_a_no_op(make_uow: MakeUow) -> None:
    gig_id = await complete_engagement(make_uow)
    lifecycle = AssignmentLifecycle(make_uow(SEEKER))

    await lifecycle.complete(gig_id)

    history = await lifecycle.status_history(gig_id)
    profile = await lifecycle.uow.run(lifecycle.store.get, Profile, SEEKER)
    assert [h.to_status for h in history] == [
        AssignmentStatus.IN_PROGRESS,
        AssignmentStatus.COMPLETED,
    ]
    assert profile.completed_engagements == 1


@pytest.mark.asyncio
async def test_terminal_states_reject_transitions(make_uow: MakeUow) -> None:
    open_gig = await post_assignment(make_uow)
    with pytest.raises(IllegalTransition):
        await AssignmentLifecycle(make_uow(EMPLOYER)).complete(open_gig)

    done = await complete_engagement(make_uow)
    with pytest.raises(IllegalTransition):
        await AssignmentLifecycle(make_uow(EMPLOYER)).cancel(done, CANCEL_REASON)


class TestCancel:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["too short", " " * 20, "x" * 501])
    async def test_reason_length_is_enforced(self, make_uow: MakeUow, reason: str) -> None:
        gig_id = await post_assignment(make_uow)

        with pytest.raises(ValidationFailed):
            await AssignmentLifecycle(make_uow(EMPLOYER)).cancel(gig_id, reason)

    @pytest.mark.asyncio
    async def test_cancelling_open_assignment_rejects_applications(
        self, make_uow: MakeUow
    ) -> None:
        gig_id = await post_assignment(make_uow)
        first = await apply_to(make_uow, gig_id, SEEKER)
        second = await apply_to(make_uow, gig_id, SEEKER_2)
        employer = make_uow(EMPLOYER)
        lifecycle = AssignmentLifecycle(employer)

        cancelled = await lifecycle.cancel(gig_id, CANCEL_REASON)

        assert cancelled.status == AssignmentStatus.CANCELLED
        assert cancelled.cancellation_reason == CANCEL_REASON
        for application_id in (first, second):
            application = await employer.run(employer.store.get, Application, application_id)
            assert application.status == ApplicationStatus.REJECTED
        history = await lifecycle.status_history(gig_id)
        assert history[-1].reason == CANCEL_REASON

        await lifecycle.cancel(gig_id, CANCEL_REASON)
        assert len(await lifecycle.status_history(gig_id)) == 1

    @pytest.mark.asyncio
    async def test_applicant_cannot_cancel_open_assignment(self, make_uow: MakeUow) -> None:
        gig_id = await post_assignment(make_uow)
        await apply_to(make_uow, gig_id, SEEKER)

        with pytest.raises(Unauthorized):
            await AssignmentLifecycle(make_uow(SEEKER)).cancel(gig_id, CANCEL_REASON)

    @pytest.mark.asyncio
    async def test_worker_cancel_keeps_approved_milestones(self, make_uow: MakeUow) -> None:
        gig_id, _ = await start_engagement(make_uow)
        employer = MilestoneService(make_uow(EMPLOYER))
        worker = MilestoneService(make_uow(SEEKER))
        first, second = await employer.create_milestones(
            gig_id, [MilestoneDraft("Schema", 100.0), MilestoneDraft("Endpoints", 250.0)]
        )
        await worker.submit(first.id, links=["https://git.example.com/pr/1"])
        await employer.approve(first.id)

        await AssignmentLifecycle(make_uow(SEEKER)).cancel(gig_id, CANCEL_REASON)

        milestones = await employer.list_for_assignment(gig_id)
        assert [m.status for m in milestones] == [
            MilestoneStatus.APPROVED,
            MilestoneStatus.CANCELLED,
        ]


class TestCreate:
    @pytest.mark.asyncio
    async def test_only_employers_post_assignments(self, make_uow: MakeUow) -> None:
        with pytest.raises(Unauthorized):
            await AssignmentLifecycle(make_uow(SEEKER)).create_assignment(title="Side project")

    @pytest.mark.asyncio
    async def test_required_template_fixes_difficulty(self, make_uow: MakeUow) -> None:
        lifecycle = AssignmentLifecycle(make_uow(EMPLOYER))

        gig = await lifecycle.create_assignment(
            title="  Data cleanup  ", required_template_id=FOUNDATION, budget_min=100
        )

        assert gig.title == "Data cleanup"
        assert gig.required_difficulty is not None
        assert gig.required_difficulty.value == "foundation"
        assert gig.status == AssignmentStatus.OPEN

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields",
        [
            {"title": ""},
            {"title": "Gig", "budget_min": 200, "budget_max": 100},
            {"title": "Gig", "budget_min": -1},
            {"title": "Gig", "passing_fraction_override": 0.9},
            {"title": "Gig", "required_template_id": FOUNDATION, "passing_fraction_override": 1.5},
        ],
    )
    async def test_invalid_fields_are_rejected(self, make_uow: MakeUow, fields: dict) -> None:
        with pytest.raises(ValidationFailed):
            await AssignmentLifecycle(make_uow(EMPLOYER)).create_assignment(**fields)


@pytest.mark.asyncio
async def test_workflow_state_reflects_actor_and_status(
    make_uow: MakeUow, clock: FrozenClock
) -> None:
    gig_id = await post_assignment(make_uow)
    owner_view = await AssignmentLifecycle(make_uow(EMPLOYER)).workflow_state(gig_id)

    assert owner_view.can_start and owner_view.can_cancel
    assert not owner_view.can_complete
    assert owner_view.next_statuses == ["cancelled", "in_progress"]

    done = await complete_engagement(make_uow)
    worker_view = await AssignmentLifecycle(make_uow(SEEKER)).workflow_state(done)
    assert worker_view.status == AssignmentStatus.COMPLETED
    assert worker_view.can_review is True
    assert worker_view.next_statuses == []

    clock.advance(days=31)
    late_view = await AssignmentLifecycle(make_uow(SEEKER)).workflow_state(done)
    assert late_view.can_review is False


@pytest.mark.asyncio
async def test_soft_deleted_assignment_is_hidden_from_others(make_uow: MakeUow) -> None:
    gig_id = await post_assignment(make_uow)
    owner = make_uow(EMPLOYER)

    await AssignmentLifecycle(owner).soft_delete(gig_id)

    stored = await owner.run(owner.store.get, Assignment, gig_id)
    assert stored.is_deleted is True
    other = make_uow(SEEKER)
    with pytest.raises(NotFound):
        await other.run(other.store.get, Assignment, gig_id)

    running, _ = await start_engagement(make_uow)
    with pytest.raises(IllegalTransition):
        await AssignmentLifecycle(make_uow(EMPLOYER)).soft_delete(running)


@pytest.mark.asyncio
async def test_transitions_queue_status_events(make_uow: MakeUow) -> None:
    gig_id = await complete_engagement(make_uow)

    system = make_uow("system")
    events = await system.run(
        system.store.query,
        OutboxEvent,
        OutboxEvent.aggregate_id == gig_id,
        order_by=OutboxEvent.id,
    )

    assert [e.event_type for e in events] == ["assignment.status-changed"] * 2
    assert [e.actor_id for e in events] == [EMPLOYER, SEEKER]


@pytest.mark.asyncio
async def test_milestones_require_running_assignment(make_uow: MakeUow) -> None:
    gig_id = await post_assignment(make_uow)

    with pytest.raises(IllegalTransition):
        await MilestoneService(make_uow(EMPLOYER)).create_milestones(
            gig_id, [MilestoneDraft("Schema", 100.0)]
        )

    system = make_uow("system")
    assert await system.run(system.store.query, Milestone) == []
