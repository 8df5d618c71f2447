from __future__ import annotations

from fastapi import APIRouter, Depends, status

from trustwork.api.deps import get_unit_of_work
from trustwork.api.schemas.applications import ApplicationOut
from trustwork.api.schemas.assignments import (
    AssignmentCreateRequest,
    AssignmentOut,
    CancelRequest,
    CanApplyResponse,
    CompleteRequest,
    StartWorkRequest,
    StatusHistoryOut,
    TimelineEventOut,
    WorkflowResponse,
)
from trustwork.api.schemas.milestones import (
    MilestoneCreateRequest,
    MilestoneOut,
    MilestoneSummaryResponse,
)
from trustwork.api.schemas.reviews import ReviewEligibilityResponse
from trustwork.domain.services import (
    ApplicationService,
    AssessmentEngine,
    AssignmentLifecycle,
    MilestoneDraft,
    MilestoneService,
    ReviewService,
    TimelineProjector,
)
from trustwork.infrastructure.db.models import Assignment
from trustwork.infrastructure.repositories import UnitOfWork

router = APIRouter(prefix="/assignments", tags=["Assignments"])


@router.post("", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: AssignmentCreateRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AssignmentOut:
    assignment = await AssignmentLifecycle(uow).create_assignment(**payload.model_dump())
    return AssignmentOut.model_validate(assignment)


@router.get("/{assignment_id}", response_model=AssignmentOut)
async def get_assignment(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AssignmentOut:
    assignment = await uow.run(uow.store.get, Assignment, assignment_id)
    return AssignmentOut.model_validate(assignment)


@router.delete("/{assignment_id}", response_model=AssignmentOut)
async def delete_assignment(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AssignmentOut:
    assignment = await AssignmentLifecycle(uow).soft_delete(assignment_id)
    return AssignmentOut.model_validate(assignment)


@router.post("/{assignment_id}/start", response_model=AssignmentOut)
async def start_work(
    assignment_id: str,
    payload: StartWorkRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AssignmentOut:
    assignment = await AssignmentLifecycle(uow).start_work(assignment_id, payload.application_id)
    return AssignmentOut.model_validate(assignment)


@router.post("/{assignment_id}/complete", response_model=AssignmentOut)
async def complete_assignment(
    assignment_id: str,
    payload: CompleteRequest | None = None,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AssignmentOut:
    notes = payload.notes if payload else None
    assignment = await AssignmentLifecycle(uow).complete(assignment_id, notes)
    return AssignmentOut.model_validate(assignment)


@router.post("/{assignment_id}/cancel", response_model=AssignmentOut)
async def cancel_assignment(
    assignment_id: str,
    payload: CancelRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AssignmentOut:
    assignment = await AssignmentLifecycle(uow).cancel(assignment_id, payload.reason)
    return AssignmentOut.model_validate(assignment)


@router.get("/{assignment_id}/history", response_model=list[StatusHistoryOut])
async def assignment_history(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[StatusHistoryOut]:
    entries = await AssignmentLifecycle(uow).status_history(assignment_id)
    return [StatusHistoryOut.model_validate(entry) for entry in entries]


@router.get("/{assignment_id}/workflow", response_model=WorkflowResponse)
async def assignment_workflow(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> WorkflowResponse:
    state = await AssignmentLifecycle(uow).workflow_state(assignment_id)
    return WorkflowResponse(
        assignment_id=state.assignment_id,
        status=state.status,
        can_start=state.can_start,
        can_complete=state.can_complete,
        can_cancel=state.can_cancel,
        can_review=state.can_review,
        next_statuses=state.next_statuses,
    )


@router.get("/{assignment_id}/timeline", response_model=list[TimelineEventOut])
async def assignment_timeline(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[TimelineEventOut]:
    events = await TimelineProjector(uow).project(assignment_id)
    return [
        TimelineEventOut(
            at=event.at,
            kind=event.kind,
            actor=event.actor,
            source_id=event.source_id,
            payload=event.payload,
        )
        for event in events
    ]


@router.get("/{assignment_id}/can-apply", response_model=CanApplyResponse)
async def can_apply(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> CanApplyResponse:
    decision = await AssessmentEngine(uow).can_apply(uow.actor.user_id, assignment_id)
    return CanApplyResponse(
        allowed=decision.allowed,
        reason=decision.reason,
        required_score=decision.required_score,
        attempt_id=decision.attempt_id,
    )


@router.get("/{assignment_id}/applications", response_model=list[ApplicationOut])
async def list_applications(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[ApplicationOut]:
    applications = await ApplicationService(uow).list_for_assignment(assignment_id)
    return [ApplicationOut.model_validate(application) for application in applications]


@router.get("/{assignment_id}/applications/stats", response_model=dict[str, int])
async def application_stats(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> dict[str, int]:
    return await ApplicationService(uow).stats(assignment_id)


@router.post(
    "/{assignment_id}/milestones",
    response_model=list[MilestoneOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_milestones(
    assignment_id: str,
    payload: MilestoneCreateRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[MilestoneOut]:
    drafts = [MilestoneDraft(**draft.model_dump()) for draft in payload.milestones]
    milestones = await MilestoneService(uow).create_milestones(assignment_id, drafts)
    return [MilestoneOut.model_validate(milestone) for milestone in milestones]


@router.get("/{assignment_id}/milestones", response_model=list[MilestoneOut])
async def list_milestones(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[MilestoneOut]:
    milestones = await MilestoneService(uow).list_for_assignment(assignment_id)
    return [MilestoneOut.model_validate(milestone) for milestone in milestones]


@router.get("/{assignment_id}/milestones/summary", response_model=MilestoneSummaryResponse)
async def milestone_summary(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> MilestoneSummaryResponse:
    summary = await MilestoneService(uow).summary(assignment_id)
    return MilestoneSummaryResponse(
        assignment_id=summary.assignment_id,
        total_amount=summary.total_amount,
        approved_amount=summary.approved_amount,
        released_amount=summary.released_amount,
        escrow_amount=summary.escrow_amount,
        percent_complete=summary.percent_complete,
        counts=summary.counts,
    )


@router.get("/{assignment_id}/review-eligibility", response_model=ReviewEligibilityResponse)
async def review_eligibility(
    assignment_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> ReviewEligibilityResponse:
    eligibility = await ReviewService(uow).can_review(assignment_id)
    return ReviewEligibilityResponse(
        allowed=eligibility.allowed,
        reason=eligibility.reason,
        window_end=eligibility.window_end,
        reviewer_role=eligibility.reviewer_role,
    )
