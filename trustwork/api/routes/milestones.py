from __future__ import annotations

from fastapi import APIRouter, Depends

from trustwork.api.deps import get_unit_of_work
from trustwork.api.schemas.milestones import (
    MilestoneApproveRequest,
    MilestoneOut,
    MilestoneSubmitRequest,
    RevisionRequest,
)
from trustwork.domain.services import MilestoneService
from trustwork.infrastructure.repositories import UnitOfWork

router = APIRouter(prefix="/milestones", tags=["Milestones"])


@router.post("/{milestone_id}/submit", response_model=MilestoneOut)
async def submit_milestone(
    milestone_id: str,
    payload: MilestoneSubmitRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> MilestoneOut:
    milestone = await MilestoneService(uow).submit(
        milestone_id, files=payload.files, links=payload.links, notes=payload.notes
    )
    return MilestoneOut.model_validate(milestone)


@router.post("/{milestone_id}/approve", response_model=MilestoneOut)
async def approve_milestone(
    milestone_id: str,
    payload: MilestoneApproveRequest | None = None,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> MilestoneOut:
    notes = payload.notes if payload else None
    milestone = await MilestoneService(uow).approve(milestone_id, notes)
    return MilestoneOut.model_validate(milestone)


@router.post("/{milestone_id}/revision", response_model=MilestoneOut)
async def request_revision(
    milestone_id: str,
    payload: RevisionRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> MilestoneOut:
    milestone = await MilestoneService(uow).request_revision(milestone_id, payload.notes)
    return MilestoneOut.model_validate(milestone)


@router.post("/{milestone_id}/release", response_model=MilestoneOut)
async def release_payment(
    milestone_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> MilestoneOut:
    milestone = await MilestoneService(uow).release_payment(milestone_id)
    return MilestoneOut.model_validate(milestone)
