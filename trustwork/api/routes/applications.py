from __future__ import annotations

from fastapi import APIRouter, Depends, status

from trustwork.api.deps import get_unit_of_work
from trustwork.api.schemas.applications import (
    AcceptResponse,
    ApplicationCreateRequest,
    ApplicationOut,
)
from trustwork.api.schemas.assignments import AssignmentOut
from trustwork.domain.services import ApplicationService
from trustwork.infrastructure.repositories import UnitOfWork

router = APIRouter(prefix="/applications", tags=["Applications"])


@router.post("", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
async def submit_application(
    payload: ApplicationCreateRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> ApplicationOut:
    application = await ApplicationService(uow).submit(
        payload.assignment_id,
        proposal=payload.proposal,
        bid_amount=payload.bid_amount,
        estimated_days=payload.estimated_days,
    )
    return ApplicationOut.model_validate(application)


@router.get("/mine", response_model=list[ApplicationOut])
async def my_applications(
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[ApplicationOut]:
    applications = await ApplicationService(uow).list_mine()
    return [ApplicationOut.model_validate(application) for application in applications]


@router.post("/{application_id}/view", response_model=ApplicationOut)
async def view_application(
    application_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> ApplicationOut:
    application = await ApplicationService(uow).view(application_id)
    return ApplicationOut.model_validate(application)


@router.post("/{application_id}/accept", response_model=AcceptResponse)
async def accept_application(
    application_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AcceptResponse:
    result = await ApplicationService(uow).accept(application_id)
    return AcceptResponse(
        application=ApplicationOut.model_validate(result.application),
        assignment=AssignmentOut.model_validate(result.assignment),
        rejected_ids=result.rejected_ids,
    )


@router.post("/{application_id}/reject", response_model=ApplicationOut)
async def reject_application(
    application_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> ApplicationOut:
    application = await ApplicationService(uow).reject(application_id)
    return ApplicationOut.model_validate(application)


@router.post("/{application_id}/withdraw", response_model=ApplicationOut)
async def withdraw_application(
    application_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> ApplicationOut:
    application = await ApplicationService(uow).withdraw(application_id)
    return ApplicationOut.model_validate(application)
