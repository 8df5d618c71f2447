from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from trustwork.api.schemas.assignments import AssignmentOut
from trustwork.infrastructure.db.models import ApplicationStatus


class ApplicationCreateRequest(BaseModel):
    assignment_id: str
    proposal: str = ""
    bid_amount: float | None = None
    estimated_days: int | None = None


class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    assignment_id: str
    applicant_id: str
    employer_id: str
    proposal: str
    bid_amount: float | None = None
    estimated_days: int | None = None
    attempt_id: str | None = None
    status: ApplicationStatus
    viewed_by_employer: bool
    frozen: bool
    created_at: datetime
    decided_at: datetime | None = None


class AcceptResponse(BaseModel):
    application: ApplicationOut
    assignment: AssignmentOut
    rejected_ids: list[str] = Field(default_factory=list)
