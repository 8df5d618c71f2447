from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from trustwork.infrastructure.db.models import MilestoneStatus


class MilestoneDraftIn(BaseModel):
    title: str
    amount: float
    description: str | None = None
    due_date: datetime | None = None
    max_revisions: int | None = None


class MilestoneCreateRequest(BaseModel):
    milestones: list[MilestoneDraftIn] = Field(..., min_length=1)


class MilestoneSubmitRequest(BaseModel):
    files: list[str] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)
    notes: str | None = None


class MilestoneApproveRequest(BaseModel):
    notes: str | None = None


class RevisionRequest(BaseModel):
    notes: str


class MilestoneOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    assignment_id: str
    position: int
    title: str
    description: str | None = None
    amount: float
    due_date: datetime | None = None
    max_revisions: int
    revision_count: int
    submission_count: int
    status: MilestoneStatus
    client_notes: str | None = None
    submission: dict[str, Any] | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    payment_released: bool
    payment_released_at: datetime | None = None


class MilestoneSummaryResponse(BaseModel):
    assignment_id: str
    total_amount: float
    approved_amount: float
    released_amount: float
    escrow_amount: float
    percent_complete: float
    counts: dict[str, int]
