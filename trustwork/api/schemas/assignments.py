from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from trustwork.infrastructure.db.models import AssignmentStatus, Difficulty


class AssignmentCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    budget_min: float | None = Field(None, ge=0)
    budget_max: float | None = Field(None, ge=0)
    required_template_id: str | None = None
    required_difficulty: Difficulty | None = None
    passing_fraction_override: float | None = Field(None, gt=0, le=1)


class StartWorkRequest(BaseModel):
    application_id: str


class CompleteRequest(BaseModel):
    notes: str | None = None


class CancelRequest(BaseModel):
    reason: str


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    title: str
    description: str
    budget_min: float | None = None
    budget_max: float | None = None
    required_template_id: str | None = None
    required_difficulty: Difficulty | None = None
    passing_fraction_override: float | None = None
    status: AssignmentStatus
    worker_id: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    completion_notes: str | None = None


class StatusHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    from_status: AssignmentStatus
    to_status: AssignmentStatus
    actor_id: str
    reason: str | None = None
    created_at: datetime


class WorkflowResponse(BaseModel):
    assignment_id: str
    status: AssignmentStatus
    can_start: bool
    can_complete: bool
    can_cancel: bool
    can_review: bool
    next_statuses: list[str]


class TimelineEventOut(BaseModel):
    at: datetime
    kind: str
    actor: str
    source_id: str
    payload: dict[str, Any] = Field(default_factory=dict)


class CanApplyResponse(BaseModel):
    allowed: bool
    reason: str
    required_score: int | None = None
    attempt_id: str | None = None
