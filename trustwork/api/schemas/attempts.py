from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from trustwork.infrastructure.db.models import AttemptState, IntegrityEventKind


class AttemptStartRequest(BaseModel):
    template_id: str
    gig_id: str | None = Field(None, description="Assignment the attempt is taken for")
    voucher_id: str | None = Field(None, description="Voucher applied to a paid retake")


class AnswerRequest(BaseModel):
    position: int = Field(..., ge=0)
    letter: str = Field(..., pattern="^[A-Da-d]$")


class IntegritySignalRequest(BaseModel):
    kind: IntegrityEventKind


class QuestionOut(BaseModel):
    position: int
    question_id: str
    prompt: str
    options: dict[str, str]
    chosen_letter: str | None = None


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    template_id: str
    gig_id: str | None = None
    state: AttemptState
    started_at: datetime
    deadline_at: datetime
    completed_at: datetime | None = None
    time_taken_seconds: int | None = None
    score: int | None = None
    correct_count: int | None = None
    total_count: int
    passed: bool | None = None
    passing_score: int
    integrity_reason: str | None = None
    charged_credits: int = 0


class ChargeOut(BaseModel):
    base_amount: int
    charged: int
    discount: int
    voucher_id: str | None = None


class AttemptStartResponse(BaseModel):
    attempt: AttemptOut
    questions: list[QuestionOut]
    balance: int
    charge: ChargeOut | None = None


class AttemptDetailResponse(BaseModel):
    attempt: AttemptOut
    questions: list[QuestionOut]
    remaining_seconds: int


class AnswerResponse(BaseModel):
    attempt_id: str
    position: int
    chosen_letter: str | None
    answered_at: datetime | None


class VoucherOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    percent: int
    issued_at: datetime
    expires_at: datetime
    redeemed_at: datetime | None = None
    source_attempt_id: str | None = None


class AttemptSubmitResponse(BaseModel):
    attempt: AttemptOut
    excellent: bool = False
    balance: int
    voucher: VoucherOut | None = None


class EligibilityResponse(BaseModel):
    allowed: bool
    reason: str
    next_allowed_at: datetime | None = None


class ReviewItemOut(BaseModel):
    position: int
    prompt: str
    options: dict[str, str]
    chosen_letter: str | None
    correct_letter: str
    is_correct: bool
    explanation: str
