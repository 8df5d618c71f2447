from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, status

from trustwork.api.deps import get_unit_of_work
from trustwork.api.schemas.attempts import (
    AnswerRequest,
    AnswerResponse,
    AttemptDetailResponse,
    AttemptOut,
    AttemptStartRequest,
    AttemptStartResponse,
    AttemptSubmitResponse,
    ChargeOut,
    EligibilityResponse,
    IntegritySignalRequest,
    QuestionOut,
    ReviewItemOut,
    VoucherOut,
)
from trustwork.domain.services import AssessmentEngine
from trustwork.domain.services.assessments import QuestionView
from trustwork.infrastructure.repositories import UnitOfWork

router = APIRouter(prefix="/attempts", tags=["Attempts"])
logger = structlog.get_logger()


def _questions(views: list[QuestionView]) -> list[QuestionOut]:
    return [
        QuestionOut(
            position=view.position,
            question_id=view.question_id,
            prompt=view.prompt,
            options=view.options,
            chosen_letter=view.chosen_letter,
        )
        for view in views
    ]


@router.post("", response_model=AttemptStartResponse, status_code=status.HTTP_201_CREATED)
async def start_attempt(
    payload: AttemptStartRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AttemptStartResponse:
    engine = AssessmentEngine(uow)
    result = await engine.start(
        uow.actor.user_id,
        payload.template_id,
        gig_id=payload.gig_id,
        voucher_id=payload.voucher_id,
    )
    charge = None
    if result.charge is not None:
        charge = ChargeOut(
            base_amount=result.charge.base_amount,
            charged=result.charge.charged,
            discount=result.charge.discount,
            voucher_id=result.charge.voucher_id,
        )
    return AttemptStartResponse(
        attempt=AttemptOut.model_validate(result.attempt),
        questions=_questions(result.questions),
        balance=result.balance,
        charge=charge,
    )


@router.get("", response_model=list[AttemptOut])
async def list_attempts(
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[AttemptOut]:
    attempts = await AssessmentEngine(uow).attempt_history(uow.actor.user_id)
    return [AttemptOut.model_validate(attempt) for attempt in attempts]


@router.get("/eligibility", response_model=EligibilityResponse)
async def attempt_eligibility(
    template_id: str = Query(...),
    gig_id: str | None = Query(None),
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> EligibilityResponse:
    eligibility = await AssessmentEngine(uow).can_attempt(
        uow.actor.user_id, template_id, gig_id
    )
    return EligibilityResponse(
        allowed=eligibility.allowed,
        reason=eligibility.reason,
        next_allowed_at=eligibility.next_allowed_at,
    )


@router.get("/{attempt_id}", response_model=AttemptDetailResponse)
async def get_attempt(
    attempt_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AttemptDetailResponse:
    view = await AssessmentEngine(uow).get_attempt(attempt_id)
    return AttemptDetailResponse(
        attempt=AttemptOut.model_validate(view.attempt),
        questions=_questions(view.questions),
        remaining_seconds=view.remaining_seconds,
    )


@router.post("/{attempt_id}/answer", response_model=AnswerResponse)
async def answer_question(
    attempt_id: str,
    payload: AnswerRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AnswerResponse:
    slot = await AssessmentEngine(uow).answer(attempt_id, payload.position, payload.letter)
    return AnswerResponse(
        attempt_id=attempt_id,
        position=slot.position,
        chosen_letter=slot.chosen_letter,
        answered_at=slot.answered_at,
    )


@router.post("/{attempt_id}/signal", response_model=AttemptOut)
async def signal_integrity_event(
    attempt_id: str,
    payload: IntegritySignalRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AttemptOut:
    attempt = await AssessmentEngine(uow).signal_integrity_event(attempt_id, payload.kind.value)
    await logger.ainfo("integrity_signal", attempt_id=attempt_id, kind=payload.kind.value)
    return AttemptOut.model_validate(attempt)


@router.post("/{attempt_id}/submit", response_model=AttemptSubmitResponse)
async def submit_attempt(
    attempt_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> AttemptSubmitResponse:
    result = await AssessmentEngine(uow).submit(attempt_id)
    return AttemptSubmitResponse(
        attempt=AttemptOut.model_validate(result.attempt),
        excellent=bool(result.card and result.card.excellent),
        balance=result.balance,
        voucher=VoucherOut.model_validate(result.voucher) if result.voucher else None,
    )


@router.get("/{attempt_id}/review", response_model=list[ReviewItemOut])
async def review_attempt(
    attempt_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[ReviewItemOut]:
    items = await AssessmentEngine(uow).review_attempt(attempt_id)
    return [
        ReviewItemOut(
            position=item.position,
            prompt=item.prompt,
            options=item.options,
            chosen_letter=item.chosen_letter,
            correct_letter=item.correct_letter,
            is_correct=item.is_correct,
            explanation=item.explanation,
        )
        for item in items
    ]
