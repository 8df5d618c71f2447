from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from trustwork.api.deps import issue_smoke_token
from trustwork.core.auth import Role
from trustwork.domain.services import (
    ApplicationService,
    AssessmentEngine,
    AssignmentLifecycle,
)
from trustwork.infrastructure.db.models import AttemptQuestion
from trustwork.infrastructure.repositories import UnitOfWork

T0 = datetime(2025, 1, 6, 9, 0, tzinfo=UTC)

SEEKER = "seeker-1"
SEEKER_2 = "seeker-2"
SEEKER_3 = "seeker-3"
EMPLOYER = "employer-1"
ADMIN = "admin-1"

FOUNDATION = "tpl-python-foundation"
DEVELOPER = "tpl-python-developer"

REVIEW_TEXT = (
    "Delivered every milestone on schedule, communicated blockers early and left the "
    "codebase cleaner than it was at the start. Would happily work together again."
)

EMPLOYER_RATINGS = {
    "technical_skills": 5,
    "communication": 4,
    "work_quality": 4,
    "professionalism": 4,
}

WORKER_RATINGS = {
    "work_environment": 4,
    "management": 4,
    "compensation": 3,
    "career_growth": 5,
}


def auth_headers(user_id: str = "seeker-1", role: Role = Role.JOB_SEEKER) -> dict[str, str]:
    token = issue_smoke_token(user_id, role=role, email=f"{user_id}@example.com")
    return {"Authorization": f"Bearer {token}"}


def wrong_letter(letter: str) -> str:
    return "B" if letter == "A" else "A"


async def answer_key(uow: UnitOfWork, attempt_id: str) -> list[str]:
    """Displayed correct letter of every slot, in position order."""
    slots = await uow.run(
        uow.store.query,
        AttemptQuestion,
        AttemptQuestion.attempt_id == attempt_id,
        order_by=AttemptQuestion.position,
    )
    return [slot.displayed_correct_letter for slot in slots]


async def answer_with_score(
    engine: AssessmentEngine, uow: UnitOfWork, attempt_id: str, correct: int
) -> None:
    """Answer the first ``correct`` slots right and the rest wrong."""
    key = await answer_key(uow, attempt_id)
    for position, letter in enumerate(key):
        chosen = letter if position < correct else wrong_letter(letter)
        await engine.answer(attempt_id, position, chosen)


async def post_assignment(make_uow: Callable[..., UnitOfWork], **fields: object) -> str:
    fields.setdefault("title", "Build a billing API")
    assignment = await AssignmentLifecycle(make_uow(EMPLOYER)).create_assignment(**fields)
    return assignment.id


async def apply_to(
    make_uow: Callable[..., UnitOfWork], assignment_id: str, applicant: str
) -> str:
    service = ApplicationService(make_uow(applicant))
    application = await service.submit(assignment_id, proposal=f"Proposal from {applicant}")
    return application.id


async def start_engagement(
    make_uow: Callable[..., UnitOfWork], worker: str = SEEKER
) -> tuple[str, str]:
    """Post an ungated assignment and hire ``worker``; returns assignment and application ids."""
    assignment_id = await post_assignment(make_uow)
    application_id = await apply_to(make_uow, assignment_id, worker)
    await ApplicationService(make_uow(EMPLOYER)).accept(application_id)
    return assignment_id, application_id


async def complete_engagement(
    make_uow: Callable[..., UnitOfWork], worker: str = SEEKER
) -> str:
    assignment_id, _ = await start_engagement(make_uow, worker)
    await AssignmentLifecycle(make_uow(worker)).complete(assignment_id, "All delivered")
    return assignment_id
