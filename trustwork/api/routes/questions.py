"""
Question Bank Authoring Endpoints
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, status

from trustwork.api.deps import get_unit_of_work, require_roles
from trustwork.api.schemas.questions import (
    QuestionCreate,
    QuestionDetail,
    QuestionItem,
    QuestionUpdate,
)
from trustwork.domain import User
from trustwork.domain.services import QuestionCatalog, QuestionDraft
from trustwork.infrastructure.repositories import UnitOfWork

logger = structlog.get_logger()
router = APIRouter(prefix="/questions", tags=["questions"])


@router.get("", response_model=list[QuestionItem])
async def list_questions(
    template_id: str | None = None,
    include_inactive: bool = False,
    uow: UnitOfWork = Depends(get_unit_of_work),
    _current_user: User = Depends(require_roles(["admin"])),
) -> Any:
    """
    List questions, optionally filtered by template. Inactive versions are
    included only on request.
    """
    questions = await QuestionCatalog(uow).list_questions(
        template_id, include_inactive=include_inactive
    )
    await logger.ainfo("list_questions", template_id=template_id, count=len(questions))
    return [QuestionItem.model_validate(q) for q in questions]


@router.get("/{question_id}", response_model=QuestionDetail)
async def get_question(
    question_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    _current_user: User = Depends(require_roles(["admin"])),
) -> Any:
    """
    Get a specific question version by ID (including inactive).
    """
    question = await QuestionCatalog(uow).get_question(question_id)
    return QuestionDetail.model_validate(question)


@router.post("", response_model=QuestionDetail, status_code=status.HTTP_201_CREATED)
async def create_question(
    question_data: QuestionCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    _current_user: User = Depends(require_roles(["admin"])),
) -> Any:
    """
    Publish a new question (admin only).
    """
    question = await QuestionCatalog(uow).create(
        QuestionDraft(
            template_id=question_data.template_id,
            prompt=question_data.prompt,
            option_a=question_data.option_a,
            option_b=question_data.option_b,
            option_c=question_data.option_c,
            option_d=question_data.option_d,
            correct_letter=question_data.correct_letter,
            explanation=question_data.explanation,
        )
    )
    return QuestionDetail.model_validate(question)


@router.put("/{question_id}", response_model=QuestionDetail)
async def revise_question(
    question_id: str,
    question_data: QuestionUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    _current_user: User = Depends(require_roles(["admin"])),
) -> Any:
    """
    Revise a question (admin only).
    Creates a new version and marks the old one inactive.
    """
    changes = question_data.model_dump(exclude_unset=True)
    question = await QuestionCatalog(uow).revise(question_id, changes)
    return QuestionDetail.model_validate(question)


@router.delete("/{question_id}", response_model=QuestionDetail)
async def retire_question(
    question_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    _current_user: User = Depends(require_roles(["admin"])),
) -> Any:
    """
    Retire a question (admin only). The row is kept for attempts that used it.
    """
    question = await QuestionCatalog(uow).retire(question_id)
    return QuestionDetail.model_validate(question)
