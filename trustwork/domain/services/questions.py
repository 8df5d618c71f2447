from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from trustwork.core.errors import IllegalTransition, ValidationFailed
from trustwork.infrastructure.db.models import OPTION_LETTERS, AssessmentTemplate, Question
from trustwork.infrastructure.repositories import UnitOfWork

logger = structlog.get_logger()

EDITABLE_FIELDS = (
    "prompt",
    "option_a",
    "option_b",
    "option_c",
    "option_d",
    "correct_letter",
    "explanation",
)


@dataclass(slots=True)
class QuestionDraft:
    template_id: str
    prompt: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_letter: str
    explanation: str = ""


class QuestionCatalog:
    """Admin-only authoring of the question bank.

    Published rows are never modified: an edit inserts the next version and
    deactivates the previous one, so attempts keep the wording they showed.
    """

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow
        self.store = uow.store

    async def list_questions(
        self, template_id: str | None = None, *, include_inactive: bool = False
    ) -> list[Question]:
        where: list[Any] = []
        if template_id is not None:
            where.append(Question.template_id == template_id)
        if not include_inactive:
            where.append(Question.is_active.is_(True))
        return await self.uow.run(
            self.store.query,
            Question,
            *where,
            order_by=[Question.template_id, Question.created_at, Question.id],
        )

    async def get_question(self, question_id: str) -> Question:
        return await self.uow.run(self.store.get, Question, question_id)

    async def create(self, draft: QuestionDraft) -> Question:
        return await self.uow.run(self._create, draft)

    async def _create(self, draft: QuestionDraft) -> Question:
        await self.store.get(AssessmentTemplate, draft.template_id)
        fields = _validated({name: getattr(draft, name) for name in EDITABLE_FIELDS})
        question = await self.store.insert(
            Question(
                template_id=draft.template_id,
                version=1,
                previous_version_id=None,
                is_active=True,
                created_at=self.uow.now(),
                **fields,
            )
        )
        await logger.ainfo(
            "question_created",
            question_id=question.id,
            template_id=question.template_id,
            admin_user=self.store.actor.user_id,
        )
        return question

    async def revise(self, question_id: str, changes: dict[str, Any]) -> Question:
        return await self.uow.run(self._revise, question_id, changes)

    async def _revise(self, question_id: str, changes: dict[str, Any]) -> Question:
        current = await self.store.get(Question, question_id)
        if not current.is_active:
            raise IllegalTransition(
                "Only the active version of a question can be revised",
                question_id=question_id,
            )
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailed("Unknown question fields", fields=unknown)

        merged = {name: getattr(current, name) for name in EDITABLE_FIELDS}
        merged.update({name: value for name, value in changes.items() if value is not None})
        fields = _validated(merged)

        await self.store.update(current, is_active=False)
        revised = await self.store.insert(
            Question(
                template_id=current.template_id,
                version=current.version + 1,
                previous_version_id=current.id,
                is_active=True,
                created_at=self.uow.now(),
                **fields,
            )
        )
        await logger.ainfo(
            "question_revised",
            question_id=revised.id,
            previous_version_id=current.id,
            version=revised.version,
            admin_user=self.store.actor.user_id,
        )
        return revised

    async def retire(self, question_id: str) -> Question:
        return await self.uow.run(self._retire, question_id)

    async def _retire(self, question_id: str) -> Question:
        question = await self.store.get(Question, question_id)
        if question.is_active:
            await self.store.update(question, is_active=False)
            await logger.ainfo(
                "question_retired",
                question_id=question.id,
                admin_user=self.store.actor.user_id,
            )
        return question


def _validated(fields: dict[str, Any]) -> dict[str, Any]:
    prompt = (fields.get("prompt") or "").strip()
    if len(prompt) < 10:
        raise ValidationFailed("Prompt must be at least 10 characters")
    options = [(fields.get(f"option_{letter.lower()}") or "").strip() for letter in OPTION_LETTERS]
    if not all(options):
        raise ValidationFailed("All four options are required")
    if len(set(options)) != len(options):
        raise ValidationFailed("Options must be distinct")
    letter = (fields.get("correct_letter") or "").strip().upper()
    if letter not in OPTION_LETTERS:
        raise ValidationFailed("correct_letter must be one of A, B, C, D", letter=letter)
    return {
        "prompt": prompt,
        "option_a": options[0],
        "option_b": options[1],
        "option_c": options[2],
        "option_d": options[3],
        "correct_letter": letter,
        "explanation": (fields.get("explanation") or "").strip(),
    }
