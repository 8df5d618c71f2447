from __future__ import annotations

from fastapi import APIRouter, Depends

from trustwork.api.deps import get_unit_of_work, require_roles
from trustwork.api.schemas.templates import TemplateOut, TemplateStatsResponse
from trustwork.domain import User
from trustwork.domain.services import AssessmentEngine
from trustwork.infrastructure.db.models import Difficulty
from trustwork.infrastructure.repositories import UnitOfWork

router = APIRouter(prefix="/templates", tags=["Templates"])


@router.get("", response_model=list[TemplateOut])
async def list_templates(
    category: str | None = None,
    difficulty: Difficulty | None = None,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[TemplateOut]:
    templates = await AssessmentEngine(uow).list_templates(
        category=category, difficulty=difficulty
    )
    return [TemplateOut.model_validate(template) for template in templates]


@router.get("/{template_id}/stats", response_model=TemplateStatsResponse)
async def template_stats(
    template_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
    _admin: User = Depends(require_roles(["admin"])),  # noqa: B008
) -> TemplateStatsResponse:
    stats = await AssessmentEngine(uow).template_stats(template_id)
    return TemplateStatsResponse(
        template_id=stats.template_id,
        total_attempts=stats.total_attempts,
        passed=stats.passed,
        failed=stats.failed,
        voided=stats.voided,
        in_progress=stats.in_progress,
        pass_rate=stats.pass_rate,
        average_score=stats.average_score,
        average_time_seconds=stats.average_time_seconds,
        score_distribution=stats.score_distribution,
    )
