from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from trustwork.infrastructure.db.models import Difficulty


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    skill_id: str
    name: str
    difficulty: Difficulty
    total_questions: int
    time_budget_minutes: int
    passing_fraction: float
    excellence_fraction: float
    retake_cost: int
    unlock_min_engagements: int


class TemplateStatsResponse(BaseModel):
    template_id: str
    total_attempts: int
    passed: int
    failed: int
    voided: int
    in_progress: int
    pass_rate: float
    average_score: float | None = None
    average_time_seconds: float | None = None
    score_distribution: dict[str, int]
