"""Domain services."""

from trustwork.domain.services.applications import AcceptResult, ApplicationService
from trustwork.domain.services.assessments import (
    ApplyDecision,
    AssessmentEngine,
    AttemptResult,
    AttemptView,
    Eligibility,
    StartResult,
)
from trustwork.domain.services.ledger import ChargeResult, CreditLedger
from trustwork.domain.services.lifecycle import AssignmentLifecycle, WorkflowState
from trustwork.domain.services.milestones import MilestoneDraft, MilestoneService, MilestoneSummary
from trustwork.domain.services.questions import QuestionCatalog, QuestionDraft
from trustwork.domain.services.reviews import RatingSummary, ReviewEligibility, ReviewService
from trustwork.domain.services.timeline import TimelineEvent, TimelineProjector

__all__ = [
    "AcceptResult",
    "ApplicationService",
    "ApplyDecision",
    "AssessmentEngine",
    "AssignmentLifecycle",
    "AttemptResult",
    "AttemptView",
    "ChargeResult",
    "CreditLedger",
    "Eligibility",
    "MilestoneDraft",
    "MilestoneService",
    "MilestoneSummary",
    "QuestionCatalog",
    "QuestionDraft",
    "RatingSummary",
    "ReviewEligibility",
    "ReviewService",
    "StartResult",
    "TimelineEvent",
    "TimelineProjector",
    "WorkflowState",
]
