from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

OPTION_LETTERS: tuple[str, ...] = ("A", "B", "C", "D")


def _enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda e: [x.value for x in e])


class Difficulty(str, enum.Enum):
    FOUNDATION = "foundation"
    DEVELOPER = "developer"
    ADVANCED = "advanced"
    EXPERT = "expert"


class AttemptState(str, enum.Enum):
    """Attempt workflow state.

    ``in_progress`` is the only non-terminal state.
    """

    IN_PROGRESS = "in_progress"
    PASSED = "passed"
    FAILED = "failed"
    VOIDED_FOR_INTEGRITY = "voided_for_integrity"
    TIMED_OUT = "timed_out"

    @classmethod
    def scored_states(cls) -> tuple[AttemptState, ...]:
        return (cls.PASSED, cls.FAILED, cls.TIMED_OUT)


class IntegrityEventKind(str, enum.Enum):
    VISIBILITY_LOST = "visibility_lost"
    FOCUS_LOST = "focus_lost"
    NAVIGATION_ATTEMPT = "navigation_attempt"


class ProfileRole(str, enum.Enum):
    JOB_SEEKER = "job_seeker"
    EMPLOYER = "employer"
    ADMIN = "admin"


class AssignmentStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"

    @classmethod
    def open_statuses(cls) -> tuple[ApplicationStatus, ...]:
        return (cls.PENDING, cls.VIEWED)


class MilestoneStatus(str, enum.Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"
    CANCELLED = "cancelled"


class MilestoneEventKind(str, enum.Enum):
    SUBMITTED = "submitted"
    REVISION_REQUESTED = "revision_requested"
    APPROVED = "approved"
    PAYMENT_RELEASED = "payment_released"
    CANCELLED = "cancelled"


class ReviewerRole(str, enum.Enum):
    EMPLOYER = "employer"
    EMPLOYEE = "employee"


# ---------------------------------------------------------------------------
# Skill assessment
# ---------------------------------------------------------------------------


class Skill(Base):
    __tablename__ = "skills"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False, index=True)


class AssessmentTemplate(Base):
    __tablename__ = "assessment_templates"
    __table_args__ = (
        UniqueConstraint("skill_id", "difficulty", name="uq_template_skill_difficulty"),
        CheckConstraint("total_questions > 0", name="total_questions_positive"),
        CheckConstraint("retake_cost >= 0", name="retake_cost_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    skill_id: Mapped[str] = mapped_column(
        ForeignKey("skills.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    difficulty: Mapped[Difficulty] = mapped_column(_enum(Difficulty, "difficulty"), nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    time_budget_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=40)
    passing_fraction: Mapped[float] = mapped_column(Float, nullable=False, default=0.70)
    excellence_fraction: Mapped[float] = mapped_column(Float, nullable=False, default=0.85)
    retake_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    unlock_min_engagements: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Question(Base):
    """Published multiple-choice question.

    Rows are never edited in place: a change is a new version and the old
    row is deactivated, so attempts keep pointing at what they were shown.
    """

    __tablename__ = "questions"
    __table_args__ = (
        CheckConstraint("correct_letter IN ('A', 'B', 'C', 'D')", name="correct_letter_valid"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    template_id: Mapped[str] = mapped_column(
        ForeignKey("assessment_templates.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    option_a: Mapped[str] = mapped_column(Text, nullable=False)
    option_b: Mapped[str] = mapped_column(Text, nullable=False)
    option_c: Mapped[str] = mapped_column(Text, nullable=False)
    option_d: Mapped[str] = mapped_column(Text, nullable=False)
    correct_letter: Mapped[str] = mapped_column(String(1), nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False, default="")

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    previous_version_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def option_text(self, letter: str) -> str:
        return {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
        }[letter]


class Attempt(Base):
    __tablename__ = "attempts"
    __table_args__ = (
        Index(
            "uq_attempts_one_in_progress",
            "user_id",
            "template_id",
            unique=True,
            postgresql_where=text("state = 'in_progress'"),
            sqlite_where=text("state = 'in_progress'"),
        ),
        CheckConstraint("score IS NULL OR (score >= 0 AND score <= 100)", name="score_range"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    template_id: Mapped[str] = mapped_column(
        ForeignKey("assessment_templates.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    gig_id: Mapped[str | None] = mapped_column(
        ForeignKey("assignments.id", ondelete="SET NULL"), nullable=True
    )
    state: Mapped[AttemptState] = mapped_column(
        _enum(AttemptState, "attempt_state"),
        nullable=False,
        default=AttemptState.IN_PROGRESS,
        index=True,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deadline_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    time_taken_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    correct_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False)
    integrity_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    integrity_event_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    charged_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    voucher_id: Mapped[str | None] = mapped_column(
        ForeignKey("vouchers.id", ondelete="SET NULL"), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class AttemptQuestion(Base):
    """One materialised question slot of an attempt.

    ``option_order[i]`` is the original letter displayed at position ``i``;
    ``chosen_letter`` is the displayed letter the candidate picked.
    """

    __tablename__ = "attempt_questions"
    __table_args__ = (
        UniqueConstraint("attempt_id", "position", name="uq_attempt_question_position"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="RESTRICT"), nullable=False
    )
    option_order: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    correct_letter: Mapped[str] = mapped_column(String(1), nullable=False)
    chosen_letter: Mapped[str | None] = mapped_column(String(1), nullable=True)
    answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def displayed_correct_letter(self) -> str:
        return OPTION_LETTERS[self.option_order.index(self.correct_letter)]

    @property
    def is_correct(self) -> bool:
        if self.chosen_letter is None:
            return False
        return self.chosen_letter == self.displayed_correct_letter


# ---------------------------------------------------------------------------
# Credit ledger
# ---------------------------------------------------------------------------


class CreditBalance(Base):
    __tablename__ = "credit_balances"
    __table_args__ = (CheckConstraint("balance >= 0", name="balance_non_negative"),)

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class CreditTransaction(Base):
    """Append-only audit trail of balance changes."""

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    voucher_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Voucher(Base):
    __tablename__ = "vouchers"
    __table_args__ = (CheckConstraint("percent > 0 AND percent <= 100", name="percent_range"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    percent: Mapped[int] = mapped_column(Integer, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    redeemed_context: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_attempt_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


# ---------------------------------------------------------------------------
# Engagement lifecycle
# ---------------------------------------------------------------------------


class Profile(Base):
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[ProfileRole] = mapped_column(_enum(ProfileRole, "profile_role"), nullable=False)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    completed_engagements: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    as_worker_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    as_worker_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    as_employer_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    as_employer_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def blank(cls, user_id: str, role: ProfileRole, display_name: str = "") -> Profile:
        return cls(
            user_id=user_id,
            role=role,
            display_name=display_name,
            completed_engagements=0,
            average_rating=0.0,
            review_count=0,
            as_worker_rating=0.0,
            as_worker_review_count=0,
            as_employer_rating=0.0,
            as_employer_review_count=0,
        )


class Assignment(Base):
    __tablename__ = "assignments"
    __table_args__ = (
        CheckConstraint(
            "budget_max IS NULL OR budget_min IS NULL OR budget_max >= budget_min",
            name="budget_bounds",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    budget_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    budget_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    required_template_id: Mapped[str | None] = mapped_column(
        ForeignKey("assessment_templates.id", ondelete="RESTRICT"), nullable=True
    )
    required_difficulty: Mapped[Difficulty | None] = mapped_column(
        _enum(Difficulty, "difficulty"), nullable=True
    )
    passing_fraction_override: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[AssignmentStatus] = mapped_column(
        _enum(AssignmentStatus, "assignment_status"),
        nullable=False,
        default=AssignmentStatus.OPEN,
        index=True,
    )
    worker_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.owner_id, self.worker_id)


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("assignment_id", "applicant_id", name="uq_application_per_applicant"),
        Index(
            "uq_applications_one_accepted",
            "assignment_id",
            unique=True,
            postgresql_where=text("status = 'accepted'"),
            sqlite_where=text("status = 'accepted'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    assignment_id: Mapped[str] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    applicant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    employer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    proposal: Mapped[str] = mapped_column(Text, nullable=False, default="")
    bid_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    estimated_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    attempt_id: Mapped[str | None] = mapped_column(
        ForeignKey("attempts.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        _enum(ApplicationStatus, "application_status"),
        nullable=False,
        default=ApplicationStatus.PENDING,
        index=True,
    )
    viewed_by_employer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    frozen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class Milestone(Base):
    __tablename__ = "milestones"
    __table_args__ = (
        UniqueConstraint("assignment_id", "position", name="uq_milestone_position"),
        CheckConstraint("amount >= 0", name="amount_non_negative"),
        CheckConstraint("revision_count >= 0", name="revision_count_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    assignment_id: Mapped[str] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    worker_id: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_revisions: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    revision_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    submission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[MilestoneStatus] = mapped_column(
        _enum(MilestoneStatus, "milestone_status"),
        nullable=False,
        default=MilestoneStatus.PENDING,
    )
    client_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    submission: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_released: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_released_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class MilestoneEvent(Base):
    __tablename__ = "milestone_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    milestone_id: Mapped[str] = mapped_column(
        ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assignment_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    employer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    worker_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[MilestoneEventKind] = mapped_column(
        _enum(MilestoneEventKind, "milestone_event_kind"), nullable=False
    )
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class StatusHistoryEntry(Base):
    """Append-only record of accepted assignment transitions."""

    __tablename__ = "status_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # No FK cascade: history outlives soft-deleted assignments
    assignment_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    worker_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    from_status: Mapped[AssignmentStatus] = mapped_column(
        _enum(AssignmentStatus, "assignment_status"), nullable=False
    )
    to_status: Mapped[AssignmentStatus] = mapped_column(
        _enum(AssignmentStatus, "assignment_status"), nullable=False
    )
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("assignment_id", "reviewer_id", name="uq_review_per_reviewer"),
        CheckConstraint("reviewer_id != reviewee_id", name="reviewer_not_reviewee"),
        CheckConstraint(
            "overall_rating >= 1.0 AND overall_rating <= 5.0", name="overall_rating_range"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    assignment_id: Mapped[str] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reviewer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    reviewee_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    reviewer_role: Mapped[ReviewerRole] = mapped_column(
        _enum(ReviewerRole, "reviewer_role"), nullable=False
    )
    ratings: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False)
    overall_rating: Mapped[float] = mapped_column(Float, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    would_recommend: Mapped[bool] = mapped_column(Boolean, nullable=False)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    window_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class OutboxEvent(Base):
    """Outbound domain event, written in the transaction that caused it."""

    __tablename__ = "outbox_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    aggregate_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    dispatched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)


__all__ = [
    "OPTION_LETTERS",
    "Difficulty",
    "AttemptState",
    "IntegrityEventKind",
    "ProfileRole",
    "AssignmentStatus",
    "ApplicationStatus",
    "MilestoneStatus",
    "MilestoneEventKind",
    "ReviewerRole",
    "Skill",
    "AssessmentTemplate",
    "Question",
    "Attempt",
    "AttemptQuestion",
    "CreditBalance",
    "CreditTransaction",
    "Voucher",
    "Profile",
    "Assignment",
    "Application",
    "Milestone",
    "MilestoneEvent",
    "StatusHistoryEntry",
    "Review",
    "OutboxEvent",
]
