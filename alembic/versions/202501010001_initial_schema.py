"""Initial schema for skill assessments, credits and engagements

Revision ID: 202501010001
Revises:
Create Date: 2025-01-01 00:01:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "202501010001"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> postgresql.ENUM:
    return postgresql.ENUM(*values, name=name, create_type=False)


difficulty_enum = _enum("difficulty", "foundation", "developer", "advanced", "expert")
attempt_state_enum = _enum(
    "attempt_state", "in_progress", "passed", "failed", "voided_for_integrity", "timed_out"
)
profile_role_enum = _enum("profile_role", "job_seeker", "employer", "admin")
assignment_status_enum = _enum(
    "assignment_status", "open", "in_progress", "completed", "cancelled"
)
application_status_enum = _enum(
    "application_status", "pending", "viewed", "accepted", "rejected", "withdrawn"
)
milestone_status_enum = _enum(
    "milestone_status", "pending", "submitted", "approved", "revision_requested", "cancelled"
)
milestone_event_kind_enum = _enum(
    "milestone_event_kind",
    "submitted",
    "revision_requested",
    "approved",
    "payment_released",
    "cancelled",
)
reviewer_role_enum = _enum("reviewer_role", "employer", "employee")

ALL_ENUMS = (
    difficulty_enum,
    attempt_state_enum,
    profile_role_enum,
    assignment_status_enum,
    application_status_enum,
    milestone_status_enum,
    milestone_event_kind_enum,
    reviewer_role_enum,
)


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ALL_ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "skills",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("category", sa.String(length=64), nullable=False, index=True),
    )

    op.create_table(
        "assessment_templates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "skill_id",
            sa.String(length=36),
            sa.ForeignKey("skills.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("difficulty", difficulty_enum, nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("time_budget_minutes", sa.Integer(), nullable=False, server_default="40"),
        sa.Column("passing_fraction", sa.Float(), nullable=False, server_default="0.7"),
        sa.Column("excellence_fraction", sa.Float(), nullable=False, server_default="0.85"),
        sa.Column("retake_cost", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("unlock_min_engagements", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("skill_id", "difficulty", name="uq_template_skill_difficulty"),
        sa.CheckConstraint(
            "total_questions > 0", name=op.f("ck_assessment_templates_total_questions_positive")
        ),
        sa.CheckConstraint(
            "retake_cost >= 0", name=op.f("ck_assessment_templates_retake_cost_non_negative")
        ),
    )

    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "template_id",
            sa.String(length=36),
            sa.ForeignKey("assessment_templates.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("option_a", sa.Text(), nullable=False),
        sa.Column("option_b", sa.Text(), nullable=False),
        sa.Column("option_c", sa.Text(), nullable=False),
        sa.Column("option_d", sa.Text(), nullable=False),
        sa.Column("correct_letter", sa.String(length=1), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=False, server_default=""),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("previous_version_id", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "correct_letter IN ('A', 'B', 'C', 'D')", name=op.f("ck_questions_correct_letter_valid")
        ),
    )

    op.create_table(
        "profiles",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("role", profile_role_enum, nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("completed_engagements", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("average_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("as_worker_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("as_worker_review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("as_employer_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("as_employer_review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False),
    )

    op.create_table(
        "assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("budget_min", sa.Float(), nullable=True),
        sa.Column("budget_max", sa.Float(), nullable=True),
        sa.Column(
            "required_template_id",
            sa.String(length=36),
            sa.ForeignKey("assessment_templates.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("required_difficulty", difficulty_enum, nullable=True),
        sa.Column("passing_fraction_override", sa.Float(), nullable=True),
        sa.Column(
            "status", assignment_status_enum, nullable=False, server_default="open", index=True
        ),
        sa.Column("worker_id", sa.String(length=64), nullable=True, index=True),
        _timestamp("created_at"),
        _timestamp("started_at", nullable=True),
        _timestamp("completed_at", nullable=True),
        _timestamp("cancelled_at", nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "budget_max IS NULL OR budget_min IS NULL OR budget_max >= budget_min",
            name=op.f("ck_assignments_budget_bounds"),
        ),
    )

    op.create_table(
        "vouchers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("percent", sa.Integer(), nullable=False),
        _timestamp("issued_at"),
        _timestamp("expires_at"),
        _timestamp("redeemed_at", nullable=True),
        sa.Column("redeemed_context", sa.String(length=255), nullable=True),
        sa.Column("source_attempt_id", sa.String(length=36), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "percent > 0 AND percent <= 100", name=op.f("ck_vouchers_percent_range")
        ),
    )

    op.create_table(
        "attempts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False, index=True),
        sa.Column(
            "template_id",
            sa.String(length=36),
            sa.ForeignKey("assessment_templates.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "gig_id",
            sa.String(length=36),
            sa.ForeignKey("assignments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "state",
            attempt_state_enum,
            nullable=False,
            server_default="in_progress",
            index=True,
        ),
        _timestamp("started_at"),
        _timestamp("deadline_at"),
        _timestamp("completed_at", nullable=True),
        sa.Column("time_taken_seconds", sa.Integer(), nullable=True),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("correct_count", sa.Integer(), nullable=True),
        sa.Column("total_count", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column("integrity_reason", sa.String(length=255), nullable=True),
        sa.Column("integrity_event_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("charged_credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "voucher_id",
            sa.String(length=36),
            sa.ForeignKey("vouchers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "score IS NULL OR (score >= 0 AND score <= 100)", name=op.f("ck_attempts_score_range")
        ),
    )
    op.create_index(
        "uq_attempts_one_in_progress",
        "attempts",
        ["user_id", "template_id"],
        unique=True,
        postgresql_where=sa.text("state = 'in_progress'"),
    )

    op.create_table(
        "attempt_questions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "attempt_id",
            sa.String(length=36),
            sa.ForeignKey("attempts.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column(
            "question_id",
            sa.String(length=36),
            sa.ForeignKey("questions.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("option_order", sa.JSON(), nullable=False),
        sa.Column("correct_letter", sa.String(length=1), nullable=False),
        sa.Column("chosen_letter", sa.String(length=1), nullable=True),
        _timestamp("answered_at", nullable=True),
        sa.UniqueConstraint("attempt_id", "position", name="uq_attempt_question_position"),
    )

    op.create_table(
        "credit_balances",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("updated_at"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("balance >= 0", name=op.f("ck_credit_balances_balance_non_negative")),
    )

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("voucher_id", sa.String(length=36), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "applications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "assignment_id",
            sa.String(length=36),
            sa.ForeignKey("assignments.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("applicant_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("employer_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("proposal", sa.Text(), nullable=False, server_default=""),
        sa.Column("bid_amount", sa.Float(), nullable=True),
        sa.Column("estimated_days", sa.Integer(), nullable=True),
        sa.Column(
            "attempt_id",
            sa.String(length=36),
            sa.ForeignKey("attempts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "status",
            application_status_enum,
            nullable=False,
            server_default="pending",
            index=True,
        ),
        sa.Column("viewed_by_employer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("frozen", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("decided_at", nullable=True),
        sa.Column("decided_by", sa.String(length=64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.UniqueConstraint("assignment_id", "applicant_id", name="uq_application_per_applicant"),
    )
    op.create_index(
        "uq_applications_one_accepted",
        "applications",
        ["assignment_id"],
        unique=True,
        postgresql_where=sa.text("status = 'accepted'"),
    )

    op.create_table(
        "milestones",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "assignment_id",
            sa.String(length=36),
            sa.ForeignKey("assignments.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("employer_id", sa.String(length=64), nullable=False),
        sa.Column("worker_id", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        _timestamp("due_date", nullable=True),
        sa.Column("max_revisions", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("revision_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("submission_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", milestone_status_enum, nullable=False, server_default="pending"),
        sa.Column("client_notes", sa.Text(), nullable=True),
        sa.Column("submission", sa.JSON(), nullable=True),
        _timestamp("submitted_at", nullable=True),
        _timestamp("approved_at", nullable=True),
        sa.Column("payment_released", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("payment_released_at", nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.UniqueConstraint("assignment_id", "position", name="uq_milestone_position"),
        sa.CheckConstraint("amount >= 0", name=op.f("ck_milestones_amount_non_negative")),
        sa.CheckConstraint(
            "revision_count >= 0", name=op.f("ck_milestones_revision_count_non_negative")
        ),
    )

    op.create_table(
        "milestone_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "milestone_id",
            sa.String(length=36),
            sa.ForeignKey("milestones.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("assignment_id", sa.String(length=36), nullable=False, index=True),
        sa.Column("employer_id", sa.String(length=64), nullable=False),
        sa.Column("worker_id", sa.String(length=64), nullable=False),
        sa.Column("kind", milestone_event_kind_enum, nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "status_history",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("assignment_id", sa.String(length=36), nullable=False, index=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("worker_id", sa.String(length=64), nullable=True),
        sa.Column("from_status", assignment_status_enum, nullable=False),
        sa.Column("to_status", assignment_status_enum, nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "assignment_id",
            sa.String(length=36),
            sa.ForeignKey("assignments.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("reviewer_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("reviewee_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("reviewer_role", reviewer_role_enum, nullable=False),
        sa.Column("ratings", sa.JSON(), nullable=False),
        sa.Column("overall_rating", sa.Float(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("would_recommend", sa.Boolean(), nullable=False),
        _timestamp("window_start"),
        _timestamp("window_end"),
        _timestamp("created_at"),
        sa.UniqueConstraint("assignment_id", "reviewer_id", name="uq_review_per_reviewer"),
        sa.CheckConstraint(
            "reviewer_id != reviewee_id", name=op.f("ck_reviews_reviewer_not_reviewee")
        ),
        sa.CheckConstraint(
            "overall_rating >= 1.0 AND overall_rating <= 5.0",
            name=op.f("ck_reviews_overall_rating_range"),
        ),
    )

    op.create_table(
        "outbox_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("event_type", sa.String(length=64), nullable=False, index=True),
        sa.Column("aggregate_id", sa.String(length=36), nullable=False, index=True),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        _timestamp("occurred_at"),
        _timestamp("dispatched_at", nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_dispatched_at", "outbox_events", ["dispatched_at"])


def downgrade() -> None:
    op.drop_index("ix_outbox_events_dispatched_at", table_name="outbox_events")
    op.drop_table("outbox_events")
    op.drop_table("reviews")
    op.drop_table("status_history")
    op.drop_table("milestone_events")
    op.drop_table("milestones")
    op.drop_index("uq_applications_one_accepted", table_name="applications")
    op.drop_table("applications")
    op.drop_table("credit_transactions")
    op.drop_table("credit_balances")
    op.drop_table("attempt_questions")
    op.drop_index("uq_attempts_one_in_progress", table_name="attempts")
    op.drop_table("attempts")
    op.drop_table("vouchers")
    op.drop_table("assignments")
    op.drop_table("profiles")
    op.drop_table("questions")
    op.drop_table("assessment_templates")
    op.drop_table("skills")

    bind = op.get_bind()
    for enum in reversed(ALL_ENUMS):
        enum.drop(bind, checkfirst=True)
