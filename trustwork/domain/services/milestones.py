from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

import structlog

from trustwork.core.errors import (
    AlreadyCompleted,
    IllegalTransition,
    RevisionsExhausted,
    Unauthorized,
    ValidationFailed,
)
from trustwork.domain.services.scoring import round_half_up
from trustwork.infrastructure.db.models import (
    Assignment,
    AssignmentStatus,
    Milestone,
    MilestoneEvent,
    MilestoneEventKind,
    MilestoneStatus,
)
from trustwork.infrastructure.repositories import EntityStore, UnitOfWork

logger = structlog.get_logger()

SUBMITTABLE = (MilestoneStatus.PENDING, MilestoneStatus.REVISION_REQUESTED)


@dataclass(slots=True)
class MilestoneDraft:
    title: str
    amount: float
    description: str | None = None
    due_date: datetime | None = None
    max_revisions: int | None = None


@dataclass(slots=True)
class MilestoneSummary:
    assignment_id: str
    total_amount: float = 0.0
    approved_amount: float = 0.0
    released_amount: float = 0.0
    escrow_amount: float = 0.0
    percent_complete: float = 0.0
    counts: dict[str, int] = field(default_factory=dict)


class MilestoneService:
    """Per-milestone submissions, approvals and bounded revision requests."""

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow
        self.store = uow.store

    async def create_milestones(
        self, assignment_id: str, drafts: Sequence[MilestoneDraft]
    ) -> list[Milestone]:
        return await self.uow.run(self._create, assignment_id, list(drafts))

    async def _create(self, assignment_id: str, drafts: list[MilestoneDraft]) -> list[Milestone]:
        if not drafts:
            raise ValidationFailed("At least one milestone is required")
        assignment = await self.store.get(Assignment, assignment_id)
        if assignment.owner_id != self.store.actor.user_id:
            raise Unauthorized(
                "Only the employer can define milestones", assignment_id=assignment_id
            )
        _require_in_progress(assignment)

        existing = await self.store.query(Milestone, Milestone.assignment_id == assignment_id)
        next_position = max((m.position for m in existing), default=-1) + 1
        created = []
        for offset, draft in enumerate(drafts):
            if not draft.title.strip():
                raise ValidationFailed("Milestone title is required", index=offset)
            if draft.amount < 0:
                raise ValidationFailed("Milestone amount must not be negative", index=offset)
            max_revisions = (
                self.uow.settings.default_max_revisions
                if draft.max_revisions is None
                else draft.max_revisions
            )
            if max_revisions < 0:
                raise ValidationFailed("max_revisions must not be negative", index=offset)
            milestone = await self.store.insert(
                Milestone(
                    assignment_id=assignment_id,
                    employer_id=assignment.owner_id,
                    worker_id=assignment.worker_id,
                    position=next_position + offset,
                    title=draft.title.strip(),
                    description=draft.description,
                    amount=draft.amount,
                    due_date=draft.due_date,
                    max_revisions=max_revisions,
                    revision_count=0,
                    submission_count=0,
                    status=MilestoneStatus.PENDING,
                    payment_released=False,
                )
            )
            created.append(milestone)
        logger.info(
            "milestones_created",
            assignment_id=assignment_id,
            count=len(created),
            total_amount=sum(m.amount for m in created),
        )
        return created

    async def submit(
        self,
        milestone_id: str,
        *,
        files: Sequence[str] = (),
        links: Sequence[str] = (),
        notes: str | None = None,
    ) -> Milestone:
        return await self.uow.run(self._submit, milestone_id, list(files), list(links), notes)

    async def _submit(
        self, milestone_id: str, files: list[str], links: list[str], notes: str | None
    ) -> Milestone:
        milestone, assignment = await self._load(milestone_id)
        self._require_worker(milestone)
        _require_in_progress(assignment)
        if milestone.status not in SUBMITTABLE:
            raise IllegalTransition(
                "Milestone cannot be submitted in its current state",
                milestone_id=milestone_id,
                status=milestone.status.value,
            )
        files = [f for f in files if f and f.strip()]
        links = [link for link in links if link and link.strip()]
        if not files and not links:
            raise ValidationFailed("A submission needs at least one file or link")

        now = self.uow.now()
        submission_count = milestone.submission_count + 1
        revision_count = milestone.revision_count + (1 if submission_count > 1 else 0)
        await self.store.update(
            milestone,
            status=MilestoneStatus.SUBMITTED,
            submission={
                "files": files,
                "links": links,
                "notes": notes,
                "at": now.isoformat(),
            },
            submitted_at=now,
            submission_count=submission_count,
            revision_count=revision_count,
        )
        await self._record(
            milestone,
            MilestoneEventKind.SUBMITTED,
            {"files": len(files), "links": len(links), "submission": submission_count},
        )
        await self.store.emit("milestone.submitted", milestone.id)
        logger.info(
            "milestone_submitted",
            milestone_id=milestone.id,
            assignment_id=milestone.assignment_id,
            submission=submission_count,
            revision_count=revision_count,
        )
        return milestone

    async def approve(self, milestone_id: str, notes: str | None = None) -> Milestone:
        return await self.uow.run(self._approve, milestone_id, notes)

    async def _approve(self, milestone_id: str, notes: str | None) -> Milestone:
        milestone, assignment = await self._load(milestone_id)
        self._require_employer(milestone)
        _require_in_progress(assignment)
        self._require_submitted(milestone)
        await self.store.update(
            milestone,
            status=MilestoneStatus.APPROVED,
            approved_at=self.uow.now(),
            client_notes=notes if notes is not None else milestone.client_notes,
        )
        await self._record(milestone, MilestoneEventKind.APPROVED, {"notes": notes})
        await self.store.emit("milestone.approved", milestone.id)
        logger.info(
            "milestone_approved", milestone_id=milestone.id, assignment_id=milestone.assignment_id
        )
        return milestone

    async def request_revision(self, milestone_id: str, notes: str) -> Milestone:
        return await self.uow.run(self._request_revision, milestone_id, notes)

    async def _request_revision(self, milestone_id: str, notes: str) -> Milestone:
        milestone, assignment = await self._load(milestone_id)
        self._require_employer(milestone)
        _require_in_progress(assignment)
        self._require_submitted(milestone)
        if milestone.revision_count >= milestone.max_revisions:
            raise RevisionsExhausted(
                "Revision limit reached",
                milestone_id=milestone_id,
                revision_count=milestone.revision_count,
                max_revisions=milestone.max_revisions,
            )
        if not notes or not notes.strip():
            raise ValidationFailed("Revision notes are required")
        await self.store.update(
            milestone, status=MilestoneStatus.REVISION_REQUESTED, client_notes=notes.strip()
        )
        await self._record(
            milestone,
            MilestoneEventKind.REVISION_REQUESTED,
            {"revision_count": milestone.revision_count},
        )
        logger.info(
            "milestone_revision_requested",
            milestone_id=milestone.id,
            revision_count=milestone.revision_count,
            max_revisions=milestone.max_revisions,
        )
        return milestone

    async def release_payment(self, milestone_id: str) -> Milestone:
        return await self.uow.run(self._release, milestone_id)

    async def _release(self, milestone_id: str) -> Milestone:
        milestone, assignment = await self._load(milestone_id)
        self._require_employer(milestone)
        if assignment.status not in (AssignmentStatus.IN_PROGRESS, AssignmentStatus.COMPLETED):
            raise IllegalTransition(
                "Payments are released only for active or completed assignments",
                assignment_id=assignment.id,
            )
        if milestone.payment_released:
            raise AlreadyCompleted("Payment already released", milestone_id=milestone_id)
        if milestone.status != MilestoneStatus.APPROVED:
            raise IllegalTransition(
                "Only approved milestones can be paid out", status=milestone.status.value
            )
        now = self.uow.now()
        await self.store.update(milestone, payment_released=True, payment_released_at=now)
        await self._record(
            milestone, MilestoneEventKind.PAYMENT_RELEASED, {"amount": milestone.amount}
        )
        logger.info(
            "milestone_payment_released", milestone_id=milestone.id, amount=milestone.amount
        )
        return milestone

    async def list_for_assignment(self, assignment_id: str) -> list[Milestone]:
        return await self.uow.run(self._list, assignment_id)

    async def _list(self, assignment_id: str) -> list[Milestone]:
        assignment = await self.store.get(Assignment, assignment_id)
        actor = self.store.actor
        if not assignment.is_participant(actor.user_id) and not actor.is_admin:
            raise Unauthorized("Not a participant of this assignment", assignment_id=assignment_id)
        return await self.store.query(
            Milestone, Milestone.assignment_id == assignment_id, order_by=Milestone.position
        )

    async def summary(self, assignment_id: str) -> MilestoneSummary:
        return await self.uow.run(self._summary, assignment_id)

    async def _summary(self, assignment_id: str) -> MilestoneSummary:
        milestones = await self._list(assignment_id)
        live = [m for m in milestones if m.status != MilestoneStatus.CANCELLED]
        total = sum(Decimal(str(m.amount)) for m in live)
        approved = sum(
            Decimal(str(m.amount)) for m in live if m.status == MilestoneStatus.APPROVED
        )
        released = sum(Decimal(str(m.amount)) for m in live if m.payment_released)
        approved_count = sum(1 for m in live if m.status == MilestoneStatus.APPROVED)
        percent = (
            round_half_up(Decimal(100 * approved_count) / Decimal(len(live)), 1) if live else 0
        )
        return MilestoneSummary(
            assignment_id=assignment_id,
            total_amount=float(total),
            approved_amount=float(approved),
            released_amount=float(released),
            escrow_amount=float(total - released),
            percent_complete=float(percent),
            counts=dict(Counter(m.status.value for m in milestones)),
        )

    async def _load(self, milestone_id: str) -> tuple[Milestone, Assignment]:
        milestone = await self.store.get(Milestone, milestone_id)
        assignment = await self.store.get(Assignment, milestone.assignment_id)
        return milestone, assignment

    async def _record(
        self, milestone: Milestone, kind: MilestoneEventKind, payload: dict | None = None
    ) -> MilestoneEvent:
        return await record_milestone_event(self.store, milestone, kind, payload)

    def _require_worker(self, milestone: Milestone) -> None:
        if milestone.worker_id != self.store.actor.user_id:
            raise Unauthorized("Only the assigned worker can submit", milestone_id=milestone.id)

    def _require_employer(self, milestone: Milestone) -> None:
        if milestone.employer_id != self.store.actor.user_id:
            raise Unauthorized("Only the employer can review milestones", milestone_id=milestone.id)

    @staticmethod
    def _require_submitted(milestone: Milestone) -> None:
        if milestone.status != MilestoneStatus.SUBMITTED:
            raise IllegalTransition(
                "Milestone is not awaiting review",
                milestone_id=milestone.id,
                status=milestone.status.value,
            )


async def record_milestone_event(
    store: EntityStore,
    milestone: Milestone,
    kind: MilestoneEventKind,
    payload: dict | None = None,
) -> MilestoneEvent:
    return await store.insert(
        MilestoneEvent(
            milestone_id=milestone.id,
            assignment_id=milestone.assignment_id,
            employer_id=milestone.employer_id,
            worker_id=milestone.worker_id,
            kind=kind,
            actor_id=store.actor.user_id,
            payload=payload,
            created_at=store.clock.now(),
        )
    )


async def cancel_open_milestones(store: EntityStore, assignment_id: str) -> list[Milestone]:
    """Cancel every milestone of the assignment that has not been approved."""
    milestones = await store.query(Milestone, Milestone.assignment_id == assignment_id)
    cancelled = []
    for milestone in milestones:
        if milestone.status in (MilestoneStatus.APPROVED, MilestoneStatus.CANCELLED):
            continue
        await store.update(milestone, status=MilestoneStatus.CANCELLED)
        await record_milestone_event(store, milestone, MilestoneEventKind.CANCELLED)
        cancelled.append(milestone)
    return cancelled


def _require_in_progress(assignment: Assignment) -> None:
    if assignment.status != AssignmentStatus.IN_PROGRESS:
        raise IllegalTransition(
            "Milestones can only change while the assignment is in progress",
            assignment_id=assignment.id,
            status=assignment.status.value,
        )
