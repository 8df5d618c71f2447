from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

import structlog

from trustwork.core.clock import as_utc
from trustwork.core.errors import IllegalTransition, Unauthorized, ValidationFailed
from trustwork.domain.services.milestones import cancel_open_milestones
from trustwork.infrastructure.db.models import (
    Application,
    ApplicationStatus,
    AssessmentTemplate,
    Assignment,
    AssignmentStatus,
    Difficulty,
    Profile,
    ProfileRole,
    Review,
    StatusHistoryEntry,
)
from trustwork.infrastructure.repositories import UnitOfWork

logger = structlog.get_logger()

TRANSITIONS: dict[AssignmentStatus, frozenset[AssignmentStatus]] = {
    AssignmentStatus.OPEN: frozenset({AssignmentStatus.IN_PROGRESS, AssignmentStatus.CANCELLED}),
    AssignmentStatus.IN_PROGRESS: frozenset(
        {AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED}
    ),
    AssignmentStatus.COMPLETED: frozenset(),
    AssignmentStatus.CANCELLED: frozenset(),
}


def is_allowed(current: AssignmentStatus, target: AssignmentStatus) -> bool:
    return current == target or target in TRANSITIONS[current]


@dataclass(slots=True)
class WorkflowState:
    assignment_id: str
    status: AssignmentStatus
    can_start: bool = False
    can_complete: bool = False
    can_cancel: bool = False
    can_review: bool = False
    next_statuses: list[str] = field(default_factory=list)


class AssignmentLifecycle:
    """State machine for assignments.

    Every accepted transition appends a status history row and queues an
    ``assignment.status-changed`` event in the same transaction. Requests for
    the current status are no-ops and leave no history.
    """

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow
        self.store = uow.store

    @property
    def actor_id(self) -> str:
        return self.store.actor.user_id

    async def create_assignment(
        self,
        *,
        title: str,
        description: str = "",
        budget_min: float | None = None,
        budget_max: float | None = None,
        required_template_id: str | None = None,
        required_difficulty: Difficulty | None = None,
        passing_fraction_override: float | None = None,
    ) -> Assignment:
        return await self.uow.run(
            self._create,
            title,
            description,
            budget_min,
            budget_max,
            required_template_id,
            required_difficulty,
            passing_fraction_override,
        )

    async def _create(
        self,
        title: str,
        description: str,
        budget_min: float | None,
        budget_max: float | None,
        required_template_id: str | None,
        required_difficulty: Difficulty | None,
        passing_fraction_override: float | None,
    ) -> Assignment:
        profile = await self.store.find(Profile, Profile.user_id == self.actor_id)
        if profile is None or profile.role != ProfileRole.EMPLOYER:
            raise Unauthorized("Only employers can post assignments", actor=self.actor_id)
        if not title or not title.strip():
            raise ValidationFailed("Title is required")
        for bound in (budget_min, budget_max):
            if bound is not None and bound < 0:
                raise ValidationFailed("Budget bounds must not be negative")
        if budget_min is not None and budget_max is not None and budget_max < budget_min:
            raise ValidationFailed(
                "budget_max must be at least budget_min",
                budget_min=budget_min,
                budget_max=budget_max,
            )
        if passing_fraction_override is not None and not 0 < passing_fraction_override <= 1:
            raise ValidationFailed(
                "passing_fraction_override must be within (0, 1]",
                passing_fraction_override=passing_fraction_override,
            )
        if required_template_id is not None:
            template = await self.store.get(AssessmentTemplate, required_template_id)
            if required_difficulty is not None and required_difficulty != template.difficulty:
                raise ValidationFailed(
                    "required_difficulty does not match the template",
                    template_difficulty=template.difficulty.value,
                )
            required_difficulty = template.difficulty
        elif passing_fraction_override is not None:
            raise ValidationFailed("A passing override needs a required template")

        assignment = await self.store.insert(
            Assignment(
                owner_id=self.actor_id,
                title=title.strip(),
                description=description,
                budget_min=budget_min,
                budget_max=budget_max,
                required_template_id=required_template_id,
                required_difficulty=required_difficulty,
                passing_fraction_override=passing_fraction_override,
                status=AssignmentStatus.OPEN,
                created_at=self.uow.now(),
                is_deleted=False,
            )
        )
        logger.info(
            "assignment_created",
            assignment_id=assignment.id,
            owner_id=self.actor_id,
            required_template_id=required_template_id,
        )
        return assignment

    async def start_work(self, assignment_id: str, application_id: str) -> Assignment:
        return await self.uow.run(self.start_work_in_tx, assignment_id, application_id)

    async def start_work_in_tx(self, assignment_id: str, application_id: str) -> Assignment:
        """Accept ``application_id`` and reject its open peers in one step."""
        assignment = await self.store.get(Assignment, assignment_id)
        self._require_owner(assignment)
        application = await self.store.get(Application, application_id)
        if application.assignment_id != assignment.id:
            raise ValidationFailed(
                "Application belongs to another assignment",
                application_id=application_id,
                assignment_id=assignment_id,
            )

        if assignment.status == AssignmentStatus.IN_PROGRESS:
            if (
                application.status == ApplicationStatus.ACCEPTED
                and assignment.worker_id == application.applicant_id
            ):
                return assignment
            raise IllegalTransition(
                "Assignment already has an assigned worker",
                assignment_id=assignment_id,
                worker_id=assignment.worker_id,
            )
        self._check_transition(assignment, AssignmentStatus.IN_PROGRESS)
        if application.status not in ApplicationStatus.open_statuses():
            raise IllegalTransition(
                "Only pending or viewed applications can be accepted",
                application_id=application_id,
                status=application.status.value,
            )

        now = self.uow.now()
        await self.store.update(
            application,
            status=ApplicationStatus.ACCEPTED,
            viewed_by_employer=True,
            decided_at=now,
            decided_by=self.actor_id,
        )
        peers = await self.store.query(
            Application,
            Application.assignment_id == assignment.id,
            Application.id != application.id,
            Application.status.in_(ApplicationStatus.open_statuses()),
        )
        for peer in peers:
            await self.store.update(
                peer,
                status=ApplicationStatus.REJECTED,
                decided_at=now,
                decided_by=self.actor_id,
            )

        await self._transition(
            assignment,
            AssignmentStatus.IN_PROGRESS,
            worker_id=application.applicant_id,
            started_at=now,
        )
        await self.store.emit("application.accepted", application.id)
        logger.info(
            "application_accepted",
            application_id=application.id,
            assignment_id=assignment.id,
            worker_id=application.applicant_id,
            rejected=len(peers),
        )
        return assignment

    async def complete(self, assignment_id: str, notes: str | None = None) -> Assignment:
        return await self.uow.run(self._complete, assignment_id, notes)

    async def _complete(self, assignment_id: str, notes: str | None) -> Assignment:
        assignment = await self.store.get(Assignment, assignment_id)
        self._require_participant(assignment)
        if assignment.status == AssignmentStatus.COMPLETED:
            return assignment
        self._check_transition(assignment, AssignmentStatus.COMPLETED)
        if assignment.worker_id != self.actor_id:
            raise Unauthorized("Only the assigned worker can complete", assignment_id=assignment_id)

        now = self.uow.now()
        await self._transition(
            assignment,
            AssignmentStatus.COMPLETED,
            completed_at=now,
            completion_notes=notes,
        )

        profile = await self.store.find(Profile, Profile.user_id == assignment.worker_id)
        if profile is None:
            profile = await self.store.insert(
                Profile.blank(assignment.worker_id, ProfileRole.JOB_SEEKER)
            )
        await self.store.update(profile, completed_engagements=profile.completed_engagements + 1)

        accepted = await self.store.query(
            Application,
            Application.assignment_id == assignment.id,
            Application.status == ApplicationStatus.ACCEPTED,
        )
        for application in accepted:
            await self.store.update(application, frozen=True)
        return assignment

    async def cancel(self, assignment_id: str, reason: str) -> Assignment:
        return await self.uow.run(self._cancel, assignment_id, reason)

    async def _cancel(self, assignment_id: str, reason: str) -> Assignment:
        settings = self.uow.settings
        reason = (reason or "").strip()
        if not settings.cancel_reason_min <= len(reason) <= settings.cancel_reason_max:
            raise ValidationFailed(
                "Cancellation reason must be "
                f"{settings.cancel_reason_min}-{settings.cancel_reason_max} characters",
                length=len(reason),
            )

        assignment = await self.store.get(Assignment, assignment_id)
        self._require_participant(assignment)
        if assignment.status == AssignmentStatus.CANCELLED:
            return assignment
        self._check_transition(assignment, AssignmentStatus.CANCELLED)
        if assignment.status == AssignmentStatus.OPEN:
            self._require_owner(assignment)

        await self._transition(
            assignment,
            AssignmentStatus.CANCELLED,
            reason=reason,
            cancelled_at=self.uow.now(),
            cancellation_reason=reason,
        )

        # Open applications belong to other applicants; the cascade runs as the system
        system = self.store.elevated()
        open_applications = await system.query(
            Application,
            Application.assignment_id == assignment.id,
            Application.status.in_(ApplicationStatus.open_statuses()),
        )
        for application in open_applications:
            await system.update(
                application,
                status=ApplicationStatus.REJECTED,
                decided_at=self.uow.now(),
                decided_by=self.actor_id,
            )
        cancelled = await cancel_open_milestones(self.store, assignment.id)
        logger.info(
            "assignment_cancelled",
            assignment_id=assignment.id,
            rejected_applications=len(open_applications),
            cancelled_milestones=len(cancelled),
        )
        return assignment

    async def soft_delete(self, assignment_id: str) -> Assignment:
        return await self.uow.run(self._soft_delete, assignment_id)

    async def _soft_delete(self, assignment_id: str) -> Assignment:
        assignment = await self.store.get(Assignment, assignment_id)
        self._require_owner(assignment)
        if assignment.status not in (AssignmentStatus.OPEN, AssignmentStatus.CANCELLED):
            raise IllegalTransition(
                "Only open or cancelled assignments can be deleted",
                status=assignment.status.value,
            )
        await self.store.update(assignment, is_deleted=True)
        logger.info("assignment_deleted", assignment_id=assignment.id)
        return assignment

    async def status_history(self, assignment_id: str) -> list[StatusHistoryEntry]:
        return await self.uow.run(self._history, assignment_id)

    async def _history(self, assignment_id: str) -> list[StatusHistoryEntry]:
        assignment = await self.store.get(Assignment, assignment_id)
        self._require_participant(assignment, allow_admin=True)
        return await self.store.query(
            StatusHistoryEntry,
            StatusHistoryEntry.assignment_id == assignment_id,
            order_by=[StatusHistoryEntry.created_at, StatusHistoryEntry.id],
        )

    async def workflow_state(self, assignment_id: str) -> WorkflowState:
        return await self.uow.run(self._workflow, assignment_id)

    async def _workflow(self, assignment_id: str) -> WorkflowState:
        assignment = await self.store.get(Assignment, assignment_id)
        actor = self.actor_id
        is_owner = assignment.owner_id == actor
        is_worker = assignment.worker_id == actor
        status = assignment.status
        state = WorkflowState(
            assignment_id=assignment.id,
            status=status,
            next_statuses=sorted(s.value for s in TRANSITIONS[status]),
        )
        state.can_start = status == AssignmentStatus.OPEN and is_owner
        state.can_complete = status == AssignmentStatus.IN_PROGRESS and is_worker
        state.can_cancel = (status == AssignmentStatus.OPEN and is_owner) or (
            status == AssignmentStatus.IN_PROGRESS and (is_owner or is_worker)
        )
        if status == AssignmentStatus.COMPLETED and (is_owner or is_worker):
            window_end = as_utc(assignment.completed_at) + timedelta(
                days=self.uow.settings.review_window_days
            )
            reviewed = await self.store.find(
                Review, Review.assignment_id == assignment.id, Review.reviewer_id == actor
            )
            state.can_review = self.uow.now() <= window_end and reviewed is None
        return state

    async def _transition(
        self,
        assignment: Assignment,
        target: AssignmentStatus,
        *,
        reason: str | None = None,
        **changes: object,
    ) -> StatusHistoryEntry:
        previous = assignment.status
        await self.store.update(assignment, status=target, **changes)
        entry = await self.store.insert(
            StatusHistoryEntry(
                assignment_id=assignment.id,
                owner_id=assignment.owner_id,
                worker_id=assignment.worker_id,
                from_status=previous,
                to_status=target,
                actor_id=self.actor_id,
                reason=reason,
                created_at=self.uow.now(),
            )
        )
        await self.store.emit("assignment.status-changed", assignment.id)
        logger.info(
            "assignment_transition",
            assignment_id=assignment.id,
            from_status=previous.value,
            to_status=target.value,
            actor_id=self.actor_id,
        )
        return entry

    @staticmethod
    def _check_transition(assignment: Assignment, target: AssignmentStatus) -> None:
        if not is_allowed(assignment.status, target):
            raise IllegalTransition(
                f"Cannot move assignment from {assignment.status.value} to {target.value}",
                assignment_id=assignment.id,
                from_status=assignment.status.value,
                to_status=target.value,
            )

    def _require_owner(self, assignment: Assignment) -> None:
        if assignment.owner_id != self.actor_id:
            raise Unauthorized("Only the employer can do this", assignment_id=assignment.id)

    def _require_participant(self, assignment: Assignment, *, allow_admin: bool = False) -> None:
        if assignment.is_participant(self.actor_id):
            return
        if allow_admin and self.store.actor.is_admin:
            return
        raise Unauthorized("Not a participant of this assignment", assignment_id=assignment.id)
