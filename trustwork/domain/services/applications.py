from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

import structlog

from trustwork.core.errors import (
    AlreadyCompleted,
    IllegalTransition,
    Unauthorized,
    UnlockNotMet,
    ValidationFailed,
)
from trustwork.domain.services.assessments import AssessmentEngine
from trustwork.domain.services.lifecycle import AssignmentLifecycle
from trustwork.infrastructure.db.models import (
    Application,
    ApplicationStatus,
    Assignment,
    AssignmentStatus,
)
from trustwork.infrastructure.repositories import UnitOfWork

logger = structlog.get_logger()


@dataclass(slots=True)
class AcceptResult:
    application: Application
    assignment: Assignment
    rejected_ids: list[str] = field(default_factory=list)


class ApplicationService:
    """Application sub-lifecycle: submit, view, accept, reject, withdraw."""

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow
        self.store = uow.store
        self.engine = AssessmentEngine(uow)
        self.lifecycle = AssignmentLifecycle(uow)

    @property
    def actor_id(self) -> str:
        return self.store.actor.user_id

    async def submit(
        self,
        assignment_id: str,
        *,
        proposal: str = "",
        bid_amount: float | None = None,
        estimated_days: int | None = None,
    ) -> Application:
        # Settles an overdue gating attempt before the gate is read again below
        await self.engine.can_apply(self.actor_id, assignment_id)
        return await self.uow.run(
            self._submit, assignment_id, proposal, bid_amount, estimated_days
        )

    async def _submit(
        self,
        assignment_id: str,
        proposal: str,
        bid_amount: float | None,
        estimated_days: int | None,
    ) -> Application:
        assignment = await self.store.get(Assignment, assignment_id)
        if assignment.owner_id == self.actor_id:
            raise Unauthorized("Employers cannot apply to their own assignment")
        if assignment.status != AssignmentStatus.OPEN:
            raise IllegalTransition(
                "Assignment is not accepting applications",
                assignment_id=assignment_id,
                status=assignment.status.value,
            )
        if bid_amount is not None and bid_amount < 0:
            raise ValidationFailed("bid_amount must not be negative")
        if estimated_days is not None and estimated_days <= 0:
            raise ValidationFailed("estimated_days must be positive")

        existing = await self.store.find(
            Application,
            Application.assignment_id == assignment_id,
            Application.applicant_id == self.actor_id,
        )
        if existing is not None:
            raise AlreadyCompleted(
                "You have already applied to this assignment", application_id=existing.id
            )

        decision = await self.engine.decide_apply(self.actor_id, assignment_id)
        if not decision.allowed:
            raise UnlockNotMet(
                "Passing the required assessment is needed to apply",
                assignment_id=assignment_id,
                required_template_id=assignment.required_template_id,
                required_score=decision.required_score,
            )

        application = await self.store.insert(
            Application(
                assignment_id=assignment_id,
                applicant_id=self.actor_id,
                employer_id=assignment.owner_id,
                proposal=proposal,
                bid_amount=bid_amount,
                estimated_days=estimated_days,
                attempt_id=decision.attempt_id,
                status=ApplicationStatus.PENDING,
                viewed_by_employer=False,
                frozen=False,
                created_at=self.uow.now(),
            )
        )
        logger.info(
            "application_submitted",
            application_id=application.id,
            assignment_id=assignment_id,
            applicant_id=self.actor_id,
        )
        return application

    async def view(self, application_id: str) -> Application:
        return await self.uow.run(self._view, application_id)

    async def _view(self, application_id: str) -> Application:
        application = await self.store.get(Application, application_id)
        self._require_employer(application)
        if application.viewed_by_employer:
            return application
        self._ensure_writable(application)
        changes: dict[str, object] = {"viewed_by_employer": True}
        if application.status == ApplicationStatus.PENDING:
            changes["status"] = ApplicationStatus.VIEWED
        await self.store.update(application, **changes)
        return application

    async def accept(self, application_id: str) -> AcceptResult:
        return await self.uow.run(self._accept, application_id)

    async def _accept(self, application_id: str) -> AcceptResult:
        application = await self.store.get(Application, application_id)
        self._require_employer(application)
        self._ensure_writable(application)
        open_before = {
            peer.id
            for peer in await self.store.query(
                Application,
                Application.assignment_id == application.assignment_id,
                Application.id != application.id,
                Application.status.in_(ApplicationStatus.open_statuses()),
            )
        }
        assignment = await self.lifecycle.start_work_in_tx(
            application.assignment_id, application.id
        )
        return AcceptResult(
            application=application,
            assignment=assignment,
            rejected_ids=sorted(open_before),
        )

    async def reject(self, application_id: str) -> Application:
        return await self.uow.run(self._reject, application_id)

    async def _reject(self, application_id: str) -> Application:
        application = await self.store.get(Application, application_id)
        self._require_employer(application)
        if application.status == ApplicationStatus.REJECTED:
            return application
        self._ensure_writable(application)
        if application.status not in ApplicationStatus.open_statuses():
            raise IllegalTransition(
                "Only pending or viewed applications can be rejected",
                status=application.status.value,
            )
        await self.store.update(
            application,
            status=ApplicationStatus.REJECTED,
            viewed_by_employer=True,
            decided_at=self.uow.now(),
            decided_by=self.actor_id,
        )
        logger.info("application_rejected", application_id=application.id)
        return application

    async def withdraw(self, application_id: str) -> Application:
        return await self.uow.run(self._withdraw, application_id)

    async def _withdraw(self, application_id: str) -> Application:
        application = await self.store.get(Application, application_id)
        if application.applicant_id != self.actor_id:
            raise Unauthorized("Only the applicant can withdraw", application_id=application_id)
        self._ensure_writable(application)
        if application.status not in ApplicationStatus.open_statuses():
            raise IllegalTransition(
                "Only pending or viewed applications can be withdrawn",
                status=application.status.value,
            )
        await self.store.update(application, status=ApplicationStatus.WITHDRAWN)
        logger.info("application_withdrawn", application_id=application.id)
        return application

    async def list_for_assignment(self, assignment_id: str) -> list[Application]:
        return await self.uow.run(self._list_for_assignment, assignment_id)

    async def _list_for_assignment(self, assignment_id: str) -> list[Application]:
        assignment = await self.store.get(Assignment, assignment_id)
        if assignment.owner_id != self.actor_id and not self.store.actor.is_admin:
            raise Unauthorized("Only the employer can list applications")
        return await self.store.query(
            Application,
            Application.assignment_id == assignment_id,
            order_by=[Application.created_at, Application.id],
        )

    async def list_mine(self) -> list[Application]:
        return await self.uow.run(
            self.store.query,
            Application,
            Application.applicant_id == self.actor_id,
            order_by=Application.created_at.desc(),
        )

    async def stats(self, assignment_id: str) -> dict[str, int]:
        applications = await self.list_for_assignment(assignment_id)
        counts = Counter(application.status.value for application in applications)
        result = {status.value: counts.get(status.value, 0) for status in ApplicationStatus}
        result["total"] = len(applications)
        return result

    def _require_employer(self, application: Application) -> None:
        if application.employer_id != self.actor_id:
            raise Unauthorized(
                "Only the assignment owner can do this", application_id=application.id
            )

    @staticmethod
    def _ensure_writable(application: Application) -> None:
        if application.frozen:
            raise AlreadyCompleted(
                "Application is frozen after completion", application_id=application.id
            )
