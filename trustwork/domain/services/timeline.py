"""Per-assignment timeline.

The projection is rebuilt from persisted rows on every call and keeps no
state of its own. Events sort by time, then by source priority, then by id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from trustwork.core.clock import as_utc
from trustwork.core.errors import Unauthorized
from trustwork.infrastructure.db.models import (
    Application,
    ApplicationStatus,
    Assignment,
    MilestoneEvent,
    Review,
    StatusHistoryEntry,
)
from trustwork.infrastructure.repositories import UnitOfWork

STATUS_PRIORITY = 0
APPLICATION_PRIORITY = 1
MILESTONE_PRIORITY = 2
REVIEW_PRIORITY = 3


@dataclass(slots=True, frozen=True)
class TimelineEvent:
    at: datetime
    kind: str
    actor: str
    priority: int
    source_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def sort_key(self) -> tuple[datetime, int, str]:
        return (self.at, self.priority, self.source_id)


class TimelineProjector:
    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow
        self.store = uow.store

    async def project(self, assignment_id: str) -> list[TimelineEvent]:
        return await self.uow.run(self._project, assignment_id)

    async def _project(self, assignment_id: str) -> list[TimelineEvent]:
        assignment = await self.store.get(Assignment, assignment_id)
        actor = self.store.actor
        if not assignment.is_participant(actor.user_id) and not actor.is_admin:
            raise Unauthorized("Not a participant of this assignment", assignment_id=assignment_id)

        # Peer applications are not readable by the worker; participants see ids only
        system = self.store.elevated()
        events: list[TimelineEvent] = []

        for entry in await system.query(
            StatusHistoryEntry, StatusHistoryEntry.assignment_id == assignment_id
        ):
            events.append(
                TimelineEvent(
                    at=as_utc(entry.created_at),
                    kind="status_changed",
                    actor=entry.actor_id,
                    priority=STATUS_PRIORITY,
                    source_id=entry.id,
                    payload={
                        "from": entry.from_status.value,
                        "to": entry.to_status.value,
                        "reason": entry.reason,
                    },
                )
            )

        for application in await system.query(
            Application,
            Application.assignment_id == assignment_id,
            Application.status.in_((ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED)),
            Application.decided_at.is_not(None),
        ):
            events.append(
                TimelineEvent(
                    at=as_utc(application.decided_at),
                    kind=f"application_{application.status.value}",
                    actor=application.decided_by or application.employer_id,
                    priority=APPLICATION_PRIORITY,
                    source_id=application.id,
                    payload={
                        "application_id": application.id,
                        "applicant_id": application.applicant_id,
                    },
                )
            )

        for event in await system.query(
            MilestoneEvent, MilestoneEvent.assignment_id == assignment_id
        ):
            events.append(
                TimelineEvent(
                    at=as_utc(event.created_at),
                    kind=f"milestone_{event.kind.value}",
                    actor=event.actor_id,
                    priority=MILESTONE_PRIORITY,
                    source_id=event.id,
                    payload={"milestone_id": event.milestone_id, **(event.payload or {})},
                )
            )

        for review in await system.query(Review, Review.assignment_id == assignment_id):
            events.append(
                TimelineEvent(
                    at=as_utc(review.created_at),
                    kind="review_created",
                    actor=review.reviewer_id,
                    priority=REVIEW_PRIORITY,
                    source_id=review.id,
                    payload={
                        "review_id": review.id,
                        "reviewer_role": review.reviewer_role.value,
                        "overall_rating": review.overall_rating,
                    },
                )
            )

        events.sort(key=lambda e: e.sort_key)
        return events
