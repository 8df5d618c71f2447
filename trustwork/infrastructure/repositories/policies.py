"""Row-level access policies.

Every entity type maps to a read and a write predicate over ``(actor, row)``.
The system actor bypasses both; admins may read everything but only write
where a policy says so.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from trustwork.domain import Actor
from trustwork.infrastructure.db.models import (
    Application,
    AssessmentTemplate,
    Assignment,
    Attempt,
    AttemptQuestion,
    CreditBalance,
    CreditTransaction,
    Milestone,
    MilestoneEvent,
    OutboxEvent,
    Profile,
    Question,
    Review,
    Skill,
    StatusHistoryEntry,
    Voucher,
)

Predicate = Callable[[Actor, Any], bool]


@dataclass(frozen=True, slots=True)
class RowPolicy:
    read: Predicate
    write: Predicate


def _anyone(_: Actor, __: Any) -> bool:
    return True


def _nobody(_: Actor, __: Any) -> bool:
    return False


def _admin_only(actor: Actor, _: Any) -> bool:
    return actor.is_admin


def _holder(actor: Actor, row: Any) -> bool:
    return row.user_id == actor.user_id


def _participant(actor: Actor, row: Any) -> bool:
    return actor.user_id in (row.employer_id, row.worker_id)


def _history_participant(actor: Actor, row: StatusHistoryEntry) -> bool:
    return actor.user_id in (row.owner_id, row.worker_id)


def _assignment_visible(actor: Actor, row: Assignment) -> bool:
    return not row.is_deleted or row.owner_id == actor.user_id


def _application_party(actor: Actor, row: Application) -> bool:
    return actor.user_id in (row.applicant_id, row.employer_id)


def _profile_owner(actor: Actor, row: Profile) -> bool:
    return row.user_id == actor.user_id or actor.is_admin


def _reviewer(actor: Actor, row: Review) -> bool:
    return row.reviewer_id == actor.user_id


POLICIES: dict[type, RowPolicy] = {
    Skill: RowPolicy(read=_anyone, write=_admin_only),
    AssessmentTemplate: RowPolicy(read=_anyone, write=_admin_only),
    Question: RowPolicy(read=_anyone, write=_admin_only),
    Attempt: RowPolicy(read=_holder, write=_holder),
    AttemptQuestion: RowPolicy(read=_holder, write=_holder),
    CreditBalance: RowPolicy(read=_holder, write=_holder),
    CreditTransaction: RowPolicy(read=_holder, write=_holder),
    Voucher: RowPolicy(read=_holder, write=_holder),
    Profile: RowPolicy(read=_anyone, write=_profile_owner),
    Assignment: RowPolicy(
        read=_assignment_visible,
        write=lambda actor, row: row.is_participant(actor.user_id),
    ),
    Application: RowPolicy(read=_application_party, write=_application_party),
    Milestone: RowPolicy(read=_participant, write=_participant),
    MilestoneEvent: RowPolicy(read=_participant, write=_participant),
    StatusHistoryEntry: RowPolicy(read=_history_participant, write=_history_participant),
    Review: RowPolicy(read=_anyone, write=_reviewer),
    OutboxEvent: RowPolicy(read=_nobody, write=_anyone),
}


def policy_for(model: type) -> RowPolicy:
    try:
        return POLICIES[model]
    except KeyError as exc:
        raise LookupError(f"No row policy registered for {model.__name__}") from exc


def can_read(actor: Actor, row: Any) -> bool:
    if actor.is_system:
        return True
    if actor.is_admin:
        return True
    return policy_for(type(row)).read(actor, row)


def can_write(actor: Actor, row: Any) -> bool:
    if actor.is_system:
        return True
    return policy_for(type(row)).write(actor, row)
