"""Error kinds shared by every core component.

Each error carries a stable machine-readable ``code`` and the HTTP status the
API boundary maps it to. Components raise these verbatim. The unit of work
retries ``PreconditionFailed`` along with database conflicts (integrity
violations, stale row versions and serialization failures) and raises
``PreconditionFailed`` once its attempts run out.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class TrustWorkError(Exception):
    """Base class for domain errors surfaced to callers."""

    code: str = "error"
    http_status: int = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.context:
            payload["context"] = {
                key: value.isoformat() if isinstance(value, datetime) else value
                for key, value in self.context.items()
            }
        return payload


class Unauthorized(TrustWorkError):
    code = "unauthorized"
    http_status = 403


class NotFound(TrustWorkError):
    code = "not_found"
    http_status = 404


class IllegalTransition(TrustWorkError):
    code = "illegal_transition"
    http_status = 409


class PreconditionFailed(TrustWorkError):
    code = "precondition_failed"
    http_status = 412


class ValidationFailed(TrustWorkError):
    code = "validation_failed"
    http_status = 422


class AlreadyCompleted(TrustWorkError):
    code = "already_completed"
    http_status = 409


class CooldownActive(TrustWorkError):
    code = "cooldown_active"
    http_status = 429


class UnlockNotMet(TrustWorkError):
    code = "unlock_not_met"
    http_status = 403


class AttemptInProgress(TrustWorkError):
    code = "attempt_in_progress"
    http_status = 409


class InsufficientFunds(TrustWorkError):
    code = "insufficient_funds"
    http_status = 402


class VoucherExpired(TrustWorkError):
    code = "voucher_expired"
    http_status = 410


class VoucherAlreadyRedeemed(TrustWorkError):
    code = "voucher_already_redeemed"
    http_status = 409


class VoucherNotOwned(TrustWorkError):
    code = "voucher_not_owned"
    http_status = 403


class RevisionsExhausted(TrustWorkError):
    code = "revisions_exhausted"
    http_status = 409


class IntegrityVoided(TrustWorkError):
    code = "integrity_voided"
    http_status = 409


class Cancelled(TrustWorkError):
    code = "cancelled"
    http_status = 408


__all__ = [
    "TrustWorkError",
    "Unauthorized",
    "NotFound",
    "IllegalTransition",
    "PreconditionFailed",
    "ValidationFailed",
    "AlreadyCompleted",
    "CooldownActive",
    "UnlockNotMet",
    "AttemptInProgress",
    "InsufficientFunds",
    "VoucherExpired",
    "VoucherAlreadyRedeemed",
    "VoucherNotOwned",
    "RevisionsExhausted",
    "IntegrityVoided",
    "Cancelled",
]
