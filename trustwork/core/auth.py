"""Bearer token handling.

TrustWork does not own login flows; the identity platform signs tokens and
this module only verifies them. ``create_access_token`` exists for smoke tests
and local tooling.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

import jwt

from trustwork.core.config import get_settings


class TokenError(Exception):
    """Raised when a token cannot be decoded or validated."""


class Role(str, Enum):
    """Coarse API roles carried by the token.

    Marketplace decisions never trust these; they read ``Profile.role``
    inside the transaction that authorises the operation.
    """

    JOB_SEEKER = "job_seeker"
    EMPLOYER = "employer"
    ADMIN = "admin"

    @classmethod
    def contains(cls, value: str) -> bool:
        return value in {role.value for role in cls}


@dataclass(slots=True, frozen=True)
class TokenClaims:
    subject: str
    roles: tuple[str, ...]
    email: str
    expires_at: datetime


def create_access_token(
    subject: str,
    *,
    roles: Sequence[str],
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Generate a signed JWT access token."""
    settings = get_settings()

    invalid_roles = [role for role in roles if not Role.contains(role)]
    if invalid_roles:
        raise TokenError(f"Unsupported role(s): {', '.join(invalid_roles)}")

    issued = datetime.now(UTC)
    ttl = expires_delta or timedelta(seconds=settings.access_token_ttl_seconds)
    payload = {
        "sub": subject,
        "roles": list(roles),
        "iat": int(issued.timestamp()),
        "exp": int((issued + ttl).timestamp()),
        "iss": settings.app_name,
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    """Verify signature, expiry and issuer, then return the claims."""
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.app_name,
            options={"require": ["sub", "roles", "exp", "iss"]},
        )
    except jwt.PyJWTError as exc:  # pragma: no cover - third-party raises numerous subclasses
        raise TokenError("Invalid token") from exc

    roles = tuple(payload.get("roles") or ())
    unknown = [role for role in roles if role not in settings.allowed_roles]
    if unknown:
        raise TokenError(f"Unsupported role: {unknown[0]}")

    return TokenClaims(
        subject=str(payload["sub"]),
        roles=roles,
        email=payload.get("email", ""),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
    )
