from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class User:
    """Authenticated caller as established by the bearer token."""

    user_id: str
    email: str = ""
    roles: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


@dataclass(slots=True, frozen=True)
class Actor:
    """Identity every store call is made on behalf of.

    ``is_system`` bypasses row policies; services use it only for
    projections onto rows the caller does not own (profile aggregates,
    outbox rows).
    """

    user_id: str
    is_admin: bool = False
    is_system: bool = False

    @classmethod
    def from_user(cls, user: User) -> Actor:
        return cls(user_id=user.user_id, is_admin=user.is_admin)

    @classmethod
    def system(cls) -> Actor:
        return cls(user_id="system", is_system=True)
