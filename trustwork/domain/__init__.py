"""Domain types shared across services."""

from trustwork.domain.models import Actor, User

__all__ = ["Actor", "User"]
