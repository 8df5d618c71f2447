from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from datetime import datetime

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from trustwork.core.auth import Role, TokenError, create_access_token, decode_access_token
from trustwork.core.clock import Clock, IdGenerator, SystemClock, UuidGenerator, as_utc
from trustwork.core.config import get_settings
from trustwork.core.errors import ValidationFailed
from trustwork.domain import Actor, User
from trustwork.infrastructure.db.session import get_session
from trustwork.infrastructure.repositories import UnitOfWork

bearer_scheme = HTTPBearer(auto_error=False)

_system_clock = SystemClock()
_uuid_generator = UuidGenerator()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
) -> User:
    """Resolve the authenticated user from a bearer token."""
    if credentials is None:
        raise _unauthorized("Missing bearer token")

    try:
        claims = decode_access_token(credentials.credentials)
    except TokenError as exc:
        raise _unauthorized(str(exc)) from exc

    if not claims.subject:
        raise _unauthorized("Token missing subject")

    if not claims.roles:
        raise _forbidden("Token missing required roles")

    return User(user_id=claims.subject, email=claims.email, roles=list(claims.roles))


def require_roles(required_roles: Sequence[str]) -> Callable[[User], User]:
    """Dependency factory enforcing that the authenticated user has one of the required roles."""
    settings = get_settings()
    allowed = set(settings.allowed_roles)

    invalid_roles = [role for role in required_roles if role not in allowed]
    if invalid_roles:
        joined_roles = ", ".join(invalid_roles)
        raise ValueError(f"Unsupported role(s) requested: {joined_roles}")

    required = set(required_roles)

    def dependency(user: User = Depends(get_current_user)) -> User:  # noqa: B008
        if not required.intersection(user.roles):
            raise _forbidden("Insufficient role privileges")
        return user

    return dependency


def issue_smoke_token(user_id: str, *, role: Role, email: str | None = None) -> str:
    """Generate a signed token for manual smoke testing."""
    return create_access_token(user_id, roles=[role.value], email=email)


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Provide an async SQLAlchemy session for API handlers."""
    async for session in get_session():
        yield session


def get_clock() -> Clock:
    return _system_clock


def get_id_generator() -> IdGenerator:
    return _uuid_generator


def get_request_deadline(
    x_request_deadline: str | None = Header(default=None),  # noqa: B008
) -> datetime | None:
    """Parse the caller deadline (ISO-8601) from ``X-Request-Deadline``."""
    if not x_request_deadline:
        return None
    try:
        return as_utc(datetime.fromisoformat(x_request_deadline))
    except ValueError as exc:
        raise ValidationFailed(
            "X-Request-Deadline must be an ISO-8601 timestamp", value=x_request_deadline
        ) from exc


async def get_unit_of_work(
    session: AsyncSession = Depends(get_db_session),  # noqa: B008
    user: User = Depends(get_current_user),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
    ids: IdGenerator = Depends(get_id_generator),  # noqa: B008
    deadline: datetime | None = Depends(get_request_deadline),  # noqa: B008
) -> AsyncIterator[UnitOfWork]:
    """Unit of work acting on behalf of the authenticated caller."""
    async with UnitOfWork(
        session,
        actor=Actor.from_user(user),
        clock=clock,
        ids=ids,
        deadline=deadline,
    ) as uow:
        yield uow


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
