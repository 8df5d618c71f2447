from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from trustwork.api.deps import get_clock, get_db_session, get_id_generator
from trustwork.api.main import app
from trustwork.core.clock import FrozenClock, SequentialIdGenerator
from trustwork.core.config import get_settings
from trustwork.domain import Actor
from trustwork.domain.reference_data import build_catalog
from trustwork.infrastructure.db.base import Base
from trustwork.infrastructure.db.models import Profile, ProfileRole
from trustwork.infrastructure.repositories import UnitOfWork

from tests.utils import ADMIN, EMPLOYER, SEEKER, SEEKER_2, SEEKER_3, T0

PROFILES = (
    (SEEKER, ProfileRole.JOB_SEEKER, "Sari"),
    (SEEKER_2, ProfileRole.JOB_SEEKER, "Budi"),
    (SEEKER_3, ProfileRole.JOB_SEEKER, "Dewi"),
    (EMPLOYER, ProfileRole.EMPLOYER, "Acme Studio"),
    (ADMIN, ProfileRole.ADMIN, "Ops"),
)

MakeUow = Callable[..., UnitOfWork]


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture()
def ids() -> SequentialIdGenerator:
    return SequentialIdGenerator("id")


@pytest.fixture()
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        await seed_reference_data(session)
    return factory


async def seed_reference_data(session: AsyncSession) -> None:
    for user_id, role, name in PROFILES:
        session.add(Profile.blank(user_id, role, display_name=name))
    for row in build_catalog(T0):
        session.add(row)
        await session.flush()
    await session.commit()


@pytest.fixture()
async def make_uow(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FrozenClock,
    ids: SequentialIdGenerator,
) -> AsyncIterator[MakeUow]:
    """Build a unit of work per acting user, each on its own session."""
    opened: list[UnitOfWork] = []

    def factory(
        user_id: str,
        *,
        is_admin: bool = False,
        deadline: datetime | None = None,
    ) -> UnitOfWork:
        actor = Actor.system() if user_id == "system" else Actor(user_id, is_admin=is_admin)
        uow = UnitOfWork(
            session_factory(),
            actor=actor,
            clock=clock,
            ids=ids,
            settings=get_settings(),
            deadline=deadline,
        )
        opened.append(uow)
        return uow

    yield factory
    for uow in opened:
        await uow.close()


@pytest.fixture()
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FrozenClock,
    ids: SequentialIdGenerator,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client bound to the seeded in-memory database."""

    async def override_db_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_id_generator] = lambda: ids

    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
