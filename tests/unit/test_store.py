from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from trustwork.core.clock import FrozenClock
from trustwork.core.errors import (
    Cancelled,
    NotFound,
    PreconditionFailed,
    Unauthorized,
    ValidationFailed,
)
from trustwork.domain.services import CreditLedger
from trustwork.infrastructure.db.models import (
    Assignment,
    CreditBalance,
    OutboxEvent,
    Profile,
    Voucher,
)

from tests.conftest import MakeUow
from tests.utils import ADMIN, SEEKER, SEEKER_2, T0


@pytest.mark.asyncio
async def test_missing_row_is_not_found(make_uow: MakeUow) -> None:
    uow = make_uow(SEEKER)

    with pytest.raises(NotFound) as excinfo:
        await uow.run(uow.store.get, Assignment, "does-not-exist")

    assert excinfo.value.context == {"id": "does-not-exist"}


class TestPolicies:
    @pytest.mark.asyncio
    async def test_holder_rows_are_private(self, make_uow: MakeUow) -> None:
        owner = make_uow(SEEKER)
        await owner.run(CreditLedger(owner).credit, SEEKER, 10, "welcome_bonus")

        other = make_uow(SEEKER_2)
        with pytest.raises(Unauthorized):
            await other.run(other.store.get, CreditBalance, SEEKER)
        assert await other.run(other.store.query, CreditBalance) == []

    @pytest.mark.asyncio
    async def test_admin_reads_but_does_not_write_foreign_rows(self, make_uow: MakeUow) -> None:
        owner = make_uow(SEEKER)
        await owner.run(CreditLedger(owner).credit, SEEKER, 10, "welcome_bonus")

        admin = make_uow(ADMIN, is_admin=True)
        account = await admin.run(admin.store.get, CreditBalance, SEEKER)
        assert account.balance == 10
        with pytest.raises(Unauthorized):
            await admin.run(admin.store.update, account, balance=1000)

    @pytest.mark.asyncio
    async def test_elevated_store_bypasses_policies(self, make_uow: MakeUow) -> None:
        owner = make_uow(SEEKER)
        await owner.run(CreditLedger(owner).credit, SEEKER, 10, "welcome_bonus")

        other = make_uow(SEEKER_2)
        account = await other.run(other.store.elevated().get, CreditBalance, SEEKER)

        assert account.balance == 10

    @pytest.mark.asyncio
    async def test_profiles_are_public_but_owner_writable(self, make_uow: MakeUow) -> None:
        other = make_uow(SEEKER_2)
        profile = await other.run(other.store.get, Profile, SEEKER)

        assert profile.display_name == "Sari"
        with pytest.raises(Unauthorized):
            await other.run(other.store.update, profile, display_name="Mallory")

    @pytest.mark.asyncio
    async def test_outbox_is_system_only(self, make_uow: MakeUow) -> None:
        uow = make_uow(SEEKER)

        async def emit_one() -> OutboxEvent:
            return await uow.store.emit("attempt.completed", "attempt-1")

        event = await uow.run(emit_one)

        assert event.actor_id == SEEKER
        assert event.attempts == 0
        assert event.dispatched_at is None
        assert await uow.run(uow.store.query, OutboxEvent) == []
        system = make_uow("system")
        stored = await system.run(system.store.get, OutboxEvent, event.id)
        assert stored.event_type == "attempt.completed"


class TestOptimisticConcurrency:
    @pytest.mark.asyncio
    async def test_matching_version_updates(self, make_uow: MakeUow) -> None:
        uow = make_uow(SEEKER)
        profile = await uow.run(uow.store.get, Profile, SEEKER)
        version = profile.version

        await uow.run(uow.store.update, profile, expected_version=version, display_name="Sari W.")

        assert profile.version == version + 1

    @pytest.mark.asyncio
    async def test_stale_version_fails(self, make_uow: MakeUow) -> None:
        uow = make_uow(SEEKER)
        current = (await uow.run(uow.store.get, Profile, SEEKER)).version

        async def rename() -> Profile:
            profile = await uow.store.get(Profile, SEEKER)
            return await uow.store.update(
                profile, expected_version=current + 5, display_name="Mallory"
            )

        with pytest.raises(PreconditionFailed) as excinfo:
            await uow.run(rename)

        assert excinfo.value.context == {
            "expected_version": current + 5,
            "current_version": current,
        }


class TestRun:
    @pytest.mark.asyncio
    async def test_conflicts_are_retried_until_exhausted(self, make_uow: MakeUow) -> None:
        uow = make_uow(SEEKER)
        calls = 0

        async def always_stale() -> None:
            nonlocal calls
            calls += 1
            raise PreconditionFailed("stale")

        with pytest.raises(PreconditionFailed):
            await uow.run(always_stale)

        assert calls == 3

    @pytest.mark.asyncio
    async def test_conflict_then_success(self, make_uow: MakeUow) -> None:
        uow = make_uow(SEEKER)
        calls = 0

        async def flaky() -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise IntegrityError("INSERT", {}, Exception("duplicate key"))
            return "done"

        assert await uow.run(flaky) == "done"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_exhausted_integrity_conflict_surfaces_as_precondition(
        self, make_uow: MakeUow
    ) -> None:
        uow = make_uow(SEEKER)

        async def duplicate() -> None:
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(PreconditionFailed) as excinfo:
            await uow.run(duplicate)

        assert isinstance(excinfo.value.__cause__, IntegrityError)
        assert excinfo.value.context == {"attempts": 3}

    @pytest.mark.asyncio
    async def test_domain_errors_are_not_retried(self, make_uow: MakeUow) -> None:
        uow = make_uow(SEEKER)
        calls = 0

        async def invalid() -> None:
            nonlocal calls
            calls += 1
            raise ValidationFailed("bad input")

        with pytest.raises(ValidationFailed):
            await uow.run(invalid)

        assert calls == 1

    @pytest.mark.asyncio
    async def test_failure_rolls_back_earlier_writes(self, make_uow: MakeUow) -> None:
        uow = make_uow(SEEKER)
        ledger = CreditLedger(uow)

        async def issue_then_fail() -> None:
            await ledger.issue_voucher(SEEKER)
            raise ValidationFailed("abort")

        with pytest.raises(ValidationFailed):
            await uow.run(issue_then_fail)

        assert await uow.run(uow.store.query, Voucher) == []


class TestDeadline:
    @pytest.mark.asyncio
    async def test_calls_after_deadline_are_cancelled(
        self, make_uow: MakeUow, clock: FrozenClock
    ) -> None:
        uow = make_uow(SEEKER, deadline=T0 + timedelta(seconds=30))
        await uow.run(uow.store.get, Profile, SEEKER)

        clock.advance(seconds=30)

        with pytest.raises(Cancelled):
            await uow.run(uow.store.get, Profile, SEEKER)

    @pytest.mark.asyncio
    async def test_cancellation_leaves_no_partial_writes(
        self, make_uow: MakeUow, clock: FrozenClock
    ) -> None:
        uow = make_uow(SEEKER, deadline=T0 + timedelta(seconds=30))
        ledger = CreditLedger(uow)

        async def slow_grant() -> None:
            await ledger.issue_voucher(SEEKER)
            clock.advance(minutes=1)
            await ledger.credit(SEEKER, 10, "welcome_bonus")

        with pytest.raises(Cancelled):
            await uow.run(slow_grant)

        reader = make_uow(SEEKER)
        assert await reader.run(reader.store.query, Voucher) == []
        assert await reader.run(CreditLedger(reader).balance, SEEKER) == 0
