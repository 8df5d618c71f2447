from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import structlog

from trustwork.core.clock import as_utc
from trustwork.core.errors import (
    InsufficientFunds,
    ValidationFailed,
    VoucherAlreadyRedeemed,
    VoucherExpired,
    VoucherNotOwned,
)
from trustwork.infrastructure.db.models import CreditBalance, CreditTransaction, Voucher
from trustwork.infrastructure.repositories import EntityStore, UnitOfWork

logger = structlog.get_logger()


@dataclass(slots=True, frozen=True)
class ChargeResult:
    base_amount: int
    charged: int
    balance: int
    voucher_id: str | None = None

    @property
    def discount(self) -> int:
        return self.base_amount - self.charged


def discounted_amount(amount: int, percent: int) -> int:
    """Apply a percentage discount, flooring to whole credits."""
    return amount * (100 - percent) // 100


class CreditLedger:
    """Assessment credit balances, their audit trail, and discount vouchers.

    Methods run inside the caller's transaction; a voucher redemption and the
    debit it discounts therefore commit or roll back together.
    """

    def __init__(self, uow: UnitOfWork, *, store: EntityStore | None = None) -> None:
        self.uow = uow
        # Admin grants pass an elevated store; balances are otherwise holder-only
        self.store = store or uow.store

    async def balance(self, user_id: str) -> int:
        account = await self._account(user_id)
        return account.balance

    async def debit(
        self, user_id: str, amount: int, reason: str, *, voucher_id: str | None = None
    ) -> int:
        if amount < 0:
            raise ValidationFailed("Debit amount must not be negative", amount=amount)
        account = await self._account(user_id)
        if account.balance < amount:
            raise InsufficientFunds(
                "Not enough assessment credits",
                balance=account.balance,
                required=amount,
            )
        return await self._apply(account, -amount, reason, voucher_id=voucher_id)

    async def credit(self, user_id: str, amount: int, reason: str) -> int:
        if amount < 0:
            raise ValidationFailed("Credit amount must not be negative", amount=amount)
        account = await self._account(user_id)
        return await self._apply(account, amount, reason)

    async def issue_voucher(
        self,
        user_id: str,
        percent: int | None = None,
        ttl: timedelta | None = None,
        *,
        source_attempt_id: str | None = None,
    ) -> Voucher:
        settings = self.uow.settings
        percent = settings.excellence_voucher_percent if percent is None else percent
        if not 0 < percent <= 100:
            raise ValidationFailed("Voucher percent must be within 1..100", percent=percent)
        ttl = ttl or timedelta(days=settings.voucher_ttl_days)
        issued_at = self.uow.now()
        voucher = await self.store.insert(
            Voucher(
                user_id=user_id,
                percent=percent,
                issued_at=issued_at,
                expires_at=issued_at + ttl,
                source_attempt_id=source_attempt_id,
            )
        )
        logger.info(
            "voucher_issued",
            voucher_id=voucher.id,
            user_id=user_id,
            percent=percent,
            expires_at=voucher.expires_at.isoformat(),
        )
        return voucher

    async def check_voucher(self, voucher_id: str, user_id: str) -> Voucher:
        """Return the voucher if ``user_id`` may redeem it right now."""
        # Elevated read so a foreign voucher reports VoucherNotOwned, not Unauthorized
        voucher = await self.store.elevated().get(Voucher, voucher_id)
        if voucher.user_id != user_id:
            raise VoucherNotOwned("Voucher belongs to another user", voucher_id=voucher_id)
        if voucher.redeemed_at is not None:
            raise VoucherAlreadyRedeemed(
                "Voucher has already been redeemed",
                voucher_id=voucher_id,
                redeemed_at=as_utc(voucher.redeemed_at),
            )
        if self.uow.now() > as_utc(voucher.expires_at):
            raise VoucherExpired(
                "Voucher has expired",
                voucher_id=voucher_id,
                expires_at=as_utc(voucher.expires_at),
            )
        return voucher

    async def redeem_voucher(self, voucher_id: str, user_id: str, amount: int, context: str) -> int:
        voucher = await self.check_voucher(voucher_id, user_id)
        await self.store.update(voucher, redeemed_at=self.uow.now(), redeemed_context=context)
        charged = discounted_amount(amount, voucher.percent)
        logger.info(
            "voucher_redeemed",
            voucher_id=voucher_id,
            user_id=user_id,
            context=context,
            base_amount=amount,
            charged=charged,
        )
        return charged

    async def charge(
        self, user_id: str, amount: int, reason: str, *, voucher_id: str | None = None
    ) -> ChargeResult:
        """Redeem the optional voucher and debit the remainder as one step."""
        charged = amount
        if voucher_id is not None:
            charged = await self.redeem_voucher(voucher_id, user_id, amount, reason)
        balance = await self.debit(user_id, charged, reason, voucher_id=voucher_id)
        return ChargeResult(
            base_amount=amount, charged=charged, balance=balance, voucher_id=voucher_id
        )

    async def history(self, user_id: str) -> list[CreditTransaction]:
        return await self.store.query(
            CreditTransaction,
            CreditTransaction.user_id == user_id,
            order_by=[CreditTransaction.created_at.desc(), CreditTransaction.id.desc()],
        )

    async def vouchers(self, user_id: str, *, active_only: bool = False) -> list[Voucher]:
        rows = await self.store.query(
            Voucher, Voucher.user_id == user_id, order_by=Voucher.issued_at.desc()
        )
        if not active_only:
            return rows
        now = self.uow.now()
        return [v for v in rows if v.redeemed_at is None and as_utc(v.expires_at) >= now]

    async def _account(self, user_id: str) -> CreditBalance:
        account = await self.store.find(CreditBalance, CreditBalance.user_id == user_id)
        if account is None:
            account = await self.store.insert(
                CreditBalance(user_id=user_id, balance=0, updated_at=self.uow.now())
            )
        return account

    async def _apply(
        self,
        account: CreditBalance,
        delta: int,
        reason: str,
        *,
        voucher_id: str | None = None,
    ) -> int:
        now = self.uow.now()
        new_balance = account.balance + delta
        await self.store.update(account, balance=new_balance, updated_at=now)
        await self.store.insert(
            CreditTransaction(
                user_id=account.user_id,
                delta=delta,
                balance_after=new_balance,
                reason=reason,
                voucher_id=voucher_id,
                created_at=now,
            )
        )
        logger.info(
            "credits_debited" if delta < 0 else "credits_credited",
            user_id=account.user_id,
            delta=delta,
            balance=new_balance,
            reason=reason,
        )
        return new_balance
