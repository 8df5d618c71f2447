from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from trustwork.api.deps import get_unit_of_work, require_roles
from trustwork.api.schemas.attempts import VoucherOut
from trustwork.api.schemas.credits import (
    BalanceResponse,
    GrantRequest,
    TransactionOut,
    VoucherListResponse,
)
from trustwork.domain import User
from trustwork.domain.services import CreditLedger
from trustwork.infrastructure.repositories import UnitOfWork

router = APIRouter(prefix="/credits", tags=["Credits"])
logger = structlog.get_logger()


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> BalanceResponse:
    user_id = uow.actor.user_id
    balance = await uow.run(CreditLedger(uow).balance, user_id)
    return BalanceResponse(user_id=user_id, balance=balance)


@router.get("/transactions", response_model=list[TransactionOut])
async def list_transactions(
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> list[TransactionOut]:
    rows = await uow.run(CreditLedger(uow).history, uow.actor.user_id)
    return [TransactionOut.model_validate(row) for row in rows]


@router.get("/vouchers", response_model=VoucherListResponse)
async def list_vouchers(
    active_only: bool = False,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
) -> VoucherListResponse:
    ledger = CreditLedger(uow)
    vouchers = await uow.run(ledger.vouchers, uow.actor.user_id, active_only=active_only)
    return VoucherListResponse(vouchers=[VoucherOut.model_validate(v) for v in vouchers])


@router.post("/grants", response_model=BalanceResponse)
async def grant_credits(
    payload: GrantRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),  # noqa: B008
    admin: User = Depends(require_roles(["admin"])),  # noqa: B008
) -> BalanceResponse:
    ledger = CreditLedger(uow, store=uow.store.elevated())
    balance = await uow.run(ledger.credit, payload.user_id, payload.amount, payload.reason)
    await logger.ainfo(
        "credits_granted", user_id=payload.user_id, amount=payload.amount, admin_user=admin.user_id
    )
    return BalanceResponse(user_id=payload.user_id, balance=balance)
