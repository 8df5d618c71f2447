from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from trustwork.api.schemas.attempts import VoucherOut


class BalanceResponse(BaseModel):
    user_id: str
    balance: int


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    delta: int
    balance_after: int
    reason: str
    voucher_id: str | None = None
    created_at: datetime


class VoucherListResponse(BaseModel):
    vouchers: list[VoucherOut]


class GrantRequest(BaseModel):
    user_id: str
    amount: int = Field(..., gt=0)
    reason: str = Field("admin_grant", min_length=1, max_length=255)
