"""
Wallet API Routes
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.dependencies.auth import get_current_caller, require_staff
from parcelhub.api.routes.schemas import enum_value, ok
from parcelhub.core.auth import CallerIdentity
from parcelhub.core.validation import sanitized_text_validator
from parcelhub.db.database import get_db
from parcelhub.domain.services.wallet_service import WalletService

router = APIRouter()


class LedgerEntryResponse(BaseModel):
    id: int
    entry_type: str
    amount: Decimal
    balance_after: Decimal
    shipment_id: int | None
    topup_id: int | None
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("entry_type", mode="before")
    @classmethod
    def plain_entry_type(cls, v):
        return enum_value(v)


class BalanceAdjustment(BaseModel):
    type: Literal["add", "subtract"]
    amount: Decimal
    description: Optional[str] = None

    @field_validator("description")
    @classmethod
    def sanitize_description(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v, max_length=500)


@router.get("/me", summary="Current wallet balance")
async def get_my_wallet(
    caller: CallerIdentity = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    balance = await WalletService(db).get_balance(caller.user_id)
    return ok("Balance retrieved", {"user_id": caller.user_id, "balance": str(balance)})


@router.get("/me/history", summary="Wallet ledger, newest first")
async def get_my_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    caller: CallerIdentity = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    entries = await WalletService(db).get_ledger_history(caller.user_id, limit, offset)
    return ok("History retrieved", [
        LedgerEntryResponse.model_validate(e).model_dump(mode="json") for e in entries
    ])


@router.put("/{user_id}/adjust", summary="Manual balance adjustment (staff)")
async def adjust_balance(
    user_id: int,
    payload: BalanceAdjustment,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    entry = await WalletService(db).adjust_balance(
        user_id,
        staff.user_id,
        payload.type,
        payload.amount,
        payload.description,
    )
    return ok("Balance updated successfully", {
        "user_id": user_id,
        "balance": str(entry.balance_after),
        "entry": LedgerEntryResponse.model_validate(entry).model_dump(mode="json"),
    })
