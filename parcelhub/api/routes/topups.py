"""
Topup API Routes
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.dependencies.auth import get_current_caller, require_staff
from parcelhub.api.routes.schemas import enum_value, ok, page
from parcelhub.core.auth import CallerIdentity
from parcelhub.core.config import settings
from parcelhub.core.validation import sanitized_text_validator
from parcelhub.db.database import get_db
from parcelhub.db.models.topup import TopupStatus
from parcelhub.domain.services.topup_service import TopupService

router = APIRouter()


class TopupCreate(BaseModel):
    amount: Decimal
    proof_reference: Optional[str] = None


class TopupReview(BaseModel):
    status: str
    admin_notes: Optional[str] = None

    @field_validator("admin_notes")
    @classmethod
    def sanitize_notes(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v, max_length=1000)


class TopupResponse(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    proof_reference: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    reviewed_by_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def plain_status(cls, v):
        return enum_value(v)


@router.post("", status_code=201, summary="Request a wallet top-up")
async def request_topup(
    payload: TopupCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    topup = await TopupService(db).request_topup(
        caller.user_id, payload.amount, payload.proof_reference
    )
    return ok(
        "Topup request submitted",
        TopupResponse.model_validate(topup).model_dump(mode="json"),
    )


@router.get("", summary="List top-ups (own, or all for staff)")
async def list_topups(
    status: Optional[TopupStatus] = Query(None),
    page_no: int = Query(1, ge=1, alias="page"),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: CallerIdentity = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    topups, total = await TopupService(db).list_topups(caller, status, page_no, page_size)
    items = [TopupResponse.model_validate(t).model_dump(mode="json") for t in topups]
    return ok("Topups retrieved", page(items, total, page_no, page_size))


@router.put("/{topup_id}/status", summary="Approve or reject a top-up (staff)")
async def review_topup(
    topup_id: int,
    payload: TopupReview,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    topup = await TopupService(db).review_topup(
        topup_id, staff, payload.status, payload.admin_notes
    )
    return ok(
        f"Topup {enum_value(topup.status)}",
        TopupResponse.model_validate(topup).model_dump(mode="json"),
    )
