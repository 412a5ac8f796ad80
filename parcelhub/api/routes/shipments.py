"""
Shipment API Routes
"""
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.dependencies.auth import get_current_caller, require_staff
from parcelhub.api.routes.schemas import ShipmentResponse, TrackingEntryResponse, ok, page
from parcelhub.core.auth import CallerIdentity
from parcelhub.core.config import settings
from parcelhub.core.logging import get_logger
from parcelhub.core.validation import (
    address_validator,
    name_validator,
    phone_validator,
    sanitized_text_validator,
)
from parcelhub.db.database import get_db
from parcelhub.db.models.shipment import ShipmentStatus
from parcelhub.domain.services.rate_resolver import PricingAudience
from parcelhub.domain.services.settlement_service import SettlementService, ShipmentDraft
from parcelhub.domain.services.shipment_query_service import ShipmentQueryService
from parcelhub.domain.services.tracking_service import TrackingService

logger = get_logger(__name__)

router = APIRouter()


class ShipmentCreate(BaseModel):
    """
    Shipment payload.

    Presence of required fields is checked by the settlement workflow so a
    missing field is reported as a 400 naming that field.
    """
    sender_name: Optional[str] = None
    sender_phone: Optional[str] = None
    sender_address: Optional[str] = None
    destination: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_phone: Optional[str] = None
    receiver_address: Optional[str] = None
    item_category: Optional[str] = None
    weight: Optional[Decimal] = None
    length: Optional[Decimal] = None
    width: Optional[Decimal] = None
    height: Optional[Decimal] = None
    package_contents: Optional[str] = None
    receiver_postal_code: Optional[str] = None
    receiver_identity_number: Optional[str] = None
    receiver_email: Optional[str] = None
    address_photo_ref: Optional[str] = None
    identity_front_ref: Optional[str] = None
    identity_back_ref: Optional[str] = None

    @field_validator("sender_phone", "receiver_phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return v
        return phone_validator(v)

    @field_validator("sender_name", "receiver_name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return v
        return name_validator(v)

    @field_validator("sender_address", "receiver_address")
    @classmethod
    def validate_address(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return v
        return address_validator(v)

    @field_validator("package_contents")
    @classmethod
    def sanitize_contents(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v, max_length=1000)

    @field_validator("destination", "item_category")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return v.strip() if v else v


class ExpeditionAssign(BaseModel):
    expedition_id: Optional[int] = None
    expedition_tracking_code: Optional[str] = None
    is_manual_tracking: bool = False


class StatusUpdate(BaseModel):
    status: str
    description: Optional[str] = None


@router.post(
    "",
    status_code=201,
    summary="Create a shipment",
    description=(
        "Prices the parcel for the caller's audience, debits the wallet and records "
        "the shipment. Send an `Idempotency-Key` header to make retries safe."
    ),
)
async def create_shipment(
    payload: ShipmentCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=64),
    db: AsyncSession = Depends(get_db),
):
    service = SettlementService(db)
    result = await service.create_shipment(
        user_id=caller.user_id,
        audience=PricingAudience.for_role(caller.role),
        draft=ShipmentDraft.from_dict(payload.model_dump()),
        idempotency_key=idempotency_key,
    )
    message = "Shipment already created" if result.replayed else "Shipment created successfully"
    return ok(message, {
        "shipment_id": result.shipment_id,
        "tracking_code": result.tracking_code,
        "total_price": str(result.total_price),
        "balance_after": str(result.balance_after),
        "replayed": result.replayed,
    })


@router.get("", summary="List shipments (own, or all for staff)")
async def list_shipments(
    status: Optional[ShipmentStatus] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page_no: int = Query(1, ge=1, alias="page"),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: CallerIdentity = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    shipments, total = await ShipmentQueryService(db).list_shipments(
        caller, status=status, search=search, page=page_no, page_size=page_size
    )
    items = [ShipmentResponse.model_validate(s).model_dump(mode="json") for s in shipments]
    return ok("Shipments retrieved", page(items, total, page_no, page_size))


@router.get("/{shipment_id}", summary="Get a shipment with its tracking history")
async def get_shipment(
    shipment_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    shipment = await ShipmentQueryService(db).get_shipment(shipment_id, caller)
    entries = await TrackingService(db).list_entries(shipment.id)
    data = ShipmentResponse.model_validate(shipment).model_dump(mode="json")
    data["tracking"] = [
        TrackingEntryResponse.model_validate(e).model_dump(mode="json") for e in entries
    ]
    return ok("Shipment retrieved", data)


@router.put("/{shipment_id}/expedition", summary="Hand a shipment to an expedition partner")
async def assign_expedition(
    shipment_id: int,
    payload: ExpeditionAssign,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    shipment = await SettlementService(db).assign_expedition(
        shipment_id,
        staff,
        expedition_tracking_code=payload.expedition_tracking_code,
        expedition_id=payload.expedition_id,
        manual=payload.is_manual_tracking,
    )
    return ok(
        "Expedition assigned successfully",
        ShipmentResponse.model_validate(shipment).model_dump(mode="json"),
    )


@router.put("/{shipment_id}/status", summary="Record a shipping status update")
async def update_status(
    shipment_id: int,
    payload: StatusUpdate,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    shipment = await SettlementService(db).record_status_update(
        shipment_id, staff, payload.status, payload.description
    )
    return ok(
        "Status updated successfully",
        ShipmentResponse.model_validate(shipment).model_dump(mode="json"),
    )


@router.put("/{shipment_id}/cancel", summary="Cancel a pending shipment and refund it")
async def cancel_shipment(
    shipment_id: int,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    result = await SettlementService(db).cancel_shipment(shipment_id, staff)
    return ok("Shipment cancelled and balance refunded", {
        "shipment_id": result.shipment_id,
        "refunded_amount": str(result.refunded_amount),
        "balance_after": str(result.balance_after),
    })
