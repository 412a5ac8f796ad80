"""
Price Catalog Routes
"""
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.dependencies.auth import get_current_caller, require_staff
from parcelhub.api.routes.schemas import enum_value, ok
from parcelhub.core.auth import CallerIdentity
from parcelhub.db.database import get_db
from parcelhub.db.models.price import Price, PriceCategory
from parcelhub.domain.services.catalog_service import CatalogService
from parcelhub.domain.services.pricing_service import PricingService
from parcelhub.domain.services.rate_resolver import PricingAudience

router = APIRouter()


class TierPayload(BaseModel):
    min_weight: Decimal
    max_weight: Optional[Decimal] = None
    price_per_kg: Decimal
    price_per_volume: Decimal
    price_per_kg_mitra: Decimal
    price_per_volume_mitra: Decimal


class PriceCreate(BaseModel):
    destination: str
    category: PriceCategory
    price_per_kg: Decimal = Decimal("0")
    price_per_volume: Decimal = Decimal("0")
    price_per_kg_mitra: Decimal = Decimal("0")
    price_per_volume_mitra: Decimal = Decimal("0")
    is_identity_required: bool = False
    use_tiered_pricing: bool = False
    tiers: List[TierPayload] = []

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Destination is required")
        return v


class PriceUpdate(BaseModel):
    price_per_kg: Optional[Decimal] = None
    price_per_volume: Optional[Decimal] = None
    price_per_kg_mitra: Optional[Decimal] = None
    price_per_volume_mitra: Optional[Decimal] = None
    is_identity_required: Optional[bool] = None
    use_tiered_pricing: Optional[bool] = None
    tiers: Optional[List[TierPayload]] = None


class QuoteRequest(BaseModel):
    destination: str
    category: PriceCategory
    weight: Decimal
    length: Decimal
    width: Decimal
    height: Decimal


def _serialize_price(price: Price) -> dict:
    return {
        "id": price.id,
        "destination": price.destination,
        "category": enum_value(price.category),
        "price_per_kg": str(price.price_per_kg),
        "price_per_volume": str(price.price_per_volume),
        "price_per_kg_mitra": str(price.price_per_kg_mitra),
        "price_per_volume_mitra": str(price.price_per_volume_mitra),
        "is_identity_required": price.is_identity_required,
        "use_tiered_pricing": price.use_tiered_pricing,
        "tiers": [
            {
                "id": tier.id,
                "min_weight": str(tier.min_weight),
                "max_weight": str(tier.max_weight) if tier.max_weight is not None else None,
                "price_per_kg": str(tier.price_per_kg),
                "price_per_volume": str(tier.price_per_volume),
                "price_per_kg_mitra": str(tier.price_per_kg_mitra),
                "price_per_volume_mitra": str(tier.price_per_volume_mitra),
            }
            for tier in price.tiers
        ],
    }


@router.get("", summary="List the price catalog")
async def list_prices(
    destination: Optional[str] = Query(None),
    category: Optional[PriceCategory] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    prices = await CatalogService(db).list_prices(destination, category)
    return ok("Prices retrieved", [_serialize_price(p) for p in prices])


@router.post("", status_code=201, summary="Create a price (staff)")
async def create_price(
    payload: PriceCreate,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    price = await CatalogService(db).create_price(
        destination=payload.destination,
        category=payload.category,
        price_per_kg=payload.price_per_kg,
        price_per_volume=payload.price_per_volume,
        price_per_kg_mitra=payload.price_per_kg_mitra,
        price_per_volume_mitra=payload.price_per_volume_mitra,
        is_identity_required=payload.is_identity_required,
        use_tiered_pricing=payload.use_tiered_pricing,
        tiers=[t.model_dump() for t in payload.tiers],
    )
    return ok("Price created successfully", _serialize_price(price))


@router.put("/{price_id}", summary="Update a price (staff)")
async def update_price(
    price_id: int,
    payload: PriceUpdate,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    changes = payload.model_dump(exclude={"tiers"})
    tiers = [t.model_dump() for t in payload.tiers] if payload.tiers is not None else None
    price = await CatalogService(db).update_price(price_id, changes, tiers)
    return ok("Price updated successfully", _serialize_price(price))


@router.post("/quote", summary="Estimate the price of a parcel")
async def quote_price(
    payload: QuoteRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    quote = await PricingService(db).quote(
        destination=payload.destination.strip(),
        category=payload.category,
        audience=PricingAudience.for_role(caller.role),
        weight=payload.weight,
        length=payload.length,
        width=payload.width,
        height=payload.height,
    )
    return ok("Price calculated", quote.to_dict())
