"""
Pricing Service - one formula for both estimates and settlement
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.db.models.price import Price, PriceCategory
from parcelhub.domain.services.charge_calculator import ParcelMeasure, Number, measure, charge
from parcelhub.domain.services.rate_resolver import RateResolver, PricingAudience


@dataclass(frozen=True)
class PriceQuote:
    destination: str
    category: PriceCategory
    audience: PricingAudience
    parcel: ParcelMeasure
    rate_per_kg: Decimal
    rate_per_volume: Decimal
    tier_id: Optional[int]
    total_price: Decimal
    is_identity_required: bool

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "category": self.category.value,
            "audience": self.audience.value,
            "weight": str(self.parcel.weight),
            "volumetric_weight": str(self.parcel.volumetric_weight),
            "effective_weight": str(self.parcel.effective_weight),
            "price_per_kg": str(self.rate_per_kg),
            "price_per_volume": str(self.rate_per_volume),
            "tier_id": self.tier_id,
            "total_price": str(self.total_price),
            "is_identity_required": self.is_identity_required,
        }


class PricingService:
    """Measure, resolve rates, charge"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.rate_resolver = RateResolver(db)

    async def quote_for_price(
        self,
        price: Price,
        audience: PricingAudience,
        parcel: ParcelMeasure,
    ) -> PriceQuote:
        rate = await self.rate_resolver.resolve_for_price(price, audience, parcel.effective_weight)
        total = charge(parcel, rate.rate_per_kg, rate.rate_per_volume)
        return PriceQuote(
            destination=price.destination,
            category=PriceCategory(price.category),
            audience=audience,
            parcel=parcel,
            rate_per_kg=rate.rate_per_kg,
            rate_per_volume=rate.rate_per_volume,
            tier_id=rate.tier_id,
            total_price=total,
            is_identity_required=bool(price.is_identity_required),
        )

    async def quote(
        self,
        destination: str,
        category: PriceCategory | str,
        audience: PricingAudience,
        weight: Number,
        length: Number,
        width: Number,
        height: Number,
    ) -> PriceQuote:
        """Read-only price estimate; raises the same errors shipment creation would"""
        parcel = measure(weight, length, width, height)
        price = await self.rate_resolver.get_price(destination, category)
        return await self.quote_for_price(price, audience, parcel)
