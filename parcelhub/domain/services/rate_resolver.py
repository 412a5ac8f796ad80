"""
Rate Resolver - unit rates for a (destination, category, audience, weight)
"""
import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.exceptions import PriceNotAvailableError, NoPricingTierFoundError
from parcelhub.core.logging import get_logger
from parcelhub.db.models.price import Price, PriceTier, PriceCategory
from parcelhub.db.models.user import UserRole

logger = get_logger(__name__)


class PricingAudience(str, enum.Enum):
    """Which rate pair applies; resolved once from the caller's role"""
    RETAIL = "retail"
    PARTNER = "partner"

    @classmethod
    def for_role(cls, role: UserRole | str) -> "PricingAudience":
        return cls.PARTNER if UserRole(role) == UserRole.MITRA else cls.RETAIL


@dataclass(frozen=True)
class ResolvedRate:
    rate_per_kg: Decimal
    rate_per_volume: Decimal
    tier_id: Optional[int] = None


def _pair_for(row: Price | PriceTier, audience: PricingAudience) -> tuple[Decimal, Decimal]:
    if audience == PricingAudience.PARTNER:
        return Decimal(row.price_per_kg_mitra), Decimal(row.price_per_volume_mitra)
    return Decimal(row.price_per_kg), Decimal(row.price_per_volume)


class RateResolver:
    """Reads the catalog through the caller's session; nothing is cached between calls"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_price(self, destination: str, category: PriceCategory | str) -> Price:
        """Price row for the pair, or ``PriceNotAvailableError``"""
        category = PriceCategory(category)
        result = await self.db.execute(
            select(Price).where(
                Price.destination == destination,
                Price.category == category,
            )
        )
        price = result.scalar_one_or_none()
        if price is None:
            raise PriceNotAvailableError(destination, category.value)
        return price

    async def select_tier(self, price: Price, effective_weight: Decimal) -> PriceTier:
        """
        Tier whose half-open range [min_weight, max_weight) contains the weight.

        Overlaps resolve to the tier with the greatest ``min_weight``.
        """
        result = await self.db.execute(
            select(PriceTier)
            .where(
                PriceTier.price_id == price.id,
                PriceTier.min_weight <= effective_weight,
                or_(PriceTier.max_weight.is_(None), PriceTier.max_weight > effective_weight),
            )
            .order_by(PriceTier.min_weight.desc())
            .limit(1)
        )
        tier = result.scalar_one_or_none()
        if tier is None:
            logger.info(
                "No pricing tier covers weight",
                extra_data={"price_id": price.id, "effective_weight": str(effective_weight)}
            )
            raise NoPricingTierFoundError(price.id, effective_weight)
        return tier

    async def resolve_for_price(
        self,
        price: Price,
        audience: PricingAudience,
        effective_weight: Decimal,
    ) -> ResolvedRate:
        if not price.use_tiered_pricing:
            per_kg, per_volume = _pair_for(price, audience)
            return ResolvedRate(per_kg, per_volume)

        tier = await self.select_tier(price, effective_weight)
        per_kg, per_volume = _pair_for(tier, audience)
        return ResolvedRate(per_kg, per_volume, tier_id=tier.id)

    async def resolve(
        self,
        destination: str,
        category: PriceCategory | str,
        audience: PricingAudience,
        effective_weight: Decimal,
    ) -> ResolvedRate:
        """
        Resolve unit rates.

        Raises:
            PriceNotAvailableError: no catalog row for (destination, category)
            NoPricingTierFoundError: tiered price with no tier covering the weight
        """
        price = await self.get_price(destination, category)
        return await self.resolve_for_price(price, audience, effective_weight)
