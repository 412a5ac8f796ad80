"""
Catalog Service - staff configuration of prices and weight tiers

Editing the catalog never touches existing shipments: their rates and totals
were frozen when they were created.
"""
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from parcelhub.core.exceptions import AppException, ErrorCode, NotFoundException, ValidationException
from parcelhub.core.logging import get_logger
from parcelhub.core.validation import AmountValidator
from parcelhub.db.models.price import Price, PriceTier, PriceCategory
from parcelhub.db.unit_of_work import atomic

logger = get_logger(__name__)

RATE_FIELDS = ("price_per_kg", "price_per_volume", "price_per_kg_mitra", "price_per_volume_mitra")


def _rate(field: str, value: Any) -> Decimal:
    parsed = AmountValidator.to_decimal(value)
    if parsed is None or parsed < 0:
        raise ValidationException(f"{field} must be a non-negative number", field=field)
    return parsed


def _validate_tiers(tiers: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Normalize tier dicts into ranges ordered by ``min_weight``.

    Each [min, max) range must be well formed, ranges may not overlap, and only
    the last one may be open-ended. Gaps between ranges are allowed.
    """
    normalized = []
    unbounded = 0
    for index, tier in enumerate(tiers):
        min_weight = AmountValidator.to_decimal(tier.get("min_weight"))
        if min_weight is None or min_weight < 0:
            raise ValidationException(
                "min_weight must be a non-negative number",
                field=f"tiers[{index}].min_weight",
            )
        max_weight = tier.get("max_weight")
        if max_weight is not None:
            max_weight = AmountValidator.to_decimal(max_weight)
            if max_weight is None or max_weight <= min_weight:
                raise ValidationException(
                    "max_weight must be greater than min_weight",
                    field=f"tiers[{index}].max_weight",
                )
        else:
            unbounded += 1
        row = {"min_weight": min_weight, "max_weight": max_weight}
        for field in RATE_FIELDS:
            row[field] = _rate(f"tiers[{index}].{field}", tier.get(field))
        normalized.append(row)

    if unbounded > 1:
        raise ValidationException("Only one tier may have an open upper bound", field="tiers")

    ordered = sorted(normalized, key=lambda t: t["min_weight"])
    for previous, current in zip(ordered, ordered[1:]):
        if previous["max_weight"] is None:
            raise ValidationException(
                "Only the heaviest tier may have an open upper bound",
                field="tiers",
                details={"min_weight": str(previous["min_weight"])},
            )
        if current["min_weight"] < previous["max_weight"]:
            raise ValidationException(
                "Weight tiers must not overlap",
                field="tiers",
                details={
                    "tier": f"[{previous['min_weight']}, {previous['max_weight']})",
                    "overlaps": f"[{current['min_weight']}, {current['max_weight'] or 'inf'})",
                },
            )
    return ordered


class CatalogService:
    """Service for the price catalog"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_prices(
        self,
        destination: Optional[str] = None,
        category: Optional[PriceCategory | str] = None,
    ) -> list[Price]:
        query = select(Price).options(selectinload(Price.tiers)).order_by(
            Price.destination, Price.category
        )
        if destination:
            query = query.where(Price.destination == destination)
        if category:
            query = query.where(Price.category == PriceCategory(category))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_price(self, price_id: int) -> Price:
        result = await self.db.execute(
            select(Price)
            .options(selectinload(Price.tiers))
            .where(Price.id == price_id)
            .execution_options(populate_existing=True)
        )
        price = result.scalar_one_or_none()
        if price is None:
            raise NotFoundException("Price", price_id)
        return price

    async def create_price(
        self,
        destination: str,
        category: PriceCategory | str,
        price_per_kg: Any,
        price_per_volume: Any,
        price_per_kg_mitra: Any,
        price_per_volume_mitra: Any,
        is_identity_required: bool = False,
        use_tiered_pricing: bool = False,
        tiers: Optional[list[dict[str, Any]]] = None,
    ) -> Price:
        """Create a price row (and its tiers) for a new (destination, category) pair"""
        category = PriceCategory(category)
        tier_rows = _validate_tiers(tiers or [])
        if use_tiered_pricing and not tier_rows:
            raise ValidationException("Tiered pricing requires at least one tier", field="tiers")

        existing = await self.db.execute(
            select(Price.id).where(Price.destination == destination, Price.category == category)
        )
        if existing.scalar_one_or_none() is not None:
            raise AppException(
                message="A price already exists for this destination and category",
                error_code=ErrorCode.ALREADY_EXISTS,
                status_code=409,
                details={"destination": destination, "category": category.value},
            )

        price = Price(
            destination=destination,
            category=category,
            price_per_kg=_rate("price_per_kg", price_per_kg),
            price_per_volume=_rate("price_per_volume", price_per_volume),
            price_per_kg_mitra=_rate("price_per_kg_mitra", price_per_kg_mitra),
            price_per_volume_mitra=_rate("price_per_volume_mitra", price_per_volume_mitra),
            is_identity_required=is_identity_required,
            use_tiered_pricing=use_tiered_pricing,
            tiers=[PriceTier(**row) for row in tier_rows],
        )
        async with atomic(self.db, "create_price"):
            self.db.add(price)

        logger.info(
            "Price created",
            extra_data={
                "price_id": price.id,
                "destination": destination,
                "category": category.value,
                "tiered": use_tiered_pricing,
            }
        )
        return await self.get_price(price.id)

    async def update_price(
        self,
        price_id: int,
        changes: dict[str, Any],
        tiers: Optional[list[dict[str, Any]]] = None,
    ) -> Price:
        """
        Update rates and flags; when ``tiers`` is given it replaces the whole tier set.
        """
        price = await self.get_price(price_id)

        # Validate everything before touching the row
        rates = {
            field: _rate(field, changes[field])
            for field in RATE_FIELDS
            if changes.get(field) is not None
        }
        flags = {
            flag: bool(changes[flag])
            for flag in ("is_identity_required", "use_tiered_pricing")
            if changes.get(flag) is not None
        }
        tier_rows = _validate_tiers(tiers) if tiers is not None else None

        tiered = flags.get("use_tiered_pricing", price.use_tiered_pricing)
        has_tiers = bool(tier_rows) if tier_rows is not None else bool(price.tiers)
        if tiered and not has_tiers:
            raise ValidationException("Tiered pricing requires at least one tier", field="tiers")

        async with atomic(self.db, "update_price"):
            for field, value in {**rates, **flags}.items():
                setattr(price, field, value)
            if tier_rows is not None:
                price.tiers = [PriceTier(**row) for row in tier_rows]

        logger.info(
            "Price updated",
            extra_data={
                "price_id": price_id,
                "fields": sorted({**rates, **flags}),
                "tiers_replaced": tier_rows is not None,
            }
        )
        return await self.get_price(price_id)
