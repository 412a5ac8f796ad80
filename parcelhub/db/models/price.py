"""
Price Catalog Models - per-destination rates, flat or tiered by weight
"""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, Enum as SQLEnum, Boolean, Numeric, ForeignKey,
    UniqueConstraint
)
from sqlalchemy.orm import relationship

from parcelhub.db.database import Base


class PriceCategory(str, enum.Enum):
    NORMAL = "normal"
    SENSITIVE = "sensitive"
    BATTERY = "battery"


class Price(Base):
    """Rate card for one (destination, category) pair"""

    __tablename__ = "prices"

    id = Column(Integer, primary_key=True, index=True)
    destination = Column(String(100), nullable=False, index=True)
    category = Column(
        SQLEnum(PriceCategory, values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )

    # Flat-mode rates: retail pair and partner (mitra) pair
    price_per_kg = Column(Numeric(14, 2), nullable=False)
    price_per_volume = Column(Numeric(14, 2), nullable=False)
    price_per_kg_mitra = Column(Numeric(14, 2), nullable=False)
    price_per_volume_mitra = Column(Numeric(14, 2), nullable=False)

    is_identity_required = Column(Boolean, default=False, nullable=False)
    use_tiered_pricing = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tiers = relationship(
        "PriceTier",
        back_populates="price",
        cascade="all, delete-orphan",
        order_by="PriceTier.min_weight",
    )

    __table_args__ = (
        UniqueConstraint("destination", "category", name="uq_price_destination_category"),
    )


class PriceTier(Base):
    """Weight band [min_weight, max_weight) with its own rates; max_weight NULL = unbounded"""

    __tablename__ = "price_tiers"

    id = Column(Integer, primary_key=True, index=True)
    price_id = Column(Integer, ForeignKey("prices.id", ondelete="CASCADE"), nullable=False, index=True)

    min_weight = Column(Numeric(12, 3), nullable=False)
    max_weight = Column(Numeric(12, 3), nullable=True)

    price_per_kg = Column(Numeric(14, 2), nullable=False)
    price_per_volume = Column(Numeric(14, 2), nullable=False)
    price_per_kg_mitra = Column(Numeric(14, 2), nullable=False)
    price_per_volume_mitra = Column(Numeric(14, 2), nullable=False)

    price = relationship("Price", back_populates="tiers")
