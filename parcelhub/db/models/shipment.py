"""
Shipment Model - Immutable priced transaction record
"""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, Enum as SQLEnum, Numeric, ForeignKey, Text, Boolean,
    UniqueConstraint
)
from sqlalchemy.orm import relationship

from parcelhub.db.database import Base
from parcelhub.db.models.price import PriceCategory


class ShipmentStatus(str, enum.Enum):
    PENDING = "pending"
    DIKIRIM = "dikirim"  # handed to the expedition partner
    TRANSIT = "transit"
    CUSTOMS_HOLD = "customs_hold"
    DELIVERY_FAILED = "delivery_failed"
    SUKSES = "sukses"  # delivered
    CANCELED = "canceled"


class Shipment(Base):
    """
    One priced, paid parcel.

    Pricing fields (rates, volumetric weight, total) are frozen at creation and
    never recomputed; only status and expedition linkage change afterwards.
    """

    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    tracking_code = Column(String(20), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    idempotency_key = Column(String(64), nullable=True)

    # Sender
    sender_name = Column(String(100), nullable=False)
    sender_phone = Column(String(20), nullable=False)
    sender_address = Column(String(500), nullable=False)

    # Receiver
    receiver_name = Column(String(100), nullable=False)
    receiver_phone = Column(String(20), nullable=False)
    receiver_address = Column(String(500), nullable=False)
    receiver_postal_code = Column(String(20), nullable=True)
    receiver_identity_number = Column(String(50), nullable=True)
    receiver_email = Column(String(150), nullable=True)

    # Opaque references produced by the upload collaborator
    address_photo_ref = Column(String(255), nullable=True)
    identity_front_ref = Column(String(255), nullable=True)
    identity_back_ref = Column(String(255), nullable=True)

    destination = Column(String(100), nullable=False, index=True)
    item_category = Column(
        SQLEnum(PriceCategory, values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )
    package_contents = Column(Text, nullable=True)

    # Measurements
    weight = Column(Numeric(12, 3), nullable=False)
    length = Column(Numeric(12, 3), nullable=False)
    width = Column(Numeric(12, 3), nullable=False)
    height = Column(Numeric(12, 3), nullable=False)
    volumetric_weight = Column(Numeric(12, 4), nullable=False)

    # Frozen pricing
    price_per_kg = Column(Numeric(14, 2), nullable=False)
    price_per_volume = Column(Numeric(14, 2), nullable=False)
    total_price = Column(Numeric(14, 2), nullable=False)

    status = Column(
        SQLEnum(ShipmentStatus, values_callable=lambda x: [e.value for e in x]),
        default=ShipmentStatus.PENDING,
        nullable=False,
        index=True
    )
    expedition_id = Column(Integer, ForeignKey("expeditions.id"), nullable=True)
    expedition_tracking_code = Column(String(100), nullable=True)
    is_manual_tracking = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])
    expedition = relationship("Expedition", foreign_keys=[expedition_id])

    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_shipment_user_idempotency_key"),
    )
