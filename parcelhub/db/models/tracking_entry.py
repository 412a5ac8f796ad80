"""
Tracking Entry Model - append-only shipment history
"""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, Enum as SQLEnum, ForeignKey, Text, Index

from parcelhub.db.database import Base
from parcelhub.db.models.shipment import ShipmentStatus


class TrackingEntry(Base):
    """Status event for a shipment; rows are only ever inserted"""

    __tablename__ = "tracking_entries"

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=False)
    status = Column(
        SQLEnum(ShipmentStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )
    description = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_tracking_entries_shipment_created", "shipment_id", "created_at", "id"),
    )
