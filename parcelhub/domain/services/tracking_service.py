"""
Tracking Service - append-only shipment history
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.exceptions import ShipmentNotFoundError
from parcelhub.db.models.shipment import Shipment, ShipmentStatus
from parcelhub.db.models.tracking_entry import TrackingEntry


class TrackingService:
    """Writes and reads tracking entries; entries are never updated or deleted"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def append(self, shipment_id: int, status: ShipmentStatus, description: str) -> TrackingEntry:
        """Stage a new entry on the caller's unit of work"""
        entry = TrackingEntry(
            shipment_id=shipment_id,
            status=ShipmentStatus(status),
            description=description,
        )
        self.db.add(entry)
        return entry

    async def list_entries(self, shipment_id: int, newest_first: bool = True) -> list[TrackingEntry]:
        query = select(TrackingEntry).where(TrackingEntry.shipment_id == shipment_id)
        if newest_first:
            query = query.order_by(TrackingEntry.created_at.desc(), TrackingEntry.id.desc())
        else:
            query = query.order_by(TrackingEntry.created_at.asc(), TrackingEntry.id.asc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def latest(self, shipment_id: int) -> Optional[TrackingEntry]:
        result = await self.db.execute(
            select(TrackingEntry)
            .where(TrackingEntry.shipment_id == shipment_id)
            .order_by(TrackingEntry.created_at.desc(), TrackingEntry.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_tracking(self, tracking_code: str) -> tuple[Shipment, list[TrackingEntry]]:
        """Public view by tracking code - the shipment and its history, newest first"""
        result = await self.db.execute(
            select(Shipment).where(Shipment.tracking_code == tracking_code)
        )
        shipment = result.scalar_one_or_none()
        if shipment is None:
            raise ShipmentNotFoundError(tracking_code)
        return shipment, await self.list_entries(shipment.id)
