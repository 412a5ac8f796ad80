"""
Shipment Query Service - read access to shipment records
"""
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.auth import CallerIdentity
from parcelhub.core.exceptions import ShipmentNotFoundError
from parcelhub.db.models.shipment import Shipment, ShipmentStatus


class ShipmentQueryService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_shipment(self, shipment_id: int, caller: CallerIdentity) -> Shipment:
        """Owners see their own shipments, staff see all; others get not-found"""
        result = await self.db.execute(select(Shipment).where(Shipment.id == shipment_id))
        shipment = result.scalar_one_or_none()
        if shipment is None or (not caller.is_staff and shipment.user_id != caller.user_id):
            raise ShipmentNotFoundError(shipment_id)
        return shipment

    async def list_shipments(
        self,
        caller: CallerIdentity,
        status: Optional[ShipmentStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[Shipment], int]:
        """Returns (page of shipments newest first, total matching)"""
        query = select(Shipment)
        if not caller.is_staff:
            query = query.where(Shipment.user_id == caller.user_id)
        if status is not None:
            query = query.where(Shipment.status == ShipmentStatus(status))
        if search:
            pattern = f"%{search}%"
            query = query.where(
                Shipment.tracking_code.ilike(pattern)
                | Shipment.receiver_name.ilike(pattern)
                | Shipment.destination.ilike(pattern)
            )

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        result = await self.db.execute(
            query.order_by(Shipment.created_at.desc(), Shipment.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), int(total or 0)
