"""
Public Tracking Routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.routes.schemas import TrackingEntryResponse, enum_value, ok
from parcelhub.db.database import get_db
from parcelhub.domain.services.tracking_service import TrackingService

router = APIRouter()


@router.get(
    "/{tracking_code}",
    summary="Track a shipment",
    description="No authentication. Returns the current status and the history, newest first.",
)
async def track_shipment(
    tracking_code: str,
    db: AsyncSession = Depends(get_db),
):
    shipment, entries = await TrackingService(db).get_tracking(tracking_code.strip().upper())
    return ok("Tracking retrieved", {
        "tracking_code": shipment.tracking_code,
        "status": enum_value(shipment.status),
        "destination": shipment.destination,
        "receiver_name": shipment.receiver_name,
        "expedition_tracking_code": shipment.expedition_tracking_code,
        "created_at": shipment.created_at.isoformat() if shipment.created_at else None,
        "history": [
            TrackingEntryResponse.model_validate(e).model_dump(mode="json") for e in entries
        ],
    })
