"""
Shared test helpers: payload builders, caller identities and DB probes.
"""
from typing import Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.auth import CallerIdentity, create_access_token
from parcelhub.db.models.shipment import Shipment, ShipmentStatus
from parcelhub.db.models.tracking_entry import TrackingEntry
from parcelhub.db.models.user import User


IDENTITY_DOCS = {
    "address_photo_ref": "uploads/address/1.jpg",
    "identity_front_ref": "uploads/identity/front-1.jpg",
    "identity_back_ref": "uploads/identity/back-1.jpg",
    "receiver_identity_number": "880101145566",
}


def build_shipment_payload(**overrides: Any) -> dict:
    """Valid create-shipment payload for the default Malaysia/normal price"""
    payload = {
        "sender_name": "Budi Santoso",
        "sender_phone": "081234567890",
        "sender_address": "Jl. Merdeka No. 10, Jakarta",
        "destination": "Malaysia",
        "receiver_name": "Siti Aminah",
        "receiver_phone": "+60123456789",
        "receiver_address": "Jalan Ampang 22, Kuala Lumpur",
        "item_category": "normal",
        "weight": "2",
        "length": "20",
        "width": "20",
        "height": "20",
        "package_contents": "Clothes",
    }
    payload.update(overrides)
    return payload


def caller_for(user: User) -> CallerIdentity:
    return CallerIdentity(user_id=user.id, role=user.role)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


async def count_rows(db: AsyncSession, model, *criteria) -> int:
    query = select(func.count()).select_from(model)
    if criteria:
        query = query.where(*criteria)
    return int(await db.scalar(query) or 0)


async def reload_shipment(db: AsyncSession, shipment_id: int) -> Shipment:
    result = await db.execute(
        select(Shipment)
        .where(Shipment.id == shipment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def tracking_statuses(db: AsyncSession, shipment_id: int) -> list[ShipmentStatus]:
    """Statuses of a shipment's tracking entries, oldest first"""
    result = await db.execute(
        select(TrackingEntry.status)
        .where(TrackingEntry.shipment_id == shipment_id)
        .order_by(TrackingEntry.created_at, TrackingEntry.id)
    )
    return [ShipmentStatus(s) for s in result.scalars().all()]
