"""
Shared response schemas - every endpoint answers {success, message, data}
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, field_validator


def enum_value(v: Any) -> Any:
    """Plain value for str enums read off ORM rows"""
    return getattr(v, "value", v)


class TrackingEntryResponse(BaseModel):
    id: int
    status: str
    description: str
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def plain_status(cls, v: Any) -> Any:
        return enum_value(v)


class ShipmentResponse(BaseModel):
    id: int
    tracking_code: str
    user_id: int
    sender_name: str
    sender_phone: str
    sender_address: str
    receiver_name: str
    receiver_phone: str
    receiver_address: str
    receiver_postal_code: Optional[str] = None
    receiver_identity_number: Optional[str] = None
    receiver_email: Optional[str] = None
    destination: str
    item_category: str
    package_contents: Optional[str] = None
    weight: Decimal
    length: Decimal
    width: Decimal
    height: Decimal
    volumetric_weight: Decimal
    price_per_kg: Decimal
    price_per_volume: Decimal
    total_price: Decimal
    status: str
    expedition_id: Optional[int] = None
    expedition_tracking_code: Optional[str] = None
    is_manual_tracking: bool
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("status", "item_category", mode="before")
    @classmethod
    def plain_enums(cls, v: Any) -> Any:
        return enum_value(v)


def page(items: list, total: int, page_no: int, page_size: int) -> dict[str, Any]:
    return {"items": items, "total": total, "page": page_no, "page_size": page_size}


def ok(message: str, data: Any = None) -> dict[str, Any]:
    return {"success": True, "message": message, "data": data}
