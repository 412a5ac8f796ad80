"""
Fixtures and helpers for end-to-end business scenarios.

Provides:
- catalog fixtures for the standard weight tiers
- a short create-shipment call over HTTP
- DB assertions (shipment status, wallet balance, ledger and tracking rows)
"""
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.db.models.price import Price
from parcelhub.db.models.shipment import Shipment, ShipmentStatus
from parcelhub.db.models.tracking_entry import TrackingEntry
from parcelhub.db.models.user import User
from parcelhub.db.models.wallet_ledger import WalletLedger
from tests.helpers import build_shipment_payload


# [min, max) in kg with retail per-kg and per-volume rates
STANDARD_TIERS = [
    (0, 1, 210000, 42000),
    (1, 5, 160000, 32000),
    (5, None, 140000, 28000),
]


# ============================================================================
# Fixtures - catalog
# ============================================================================

@pytest.fixture
async def tiered_price(price_factory) -> Price:
    """Malaysia / normal priced by the three standard weight tiers"""
    return await price_factory(tiers=STANDARD_TIERS)


@pytest.fixture
async def short_tiered_price(price_factory) -> Price:
    """Malaysia / normal with a single [0, 5) tier and nothing above it"""
    return await price_factory(tiers=[(0, 5, 160000, 32000)])


# ============================================================================
# HTTP shortcut
# ============================================================================

async def post_shipment(client, headers: dict, expected_status: int = 201, **overrides) -> dict:
    """Create a shipment over HTTP - asserts the status code and returns the JSON body"""
    resp = await client.post(
        "/api/shipments",
        json=build_shipment_payload(**overrides),
        headers=headers,
    )
    assert resp.status_code == expected_status, f"create shipment returned {resp.status_code}: {resp.text}"
    return resp.json()


# ============================================================================
# DB assertions
# ============================================================================

async def assert_wallet_balance(db: AsyncSession, user_id: int, expected) -> None:
    balance = await db.scalar(select(User.balance).where(User.id == user_id))
    assert Decimal(balance) == Decimal(str(expected)), f"balance is {balance}, expected {expected}"


async def assert_shipment_status(db: AsyncSession, shipment_id: int, expected: ShipmentStatus) -> None:
    status = await db.scalar(select(Shipment.status).where(Shipment.id == shipment_id))
    assert ShipmentStatus(status) == expected, f"shipment {shipment_id} is {status}, expected {expected}"


async def assert_shipment_count(db: AsyncSession, user_id: int, expected: int) -> None:
    count = await db.scalar(
        select(func.count()).select_from(Shipment).where(Shipment.user_id == user_id)
    )
    assert count == expected, f"{count} shipments for user {user_id}, expected {expected}"


async def assert_ledger_count(
    db: AsyncSession,
    user_id: int,
    expected: int,
    shipment_id: Optional[int] = None,
) -> None:
    query = select(func.count()).select_from(WalletLedger).where(WalletLedger.user_id == user_id)
    if shipment_id is not None:
        query = query.where(WalletLedger.shipment_id == shipment_id)
    count = await db.scalar(query)
    assert count == expected, f"{count} ledger entries for user {user_id}, expected {expected}"


async def assert_tracking_trail(
    db: AsyncSession, shipment_id: int, expected: list[ShipmentStatus]
) -> None:
    """Tracking entries oldest first"""
    result = await db.execute(
        select(TrackingEntry.status)
        .where(TrackingEntry.shipment_id == shipment_id)
        .order_by(TrackingEntry.created_at, TrackingEntry.id)
    )
    trail = [ShipmentStatus(s) for s in result.scalars().all()]
    assert trail == expected, f"tracking trail {trail}, expected {expected}"
