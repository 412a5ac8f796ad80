"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- HTTP client bound to the FastAPI app
- Test data factories (users, prices, expeditions, shipments)
"""
# JWT_SECRET_KEY must be set before parcelhub is imported: the settings
# validator refuses an empty secret when DEBUG=False
import os
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-for-testing-only-do-not-use-in-production")

import itertools
from decimal import Decimal
from typing import AsyncGenerator, Iterable, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from parcelhub.db.database import Base, get_db
from parcelhub.db.models.expedition import Expedition
from parcelhub.db.models.price import Price, PriceTier, PriceCategory
from parcelhub.db.models.user import User, UserRole
from parcelhub.domain.services.rate_resolver import PricingAudience
from parcelhub.domain.services.settlement_service import SettlementService, ShipmentDraft
from parcelhub.main import app
from tests.helpers import build_shipment_payload


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

_email_counter = itertools.count(1)


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession):
    """Create test client with database override"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Factory for creating test users"""
    async def _create_user(
        name: str = "Test User",
        email: str | None = None,
        phone: str | None = "081234567890",
        role: UserRole = UserRole.CUSTOMER,
        balance: Decimal | int | str = Decimal("0"),
        is_active: bool = True,
    ) -> User:
        user = User(
            name=name,
            email=email or f"user{next(_email_counter)}@example.com",
            phone=phone,
            role=role,
            balance=Decimal(str(balance)),
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def price_factory(db_session: AsyncSession):
    """
    Factory for catalog rows.

    ``tiers`` is an iterable of (min_weight, max_weight, per_kg, per_volume);
    partner rates default to 90% of the retail ones.
    """
    async def _create_price(
        destination: str = "Malaysia",
        category: PriceCategory = PriceCategory.NORMAL,
        price_per_kg: Decimal | int | str = 25000,
        price_per_volume: Decimal | int | str = 5000,
        price_per_kg_mitra: Decimal | int | str | None = None,
        price_per_volume_mitra: Decimal | int | str | None = None,
        is_identity_required: bool = False,
        tiers: Optional[Iterable[tuple]] = None,
    ) -> Price:
        per_kg = Decimal(str(price_per_kg))
        per_volume = Decimal(str(price_per_volume))
        price = Price(
            destination=destination,
            category=category,
            price_per_kg=per_kg,
            price_per_volume=per_volume,
            price_per_kg_mitra=Decimal(str(price_per_kg_mitra)) if price_per_kg_mitra is not None else per_kg * Decimal("0.9"),
            price_per_volume_mitra=Decimal(str(price_per_volume_mitra)) if price_per_volume_mitra is not None else per_volume * Decimal("0.9"),
            is_identity_required=is_identity_required,
            use_tiered_pricing=tiers is not None,
        )
        for min_w, max_w, t_kg, t_vol in tiers or []:
            price.tiers.append(PriceTier(
                min_weight=Decimal(str(min_w)),
                max_weight=Decimal(str(max_w)) if max_w is not None else None,
                price_per_kg=Decimal(str(t_kg)),
                price_per_volume=Decimal(str(t_vol)),
                price_per_kg_mitra=Decimal(str(t_kg)) * Decimal("0.9"),
                price_per_volume_mitra=Decimal(str(t_vol)) * Decimal("0.9"),
            ))
        db_session.add(price)
        await db_session.commit()
        await db_session.refresh(price)
        return price

    return _create_price


@pytest.fixture
def expedition_factory(db_session: AsyncSession):
    """Factory for creating expedition partners"""
    async def _create_expedition(
        name: str = "JNE Express",
        code: str = "JNE",
        is_active: bool = True,
    ) -> Expedition:
        expedition = Expedition(name=name, code=code, is_active=is_active)
        db_session.add(expedition)
        await db_session.commit()
        await db_session.refresh(expedition)
        return expedition

    return _create_expedition


@pytest.fixture
def shipment_payload():
    return build_shipment_payload


@pytest.fixture
def shipment_factory(db_session: AsyncSession):
    """Create a shipment through the settlement workflow"""
    async def _create_shipment(user: User, idempotency_key: str | None = None, **overrides):
        service = SettlementService(db_session)
        return await service.create_shipment(
            user_id=user.id,
            audience=PricingAudience.for_role(user.role),
            draft=ShipmentDraft.from_dict(build_shipment_payload(**overrides)),
            idempotency_key=idempotency_key,
        )

    return _create_shipment


# ============================================================================
# Sample Test Data
# ============================================================================

@pytest.fixture
async def customer(user_factory) -> User:
    return await user_factory(name="Budi Santoso", role=UserRole.CUSTOMER, balance=100000)


@pytest.fixture
async def mitra(user_factory) -> User:
    return await user_factory(name="Mitra Jaya", role=UserRole.MITRA, balance=100000)


@pytest.fixture
async def admin(user_factory) -> User:
    return await user_factory(name="Admin Satu", role=UserRole.ADMIN)


@pytest.fixture
async def flat_price(price_factory) -> Price:
    """Malaysia / normal: 25000 per kg, 5000 per volumetric kg"""
    return await price_factory()


@pytest.fixture
async def expedition(expedition_factory) -> Expedition:
    return await expedition_factory()

