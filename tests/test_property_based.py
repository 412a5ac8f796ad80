"""
Property-based tests with hypothesis for pricing and wallet flows.

Invariants checked:
1. Charge calculation - deterministic, never below either cost basis
2. Tier resolution - contiguous tiers cover every positive weight exactly once
3. Wallet conservation - balance == opening balance + sum of ledger amounts, never negative
"""
import itertools
from decimal import Decimal

import pytest
from hypothesis import given, settings as h_settings, HealthCheck
from hypothesis.strategies import (
    decimals,
    integers,
    lists,
    sampled_from,
    tuples,
)
from sqlalchemy import select

from parcelhub.core.exceptions import InsufficientBalanceError, InvalidStatusTransitionError
from parcelhub.db.models.price import PriceCategory
from parcelhub.db.models.user import UserRole
from parcelhub.db.models.wallet_ledger import WalletLedger
from parcelhub.domain.services.charge_calculator import CENT, charge, measure
from parcelhub.domain.services.rate_resolver import PricingAudience, RateResolver
from parcelhub.domain.services.settlement_service import SettlementService, ShipmentDraft
from parcelhub.domain.services.topup_service import TopupService
from parcelhub.domain.services.wallet_service import WalletService
from tests.helpers import build_shipment_payload, caller_for

# Unique destinations per example; the session is shared across examples
_prop_counter = itertools.count(900000)


# ============================================================================
# Strategies
# ============================================================================

MEASURES = decimals(min_value=Decimal("0.1"), max_value=Decimal("300"), places=1)
RATES = decimals(min_value=Decimal("0"), max_value=Decimal("500000"), places=2)

# Tier boundaries in kg; 0 is always the first lower bound
BOUNDARIES = lists(integers(min_value=1, max_value=100), min_size=0, max_size=5, unique=True)

WALLET_OPERATIONS = lists(
    tuples(
        sampled_from(["ship", "cancel", "topup", "add", "subtract"]),
        integers(min_value=1, max_value=200000),
    ),
    min_size=1,
    max_size=12,
)


# ============================================================================
# Charge calculation
# ============================================================================


class TestChargeProperties:

    @pytest.mark.unit
    @given(weight=MEASURES, length=MEASURES, width=MEASURES, height=MEASURES, per_kg=RATES, per_volume=RATES)
    @h_settings(max_examples=200, deadline=None)
    def test_charge_covers_both_bases(self, weight, length, width, height, per_kg, per_volume):
        parcel = measure(weight, length, width, height)
        total = charge(parcel, per_kg, per_volume)

        assert total >= (parcel.weight * per_kg).quantize(CENT)
        assert total >= (parcel.volumetric_weight * per_volume).quantize(CENT)
        assert total == total.quantize(CENT)
        assert total == charge(parcel, per_kg, per_volume)

    @pytest.mark.unit
    @given(weight=MEASURES, length=MEASURES, width=MEASURES, height=MEASURES)
    @h_settings(max_examples=200, deadline=None)
    def test_effective_weight_is_the_larger(self, weight, length, width, height):
        parcel = measure(weight, length, width, height)

        assert parcel.effective_weight == max(parcel.weight, parcel.volumetric_weight)

    @pytest.mark.unit
    @given(weight=MEASURES, length=MEASURES, width=MEASURES, height=MEASURES, per_kg=RATES, per_volume=RATES)
    @h_settings(max_examples=100, deadline=None)
    def test_higher_rate_never_lowers_charge(self, weight, length, width, height, per_kg, per_volume):
        parcel = measure(weight, length, width, height)

        assert charge(parcel, per_kg + 1, per_volume) >= charge(parcel, per_kg, per_volume)
        assert charge(parcel, per_kg, per_volume + 1) >= charge(parcel, per_kg, per_volume)


# ============================================================================
# Tier resolution
# ============================================================================


class TestTierCoverageProperties:

    @pytest.mark.asyncio
    @given(boundaries=BOUNDARIES, weight=decimals(min_value=Decimal("0.001"), max_value=Decimal("1000"), places=3))
    @h_settings(
        max_examples=40,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
        deadline=None,
    )
    async def test_contiguous_tiers_cover_every_weight(self, boundaries, weight, db_session, price_factory):
        """Each tier's per-kg rate encodes its lower bound so the pick can be checked"""
        uid = next(_prop_counter)
        lowers = [0] + sorted(boundaries)
        uppers = lowers[1:] + [None]
        tiers = [(lo, hi, 1000 + lo, 0) for lo, hi in zip(lowers, uppers)]
        await price_factory(destination=f"Tiered-{uid}", tiers=tiers)

        rate = await RateResolver(db_session).resolve(
            f"Tiered-{uid}", PriceCategory.NORMAL, PricingAudience.RETAIL, weight
        )

        expected_lower = max(lo for lo in lowers if lo <= weight)
        assert rate.rate_per_kg == Decimal(1000 + expected_lower)


# ============================================================================
# Wallet conservation
# ============================================================================


class TestWalletConservationProperties:

    @pytest.mark.asyncio
    @given(operations=WALLET_OPERATIONS, opening=integers(min_value=0, max_value=500000))
    @h_settings(
        max_examples=30,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
        deadline=None,
    )
    async def test_balance_matches_ledger(self, operations, opening, db_session, user_factory, price_factory):
        uid = next(_prop_counter)
        destination = f"Conservation-{uid}"
        await price_factory(destination=destination)
        user = await user_factory(balance=opening)
        admin = await user_factory(name="Admin Satu", role=UserRole.ADMIN)
        user_id = user.id
        staff = caller_for(admin)

        settlement = SettlementService(db_session)
        wallet = WalletService(db_session)
        topups = TopupService(db_session)
        open_shipments: list[int] = []

        for operation, amount in operations:
            try:
                if operation == "ship":
                    weight = Decimal(amount % 200 + 1) / 10
                    draft = ShipmentDraft.from_dict(
                        build_shipment_payload(destination=destination, weight=str(weight))
                    )
                    result = await settlement.create_shipment(user_id, PricingAudience.RETAIL, draft)
                    open_shipments.append(result.shipment_id)
                elif operation == "cancel" and open_shipments:
                    await settlement.cancel_shipment(open_shipments.pop(0), staff)
                elif operation == "topup":
                    topup = await topups.request_topup(user_id, amount)
                    await topups.approve_topup(topup.id, staff)
                elif operation in ("add", "subtract"):
                    await wallet.adjust_balance(user_id, staff.user_id, operation, amount)
            except (InsufficientBalanceError, InvalidStatusTransitionError):
                pass

            balance = await wallet.get_balance(user_id)
            amounts = (await db_session.execute(
                select(WalletLedger.amount).where(WalletLedger.user_id == user_id)
            )).scalars().all()

            assert balance >= 0
            assert balance == Decimal(opening) + sum((Decimal(a) for a in amounts), Decimal("0"))
