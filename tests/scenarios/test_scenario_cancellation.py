"""
Scenario 3-4: insufficient balance and cancellation refund

Covers:
- a shipment the wallet cannot cover is refused with nothing written
- cancelling a pending shipment refunds the frozen total, not the current catalog price
- a second cancel is refused and refunds nothing
"""
import pytest

from parcelhub.core.exceptions import InsufficientBalanceError, InvalidStatusTransitionError
from parcelhub.db.models.shipment import ShipmentStatus
from parcelhub.domain.services.catalog_service import CatalogService
from parcelhub.domain.services.settlement_service import SettlementService
from parcelhub.domain.services.wallet_service import WalletService
from tests.helpers import caller_for

from tests.scenarios.conftest import (
    assert_ledger_count,
    assert_shipment_count,
    assert_shipment_status,
    assert_tracking_trail,
    assert_wallet_balance,
)


@pytest.mark.scenario
class TestInsufficientBalance:

    @pytest.mark.asyncio
    async def test_nothing_written(self, db_session, user_factory, flat_price, shipment_factory):
        poor = await user_factory(balance=10000)
        user_id = poor.id

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await shipment_factory(poor)

        assert exc_info.value.details["required_amount"] == "50000.00"
        await assert_wallet_balance(db_session, user_id, 10000)
        await assert_shipment_count(db_session, user_id, 0)
        await assert_ledger_count(db_session, user_id, 0)


@pytest.mark.scenario
class TestCancellationRefund:

    @pytest.mark.asyncio
    async def test_refund_after_other_spend(self, db_session, customer, admin, flat_price, shipment_factory):
        user_id = customer.id
        staff = caller_for(admin)
        created = await shipment_factory(customer)
        await WalletService(db_session).adjust_balance(user_id, staff.user_id, "subtract", 10000)
        await assert_wallet_balance(db_session, user_id, 40000)

        # Catalog edits after creation do not change what is refunded
        await CatalogService(db_session).update_price(flat_price.id, {"price_per_kg": "99000"})

        service = SettlementService(db_session)
        refund = await service.cancel_shipment(created.shipment_id, staff)

        assert refund.refunded_amount == created.total_price
        await assert_wallet_balance(db_session, user_id, 90000)
        await assert_shipment_status(db_session, created.shipment_id, ShipmentStatus.CANCELED)
        await assert_tracking_trail(
            db_session, created.shipment_id, [ShipmentStatus.PENDING, ShipmentStatus.CANCELED]
        )
        await assert_ledger_count(db_session, user_id, 2, shipment_id=created.shipment_id)

        with pytest.raises(InvalidStatusTransitionError):
            await service.cancel_shipment(created.shipment_id, staff)

        await assert_wallet_balance(db_session, user_id, 90000)
        await assert_ledger_count(db_session, user_id, 2, shipment_id=created.shipment_id)
        await assert_tracking_trail(
            db_session, created.shipment_id, [ShipmentStatus.PENDING, ShipmentStatus.CANCELED]
        )
