"""
Settlement Service - create, ship and cancel priced shipments

Every operation is one unit of work: the shipment row, the wallet debit or
refund and the tracking entry commit together or not at all. Balance and
status changes for a user's shipments are serialized by the in-process wallet
guard plus row locks on the shipment and the user.
"""
import secrets
import time
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.auth import CallerIdentity
from parcelhub.core.config import settings
from parcelhub.core.exceptions import (
    ForbiddenError,
    IdentityDocumentsRequiredError,
    InsufficientBalanceError,
    InvalidStatusTransitionError,
    ShipmentNotFoundError,
    StorageError,
    ValidationException,
)
from parcelhub.core.locks import wallet_guard
from parcelhub.core.logging import get_logger, log_async_operation
from parcelhub.db.models.expedition import Expedition
from parcelhub.db.models.price import PriceCategory
from parcelhub.db.models.shipment import Shipment, ShipmentStatus
from parcelhub.db.models.wallet_ledger import WalletLedger, LedgerEntryType
from parcelhub.db.unit_of_work import atomic
from parcelhub.domain.services.charge_calculator import ParcelMeasure, measure
from parcelhub.domain.services.pricing_service import PricingService
from parcelhub.domain.services.rate_resolver import PricingAudience
from parcelhub.domain.services.tracking_service import TrackingService
from parcelhub.domain.services.wallet_service import WalletService
from parcelhub.domain.status import (
    DESCRIPTION_CANCELED,
    DESCRIPTION_HANDED_TO_EXPEDITION,
    DESCRIPTION_REGISTERED,
    ensure_transition,
)

logger = get_logger(__name__)


@dataclass
class ShipmentDraft:
    """Party and parcel payload for a new shipment, as received from the caller"""
    sender_name: Optional[str] = None
    sender_phone: Optional[str] = None
    sender_address: Optional[str] = None
    destination: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_phone: Optional[str] = None
    receiver_address: Optional[str] = None
    item_category: Optional[str] = None
    weight: Any = None
    length: Any = None
    width: Any = None
    height: Any = None
    package_contents: Optional[str] = None
    receiver_postal_code: Optional[str] = None
    receiver_identity_number: Optional[str] = None
    receiver_email: Optional[str] = None
    address_photo_ref: Optional[str] = None
    identity_front_ref: Optional[str] = None
    identity_back_ref: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShipmentDraft":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


REQUIRED_FIELDS = (
    "sender_name",
    "sender_phone",
    "sender_address",
    "destination",
    "receiver_name",
    "receiver_phone",
    "receiver_address",
    "item_category",
    "weight",
    "length",
    "width",
    "height",
    "package_contents",
)

IDENTITY_FIELDS = (
    "address_photo_ref",
    "identity_front_ref",
    "identity_back_ref",
    "receiver_identity_number",
)


@dataclass(frozen=True)
class SettlementResult:
    shipment_id: int
    tracking_code: str
    total_price: Decimal
    balance_after: Decimal
    replayed: bool = False


@dataclass(frozen=True)
class RefundResult:
    shipment_id: int
    refunded_amount: Decimal
    balance_after: Decimal


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def generate_tracking_code(prefix: Optional[str] = None) -> str:
    """Prefix + last 8 digits of epoch milliseconds + 3 random digits"""
    millis = str(int(time.time() * 1000))[-8:]
    return f"{prefix or settings.TRACKING_CODE_PREFIX}{millis}{secrets.randbelow(1000):03d}"


def require_staff(caller: CallerIdentity) -> None:
    if not caller.is_staff:
        raise ForbiddenError()


class SettlementService:
    """Orchestrates pricing, wallet and tracking for one shipment at a time"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.pricing = PricingService(db)
        self.wallet = WalletService(db)
        self.tracking = TrackingService(db)

    async def _find_by_idempotency_key(self, user_id: int, key: str) -> Optional[Shipment]:
        result = await self.db.execute(
            select(Shipment).where(
                Shipment.user_id == user_id,
                Shipment.idempotency_key == key,
            )
        )
        return result.scalar_one_or_none()

    async def _replay(self, shipment: Shipment) -> SettlementResult:
        result = await self.db.execute(
            select(WalletLedger.balance_after).where(
                WalletLedger.shipment_id == shipment.id,
                WalletLedger.entry_type == LedgerEntryType.SHIPMENT_DEBIT,
            )
        )
        balance_after = result.scalar_one()
        logger.info(
            "Replaying shipment creation",
            extra_data={"shipment_id": shipment.id, "tracking_code": shipment.tracking_code}
        )
        return SettlementResult(
            shipment_id=shipment.id,
            tracking_code=shipment.tracking_code,
            total_price=Decimal(shipment.total_price),
            balance_after=Decimal(balance_after),
            replayed=True,
        )

    async def _new_tracking_code(self) -> str:
        for _ in range(settings.TRACKING_CODE_MAX_ATTEMPTS):
            code = generate_tracking_code()
            taken = await self.db.scalar(
                select(Shipment.id).where(Shipment.tracking_code == code)
            )
            if taken is None:
                return code
            logger.warning("Tracking code collision, regenerating", extra_data={"tracking_code": code})
        raise StorageError("generate_tracking_code", "Could not generate a unique tracking code")

    async def _owner_of(self, shipment_id: int) -> int:
        owner_id = await self.db.scalar(select(Shipment.user_id).where(Shipment.id == shipment_id))
        if owner_id is None:
            raise ShipmentNotFoundError(shipment_id)
        return owner_id

    async def _lock_shipment(self, shipment_id: int) -> Shipment:
        result = await self.db.execute(
            select(Shipment)
            .where(Shipment.id == shipment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        shipment = result.scalar_one_or_none()
        if shipment is None:
            raise ShipmentNotFoundError(shipment_id)
        return shipment

    @log_async_operation("create_shipment")
    async def create_shipment(
        self,
        user_id: int,
        audience: PricingAudience,
        draft: ShipmentDraft,
        idempotency_key: Optional[str] = None,
    ) -> SettlementResult:
        """
        Price the parcel, debit the wallet and record the shipment.

        Raises:
            ValidationException: a required field is missing or malformed
            IdentityDocumentsRequiredError: the destination needs identity documents
            PriceNotAvailableError / NoPricingTierFoundError: the catalog cannot price it
            InsufficientBalanceError: the wallet cannot cover the total
            StorageError: the transaction failed and was rolled back
        """
        for name in REQUIRED_FIELDS:
            if _blank(getattr(draft, name)):
                raise ValidationException(f"{name} is required", field=name)

        try:
            category = PriceCategory(draft.item_category)
        except ValueError:
            raise ValidationException(
                f"Unknown item category: {draft.item_category}", field="item_category"
            )
        parcel = measure(draft.weight, draft.length, draft.width, draft.height)

        if idempotency_key:
            existing = await self._find_by_idempotency_key(user_id, idempotency_key)
            if existing is not None:
                return await self._replay(existing)

        try:
            async with wallet_guard(user_id):
                if idempotency_key:
                    existing = await self._find_by_idempotency_key(user_id, idempotency_key)
                    if existing is not None:
                        return await self._replay(existing)
                return await self._settle(user_id, audience, draft, category, parcel, idempotency_key)
        except StorageError as e:
            # Another process won the race for the same idempotency key
            if idempotency_key and isinstance(e.__cause__, IntegrityError):
                existing = await self._find_by_idempotency_key(user_id, idempotency_key)
                if existing is not None:
                    return await self._replay(existing)
            raise

    async def _settle(
        self,
        user_id: int,
        audience: PricingAudience,
        draft: ShipmentDraft,
        category: PriceCategory,
        parcel: ParcelMeasure,
        idempotency_key: Optional[str],
    ) -> SettlementResult:
        async with atomic(self.db, "create_shipment"):
            price = await self.pricing.rate_resolver.get_price(draft.destination, category)

            if price.is_identity_required:
                missing = [name for name in IDENTITY_FIELDS if _blank(getattr(draft, name))]
                if missing:
                    raise IdentityDocumentsRequiredError(draft.destination, missing)

            quote = await self.pricing.quote_for_price(price, audience, parcel)

            user = await self.wallet.lock_user(user_id)
            if not user.is_active:
                raise ForbiddenError("Account is inactive")
            if Decimal(user.balance) < quote.total_price:
                raise InsufficientBalanceError(user_id, Decimal(user.balance), quote.total_price)

            shipment = Shipment(
                tracking_code=await self._new_tracking_code(),
                user_id=user_id,
                idempotency_key=idempotency_key,
                sender_name=draft.sender_name,
                sender_phone=draft.sender_phone,
                sender_address=draft.sender_address,
                receiver_name=draft.receiver_name,
                receiver_phone=draft.receiver_phone,
                receiver_address=draft.receiver_address,
                receiver_postal_code=draft.receiver_postal_code,
                receiver_identity_number=draft.receiver_identity_number,
                receiver_email=draft.receiver_email,
                address_photo_ref=draft.address_photo_ref,
                identity_front_ref=draft.identity_front_ref,
                identity_back_ref=draft.identity_back_ref,
                destination=draft.destination,
                item_category=category,
                package_contents=draft.package_contents,
                weight=parcel.weight,
                length=parcel.length,
                width=parcel.width,
                height=parcel.height,
                volumetric_weight=parcel.volumetric_weight,
                price_per_kg=quote.rate_per_kg,
                price_per_volume=quote.rate_per_volume,
                total_price=quote.total_price,
                status=ShipmentStatus.PENDING,
            )
            self.db.add(shipment)
            await self.db.flush()

            debit = self.wallet.debit(
                user,
                quote.total_price,
                LedgerEntryType.SHIPMENT_DEBIT,
                shipment_id=shipment.id,
                description=f"Shipment {shipment.tracking_code}",
            )
            self.tracking.append(shipment.id, ShipmentStatus.PENDING, DESCRIPTION_REGISTERED)

        logger.info(
            "Shipment created",
            extra_data={
                "shipment_id": shipment.id,
                "tracking_code": shipment.tracking_code,
                "user_id": user_id,
                "audience": audience.value,
                "total_price": str(quote.total_price),
                "tier_id": quote.tier_id,
            }
        )
        return SettlementResult(
            shipment_id=shipment.id,
            tracking_code=shipment.tracking_code,
            total_price=quote.total_price,
            balance_after=Decimal(debit.balance_after),
        )

    @log_async_operation("assign_expedition")
    async def assign_expedition(
        self,
        shipment_id: int,
        staff: CallerIdentity,
        expedition_tracking_code: Optional[str],
        expedition_id: Optional[int] = None,
        manual: bool = False,
    ) -> Shipment:
        """
        Hand the shipment to a carrier: set the linkage, move to ``dikirim``
        and append a tracking entry. Re-running overwrites the linkage and adds
        another entry.
        """
        require_staff(staff)
        if _blank(expedition_tracking_code):
            raise ValidationException(
                "Expedition tracking code is required", field="expedition_tracking_code"
            )
        if not manual and expedition_id is None:
            raise ValidationException(
                "Expedition ID is required unless tracking is manual", field="expedition_id"
            )

        # Same guard as cancellation: a refund must never follow a hand-over
        owner_id = await self._owner_of(shipment_id)
        async with wallet_guard(owner_id):
            async with atomic(self.db, "assign_expedition"):
                shipment = await self._lock_shipment(shipment_id)
                ensure_transition(shipment.status, ShipmentStatus.DIKIRIM, shipment_id)

                if not manual:
                    expedition = await self.db.get(Expedition, expedition_id)
                    if expedition is None or not expedition.is_active:
                        raise ValidationException(
                            f"Expedition not available: {expedition_id}", field="expedition_id"
                        )

                shipment.expedition_id = None if manual else expedition_id
                shipment.expedition_tracking_code = expedition_tracking_code.strip()
                shipment.is_manual_tracking = manual
                shipment.status = ShipmentStatus.DIKIRIM
                self.tracking.append(shipment.id, ShipmentStatus.DIKIRIM, DESCRIPTION_HANDED_TO_EXPEDITION)

        logger.info(
            "Shipment handed to expedition",
            extra_data={
                "shipment_id": shipment_id,
                "expedition_id": shipment.expedition_id,
                "manual": manual,
                "staff_id": staff.user_id,
            }
        )
        return shipment

    @log_async_operation("cancel_shipment")
    async def cancel_shipment(self, shipment_id: int, staff: CallerIdentity) -> RefundResult:
        """Cancel a pending shipment and refund exactly the frozen total"""
        require_staff(staff)

        owner_id = await self._owner_of(shipment_id)
        async with wallet_guard(owner_id):
            async with atomic(self.db, "cancel_shipment"):
                shipment = await self._lock_shipment(shipment_id)
                if shipment.status != ShipmentStatus.PENDING:
                    raise InvalidStatusTransitionError(
                        current_status=ShipmentStatus(shipment.status).value,
                        target_status=ShipmentStatus.CANCELED.value,
                        shipment_id=shipment_id,
                        message="Only pending shipments can be cancelled",
                    )

                user = await self.wallet.lock_user(owner_id)
                refund = Decimal(shipment.total_price)
                shipment.status = ShipmentStatus.CANCELED
                entry = self.wallet.credit(
                    user,
                    refund,
                    LedgerEntryType.CANCELLATION_REFUND,
                    shipment_id=shipment.id,
                    description=f"Refund for canceled shipment {shipment.tracking_code}",
                )
                self.tracking.append(shipment.id, ShipmentStatus.CANCELED, DESCRIPTION_CANCELED)

        logger.info(
            "Shipment canceled and refunded",
            extra_data={
                "shipment_id": shipment_id,
                "user_id": owner_id,
                "refunded_amount": str(refund),
                "staff_id": staff.user_id,
            }
        )
        return RefundResult(
            shipment_id=shipment_id,
            refunded_amount=refund,
            balance_after=Decimal(entry.balance_after),
        )

    @log_async_operation("record_status_update")
    async def record_status_update(
        self,
        shipment_id: int,
        staff: CallerIdentity,
        status: ShipmentStatus | str,
        description: Optional[str],
    ) -> Shipment:
        """
        Append a tracking entry and mirror its status onto the shipment.

        Cancellation goes through ``cancel_shipment`` and a pending shipment
        must be assigned to an expedition first.
        """
        require_staff(staff)
        try:
            target = ShipmentStatus(status)
        except ValueError:
            raise ValidationException(f"Unknown status: {status}", field="status")
        if _blank(description):
            raise ValidationException("Description is required", field="description")

        owner_id = await self._owner_of(shipment_id)
        async with wallet_guard(owner_id):
            async with atomic(self.db, "record_status_update"):
                shipment = await self._lock_shipment(shipment_id)
                current = ShipmentStatus(shipment.status)

                if target == ShipmentStatus.CANCELED:
                    raise InvalidStatusTransitionError(
                        current.value, target.value, shipment_id,
                        message="Use cancellation to cancel a shipment and refund it",
                    )
                if current == ShipmentStatus.PENDING:
                    raise InvalidStatusTransitionError(
                        current.value, target.value, shipment_id,
                        message="Assign an expedition before recording shipping updates",
                    )
                ensure_transition(current, target, shipment_id)

                shipment.status = target
                self.tracking.append(shipment.id, target, description.strip())

        logger.info(
            "Shipment status recorded",
            extra_data={
                "shipment_id": shipment_id,
                "from": current.value,
                "to": target.value,
                "staff_id": staff.user_id,
            }
        )
        return shipment

