"""
Wallet Service - prepaid balances and their immutable ledger

Debit and credit helpers only stage changes on the session; the caller owns the
unit of work and must have locked the user row with ``lock_user`` first.
"""
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.exceptions import InsufficientBalanceError, InvalidAmountError, UserNotFoundError
from parcelhub.core.locks import wallet_guard
from parcelhub.core.logging import get_logger
from parcelhub.core.validation import AmountValidator
from parcelhub.db.models.user import User
from parcelhub.db.models.wallet_ledger import WalletLedger, LedgerEntryType
from parcelhub.db.unit_of_work import atomic

logger = get_logger(__name__)


def validate_amount(amount: Any, max_value: Optional[Decimal] = None) -> Decimal:
    """Parse a strictly positive amount with at most two decimals"""
    kwargs = {"max_value": max_value} if max_value is not None else {}
    is_valid, error = AmountValidator.validate(amount, **kwargs)
    if not is_valid:
        raise InvalidAmountError(amount, error)
    return AmountValidator.to_decimal(amount)


class WalletService:
    """Service for user wallets"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: int) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def lock_user(self, user_id: int) -> User:
        """
        Load the user row with ``SELECT ... FOR UPDATE``.

        ``populate_existing`` makes sure a balance cached in the identity map is
        replaced by the value read under the lock.
        """
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def get_balance(self, user_id: int) -> Decimal:
        result = await self.db.execute(
            select(User.balance).where(User.id == user_id)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise UserNotFoundError(user_id)
        return Decimal(balance)

    def debit(
        self,
        user: User,
        amount: Decimal,
        entry_type: LedgerEntryType,
        shipment_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> WalletLedger:
        """
        Subtract ``amount`` from a locked user's balance and stage a ledger row.

        Raises:
            InsufficientBalanceError: the balance cannot cover the amount; nothing is changed
        """
        current = Decimal(user.balance)
        if current < amount:
            raise InsufficientBalanceError(user.id, current, amount)

        new_balance = current - amount
        user.balance = new_balance

        entry = WalletLedger(
            user_id=user.id,
            shipment_id=shipment_id,
            entry_type=entry_type,
            amount=-amount,
            balance_after=new_balance,
            description=description,
        )
        self.db.add(entry)
        return entry

    def credit(
        self,
        user: User,
        amount: Decimal,
        entry_type: LedgerEntryType,
        shipment_id: Optional[int] = None,
        topup_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> WalletLedger:
        """Add ``amount`` to a locked user's balance and stage a ledger row"""
        new_balance = Decimal(user.balance) + amount
        user.balance = new_balance

        entry = WalletLedger(
            user_id=user.id,
            shipment_id=shipment_id,
            topup_id=topup_id,
            entry_type=entry_type,
            amount=amount,
            balance_after=new_balance,
            description=description,
        )
        self.db.add(entry)
        return entry

    async def adjust_balance(
        self,
        user_id: int,
        staff_id: int,
        operation: str,
        amount: Any,
        description: Optional[str] = None,
    ) -> WalletLedger:
        """
        Manual staff adjustment.

        Args:
            operation: ``add`` or ``subtract``
        """
        if operation not in ("add", "subtract"):
            raise InvalidAmountError(amount, "operation must be 'add' or 'subtract'")
        value = validate_amount(amount)

        async with wallet_guard(user_id):
            async with atomic(self.db, "adjust_balance"):
                user = await self.lock_user(user_id)
                note = description or f"Manual adjustment by staff #{staff_id}"
                if operation == "add":
                    entry = self.credit(user, value, LedgerEntryType.MANUAL_CREDIT, description=note)
                else:
                    entry = self.debit(user, value, LedgerEntryType.MANUAL_DEBIT, description=note)

        logger.info(
            "Wallet adjusted by staff",
            extra_data={
                "user_id": user_id,
                "staff_id": staff_id,
                "operation": operation,
                "amount": str(value),
                "balance_after": str(entry.balance_after),
            }
        )
        return entry

    async def get_ledger_history(
        self,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
    ) -> list[WalletLedger]:
        """Ledger rows for a user, newest first"""
        result = await self.db.execute(
            select(WalletLedger)
            .where(WalletLedger.user_id == user_id)
            .order_by(WalletLedger.created_at.desc(), WalletLedger.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())
