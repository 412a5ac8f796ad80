"""
Wallet Ledger Model - Immutable Balance History
"""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, Numeric, DateTime, ForeignKey, String, Enum as SQLEnum, UniqueConstraint
)

from parcelhub.db.database import Base


class LedgerEntryType(str, enum.Enum):
    SHIPMENT_DEBIT = "shipment_debit"
    CANCELLATION_REFUND = "cancellation_refund"
    TOPUP_CREDIT = "topup_credit"
    MANUAL_CREDIT = "manual_credit"
    MANUAL_DEBIT = "manual_debit"


class WalletLedger(Base):
    """Immutable balance history preventing double debit and double refund"""

    __tablename__ = "wallet_ledger"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=True)
    topup_id = Column(Integer, ForeignKey("topups.id"), nullable=True)

    entry_type = Column(
        SQLEnum(LedgerEntryType, values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )
    amount = Column(Numeric(14, 2), nullable=False)  # Positive for credit, negative for debit
    balance_after = Column(Numeric(14, 2), nullable=False)

    description = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # One debit and one refund per shipment, one credit per top-up
    __table_args__ = (
        UniqueConstraint("shipment_id", "entry_type", name="uq_ledger_shipment_type"),
        UniqueConstraint("topup_id", "entry_type", name="uq_ledger_topup_type"),
    )
