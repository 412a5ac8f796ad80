"""
Database Models
"""
from parcelhub.db.models.user import User, UserRole
from parcelhub.db.models.price import Price, PriceTier, PriceCategory
from parcelhub.db.models.expedition import Expedition
from parcelhub.db.models.shipment import Shipment, ShipmentStatus
from parcelhub.db.models.tracking_entry import TrackingEntry
from parcelhub.db.models.topup import Topup, TopupStatus
from parcelhub.db.models.wallet_ledger import WalletLedger, LedgerEntryType

__all__ = [
    "User",
    "UserRole",
    "Price",
    "PriceTier",
    "PriceCategory",
    "Expedition",
    "Shipment",
    "ShipmentStatus",
    "TrackingEntry",
    "Topup",
    "TopupStatus",
    "WalletLedger",
    "LedgerEntryType",
]
