"""
Domain Services
"""
from parcelhub.domain.services.rate_resolver import RateResolver, PricingAudience
from parcelhub.domain.services.pricing_service import PricingService
from parcelhub.domain.services.catalog_service import CatalogService
from parcelhub.domain.services.wallet_service import WalletService
from parcelhub.domain.services.tracking_service import TrackingService
from parcelhub.domain.services.settlement_service import SettlementService
from parcelhub.domain.services.topup_service import TopupService
from parcelhub.domain.services.expedition_service import ExpeditionService
from parcelhub.domain.services.shipment_query_service import ShipmentQueryService

__all__ = [
    "RateResolver",
    "PricingAudience",
    "PricingService",
    "CatalogService",
    "WalletService",
    "TrackingService",
    "SettlementService",
    "TopupService",
    "ExpeditionService",
    "ShipmentQueryService",
]
