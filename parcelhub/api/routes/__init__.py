"""
API Routes
"""
from fastapi import APIRouter

from parcelhub.api.routes.shipments import router as shipments_router
from parcelhub.api.routes.tracking import router as tracking_router
from parcelhub.api.routes.prices import router as prices_router
from parcelhub.api.routes.wallets import router as wallets_router
from parcelhub.api.routes.topups import router as topups_router
from parcelhub.api.routes.expeditions import router as expeditions_router

router = APIRouter()

router.include_router(shipments_router, prefix="/shipments", tags=["Shipments"])
router.include_router(tracking_router, prefix="/tracking", tags=["Tracking"])
router.include_router(prices_router, prefix="/prices", tags=["Prices"])
router.include_router(wallets_router, prefix="/wallets", tags=["Wallets"])
router.include_router(topups_router, prefix="/topups", tags=["Topups"])
router.include_router(expeditions_router, prefix="/expeditions", tags=["Expeditions"])
