"""
ParcelHub - Main FastAPI Application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parcelhub.core.config import settings
from parcelhub.core.logging import setup_logging, get_logger
from parcelhub.core.middleware import setup_middleware, setup_exception_handlers
from parcelhub.api.routes import router as api_router
from parcelhub.db.database import engine, Base
import parcelhub.db.models  # noqa: F401  registers every table on Base.metadata

# Setup logging before anything else
setup_logging(
    level=settings.LOG_LEVEL,
    json_format=not settings.DEBUG,
)

logger = get_logger(__name__)


def _parse_allowed_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application", extra_data={"app_name": settings.APP_NAME})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")

    yield

    logger.info("Shutting down application")
    await engine.dispose()
    logger.info("Database connections disposed")


_OPENAPI_TAGS = [
    {"name": "Shipments", "description": "Create, ship, update and cancel priced shipments."},
    {"name": "Tracking", "description": "Public tracking by tracking code."},
    {"name": "Prices", "description": "Price catalog and parcel price estimates."},
    {"name": "Wallets", "description": "Prepaid balances and ledger history."},
    {"name": "Topups", "description": "Wallet funding requests and staff review."},
    {"name": "Expeditions", "description": "Carrier partner registry."},
]


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Shipping brokerage back office: pricing, prepaid wallets and shipment settlement.",
    openapi_tags=_OPENAPI_TAGS,
    lifespan=lifespan,
)

setup_middleware(app)
setup_exception_handlers(app)

allowed_origins = _parse_allowed_origins(settings.ALLOWED_ORIGINS)

if not allowed_origins and settings.DEBUG:
    allowed_origins = [
        "http://localhost",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Idempotency-Key", "X-Correlation-ID"],
    )

app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["Health"], summary="Liveness probe")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}
