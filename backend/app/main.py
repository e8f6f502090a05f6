"""
Carivoo Backend - Main FastAPI Application.

Entry point for the rental marketplace API: reservations priced server-side,
Stripe payment intents with verified confirmation, and premium agency
subscriptions.

Run with:
    uvicorn app.main:app --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from supabase import acreate_client
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from app.api.v1.agency import router as agency_router
from app.api.v1.payments import router as payments_router
from app.api.v1.reservations import router as reservations_router
from app.api.v1.subscriptions import router as subscriptions_router
from app.config import Settings, get_settings
from app.constants import API_TITLE, API_VERSION
from app.exception_handlers import register_exception_handlers
from app.logging_config import setup_logging
from app.middleware import RequestContextMiddleware
from app.services.payment_service import PaymentService
from app.services.rental_repository import (
    InMemoryRentalRepository,
    RentalRepository,
    SupabaseRentalRepository,
)
from app.services.reservation_service import ReservationService
from app.services.stripe_service import StripeService, UnconfiguredStripeService
from app.services.subscription_service import SubscriptionService

# Get settings before logging setup so we know the debug flag
settings = get_settings()

# Configure logging
setup_logging(settings.debug)

logger = structlog.get_logger(__name__)


def build_payment_provider(config: Settings) -> StripeService | UnconfiguredStripeService:
    """Stripe adapter when a secret key is set, otherwise the unconfigured stand-in."""
    if not config.stripe.configured:
        logger.warning("stripe_not_configured", detail="Payment endpoints will return 500")
        return UnconfiguredStripeService()
    logger.info("stripe_configured")
    return StripeService(config.stripe)


def install_services(
    app: FastAPI,
    repository: RentalRepository,
    provider: StripeService | UnconfiguredStripeService,
    config: Settings,
) -> None:
    """Wire services onto app.state for the routers."""
    app.state.stripe_service = provider
    app.state.reservation_service = ReservationService(repository, config.rental)
    app.state.payment_service = PaymentService(repository, provider)
    app.state.subscription_service = SubscriptionService(
        repository, provider, config.subscription
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler for startup and shutdown."""
    logger.info("api_startup", cors_origins=settings.cors_origins)

    # Initialize Supabase async client
    supabase_client: AsyncSupabaseClient | None = None
    if settings.supabase_url and settings.supabase_service_role_key:
        try:
            supabase_client = await acreate_client(
                settings.supabase_url,
                settings.supabase_service_role_key,
            )
            logger.info("supabase_configured")
        except Exception as e:
            logger.warning("supabase_init_failed", error=str(e))
    else:
        logger.warning("supabase_not_configured", detail="Auth endpoints will return 503")

    _app.state.supabase = supabase_client

    if supabase_client is not None:
        repository: RentalRepository = SupabaseRentalRepository(supabase_client, settings.tables)
    else:
        logger.warning("using_in_memory_repository", detail="Data is lost on restart")
        repository = InMemoryRentalRepository()

    install_services(_app, repository, build_payment_provider(settings), settings)
    logger.info("services_initialized")

    yield

    logger.info("api_shutdown")


# Create FastAPI app
app = FastAPI(
    title=API_TITLE,
    description=(
        "Vehicle rental marketplace API: server-side reservation pricing, "
        "Stripe payments verified against the provider, and premium agency plans."
    ),
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Request context middleware must come before CORS so every response gets
# the X-Request-ID header (including preflight OPTIONS responses).
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(reservations_router, prefix="/api/v1")
app.include_router(payments_router, prefix="/api/v1")
app.include_router(subscriptions_router, prefix="/api/v1")
app.include_router(agency_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint with API info."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "description": "Vehicle rental bookings and payments",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}
