"""Recargo service API: FastAPI entry point.

Registers middleware, routers, and lifecycle hooks. The lifespan builds the
collaborators (gateway, lease store, remediation queue, engine, webhook
trigger) once and parks them on app.state.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import ShopContextMiddleware
from core.integrations.adapter_base import AdapterBase
from core.integrations.webhooks import WebhookVerifier
from core.observability.logging_setup import setup_logging
from core.observability.otel_setup import setup_otel
from core.resilience.dlq import DeadLetterQueue
from core.resilience.lease import InMemoryLeaseStore
from verticals.recargo.config import ServiceConfig
from verticals.recargo.engine import SurchargeEngine
from verticals.recargo.shopify import ShopifyOrderGateway
from verticals.recargo.webhook import OrderPaidTrigger

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

SETTINGS = ServiceConfig.from_env()


def build_state(app: FastAPI, config: ServiceConfig) -> None:
    """Wire collaborators onto app.state."""
    gateway = ShopifyOrderGateway(config.shopify) if config.shopify.is_configured else None
    if gateway is None:
        logger.warning("SHOPIFY_STORE_URL / SHOPIFY_ACCESS_TOKEN not set; reconciliations will be rejected")

    dead_letters = DeadLetterQueue()
    engine = SurchargeEngine(
        gateway,
        config.surcharge,
        lease=InMemoryLeaseStore(),
        dead_letters=dead_letters,
        tracer=setup_otel("recargo-service"),
    )
    verifier = WebhookVerifier(
        config.shopify.webhook_secret,
        enabled=config.surcharge.verify_webhooks,
    )

    app.state.config = config
    app.state.gateway = gateway
    app.state.dead_letters = dead_letters
    app.state.engine = engine
    app.state.trigger = OrderPaidTrigger(engine, verifier, config.surcharge)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    setup_logging(SETTINGS.log_level)
    if not hasattr(app.state, "engine"):
        build_state(app, SETTINGS)

    logger.info(
        "Recargo service started (store=%s, api=%s)",
        SETTINGS.shopify.store_url or "-", SETTINGS.shopify.api_version,
    )
    yield
    logger.info("Recargo service shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Recargo de Equivalencia",
    description="Keeps the Recargo de Equivalencia surcharge line of Shopify orders and draft orders correct",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Shop context middleware
app.add_middleware(ShopContextMiddleware)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from verticals.recargo.router import legacy_router, router as recargo_router  # noqa: E402

app.include_router(recargo_router, prefix="/api/recargo", tags=["Recargo"])
app.include_router(legacy_router, prefix="/api", tags=["Recargo (legacy)"])


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    gateway = getattr(app.state, "gateway", None)
    return {
        "status": "healthy",
        "version": VERSION,
        "shopify_configured": gateway is not None,
        "adapter": gateway.get_health().to_dict() if isinstance(gateway, AdapterBase) else None,
    }


@app.get("/")
async def root():
    return {
        "name": "Recargo de Equivalencia",
        "version": VERSION,
        "docs": "/docs",
        "api_version": SETTINGS.shopify.api_version,
    }
