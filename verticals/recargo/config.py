"""Dataclass configuration for the surcharge service.

Thresholds, labels and remote settings as frozen dataclasses with
sensible defaults and environment overrides::

    config = ServiceConfig.from_env()
    if not config.shopify.is_configured:
        ...
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ShopifyConfig:
    """Remote order-management API settings."""

    store_url: str = ""  # e.g. "my-store.myshopify.com"
    access_token: str = ""
    api_version: str = "2025-07"
    webhook_secret: str = ""
    read_timeout: float = 10.0
    write_timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.store_url and self.access_token)

    @property
    def graphql_url(self) -> str:
        host = self.store_url.removeprefix("https://").removeprefix("http://").rstrip("/")
        return f"https://{host}/admin/api/{self.api_version}/graphql.json"


@dataclass(frozen=True)
class SurchargeConfig:
    """Recargo de Equivalencia rules and pipeline limits."""

    rate: Decimal = Decimal("0.052")
    label: str = "Recargo de Equivalencia"
    line_title: str = "Recargo de Equivalencia (5.2%)"
    lenient_label: str = "recargo"
    marker_key: str = "_recargo_equivalencia"
    tolerance: Decimal = Decimal("0.01")
    eligibility_tag: str = "RE"

    retry_attempts: int = 3
    retry_delay: float = 1.0
    pipeline_timeout: float = 60.0
    lease_ttl: float = 120.0

    verify_webhooks: bool = True


# ---------------------------------------------------------------------------
# Top-level service config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ServiceConfig:
    """Complete configuration for the service."""

    shopify: ShopifyConfig = field(default_factory=ShopifyConfig)
    surcharge: SurchargeConfig = field(default_factory=SurchargeConfig)
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("http://localhost:3000",)

    @classmethod
    def default(cls) -> "ServiceConfig":
        return cls()

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Create config from environment variables.

        Example: RECARGO_ELIGIBILITY_TAG=RE SHOPIFY_API_VERSION=2025-07
        """
        shopify = ShopifyConfig(
            store_url=os.getenv("SHOPIFY_STORE_URL", ""),
            access_token=os.getenv("SHOPIFY_ACCESS_TOKEN", ""),
            api_version=os.getenv("SHOPIFY_API_VERSION", ShopifyConfig.api_version),
            webhook_secret=os.getenv("SHOPIFY_WEBHOOK_SECRET", ""),
        )

        overrides = {}
        tag = os.getenv("RECARGO_ELIGIBILITY_TAG")
        if tag:
            overrides["eligibility_tag"] = tag
        rate = os.getenv("RECARGO_RATE")
        if rate:
            overrides["rate"] = Decimal(rate)
        timeout = os.getenv("RECARGO_PIPELINE_TIMEOUT")
        if timeout:
            overrides["pipeline_timeout"] = float(timeout)
        verify = os.getenv("RECARGO_VERIFY_WEBHOOKS")
        if verify:
            overrides["verify_webhooks"] = verify.lower() == "true"

        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
        return cls(
            shopify=shopify,
            surcharge=SurchargeConfig(**overrides),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )
