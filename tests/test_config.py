"""Test configuration defaults and environment overrides."""
from decimal import Decimal

from verticals.recargo.config import ServiceConfig, ShopifyConfig, SurchargeConfig


def test_defaults():
    config = ServiceConfig.default()
    assert config.surcharge.rate == Decimal("0.052")
    assert config.surcharge.eligibility_tag == "RE"
    assert config.surcharge.retry_attempts == 3
    assert config.shopify.api_version == "2025-07"
    assert config.shopify.read_timeout == 10.0
    assert not config.shopify.is_configured


def test_graphql_url_normalizes_store_url():
    for store in ("tienda.myshopify.com", "https://tienda.myshopify.com/"):
        assert ShopifyConfig(store_url=store).graphql_url == (
            "https://tienda.myshopify.com/admin/api/2025-07/graphql.json"
        )


def test_from_env(monkeypatch):
    monkeypatch.setenv("SHOPIFY_STORE_URL", "tienda.myshopify.com")
    monkeypatch.setenv("SHOPIFY_ACCESS_TOKEN", "shpat_x")
    monkeypatch.setenv("SHOPIFY_API_VERSION", "2023-10")
    monkeypatch.setenv("RECARGO_RATE", "0.014")
    monkeypatch.setenv("RECARGO_VERIFY_WEBHOOKS", "false")
    monkeypatch.setenv("CORS_ORIGINS", "https://admin.shopify.com, https://pos.shopify.com")

    config = ServiceConfig.from_env()

    assert config.shopify.is_configured
    assert config.shopify.api_version == "2023-10"
    assert config.surcharge.rate == Decimal("0.014")
    assert config.surcharge.verify_webhooks is False
    assert config.cors_origins == ("https://admin.shopify.com", "https://pos.shopify.com")


def test_surcharge_config_is_frozen():
    config = SurchargeConfig()
    try:
        config.rate = Decimal("0.1")
    except AttributeError:
        pass
    else:
        raise AssertionError("SurchargeConfig should be immutable")
