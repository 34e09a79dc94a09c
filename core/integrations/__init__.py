"""
Core integrations: remote API adapter framework.

Provides vendor-agnostic integration infrastructure:
- AdapterBase: GraphQL adapter with auth, error mapping, health tracking
- DataNormalizer: Vendor → canonical field mapping
- WebhookVerifier: Inbound HMAC signature verification
"""
from core.integrations.adapter_base import (
    AdapterBase,
    AdapterRequest,
    AdapterResponse,
    AuthCredentials,
    AuthType,
    CallRecord,
    IntegrationHealth,
)
from core.integrations.normalizer import (
    DataNormalizer,
    FieldMapping,
    SchemaMapping,
    TRANSFORMS,
)
from core.integrations.webhooks import (
    WebhookReceipt,
    WebhookTopic,
    WebhookVerifier,
)

__all__ = [
    # Adapter
    "AdapterBase",
    "AdapterRequest",
    "AdapterResponse",
    "AuthCredentials",
    "AuthType",
    "CallRecord",
    "IntegrationHealth",
    # Normalizer
    "DataNormalizer",
    "FieldMapping",
    "SchemaMapping",
    "TRANSFORMS",
    # Webhooks
    "WebhookReceipt",
    "WebhookTopic",
    "WebhookVerifier",
]
