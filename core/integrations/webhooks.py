"""
Inbound webhook verification.

Shopify signs every webhook body with HMAC-SHA256 using the app's shared
secret and sends the base64 digest in X-Shopify-Hmac-Sha256. Provides:
- Constant-time signature verification
- Header extraction into a WebhookReceipt
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
import base64
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

HMAC_HEADER = "X-Shopify-Hmac-Sha256"
TOPIC_HEADER = "X-Shopify-Topic"
SHOP_HEADER = "X-Shopify-Shop-Domain"
WEBHOOK_ID_HEADER = "X-Shopify-Webhook-Id"


class WebhookTopic(str, Enum):
    """Webhook topics this service subscribes to."""
    ORDERS_PAID = "orders/paid"
    ORDERS_CREATE = "orders/create"
    DRAFT_ORDERS_UPDATE = "draft_orders/update"


@dataclass
class WebhookReceipt:
    """Headers of one inbound delivery."""
    topic: str = ""
    shop_domain: str = ""
    webhook_id: str = ""
    signature: str | None = None
    received_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "WebhookReceipt":
        # Starlette headers are case-insensitive; plain dicts are not.
        lowered = {k.lower(): v for k, v in headers.items()}
        return cls(
            topic=lowered.get(TOPIC_HEADER.lower(), ""),
            shop_domain=lowered.get(SHOP_HEADER.lower(), ""),
            webhook_id=lowered.get(WEBHOOK_ID_HEADER.lower(), ""),
            signature=lowered.get(HMAC_HEADER.lower()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "shop_domain": self.shop_domain,
            "webhook_id": self.webhook_id,
            "received_at": self.received_at.isoformat(),
        }


class WebhookVerifier:
    """Verifies HMAC signatures on inbound webhooks."""

    def __init__(self, secret: str | None, enabled: bool = True):
        self._secret = secret or ""
        self.enabled = enabled

    @staticmethod
    def sign(payload: bytes, secret: str) -> str:
        """Base64 HMAC-SHA256 digest of a raw payload."""
        digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    def verify(self, payload: bytes, signature_header: str | None) -> bool:
        """Return True if the signature matches the payload."""
        if not self.enabled:
            return True
        if not self._secret:
            logger.error("Webhook secret not configured; rejecting delivery")
            return False
        if not signature_header:
            return False
        expected = self.sign(payload, self._secret)
        return hmac.compare_digest(expected, signature_header.strip())
