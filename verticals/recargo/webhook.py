"""orders/paid webhook trigger.

Two states only: WAIT_FOR_EVENT until an eligible, verified orders/paid
delivery arrives, then PROCESSED once the engine has been invoked for it.
Anything else (bad signature, other topic, unparseable body, customer
without the eligibility tag) leaves the trigger where it was and mutates
nothing.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from core.integrations.webhooks import WebhookReceipt, WebhookTopic, WebhookVerifier
from verticals.recargo.config import SurchargeConfig
from verticals.recargo.engine import SurchargeEngine
from verticals.recargo.results import ReconciliationResult
from verticals.recargo.shopify import to_gid

logger = logging.getLogger(__name__)

REASON_INVALID_SIGNATURE = "invalid_signature"
REASON_WRONG_TOPIC = "unsupported_topic"
REASON_MALFORMED = "malformed_payload"
REASON_NOT_ELIGIBLE = "customer_not_eligible"


class TriggerState(str, Enum):
    WAIT_FOR_EVENT = "wait_for_event"
    PROCESSED = "processed"


@dataclass
class TriggerOutcome:
    state: TriggerState
    eligible: bool = False
    reason: str | None = None
    order_id: str | None = None
    result: ReconciliationResult | None = None

    @property
    def verified(self) -> bool:
        return self.reason != REASON_INVALID_SIGNATURE

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "eligible": self.eligible,
            "reason": self.reason,
            "order_id": self.order_id,
            "result": self.result.to_dict() if self.result else None,
        }


def customer_tags(payload: dict[str, Any]) -> list[str]:
    """Tags of the order's customer. Shopify sends them comma-separated."""
    customer = payload.get("customer")
    if not isinstance(customer, dict):
        return []
    raw = customer.get("tags") or ""
    if isinstance(raw, list):
        return [str(t).strip() for t in raw if str(t).strip()]
    return [t.strip() for t in str(raw).split(",") if t.strip()]


def is_well_formed(payload: dict[str, Any]) -> bool:
    """Customer is an object or absent; ids are scalars."""
    customer = payload.get("customer")
    if customer is not None and not isinstance(customer, dict):
        return False
    order_id = payload.get("id")
    if order_id is not None and (isinstance(order_id, bool) or not isinstance(order_id, (str, int))):
        return False
    gid = payload.get("admin_graphql_api_id")
    return gid is None or isinstance(gid, str)


def order_gid(payload: dict[str, Any]) -> str | None:
    gid = payload.get("admin_graphql_api_id")
    if gid:
        return str(gid)
    if payload.get("id") is not None:
        return to_gid("Order", payload["id"])
    return None


class OrderPaidTrigger:
    """Runs the engine for paid orders whose customer carries the RE tag."""

    def __init__(
        self,
        engine: SurchargeEngine,
        verifier: WebhookVerifier,
        config: SurchargeConfig | None = None,
    ):
        self._engine = engine
        self._verifier = verifier
        self.config = config or SurchargeConfig()

    def is_eligible(self, payload: dict[str, Any]) -> bool:
        return self.config.eligibility_tag in customer_tags(payload)

    async def handle(self, body: bytes, headers: Mapping[str, str]) -> TriggerOutcome:
        receipt = WebhookReceipt.from_headers(headers)

        if not self._verifier.verify(body, receipt.signature):
            logger.warning(
                "Rejected webhook %s from %s: invalid signature",
                receipt.webhook_id or "-", receipt.shop_domain or "-",
            )
            return TriggerOutcome(TriggerState.WAIT_FOR_EVENT, reason=REASON_INVALID_SIGNATURE)

        if receipt.topic and receipt.topic != WebhookTopic.ORDERS_PAID.value:
            logger.info("Ignoring webhook topic %s", receipt.topic)
            return TriggerOutcome(TriggerState.WAIT_FOR_EVENT, reason=REASON_WRONG_TOPIC)

        try:
            payload = json.loads(body or b"")
        except ValueError:
            logger.warning("Ignoring webhook %s: body is not JSON", receipt.webhook_id or "-")
            return TriggerOutcome(TriggerState.WAIT_FOR_EVENT, reason=REASON_MALFORMED)
        if not isinstance(payload, dict) or not is_well_formed(payload):
            logger.warning("Ignoring webhook %s: unexpected payload shape", receipt.webhook_id or "-")
            return TriggerOutcome(TriggerState.WAIT_FOR_EVENT, reason=REASON_MALFORMED)

        order_id = order_gid(payload)
        if order_id is None:
            logger.warning("Ignoring webhook %s: no order id", receipt.webhook_id or "-")
            return TriggerOutcome(TriggerState.WAIT_FOR_EVENT, reason=REASON_MALFORMED)

        if not self.is_eligible(payload):
            logger.info(
                "Order %s: customer lacks tag %r, no surcharge",
                order_id, self.config.eligibility_tag,
            )
            return TriggerOutcome(
                TriggerState.WAIT_FOR_EVENT, reason=REASON_NOT_ELIGIBLE, order_id=order_id
            )

        logger.info("Order %s paid by %s customer, reconciling", order_id, self.config.eligibility_tag)
        result = await self._engine.reconcile_order(order_id)
        return TriggerOutcome(
            TriggerState.PROCESSED,
            eligible=True,
            reason=result.reason,
            order_id=order_id,
            result=result,
        )
