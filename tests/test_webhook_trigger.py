"""Test the orders/paid webhook trigger."""
import json

import pytest

from core.integrations.webhooks import WebhookVerifier
from verticals.recargo.config import SurchargeConfig
from verticals.recargo.engine import SurchargeEngine
from verticals.recargo.webhook import (
    REASON_INVALID_SIGNATURE,
    REASON_MALFORMED,
    REASON_NOT_ELIGIBLE,
    REASON_WRONG_TOPIC,
    OrderPaidTrigger,
    TriggerState,
    customer_tags,
    is_well_formed,
    order_gid,
)

from fakes import FakeGateway, line, snapshot, surcharge_lines

SECRET = "whsec"
ORDER_ID = "gid://shopify/Order/820982911946154508"


def _trigger():
    gateway = FakeGateway([snapshot(ORDER_ID, [line("1", "A", 1, "100.00")])])
    engine = SurchargeEngine(gateway, SurchargeConfig(retry_delay=0.0))
    return OrderPaidTrigger(engine, WebhookVerifier(SECRET)), gateway


def _delivery(payload, topic="orders/paid", secret=SECRET):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    headers = {
        "X-Shopify-Topic": topic,
        "X-Shopify-Hmac-Sha256": WebhookVerifier.sign(body, secret),
        "X-Shopify-Shop-Domain": "tienda.myshopify.com",
    }
    return body, headers


def _order(tags):
    return {
        "id": 820982911946154508,
        "admin_graphql_api_id": ORDER_ID,
        "customer": {"id": 1, "tags": tags},
    }


def test_customer_tags_split():
    assert customer_tags(_order("cliente-vip, RE, descuento-especial")) == [
        "cliente-vip", "RE", "descuento-especial",
    ]
    assert customer_tags({"customer": None}) == []
    assert customer_tags({}) == []


def test_order_gid_from_numeric_id():
    assert order_gid({"id": 42}) == "gid://shopify/Order/42"
    assert order_gid({"admin_graphql_api_id": "gid://shopify/Order/7", "id": 7}) == "gid://shopify/Order/7"
    assert order_gid({}) is None


@pytest.mark.asyncio
async def test_eligible_order_is_reconciled():
    trigger, gateway = _trigger()

    outcome = await trigger.handle(*_delivery(_order("cliente-vip, RE, descuento-especial")))

    assert outcome.state == TriggerState.PROCESSED
    assert outcome.eligible
    assert outcome.result.success
    assert len(surcharge_lines(gateway.get(ORDER_ID))) == 1


@pytest.mark.asyncio
async def test_tag_match_is_exact():
    trigger, gateway = _trigger()

    outcome = await trigger.handle(*_delivery(_order("REVENDEDOR, re")))

    assert outcome.state == TriggerState.WAIT_FOR_EVENT
    assert outcome.reason == REASON_NOT_ELIGIBLE
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_bad_signature_is_ignored():
    trigger, gateway = _trigger()

    outcome = await trigger.handle(*_delivery(_order("RE"), secret="wrong"))

    assert outcome.state == TriggerState.WAIT_FOR_EVENT
    assert outcome.reason == REASON_INVALID_SIGNATURE
    assert not outcome.verified
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_other_topic_is_ignored():
    trigger, gateway = _trigger()

    outcome = await trigger.handle(*_delivery(_order("RE"), topic="orders/create"))

    assert outcome.reason == REASON_WRONG_TOPIC
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_malformed_body_is_ignored():
    trigger, gateway = _trigger()

    outcome = await trigger.handle(*_delivery(b"not json"))

    assert outcome.state == TriggerState.WAIT_FOR_EVENT
    assert outcome.reason == REASON_MALFORMED
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_payload_without_order_id_is_ignored():
    trigger, _ = _trigger()
    outcome = await trigger.handle(*_delivery({"customer": {"tags": "RE"}}))
    assert outcome.reason == REASON_MALFORMED


def test_payload_shape_checks():
    assert is_well_formed(_order("RE"))
    assert is_well_formed({"id": "820982911946154508"})
    assert not is_well_formed({"id": 1, "customer": "RE"})
    assert not is_well_formed({"id": 1, "customer": ["RE"]})
    assert not is_well_formed({"id": {"value": 1}})
    assert not is_well_formed({"id": True})
    assert not is_well_formed({"admin_graphql_api_id": 7})
    assert customer_tags({"customer": "RE"}) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"id": 1, "customer": "RE"},
    {"id": 1, "customer": ["RE"]},
    {"id": [1], "customer": {"tags": "RE"}},
    ["RE"],
])
async def test_wrong_typed_fields_are_ignored(payload):
    trigger, gateway = _trigger()

    outcome = await trigger.handle(*_delivery(payload))

    assert outcome.state == TriggerState.WAIT_FOR_EVENT
    assert outcome.reason == REASON_MALFORMED
    assert outcome.verified
    assert gateway.calls == []
