"""Test the remote mutation coordinator against the in-memory gateway."""
from decimal import Decimal

import pytest

from core.errors import RemoteUserError, TransientError, UserError
from verticals.recargo.classifier import classify
from verticals.recargo.coordinator import MutationCoordinator
from verticals.recargo.decision import decide
from verticals.recargo.models import OrderKind
from verticals.recargo.results import ErrorKind

from fakes import FakeGateway, line, snapshot, surcharge_lines

LABEL = "Recargo de Equivalencia (5.2%)"
ORDER_ID = "gid://shopify/Order/1"
DRAFT_ID = "gid://shopify/DraftOrder/1"


async def _apply(gateway, order):
    c = classify(order.line_items)
    decision = decide(c.goods, c.surcharges, order.mutable)
    return await MutationCoordinator(gateway).apply(order, c, decision)


# --- Draft orders ---

def test_surcharge_line_input_shape():
    data = MutationCoordinator(FakeGateway()).surcharge_line_input(Decimal("2.08"), "EUR")
    assert data == {
        "title": LABEL,
        "quantity": 1,
        "originalUnitPriceWithCurrency": {"amount": "2.08", "currencyCode": "EUR"},
        "requiresShipping": False,
        "taxable": False,
        "customAttributes": [{"key": "_recargo_equivalencia", "value": "0.052"}],
    }


def test_goods_line_input_keeps_variant_and_discount():
    item = line(
        "1", "Camiseta", 2, "25.00",
        variant_id="gid://shopify/ProductVariant/7",
        applied_discount={"value": 5.0, "valueType": "FIXED_AMOUNT", "title": "Promo"},
    )
    data = MutationCoordinator.goods_line_input(item)
    assert data["variantId"] == "gid://shopify/ProductVariant/7"
    assert data["quantity"] == 2
    assert data["appliedDiscount"]["title"] == "Promo"
    assert "title" not in data


def test_goods_line_input_custom_line():
    item = line("1", "Portes", 1, "4.95", sku="SHIP", taxable=False, requires_shipping=False)
    data = MutationCoordinator.goods_line_input(item)
    assert data["title"] == "Portes"
    assert data["originalUnitPriceWithCurrency"] == {"amount": "4.95", "currencyCode": "EUR"}
    assert data["sku"] == "SHIP"
    assert data["taxable"] is False


@pytest.mark.asyncio
async def test_draft_insert_single_replace_call():
    draft = snapshot(DRAFT_ID, [line("1", "A", 1, "100.00", variant_id="v1")], kind=OrderKind.DRAFT)
    gateway = FakeGateway([draft])

    outcome = await _apply(gateway, draft)

    assert outcome.applied
    assert gateway.mutation_calls() == ["replace_line_items"]
    after = gateway.get(DRAFT_ID, OrderKind.DRAFT)
    assert [i.line_total for i in surcharge_lines(after)] == [Decimal("5.20")]


@pytest.mark.asyncio
async def test_draft_replace_drops_every_stale_line():
    draft = snapshot(DRAFT_ID, [
        line("1", "A", 1, "100.00", variant_id="v1"),
        line("s1", LABEL, 1, "3.00"),
        line("s2", LABEL, 1, "5.20"),
    ], kind=OrderKind.DRAFT)
    gateway = FakeGateway([draft])

    outcome = await _apply(gateway, draft)

    assert outcome.applied
    after = gateway.get(DRAFT_ID, OrderKind.DRAFT)
    assert len(surcharge_lines(after)) == 1
    assert len(after.line_items) == 2


@pytest.mark.asyncio
async def test_draft_user_error_surfaced_verbatim():
    draft = snapshot(DRAFT_ID, [line("1", "A", 1, "100.00", variant_id="v1")], kind=OrderKind.DRAFT)
    gateway = FakeGateway([draft])
    gateway.fail["replace_line_items"] = RemoteUserError(
        "draftOrderUpdate",
        [UserError(message="Line items is invalid", field=("input", "lineItems"))],
    )

    outcome = await _apply(gateway, draft)

    assert not outcome.applied
    assert outcome.error_kind == ErrorKind.USER_ERROR
    assert outcome.user_errors[0].field == ("input", "lineItems")
    assert gateway.get(DRAFT_ID, OrderKind.DRAFT) is draft


@pytest.mark.asyncio
async def test_draft_transport_failure_is_transient():
    draft = snapshot(DRAFT_ID, [line("1", "A", 1, "100.00", variant_id="v1")], kind=OrderKind.DRAFT)
    gateway = FakeGateway([draft])
    gateway.fail["replace_line_items"] = TransientError("draftOrderUpdate", "HTTP 502")

    outcome = await _apply(gateway, draft)

    assert outcome.error_kind == ErrorKind.TRANSIENT
    assert "reconcile again" in outcome.reason


# --- Placed orders ---

@pytest.mark.asyncio
async def test_placed_insert_runs_three_phases():
    order = snapshot(ORDER_ID, [line("1", "A", 2, "10.00"), line("2", "B", 1, "25.00", discounted="20.00")])
    gateway = FakeGateway([order])

    outcome = await _apply(gateway, order)

    assert outcome.applied
    assert gateway.mutation_calls() == ["begin_edit", "add_custom_item", "commit_edit"]
    assert outcome.progress.phase_flags() == {
        "edit_created": True,
        "stale_removed": False,
        "item_added": True,
        "committed": True,
    }
    title, price, currency, quantity = gateway.calls[-2][1]
    assert (title, price, currency, quantity) == (LABEL, Decimal("2.08"), "EUR", 1)


@pytest.mark.asyncio
async def test_placed_replace_removes_stale_on_calculated_order():
    order = snapshot(ORDER_ID, [line("1", "A", 1, "100.00"), line("s1", LABEL, 1, "4.00")])
    gateway = FakeGateway([order])

    outcome = await _apply(gateway, order)

    assert outcome.applied
    assert ("remove_line_item", "calc:s1") in gateway.calls
    assert outcome.progress.phase_flags()["stale_removed"] is True
    after = gateway.get(ORDER_ID)
    assert [i.line_total for i in surcharge_lines(after)] == [Decimal("5.20")]


@pytest.mark.asyncio
async def test_commit_failure_reports_partial_mutation():
    order = snapshot(ORDER_ID, [line("1", "A", 1, "100.00")])
    gateway = FakeGateway([order])
    gateway.fail["commit_edit"] = RemoteUserError("orderEditCommit", [UserError(message="Order is locked")])

    outcome = await _apply(gateway, order)

    assert not outcome.applied
    assert outcome.error_kind == ErrorKind.PARTIAL_MUTATION
    assert outcome.progress.phase_flags() == {
        "edit_created": True,
        "stale_removed": False,
        "item_added": True,
        "committed": False,
    }
    assert outcome.user_errors[0].message == "Order is locked"
    assert gateway.get(ORDER_ID) is order


@pytest.mark.asyncio
async def test_add_failure_stops_before_commit():
    order = snapshot(ORDER_ID, [line("1", "A", 1, "100.00")])
    gateway = FakeGateway([order])
    gateway.fail["add_custom_item"] = TransientError("orderEditAddCustomItem", "timeout")

    outcome = await _apply(gateway, order)

    assert outcome.error_kind == ErrorKind.PARTIAL_MUTATION
    assert "commit_edit" not in gateway.mutation_calls()
    assert outcome.progress.failed_phase == "add_custom_item"
    assert outcome.progress.last_completed_phase == "begun"


@pytest.mark.asyncio
async def test_begin_failure_changes_nothing():
    order = snapshot(ORDER_ID, [line("1", "A", 1, "100.00")])
    gateway = FakeGateway([order])
    gateway.fail["begin_edit"] = TransientError("orderEditBegin", "HTTP 503")

    outcome = await _apply(gateway, order)

    assert outcome.error_kind == ErrorKind.TRANSIENT
    assert not outcome.progress.has_remote_side_effects
    assert outcome.progress.phase_flags()["edit_created"] is False


@pytest.mark.asyncio
async def test_skip_makes_no_calls():
    order = snapshot(ORDER_ID, [line("1", "A", 1, "100.00"), line("s", LABEL, 1, "5.20")])
    gateway = FakeGateway([order])

    outcome = await _apply(gateway, order)

    assert not outcome.applied
    assert outcome.error_kind == ErrorKind.NONE
    assert gateway.calls == []
