"""Test the surcharge decision and mutation plans."""
from decimal import Decimal

from verticals.recargo.classifier import classify
from verticals.recargo.decision import (
    REASON_IMMUTABLE,
    REASON_NO_GOODS,
    DecisionKind,
    decide,
    target_amount,
)
from verticals.recargo.models import OrderKind, round_money
from verticals.recargo.plan import StepOperation, plan_mutation

from fakes import line

LABEL = "Recargo de Equivalencia (5.2%)"


def _decide(items, mutable=True):
    c = classify(items)
    return decide(c.goods, c.surcharges, mutable)


def test_insert_when_no_surcharge():
    decision = _decide([
        line("1", "A", 2, "10.00"),
        line("2", "B", 1, "25.00", discounted="20.00"),
    ])
    assert decision.kind == DecisionKind.INSERT
    assert decision.subtotal == Decimal("40.00")
    assert decision.amount == Decimal("2.08")


def test_skip_when_up_to_date():
    decision = _decide([line("1", "A", 1, "100.00"), line("s", LABEL, 1, "5.20")])
    assert decision.kind == DecisionKind.SKIP
    assert not decision.mutates


def test_skip_within_tolerance():
    decision = _decide([line("1", "A", 1, "100.00"), line("s", LABEL, 1, "5.21")])
    assert decision.kind == DecisionKind.SKIP


def test_replace_stale_amount():
    decision = _decide([line("1", "A", 1, "100.00"), line("s", LABEL, 1, "4.00")])
    assert decision.kind == DecisionKind.REPLACE
    assert decision.amount == Decimal("5.20")
    assert decision.replaced_item_id == "s"


def test_replace_collapses_duplicates():
    decision = _decide([
        line("1", "A", 1, "100.00"),
        line("s1", LABEL, 1, "3.00"),
        line("s2", LABEL, 1, "5.20"),
    ])
    assert decision.kind == DecisionKind.REPLACE
    assert decision.stale_item_ids == ("s1", "s2")
    assert decision.replaced_item_id is None
    assert decision.amount == Decimal("5.20")


def test_removed_items_excluded():
    with_removed = _decide([line("1", "A", 1, "100.00"), line("2", "B", 0, "50.00")])
    without = _decide([line("1", "A", 1, "100.00")])
    assert with_removed.subtotal == without.subtotal
    assert with_removed.amount == without.amount


def test_removed_surcharge_is_not_stale():
    decision = _decide([line("1", "A", 1, "100.00"), line("s", LABEL, 0, "4.00")])
    assert decision.kind == DecisionKind.INSERT


def test_reject_zero_subtotal():
    decision = _decide([line("s", LABEL, 1, "4.00")])
    assert decision.kind == DecisionKind.REJECT
    assert decision.reason == REASON_NO_GOODS


def test_reject_when_target_rounds_to_zero():
    decision = _decide([line("1", "A", 1, "0.05")])
    assert decision.kind == DecisionKind.REJECT
    assert decision.reason == REASON_NO_GOODS


def test_reject_immutable_order():
    decision = _decide([line("1", "A", 1, "100.00")], mutable=False)
    assert decision.kind == DecisionKind.REJECT
    assert decision.reason == REASON_IMMUTABLE


def test_zero_subtotal_checked_before_mutability():
    decision = _decide([], mutable=False)
    assert decision.reason == REASON_NO_GOODS


def test_decision_is_pure():
    items = [line("1", "A", 3, "19.99"), line("s", LABEL, 1, "1.00")]
    assert _decide(items) == _decide(items)


def test_round_half_up():
    assert round_money(Decimal("0.125")) == Decimal("0.13")
    assert target_amount([line("1", "A", 1, "12.50")]) == Decimal("0.65")


def test_decision_to_dict():
    data = _decide([line("1", "A", 1, "100.00"), line("s", LABEL, 1, "4.00")]).to_dict()
    assert data["kind"] == "replace"
    assert data["amount"] == "5.20"
    assert data["subtotal"] == "100.00"
    assert data["stale_item_ids"] == ["s"]


# --- Plans ---

def test_draft_plan_is_single_atomic_step():
    decision = _decide([line("1", "A", 1, "100.00"), line("s", LABEL, 1, "4.00")])
    plan = plan_mutation("gid://shopify/DraftOrder/1", OrderKind.DRAFT, decision)
    assert [s.operation for s in plan.steps] == [StepOperation.REPLACE_LINE_ITEMS]
    assert plan.atomic


def test_placed_insert_plan():
    decision = _decide([line("1", "A", 1, "100.00")])
    plan = plan_mutation("gid://shopify/Order/1", OrderKind.PLACED, decision)
    assert [s.operation for s in plan.steps] == [
        StepOperation.BEGIN_EDIT,
        StepOperation.ADD_CUSTOM_ITEM,
        StepOperation.COMMIT_EDIT,
    ]
    assert not plan.atomic


def test_placed_replace_plan_removes_every_stale_line():
    decision = _decide([
        line("1", "A", 1, "100.00"),
        line("s1", LABEL, 1, "3.00"),
        line("s2", LABEL, 1, "5.20"),
    ])
    plan = plan_mutation("gid://shopify/Order/1", OrderKind.PLACED, decision)
    removes = [s.target for s in plan.steps if s.operation == StepOperation.REMOVE_LINE_ITEM]
    assert removes == ["s1", "s2"]
    assert plan.steps[-1].operation == StepOperation.COMMIT_EDIT


def test_skip_plans_nothing():
    decision = _decide([line("1", "A", 1, "100.00"), line("s", LABEL, 1, "5.20")])
    plan = plan_mutation("gid://shopify/Order/1", OrderKind.PLACED, decision)
    assert plan.is_empty
    assert plan.to_dict()["steps"] == []


def test_plan_steps_explain_visibility():
    decision = _decide([line("1", "A", 1, "100.00")])
    plan = plan_mutation("gid://shopify/Order/1", OrderKind.PLACED, decision)
    for step in plan.to_dict()["steps"]:
        assert step["note"]
