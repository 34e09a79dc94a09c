"""Mutation plans.

Turns a decision into the ordered remote steps that realize it for a given
order kind. Plans are pure data: the coordinator executes them, the preview
endpoint just renders them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from verticals.recargo.decision import DecisionKind, SurchargeDecision
from verticals.recargo.models import OrderKind


class StepOperation(str, Enum):
    REPLACE_LINE_ITEMS = "replace_line_items"
    BEGIN_EDIT = "begin_edit"
    REMOVE_LINE_ITEM = "remove_line_item"
    ADD_CUSTOM_ITEM = "add_custom_item"
    COMMIT_EDIT = "commit_edit"


_NOTES: dict[StepOperation, str] = {
    StepOperation.REPLACE_LINE_ITEMS: (
        "single call, atomic at the remote boundary: the whole line set lands or none does"
    ),
    StepOperation.BEGIN_EDIT: (
        "opens a remotely visible calculated order; the order itself is unchanged"
    ),
    StepOperation.REMOVE_LINE_ITEM: (
        "staged on the calculated order only; lost unless the edit is committed"
    ),
    StepOperation.ADD_CUSTOM_ITEM: (
        "staged on the calculated order only; on failure an uncommitted edit session remains"
    ),
    StepOperation.COMMIT_EDIT: (
        "applies all staged changes; until it succeeds the order keeps its old lines"
    ),
}


@dataclass(frozen=True)
class PlanStep:
    operation: StepOperation
    target: str | None = None

    @property
    def note(self) -> str:
        return _NOTES[self.operation]

    def to_dict(self) -> dict[str, Any]:
        return {"operation": self.operation.value, "target": self.target, "note": self.note}


@dataclass(frozen=True)
class MutationPlan:
    order_id: str
    kind: OrderKind
    steps: tuple[PlanStep, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.steps

    @property
    def atomic(self) -> bool:
        return len(self.steps) <= 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "kind": self.kind.value,
            "atomic": self.atomic,
            "steps": [s.to_dict() for s in self.steps],
        }


def plan_mutation(order_id: str, kind: OrderKind, decision: SurchargeDecision) -> MutationPlan:
    """Ordered remote steps for a decision. Skip and Reject plan nothing."""
    if not decision.mutates:
        return MutationPlan(order_id=order_id, kind=kind)

    if kind == OrderKind.DRAFT:
        return MutationPlan(
            order_id=order_id,
            kind=kind,
            steps=(PlanStep(StepOperation.REPLACE_LINE_ITEMS, order_id),),
        )

    steps = [PlanStep(StepOperation.BEGIN_EDIT, order_id)]
    if decision.kind == DecisionKind.REPLACE:
        steps.extend(
            PlanStep(StepOperation.REMOVE_LINE_ITEM, item_id)
            for item_id in decision.stale_item_ids
        )
    steps.append(PlanStep(StepOperation.ADD_CUSTOM_ITEM))
    steps.append(PlanStep(StepOperation.COMMIT_EDIT))
    return MutationPlan(order_id=order_id, kind=kind, steps=tuple(steps))
