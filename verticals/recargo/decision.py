"""Surcharge decision as a pure function.

(goods, surcharges, order_mutable) -> SurchargeDecision. No remote calls,
no side effects. The target is recomputed on every call, so a stale or
duplicated surcharge line heals itself the next time the order is
reconciled.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence

from verticals.recargo.config import SurchargeConfig
from verticals.recargo.models import LineItem, round_money
from verticals.recargo.subtotal import subtotal, surcharge_amount


class DecisionKind(str, Enum):
    SKIP = "skip"
    INSERT = "insert"
    REPLACE = "replace"
    REJECT = "reject"


REASON_NO_GOODS = "no taxable goods"
REASON_IMMUTABLE = "order immutable"
REASON_UP_TO_DATE = "surcharge already up to date"


@dataclass(frozen=True)
class SurchargeDecision:
    """Outcome of one decision.

    amount is the freshly computed target (rounded to cents).
    stale_item_ids lists every surcharge line a Replace must remove.
    """

    kind: DecisionKind
    subtotal: Decimal
    amount: Decimal
    stale_item_ids: tuple[str, ...] = ()
    reason: str | None = None

    @classmethod
    def skip(cls, sub: Decimal, amount: Decimal) -> "SurchargeDecision":
        return cls(DecisionKind.SKIP, sub, amount, reason=REASON_UP_TO_DATE)

    @classmethod
    def insert(cls, sub: Decimal, amount: Decimal) -> "SurchargeDecision":
        return cls(DecisionKind.INSERT, sub, amount)

    @classmethod
    def replace(cls, sub: Decimal, amount: Decimal, stale: Sequence[str]) -> "SurchargeDecision":
        return cls(DecisionKind.REPLACE, sub, amount, stale_item_ids=tuple(stale))

    @classmethod
    def reject(cls, sub: Decimal, amount: Decimal, reason: str) -> "SurchargeDecision":
        return cls(DecisionKind.REJECT, sub, amount, reason=reason)

    @property
    def replaced_item_id(self) -> str | None:
        """The single stale line, when exactly one is being replaced."""
        if len(self.stale_item_ids) == 1:
            return self.stale_item_ids[0]
        return None

    @property
    def mutates(self) -> bool:
        return self.kind in (DecisionKind.INSERT, DecisionKind.REPLACE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "subtotal": str(round_money(self.subtotal)),
            "amount": str(self.amount),
            "stale_item_ids": list(self.stale_item_ids),
            "replaced_item_id": self.replaced_item_id,
            "reason": self.reason,
        }


def target_amount(goods: Sequence[LineItem], config: SurchargeConfig | None = None) -> Decimal:
    """Surcharge the order should carry, rounded to cents."""
    config = config or SurchargeConfig()
    return round_money(surcharge_amount(subtotal(goods), config.rate))


def decide(
    goods: Sequence[LineItem],
    surcharges: Sequence[LineItem],
    order_mutable: bool,
    config: SurchargeConfig | None = None,
) -> SurchargeDecision:
    """Decide what to do with the surcharge line of one order.

    Rules, in order:
    - target <= 0 → reject (no taxable goods)
    - order not mutable → reject
    - no surcharge line → insert
    - exactly one line within tolerance of target → skip
    - anything else (stale amount, duplicates) → replace all with one
    """
    config = config or SurchargeConfig()
    sub = subtotal(goods)
    target = round_money(surcharge_amount(sub, config.rate))

    if target <= 0:
        return SurchargeDecision.reject(sub, target, REASON_NO_GOODS)

    if not order_mutable:
        return SurchargeDecision.reject(sub, target, REASON_IMMUTABLE)

    if not surcharges:
        return SurchargeDecision.insert(sub, target)

    if len(surcharges) == 1:
        existing = surcharges[0].line_total
        if abs(existing - target) <= config.tolerance:
            return SurchargeDecision.skip(sub, target)

    return SurchargeDecision.replace(sub, target, [s.id for s in surcharges])
