"""Request-scoped value objects for one reconciliation call.

Nothing here is cached or persisted: snapshots are re-fetched on every
call because the remote system is the only source of truth.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any

CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    """Round to cents. Only call at transmit/display boundaries."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class OrderKind(str, Enum):
    DRAFT = "draft"
    PLACED = "placed"


# ---------------------------------------------------------------------------
# Line items and orders
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LineItem:
    """One line of an order. Quantity 0 means logically removed."""

    id: str
    title: str
    quantity: int
    unit_price: Decimal
    discounted_unit_price: Decimal | None = None
    currency: str = "EUR"

    # Carried forward verbatim when a draft order's lines are rebuilt
    variant_id: str | None = None
    sku: str | None = None
    requires_shipping: bool = True
    taxable: bool = True
    applied_discount: dict[str, Any] | None = None
    custom_attributes: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.quantity < 0:
            raise ValueError(f"Line item {self.id} has negative quantity {self.quantity}")

    @property
    def is_removed(self) -> bool:
        return self.quantity == 0

    @property
    def effective_unit_price(self) -> Decimal:
        if self.discounted_unit_price is not None and self.discounted_unit_price > 0:
            return self.discounted_unit_price
        return self.unit_price

    @property
    def line_total(self) -> Decimal:
        return self.effective_unit_price * self.quantity


@dataclass(frozen=True)
class OrderSnapshot:
    """State of a remote order at the moment it was fetched."""

    id: str
    kind: OrderKind
    mutable: bool
    line_items: tuple[LineItem, ...] = ()
    currency: str = "EUR"
    name: str = ""
    total: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "mutable": self.mutable,
            "currency": self.currency,
            "total": str(self.total) if self.total is not None else None,
            "line_items": [
                {
                    "id": li.id,
                    "title": li.title,
                    "quantity": li.quantity,
                    "unit_price": str(li.unit_price),
                    "discounted_unit_price": (
                        str(li.discounted_unit_price)
                        if li.discounted_unit_price is not None else None
                    ),
                }
                for li in self.line_items
            ],
        }


@dataclass(frozen=True)
class EditSession:
    """An open staged edit ("calculated order") on a placed order.

    line_items carry calculated line item ids, which are the ids the edit
    mutations expect.
    """

    edit_id: str
    order_id: str
    line_items: tuple[LineItem, ...] = ()
