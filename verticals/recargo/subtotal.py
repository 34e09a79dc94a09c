"""Goods subtotal.

Exact decimal sum of line totals. No rounding happens here; callers round
with round_money() when the value leaves the process.
"""

from decimal import Decimal
from typing import Iterable

from verticals.recargo.models import LineItem


def subtotal(goods: Iterable[LineItem]) -> Decimal:
    """Sum of effective unit price x quantity over goods lines.

    An empty list yields Decimal("0"), which is valid here and rejected
    by the decision step.
    """
    return sum((item.line_total for item in goods), Decimal("0"))


def surcharge_amount(amount: Decimal, rate: Decimal) -> Decimal:
    """Unrounded surcharge for a subtotal."""
    return amount * rate
