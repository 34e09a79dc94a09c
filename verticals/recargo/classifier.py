"""Line-item classifier.

Splits an order's lines into goods and surcharge lines. Detection order:

1. explicit marker attribute written by this service
2. canonical label, case-sensitive substring
3. lenient "recargo" substring, case-insensitive (legacy data)

Removed lines (quantity 0) land in neither group.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from verticals.recargo.config import SurchargeConfig
from verticals.recargo.models import LineItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    """Result of classifying one order's line items."""

    goods: list[LineItem] = field(default_factory=list)
    surcharges: list[LineItem] = field(default_factory=list)
    removed: list[LineItem] = field(default_factory=list)


def is_surcharge(item: LineItem, config: SurchargeConfig | None = None) -> bool:
    """Return True if a line item is a Recargo de Equivalencia line."""
    config = config or SurchargeConfig()
    if config.marker_key in item.custom_attributes:
        return True
    title = item.title or ""
    if config.label in title:
        return True
    return config.lenient_label.lower() in title.lower()


def classify(
    items: Iterable[LineItem],
    config: SurchargeConfig | None = None,
) -> Classification:
    """Partition line items into goods, surcharges and removed."""
    config = config or SurchargeConfig()
    goods: list[LineItem] = []
    surcharges: list[LineItem] = []
    removed: list[LineItem] = []

    for item in items:
        if item.is_removed:
            removed.append(item)
        elif is_surcharge(item, config):
            surcharges.append(item)
        else:
            goods.append(item)

    if removed:
        logger.debug(
            "Ignoring %d removed line(s): %s",
            len(removed), ", ".join(i.id for i in removed),
        )
    if len(surcharges) > 1:
        logger.warning(
            "Found %d surcharge lines (%s); they will be collapsed",
            len(surcharges), ", ".join(i.id for i in surcharges),
        )

    return Classification(goods=goods, surcharges=surcharges, removed=removed)
