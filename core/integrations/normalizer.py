"""
Vendor payload normalizer.

Turns GraphQL nodes into plain dicts keyed by our field names, so domain
objects can be built with `Model(**row)`. A mapping is declared once per
(adapter, entity) pair; each field names a dot path in the vendor node,
an optional transform and a fallback value.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable


@dataclass
class FieldMapping:
    """One vendor path → one canonical field."""
    source_field: str       # e.g. "originalUnitPriceSet.shopMoney.amount"
    target_field: str       # e.g. "unit_price"
    transform: str | None = None
    default: Any = None     # used when the path is absent or the transform fails


@dataclass
class SchemaMapping:
    """All field mappings for one adapter + entity type."""
    adapter_name: str
    entity_type: str  # e.g. order_line | draft_line | calculated_line
    mappings: list[FieldMapping] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.adapter_name}:{self.entity_type}"


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------

def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"not a decimal: {value!r}")


def _csv(value: Any) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _attributes(value: Iterable[dict[str, Any]] | None) -> dict[str, Any]:
    """GraphQL `[{key, value}]` attribute list → dict."""
    return {a["key"]: a.get("value") for a in value or () if "key" in a}


TRANSFORMS: dict[str, Callable[[Any], Any]] = {
    "int": lambda v: 0 if v is None else int(v),
    "str": lambda v: "" if v is None else str(v),
    "strip": lambda v: str(v).strip() if v else "",
    "upper": lambda v: str(v).upper() if v else "",
    "bool": lambda v: False if v is None else bool(v),
    "decimal": _to_decimal,
    "list_from_csv": _csv,
    "attributes": _attributes,
}


# ---------------------------------------------------------------------------
# DataNormalizer
# ---------------------------------------------------------------------------

class DataNormalizer:
    """Registry of schema mappings plus the code that applies them."""

    def __init__(self):
        self._mappings: dict[str, SchemaMapping] = {}

    def register_mapping(self, mapping: SchemaMapping) -> None:
        self._mappings[mapping.key] = mapping

    def normalize(
        self,
        adapter_name: str,
        entity_type: str,
        raw_data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Map one vendor node to a canonical dict.

        Raises KeyError when nothing is registered for the pair; a silent
        pass-through would hand vendor-shaped data to the domain layer.
        """
        mapping = self._mappings.get(f"{adapter_name}:{entity_type}")
        if mapping is None:
            raise KeyError(f"No schema mapping registered for {adapter_name}:{entity_type}")
        return {fm.target_field: self._apply(fm, raw_data) for fm in mapping.mappings}

    def normalize_edges(
        self,
        adapter_name: str,
        entity_type: str,
        connection: dict[str, Any] | None,
    ) -> list[dict[str, Any]]:
        """Map every node of a GraphQL `{edges: [{node}]}` connection."""
        edges = (connection or {}).get("edges") or []
        return [
            self.normalize(adapter_name, entity_type, edge["node"])
            for edge in edges
            if edge.get("node")
        ]

    @classmethod
    def _apply(cls, fm: FieldMapping, raw_data: dict[str, Any]) -> Any:
        value = cls._get_nested(raw_data, fm.source_field)
        if value is None:
            value = fm.default
        transform = TRANSFORMS.get(fm.transform) if fm.transform else None
        if transform is None:
            return value
        try:
            return transform(value)
        except (ValueError, TypeError, KeyError):
            return fm.default

    @staticmethod
    def _get_nested(data: dict[str, Any], path: str) -> Any:
        """Follow a dot path ("variant.id"); None as soon as a hop is missing."""
        current: Any = data
        for part in path.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None
        return current
