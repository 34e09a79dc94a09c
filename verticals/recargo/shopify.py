"""
Shopify Admin GraphQL gateway.

Implements the OrderGateway contract on top of AdapterBase:
- reads: order / draftOrder / open draftOrders queries (short timeout, retried by the engine)
- draft writes: draftOrderUpdate with the complete line set
- placed writes: orderEditBegin → orderEditSetQuantity → orderEditAddCustomItem
  → orderEditCommit

Vendor payloads are mapped to LineItem through the DataNormalizer so the
domain layer never sees GraphQL shapes.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Any
import logging

import httpx

from core.errors import OrderNotFoundError, RemoteUserError, UserError
from core.integrations.adapter_base import (
    AdapterBase,
    AdapterRequest,
    AuthCredentials,
    AuthType,
)
from core.integrations.normalizer import DataNormalizer, FieldMapping, SchemaMapping
from verticals.recargo.config import ShopifyConfig
from verticals.recargo.models import EditSession, LineItem, OrderKind, OrderSnapshot

logger = logging.getLogger(__name__)

ADAPTER_NAME = "shopify"


def to_gid(resource: str, identifier: str | int) -> str:
    """Accept numeric REST ids or GraphQL gids; always return a gid."""
    value = str(identifier).strip()
    if value.startswith("gid://"):
        return value
    return f"gid://shopify/{resource}/{value}"


# ---------------------------------------------------------------------------
# Line item mappings
# ---------------------------------------------------------------------------

_COMMON_LINE_FIELDS = [
    FieldMapping("id", "id", "str"),
    FieldMapping("title", "title", "strip"),
    FieldMapping("sku", "sku"),
    FieldMapping("originalUnitPriceSet.shopMoney.amount", "unit_price", "decimal", Decimal("0")),
    FieldMapping("originalUnitPriceSet.shopMoney.currencyCode", "currency", "upper", "EUR"),
    FieldMapping("customAttributes", "custom_attributes", "attributes", []),
]

ORDER_LINE_MAPPING = SchemaMapping(
    adapter_name=ADAPTER_NAME,
    entity_type="order_line",
    mappings=_COMMON_LINE_FIELDS + [
        FieldMapping("currentQuantity", "quantity", "int", 0),
        FieldMapping("discountedUnitPriceSet.shopMoney.amount", "discounted_unit_price", "decimal"),
        FieldMapping("variant.id", "variant_id"),
        FieldMapping("requiresShipping", "requires_shipping", "bool", True),
        FieldMapping("taxable", "taxable", "bool", True),
    ],
)

DRAFT_LINE_MAPPING = SchemaMapping(
    adapter_name=ADAPTER_NAME,
    entity_type="draft_line",
    mappings=_COMMON_LINE_FIELDS + [
        FieldMapping("quantity", "quantity", "int", 0),
        FieldMapping(
            "approximateDiscountedUnitPriceSet.shopMoney.amount",
            "discounted_unit_price",
            "decimal",
        ),
        FieldMapping("variant.id", "variant_id"),
        FieldMapping("requiresShipping", "requires_shipping", "bool", True),
        FieldMapping("taxable", "taxable", "bool", True),
        FieldMapping("appliedDiscount", "applied_discount"),
    ],
)

CALCULATED_LINE_MAPPING = SchemaMapping(
    adapter_name=ADAPTER_NAME,
    entity_type="calculated_line",
    mappings=_COMMON_LINE_FIELDS + [
        FieldMapping("quantity", "quantity", "int", 0),
        FieldMapping("discountedUnitPriceSet.shopMoney.amount", "discounted_unit_price", "decimal"),
    ],
)


# ---------------------------------------------------------------------------
# GraphQL documents
# ---------------------------------------------------------------------------

MONEY = "shopMoney { amount currencyCode }"

ORDER_FRAGMENT = f"""
fragment RecargoOrderFields on Order {{
  id
  name
  closed
  cancelledAt
  currencyCode
  currentTotalPriceSet {{ {MONEY} }}
  lineItems(first: 250) {{
    edges {{
      node {{
        id
        title
        sku
        currentQuantity
        requiresShipping
        taxable
        variant {{ id }}
        originalUnitPriceSet {{ {MONEY} }}
        discountedUnitPriceSet {{ {MONEY} }}
        customAttributes {{ key value }}
      }}
    }}
  }}
}}
"""

DRAFT_FRAGMENT = f"""
fragment RecargoDraftFields on DraftOrder {{
  id
  name
  status
  currencyCode
  totalPriceSet {{ {MONEY} }}
  lineItems(first: 250) {{
    edges {{
      node {{
        id
        title
        sku
        quantity
        requiresShipping
        taxable
        variant {{ id }}
        originalUnitPriceSet {{ {MONEY} }}
        approximateDiscountedUnitPriceSet {{ {MONEY} }}
        appliedDiscount {{ title description value valueType }}
        customAttributes {{ key value }}
      }}
    }}
  }}
}}
"""

FETCH_ORDER = """
query RecargoOrder($id: ID!) {
  order(id: $id) { ...RecargoOrderFields }
}
""" + ORDER_FRAGMENT

FETCH_DRAFT_ORDER = """
query RecargoDraftOrder($id: ID!) {
  draftOrder(id: $id) { ...RecargoDraftFields }
}
""" + DRAFT_FRAGMENT

FETCH_OPEN_DRAFT_ORDERS = """
query RecargoOpenDraftOrders($first: Int!) {
  draftOrders(first: $first, query: "status:open", sortKey: UPDATED_AT, reverse: true) {
    edges { node { ...RecargoDraftFields } }
  }
}
""" + DRAFT_FRAGMENT

UPDATE_DRAFT_LINES = """
mutation RecargoDraftUpdate($id: ID!, $input: DraftOrderInput!) {
  draftOrderUpdate(id: $id, input: $input) {
    draftOrder { ...RecargoDraftFields }
    userErrors { field message }
  }
}
""" + DRAFT_FRAGMENT

ORDER_EDIT_BEGIN = f"""
mutation RecargoEditBegin($id: ID!) {{
  orderEditBegin(id: $id) {{
    calculatedOrder {{
      id
      lineItems(first: 250) {{
        edges {{
          node {{
            id
            title
            sku
            quantity
            originalUnitPriceSet {{ {MONEY} }}
            discountedUnitPriceSet {{ {MONEY} }}
            customAttributes {{ key value }}
          }}
        }}
      }}
    }}
    userErrors {{ field message }}
  }}
}}
"""

ORDER_EDIT_SET_QUANTITY = """
mutation RecargoEditSetQuantity($id: ID!, $lineItemId: ID!, $quantity: Int!) {
  orderEditSetQuantity(id: $id, lineItemId: $lineItemId, quantity: $quantity, restock: false) {
    calculatedOrder { id }
    userErrors { field message }
  }
}
"""

ORDER_EDIT_ADD_CUSTOM_ITEM = """
mutation RecargoEditAddCustomItem(
  $id: ID!, $title: String!, $price: MoneyInput!, $quantity: Int!
) {
  orderEditAddCustomItem(
    id: $id, title: $title, price: $price, quantity: $quantity,
    taxable: false, requiresShipping: false
  ) {
    calculatedLineItem { id }
    calculatedOrder { id }
    userErrors { field message }
  }
}
"""

ORDER_EDIT_COMMIT = """
mutation RecargoEditCommit($id: ID!, $staffNote: String) {
  orderEditCommit(id: $id, notifyCustomer: false, staffNote: $staffNote) {
    order { ...RecargoOrderFields }
    userErrors { field message }
  }
}
""" + ORDER_FRAGMENT


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class ShopifyOrderGateway(AdapterBase):
    """OrderGateway backed by the Shopify Admin GraphQL API."""

    name = ADAPTER_NAME

    def __init__(
        self,
        config: ShopifyConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            credentials=AuthCredentials(
                adapter_name=ADAPTER_NAME,
                auth_type=AuthType.TOKEN_HEADER,
                token=config.access_token,
                header="X-Shopify-Access-Token",
            ),
            transport=transport,
        )
        self.config = config
        self._normalizer = DataNormalizer()
        for mapping in (ORDER_LINE_MAPPING, DRAFT_LINE_MAPPING, CALCULATED_LINE_MAPPING):
            self._normalizer.register_mapping(mapping)

    def endpoint(self) -> str:
        return self.config.graphql_url

    # --- Helpers ---

    async def _read(self, operation: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        return await self.graphql(AdapterRequest(
            operation=operation,
            query=query,
            variables=variables,
            timeout=self.config.read_timeout,
        ))

    async def _write(self, operation: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        data = await self.graphql(AdapterRequest(
            operation=operation,
            query=query,
            variables=variables,
            timeout=self.config.write_timeout,
        ))
        return self.raise_for_user_errors(operation, data.get(operation))

    @staticmethod
    def _require(operation: str, payload: dict[str, Any], *path: str) -> Any:
        """Walk payload along path; a null hop is a remote user error."""
        value: Any = payload
        for key in path:
            value = value.get(key) if isinstance(value, dict) else None
            if value is None:
                raise RemoteUserError(
                    operation, [UserError(message=f"missing {'.'.join(path)} in payload")]
                )
        return value

    def _lines(self, entity_type: str, connection: dict[str, Any] | None) -> tuple[LineItem, ...]:
        rows = self._normalizer.normalize_edges(ADAPTER_NAME, entity_type, connection)
        return tuple(LineItem(**row) for row in rows)

    @staticmethod
    def _amount(money_set: dict[str, Any] | None) -> Decimal | None:
        amount = ((money_set or {}).get("shopMoney") or {}).get("amount")
        return Decimal(str(amount)) if amount is not None else None

    def _order_snapshot(self, node: dict[str, Any]) -> OrderSnapshot:
        return OrderSnapshot(
            id=node["id"],
            kind=OrderKind.PLACED,
            mutable=not node.get("closed") and node.get("cancelledAt") is None,
            line_items=self._lines("order_line", node.get("lineItems")),
            currency=node.get("currencyCode") or "EUR",
            name=node.get("name") or "",
            total=self._amount(node.get("currentTotalPriceSet")),
        )

    def _draft_snapshot(self, node: dict[str, Any]) -> OrderSnapshot:
        return OrderSnapshot(
            id=node["id"],
            kind=OrderKind.DRAFT,
            mutable=node.get("status") != "COMPLETED",
            line_items=self._lines("draft_line", node.get("lineItems")),
            currency=node.get("currencyCode") or "EUR",
            name=node.get("name") or "",
            total=self._amount(node.get("totalPriceSet")),
        )

    # --- Reads ---

    async def fetch_order(self, order_id: str) -> OrderSnapshot:
        gid = to_gid("Order", order_id)
        data = await self._read("order", FETCH_ORDER, {"id": gid})
        node = data.get("order")
        if not node:
            raise OrderNotFoundError(gid)
        return self._order_snapshot(node)

    async def fetch_draft_order(self, draft_order_id: str) -> OrderSnapshot:
        gid = to_gid("DraftOrder", draft_order_id)
        data = await self._read("draftOrder", FETCH_DRAFT_ORDER, {"id": gid})
        node = data.get("draftOrder")
        if not node:
            raise OrderNotFoundError(gid)
        return self._draft_snapshot(node)

    async def fetch_open_draft_orders(self, limit: int = 50) -> list[OrderSnapshot]:
        data = await self._read("draftOrders", FETCH_OPEN_DRAFT_ORDERS, {"first": limit})
        edges = (data.get("draftOrders") or {}).get("edges") or []
        return [self._draft_snapshot(edge["node"]) for edge in edges if edge.get("node")]

    # --- Draft writes ---

    async def replace_line_items(
        self, draft_order_id: str, items: list[dict[str, Any]]
    ) -> OrderSnapshot:
        payload = await self._write(
            "draftOrderUpdate",
            UPDATE_DRAFT_LINES,
            {"id": to_gid("DraftOrder", draft_order_id), "input": {"lineItems": items}},
        )
        return self._draft_snapshot(self._require("draftOrderUpdate", payload, "draftOrder"))

    # --- Staged order edit ---

    async def begin_edit(self, order_id: str) -> EditSession:
        gid = to_gid("Order", order_id)
        payload = await self._write("orderEditBegin", ORDER_EDIT_BEGIN, {"id": gid})
        calculated = self._require("orderEditBegin", payload, "calculatedOrder")
        return EditSession(
            edit_id=self._require("orderEditBegin", calculated, "id"),
            order_id=gid,
            line_items=self._lines("calculated_line", calculated.get("lineItems")),
        )

    async def remove_line_item(self, edit_id: str, calculated_line_item_id: str) -> None:
        await self._write(
            "orderEditSetQuantity",
            ORDER_EDIT_SET_QUANTITY,
            {"id": edit_id, "lineItemId": calculated_line_item_id, "quantity": 0},
        )

    async def add_custom_item(
        self,
        edit_id: str,
        title: str,
        price: Decimal,
        currency: str,
        quantity: int = 1,
    ) -> str:
        payload = await self._write(
            "orderEditAddCustomItem",
            ORDER_EDIT_ADD_CUSTOM_ITEM,
            {
                "id": edit_id,
                "title": title,
                "price": {"amount": str(price), "currencyCode": currency},
                "quantity": quantity,
            },
        )
        return self._require("orderEditAddCustomItem", payload, "calculatedLineItem", "id")

    async def commit_edit(self, edit_id: str, staff_note: str = "") -> OrderSnapshot:
        payload = await self._write(
            "orderEditCommit",
            ORDER_EDIT_COMMIT,
            {"id": edit_id, "staffNote": staff_note or None},
        )
        return self._order_snapshot(self._require("orderEditCommit", payload, "order"))
