"""Collaborator contract for the remote order-management system.

Every method either returns a value or raises one of:
- core.errors.OrderNotFoundError (reads)
- core.errors.TransientError
- core.errors.RemoteUserError
"""

from decimal import Decimal
from typing import Any, Protocol

from verticals.recargo.models import EditSession, OrderSnapshot


class OrderGateway(Protocol):

    async def fetch_order(self, order_id: str) -> OrderSnapshot:
        ...

    async def fetch_draft_order(self, draft_order_id: str) -> OrderSnapshot:
        ...

    async def fetch_open_draft_orders(self, limit: int = 50) -> list[OrderSnapshot]:
        """Open draft orders, most recently updated first."""
        ...

    async def replace_line_items(
        self, draft_order_id: str, items: list[dict[str, Any]]
    ) -> OrderSnapshot:
        """Replace every line of a draft order in one atomic call."""
        ...

    async def begin_edit(self, order_id: str) -> EditSession:
        ...

    async def remove_line_item(self, edit_id: str, calculated_line_item_id: str) -> None:
        """Stage quantity 0 for a line of an open edit."""
        ...

    async def add_custom_item(
        self,
        edit_id: str,
        title: str,
        price: Decimal,
        currency: str,
        quantity: int = 1,
    ) -> str:
        """Stage a custom line; returns the calculated line item id."""
        ...

    async def commit_edit(self, edit_id: str, staff_note: str = "") -> OrderSnapshot:
        ...
