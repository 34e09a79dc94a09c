"""
Remote failure taxonomy.

Every remote collaborator call resolves to a value or raises one of these.
Callers above the coordinator never see them: the engine converts each
kind into a ReconciliationResult.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class UserError:
    """A structured field/message error reported by the remote API."""
    message: str
    field: tuple[str, ...] = ()
    code: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "UserError":
        field_path = payload.get("field") or payload.get("path") or ()
        if isinstance(field_path, str):
            field_path = (field_path,)
        extensions = payload.get("extensions") or {}
        return cls(
            message=str(payload.get("message", "")),
            field=tuple(str(p) for p in field_path),
            code=payload.get("code") or extensions.get("code"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": list(self.field),
            "message": self.message,
            "code": self.code,
        }


class RemoteError(Exception):
    """Base class for failures talking to the order-management API."""


class TransientError(RemoteError):
    """Timeout, connection reset or 5xx. Safe to retry on reads."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation}: {detail}")


class RemoteUserError(RemoteError):
    """A successful response that carries application-level errors."""

    def __init__(self, operation: str, errors: list[UserError]):
        self.operation = operation
        self.errors = list(errors)
        joined = "; ".join(e.message for e in self.errors) or "unknown error"
        super().__init__(f"{operation}: {joined}")


class OrderNotFoundError(RemoteError):
    """The order or draft order id does not resolve on the remote side."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")
