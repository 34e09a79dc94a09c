"""Pydantic schemas for API request/response validation.

Request bodies use the camelCase keys the admin extension sends.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from verticals.recargo.models import OrderKind


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class DraftReconcileRequest(CamelModel):
    draft_order_id: str = Field(..., min_length=1)


class OrderReconcileRequest(CamelModel):
    order_id: str = Field(..., min_length=1)


class PreviewRequest(CamelModel):
    order_id: str = Field(..., min_length=1)
    kind: OrderKind = OrderKind.DRAFT


class LegacyAddRecargoRequest(CamelModel):
    """Body of the original POS extension call.

    recargo_amount and subtotal are accepted in any JSON form (the POS
    client sends numbers or strings) and ignored: the amount is always
    recomputed from the order.
    """

    draft_order_id: str = Field(..., min_length=1)
    recargo_amount: Any = None
    subtotal: Any = None


class ResolveRequest(BaseModel):
    resolved_by: str = ""
    note: str = ""


class DiscardRequest(BaseModel):
    reason: str = ""


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class UserErrorResponse(BaseModel):
    field: list[str] = []
    message: str
    code: Optional[str] = None


class PhasesResponse(BaseModel):
    edit_created: bool = False
    stale_removed: bool = False
    item_added: bool = False
    committed: bool = False


class ReconciliationResponse(BaseModel):
    success: bool
    order_id: str
    kind: OrderKind
    decision: Optional[str] = None
    subtotal: Optional[str] = None
    recargo_amount: Optional[str] = None
    new_total: Optional[str] = None
    phases: Optional[PhasesResponse] = None
    edit_id: Optional[str] = None
    last_completed_phase: Optional[str] = None
    reason: Optional[str] = None
    error_kind: str = "none"
    needs_attention: bool = False
    user_errors: list[UserErrorResponse] = []
    plan: Optional[dict[str, Any]] = None
    dry_run: bool = False


class WebhookResponse(BaseModel):
    received: bool = True
    state: str
    eligible: bool = False
    reason: Optional[str] = None
    order_id: Optional[str] = None
    result: Optional[ReconciliationResponse] = None
