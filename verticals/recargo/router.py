"""Recargo API router.

- Reconcile endpoints for draft and placed orders
- Dry-run preview (decision + plan, no mutation)
- Open draft order listing and verification view
- Legacy POS extension endpoint and orders/paid webhook
- Remediation queue for reconciliations left half-done

Collaborators live on app.state (built in the lifespan) and are injected
via FastAPI Depends, so tests can swap them per app.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from api.middleware import get_current_shop
from core.errors import OrderNotFoundError, RemoteUserError, TransientError
from core.resilience.dlq import DeadLetterQueue
from core.resilience.retry import with_retry
from verticals.recargo.classifier import classify
from verticals.recargo.config import SurchargeConfig
from verticals.recargo.decision import decide
from verticals.recargo.engine import REASON_NOT_CONFIGURED, REMEDIATION_QUEUE, SurchargeEngine
from verticals.recargo.gateway import OrderGateway
from verticals.recargo.models import OrderSnapshot
from verticals.recargo.results import ErrorKind, ReconciliationResult
from verticals.recargo.schemas import (
    DiscardRequest,
    DraftReconcileRequest,
    LegacyAddRecargoRequest,
    OrderReconcileRequest,
    PreviewRequest,
    ReconciliationResponse,
    ResolveRequest,
    WebhookResponse,
)
from verticals.recargo.webhook import OrderPaidTrigger

logger = logging.getLogger(__name__)

router = APIRouter()
legacy_router = APIRouter()

STATUS_BY_ERROR_KIND: dict[ErrorKind, int] = {
    ErrorKind.NONE: 200,
    ErrorKind.REJECTED: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.BUSY: 409,
    ErrorKind.USER_ERROR: 502,
    ErrorKind.PARTIAL_MUTATION: 502,
    ErrorKind.TIMEOUT: 502,
}


# ============================================================================
# Dependencies
# ============================================================================

def get_engine(request: Request) -> SurchargeEngine:
    return request.app.state.engine


def get_trigger(request: Request) -> OrderPaidTrigger:
    return request.app.state.trigger


def get_dead_letters(request: Request) -> DeadLetterQueue:
    return request.app.state.dead_letters


def get_gateway(request: Request) -> OrderGateway | None:
    return getattr(request.app.state, "gateway", None)


def result_response(result: ReconciliationResult) -> JSONResponse:
    status = 200 if result.success else STATUS_BY_ERROR_KIND[result.error_kind]
    return JSONResponse(status_code=status, content=result.to_dict())


# ============================================================================
# Reconcile Endpoints
# ============================================================================

@router.post("/draft-orders/reconcile", response_model=ReconciliationResponse)
async def reconcile_draft_order(
    request: DraftReconcileRequest,
    engine: SurchargeEngine = Depends(get_engine),
):
    """Bring a draft order's surcharge line in line with its goods."""
    logger.info("Draft reconcile requested by %s for %s", get_current_shop(), request.draft_order_id)
    result = await engine.reconcile_draft_order(request.draft_order_id)
    return result_response(result)


@router.post("/orders/reconcile", response_model=ReconciliationResponse)
async def reconcile_order(
    request: OrderReconcileRequest,
    engine: SurchargeEngine = Depends(get_engine),
):
    """Bring a placed order's surcharge line in line through a staged edit."""
    logger.info("Order reconcile requested by %s for %s", get_current_shop(), request.order_id)
    result = await engine.reconcile_order(request.order_id)
    return result_response(result)


@router.post("/preview", response_model=ReconciliationResponse)
async def preview(
    request: PreviewRequest,
    engine: SurchargeEngine = Depends(get_engine),
):
    """Decision and mutation plan without touching the order."""
    result = await engine.preview(request.order_id, request.kind)
    return result_response(result)


# ============================================================================
# Draft Order Views
# ============================================================================

async def read_or_http_error(engine: SurchargeEngine, read, *args):
    """Retried gateway read; remote failures become HTTP errors."""
    config = engine.config
    try:
        return await with_retry(
            read, *args, max_attempts=config.retry_attempts, delay=config.retry_delay
        )
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Draft order not found")
    except TransientError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except RemoteUserError as exc:
        raise HTTPException(status_code=502, detail=[e.to_dict() for e in exc.errors])


def draft_summary(snapshot: OrderSnapshot, config: SurchargeConfig) -> dict[str, Any]:
    classification = classify(snapshot.line_items, config)
    decision = decide(classification.goods, classification.surcharges, snapshot.mutable, config)
    return {
        **snapshot.to_dict(),
        "surcharge_line_ids": [i.id for i in classification.surcharges],
        "has_recargo": bool(classification.surcharges),
        "decision": decision.to_dict(),
    }


@router.get("/draft-orders")
async def list_draft_orders(
    limit: int = Query(50, ge=1, le=250),
    engine: SurchargeEngine = Depends(get_engine),
    gateway: OrderGateway | None = Depends(get_gateway),
):
    """Open draft orders with their surcharge status, for the POS picker."""
    if gateway is None:
        raise HTTPException(status_code=422, detail=REASON_NOT_CONFIGURED)

    drafts = await read_or_http_error(engine, gateway.fetch_open_draft_orders, limit)
    data = [draft_summary(d, engine.config) for d in drafts]
    return {"data": data, "count": len(data)}


@router.get("/draft-orders/{draft_order_id:path}")
async def get_draft_order(
    draft_order_id: str,
    engine: SurchargeEngine = Depends(get_engine),
    gateway: OrderGateway | None = Depends(get_gateway),
):
    """Current lines of a draft order plus its surcharge status."""
    if gateway is None:
        raise HTTPException(status_code=422, detail=REASON_NOT_CONFIGURED)

    snapshot = await read_or_http_error(engine, gateway.fetch_draft_order, draft_order_id)
    return draft_summary(snapshot, engine.config)


# ============================================================================
# Remediation Endpoints
# ============================================================================

@router.get("/remediation")
async def list_remediation(
    limit: int = Query(50, ge=1, le=200),
    dead_letters: DeadLetterQueue = Depends(get_dead_letters),
):
    """Reconciliations that left an uncommitted edit or could not reach Shopify."""
    letters = dead_letters.list_pending(REMEDIATION_QUEUE, limit=limit)
    return {
        "data": [dl.to_dict() for dl in letters],
        "count": len(letters),
        "stats": dead_letters.get_stats(REMEDIATION_QUEUE).to_dict(),
    }


@router.post("/remediation/{letter_id}/resolve")
async def resolve_remediation(
    letter_id: str,
    request: ResolveRequest,
    dead_letters: DeadLetterQueue = Depends(get_dead_letters),
):
    """Mark an entry as handled by an operator."""
    resolved_by = request.resolved_by or get_current_shop()
    if not dead_letters.mark_resolved(letter_id, resolved_by=resolved_by, note=request.note):
        raise HTTPException(status_code=404, detail="Remediation entry not found")
    return dead_letters.get(letter_id).to_dict()


@router.post("/remediation/{letter_id}/discard")
async def discard_remediation(
    letter_id: str,
    request: DiscardRequest,
    dead_letters: DeadLetterQueue = Depends(get_dead_letters),
):
    """Close an entry without action, e.g. the edit session already expired."""
    if not dead_letters.mark_discarded(letter_id, reason=request.reason):
        raise HTTPException(status_code=404, detail="Remediation entry not found")
    return dead_letters.get(letter_id).to_dict()


# ============================================================================
# Legacy + Webhook Endpoints (mounted under /api)
# ============================================================================

@legacy_router.post("/add-recargo-equivalencia", response_model=ReconciliationResponse)
async def add_recargo_equivalencia(
    request: LegacyAddRecargoRequest,
    engine: SurchargeEngine = Depends(get_engine),
):
    """POS extension entry point. The client-computed amount is ignored."""
    if request.recargo_amount is not None:
        logger.debug(
            "Ignoring client recargo amount %s for %s", request.recargo_amount, request.draft_order_id
        )
    result = await engine.reconcile_draft_order(request.draft_order_id)
    return result_response(result)


@legacy_router.get("/draft-orders")
async def legacy_list_draft_orders(
    limit: int = Query(50, ge=1, le=250),
    engine: SurchargeEngine = Depends(get_engine),
    gateway: OrderGateway | None = Depends(get_gateway),
):
    """Draft picker used by the POS extension."""
    return await list_draft_orders(limit=limit, engine=engine, gateway=gateway)


@legacy_router.post("/webhook/order-paid", response_model=WebhookResponse)
async def order_paid_webhook(
    request: Request,
    trigger: OrderPaidTrigger = Depends(get_trigger),
):
    """orders/paid delivery. Ignored events still answer 200 so Shopify stops retrying."""
    body = await request.body()
    outcome = await trigger.handle(body, request.headers)
    if not outcome.verified:
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
    return {"received": True, **outcome.to_dict()}
