"""
Surcharge reconciliation engine.

One call = fetch (with read retry) → classify → decide → plan → apply.
Everything is rebuilt from a fresh snapshot each time; there is no
in-process state shared between calls apart from the injected
collaborators:

- OrderGateway: the remote order-management API
- OrderLease (optional): per-order mutual exclusion
- DeadLetterQueue (optional): results that need an operator
"""
from __future__ import annotations
from dataclasses import dataclass
import asyncio
import logging

from core.errors import OrderNotFoundError, RemoteUserError, TransientError
from core.resilience.dlq import DeadLetterQueue
from core.resilience.lease import OrderLease
from core.resilience.retry import with_retry
from verticals.recargo.classifier import classify
from verticals.recargo.config import SurchargeConfig
from verticals.recargo.coordinator import MutationCoordinator
from verticals.recargo.decision import SurchargeDecision, decide
from verticals.recargo.edit_state import EditProgress
from verticals.recargo.gateway import OrderGateway
from verticals.recargo.models import OrderKind, OrderSnapshot
from verticals.recargo.plan import MutationPlan, plan_mutation
from verticals.recargo.results import ErrorKind, ReconciliationResult

logger = logging.getLogger(__name__)

REMEDIATION_QUEUE = "recargo"
REASON_NOT_CONFIGURED = "shopify configuration is missing"
REASON_BUSY = "another reconciliation for this order is in progress"


@dataclass
class _Attempt:
    """What one pipeline run has learned so far; survives a timeout."""
    progress: EditProgress
    snapshot: OrderSnapshot | None = None
    decision: SurchargeDecision | None = None
    plan: MutationPlan | None = None


class SurchargeEngine:
    """Reconciles the Recargo de Equivalencia line of orders and drafts."""

    def __init__(
        self,
        gateway: OrderGateway | None,
        config: SurchargeConfig | None = None,
        lease: OrderLease | None = None,
        dead_letters: DeadLetterQueue | None = None,
        tracer=None,
    ):
        self._gateway = gateway
        self.config = config or SurchargeConfig()
        self._lease = lease
        self._dead_letters = dead_letters
        self._coordinator = (
            MutationCoordinator(gateway, self.config, tracer=tracer) if gateway else None
        )

    # --- Public API ---

    async def reconcile_order(self, order_id: str) -> ReconciliationResult:
        return await self.reconcile(order_id, OrderKind.PLACED)

    async def reconcile_draft_order(self, draft_order_id: str) -> ReconciliationResult:
        return await self.reconcile(draft_order_id, OrderKind.DRAFT)

    async def preview(self, order_id: str, kind: OrderKind) -> ReconciliationResult:
        """Decision and plan for an order without mutating it."""
        return await self.reconcile(order_id, kind, dry_run=True)

    async def reconcile(
        self,
        order_id: str,
        kind: OrderKind,
        dry_run: bool = False,
    ) -> ReconciliationResult:
        if self._gateway is None:
            return ReconciliationResult.failed(
                order_id, kind, ErrorKind.REJECTED, REASON_NOT_CONFIGURED
            )

        lease_key = f"recargo:{order_id}"
        token = None
        if self._lease is not None and not dry_run:
            token = await self._lease.acquire(lease_key, self.config.lease_ttl)
            if token is None:
                logger.warning("Order %s: lease held elsewhere, skipping", order_id)
                return ReconciliationResult.failed(order_id, kind, ErrorKind.BUSY, REASON_BUSY)

        attempt = _Attempt(progress=EditProgress(order_id=order_id))
        try:
            result = await asyncio.wait_for(
                self._run(order_id, kind, attempt, dry_run),
                timeout=self.config.pipeline_timeout,
            )
        except asyncio.TimeoutError:
            result = self._timed_out(order_id, kind, attempt)
        finally:
            if token is not None:
                await self._lease.release(lease_key, token)

        self._record_if_needed(result)
        return result

    # --- Pipeline ---

    async def _fetch(self, order_id: str, kind: OrderKind) -> OrderSnapshot:
        fetch = (
            self._gateway.fetch_draft_order
            if kind == OrderKind.DRAFT
            else self._gateway.fetch_order
        )
        return await with_retry(
            fetch,
            order_id,
            max_attempts=self.config.retry_attempts,
            delay=self.config.retry_delay,
        )

    async def _run(
        self,
        order_id: str,
        kind: OrderKind,
        attempt: _Attempt,
        dry_run: bool,
    ) -> ReconciliationResult:
        try:
            snapshot = await self._fetch(order_id, kind)
        except OrderNotFoundError as exc:
            return ReconciliationResult.failed(order_id, kind, ErrorKind.NOT_FOUND, str(exc))
        except TransientError as exc:
            return ReconciliationResult.failed(
                order_id, kind, ErrorKind.TRANSIENT, f"could not read order: {exc}"
            )
        except RemoteUserError as exc:
            return ReconciliationResult.failed(
                order_id, kind, ErrorKind.USER_ERROR, str(exc), user_errors=exc.errors
            )
        attempt.snapshot = snapshot

        classification = classify(snapshot.line_items, self.config)
        decision = decide(
            classification.goods,
            classification.surcharges,
            snapshot.mutable,
            self.config,
        )
        plan = plan_mutation(snapshot.id, snapshot.kind, decision)
        attempt.decision = decision
        attempt.plan = plan

        logger.info(
            "%s %s: subtotal=%s target=%s surcharges=%d removed=%d → %s%s",
            kind.value, order_id, decision.subtotal, decision.amount,
            len(classification.surcharges), len(classification.removed),
            decision.kind.value, f" ({decision.reason})" if decision.reason else "",
        )

        if dry_run or not decision.mutates:
            return ReconciliationResult.from_decision(snapshot, decision, plan, dry_run=dry_run)

        outcome = await self._coordinator.apply(
            snapshot, classification, decision, attempt.progress
        )
        if outcome.applied and outcome.snapshot is not None:
            after = classify(outcome.snapshot.line_items, self.config)
            if len(after.surcharges) != 1:
                logger.warning(
                    "%s %s: %d surcharge lines after apply; a concurrent edit may have raced",
                    kind.value, order_id, len(after.surcharges),
                )
        return ReconciliationResult.from_outcome(snapshot, decision, plan, outcome)

    def _timed_out(self, order_id: str, kind: OrderKind, attempt: _Attempt) -> ReconciliationResult:
        progress = attempt.progress
        last = progress.last_completed_phase or "none"
        logger.error(
            "%s %s: pipeline exceeded %.1fs (last completed phase: %s)",
            kind.value, order_id, self.config.pipeline_timeout, last,
        )
        return ReconciliationResult.failed(
            order_id,
            kind,
            ErrorKind.TIMEOUT,
            f"timed out after {self.config.pipeline_timeout}s; last completed phase: {last}",
            decision=attempt.decision,
            plan=attempt.plan,
            progress=progress if progress.history else None,
        )

    def _record_if_needed(self, result: ReconciliationResult) -> None:
        if self._dead_letters is None:
            return
        if not (result.needs_attention or result.error_kind == ErrorKind.TRANSIENT):
            return
        letter = self._dead_letters.enqueue(
            queue_name=REMEDIATION_QUEUE,
            event_type=f"{result.kind.value}.{result.error_kind.value}",
            subject_id=result.order_id,
            payload=result.to_dict(),
            error=result.reason or "",
        )
        logger.warning("Recorded %s for operator review as %s", result.order_id, letter.id)
