"""Remote mutation coordinator.

Applies a SurchargeDecision with the closest primitive the remote system
offers:

- Draft orders: one bulk "replace all line items" call. Atomic remotely,
  so a failure leaves nothing behind.
- Placed orders: begin edit → remove stale surcharges → add custom item →
  commit edit. Not atomic. Every phase advances an EditProgress; a failing
  phase is recorded on it and the pipeline stops. No abandon call is issued
  for an unfinished edit session: the remote side expires it on its own,
  and the result never claims it was cancelled.

Phase failures are returned, never raised, so partial progress is always
inspectable by the caller.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Any, Sequence
import logging

from core.errors import RemoteError, RemoteUserError, TransientError
from core.observability.otel_setup import phase_span
from verticals.recargo.classifier import Classification, classify
from verticals.recargo.config import SurchargeConfig
from verticals.recargo.decision import DecisionKind, SurchargeDecision
from verticals.recargo.edit_state import EditProgress, EditState
from verticals.recargo.gateway import OrderGateway
from verticals.recargo.models import LineItem, OrderKind, OrderSnapshot
from verticals.recargo.results import ErrorKind, MutationOutcome

logger = logging.getLogger(__name__)


class MutationCoordinator:
    """Executes decisions against an OrderGateway."""

    def __init__(
        self,
        gateway: OrderGateway,
        config: SurchargeConfig | None = None,
        tracer=None,
    ):
        self._gateway = gateway
        self.config = config or SurchargeConfig()
        self._tracer = tracer

    async def apply(
        self,
        snapshot: OrderSnapshot,
        classification: Classification,
        decision: SurchargeDecision,
        progress: EditProgress | None = None,
    ) -> MutationOutcome:
        """Realize a decision. Skip and Reject never touch the remote side."""
        if not decision.mutates:
            return MutationOutcome(applied=False, reason=decision.reason)

        if snapshot.kind == OrderKind.DRAFT:
            return await self._apply_draft(snapshot, classification, decision)

        return await self._apply_placed(
            snapshot, decision, progress or EditProgress(order_id=snapshot.id)
        )

    # --- Draft orders ---

    def surcharge_line_input(self, amount: Decimal, currency: str) -> dict[str, Any]:
        return {
            "title": self.config.line_title,
            "quantity": 1,
            "originalUnitPriceWithCurrency": {
                "amount": str(amount),
                "currencyCode": currency,
            },
            "requiresShipping": False,
            "taxable": False,
            "customAttributes": [
                {"key": self.config.marker_key, "value": str(self.config.rate)},
            ],
        }

    @staticmethod
    def goods_line_input(item: LineItem) -> dict[str, Any]:
        """Draft line input that reproduces an existing goods line."""
        line: dict[str, Any] = {"quantity": item.quantity}
        if item.variant_id:
            line["variantId"] = item.variant_id
        else:
            line["title"] = item.title
            line["originalUnitPriceWithCurrency"] = {
                "amount": str(item.unit_price),
                "currencyCode": item.currency,
            }
            line["requiresShipping"] = item.requires_shipping
            line["taxable"] = item.taxable
            if item.sku:
                line["sku"] = item.sku
        if item.applied_discount:
            line["appliedDiscount"] = dict(item.applied_discount)
        if item.custom_attributes:
            line["customAttributes"] = [
                {"key": k, "value": v} for k, v in item.custom_attributes.items()
            ]
        return line

    def build_draft_line_items(
        self,
        goods: Sequence[LineItem],
        amount: Decimal,
        currency: str,
    ) -> list[dict[str, Any]]:
        """Full desired line set: goods verbatim plus exactly one surcharge."""
        items = [self.goods_line_input(item) for item in goods]
        items.append(self.surcharge_line_input(amount, currency))
        return items

    async def _apply_draft(
        self,
        snapshot: OrderSnapshot,
        classification: Classification,
        decision: SurchargeDecision,
    ) -> MutationOutcome:
        items = self.build_draft_line_items(
            classification.goods, decision.amount, snapshot.currency
        )
        try:
            with phase_span(self._tracer, "replace_line_items", snapshot.id):
                updated = await self._gateway.replace_line_items(snapshot.id, items)
        except RemoteUserError as exc:
            logger.error("Draft %s rejected line replacement: %s", snapshot.id, exc)
            return MutationOutcome(
                error_kind=ErrorKind.USER_ERROR,
                reason=str(exc),
                user_errors=exc.errors,
            )
        except TransientError as exc:
            # Outcome of a timed-out atomic write is unknown; reconciling
            # again is safe because the decision is recomputed.
            logger.error("Draft %s line replacement failed in transport: %s", snapshot.id, exc)
            return MutationOutcome(
                error_kind=ErrorKind.TRANSIENT,
                reason=f"{exc}; outcome unknown, reconcile again to converge",
            )

        logger.info(
            "Draft %s: %s surcharge %s (%d goods lines)",
            snapshot.id, decision.kind.value, decision.amount, len(classification.goods),
        )
        return MutationOutcome(applied=True, snapshot=updated)

    # --- Placed orders ---

    async def _apply_placed(
        self,
        snapshot: OrderSnapshot,
        decision: SurchargeDecision,
        progress: EditProgress,
    ) -> MutationOutcome:
        order_id = snapshot.id

        try:
            with phase_span(self._tracer, "begin_edit", order_id):
                session = await self._gateway.begin_edit(order_id)
        except RemoteError as exc:
            return self._phase_failed(progress, "begin_edit", exc)
        progress.transition(EditState.BEGUN, edit_id=session.edit_id)
        logger.info("Order %s: edit session %s opened", order_id, session.edit_id)

        if decision.kind == DecisionKind.REPLACE:
            # Calculated line ids differ from order line ids, so stale lines
            # are located on the calculated order itself.
            stale = classify(session.line_items, self.config).surcharges
            removed: list[str] = []
            try:
                for item in stale:
                    with phase_span(self._tracer, "remove_line_item", order_id, line_item=item.id):
                        await self._gateway.remove_line_item(session.edit_id, item.id)
                    removed.append(item.id)
            except RemoteError as exc:
                return self._phase_failed(progress, "remove_line_item", exc)
            progress.transition(EditState.STALE_REMOVED, removed=removed)
            logger.info("Order %s: staged removal of %d stale surcharge line(s)", order_id, len(removed))

        try:
            with phase_span(self._tracer, "add_custom_item", order_id):
                line_item_id = await self._gateway.add_custom_item(
                    session.edit_id,
                    self.config.line_title,
                    decision.amount,
                    snapshot.currency,
                    1,
                )
        except RemoteError as exc:
            return self._phase_failed(progress, "add_custom_item", exc)
        progress.transition(EditState.ITEM_ADDED, line_item_id=line_item_id)

        try:
            with phase_span(self._tracer, "commit_edit", order_id):
                final = await self._gateway.commit_edit(
                    session.edit_id,
                    staff_note=f"{self.config.line_title}: {decision.amount} {snapshot.currency}",
                )
        except RemoteError as exc:
            return self._phase_failed(progress, "commit_edit", exc)
        progress.transition(EditState.COMMITTED)
        logger.info(
            "Order %s: %s surcharge %s committed", order_id, decision.kind.value, decision.amount
        )
        return MutationOutcome(applied=True, snapshot=final, progress=progress)

    @staticmethod
    def _phase_failed(progress: EditProgress, phase: str, exc: RemoteError) -> MutationOutcome:
        progress.fail(phase, str(exc))
        user_errors = exc.errors if isinstance(exc, RemoteUserError) else []

        if progress.has_remote_side_effects:
            logger.error(
                "Order %s: %s failed after edit %s was opened; uncommitted edit session "
                "may remain (last completed phase: %s): %s",
                progress.order_id, phase, progress.edit_id, progress.last_completed_phase, exc,
            )
            return MutationOutcome(
                error_kind=ErrorKind.PARTIAL_MUTATION,
                reason=f"{phase} failed; edit {progress.edit_id} was not committed: {exc}",
                user_errors=user_errors,
                progress=progress,
            )

        logger.error("Order %s: %s failed, nothing changed: %s", progress.order_id, phase, exc)
        return MutationOutcome(
            error_kind=ErrorKind.TRANSIENT if isinstance(exc, TransientError) else ErrorKind.USER_ERROR,
            reason=f"{phase} failed: {exc}",
            user_errors=user_errors,
            progress=progress,
        )
