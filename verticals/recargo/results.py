"""Result records returned to the calling layer.

Every failure mode of a reconciliation ends up here as a value; nothing
is raised past the engine. error_kind separates "nothing changed" from
"something changed remotely but the final commit did not happen".
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from core.errors import UserError
from verticals.recargo.decision import DecisionKind, SurchargeDecision
from verticals.recargo.edit_state import EditProgress
from verticals.recargo.models import OrderKind, OrderSnapshot, round_money
from verticals.recargo.plan import MutationPlan


class ErrorKind(str, Enum):
    NONE = "none"
    REJECTED = "rejected"              # ineligible state, nothing attempted
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"            # transport failure, nothing applied
    USER_ERROR = "user_error"          # remote refused, nothing applied
    PARTIAL_MUTATION = "partial_mutation"  # staged edit left uncommitted
    TIMEOUT = "timeout"
    BUSY = "busy"                      # another reconciliation holds the lease


@dataclass
class MutationOutcome:
    """What the coordinator did with one decision."""

    applied: bool = False
    error_kind: ErrorKind = ErrorKind.NONE
    reason: str | None = None
    user_errors: list[UserError] = field(default_factory=list)
    snapshot: OrderSnapshot | None = None
    progress: EditProgress | None = None


def _money(value: Decimal | None) -> str | None:
    return str(round_money(value)) if value is not None else None


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation call."""

    success: bool
    order_id: str
    kind: OrderKind
    decision: SurchargeDecision | None = None
    plan: MutationPlan | None = None
    new_total: Decimal | None = None
    progress: EditProgress | None = None
    reason: str | None = None
    error_kind: ErrorKind = ErrorKind.NONE
    user_errors: list[UserError] = field(default_factory=list)
    dry_run: bool = False

    # --- Derived fields ---

    @property
    def subtotal(self) -> Decimal | None:
        return self.decision.subtotal if self.decision else None

    @property
    def recargo_amount(self) -> Decimal | None:
        return self.decision.amount if self.decision else None

    @property
    def phases(self) -> dict[str, bool] | None:
        if self.progress is None or not self.progress.history:
            return None
        return self.progress.phase_flags()

    @property
    def needs_attention(self) -> bool:
        """True when an edit session may be left open remotely."""
        if self.error_kind in (ErrorKind.PARTIAL_MUTATION, ErrorKind.TIMEOUT):
            return self.progress is not None and self.progress.has_remote_side_effects
        return False

    # --- Constructors ---

    @classmethod
    def failed(
        cls,
        order_id: str,
        kind: OrderKind,
        error_kind: ErrorKind,
        reason: str,
        **kwargs: Any,
    ) -> "ReconciliationResult":
        return cls(
            success=False,
            order_id=order_id,
            kind=kind,
            error_kind=error_kind,
            reason=reason,
            **kwargs,
        )

    @classmethod
    def from_decision(
        cls,
        snapshot: OrderSnapshot,
        decision: SurchargeDecision,
        plan: MutationPlan,
        dry_run: bool = False,
    ) -> "ReconciliationResult":
        """Result for a call that performs no mutation."""
        rejected = decision.kind == DecisionKind.REJECT
        return cls(
            success=not rejected,
            order_id=snapshot.id,
            kind=snapshot.kind,
            decision=decision,
            plan=plan,
            new_total=snapshot.total if decision.kind == DecisionKind.SKIP else None,
            reason=decision.reason,
            error_kind=ErrorKind.REJECTED if rejected else ErrorKind.NONE,
            dry_run=dry_run,
        )

    @classmethod
    def from_outcome(
        cls,
        snapshot: OrderSnapshot,
        decision: SurchargeDecision,
        plan: MutationPlan,
        outcome: MutationOutcome,
    ) -> "ReconciliationResult":
        return cls(
            success=outcome.applied,
            order_id=snapshot.id,
            kind=snapshot.kind,
            decision=decision,
            plan=plan,
            new_total=outcome.snapshot.total if outcome.snapshot else None,
            progress=outcome.progress,
            reason=outcome.reason,
            error_kind=outcome.error_kind,
            user_errors=list(outcome.user_errors),
        )

    def to_dict(self) -> dict[str, Any]:
        progress = self.progress
        return {
            "success": self.success,
            "order_id": self.order_id,
            "kind": self.kind.value,
            "decision": self.decision.kind.value if self.decision else None,
            "subtotal": _money(self.subtotal),
            "recargo_amount": _money(self.recargo_amount),
            "new_total": _money(self.new_total),
            "phases": self.phases,
            "edit_id": progress.edit_id if progress else None,
            "last_completed_phase": progress.last_completed_phase if progress else None,
            "reason": self.reason,
            "error_kind": self.error_kind.value,
            "needs_attention": self.needs_attention,
            "user_errors": [e.to_dict() for e in self.user_errors],
            "plan": self.plan.to_dict() if self.plan else None,
            "dry_run": self.dry_run,
        }
