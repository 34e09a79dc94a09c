"""State machine for a staged order edit.

A placed order is changed through several remote calls that are not atomic
together. Each completed call advances the machine; a failure moves it to
FAILED while history keeps what had already happened on the remote side::

    progress = EditProgress(order_id="gid://shopify/Order/1")
    progress.transition(EditState.BEGUN, edit_id="gid://shopify/CalculatedOrder/9")
    progress.transition(EditState.ITEM_ADDED)
    progress.fail("commit_edit", "Order is locked")
    progress.phase_flags()
    # {"edit_created": True, "stale_removed": False, "item_added": True, "committed": False}
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EditState(str, Enum):
    NOT_STARTED = "not_started"
    BEGUN = "begun"
    STALE_REMOVED = "stale_removed"
    ITEM_ADDED = "item_added"
    COMMITTED = "committed"
    FAILED = "failed"


_EDIT_TRANSITIONS: dict[EditState, list[EditState]] = {
    EditState.NOT_STARTED: [EditState.BEGUN, EditState.FAILED],
    EditState.BEGUN: [EditState.STALE_REMOVED, EditState.ITEM_ADDED, EditState.FAILED],
    EditState.STALE_REMOVED: [EditState.ITEM_ADDED, EditState.FAILED],
    EditState.ITEM_ADDED: [EditState.COMMITTED, EditState.FAILED],
    EditState.COMMITTED: [],  # terminal
    EditState.FAILED: [],     # terminal
}


@dataclass
class EditTransition:
    """Record of a single state transition."""

    from_state: str
    to_state: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class EditProgress:
    """Progress of one staged edit; shared with the caller so partial
    progress stays inspectable even if the pipeline is cut short."""

    order_id: str
    current_state: EditState = EditState.NOT_STARTED
    edit_id: str | None = None
    failed_phase: str | None = None
    error: str | None = None
    history: list[EditTransition] = field(default_factory=list)

    def can_transition(self, to_state: EditState) -> bool:
        return to_state in _EDIT_TRANSITIONS.get(self.current_state, [])

    def transition(self, to_state: EditState, **metadata: Any) -> EditTransition:
        """Advance the machine. Raises ValueError on an illegal move."""
        if not self.can_transition(to_state):
            allowed = [s.value for s in _EDIT_TRANSITIONS.get(self.current_state, [])]
            raise ValueError(
                f"Cannot transition from {self.current_state.value} to {to_state.value}. "
                f"Allowed: {allowed}"
            )
        if to_state == EditState.BEGUN:
            self.edit_id = metadata.get("edit_id")

        record = EditTransition(
            from_state=self.current_state.value,
            to_state=to_state.value,
            timestamp=datetime.now(timezone.utc),
            metadata=metadata,
        )
        self.history.append(record)
        self.current_state = to_state
        return record

    def fail(self, phase: str, error: str) -> EditTransition:
        self.failed_phase = phase
        self.error = error
        return self.transition(EditState.FAILED, phase=phase)

    def reached(self, state: EditState) -> bool:
        return any(t.to_state == state.value for t in self.history)

    @property
    def is_terminal(self) -> bool:
        return len(_EDIT_TRANSITIONS.get(self.current_state, [])) == 0

    @property
    def last_completed_phase(self) -> str | None:
        completed = [t.to_state for t in self.history if t.to_state != EditState.FAILED.value]
        return completed[-1] if completed else None

    @property
    def has_remote_side_effects(self) -> bool:
        """True once an edit session exists remotely but was not committed."""
        return self.reached(EditState.BEGUN) and not self.reached(EditState.COMMITTED)

    def phase_flags(self) -> dict[str, bool]:
        return {
            "edit_created": self.reached(EditState.BEGUN),
            "stale_removed": self.reached(EditState.STALE_REMOVED),
            "item_added": self.reached(EditState.ITEM_ADDED),
            "committed": self.reached(EditState.COMMITTED),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "state": self.current_state.value,
            "edit_id": self.edit_id,
            "failed_phase": self.failed_phase,
            "error": self.error,
            "last_completed_phase": self.last_completed_phase,
            **self.phase_flags(),
        }
