"""
Remediation queue for reconciliations that need an operator.

A staged order edit that failed after its first phase leaves an uncommitted
calculated order behind; a read that kept failing leaves an order without
its surcharge. Both are parked here, one open entry per order:
- a repeat failure for the same order updates the open entry instead of
  adding another one
- operators close entries as resolved or discarded, with a note
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
import uuid


class DLQStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    DISCARDED = "discarded"


@dataclass
class DeadLetter:
    """One order awaiting operator attention."""
    subject_id: str
    queue_name: str = "default"
    event_type: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    error: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: DLQStatus = DLQStatus.PENDING
    occurrences: int = 1
    first_seen: datetime = field(default_factory=datetime.utcnow)
    last_seen: datetime = field(default_factory=datetime.utcnow)
    closed_at: datetime | None = None
    closed_by: str | None = None
    note: str = ""

    @property
    def is_open(self) -> bool:
        return self.status == DLQStatus.PENDING

    def record_again(self, event_type: str, payload: dict[str, Any], error: str) -> None:
        """Fold a repeat failure into this entry; the latest context wins."""
        self.occurrences += 1
        self.event_type = event_type
        self.payload = payload
        self.error = error
        self.last_seen = datetime.utcnow()

    def close(self, status: DLQStatus, by: str = "", note: str = "") -> None:
        self.status = status
        self.closed_at = datetime.utcnow()
        self.closed_by = by or None
        self.note = note

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "queue_name": self.queue_name,
            "event_type": self.event_type,
            "subject_id": self.subject_id,
            "status": self.status.value,
            "occurrences": self.occurrences,
            "error": self.error,
            "payload": self.payload,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "resolved_by": self.closed_by,
            "note": self.note,
        }


@dataclass
class DLQStats:
    """Counts for one queue (or all queues)."""
    queue_name: str
    total: int = 0
    pending: int = 0
    resolved: int = 0
    discarded: int = 0
    occurrences: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "queue_name": self.queue_name,
            "total": self.total,
            "pending": self.pending,
            "resolved": self.resolved,
            "discarded": self.discarded,
            "occurrences": self.occurrences,
        }


class DeadLetterQueue:
    """In-memory store. Entries are lost on restart."""

    def __init__(self):
        self._letters: dict[str, DeadLetter] = {}

    def enqueue(
        self,
        queue_name: str,
        event_type: str,
        subject_id: str,
        payload: dict[str, Any],
        error: str,
    ) -> DeadLetter:
        """Park a failure; reuses the open entry for the same subject."""
        existing = self.open_for(queue_name, subject_id)
        if existing is not None:
            existing.record_again(event_type, payload, error)
            return existing

        letter = DeadLetter(
            subject_id=subject_id,
            queue_name=queue_name,
            event_type=event_type,
            payload=payload,
            error=error,
        )
        self._letters[letter.id] = letter
        return letter

    def get(self, letter_id: str) -> DeadLetter | None:
        return self._letters.get(letter_id)

    def open_for(self, queue_name: str, subject_id: str) -> DeadLetter | None:
        for letter in self._letters.values():
            if letter.is_open and letter.queue_name == queue_name and letter.subject_id == subject_id:
                return letter
        return None

    def list_pending(
        self,
        queue_name: str | None = None,
        limit: int = 50,
    ) -> list[DeadLetter]:
        """Open entries, oldest first."""
        pending = sorted(
            (
                dl for dl in self._letters.values()
                if dl.is_open and (queue_name is None or dl.queue_name == queue_name)
            ),
            key=lambda dl: dl.first_seen,
        )
        return pending[:limit]

    def mark_resolved(self, letter_id: str, resolved_by: str = "", note: str = "") -> bool:
        """Close an open entry after the order was fixed."""
        letter = self._letters.get(letter_id)
        if letter is None or not letter.is_open:
            return False
        letter.close(DLQStatus.RESOLVED, by=resolved_by, note=note)
        return True

    def mark_discarded(self, letter_id: str, reason: str = "") -> bool:
        """Close an open entry that needs no action."""
        letter = self._letters.get(letter_id)
        if letter is None or not letter.is_open:
            return False
        letter.close(DLQStatus.DISCARDED, note=reason)
        return True

    def get_stats(self, queue_name: str = "") -> DLQStats:
        letters = [
            dl for dl in self._letters.values()
            if not queue_name or dl.queue_name == queue_name
        ]
        stats = DLQStats(queue_name=queue_name or "all", total=len(letters))
        for dl in letters:
            stats.occurrences += dl.occurrences
            if dl.status == DLQStatus.PENDING:
                stats.pending += 1
            elif dl.status == DLQStatus.RESOLVED:
                stats.resolved += 1
            else:
                stats.discarded += 1
        return stats
