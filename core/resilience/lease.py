"""
Per-key lease for mutual exclusion.

Two reconciliations of the same order can both see "no surcharge yet" and
both insert. Callers that need strict exclusivity inject an OrderLease;
the in-memory store only covers a single process. Replace the backing store
(Redis SET NX PX, a database row) for multi-process deployments.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol
import uuid


class OrderLease(Protocol):
    """Capability the engine needs from a lease collaborator."""

    async def acquire(self, key: str, ttl_seconds: float) -> str | None:
        """Return a lease token, or None if the key is already held."""
        ...

    async def release(self, key: str, token: str) -> bool:
        ...


@dataclass
class LeaseRecord:
    """A held lease."""
    key: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)
    acquired_at: datetime = field(default_factory=datetime.utcnow)
    expires_at: datetime | None = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.utcnow() >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "acquired_at": self.acquired_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "is_expired": self.is_expired,
        }


class InMemoryLeaseStore:
    """Single-process lease store with TTL expiry."""

    def __init__(self):
        self._leases: dict[str, LeaseRecord] = {}

    async def acquire(self, key: str, ttl_seconds: float) -> str | None:
        existing = self._leases.get(key)
        if existing is not None and not existing.is_expired:
            return None

        record = LeaseRecord(
            key=key,
            expires_at=datetime.utcnow() + timedelta(seconds=ttl_seconds),
        )
        self._leases[key] = record
        return record.token

    async def release(self, key: str, token: str) -> bool:
        """Release only if the token still owns the lease."""
        record = self._leases.get(key)
        if record is None or record.token != token:
            return False
        del self._leases[key]
        return True

    def held(self, key: str) -> LeaseRecord | None:
        record = self._leases.get(key)
        if record is None or record.is_expired:
            return None
        return record
