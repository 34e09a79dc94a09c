"""
Core resilience: fault tolerance primitives.

Provides reliability patterns for remote operations:
- with_retry: Bounded fixed-delay retry for read calls
- InMemoryLeaseStore: Per-order mutual exclusion
- DeadLetterQueue: Capture failures that need an operator
"""
from core.resilience.dlq import (
    DeadLetter,
    DeadLetterQueue,
    DLQStats,
    DLQStatus,
)
from core.resilience.lease import (
    InMemoryLeaseStore,
    LeaseRecord,
    OrderLease,
)
from core.resilience.retry import with_retry

__all__ = [
    # DLQ
    "DeadLetter",
    "DeadLetterQueue",
    "DLQStats",
    "DLQStatus",
    # Lease
    "InMemoryLeaseStore",
    "LeaseRecord",
    "OrderLease",
    # Retry
    "with_retry",
]
