"""
Bounded read retry.

Wraps read-side remote calls:
- Retries TransientError only (timeouts, connection resets, 5xx)
- Fixed delay between attempts, no growth
- After the last attempt the final TransientError propagates unchanged

Application-level errors are deterministic, so they pass straight through.
Mutations must never be wrapped: a retried begin-edit or add-item is not
idempotent.
"""
from __future__ import annotations
from typing import Awaitable, Callable, TypeVar
import asyncio
import logging

from core.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAY_SECONDS = 1.0


async def with_retry(
    func: Callable[..., Awaitable[T]],
    *args,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delay: float = DEFAULT_DELAY_SECONDS,
    **kwargs,
) -> T:
    """Await func(*args, **kwargs), retrying transient failures."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: TransientError | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except TransientError as exc:
            last_error = exc
            if attempt < max_attempts:
                logger.warning(
                    "Transient failure on %s (attempt %d/%d), retrying in %.1fs: %s",
                    exc.operation, attempt, max_attempts, delay, exc.detail,
                )
                await asyncio.sleep(delay)

    logger.error("Giving up on %s after %d attempts", last_error.operation, max_attempts)
    raise last_error
