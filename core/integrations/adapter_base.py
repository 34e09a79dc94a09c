"""
Remote API adapter base.

Every order-management integration inherits from AdapterBase. Provides:
- Static token auth in a vendor header
- Standardized GraphQL request/response envelope
- Transport failures mapped to TransientError, GraphQL and user errors
  mapped to RemoteUserError
- Rolling health window per adapter (latency, failures by kind)

A single call is a single attempt. Retrying is the caller's decision and
happens only on the read side (see core.resilience.retry).
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
import logging
import time

import httpx

from core.errors import RemoteUserError, TransientError, UserError

logger = logging.getLogger(__name__)

HEALTH_WINDOW = 200


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class AuthType(str, Enum):
    NONE = "none"
    TOKEN_HEADER = "token_header"   # X-Shopify-Access-Token: <token>
    BEARER = "bearer"               # Authorization: Bearer <token>


@dataclass
class AuthCredentials:
    """How an adapter authenticates."""
    adapter_name: str
    auth_type: AuthType = AuthType.NONE
    token: str | None = None
    header: str = "Authorization"

    def headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        if self.auth_type == AuthType.TOKEN_HEADER:
            return {self.header: self.token}
        if self.auth_type == AuthType.BEARER:
            return {"Authorization": f"Bearer {self.token}"}
        return {}


# ---------------------------------------------------------------------------
# Request / Response envelope
# ---------------------------------------------------------------------------

@dataclass
class AdapterRequest:
    """One outbound GraphQL operation."""
    operation: str
    query: str
    variables: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0


@dataclass
class AdapterResponse:
    """Decoded GraphQL envelope of a 2xx response."""
    status_code: int
    data: Any = None
    errors: list[dict[str, Any]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)
    latency_ms: float = 0.0
    adapter_name: str = ""

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Health tracking
# ---------------------------------------------------------------------------

@dataclass
class CallRecord:
    operation: str
    latency_ms: float
    outcome: str  # ok | transient | user_error
    at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class IntegrationHealth:
    """Health of an adapter over its last HEALTH_WINDOW calls."""
    adapter_name: str
    calls: deque = field(default_factory=lambda: deque(maxlen=HEALTH_WINDOW))
    total_requests: int = 0
    last_error: str | None = None

    def record(self, call: CallRecord, error: str | None = None) -> None:
        self.calls.append(call)
        self.total_requests += 1
        if error:
            self.last_error = f"{call.operation}: {error}"

    def _count(self, outcome: str) -> int:
        return sum(1 for c in self.calls if c.outcome == outcome)

    @property
    def transient_failures(self) -> int:
        return self._count("transient")

    @property
    def user_errors(self) -> int:
        return self._count("user_error")

    @property
    def error_rate(self) -> float:
        if not self.calls:
            return 0.0
        return 1 - self._count("ok") / len(self.calls)

    @property
    def avg_latency_ms(self) -> float:
        if not self.calls:
            return 0.0
        return sum(c.latency_ms for c in self.calls) / len(self.calls)

    def to_dict(self) -> dict[str, Any]:
        last = self.calls[-1] if self.calls else None
        return {
            "adapter_name": self.adapter_name,
            "total_requests": self.total_requests,
            "window": len(self.calls),
            "transient_failures": self.transient_failures,
            "user_errors": self.user_errors,
            "error_rate": round(self.error_rate, 4),
            "avg_latency_ms": round(self.avg_latency_ms, 1),
            "last_call": last.at.isoformat() if last else None,
            "last_error": self.last_error,
        }


# ---------------------------------------------------------------------------
# AdapterBase
# ---------------------------------------------------------------------------

class AdapterBase(ABC):
    """
    Base class for GraphQL API adapters.

    Subclasses set `name` and implement endpoint() returning the GraphQL URL.
    An httpx transport can be injected (tests use httpx.MockTransport).
    """

    name: str = ""

    def __init__(
        self,
        credentials: AuthCredentials | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._credentials = credentials
        self._transport = transport
        self._health = IntegrationHealth(adapter_name=self.name)

    @abstractmethod
    def endpoint(self) -> str:
        """Absolute URL of the GraphQL endpoint."""

    def get_auth_headers(self) -> dict[str, str]:
        return self._credentials.headers() if self._credentials else {}

    def get_health(self) -> IntegrationHealth:
        return self._health

    def _record(self, operation: str, started: float, outcome: str, error: str | None = None) -> float:
        latency = (time.monotonic() - started) * 1000
        self._health.record(CallRecord(operation, latency, outcome), error)
        return latency

    # --- Core request ---

    async def request(self, req: AdapterRequest) -> AdapterResponse:
        """
        Execute one HTTP round trip.

        Raises TransientError on timeouts, connection failures, 429 and 5xx.
        Any other non-2xx status raises RemoteUserError.
        """
        headers = {
            "Content-Type": "application/json",
            **self.get_auth_headers(),
            **req.headers,
        }
        body = {"query": req.query, "variables": req.variables}

        started = time.monotonic()
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    self.endpoint(),
                    json=body,
                    headers=headers,
                    timeout=req.timeout,
                )
        except httpx.TransportError as exc:
            detail = f"{type(exc).__name__}: {exc}"
            self._record(req.operation, started, "transient", detail)
            logger.warning("%s %s transport failure: %s", self.name, req.operation, detail)
            raise TransientError(req.operation, detail) from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            detail = f"HTTP {resp.status_code}: {resp.text[:200]}"
            self._record(req.operation, started, "transient", detail)
            logger.warning("%s %s retryable status: %s", self.name, req.operation, detail)
            raise TransientError(req.operation, detail)

        if resp.status_code >= 400:
            detail = f"HTTP {resp.status_code}: {resp.text[:200]}"
            self._record(req.operation, started, "user_error", detail)
            raise RemoteUserError(
                req.operation,
                [UserError(message=detail, code=f"HTTP_{resp.status_code}")],
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            detail = f"invalid JSON body: {resp.text[:200]}"
            self._record(req.operation, started, "user_error", detail)
            raise RemoteUserError(req.operation, [UserError(message=detail)]) from exc

        errors = payload.get("errors") or []
        latency = self._record(
            req.operation, started,
            "user_error" if errors else "ok",
            str(errors)[:200] if errors else None,
        )
        return AdapterResponse(
            status_code=resp.status_code,
            data=payload.get("data"),
            errors=errors,
            headers=dict(resp.headers),
            latency_ms=latency,
            adapter_name=self.name,
        )

    async def graphql(self, req: AdapterRequest) -> dict[str, Any]:
        """Execute a GraphQL request and return its `data` object.

        Top-level GraphQL errors are deterministic and raise RemoteUserError.
        """
        response = await self.request(req)
        if response.errors:
            raise RemoteUserError(
                req.operation,
                [UserError.from_payload(e) for e in response.errors],
            )
        return response.data or {}

    @staticmethod
    def raise_for_user_errors(operation: str, payload: dict[str, Any] | None) -> dict[str, Any]:
        """Raise RemoteUserError if a mutation payload carries userErrors."""
        if payload is None:
            raise RemoteUserError(
                operation, [UserError(message="empty mutation payload")]
            )
        user_errors = payload.get("userErrors") or []
        if user_errors:
            raise RemoteUserError(
                operation, [UserError.from_payload(e) for e in user_errors]
            )
        return payload
