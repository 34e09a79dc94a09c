"""Shop context middleware using ContextVar.

Extracts the calling shop from the X-Shopify-Shop-Domain request header
(sent by Shopify on webhooks and by the admin extension on API calls). The
domain is stored in a ContextVar so that any downstream code (routers,
log lines, remediation entries) can call get_current_shop() without
needing explicit parameter passing.
"""

from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.integrations.webhooks import SHOP_HEADER

# ---------------------------------------------------------------------------
# Context variable: task-safe shop state
# ---------------------------------------------------------------------------

_current_shop: ContextVar[str] = ContextVar("current_shop", default="unknown")


def get_current_shop() -> str:
    """Return the shop domain for the current request.

    Safe to call from any async context within the request lifecycle::

        logger.info("reconcile requested by %s", get_current_shop())
    """
    return _current_shop.get()


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class ShopContextMiddleware(BaseHTTPMiddleware):
    """Extract the shop domain from request headers.

    Priority:
    1. X-Shopify-Shop-Domain header
    2. ?shop= query parameter (embedded admin requests)
    3. Falls back to "unknown"
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        shop = request.headers.get(SHOP_HEADER) or request.query_params.get("shop")

        token = _current_shop.set(shop or "unknown")
        try:
            response = await call_next(request)
            return response
        finally:
            _current_shop.reset(token)
