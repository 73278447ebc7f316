"""
EggTrack Backend — Rate Limiting Middleware
============================================

What:  Per-IP sliding window limit on the secret-gated endpoints.
How:   Each client IP keeps a list of request timestamps. Timestamps older
       than the window are dropped on every request; once the remaining count
       reaches the limit the request is answered with 429 and Retry-After
       (seconds until the oldest timestamp leaves the window).

Only (method, path) pairs that check ADD_SECRET are counted, which slows
secret guessing without throttling the page, QR images or webhooks.

Limits come from app.state.settings (rate_limit_requests per
rate_limit_window seconds). State is in memory, so each worker process keeps
its own window.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from eggtrack.exceptions import RateLimitExceededError
from eggtrack.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

GATED_ROUTES = {
    ("POST", "/api/add"),
    ("GET", "/api/add"),
    ("POST", "/api/delete"),
    ("POST", "/api/egg-number"),
}


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = defaultdict(list)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if (request.method, request.url.path) not in GATED_ROUTES:
            return await call_next(request)

        app_settings = request.app.state.settings
        limit = app_settings.rate_limit_requests
        window = app_settings.rate_limit_window
        client_ip = request.client.host if request.client else "unknown"

        now = time.time()
        window_start = now - window
        recent = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = recent

        if len(recent) >= limit:
            retry_after = int(recent[0] + window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(recent),
                window,
            )
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        recent.append(now)
        if len(self._requests) > 1000:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]
        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
