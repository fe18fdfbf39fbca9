"""
InkRead Backend — Rate Limiting Middleware
============================================

What:  Per-IP sliding window limiter in front of the API.
How:   Keeps the timestamps of each IP's requests inside the window; once an
       IP has RATE_LIMIT_REQUESTS of them, further requests get 429 with a
       Retry-After header until the oldest one ages out.

This is abuse protection, separate from the credit ledger: a rejected
request never reaches the quota checks. RATE_LIMIT_REQUESTS=0 disables it.

State is in-process. With several workers each keeps its own window, so
the effective limit is multiplied by the worker count.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from inkread.config import settings
from inkread.dependencies.auth import get_client_ip
from inkread.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

# Sweep idle IPs after this many tracked requests
SWEEP_INTERVAL = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._since_sweep = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        limit = settings.rate_limit_requests
        if limit <= 0 or request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = get_client_ip(request)
        now = time.time()
        window = settings.rate_limit_window
        window_start = now - window

        timestamps = self._requests[client_ip]
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        if len(timestamps) >= limit:
            retry_after = int(timestamps[0] + window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(timestamps),
                window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Please wait {retry_after} seconds before retrying.",
                    "details": {"retryAfter": retry_after},
                    "requestId": request_id_var.get("") or None,
                },
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)
        self._since_sweep += 1
        if self._since_sweep >= SWEEP_INTERVAL:
            self._sweep(window_start)

        return await call_next(request)

    def _sweep(self, window_start: float) -> None:
        idle = [ip for ip, stamps in self._requests.items() if not stamps or stamps[-1] <= window_start]
        for ip in idle:
            del self._requests[ip]
        self._since_sweep = 0
        if idle:
            logger.debug("Dropped rate limit state for %d idle IPs", len(idle))
