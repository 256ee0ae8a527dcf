"""Rate limiting middleware — in-process token bucket per client IP.

Each IP gets a bucket holding up to `burst` tokens, refilled at `rps`
tokens per second. A request spends one token; an empty bucket means 429.

The buckets live in one dict guarded by one lock. The critical section is
a dict lookup and a little arithmetic, so a threading.Lock is enough and
works whether the handler runs on the event loop or in a thread. Clients
not seen for three minutes are swept out inline, at most once a minute, so
the map stays bounded by the number of recently active IPs.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from greenlight.errors import RateLimitExceeded, error_response

STALE_AFTER_SECONDS = 180.0
SWEEP_INTERVAL_SECONDS = 60.0


@dataclass
class TokenBucket:
    rate: float
    burst: int
    tokens: float = field(init=False)
    updated: Optional[float] = field(init=False, default=None)
    last_seen: float = field(init=False, default=0.0)

    def __post_init__(self):
        self.tokens = float(self.burst)

    def allow(self, now: float) -> bool:
        if self.updated is not None:
            self.tokens = min(float(self.burst), self.tokens + (now - self.updated) * self.rate)
        self.updated = self.last_seen = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


class ClientLimiter:
    """The per-IP bucket map."""

    def __init__(self, rps: float, burst: int, clock: Callable[[], float] = time.monotonic):
        self.rps = rps
        self.burst = burst
        self.clock = clock
        self._clients: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def allow(self, ip: str) -> bool:
        now = self.clock()
        with self._lock:
            if now - self._last_sweep >= SWEEP_INTERVAL_SECONDS:
                self._sweep(now)
            bucket = self._clients.get(ip)
            if bucket is None:
                bucket = self._clients[ip] = TokenBucket(self.rps, self.burst)
            return bucket.allow(now)

    def _sweep(self, now: float) -> None:
        for ip in [ip for ip, b in self._clients.items() if now - b.last_seen > STALE_AFTER_SECONDS]:
            del self._clients[ip]
        self._last_sweep = now

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, rps: float = 2.0, burst: int = 4, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled
        self.limiter = ClientLimiter(rps, burst)

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.enabled:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        if not self.limiter.allow(client_ip):
            return error_response(
                RateLimitExceeded.status_code,
                RateLimitExceeded.message,
                headers={"Retry-After": "1"},
            )
        return await call_next(request)
