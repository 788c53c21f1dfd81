from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ats.core.auth import ANONYMOUS, bearer_claims
from ats.core.config import get_settings
from ats.core.responses import error_response


WINDOW_SECONDS = 60
MUTATING_METHODS = frozenset({"POST", "PATCH", "PUT", "DELETE"})


@dataclass
class TokenBucket:
    tokens: float
    updated_at: float

    def refill(self, now: float, capacity: int, rate: float) -> None:
        self.tokens = min(float(capacity), self.tokens + max(0.0, now - self.updated_at) * rate)
        self.updated_at = now


class MutationLimiter:
    """One bucket per (caller, route group), refilled continuously over the window."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[tuple[str, str], TokenBucket] = {}

    def take(self, caller: str, route_group: str, capacity: int) -> int:
        """Consume a token. Returns 0 when allowed, otherwise the seconds until one is available."""
        if capacity <= 0:
            return WINDOW_SECONDS

        now = time.monotonic()
        rate = capacity / float(WINDOW_SECONDS)
        with self._lock:
            bucket = self._buckets.setdefault((caller, route_group), TokenBucket(float(capacity), now))
            bucket.refill(now, capacity, rate)
            if bucket.tokens < 1.0:
                return max(1, math.ceil((1.0 - bucket.tokens) / rate))
            bucket.tokens -= 1.0
            return 0

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


_limiter = MutationLimiter()


def route_group(path: str) -> str:
    """``/api/job-owners/...`` limits under ``job-owners``."""
    parts = [part for part in path.split("/") if part]
    return parts[1] if len(parts) > 1 else "api"


def caller_key(request: Request) -> str:
    claims = bearer_claims(request)
    if claims is not None and claims.get("sub") is not None:
        return str(claims["sub"])
    host = request.client.host if request.client is not None else None
    return f"{ANONYMOUS}:{host}" if host else ANONYMOUS


class MutationRateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        settings = get_settings()
        path = request.url.path
        if (
            settings.rate_limit_disabled
            or not path.startswith("/api/")
            or request.method.upper() not in MUTATING_METHODS
        ):
            return await call_next(request)

        retry_after = _limiter.take(caller_key(request), route_group(path), settings.rate_limit_mutations_per_minute)
        if retry_after == 0:
            return await call_next(request)

        response = error_response(request, status_code=429, message="Too many requests")
        response.headers["Retry-After"] = str(retry_after)
        return response


def reset_rate_limiter() -> None:
    _limiter.clear()
