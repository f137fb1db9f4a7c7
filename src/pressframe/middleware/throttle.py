"""
=============================================================================
THROTTLE MIDDLEWARE
=============================================================================

Per-client rate limiting with a token bucket.

    router.match(["GET", "POST"], "/login", "AdminController@login").middleware("throttle:10,60")

"throttle:10,60" allows a burst of 10 requests and refills at 10 tokens per
60 seconds. Buckets are keyed by the limit and the client IP, so two routes
with different limits never share a bucket.

=============================================================================
TOKEN BUCKET
=============================================================================

    capacity=5, rate=5/60 tokens per second

    t=0    5/5  request → allowed   (4 left)
    ...
    t=0    0/5  request → 429, Retry-After: 12
    t=12   1/5  request → allowed

=============================================================================
"""

from http import HTTPStatus
from typing import Callable, Dict, Optional
import logging
import threading
import time

from ..http.request import Request
from ..http.response import Response, ResponseBuilder, error_payload
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 60
DEFAULT_DECAY_SECONDS = 60


class TokenBucket:
    """
    `capacity` tokens, refilled continuously at `rate` tokens per second.

    The clock is time.monotonic() unless a `now` is passed in.
    """

    __slots__ = ("capacity", "rate", "tokens", "updated_at")

    def __init__(self, capacity: float, rate: float, now: Optional[float] = None):
        self.capacity = float(capacity)
        self.rate = rate
        self.tokens = float(capacity)
        self.updated_at = time.monotonic() if now is None else now

    def _refill(self, now: float) -> None:
        self.tokens = min(self.capacity, self.tokens + (now - self.updated_at) * self.rate)
        self.updated_at = now

    def take(self, now: Optional[float] = None) -> float:
        """Take one token. Returns 0.0 when granted, else the seconds to wait."""
        now = time.monotonic() if now is None else now
        self._refill(now)
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return 0.0
        return (1.0 - self.tokens) / self.rate

    @property
    def remaining(self) -> int:
        return int(self.tokens)


class ThrottleMiddleware(Middleware):
    """
    Rate limit by client IP.

    Route params: max requests, window seconds ("throttle:60,1").
    Allowed responses carry X-RateLimit-Limit / X-RateLimit-Remaining;
    rejected ones are 429 with Retry-After.
    """

    def __init__(
        self,
        key_func: Optional[Callable[[Request], str]] = None,
        cleanup_interval: float = 60.0,
        bucket_ttl: float = 300.0,
    ):
        self.key_func = key_func or (lambda request: request.ip())
        self.cleanup_interval = cleanup_interval
        self.bucket_ttl = bucket_ttl
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._last_cleanup = time.monotonic()

    @staticmethod
    def _limits(params) -> tuple[int, float]:
        max_requests = int(params[0]) if len(params) > 0 and params[0] else DEFAULT_MAX_REQUESTS
        decay = float(params[1]) if len(params) > 1 and params[1] else DEFAULT_DECAY_SECONDS
        if max_requests < 1 or decay <= 0:
            raise ValueError(f"Invalid throttle parameters: {','.join(params)}")
        return max_requests, decay

    def handle(self, request: Request, next: NextHandler, *params: str) -> Response:
        max_requests, decay = self._limits(params)
        key = f"{max_requests}:{decay}:{self.key_func(request)}"

        with self._lock:
            now = time.monotonic()
            if now - self._last_cleanup > self.cleanup_interval:
                self._cleanup(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = TokenBucket(max_requests, max_requests / decay, now)
            wait = bucket.take(now)
            remaining = bucket.remaining

        if wait:
            retry_after = int(wait) + 1
            logger.warning(f"Rate limit exceeded for {key} on {request.method} {request.path}")
            return (ResponseBuilder()
                .status(HTTPStatus.TOO_MANY_REQUESTS)
                .header("Retry-After", str(retry_after))
                .header("X-RateLimit-Limit", str(max_requests))
                .header("X-RateLimit-Remaining", "0")
                .json(error_payload(f"Too many requests. Try again in {retry_after} seconds."))
                .build())

        response = next(request)
        response.set_header("X-RateLimit-Limit", str(max_requests))
        response.set_header("X-RateLimit-Remaining", str(remaining))
        return response

    def _cleanup(self, now: float) -> None:
        # caller holds the lock
        idle = [key for key, bucket in self._buckets.items() if now - bucket.updated_at > self.bucket_ttl]
        for key in idle:
            del self._buckets[key]
        self._last_cleanup = now

    def reset(self, key: Optional[str] = None) -> None:
        """Drop one bucket, or all of them."""
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)
