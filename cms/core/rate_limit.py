"""
Per-client request throttling for the login, API and upload buckets.

Counters use the ``limits`` fixed-window strategy over in-process memory
storage: the first hit opens a window, later hits in the window increment
the counter, and the first hit after the window elapses starts a new one.
``MemoryStorage`` expires stale keys from its own timer thread.

State is process-local. Running several instances behind a load balancer
needs a shared storage backend (``limits`` accepts redis/memcached URIs).
"""

from __future__ import annotations

import math
import time
from enum import StrEnum

import structlog
from limits import RateLimitItem, parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from cms.core.errors import RateLimitedError

_log = structlog.get_logger(__name__)


class Bucket(StrEnum):
    LOGIN = "login"
    API = "api"
    UPLOAD = "upload"


DEFAULT_LIMITS: dict[str, str] = {
    Bucket.LOGIN: "5/15 minutes",
    Bucket.API: "100/minute",
    Bucket.UPLOAD: "20/hour",
}


class RateLimiter:
    """Fixed-window counters keyed by ``(bucket, client_key)``."""

    def __init__(self, limits: dict[str, str] | None = None) -> None:
        configured = {**DEFAULT_LIMITS, **(limits or {})}
        self._limits: dict[str, RateLimitItem] = {
            bucket: parse(rule) for bucket, rule in configured.items()
        }
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    def limit_for(self, bucket: str) -> RateLimitItem:
        try:
            return self._limits[bucket]
        except KeyError:
            raise KeyError(f"Unknown rate limit bucket: {bucket}") from None

    def check(self, bucket: str, client_key: str, limit: RateLimitItem | str | None = None) -> None:
        """
        Count one request and reject it once the window's budget is spent.

        Raises:
            RateLimitedError: carrying seconds until the window resets.
        """
        item = self._resolve(bucket, limit)
        if self._strategy.hit(item, bucket, client_key):
            return
        reset_at, _remaining = self._strategy.get_window_stats(item, bucket, client_key)
        retry_after = max(1, math.ceil(reset_at - time.time()))
        _log.warning("rate_limited", bucket=bucket, client=client_key, retry_after=retry_after)
        raise RateLimitedError(retry_after)

    def remaining(self, bucket: str, client_key: str, limit: RateLimitItem | str | None = None) -> int:
        item = self._resolve(bucket, limit)
        return self._strategy.get_window_stats(item, bucket, client_key)[1]

    def reset(self, bucket: str, client_key: str, limit: RateLimitItem | str | None = None) -> None:
        """Forget the client's counter for a bucket, e.g. after a successful login."""
        self._strategy.clear(self._resolve(bucket, limit), bucket, client_key)

    def _resolve(self, bucket: str, limit: RateLimitItem | str | None) -> RateLimitItem:
        if limit is None:
            return self.limit_for(bucket)
        if isinstance(limit, str):
            return parse(limit)
        return limit
