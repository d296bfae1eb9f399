"""Unit tests for the fixed-window rate limiter."""
import time

import pytest

from cms.core.errors import ErrorCode, RateLimitedError
from cms.core.rate_limit import Bucket, RateLimiter


def test_allows_requests_within_budget():
    limiter = RateLimiter({Bucket.LOGIN: "3/minute"})
    for _ in range(3):
        limiter.check(Bucket.LOGIN, "10.0.0.1")
    assert limiter.remaining(Bucket.LOGIN, "10.0.0.1") == 0


def test_rejects_once_budget_is_spent():
    limiter = RateLimiter({Bucket.LOGIN: "2/minute"})
    limiter.check(Bucket.LOGIN, "10.0.0.1")
    limiter.check(Bucket.LOGIN, "10.0.0.1")
    with pytest.raises(RateLimitedError) as exc_info:
        limiter.check(Bucket.LOGIN, "10.0.0.1")
    err = exc_info.value
    assert err.code == ErrorCode.RATE_LIMITED
    assert err.http_status == 429
    assert 1 <= err.retry_after <= 60
    assert err.headers == {"Retry-After": str(err.retry_after)}


def test_clients_and_buckets_are_counted_separately():
    limiter = RateLimiter({Bucket.LOGIN: "1/minute", Bucket.API: "1/minute"})
    limiter.check(Bucket.LOGIN, "10.0.0.1")
    limiter.check(Bucket.LOGIN, "10.0.0.2")
    limiter.check(Bucket.API, "10.0.0.1")


def test_reset_forgets_client_counter():
    limiter = RateLimiter({Bucket.LOGIN: "1/minute"})
    limiter.check(Bucket.LOGIN, "10.0.0.1")
    limiter.reset(Bucket.LOGIN, "10.0.0.1")
    limiter.check(Bucket.LOGIN, "10.0.0.1")


def test_new_window_after_expiry():
    limiter = RateLimiter({Bucket.UPLOAD: "1/second"})
    limiter.check(Bucket.UPLOAD, "10.0.0.1")
    with pytest.raises(RateLimitedError):
        limiter.check(Bucket.UPLOAD, "10.0.0.1")
    time.sleep(1.1)
    limiter.check(Bucket.UPLOAD, "10.0.0.1")


def test_defaults_cover_every_bucket():
    limiter = RateLimiter()
    assert limiter.limit_for(Bucket.LOGIN).amount == 5
    assert limiter.limit_for(Bucket.API).amount == 100
    assert limiter.limit_for(Bucket.UPLOAD).amount == 20


def test_unknown_bucket_raises():
    with pytest.raises(KeyError):
        RateLimiter().limit_for("bogus")
