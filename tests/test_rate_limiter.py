"""Tests for the sliding-window rate limiter."""
import pytest

from app.services.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_rejects():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=10, window_seconds=60, clock=clock)

    assert all(limiter.allow("ip") for _ in range(10))
    assert limiter.allow("ip") is False
    assert limiter.remaining("ip") == 0


def test_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)

    assert limiter.allow("ip")
    clock.now += 30
    assert limiter.allow("ip")
    assert not limiter.allow("ip")

    # first request leaves the window exactly at +60s
    clock.now += 30
    assert limiter.allow("ip")
    assert not limiter.allow("ip")


def test_rejected_requests_do_not_extend_window():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=10, clock=clock)

    assert limiter.allow("ip")
    for _ in range(5):
        clock.now += 1
        assert not limiter.allow("ip")
    clock.now += 5
    assert limiter.allow("ip")


def test_keys_are_independent():
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    assert limiter.allow("a")
    assert limiter.allow("b")
    assert not limiter.allow("a")
    assert limiter.tracked_keys() == 2


def test_reset_clears_buckets():
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    limiter.allow("a")
    limiter.reset()
    assert limiter.allow("a")


def test_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(max_requests=0)
