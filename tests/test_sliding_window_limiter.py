"""Unit tests for the rolling-window rate limiter."""

import threading

import pytest

from grc_records.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter


def test_admits_up_to_limit_then_refuses(clock) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=60, clock=clock)

    assert [limiter.is_allowed() for _ in range(4)] == [True, True, True, False]
    assert limiter.remaining() == 0


def test_refusal_does_not_record(clock) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=10, clock=clock)

    assert limiter.is_allowed() is True
    for _ in range(5):
        clock.advance(1)
        assert limiter.is_allowed() is False

    # only the first admission is in the window; it leaves at t0 + 10
    clock.advance(5)
    assert limiter.is_allowed() is True


def test_window_slides_instead_of_resetting(clock) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)

    assert limiter.is_allowed() is True  # t=0
    clock.advance(50)
    assert limiter.is_allowed() is True  # t=50
    clock.advance(5)
    assert limiter.is_allowed() is False  # t=55: both still inside

    clock.advance(5)  # t=60: the first call is exactly W old and leaves
    assert limiter.remaining() == 1
    assert limiter.is_allowed() is True
    assert limiter.is_allowed() is False


def test_remaining_never_records(clock) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)

    for _ in range(10):
        assert limiter.remaining() == 2
    limiter.is_allowed()
    assert limiter.remaining() == 1


def test_consume_reports_retry_after_until_oldest_expires(clock) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)

    first = limiter.consume()
    assert first.allowed is True
    assert first.remaining == 1
    assert first.retry_after_seconds is None

    clock.advance(20)
    limiter.consume()
    clock.advance(10)

    blocked = limiter.consume()
    assert blocked.allowed is False
    assert blocked.limit == 2
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == pytest.approx(30.0)


def test_snapshot_holds_only_recent_timestamps(clock) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=5, window_seconds=10, clock=clock)

    limiter.is_allowed()
    clock.advance(4)
    limiter.is_allowed()
    clock.advance(7)

    now = clock()
    snapshot = limiter.snapshot()
    assert snapshot == (1004.0,)
    assert all(now - t < limiter.window_seconds for t in snapshot)


def test_concurrent_callers_never_exceed_limit(clock) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=25, window_seconds=60, clock=clock)
    results: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(10):
            allowed = limiter.is_allowed()
            with lock:
                results.append(allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 25
    assert limiter.remaining() == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_seconds": 60},
        {"max_requests": 1, "window_seconds": 0},
        {"max_requests": 1, "window_seconds": -1},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(**kwargs)
