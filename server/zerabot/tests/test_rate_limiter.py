"""
Tests for zerabot.ingest.rate_limiter
"""
import threading

import pytest

from zerabot.ingest.rate_limiter import TokenBucket


class _FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_starts_full():
    bucket = TokenBucket(interval=3.0, burst=1, clock=_FakeClock())
    assert bucket.allow() is True


def test_second_call_within_interval_denied():
    clock = _FakeClock()
    bucket = TokenBucket(interval=3.0, burst=1, clock=clock)

    assert bucket.allow() is True
    clock.now = 1.0
    assert bucket.allow() is False


def test_refills_after_interval():
    clock = _FakeClock()
    bucket = TokenBucket(interval=3.0, burst=1, clock=clock)

    assert bucket.allow() is True
    clock.now = 1.0
    assert bucket.allow() is False
    clock.now = 4.0
    assert bucket.allow() is True


def test_burst_capacity():
    clock = _FakeClock()
    bucket = TokenBucket(interval=3.0, burst=3, clock=clock)

    assert [bucket.allow() for _ in range(4)] == [True, True, True, False]


def test_tokens_capped_at_burst():
    clock = _FakeClock()
    bucket = TokenBucket(interval=1.0, burst=2, clock=clock)

    clock.now = 100.0
    assert [bucket.allow() for _ in range(3)] == [True, True, False]


def test_clock_going_backwards_does_not_add_tokens():
    clock = _FakeClock(10.0)
    bucket = TokenBucket(interval=3.0, burst=1, clock=clock)

    assert bucket.allow() is True
    clock.now = 0.0
    assert bucket.allow() is False


@pytest.mark.parametrize("interval, burst", [(0, 1), (-1, 1), (3.0, 0)])
def test_invalid_configuration(interval, burst):
    with pytest.raises(ValueError):
        TokenBucket(interval=interval, burst=burst)


def test_concurrent_callers_share_one_budget():
    bucket = TokenBucket(interval=3600.0, burst=5, clock=_FakeClock())
    results: list[bool] = []
    lock = threading.Lock()

    def _worker():
        for _ in range(10):
            allowed = bucket.allow()
            with lock:
                results.append(allowed)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 5
    assert len(results) == 80
