"""
Tests for the sliding-window rate limiter.
A fake clock drives time; nothing sleeps.
"""

import asyncio

import pytest

from deepsite.rate_limit import (
    MemoryWindowStore,
    RateLimiter,
    client_id_from_request,
    is_exempt_path,
    run_sweeper,
)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def test_admits_up_to_limit_then_rejects(clock):
    limiter = RateLimiter(limit=3, window_seconds=3600, clock=clock)
    decisions = [limiter.admit("1.2.3.4") for _ in range(3)]
    assert all(d.admitted for d in decisions)
    assert [d.remaining for d in decisions] == [2, 1, 0]

    rejected = limiter.admit("1.2.3.4")
    assert not rejected.admitted
    assert rejected.request_count == 3
    assert rejected.wait_time_minutes == 60
    assert rejected.reset_time == int((clock.now + 3600) * 1000)


def test_rejection_does_not_consume_slot(clock):
    """A rejected request leaves the window unchanged."""
    limiter = RateLimiter(limit=1, window_seconds=60, clock=clock)
    limiter.admit("c")
    for _ in range(5):
        assert not limiter.admit("c").admitted
    assert len(limiter.store.snapshot("c")) == 1


def test_admitted_again_after_window(clock):
    limiter = RateLimiter(limit=2, window_seconds=3600, clock=clock)
    limiter.admit("c")
    clock.advance(10)
    limiter.admit("c")
    assert not limiter.admit("c").admitted

    # Oldest entry ages out; one slot frees up
    clock.advance(3590)
    assert limiter.admit("c").admitted
    assert not limiter.admit("c").admitted


def test_wait_time_rounds_up_and_is_at_least_one_minute(clock):
    limiter = RateLimiter(limit=1, window_seconds=3600, clock=clock)
    limiter.admit("c")
    clock.advance(3599.5)
    d = limiter.admit("c")
    assert not d.admitted
    assert d.wait_time_minutes == 1

    clock2 = FakeClock()
    limiter2 = RateLimiter(limit=1, window_seconds=3600, clock=clock2)
    limiter2.admit("c")
    clock2.advance(1800 - 30)
    assert limiter2.admit("c").wait_time_minutes == 31


def test_clients_are_independent(clock):
    limiter = RateLimiter(limit=1, clock=clock)
    assert limiter.admit("a").admitted
    assert limiter.admit("b").admitted
    assert not limiter.admit("a").admitted


def test_zero_limit_disables(clock):
    limiter = RateLimiter(limit=0, clock=clock)
    assert not limiter.enabled
    for _ in range(1000):
        assert limiter.admit("c").admitted
    assert len(limiter.store) == 0


def test_sweep_drops_idle_clients(clock):
    limiter = RateLimiter(limit=5, window_seconds=60, clock=clock)
    limiter.admit("old")
    clock.advance(30)
    limiter.admit("fresh")
    clock.advance(31)

    assert limiter.sweep() == 1
    assert "old" not in limiter.store
    assert "fresh" in limiter.store


def test_store_drops_empty_keys():
    store = MemoryWindowStore()
    store.update("k", lambda bucket: bucket.append(1.0))
    assert "k" in store
    store.update("k", lambda bucket: bucket.clear())
    assert "k" not in store
    assert len(store) == 0


def test_injected_store_is_used(clock):
    store = MemoryWindowStore()
    limiter = RateLimiter(limit=2, store=store, clock=clock)
    limiter.admit("x")
    assert store.snapshot("x") == [clock.now]


@pytest.mark.parametrize("path, exempt", [
    ("/assets/app.js", True),
    ("/styles/site.css", True),
    ("/favicon.ico", True),
    ("/fonts/a.woff2", True),
    ("/api/ask-ai", False),
    ("/", False),
    ("/index.html", False),
])
def test_is_exempt_path(path, exempt):
    assert is_exempt_path(path) is exempt


def test_client_id_prefers_first_forwarded_hop():
    assert client_id_from_request({"x-forwarded-for": "1.2.3.4, 10.0.0.1"}, "127.0.0.1") == "1.2.3.4"
    assert client_id_from_request({}, "127.0.0.1") == "127.0.0.1"
    assert client_id_from_request({}, None) == "unknown"


@pytest.mark.asyncio
async def test_sweeper_runs_periodically(clock):
    limiter = RateLimiter(limit=5, window_seconds=1, clock=clock)
    limiter.admit("c")
    clock.advance(5)

    task = asyncio.create_task(run_sweeper(limiter, interval=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(limiter.store) == 0
