"""
Per-client sliding-window rate limiting.

Each client id maps to the timestamps of its admitted requests inside the
trailing window. Stale timestamps are purged before every admission check,
and a background sweep drops idle clients so the table stays bounded even
without traffic.

The timestamp table lives in an explicit store handed to the limiter, so
tests (and a future shared cache) can supply their own.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Mapping

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 3600
SWEEP_INTERVAL_SECONDS = 300

_STATIC_ASSET = re.compile(r"\.(js|css|ico|png|jpg|svg|woff|woff2|ttf|eot)$")


def is_exempt_path(path: str) -> bool:
    """Static assets never count against the limit."""
    return bool(_STATIC_ASSET.search(path))


def client_id_from_request(headers: Mapping[str, str], client_host: str | None) -> str:
    """First X-Forwarded-For hop, else the peer address, else "unknown"."""
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return client_host or "unknown"


@dataclass
class RateDecision:
    admitted: bool
    request_count: int = 0
    remaining: int = 0
    retry_after_seconds: float = 0.0
    reset_time: int | None = None    # epoch milliseconds

    @property
    def wait_time_minutes(self) -> int:
        return max(1, math.ceil(self.retry_after_seconds / 60)) if not self.admitted else 0


class MemoryWindowStore:
    """
    In-process client → timestamps table.
    Updates are atomic per call; the lock is never held across an await.
    """

    def __init__(self):
        self._data: dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def update(self, key: str, fn: Callable[[Deque[float]], RateDecision]) -> RateDecision:
        """Run fn on the key's timestamps under the lock; drop the key if left empty."""
        with self._lock:
            bucket = self._data.get(key)
            if bucket is None:
                bucket = deque()
            result = fn(bucket)
            if bucket:
                self._data[key] = bucket
            else:
                self._data.pop(key, None)
            return result

    def sweep(self, cutoff: float) -> int:
        """Purge timestamps at or before cutoff everywhere. Returns clients removed."""
        removed = 0
        with self._lock:
            for key in list(self._data):
                bucket = self._data[key]
                while bucket and bucket[0] <= cutoff:
                    bucket.popleft()
                if not bucket:
                    del self._data[key]
                    removed += 1
        return removed

    def snapshot(self, key: str) -> list[float]:
        with self._lock:
            return list(self._data.get(key, ()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data


class RateLimiter:
    """Sliding-window limiter. A limit of 0 (or less) admits everything."""

    def __init__(
        self,
        limit: int,
        window_seconds: float = WINDOW_SECONDS,
        store: MemoryWindowStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.store = store if store is not None else MemoryWindowStore()
        self.clock = clock

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    def admit(self, client_id: str) -> RateDecision:
        if not self.enabled:
            return RateDecision(admitted=True)

        now = self.clock()
        cutoff = now - self.window_seconds

        def _check(bucket: Deque[float]) -> RateDecision:
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()
            count = len(bucket)
            if count >= self.limit:
                reset_at = bucket[0] + self.window_seconds
                return RateDecision(
                    admitted=False,
                    request_count=count,
                    remaining=0,
                    retry_after_seconds=max(0.0, reset_at - now),
                    reset_time=int(reset_at * 1000),
                )
            bucket.append(now)
            return RateDecision(
                admitted=True,
                request_count=count + 1,
                remaining=self.limit - count - 1,
            )

        decision = self.store.update(client_id, _check)
        if not decision.admitted:
            logger.info(
                "Rate limit hit for %s (%d/%d), retry in %.0fs",
                client_id, decision.request_count, self.limit,
                decision.retry_after_seconds,
            )
        return decision

    def sweep(self) -> int:
        removed = self.store.sweep(self.clock() - self.window_seconds)
        if removed:
            logger.debug("Rate limit sweep dropped %d idle clients", removed)
        return removed


async def run_sweeper(limiter: RateLimiter, interval: float = SWEEP_INTERVAL_SECONDS):
    """Background task: purge stale client windows every `interval` seconds."""
    while True:
        await asyncio.sleep(interval)
        try:
            limiter.sweep()
        except Exception as e:
            logger.warning("Rate limit sweep failed: %s", e)
