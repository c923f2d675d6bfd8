"""Sliding-window request limiter keyed by client address.

State is held in memory by the instance on ``app.state``; limits therefore
apply per process, not across replicas.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

logger = logging.getLogger("crashmap.rate_limit")


class RateLimiter:
    def __init__(
        self,
        window_seconds: float = 60.0,
        max_requests: int = 60,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = 300.0,
    ):
        self.window = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()
        self._hits: dict[str, list[float]] = {}

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        self.sweep()

    def check(self, client: str) -> int | None:
        """Record a request. Returns None if allowed, else seconds to wait."""
        now = self._clock()
        self._maybe_sweep(now)
        cutoff = now - self.window
        hits = [t for t in self._hits.get(client, []) if t >= cutoff]
        if len(hits) >= self.max_requests:
            self._hits[client] = hits
            retry_after = max(1, math.ceil(hits[0] + self.window - now))
            logger.warning("rate limited %s (retry in %ds)", client, retry_after)
            return retry_after
        hits.append(now)
        self._hits[client] = hits
        return None

    def sweep(self) -> int:
        """Drop clients with no activity in the current window."""
        cutoff = self._clock() - self.window
        stale = [c for c, hits in self._hits.items() if not any(t >= cutoff for t in hits)]
        for client in stale:
            del self._hits[client]
        return len(stale)


def client_ip(headers, fallback: str | None = None) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return fallback or "127.0.0.1"
