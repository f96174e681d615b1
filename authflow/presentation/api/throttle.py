from __future__ import annotations

import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Tuple

from fastapi import Request

from ...core.exceptions import RateLimitError


class RequestThrottle:
    """
    Sliding-window request limiter used as a FastAPI dependency.

    Counters are kept per (client host, route class) and are safe for
    concurrent use from multiple worker threads.
    """

    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: float,
        message: str,
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.limit = limit
        self.window = window_seconds
        self.message = message
        self.enabled = enabled
        self._clock = clock
        self._hits: Dict[Tuple[str, str], Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    async def __call__(self, request: Request) -> None:
        if not self.enabled:
            return None
        host = request.client.host if request.client else "unknown"
        self.hit(host)
        return None

    def hit(self, identifier: str) -> None:
        """Record a request for ``identifier``; raises :class:`RateLimitError` above the limit."""
        now = self._clock()
        key = (identifier, self.name)
        with self._lock:
            window_start = now - self.window
            if now - self._last_sweep >= self.window:
                self._sweep(window_start)
                self._last_sweep = now
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()
            if len(hits) >= self.limit:
                retry_after = max(1, math.ceil(self.window - (now - hits[0])))
                raise RateLimitError(self.message, retry_after=retry_after)
            hits.append(now)

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._hits)

    def _sweep(self, window_start: float) -> None:
        # Drop clients whose every hit has left the window.
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def build_throttles(enabled: bool) -> Dict[str, RequestThrottle]:
    return {
        "strict": RequestThrottle(
            "strict",
            limit=5,
            window_seconds=15 * 60,
            message="Too many attempts. Please try again in 15 minutes.",
            enabled=enabled,
        ),
        "verification": RequestThrottle(
            "verification",
            limit=3,
            window_seconds=5 * 60,
            message="Too many verification attempts. Please try again in 5 minutes.",
            enabled=enabled,
        ),
    }
