"""Rolling-window budget guard for oracle calls."""

from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque


class RateLimiter:
    """Grants at most ``max_requests`` permits in any ``window_seconds`` span."""

    def __init__(
        self,
        *,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self._clock = clock or time.monotonic
        self._granted: Deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._granted and now - self._granted[0] >= self.window_seconds:
            self._granted.popleft()

    def can_proceed(self) -> bool:
        """Record and grant a permit when capacity remains."""

        now = self._clock()
        self._prune(now)
        if len(self._granted) >= self.max_requests:
            return False
        self._granted.append(now)
        return True

    def remaining(self) -> int:
        self._prune(self._clock())
        return self.max_requests - len(self._granted)

    def seconds_until_available(self) -> float:
        now = self._clock()
        self._prune(now)
        if len(self._granted) < self.max_requests:
            return 0.0
        return max(self.window_seconds - (now - self._granted[0]), 0.0)


__all__ = ["RateLimiter"]
