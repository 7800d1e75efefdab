"""
Per-domain request admission.

Each domain has a one-second window held in the shared cache. The first
request of a window is always admitted; after that the budget ramps
linearly with the time elapsed in the window, so a burst at the start of
a window is held to a single request.

This is advisory and best-effort: the state lives in a TTL cache and a
lost or expired window simply starts open again.
"""

import math
from typing import Callable, Optional

from .clock import epoch_ms
from .logger import get_logger, StructuredLogger

WINDOW_MS = 1000
NEW_WINDOW_TTL_SECONDS = 60
ACTIVE_WINDOW_TTL_SECONDS = 2
KEY_PREFIX = "ratelimit:"


class RateLimiter:
    def __init__(
        self,
        cache,
        clock: Callable[[], int] = epoch_ms,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            cache: Object with get(key) and put(key, value, ttl)
            clock: Returns the current time in epoch milliseconds
        """
        self.cache = cache
        self.clock = clock
        self.logger = logger or get_logger()

    def _open_window(self, key: str, now: int) -> bool:
        self.cache.put(key, {"requests": 1, "window_start": now}, ttl=NEW_WINDOW_TTL_SECONDS)
        return True

    def admit(self, domain: str, max_requests_per_second: float) -> bool:
        """
        Return True if a request to domain may proceed now.

        Within an active window at most max(1, floor(rps * elapsed_fraction))
        requests are admitted; admission increments the window counter.
        """
        key = f"{KEY_PREFIX}{domain}"
        now = self.clock()

        window = self.cache.get(key)
        if not window:
            return self._open_window(key, now)

        elapsed = now - window["window_start"]
        if elapsed >= WINDOW_MS:
            return self._open_window(key, now)

        budget = max(1, math.floor(max_requests_per_second * (elapsed / WINDOW_MS)))
        if window["requests"] >= budget:
            self.logger.debug(
                "Request rejected by rate limiter",
                domain=domain,
                requests=window["requests"],
                budget=budget,
            )
            return False

        self.cache.put(
            key,
            {"requests": window["requests"] + 1, "window_start": window["window_start"]},
            ttl=ACTIVE_WINDOW_TTL_SECONDS,
        )
        return True
