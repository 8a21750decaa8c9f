"""Request accounting for the Riot API clients."""

from __future__ import annotations

import asyncio
import logging
import time

from prometheus_client import Counter

logger = logging.getLogger(__name__)

DEFAULT_LOG_INTERVAL_SECONDS = 60.0

RIOT_REQUESTS_TOTAL = Counter(
    "tentrackule_riot_requests_total",
    "Total number of requests sent to the Riot API",
    ["client"],
)


class RequestMetrics:
    """Counts outbound requests and periodically logs the request rate."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._start = time.monotonic()
        self._count = 0

    @property
    def count(self) -> int:
        """Total requests recorded since creation."""
        return self._count

    def inc(self) -> None:
        """Record one outbound request."""
        self._count += 1
        RIOT_REQUESTS_TOTAL.labels(client=self.name).inc()

    def requests_per_minute(self) -> float:
        """Average request rate since creation."""
        elapsed_min = (time.monotonic() - self._start) / 60.0
        if elapsed_min <= 0:
            return 0.0
        return self._count / elapsed_min

    async def log_loop(self, interval: float = DEFAULT_LOG_INTERVAL_SECONDS) -> None:
        """Log the request count every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            logger.info(
                "[%s] %d requests executed (avg %.2f req/min)",
                self.name,
                self._count,
                self.requests_per_minute(),
            )
