"""Poller health monitor with metrics and HTTP endpoints.

This module exposes the state of every result poller on ``/health`` and
the Prometheus registry on ``/metrics``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import Gauge, generate_latest

from tentrackule.poller.result_poller import PollerState

if TYPE_CHECKING:
    from tentrackule.poller.result_poller import ResultPoller

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_HTTP_PORT = 8080
DEFAULT_STALE_INTERVALS = 3  # No cycle for 3 intervals = stale


class HealthStatus(Enum):
    """Overall health status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class PollerStatus(Enum):
    """Status of an individual poller."""

    ACTIVE = "active"
    STALE = "stale"
    STOPPED = "stopped"


@dataclass
class PollerHealth:
    """Health status for an individual poller."""

    name: str
    status: PollerStatus
    state: str
    stats: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    """Health report for all pollers."""

    status: HealthStatus
    pollers: dict[str, PollerHealth] = field(default_factory=dict)
    uptime_seconds: float = 0.0
    timestamp: float = field(default_factory=time.time)


# Prometheus metrics
POLLER_STATUS = Gauge(
    "tentrackule_poller_status",
    "Poller status (1=active, 0.5=stale, 0=stopped)",
    ["title"],
)

HEALTH_STATUS = Gauge(
    "tentrackule_health_status",
    "Overall health status (1=healthy, 0.5=degraded, 0=unhealthy)",
)

_STATUS_VALUES = {
    PollerStatus.ACTIVE: 1.0,
    PollerStatus.STALE: 0.5,
    PollerStatus.STOPPED: 0.0,
}


class HealthMonitor:
    """Report poller health and expose metrics over HTTP.

    Example:
        ```python
        monitor = HealthMonitor([lol_poller, tft_poller])
        await monitor.start_http_server(port=8080)
        report = monitor.get_health_report()
        await monitor.stop_http_server()
        ```
    """

    def __init__(
        self,
        pollers: list[ResultPoller] | None = None,
        *,
        stale_intervals: int = DEFAULT_STALE_INTERVALS,
    ) -> None:
        """Initialize the health monitor.

        Args:
            pollers: Pollers to report on.
            stale_intervals: Poll intervals without a completed cycle before
                a running poller is reported stale.
        """
        self._pollers: dict[str, ResultPoller] = {}
        self._stale_intervals = stale_intervals
        self._start_time = time.time()
        self._runner: web.AppRunner | None = None

        for poller in pollers or []:
            self.register_poller(poller)

    def register_poller(self, poller: ResultPoller) -> None:
        """Register a poller for monitoring."""
        name = poller.title.value
        if name not in self._pollers:
            self._pollers[name] = poller
            logger.info("Registered poller for monitoring: %s", name)

    def _poller_status(self, poller: ResultPoller) -> PollerStatus:
        if poller.state in (PollerState.STOPPED, PollerState.STOPPING):
            return PollerStatus.STOPPED

        last_activity = poller.stats.last_cycle_time or poller.start_time
        since = (datetime.now(UTC) - last_activity).total_seconds()
        # The first cycle only runs one interval after start
        if since > poller.poll_interval * (self._stale_intervals + 1):
            return PollerStatus.STALE
        return PollerStatus.ACTIVE

    def _determine_overall_status(self, statuses: list[PollerStatus]) -> HealthStatus:
        if not statuses:
            return HealthStatus.HEALTHY
        if all(s == PollerStatus.STOPPED for s in statuses):
            return HealthStatus.UNHEALTHY
        if any(s != PollerStatus.ACTIVE for s in statuses):
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    def get_health_report(self) -> HealthReport:
        """Generate a health report for every registered poller."""
        pollers: dict[str, PollerHealth] = {}
        for name, poller in self._pollers.items():
            status = self._poller_status(poller)
            POLLER_STATUS.labels(title=name).set(_STATUS_VALUES[status])
            pollers[name] = PollerHealth(
                name=name,
                status=status,
                state=poller.state.value,
                stats=poller.stats.to_dict(),
            )

        overall_status = self._determine_overall_status([p.status for p in pollers.values()])
        HEALTH_STATUS.set(
            1.0 if overall_status == HealthStatus.HEALTHY
            else 0.5 if overall_status == HealthStatus.DEGRADED
            else 0.0
        )

        return HealthReport(
            status=overall_status,
            pollers=pollers,
            uptime_seconds=time.time() - self._start_time,
        )

    # HTTP Server methods

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        report = self.get_health_report()
        status_code = 200 if report.status == HealthStatus.HEALTHY else 503

        body: dict[str, Any] = {
            "status": report.status.value,
            "uptime_seconds": report.uptime_seconds,
            "pollers": {
                name: {
                    "status": poller.status.value,
                    "state": poller.state,
                    "stats": poller.stats,
                }
                for name, poller in report.pollers.items()
            },
        }
        return web.json_response(body, status=status_code)

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        self.get_health_report()
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start_http_server(self, port: int = DEFAULT_HTTP_PORT) -> None:
        """Start the HTTP server for health and metrics endpoints."""
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", port)
        await site.start()
        logger.info("Health HTTP server started on port %d", port)

    async def stop_http_server(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Health HTTP server stopped")
