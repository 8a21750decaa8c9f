"""Service pipeline wiring storage, Riot API, pollers and alerting.

``Pipeline`` builds every component from ``Settings`` and owns their
lifecycle: one ``ResultPoller`` per configured title, all sharing the same
Riot client (and thus the same rate limiter), store and dispatcher.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from tentrackule.alerter.channels.discord import DiscordChannel
from tentrackule.alerter.channels.log import LogChannel
from tentrackule.alerter.dispatcher import AlertDispatcher, AlertSink
from tentrackule.alerter.renderer import AlertRenderer
from tentrackule.health import HealthMonitor
from tentrackule.poller.result_poller import ResultPoller
from tentrackule.riot.client import MATCH_SOURCES, RiotApiClient
from tentrackule.storage.database import create_engine, create_session_factory, init_models
from tentrackule.storage.repos import SqlAccountStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from tentrackule.config import Settings

logger = logging.getLogger(__name__)


class Pipeline:
    """The running Tentrackule service.

    Example:
        ```python
        pipeline = Pipeline(get_settings())
        await pipeline.start()
        ...
        await pipeline.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        dry_run: bool = False,
        health_port: int | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings.
            dry_run: Log alerts instead of sending them.
            health_port: Override of the health server port.
        """
        self._settings = settings
        self._dry_run = dry_run
        self._health_port = health_port or settings.health_port

        self._engine: AsyncEngine | None = None
        self._riot: RiotApiClient | None = None
        self._pollers: list[ResultPoller] = []
        self._health: HealthMonitor | None = None
        self._metrics_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Return True if the pipeline is running."""
        return self._running

    @property
    def pollers(self) -> list[ResultPoller]:
        """Running pollers, one per title."""
        return list(self._pollers)

    def _create_sink(self) -> AlertSink:
        token = self._settings.discord.bot_token
        if token is None:
            logger.warning("DISCORD_BOT_TOKEN not set, alerts will only be logged")
            return LogChannel()
        return DiscordChannel(token.get_secret_value())

    async def start(self) -> None:
        """Build every component and start polling."""
        if self._running:
            logger.warning("Pipeline already running")
            return

        self._running = True
        try:
            await self._start_components()
        except Exception:
            logger.error("Pipeline failed to start, releasing resources")
            await self.stop()
            raise

        logger.info(
            "Pipeline started: polling %s%s",
            ", ".join(p.title.name for p in self._pollers),
            " (dry run)" if self._dry_run else "",
        )

    async def _start_components(self) -> None:
        settings = self._settings

        self._engine = create_engine(settings.database.url)
        await init_models(self._engine)
        store = SqlAccountStore(create_session_factory(self._engine))

        self._riot = RiotApiClient(
            settings.riot.api_key.get_secret_value(),
            requests_per_minute=settings.riot.rate_limit_per_minute,
            burst=settings.riot.rate_limit_burst,
            timeout=settings.riot.request_timeout,
        )

        dispatcher = AlertDispatcher(
            store,
            AlertRenderer(ddragon_version=settings.ddragon_version),
            self._create_sink(),
            dry_run=self._dry_run,
        )

        for title in settings.poller.titles:
            poller = ResultPoller(
                title,
                MATCH_SOURCES[title](self._riot),
                store,
                dispatcher,
                poll_interval_seconds=settings.poller.interval_seconds,
                max_concurrency=settings.poller.max_concurrency,
            )
            await poller.start()
            self._pollers.append(poller)

        self._metrics_task = asyncio.create_task(self._riot.metrics.log_loop())

        self._health = HealthMonitor(self._pollers)
        await self._health.start_http_server(self._health_port)

    async def stop(self) -> None:
        """Stop pollers and release every resource."""
        if not self._running:
            return
        self._running = False

        await asyncio.gather(*(poller.stop() for poller in self._pollers))
        self._pollers.clear()

        if self._metrics_task:
            self._metrics_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._metrics_task
            self._metrics_task = None

        if self._health:
            await self._health.stop_http_server()
            self._health = None

        if self._riot:
            await self._riot.aclose()
            self._riot = None

        if self._engine:
            await self._engine.dispose()
            self._engine = None

        logger.info("Pipeline stopped")
