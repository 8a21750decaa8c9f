"""Alert dispatcher fanning a detected match out to subscribed guilds."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from prometheus_client import Counter

from tentrackule.alerter.renderer import AlertCreationError

if TYPE_CHECKING:
    from tentrackule.alerter.models import MatchContext, Notification
    from tentrackule.storage.repos import TrackedAccountDTO

logger = logging.getLogger(__name__)

ALERTS_TOTAL = Counter(
    "tentrackule_alerts_total",
    "Alert outcomes per subscribed guild",
    ["outcome"],
)


class AlertSink(Protocol):
    """Protocol for alert delivery sinks."""

    name: str

    async def deliver(self, channel_id: int, notification: Notification) -> bool:
        """Deliver a notification to a channel. Returns True on success."""
        ...


class NotificationRenderer(Protocol):
    """Protocol for notification renderers."""

    def render(self, account: TrackedAccountDTO, context: MatchContext) -> Notification:
        """Render a match context, raising AlertCreationError when impossible."""
        ...


class GroupStore(Protocol):
    """Store reads needed to route alerts."""

    async def get_groups_for_account(self, account_id: str) -> dict[int, int | None]: ...

    async def is_category_enabled(self, group_id: int, category: str) -> bool: ...


class GroupOutcome(str, Enum):
    """Outcome of one dispatch for one guild."""

    DELIVERED = "delivered"
    FAILED = "failed"
    DISABLED = "disabled"
    NO_CHANNEL = "no_channel"


@dataclass
class DispatchResult:
    """Result of dispatching a match to every subscribed guild."""

    rendered: bool = True
    group_results: dict[int, GroupOutcome] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def _count(self, outcome: GroupOutcome) -> int:
        return sum(1 for o in self.group_results.values() if o is outcome)

    @property
    def delivered_count(self) -> int:
        """Number of guilds that received the notification."""
        return self._count(GroupOutcome.DELIVERED)

    @property
    def failed_count(self) -> int:
        """Number of guilds whose delivery failed."""
        return self._count(GroupOutcome.FAILED)

    @property
    def skipped_count(self) -> int:
        """Number of guilds skipped (category disabled or no channel)."""
        return self._count(GroupOutcome.DISABLED) + self._count(GroupOutcome.NO_CHANNEL)


class AlertDispatcher:
    """Dispatcher turning one match into notifications for every guild.

    Renders once, resolves the guilds tracking the account, applies
    per-category gating, then delivers concurrently with per-guild isolation.
    """

    def __init__(
        self,
        store: GroupStore,
        renderer: NotificationRenderer,
        sink: AlertSink,
        *,
        dry_run: bool = False,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            store: Store resolving guilds, channels and queue toggles.
            renderer: Renderer building the notification.
            sink: Delivery sink.
            dry_run: Log notifications instead of delivering them.
        """
        self.store = store
        self.renderer = renderer
        self.sink = sink
        self.dry_run = dry_run

    async def _is_enabled(self, group_id: int, category: str) -> bool:
        try:
            return await self.store.is_category_enabled(group_id, category)
        except Exception as e:
            # Fail open: a read error never suppresses an alert
            logger.warning(
                "Could not read %s setting for guild %s, sending anyway: %s",
                category,
                group_id,
                e,
            )
            return True

    async def _dispatch_to_group(
        self,
        group_id: int,
        channel_id: int | None,
        category: str,
        notification: Notification,
    ) -> tuple[int, GroupOutcome]:
        """Gate and deliver to a single guild."""
        if not await self._is_enabled(group_id, category):
            logger.debug("Guild %s disabled %s alerts", group_id, category)
            return group_id, GroupOutcome.DISABLED

        if channel_id is None:
            logger.warning("Guild %s has no alert channel configured", group_id)
            return group_id, GroupOutcome.NO_CHANNEL

        if self.dry_run:
            logger.info(
                "[dry-run] Would send to channel %s: %s", channel_id, notification.title
            )
            return group_id, GroupOutcome.DELIVERED

        try:
            success = await self.sink.deliver(channel_id, notification)
        except Exception as e:
            logger.error("Error sending to channel %s of guild %s: %s", channel_id, group_id, e)
            return group_id, GroupOutcome.FAILED

        if not success:
            logger.error("Delivery to channel %s of guild %s failed", channel_id, group_id)
            return group_id, GroupOutcome.FAILED
        return group_id, GroupOutcome.DELIVERED

    async def dispatch(self, account: TrackedAccountDTO, context: MatchContext) -> DispatchResult:
        """Dispatch a match to every guild tracking the account.

        Args:
            account: Account that played the match.
            context: The match with its optional LP enrichment.

        Returns:
            DispatchResult with per-guild outcome.
        """
        try:
            notification = self.renderer.render(account, context)
        except AlertCreationError as e:
            logger.error("Cannot create alert for %s: %s", account.riot_id, e)
            return DispatchResult(rendered=False)

        try:
            groups = await self.store.get_groups_for_account(account.id)
        except Exception as e:
            logger.error("Could not load guilds of %s: %s", account.riot_id, e)
            groups = {}

        if not groups:
            logger.debug("No guild tracks %s, nothing to send", account.riot_id)
            return DispatchResult()

        category = context.queue_type.category
        tasks = [
            self._dispatch_to_group(group_id, channel_id, category, notification)
            for group_id, channel_id in groups.items()
        ]
        results = await asyncio.gather(*tasks)

        result = DispatchResult(group_results=dict(results))
        for outcome in result.group_results.values():
            ALERTS_TOTAL.labels(outcome=outcome.value).inc()

        logger.info(
            "Dispatch of %s for %s: %d/%d delivered",
            context.match.match_id,
            account.riot_id,
            result.delivered_count,
            len(result.group_results),
        )
        return result
