"""Alerting layer - rendering and delivery of match notifications."""

from tentrackule.alerter.channels.discord import DiscordChannel
from tentrackule.alerter.channels.log import LogChannel
from tentrackule.alerter.dispatcher import (
    AlertDispatcher,
    AlertSink,
    DispatchResult,
    GroupOutcome,
)
from tentrackule.alerter.models import MatchContext, Notification
from tentrackule.alerter.renderer import (
    AlertCreationError,
    AlertRenderer,
    PlayerNotInMatchError,
    UnsupportedQueueError,
)

__all__ = [
    "AlertCreationError",
    "AlertDispatcher",
    "AlertRenderer",
    "AlertSink",
    "DiscordChannel",
    "DispatchResult",
    "GroupOutcome",
    "LogChannel",
    "MatchContext",
    "Notification",
    "PlayerNotInMatchError",
    "UnsupportedQueueError",
]
