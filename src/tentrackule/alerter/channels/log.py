"""Log-only sink used when no Discord bot token is configured."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tentrackule.alerter.models import Notification

logger = logging.getLogger(__name__)


class LogChannel:
    """Sink writing notifications to the log instead of a chat service."""

    def __init__(self) -> None:
        self.name = "log"

    async def deliver(self, channel_id: int, notification: Notification) -> bool:
        """Log the notification. Always succeeds."""
        logger.info(
            "Alert for channel %s: %s | %s",
            channel_id,
            notification.title,
            notification.description,
        )
        return True
