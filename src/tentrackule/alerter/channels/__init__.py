"""Alert sink implementations."""

from tentrackule.alerter.channels.discord import DiscordChannel
from tentrackule.alerter.channels.log import LogChannel

__all__ = [
    "DiscordChannel",
    "LogChannel",
]
