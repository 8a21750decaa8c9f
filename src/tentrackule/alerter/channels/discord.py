"""Discord bot channel implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from tentrackule.alerter.models import Notification

logger = logging.getLogger(__name__)

DISCORD_API_URL = "https://discord.com/api/v10"


class DiscordChannel:
    """Discord bot sink posting alert embeds into guild channels.

    Sends notifications through the bot REST API with rate limiting
    and retry support.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        rate_limit_per_minute: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
        api_url: str = DISCORD_API_URL,
    ) -> None:
        """Initialize Discord channel.

        Args:
            bot_token: Discord bot token.
            rate_limit_per_minute: Maximum messages per minute across channels.
            max_retries: Maximum retry attempts on failure.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds.
            api_url: Base URL of the Discord REST API.
        """
        self.bot_token = bot_token
        self.rate_limit_per_minute = rate_limit_per_minute
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")
        self.name = "discord"

        # Rate limiting state
        self._request_times: list[float] = []
        self._lock = asyncio.Lock()

    async def _wait_for_rate_limit(self) -> None:
        """Wait if rate limit is exceeded."""
        async with self._lock:
            now = asyncio.get_running_loop().time()
            # Remove requests older than 1 minute
            self._request_times = [t for t in self._request_times if now - t < 60]

            if len(self._request_times) >= self.rate_limit_per_minute:
                wait_time = 60 - (now - self._request_times[0])
                if wait_time > 0:
                    logger.debug("Discord rate limit hit, waiting %.2fs", wait_time)
                    await asyncio.sleep(wait_time)

            self._request_times.append(asyncio.get_running_loop().time())

    def message_url(self, channel_id: int) -> str:
        """URL creating a message in a channel."""
        return f"{self.api_url}/channels/{channel_id}/messages"

    async def deliver(self, channel_id: int, notification: Notification) -> bool:
        """Post a notification into a Discord channel.

        Args:
            channel_id: Target channel id.
            notification: Rendered notification.

        Returns:
            True if delivery succeeded, False otherwise.
        """
        await self._wait_for_rate_limit()

        payload = {"embeds": [notification.to_discord_embed()]}
        headers = {"Authorization": f"Bot {self.bot_token}"}
        url = self.message_url(channel_id)

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)

                    if response.status_code in (200, 201):
                        logger.info("Discord alert delivered to channel %s", channel_id)
                        return True

                    if response.status_code == 429:
                        retry_after = response.json().get("retry_after", 1.0)
                        logger.warning("Discord rate limited, retry after %ss", retry_after)
                        await asyncio.sleep(retry_after)
                        continue

                    if response.status_code in (403, 404):
                        # Missing access or deleted channel, retrying cannot help
                        logger.error(
                            "Discord refused channel %s: %s %s",
                            channel_id,
                            response.status_code,
                            response.text,
                        )
                        return False

                    logger.error(
                        "Discord delivery failed: %s %s", response.status_code, response.text
                    )

            except httpx.TimeoutException:
                logger.warning("Discord request timeout (attempt %d)", attempt + 1)
            except httpx.HTTPError as e:
                logger.error("Discord request error: %s", e)

            # Exponential backoff
            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_delay * (2**attempt))

        logger.error("Discord delivery to channel %s failed after all retries", channel_id)
        return False
