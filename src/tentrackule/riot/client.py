"""Riot API client with a shared token-bucket rate limiter.

``RiotApiClient`` performs authenticated GET requests and maps HTTP failures
onto the ``RiotApiError`` hierarchy. ``LolMatchSource`` and ``TftMatchSource``
expose the three calls the result poller needs for each title.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import httpx

from tentrackule.riot.metrics import RequestMetrics
from tentrackule.riot.models import MatchRecord, RankedStanding, Region, Title

logger = logging.getLogger(__name__)

# Constants
DEFAULT_REQUESTS_PER_MINUTE = 100
DEFAULT_BURST = 20
DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRY_AFTER = 1.0


class RiotApiError(Exception):
    """Base exception for Riot API errors."""


class NotFoundError(RiotApiError):
    """The requested resource does not exist (HTTP 404)."""


class RateLimitedError(RiotApiError):
    """The Riot API rejected the request with HTTP 429."""

    def __init__(self, message: str, retry_after: float = DEFAULT_RETRY_AFTER) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TransportError(RiotApiError):
    """Network failure or unexpected non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseDecodeError(RiotApiError):
    """The response body could not be decoded into the expected shape."""


class TokenBucket:
    """Token bucket rate limiter shared by every request of a client.

    Tokens refill continuously at ``requests_per_minute / 60`` per second up
    to ``burst`` tokens. ``acquire`` suspends until a token is available.
    """

    def __init__(
        self,
        requests_per_minute: float = DEFAULT_REQUESTS_PER_MINUTE,
        burst: int = DEFAULT_BURST,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the bucket.

        Args:
            requests_per_minute: Sustained request rate.
            burst: Maximum number of requests allowed back to back.
            clock: Monotonic clock, injectable for tests.
        """
        if requests_per_minute <= 0 or burst < 1:
            raise ValueError("requests_per_minute must be positive and burst at least 1")
        self._rate = requests_per_minute / 60.0
        self._capacity = float(burst)
        self._tokens = float(burst)
        self._clock = clock
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    @property
    def available(self) -> float:
        """Tokens currently available (after refill)."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now

    async def acquire(self) -> None:
        """Wait until a request token is available and consume it."""
        async with self._lock:
            self._refill()
            if self._tokens < 1:
                wait_time = (1 - self._tokens) / self._rate
                logger.debug("Riot rate limit reached, waiting %.2fs", wait_time)
                await asyncio.sleep(wait_time)
                self._refill()
            self._tokens -= 1


class RiotApiClient:
    """Authenticated HTTP client for the Riot API.

    One instance is shared by every title source so the outbound rate limit
    applies to the whole process.

    Example:
        >>> client = RiotApiClient(api_key="RGAPI-...")
        >>> lol = LolMatchSource(client)
        >>> match_id = await lol.get_last_match_id(puuid, Region.EUW)
        >>> await client.aclose()
    """

    def __init__(
        self,
        api_key: str,
        *,
        requests_per_minute: float = DEFAULT_REQUESTS_PER_MINUTE,
        burst: int = DEFAULT_BURST,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: TokenBucket | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Riot API key sent in the ``X-Riot-Token`` header.
            requests_per_minute: Sustained outbound request rate.
            burst: Burst allowance of the rate limiter.
            timeout: HTTP request timeout in seconds.
            transport: Optional httpx transport (used by tests).
            rate_limiter: Optional pre-built limiter, overrides rate and burst.
        """
        self._api_key = api_key
        self._limiter = rate_limiter or TokenBucket(requests_per_minute, burst)
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.metrics = RequestMetrics("riot")

        logger.info(
            "Initialized RiotApiClient with rate_limit=%.0f req/min, burst=%d",
            requests_per_minute,
            burst,
        )

    async def request(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """Perform a rate-limited GET request and decode the JSON body.

        Raises:
            NotFoundError: On HTTP 404.
            RateLimitedError: On HTTP 429.
            TransportError: On network errors and other non-success statuses.
            ResponseDecodeError: If the body is not valid JSON.
        """
        await self._limiter.acquire()
        self.metrics.inc()

        try:
            response = await self._client.get(
                url,
                params=params,
                headers={"X-Riot-Token": self._api_key},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        status = response.status_code
        if status == 404:
            raise NotFoundError(f"Resource not found: {url}")
        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitedError(f"Rate limited on {url}", retry_after=retry_after)
        if not response.is_success:
            raise TransportError(f"Unexpected status {status} for {url}", status_code=status)

        try:
            return response.json()
        except ValueError as e:
            raise ResponseDecodeError(f"Invalid JSON from {url}: {e}") from e

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> RiotApiClient:
        return self

    async def __aexit__(self, *_args: Any) -> None:
        await self.aclose()


def _parse_retry_after(value: str | None) -> float:
    if value is None:
        return DEFAULT_RETRY_AFTER
    try:
        return float(value)
    except ValueError:
        return DEFAULT_RETRY_AFTER


class RiotMatchSource(ABC):
    """Match and league endpoints of one title.

    Subclasses provide the route templates and the match payload parser.
    """

    title: Title
    match_ids_path: str
    match_path: str
    league_path: str

    def __init__(self, client: RiotApiClient) -> None:
        self._client = client

    @property
    def name(self) -> str:
        """Short name used in logs."""
        return self.title.value

    @abstractmethod
    def _parse_match(self, data: dict[str, Any]) -> MatchRecord:
        """Build a match record from a decoded match payload."""

    async def get_last_match_id(self, puuid: str, region: Region) -> str | None:
        """Fetch the id of the most recent match of a player.

        Returns:
            The match id, or None if the player has no match history.
        """
        logger.debug("[%s] get_last_match_id %s in %s", self.name, puuid, region.value)
        url = f"https://{region.regional_host}{self.match_ids_path.format(puuid=puuid)}"
        ids = await self._client.request(url, params={"start": 0, "count": 1})
        if not isinstance(ids, list):
            raise ResponseDecodeError(f"Expected a list of match ids, got {type(ids).__name__}")
        return str(ids[0]) if ids else None

    async def get_match(self, match_id: str, region: Region) -> MatchRecord:
        """Fetch and parse a full match."""
        logger.debug("[%s] get_match %s in %s", self.name, match_id, region.value)
        url = f"https://{region.regional_host}{self.match_path.format(match_id=match_id)}"
        data = await self._client.request(url)
        try:
            return self._parse_match(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseDecodeError(f"Malformed match payload for {match_id}: {e}") from e

    async def get_standings(self, puuid: str, region: Region) -> list[RankedStanding]:
        """Fetch the current ranked standings of a player in every queue."""
        logger.debug("[%s] get_standings %s in %s", self.name, puuid, region.value)
        url = f"https://{region.platform_host}{self.league_path.format(puuid=puuid)}"
        entries = await self._client.request(url)
        try:
            return [RankedStanding.from_dict(entry) for entry in entries]
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseDecodeError(f"Malformed league payload for {puuid}: {e}") from e


class LolMatchSource(RiotMatchSource):
    """League of Legends match-v5 and league-v4 endpoints."""

    title = Title.LOL
    match_ids_path = "/lol/match/v5/matches/by-puuid/{puuid}/ids"
    match_path = "/lol/match/v5/matches/{match_id}"
    league_path = "/lol/league/v4/entries/by-puuid/{puuid}"

    def _parse_match(self, data: dict[str, Any]) -> MatchRecord:
        return MatchRecord.from_lol_dict(data)


class TftMatchSource(RiotMatchSource):
    """Teamfight Tactics tft-match-v1 and tft-league-v1 endpoints."""

    title = Title.TFT
    match_ids_path = "/tft/match/v1/matches/by-puuid/{puuid}/ids"
    match_path = "/tft/match/v1/matches/{match_id}"
    league_path = "/tft/league/v1/by-puuid/{puuid}"

    def _parse_match(self, data: dict[str, Any]) -> MatchRecord:
        return MatchRecord.from_tft_dict(data)


MATCH_SOURCES: dict[Title, type[RiotMatchSource]] = {
    Title.LOL: LolMatchSource,
    Title.TFT: TftMatchSource,
}
