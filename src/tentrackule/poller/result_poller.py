"""Periodic match result poller.

This module provides the background service detecting newly finished
matches of every tracked account for one title, reconciling ranked
standings and handing each new match to the alert dispatcher.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from tentrackule.alerter.models import MatchContext
from tentrackule.poller.reconciler import league_points_delta
from tentrackule.riot.client import RiotApiError
from tentrackule.storage.repos import StoreError

if TYPE_CHECKING:
    from tentrackule.riot.models import (
        MatchRecord,
        QueueType,
        RankedStanding,
        Region,
        Title,
    )
    from tentrackule.storage.repos import TrackedAccountDTO

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_POLL_INTERVAL_SECONDS = 60
DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_STOP_TIMEOUT_SECONDS = 30.0


class PollerState(str, Enum):
    """State of the result poller."""

    STOPPED = "stopped"
    IDLE = "idle"
    POLLING = "polling"
    STOPPING = "stopping"


class AccountOutcome(str, Enum):
    """How one account ended one polling cycle."""

    SKIPPED = "skipped"
    FAILED = "failed"
    NO_CHANGE = "no_change"
    REJECTED = "rejected"
    DISPATCHED = "dispatched"


@dataclass
class PollStats:
    """Statistics for the polling process."""

    cycles_started: int = 0
    cycles_completed: int = 0
    skipped_ticks: int = 0
    accounts_processed: int = 0
    matches_detected: int = 0
    matches_dispatched: int = 0
    last_cycle_time: datetime | None = None
    last_cycle_duration_seconds: float = 0.0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON serializable dictionary."""
        return {
            "cycles_started": self.cycles_started,
            "cycles_completed": self.cycles_completed,
            "skipped_ticks": self.skipped_ticks,
            "accounts_processed": self.accounts_processed,
            "matches_detected": self.matches_detected,
            "matches_dispatched": self.matches_dispatched,
            "last_cycle_time": (
                self.last_cycle_time.isoformat() if self.last_cycle_time else None
            ),
            "last_cycle_duration_seconds": self.last_cycle_duration_seconds,
            "last_error": self.last_error,
        }


# Type alias for callbacks
StateCallback = Callable[[PollerState], None]


class PollerError(Exception):
    """Base exception for result poller errors."""


class MatchSource(Protocol):
    """Remote source of matches and standings for one title."""

    @property
    def name(self) -> str: ...

    async def get_last_match_id(self, puuid: str, region: Region) -> str | None: ...

    async def get_match(self, match_id: str, region: Region) -> MatchRecord: ...

    async def get_standings(self, puuid: str, region: Region) -> list[RankedStanding]: ...


class PollerStore(Protocol):
    """Store operations used by the poller."""

    async def list_tracked_accounts(self) -> list[TrackedAccountDTO]: ...

    async def get_last_match_id(self, account_id: str, title: Title) -> str | None: ...

    async def set_last_match_id(self, account_id: str, title: Title, match_id: str) -> None: ...

    async def get_cached_standing(
        self, account_id: str, category: str
    ) -> RankedStanding | None: ...

    async def set_cached_standing(self, account_id: str, standing: RankedStanding) -> None: ...


class MatchDispatcher(Protocol):
    """Receiver of detected matches."""

    async def dispatch(self, account: TrackedAccountDTO, context: MatchContext) -> Any: ...


class ResultPoller:
    """Background service polling the latest match of every tracked account.

    Each cycle:
    - Loads every tracked account
    - Fetches the latest match id of each account, at most
      ``max_concurrency`` accounts at a time
    - Persists any new id before fetching the match itself
    - Drops matches created before the poller was constructed
    - Computes the LP delta of ranked matches
    - Hands the match to the dispatcher

    The first cycle runs one full interval after ``start()``.

    Example:
        ```python
        poller = ResultPoller(Title.LOL, source, store, dispatcher)
        await poller.start()
        ...
        await poller.stop()
        ```
    """

    def __init__(
        self,
        title: Title,
        source: MatchSource,
        store: PollerStore,
        dispatcher: MatchDispatcher,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        on_state_change: StateCallback | None = None,
    ) -> None:
        """Initialize the result poller.

        Args:
            title: Title polled by this instance.
            source: Match source of the title.
            store: Account store.
            dispatcher: Alert dispatcher.
            poll_interval_seconds: Interval between cycles (default: 60).
            max_concurrency: Accounts processed simultaneously (default: 10).
            on_state_change: Callback for state changes.

        Raises:
            PollerError: If the interval or the concurrency is not positive.
        """
        if poll_interval_seconds <= 0:
            raise PollerError(
                f"poll_interval_seconds must be positive, got {poll_interval_seconds}"
            )
        if max_concurrency < 1:
            raise PollerError(f"max_concurrency must be at least 1, got {max_concurrency}")

        self._title = title
        self._source = source
        self._store = store
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval_seconds
        self._max_concurrency = max_concurrency
        self._on_state_change = on_state_change

        self._start_time = datetime.now(UTC)
        self._state = PollerState.STOPPED
        self._stats = PollStats()
        self._poll_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def title(self) -> Title:
        """Title polled by this instance."""
        return self._title

    @property
    def poll_interval(self) -> float:
        """Seconds between two cycles."""
        return self._poll_interval

    @property
    def start_time(self) -> datetime:
        """Construction time; older matches are never alerted."""
        return self._start_time

    @property
    def state(self) -> PollerState:
        """Current poller state."""
        return self._state

    @property
    def stats(self) -> PollStats:
        """Current polling statistics."""
        return self._stats

    def _set_state(self, new_state: PollerState) -> None:
        """Update state and notify callback."""
        old_state = self._state
        self._state = new_state
        if self._on_state_change and old_state != new_state:
            try:
                self._on_state_change(new_state)
            except Exception as e:
                logger.warning("State change callback failed: %s", e)

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._state != PollerState.STOPPED:
            logger.warning(
                "Cannot start %s poller: already in state %s", self._title.value, self._state
            )
            return

        self._stop_event.clear()
        self._poll_task = asyncio.create_task(self._poll_loop())
        self._set_state(PollerState.IDLE)
        logger.info(
            "Result poller [%s] started, polling every %ss",
            self._title.value,
            self._poll_interval,
        )

    async def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT_SECONDS) -> None:
        """Stop the polling loop.

        No tick fires after this call. A cycle already running is allowed to
        finish its batch and is only cancelled once ``timeout`` elapses.
        """
        if self._state == PollerState.STOPPED:
            return

        self._set_state(PollerState.STOPPING)
        self._stop_event.set()

        if self._poll_task:
            try:
                await asyncio.wait_for(asyncio.shield(self._poll_task), timeout=timeout)
            except TimeoutError:
                logger.warning(
                    "Result poller [%s] cycle still running after %ss, cancelling",
                    self._title.value,
                    timeout,
                )
                self._poll_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._poll_task
            self._poll_task = None

        self._set_state(PollerState.STOPPED)
        logger.info("Result poller [%s] stopped", self._title.value)

    async def _poll_loop(self) -> None:
        """Background loop running one cycle per grid tick."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._poll_interval

        while not self._stop_event.is_set():
            delay = next_tick - loop.time()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    # Stop event was set
                    break
                except TimeoutError:
                    pass

            if self._stop_event.is_set():
                break

            try:
                await self.poll_once()
            except Exception as e:
                logger.exception("Result poller [%s] cycle error", self._title.value)
                self._stats.last_error = str(e)

            next_tick += self._poll_interval
            now = loop.time()
            if next_tick <= now:
                # The cycle overran: skip every tick already in the past
                missed = int((now - next_tick) // self._poll_interval) + 1
                self._stats.skipped_ticks += missed
                next_tick += missed * self._poll_interval
                logger.warning(
                    "Result poller [%s] cycle overran, skipped %d tick(s)",
                    self._title.value,
                    missed,
                )

    async def poll_once(self) -> dict[str, AccountOutcome]:
        """Run one polling cycle over every tracked account.

        Returns:
            Outcome of each processed account, keyed by account id.
        """
        previous_state = self._state
        if previous_state in (PollerState.IDLE, PollerState.STOPPED):
            self._set_state(PollerState.POLLING)

        started = datetime.now(UTC)
        self._stats.cycles_started += 1

        try:
            accounts = await self._store.list_tracked_accounts()
        except Exception as e:
            logger.error("Could not load tracked accounts: %s", e)
            self._stats.last_error = str(e)
            accounts = []

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def run(account: TrackedAccountDTO) -> tuple[str, AccountOutcome]:
            async with semaphore:
                return account.id, await self._process_guarded(account)

        results = await asyncio.gather(*(run(account) for account in accounts))
        outcomes = dict(results)

        finished = datetime.now(UTC)
        self._stats.cycles_completed += 1
        self._stats.accounts_processed += len(outcomes)
        self._stats.matches_dispatched += sum(
            1 for outcome in outcomes.values() if outcome is AccountOutcome.DISPATCHED
        )
        self._stats.last_cycle_time = finished
        self._stats.last_cycle_duration_seconds = (finished - started).total_seconds()

        if self._state == PollerState.POLLING:
            self._set_state(previous_state)

        logger.debug(
            "Result poller [%s] processed %d accounts in %.2fs",
            self._title.value,
            len(outcomes),
            self._stats.last_cycle_duration_seconds,
        )
        return outcomes

    async def _process_guarded(self, account: TrackedAccountDTO) -> AccountOutcome:
        """Process one account, containing any unexpected error to it."""
        try:
            return await self.process_account(account)
        except Exception as e:
            logger.exception("Unexpected error while polling %s", account.riot_id)
            self._stats.last_error = str(e)
            return AccountOutcome.FAILED

    async def process_account(self, account: TrackedAccountDTO) -> AccountOutcome:
        """Detect and forward the latest match of one account."""
        handle = account.handle_for(self._title)
        if not handle:
            return AccountOutcome.SKIPPED

        try:
            latest_id = await self._source.get_last_match_id(handle, account.region)
        except RiotApiError as e:
            logger.warning(
                "[%s] Could not fetch last match of %s: %s",
                self._title.value,
                account.riot_id,
                e,
            )
            return AccountOutcome.FAILED

        if latest_id is None:
            return AccountOutcome.NO_CHANGE

        try:
            stored_id = await self._store.get_last_match_id(account.id, self._title)
        except StoreError as e:
            logger.error("Could not read last match of %s: %s", account.riot_id, e)
            return AccountOutcome.FAILED

        if latest_id == stored_id:
            return AccountOutcome.NO_CHANGE

        # Persisted before anything else so a match is never processed twice
        try:
            await self._store.set_last_match_id(account.id, self._title, latest_id)
        except StoreError as e:
            logger.error("Could not save last match %s of %s: %s", latest_id, account.riot_id, e)
            return AccountOutcome.FAILED

        self._stats.matches_detected += 1
        logger.info("[%s] New match %s for %s", self._title.value, latest_id, account.riot_id)

        try:
            match = await self._source.get_match(latest_id, account.region)
        except RiotApiError as e:
            logger.warning("[%s] Could not fetch match %s: %s", self._title.value, latest_id, e)
            return AccountOutcome.FAILED

        if match.created_at < self._start_time:
            logger.debug("Match %s was played before startup, ignoring", match.match_id)
            return AccountOutcome.REJECTED

        queue_type = match.queue_type
        if queue_type is None:
            logger.debug("Match %s is in unsupported queue %s", match.match_id, match.queue_id)
            return AccountOutcome.REJECTED

        standing: RankedStanding | None = None
        lp_delta: int | None = None
        if queue_type.is_ranked:
            reconciled = await self._reconcile(account, handle, match, queue_type)
            if reconciled is None:
                return AccountOutcome.FAILED
            standing, lp_delta = reconciled

        context = MatchContext(
            match=match,
            queue_type=queue_type,
            standing=standing,
            lp_delta=lp_delta,
        )
        await self._dispatcher.dispatch(account, context)
        return AccountOutcome.DISPATCHED

    async def _reconcile(
        self,
        account: TrackedAccountDTO,
        handle: str,
        match: MatchRecord,
        queue_type: QueueType,
    ) -> tuple[RankedStanding, int | None] | None:
        """Fetch the fresh standing of a ranked match and compute its LP delta.

        Returns:
            The fresh standing and the delta (unknown without a cached
            standing), or None if the fresh standing is unavailable.
        """
        category = queue_type.category
        try:
            standings = await self._source.get_standings(handle, account.region)
        except RiotApiError as e:
            logger.warning("Could not fetch standings of %s: %s", account.riot_id, e)
            return None

        fresh = next((s for s in standings if s.queue_type == category), None)
        if fresh is None:
            logger.warning("No %s standing for %s", category, account.riot_id)
            return None

        try:
            cached = await self._store.get_cached_standing(account.id, category)
        except StoreError as e:
            logger.warning(
                "Could not read cached %s standing of %s: %s", category, account.riot_id, e
            )
            cached = None

        participant = match.participant(handle)
        lp_delta = (
            league_points_delta(cached, fresh, participant.win) if participant else None
        )

        try:
            await self._store.set_cached_standing(account.id, fresh)
        except StoreError as e:
            logger.warning("Could not cache %s standing of %s: %s", category, account.riot_id, e)

        return fresh, lp_delta
