"""Tests for the alert dispatcher fan-out."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from prometheus_client import REGISTRY

from tentrackule.alerter.dispatcher import AlertDispatcher, DispatchResult, GroupOutcome
from tentrackule.alerter.models import MatchContext, Notification
from tentrackule.alerter.renderer import PlayerNotInMatchError
from tentrackule.riot.models import MatchRecord, Region, Title, get_queue_type
from tentrackule.storage.repos import TrackedAccountDTO

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def account() -> TrackedAccountDTO:
    return TrackedAccountDTO("Faker", "KR1", Region.KR, puuid="puuid-player", id="acc-1")


@pytest.fixture
def context() -> MatchContext:
    queue = get_queue_type(Title.LOL, 450)
    assert queue is not None
    match = MatchRecord("KR_1", Title.LOL, 450, datetime.now(UTC), 1200, ())
    return MatchContext(match, queue)


@pytest.fixture
def notification() -> Notification:
    return Notification(title="Victory", description="**Faker** just won an ARAM game !", color=1)


@pytest.fixture
def renderer(notification: Notification) -> MagicMock:
    mock = MagicMock()
    mock.render.return_value = notification
    return mock


@pytest.fixture
def store() -> MagicMock:
    """Store with two configured guilds and one without channel."""
    mock = MagicMock()
    mock.get_groups_for_account = AsyncMock(return_value={1: 1001, 2: 1002, 3: None})
    mock.is_category_enabled = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def sink() -> MagicMock:
    mock = MagicMock()
    mock.name = "mock"
    mock.deliver = AsyncMock(return_value=True)
    return mock


def alerts_total(outcome: str) -> float:
    return REGISTRY.get_sample_value("tentrackule_alerts_total", {"outcome": outcome}) or 0.0


# ============================================================================
# DispatchResult Tests
# ============================================================================


class TestDispatchResult:
    """Tests for DispatchResult counters."""

    def test_counts(self) -> None:
        result = DispatchResult(
            group_results={
                1: GroupOutcome.DELIVERED,
                2: GroupOutcome.FAILED,
                3: GroupOutcome.DISABLED,
                4: GroupOutcome.NO_CHANNEL,
                5: GroupOutcome.DELIVERED,
            }
        )
        assert result.delivered_count == 2
        assert result.failed_count == 1
        assert result.skipped_count == 2

    def test_empty(self) -> None:
        result = DispatchResult()
        assert result.rendered is True
        assert result.delivered_count == 0


# ============================================================================
# AlertDispatcher Tests
# ============================================================================


class TestAlertDispatcher:
    """Tests for routing a match to subscribed guilds."""

    async def test_fan_out(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
        notification: Notification,
    ) -> None:
        """Every configured guild receives the same rendered notification once."""
        dispatcher = AlertDispatcher(store, renderer, sink)

        result = await dispatcher.dispatch(account, context)

        renderer.render.assert_called_once_with(account, context)
        assert result.group_results == {
            1: GroupOutcome.DELIVERED,
            2: GroupOutcome.DELIVERED,
            3: GroupOutcome.NO_CHANNEL,
        }
        delivered_to = sorted(call.args[0] for call in sink.deliver.await_args_list)
        assert delivered_to == [1001, 1002]
        assert all(call.args[1] is notification for call in sink.deliver.await_args_list)

    async def test_channel_less_guild_is_warned(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A guild without alert channel is skipped with a warning."""
        dispatcher = AlertDispatcher(store, renderer, sink)

        with caplog.at_level("WARNING", logger="tentrackule.alerter.dispatcher"):
            await dispatcher.dispatch(account, context)

        assert "Guild 3 has no alert channel configured" in caplog.text

    async def test_failure_is_isolated(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """A failing guild does not affect the others."""

        async def deliver(channel_id: int, _notification: Notification) -> bool:
            if channel_id == 1001:
                raise RuntimeError("socket closed")
            return True

        sink.deliver.side_effect = deliver
        dispatcher = AlertDispatcher(store, renderer, sink)

        result = await dispatcher.dispatch(account, context)

        assert result.group_results[1] is GroupOutcome.FAILED
        assert result.group_results[2] is GroupOutcome.DELIVERED

    async def test_unsuccessful_delivery_is_failure(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """A sink returning False counts as failed."""
        sink.deliver.return_value = False
        dispatcher = AlertDispatcher(store, renderer, sink)

        result = await dispatcher.dispatch(account, context)

        assert result.failed_count == 2

    async def test_disabled_category_is_skipped(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """Guilds disabling the queue category get nothing."""
        store.is_category_enabled.side_effect = lambda group_id, category: group_id != 1
        dispatcher = AlertDispatcher(store, renderer, sink)

        result = await dispatcher.dispatch(account, context)

        assert result.group_results[1] is GroupOutcome.DISABLED
        assert [call.args[0] for call in sink.deliver.await_args_list] == [1002]
        store.is_category_enabled.assert_any_await(1, "ARAM")

    async def test_setting_read_failure_fails_open(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """An unreadable toggle does not suppress the alert."""
        store.is_category_enabled.side_effect = RuntimeError("db down")
        dispatcher = AlertDispatcher(store, renderer, sink)

        result = await dispatcher.dispatch(account, context)

        assert result.delivered_count == 2

    async def test_render_failure_sends_nothing(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """A match that cannot be rendered reaches no guild."""
        renderer.render.side_effect = PlayerNotInMatchError("not in match")
        dispatcher = AlertDispatcher(store, renderer, sink)

        result = await dispatcher.dispatch(account, context)

        assert result.rendered is False
        assert result.group_results == {}
        sink.deliver.assert_not_called()
        store.get_groups_for_account.assert_not_called()

    async def test_no_groups(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """An account tracked by no guild is a no-op."""
        store.get_groups_for_account.return_value = {}
        dispatcher = AlertDispatcher(store, renderer, sink)

        result = await dispatcher.dispatch(account, context)

        assert result.rendered is True
        assert result.group_results == {}
        sink.deliver.assert_not_called()

    async def test_group_lookup_failure(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """A failing guild lookup sends nothing."""
        store.get_groups_for_account.side_effect = RuntimeError("db down")
        dispatcher = AlertDispatcher(store, renderer, sink)

        result = await dispatcher.dispatch(account, context)

        assert result.group_results == {}
        sink.deliver.assert_not_called()

    async def test_dry_run(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """Dry run logs instead of delivering."""
        dispatcher = AlertDispatcher(store, renderer, sink, dry_run=True)

        result = await dispatcher.dispatch(account, context)

        assert result.delivered_count == 2
        sink.deliver.assert_not_called()

    async def test_outcome_counter(
        self,
        store: MagicMock,
        renderer: MagicMock,
        sink: MagicMock,
        account: TrackedAccountDTO,
        context: MatchContext,
    ) -> None:
        """Each guild outcome is counted."""
        delivered_before = alerts_total("delivered")
        no_channel_before = alerts_total("no_channel")
        dispatcher = AlertDispatcher(store, renderer, sink)

        await dispatcher.dispatch(account, context)

        assert alerts_total("delivered") - delivered_before == 2
        assert alerts_total("no_channel") - no_channel_before == 1
