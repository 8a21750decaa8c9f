"""Tests for the graceful shutdown handler."""

from __future__ import annotations

import asyncio
import signal
import sys
from unittest.mock import MagicMock, patch

import pytest

from tentrackule.shutdown import (
    DEFAULT_SHUTDOWN_TIMEOUT,
    SHUTDOWN_SIGNALS,
    GracefulShutdown,
)


class TestGracefulShutdownInit:
    """Tests for shutdown handler construction."""

    def test_default_timeout(self) -> None:
        """Default timeout should be the module default."""
        assert GracefulShutdown().timeout == DEFAULT_SHUTDOWN_TIMEOUT

    def test_initial_state(self) -> None:
        """No shutdown is requested initially."""
        assert GracefulShutdown().is_shutdown_requested is False

    def test_signals(self) -> None:
        """Both SIGTERM and SIGINT are trapped."""
        assert signal.SIGTERM in SHUTDOWN_SIGNALS
        assert signal.SIGINT in SHUTDOWN_SIGNALS


class TestRequestShutdown:
    """Tests for programmatic shutdown requests."""

    async def test_request_shutdown_releases_wait(self) -> None:
        """wait() should return once shutdown is requested."""
        shutdown = GracefulShutdown()
        waiter = asyncio.create_task(shutdown.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        shutdown.request_shutdown()

        await asyncio.wait_for(waiter, timeout=1.0)
        assert shutdown.is_shutdown_requested is True

    async def test_request_shutdown_idempotent(self) -> None:
        """Requesting twice should not raise."""
        shutdown = GracefulShutdown()
        shutdown.request_shutdown()
        shutdown.request_shutdown()
        assert shutdown.is_shutdown_requested is True


class TestSignalHandlers:
    """Tests for signal handler installation and removal."""

    @pytest.mark.skipif(sys.platform == "win32", reason="Unix-specific test")
    async def test_loop_signal_handlers_installed(self) -> None:
        """Handlers should be installed through the running loop."""
        shutdown = GracefulShutdown()

        with patch.object(asyncio.get_running_loop(), "add_signal_handler") as mock_add:
            shutdown.install_signal_handlers()
            assert mock_add.call_count == len(SHUTDOWN_SIGNALS)

        shutdown.remove_signal_handlers()

    async def test_fallback_when_loop_lacks_signal_support(self) -> None:
        """Without loop support, signal.signal is used and later restored."""
        shutdown = GracefulShutdown()
        loop = asyncio.get_running_loop()

        with (
            patch.object(loop, "add_signal_handler", side_effect=NotImplementedError),
            patch.object(loop, "remove_signal_handler", side_effect=NotImplementedError),
            patch("signal.signal", return_value=signal.SIG_DFL) as mock_signal,
        ):
            shutdown.install_signal_handlers()
            assert mock_signal.call_count == len(SHUTDOWN_SIGNALS)

            shutdown.remove_signal_handlers()
            assert mock_signal.call_count == 2 * len(SHUTDOWN_SIGNALS)


class TestHandleSignal:
    """Tests for signal handling behavior."""

    async def test_first_signal_requests_shutdown(self) -> None:
        """First signal should request shutdown."""
        shutdown = GracefulShutdown()

        shutdown._handle_signal(signal.SIGTERM)

        assert shutdown.is_shutdown_requested is True

    async def test_second_signal_force_exits(self) -> None:
        """Second signal should exit immediately."""
        shutdown = GracefulShutdown()
        shutdown._handle_signal(signal.SIGINT)

        with pytest.raises(SystemExit) as exc_info:
            shutdown._handle_signal(signal.SIGTERM)

        assert exc_info.value.code == 128 + signal.SIGTERM.value


class TestCleanupCallbacks:
    """Tests for cleanup callback execution."""

    async def test_sync_and_async_callbacks_run(self) -> None:
        """Both sync and async callbacks should run."""
        shutdown = GracefulShutdown()
        sync_callback = MagicMock()
        called = False

        async def async_callback() -> None:
            nonlocal called
            called = True

        shutdown.register_cleanup(sync_callback)
        shutdown.register_cleanup(async_callback)

        await shutdown.run_cleanup_callbacks()

        sync_callback.assert_called_once()
        assert called is True

    async def test_callbacks_run_newest_first(self) -> None:
        """Callbacks should run in reverse registration order."""
        shutdown = GracefulShutdown()
        order: list[str] = []
        shutdown.register_cleanup(lambda: order.append("engine"))
        shutdown.register_cleanup(lambda: order.append("pollers"))

        await shutdown.run_cleanup_callbacks()

        assert order == ["pollers", "engine"]

    async def test_failing_callback_does_not_stop_others(self) -> None:
        """A failing callback is logged and the others still run."""
        shutdown = GracefulShutdown()
        callback = MagicMock()

        def failing_callback() -> None:
            raise ValueError("Cleanup failed")

        shutdown.register_cleanup(callback)
        shutdown.register_cleanup(failing_callback)

        await shutdown.run_cleanup_callbacks()

        callback.assert_called_once()

    async def test_slow_callback_times_out(self) -> None:
        """An async callback exceeding the budget is abandoned."""
        shutdown = GracefulShutdown(timeout=0.05)
        callback = MagicMock()

        async def slow_callback() -> None:
            await asyncio.sleep(10)

        shutdown.register_cleanup(callback)
        shutdown.register_cleanup(slow_callback)

        await asyncio.wait_for(shutdown.run_cleanup_callbacks(), timeout=2.0)

        callback.assert_called_once()


class TestAsyncContextManager:
    """Tests for async context manager protocol."""

    async def test_context_manager_removes_handlers(self) -> None:
        """Exiting context should remove signal handlers."""
        shutdown = GracefulShutdown()

        with patch.object(shutdown, "remove_signal_handlers") as mock_remove:
            async with shutdown:
                pass

            mock_remove.assert_called_once()

    async def test_context_manager_runs_cleanup(self) -> None:
        """Exiting context should run cleanup callbacks."""
        callback = MagicMock()

        async with GracefulShutdown() as shutdown:
            shutdown.register_cleanup(callback)

        callback.assert_called_once()
