"""Graceful shutdown handler for the Tentrackule service.

SIGTERM and SIGINT request a graceful stop: pollers finish their current
cycle, the health server closes and the database engine is disposed. A
second signal exits immediately.

Usage:
    ```python
    async with GracefulShutdown() as shutdown:
        await pipeline.start()
        shutdown.register_cleanup(pipeline.stop)
        await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

# Default time budget for all cleanup callbacks, in seconds
DEFAULT_SHUTDOWN_TIMEOUT = 30.0

# Signals to trap for graceful shutdown
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class GracefulShutdown:
    """Signal trap and cleanup coordinator.

    Cleanup callbacks run in reverse registration order, so resources
    registered first (engine, HTTP clients) are released last.
    """

    def __init__(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """Initialize the shutdown handler.

        Args:
            timeout: Time budget in seconds shared by all cleanup callbacks.
        """
        self._timeout = timeout
        self._event: asyncio.Event | None = None
        self._requested = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._fallback_handlers: dict[signal.Signals, Any] = {}
        self._cleanup_callbacks: list[Callable[[], Any]] = []

    @property
    def timeout(self) -> float:
        """Cleanup time budget in seconds."""
        return self._timeout

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._requested

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
        return self._event

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a sync or async callable to run on shutdown."""
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Request shutdown from application code."""
        if self._requested:
            return
        self._requested = True
        logger.info("Shutdown requested")
        self._get_event().set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._get_event().wait()

    def install_signal_handlers(self) -> None:
        """Trap SIGTERM and SIGINT.

        Uses the event loop's signal support and falls back to
        ``signal.signal`` where the loop does not provide it.
        """
        self._loop = asyncio.get_running_loop()
        self._get_event()

        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
            except NotImplementedError:
                self._fallback_handlers[sig] = signal.signal(sig, self._handle_signal_frame)
            except (ValueError, OSError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

        logger.debug("Signal handlers installed")

    def remove_signal_handlers(self) -> None:
        """Remove the handlers installed by install_signal_handlers()."""
        if self._loop is not None:
            for sig in SHUTDOWN_SIGNALS:
                with suppress(ValueError, OSError, NotImplementedError):
                    self._loop.remove_signal_handler(sig)

        for sig, original in self._fallback_handlers.items():
            with suppress(ValueError, OSError):
                signal.signal(sig, original)
        self._fallback_handlers.clear()
        logger.debug("Signal handlers removed")

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._requested:
            logger.warning("Received %s again, exiting now", sig.name)
            sys.exit(128 + sig.value)
        logger.info("Received %s, shutting down...", sig.name)
        self.request_shutdown()

    def _handle_signal_frame(self, sig: int, _frame: FrameType | None) -> None:
        self._handle_signal(signal.Signals(sig))

    async def run_cleanup_callbacks(self) -> None:
        """Run cleanup callbacks, newest first, within the time budget.

        A failing or overrunning callback is logged and the remaining
        callbacks still run.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout

        for callback in reversed(self._cleanup_callbacks):
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    remaining = max(deadline - loop.time(), 0.0)
                    await asyncio.wait_for(result, timeout=remaining)
            except TimeoutError:
                logger.error("Cleanup callback %r timed out", callback)
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

        self._cleanup_callbacks.clear()

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
