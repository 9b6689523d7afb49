"""
Graceful shutdown on SIGINT / SIGTERM.

The first signal schedules a single shutdown pass: close the event stream,
announce in the logging channel, stop the dispatcher. Later signals are
ignored.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Iterable

from loguru import logger

from samplebot.bootstrap import ReadySession, announce
from samplebot.clients.base import EventStream, SessionClient
from samplebot.config import BotConfig
from samplebot.dispatcher import Dispatcher

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownHandler:
    """Coordinates the one-time shutdown with the running dispatcher."""

    exit_code = 0

    def __init__(
        self,
        client: SessionClient,
        stream: EventStream,
        dispatcher: Dispatcher,
        session: ReadySession,
        config: BotConfig,
    ) -> None:
        self.client = client
        self.stream = stream
        self.dispatcher = dispatcher
        self.session = session
        self.config = config

        self._task: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._signals: tuple[signal.Signals, ...] = ()

    @property
    def triggered(self) -> bool:
        return self._task is not None

    def install(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
    ) -> None:
        """Register signal handlers on the running loop."""
        self._loop = loop or asyncio.get_running_loop()
        self._signals = tuple(signals)
        for sig in self._signals:
            self._loop.add_signal_handler(sig, lambda s=sig: self._on_signal(s))
        logger.debug(f"[shutdown] Signal handlers registered: {[s.name for s in self._signals]}")

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for sig in self._signals:
            self._loop.remove_signal_handler(sig)
        self._signals = ()

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"[shutdown] Received {sig.name}")
        self.trigger()

    def trigger(self) -> None:
        """Start the shutdown pass. Only the first call has an effect."""
        if self._task is not None:
            logger.debug("[shutdown] Already shutting down")
            return
        self._task = asyncio.get_running_loop().create_task(
            self.shutdown(), name="shutdown"
        )

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def shutdown(self) -> None:
        if self.stream.is_open:
            try:
                await self.stream.close()
            except Exception as exc:
                logger.warning(f"[shutdown] Error closing event stream: {exc}")

        await announce(self.client, self.session, self.config.stopped_message)
        self.dispatcher.stop()
        logger.info("[shutdown] Shutdown complete")
