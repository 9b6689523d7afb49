"""
Bot: wires the startup sequence, the event stream and the shutdown handler.
"""

from __future__ import annotations

from loguru import logger

from samplebot.bootstrap import Bootstrapper, ReadySession
from samplebot.clients.base import EventStream, SessionClient
from samplebot.clients.mattermost import MattermostClient, WebSocketEventStream
from samplebot.config import BotConfig
from samplebot.dispatcher import Dispatcher
from samplebot.errors import BootstrapError, ChatError, log_error_details
from samplebot.rules import ReplyEngine
from samplebot.shutdown import ShutdownHandler


class Bot:
    """The sample bot process.

    Usage::

        code = await Bot(BotConfig.from_env()).run()
        sys.exit(code)
    """

    def __init__(
        self,
        config: BotConfig | None = None,
        client: SessionClient | None = None,
        stream: EventStream | None = None,
        *,
        install_signals: bool = True,
    ) -> None:
        self.config = config or BotConfig()
        self.client = client or MattermostClient(
            self.config.server_url, timeout=self.config.request_timeout
        )
        self.stream = stream or WebSocketEventStream()
        self.install_signals = install_signals

        self.session: ReadySession | None = None
        self.dispatcher: Dispatcher | None = None
        self.shutdown: ShutdownHandler | None = None

    async def run(self) -> int:
        """Run until shutdown. Returns the process exit code."""
        logger.info(self.config.name)
        try:
            return await self._run()
        finally:
            await self.client.close()

    async def _run(self) -> int:
        try:
            self.session = await Bootstrapper(self.client, self.config).run()
        except BootstrapError as exc:
            logger.error(f"[bot] Startup aborted at step {exc.step!r}")
            return 1

        try:
            await self.stream.connect(self.config.ws_url, self.session.token)
        except ChatError as exc:
            logger.error("[bot] We failed to connect to the web socket")
            log_error_details(exc)
            return 1

        self.dispatcher = Dispatcher(
            self.client,
            self.stream,
            ReplyEngine(self.session.log_channel_id, self.session.user.id),
        )
        self.shutdown = ShutdownHandler(
            self.client, self.stream, self.dispatcher, self.session, self.config
        )
        if self.install_signals:
            self.shutdown.install()

        try:
            await self.dispatcher.run()
            if self.shutdown.triggered:
                await self.shutdown.wait()
                return ShutdownHandler.exit_code

            # Connection dropped underneath us; a signal arriving now joins this pass
            logger.warning("[bot] Event stream closed unexpectedly, shutting down")
            self.shutdown.trigger()
            await self.shutdown.wait()
            return 1
        finally:
            self.shutdown.uninstall()
