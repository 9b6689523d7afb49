"""
Dispatcher — routes pushed events to the reply engine.

One background pump task drains the event stream into an asyncio.Queue;
``run()`` is the single consumer, so events are handled strictly in arrival
order and one at a time. The loop ends when ``stop()`` is called or the
stream ends (connection closed).
"""

from __future__ import annotations

import asyncio

from loguru import logger

from samplebot.clients.base import EventStream, InboundEvent, OutgoingMessage, SessionClient
from samplebot.errors import ChatError, DeserializationError, log_error_details
from samplebot.rules import ReplyEngine

# Queue sentinels
_STOP = object()
_STREAM_ENDED = object()


class Dispatcher:
    """Single-consumer event loop.

    Usage::

        dispatcher = Dispatcher(client, stream, engine)
        stopped = await dispatcher.run()   # True if stop() was called
    """

    def __init__(
        self,
        client: SessionClient,
        stream: EventStream,
        engine: ReplyEngine,
    ) -> None:
        self.client = client
        self.stream = stream
        self.engine = engine

        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._stopping = False
        self.handled = 0

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> bool:
        """Consume events until stopped. Returns True when stop() ended it."""
        pump = asyncio.create_task(self._pump(), name="dispatcher:pump")
        logger.info("[dispatcher] Listening for events")
        try:
            while True:
                item = await self._queue.get()
                if item is _STOP:
                    return True
                if item is _STREAM_ENDED:
                    logger.warning("[dispatcher] Event stream ended")
                    return self._stopping
                await self.handle(item)  # type: ignore[arg-type]
        finally:
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                logger.opt(exception=exc).error(f"[dispatcher] Event pump crashed: {exc!r}")

    def stop(self) -> None:
        """Wake the consumer and end run(). Safe to call more than once."""
        if self._stopping:
            return
        self._stopping = True
        self._queue.put_nowait(_STOP)

    async def _pump(self) -> None:
        try:
            async for event in self.stream.events():
                self._queue.put_nowait(event)
        except ChatError as exc:
            logger.error("[dispatcher] Event stream failed")
            log_error_details(exc)
        finally:
            self._queue.put_nowait(_STREAM_ENDED)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def handle(self, event: InboundEvent) -> None:
        """Route one event. Never raises for bad payloads or failed sends."""
        if not event.is_posted:
            return

        try:
            post = event.post()
        except DeserializationError as exc:
            logger.debug(f"[dispatcher] Dropping undecodable post event: {exc.message}")
            return

        reply = self.engine.decide(event.channel_id, post)
        if reply is None:
            return

        self.handled += 1
        logger.info(f"[dispatcher] Responding to logging channel msg {post.id}: {post.message[:80]!r}")
        out = OutgoingMessage(
            channel_id=event.channel_id,
            text=reply.text,
            parent_id=reply.parent_id,
        )
        try:
            await self.client.create_post(out)
        except ChatError as exc:
            logger.error("[dispatcher] We failed to send a message to the logging channel")
            log_error_details(exc)
