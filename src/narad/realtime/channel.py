"""
Realtime Channel

Per-connection handle used by the WebSocket front end. The front end owns
the socket; this class owns what happens on it:

    open()          -> heartbeat task: every `interval` seconds send
                       "Message #<n> at <iso>" and publish
                       {"type": "heartbeat", "count": n, "timestamp": ...}
    on_message(txt) -> send "Echo: <txt>" and publish
                       {"type": "user-message", "content": txt, "timestamp": ...}
    close()         -> cancel the heartbeat task (idempotent)

The timer handle lives on the channel, so two connections never share or
cancel each other's heartbeat.
"""

import asyncio
import contextlib
import itertools
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from narad.core.config.constants import RealtimeEventType
from narad.core.exceptions import NaradError
from narad.core.logging.logger import get_logger
from narad.infrastructure.message_queue import KafkaBroker

logger = get_logger(__name__)

_channel_ids = itertools.count(1)


class RealtimeChannel:
    """
    Usage:
        async with RealtimeChannel(websocket.send_text, broker) as channel:
            async for text in websocket.iter_text():
                await channel.on_message(text)
    """

    def __init__(
        self,
        send: Callable[[str], Awaitable[None]],
        broker: KafkaBroker,
        interval: float = 1.0,
        topic: str = "websocket",
    ):
        self._send = send
        self._broker = broker
        self._interval = interval
        self._topic = topic
        self._heartbeat_task: asyncio.Task | None = None
        self._count = 0
        self.channel_id = next(_channel_ids)

    @property
    def is_open(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    @property
    def heartbeat_count(self) -> int:
        return self._count

    async def open(self) -> None:
        if self.is_open:
            return
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(), name=f"narad-heartbeat-{self.channel_id}"
        )
        logger.info("Client connected", stage="WS.OPEN", channel_id=self.channel_id)

    async def on_message(self, text: str) -> None:
        logger.debug("Message received", stage="WS.MSG", channel_id=self.channel_id)
        await self._send(f"Echo: {text}")
        await self._publish({"type": RealtimeEventType.USER_MESSAGE.value, "content": text})

    async def close(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Client disconnected", stage="WS.CLOSE", channel_id=self.channel_id, heartbeats=self._count)

    async def __aenter__(self) -> "RealtimeChannel":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._count += 1

            try:
                await self._send(f"Message #{self._count} at {_now_iso()}")
            except Exception as e:
                # Socket is gone; the front end will call close()
                logger.warning("Heartbeat send failed", stage="WS.HEARTBEAT.ERR", channel_id=self.channel_id, error=str(e))
                return

            await self._publish({"type": RealtimeEventType.HEARTBEAT.value, "count": self._count})

    async def _publish(self, message: dict) -> None:
        message["timestamp"] = _now_iso()
        try:
            await self._broker.publish(self._topic, message)
        except NaradError as e:
            logger.error(
                "Realtime event not published",
                stage="WS.PUB.ERR",
                channel_id=self.channel_id,
                event_type=message["type"],
                error=e.message,
            )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
