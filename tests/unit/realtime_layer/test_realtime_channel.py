"""
Unit Tests for the Realtime Channel
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from narad.core.exceptions import BrokerConnectionError
from narad.realtime import RealtimeChannel


@pytest.fixture
def send():
    return AsyncMock()


async def wait_for_heartbeats(channel, count, timeout=1.0):
    async def poll():
        while channel.heartbeat_count < count:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout)


@pytest.mark.unit
class TestHeartbeat:
    @pytest.mark.asyncio
    async def test_heartbeat_sends_and_publishes(self, send, mock_broker):
        channel = RealtimeChannel(send, mock_broker, interval=0.01)

        await channel.open()
        await wait_for_heartbeats(channel, 2)
        await channel.close()

        assert send.await_args_list[0].args[0].startswith("Message #1 at ")
        assert send.await_args_list[1].args[0].startswith("Message #2 at ")

        topic, first = mock_broker.published[0]
        assert topic == "websocket"
        assert first["type"] == "heartbeat"
        assert first["count"] == 1
        assert first["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_close_stops_heartbeat(self, send, mock_broker):
        channel = RealtimeChannel(send, mock_broker, interval=0.01)
        await channel.open()
        await wait_for_heartbeats(channel, 1)

        await channel.close()
        sent = send.await_count
        await asyncio.sleep(0.05)

        assert send.await_count == sent
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, send, mock_broker):
        channel = RealtimeChannel(send, mock_broker, interval=0.01)
        await channel.close()

        await channel.open()
        await channel.close()
        await channel.close()

    @pytest.mark.asyncio
    async def test_channels_have_independent_timers(self, mock_broker):
        first_send, second_send = AsyncMock(), AsyncMock()
        first = RealtimeChannel(first_send, mock_broker, interval=0.01)
        second = RealtimeChannel(second_send, mock_broker, interval=0.01)

        await first.open()
        await second.open()
        await first.close()
        await wait_for_heartbeats(second, 2)
        await second.close()

        assert second.heartbeat_count >= 2
        assert first.channel_id != second.channel_id

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_heartbeat_running(self, send, mock_broker):
        mock_broker.publish.side_effect = BrokerConnectionError("Kafka producer not connected")
        channel = RealtimeChannel(send, mock_broker, interval=0.01)

        async with channel:
            await wait_for_heartbeats(channel, 3)

        assert send.await_count >= 3

    @pytest.mark.asyncio
    async def test_send_failure_ends_heartbeat(self, mock_broker):
        send = AsyncMock(side_effect=ConnectionResetError("client went away"))
        channel = RealtimeChannel(send, mock_broker, interval=0.01)

        await channel.open()
        await asyncio.sleep(0.05)

        assert send.await_count == 1
        assert not channel.is_open
        await channel.close()


@pytest.mark.unit
class TestMessages:
    @pytest.mark.asyncio
    async def test_echo_and_publish(self, send, mock_broker):
        async with RealtimeChannel(send, mock_broker, interval=10) as channel:
            await channel.on_message("hello")

        send.assert_awaited_once_with("Echo: hello")
        topic, message = mock_broker.published[0]
        assert topic == "websocket"
        assert message["type"] == "user-message"
        assert message["content"] == "hello"
