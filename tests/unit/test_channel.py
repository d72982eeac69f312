"""Unit tests for BoundedChannel."""

import asyncio

import pytest

from wirefly.core.channel import BoundedChannel, OverflowPolicy, ReceiveStatus
from wirefly.core.errors import ChannelClosed


class TestTryReceive:
    """Tests for the non-blocking receive."""

    def test_empty_channel_reports_empty(self):
        channel = BoundedChannel(4)
        result = channel.try_receive()
        assert result.status is ReceiveStatus.EMPTY
        assert result.item is None

    def test_fifo_order(self):
        channel = BoundedChannel(4)
        for item in ("a", "b", "c"):
            assert channel.try_send(item)
        assert [channel.try_receive().item for _ in range(3)] == ["a", "b", "c"]

    def test_closed_channel_drains_before_reporting_closed(self):
        channel = BoundedChannel(4)
        channel.try_send("last")
        channel.close()
        first = channel.try_receive()
        assert first.received and first.item == "last"
        assert channel.try_receive().closed
        assert channel.try_receive().closed


class TestClose:
    """Tests for the closed state."""

    def test_close_is_one_way(self):
        channel = BoundedChannel(2)
        assert channel.close() is True
        assert channel.close() is False
        assert channel.closed

    def test_send_on_closed_raises(self):
        channel = BoundedChannel(2)
        channel.close()
        with pytest.raises(ChannelClosed):
            channel.try_send("x")

    @pytest.mark.asyncio
    async def test_async_send_on_closed_raises(self):
        channel = BoundedChannel(2)
        channel.close()
        with pytest.raises(ChannelClosed):
            await channel.send("x")

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_receiver(self):
        channel = BoundedChannel(2)
        waiter = asyncio.create_task(channel.receive())
        await asyncio.sleep(0)
        assert not waiter.done()

        channel.close()
        result = await asyncio.wait_for(waiter, timeout=1.0)
        assert result.closed

    @pytest.mark.asyncio
    async def test_close_wakes_blocked_sender(self):
        channel = BoundedChannel(1)
        channel.try_send("full")
        sender = asyncio.create_task(channel.send("blocked"))
        await asyncio.sleep(0)

        channel.close()
        with pytest.raises(ChannelClosed):
            await asyncio.wait_for(sender, timeout=1.0)

    @pytest.mark.asyncio
    async def test_close_wakes_every_waiting_receiver(self):
        channel = BoundedChannel(2)
        first = asyncio.create_task(channel.receive())
        second = asyncio.create_task(channel.receive())
        await asyncio.sleep(0)

        channel.try_send("only")
        channel.close()
        results = await asyncio.wait_for(asyncio.gather(first, second), timeout=1.0)

        assert [r.status for r in results] == [ReceiveStatus.RECEIVED, ReceiveStatus.CLOSED]
        assert results[0].item == "only"
        assert len(channel) == 0

    @pytest.mark.asyncio
    async def test_async_iteration_ends_at_close(self):
        channel = BoundedChannel(4)
        for item in (1, 2, 3):
            await channel.send(item)
        channel.close()
        assert [item async for item in channel] == [1, 2, 3]


class TestOverflow:
    """Tests for the two overflow policies."""

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            BoundedChannel(0)

    def test_empty_channel_is_truthy(self):
        channel = BoundedChannel(2)
        assert len(channel) == 0
        assert channel
        assert (channel or None) is channel

    def test_try_send_full_under_block(self):
        channel = BoundedChannel(1)
        assert channel.try_send("a")
        assert channel.try_send("b") is False
        assert len(channel) == 1

    @pytest.mark.asyncio
    async def test_send_blocks_until_space(self):
        channel = BoundedChannel(1)
        await channel.send("first")
        sender = asyncio.create_task(channel.send("second"))
        await asyncio.sleep(0)
        assert not sender.done()

        assert channel.try_receive().item == "first"
        await asyncio.wait_for(sender, timeout=1.0)
        assert channel.try_receive().item == "second"

    @pytest.mark.asyncio
    async def test_drop_oldest_never_blocks(self):
        channel = BoundedChannel(2, OverflowPolicy.DROP_OLDEST)
        for item in ("a", "b", "c"):
            await channel.send(item)
        assert channel.metrics["dropped"] == 1
        assert [channel.try_receive().item for _ in range(2)] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_cancelled_receiver_does_not_lose_items(self):
        channel = BoundedChannel(2)
        waiter = asyncio.create_task(channel.receive())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        channel.try_send("kept")
        assert channel.try_receive().item == "kept"

    def test_status(self):
        channel = BoundedChannel(3, OverflowPolicy.DROP_OLDEST)
        channel.try_send(1)
        status = channel.get_status()
        assert status["buffered"] == 1
        assert status["overflow"] == "drop_oldest"
        assert status["closed"] is False
