"""
Wirefly Bounded Channel
Bounded, closable, single-direction channel between asyncio tasks
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from wirefly.core.errors import ChannelClosed


class OverflowPolicy(Enum):
    """What a send does when the channel is full"""
    BLOCK = "block"
    DROP_OLDEST = "drop_oldest"


class ReceiveStatus(Enum):
    """Outcome of a receive"""
    RECEIVED = "received"
    EMPTY = "empty"
    CLOSED = "closed"


@dataclass(frozen=True)
class Receive:
    """Tagged receive result; item is only meaningful when RECEIVED"""

    status: ReceiveStatus
    item: Any = None

    @property
    def received(self) -> bool:
        return self.status is ReceiveStatus.RECEIVED

    @property
    def empty(self) -> bool:
        return self.status is ReceiveStatus.EMPTY

    @property
    def closed(self) -> bool:
        return self.status is ReceiveStatus.CLOSED


_EMPTY = Receive(ReceiveStatus.EMPTY)
_CLOSED = Receive(ReceiveStatus.CLOSED)


# Left in the queue once a closed channel is drained, so blocked getters wake up
_CLOSE_MARK = object()


class BoundedChannel:
    """
    FIFO channel with a fixed capacity and an explicit, one-way closed state.

    Items buffered before close() are still delivered; once drained, every
    receive reports CLOSED. Sending on a closed channel raises ChannelClosed.
    """

    def __init__(self, capacity: int, overflow: OverflowPolicy = OverflowPolicy.BLOCK):
        if capacity <= 0:
            raise ValueError(f"Channel capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.overflow = overflow

        self._queue = asyncio.Queue(maxsize=capacity)
        self._putters = set()
        self._closed = False
        self._marked = False

        self.metrics = {
            'sent': 0,
            'received': 0,
            'dropped': 0
        }

    def __len__(self) -> int:
        return self._queue.qsize() - (1 if self._marked else 0)

    def __bool__(self) -> bool:
        return True

    @property
    def closed(self) -> bool:
        return self._closed

    def full(self) -> bool:
        return self._queue.full()

    def try_send(self, item: Any) -> bool:
        """Send without waiting; False when full under the BLOCK policy"""
        if self._closed:
            raise ChannelClosed("send on closed channel")
        if self._queue.full():
            if self.overflow is not OverflowPolicy.DROP_OLDEST:
                return False
            self._queue.get_nowait()
            self.metrics['dropped'] += 1
        self._queue.put_nowait(item)
        self.metrics['sent'] += 1
        return True

    async def send(self, item: Any):
        """Send, waiting for space under the BLOCK policy"""
        if self.try_send(item):
            return

        putter = asyncio.ensure_future(self._queue.put(item))
        self._putters.add(putter)
        try:
            await asyncio.wait({putter})
        finally:
            self._putters.discard(putter)
            if not putter.done():
                putter.cancel()
        if putter.cancelled():
            raise ChannelClosed("channel closed while sending")
        self.metrics['sent'] += 1

    def _place_mark(self):
        if self._closed and not self._marked and self._queue.empty():
            self._queue.put_nowait(_CLOSE_MARK)
            self._marked = True

    def _took(self, item: Any) -> Receive:
        if item is _CLOSE_MARK:
            # Put it back for the next receiver
            self._queue.put_nowait(_CLOSE_MARK)
            return _CLOSED
        self.metrics['received'] += 1
        self._place_mark()
        return Receive(ReceiveStatus.RECEIVED, item)

    def try_receive(self) -> Receive:
        """Take the next item if one is buffered; never suspends"""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return _CLOSED if self._closed else _EMPTY
        return self._took(item)

    async def receive(self) -> Receive:
        """Wait for the next item; returns CLOSED once closed and drained"""
        result = self.try_receive()
        if not result.empty:
            return result
        return self._took(await self._queue.get())

    def close(self) -> bool:
        """Close the channel; returns False if it was already closed"""
        if self._closed:
            return False
        self._closed = True
        # Blocked senders fail; blocked receivers see the mark
        for putter in list(self._putters):
            putter.cancel()
        self._place_mark()
        return True

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        result = await self.receive()
        if result.closed:
            raise StopAsyncIteration
        return result.item

    def get_status(self) -> Dict[str, Any]:
        """Get current channel status"""
        return {
            'capacity': self.capacity,
            'buffered': len(self),
            'overflow': self.overflow.value,
            'closed': self._closed,
            'metrics': self.metrics.copy()
        }
