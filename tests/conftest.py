"""
Pytest configuration and shared fixtures.
"""

import asyncio
import os

import pytest

from wirefly.core.errors import TransportClosed, TransportError
from wirefly.core.messages import TickMessage, encode_tick
from wirefly.core.transport import TransportMessage

_CLOSE = object()


class FakeSubscription:
    """Scripted subscription: tests push deliveries and inspect publishes"""

    def __init__(self, peers=()):
        self.incoming = asyncio.Queue()
        self.published = []
        self.peers = set(peers)
        self.fail_publish = False
        self.cancelled = False

    def deliver(self, received_from: str, data: bytes):
        self.incoming.put_nowait(TransportMessage(received_from, data))

    def deliver_tick(self, sender_id: str, content: str = "tick", name: str = "remote"):
        self.deliver(sender_id, encode_tick(TickMessage(content, sender_id, name)))

    def close(self):
        self.incoming.put_nowait(_CLOSE)

    async def publish(self, data: bytes):
        if self.fail_publish:
            raise TransportError("publish refused")
        self.published.append(data)

    async def next_message(self) -> TransportMessage:
        item = await self.incoming.get()
        if item is _CLOSE:
            raise TransportClosed("fake transport closed")
        return item

    def list_peers(self):
        return set(self.peers)

    async def cancel(self):
        self.cancelled = True
        self.close()


class FakeTransport:
    def __init__(self, peer_id: str = "self-peer", fail_join: bool = False):
        self.peer_id = peer_id
        self.fail_join = fail_join
        self.subscription = FakeSubscription()
        self.joined = []

    async def join(self, topic: str) -> FakeSubscription:
        if self.fail_join:
            raise TransportError(f"cannot join {topic}")
        self.joined.append(topic)
        return self.subscription


@pytest.fixture
def fake_transport():
    """Transport whose subscription is driven by the test."""
    return FakeTransport()


@pytest.fixture
def settle():
    """Yield to the event loop so background read loops catch up."""
    async def _settle(rounds: int = 5):
        for _ in range(rounds):
            await asyncio.sleep(0)
    return _settle


@pytest.fixture
def fast_env(monkeypatch):
    """Environment for a node that ticks every few milliseconds."""
    for name in list(os.environ):
        if name.startswith("WIREFLY_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("WIREFLY_SUBTICK_MS", "1")
    monkeypatch.setenv("WIREFLY_SUBTICKS_PER_CYCLE", "20")
    monkeypatch.setenv("WIREFLY_DISPLAY_HISTORY", "1000")
    monkeypatch.setenv("WIREFLY_DISPLAY_OVERFLOW", "drop_oldest")
    return monkeypatch
