"""
Wirefly Transport Contract
What the relay expects from a broadcast publish/subscribe transport
"""

from dataclasses import dataclass
from typing import Protocol, Set, runtime_checkable


@dataclass(frozen=True)
class TransportMessage:
    """A payload delivered by the transport and the peer that delivered it"""

    received_from: str
    data: bytes


@runtime_checkable
class Subscription(Protocol):
    """Handle on one joined topic"""

    async def publish(self, data: bytes) -> None:
        """Broadcast data to every topic member; raises TransportError"""
        ...

    async def next_message(self) -> TransportMessage:
        """Block until the next message; raises TransportClosed once torn down"""
        ...

    def list_peers(self) -> Set[str]:
        """Peers currently visible on the topic, excluding ourselves"""
        ...

    async def cancel(self) -> None:
        """Tear the subscription down; pending and later reads fail"""
        ...


@runtime_checkable
class Transport(Protocol):
    """Joins topics on behalf of one peer"""

    peer_id: str

    async def join(self, topic: str) -> Subscription:
        """Subscribe to a topic; raises TransportError"""
        ...
