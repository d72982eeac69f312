"""
Wirefly Topic Hub
In-process gossip-style broker: topic membership and fan-out
"""

import asyncio
import logging
from typing import Dict, Any, Set

from wirefly.core.channel import BoundedChannel, OverflowPolicy
from wirefly.core.errors import TransportError, TransportClosed
from wirefly.core.transport import TransportMessage

DEFAULT_MEMBER_BUFFER = 32


class HubSubscription:
    """One peer's membership in one hub topic"""

    def __init__(self, hub: 'TopicHub', topic: str, peer_id: str, buffer_size: int):
        self.hub = hub
        self.topic = topic
        self.peer_id = peer_id

        # Slow members lose their oldest messages rather than stall the topic
        self.queue = BoundedChannel(buffer_size, OverflowPolicy.DROP_OLDEST)
        self.peers_changed = asyncio.Event()
        self.peers_changed.set()

    @property
    def active(self) -> bool:
        return not self.queue.closed

    async def publish(self, data: bytes):
        """Broadcast to every member of the topic, ourselves included"""
        if not self.active:
            raise TransportClosed(f"Subscription to '{self.topic}' is closed")
        self.hub.deliver(self.topic, TransportMessage(self.peer_id, bytes(data)))

    async def next_message(self) -> TransportMessage:
        """Wait for the next delivered message"""
        result = await self.queue.receive()
        if result.closed:
            raise TransportClosed(f"Subscription to '{self.topic}' is closed")
        return result.item

    def list_peers(self) -> Set[str]:
        """Other members of the topic"""
        return self.hub.members(self.topic) - {self.peer_id}

    async def cancel(self):
        """Leave the topic"""
        self.hub.unsubscribe(self)


class TopicHub:
    """Routes every message published on a topic to all of its members"""

    def __init__(self, member_buffer_size: int = DEFAULT_MEMBER_BUFFER):
        self.logger = logging.getLogger(__name__)
        self.member_buffer_size = member_buffer_size

        self.topics: Dict[str, Dict[str, HubSubscription]] = {}
        self.closed = False

        self.metrics = {
            'published': 0,
            'delivered': 0,
            'dropped': 0,
            'joins': 0,
            'leaves': 0
        }

    def subscribe(self, topic: str, peer_id: str) -> HubSubscription:
        """Add a peer to a topic, replacing any previous membership it had"""
        if self.closed:
            raise TransportError("Topic hub is closed")
        if not topic:
            raise TransportError("Topic name must not be empty")

        members = self.topics.setdefault(topic, {})
        previous = members.get(peer_id)
        if previous is not None:
            self.logger.warning(f"Peer {peer_id} rejoined '{topic}', dropping old subscription")
            self.unsubscribe(previous)
            members = self.topics.setdefault(topic, {})

        subscription = HubSubscription(self, topic, peer_id, self.member_buffer_size)
        members[peer_id] = subscription
        self.metrics['joins'] += 1
        self.logger.info(f"Peer {peer_id} joined '{topic}' ({len(members)} members)")
        self._notify_membership(topic)
        return subscription

    def unsubscribe(self, subscription: HubSubscription):
        """Remove a membership and close its queue"""
        members = self.topics.get(subscription.topic, {})
        if members.get(subscription.peer_id) is subscription:
            del members[subscription.peer_id]
            self.metrics['leaves'] += 1
            self.logger.info(f"Peer {subscription.peer_id} left '{subscription.topic}'")
            if not members:
                self.topics.pop(subscription.topic, None)
            else:
                self._notify_membership(subscription.topic)
        subscription.queue.close()

    def deliver(self, topic: str, message: TransportMessage):
        """Fan a message out to every member of a topic"""
        self.metrics['published'] += 1
        for subscription in list(self.topics.get(topic, {}).values()):
            dropped_before = subscription.queue.metrics['dropped']
            subscription.queue.try_send(message)
            self.metrics['delivered'] += 1
            if subscription.queue.metrics['dropped'] > dropped_before:
                self.metrics['dropped'] += 1
                self.logger.debug(f"Member {subscription.peer_id} on '{topic}' is slow, dropped oldest message")

    def members(self, topic: str) -> Set[str]:
        """Peer ids subscribed to a topic"""
        return set(self.topics.get(topic, {}))

    def _notify_membership(self, topic: str):
        for subscription in self.topics.get(topic, {}).values():
            subscription.peers_changed.set()

    async def close(self):
        """Tear down every subscription on every topic"""
        if self.closed:
            return
        self.closed = True
        for members in list(self.topics.values()):
            for subscription in list(members.values()):
                self.unsubscribe(subscription)
        self.topics.clear()
        self.logger.info("Topic hub closed")

    def get_status(self) -> Dict[str, Any]:
        """Get current hub status"""
        return {
            'closed': self.closed,
            'topics': {topic: sorted(members) for topic, members in self.topics.items()},
            'metrics': self.metrics.copy()
        }


class LocalTransport:
    """Transport that joins topics on an in-process TopicHub"""

    def __init__(self, hub: TopicHub, peer_id: str):
        self.hub = hub
        self.peer_id = peer_id

    async def join(self, topic: str) -> HubSubscription:
        """Subscribe this peer to a hub topic"""
        return self.hub.subscribe(topic, self.peer_id)
