"""
Wirefly Message Relay
Bridges a broadcast subscription into a typed, filtered, bounded local stream
"""

import asyncio
import logging
from typing import Dict, Any, Optional, Set

from wirefly.core.channel import BoundedChannel
from wirefly.core.errors import ChannelClosed, DecodeError, PublishError, TransportError, TransportClosed
from wirefly.core.messages import TickMessage, decode_tick, encode_tick
from wirefly.core.transport import Subscription, Transport

# Number of decoded inbound ticks buffered per topic
SUBSCRIPTION_BUFFER_SIZE = 128


class MessageRelay:
    """
    Owns one topic subscription.

    A background read loop decodes every delivered payload, drops our own
    ticks and anything undecodable, and pushes the rest onto ``inbound``.
    A full inbound stream stalls the read loop, so network ingestion never
    outruns the engine. When the transport fails the loop closes
    ``inbound`` and exits; the stream is never reopened.
    """

    def __init__(self, subscription: Subscription, self_id: str, peer_name: str,
                 topic_name: str, buffer_size: int = SUBSCRIPTION_BUFFER_SIZE):
        self.subscription = subscription
        self.self_id = self_id
        self.peer_name = peer_name
        self.topic_name = topic_name
        self.logger = logging.getLogger(__name__)

        self.inbound = BoundedChannel(buffer_size)
        self.read_task: Optional[asyncio.Task] = None

        self.metrics = {
            'received': 0,
            'forwarded': 0,
            'self_dropped': 0,
            'decode_failures': 0,
            'published': 0,
            'publish_failures': 0,
            'stream_closures': 0
        }

    @classmethod
    async def join(cls, transport: Transport, self_id: str, peer_name: str, topic_name: str,
                   buffer_size: int = SUBSCRIPTION_BUFFER_SIZE) -> 'MessageRelay':
        """Subscribe to a topic and start relaying it"""
        try:
            subscription = await transport.join(topic_name)
        except TransportError:
            raise
        except (OSError, ValueError) as e:
            raise TransportError(f"Failed to join topic '{topic_name}': {e}") from e

        relay = cls(subscription, self_id, peer_name, topic_name, buffer_size)
        relay.start()
        return relay

    def start(self):
        """Start the read loop"""
        if self.read_task is not None:
            self.logger.warning("Relay read loop already started")
            return
        self.read_task = asyncio.create_task(self._read_loop())
        self.logger.info(f"Relaying topic '{self.topic_name}' as {self.peer_name} ({self.self_id})")

    def is_own(self, sender_id: str) -> bool:
        return sender_id == self.self_id

    async def publish(self, content: str):
        """Broadcast a tick carrying our identity; raises PublishError"""
        try:
            payload = encode_tick(TickMessage(content, self.self_id, self.peer_name))
            await self.subscription.publish(payload)
        except (TransportError, TypeError, ValueError) as e:
            self.metrics['publish_failures'] += 1
            raise PublishError(f"Failed to publish to '{self.topic_name}': {e}") from e
        self.metrics['published'] += 1

    def list_peers(self) -> Set[str]:
        """Snapshot of the peers visible on our topic"""
        return set(self.subscription.list_peers())

    def _close_inbound(self):
        if self.inbound.close():
            self.metrics['stream_closures'] += 1
            self.logger.info(f"Inbound stream for '{self.topic_name}' closed")

    async def _read_loop(self):
        """Pull messages off the subscription and forward other peers' ticks"""
        try:
            while True:
                try:
                    message = await self.subscription.next_message()
                except TransportClosed:
                    self.logger.info(f"Subscription to '{self.topic_name}' ended")
                    return
                except TransportError as e:
                    self.logger.error(f"Transport read failed on '{self.topic_name}': {e}")
                    return

                self.metrics['received'] += 1

                # only forward messages delivered by others
                if self.is_own(message.received_from):
                    self.metrics['self_dropped'] += 1
                    continue

                try:
                    tick = decode_tick(message.data)
                except DecodeError as e:
                    self.metrics['decode_failures'] += 1
                    self.logger.debug(f"Dropping undecodable message from {message.received_from}: {e}")
                    continue

                if self.is_own(tick.sender_id):
                    self.metrics['self_dropped'] += 1
                    continue

                try:
                    await self.inbound.send(tick)
                except ChannelClosed:
                    return
                self.metrics['forwarded'] += 1
        finally:
            self._close_inbound()

    async def close(self):
        """Cancel the subscription and wait for the read loop to wind down"""
        try:
            await self.subscription.cancel()
        except (TransportError, OSError) as e:
            self.logger.warning(f"Error cancelling subscription to '{self.topic_name}': {e}")

        if self.read_task is not None and not self.read_task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self.read_task), timeout=1.0)
            except asyncio.TimeoutError:
                # Read loop is parked on a full inbound stream
                self.read_task.cancel()
                try:
                    await self.read_task
                except asyncio.CancelledError:
                    pass
        self._close_inbound()

    def get_status(self) -> Dict[str, Any]:
        """Get current relay status"""
        return {
            'topic': self.topic_name,
            'self_id': self.self_id,
            'peer_name': self.peer_name,
            'running': self.read_task is not None and not self.read_task.done(),
            'peers': sorted(self.list_peers()),
            'inbound': self.inbound.get_status(),
            'metrics': self.metrics.copy()
        }
