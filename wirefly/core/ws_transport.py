"""
Wirefly WebSocket Transport
Joins topics on a remote hub endpoint over websockets
"""

import asyncio
import logging
from typing import Set
from urllib.parse import quote

import websockets
from websockets.exceptions import ConnectionClosed

from wirefly.core.errors import DecodeError, TransportError, TransportClosed
from wirefly.core.frames import FrameType, parse_frame, publish_frame
from wirefly.core.transport import TransportMessage


class WebSocketSubscription:
    """Subscription backed by one websocket connection to a hub topic"""

    def __init__(self, connection, topic: str, peer_id: str):
        self.connection = connection
        self.topic = topic
        self.peer_id = peer_id
        self.logger = logging.getLogger(__name__)

        self.peers: Set[str] = set()
        self.metrics = {
            'frames_received': 0,
            'frames_skipped': 0,
            'frames_sent': 0
        }

    async def publish(self, data: bytes):
        """Send a publish frame to the hub"""
        try:
            await self.connection.send(publish_frame(data))
        except ConnectionClosed as e:
            raise TransportClosed(f"Hub connection for '{self.topic}' closed") from e
        except OSError as e:
            raise TransportError(f"Hub publish failed: {e}") from e
        self.metrics['frames_sent'] += 1

    async def next_message(self) -> TransportMessage:
        """Read frames until a message arrives; peer lists are absorbed on the way"""
        while True:
            try:
                text = await self.connection.recv()
            except ConnectionClosed as e:
                raise TransportClosed(f"Hub connection for '{self.topic}' closed") from e
            except OSError as e:
                raise TransportClosed(f"Hub connection for '{self.topic}' failed: {e}") from e

            self.metrics['frames_received'] += 1
            try:
                frame = parse_frame(text)
            except DecodeError as e:
                self.metrics['frames_skipped'] += 1
                self.logger.debug(f"Skipping hub frame: {e}")
                continue

            if frame['type'] is FrameType.PEERS:
                self.peers = set(frame['peers']) - {self.peer_id}
            elif frame['type'] is FrameType.MESSAGE:
                return TransportMessage(frame['from'], frame['data'])
            else:
                self.metrics['frames_skipped'] += 1

    def list_peers(self) -> Set[str]:
        """Last peer list announced by the hub"""
        return set(self.peers)

    async def cancel(self):
        """Close the hub connection"""
        await self.connection.close()


class WebSocketTransport:
    """Transport for a hub served at a ws:// or wss:// base URL"""

    def __init__(self, hub_url: str, peer_id: str, open_timeout: float = 10.0):
        self.hub_url = hub_url.rstrip('/')
        self.peer_id = peer_id
        self.open_timeout = open_timeout
        self.logger = logging.getLogger(__name__)

    def topic_url(self, topic: str) -> str:
        return f"{self.hub_url}/{quote(topic, safe='')}?peer={quote(self.peer_id, safe='')}"

    async def join(self, topic: str) -> WebSocketSubscription:
        """Open a connection to the hub's topic endpoint"""
        url = self.topic_url(topic)
        try:
            connection = await websockets.connect(url, open_timeout=self.open_timeout)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise TransportError(f"Could not join '{topic}' at {self.hub_url}: {e}") from e

        self.logger.info(f"Connected to hub {self.hub_url} for topic '{topic}'")
        return WebSocketSubscription(connection, topic, self.peer_id)
