"""
Wirefly Node
Wires one peer together: transport, relay, tick engine and display log
"""

import logging
import time
from typing import Dict, Any, Optional

from wirefly.config import Config
from wirefly.core.display import DisplayEventStream
from wirefly.core.engine import EngineState, TickEngine
from wirefly.core.hub import LocalTransport, TopicHub
from wirefly.core.relay import MessageRelay
from wirefly.core.transport import Transport
from wirefly.core.ws_transport import WebSocketTransport
from wirefly.display_log import DisplayLog
from wirefly.identity import default_peer_name, new_peer_id


class WireflyNode:
    """A single synchronizing peer"""

    def __init__(self, config: Config, hub: Optional[TopicHub] = None,
                 transport: Optional[Transport] = None, peer_id: Optional[str] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.peer_id = peer_id or (transport.peer_id if transport is not None else new_peer_id())
        self.peer_name = config.PEER_NAME or default_peer_name(self.peer_id)

        self.hub = hub
        self.transport = transport

        self.relay: Optional[MessageRelay] = None
        self.engine: Optional[TickEngine] = None
        self.display: Optional[DisplayEventStream] = None
        self.display_log: Optional[DisplayLog] = None

        self.running = False
        self.started_at = None

    def _make_transport(self) -> Transport:
        if self.config.HUB_URL:
            return WebSocketTransport(self.config.HUB_URL, self.peer_id)
        if self.hub is None:
            self.hub = TopicHub(self.config.HUB_BUFFER_SIZE)
        return LocalTransport(self.hub, self.peer_id)

    async def start(self):
        """Join the topic and start ticking; TransportError propagates to the caller"""
        if self.running:
            self.logger.warning("Node already running")
            return

        if self.transport is None:
            self.transport = self._make_transport()

        self.relay = await MessageRelay.join(
            self.transport,
            self.peer_id,
            self.peer_name,
            self.config.TOPIC,
            self.config.SUBSCRIPTION_BUFFER_SIZE
        )
        self.display = DisplayEventStream(self.config.DISPLAY_BUFFER_SIZE, self.config.display_overflow)
        self.engine = TickEngine(self.relay, self.display, self.config.tick_settings())
        self.display_log = DisplayLog(self.display, self.config.DISPLAY_HISTORY)

        await self.display_log.start()
        await self.engine.start()

        self.running = True
        self.started_at = time.time()
        self.logger.info(f"Node {self.peer_name} syncing on '{self.config.TOPIC}'")

    async def stop(self):
        """Stop ticking and leave the topic"""
        if not self.running:
            return

        self.logger.info(f"Stopping node {self.peer_name}")
        self.running = False

        await self.engine.stop()
        await self.relay.close()
        await self.display_log.stop()

        self.logger.info("Node stopped")

    @property
    def ticking(self) -> bool:
        """Started, and the engine has neither halted nor stopped"""
        if not self.running or self.engine is None:
            return False
        return self.engine.state not in (EngineState.HALTED, EngineState.STOPPED)

    def health(self) -> str:
        """ok while ticking, otherwise halted or stopped"""
        if self.ticking:
            return "ok"
        if self.engine is not None and self.engine.state is EngineState.HALTED:
            return "halted"
        return "stopped"

    def get_status(self) -> Dict[str, Any]:
        """Get current node status"""
        status = {
            'running': self.ticking,
            'health': self.health(),
            'peer_id': self.peer_id,
            'peer_name': self.peer_name,
            'topic': self.config.TOPIC,
            'hub_url': self.config.HUB_URL or None,
            'uptime': time.time() - self.started_at if self.started_at else 0.0
        }
        if self.relay is not None:
            status['relay'] = self.relay.get_status()
        if self.engine is not None:
            status['engine'] = self.engine.get_status()
        if self.display_log is not None:
            status['display'] = self.display_log.metrics.copy()
        return status
