"""
Wirefly Display Log
Renders display events to the log and keeps a short history for the HTTP surface
"""

import asyncio
import logging
from collections import deque
from typing import Dict, Any, List, Optional

from wirefly.core.display import DisplayEventStream
from wirefly.core.messages import DisplayEvent, DisplayKind


def render_event(event: DisplayEvent) -> str:
    """One-line rendering of a display event"""
    if event.kind is DisplayKind.SELF_TICK:
        return f"Tick (self) {event.sender_peer_name}"
    return f"{event.content} (external) from {event.sender_peer_name} [{event.sender_id[-8:]}]"


class DisplayLog:
    """Drains a display stream until it closes"""

    def __init__(self, stream: DisplayEventStream, history: int = 100):
        self.stream = stream
        self.logger = logging.getLogger(__name__)
        self.history = deque(maxlen=history)
        self.task: Optional[asyncio.Task] = None

        self.metrics = {
            'self_ticks': 0,
            'external_ticks': 0
        }

    def record(self, event: DisplayEvent):
        """Log an event and add it to the history"""
        self.history.append(event)
        if event.kind is DisplayKind.SELF_TICK:
            self.metrics['self_ticks'] += 1
        else:
            self.metrics['external_ticks'] += 1
        self.logger.info(render_event(event))

    async def consume(self):
        async for event in self.stream:
            self.record(event)
        self.logger.info("Display stream closed")

    async def start(self):
        if self.task is None or self.task.done():
            self.task = asyncio.create_task(self.consume())

    async def stop(self):
        if self.task is None:
            return
        if not self.task.done():
            self.task.cancel()
        try:
            await self.task
        except asyncio.CancelledError:
            pass

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent events, newest last"""
        if limit <= 0:
            return []
        return [event.to_dict() for event in list(self.history)[-limit:]]
