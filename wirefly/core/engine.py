"""
Wirefly Tick Engine
Pulse-coupled phase synchronization: tick on a fixed cycle, tick a little
sooner every time another peer is heard ticking
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional

from wirefly.core.display import DisplayEventStream
from wirefly.core.errors import ChannelClosed, EngineHalted, PublishError
from wirefly.core.messages import DisplayEvent, TickMessage
from wirefly.core.relay import MessageRelay

SUBTICKS_PER_CYCLE = 250      # 250 * 10 ms = 2.5 s between ticks
SUBTICK_SECONDS = 0.010
BUMP_FACTOR = 0.08
TICK_CONTENT = "tick"


@dataclass(frozen=True)
class TickSettings:
    """Cycle shape and coupling strength"""

    subticks_per_cycle: int = SUBTICKS_PER_CYCLE
    subtick_seconds: float = SUBTICK_SECONDS
    bump_factor: float = BUMP_FACTOR

    def __post_init__(self):
        if self.subticks_per_cycle <= 0:
            raise ValueError(f"subticks_per_cycle must be positive, got {self.subticks_per_cycle}")
        if self.subtick_seconds < 0:
            raise ValueError(f"subtick_seconds must not be negative, got {self.subtick_seconds}")
        if self.bump_factor < 0:
            raise ValueError(f"bump_factor must not be negative, got {self.bump_factor}")

    @property
    def cycle_seconds(self) -> float:
        return self.subticks_per_cycle * self.subtick_seconds


class EngineState(Enum):
    """Lifecycle of a tick engine"""
    IDLE = "idle"
    RUNNING = "running"
    HALTED = "halted"
    STOPPED = "stopped"


@dataclass(frozen=True)
class StepResult:
    """What happened during one subtick"""

    subtick: int
    observed: Optional[TickMessage] = None
    ticked: bool = False
    halted: bool = False


def advance_phase(subtick: int, bump_factor: float = BUMP_FACTOR) -> int:
    """Phase after hearing another peer tick: pushed forward in proportion to progress made"""
    return subtick + math.floor(subtick * bump_factor)


class TickEngine:
    """Runs the subtick loop for one peer"""

    def __init__(self, relay: MessageRelay, display: DisplayEventStream,
                 settings: Optional[TickSettings] = None, phase: int = 0):
        self.relay = relay
        self.display = display
        self.settings = settings or TickSettings()
        self.logger = logging.getLogger(__name__)

        if not 0 <= phase < self.settings.subticks_per_cycle:
            raise ValueError(f"Initial phase {phase} outside cycle of {self.settings.subticks_per_cycle}")

        # Phase state, touched only by step()
        self.subtick = phase
        self.state = EngineState.IDLE

        self.cancel_event = asyncio.Event()
        self.run_task: Optional[asyncio.Task] = None

        self.metrics = {
            'steps': 0,
            'cycles': 0,
            'external_ticks': 0,
            'publish_failures': 0,
            'last_tick_time': None
        }

    async def step(self) -> StepResult:
        """Advance by one subtick; raises EngineHalted once the inbound stream has closed"""
        if self.state is EngineState.HALTED:
            raise EngineHalted("Tick engine halted: inbound stream closed")

        self.metrics['steps'] += 1
        observed = None

        result = self.relay.inbound.try_receive()
        if result.closed:
            await self._halt()
            return StepResult(self.subtick, halted=True)

        if result.received:
            observed = result.item
            self.metrics['external_ticks'] += 1
            await self._emit(DisplayEvent.external(observed))
            self.subtick = advance_phase(self.subtick, self.settings.bump_factor)

        self.subtick += 1
        ticked = False
        if self.subtick >= self.settings.subticks_per_cycle:
            await self._complete_cycle()
            ticked = True

        return StepResult(self.subtick, observed, ticked)

    async def _complete_cycle(self):
        """Tell the network and the display that we ticked, then start over"""
        try:
            await self.relay.publish(TICK_CONTENT)
        except PublishError as e:
            self.metrics['publish_failures'] += 1
            self.logger.warning(f"Tick publish failed, continuing cycle: {e}")

        await self._emit(DisplayEvent.own_tick(TICK_CONTENT, self.relay.self_id, self.relay.peer_name))

        self.subtick = 0
        self.metrics['cycles'] += 1
        self.metrics['last_tick_time'] = asyncio.get_running_loop().time()

    async def _emit(self, event: DisplayEvent):
        try:
            await self.display.send(event)
        except ChannelClosed:
            self.logger.debug(f"Display stream closed, dropping {event.kind.value} event")

    async def _halt(self):
        self.state = EngineState.HALTED
        self.display.close()
        self.logger.error(f"Inbound stream for '{self.relay.topic_name}' closed, tick engine halted")

    async def run(self, cancel: Optional[asyncio.Event] = None):
        """Step every subtick until cancelled or the inbound stream closes"""
        cancel = cancel or self.cancel_event
        if self.state is EngineState.HALTED:
            raise EngineHalted("Tick engine halted: inbound stream closed")

        self.state = EngineState.RUNNING
        self.logger.info(
            f"Tick engine started: {self.settings.subticks_per_cycle} subticks of "
            f"{self.settings.subtick_seconds * 1000:.0f} ms, bump {self.settings.bump_factor}"
        )
        try:
            while not cancel.is_set():
                await asyncio.sleep(self.settings.subtick_seconds)
                if cancel.is_set():
                    break
                result = await self.step()
                if result.halted:
                    return
            self.state = EngineState.STOPPED
            self.logger.info("Tick engine stopped")
        finally:
            if self.state is EngineState.RUNNING:
                self.state = EngineState.STOPPED
            self.display.close()

    async def start(self):
        """Start the step loop as a background task"""
        if self.run_task is not None and not self.run_task.done():
            self.logger.warning("Tick engine already running")
            return
        self.cancel_event.clear()
        self.run_task = asyncio.create_task(self.run(self.cancel_event))

    async def stop(self, timeout: float = 1.0):
        """Signal the step loop to stop and wait for it"""
        if self.run_task is None:
            return
        self.cancel_event.set()
        done, _ = await asyncio.wait({self.run_task}, timeout=timeout)
        if not done:
            # Still parked on a full display stream
            self.run_task.cancel()
            try:
                await self.run_task
            except asyncio.CancelledError:
                pass
        elif not self.run_task.cancelled() and self.run_task.exception() is not None:
            self.logger.error(f"Tick engine exited with error: {self.run_task.exception()}")

    def get_status(self) -> Dict[str, Any]:
        """Get current engine status"""
        return {
            'state': self.state.value,
            'subtick': self.subtick,
            'subticks_per_cycle': self.settings.subticks_per_cycle,
            'subtick_seconds': self.settings.subtick_seconds,
            'bump_factor': self.settings.bump_factor,
            'display': self.display.get_status(),
            'metrics': self.metrics.copy()
        }
