"""
Wirefly Phase Simulation
Runs several tick engines against one in-process hub, stepping them in
lockstep so phase behaviour can be measured without wall-clock sleeps.

Each global step advances every engine by one subtick, in peer order,
then lets the relays forward whatever was published. A tick published in
step ``n`` is therefore heard in step ``n + 1``: one subtick of delivery
latency, which is also the smallest offset two peers can settle at.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from wirefly.core.channel import OverflowPolicy
from wirefly.core.display import DisplayEventStream
from wirefly.core.engine import TickEngine, TickSettings
from wirefly.core.hub import LocalTransport, TopicHub
from wirefly.core.relay import MessageRelay

SIMULATION_TOPIC = "tick-simulation"


@dataclass(frozen=True)
class FireRecord:
    """An engine completed its cycle"""

    step: int
    peer_index: int
    phases: Tuple[int, ...]


class PhaseSimulation:
    """Lockstep simulation of pulse-coupled peers"""

    def __init__(self, offsets: Sequence[int], settings: Optional[TickSettings] = None,
                 topic: str = SIMULATION_TOPIC):
        if len(offsets) < 2:
            raise ValueError("A simulation needs at least two peers")
        self.settings = settings or TickSettings(subtick_seconds=0.0)
        self.offsets = list(offsets)
        self.topic = topic
        self.logger = logging.getLogger(__name__)

        self.hub = TopicHub()
        self.relays: List[MessageRelay] = []
        self.engines: List[TickEngine] = []
        self.fires: List[FireRecord] = []
        self.steps_run = 0

    @property
    def cycle(self) -> int:
        return self.settings.subticks_per_cycle

    async def setup(self):
        """Join every peer to the hub"""
        for index, offset in enumerate(self.offsets):
            peer_id = f"sim-peer-{index}"
            relay = await MessageRelay.join(
                LocalTransport(self.hub, peer_id), peer_id, f"sim-{index}", self.topic
            )
            # Nobody renders simulated display events
            display = DisplayEventStream(8, OverflowPolicy.DROP_OLDEST)
            engine = TickEngine(relay, display, self.settings, phase=offset % self.cycle)
            self.relays.append(relay)
            self.engines.append(engine)
        await self._settle()

    async def _settle(self, rounds: int = 3):
        # Let relay read loops forward what the hub delivered
        for _ in range(rounds):
            await asyncio.sleep(0)

    def phases(self) -> Tuple[int, ...]:
        return tuple(engine.subtick for engine in self.engines)

    async def step(self):
        """Advance every engine one subtick"""
        self.steps_run += 1
        for index, engine in enumerate(self.engines):
            result = await engine.step()
            if result.ticked:
                self.fires.append(FireRecord(self.steps_run, index, self.phases()))
        await self._settle()

    async def run(self, steps: int):
        for _ in range(steps):
            await self.step()

    async def run_cycles(self, cycles: int):
        await self.run(cycles * self.cycle)

    def circular_distance(self, a: int, b: int) -> int:
        diff = abs(a - b) % self.cycle
        return min(diff, self.cycle - diff)

    def offsets_at_fires(self, peer_index: int) -> List[int]:
        """
        Phase distance to the other peer each time ``peer_index`` fires.

        Sampling one peer's fires gives one point per full round, which is
        where the pulse coupling shows up as a shrinking offset.
        """
        if len(self.engines) != 2:
            raise ValueError("offsets_at_fires compares exactly two peers")
        other = 1 - peer_index
        return [
            self.circular_distance(record.phases[peer_index], record.phases[other])
            for record in self.fires
            if record.peer_index == peer_index
        ]

    async def close(self):
        await self.hub.close()
        for relay in self.relays:
            await relay.close()

    async def __aenter__(self) -> 'PhaseSimulation':
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


async def simulate(offsets: Sequence[int], cycles: int,
                   settings: Optional[TickSettings] = None) -> PhaseSimulation:
    """Run a simulation for a number of nominal cycles and return it"""
    async with PhaseSimulation(offsets, settings) as simulation:
        await simulation.run_cycles(cycles)
    return simulation
