"""
Operator surface over a running simulation.

The controller wires a WorldState to its clock, oracle and snapshot store and
exposes the commands an operator needs: start/stop continuous ticking, force a
single tick, reset, add an agent, switch oracle provider, save and load.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, List, Optional

from outbreak.actions import ActionResolver
from outbreak.arbiter import DecisionArbiter, Oracle
from outbreak.clock import SimulationClock, TickReport, TickScheduler
from outbreak.config import Config, DEFAULT_SETTINGS, SimulationSettings
from outbreak.hostiles import HostileEntityAI
from outbreak.logging_utils import EventLog
from outbreak.oracle import DecisionOracleClient
from outbreak.persistence import (
    JsonSnapshotStore,
    SnapshotStore,
    restore_world,
    snapshot_world,
)
from outbreak.scenario import AgentSpec, build_agent, default_scenario
from outbreak.schemas import Agent
from outbreak.world import WorldState

OracleFactory = Callable[[str, Optional[str]], Oracle]


def _default_oracle_factory(provider: str, model: Optional[str]) -> Oracle:
    return DecisionOracleClient(provider=provider, model=model)


class SimulationController:
    def __init__(
        self,
        *,
        world: Optional[WorldState] = None,
        world_factory: Callable[[], WorldState] = default_scenario,
        oracle_factory: OracleFactory = _default_oracle_factory,
        model: Optional[str] = None,
        store: Optional[SnapshotStore] = None,
        settings: SimulationSettings = DEFAULT_SETTINGS,
        log: Optional[EventLog] = None,
        delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self.store = store or JsonSnapshotStore(Config.SNAPSHOT_DIR)
        self.log = log or EventLog()
        self.rng = rng or random.Random()
        self.model = model
        self._world_factory = world_factory
        self._oracle_factory = oracle_factory
        self._delay = delay
        self._sleep = sleep

        world = world if world is not None else world_factory()
        self.oracle: Oracle = oracle_factory(world.oracle_provider, model)
        self._attach(world)

    def _attach(self, world: WorldState) -> None:
        self.world = world
        self.arbiter = DecisionArbiter(self.oracle, settings=self.settings)
        self.clock = SimulationClock(
            world,
            self.arbiter,
            settings=self.settings,
            resolver=ActionResolver(self.settings, rng=self.rng),
            hostile_ai=HostileEntityAI(self.settings, rng=self.rng),
            log=self.log,
            summarizer=self.oracle,
        )
        self.scheduler = TickScheduler(self.clock, delay=self._delay, sleep=self._sleep)

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self, max_ticks: Optional[int] = None) -> asyncio.Task:
        return self.scheduler.start(max_ticks)

    async def stop(self) -> None:
        await self.scheduler.stop()

    async def step(self) -> TickReport:
        """Run exactly one tick. Not allowed while continuous ticking is active."""
        if self.running:
            raise RuntimeError("Stop the simulation before stepping manually")
        return await self.clock.step()

    async def run(self, ticks: int) -> List[TickReport]:
        if self.running:
            raise RuntimeError("Simulation is already running")
        return await self.scheduler.run(max_ticks=ticks)

    # ------------------------------------------------------------------
    # World management
    # ------------------------------------------------------------------

    async def reset(self) -> WorldState:
        await self.stop()
        provider = self.world.oracle_provider
        world = self._world_factory()
        world.oracle_provider = provider
        self.log.clear()
        self.log.tick = 0
        self._attach(world)
        self.log.system("Simulation reset")
        return world

    async def add_agent(self, spec: AgentSpec) -> Agent:
        """Add an agent between ticks; waits for a tick in progress to finish."""
        async with self.clock.lock:
            agent = build_agent(spec, self.world.next_agent_id(), self.world.locations)
            if not self.world.add_agent(agent):
                self.log.error(
                    f"Another agent is already called {agent.name}; lookups by name pick the first one",
                    agent.id,
                )
        self.log.system(f"{agent.name} joins at {agent.current_location_name}", agent.id)
        return agent

    async def set_provider(self, provider: str, model: Optional[str] = None) -> None:
        provider = provider.lower()
        Config.validate(provider)
        async with self.clock.lock:
            self.model = model or self.model
            self.oracle = self._oracle_factory(provider, self.model)
            self.arbiter.oracle = self.oracle
            self.clock.summarizer = self.oracle
            self.world.oracle_provider = provider
        self.log.system(f"Oracle provider set to {provider}")

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def save(self, name: str = "autosave") -> None:
        # Snapshot between ticks so a half-applied tick is never persisted
        async with self.clock.lock:
            snapshot = snapshot_world(self.world)
        await self.store.save(name, snapshot)
        self.log.system(f"Saved snapshot '{name}' at tick {snapshot.tick}")

    async def load(self, name: str = "autosave") -> bool:
        snapshot = await self.store.load(name)
        if snapshot is None:
            self.log.error(f"No snapshot called '{name}'")
            return False
        await self.stop()
        world = restore_world(snapshot)
        if world.oracle_provider != self.world.oracle_provider:
            self.oracle = self._oracle_factory(world.oracle_provider, self.model)
        self.log.tick = world.tick
        self._attach(world)
        self.log.system(f"Loaded snapshot '{name}' (tick {world.tick}, {len(world.agents)} agents)")
        return True

    async def list_snapshots(self) -> List[str]:
        return await self.store.list_names()

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def status(self) -> str:
        world = self.world
        base = world.base
        lines = [
            f"Tick {world.tick} | oracle {world.oracle_provider} | "
            f"{'running' if self.running else 'paused'}",
        ]
        if base is not None and base.health is not None:
            lines.append(f"Base health: {base.health:g}")
        for agent in world.agents:
            weapon = agent.weapon.name if agent.weapon else "unarmed"
            lines.append(
                f"  [{agent.id}] {agent.name} @ {agent.current_location_name or '?'} "
                f"energy={agent.energy:.0f} hunger={agent.hunger:.0f} "
                f"happiness={agent.happiness:.0f} fear={agent.fear:.0f} "
                f"mood={agent.mood.value} {weapon}"
            )
        for hostile in world.hostiles:
            lines.append(
                f"  hostile {hostile.id} at ({hostile.x:.0f}, {hostile.y:.0f}) health={hostile.health:g}"
            )
        if reason := world.halt_reason():
            lines.append(f"Simulation over: {reason}")
        return "\n".join(lines)


__all__ = ["SimulationController"]
