"""
SimulationClock: sequence one tick of the simulation.

Tick order (each step finishes before the next starts):

1. Halt if the base has fallen or nobody is left.
2. Update every agent's fear from nearby hostiles.
3. Ask the arbiter for every agent's action concurrently and wait for all of
   them. This barrier means no decision is computed against a world that another
   agent's action has already changed this tick.
4. Apply the actions one by one in agent registration order.
5. Advance passive vitals (hunger, happiness) and auto-consume food or medicine.
6. Move agents one step towards their targets.
7. Remove agents whose energy reached zero.
8. Move hostiles and resolve contact damage (agents may strike back).
9. Drop defeated hostiles and maybe spawn a new one.
10. Advance the tick counter.

The step function never sleeps. Continuous ticking lives in ``TickScheduler``,
which calls ``step()`` and waits between ticks, so tests can drive the clock
one tick at a time without real delays.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from outbreak import catalog
from outbreak.actions import ActionOutcome, ActionResolver
from outbreak.arbiter import DecisionArbiter
from outbreak.config import Config, DEFAULT_SETTINGS, SimulationSettings
from outbreak.errors import DecisionError, OracleError
from outbreak.hostiles import HostileEntityAI
from outbreak.logging_utils import (
    LOG_TAG_INFO,
    EventLog,
    SimulationLog,
    log_info,
)
from outbreak.memory import TextGenerator, summarize_memory
from outbreak.schemas import ActionResponse, Agent, DecisionSource
from outbreak.world import WorldState


@dataclass
class TickReport:
    """What happened during one call to ``SimulationClock.step()``."""

    tick: int
    decisions: Dict[int, DecisionSource] = field(default_factory=dict)
    outcomes: Dict[int, ActionOutcome] = field(default_factory=dict)
    failures: Dict[int, Exception] = field(default_factory=dict)
    removed_agents: List[int] = field(default_factory=list)
    removed_hostiles: List[int] = field(default_factory=list)
    spawned_hostile: Optional[int] = None
    halted: bool = False
    halt_reason: Optional[str] = None
    logs: List[SimulationLog] = field(default_factory=list)


# ----------------------------------------------------------------------
# Passive updates
# ----------------------------------------------------------------------


def advance_vitals(agent: Agent, settings: SimulationSettings = DEFAULT_SETTINGS) -> None:
    """Hunger rises and happiness drifts every tick."""
    agent.hunger = agent.hunger + settings.hunger_rate
    happiness = agent.happiness - settings.happiness_decay
    if agent.hunger >= settings.hungry_unhappiness_threshold:
        happiness -= settings.hungry_unhappiness_penalty
    if agent.fear < settings.calm_fear_threshold:
        happiness += settings.calm_happiness_bonus
    agent.happiness = happiness


def apply_consumption(agent: Agent, log: EventLog, settings: SimulationSettings = DEFAULT_SETTINGS) -> None:
    """Eat when starving and treat wounds when exhausted, if the items are held."""

    if agent.hunger >= settings.eat_threshold:
        food_name = catalog.first_held(agent.inventory, catalog.FOODS)
        if food_name is None:
            log.debug(f"{agent.name} is hungry but has no food", agent.id)
        elif agent.remove_item(food_name):
            food = catalog.FOODS[food_name]
            agent.hunger = agent.hunger - food.hunger_recovery
            if food.happiness_bonus:
                agent.happiness = agent.happiness + food.happiness_bonus
            log.action(f"{agent.name} eats {food_name}", agent.id)

    if agent.energy <= settings.medical_threshold:
        medical_name = catalog.first_held(agent.inventory, catalog.MEDICAL)
        if medical_name is not None and agent.remove_item(medical_name):
            agent.energy = agent.energy + catalog.MEDICAL[medical_name].energy_recovery
            log.action(f"{agent.name} uses a {medical_name}", agent.id)


# ----------------------------------------------------------------------
# Clock
# ----------------------------------------------------------------------


class SimulationClock:
    """Owns the per-tick ordering contract over a WorldState."""

    def __init__(
        self,
        world: WorldState,
        arbiter: DecisionArbiter,
        *,
        settings: SimulationSettings = DEFAULT_SETTINGS,
        resolver: Optional[ActionResolver] = None,
        hostile_ai: Optional[HostileEntityAI] = None,
        log: Optional[EventLog] = None,
        summarizer: Optional[TextGenerator] = None,
        summary_interval: Optional[int] = None,
    ) -> None:
        self.world = world
        self.arbiter = arbiter
        self.settings = settings
        self.resolver = resolver or ActionResolver(settings)
        self.hostile_ai = hostile_ai or HostileEntityAI(settings)
        self.log = log or EventLog()
        self.summarizer = summarizer
        self.summary_interval = (
            Config.MEMORY_SUMMARY_INTERVAL if summary_interval is None else summary_interval
        )
        # Held for a whole tick; operators take it before touching the world
        self.lock = asyncio.Lock()

    async def step(self) -> TickReport:
        async with self.lock:
            return await self._step()

    async def _step(self) -> TickReport:
        world = self.world
        log = self.log
        tick = world.tick
        log.tick = tick
        first_entry = len(log.entries)
        report = TickReport(tick=tick)

        # 1. Terminal states
        reason = world.halt_reason()
        if reason is not None:
            report.halted = True
            report.halt_reason = reason
            return report

        log.system(f"--- Tick {tick} ---")

        # 2. Threat perception
        self.hostile_ai.update_fear(world)

        # 3. Decisions (concurrent, read-only)
        responses = await self._gather_decisions(tick, report)

        # 4. Apply actions in registration order
        for agent in world.agents:
            response = responses.get(agent.id)
            if response is None:
                continue
            report.outcomes[agent.id] = self.resolver.apply(agent, response, world, log)

        # 5. Passive vitals and consumption
        for agent in world.agents:
            advance_vitals(agent, self.settings)
            apply_consumption(agent, log, self.settings)

        # 6. Movement
        for agent in world.agents:
            if agent.has_target and agent.step_towards_target():
                log.info(f"{agent.name} arrives at {agent.current_location_name or 'the target'}", agent.id)

        # 7. Exhausted agents leave the world
        report.removed_agents.extend(self._remove_exhausted())

        # 8. Hostiles act; agents they finish off are removed right away
        self.hostile_ai.advance(world, log)
        report.removed_agents.extend(self._remove_exhausted())

        # 9. End-of-tick hostile filter and spawn cadence
        report.removed_hostiles = [h.id for h in self.hostile_ai.remove_defeated(world, log)]
        spawned = self.hostile_ai.maybe_spawn(world, log)
        report.spawned_hostile = spawned.id if spawned is not None else None

        await self._summarize_memories(tick)

        # 10. Advance
        world.tick = tick + 1
        reason = world.halt_reason()
        if reason is not None:
            report.halted = True
            report.halt_reason = reason
            log.system(f"Simulation over: {reason}")

        report.logs = log.entries[first_entry:]
        return report

    async def _gather_decisions(self, tick: int, report: TickReport) -> Dict[int, ActionResponse]:
        world = self.world
        agents = world.agents
        locations = list(world.locations)
        hostiles = list(world.hostiles)

        # return_exceptions=True keeps one agent's failure from sinking the tick
        results = await asyncio.gather(
            *[
                self.arbiter.decide_action(agent, tick, locations, agents, hostiles)
                for agent in agents
            ],
            return_exceptions=True,
        )

        responses: Dict[int, ActionResponse] = {}
        for agent, result in zip(agents, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                report.failures[agent.id] = result
                self._log_failure(agent, result)
                continue
            responses[agent.id] = result
            report.decisions[agent.id] = result.source
        return responses

    def _log_failure(self, agent: Agent, exc: Exception) -> None:
        if isinstance(exc, OracleError):
            self.log.error(f"Oracle error for {agent.name}: {exc}", agent.id)
        elif isinstance(exc, DecisionError):
            self.log.error(f"Decision error for {agent.name}: {exc}", agent.id)
            if exc.raw_text:
                self.log.debug(f"Raw oracle text for {agent.name}: {exc.raw_text}", agent.id)
        else:
            self.log.error(f"Unexpected error while {agent.name} was deciding: {exc!r}", agent.id)

    def _remove_exhausted(self) -> List[int]:
        removed: List[int] = []
        for agent in self.world.agents:
            if not agent.is_alive:
                self.world.remove_agent(agent.id)
                self.log.system(f"{agent.name} has collapsed and leaves the simulation", agent.id)
                removed.append(agent.id)
        return removed

    async def _summarize_memories(self, tick: int) -> None:
        if self.summarizer is None or self.summary_interval <= 0:
            return
        if (tick + 1) % self.summary_interval != 0:
            return
        agents = [agent for agent in self.world.agents if agent.memory.entries]
        if not agents:
            return
        results = await asyncio.gather(
            *[summarize_memory(agent.memory, self.summarizer, name=agent.name) for agent in agents],
            return_exceptions=True,
        )
        for agent, result in zip(agents, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                self.log.error(f"Memory summary failed for {agent.name}: {result}", agent.id)
            elif result:
                self.log.debug(f"Summarized {agent.name}'s recent actions", agent.id)


# ----------------------------------------------------------------------
# Continuous ticking
# ----------------------------------------------------------------------


class TickScheduler:
    """Runs ``clock.step()`` repeatedly with a delay between ticks.

    ``sleep`` is injectable so tests can run the loop without waiting.
    """

    def __init__(
        self,
        clock: SimulationClock,
        *,
        delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.clock = clock
        self.delay = Config.TICK_DELAY_SECONDS if delay is None else delay
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stop_requested = False
        self.reports: List[TickReport] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, max_ticks: Optional[int] = None) -> List[TickReport]:
        """Tick until halted, stopped, or ``max_ticks`` ticks have run."""

        reports: List[TickReport] = []
        while not self._stop_requested:
            report = await self.clock.step()
            reports.append(report)
            self.reports.append(report)
            if report.halted:
                break
            if max_ticks is not None and len(reports) >= max_ticks:
                break
            await self._sleep(self.delay)
        return reports

    def start(self, max_ticks: Optional[int] = None) -> asyncio.Task:
        if self.running:
            raise RuntimeError("Simulation is already running")
        log_info(f"{LOG_TAG_INFO} Continuous ticking started (delay {self.delay:g}s)")
        self._task = asyncio.create_task(self.run(max_ticks))
        return self._task

    async def stop(self) -> None:
        """Stop after the tick in progress; the world is never left mid-tick."""
        task = self._task
        if task is None:
            return
        self._stop_requested = True
        try:
            if not task.done():
                await task
        finally:
            self._stop_requested = False
            self._task = None
        log_info(f"{LOG_TAG_INFO} Continuous ticking stopped")


__all__ = [
    "TickReport",
    "SimulationClock",
    "TickScheduler",
    "advance_vitals",
    "apply_consumption",
]
