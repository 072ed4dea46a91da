"""
Hostile entity behaviour: threat perception, pursuit, attacks and spawning.

Every hostile in the list acts each tick, including one that took lethal damage
earlier in the same tick; defeated hostiles are dropped only by the end-of-tick
filter (``remove_defeated``).
"""

from __future__ import annotations

import random
from typing import List, Optional

from outbreak.config import DEFAULT_SETTINGS, SimulationSettings
from outbreak.logging_utils import EventLog
from outbreak.schemas import Agent, HostileEntity
from outbreak.world import WorldState


class HostileEntityAI:
    def __init__(
        self,
        settings: SimulationSettings = DEFAULT_SETTINGS,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Threat perception
    # ------------------------------------------------------------------

    def update_fear(self, world: WorldState) -> None:
        """Raise fear for agents near hostiles, let it decay for everyone else."""
        for agent in world.agents:
            nearby = len(world.hostiles_within(agent.x, agent.y, self.settings.fear_radius))
            if nearby:
                agent.fear = agent.fear + nearby * self.settings.fear_gain_per_hostile
            else:
                agent.fear = agent.fear - self.settings.fear_decay

    # ------------------------------------------------------------------
    # Pursuit and attacks
    # ------------------------------------------------------------------

    def _nearest_agent(self, hostile: HostileEntity, agents: List[Agent]) -> Optional[Agent]:
        if not agents:
            return None
        return min(agents, key=lambda agent: hostile.distance_to(agent.x, agent.y))

    def advance(self, world: WorldState, log: EventLog) -> None:
        """Move every hostile towards its nearest target and resolve contact damage."""

        base = world.base
        base_standing = base is not None and base.health is not None and base.health > 0

        for hostile in world.hostiles:
            target = self._nearest_agent(hostile, world.live_agents)
            hostile.target_agent_id = target.id if target is not None else None

            agent_distance = hostile.distance_to(target.x, target.y) if target is not None else float("inf")
            base_distance = hostile.distance_to(base.x, base.y) if base_standing else float("inf")

            if target is None and not base_standing:
                continue

            if base_distance < agent_distance:
                hostile.step_towards(base.x, base.y)
            else:
                hostile.step_towards(target.x, target.y)

            if target is not None:
                self._strike_agent(hostile, target, log)

            if base_standing and hostile.distance_to(base.x, base.y) <= self.settings.base_attack_radius:
                base.health = base.health - self.settings.base_damage
                log.action(
                    f"Hostile {hostile.id} damages the {base.name} for {self.settings.base_damage:g} "
                    f"(health {base.health:g})"
                )
                base_standing = base.health > 0
                if not base_standing:
                    log.system(f"The {base.name} has fallen")

    def _strike_agent(self, hostile: HostileEntity, agent: Agent, log: EventLog) -> None:
        distance = hostile.distance_to(agent.x, agent.y)
        if distance > hostile.attack_range:
            return

        agent.energy = agent.energy - hostile.damage
        log.action(
            f"Hostile {hostile.id} attacks {agent.name} for {hostile.damage:g} "
            f"(energy {agent.energy:.0f})",
            agent.id,
        )

        weapon = agent.weapon
        if weapon is not None and distance <= weapon.range:
            counter = weapon.damage * self.settings.counter_attack_factor
            remaining = hostile.take_damage(counter)
            log.action(
                f"{agent.name} strikes back at hostile {hostile.id} for {counter:g} (health {remaining:g})",
                agent.id,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def remove_defeated(self, world: WorldState, log: EventLog) -> List[HostileEntity]:
        defeated = [h for h in world.hostiles if not h.is_alive]
        if defeated:
            world.hostiles = [h for h in world.hostiles if h.is_alive]
            for hostile in defeated:
                log.system(f"Hostile {hostile.id} is removed")
        return defeated

    def spawn(self, world: WorldState, log: EventLog) -> HostileEntity:
        """Create one hostile at a random point on a map edge."""

        width, height = self.settings.map_width, self.settings.map_height
        edge = self.rng.randrange(4)
        if edge == 0:
            x, y = self.rng.uniform(0, width), 0.0
        elif edge == 1:
            x, y = self.rng.uniform(0, width), height
        elif edge == 2:
            x, y = 0.0, self.rng.uniform(0, height)
        else:
            x, y = width, self.rng.uniform(0, height)

        hostile = HostileEntity(
            id=world.next_hostile_id(),
            x=x,
            y=y,
            health=self.settings.hostile_start_health,
            speed=self.settings.hostile_speed,
            attack_range=self.settings.hostile_attack_range,
            damage=self.settings.hostile_damage,
        )
        world.hostiles.append(hostile)
        log.system(f"A new hostile (id {hostile.id}) appears at ({x:.0f}, {y:.0f})")
        return hostile

    def maybe_spawn(self, world: WorldState, log: EventLog) -> Optional[HostileEntity]:
        """Spawn when the cadence is due, then re-roll the next spawn tick."""

        if world.next_spawn_tick is None:
            world.next_spawn_tick = self.settings.first_spawn_tick
        if world.tick < world.next_spawn_tick:
            return None
        hostile = self.spawn(world, log)
        world.next_spawn_tick = world.tick + self.rng.randint(*self.settings.spawn_interval)
        return hostile


__all__ = ["HostileEntityAI"]
