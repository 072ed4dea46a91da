"""
WorldState: the single owner of agents, hostiles and locations.

Agents are stored in an id-keyed dict that preserves insertion order (the
order actions are applied in). A name index sits next to it so oracle replies
that mention people by name resolve to ids without scanning, and so duplicate
names can be flagged when an agent is registered.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from outbreak.logging_utils import LOG_TAG_ERROR, colored, Color
from outbreak.schemas import Agent, HostileEntity, Location


class WorldState:
    """Mutable world shared by every component during a tick.

    Components receive it explicitly; nothing captures it in a closure.
    """

    def __init__(
        self,
        *,
        agents: Optional[List[Agent]] = None,
        locations: Optional[List[Location]] = None,
        hostiles: Optional[List[HostileEntity]] = None,
        tick: int = 0,
        oracle_provider: str = "ollama",
    ) -> None:
        self._agents: Dict[int, Agent] = {}
        self._name_index: Dict[str, List[int]] = {}
        self.locations: List[Location] = list(locations or [])
        self.hostiles: List[HostileEntity] = list(hostiles or [])
        self.tick = tick
        self.oracle_provider = oracle_provider
        self.next_spawn_tick: Optional[int] = None
        self._last_hostile_id = max((h.id for h in self.hostiles), default=0)
        for agent in agents or []:
            self.add_agent(agent)

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    @property
    def agents(self) -> List[Agent]:
        """Agents in registration order."""
        return list(self._agents.values())

    def add_agent(self, agent: Agent) -> bool:
        """Register ``agent``. Returns False when its name collides with another agent."""
        if agent.id in self._agents:
            raise ValueError(f"Agent id {agent.id} is already registered")
        self._agents[agent.id] = agent
        key = agent.name.casefold()
        ids = self._name_index.setdefault(key, [])
        ids.append(agent.id)
        if len(ids) > 1:
            print(colored(
                f"{LOG_TAG_ERROR} Duplicate agent name '{agent.name}' "
                f"(ids {ids}); name lookups resolve to id {ids[0]}",
                Color.RED,
            ))
            return False
        return True

    def remove_agent(self, agent_id: int) -> Optional[Agent]:
        agent = self._agents.pop(agent_id, None)
        if agent is None:
            return None
        key = agent.name.casefold()
        ids = self._name_index.get(key, [])
        if agent_id in ids:
            ids.remove(agent_id)
        if not ids:
            self._name_index.pop(key, None)
        for hostile in self.hostiles:
            if hostile.target_agent_id == agent_id:
                hostile.target_agent_id = None
        return agent

    def get_agent(self, agent_id: int) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def find_agent_by_name(self, name: str) -> Optional[Agent]:
        ids = self._name_index.get(name.strip().casefold())
        if not ids:
            return None
        return self._agents[ids[0]]

    def next_agent_id(self) -> int:
        return max(self._agents, default=0) + 1

    @property
    def live_agents(self) -> List[Agent]:
        return [agent for agent in self._agents.values() if agent.is_alive]

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def get_location(self, name: Optional[str]) -> Optional[Location]:
        if not name:
            return None
        wanted = name.strip().casefold()
        for location in self.locations:
            if location.name.casefold() == wanted:
                return location
        return None

    @property
    def base(self) -> Optional[Location]:
        for location in self.locations:
            if location.is_base:
                return location
        return None

    # ------------------------------------------------------------------
    # Hostiles
    # ------------------------------------------------------------------

    def get_hostile(self, hostile_id: int) -> Optional[HostileEntity]:
        for hostile in self.hostiles:
            if hostile.id == hostile_id:
                return hostile
        return None

    def next_hostile_id(self) -> int:
        """Ids are never reused, even after a hostile is removed."""
        current = max((h.id for h in self.hostiles), default=0)
        self._last_hostile_id = max(self._last_hostile_id, current) + 1
        return self._last_hostile_id

    def hostiles_within(self, x: float, y: float, radius: float) -> List[HostileEntity]:
        return [h for h in self.hostiles if h.distance_to(x, y) <= radius]

    # ------------------------------------------------------------------
    # Terminal state
    # ------------------------------------------------------------------

    @property
    def base_destroyed(self) -> bool:
        base = self.base
        return base is not None and base.health is not None and base.health <= 0

    def halt_reason(self) -> Optional[str]:
        if self.base_destroyed:
            return "base destroyed"
        if not self._agents:
            return "no agents remain"
        return None


__all__ = ["WorldState"]
