"""
World snapshots and pluggable snapshot stores.

A snapshot carries every agent field except the live memory log (replaced by its
collapsed summary text), the hostile list, the locations (the base's health
changes over a run), the current tick and the active oracle provider.

Two stores are included:
1. InMemorySnapshotStore - dict-backed, data lost on exit (tests, quick saves)
2. JsonSnapshotStore - one pretty-printed JSON file per snapshot name

File I/O in the JSON store runs in a worker thread (asyncio.to_thread) so a
save never blocks the event loop between ticks.
"""

from __future__ import annotations

import asyncio
import json
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from outbreak.catalog import default_locations
from outbreak.memory import MemoryLog
from outbreak.schemas import Agent, HostileEntity, Location
from outbreak.world import WorldState

SNAPSHOT_VERSION = 1


class AgentRecord(Agent):
    """Persisted form of an Agent: the memory log is replaced by summary text."""

    memory: MemoryLog = Field(default_factory=MemoryLog, exclude=True)
    memory_summary: str = ""

    @classmethod
    def from_agent(cls, agent: Agent) -> "AgentRecord":
        data = agent.model_dump(exclude={"memory"})
        return cls(**data, memory_summary=agent.memory.collapse())

    def to_agent(self) -> Agent:
        data = self.model_dump(exclude={"memory", "memory_summary"})
        return Agent(**data, memory=MemoryLog.from_summary(self.memory_summary))


class WorldSnapshot(BaseModel):
    version: int = SNAPSHOT_VERSION
    tick: int = Field(0, ge=0)
    oracle_provider: str = "ollama"
    agents: List[AgentRecord] = Field(default_factory=list)
    hostiles: List[HostileEntity] = Field(default_factory=list)
    locations: Optional[List[Location]] = None
    next_spawn_tick: Optional[int] = None
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def snapshot_world(world: WorldState) -> WorldSnapshot:
    return WorldSnapshot(
        tick=world.tick,
        oracle_provider=world.oracle_provider,
        agents=[AgentRecord.from_agent(agent) for agent in world.agents],
        hostiles=[hostile.model_copy() for hostile in world.hostiles],
        locations=[location.model_copy(deep=True) for location in world.locations],
        next_spawn_tick=world.next_spawn_tick,
    )


def restore_world(snapshot: WorldSnapshot, locations: Optional[List[Location]] = None) -> WorldState:
    """Rebuild a WorldState from ``snapshot``.

    Each agent is put back on its current location (by name) so its position
    matches that location; a saved movement target is kept.
    """

    if locations is None:
        locations = snapshot.locations if snapshot.locations is not None else default_locations()

    world = WorldState(
        locations=[location.model_copy(deep=True) for location in locations],
        hostiles=[hostile.model_copy() for hostile in snapshot.hostiles],
        tick=snapshot.tick,
        oracle_provider=snapshot.oracle_provider,
    )
    world.next_spawn_tick = snapshot.next_spawn_tick

    for record in snapshot.agents:
        agent = record.to_agent()
        target = (agent.target_x, agent.target_y, agent.target_location_name) if agent.has_target else None
        location = world.get_location(agent.current_location_name)
        if location is not None:
            agent.place_at(location)
        if target is not None:
            agent.set_target(*target)
        world.add_agent(agent)
    return world


_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def _safe_name(name: str) -> str:
    cleaned = _SAFE_NAME_RE.sub("_", name.strip()).strip("._")
    if not cleaned:
        raise ValueError(f"Invalid snapshot name: {name!r}")
    return cleaned


class SnapshotStore(ABC):
    """Abstract storage for named world snapshots."""

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @abstractmethod
    async def save(self, name: str, snapshot: WorldSnapshot) -> None:
        """Store ``snapshot`` under ``name``, replacing any previous one."""

    @abstractmethod
    async def load(self, name: str) -> Optional[WorldSnapshot]:
        """Return the snapshot called ``name``, or None when it does not exist."""

    @abstractmethod
    async def list_names(self) -> List[str]:
        """Return stored snapshot names, sorted."""

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Remove ``name``. Returns False when nothing was stored under it."""


class InMemorySnapshotStore(SnapshotStore):
    def __init__(self) -> None:
        self._snapshots: Dict[str, str] = {}

    async def save(self, name: str, snapshot: WorldSnapshot) -> None:
        # Stored as JSON so a load never aliases live objects
        self._snapshots[_safe_name(name)] = snapshot.model_dump_json()

    async def load(self, name: str) -> Optional[WorldSnapshot]:
        payload = self._snapshots.get(_safe_name(name))
        if payload is None:
            return None
        return WorldSnapshot.model_validate_json(payload)

    async def list_names(self) -> List[str]:
        return sorted(self._snapshots)

    async def delete(self, name: str) -> bool:
        return self._snapshots.pop(_safe_name(name), None) is not None


class JsonSnapshotStore(SnapshotStore):
    """Human-readable snapshot files.

    Directory structure:
    ```
    {base_path}/
      autosave.json
      before-raid.json
    ```
    """

    def __init__(self, base_path: Path | str = "snapshots"):
        self.base_path = Path(base_path)

    def _path(self, name: str) -> Path:
        return self.base_path / f"{_safe_name(name)}.json"

    async def initialize(self) -> None:
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)

    async def save(self, name: str, snapshot: WorldSnapshot) -> None:
        await self.initialize()
        payload = snapshot.model_dump(mode="json")
        await asyncio.to_thread(
            self._path(name).write_text, json.dumps(payload, indent=2, ensure_ascii=False), "utf-8"
        )

    async def load(self, name: str) -> Optional[WorldSnapshot]:
        path = self._path(name)
        if not path.exists():
            return None
        raw = await asyncio.to_thread(path.read_text, "utf-8")
        return WorldSnapshot.model_validate_json(raw)

    async def list_names(self) -> List[str]:
        if not self.base_path.exists():
            return []
        paths = await asyncio.to_thread(lambda: sorted(self.base_path.glob("*.json")))
        return [path.stem for path in paths]

    async def delete(self, name: str) -> bool:
        path = self._path(name)
        if not path.exists():
            return False
        await asyncio.to_thread(path.unlink)
        return True


__all__ = [
    "SNAPSHOT_VERSION",
    "AgentRecord",
    "WorldSnapshot",
    "snapshot_world",
    "restore_world",
    "SnapshotStore",
    "InMemorySnapshotStore",
    "JsonSnapshotStore",
]
