"""
Scenario loading: build the initial WorldState from code or from JSON.

Scenario file structure:
```json
{
  "name": "Quarantine Zone",
  "description": "...",
  "locations": [{"name": "home", "x": 100, "y": 100, ...}],
  "agents": [
    {"name": "Alice", "personality": "curious", "location": "home",
     "weapon": "knife", "inventory": {"water": 2}}
  ],
  "hostiles": [{"id": 1, "x": 500, "y": 200}]
}
```

``locations`` and ``hostiles`` are optional; the default town map is used when
``locations`` is missing. Agent ids are assigned in file order starting at 1.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field, field_validator

from outbreak import catalog
from outbreak.config import Config
from outbreak.schemas import Agent, HostileEntity, Job, Location, Weapon
from outbreak.world import WorldState


class AgentSpec(BaseModel):
    """Initial conditions for one agent (scenario files and the add-agent command)."""

    name: str
    personality: str = ""
    location: str = "home"
    energy: float = 100.0
    happiness: float = 50.0
    hunger: float = 50.0
    fear: float = 0.0
    money: int = 500
    job: Optional[Job] = None
    # A catalog weapon name ("pistol") or a full weapon record
    weapon: Optional[Union[str, Weapon]] = None
    inventory: Dict[str, int] = Field(default_factory=dict)
    goals: List[str] = Field(default_factory=list)
    short_term_plan: str = ""

    @field_validator("weapon")
    @classmethod
    def _known_weapon(cls, value: Optional[Union[str, Weapon]]) -> Optional[Union[str, Weapon]]:
        if isinstance(value, str) and catalog.weapon(value) is None:
            raise ValueError(
                f"Unknown weapon '{value}'. Choose one of: {', '.join(catalog.WEAPONS)}"
            )
        return value

    def resolve_weapon(self) -> Optional[Weapon]:
        if isinstance(self.weapon, str):
            return catalog.weapon(self.weapon)
        return self.weapon.model_copy() if self.weapon is not None else None


def build_agent(spec: AgentSpec, agent_id: int, locations: Sequence[Location]) -> Agent:
    """Create an agent from ``spec`` and place it on its starting location."""

    location = next((loc for loc in locations if loc.name.casefold() == spec.location.casefold()), None)
    if location is None:
        raise ValueError(f"Unknown starting location '{spec.location}' for agent {spec.name}")

    agent = Agent(
        id=agent_id,
        name=spec.name,
        personality=spec.personality,
        energy=spec.energy,
        happiness=spec.happiness,
        hunger=spec.hunger,
        fear=spec.fear,
        money=spec.money,
        job=spec.job.model_copy() if spec.job else None,
        weapon=spec.resolve_weapon(),
        inventory=dict(spec.inventory),
        goals=list(spec.goals),
        short_term_plan=spec.short_term_plan,
    )
    agent.place_at(location)
    return agent


DEFAULT_AGENTS = [
    AgentSpec(
        name="Alice",
        personality="curious and outgoing",
        location="home",
        job=Job(name="researcher", salary=100),
        weapon="knife",
        goals=["make friends", "visit the library"],
        short_term_plan="look for new books at the library",
    ),
    AgentSpec(
        name="Bob",
        personality="cautious and practical",
        location="park",
        money=800,
        weapon="pistol",
        goals=["find a safe place", "secure food"],
        short_term_plan="look for food",
    ),
]


def build_world(
    specs: Sequence[AgentSpec],
    *,
    locations: Optional[List[Location]] = None,
    hostiles: Optional[List[HostileEntity]] = None,
    oracle_provider: Optional[str] = None,
) -> WorldState:
    locations = locations if locations is not None else catalog.default_locations()
    world = WorldState(
        locations=locations,
        hostiles=hostiles,
        oracle_provider=oracle_provider or Config.ORACLE_PROVIDER,
    )
    for index, spec in enumerate(specs, start=1):
        world.add_agent(build_agent(spec, index, locations))
    return world


def default_scenario(oracle_provider: Optional[str] = None) -> WorldState:
    """Two survivors on the default town map. Alice owns the home."""
    return build_world(DEFAULT_AGENTS, oracle_provider=oracle_provider)


class ScenarioLoader:
    """Reads ``{name}.json`` scenario files from a directory."""

    def __init__(self, scenarios_dir: Optional[Path] = None):
        self.scenarios_dir = scenarios_dir or (Config.PROJECT_ROOT / "scenarios")

    def load(self, scenario_name: str, *, oracle_provider: Optional[str] = None) -> WorldState:
        """Load a scenario by name.

        Raises:
            FileNotFoundError: If the scenario file doesn't exist
            ValueError: If the scenario is missing required fields or is malformed
        """
        scenario_path = self.scenarios_dir / f"{scenario_name}.json"
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario '{scenario_name}' not found at {scenario_path}")

        data = json.loads(scenario_path.read_text("utf-8"))
        self._validate_scenario(data)

        locations = None
        if "locations" in data:
            locations = [Location.model_validate(item) for item in data["locations"]]
        hostiles = [HostileEntity.model_validate(item) for item in data.get("hostiles", [])]
        specs = [AgentSpec.model_validate(item) for item in data["agents"]]
        return build_world(
            specs,
            locations=locations,
            hostiles=hostiles,
            oracle_provider=oracle_provider,
        )

    def _validate_scenario(self, data: Dict[str, Any]) -> None:
        required = ["name", "agents"]
        missing = [key for key in required if key not in data]
        if missing:
            raise ValueError(f"Scenario missing required fields: {missing}")
        if not data["agents"]:
            raise ValueError("Scenario must have at least one agent")
        if "locations" in data and not any(
            str(item.get("type", "")).lower() == "base" for item in data["locations"]
        ):
            print(f"Scenario '{data['name']}' defines no base; only agent loss can end it.")

    def list_scenarios(self) -> List[str]:
        if not self.scenarios_dir.exists():
            return []
        return sorted(f.stem for f in self.scenarios_dir.glob("*.json") if not f.name.startswith("_"))

    def get_scenario_info(self, scenario_name: str) -> Dict[str, Any]:
        scenario_path = self.scenarios_dir / f"{scenario_name}.json"
        data = json.loads(scenario_path.read_text("utf-8"))
        return {
            "name": data.get("name", scenario_name),
            "description": data.get("description", "No description"),
            "num_agents": len(data.get("agents", [])),
        }


__all__ = [
    "AgentSpec",
    "build_agent",
    "build_world",
    "default_scenario",
    "DEFAULT_AGENTS",
    "ScenarioLoader",
]
