"""Prompt templates and decision-prompt rendering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from outbreak.config import DEFAULT_SETTINGS, SimulationSettings
from outbreak.schemas import ActionType, Agent, HostileEntity, Location, Mood, ProposalType

HOSTILE_RELATIONSHIP_THRESHOLD = -30.0


@dataclass
class PromptTemplate:
    """Represents a templated prompt with placeholders."""

    name: str
    system: str
    user: str
    description: str = ""


@dataclass
class RenderedPrompt:
    system: str
    user: str

    @property
    def text(self) -> str:
        """Single-string form sent to the oracle."""
        return "\n\n".join(part for part in (self.system.strip(), self.user.strip()) if part)


class PromptLibrary:
    """Container for named prompt templates."""

    def __init__(self) -> None:
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        self.templates[template.name] = template

    def get(self, name: str) -> PromptTemplate:
        return self.templates[name]


# Action menu ------------------------------------------------------------------

ACTION_CATALOG = (
    "Allowed actions (choose exactly one; the \"action\" value must match one of these):\n"
    "- move: walk to a known location. Requires \"target_location\".\n"
    "- wait: rest in place and recover a little energy.\n"
    "- scavenge: search the current location for supplies.\n"
    "- attack_hostile: attack a nearby hostile with your weapon. Requires \"target_hostile_id\".\n"
    "- send_message: talk to another survivor. Requires \"recipient_name\" and \"message_content\".\n"
    "- give_item: hand one item to another survivor. Requires \"recipient_name\" and \"item_name\".\n"
    "- propose: suggest a joint plan. Requires \"proposal_type\" (joint_exploration, joint_combat, meeting),\n"
    "  \"recipient_name\" and \"proposal_content\"; add \"target_location\" for exploration or meetings.\n"
    "- respond_to_proposal: answer a pending proposal. Requires \"proposal_id\" and\n"
    "  \"proposal_response\" (accept or reject).\n\n"
    "Examples:\n"
    "{\"plan\": \"Look for food at the supermarket\", \"action\": \"move\", \"mood\": \"neutral\", "
    "\"energy\": -1, \"target_location\": \"supermarket\"}\n"
    "{\"plan\": \"Catch my breath\", \"action\": \"wait\", \"mood\": \"tired\", \"energy\": 2}\n"
    "{\"plan\": \"Search this place for supplies\", \"action\": \"scavenge\", \"mood\": \"content\", \"energy\": -2}\n"
    "{\"plan\": \"Defend myself\", \"action\": \"attack_hostile\", \"mood\": \"scared\", \"energy\": -3, "
    "\"target_hostile_id\": 2}\n"
    "{\"plan\": \"Check on Bob\", \"action\": \"send_message\", \"mood\": \"social\", \"energy\": 0, "
    "\"recipient_name\": \"Bob\", \"message_content\": \"Are you safe?\"}\n"
    "{\"plan\": \"Share supplies\", \"action\": \"give_item\", \"mood\": \"happy\", \"energy\": 0, "
    "\"recipient_name\": \"Bob\", \"item_name\": \"water\"}\n"
    "{\"plan\": \"Team up to explore\", \"action\": \"propose\", \"mood\": \"excited\", \"energy\": 0, "
    "\"recipient_name\": \"Bob\", \"proposal_type\": \"joint_exploration\", "
    "\"proposal_content\": \"Let's search the hospital together\", \"target_location\": \"hospital\"}\n"
    "{\"plan\": \"Go with Alice\", \"action\": \"respond_to_proposal\", \"mood\": \"content\", \"energy\": 0, "
    "\"proposal_id\": \"prop-1700000000000-1-2\", \"proposal_response\": \"accept\"}"
)


# Default templates ------------------------------------------------------------

DEFAULT_PROMPTS = PromptLibrary()

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="decide_action",
        system=(
            "You are {{agent_name}}, a survivor in a town overrun by hostile creatures. "
            "Personality: {{personality}}. Decide your next action for this tick. "
            "Respond with a single JSON object with the keys \"plan\", \"action\", \"mood\" and "
            "\"energy\" plus the keys your action requires. \"energy\" is the change you expect "
            "(between -10 and 10). Valid moods: {{moods}}."
        ),
        user=(
            "Tick {{tick}}.\n\n"
            "Your state:\n{{agent_state}}\n\n"
            "Memory:\n{{memory}}\n\n"
            "Locations (nearest first):\n{{locations}}\n\n"
            "Other survivors:\n{{agents}}\n\n"
            "Hostiles in sight:\n{{hostiles}}\n\n"
            "Pending proposals for you:\n{{proposals}}\n\n"
            "Recent messages:\n{{messages}}\n\n"
            "{{action_catalog}}\n\n"
            "Return JSON only."
        ),
        description="Chooses one action for the current tick.",
    )
)


# Section renderers ------------------------------------------------------------


def describe_agent_state(agent: Agent) -> str:
    weapon = (
        f"{agent.weapon.name} (damage {agent.weapon.damage:g}, range {agent.weapon.range:g})"
        if agent.weapon else "none"
    )
    inventory = ", ".join(f"{item} x{qty}" for item, qty in agent.inventory.items()) or "empty"
    job = f"{agent.job.name} (salary {agent.job.salary})" if agent.job else "none"
    lines = [
        f"- Energy {agent.energy:.0f}/100, hunger {agent.hunger:.0f}/100 (100 = starving), "
        f"happiness {agent.happiness:.0f}/100, fear {agent.fear:.0f}/100, mood {agent.mood.value}",
        f"- Money {agent.money}, job {job}",
        f"- At {agent.current_location_name or 'open ground'} ({agent.x:.0f}, {agent.y:.0f})",
        f"- Weapon: {weapon}",
        f"- Inventory: {inventory}",
        f"- Goals: {'; '.join(agent.goals) or 'none'}",
        f"- Current plan: {agent.short_term_plan or 'none'}",
    ]
    if agent.has_target:
        lines.append(f"- Heading to {agent.target_location_name or 'a point on the map'}")
    return "\n".join(lines)


def describe_locations(agent: Agent, locations: Sequence[Location]) -> str:
    if not locations:
        return "- none"
    lines = []
    for location in sorted(locations, key=lambda loc: loc.distance_to(agent.x, agent.y)):
        notes: List[str] = [location.type.value, f"{location.distance_to(agent.x, agent.y):.0f} away"]
        if location.owner_id is not None and location.owner_id != agent.id:
            notes.append(f"private, owned by agent {location.owner_id}")
        if location.health is not None:
            notes.append(f"health {location.health:.0f}")
        lines.append(f"- {location.name} ({', '.join(notes)})")
    return "\n".join(lines)


def describe_agents(agent: Agent, agents: Sequence[Agent]) -> str:
    lines = []
    for other in agents:
        if other.id == agent.id:
            continue
        flags: List[str] = []
        if other.weapon is not None:
            flags.append(f"armed with {other.weapon.name}")
        strength = agent.relationship_with(other.id)
        if strength <= HOSTILE_RELATIONSHIP_THRESHOLD:
            flags.append("THREAT: hostile relationship")
        flag_text = f" [{'; '.join(flags)}]" if flags else ""
        lines.append(
            f"- {other.name} at {other.current_location_name or 'open ground'}, "
            f"relationship {strength:+.0f}{flag_text}"
        )
    return "\n".join(lines) or "- none"


def perception_radius(agent: Agent, settings: SimulationSettings = DEFAULT_SETTINGS) -> float:
    radius = settings.hostile_perception_radius
    if agent.weapon is not None:
        radius = max(radius, agent.weapon.range + settings.weapon_perception_bonus)
    return radius


def describe_hostiles(
    agent: Agent,
    hostiles: Sequence[HostileEntity],
    settings: SimulationSettings = DEFAULT_SETTINGS,
) -> str:
    radius = perception_radius(agent, settings)
    visible = [h for h in hostiles if h.distance_to(agent.x, agent.y) <= radius]
    if not visible:
        return "- none"
    lines = []
    for hostile in sorted(visible, key=lambda h: h.distance_to(agent.x, agent.y)):
        distance = hostile.distance_to(agent.x, agent.y)
        in_range = agent.weapon is not None and distance <= agent.weapon.range
        lines.append(
            f"- hostile id {hostile.id}: {distance:.0f} away, health {hostile.health:.0f}"
            + (" (within your weapon range)" if in_range else "")
        )
    return "\n".join(lines)


def describe_proposals(agent: Agent) -> str:
    lines = [
        f"- id {p.id}: {p.type.value} from {p.sender_name or f'agent {p.sender_id}'}: {p.content}"
        for p in agent.pending_proposals
    ]
    return "\n".join(lines) or "- none"


def describe_messages(agent: Agent) -> str:
    lines = [
        f"- {m.sender_name or f'agent {m.sender_id}'}: {m.content}" for m in agent.received_messages
    ]
    return "\n".join(lines) or "- none"


def render_decision_prompt(
    agent: Agent,
    *,
    tick: int,
    locations: Sequence[Location],
    agents: Sequence[Agent],
    hostiles: Sequence[HostileEntity],
    settings: SimulationSettings = DEFAULT_SETTINGS,
    template: Optional[PromptTemplate] = None,
) -> RenderedPrompt:
    """Fill the decision template with a read-only view of the world."""

    template = template or DEFAULT_PROMPTS.get("decide_action")
    replacements = {
        "{{agent_name}}": agent.name,
        "{{personality}}": agent.personality or "unremarkable",
        "{{moods}}": ", ".join(mood.value for mood in Mood),
        "{{tick}}": str(tick),
        "{{agent_state}}": describe_agent_state(agent),
        "{{memory}}": agent.memory.context(),
        "{{locations}}": describe_locations(agent, locations),
        "{{agents}}": describe_agents(agent, agents),
        "{{hostiles}}": describe_hostiles(agent, hostiles, settings),
        "{{proposals}}": describe_proposals(agent),
        "{{messages}}": describe_messages(agent),
        "{{action_catalog}}": ACTION_CATALOG,
        "{{actions}}": ", ".join(action.value for action in ActionType),
        "{{proposal_types}}": ", ".join(kind.value for kind in ProposalType),
    }

    system = template.system
    user = template.user
    for placeholder, value in replacements.items():
        system = system.replace(placeholder, value)
        user = user.replace(placeholder, value)

    return RenderedPrompt(system=system, user=user)


__all__ = [
    "PromptTemplate",
    "RenderedPrompt",
    "PromptLibrary",
    "DEFAULT_PROMPTS",
    "ACTION_CATALOG",
    "perception_radius",
    "render_decision_prompt",
]
