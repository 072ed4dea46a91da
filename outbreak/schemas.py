"""
Pydantic schemas for the Outbreak simulation.

All entity records and the action-response contract are defined here.

Design Philosophy:
- Vitals are clamped on every assignment (``validate_assignment=True``), so no code
  path can leave an agent outside its legal ranges
- Cross-entity references are ids, never object pointers; lookups go through WorldState
- The action response is a tagged record: the ``action`` tag decides which optional
  fields are required, and a response missing one is rejected at validation time
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from outbreak.memory import MemoryLog


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _normalize_tag(value: Any) -> Any:
    """Lower-case a tag and fold '-' and spaces into '_' ("Attack-Hostile" -> "attack_hostile")."""
    if isinstance(value, Enum):
        return value
    if isinstance(value, str):
        return "_".join(value.strip().lower().replace("-", " ").split())
    return value


# ============================================================================
# Enumerations
# ============================================================================


class ActionType(str, Enum):
    """Closed action vocabulary shared by the rule engine and the oracle."""

    MOVE = "move"
    WAIT = "wait"
    SCAVENGE = "scavenge"
    ATTACK_HOSTILE = "attack_hostile"
    SEND_MESSAGE = "send_message"
    GIVE_ITEM = "give_item"
    PROPOSE = "propose"
    RESPOND_TO_PROPOSAL = "respond_to_proposal"


class Mood(str, Enum):
    HAPPY = "happy"
    NEUTRAL = "neutral"
    EXCITED = "excited"
    THOUGHTFUL = "thoughtful"
    CONTENT = "content"
    TIRED = "tired"
    SOCIAL = "social"
    CREATIVE = "creative"
    SCARED = "scared"


class ProposalType(str, Enum):
    JOINT_EXPLORATION = "joint_exploration"
    JOINT_COMBAT = "joint_combat"
    MEETING = "meeting"


class ProposalStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class WeaponType(str, Enum):
    MELEE = "melee"
    RANGED = "ranged"


class LocationType(str, Enum):
    HOME = "home"
    SUPERMARKET = "supermarket"
    GENERAL_STORE = "general_store"
    PARK = "park"
    WORK = "work"
    LIBRARY = "library"
    CAFE = "cafe"
    HOSPITAL = "hospital"
    BASE = "base"
    OTHER = "other"


# Which optional fields each action tag requires. Anything missing is a validation error.
REQUIRED_FIELDS: Dict[ActionType, Tuple[str, ...]] = {
    ActionType.MOVE: ("target_location",),
    ActionType.WAIT: (),
    ActionType.SCAVENGE: (),
    ActionType.ATTACK_HOSTILE: ("target_hostile_id",),
    ActionType.SEND_MESSAGE: ("recipient_name", "message_content"),
    ActionType.GIVE_ITEM: ("recipient_name", "item_name"),
    ActionType.PROPOSE: ("proposal_type", "recipient_name", "proposal_content"),
    ActionType.RESPOND_TO_PROPOSAL: ("proposal_id", "proposal_response"),
}


# ============================================================================
# Equipment & World Records
# ============================================================================


class Job(BaseModel):
    name: str
    salary: int = Field(0, ge=0)


class Weapon(BaseModel):
    """A weapon an agent can carry. Damage applies only within ``range``."""

    name: str
    damage: float = Field(..., ge=0)
    range: float = Field(..., ge=0)
    type: WeaponType = WeaponType.MELEE

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        return _normalize_tag(value)


class ResourceSpec(BaseModel):
    """Scavenging odds for one item at one location."""

    probability: float = Field(..., ge=0.0, le=1.0, description="Chance per scavenge attempt")
    max_quantity: int = Field(..., ge=1, description="Upper bound of a successful draw")


class Location(BaseModel):
    """A static named place on the map.

    Only locations of type ``base`` carry ``health``; when it reaches zero the
    simulation ends.
    """

    model_config = ConfigDict(validate_assignment=True)

    name: str
    x: float
    y: float
    width: float = Field(50.0, gt=0)
    height: float = Field(50.0, gt=0)
    type: LocationType = LocationType.OTHER
    owner_id: Optional[int] = Field(None, description="Owning agent id for private property")
    # Insertion order is the scavenging order
    resources: Dict[str, ResourceSpec] = Field(default_factory=dict)
    health: Optional[float] = Field(None, description="Structure health, base only")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        return _normalize_tag(value)

    @field_validator("health")
    @classmethod
    def _floor_health(cls, value: Optional[float]) -> Optional[float]:
        return None if value is None else max(0.0, value)

    @property
    def is_private(self) -> bool:
        return self.owner_id is not None

    @property
    def is_base(self) -> bool:
        return self.type == LocationType.BASE

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)


class Message(BaseModel):
    sender_id: int
    recipient_id: int
    sender_name: str = ""
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class Proposal(BaseModel):
    """A request for joint action. Never mutated once it leaves ``pending``."""

    id: str
    sender_id: int
    recipient_id: int
    sender_name: str = ""
    type: ProposalType
    content: str
    target_location: Optional[str] = None
    status: ProposalStatus = ProposalStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_pending(self) -> bool:
        return self.status == ProposalStatus.PENDING


# ============================================================================
# Agents & Hostiles
# ============================================================================


class Agent(BaseModel):
    """A simulated survivor.

    Vitals (energy, happiness, hunger, fear) are clamped to [0, 100] and money is
    floored at 0 whenever they are assigned. Relationships and inventory are only
    mutated through the helper methods below, which keep them in range.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: int
    name: str
    personality: str = ""

    energy: float = 100.0
    happiness: float = 50.0
    hunger: float = 50.0
    fear: float = 0.0
    mood: Mood = Mood.NEUTRAL
    money: int = 500

    x: float = 0.0
    y: float = 0.0
    target_x: Optional[float] = None
    target_y: Optional[float] = None
    target_location_name: Optional[str] = None
    speed: float = Field(2.0, gt=0)
    current_location_name: str = ""

    job: Optional[Job] = None
    weapon: Optional[Weapon] = None
    inventory: Dict[str, int] = Field(default_factory=dict)
    relationships: Dict[int, float] = Field(default_factory=dict)
    received_messages: List[Message] = Field(default_factory=list)
    pending_proposals: List[Proposal] = Field(default_factory=list)

    goals: List[str] = Field(default_factory=list)
    short_term_plan: str = ""
    current_action: str = ""
    memory: MemoryLog = Field(default_factory=MemoryLog)

    @field_validator("energy", "happiness", "hunger", "fear")
    @classmethod
    def _clamp_vital(cls, value: float) -> float:
        return _clamp(value, 0.0, 100.0)

    @field_validator("money")
    @classmethod
    def _floor_money(cls, value: int) -> int:
        return max(0, value)

    @field_validator("mood", mode="before")
    @classmethod
    def _normalize_mood(cls, value: Any) -> Any:
        return _normalize_tag(value)

    @field_validator("inventory")
    @classmethod
    def _drop_empty_items(cls, value: Dict[str, int]) -> Dict[str, int]:
        return {item: qty for item, qty in value.items() if qty > 0}

    @field_validator("relationships")
    @classmethod
    def _clamp_relationships(cls, value: Dict[int, float]) -> Dict[int, float]:
        return {other: _clamp(strength, -100.0, 100.0) for other, strength in value.items()}

    # ------------------------------------------------------------------
    # Position & movement
    # ------------------------------------------------------------------

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def has_target(self) -> bool:
        return self.target_x is not None and self.target_y is not None

    @property
    def is_alive(self) -> bool:
        return self.energy > 0

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def set_target(self, x: float, y: float, location_name: Optional[str] = None) -> None:
        self.target_x = x
        self.target_y = y
        self.target_location_name = location_name

    def clear_target(self) -> None:
        self.target_x = None
        self.target_y = None
        self.target_location_name = None

    def place_at(self, location: Location) -> None:
        """Put the agent directly on ``location`` with no pending movement."""
        self.x = location.x
        self.y = location.y
        self.current_location_name = location.name
        self.clear_target()

    def step_towards_target(self) -> bool:
        """Advance one constant-speed step. Returns True on arrival."""
        if not self.has_target:
            return False
        dx = self.target_x - self.x
        dy = self.target_y - self.y
        distance = math.hypot(dx, dy)
        if distance <= self.speed:
            self.x = self.target_x
            self.y = self.target_y
            if self.target_location_name:
                self.current_location_name = self.target_location_name
            self.clear_target()
            return True
        self.x += dx / distance * self.speed
        self.y += dy / distance * self.speed
        return False

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def item_count(self, item: str) -> int:
        return self.inventory.get(item, 0)

    def add_item(self, item: str, quantity: int = 1) -> None:
        if quantity <= 0:
            return
        self.inventory[item] = self.inventory.get(item, 0) + quantity

    def remove_item(self, item: str, quantity: int = 1) -> bool:
        """Take ``quantity`` units away. Returns False (and changes nothing) if short."""
        held = self.inventory.get(item, 0)
        if quantity <= 0 or held < quantity:
            return False
        remaining = held - quantity
        if remaining > 0:
            self.inventory[item] = remaining
        else:
            del self.inventory[item]
        return True

    # ------------------------------------------------------------------
    # Social state
    # ------------------------------------------------------------------

    def relationship_with(self, other_id: int) -> float:
        return self.relationships.get(other_id, 0.0)

    def adjust_relationship(self, other_id: int, delta: float) -> float:
        strength = _clamp(self.relationship_with(other_id) + delta, -100.0, 100.0)
        self.relationships[other_id] = strength
        return strength

    def receive_message(self, message: Message, buffer_size: int = 5) -> None:
        self.received_messages.append(message)
        overflow = len(self.received_messages) - buffer_size
        if overflow > 0:
            del self.received_messages[:overflow]

    def find_pending_proposal(self, proposal_id: str) -> Optional[Proposal]:
        for proposal in self.pending_proposals:
            if proposal.id == proposal_id:
                return proposal
        return None


class HostileEntity(BaseModel):
    """An adversarial actor. Targets are stored by id and re-resolved each tick."""

    model_config = ConfigDict(validate_assignment=True)

    id: int
    x: float
    y: float
    health: float = 100.0
    target_agent_id: Optional[int] = None
    speed: float = 5.0
    attack_range: float = 15.0
    damage: float = 10.0

    @property
    def is_alive(self) -> bool:
        return self.health > 0

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def take_damage(self, amount: float) -> float:
        """Lower health by ``amount`` (never raises it). Returns remaining health."""
        self.health = self.health - max(0.0, amount)
        return self.health

    def step_towards(self, x: float, y: float) -> None:
        dx = x - self.x
        dy = y - self.y
        distance = math.hypot(dx, dy)
        if distance == 0:
            return
        step = min(self.speed, distance)
        self.x += dx / distance * step
        self.y += dy / distance * step


# ============================================================================
# Action Response Contract
# ============================================================================

DecisionSource = Literal["rule", "oracle"]


class ActionResponse(BaseModel):
    """One agent's chosen action for a tick.

    Produced either by the RuleEngine or by parsing the oracle's structured reply.
    ``energy`` and ``happiness`` are signed deltas applied only when the action
    succeeds. ``mood`` stays a free string here; the resolver applies it only when
    it names a known Mood.
    """

    action: ActionType = Field(..., description="Tag from the closed action vocabulary")
    plan: str = Field(..., description="Short-term plan text")
    mood: str = Field(..., description="Mood label")
    energy: float = Field(..., description="Signed energy delta")
    happiness: Optional[float] = Field(None, description="Optional signed happiness delta")

    target_location: Optional[str] = None
    target_hostile_id: Optional[int] = None
    recipient_name: Optional[str] = None
    message_content: Optional[str] = None
    item_name: Optional[str] = None
    proposal_type: Optional[ProposalType] = None
    proposal_content: Optional[str] = None
    proposal_id: Optional[str] = None
    proposal_response: Optional[Literal["accept", "reject"]] = None

    reasoning: Optional[str] = None
    # Set by the rule engine when a pending move must be cancelled
    halt_movement: bool = False
    source: DecisionSource = "oracle"

    @field_validator("action", "proposal_type", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> Any:
        return _normalize_tag(value)

    @field_validator("proposal_response", mode="before")
    @classmethod
    def _normalize_response(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return {"accepted": "accept", "rejected": "reject"}.get(value, value)
        return value

    @field_validator("target_location", "recipient_name", "item_name", "proposal_id", mode="before")
    @classmethod
    def _strip_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @model_validator(mode="after")
    def _require_action_fields(self) -> "ActionResponse":
        missing = [
            name for name in REQUIRED_FIELDS[self.action]
            if getattr(self, name) in (None, "")
        ]
        if missing:
            raise ValueError(
                f"action '{self.action.value}' requires field(s): {', '.join(missing)}"
            )
        return self


__all__ = [
    "ActionType",
    "Mood",
    "ProposalType",
    "ProposalStatus",
    "WeaponType",
    "LocationType",
    "REQUIRED_FIELDS",
    "Job",
    "Weapon",
    "ResourceSpec",
    "Location",
    "Message",
    "Proposal",
    "Agent",
    "HostileEntity",
    "DecisionSource",
    "ActionResponse",
]
