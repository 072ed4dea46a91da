"""
Outbreak - hybrid rule/oracle agent survival simulation.

Agents on a 2D town map decide each tick through a small set of hard rules
first and a language-model oracle second. The engine validates oracle output
into typed actions, resolves them against the world, moves hostiles, and keeps
vitals, inventories, relationships and proposals consistent tick after tick.
"""

__version__ = "0.1.0"

from .errors import DecisionError, OracleError
from .config import Config, DEFAULT_SETTINGS, SimulationSettings

from .schemas import (
    ActionResponse,
    ActionType,
    Agent,
    HostileEntity,
    Job,
    Location,
    LocationType,
    Message,
    Mood,
    Proposal,
    ProposalStatus,
    ProposalType,
    ResourceSpec,
    Weapon,
    WeaponType,
)
from .memory import MemoryEntry, MemoryLog
from .world import WorldState

# Decision pipeline
from .rule_engine import RuleEngine
from .oracle import DecisionOracleClient
from .parsing import parse_action_response
from .arbiter import DecisionArbiter

# World dynamics
from .actions import ActionOutcome, ActionResolver
from .negotiation import NegotiationProtocol
from .hostiles import HostileEntityAI
from .clock import SimulationClock, TickReport, TickScheduler

# Operator surface
from .persistence import (
    SnapshotStore,
    InMemorySnapshotStore,
    JsonSnapshotStore,
    WorldSnapshot,
)
from .scenario import AgentSpec, ScenarioLoader, default_scenario
from .controller import SimulationController

__all__ = [
    # Errors and configuration
    "DecisionError",
    "OracleError",
    "Config",
    "SimulationSettings",
    "DEFAULT_SETTINGS",
    # Schemas
    "ActionResponse",
    "ActionType",
    "Agent",
    "HostileEntity",
    "Job",
    "Location",
    "LocationType",
    "Message",
    "Mood",
    "Proposal",
    "ProposalStatus",
    "ProposalType",
    "ResourceSpec",
    "Weapon",
    "WeaponType",
    "MemoryEntry",
    "MemoryLog",
    "WorldState",
    # Decision pipeline
    "RuleEngine",
    "DecisionOracleClient",
    "parse_action_response",
    "DecisionArbiter",
    # World dynamics
    "ActionOutcome",
    "ActionResolver",
    "NegotiationProtocol",
    "HostileEntityAI",
    "SimulationClock",
    "TickReport",
    "TickScheduler",
    # Operator surface
    "SnapshotStore",
    "InMemorySnapshotStore",
    "JsonSnapshotStore",
    "WorldSnapshot",
    "AgentSpec",
    "ScenarioLoader",
    "default_scenario",
    "SimulationController",
]
