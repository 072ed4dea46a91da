"""
Deterministic decision rules evaluated before the oracle is consulted.

The RuleEngine implements the "if it can be calculated, calculate it" half of
the arbiter: a handful of hard survival and social rules that short-circuit the
oracle entirely. It is a pure function of its inputs. It never mutates the
agent and never suspends, so it is cheap to call every tick and trivial to test.

Rules are checked in fixed priority order and the first match wins:

1. Exhaustion: energy at or below the low-energy threshold forces a rest.
2. Private property: a pending move into a location owned by someone the agent
   does not get along with is refused (the response carries ``halt_movement``
   so the resolver clears the movement target).
3. Night quiet: during the night window, a noisy short-term plan is suppressed.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from outbreak.config import DEFAULT_SETTINGS, SimulationSettings
from outbreak.schemas import ActionResponse, ActionType, Agent, Location, Mood


class RuleEngine:
    """Hard-coded survival and social rules."""

    def __init__(self, settings: SimulationSettings = DEFAULT_SETTINGS) -> None:
        self.settings = settings

    def decide(
        self,
        agent: Agent,
        all_agents: Sequence[Agent],
        all_locations: Sequence[Location],
        tick: int,
    ) -> Optional[ActionResponse]:
        """Return a forced action, or None to defer to the oracle."""

        for rule in (self._exhaustion, self._private_property, self._night_quiet):
            response = rule(agent, all_agents, all_locations, tick)
            if response is not None:
                return response
        return None

    # ------------------------------------------------------------------
    # Individual rules
    # ------------------------------------------------------------------

    def _exhaustion(self, agent, all_agents, all_locations, tick) -> Optional[ActionResponse]:
        if agent.energy > self.settings.low_energy_threshold:
            return None
        return self._forced_wait(
            plan="Energy is running low, resting for a while.",
            mood=Mood.TIRED,
            energy=0.0,
            reasoning="Rule: low energy forces rest.",
        )

    def _private_property(self, agent, all_agents, all_locations, tick) -> Optional[ActionResponse]:
        if not agent.has_target or not agent.target_location_name:
            return None
        location = _find_location(all_locations, agent.target_location_name)
        if location is None or location.owner_id is None or location.owner_id == agent.id:
            return None
        owner = next((other for other in all_agents if other.id == location.owner_id), None)
        if owner is None:
            return None
        if agent.relationship_with(owner.id) >= self.settings.private_property_threshold:
            return None
        return self._forced_wait(
            plan=f"Not entering {location.name}; I don't know {owner.name} well enough.",
            mood=Mood.NEUTRAL,
            energy=-1.0,
            reasoning=f"Rule: private property access denied due to low relationship with {owner.name}.",
            halt_movement=True,
        )

    def _night_quiet(self, agent, all_agents, all_locations, tick) -> Optional[ActionResponse]:
        if not self.is_night(tick):
            return None
        if not _mentions_any(agent.short_term_plan, self.settings.noise_keywords):
            return None
        return self._forced_wait(
            plan="It's night time, keeping quiet.",
            mood=Mood.THOUGHTFUL,
            energy=-2.0,
            happiness=-5.0,
            reasoning="Rule: noise prohibited during night time.",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def is_night(self, tick: int) -> bool:
        return tick % self.settings.night_period >= self.settings.night_start

    @staticmethod
    def _forced_wait(
        *,
        plan: str,
        mood: Mood,
        energy: float,
        reasoning: str,
        happiness: Optional[float] = None,
        halt_movement: bool = False,
    ) -> ActionResponse:
        return ActionResponse(
            action=ActionType.WAIT,
            plan=plan,
            mood=mood.value,
            energy=energy,
            happiness=happiness,
            reasoning=reasoning,
            halt_movement=halt_movement,
            source="rule",
        )


def _find_location(locations: Iterable[Location], name: str) -> Optional[Location]:
    wanted = name.strip().casefold()
    return next((loc for loc in locations if loc.name.casefold() == wanted), None)


def _mentions_any(text: str, keywords: Iterable[str]) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


__all__ = ["RuleEngine"]
