"""
ActionResolver: apply an arbitrated action to the world.

One handler per action tag. Handlers never raise for expected failures (unknown
place, no weapon, missing item); they return an unsuccessful ``ActionOutcome``
and write a log entry, leaving every vital untouched. The response's energy and
happiness deltas, and its mood, are applied only after a handler succeeds.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from outbreak import catalog
from outbreak.config import DEFAULT_SETTINGS, SimulationSettings
from outbreak.logging_utils import EventLog
from outbreak.negotiation import NegotiationProtocol
from outbreak.schemas import ActionResponse, ActionType, Agent, Message, Mood
from outbreak.world import WorldState

_MOODS = frozenset(mood.value for mood in Mood)


@dataclass
class ActionOutcome:
    action: ActionType
    success: bool
    description: str


Handler = Callable[[Agent, ActionResponse, WorldState, EventLog], ActionOutcome]


class ActionResolver:
    """Applies validated actions one agent at a time."""

    def __init__(
        self,
        settings: SimulationSettings = DEFAULT_SETTINGS,
        *,
        negotiation: Optional[NegotiationProtocol] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self.negotiation = negotiation or NegotiationProtocol(settings)
        self.rng = rng or random.Random()
        self._handlers: Dict[ActionType, Handler] = {
            ActionType.MOVE: self.handle_move,
            ActionType.WAIT: self.handle_wait,
            ActionType.SCAVENGE: self.handle_scavenge,
            ActionType.ATTACK_HOSTILE: self.handle_attack,
            ActionType.SEND_MESSAGE: self.handle_send_message,
            ActionType.GIVE_ITEM: self.handle_give_item,
            ActionType.PROPOSE: self.handle_propose,
            ActionType.RESPOND_TO_PROPOSAL: self.handle_respond,
        }

    def apply(self, agent: Agent, response: ActionResponse, world: WorldState, log: EventLog) -> ActionOutcome:
        if response.halt_movement and agent.has_target:
            agent.clear_target()
            log.info(f"{agent.name} stops moving", agent.id)

        outcome = self._handlers[response.action](agent, response, world, log)

        agent.short_term_plan = response.plan
        agent.current_action = outcome.description
        if outcome.success:
            self._apply_self_report(agent, response)

        status = "" if outcome.success else " (failed)"
        agent.memory.add(
            world.tick,
            f"{outcome.description}{status}",
            context=f"at {agent.current_location_name or 'open ground'}",
        )
        return outcome

    def _apply_self_report(self, agent: Agent, response: ActionResponse) -> None:
        limit = self.settings.energy_delta_limit
        agent.energy = agent.energy + max(-limit, min(limit, response.energy))
        if response.happiness is not None:
            agent.happiness = agent.happiness + max(-limit, min(limit, response.happiness))
        # Unknown labels keep the previous mood
        mood = response.mood.strip().lower()
        if mood in _MOODS:
            agent.mood = Mood(mood)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def handle_move(self, agent, response, world, log) -> ActionOutcome:
        location = world.get_location(response.target_location)
        if location is None:
            log.error(f"{agent.name} tried to move to unknown place {response.target_location!r}", agent.id)
            return ActionOutcome(ActionType.MOVE, False, f"move to {response.target_location}")
        agent.set_target(location.x, location.y, location.name)
        log.action(f"{agent.name} starts moving to {location.name}", agent.id)
        return ActionOutcome(ActionType.MOVE, True, f"move to {location.name}")

    def handle_wait(self, agent, response, world, log) -> ActionOutcome:
        agent.energy = agent.energy + self.settings.wait_recovery
        log.action(f"{agent.name} rests and recovers some energy", agent.id)
        return ActionOutcome(ActionType.WAIT, True, "wait")

    def handle_scavenge(self, agent, response, world, log) -> ActionOutcome:
        location = world.get_location(agent.current_location_name)
        if location is None or not location.resources:
            log.info(f"{agent.name} has nothing to scavenge here", agent.id)
            return ActionOutcome(ActionType.SCAVENGE, False, "scavenge")

        # At most one resource type per attempt, checked in table order
        for item, spec in location.resources.items():
            if self.rng.random() < spec.probability:
                quantity = self.rng.randint(1, spec.max_quantity)
                self._collect(agent, item, quantity, log)
                log.action(f"{agent.name} found {quantity} x {item} at {location.name}", agent.id)
                return ActionOutcome(ActionType.SCAVENGE, True, f"scavenge {item} at {location.name}")

        log.action(f"{agent.name} found nothing at {location.name}", agent.id)
        return ActionOutcome(ActionType.SCAVENGE, True, f"scavenge at {location.name}")

    def _collect(self, agent: Agent, item: str, quantity: int, log: EventLog) -> None:
        found = catalog.weapon(item)
        if found is not None and (agent.weapon is None or found.damage > agent.weapon.damage):
            if agent.weapon is not None:
                agent.add_item(agent.weapon.name)
            agent.weapon = found
            log.info(f"{agent.name} equips a {found.name}", agent.id)
            quantity -= 1
        agent.add_item(item, quantity)

    def handle_attack(self, agent, response, world, log) -> ActionOutcome:
        target_id = response.target_hostile_id
        description = f"attack hostile {target_id}"
        if agent.weapon is None:
            log.error(f"{agent.name} has no weapon to attack hostile {target_id}", agent.id)
            return ActionOutcome(ActionType.ATTACK_HOSTILE, False, description)

        hostile = world.get_hostile(target_id)
        if hostile is None or not hostile.is_alive:
            log.error(f"{agent.name} attacked hostile {target_id}, which is not there", agent.id)
            return ActionOutcome(ActionType.ATTACK_HOSTILE, False, description)

        distance = hostile.distance_to(agent.x, agent.y)
        if distance > agent.weapon.range:
            log.info(
                f"{agent.name} swung at hostile {hostile.id} but it is out of range "
                f"({distance:.0f} > {agent.weapon.range:g})",
                agent.id,
            )
            return ActionOutcome(ActionType.ATTACK_HOSTILE, False, description)

        remaining = hostile.take_damage(agent.weapon.damage)
        log.action(
            f"{agent.name} hits hostile {hostile.id} with a {agent.weapon.name} for "
            f"{agent.weapon.damage:g} (health {remaining:g})",
            agent.id,
        )
        if remaining <= 0:
            # Removal happens in the end-of-tick filter
            log.system(f"Hostile {hostile.id} was defeated by {agent.name}", agent.id)
        return ActionOutcome(ActionType.ATTACK_HOSTILE, True, description)

    def handle_send_message(self, agent, response, world, log) -> ActionOutcome:
        recipient = world.find_agent_by_name(response.recipient_name)
        description = f"message {response.recipient_name}"
        if recipient is None or recipient.id == agent.id:
            log.error(f"{agent.name} tried to message unknown recipient {response.recipient_name!r}", agent.id)
            return ActionOutcome(ActionType.SEND_MESSAGE, False, description)

        recipient.receive_message(
            Message(
                sender_id=agent.id,
                recipient_id=recipient.id,
                sender_name=agent.name,
                content=response.message_content,
            ),
            self.settings.message_buffer_size,
        )
        recipient.adjust_relationship(agent.id, self.settings.relationship_gain_per_message)
        log.action(f"{agent.name} -> {recipient.name}: {response.message_content}", agent.id)
        return ActionOutcome(ActionType.SEND_MESSAGE, True, f"message {recipient.name}")

    def handle_give_item(self, agent, response, world, log) -> ActionOutcome:
        recipient = world.find_agent_by_name(response.recipient_name)
        item = response.item_name
        description = f"give {item} to {response.recipient_name}"
        if recipient is None or recipient.id == agent.id:
            log.error(f"{agent.name} tried to give {item} to unknown recipient {response.recipient_name!r}", agent.id)
            return ActionOutcome(ActionType.GIVE_ITEM, False, description)
        if not agent.remove_item(item):
            log.info(f"{agent.name} has no {item} to give {recipient.name}", agent.id)
            return ActionOutcome(ActionType.GIVE_ITEM, False, description)

        recipient.add_item(item)
        log.action(f"{agent.name} gave {item} to {recipient.name}", agent.id)
        return ActionOutcome(ActionType.GIVE_ITEM, True, description)

    def handle_propose(self, agent, response, world, log) -> ActionOutcome:
        recipient = world.find_agent_by_name(response.recipient_name)
        description = f"propose {response.proposal_type.value} to {response.recipient_name}"
        if recipient is None or recipient.id == agent.id:
            log.error(f"{agent.name} proposed to unknown recipient {response.recipient_name!r}", agent.id)
            return ActionOutcome(ActionType.PROPOSE, False, description)

        proposal = self.negotiation.propose(
            agent,
            recipient,
            response.proposal_type,
            response.proposal_content,
            target_location=response.target_location,
        )
        log.action(
            f"{agent.name} proposes {proposal.type.value} to {recipient.name}: {proposal.content}",
            agent.id,
        )
        return ActionOutcome(ActionType.PROPOSE, True, description)

    def handle_respond(self, agent, response, world, log) -> ActionOutcome:
        description = f"{response.proposal_response} proposal {response.proposal_id}"
        resolved = self.negotiation.respond(
            agent, response.proposal_id, response.proposal_response, world, log
        )
        return ActionOutcome(ActionType.RESPOND_TO_PROPOSAL, resolved is not None, description)


__all__ = ["ActionOutcome", "ActionResolver"]
