"""
Proposal lifecycle between agents.

A proposal is created by one agent and queued on the recipient's pending list.
It stays there, untouched, until the recipient answers it. Answering moves it to
exactly one terminal status (accepted or rejected), removes it from the pending
list and notifies the sender with a synthetic message. An accepted proposal
triggers a joint action:

- joint_exploration / meeting: both agents head for the named location
- joint_combat: both agents head for the nearest live hostile

Several proposals to the same recipient are all kept; there is no expiry.
"""

from __future__ import annotations

import re
import time
from typing import Literal, Optional, Sequence, Set

from outbreak.config import DEFAULT_SETTINGS, SimulationSettings
from outbreak.logging_utils import EventLog
from outbreak.schemas import (
    Agent,
    Location,
    Message,
    Proposal,
    ProposalStatus,
    ProposalType,
)
from outbreak.world import WorldState

_QUOTED_RE = re.compile(r'[「"](.+?)[」"]')


def proposal_id(sender_id: int, recipient_id: int, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"prop-{timestamp_ms}-{sender_id}-{recipient_id}"


def find_mentioned_location(content: str, locations: Sequence[Location]) -> Optional[Location]:
    """Return the location named in ``content``.

    A quoted name wins; otherwise the location whose name appears earliest.
    """

    by_name = {location.name.casefold(): location for location in locations}
    for match in _QUOTED_RE.finditer(content):
        found = by_name.get(match.group(1).strip().casefold())
        if found is not None:
            return found

    lowered = content.casefold()
    best: Optional[Location] = None
    best_index = len(lowered) + 1
    for location in locations:
        index = lowered.find(location.name.casefold())
        if index != -1 and index < best_index:
            best, best_index = location, index
    return best


class NegotiationProtocol:
    def __init__(self, settings: SimulationSettings = DEFAULT_SETTINGS) -> None:
        self.settings = settings
        # Every id handed out, so an answered proposal's id is never reissued
        self._issued_ids: Set[str] = set()

    def propose(
        self,
        sender: Agent,
        recipient: Agent,
        proposal_type: ProposalType,
        content: str,
        *,
        target_location: Optional[str] = None,
        timestamp_ms: Optional[int] = None,
    ) -> Proposal:
        """Create a pending proposal and queue it on ``recipient``."""

        new_id = proposal_id(sender.id, recipient.id, timestamp_ms)
        taken = self._issued_ids | {p.id for p in recipient.pending_proposals}
        suffix = 2
        unique_id = new_id
        while unique_id in taken:
            unique_id = f"{new_id}-{suffix}"
            suffix += 1
        self._issued_ids.add(unique_id)

        proposal = Proposal(
            id=unique_id,
            sender_id=sender.id,
            recipient_id=recipient.id,
            sender_name=sender.name,
            type=proposal_type,
            content=content,
            target_location=target_location,
        )
        recipient.pending_proposals.append(proposal)
        return proposal

    def respond(
        self,
        responder: Agent,
        proposal_id: str,
        response: Literal["accept", "reject"],
        world: WorldState,
        log: EventLog,
    ) -> Optional[Proposal]:
        """Resolve one of ``responder``'s pending proposals.

        Returns the resolved proposal, or None when ``proposal_id`` is not pending
        for this agent (nothing changes in that case).
        """

        pending = responder.find_pending_proposal(proposal_id)
        if pending is None:
            log.error(f"{responder.name} tried to answer unknown proposal {proposal_id}", responder.id)
            return None

        status = ProposalStatus.ACCEPTED if response == "accept" else ProposalStatus.REJECTED
        resolved = pending.model_copy(update={"status": status})
        responder.pending_proposals = [p for p in responder.pending_proposals if p.id != proposal_id]

        verb = "accepted" if status == ProposalStatus.ACCEPTED else "rejected"
        sender = world.get_agent(pending.sender_id)
        if sender is None:
            log.info(
                f"{responder.name} {verb} a {pending.type.value} proposal from an agent who is gone",
                responder.id,
            )
            return resolved

        sender.receive_message(
            Message(
                sender_id=responder.id,
                recipient_id=sender.id,
                sender_name=responder.name,
                content=f"{responder.name} {verb} your {pending.type.value} proposal.",
            ),
            self.settings.message_buffer_size,
        )
        log.action(
            f"{responder.name} {verb} {sender.name}'s {pending.type.value} proposal",
            responder.id,
        )

        if status == ProposalStatus.ACCEPTED:
            self.start_joint_action(resolved, responder, sender, world, log)
        return resolved

    def start_joint_action(
        self,
        proposal: Proposal,
        responder: Agent,
        sender: Agent,
        world: WorldState,
        log: EventLog,
    ) -> bool:
        """Send both participants towards the proposal's objective."""

        if proposal.type == ProposalType.JOINT_COMBAT:
            live = [h for h in world.hostiles if h.is_alive]
            if not live:
                log.info(
                    f"{responder.name} and {sender.name} agreed to fight, but no hostile is around",
                    responder.id,
                )
                return False
            target = min(live, key=lambda h: h.distance_to(responder.x, responder.y))
            responder.set_target(target.x, target.y)
            sender.set_target(target.x, target.y)
            log.system(
                f"{responder.name} and {sender.name} start a joint attack on hostile {target.id}",
                responder.id,
            )
            return True

        location = world.get_location(proposal.target_location) if proposal.target_location else None
        if location is None:
            location = find_mentioned_location(proposal.content, world.locations)
        if location is None:
            log.error(
                f"No known location in {proposal.type.value} proposal: {proposal.content!r}",
                responder.id,
            )
            return False

        responder.set_target(location.x, location.y, location.name)
        sender.set_target(location.x, location.y, location.name)
        activity = "a meeting" if proposal.type == ProposalType.MEETING else "joint exploration"
        log.system(
            f"{responder.name} and {sender.name} head to {location.name} for {activity}",
            responder.id,
        )
        return True


__all__ = ["NegotiationProtocol", "find_mentioned_location", "proposal_id"]
