"""Tests for the ActionResolver handlers."""

import pytest

from outbreak.actions import ActionResolver
from outbreak.catalog import default_locations, weapon
from outbreak.logging_utils import EventLog
from outbreak.schemas import (
    ActionResponse,
    ActionType,
    Agent,
    HostileEntity,
    Location,
    Mood,
    ResourceSpec,
)
from outbreak.world import WorldState


class FixedRandom:
    """Deterministic stand-in for random.Random used by scavenging."""

    def __init__(self, rolls):
        self.rolls = list(rolls)

    def random(self):
        return self.rolls.pop(0)

    def randint(self, low, high):
        return high


def respond(action, **fields):
    fields.setdefault("plan", f"do {action}")
    fields.setdefault("mood", "neutral")
    fields.setdefault("energy", 0)
    return ActionResponse(action=action, **fields)


@pytest.fixture
def log():
    return EventLog(echo=False)


@pytest.fixture
def world():
    locations = default_locations()
    alice = Agent(id=1, name="Alice", weapon=weapon("knife"), energy=50)
    bob = Agent(id=2, name="Bob", weapon=weapon("pistol"), energy=50)
    alice.place_at(locations[0])  # home
    bob.place_at(locations[1])  # park
    return WorldState(agents=[alice, bob], locations=locations)


def test_move_sets_target_and_applies_self_report(world, log):
    alice = world.get_agent(1)
    outcome = ActionResolver().apply(
        alice, respond("move", target_location="library", energy=-3, mood="excited"), world, log
    )

    assert outcome.success
    assert (alice.target_x, alice.target_y) == (150, 300)
    assert alice.target_location_name == "library"
    assert alice.energy == 47
    assert alice.mood == Mood.EXCITED
    assert alice.short_term_plan == "do move"
    assert alice.memory.entries[-1].action == "move to library"


def test_move_to_unknown_place_changes_nothing(world, log):
    alice = world.get_agent(1)
    outcome = ActionResolver().apply(
        alice, respond("move", target_location="mall", energy=-5, mood="happy"), world, log
    )

    assert not outcome.success
    assert not alice.has_target
    assert alice.energy == 50
    assert alice.mood == Mood.NEUTRAL
    # Plan and memory still reflect the attempt
    assert alice.short_term_plan == "do move"
    assert alice.memory.entries[-1].action.endswith("(failed)")
    assert log.entries[-1].type == "error"


def test_wait_recovers_energy_and_clamps_delta(world, log):
    alice = world.get_agent(1)
    ActionResolver().apply(alice, respond("wait", energy=50, happiness=-40), world, log)

    # +5 recovery, then the self-reported delta clamped to +10
    assert alice.energy == 65
    assert alice.happiness == 40


def test_unknown_mood_keeps_previous_mood(world, log):
    alice = world.get_agent(1)
    alice.mood = Mood.CONTENT
    ActionResolver().apply(alice, respond("wait", mood="melancholic"), world, log)
    assert alice.mood == Mood.CONTENT


def test_scavenge_takes_first_successful_resource(world, log):
    alice = world.get_agent(1)
    resolver = ActionResolver(rng=FixedRandom([0.0]))

    outcome = resolver.apply(alice, respond("scavenge"), world, log)

    assert outcome.success
    assert alice.inventory == {"water": 5}


def test_scavenge_checks_resources_in_table_order(world, log):
    alice = world.get_agent(1)
    # water misses (0.9 >= 0.8), bread hits (0.1 < 0.5)
    resolver = ActionResolver(rng=FixedRandom([0.9, 0.1]))

    resolver.apply(alice, respond("scavenge"), world, log)

    assert alice.inventory == {"bread": 3}


def test_scavenge_can_find_nothing(world, log):
    alice = world.get_agent(1)
    resolver = ActionResolver(rng=FixedRandom([0.99, 0.99]))

    outcome = resolver.apply(alice, respond("scavenge"), world, log)

    assert outcome.success
    assert alice.inventory == {}


def test_scavenge_where_there_is_nothing_fails(world, log):
    alice = world.get_agent(1)
    alice.place_at(world.get_location("base"))

    outcome = ActionResolver().apply(alice, respond("scavenge", energy=-2), world, log)

    assert not outcome.success
    assert alice.energy == 50


def test_scavenged_stronger_weapon_is_equipped(world, log):
    armory = Location(
        name="armory", x=0, y=0,
        resources={"katana": ResourceSpec(probability=1.0, max_quantity=1)},
    )
    world.locations.append(armory)
    alice = world.get_agent(1)
    alice.place_at(armory)

    ActionResolver(rng=FixedRandom([0.0])).apply(alice, respond("scavenge"), world, log)

    assert alice.weapon.name == "katana"
    assert alice.inventory == {"knife": 1}


def test_attack_without_weapon_deals_no_damage(world, log):
    alice = world.get_agent(1)
    alice.weapon = None
    hostile = HostileEntity(id=1, x=alice.x + 1, y=alice.y)
    world.hostiles.append(hostile)

    outcome = ActionResolver().apply(alice, respond("attack_hostile", target_hostile_id=1), world, log)

    assert not outcome.success
    assert hostile.health == 100


def test_attack_out_of_range_deals_no_damage(world, log):
    alice = world.get_agent(1)
    hostile = HostileEntity(id=1, x=alice.x + 30, y=alice.y)
    world.hostiles.append(hostile)

    outcome = ActionResolver().apply(alice, respond("attack_hostile", target_hostile_id=1), world, log)

    assert not outcome.success
    assert hostile.health == 100


def test_attack_in_range_damages_but_does_not_remove(world, log):
    bob = world.get_agent(2)
    hostile = HostileEntity(id=4, x=bob.x + 30, y=bob.y, health=15)
    world.hostiles.append(hostile)

    outcome = ActionResolver().apply(bob, respond("attack_hostile", target_hostile_id=4), world, log)

    assert outcome.success
    assert hostile.health == -5
    assert world.get_hostile(4) is hostile
    assert any("defeated" in message for message in log.messages(["system"]))


def test_attack_on_missing_hostile_fails(world, log):
    bob = world.get_agent(2)
    outcome = ActionResolver().apply(bob, respond("attack_hostile", target_hostile_id=99), world, log)
    assert not outcome.success


def test_send_message_delivers_and_builds_relationship(world, log):
    alice, bob = world.get_agent(1), world.get_agent(2)

    outcome = ActionResolver().apply(
        alice, respond("send_message", recipient_name="bob", message_content="Are you safe?"), world, log
    )

    assert outcome.success
    assert bob.received_messages[-1].content == "Are you safe?"
    assert bob.received_messages[-1].sender_id == alice.id
    assert bob.relationship_with(alice.id) == 5
    assert alice.relationship_with(bob.id) == 0


def test_send_message_to_unknown_recipient_fails(world, log):
    alice = world.get_agent(1)
    outcome = ActionResolver().apply(
        alice, respond("send_message", recipient_name="Zed", message_content="hello?"), world, log
    )
    assert not outcome.success


def test_give_item_transfers_one_unit(world, log):
    alice, bob = world.get_agent(1), world.get_agent(2)
    alice.add_item("water", 2)

    outcome = ActionResolver().apply(alice, respond("give_item", recipient_name="Bob", item_name="water"), world, log)

    assert outcome.success
    assert alice.inventory == {"water": 1}
    assert bob.inventory == {"water": 1}


def test_give_absent_item_is_a_no_op(world, log):
    alice, bob = world.get_agent(1), world.get_agent(2)

    outcome = ActionResolver().apply(alice, respond("give_item", recipient_name="Bob", item_name="bread"), world, log)

    assert not outcome.success
    assert alice.inventory == {}
    assert bob.inventory == {}


def test_propose_queues_on_recipient(world, log):
    alice, bob = world.get_agent(1), world.get_agent(2)

    outcome = ActionResolver().apply(
        alice,
        respond(
            "propose",
            recipient_name="Bob",
            proposal_type="joint_exploration",
            proposal_content="Let's check the hospital",
            target_location="hospital",
        ),
        world,
        log,
    )

    assert outcome.success
    assert len(bob.pending_proposals) == 1
    proposal = bob.pending_proposals[0]
    assert proposal.sender_id == alice.id
    assert proposal.target_location == "hospital"
    assert proposal.id.startswith("prop-")
    assert proposal.id.endswith("-1-2")


def test_respond_to_unknown_proposal_fails(world, log):
    bob = world.get_agent(2)
    outcome = ActionResolver().apply(
        bob, respond("respond_to_proposal", proposal_id="prop-0-1-2", proposal_response="accept"), world, log
    )
    assert not outcome.success
    assert outcome.action == ActionType.RESPOND_TO_PROPOSAL


def test_halt_movement_clears_target(world, log):
    bob = world.get_agent(2)
    bob.set_target(100, 100, "home")

    ActionResolver().apply(bob, respond("wait", halt_movement=True, source="rule"), world, log)

    assert not bob.has_target
