"""Tests for the tick sequence, scenario properties and the tick scheduler."""

import asyncio
import itertools
import json
import random
from unittest.mock import AsyncMock

import pytest

from outbreak.actions import ActionResolver
from outbreak.arbiter import DecisionArbiter
from outbreak.catalog import default_locations, weapon
from outbreak.clock import SimulationClock, TickScheduler, advance_vitals, apply_consumption
from outbreak.errors import DecisionError, OracleError
from outbreak.hostiles import HostileEntityAI
from outbreak.logging_utils import EventLog
from outbreak.schemas import Agent, HostileEntity, Location, Weapon
from outbreak.world import WorldState


def action_json(action="wait", **fields):
    payload = {"plan": f"do {action}", "action": action, "mood": "content", "energy": 0}
    payload.update(fields)
    return json.dumps(payload)


def make_oracle(*replies):
    oracle = AsyncMock()
    if len(replies) == 1 and not isinstance(replies[0], Exception):
        oracle.generate = AsyncMock(return_value=replies[0])
    else:
        oracle.generate = AsyncMock(side_effect=list(replies))
    return oracle


def make_clock(world, oracle, *, max_attempts=1, rng=None, summary_interval=0, summarizer=None):
    rng = rng or random.Random(0)
    return SimulationClock(
        world,
        DecisionArbiter(oracle, max_attempts=max_attempts),
        resolver=ActionResolver(rng=rng),
        hostile_ai=HostileEntityAI(rng=rng),
        log=EventLog(echo=False),
        summarizer=summarizer,
        summary_interval=summary_interval,
    )


def park_world(*agents, hostiles=()):
    park = Location(name="park", x=300, y=200)
    home = Location(name="home", x=100, y=100, type="home")
    for agent in agents:
        agent.place_at(park)
    return WorldState(agents=list(agents), locations=[park, home], hostiles=list(hostiles))


# ----------------------------------------------------------------------
# Passive updates
# ----------------------------------------------------------------------


def test_advance_vitals_couples_hunger_and_happiness():
    agent = Agent(id=1, name="Alice", hunger=75, happiness=50, fear=20)
    advance_vitals(agent)
    assert agent.hunger == 75.5
    assert agent.happiness == pytest.approx(48.8)


def test_consumption_uses_medical_items_when_weak():
    agent = Agent(id=1, name="Alice", energy=25, inventory={"bandage": 1, "medkit": 1})
    apply_consumption(agent, EventLog(echo=False))
    assert agent.energy == 55
    assert agent.inventory == {"bandage": 1}


def test_hungry_agent_without_food_is_noted():
    agent = Agent(id=1, name="Alice", hunger=90)
    log = EventLog(echo=False)
    apply_consumption(agent, log)
    assert agent.hunger == 90
    assert log.entries[-1].type == "debug"


# ----------------------------------------------------------------------
# Scenario properties
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_hungry_agent_eats_bread_during_the_tick():
    alice = Agent(id=1, name="Alice", hunger=85, inventory={"bread": 1})
    world = park_world(alice)
    clock = make_clock(world, make_oracle(action_json("wait")))

    report = await clock.step()

    # +0.5 hunger drift, then -30 from the bread
    assert alice.hunger == pytest.approx(55.5)
    assert "bread" not in alice.inventory
    assert report.decisions == {1: "oracle"}
    assert world.tick == 1


@pytest.mark.asyncio
async def test_hostile_killed_by_two_attacks_is_removed_at_end_of_tick():
    hostile = HostileEntity(id=1, x=340, y=200, health=100)
    alice = Agent(id=1, name="Alice", weapon=Weapon(name="rifle", damage=40, range=100))
    bob = Agent(id=2, name="Bob", weapon=Weapon(name="cannon", damage=65, range=100))
    world = park_world(alice, bob, hostiles=[hostile])
    clock = make_clock(world, make_oracle(action_json("attack_hostile", target_hostile_id=1)))

    report = await clock.step()

    assert hostile.health == -5
    assert report.outcomes[1].success and report.outcomes[2].success
    # Still in the list during the hostile phase: it kept moving towards the agents
    assert hostile.x == pytest.approx(335)
    assert report.removed_hostiles == [1]
    assert world.hostiles == []

    messages = [entry.message for entry in report.logs]
    defeated = next(i for i, m in enumerate(messages) if "was defeated" in m)
    removed = next(i for i, m in enumerate(messages) if m == "Hostile 1 is removed")
    assert defeated < removed


@pytest.mark.asyncio
async def test_unknown_move_target_fails_the_decision_and_leaves_position():
    alice = Agent(id=1, name="Alice")
    world = park_world(alice)
    oracle = make_oracle(action_json("move", target_location="shopping mall"))
    clock = make_clock(world, oracle)

    with pytest.raises(DecisionError):
        await clock.arbiter.decide_action(alice, 0, world.locations, world.agents, world.hostiles)

    before = alice.position
    report = await clock.step()

    assert isinstance(report.failures[1], DecisionError)
    assert 1 not in report.outcomes
    assert alice.position == before
    assert not alice.has_target
    assert any(entry.type == "error" for entry in report.logs)


@pytest.mark.asyncio
async def test_exactly_one_decision_source_per_agent():
    tired = Agent(id=1, name="Alice", energy=10)
    fresh = Agent(id=2, name="Bob")
    world = park_world(tired, fresh)
    oracle = make_oracle(action_json("wait"))
    clock = make_clock(world, oracle)

    report = await clock.step()

    assert report.decisions == {1: "rule", 2: "oracle"}
    oracle.generate.assert_awaited_once()
    assert "You are Bob" in oracle.generate.await_args.args[0]


@pytest.mark.asyncio
async def test_oracle_failure_skips_only_that_agent():
    alice = Agent(id=1, name="Alice", energy=50)
    bob = Agent(id=2, name="Bob", energy=50)
    world = park_world(alice, bob)

    async def generate(prompt):
        if "You are Alice" in prompt:
            raise OracleError("timed out")
        return action_json("wait")

    oracle = AsyncMock()
    oracle.generate = AsyncMock(side_effect=generate)
    clock = make_clock(world, oracle)

    report = await clock.step()

    assert isinstance(report.failures[1], OracleError)
    assert report.outcomes[2].success
    assert alice.energy == 50
    assert bob.energy == 55


@pytest.mark.asyncio
async def test_decisions_are_in_flight_together_and_applied_in_list_order():
    alice = Agent(id=1, name="Alice", inventory={"water": 1})
    bob = Agent(id=2, name="Bob")
    world = park_world(alice, bob)
    prompts = {}
    in_flight = 0
    peak = 0
    everyone_asked = asyncio.Event()

    async def generate(prompt):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        if in_flight == len(world.agents):
            everyone_asked.set()
        await asyncio.wait_for(everyone_asked.wait(), timeout=1)
        in_flight -= 1
        if "You are Alice" in prompt:
            prompts["Alice"] = prompt
            return action_json("give_item", recipient_name="Bob", item_name="water")
        prompts["Bob"] = prompt
        return action_json("give_item", recipient_name="Alice", item_name="water")

    oracle = AsyncMock()
    oracle.generate = AsyncMock(side_effect=generate)
    clock = make_clock(world, oracle)

    report = await clock.step()

    assert peak == 2
    # Bob decided before Alice's gift landed
    assert "water x1" not in prompts["Bob"]
    # Alice gives first, so Bob can hand the same bottle straight back
    assert report.outcomes[1].success and report.outcomes[2].success
    assert alice.inventory == {"water": 1}
    assert bob.inventory == {}


@pytest.mark.asyncio
async def test_movement_happens_after_actions():
    alice = Agent(id=1, name="Alice")
    world = park_world(alice)
    clock = make_clock(world, make_oracle(action_json("move", target_location="home")))

    await clock.step()

    # One step of speed 2 from the park towards home
    assert alice.distance_to(300, 200) == pytest.approx(2)
    assert alice.target_location_name == "home"


@pytest.mark.asyncio
async def test_exhausted_agents_are_removed_and_the_run_halts():
    alice = Agent(id=1, name="Alice", energy=3)
    world = park_world(alice, hostiles=[HostileEntity(id=1, x=305, y=200)])
    clock = make_clock(world, make_oracle(action_json("wait")))

    report = await clock.step()

    assert report.removed_agents == [1]
    assert report.halted
    assert report.halt_reason == "no agents remain"
    assert world.hostiles[0].target_agent_id is None

    again = await clock.step()
    assert again.halted
    assert world.tick == 1


@pytest.mark.asyncio
async def test_invariants_hold_over_many_ticks():
    locations = default_locations()
    agents = [
        Agent(id=1, name="Alice", weapon=weapon("knife"), inventory={"water": 1}),
        Agent(id=2, name="Bob", weapon=weapon("pistol"), hunger=95),
        Agent(id=3, name="Chiyo", energy=35, inventory={"bandage": 1}),
    ]
    for agent, location in zip(agents, locations[:3]):
        agent.place_at(location)
    world = WorldState(agents=agents, locations=locations, hostiles=[HostileEntity(id=1, x=120, y=100)])

    replies = itertools.cycle([
        action_json("wait", energy=80, happiness=-90, mood="ecstatic"),
        action_json("send_message", recipient_name="Alice", message_content="hi", happiness=40),
        action_json("give_item", recipient_name="Bob", item_name="water", energy=-50),
        action_json("scavenge", energy=-4),
        action_json("attack_hostile", target_hostile_id=1, energy=-10),
        action_json("move", target_location="base"),
        action_json("propose", recipient_name="Chiyo", proposal_type="meeting",
                    proposal_content="meet at the park"),
    ])
    oracle = AsyncMock()
    oracle.generate = AsyncMock(side_effect=lambda prompt: next(replies))
    clock = make_clock(world, oracle, rng=random.Random(3))

    for _ in range(25):
        report = await clock.step()
        for agent in world.agents:
            for value in (agent.energy, agent.happiness, agent.hunger, agent.fear):
                assert 0 <= value <= 100
            assert all(-100 <= strength <= 100 for strength in agent.relationships.values())
            assert all(quantity > 0 for quantity in agent.inventory.values())
            assert agent.money >= 0
        if report.halted:
            break


@pytest.mark.asyncio
async def test_memory_is_summarized_on_interval():
    alice = Agent(id=1, name="Alice")
    world = park_world(alice)
    summarizer = AsyncMock()
    summarizer.generate = AsyncMock(return_value="Alice rested twice in the park.")
    clock = make_clock(world, make_oracle(action_json("wait")), summary_interval=2, summarizer=summarizer)

    await clock.step()
    assert len(alice.memory.entries) == 1
    summarizer.generate.assert_not_awaited()

    await clock.step()
    assert alice.memory.entries == []
    assert alice.memory.summaries == ["Alice rested twice in the park."]


@pytest.mark.asyncio
async def test_failed_summary_keeps_raw_memory():
    alice = Agent(id=1, name="Alice")
    world = park_world(alice)
    summarizer = AsyncMock()
    summarizer.generate = AsyncMock(side_effect=OracleError("offline"))
    clock = make_clock(world, make_oracle(action_json("wait")), summary_interval=1, summarizer=summarizer)

    report = await clock.step()

    assert len(alice.memory.entries) == 1
    assert any("Memory summary failed" in entry.message for entry in report.logs)


# ----------------------------------------------------------------------
# Scheduler
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_scheduler_runs_requested_ticks_with_delay():
    world = park_world(Agent(id=1, name="Alice"))
    clock = make_clock(world, make_oracle(action_json("wait")))
    sleep = AsyncMock()
    scheduler = TickScheduler(clock, delay=0.25, sleep=sleep)

    reports = await scheduler.run(max_ticks=3)

    assert [report.tick for report in reports] == [0, 1, 2]
    assert world.tick == 3
    assert sleep.await_count == 2
    sleep.assert_awaited_with(0.25)


@pytest.mark.asyncio
async def test_scheduler_stop_finishes_current_tick():
    world = park_world(Agent(id=1, name="Alice"))
    clock = make_clock(world, make_oracle(action_json("wait")))

    async def yield_only(_delay):
        await asyncio.sleep(0)

    scheduler = TickScheduler(clock, delay=0, sleep=yield_only)
    scheduler.start()
    assert scheduler.running
    with pytest.raises(RuntimeError):
        scheduler.start()

    await asyncio.sleep(0)
    await scheduler.stop()

    assert not scheduler.running
    assert world.tick == len(scheduler.reports)
    assert world.tick >= 1
