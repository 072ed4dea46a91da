"""Tests for hostile pursuit, contact damage, fear and spawning."""

import random

import pytest

from outbreak.catalog import weapon
from outbreak.config import SimulationSettings
from outbreak.hostiles import HostileEntityAI
from outbreak.logging_utils import EventLog
from outbreak.schemas import Agent, HostileEntity, Location
from outbreak.world import WorldState


@pytest.fixture
def log():
    return EventLog(echo=False)


def make_world(*agents, hostiles=(), base_health=None):
    locations = [Location(name="park", x=0, y=0)]
    if base_health is not None:
        locations.append(Location(name="base", x=400, y=400, type="base", health=base_health))
    return WorldState(agents=list(agents), locations=locations, hostiles=list(hostiles))


def test_hostile_out_of_range_deals_no_damage(log):
    agent = Agent(id=1, name="Alice", x=0, y=0, energy=80)
    hostile = HostileEntity(id=1, x=100, y=0)
    world = make_world(agent, hostiles=[hostile])

    HostileEntityAI().advance(world, log)

    assert hostile.x == pytest.approx(95)
    assert hostile.target_agent_id == 1
    assert agent.energy == 80


def test_hostile_in_range_strikes_and_armed_agent_counters(log):
    agent = Agent(id=1, name="Alice", x=0, y=0, energy=80, weapon=weapon("knife"))
    hostile = HostileEntity(id=1, x=10, y=0)
    world = make_world(agent, hostiles=[hostile])

    HostileEntityAI().advance(world, log)

    # One step of 5 brings it to distance 5: inside both ranges
    assert agent.energy == 70
    assert hostile.health == 95


def test_unarmed_agent_does_not_counter(log):
    agent = Agent(id=1, name="Alice", x=0, y=0, energy=80)
    hostile = HostileEntity(id=1, x=10, y=0)
    world = make_world(agent, hostiles=[hostile])

    HostileEntityAI().advance(world, log)

    assert agent.energy == 70
    assert hostile.health == 100


def test_energy_never_drops_below_zero(log):
    agent = Agent(id=1, name="Alice", x=0, y=0, energy=4)
    world = make_world(agent, hostiles=[HostileEntity(id=1, x=3, y=0)])

    HostileEntityAI().advance(world, log)

    assert agent.energy == 0
    assert not agent.is_alive


def test_defeated_hostile_still_acts_until_end_of_tick(log):
    agent = Agent(id=1, name="Alice", x=0, y=0, energy=80)
    hostile = HostileEntity(id=1, x=10, y=0, health=0)
    world = make_world(agent, hostiles=[hostile])
    ai = HostileEntityAI()

    ai.advance(world, log)
    assert agent.energy == 70

    removed = ai.remove_defeated(world, log)
    assert removed == [hostile]
    assert world.hostiles == []


def test_hostile_heads_for_base_when_it_is_closer(log):
    agent = Agent(id=1, name="Alice", x=0, y=0)
    hostile = HostileEntity(id=1, x=380, y=400)
    world = make_world(agent, hostiles=[hostile], base_health=500)

    HostileEntityAI().advance(world, log)

    assert hostile.x == pytest.approx(385)
    assert world.base.health == 495


def test_base_falls(log):
    hostile = HostileEntity(id=1, x=400, y=420)
    world = make_world(hostiles=[hostile], base_health=5)

    HostileEntityAI().advance(world, log)

    assert world.base.health == 0
    assert world.base_destroyed
    assert world.halt_reason() == "base destroyed"
    assert "The base has fallen" in log.messages(["system"])


def test_fear_rises_near_hostiles_and_decays_elsewhere():
    near = Agent(id=1, name="Alice", x=0, y=0, fear=0)
    far = Agent(id=2, name="Bob", x=500, y=500, fear=25)
    world = make_world(near, far, hostiles=[HostileEntity(id=1, x=50, y=0), HostileEntity(id=2, x=0, y=60)])

    HostileEntityAI().update_fear(world)

    assert near.fear == 10
    assert far.fear == 15


def test_spawn_on_map_edge_with_fresh_ids(log):
    settings = SimulationSettings(map_width=500, map_height=400)
    ai = HostileEntityAI(settings, rng=random.Random(7))
    world = make_world(hostiles=[HostileEntity(id=3, x=0, y=0, health=0)])

    first = ai.spawn(world, log)
    ai.remove_defeated(world, log)
    second = ai.spawn(world, log)

    assert first.id == 4
    assert second.id == 5
    for hostile in (first, second):
        on_edge = hostile.x in (0, 500) or hostile.y in (0, 400)
        assert on_edge
        assert hostile.health == settings.hostile_start_health


def test_spawn_cadence(log):
    ai = HostileEntityAI(rng=random.Random(1))
    world = make_world(Agent(id=1, name="Alice"))

    world.tick = 9
    assert ai.maybe_spawn(world, log) is None
    assert world.next_spawn_tick == 10

    world.tick = 10
    assert ai.maybe_spawn(world, log) is not None
    assert 20 <= world.next_spawn_tick <= 39
    assert len(world.hostiles) == 1

    world.tick = 11
    assert ai.maybe_spawn(world, log) is None
