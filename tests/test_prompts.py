"""Tests for decision prompt rendering and placeholder replacement."""

from outbreak.catalog import default_locations, weapon
from outbreak.prompts import (
    ACTION_CATALOG,
    PromptTemplate,
    perception_radius,
    render_decision_prompt,
)
from outbreak.schemas import ActionType, Agent, HostileEntity, Message, Proposal, ProposalType


def make_agents():
    locations = default_locations()
    alice = Agent(id=1, name="Alice", personality="curious", inventory={"water": 2})
    bob = Agent(id=2, name="Bob", weapon=weapon("rifle"))
    alice.place_at(locations[0])
    bob.place_at(locations[1])
    return locations, alice, bob


def test_prompt_lists_every_section():
    locations, alice, bob = make_agents()
    alice.adjust_relationship(bob.id, -40)
    alice.pending_proposals.append(
        Proposal(id="prop-9-2-1", sender_id=2, recipient_id=1, sender_name="Bob",
                 type=ProposalType.MEETING, content="meet at the park")
    )
    alice.receive_message(Message(sender_id=2, recipient_id=1, sender_name="Bob", content="stay inside"))

    text = render_decision_prompt(
        alice, tick=7, locations=locations, agents=[alice, bob], hostiles=[]
    ).text

    assert "You are Alice" in text
    assert "Personality: curious" in text
    assert "water x2" in text
    assert "armed with rifle" in text
    assert "THREAT: hostile relationship" in text
    assert "id prop-9-2-1: meeting from Bob" in text
    assert "Bob: stay inside" in text
    assert "{{" not in text
    for action in ActionType:
        assert f"- {action.value}:" in text


def test_locations_are_listed_nearest_first_with_ownership():
    locations, alice, bob = make_agents()
    text = render_decision_prompt(bob, tick=0, locations=locations, agents=[alice, bob], hostiles=[]).text

    section = text.split("Locations (nearest first):\n", 1)[1].split("\n\n", 1)[0]
    names = [line.split(" (", 1)[0][2:] for line in section.splitlines()]
    assert names[0] == "park"
    assert "private, owned by agent 1" in section
    assert "health 500" in section


def test_hostiles_outside_perception_are_hidden():
    locations, alice, bob = make_agents()
    hostiles = [HostileEntity(id=1, x=100, y=150), HostileEntity(id=2, x=100, y=290)]

    alice_view = render_decision_prompt(alice, tick=0, locations=locations, agents=[alice], hostiles=hostiles).text
    assert "hostile id 1" in alice_view
    assert "hostile id 2" not in alice_view

    # A rifle widens perception to its range plus a margin
    bob.place_at(locations[0])
    assert perception_radius(bob) == 120
    assert perception_radius(alice) == 100


def test_custom_template():
    locations, alice, bob = make_agents()
    template = PromptTemplate(name="terse", system="Agent {{agent_name}}", user="Actions: {{actions}}")

    rendered = render_decision_prompt(
        alice, tick=0, locations=locations, agents=[alice], hostiles=[], template=template
    )

    assert rendered.system == "Agent Alice"
    assert rendered.user.startswith("Actions: move, wait")
    assert ACTION_CATALOG not in rendered.text
