"""Static game data: weapons, consumables and the default town map."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from outbreak.schemas import Location, LocationType, ResourceSpec, Weapon, WeaponType


@dataclass(frozen=True)
class FoodItem:
    name: str
    hunger_recovery: float
    happiness_bonus: float = 0.0


@dataclass(frozen=True)
class MedicalItem:
    name: str
    energy_recovery: float


WEAPONS: Dict[str, Weapon] = {
    "knife": Weapon(name="knife", damage=10, range=5, type=WeaponType.MELEE),
    "katana": Weapon(name="katana", damage=25, range=7, type=WeaponType.MELEE),
    "pistol": Weapon(name="pistol", damage=20, range=50, type=WeaponType.RANGED),
    "rifle": Weapon(name="rifle", damage=40, range=100, type=WeaponType.RANGED),
}

# Consumption walks these in order and eats the first item held
FOODS: Dict[str, FoodItem] = {
    "bread": FoodItem("bread", hunger_recovery=30),
    "rice ball": FoodItem("rice ball", hunger_recovery=40),
    "water": FoodItem("water", hunger_recovery=10),
    "fruit juice": FoodItem("fruit juice", hunger_recovery=20, happiness_bonus=5),
    "energy drink": FoodItem("energy drink", hunger_recovery=5, happiness_bonus=10),
}

MEDICAL: Dict[str, MedicalItem] = {
    "medkit": MedicalItem("medkit", energy_recovery=30),
    "bandage": MedicalItem("bandage", energy_recovery=15),
}


def weapon(name: str) -> Optional[Weapon]:
    """Return a fresh copy of the named catalog weapon, or None."""
    found = WEAPONS.get(name.strip().lower())
    return found.model_copy() if found is not None else None


def first_held(inventory: Dict[str, int], catalog: Dict[str, object]) -> Optional[str]:
    for name in catalog:
        if inventory.get(name, 0) > 0:
            return name
    return None


def _resources(**specs: tuple) -> Dict[str, ResourceSpec]:
    return {
        name.replace("_", " "): ResourceSpec(probability=probability, max_quantity=max_quantity)
        for name, (probability, max_quantity) in specs.items()
    }


def default_locations(home_owner_id: Optional[int] = 1) -> List[Location]:
    """Build the default map. Returns new objects on every call."""
    return [
        Location(
            name="home", x=100, y=100, width=50, height=50,
            type=LocationType.HOME, owner_id=home_owner_id,
            resources=_resources(water=(0.8, 5), bread=(0.5, 3)),
        ),
        Location(
            name="park", x=300, y=200, width=80, height=80,
            type=LocationType.PARK,
            resources=_resources(water=(0.3, 2)),
        ),
        Location(
            name="library", x=150, y=300, width=60, height=60,
            type=LocationType.LIBRARY,
            resources=_resources(energy_drink=(0.1, 1)),
        ),
        Location(
            name="supermarket", x=400, y=100, width=70, height=70,
            type=LocationType.SUPERMARKET,
            resources=_resources(rice_ball=(0.7, 4), fruit_juice=(0.6, 3), pistol=(0.05, 1)),
        ),
        Location(
            name="base", x=250, y=350, width=100, height=100,
            type=LocationType.BASE, health=500,
        ),
        Location(
            name="hospital", x=450, y=300, width=80, height=60,
            type=LocationType.HOSPITAL,
            resources=_resources(medkit=(0.3, 1), bandage=(0.5, 2), rifle=(0.02, 1), katana=(0.05, 1)),
        ),
    ]


__all__ = [
    "FoodItem",
    "MedicalItem",
    "WEAPONS",
    "FOODS",
    "MEDICAL",
    "weapon",
    "first_held",
    "default_locations",
]
