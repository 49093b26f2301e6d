"""Seeded population generation for new worlds."""

from __future__ import annotations

from typing import Any
import random

from ..errors import SimulationInputError
from ..world.locations import LocationCatalog
from .actors import Actor
from .tuning import DEFAULT_TUNING, SimulationTuning

ARCHETYPE_WEIGHTS = (
    ("commoner", 30),
    ("craftsman", 15),
    ("merchant", 12),
    ("guard", 12),
    ("thug", 12),
    ("priest", 7),
    ("noble", 6),
    ("mystic", 6),
)

FIRST_NAMES = (
    "Aldric", "Brenna", "Cedric", "Dagny", "Edmund", "Fiora", "Gareth", "Hilde",
    "Ivo", "Jorun", "Kestrel", "Liesel", "Marek", "Nessa", "Osric", "Perrin",
    "Quill", "Rowan", "Sigrid", "Tamsin", "Ulric", "Vera", "Wendel", "Yara",
)
SURNAMES = (
    "Ashdown", "Blackwood", "Coldbrook", "Dunmore", "Everhart", "Fenwick",
    "Greyholt", "Hollins", "Ironside", "Marsh", "Oakes", "Thorne",
)


def generate_population(
    count: int,
    *,
    seed: str,
    catalog: LocationCatalog | None = None,
    tuning: SimulationTuning = DEFAULT_TUNING,
    id_prefix: str = "npc",
) -> list[Actor]:
    """Spawn ``count`` AI actors spread over the catalog's social and work spots.

    The same seed, count and catalog always produce the same actors.
    """
    if int(count) < 0:
        raise SimulationInputError("Population count cannot be negative")
    catalog = catalog or LocationCatalog.default()
    rng = random.Random(f"population:{seed}")
    archetypes = [name for name, _ in ARCHETYPE_WEIGHTS]
    weights = [weight for _, weight in ARCHETYPE_WEIGHTS]
    homes = [
        loc.location_id
        for loc in catalog.with_affordance("social") + catalog.with_affordance("work")
        if loc.danger < 0.5
    ] or [catalog.spawn_location]

    actors: list[Actor] = []
    for idx in range(int(count)):
        actor_id = f"{id_prefix}_{idx:04d}"
        archetype = rng.choices(archetypes, weights=weights, k=1)[0]
        name = f"{rng.choice(FIRST_NAMES)} {rng.choice(SURNAMES)}"
        stats: dict[str, Any] = {
            "gold": rng.randint(20, 150),
            "strength": rng.randint(6, 14),
            "defense": rng.randint(3, 8),
        }
        if archetype in {"guard", "thug"}:
            stats["strength"] += 3
            stats["weapon_power"] = 1
        if archetype in {"merchant", "noble"}:
            stats["gold"] += rng.randint(100, 400)
        actors.append(
            Actor.spawn(
                actor_id=actor_id,
                name=name,
                archetype=archetype,
                location=rng.choice(homes),
                stats=stats,
                seed=seed,
                tuning=tuning,
            )
        )
    return actors
