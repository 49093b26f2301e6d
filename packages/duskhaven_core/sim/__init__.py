"""World simulation for Duskhaven."""

from .actors import Actor, ActorRole, ActorStats, Gang
from .combat import CombatOutcome, CombatResolver, Combatant, StatCombatResolver
from .events import EventSink, WorldEvent, WorldEventKind
from .persistence import (
    actor_from_blob,
    actor_to_blob,
    deserialize_actor,
    restore_world,
    serialize_actor,
    serialize_world,
)
from .population import generate_population
from .runner import SimulationContext, WorldSimulator
from .tuning import DEFAULT_TUNING, SimulationTuning, tuning_from_env

__all__ = [
    "Actor",
    "ActorRole",
    "ActorStats",
    "Gang",
    "CombatOutcome",
    "CombatResolver",
    "Combatant",
    "StatCombatResolver",
    "EventSink",
    "WorldEvent",
    "WorldEventKind",
    "actor_from_blob",
    "actor_to_blob",
    "deserialize_actor",
    "restore_world",
    "serialize_actor",
    "serialize_world",
    "generate_population",
    "SimulationContext",
    "WorldSimulator",
    "DEFAULT_TUNING",
    "SimulationTuning",
    "tuning_from_env",
]
