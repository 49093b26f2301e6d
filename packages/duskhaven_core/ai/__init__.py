"""Cognition components for Duskhaven actors."""

from .brain import Action, ActionType, ActorBrain
from .emotions import EmotionalState, EmotionKind
from .goals import Goal, GoalStatus, GoalSystem, GoalType
from .memory import MemoryEvent, MemoryEventKind, MemoryStore, Relationship, RelationshipType
from .personality import PersonalityProfile
from .relationships import RelationshipManager, RelationshipStatus
from .snapshot import LocationSummary, NearbyActor, WorldSnapshot

__all__ = [
    "Action",
    "ActionType",
    "ActorBrain",
    "EmotionalState",
    "EmotionKind",
    "Goal",
    "GoalStatus",
    "GoalSystem",
    "GoalType",
    "MemoryEvent",
    "MemoryEventKind",
    "MemoryStore",
    "Relationship",
    "RelationshipType",
    "PersonalityProfile",
    "RelationshipManager",
    "RelationshipStatus",
    "LocationSummary",
    "NearbyActor",
    "WorldSnapshot",
]
