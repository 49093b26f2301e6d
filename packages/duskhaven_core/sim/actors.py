"""Actor and gang records owned by the world simulator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..ai.brain import ActorBrain
from ..ai.emotions import EmotionalState
from ..ai.goals import GoalSystem
from ..ai.memory import MemoryStore
from ..ai.personality import TRAIT_NAMES, PersonalityProfile
from ..errors import SimulationInputError
from .combat import Combatant
from .tuning import DEFAULT_TUNING, SimulationTuning


class ActorRole(str, Enum):
    AI = "ai"
    PLAYER = "player"


def parse_role(value: Any) -> ActorRole:
    if isinstance(value, ActorRole):
        return value
    try:
        return ActorRole(str(value or ActorRole.AI.value).strip().lower())
    except ValueError:
        raise SimulationInputError(f"Unknown actor role: {value!r}") from None


@dataclass
class ActorStats:
    health: int = 100
    max_health: int = 100
    gold: int = 50
    level: int = 1
    experience: int = 0
    strength: int = 10
    defense: int = 5
    weapon_power: int = 0

    def health_ratio(self) -> float:
        if self.max_health <= 0:
            return 0.0
        return max(0.0, min(1.0, self.health / float(self.max_health)))

    def to_dict(self) -> dict[str, int]:
        return {
            "health": self.health,
            "max_health": self.max_health,
            "gold": self.gold,
            "level": self.level,
            "experience": self.experience,
            "strength": self.strength,
            "defense": self.defense,
            "weapon_power": self.weapon_power,
        }

    @staticmethod
    def from_dict(raw: dict[str, Any] | None) -> "ActorStats":
        stats = ActorStats()
        for key, value in (raw or {}).items():
            if key not in stats.to_dict() or value is None:
                continue
            try:
                setattr(stats, key, int(value))
            except (TypeError, ValueError):
                raise SimulationInputError(f"Stat '{key}' must be an integer") from None
        stats.max_health = max(1, stats.max_health)
        stats.health = max(0, min(stats.health, stats.max_health))
        stats.gold = max(0, stats.gold)
        stats.level = max(1, stats.level)
        return stats


@dataclass
class Actor:
    """One simulated character. NPCs and players share this record; the role tag decides who drives it."""

    actor_id: str
    name: str
    personality: PersonalityProfile
    location: str
    role: ActorRole = ActorRole.AI
    stats: ActorStats = field(default_factory=ActorStats)
    alive: bool = True
    gang_id: str | None = None
    died_hour: int | None = None
    memory: MemoryStore | None = None
    emotions: EmotionalState | None = None
    goals: GoalSystem | None = None
    brain_seed: str = "0"
    last_tick: int | None = None

    def __post_init__(self) -> None:
        self.actor_id = str(self.actor_id or "").strip()
        if not self.actor_id:
            raise SimulationInputError("Actor id cannot be empty")
        self.role = parse_role(self.role)
        if self.memory is None:
            self.memory = MemoryStore(owner_id=self.actor_id)
        if self.emotions is None:
            self.emotions = EmotionalState()
        if self.goals is None:
            self.goals = GoalSystem(personality=self.personality)
        self.brain = ActorBrain(
            actor_id=self.actor_id,
            personality=self.personality,
            memory=self.memory,
            emotions=self.emotions,
            goals=self.goals,
            seed=self.brain_seed,
            last_tick=self.last_tick,
        )

    @classmethod
    def spawn(
        cls,
        *,
        actor_id: str,
        location: str,
        name: str | None = None,
        archetype: str = "commoner",
        role: Any = ActorRole.AI,
        traits: dict[str, float] | None = None,
        stats: dict[str, Any] | None = None,
        seed: str = "0",
        tuning: SimulationTuning = DEFAULT_TUNING,
    ) -> "Actor":
        personality = PersonalityProfile.from_seed(archetype, f"{seed}:{actor_id}")
        if traits:
            unknown = sorted(set(traits) - set(TRAIT_NAMES))
            if unknown:
                raise SimulationInputError(f"Unknown traits: {', '.join(unknown)}")
            values = personality.as_dict()
            values.update(traits)
            personality = PersonalityProfile.from_dict(values)
        memory = MemoryStore(
            owner_id=actor_id,
            half_life_hours=tuning.recency_half_life_hours,
            retention_hours=tuning.retention_hours,
            max_events=tuning.max_memory_events,
        )
        return cls(
            actor_id=actor_id,
            name=name or actor_id,
            personality=personality,
            location=location,
            role=role,
            stats=ActorStats.from_dict(stats),
            memory=memory,
            brain_seed=str(seed),
        )

    @property
    def is_ai(self) -> bool:
        return self.role == ActorRole.AI

    def set_personality(self, personality: PersonalityProfile) -> None:
        """Swap traits after an explicit story event; goals and brain follow the new profile."""
        self.personality = personality
        self.goals.personality = personality
        self.brain.personality = personality

    def combatant(self) -> Combatant:
        return Combatant(
            actor_id=self.actor_id,
            level=self.stats.level,
            health=self.stats.health,
            max_health=self.stats.max_health,
            strength=self.stats.strength,
            defense=self.stats.defense,
            weapon_power=self.stats.weapon_power,
        )

    def summary(self) -> dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "name": self.name,
            "role": self.role.value,
            "archetype": self.personality.archetype,
            "location": self.location,
            "alive": self.alive,
            "gang_id": self.gang_id,
            "stats": self.stats.to_dict(),
        }

    def detail(self, *, relationship_limit: int = 5) -> dict[str, Any]:
        out = self.summary()
        out["personality"] = self.personality.as_dict()
        out["emotions"] = [e.as_dict() for e in self.emotions.active()]
        out["mood"] = round(self.emotions.mood(), 3)
        out["emotional_summary"] = self.emotions.summary()
        out["goals"] = [g.as_dict() for g in self.goals.get_active_goals()]
        out["relationships"] = self.memory.top_relationships(limit=relationship_limit)
        out["memory"] = self.memory.summary()
        return out


@dataclass
class Gang:
    gang_id: str
    name: str
    leader_id: str
    members: set[str] = field(default_factory=set)
    formed_hour: int = 0

    def size(self) -> int:
        return len(self.members)

    def all_members(self) -> list[str]:
        return [self.leader_id] + sorted(self.members)

    def has_room(self, max_size: int) -> bool:
        return len(self.members) < int(max_size)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gang_id": self.gang_id,
            "name": self.name,
            "leader_id": self.leader_id,
            "members": sorted(self.members),
            "formed_hour": self.formed_hour,
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> "Gang | None":
        gang_id = str(raw.get("gang_id") or "").strip()
        leader_id = str(raw.get("leader_id") or "").strip()
        if not gang_id or not leader_id:
            return None
        return Gang(
            gang_id=gang_id,
            name=str(raw.get("name") or gang_id),
            leader_id=leader_id,
            members={str(m) for m in raw.get("members") or () if str(m) and str(m) != leader_id},
            formed_hour=int(raw.get("formed_hour") or 0),
        )
