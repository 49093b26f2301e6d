"""Prioritized, self-maintaining goals derived from personality and memory."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator
import math

from ..errors import CognitionInputError
from .constants import (
    ELITE_LEVEL,
    HEAL_DONE_RATIO,
    HEAL_TRIGGER_RATIO,
    INFLUENCE_GANG_SIZE,
    MAX_REVENGE_GOALS,
    REVENGE_HOSTILITY,
    REVENGE_VENGEFULNESS_FLOOR,
    RULER_MIN_LEVEL,
    WEALTH_GOAL_GOLD,
    WEAPON_BASE_COST,
    FOLLOWER_FRIENDSHIP,
    FOLLOWER_LOYALTY,
)
from .emotions import EmotionalState, EmotionKind
from .memory import MemoryEventKind, MemoryStore
from .personality import PersonalityProfile
from .snapshot import WorldSnapshot


GOAL_DECAY = 0.995
ABANDON_PRIORITY = 0.1
GOAL_HISTORY_LIMIT = 20


class GoalType(str, Enum):
    ACCUMULATE_WEALTH = "accumulate_wealth"
    GET_REVENGE = "get_revenge"
    BECOME_RULER = "become_ruler"
    GAIN_INFLUENCE = "gain_influence"
    JOIN_GANG = "join_gang"
    SUPPORT_GANG = "support_gang"
    FIND_BETTER_WEAPON = "find_better_weapon"
    MAKE_FRIENDS = "make_friends"
    HEAL_WOUNDS = "heal_wounds"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    SATISFIED = "satisfied"
    INVALIDATED = "invalidated"
    SUPERSEDED = "superseded"


# goal type -> (emotion that amplifies it, boost per unit of intensity)
_EMOTION_BOOSTS: dict[GoalType, tuple[EmotionKind, float]] = {
    GoalType.GET_REVENGE: (EmotionKind.ANGER, 0.5),
    GoalType.HEAL_WOUNDS: (EmotionKind.FEAR, 0.3),
    GoalType.ACCUMULATE_WEALTH: (EmotionKind.GREED, 0.4),
    GoalType.BECOME_RULER: (EmotionKind.CONFIDENCE, 0.2),
    GoalType.GAIN_INFLUENCE: (EmotionKind.CONFIDENCE, 0.2),
    GoalType.MAKE_FRIENDS: (EmotionKind.LONELINESS, 0.6),
    GoalType.JOIN_GANG: (EmotionKind.LONELINESS, 0.6),
}

_SINGLE_SLOT_TYPES = {GoalType.JOIN_GANG}


def parse_goal_type(value: Any) -> GoalType:
    if isinstance(value, GoalType):
        return value
    try:
        return GoalType(str(value or "").strip().lower())
    except ValueError:
        raise CognitionInputError(f"Unknown goal type: {value!r}") from None


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def weapon_target_power(level: int) -> int:
    return max(1, int(level) // 2)


@dataclass
class Goal:
    goal_type: GoalType
    priority: float
    target_id: str | None = None
    created_hour: int = 0
    seq: int = 0
    status: GoalStatus = GoalStatus.ACTIVE
    emotion_boost: float = 1.0

    def __post_init__(self) -> None:
        self.goal_type = parse_goal_type(self.goal_type)
        try:
            priority = float(self.priority)
        except (TypeError, ValueError):
            raise CognitionInputError(f"Goal priority must be a number, got {self.priority!r}") from None
        if not math.isfinite(priority) or priority < 0.0 or priority > 1.0:
            raise CognitionInputError(f"Goal priority must be within [0, 1], got {self.priority!r}")
        self.priority = priority

    @property
    def key(self) -> tuple[GoalType, str | None]:
        return (self.goal_type, self.target_id)

    def effective_priority(self) -> float:
        return _clamp_unit(self.priority * self.emotion_boost)

    def as_dict(self) -> dict[str, Any]:
        return {
            "goal_type": self.goal_type.value,
            "target_id": self.target_id,
            "priority": self.priority,
            "effective_priority": round(self.effective_priority(), 4),
            "created_hour": self.created_hour,
            "seq": self.seq,
            "status": self.status.value,
            "emotion_boost": self.emotion_boost,
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> "Goal | None":
        try:
            return Goal(
                goal_type=parse_goal_type(raw.get("goal_type")),
                priority=float(raw.get("priority") or 0.0),
                target_id=str(raw["target_id"]) if raw.get("target_id") else None,
                created_hour=int(raw.get("created_hour") or 0),
                seq=int(raw.get("seq") or 0),
                status=GoalStatus(str(raw.get("status") or GoalStatus.ACTIVE.value)),
                emotion_boost=float(raw.get("emotion_boost") or 1.0),
            )
        except (CognitionInputError, TypeError, ValueError):
            return None


@dataclass(frozen=True)
class GoalUpdate:
    added: tuple[Goal, ...] = ()
    closed: tuple[Goal, ...] = ()


@dataclass(frozen=True)
class LevelUpOutcome:
    level: int
    boosted_goals: int
    elite_status: bool


@dataclass
class GoalSystem:
    """Active goals for one actor.

    Ordering rule: higher effective priority first; equal priorities prefer the
    goal created most recently (higher sequence number).
    """

    personality: PersonalityProfile
    _goals: list[Goal] = field(default_factory=list, repr=False)
    _next_seq: int = field(default=1, repr=False)
    _history: deque[Goal] = field(default_factory=lambda: deque(maxlen=GOAL_HISTORY_LIMIT), repr=False)

    def add_goal(
        self,
        goal_type: Any,
        *,
        priority: float,
        target_id: str | None = None,
        hour: int = 0,
    ) -> Goal:
        goal = Goal(goal_type=goal_type, priority=priority, target_id=target_id, created_hour=int(hour))
        existing = self._find(goal.key)
        if existing is not None:
            existing.priority = goal.priority
            return existing
        return self._materialize(goal)

    def _materialize(self, goal: Goal) -> Goal:
        goal.seq = self._next_seq
        self._next_seq += 1
        goal.status = GoalStatus.ACTIVE
        self._goals.append(goal)
        return goal

    def _find(self, key: tuple[GoalType, str | None]) -> Goal | None:
        for goal in self._goals:
            if goal.key == key:
                return goal
        return None

    def get_priority_goal(self) -> Goal | None:
        if not self._goals:
            return None
        return max(self._goals, key=lambda g: (g.effective_priority(), g.seq))

    def get_active_goals(self) -> Iterator[Goal]:
        ranked = sorted(self._goals, key=lambda g: (-g.effective_priority(), -g.seq))
        return iter(ranked)

    def has_goal(self, goal_type: Any, target_id: str | None = None) -> bool:
        return self._find((parse_goal_type(goal_type), target_id)) is not None

    def recent_history(self) -> list[Goal]:
        return list(self._history)

    def protected_targets(self) -> set[str]:
        return {g.target_id for g in self._goals if g.target_id}

    def update_goals(
        self,
        *,
        memory: MemoryStore,
        emotions: EmotionalState,
        snapshot: WorldSnapshot,
    ) -> GoalUpdate:
        proposals = self._propose(memory=memory, snapshot=snapshot)

        closed: list[Goal] = []
        survivors: list[Goal] = []
        for goal in self._goals:
            status = self._check(goal, memory=memory, snapshot=snapshot)
            if status is None:
                proposed = proposals.get(goal.key)
                if proposed is not None:
                    goal.priority = proposed
                else:
                    goal.priority = _clamp_unit(goal.priority * GOAL_DECAY)
                    if goal.priority < ABANDON_PRIORITY:
                        status = GoalStatus.INVALIDATED
            if status is None:
                survivors.append(goal)
            else:
                goal.status = status
                closed.append(goal)
        self._goals = survivors

        added: list[Goal] = []
        for key in sorted(proposals, key=lambda k: (k[0].value, k[1] or "")):
            if self._find(key) is not None:
                continue
            goal_type, target_id = key
            candidate = Goal(goal_type=goal_type, priority=proposals[key], target_id=target_id, created_hour=snapshot.hour)
            if goal_type in _SINGLE_SLOT_TYPES:
                rival = next((g for g in self._goals if g.goal_type == goal_type), None)
                if rival is not None:
                    if candidate.priority <= rival.priority:
                        continue
                    rival.status = GoalStatus.SUPERSEDED
                    self._goals.remove(rival)
                    closed.append(rival)
            added.append(self._materialize(candidate))

        for goal in self._goals:
            goal.emotion_boost = self._emotion_boost(goal.goal_type, emotions)
        for goal in closed:
            self._history.append(goal)
        return GoalUpdate(added=tuple(added), closed=tuple(closed))

    @staticmethod
    def _emotion_boost(goal_type: GoalType, emotions: EmotionalState) -> float:
        boost = _EMOTION_BOOSTS.get(goal_type)
        if boost is None:
            return 1.0
        emotion, factor = boost
        return 1.0 + factor * emotions.intensity(emotion)

    def _propose(self, *, memory: MemoryStore, snapshot: WorldSnapshot) -> dict[tuple[GoalType, str | None], float]:
        p = self.personality
        now = snapshot.hour
        out: dict[tuple[GoalType, str | None], float] = {}

        if p.vengefulness >= REVENGE_VENGEFULNESS_FLOOR:
            grudges = []
            for other_id, rel in memory.relationships(now=now, is_present=snapshot.is_alive).items():
                if other_id == snapshot.actor_id or rel.hostility <= REVENGE_HOSTILITY:
                    continue
                if memory.has_prevailed_over(other_id):
                    continue
                grudges.append((rel.hostility, other_id))
            grudges.sort(key=lambda item: (-item[0], item[1]))
            for hostility, other_id in grudges[:MAX_REVENGE_GOALS]:
                out[(GoalType.GET_REVENGE, other_id)] = _clamp_unit(p.vengefulness * 0.6 + hostility / 100.0 * 0.4)

        if p.greed > 0.5 and snapshot.gold < WEALTH_GOAL_GOLD:
            shortfall = 1.0 - snapshot.gold / float(WEALTH_GOAL_GOLD)
            out[(GoalType.ACCUMULATE_WEALTH, None)] = _clamp_unit(max(0.2, p.greed * (0.5 + 0.5 * shortfall)))

        if snapshot.health_ratio < HEAL_TRIGGER_RATIO:
            out[(GoalType.HEAL_WOUNDS, None)] = 0.9

        if p.sociability > 0.6:
            allies = memory.get_allies(now=now, is_present=snapshot.is_alive)
            if len(allies) < 3:
                out[(GoalType.MAKE_FRIENDS, None)] = _clamp_unit(p.sociability * 0.6)

        if p.ambition > 0.8 and snapshot.level >= RULER_MIN_LEVEL and not snapshot.controls_town:
            out[(GoalType.BECOME_RULER, None)] = _clamp_unit(p.ambition * 0.8)

        if p.ambition > 0.6 and p.sociability > 0.5 and (not snapshot.gang_id or snapshot.is_gang_leader):
            if not (snapshot.is_gang_leader and snapshot.gang_size >= INFLUENCE_GANG_SIZE):
                out[(GoalType.GAIN_INFLUENCE, None)] = _clamp_unit(p.ambition * 0.7)

        if not snapshot.gang_id and p.loyalty >= FOLLOWER_LOYALTY:
            best: tuple[float, str] | None = None
            for leader_id in sorted(snapshot.open_gang_leaders):
                if leader_id == snapshot.actor_id or not snapshot.is_alive(leader_id):
                    continue
                friendship = memory.get_relationship(leader_id, now=now).friendship
                if friendship < FOLLOWER_FRIENDSHIP / 2.0:
                    continue
                if best is None or friendship > best[0]:
                    best = (friendship, leader_id)
            if best is not None:
                out[(GoalType.JOIN_GANG, best[1])] = _clamp_unit(p.loyalty * 0.5 + best[0] / 200.0)

        if snapshot.gang_id and snapshot.gang_leader_id and not snapshot.is_gang_leader and p.loyalty > 0.5:
            out[(GoalType.SUPPORT_GANG, snapshot.gang_leader_id)] = _clamp_unit(p.loyalty * 0.5)

        target_power = weapon_target_power(snapshot.level)
        if (
            p.aggression + p.courage > 1.1
            and snapshot.weapon_power < target_power
            and snapshot.gold >= WEAPON_BASE_COST * (snapshot.weapon_power + 1)
        ):
            out[(GoalType.FIND_BETTER_WEAPON, None)] = _clamp_unit((p.aggression + p.courage) / 2.0 * 0.7)

        return out

    def _check(self, goal: Goal, *, memory: MemoryStore, snapshot: WorldSnapshot) -> GoalStatus | None:
        target = goal.target_id
        if goal.goal_type == GoalType.GET_REVENGE and target:
            for event in memory.get_memories_about(target):
                if event.kind == MemoryEventKind.WON_AGAINST and event.hour >= goal.created_hour:
                    return GoalStatus.SATISFIED
            if not snapshot.is_alive(target):
                return GoalStatus.INVALIDATED
            if memory.get_relationship(target, now=snapshot.hour).hostility < REVENGE_HOSTILITY / 2.0:
                return GoalStatus.INVALIDATED
            return None
        if target and not snapshot.is_alive(target):
            return GoalStatus.INVALIDATED
        if goal.goal_type == GoalType.ACCUMULATE_WEALTH and snapshot.gold >= WEALTH_GOAL_GOLD:
            return GoalStatus.SATISFIED
        if goal.goal_type == GoalType.HEAL_WOUNDS and snapshot.health_ratio >= HEAL_DONE_RATIO:
            return GoalStatus.SATISFIED
        if goal.goal_type == GoalType.MAKE_FRIENDS:
            if len(memory.get_allies(now=snapshot.hour, is_present=snapshot.is_alive)) >= 3:
                return GoalStatus.SATISFIED
        if goal.goal_type == GoalType.BECOME_RULER and snapshot.controls_town:
            return GoalStatus.SATISFIED
        if goal.goal_type == GoalType.GAIN_INFLUENCE:
            if snapshot.is_gang_leader and snapshot.gang_size >= INFLUENCE_GANG_SIZE:
                return GoalStatus.SATISFIED
            if snapshot.gang_id and not snapshot.is_gang_leader:
                return GoalStatus.INVALIDATED
        if goal.goal_type == GoalType.JOIN_GANG:
            if snapshot.gang_id:
                return GoalStatus.SATISFIED
            if target not in snapshot.open_gang_leaders:
                return GoalStatus.INVALIDATED
        if goal.goal_type == GoalType.SUPPORT_GANG and snapshot.gang_leader_id != target:
            return GoalStatus.INVALIDATED
        if goal.goal_type == GoalType.FIND_BETTER_WEAPON:
            if snapshot.weapon_power >= weapon_target_power(snapshot.level):
                return GoalStatus.SATISFIED
            if snapshot.gold < WEAPON_BASE_COST * (snapshot.weapon_power + 1):
                return GoalStatus.INVALIDATED
        return None

    def on_level_up(self, level: int, *, emotions: EmotionalState) -> LevelUpOutcome:
        emotions.add_emotion(EmotionKind.CONFIDENCE, 0.7, 5.0)
        boosted = 0
        for goal in self._goals:
            if goal.goal_type in {GoalType.BECOME_RULER, GoalType.GAIN_INFLUENCE, GoalType.FIND_BETTER_WEAPON}:
                goal.priority = _clamp_unit(goal.priority + 0.1)
                boosted += 1
        elite = int(level) >= ELITE_LEVEL and self.personality.ambition > 0.7
        return LevelUpOutcome(level=int(level), boosted_goals=boosted, elite_status=elite)

    def to_dict(self) -> dict[str, Any]:
        return {
            "next_seq": self._next_seq,
            "goals": [goal.as_dict() for goal in self._goals],
        }

    @staticmethod
    def from_dict(raw: dict[str, Any], *, personality: PersonalityProfile) -> "GoalSystem":
        system = GoalSystem(personality=personality)
        for item in raw.get("goals") or []:
            goal = Goal.from_dict(item) if isinstance(item, dict) else None
            if goal is None or system._find(goal.key) is not None:
                continue
            system._goals.append(goal)
        top_seq = max((g.seq for g in system._goals), default=0)
        system._next_seq = max(int(raw.get("next_seq") or 1), top_seq + 1)
        return system
