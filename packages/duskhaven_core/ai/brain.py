"""Per-actor orchestration: emotions, goals and action selection for one tick."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import Any

from .constants import ENEMY_HOSTILITY
from .determinism import hash_choice, hash_int, hash_unit
from .emotions import EmotionalState, EmotionKind
from .goals import Goal, GoalSystem, GoalType, GoalUpdate
from .memory import MemoryEvent, MemoryStore
from .personality import PersonalityProfile
from .snapshot import LocationSummary, NearbyActor, WorldSnapshot

logger = getLogger("duskhaven_core.ai")

PRESSING_GOAL_PRIORITY = 0.2
IMPULSE_THRESHOLD = 0.7


class ActionType(str, Enum):
    IDLE = "idle"
    MOVE_TO = "move_to"
    SOCIALIZE = "socialize"
    FIGHT = "fight"
    TRADE = "trade"
    SHOP = "shop"
    REST = "rest"
    PATROL = "patrol"
    WORK = "work"


@dataclass(frozen=True)
class Action:
    action_type: ActionType = ActionType.IDLE
    target_id: str | None = None
    destination: str | None = None
    motivation: str | None = None
    score: float = 0.0

    @staticmethod
    def idle() -> "Action":
        return Action(action_type=ActionType.IDLE, score=0.1)

    def as_dict(self) -> dict[str, Any]:
        return {
            "action_type": self.action_type.value,
            "target_id": self.target_id,
            "destination": self.destination,
            "motivation": self.motivation,
            "score": round(self.score, 4),
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> "Action | None":
        try:
            action_type = ActionType(str(raw.get("action_type") or "idle").strip().lower())
        except ValueError:
            return None
        return Action(
            action_type=action_type,
            target_id=str(raw["target_id"]) if raw.get("target_id") else None,
            destination=str(raw["destination"]) if raw.get("destination") else None,
            motivation=str(raw["motivation"]) if raw.get("motivation") else None,
        )


class ActorBrain:
    """Combines an actor's personality, memory, emotions and goals into decisions.

    The brain only references the objects its actor owns. The one piece of state
    it keeps is the last tick it processed, so a tick is never applied twice.
    """

    def __init__(
        self,
        *,
        actor_id: str,
        personality: PersonalityProfile,
        memory: MemoryStore,
        emotions: EmotionalState,
        goals: GoalSystem,
        seed: str = "0",
        last_tick: int | None = None,
    ) -> None:
        self.actor_id = actor_id
        self.personality = personality
        self.memory = memory
        self.emotions = emotions
        self.goals = goals
        self.seed = str(seed)
        self.last_tick = last_tick

    def record_interaction(self, kind: Any, *, other_id: str | None, hour: int, **fields: Any) -> MemoryEvent:
        return self.memory.record_event(MemoryEvent.create(kind, hour=hour, other_id=other_id, **fields))

    def process_hourly_update(self, snapshot: Any, *, decide: bool = True) -> Action:
        snap = WorldSnapshot.from_dict(snapshot, actor_id=self.actor_id)
        if self.last_tick is None or snap.hour > self.last_tick:
            elapsed = 0 if self.last_tick is None else snap.hour - self.last_tick
            self.emotions.update(float(elapsed))
            self.memory.advance_clock(snap.hour)
            self._fold_new_memories()
            self._ambient_feelings(snap)
            update = self.update_goals(snap)
            if update.added or update.closed:
                logger.debug(
                    "[BRAIN] Goals changed: actor_id='%s', added=%s, closed=%s",
                    self.actor_id,
                    [g.goal_type.value for g in update.added],
                    [g.goal_type.value for g in update.closed],
                )
            self.last_tick = snap.hour
        if not decide:
            return Action.idle()
        return self.decide_next_action(snap)

    def update_goals(self, snapshot: Any) -> GoalUpdate:
        snap = WorldSnapshot.from_dict(snapshot, actor_id=self.actor_id)
        return self.goals.update_goals(memory=self.memory, emotions=self.emotions, snapshot=snap)

    def _fold_new_memories(self) -> int:
        pending = self.memory.take_unprocessed()
        for event in pending:
            self.emotions.process_interaction(event.kind, event.other_id, event.importance())
        return len(pending)

    def _ambient_feelings(self, snap: WorldSnapshot) -> None:
        if self.personality.sociability > 0.6 and not snap.nearby and snap.location:
            self.emotions.add_emotion(EmotionKind.LONELINESS, 0.3, 3.0)
        if snap.danger > self.personality.courage:
            self.emotions.add_emotion(EmotionKind.FEAR, snap.danger - self.personality.courage, 1.0)

    def decide_next_action(self, snapshot: Any) -> Action:
        snap = WorldSnapshot.from_dict(snapshot, actor_id=self.actor_id)
        candidates: list[Action] = []

        goal = self.goals.get_priority_goal()
        if goal is not None and goal.effective_priority() >= PRESSING_GOAL_PRIORITY:
            goal_action = self._action_for_goal(goal, snap)
            if goal_action is not None:
                candidates.append(goal_action)
        candidates.extend(self._ambient_actions(snap))

        scored = [self._weigh(action) for action in candidates]
        scored.append(Action.idle())

        p = self.personality
        if p.impulsiveness > IMPULSE_THRESHOLD and len(scored) > 1:
            roll = hash_unit(f"{self.seed}:{self.actor_id}:{snap.hour}:impulse")
            if roll < p.impulsiveness * 0.3:
                picked = hash_choice(f"{self.seed}:{self.actor_id}:{snap.hour}:whim", scored[:-1])
                if picked is not None:
                    return picked

        best = scored[0]
        for action in scored[1:]:
            if action.score > best.score:
                best = action
        return best

    def _weigh(self, action: Action) -> Action:
        key = "flee" if action.motivation == "flee" else action.action_type.value
        if action.motivation == "join_gang":
            key = "join_gang"
        modifier = self.emotions.action_modifier(key)
        return Action(
            action_type=action.action_type,
            target_id=action.target_id,
            destination=action.destination,
            motivation=action.motivation,
            score=action.score * modifier,
        )

    def _relationship_hostile(self, other_id: str, hour: int) -> bool:
        return self.memory.get_relationship(other_id, now=hour).hostility > ENEMY_HOSTILITY

    def _pick_destination(
        self,
        snap: WorldSnapshot,
        affordance: str | None,
        *,
        salt: str,
        prefer_safe: bool = True,
    ) -> str | None:
        options: list[LocationSummary] = snap.locations_with(affordance) if affordance else list(snap.locations)
        options = [loc for loc in options if loc.location_id != snap.location]
        if not options:
            return None
        if prefer_safe:
            options.sort(key=lambda loc: (loc.danger, loc.location_id))
            return options[0].location_id
        picked = hash_choice(f"{self.seed}:{self.actor_id}:{snap.hour}:{salt}", sorted(o.location_id for o in options))
        return picked

    def _seek(self, snap: WorldSnapshot, target_id: str, *, motivation: str, score: float) -> Action | None:
        last_seen = self.memory.last_known_location(target_id)
        if last_seen and last_seen != snap.location and any(l.location_id == last_seen for l in snap.locations):
            return Action(ActionType.MOVE_TO, target_id=target_id, destination=last_seen, motivation=motivation, score=score)
        destination = self._pick_destination(snap, None, salt=f"seek:{target_id}", prefer_safe=False)
        if destination is None:
            return None
        return Action(ActionType.MOVE_TO, target_id=target_id, destination=destination, motivation=motivation, score=score)

    def _social_target(self, snap: WorldSnapshot, *, recruit: bool) -> NearbyActor | None:
        options = []
        for other in snap.nearby:
            if self._relationship_hostile(other.actor_id, snap.hour):
                continue
            if recruit and other.gang_id:
                continue
            friendship = self.memory.get_relationship(other.actor_id, now=snap.hour).friendship
            options.append((friendship, other.actor_id, other))
        if not options:
            return None
        options.sort(key=lambda item: (item[0], item[1]))
        return options[0][2]

    def _action_for_goal(self, goal: Goal, snap: WorldSnapshot) -> Action | None:
        score = 0.5 + goal.effective_priority()
        motivation = goal.goal_type.value
        target = goal.target_id
        affordances = snap.affordances

        if goal.goal_type == GoalType.GET_REVENGE and target:
            if snap.find_nearby(target) is not None:
                return Action(ActionType.FIGHT, target_id=target, motivation="revenge", score=score)
            return self._seek(snap, target, motivation="revenge", score=score * 0.9)

        if goal.goal_type == GoalType.ACCUMULATE_WEALTH:
            if "work" in affordances or ("treasure" in affordances and self.personality.courage >= snap.danger):
                return Action(ActionType.WORK, motivation=motivation, score=score)
            if "trade" in affordances:
                partner = self._social_target(snap, recruit=False)
                if partner is not None:
                    return Action(ActionType.TRADE, target_id=partner.actor_id, motivation=motivation, score=score)
            destination = self._pick_destination(snap, "work", salt="work")
            if destination:
                return Action(ActionType.MOVE_TO, destination=destination, motivation=motivation, score=score * 0.9)
            return None

        if goal.goal_type in {GoalType.MAKE_FRIENDS, GoalType.GAIN_INFLUENCE}:
            partner = self._social_target(snap, recruit=goal.goal_type == GoalType.GAIN_INFLUENCE)
            if partner is not None:
                return Action(ActionType.SOCIALIZE, target_id=partner.actor_id, motivation=motivation, score=score)
            destination = self._pick_destination(snap, "social", salt="social")
            if destination:
                return Action(ActionType.MOVE_TO, destination=destination, motivation=motivation, score=score * 0.9)
            return None

        if goal.goal_type in {GoalType.JOIN_GANG, GoalType.SUPPORT_GANG} and target:
            if snap.find_nearby(target) is not None:
                return Action(ActionType.SOCIALIZE, target_id=target, motivation=motivation, score=score)
            return self._seek(snap, target, motivation=motivation, score=score * 0.9)

        if goal.goal_type == GoalType.HEAL_WOUNDS:
            if "rest" in affordances:
                return Action(ActionType.REST, motivation=motivation, score=score)
            destination = self._pick_destination(snap, "rest", salt="rest")
            if destination:
                return Action(ActionType.MOVE_TO, destination=destination, motivation=motivation, score=score)
            return Action(ActionType.REST, motivation=motivation, score=score * 0.5)

        if goal.goal_type == GoalType.BECOME_RULER:
            if "rule" in affordances:
                return Action(ActionType.PATROL, motivation=motivation, score=score)
            destination = self._pick_destination(snap, "rule", salt="rule")
            if destination:
                return Action(ActionType.MOVE_TO, destination=destination, motivation=motivation, score=score * 0.9)
            return None

        if goal.goal_type == GoalType.FIND_BETTER_WEAPON:
            if "shop" in affordances:
                return Action(ActionType.SHOP, motivation=motivation, score=score)
            destination = self._pick_destination(snap, "shop", salt="shop")
            if destination:
                return Action(ActionType.MOVE_TO, destination=destination, motivation=motivation, score=score * 0.9)
        return None

    def _ambient_actions(self, snap: WorldSnapshot) -> list[Action]:
        p = self.personality
        affordances = snap.affordances
        out: list[Action] = []

        if snap.danger > p.courage + 0.2:
            destination = self._pick_destination(snap, None, salt="flee")
            if destination:
                out.append(
                    Action(
                        ActionType.MOVE_TO,
                        destination=destination,
                        motivation="flee",
                        score=0.4 + (snap.danger - p.courage) * p.decision_weight("flee"),
                    )
                )

        if snap.is_night:
            if "rest" in affordances:
                out.append(Action(ActionType.REST, score=0.4))
            else:
                destination = self._pick_destination(snap, "rest", salt="night")
                if destination:
                    out.append(Action(ActionType.MOVE_TO, destination=destination, motivation="rest", score=0.3))
        elif snap.health_ratio < 0.5:
            out.append(Action(ActionType.REST, score=0.3 + (0.5 - snap.health_ratio)))

        if p.aggression > 0.7 and snap.nearby:
            prey = [
                other
                for other in snap.nearby
                if other.level <= snap.level
                and not (snap.gang_id and other.gang_id == snap.gang_id)
                and self.memory.get_relationship(other.actor_id, now=snap.hour).friendship < 20.0
            ]
            if prey:
                prey.sort(key=lambda o: (o.level, o.health_ratio, o.actor_id))
                out.append(Action(ActionType.FIGHT, target_id=prey[0].actor_id, motivation="dominance", score=p.decision_weight("attack") * 0.8))

        if snap.nearby:
            friendly = [o.actor_id for o in snap.nearby if not self._relationship_hostile(o.actor_id, snap.hour)]
            partner = hash_choice(f"{self.seed}:{self.actor_id}:{snap.hour}:chat", friendly)
            if partner is not None:
                out.append(Action(ActionType.SOCIALIZE, target_id=partner, score=p.sociability * 0.6))
                if "trade" in affordances and p.greed > 0.5:
                    out.append(Action(ActionType.TRADE, target_id=partner, score=p.decision_weight("trade") * 0.5))

        if "work" in affordances or "train" in affordances:
            out.append(Action(ActionType.WORK, score=0.1 + p.greed * 0.3 + p.ambition * 0.1))

        if p.archetype == "guard" or ("patrol" in affordances and p.loyalty > 0.7):
            out.append(Action(ActionType.PATROL, score=p.loyalty * 0.5))

        if snap.locations and hash_int(f"{self.seed}:{self.actor_id}:{snap.hour}:wander") % 4 == 0:
            destination = self._pick_destination(snap, None, salt="explore", prefer_safe=False)
            if destination:
                out.append(Action(ActionType.MOVE_TO, destination=destination, motivation="explore", score=p.decision_weight("explore") * 0.3))
        return out

    def describe(self) -> dict[str, Any]:
        goal = self.goals.get_priority_goal()
        dominant = self.emotions.dominant()
        return {
            "actor_id": self.actor_id,
            "last_tick": self.last_tick,
            "mood": round(self.emotions.mood(), 3),
            "emotional_summary": self.emotions.summary(),
            "dominant_emotion": dominant.kind.value if dominant else None,
            "priority_goal": goal.as_dict() if goal else None,
        }
