"""Tick-based world simulator that owns the actor population and the clock."""

from __future__ import annotations

from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Callable, Iterable
import uuid

from ..ai.brain import Action, ActionType
from ..ai.constants import (
    ENEMY_HOSTILITY,
    FOLLOWER_FRIENDSHIP,
    FOLLOWER_LOYALTY,
    FRIEND_FRIENDSHIP,
    LEADER_AMBITION,
    LEADER_BOND_FRIENDSHIP,
    LEADER_MIN_BONDS,
    LEADER_SOCIABILITY,
    WEAPON_BASE_COST,
)
from ..ai.determinism import hash_choice, hash_range, hash_unit
from ..ai.memory import MemoryEvent, MemoryEventKind
from ..ai.relationships import RelationshipManager
from ..ai.snapshot import NearbyActor, WorldSnapshot
from ..errors import SimulationInputError
from ..world.locations import LocationCatalog
from .actors import Actor, ActorRole, Gang
from .combat import CombatResolver, StatCombatResolver
from .events import EventSink, WorldEvent, WorldEventKind
from .tuning import DEFAULT_TUNING, SimulationTuning

logger = getLogger("duskhaven_core.sim")

StopPredicate = Callable[[], bool]

AMBIENT_RUMORS = (
    "A merchant caravan arrived with exotic goods",
    "Strange lights were seen near the dungeon entrance",
    "The town guard increased patrols",
    "A traveling bard is performing in the tavern",
    "Rumors spread of treasure in the deeper levels",
    "The king announced new taxes",
    "A mysterious stranger was seen asking questions",
    "Monster activity has increased in the dungeons",
)

GANG_NAME_PREFIXES = ("Iron", "Crimson", "Black", "Silver", "Ashen", "Grey", "Broken", "Hollow")
GANG_NAME_SUFFIXES = ("Fangs", "Ravens", "Blades", "Hand", "Lanterns", "Wolves", "Crows", "Knives")


@dataclass
class SimulationContext:
    """Everything one simulation needs; independent simulations never share state."""

    seed: str | None = None
    tuning: SimulationTuning = DEFAULT_TUNING
    catalog: LocationCatalog = field(default_factory=LocationCatalog.default)
    combat: CombatResolver | None = None
    sinks: list[EventSink] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.seed is None:
            self.seed = uuid.uuid4().hex
        self.seed = str(self.seed)
        if self.combat is None:
            self.combat = StatCombatResolver(seed=self.seed)


class WorldSimulator:
    def __init__(self, context: SimulationContext | None = None) -> None:
        self.context = context or SimulationContext()
        self.relationships = RelationshipManager()
        self._actors: dict[str, Actor] = {}
        self._order: list[str] = []
        self._gangs: dict[str, Gang] = {}
        self._occupancy: dict[str, set[str]] = {}
        self._recent: deque[WorldEvent] = deque(maxlen=max(1, self.tuning.max_recent_events))
        self._tick_events: list[WorldEvent] = []
        self._player_actions: dict[str, Action] = {}
        self._bond_streaks: dict[tuple[str, str], int] = {}
        self._patrols: dict[str, int] = {}
        self._patrols_next: dict[str, int] = {}
        self._recent_deaths: dict[str, int] = {}
        self.hour = 0
        self.town_ruler_id: str | None = None
        self._event_seq = 0
        self._gang_seq = 0

    @property
    def seed(self) -> str:
        return str(self.context.seed)

    @property
    def tuning(self) -> SimulationTuning:
        return self.context.tuning

    @property
    def catalog(self) -> LocationCatalog:
        return self.context.catalog

    # population ---------------------------------------------------------

    def initialize(self, population: Iterable[Actor]) -> None:
        actors = list(population)
        seen: set[str] = set()
        for actor in actors:
            if actor.actor_id in seen:
                raise SimulationInputError(f"Duplicate actor id: {actor.actor_id}")
            if actor.location not in self.catalog:
                raise SimulationInputError(f"Unknown location for {actor.actor_id}: {actor.location!r}")
            seen.add(actor.actor_id)

        self._actors = {actor.actor_id: actor for actor in actors}
        self._gangs.clear()
        self._bond_streaks.clear()
        self._player_actions.clear()
        for actor in actors:
            actor.gang_id = None
        self._reindex()
        logger.info("[WORLD] Initialized population: actors=%d, hour=%d, seed='%s'", len(actors), self.hour, self.seed)

    def add_actor(self, actor: Actor) -> None:
        if actor.actor_id in self._actors:
            raise SimulationInputError(f"Duplicate actor id: {actor.actor_id}")
        if actor.location not in self.catalog:
            raise SimulationInputError(f"Unknown location for {actor.actor_id}: {actor.location!r}")
        self._actors[actor.actor_id] = actor
        self._reindex()

    def remove_actor(self, actor_id: str) -> Actor | None:
        actor = self._actors.get(actor_id)
        if actor is None:
            return None
        self._leave_gang(actor, self.hour, reason="removed")
        del self._actors[actor_id]
        self._player_actions.pop(actor_id, None)
        if self.town_ruler_id == actor_id:
            self.town_ruler_id = None
        self._reindex()
        return actor

    def _reindex(self) -> None:
        self._order = sorted(self._actors)
        self._occupancy = {}
        for actor_id in self._order:
            actor = self._actors[actor_id]
            if actor.alive:
                self._occupancy.setdefault(actor.location, set()).add(actor_id)

    def _ordered(self) -> list[Actor]:
        return [self._actors[actor_id] for actor_id in self._order]

    def _is_alive(self, actor_id: str) -> bool:
        actor = self._actors.get(actor_id)
        return actor is not None and actor.alive

    def get_actor(self, actor_id: str) -> Actor | None:
        return self._actors.get(actor_id)

    def actors(self) -> list[Actor]:
        return self._ordered()

    def get_alive_npcs(self) -> list[Actor]:
        return [actor for actor in self._ordered() if actor.alive and actor.is_ai]

    def gangs(self) -> list[Gang]:
        return [self._gangs[key] for key in sorted(self._gangs)]

    def gang_for(self, actor_id: str) -> Gang | None:
        actor = self._actors.get(actor_id)
        if actor is None or not actor.gang_id:
            return None
        return self._gangs.get(actor.gang_id)

    def queue_player_action(self, actor_id: str, action: Action) -> None:
        actor = self._actors.get(actor_id)
        if actor is None:
            raise SimulationInputError(f"Unknown actor: {actor_id}")
        if actor.role != ActorRole.PLAYER:
            raise SimulationInputError(f"Actor {actor_id} is not player-controlled")
        self._player_actions[actor_id] = action

    def record_memory(self, actor_id: str, kind: Any, *, other_id: str | None = None, **fields: Any) -> MemoryEvent:
        actor = self._actors.get(actor_id)
        if actor is None:
            raise SimulationInputError(f"Unknown actor: {actor_id}")
        return actor.memory.record_event(MemoryEvent.create(kind, hour=self.hour, other_id=other_id, **fields))

    # snapshots ------------------------------------------------------------

    def _perceived_danger(self, location_id: str) -> float:
        location = self.catalog.get(location_id)
        if location is None:
            return 0.0
        danger = location.danger - 0.1 * self._patrols.get(location_id, 0)
        death_hour = self._recent_deaths.get(location_id)
        if death_hour is not None and self.hour - death_hour < 24:
            danger += 0.2
        return max(0.0, min(1.0, danger))

    def _nearby_view(self, actor: Actor) -> NearbyActor:
        gang = self._gangs.get(actor.gang_id) if actor.gang_id else None
        return NearbyActor(
            actor_id=actor.actor_id,
            level=actor.stats.level,
            health_ratio=actor.stats.health_ratio(),
            gang_id=actor.gang_id,
            is_gang_leader=gang is not None and gang.leader_id == actor.actor_id,
            archetype=actor.personality.archetype,
            is_player=actor.role == ActorRole.PLAYER,
        )

    def _build_snapshot(
        self,
        actor: Actor,
        *,
        alive_ids: frozenset[str],
        open_leaders: frozenset[str],
        views: dict[str, NearbyActor],
        occupants: dict[str, list[str]],
    ) -> WorldSnapshot:
        location = self.catalog.get(actor.location)
        here = occupants.get(actor.location, [])
        gang = self._gangs.get(actor.gang_id) if actor.gang_id else None
        return WorldSnapshot(
            actor_id=actor.actor_id,
            hour=self.hour,
            location=actor.location,
            danger=self._perceived_danger(actor.location),
            treasure=location is not None and "treasure" in location.affordances,
            social_capacity=location.social_capacity if location else 0,
            occupancy=len(here),
            affordances=frozenset(location.affordances) if location else frozenset(),
            nearby=tuple(views[other] for other in here if other != actor.actor_id),
            locations=self.catalog.summaries(),
            gold=actor.stats.gold,
            health_ratio=actor.stats.health_ratio(),
            level=actor.stats.level,
            weapon_power=actor.stats.weapon_power,
            gang_id=actor.gang_id,
            gang_leader_id=gang.leader_id if gang else None,
            gang_size=gang.size() if gang else 0,
            controls_town=self.town_ruler_id == actor.actor_id,
            open_gang_leaders=open_leaders,
            alive_actor_ids=alive_ids,
        )

    def _tick_views(self) -> tuple[frozenset[str], frozenset[str], dict[str, NearbyActor], dict[str, list[str]]]:
        alive = [actor for actor in self._ordered() if actor.alive]
        alive_ids = frozenset(actor.actor_id for actor in alive)
        open_leaders = frozenset(
            gang.leader_id for gang in self._gangs.values() if gang.has_room(self.tuning.max_gang_size)
        )
        views = {actor.actor_id: self._nearby_view(actor) for actor in alive}
        occupants = {loc: sorted(ids) for loc, ids in self._occupancy.items()}
        return alive_ids, open_leaders, views, occupants

    def snapshot_for(self, actor_id: str) -> WorldSnapshot:
        actor = self._actors.get(actor_id)
        if actor is None:
            raise SimulationInputError(f"Unknown actor: {actor_id}")
        alive_ids, open_leaders, views, occupants = self._tick_views()
        views.setdefault(actor_id, self._nearby_view(actor))
        return self._build_snapshot(actor, alive_ids=alive_ids, open_leaders=open_leaders, views=views, occupants=occupants)

    # ticking --------------------------------------------------------------

    def simulate_hour(self) -> list[WorldEvent]:
        hour = self.hour
        self._tick_events = []
        self._patrols_next = {}
        self._respawn_due(hour)

        alive_ids, open_leaders, views, occupants = self._tick_views()
        batch = [
            (actor, self._build_snapshot(actor, alive_ids=alive_ids, open_leaders=open_leaders, views=views, occupants=occupants))
            for actor in self._ordered()
            if actor.alive
        ]
        decisions = self._decide(batch)

        for (actor, _), action in zip(batch, decisions):
            if not actor.alive:
                continue
            if not actor.is_ai:
                action = self._player_actions.pop(actor.actor_id, None) or Action.idle()
            try:
                self._apply(actor, action, hour)
            except SimulationInputError as exc:
                logger.warning(
                    "[WORLD] Skipping action: actor_id='%s', action=%s, reason=%s",
                    actor.actor_id,
                    action.action_type.value,
                    exc,
                )

        self._patrols = self._patrols_next
        self._evaluate_gangs(hour)
        self._gang_betrayals(hour)
        if (hour + 1) % 24 == 0:
            self._update_town_control(hour)
        self._ambient_world_event(hour)
        if (hour + 1) % max(1, self.tuning.prune_interval_hours) == 0:
            self._prune_memories(hour)

        self.hour = hour + 1
        events = list(self._tick_events)
        logger.debug("[WORLD] Tick complete: hour=%d, actors=%d, events=%d", hour, len(batch), len(events))
        return events

    def simulate_hours(self, hours: int, *, should_stop: StopPredicate | None = None) -> list[WorldEvent]:
        events: list[WorldEvent] = []
        for _ in range(max(0, int(hours))):
            if should_stop is not None and should_stop():
                logger.info("[WORLD] Stop requested between ticks: hour=%d", self.hour)
                break
            events.extend(self.simulate_hour())
        return events

    def simulate_days(self, days: int, *, should_stop: StopPredicate | None = None) -> list[WorldEvent]:
        return self.simulate_hours(max(0, int(days)) * 24, should_stop=should_stop)

    def _decide_one(self, item: tuple[Actor, WorldSnapshot]) -> Action:
        actor, snapshot = item
        return actor.brain.process_hourly_update(snapshot, decide=actor.is_ai)

    def _decide(self, batch: list[tuple[Actor, WorldSnapshot]]) -> list[Action]:
        workers = max(1, int(self.tuning.decision_workers))
        if workers > 1 and len(batch) > 1:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="duskhaven-decide") as pool:
                return list(pool.map(self._decide_one, batch))
        return [self._decide_one(item) for item in batch]

    # actions --------------------------------------------------------------

    def _apply(self, actor: Actor, action: Action, hour: int) -> None:
        handlers = {
            ActionType.IDLE: None,
            ActionType.MOVE_TO: self._move,
            ActionType.SOCIALIZE: self._socialize,
            ActionType.FIGHT: self._fight,
            ActionType.TRADE: self._trade,
            ActionType.SHOP: self._shop,
            ActionType.REST: self._rest,
            ActionType.PATROL: self._patrol,
            ActionType.WORK: self._work,
        }
        handler = handlers.get(action.action_type)
        if handler is not None:
            handler(actor, action, hour)

    def _target(self, actor: Actor, action: Action) -> Actor | None:
        if not action.target_id:
            raise SimulationInputError(f"{action.action_type.value} requires a target")
        target = self._actors.get(action.target_id)
        if target is None:
            raise SimulationInputError(f"Unknown target: {action.target_id}")
        if target is actor or not target.alive or target.location != actor.location:
            logger.debug(
                "[WORLD] Target unavailable: actor_id='%s', target_id='%s'", actor.actor_id, target.actor_id
            )
            return None
        return target

    def _relocate(self, actor: Actor, destination: str) -> None:
        self._occupancy.get(actor.location, set()).discard(actor.actor_id)
        actor.location = destination
        self._occupancy.setdefault(destination, set()).add(actor.actor_id)

    def _move(self, actor: Actor, action: Action, hour: int) -> None:
        destination = self.catalog.get(action.destination)
        if destination is None:
            raise SimulationInputError(f"Unknown destination: {action.destination!r}")
        if destination.location_id == actor.location:
            return
        present = self._occupancy.get(destination.location_id, set())
        if len(present) >= destination.social_capacity:
            logger.debug("[WORLD] Location full: actor_id='%s', location='%s'", actor.actor_id, destination.location_id)
            return
        self._relocate(actor, destination.location_id)

        sought = actor.goals.protected_targets()
        others = sorted(present - {actor.actor_id})
        noticed = [o for o in others if o in sought] + [o for o in others if o not in sought]
        for other_id in noticed[:3]:
            actor.memory.record(MemoryEventKind.SAW_PERSON, hour=hour, other_id=other_id, location=destination.location_id)

    def _socialize(self, actor: Actor, action: Action, hour: int) -> None:
        target = self._target(actor, action)
        if target is None:
            return
        location = self.catalog.get(actor.location)
        compatibility = actor.personality.compatibility(target.personality)
        if compatibility < 0.3 and target.memory.get_relationship(actor.actor_id, now=hour).friendship < FRIEND_FRIENDSHIP:
            actor.memory.record(MemoryEventKind.WAS_INSULTED, hour=hour, other_id=target.actor_id, location=actor.location)
            target.memory.record(MemoryEventKind.WAS_INSULTED, hour=hour, other_id=actor.actor_id, location=actor.location)
            return

        kind = MemoryEventKind.SHARED_DRINK if location and "drink" in location.affordances else MemoryEventKind.SOCIALIZED_WITH
        actor.memory.record(kind, hour=hour, other_id=target.actor_id, location=actor.location)
        target.memory.record(kind, hour=hour, other_id=actor.actor_id, location=actor.location)

        help_weight = actor.personality.decision_weight("help")
        if target.stats.health_ratio() < 0.5 and help_weight > 0.5:
            heal = max(1, target.stats.max_health // 10)
            target.stats.health = min(target.stats.max_health, target.stats.health + heal)
            target.memory.record(
                MemoryEventKind.WAS_HELPED,
                hour=hour,
                other_id=actor.actor_id,
                significance=round(help_weight, 3),
            )

    def _fight(self, actor: Actor, action: Action, hour: int) -> None:
        target = self._target(actor, action)
        if target is None:
            return
        if actor.gang_id and actor.gang_id == target.gang_id:
            return
        outcome = self.context.combat.resolve(actor.combatant(), target.combatant(), hour=hour)
        for participant in (actor, target):
            participant.stats.health = max(0, participant.stats.health - outcome.damage_to(participant.actor_id))

        location = actor.location
        target.memory.record(
            MemoryEventKind.WAS_ATTACKED,
            hour=hour,
            other_id=actor.actor_id,
            damage=outcome.damage_to(target.actor_id),
            location=location,
        )
        winner = self._actors[outcome.winner_id]
        loser = self._actors[outcome.loser_id]
        self._emit(
            WorldEventKind.COMBAT,
            hour,
            f"{actor.name} attacked {target.name}; {winner.name} prevailed",
            actor_ids=(actor.actor_id, target.actor_id),
            location=location,
            details={
                "attacker_id": actor.actor_id,
                "defender_id": target.actor_id,
                "winner_id": winner.actor_id,
                "rounds": outcome.rounds,
                "motivation": action.motivation or "",
                "damage": {key: outcome.damage_to(key) for key in sorted(outcome.damage_taken)},
            },
        )
        if loser.stats.health <= 0:
            self._kill(victim=loser, killer=winner, hour=hour)
            return
        winner.memory.record(MemoryEventKind.WON_AGAINST, hour=hour, other_id=loser.actor_id, rounds=outcome.rounds, location=location)
        loser.memory.record(MemoryEventKind.LOST_TO, hour=hour, other_id=winner.actor_id, rounds=outcome.rounds, location=location)

    def _kill(self, *, victim: Actor, killer: Actor, hour: int) -> None:
        location = victim.location
        record = self.relationships.update_kill_stats(killer, victim, hour=hour, location=location)
        victim.alive = False
        victim.died_hour = hour
        victim.stats.health = 0
        self._occupancy.get(location, set()).discard(victim.actor_id)
        self._recent_deaths[location] = hour

        for other_id in sorted(self._occupancy.get(location, set())):
            if other_id == killer.actor_id:
                continue
            self._actors[other_id].memory.record(
                MemoryEventKind.SAW_DEATH, hour=hour, other_id=killer.actor_id, victim_id=victim.actor_id, location=location
            )
        for other in self._ordered():
            if not other.alive or other is killer or other.location == location:
                continue
            if other.memory.get_relationship(victim.actor_id, now=hour).friendship >= FRIEND_FRIENDSHIP:
                other.memory.record(
                    MemoryEventKind.FRIEND_KILLED, hour=hour, other_id=killer.actor_id, victim_id=victim.actor_id, location=location
                )

        self._leave_gang(victim, hour, reason="death")
        self._emit(
            WorldEventKind.DEATH,
            hour,
            f"{victim.name} was slain by {killer.name}",
            actor_ids=(victim.actor_id, killer.actor_id),
            location=location,
            details={
                "victim_id": victim.actor_id,
                "killer_id": killer.actor_id,
                "killer_kills": record.killer_stats.kills,
                "victim_deaths": record.victim_stats.deaths,
            },
        )

    def _trade(self, actor: Actor, action: Action, hour: int) -> None:
        target = self._target(actor, action)
        if target is None:
            return
        location = self.catalog.get(actor.location)
        if location is None or "trade" not in location.affordances:
            return
        amount = hash_range(f"{self.seed}:{hour}:{actor.actor_id}:{target.actor_id}:trade", 10, 100)
        edge = actor.personality.greed - target.personality.greed + 0.1
        transfer = min(int(amount * max(0.0, edge)), target.stats.gold)
        margin = amount // 10
        target.stats.gold = target.stats.gold - transfer + margin
        actor.stats.gold = actor.stats.gold + transfer + margin
        actor.memory.record(MemoryEventKind.TRADED_WITH, hour=hour, other_id=target.actor_id, amount=amount, location=actor.location)
        target.memory.record(MemoryEventKind.TRADED_WITH, hour=hour, other_id=actor.actor_id, amount=amount, location=actor.location)

    def _shop(self, actor: Actor, action: Action, hour: int) -> None:
        location = self.catalog.get(actor.location)
        if location is None or "shop" not in location.affordances:
            return
        cost = WEAPON_BASE_COST * (actor.stats.weapon_power + 1)
        if actor.stats.gold < cost:
            return
        actor.stats.gold -= cost
        actor.stats.weapon_power += 1

    def _rest(self, actor: Actor, action: Action, hour: int) -> None:
        location = self.catalog.get(actor.location)
        divisor = 4 if location is not None and "rest" in location.affordances else 8
        actor.stats.health = min(actor.stats.max_health, actor.stats.health + max(1, actor.stats.max_health // divisor))

    def _patrol(self, actor: Actor, action: Action, hour: int) -> None:
        self._patrols_next[actor.location] = self._patrols_next.get(actor.location, 0) + 1

    def _work(self, actor: Actor, action: Action, hour: int) -> None:
        location = self.catalog.get(actor.location)
        if location is None:
            return
        stats = actor.stats
        key = f"{self.seed}:{hour}:{actor.actor_id}:work"
        if "train" in location.affordances:
            self._gain_experience(actor, hash_range(key, 10, 30), hour)
        elif "work" in location.affordances:
            stats.gold += 5 + stats.level * 2 + int(actor.personality.ambition * 5)
        elif "treasure" in location.affordances:
            stats.gold += hash_range(key, 20, 50) + stats.level * 5
            stats.health = max(1, stats.health - int(location.danger * 15))
            self._gain_experience(actor, 5, hour)

    def _gain_experience(self, actor: Actor, amount: int, hour: int) -> None:
        stats = actor.stats
        stats.experience += int(amount)
        while stats.experience >= stats.level * 100:
            stats.experience -= stats.level * 100
            stats.level += 1
            stats.max_health += 10
            stats.strength += 1
            stats.health = min(stats.max_health, stats.health + 10)
            outcome = actor.goals.on_level_up(stats.level, emotions=actor.emotions)
            if outcome.elite_status or stats.level % 5 == 0:
                self._emit(
                    WorldEventKind.LEVEL_UP,
                    hour,
                    f"{actor.name} reached level {stats.level}",
                    actor_ids=(actor.actor_id,),
                    location=actor.location,
                    details={"level": stats.level, "elite_status": outcome.elite_status},
                )

    # social structure -----------------------------------------------------

    def _evaluate_gangs(self, hour: int) -> None:
        streaks: dict[tuple[str, str], int] = {}
        max_size = self.tuning.max_gang_size
        for leader in self._ordered():
            if not leader.alive or not leader.is_ai:
                continue
            p = leader.personality
            if p.ambition < LEADER_AMBITION or p.sociability < LEADER_SOCIABILITY:
                continue
            gang = self._gangs.get(leader.gang_id) if leader.gang_id else None
            if leader.gang_id and (gang is None or gang.leader_id != leader.actor_id):
                continue
            if gang is None:
                bonds = [
                    other_id
                    for other_id, rel in leader.memory.relationships(now=hour, is_present=self._is_alive).items()
                    if rel.friendship >= LEADER_BOND_FRIENDSHIP and rel.hostility <= ENEMY_HOSTILITY
                ]
                if len(bonds) < LEADER_MIN_BONDS:
                    continue
            elif not gang.has_room(max_size):
                continue

            for follower_id in sorted(self._occupancy.get(leader.location, set())):
                follower = self._actors[follower_id]
                if follower is leader or follower.gang_id or not follower.is_ai:
                    continue
                if follower.personality.loyalty < FOLLOWER_LOYALTY:
                    continue
                rel = follower.memory.get_relationship(leader.actor_id, now=hour)
                if rel.friendship < FOLLOWER_FRIENDSHIP or rel.hostility > ENEMY_HOSTILITY:
                    continue
                key = (leader.actor_id, follower_id)
                streaks[key] = self._bond_streaks.get(key, 0) + 1
                if streaks[key] < self.tuning.gang_bond_ticks:
                    continue
                if gang is not None and not gang.has_room(max_size):
                    continue
                if gang is None:
                    gang = self._form_gang(leader, hour)
                self._join_gang(gang, follower, hour)
                streaks.pop(key, None)
        self._bond_streaks = streaks

    def _form_gang(self, leader: Actor, hour: int) -> Gang:
        self._gang_seq += 1
        gang_id = f"gang_{self._gang_seq:04d}"
        prefix = hash_choice(f"{self.seed}:{gang_id}:prefix", GANG_NAME_PREFIXES)
        suffix = hash_choice(f"{self.seed}:{gang_id}:suffix", GANG_NAME_SUFFIXES)
        gang = Gang(gang_id=gang_id, name=f"The {prefix} {suffix}", leader_id=leader.actor_id, formed_hour=hour)
        self._gangs[gang_id] = gang
        leader.gang_id = gang_id
        logger.info("[WORLD] Gang formed: gang_id='%s', leader_id='%s', hour=%d", gang_id, leader.actor_id, hour)
        self._emit(
            WorldEventKind.GANG_FORMED,
            hour,
            f"{leader.name} founded {gang.name}",
            actor_ids=(leader.actor_id,),
            location=leader.location,
            details={"gang_id": gang_id, "gang_name": gang.name},
        )
        return gang

    def _join_gang(self, gang: Gang, follower: Actor, hour: int) -> None:
        leader = self._actors[gang.leader_id]
        gang.members.add(follower.actor_id)
        follower.gang_id = gang.gang_id
        follower.memory.record(MemoryEventKind.JOINED_GANG, hour=hour, other_id=leader.actor_id, gang_id=gang.gang_id)
        leader.memory.record(MemoryEventKind.JOINED_GANG, hour=hour, other_id=follower.actor_id, gang_id=gang.gang_id)
        self._emit(
            WorldEventKind.GANG_JOINED,
            hour,
            f"{follower.name} joined {gang.name}",
            actor_ids=(follower.actor_id, leader.actor_id),
            location=follower.location,
            details={"gang_id": gang.gang_id, "size": gang.size()},
        )

    def _leave_gang(self, actor: Actor, hour: int, *, reason: str) -> None:
        gang = self._gangs.get(actor.gang_id) if actor.gang_id else None
        actor.gang_id = None
        if gang is None:
            return
        if gang.leader_id == actor.actor_id:
            self._dissolve_gang(gang, hour, reason=reason)
            return
        gang.members.discard(actor.actor_id)
        if not gang.members:
            self._dissolve_gang(gang, hour, reason="empty")

    def _dissolve_gang(self, gang: Gang, hour: int, *, reason: str) -> None:
        for member_id in gang.all_members():
            member = self._actors.get(member_id)
            if member is not None and member.gang_id == gang.gang_id:
                member.gang_id = None
        self._gangs.pop(gang.gang_id, None)
        self._bond_streaks = {k: v for k, v in self._bond_streaks.items() if k[0] != gang.leader_id}
        self._emit(
            WorldEventKind.GANG_DISSOLVED,
            hour,
            f"{gang.name} has disbanded",
            actor_ids=(gang.leader_id,),
            details={"gang_id": gang.gang_id, "reason": reason},
        )

    def _gang_betrayals(self, hour: int) -> None:
        chance = self.tuning.betrayal_chance
        if chance <= 0:
            return
        for gang_id in sorted(self._gangs):
            gang = self._gangs.get(gang_id)
            if gang is None:
                continue
            for member_id in sorted(gang.members):
                if gang_id not in self._gangs:
                    break
                member = self._actors[member_id]
                if not member.alive or not member.personality.is_likely_to_betray():
                    continue
                if hash_unit(f"{self.seed}:{hour}:{member_id}:betray") >= chance:
                    continue
                leader = self._actors[gang.leader_id]
                leader.memory.record(MemoryEventKind.WAS_BETRAYED, hour=hour, other_id=member_id, context=gang_id)
                self._leave_gang(member, hour, reason="betrayal")
                self._emit(
                    WorldEventKind.GANG_BETRAYAL,
                    hour,
                    f"{member.name} betrayed {leader.name} and left {gang.name}",
                    actor_ids=(member_id, leader.actor_id),
                    location=member.location,
                    details={"gang_id": gang_id},
                )

    def _update_town_control(self, hour: int) -> None:
        ruler = self.town_ruler_id
        if ruler is not None and not self._is_alive(ruler):
            ruler = None
        candidates = [
            gang
            for gang in self._gangs.values()
            if gang.size() >= self.tuning.town_control_min_members and self._is_alive(gang.leader_id)
        ]
        new_ruler = ruler
        if candidates:
            best = min(
                candidates,
                key=lambda g: (
                    -g.size(),
                    -sum(self._actors[m].stats.level for m in g.all_members() if m in self._actors),
                    g.leader_id,
                ),
            )
            new_ruler = best.leader_id
        if new_ruler == self.town_ruler_id:
            return
        previous = self.town_ruler_id
        self.town_ruler_id = new_ruler
        gang = self.gang_for(new_ruler) if new_ruler else None
        summary = (
            f"{self._actors[new_ruler].name} and {gang.name if gang else 'their followers'} took control of the town"
            if new_ruler
            else "The town has no ruler"
        )
        self._emit(
            WorldEventKind.TOWN_CONTROL_CHANGED,
            hour,
            summary,
            actor_ids=tuple(a for a in (new_ruler, previous) if a),
            details={"previous_ruler_id": previous, "ruler_id": new_ruler, "gang_id": gang.gang_id if gang else None},
        )

    def _ambient_world_event(self, hour: int) -> None:
        chance = self.tuning.world_event_chance
        if chance <= 0 or hash_unit(f"{self.seed}:{hour}:world_event") >= chance:
            return
        text = hash_choice(f"{self.seed}:{hour}:rumor", AMBIENT_RUMORS) or AMBIENT_RUMORS[0]
        location = hash_choice(f"{self.seed}:{hour}:rumor_location", self.catalog.ids()) or self.catalog.spawn_location
        listeners = sorted(self._occupancy.get(location, set()))
        for actor_id in listeners:
            self._actors[actor_id].memory.record(MemoryEventKind.HEARD_RUMOR, hour=hour, text=text, location=location)
        self._emit(
            WorldEventKind.RUMOR,
            hour,
            text,
            actor_ids=tuple(listeners[:10]),
            location=location,
            details={"listeners": len(listeners)},
        )

    def _respawn_due(self, hour: int) -> None:
        delay = self.tuning.respawn_hours
        if delay <= 0:
            return
        spawn = self.catalog.spawn_location
        for actor in self._ordered():
            if actor.alive or not actor.is_ai or actor.died_hour is None:
                continue
            if hour - actor.died_hour < delay:
                continue
            actor.alive = True
            actor.died_hour = None
            actor.stats.health = actor.stats.max_health
            actor.location = spawn
            self._occupancy.setdefault(spawn, set()).add(actor.actor_id)
            self._emit(
                WorldEventKind.RESPAWN,
                hour,
                f"{actor.name} returned to town",
                actor_ids=(actor.actor_id,),
                location=spawn,
            )

    def _prune_memories(self, hour: int) -> None:
        removed = 0
        for actor in self._ordered():
            removed += actor.memory.prune(now=hour, protected_ids=actor.goals.protected_targets())
        if removed:
            logger.debug("[WORLD] Pruned memories: hour=%d, removed=%d", hour, removed)

    # events and queries -------------------------------------------------

    def _emit(
        self,
        kind: WorldEventKind,
        hour: int,
        summary: str,
        *,
        actor_ids: tuple[str, ...] = (),
        location: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> WorldEvent:
        self._event_seq += 1
        event = WorldEvent(
            seq=self._event_seq,
            hour=hour,
            kind=kind,
            summary=summary,
            actor_ids=actor_ids,
            location=location,
            details=dict(details or {}),
        )
        self._recent.append(event)
        self._tick_events.append(event)
        for sink in list(self.context.sinks):
            try:
                sink(event)
            except Exception:
                logger.warning(
                    "[WORLD] Event sink failed: kind=%s, seq=%d", event.kind.value, event.seq, exc_info=True
                )
        return event

    def get_recent_events(self, n: int = 20) -> list[WorldEvent]:
        if n <= 0:
            return []
        return list(self._recent)[-int(n) :]

    def total_memory_events(self) -> int:
        return sum(actor.memory.event_count for actor in self._actors.values())

    def get_status(self) -> dict[str, Any]:
        alive = [actor for actor in self._ordered() if actor.alive]
        return {
            "seed": self.seed,
            "hour": self.hour,
            "day": self.hour // 24,
            "hour_of_day": self.hour % 24,
            "population": len(self._actors),
            "alive": len(alive),
            "alive_npcs": sum(1 for actor in alive if actor.is_ai),
            "dead": len(self._actors) - len(alive),
            "gangs": [gang.to_dict() for gang in self.gangs()],
            "town_ruler_id": self.town_ruler_id,
            "total_memory_events": self.total_memory_events(),
            "recent_event_count": len(self._recent),
        }

    def reset(self) -> None:
        self._actors.clear()
        self._order = []
        self._gangs.clear()
        self._occupancy.clear()
        self._recent.clear()
        self._tick_events = []
        self._player_actions.clear()
        self._bond_streaks.clear()
        self._patrols.clear()
        self._recent_deaths.clear()
        self.relationships.reset()
        self.hour = 0
        self.town_ruler_id = None
        self._event_seq = 0
        self._gang_seq = 0
        logger.info("[WORLD] Simulator reset: seed='%s'", self.seed)
