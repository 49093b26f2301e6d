"""Snapshot/restore for actors and whole worlds."""

from __future__ import annotations

from collections import deque
from typing import Any
import json

from ..ai.emotions import EmotionalState
from ..ai.goals import GoalSystem
from ..ai.memory import MemoryStore
from ..ai.personality import PersonalityProfile
from ..errors import SimulationInputError
from ..world.locations import LocationCatalog
from .actors import Actor, ActorStats, Gang
from .events import WorldEvent
from .runner import SimulationContext, WorldSimulator
from .tuning import SimulationTuning

STATE_FILE_VERSION = 1


def serialize_actor(actor: Actor) -> dict[str, Any]:
    return {
        "actor_id": actor.actor_id,
        "name": actor.name,
        "role": actor.role.value,
        "location": actor.location,
        "alive": actor.alive,
        "gang_id": actor.gang_id,
        "died_hour": actor.died_hour,
        "brain_seed": actor.brain.seed,
        "last_tick": actor.brain.last_tick,
        "stats": actor.stats.to_dict(),
        "personality": actor.personality.as_dict(),
        "memory": actor.memory.to_dict(),
        "emotions": actor.emotions.to_dict(),
        "goals": actor.goals.to_dict(),
    }


def deserialize_actor(raw: dict[str, Any]) -> Actor:
    if not isinstance(raw, dict) or not str(raw.get("actor_id") or "").strip():
        raise SimulationInputError("Actor snapshot requires an actor_id")
    personality = PersonalityProfile.from_dict(raw.get("personality") or {})
    memory = MemoryStore.from_dict(raw.get("memory") or {"owner_id": raw["actor_id"]})
    if not memory.owner_id:
        memory.owner_id = str(raw["actor_id"])
    last_tick = raw.get("last_tick")
    died_hour = raw.get("died_hour")
    return Actor(
        actor_id=str(raw["actor_id"]),
        name=str(raw.get("name") or raw["actor_id"]),
        personality=personality,
        location=str(raw.get("location") or ""),
        role=raw.get("role") or "ai",
        stats=ActorStats.from_dict(raw.get("stats")),
        alive=bool(raw.get("alive", True)),
        gang_id=str(raw["gang_id"]) if raw.get("gang_id") else None,
        died_hour=int(died_hour) if died_hour is not None else None,
        memory=memory,
        emotions=EmotionalState.from_dict(raw.get("emotions") or {}),
        goals=GoalSystem.from_dict(raw.get("goals") or {}, personality=personality),
        brain_seed=str(raw.get("brain_seed") or "0"),
        last_tick=int(last_tick) if last_tick is not None else None,
    )


def actor_to_blob(actor: Actor) -> bytes:
    return json.dumps(serialize_actor(actor), separators=(",", ":"), ensure_ascii=True).encode("utf-8")


def actor_from_blob(blob: bytes | str) -> Actor:
    try:
        raw = json.loads(blob)
    except (TypeError, ValueError) as exc:
        raise SimulationInputError(f"Invalid actor snapshot: {exc}") from exc
    return deserialize_actor(raw)


def serialize_world(sim: WorldSimulator) -> dict[str, Any]:
    return {
        "state_version": STATE_FILE_VERSION,
        "seed": sim.seed,
        "hour": sim.hour,
        "tuning": sim.tuning.as_dict(),
        "catalog": sim.catalog.to_dict(),
        "town_ruler_id": sim.town_ruler_id,
        "event_seq": sim._event_seq,
        "gang_seq": sim._gang_seq,
        "actors": [serialize_actor(actor) for actor in sim.actors()],
        "gangs": [gang.to_dict() for gang in sim.gangs()],
        "kill_stats": sim.relationships.to_dict(),
        "bond_streaks": [[leader, follower, count] for (leader, follower), count in sorted(sim._bond_streaks.items())],
        "patrols": dict(sorted(sim._patrols.items())),
        "recent_deaths": dict(sorted(sim._recent_deaths.items())),
        "recent_events": [event.as_dict() for event in sim.get_recent_events(sim.tuning.max_recent_events)],
    }


def restore_world(raw: dict[str, Any], *, context: SimulationContext | None = None) -> WorldSimulator:
    """Rebuild a simulator from ``serialize_world`` output.

    Continuing the restored world yields the same events as continuing the
    original, provided the same combat resolver is used.
    """
    if not isinstance(raw, dict):
        raise SimulationInputError("World snapshot must be an object")
    if int(raw.get("state_version") or 0) != STATE_FILE_VERSION:
        raise SimulationInputError(f"Unsupported world snapshot version: {raw.get('state_version')!r}")

    if context is None:
        catalog_raw = raw.get("catalog")
        context = SimulationContext(
            seed=str(raw.get("seed") or "") or None,
            tuning=SimulationTuning.from_dict(raw.get("tuning")),
            catalog=LocationCatalog.from_dict(catalog_raw) if catalog_raw else LocationCatalog.default(),
        )
    sim = WorldSimulator(context)
    actors = [deserialize_actor(item) for item in raw.get("actors") or []]
    gang_ids = [actor.gang_id for actor in actors]
    sim.initialize(actors)
    # initialize() clears memberships; restore them from the snapshot.
    for actor, gang_id in zip(actors, gang_ids):
        actor.gang_id = gang_id
    for item in raw.get("gangs") or []:
        gang = Gang.from_dict(item) if isinstance(item, dict) else None
        if gang is not None:
            sim._gangs[gang.gang_id] = gang

    sim.hour = int(raw.get("hour") or 0)
    sim.town_ruler_id = str(raw["town_ruler_id"]) if raw.get("town_ruler_id") else None
    sim._event_seq = int(raw.get("event_seq") or 0)
    sim._gang_seq = int(raw.get("gang_seq") or 0)
    sim.relationships.load(raw.get("kill_stats") or {})
    sim._bond_streaks = {
        (str(item[0]), str(item[1])): int(item[2])
        for item in raw.get("bond_streaks") or []
        if isinstance(item, list) and len(item) == 3
    }
    sim._patrols = {str(k): int(v) for k, v in (raw.get("patrols") or {}).items()}
    sim._recent_deaths = {str(k): int(v) for k, v in (raw.get("recent_deaths") or {}).items()}
    events = [WorldEvent.from_dict(item) for item in raw.get("recent_events") or [] if isinstance(item, dict)]
    sim._recent = deque((e for e in events if e is not None), maxlen=max(1, sim.tuning.max_recent_events))
    return sim
