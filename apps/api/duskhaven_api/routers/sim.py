"""World simulation endpoints."""

from __future__ import annotations

from typing import Any, Optional
import logging

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from packages.duskhaven_core.ai import Action
from packages.duskhaven_core.errors import LocationCatalogError
from packages.duskhaven_core.sim import Actor, SimulationTuning, tuning_from_env
from packages.duskhaven_core.world import LocationCatalog

from ..services.news_feed import world_news
from ..services.runtime_scheduler import (
    start_world_runtime_scheduler,
    world_runtime_scheduler_status,
)
from ..services.world_registry import (
    create_world,
    delete_world,
    list_worlds,
    load_world,
    save_world,
    world_session,
)


logger = logging.getLogger("duskhaven_api.sim")
router = APIRouter(prefix="/api/v1/sim", tags=["sim"])
WORLD_ID_PATTERN = "^[A-Za-z0-9_.-]{1,64}$"
ROLE_PATTERN = "^(ai|player)$"
ACTION_PATTERN = "^(idle|move_to|socialize|fight|trade|shop|rest|patrol|work)$"


class ActorSpecRequest(BaseModel):
    actor_id: str = Field(min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, max_length=120)
    archetype: str = Field(default="commoner", min_length=1, max_length=40)
    role: str = Field(default="ai", pattern=ROLE_PATTERN)
    location: Optional[str] = Field(default=None, max_length=64)
    traits: dict[str, float] = Field(default_factory=dict)
    stats: dict[str, int] = Field(default_factory=dict)


class CreateWorldRequest(BaseModel):
    world_id: str = Field(pattern=WORLD_ID_PATTERN)
    seed: Optional[str] = Field(default=None, min_length=1, max_length=120)
    population: list[ActorSpecRequest] = Field(default_factory=list)
    generate: int = Field(default=0, ge=0, le=1000)
    locations: Optional[dict[str, Any]] = None
    tuning: dict[str, Any] = Field(default_factory=dict)


class TickWorldRequest(BaseModel):
    hours: int = Field(default=1, ge=1, le=240)


class RecordMemoryRequest(BaseModel):
    kind: str = Field(min_length=1, max_length=40)
    other_id: Optional[str] = Field(default=None, max_length=64)
    hour: Optional[int] = None
    details: dict[str, Any] = Field(default_factory=dict)


class PlayerActionRequest(BaseModel):
    action_type: str = Field(pattern=ACTION_PATTERN)
    target_id: Optional[str] = Field(default=None, max_length=64)
    destination: Optional[str] = Field(default=None, max_length=64)


class RuntimeStartRequest(BaseModel):
    hours_per_tick: int = Field(default=1, ge=1, le=24)


def _build_catalog(raw: Optional[dict[str, Any]]) -> LocationCatalog:
    if raw is None:
        return LocationCatalog.default()
    try:
        return LocationCatalog.from_dict(raw)
    except LocationCatalogError as exc:
        raise HTTPException(status_code=400, detail={"message": str(exc), "errors": exc.errors}) from exc


def _build_tuning(raw: dict[str, Any]) -> SimulationTuning:
    base = tuning_from_env()
    if not raw:
        return base
    merged = base.as_dict()
    merged.update(raw)
    return SimulationTuning.from_dict(merged)


def _require_actor(sim: Any, actor_id: str) -> Actor:
    actor = sim.get_actor(actor_id)
    if actor is None:
        raise HTTPException(status_code=404, detail=f"Actor not found: {actor_id}")
    return actor


@router.post("/worlds")
def create_world_endpoint(req: CreateWorldRequest) -> dict[str, Any]:
    catalog = _build_catalog(req.locations)
    tuning = _build_tuning(req.tuning)
    seed = req.seed or req.world_id
    actors = [
        Actor.spawn(
            actor_id=spec.actor_id,
            name=spec.name,
            archetype=spec.archetype,
            role=spec.role,
            location=spec.location or catalog.spawn_location,
            traits=spec.traits or None,
            stats=spec.stats or None,
            seed=seed,
            tuning=tuning,
        )
        for spec in req.population
    ]
    entry = create_world(
        req.world_id,
        seed=seed,
        catalog=catalog,
        tuning=tuning,
        actors=actors,
        generate=req.generate,
    )
    logger.info("[SIM] World created: world_id='%s', actors=%d", req.world_id, len(entry.simulator.actors()))
    return {"ok": True, "world": entry.summary(), "state": entry.simulator.get_status()}


@router.get("/worlds")
def list_worlds_endpoint() -> dict[str, Any]:
    return {"ok": True, "worlds": [entry.summary() for entry in list_worlds()]}


@router.delete("/worlds/{world_id}")
def delete_world_endpoint(world_id: str) -> dict[str, Any]:
    removed = delete_world(world_id)
    return {"ok": True, "world_id": world_id, "removed": removed}


@router.post("/worlds/{world_id}/tick")
def tick_world_endpoint(world_id: str, req: TickWorldRequest) -> dict[str, Any]:
    with world_session(world_id) as entry:
        events = entry.simulator.simulate_hours(req.hours)
        state = entry.simulator.get_status()
    logger.info(
        "[SIM] Tick complete: world_id='%s', hours=%d, hour=%d, events=%d",
        world_id,
        req.hours,
        state["hour"],
        len(events),
    )
    return {
        "ok": True,
        "world_id": world_id,
        "hours": req.hours,
        "event_count": len(events),
        "events": [event.as_dict() for event in events],
        "state": state,
    }


@router.post("/worlds/{world_id}/reset")
def reset_world_endpoint(world_id: str) -> dict[str, Any]:
    with world_session(world_id) as entry:
        entry.simulator.reset()
        entry.runtime_enabled = False
        state = entry.simulator.get_status()
    return {"ok": True, "world_id": world_id, "state": state}


@router.get("/worlds/{world_id}/state")
def world_state_endpoint(world_id: str) -> dict[str, Any]:
    with world_session(world_id) as entry:
        state = entry.simulator.get_status()
    return {"ok": True, "world_id": world_id, "state": state}


@router.get("/worlds/{world_id}/events")
def world_events_endpoint(world_id: str, limit: int = Query(default=20, ge=1, le=500)) -> dict[str, Any]:
    with world_session(world_id) as entry:
        events = entry.simulator.get_recent_events(limit)
    return {"ok": True, "world_id": world_id, "events": [event.as_dict() for event in events]}


@router.get("/worlds/{world_id}/actors")
def world_actors_endpoint(world_id: str) -> dict[str, Any]:
    with world_session(world_id) as entry:
        sim = entry.simulator
        actors = [actor.summary() for actor in sim.actors() if actor.alive]
    return {"ok": True, "world_id": world_id, "count": len(actors), "actors": actors}


@router.get("/worlds/{world_id}/actors/{actor_id}")
def actor_detail_endpoint(world_id: str, actor_id: str) -> dict[str, Any]:
    with world_session(world_id) as entry:
        sim = entry.simulator
        actor = _require_actor(sim, actor_id)
        detail = actor.detail()
        detail["kill_stats"] = sim.relationships.stats_for(actor_id).as_dict()
        detail["brain"] = actor.brain.describe()
    return {"ok": True, "world_id": world_id, "actor": detail}


@router.get("/worlds/{world_id}/actors/{actor_id}/memories")
def actor_memories_endpoint(
    world_id: str,
    actor_id: str,
    limit: int = Query(default=40, ge=1, le=200),
) -> dict[str, Any]:
    with world_session(world_id) as entry:
        actor = _require_actor(entry.simulator, actor_id)
        snapshot = actor.memory.snapshot(limit=limit)
    return {"ok": True, "world_id": world_id, "actor_id": actor_id, "memory": snapshot}


@router.post("/worlds/{world_id}/actors/{actor_id}/memories")
def record_memory_endpoint(world_id: str, actor_id: str, req: RecordMemoryRequest) -> dict[str, Any]:
    with world_session(world_id) as entry:
        sim = entry.simulator
        actor = _require_actor(sim, actor_id)
        if req.hour is None:
            event = sim.record_memory(actor_id, req.kind, other_id=req.other_id, **req.details)
        else:
            event = actor.brain.record_interaction(req.kind, other_id=req.other_id, hour=req.hour, **req.details)
        relationship = actor.memory.get_relationship(event.other_id).as_dict() if event.other_id else None
    return {"ok": True, "world_id": world_id, "actor_id": actor_id, "event": event.as_dict(), "relationship": relationship}


@router.get("/worlds/{world_id}/actors/{actor_id}/relationships/{other_id}")
def relationship_endpoint(world_id: str, actor_id: str, other_id: str) -> dict[str, Any]:
    with world_session(world_id) as entry:
        sim = entry.simulator
        actor = _require_actor(sim, actor_id)
        status = sim.relationships.get_relationship_status(actor, other_id, now=sim.hour)
    return {"ok": True, "world_id": world_id, "relationship": status.as_dict()}


@router.post("/worlds/{world_id}/actors/{actor_id}/action")
def player_action_endpoint(world_id: str, actor_id: str, req: PlayerActionRequest) -> dict[str, Any]:
    action = Action.from_dict(req.model_dump())
    if action is None:
        raise HTTPException(status_code=400, detail=f"Unknown action type: {req.action_type}")
    with world_session(world_id) as entry:
        _require_actor(entry.simulator, actor_id)
        entry.simulator.queue_player_action(actor_id, action)
    return {"ok": True, "world_id": world_id, "actor_id": actor_id, "queued": action.as_dict()}


@router.post("/worlds/{world_id}/save")
def save_world_endpoint(world_id: str) -> dict[str, Any]:
    record = save_world(world_id)
    return {"ok": True, "save": record}


@router.post("/worlds/{world_id}/load")
def load_world_endpoint(world_id: str) -> dict[str, Any]:
    entry = load_world(world_id)
    return {"ok": True, "world": entry.summary(), "state": entry.simulator.get_status()}


@router.get("/worlds/{world_id}/news")
def world_news_endpoint(world_id: str, limit: int = Query(default=50, ge=1, le=500)) -> dict[str, Any]:
    return {"ok": True, "world_id": world_id, "news": world_news(world_id, limit=limit)}


@router.get("/worlds/{world_id}/runtime/status")
def runtime_status_endpoint(world_id: str) -> dict[str, Any]:
    with world_session(world_id) as entry:
        summary = entry.summary()
    return {"ok": True, "world": summary, "scheduler": world_runtime_scheduler_status()}


@router.post("/worlds/{world_id}/runtime/start")
def runtime_start_endpoint(world_id: str, req: RuntimeStartRequest) -> dict[str, Any]:
    with world_session(world_id) as entry:
        entry.runtime_enabled = True
        entry.hours_per_tick = req.hours_per_tick
        summary = entry.summary()
    started = start_world_runtime_scheduler()
    logger.info("[SIM] Runtime enabled: world_id='%s', hours_per_tick=%d", world_id, req.hours_per_tick)
    return {"ok": True, "world": summary, "scheduler_started": started, "scheduler": world_runtime_scheduler_status()}


@router.post("/worlds/{world_id}/runtime/stop")
def runtime_stop_endpoint(world_id: str) -> dict[str, Any]:
    with world_session(world_id) as entry:
        entry.runtime_enabled = False
        summary = entry.summary()
    return {"ok": True, "world": summary, "scheduler": world_runtime_scheduler_status()}
