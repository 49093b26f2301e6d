"""In-process registry of running worlds with per-world locking."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional
import logging
import threading

from packages.duskhaven_core.errors import SimulationInputError
from packages.duskhaven_core.sim import (
    Actor,
    SimulationContext,
    SimulationTuning,
    WorldSimulator,
    generate_population,
    restore_world,
    serialize_world,
    tuning_from_env,
)
from packages.duskhaven_core.world import LocationCatalog

from ..storage import worlds as world_storage
from .news_feed import make_news_sink


logger = logging.getLogger("duskhaven_api.sim")
LOCK_TIMEOUT_SECONDS = 5.0


class SimulationBusyError(RuntimeError):
    """A world's lock could not be acquired in time."""


class WorldNotFoundError(KeyError):
    def __init__(self, world_id: str) -> None:
        super().__init__(world_id)
        self.world_id = world_id

    def __str__(self) -> str:
        return f"World not found: {self.world_id}"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class WorldEntry:
    world_id: str
    simulator: WorldSimulator
    lock: threading.RLock = field(default_factory=threading.RLock)
    created_at: str = field(default_factory=_utc_now_iso)
    runtime_enabled: bool = False
    hours_per_tick: int = 1
    last_tick_at: Optional[str] = None
    last_error: Optional[str] = None

    def summary(self) -> dict[str, Any]:
        sim = self.simulator
        return {
            "world_id": self.world_id,
            "seed": sim.seed,
            "hour": sim.hour,
            "population": len(sim.actors()),
            "created_at": self.created_at,
            "runtime_enabled": self.runtime_enabled,
            "hours_per_tick": self.hours_per_tick,
            "last_tick_at": self.last_tick_at,
            "last_error": self.last_error,
        }


@contextmanager
def _acquire_or_raise(lock: threading.RLock, *, timeout: float = LOCK_TIMEOUT_SECONDS) -> Iterator[None]:
    if not lock.acquire(timeout=max(0.0, float(timeout))):
        raise SimulationBusyError("World is busy; retry shortly")
    try:
        yield
    finally:
        lock.release()


class WorldRegistry:
    def __init__(self) -> None:
        self._worlds: dict[str, WorldEntry] = {}
        self._lock = threading.RLock()

    def _context(
        self,
        world_id: str,
        *,
        seed: Optional[str],
        catalog: LocationCatalog,
        tuning: SimulationTuning,
    ) -> SimulationContext:
        return SimulationContext(seed=seed, tuning=tuning, catalog=catalog, sinks=[make_news_sink(world_id)])

    def create(
        self,
        world_id: str,
        *,
        seed: Optional[str] = None,
        catalog: Optional[LocationCatalog] = None,
        tuning: Optional[SimulationTuning] = None,
        actors: Optional[list[Actor]] = None,
        generate: int = 0,
    ) -> WorldEntry:
        with self._lock:
            if world_id in self._worlds:
                raise SimulationInputError(f"World already exists: {world_id}")
            context = self._context(
                world_id,
                seed=seed,
                catalog=catalog or LocationCatalog.default(),
                tuning=tuning or tuning_from_env(),
            )
            population = list(actors or [])
            if generate > 0:
                population.extend(
                    generate_population(generate, seed=str(context.seed), catalog=context.catalog, tuning=context.tuning)
                )
            simulator = WorldSimulator(context)
            simulator.initialize(population)
            entry = WorldEntry(world_id=world_id, simulator=simulator)
            self._worlds[world_id] = entry
        logger.info(
            "[WORLD] Registered world: world_id='%s', seed='%s', actors=%d",
            world_id,
            simulator.seed,
            len(population),
        )
        return entry

    def get(self, world_id: str) -> WorldEntry:
        with self._lock:
            entry = self._worlds.get(world_id)
        if entry is None:
            raise WorldNotFoundError(world_id)
        return entry

    def list(self) -> list[WorldEntry]:
        with self._lock:
            return [self._worlds[key] for key in sorted(self._worlds)]

    def remove(self, world_id: str) -> bool:
        with self._lock:
            entry = self._worlds.pop(world_id, None)
        if entry is None:
            return False
        logger.info("[WORLD] Removed world: world_id='%s'", world_id)
        return True

    def replace_simulator(self, world_id: str, simulator: WorldSimulator) -> WorldEntry:
        with self._lock:
            entry = self._worlds.get(world_id)
            if entry is None:
                entry = WorldEntry(world_id=world_id, simulator=simulator)
                self._worlds[world_id] = entry
            else:
                entry.simulator = simulator
        return entry

    def clear(self) -> None:
        with self._lock:
            self._worlds.clear()


_REGISTRY = WorldRegistry()


@contextmanager
def world_session(world_id: str, *, timeout: float = LOCK_TIMEOUT_SECONDS) -> Iterator[WorldEntry]:
    entry = _REGISTRY.get(world_id)
    with _acquire_or_raise(entry.lock, timeout=timeout):
        yield entry


def create_world(world_id: str, **kwargs: Any) -> WorldEntry:
    return _REGISTRY.create(world_id, **kwargs)


def get_world(world_id: str) -> WorldEntry:
    return _REGISTRY.get(world_id)


def list_worlds() -> list[WorldEntry]:
    return _REGISTRY.list()


def delete_world(world_id: str) -> bool:
    entry = _REGISTRY.get(world_id)
    with _acquire_or_raise(entry.lock):
        return _REGISTRY.remove(world_id)


def save_world(world_id: str) -> dict[str, Any]:
    with world_session(world_id) as entry:
        sim = entry.simulator
        state = serialize_world(sim)
        record = world_storage.save_world(
            world_id=world_id,
            seed=sim.seed,
            hour=sim.hour,
            actor_count=len(sim.actors()),
            state=state,
        )
    logger.info("[WORLD] Saved world: world_id='%s', hour=%d", world_id, record["hour"])
    return record


def load_world(world_id: str) -> WorldEntry:
    state = world_storage.load_world(world_id=world_id)
    if state is None:
        raise WorldNotFoundError(world_id)
    catalog_raw = state.get("catalog")
    context = _REGISTRY._context(
        world_id,
        seed=str(state.get("seed") or "") or None,
        catalog=LocationCatalog.from_dict(catalog_raw) if catalog_raw else LocationCatalog.default(),
        tuning=SimulationTuning.from_dict(state.get("tuning")),
    )
    simulator = restore_world(state, context=context)
    try:
        entry = _REGISTRY.get(world_id)
    except WorldNotFoundError:
        entry = _REGISTRY.replace_simulator(world_id, simulator)
    else:
        with _acquire_or_raise(entry.lock):
            entry.simulator = simulator
    logger.info("[WORLD] Loaded world: world_id='%s', hour=%d", world_id, simulator.hour)
    return entry


def runtime_worlds() -> list[WorldEntry]:
    return [entry for entry in _REGISTRY.list() if entry.runtime_enabled]


def reset_worlds_for_tests() -> None:
    _REGISTRY.clear()
