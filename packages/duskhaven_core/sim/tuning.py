"""Tunable simulator constants with environment overrides."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any
import os

from ..ai.constants import (
    DEFAULT_MAX_MEMORY_EVENTS,
    DEFAULT_RECENCY_HALF_LIFE_HOURS,
    DEFAULT_RETENTION_HOURS,
)


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, int(raw.strip()))
    except ValueError:
        return default


def _float_env(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, float(raw.strip()))
    except ValueError:
        return default


@dataclass(frozen=True)
class SimulationTuning:
    retention_hours: int = DEFAULT_RETENTION_HOURS
    max_memory_events: int = DEFAULT_MAX_MEMORY_EVENTS
    prune_interval_hours: int = 6
    recency_half_life_hours: float = DEFAULT_RECENCY_HALF_LIFE_HOURS
    max_recent_events: int = 500
    max_gang_size: int = 5
    gang_bond_ticks: int = 2
    town_control_min_members: int = 3
    respawn_hours: int = 168
    decision_workers: int = 1
    betrayal_chance: float = 0.02
    world_event_chance: float = 0.05

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(raw: dict[str, Any] | None) -> "SimulationTuning":
        base = SimulationTuning()
        if not raw:
            return base
        overrides: dict[str, Any] = {}
        for name, default in base.as_dict().items():
            if name not in raw or raw[name] is None:
                continue
            try:
                overrides[name] = type(default)(raw[name])
            except (TypeError, ValueError):
                continue
        return replace(base, **overrides)


DEFAULT_TUNING = SimulationTuning()


def tuning_from_env(base: SimulationTuning | None = None) -> SimulationTuning:
    tuning = base or DEFAULT_TUNING
    world_events = _truthy_env("DUSKHAVEN_WORLD_EVENTS", default=True)
    return replace(
        tuning,
        retention_hours=_int_env("DUSKHAVEN_RETENTION_HOURS", tuning.retention_hours, minimum=1),
        max_memory_events=_int_env("DUSKHAVEN_MAX_MEMORY_EVENTS", tuning.max_memory_events, minimum=10),
        prune_interval_hours=_int_env("DUSKHAVEN_PRUNE_INTERVAL_HOURS", tuning.prune_interval_hours, minimum=1),
        recency_half_life_hours=_float_env("DUSKHAVEN_RECENCY_HALF_LIFE_HOURS", tuning.recency_half_life_hours),
        max_gang_size=_int_env("DUSKHAVEN_MAX_GANG_SIZE", tuning.max_gang_size, minimum=1),
        respawn_hours=_int_env("DUSKHAVEN_RESPAWN_HOURS", tuning.respawn_hours),
        decision_workers=_int_env("DUSKHAVEN_DECISION_WORKERS", tuning.decision_workers, minimum=1),
        world_event_chance=tuning.world_event_chance if world_events else 0.0,
    )
