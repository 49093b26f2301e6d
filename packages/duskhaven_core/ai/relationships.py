"""Relationship queries and kill bookkeeping layered over actor memories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from .memory import MemoryEventKind, MemoryStore, Relationship, RelationshipType


class RememberingActor(Protocol):
    actor_id: str
    memory: MemoryStore


@dataclass(frozen=True)
class RelationshipStatus:
    actor_id: str
    other_id: str
    relationship: Relationship

    @property
    def classification(self) -> RelationshipType:
        return self.relationship.classification

    def as_dict(self) -> dict[str, Any]:
        out = self.relationship.as_dict()
        out["actor_id"] = self.actor_id
        out["other_id"] = self.other_id
        return out


@dataclass
class KillStats:
    kills: int = 0
    deaths: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"kills": self.kills, "deaths": self.deaths}


@dataclass(frozen=True)
class KillRecord:
    killer_id: str
    victim_id: str
    hour: int
    killer_stats: KillStats
    victim_stats: KillStats


class RelationshipManager:
    def __init__(self) -> None:
        self._stats: dict[str, KillStats] = {}

    def get_relationship_status(
        self,
        actor: RememberingActor,
        other: RememberingActor | str,
        *,
        now: int | None = None,
    ) -> RelationshipStatus:
        other_id = other if isinstance(other, str) else other.actor_id
        return RelationshipStatus(
            actor_id=actor.actor_id,
            other_id=other_id,
            relationship=actor.memory.get_relationship(other_id, now=now),
        )

    def mutual_status(
        self,
        a: RememberingActor,
        b: RememberingActor,
        *,
        now: int | None = None,
    ) -> tuple[RelationshipStatus, RelationshipStatus]:
        return (
            self.get_relationship_status(a, b, now=now),
            self.get_relationship_status(b, a, now=now),
        )

    def update_kill_stats(
        self,
        killer: RememberingActor,
        victim: RememberingActor,
        *,
        hour: int,
        location: str = "",
    ) -> KillRecord:
        killer.memory.record(
            MemoryEventKind.WON_AGAINST,
            hour=hour,
            other_id=victim.actor_id,
            lethal=True,
            location=location,
        )
        victim.memory.record(
            MemoryEventKind.WAS_ATTACKED,
            hour=hour,
            other_id=killer.actor_id,
            damage=100,
            lethal=True,
            location=location,
        )
        killer_stats = self._stats.setdefault(killer.actor_id, KillStats())
        victim_stats = self._stats.setdefault(victim.actor_id, KillStats())
        killer_stats.kills += 1
        victim_stats.deaths += 1
        return KillRecord(
            killer_id=killer.actor_id,
            victim_id=victim.actor_id,
            hour=int(hour),
            killer_stats=KillStats(killer_stats.kills, killer_stats.deaths),
            victim_stats=KillStats(victim_stats.kills, victim_stats.deaths),
        )

    def stats_for(self, actor_id: str) -> KillStats:
        stats = self._stats.get(actor_id)
        return KillStats(stats.kills, stats.deaths) if stats else KillStats()

    def reset(self) -> None:
        self._stats.clear()

    def to_dict(self) -> dict[str, Any]:
        return {actor_id: stats.as_dict() for actor_id, stats in sorted(self._stats.items())}

    def load(self, raw: dict[str, Any]) -> None:
        self._stats.clear()
        for actor_id, item in (raw or {}).items():
            if not isinstance(item, dict):
                continue
            self._stats[str(actor_id)] = KillStats(
                kills=max(0, int(item.get("kills") or 0)),
                deaths=max(0, int(item.get("deaths") or 0)),
            )
