"""Externally visible outcomes of simulated ticks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class WorldEventKind(str, Enum):
    COMBAT = "combat"
    DEATH = "death"
    GANG_FORMED = "gang_formed"
    GANG_JOINED = "gang_joined"
    GANG_DISSOLVED = "gang_dissolved"
    GANG_BETRAYAL = "gang_betrayal"
    TOWN_CONTROL_CHANGED = "town_control_changed"
    LEVEL_UP = "level_up"
    RESPAWN = "respawn"
    RUMOR = "rumor"


@dataclass(frozen=True)
class WorldEvent:
    seq: int
    hour: int
    kind: WorldEventKind
    summary: str
    actor_ids: tuple[str, ...] = ()
    location: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "hour": self.hour,
            "day": self.hour // 24,
            "kind": self.kind.value,
            "summary": self.summary,
            "actor_ids": list(self.actor_ids),
            "location": self.location,
            "details": dict(self.details),
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> "WorldEvent | None":
        try:
            kind = WorldEventKind(str(raw.get("kind") or ""))
        except ValueError:
            return None
        return WorldEvent(
            seq=int(raw.get("seq") or 0),
            hour=int(raw.get("hour") or 0),
            kind=kind,
            summary=str(raw.get("summary") or ""),
            actor_ids=tuple(str(a) for a in raw.get("actor_ids") or ()),
            location=str(raw["location"]) if raw.get("location") else None,
            details=dict(raw.get("details") or {}),
        )


EventSink = Callable[[WorldEvent], None]
