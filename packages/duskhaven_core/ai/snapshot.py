"""Read-only world views handed to an actor's brain for one decision."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_unit(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:
        return default
    return max(0.0, min(1.0, number))


def _as_str(value: Any) -> str | None:
    cleaned = str(value or "").strip()
    return cleaned or None


@dataclass(frozen=True)
class NearbyActor:
    actor_id: str
    level: int = 1
    health_ratio: float = 1.0
    gang_id: str | None = None
    is_gang_leader: bool = False
    archetype: str = "commoner"
    is_player: bool = False

    @staticmethod
    def from_dict(raw: Any) -> "NearbyActor | None":
        if isinstance(raw, NearbyActor):
            return raw
        if isinstance(raw, str):
            return NearbyActor(actor_id=raw) if raw.strip() else None
        if not isinstance(raw, dict):
            return None
        actor_id = _as_str(raw.get("actor_id"))
        if actor_id is None:
            return None
        return NearbyActor(
            actor_id=actor_id,
            level=max(1, _as_int(raw.get("level"), 1)),
            health_ratio=_as_unit(raw.get("health_ratio"), 1.0),
            gang_id=_as_str(raw.get("gang_id")),
            is_gang_leader=bool(raw.get("is_gang_leader")),
            archetype=str(raw.get("archetype") or "commoner"),
            is_player=bool(raw.get("is_player")),
        )


@dataclass(frozen=True)
class LocationSummary:
    location_id: str
    danger: float = 0.0
    social_capacity: int = 0
    affordances: frozenset[str] = frozenset()

    @staticmethod
    def from_dict(raw: Any) -> "LocationSummary | None":
        if isinstance(raw, LocationSummary):
            return raw
        if not isinstance(raw, dict):
            return None
        location_id = _as_str(raw.get("location_id"))
        if location_id is None:
            return None
        affordances = raw.get("affordances") or ()
        if isinstance(affordances, str):
            affordances = affordances.split(",")
        return LocationSummary(
            location_id=location_id,
            danger=_as_unit(raw.get("danger")),
            social_capacity=max(0, _as_int(raw.get("social_capacity"))),
            affordances=frozenset(str(a).strip().lower() for a in affordances if str(a).strip()),
        )


@dataclass(frozen=True)
class WorldSnapshot:
    """Everything an actor may perceive this tick. Missing data means nothing notable."""

    actor_id: str = ""
    hour: int = 0
    location: str = ""
    danger: float = 0.0
    treasure: bool = False
    social_capacity: int = 0
    occupancy: int = 0
    affordances: frozenset[str] = frozenset()
    nearby: tuple[NearbyActor, ...] = ()
    locations: tuple[LocationSummary, ...] = ()
    gold: int = 0
    health_ratio: float = 1.0
    level: int = 1
    weapon_power: int = 0
    gang_id: str | None = None
    gang_leader_id: str | None = None
    gang_size: int = 0
    controls_town: bool = False
    open_gang_leaders: frozenset[str] = frozenset()
    alive_actor_ids: frozenset[str] | None = None

    @property
    def hour_of_day(self) -> int:
        return self.hour % 24

    @property
    def is_night(self) -> bool:
        return self.hour_of_day < 6 or self.hour_of_day >= 22

    @property
    def is_gang_leader(self) -> bool:
        return bool(self.gang_id) and self.gang_leader_id == self.actor_id

    def is_alive(self, actor_id: str) -> bool:
        if self.alive_actor_ids is None:
            return True
        return actor_id in self.alive_actor_ids

    def nearby_ids(self) -> list[str]:
        return [n.actor_id for n in self.nearby]

    def find_nearby(self, actor_id: str | None) -> NearbyActor | None:
        for other in self.nearby:
            if other.actor_id == actor_id:
                return other
        return None

    def locations_with(self, affordance: str) -> list[LocationSummary]:
        return [loc for loc in self.locations if affordance in loc.affordances]

    @staticmethod
    def from_dict(raw: Any, *, actor_id: str = "") -> "WorldSnapshot":
        if isinstance(raw, WorldSnapshot):
            return raw
        if not isinstance(raw, dict):
            return WorldSnapshot(actor_id=actor_id)

        nearby: list[NearbyActor] = []
        for item in raw.get("nearby") or ():
            parsed = NearbyActor.from_dict(item)
            if parsed is not None and parsed.actor_id != actor_id:
                nearby.append(parsed)
        locations: list[LocationSummary] = []
        for item in raw.get("locations") or ():
            parsed_location = LocationSummary.from_dict(item)
            if parsed_location is not None:
                locations.append(parsed_location)

        affordances = raw.get("affordances") or ()
        if isinstance(affordances, str):
            affordances = affordances.split(",")
        alive_raw = raw.get("alive_actor_ids")
        leaders_raw = raw.get("open_gang_leaders") or ()
        return WorldSnapshot(
            actor_id=_as_str(raw.get("actor_id")) or actor_id,
            hour=max(0, _as_int(raw.get("hour"))),
            location=str(raw.get("location") or ""),
            danger=_as_unit(raw.get("danger")),
            treasure=bool(raw.get("treasure")),
            social_capacity=max(0, _as_int(raw.get("social_capacity"))),
            occupancy=max(0, _as_int(raw.get("occupancy"))),
            affordances=frozenset(str(a).strip().lower() for a in affordances if str(a).strip()),
            nearby=tuple(nearby),
            locations=tuple(locations),
            gold=max(0, _as_int(raw.get("gold"))),
            health_ratio=_as_unit(raw.get("health_ratio"), 1.0),
            level=max(1, _as_int(raw.get("level"), 1)),
            weapon_power=max(0, _as_int(raw.get("weapon_power"))),
            gang_id=_as_str(raw.get("gang_id")),
            gang_leader_id=_as_str(raw.get("gang_leader_id")),
            gang_size=max(0, _as_int(raw.get("gang_size"))),
            controls_town=bool(raw.get("controls_town")),
            open_gang_leaders=frozenset(str(x) for x in leaders_raw if str(x).strip()),
            alive_actor_ids=frozenset(str(x) for x in alive_raw) if isinstance(alive_raw, (list, tuple, set, frozenset)) else None,
        )
