"""Location catalog: opaque identifiers with coarse danger and capacity attributes."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import Any, Iterable
import json

from ..ai.snapshot import LocationSummary
from ..errors import LocationCatalogError

logger = getLogger("duskhaven_core.world")

REQUIRED_AFFORDANCES = ("social", "rest", "work")
KNOWN_AFFORDANCES = frozenset(
    {"social", "drink", "rest", "work", "trade", "shop", "rule", "patrol", "train", "treasure"}
)


def parse_affordances(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        values = [str(v).strip().lower() for v in raw if str(v).strip()]
        return tuple(dict.fromkeys(values))
    if isinstance(raw, str):
        values = [v.strip().lower() for v in raw.split(",") if v.strip()]
        return tuple(dict.fromkeys(values))
    value = str(raw).strip().lower()
    return (value,) if value else ()


@dataclass(frozen=True)
class Location:
    location_id: str
    name: str
    danger: float
    social_capacity: int
    affordances: tuple[str, ...]

    def summary(self) -> LocationSummary:
        return LocationSummary(
            location_id=self.location_id,
            danger=self.danger,
            social_capacity=self.social_capacity,
            affordances=frozenset(self.affordances),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "location_id": self.location_id,
            "name": self.name,
            "danger": self.danger,
            "social_capacity": self.social_capacity,
            "affordances": list(self.affordances),
        }


DEFAULT_LOCATIONS = (
    Location("town_square", "Town Square", 0.1, 60, ("social", "patrol")),
    Location("tavern", "The Crooked Flagon", 0.15, 30, ("social", "drink", "rest")),
    Location("market", "Market", 0.1, 40, ("trade", "work", "shop")),
    Location("castle", "Castle", 0.2, 20, ("rule", "patrol")),
    Location("temple", "Temple", 0.0, 25, ("rest", "social")),
    Location("dungeon", "Dungeon", 0.8, 12, ("treasure",)),
    Location("training_grounds", "Training Grounds", 0.3, 20, ("train", "patrol")),
    Location("docks", "Docks", 0.4, 20, ("work", "trade")),
)


def validate_catalog(raw: dict[str, Any]) -> tuple[list[str], list[str], dict[str, Any]]:
    logger.debug("[CATALOG] Starting catalog validation")
    errors: list[str] = []
    warnings: list[str] = []

    items = raw.get("locations") if isinstance(raw, dict) else None
    if not isinstance(items, list) or not items:
        errors.append("Missing 'locations' list or no locations defined")
        return errors, warnings, {}

    seen: set[str] = set()
    affordance_counts: dict[str, int] = {key: 0 for key in REQUIRED_AFFORDANCES}
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            errors.append(f"Location #{idx} is not an object")
            continue
        location_id = str(item.get("location_id") or "").strip()
        if not location_id:
            errors.append(f"Location #{idx} is missing 'location_id'")
            continue
        if location_id in seen:
            errors.append(f"Duplicate location_id: {location_id}")
        seen.add(location_id)

        try:
            danger = float(item.get("danger", 0.0))
        except (TypeError, ValueError):
            errors.append(f"Location '{location_id}' has non-numeric danger")
            danger = 0.0
        if not 0.0 <= danger <= 1.0:
            errors.append(f"Location '{location_id}' danger must be within [0, 1]")

        try:
            capacity = int(item.get("social_capacity", 0))
        except (TypeError, ValueError):
            errors.append(f"Location '{location_id}' has non-integer social_capacity")
            capacity = 0
        if capacity < 1:
            errors.append(f"Location '{location_id}' social_capacity must be >= 1")

        affordances = parse_affordances(item.get("affordances"))
        if not affordances:
            warnings.append(f"Location '{location_id}' has no affordances")
        for affordance in affordances:
            if affordance not in KNOWN_AFFORDANCES:
                warnings.append(f"Location '{location_id}' has unknown affordance '{affordance}'")
            if affordance in affordance_counts:
                affordance_counts[affordance] += 1

    for affordance, count in affordance_counts.items():
        if count == 0:
            errors.append(f"Missing required affordance location: {affordance}")

    spawn = str(raw.get("spawn_location") or "").strip()
    if spawn and spawn not in seen:
        errors.append(f"spawn_location '{spawn}' is not a known location")

    summary = {
        "locations": len(seen),
        "required_affordances": affordance_counts,
        "spawn_location": spawn or None,
    }
    if errors:
        logger.warning("[CATALOG] Validation completed with errors: %d errors, %d warnings", len(errors), len(warnings))
    return errors, warnings, summary


class LocationCatalog:
    def __init__(self, locations: Iterable[Location], *, spawn_location: str | None = None) -> None:
        self._locations: dict[str, Location] = {}
        for location in locations:
            self._locations[location.location_id] = location
        if not self._locations:
            raise LocationCatalogError("Location catalog cannot be empty")
        if spawn_location and spawn_location not in self._locations:
            raise LocationCatalogError(f"Unknown spawn location: {spawn_location}")
        self.spawn_location = spawn_location or next(iter(self._locations))
        self._summaries = tuple(self._locations[key].summary() for key in sorted(self._locations))

    @classmethod
    def default(cls) -> "LocationCatalog":
        return cls(DEFAULT_LOCATIONS, spawn_location="town_square")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "LocationCatalog":
        errors, _, _ = validate_catalog(raw)
        if errors:
            raise LocationCatalogError("Invalid location catalog", errors=errors)
        locations = [
            Location(
                location_id=str(item["location_id"]).strip(),
                name=str(item.get("name") or item["location_id"]).strip(),
                danger=float(item.get("danger", 0.0)),
                social_capacity=int(item.get("social_capacity", 1)),
                affordances=parse_affordances(item.get("affordances")),
            )
            for item in raw["locations"]
        ]
        return cls(locations, spawn_location=str(raw.get("spawn_location") or "").strip() or None)

    @classmethod
    def load(cls, path: Path) -> "LocationCatalog":
        with path.open("r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def get(self, location_id: str | None) -> Location | None:
        if not location_id:
            return None
        return self._locations.get(location_id)

    def __contains__(self, location_id: object) -> bool:
        return location_id in self._locations

    def __len__(self) -> int:
        return len(self._locations)

    def ids(self) -> list[str]:
        return sorted(self._locations)

    def with_affordance(self, affordance: str) -> list[Location]:
        return [self._locations[key] for key in self.ids() if affordance in self._locations[key].affordances]

    def summaries(self) -> tuple[LocationSummary, ...]:
        return self._summaries

    def to_dict(self) -> dict[str, Any]:
        return {
            "spawn_location": self.spawn_location,
            "locations": [self._locations[key].as_dict() for key in self.ids()],
        }
