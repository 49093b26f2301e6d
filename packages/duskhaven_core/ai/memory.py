"""Per-actor episodic memory with derived, recency-weighted relationships."""

from __future__ import annotations

from bisect import insort
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator
import math
import re

from ..errors import CognitionInputError
from .constants import (
    ALLY_FRIENDSHIP,
    CLOSE_FRIEND_FRIENDSHIP,
    DEFAULT_MAX_MEMORY_EVENTS,
    DEFAULT_RECENCY_HALF_LIFE_HOURS,
    DEFAULT_RETENTION_HOURS,
    ENEMY_HOSTILITY,
    FRIEND_FRIENDSHIP,
    IMPORTANT_EVENT,
    LOVER_FRIENDSHIP,
    LOVER_TRUST,
    SCORE_MAX,
    SCORE_MIN,
)


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


class MemoryEventKind(str, Enum):
    WAS_ATTACKED = "was_attacked"
    WAS_BETRAYED = "was_betrayed"
    WAS_HELPED = "was_helped"
    WAS_INSULTED = "was_insulted"
    SHARED_DRINK = "shared_drink"
    SOCIALIZED_WITH = "socialized_with"
    TRADED_WITH = "traded_with"
    LOST_TO = "lost_to"
    WON_AGAINST = "won_against"
    SAW_PERSON = "saw_person"
    SAW_DEATH = "saw_death"
    FRIEND_KILLED = "friend_killed"
    JOINED_GANG = "joined_gang"
    HEARD_RUMOR = "heard_rumor"
    VISITED_LOCATION = "visited_location"


def parse_event_kind(value: Any) -> MemoryEventKind:
    if isinstance(value, MemoryEventKind):
        return value
    raw = str(value or "").strip()
    if "_" in raw or raw.isupper() or raw.islower():
        candidate = raw.lower()
    else:
        candidate = _CAMEL_RE.sub("_", raw).lower()
    try:
        return MemoryEventKind(candidate)
    except ValueError:
        raise CognitionInputError(f"Unknown memory event kind: {value!r}") from None


@dataclass(frozen=True)
class AttackDetails:
    damage: int = 20
    lethal: bool = False
    location: str = ""


@dataclass(frozen=True)
class HelpDetails:
    significance: float = 0.5


@dataclass(frozen=True)
class BetrayalDetails:
    context: str = ""


@dataclass(frozen=True)
class SocialDetails:
    location: str = ""


@dataclass(frozen=True)
class TradeDetails:
    amount: int = 0
    location: str = ""


@dataclass(frozen=True)
class CombatDetails:
    rounds: int = 1
    lethal: bool = False
    location: str = ""


@dataclass(frozen=True)
class SightingDetails:
    location: str = ""


@dataclass(frozen=True)
class DeathDetails:
    victim_id: str = ""
    location: str = ""


@dataclass(frozen=True)
class GangDetails:
    gang_id: str = ""


@dataclass(frozen=True)
class RumorDetails:
    text: str = ""
    location: str = ""


DETAILS_BY_KIND: dict[MemoryEventKind, type] = {
    MemoryEventKind.WAS_ATTACKED: AttackDetails,
    MemoryEventKind.WAS_BETRAYED: BetrayalDetails,
    MemoryEventKind.WAS_HELPED: HelpDetails,
    MemoryEventKind.WAS_INSULTED: SocialDetails,
    MemoryEventKind.SHARED_DRINK: SocialDetails,
    MemoryEventKind.SOCIALIZED_WITH: SocialDetails,
    MemoryEventKind.TRADED_WITH: TradeDetails,
    MemoryEventKind.LOST_TO: CombatDetails,
    MemoryEventKind.WON_AGAINST: CombatDetails,
    MemoryEventKind.SAW_PERSON: SightingDetails,
    MemoryEventKind.SAW_DEATH: DeathDetails,
    MemoryEventKind.FRIEND_KILLED: DeathDetails,
    MemoryEventKind.JOINED_GANG: GangDetails,
    MemoryEventKind.HEARD_RUMOR: RumorDetails,
    MemoryEventKind.VISITED_LOCATION: SightingDetails,
}

# (friendship, trust, hostility, fear) contributed by one fresh event.
_BASE_IMPACT: dict[MemoryEventKind, tuple[float, float, float, float]] = {
    MemoryEventKind.WAS_BETRAYED: (-60.0, -100.0, 60.0, 0.0),
    MemoryEventKind.WAS_INSULTED: (-8.0, -5.0, 10.0, 0.0),
    MemoryEventKind.SHARED_DRINK: (15.0, 8.0, -2.0, 0.0),
    MemoryEventKind.SOCIALIZED_WITH: (6.0, 3.0, -1.0, 0.0),
    MemoryEventKind.TRADED_WITH: (2.0, 4.0, 0.0, 0.0),
    MemoryEventKind.LOST_TO: (-5.0, -5.0, 15.0, 15.0),
    MemoryEventKind.WON_AGAINST: (-5.0, 0.0, 5.0, -10.0),
    MemoryEventKind.SAW_PERSON: (1.0, 0.0, 0.0, 0.0),
    MemoryEventKind.SAW_DEATH: (-10.0, -15.0, 10.0, 25.0),
    MemoryEventKind.FRIEND_KILLED: (-30.0, -30.0, 45.0, 10.0),
    MemoryEventKind.JOINED_GANG: (10.0, 15.0, -5.0, 0.0),
}

_BASE_IMPORTANCE: dict[MemoryEventKind, float] = {
    MemoryEventKind.WAS_BETRAYED: 1.0,
    MemoryEventKind.WAS_INSULTED: 0.4,
    MemoryEventKind.SHARED_DRINK: 0.2,
    MemoryEventKind.SOCIALIZED_WITH: 0.2,
    MemoryEventKind.TRADED_WITH: 0.3,
    MemoryEventKind.LOST_TO: 0.7,
    MemoryEventKind.WON_AGAINST: 0.5,
    MemoryEventKind.SAW_PERSON: 0.05,
    MemoryEventKind.SAW_DEATH: 0.7,
    MemoryEventKind.FRIEND_KILLED: 0.9,
    MemoryEventKind.JOINED_GANG: 0.6,
    MemoryEventKind.HEARD_RUMOR: 0.1,
    MemoryEventKind.VISITED_LOCATION: 0.05,
}


@dataclass(frozen=True)
class MemoryEvent:
    kind: MemoryEventKind
    hour: int
    other_id: str | None = None
    details: Any = None

    @staticmethod
    def create(
        kind: Any,
        *,
        hour: int,
        other_id: str | None = None,
        details: Any = None,
        **fields: Any,
    ) -> "MemoryEvent":
        event_kind = parse_event_kind(kind)
        details_cls = DETAILS_BY_KIND[event_kind]
        if details is None:
            try:
                details = details_cls(**fields)
            except TypeError as exc:
                raise CognitionInputError(f"Invalid details for {event_kind.value}: {exc}") from None
        elif fields or not isinstance(details, details_cls):
            raise CognitionInputError(
                f"{event_kind.value} expects {details_cls.__name__} details"
            )
        try:
            event_hour = int(hour)
        except (TypeError, ValueError):
            raise CognitionInputError(f"Invalid event hour: {hour!r}") from None
        other = str(other_id).strip() if other_id is not None else None
        return MemoryEvent(kind=event_kind, hour=event_hour, other_id=other or None, details=details)

    def importance(self) -> float:
        if self.kind == MemoryEventKind.WAS_ATTACKED:
            if self.details.lethal:
                return 1.0
            return min(1.0, 0.6 + max(0, self.details.damage) / 200.0)
        if self.kind == MemoryEventKind.WAS_HELPED:
            return min(1.0, 0.5 + 0.4 * self.details.significance)
        if self.kind == MemoryEventKind.WON_AGAINST and self.details.lethal:
            return 0.9
        return _BASE_IMPORTANCE.get(self.kind, 0.3)

    def impact(self) -> tuple[float, float, float, float]:
        if self.kind == MemoryEventKind.WAS_ATTACKED:
            damage = max(0, int(self.details.damage))
            hostility = 30.0 + min(50.0, damage * 0.5)
            fear = 15.0 + min(30.0, damage * 0.3)
            if self.details.lethal:
                hostility, fear = 100.0, 60.0
            return (-15.0, -20.0, hostility, fear)
        if self.kind == MemoryEventKind.WAS_HELPED:
            scale = 0.6 + 0.8 * max(0.0, min(1.0, float(self.details.significance)))
            return (25.0 * scale, 25.0 * scale, -5.0 * scale, 0.0)
        return _BASE_IMPACT.get(self.kind, (0.0, 0.0, 0.0, 0.0))

    def location(self) -> str:
        return str(getattr(self.details, "location", "") or "")

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "hour": self.hour,
            "other_id": self.other_id,
            "details": asdict(self.details),
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> "MemoryEvent | None":
        try:
            return MemoryEvent.create(
                raw.get("kind"),
                hour=int(raw.get("hour") or 0),
                other_id=raw.get("other_id"),
                **dict(raw.get("details") or {}),
            )
        except (CognitionInputError, TypeError, ValueError):
            return None


class RelationshipType(str, Enum):
    ENEMY = "enemy"
    NEUTRAL = "neutral"
    FRIEND = "friend"
    CLOSE_FRIEND = "close_friend"
    LOVER = "lover"


def classify_relationship(friendship: float, trust: float, hostility: float) -> RelationshipType:
    if hostility > ENEMY_HOSTILITY and hostility >= friendship:
        return RelationshipType.ENEMY
    if friendship >= LOVER_FRIENDSHIP and trust >= LOVER_TRUST:
        return RelationshipType.LOVER
    if friendship >= CLOSE_FRIEND_FRIENDSHIP:
        return RelationshipType.CLOSE_FRIEND
    if friendship >= FRIEND_FRIENDSHIP:
        return RelationshipType.FRIEND
    return RelationshipType.NEUTRAL


@dataclass(frozen=True)
class Relationship:
    friendship: float = 0.0
    trust: float = 0.0
    hostility: float = 0.0
    fear: float = 0.0

    @property
    def classification(self) -> RelationshipType:
        return classify_relationship(self.friendship, self.trust, self.hostility)

    def affinity(self) -> float:
        return max(SCORE_MIN, min(SCORE_MAX, (self.friendship + self.trust) / 2.0 - self.hostility))

    def as_dict(self) -> dict[str, Any]:
        return {
            "friendship": round(self.friendship, 3),
            "trust": round(self.trust, 3),
            "hostility": round(self.hostility, 3),
            "fear": round(self.fear, 3),
            "affinity": round(self.affinity(), 3),
            "classification": self.classification.value,
        }


def _stored(raw: dict[str, Any], key: str, default: Any) -> Any:
    value = raw.get(key)
    return default if value is None else value


def _saturate(raw: float, *, low: float) -> float:
    value = SCORE_MAX * math.tanh(raw / SCORE_MAX)
    return max(low, min(SCORE_MAX, value))


@dataclass
class MemoryStore:
    """Append-only event log for one actor.

    Relationship figures are recomputed from the log on demand, so a store
    restored from its events reports exactly the figures it had when saved.
    """

    owner_id: str
    half_life_hours: float = DEFAULT_RECENCY_HALF_LIFE_HOURS
    retention_hours: int = DEFAULT_RETENTION_HOURS
    max_events: int = DEFAULT_MAX_MEMORY_EVENTS
    clock_hour: int = 0
    _events: list[MemoryEvent] = field(default_factory=list, repr=False)
    _by_other: dict[str, list[MemoryEvent]] = field(default_factory=dict, repr=False)
    _unprocessed: list[MemoryEvent] = field(default_factory=list, repr=False)
    _revision: int = field(default=0, repr=False)
    _cache: dict[str, tuple[int, int, Relationship]] = field(default_factory=dict, repr=False)

    def record_event(self, event: MemoryEvent) -> MemoryEvent:
        if not isinstance(event, MemoryEvent) or not isinstance(event.kind, MemoryEventKind):
            raise CognitionInputError("record_event expects a MemoryEvent with a valid kind")
        self._insert(event)
        self._unprocessed.append(event)
        if event.hour > self.clock_hour:
            self.clock_hour = event.hour
        self._enforce_capacity()
        return event

    def record(self, kind: Any, *, hour: int, other_id: str | None = None, **fields: Any) -> MemoryEvent:
        return self.record_event(MemoryEvent.create(kind, hour=hour, other_id=other_id, **fields))

    def _enforce_capacity(self) -> None:
        limit = int(self.max_events)
        if limit > 0 and len(self._events) > limit:
            self._rebuild(self._trim_to_capacity(self._events, len(self._events) - limit))

    def _insert(self, event: MemoryEvent) -> None:
        if not self._events or event.hour >= self._events[-1].hour:
            self._events.append(event)
        else:
            insort(self._events, event, key=lambda e: e.hour)
        if event.other_id:
            bucket = self._by_other.setdefault(event.other_id, [])
            if not bucket or event.hour >= bucket[-1].hour:
                bucket.append(event)
            else:
                insort(bucket, event, key=lambda e: e.hour)
        self._revision += 1

    def advance_clock(self, hour: int) -> None:
        if int(hour) > self.clock_hour:
            self.clock_hour = int(hour)

    def take_unprocessed(self) -> list[MemoryEvent]:
        pending, self._unprocessed = self._unprocessed, []
        return pending

    @property
    def event_count(self) -> int:
        return len(self._events)

    def all_events(self) -> Iterator[MemoryEvent]:
        return iter(tuple(self._events))

    def get_memories_about(self, other_id: str) -> Iterator[MemoryEvent]:
        return iter(tuple(self._by_other.get(str(other_id), ())))

    def known_others(self) -> list[str]:
        return sorted(self._by_other)

    def _weight(self, event: MemoryEvent, now: int) -> float:
        age = max(0, now - event.hour)
        if self.half_life_hours <= 0:
            return 1.0
        return 0.5 ** (age / self.half_life_hours)

    def _compute(self, events: Iterable[MemoryEvent], now: int) -> Relationship:
        friendship = trust = hostility = fear = 0.0
        betrayed = False
        for event in events:
            weight = self._weight(event, now)
            df, dt, dh, dfear = event.impact()
            friendship += df * weight
            trust += dt * weight
            hostility += dh * weight
            fear += dfear * weight
            if event.kind == MemoryEventKind.WAS_BETRAYED:
                betrayed = True
        return Relationship(
            friendship=_saturate(friendship, low=SCORE_MIN),
            # A remembered betrayal keeps trust at the floor until it is pruned.
            trust=SCORE_MIN if betrayed else _saturate(trust, low=SCORE_MIN),
            hostility=_saturate(hostility, low=0.0),
            fear=_saturate(fear, low=0.0),
        )

    def get_relationship(self, other_id: str, *, now: int | None = None) -> Relationship:
        key = str(other_id)
        at = self.clock_hour if now is None else int(now)
        cached = self._cache.get(key)
        if cached is not None and cached[0] == self._revision and cached[1] == at:
            return cached[2]
        relationship = self._compute(self._by_other.get(key, ()), at)
        self._cache[key] = (self._revision, at, relationship)
        return relationship

    def relationships(
        self,
        *,
        now: int | None = None,
        is_present: Callable[[str], bool] | None = None,
    ) -> dict[str, Relationship]:
        out: dict[str, Relationship] = {}
        for other_id in self.known_others():
            if is_present is not None and not is_present(other_id):
                continue
            out[other_id] = self.get_relationship(other_id, now=now)
        return out

    def remembers_being_attacked_by(self, other_id: str) -> bool:
        return any(e.kind == MemoryEventKind.WAS_ATTACKED for e in self._by_other.get(str(other_id), ()))

    def has_prevailed_over(self, other_id: str) -> bool:
        """True when the latest grievance against ``other_id`` was answered by a win."""
        prevailed = False
        for event in self._by_other.get(str(other_id), ()):
            if event.kind == MemoryEventKind.WON_AGAINST:
                prevailed = True
            elif event.impact()[2] > 0:
                prevailed = False
        return prevailed

    def remembers_being_helped_by(self, other_id: str) -> bool:
        return any(e.kind == MemoryEventKind.WAS_HELPED for e in self._by_other.get(str(other_id), ()))

    def get_enemies(
        self,
        *,
        now: int | None = None,
        is_present: Callable[[str], bool] | None = None,
    ) -> set[str]:
        return {
            other_id
            for other_id, rel in self.relationships(now=now, is_present=is_present).items()
            if rel.hostility > ENEMY_HOSTILITY
        }

    def get_allies(
        self,
        *,
        now: int | None = None,
        is_present: Callable[[str], bool] | None = None,
    ) -> set[str]:
        return {
            other_id
            for other_id, rel in self.relationships(now=now, is_present=is_present).items()
            if rel.friendship > ALLY_FRIENDSHIP
        }

    def top_relationships(self, *, limit: int = 3, now: int | None = None) -> list[dict[str, Any]]:
        ranked = sorted(
            self.relationships(now=now).items(),
            key=lambda item: (-abs(item[1].affinity()), item[0]),
        )
        out: list[dict[str, Any]] = []
        for other_id, rel in ranked[: max(1, int(limit))]:
            entry = rel.as_dict()
            entry["other_id"] = other_id
            out.append(entry)
        return out

    def last_known_location(self, other_id: str) -> str | None:
        for event in reversed(self._by_other.get(str(other_id), ())):
            location = event.location()
            if location:
                return location
        return None

    def prune(self, *, now: int | None = None, protected_ids: Iterable[str] = ()) -> int:
        """Drop aged and surplus events, returning how many were removed.

        For every other actor the single strongest aged event survives when that
        actor is protected (an active goal targets it) or when dropping its aged
        events would change the relationship classification.
        """
        at = self.clock_hour if now is None else int(now)
        horizon = at - int(self.retention_hours)
        if not self._events:
            return 0
        limit = int(self.max_events)
        if self._events[0].hour >= horizon and (limit <= 0 or len(self._events) <= limit):
            return 0

        protected = {str(p) for p in protected_ids}
        fresh: list[MemoryEvent] = []
        aged: dict[str, list[MemoryEvent]] = {}
        for event in self._events:
            if event.hour >= horizon:
                fresh.append(event)
            elif event.other_id:
                aged.setdefault(event.other_id, []).append(event)

        anchors: list[MemoryEvent] = []
        for other_id, old_events in aged.items():
            anchor = max(old_events, key=lambda e: (e.importance(), e.hour))
            if other_id in protected:
                anchors.append(anchor)
                continue
            before = self.get_relationship(other_id, now=at).classification
            remaining = [e for e in self._by_other.get(other_id, ()) if e.hour >= horizon]
            if self._compute(remaining, at).classification != before:
                anchors.append(anchor)

        kept = sorted(fresh + anchors, key=lambda e: e.hour)
        excess = len(kept) - limit
        if limit > 0 and excess > 0:
            kept = self._trim_to_capacity(kept, excess)

        removed = len(self._events) - len(kept)
        self._rebuild(kept)
        return removed

    @staticmethod
    def _trim_to_capacity(events: list[MemoryEvent], excess: int) -> list[MemoryEvent]:
        indexed = list(enumerate(events))
        minor = [item for item in indexed if item[1].importance() < IMPORTANT_EVENT]
        major = [item for item in indexed if item[1].importance() >= IMPORTANT_EVENT]
        minor.sort(key=lambda item: (item[1].importance(), item[1].hour, item[0]))
        major.sort(key=lambda item: (item[1].hour, item[1].importance(), item[0]))
        doomed = {idx for idx, _ in (minor + major)[:excess]}
        return [event for idx, event in indexed if idx not in doomed]

    def _rebuild(self, events: list[MemoryEvent]) -> None:
        self._events = list(events)
        self._by_other = {}
        for event in self._events:
            if event.other_id:
                self._by_other.setdefault(event.other_id, []).append(event)
        alive = set(map(id, self._events))
        self._unprocessed = [e for e in self._unprocessed if id(e) in alive]
        self._cache.clear()
        self._revision += 1

    def summary(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for event in self._events:
            counts[event.kind.value] = counts.get(event.kind.value, 0) + 1
        return {
            "total_events": len(self._events),
            "known_actors": len(self._by_other),
            "clock_hour": self.clock_hour,
            "by_kind": dict(sorted(counts.items())),
            "top_relationships": self.top_relationships(limit=3),
        }

    def snapshot(self, *, limit: int = 40) -> dict[str, Any]:
        recent = self._events[-max(1, int(limit)) :]
        return {
            "summary": self.summary(),
            "events": [event.as_dict() for event in reversed(recent)],
        }

    def to_dict(self) -> dict[str, Any]:
        pending = set(map(id, self._unprocessed))
        return {
            "owner_id": self.owner_id,
            "half_life_hours": self.half_life_hours,
            "retention_hours": self.retention_hours,
            "max_events": self.max_events,
            "clock_hour": self.clock_hour,
            "events": [dict(event.as_dict(), pending=id(event) in pending) for event in self._events],
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> "MemoryStore":
        store = MemoryStore(
            owner_id=str(raw.get("owner_id") or ""),
            half_life_hours=float(_stored(raw, "half_life_hours", DEFAULT_RECENCY_HALF_LIFE_HOURS)),
            retention_hours=int(_stored(raw, "retention_hours", DEFAULT_RETENTION_HOURS)),
            max_events=int(_stored(raw, "max_events", DEFAULT_MAX_MEMORY_EVENTS)),
        )
        for item in raw.get("events") or []:
            if not isinstance(item, dict):
                continue
            event = MemoryEvent.from_dict(item)
            if event is None:
                continue
            store._insert(event)
            if item.get("pending"):
                store._unprocessed.append(event)
        store.clock_hour = int(raw.get("clock_hour") or 0)
        return store
