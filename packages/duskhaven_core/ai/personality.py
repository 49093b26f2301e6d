"""Personality trait vectors and archetype generation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any
import math
import random

from ..errors import CognitionInputError


TRAIT_NAMES = (
    "aggression",
    "greed",
    "courage",
    "loyalty",
    "vengefulness",
    "impulsiveness",
    "sociability",
    "ambition",
)

DEFAULT_ARCHETYPE = "commoner"

ARCHETYPE_ALIASES = {
    "brawler": "thug",
    "trader": "merchant",
    "aristocrat": "noble",
    "soldier": "guard",
    "cleric": "priest",
    "mage": "mystic",
    "artisan": "craftsman",
}

ARCHETYPE_TRAIT_RANGES: dict[str, dict[str, tuple[float, float]]] = {
    "thug": {
        "aggression": (0.7, 1.0),
        "courage": (0.6, 1.0),
        "greed": (0.3, 0.8),
        "loyalty": (0.2, 0.5),
        "vengefulness": (0.6, 0.9),
        "impulsiveness": (0.5, 0.9),
        "sociability": (0.3, 0.7),
        "ambition": (0.2, 0.7),
    },
    "merchant": {
        "aggression": (0.0, 0.3),
        "greed": (0.7, 1.0),
        "courage": (0.2, 0.6),
        "loyalty": (0.4, 0.8),
        "vengefulness": (0.2, 0.5),
        "impulsiveness": (0.1, 0.4),
        "sociability": (0.6, 0.9),
        "ambition": (0.5, 0.8),
    },
    "noble": {
        "ambition": (0.8, 1.0),
        "vengefulness": (0.5, 0.9),
        "loyalty": (0.4, 0.7),
        "courage": (0.5, 0.8),
        "sociability": (0.4, 0.7),
        "greed": (0.4, 0.8),
        "aggression": (0.3, 0.7),
        "impulsiveness": (0.2, 0.5),
    },
    "guard": {
        "loyalty": (0.7, 0.9),
        "courage": (0.6, 0.9),
        "aggression": (0.4, 0.7),
        "ambition": (0.3, 0.7),
        "vengefulness": (0.4, 0.7),
        "impulsiveness": (0.2, 0.5),
        "sociability": (0.3, 0.7),
        "greed": (0.2, 0.6),
    },
    "priest": {
        "loyalty": (0.6, 0.9),
        "courage": (0.4, 0.8),
        "aggression": (0.0, 0.2),
        "ambition": (0.3, 0.6),
        "vengefulness": (0.0, 0.2),
        "impulsiveness": (0.1, 0.4),
        "sociability": (0.6, 0.9),
        "greed": (0.0, 0.3),
    },
    "mystic": {
        "ambition": (0.6, 0.9),
        "courage": (0.3, 0.8),
        "aggression": (0.2, 0.6),
        "loyalty": (0.3, 0.7),
        "vengefulness": (0.4, 0.8),
        "impulsiveness": (0.2, 0.5),
        "sociability": (0.2, 0.7),
        "greed": (0.3, 0.7),
    },
    "craftsman": {
        "loyalty": (0.5, 0.8),
        "courage": (0.4, 0.8),
        "aggression": (0.2, 0.5),
        "ambition": (0.3, 0.7),
        "vengefulness": (0.3, 0.6),
        "impulsiveness": (0.2, 0.5),
        "sociability": (0.4, 0.8),
        "greed": (0.4, 0.8),
    },
    DEFAULT_ARCHETYPE: {
        "aggression": (0.2, 0.8),
        "greed": (0.2, 0.8),
        "courage": (0.2, 0.8),
        "loyalty": (0.2, 0.8),
        "vengefulness": (0.2, 0.8),
        "impulsiveness": (0.1, 0.9),
        "sociability": (0.2, 0.8),
        "ambition": (0.2, 0.8),
    },
}

ARCHETYPE_FEARS = {
    "thug": ("Being seen as weak", "Authority figures"),
    "merchant": ("Losing money", "Bandits", "Economic collapse"),
    "noble": ("Losing status", "Public humiliation", "Revolution"),
    "guard": ("Failing duty", "Corruption"),
    "priest": ("Losing faith", "Evil spirits", "Moral corruption"),
    "mystic": ("Losing magical power", "Ignorance"),
    "craftsman": ("Poor quality work", "Unemployment"),
}

ARCHETYPE_DESIRES = {
    "thug": ("Respect through fear", "Easy money", "Dominance"),
    "merchant": ("Wealth", "Trade opportunities", "Security"),
    "noble": ("Power", "Prestige", "Political influence"),
    "guard": ("Order", "Justice", "Protecting the innocent"),
    "priest": ("Spiritual growth", "Helping others", "Divine favor"),
    "mystic": ("Knowledge", "Magical power", "Understanding mysteries"),
    "craftsman": ("Masterwork creation", "Recognition", "Fair payment"),
}


def normalize_archetype(value: Any) -> str:
    cleaned = str(value or "").strip().lower()
    if not cleaned:
        return DEFAULT_ARCHETYPE
    cleaned = ARCHETYPE_ALIASES.get(cleaned, cleaned)
    if cleaned not in ARCHETYPE_TRAIT_RANGES:
        return DEFAULT_ARCHETYPE
    return cleaned


def clamp_trait(value: Any, *, name: str = "trait") -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise CognitionInputError(f"Trait '{name}' must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise CognitionInputError(f"Trait '{name}' must be finite")
    return max(0.0, min(1.0, number))


@dataclass(frozen=True)
class PersonalityProfile:
    """Trait vector for one actor. Every trait is clamped into [0, 1]."""

    aggression: float = 0.5
    greed: float = 0.5
    courage: float = 0.5
    loyalty: float = 0.5
    vengefulness: float = 0.5
    impulsiveness: float = 0.5
    sociability: float = 0.5
    ambition: float = 0.5
    archetype: str = DEFAULT_ARCHETYPE

    def __post_init__(self) -> None:
        for name in TRAIT_NAMES:
            object.__setattr__(self, name, clamp_trait(getattr(self, name), name=name))
        object.__setattr__(self, "archetype", normalize_archetype(self.archetype))

    @classmethod
    def generate(cls, archetype: str, *, rng: random.Random) -> "PersonalityProfile":
        resolved = normalize_archetype(archetype)
        ranges = ARCHETYPE_TRAIT_RANGES[resolved]
        traits = {name: rng.uniform(*ranges[name]) for name in TRAIT_NAMES}
        return cls(archetype=resolved, **traits)

    @classmethod
    def from_seed(cls, archetype: str, seed: str) -> "PersonalityProfile":
        return cls.generate(archetype, rng=random.Random(f"personality:{seed}"))

    def trait(self, name: str) -> float:
        if name not in TRAIT_NAMES:
            raise CognitionInputError(f"Unknown trait: {name!r}")
        return float(getattr(self, name))

    def adjusted(self, name: str, delta: float) -> "PersonalityProfile":
        """Return a copy with one trait shifted, used by explicit story events only."""
        current = self.trait(name)
        return replace(self, **{name: clamp_trait(current + float(delta), name=name)})

    def compatibility(self, other: "PersonalityProfile") -> float:
        diffs = (
            abs(self.aggression - other.aggression),
            abs(self.loyalty - other.loyalty),
            abs(self.sociability - other.sociability),
            abs(self.ambition - other.ambition),
        )
        return max(0.0, min(1.0, 1.0 - sum(diffs) / len(diffs)))

    def decision_weight(self, action: str) -> float:
        key = str(action or "").strip().lower()
        if key in {"attack", "fight"}:
            return self.aggression * 0.7 + self.courage * 0.3
        if key == "flee":
            return (1.0 - self.courage) * 0.6 + (1.0 - self.aggression) * 0.4
        if key == "steal":
            return self.greed * 0.6 + (1.0 - self.loyalty) * 0.4
        if key == "help":
            return self.loyalty * 0.4 + self.sociability * 0.3 + (1.0 - self.greed) * 0.3
        if key == "trade":
            return self.greed * 0.4 + self.sociability * 0.3 + (1.0 - self.aggression) * 0.3
        if key == "explore":
            return self.courage * 0.5 + self.ambition * 0.3
        return 0.5

    def is_likely_to_join_gang(self) -> bool:
        score = self.loyalty * 0.3 + self.sociability * 0.3 + self.ambition * 0.2 + self.courage * 0.2
        return score > 0.6 and self.aggression > 0.3

    def is_likely_to_betray(self) -> bool:
        score = (1.0 - self.loyalty) * 0.4 + self.greed * 0.3 + self.ambition * 0.2 + self.impulsiveness * 0.1
        return score > 0.7

    def is_likely_to_seek_revenge(self) -> bool:
        return self.vengefulness > 0.6 and (self.aggression > 0.4 or self.ambition > 0.5)

    def fears(self) -> tuple[str, ...]:
        return ARCHETYPE_FEARS.get(self.archetype, ("Death", "Poverty"))

    def desires(self) -> tuple[str, ...]:
        return ARCHETYPE_DESIRES.get(self.archetype, ("Survival", "Comfort"))

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {name: getattr(self, name) for name in TRAIT_NAMES}
        out["archetype"] = self.archetype
        return out

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> "PersonalityProfile":
        traits = {name: raw[name] for name in TRAIT_NAMES if raw.get(name) is not None}
        return PersonalityProfile(archetype=str(raw.get("archetype") or DEFAULT_ARCHETYPE), **traits)
