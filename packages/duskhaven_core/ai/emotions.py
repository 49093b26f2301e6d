"""Short-lived emotional state that decays on the simulation clock."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any
import math

from ..errors import CognitionInputError
from .memory import MemoryEventKind, parse_event_kind


DEFAULT_DURATION_HOURS = 2.0
MAX_CONCURRENT_EMOTIONS = 5
MODIFIER_FLOOR = 0.1
MODIFIER_CEILING = 3.0


class EmotionKind(str, Enum):
    ANGER = "anger"
    FEAR = "fear"
    JOY = "joy"
    SADNESS = "sadness"
    CONFIDENCE = "confidence"
    GREED = "greed"
    GRATITUDE = "gratitude"
    LONELINESS = "loneliness"
    ENVY = "envy"
    PRIDE = "pride"
    HOPE = "hope"
    PEACE = "peace"


_EMOTION_ORDER = {kind: idx for idx, kind in enumerate(EmotionKind)}

_VALENCE = {
    EmotionKind.JOY: 1.0,
    EmotionKind.CONFIDENCE: 1.0,
    EmotionKind.GRATITUDE: 1.0,
    EmotionKind.PRIDE: 1.0,
    EmotionKind.HOPE: 1.0,
    EmotionKind.PEACE: 1.0,
    EmotionKind.ANGER: -1.0,
    EmotionKind.FEAR: -1.0,
    EmotionKind.SADNESS: -1.0,
    EmotionKind.LONELINESS: -1.0,
    EmotionKind.ENVY: -1.0,
    EmotionKind.GREED: 0.0,
}

# event kind -> (emotion, importance scale, intensity cap, duration hours)
_INTERACTION_EMOTIONS: dict[MemoryEventKind, tuple[tuple[EmotionKind, float, float, float], ...]] = {
    MemoryEventKind.WAS_ATTACKED: ((EmotionKind.ANGER, 1.0, 1.0, 2.0), (EmotionKind.FEAR, 0.5, 1.0, 1.5)),
    MemoryEventKind.WAS_BETRAYED: ((EmotionKind.ANGER, 1.2, 1.0, 5.0), (EmotionKind.SADNESS, 0.5, 1.0, 3.0)),
    MemoryEventKind.WAS_INSULTED: ((EmotionKind.ANGER, 1.0, 1.0, 2.0),),
    MemoryEventKind.WAS_HELPED: ((EmotionKind.GRATITUDE, 1.0, 1.0, 3.0),),
    MemoryEventKind.SHARED_DRINK: ((EmotionKind.JOY, 1.0, 0.5, 1.0),),
    MemoryEventKind.SOCIALIZED_WITH: ((EmotionKind.JOY, 1.0, 0.5, 1.0),),
    MemoryEventKind.TRADED_WITH: ((EmotionKind.JOY, 1.0, 0.5, 1.0),),
    MemoryEventKind.LOST_TO: ((EmotionKind.SADNESS, 0.6, 1.0, 3.0), (EmotionKind.FEAR, 0.5, 1.0, 2.0)),
    MemoryEventKind.WON_AGAINST: ((EmotionKind.CONFIDENCE, 1.0, 1.0, 5.0), (EmotionKind.PRIDE, 0.5, 1.0, 3.0)),
    MemoryEventKind.SAW_DEATH: ((EmotionKind.FEAR, 1.0, 1.0, 4.0),),
    MemoryEventKind.FRIEND_KILLED: ((EmotionKind.SADNESS, 1.0, 1.0, 6.0), (EmotionKind.ANGER, 1.0, 1.0, 4.0)),
    MemoryEventKind.JOINED_GANG: ((EmotionKind.PRIDE, 1.0, 0.6, 4.0), (EmotionKind.HOPE, 1.0, 0.4, 4.0)),
}

# emotion -> action -> (base, slope); modifier = base + slope * intensity
_ACTION_MODIFIERS: dict[EmotionKind, dict[str, tuple[float, float]]] = {
    EmotionKind.ANGER: {"fight": (1.5, 0.5), "socialize": (0.5, -0.3), "trade": (0.8, -0.2)},
    EmotionKind.FEAR: {"fight": (0.3, -0.2), "flee": (1.8, 0.7), "rest": (1.3, 0.3), "move_to": (0.4, -0.3)},
    EmotionKind.CONFIDENCE: {"fight": (1.3, 0.2), "socialize": (1.2, 0.3), "work": (1.4, 0.3)},
    EmotionKind.SADNESS: {"rest": (1.5, 0.4), "socialize": (0.6, -0.4), "fight": (0.7, -0.3)},
    EmotionKind.GREED: {"trade": (1.4, 0.4), "work": (1.6, 0.5), "help": (0.5, -0.3)},
    EmotionKind.JOY: {"socialize": (1.3, 0.3), "help": (1.2, 0.2), "fight": (0.8, -0.2)},
    EmotionKind.GRATITUDE: {"help": (1.5, 0.4), "socialize": (1.2, 0.2), "fight": (0.6, -0.3)},
    EmotionKind.LONELINESS: {"socialize": (1.6, 0.5), "join_gang": (1.4, 0.4), "rest": (0.8, -0.2)},
}


def _parse_emotion(kind: Any) -> EmotionKind:
    if isinstance(kind, EmotionKind):
        return kind
    try:
        return EmotionKind(str(kind or "").strip().lower())
    except ValueError:
        raise CognitionInputError(f"Unknown emotion kind: {kind!r}") from None


def _finite(value: Any, *, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise CognitionInputError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise CognitionInputError(f"{name} must be finite")
    return number


@dataclass
class Emotion:
    kind: EmotionKind
    intensity: float
    duration: float
    remaining: float

    def current_intensity(self) -> float:
        if self.duration <= 0 or self.remaining <= 0:
            return 0.0
        return self.intensity * min(1.0, self.remaining / self.duration)

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "intensity": self.intensity,
            "duration": self.duration,
            "remaining": self.remaining,
        }


class EmotionalState:
    def __init__(self, *, max_emotions: int = MAX_CONCURRENT_EMOTIONS) -> None:
        self.max_emotions = max(1, int(max_emotions))
        self._emotions: dict[EmotionKind, Emotion] = {}

    def add_emotion(
        self,
        kind: Any,
        intensity: float,
        duration: float = DEFAULT_DURATION_HOURS,
    ) -> Emotion | None:
        emotion_kind = _parse_emotion(kind)
        level = max(0.0, min(1.0, _finite(intensity, name="intensity")))
        hours = _finite(duration, name="duration")
        if hours <= 0:
            return None

        existing = self._emotions.get(emotion_kind)
        if existing is not None:
            existing.intensity = min(1.0, existing.intensity + level * 0.5)
            existing.remaining = max(existing.remaining, hours)
            existing.duration = max(existing.duration, existing.remaining)
            return existing

        emotion = Emotion(kind=emotion_kind, intensity=level, duration=hours, remaining=hours)
        self._emotions[emotion_kind] = emotion
        while len(self._emotions) > self.max_emotions:
            weakest = min(
                self._emotions.values(),
                key=lambda e: (e.current_intensity(), _EMOTION_ORDER[e.kind]),
            )
            del self._emotions[weakest.kind]
        return self._emotions.get(emotion_kind)

    def update(self, delta_hours: float) -> None:
        delta = _finite(delta_hours, name="delta_hours")
        if delta < 0:
            raise CognitionInputError("Emotional decay cannot run backwards")
        if delta == 0:
            return
        for kind in list(self._emotions):
            emotion = self._emotions[kind]
            emotion.remaining -= delta
            if emotion.remaining <= 0:
                del self._emotions[kind]

    def process_interaction(self, kind: Any, other_id: str | None, importance: float) -> EmotionKind | None:
        """Derive emotions from an interaction and return the primary one, if any."""
        event_kind = parse_event_kind(kind)
        weight = max(0.0, min(1.0, _finite(importance, name="importance")))
        reactions = _INTERACTION_EMOTIONS.get(event_kind, ())
        for emotion_kind, scale, cap, duration in reactions:
            self.add_emotion(emotion_kind, min(cap, weight * scale), duration)
        return reactions[0][0] if reactions else None

    def has(self, kind: Any) -> bool:
        return _parse_emotion(kind) in self._emotions

    def intensity(self, kind: Any) -> float:
        emotion = self._emotions.get(_parse_emotion(kind))
        return emotion.current_intensity() if emotion else 0.0

    def remaining(self, kind: Any) -> float:
        emotion = self._emotions.get(_parse_emotion(kind))
        return emotion.remaining if emotion else 0.0

    def active(self) -> list[Emotion]:
        return sorted(self._emotions.values(), key=lambda e: _EMOTION_ORDER[e.kind])

    def dominant(self) -> Emotion | None:
        if not self._emotions:
            return None
        return max(self.active(), key=lambda e: e.current_intensity())

    def action_modifier(self, action: str) -> float:
        key = str(action or "").strip().lower()
        modifier = 1.0
        for emotion in self.active():
            effect = _ACTION_MODIFIERS.get(emotion.kind, {}).get(key)
            if effect is None:
                continue
            base, slope = effect
            modifier *= base + slope * emotion.current_intensity()
        return max(MODIFIER_FLOOR, min(MODIFIER_CEILING, modifier))

    def mood(self) -> float:
        if not self._emotions:
            return 0.5
        total = sum(_VALENCE[e.kind] * e.current_intensity() for e in self.active())
        return max(0.0, min(1.0, (total / len(self._emotions) + 1.0) / 2.0))

    def is_stable(self) -> bool:
        return sum(e.current_intensity() for e in self.active()) < 1.5

    def summary(self) -> str:
        if not self._emotions:
            return "Calm and composed"
        ranked = sorted(self.active(), key=lambda e: -e.current_intensity())[:2]
        parts = []
        for emotion in ranked:
            level = emotion.current_intensity()
            qualifier = "intensely" if level > 0.7 else "moderately" if level > 0.4 else "slightly"
            parts.append(f"{qualifier} {emotion.kind.value}")
        return ", ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_emotions": self.max_emotions,
            "emotions": [emotion.as_dict() for emotion in self.active()],
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> "EmotionalState":
        state = EmotionalState(max_emotions=int(raw.get("max_emotions") or MAX_CONCURRENT_EMOTIONS))
        for item in raw.get("emotions") or []:
            try:
                kind = _parse_emotion(item.get("kind"))
                emotion = Emotion(
                    kind=kind,
                    intensity=max(0.0, min(1.0, float(item.get("intensity") or 0.0))),
                    duration=float(item.get("duration") or 0.0),
                    remaining=float(item.get("remaining") or 0.0),
                )
            except (AttributeError, CognitionInputError, TypeError, ValueError):
                continue
            if emotion.remaining > 0:
                state._emotions[kind] = emotion
        return state
