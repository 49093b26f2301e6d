"""Seeded, order-independent pseudo randomness.

Every roll is derived from a string key instead of a shared generator, so the
outcome of one actor's decision never depends on how many rolls other actors
made before it.
"""

from __future__ import annotations

from hashlib import sha256
from typing import Sequence, TypeVar

T = TypeVar("T")


def hash_int(value: str) -> int:
    return int(sha256(value.encode("utf-8")).hexdigest()[:8], 16)


def hash_unit(value: str) -> float:
    return hash_int(value) / float(0xFFFFFFFF)


def hash_range(value: str, low: int, high: int) -> int:
    if high <= low:
        return low
    return low + hash_int(value) % (high - low + 1)


def hash_choice(value: str, options: Sequence[T]) -> T | None:
    if not options:
        return None
    return options[hash_int(value) % len(options)]
