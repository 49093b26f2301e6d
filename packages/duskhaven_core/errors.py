"""Exception types raised at Duskhaven core boundaries."""

from __future__ import annotations


class CognitionInputError(ValueError):
    """An invalid value was handed to a cognition component (memory, emotions, goals)."""


class SimulationInputError(CognitionInputError):
    """An invalid population, action or location reached the world simulator."""


class LocationCatalogError(ValueError):
    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])
