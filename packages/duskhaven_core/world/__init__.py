"""World catalog primitives for Duskhaven."""

from .locations import DEFAULT_LOCATIONS, Location, LocationCatalog, validate_catalog

__all__ = [
    "DEFAULT_LOCATIONS",
    "Location",
    "LocationCatalog",
    "validate_catalog",
]
