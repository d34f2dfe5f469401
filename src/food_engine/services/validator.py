"""Usability checks applied to upstream records before normalization."""

from collections.abc import Mapping

from food_engine.services.fields import ENERGY_FIELDS
from food_engine.services.normalizer import resolve_name
from food_engine.services.numbers import as_number


def has_energy(raw: Mapping[str, object]) -> bool:
    """Return whether any recognized energy field holds a number."""
    nutriments = raw.get("nutriments")
    if not isinstance(nutriments, Mapping):
        return False
    return any(as_number(nutriments.get(field)) is not None for field in ENERGY_FIELDS)


def is_usable(raw: Mapping[str, object]) -> bool:
    """Return whether a record has a name and at least one energy figure."""
    return has_energy(raw) and resolve_name(raw) is not None
