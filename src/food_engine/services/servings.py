"""Serving recalculation for canonical food items."""

import math
from dataclasses import replace

from food_engine.domain.errors import InvalidInputError
from food_engine.domain.foods import CanonicalFoodItem, ServingTotals
from food_engine.services.numbers import round_calories, round_grams

# (per-serving attribute, per-100g attribute) pairs rescaled in grams.
_REQUIRED_NUTRIENTS = (
    ("protein_g", "protein_per_100g"),
    ("carbs_g", "carbs_per_100g"),
    ("fat_g", "fat_per_100g"),
)
_OPTIONAL_NUTRIENTS = (
    ("fiber_g", "fiber_per_100g"),
    ("sugar_g", "sugar_per_100g"),
    ("saturated_fat_g", "saturated_fat_per_100g"),
    ("sodium_mg", "sodium_mg_per_100g"),
)


def rescale(item: CanonicalFoodItem, grams: float) -> CanonicalFoodItem:
    """Return `item` recalculated for a serving of `grams`.

    Items without a per-100g calorie baseline are returned unchanged. Nutrients
    without a baseline become 0 for macros and None otherwise.
    """
    if not _is_positive(grams):
        raise InvalidInputError(
            "Serving size must be a positive number of grams.",
            details={"grams": grams},
        )
    if item.calories_per_100g is None:
        return item

    factor = grams / 100
    changes: dict[str, object] = {
        "serving_size": f"{grams:g}g",
        "serving_quantity_g": float(grams),
        "calories": round_calories(item.calories_per_100g * factor),
    }
    for serving_attr, baseline_attr in _REQUIRED_NUTRIENTS:
        baseline = getattr(item, baseline_attr) or 0.0
        changes[serving_attr] = round_grams(baseline * factor)
    for serving_attr, baseline_attr in _OPTIONAL_NUTRIENTS:
        baseline = getattr(item, baseline_attr)
        changes[serving_attr] = (
            None if baseline is None else round_grams(baseline * factor)
        )
    return replace(item, **changes)


def total_for_servings(item: CanonicalFoodItem, servings: float) -> ServingTotals:
    """Multiply the per-serving macros by a serving count."""
    if not _is_number(servings) or servings < 0:
        raise InvalidInputError(
            "Servings must be a non-negative number.",
            details={"servings": servings},
        )
    return ServingTotals(
        calories=round_calories(item.calories * servings),
        protein_g=round_grams(item.protein_g * servings),
        carbs_g=round_grams(item.carbs_g * servings),
        fat_g=round_grams(item.fat_g * servings),
    )


def _is_number(value: object) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_positive(value: object) -> bool:
    return _is_number(value) and value > 0
