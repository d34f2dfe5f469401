"""Normalization of upstream records into canonical food items."""

import re
from collections.abc import Mapping
from uuid import uuid4

from food_engine.domain.foods import CanonicalFoodItem, FoodSource
from food_engine.services.fields import (
    ENERGY_PER_100G_RULES,
    ENERGY_PER_SERVING_RULES,
    IMAGE_FIELDS,
    KJ_HEURISTIC_THRESHOLD,
    KJ_PER_KCAL,
    MACRO_RULES,
    NAME_FIELDS,
    OPTIONAL_NUTRIENT_RULES,
    THUMBNAIL_FIELDS,
    EnergyRule,
    EnergyUnit,
    NutrientRule,
    per_100g_fields,
    per_serving_field,
)
from food_engine.services.numbers import as_number, round_calories, round_grams

UNKNOWN_PRODUCT_NAME = "Unknown Product"
DEFAULT_SERVING_GRAMS = 100.0
DEFAULT_SERVING_LABEL = "100g"

_GRAMS_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:grams?|gr|g)\b", re.IGNORECASE)
_MILLILITRES_PATTERN = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*(?:ml|millilitres?|milliliters?)\b", re.IGNORECASE
)


def resolve_name(raw: Mapping[str, object]) -> str | None:
    """Return the first non-blank name field, in priority order."""
    for field in NAME_FIELDS:
        value = raw.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def resolve_brand(raw: Mapping[str, object]) -> str | None:
    """Return the first brand of a comma-separated brands field."""
    brands = raw.get("brands")
    if not isinstance(brands, str):
        return None
    brand = brands.split(",")[0].strip()
    return brand or None


def parse_serving_quantity(serving_size: str | None) -> float | None:
    """Extract grams from a serving label; millilitres count as grams."""
    if not serving_size:
        return None
    for pattern in (_GRAMS_PATTERN, _MILLILITRES_PATTERN):
        match = pattern.search(serving_size)
        if match:
            quantity = float(match.group(1).replace(",", "."))
            if quantity > 0:
                return quantity
    return None


def resolve_serving_quantity(raw: Mapping[str, object]) -> float | None:
    """Prefer the numeric serving_quantity field, else parse the label."""
    quantity = as_number(raw.get("serving_quantity"))
    if quantity:
        return quantity
    serving_size = raw.get("serving_size")
    return parse_serving_quantity(serving_size if isinstance(serving_size, str) else None)


def resolve_energy(
    nutriments: Mapping[str, object],
    rules: tuple[EnergyRule, ...],
    kj_threshold: float = KJ_HEURISTIC_THRESHOLD,
) -> float | None:
    """Return kcal from the first energy field present, converting kJ."""
    for rule in rules:
        value = as_number(nutriments.get(rule.field))
        if value is None:
            continue
        if rule.unit is EnergyUnit.KJ:
            return value / KJ_PER_KCAL
        if rule.unit is EnergyUnit.AUTO and value > kj_threshold:
            return value / KJ_PER_KCAL
        return value
    return None


def resolve_per_100g(
    nutriments: Mapping[str, object], rule: NutrientRule
) -> float | None:
    for field in per_100g_fields(rule):
        value = as_number(nutriments.get(field))
        if value is not None:
            return value * rule.scale
    return None


def resolve_per_serving(
    nutriments: Mapping[str, object], rule: NutrientRule
) -> float | None:
    value = as_number(nutriments.get(per_serving_field(rule)))
    return None if value is None else value * rule.scale


def normalize(
    raw: Mapping[str, object],
    *,
    kj_threshold: float = KJ_HEURISTIC_THRESHOLD,
    source: FoodSource = FoodSource.OPEN_FOOD_FACTS,
) -> CanonicalFoodItem:
    """Convert one upstream record into a canonical food item.

    Per-serving values come from explicit `_serving` fields when present and
    are otherwise derived from the unrounded per-100g values. Without a known
    serving quantity a 100 g serving is assumed and the per-serving values
    equal the per-100g values.
    """
    nutriments = _nutriments(raw)
    label = raw.get("serving_size")
    serving_size = label.strip() if isinstance(label, str) and label.strip() else None
    serving_quantity = resolve_serving_quantity(raw)

    calories_100g = resolve_energy(nutriments, ENERGY_PER_100G_RULES, kj_threshold)
    # `_serving` fields describe a serving of unknown size here.
    assumed_serving = serving_quantity is None and calories_100g is not None
    if assumed_serving:
        serving_quantity = DEFAULT_SERVING_GRAMS
        serving_size = DEFAULT_SERVING_LABEL
    if serving_size is None:
        serving_size = (
            f"{serving_quantity:g}g" if serving_quantity else DEFAULT_SERVING_LABEL
        )
    factor = (serving_quantity or DEFAULT_SERVING_GRAMS) / 100

    calories_serving = (
        None
        if assumed_serving
        else resolve_energy(nutriments, ENERGY_PER_SERVING_RULES, kj_threshold)
    )
    if calories_serving is None and calories_100g is not None:
        calories_serving = calories_100g * factor

    per_100g: dict[str, float | None] = {}
    per_serving: dict[str, float | None] = {}
    for rule in MACRO_RULES + OPTIONAL_NUTRIENT_RULES:
        baseline = resolve_per_100g(nutriments, rule)
        serving = None if assumed_serving else resolve_per_serving(nutriments, rule)
        if serving is None and baseline is not None:
            serving = baseline * factor
        per_100g[rule.key] = _finalize(baseline)
        per_serving[rule.key] = _finalize(serving)

    code = _text(raw.get("code"))
    return CanonicalFoodItem(
        id=code or _text(raw.get("_id")) or uuid4().hex,
        source=source,
        source_id=code,
        name=resolve_name(raw) or UNKNOWN_PRODUCT_NAME,
        brand=resolve_brand(raw),
        serving_size=serving_size,
        serving_quantity_g=serving_quantity,
        calories=round_calories(calories_serving or 0.0),
        protein_g=per_serving["protein"] or 0.0,
        carbs_g=per_serving["carbs"] or 0.0,
        fat_g=per_serving["fat"] or 0.0,
        fiber_g=per_serving["fiber"],
        sugar_g=per_serving["sugar"],
        saturated_fat_g=per_serving["saturated_fat"],
        sodium_mg=per_serving["sodium"],
        calories_per_100g=(
            None if calories_100g is None else round_calories(calories_100g)
        ),
        protein_per_100g=per_100g["protein"],
        carbs_per_100g=per_100g["carbs"],
        fat_per_100g=per_100g["fat"],
        fiber_per_100g=per_100g["fiber"],
        sugar_per_100g=per_100g["sugar"],
        saturated_fat_per_100g=per_100g["saturated_fat"],
        sodium_mg_per_100g=per_100g["sodium"],
        nutrition_grade=_text(raw.get("nutrition_grades")),
        nova_group=_int_or_none(raw.get("nova_group")),
        completeness=as_number(raw.get("completeness")),
        image_url=_first_text(raw, IMAGE_FIELDS),
        thumbnail_url=_first_text(raw, THUMBNAIL_FIELDS),
    )


def _nutriments(raw: Mapping[str, object]) -> Mapping[str, object]:
    nutriments = raw.get("nutriments")
    return nutriments if isinstance(nutriments, Mapping) else {}


def _finalize(value: float | None) -> float | None:
    return None if value is None else round_grams(value)


def _text(value: object) -> str | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first_text(raw: Mapping[str, object], fields: tuple[str, ...]) -> str | None:
    for field in fields:
        value = _text(raw.get(field))
        if value:
            return value
    return None


def _int_or_none(value: object) -> int | None:
    number = as_number(value)
    return None if number is None else int(number)
