"""Ordered field-resolution rules for upstream Open Food Facts records.

Each logical attribute is resolved by walking its rule list top to bottom;
the first field holding a usable value wins.
"""

from dataclasses import dataclass
from enum import StrEnum

KJ_PER_KCAL = 4.184

# Generic `energy` values above this are assumed to be kJ.
KJ_HEURISTIC_THRESHOLD = 400.0


class EnergyUnit(StrEnum):
    KCAL = "kcal"
    KJ = "kj"
    AUTO = "auto"


@dataclass(frozen=True)
class EnergyRule:
    """An energy field and the unit its values are expressed in."""

    field: str
    unit: EnergyUnit


@dataclass(frozen=True)
class NutrientRule:
    """A nutriment name and how to map it into the canonical record."""

    key: str
    upstream: str
    scale: float = 1.0


NAME_FIELDS: tuple[str, ...] = (
    "product_name",
    "product_name_en",
    "product_name_fr",
    "product_name_de",
    "generic_name",
)

ENERGY_PER_100G_RULES: tuple[EnergyRule, ...] = (
    EnergyRule("energy-kcal_100g", EnergyUnit.KCAL),
    EnergyRule("energy-kj_100g", EnergyUnit.KJ),
    EnergyRule("energy_100g", EnergyUnit.KJ),
    EnergyRule("energy-kcal", EnergyUnit.KCAL),
    EnergyRule("energy", EnergyUnit.AUTO),
)

ENERGY_PER_SERVING_RULES: tuple[EnergyRule, ...] = (
    EnergyRule("energy-kcal_serving", EnergyUnit.KCAL),
    EnergyRule("energy-kj_serving", EnergyUnit.KJ),
    EnergyRule("energy_serving", EnergyUnit.KJ),
)

ENERGY_FIELDS: tuple[str, ...] = tuple(
    rule.field for rule in ENERGY_PER_100G_RULES + ENERGY_PER_SERVING_RULES
)

# Sodium is reported in grams upstream and in milligrams canonically.
MACRO_RULES: tuple[NutrientRule, ...] = (
    NutrientRule("protein", "proteins"),
    NutrientRule("carbs", "carbohydrates"),
    NutrientRule("fat", "fat"),
)

OPTIONAL_NUTRIENT_RULES: tuple[NutrientRule, ...] = (
    NutrientRule("fiber", "fiber"),
    NutrientRule("sugar", "sugars"),
    NutrientRule("saturated_fat", "saturated-fat"),
    NutrientRule("sodium", "sodium", scale=1000.0),
)

IMAGE_FIELDS: tuple[str, ...] = ("image_url", "image_front_url")

THUMBNAIL_FIELDS: tuple[str, ...] = (
    "image_thumb_url",
    "image_small_url",
    "image_front_small_url",
)

SEARCH_FIELDS: tuple[str, ...] = (
    "code",
    *NAME_FIELDS,
    "brands",
    "serving_size",
    "serving_quantity",
    "nutriments",
    "nutrition_grades",
    "nova_group",
    "completeness",
    *IMAGE_FIELDS,
    *THUMBNAIL_FIELDS,
)


def per_100g_fields(rule: NutrientRule) -> tuple[str, ...]:
    """Per-100g lookup order: the `_100g` field, then the bare name."""
    return (f"{rule.upstream}_100g", rule.upstream)


def per_serving_field(rule: NutrientRule) -> str:
    return f"{rule.upstream}_serving"
