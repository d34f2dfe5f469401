"""Food domain models."""

from dataclasses import dataclass
from enum import StrEnum


class FoodSource(StrEnum):
    """Where a canonical food item came from."""

    OPEN_FOOD_FACTS = "openfoodfacts"
    CUSTOM = "custom"
    MANUAL = "manual"
    LABEL_SCAN = "label_scan"


@dataclass(frozen=True)
class CanonicalFoodItem:
    """Normalized food item with per-serving and per-100g nutrition."""

    id: str
    source: FoodSource
    name: str
    serving_size: str
    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    source_id: str | None = None
    brand: str | None = None
    serving_quantity_g: float | None = None

    fiber_g: float | None = None
    sugar_g: float | None = None
    saturated_fat_g: float | None = None
    sodium_mg: float | None = None

    calories_per_100g: float | None = None
    protein_per_100g: float | None = None
    carbs_per_100g: float | None = None
    fat_per_100g: float | None = None
    fiber_per_100g: float | None = None
    sugar_per_100g: float | None = None
    saturated_fat_per_100g: float | None = None
    sodium_mg_per_100g: float | None = None

    nutrition_grade: str | None = None
    nova_group: int | None = None
    completeness: float | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None


@dataclass(frozen=True)
class SearchPage:
    """One page of normalized search results."""

    items: list[CanonicalFoodItem]
    total_count: int
    page: int
    page_size: int
    has_more: bool


@dataclass(frozen=True)
class ServingTotals:
    """Macros for a number of servings."""

    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
