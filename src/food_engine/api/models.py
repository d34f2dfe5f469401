"""Pydantic models for the food engine HTTP API."""

from pydantic import BaseModel, Field

from food_engine.domain.foods import CanonicalFoodItem, FoodSource


class FoodItemPayload(BaseModel):
    """Canonical food item as sent back by API clients."""

    id: str
    source: FoodSource
    name: str = Field(min_length=1)
    serving_size: str
    calories: float = Field(ge=0)
    protein_g: float = Field(ge=0)
    carbs_g: float = Field(ge=0)
    fat_g: float = Field(ge=0)
    source_id: str | None = None
    brand: str | None = None
    serving_quantity_g: float | None = Field(default=None, gt=0)
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

    def to_item(self) -> CanonicalFoodItem:
        return CanonicalFoodItem(**self.model_dump())


class RescaleRequest(BaseModel):
    """Recalculate an item for a gram serving."""

    item: FoodItemPayload
    grams: float = Field(gt=0)


class ServingsRequest(BaseModel):
    """Total an item's macros for a number of servings."""

    item: FoodItemPayload
    servings: float = Field(ge=0)
