from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class Nutrition(BaseModel):
    """Nutrition of the recipe as written; any macro may be missing."""

    calories: float | None = None
    protein_g: float | None = None
    carbs_g: float | None = None
    fat_g: float | None = None
    fiber_g: float | None = None


class RecipeIngredient(BaseModel):
    ingredient_id: int
    name: str
    quantity_grams: float | None = None


class RecipeCandidate(BaseModel):
    id: int
    name: str = ""
    cuisine: str | None = None
    category: str | None = None    # breakfast / lunch / dinner / snack / dessert
    difficulty: str | None = None  # easy / medium / hard
    servings: int = Field(1, ge=1)
    total_time_min: int | None = None
    ingredients: list[RecipeIngredient] = []
    nutrition: Nutrition | None = None

    @property
    def ingredient_ids(self) -> list[int]:
        return [i.ingredient_id for i in self.ingredients]


class InventoryItem(BaseModel):
    ingredient_id: int
    quantity_grams: float = Field(0.0, ge=0)
    expiry_date: date | None = None


class ScoredRecipe(BaseModel):
    recipe_id: int
    total_score: float
    cuisine: str | None = None
    category: str | None = None
    total_time_min: int | None = None
