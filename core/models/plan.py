from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

MealType = Literal["breakfast", "lunch", "dinner", "snack"]


class SlotAssignment(BaseModel):
    day_of_week: int = Field(ge=0, le=6)   # 0 = Monday
    meal_type: MealType
    recipe_id: int


class MealSlot(SlotAssignment):
    id: int | None = None
    servings_override: int | None = None
    is_completed: bool = False


class MealPlan(BaseModel):
    id: int | None = None
    user_id: int
    week_start: date
    is_ai_generated: bool = True
    slots: list[MealSlot] = []


class ShoppingListEntry(BaseModel):
    ingredient_id: int
    name: str
    needed_grams: float
    have_grams: float
    to_buy_grams: float
    in_inventory: bool
