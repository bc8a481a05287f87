"""
In-memory stand-ins for the repositories, shared by the service tests.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Iterable, List, Set, Tuple

import pytest

from core.errors import ConflictError
from core.models.plan import MealPlan
from core.models.preference import PreferenceVector
from core.models.recipe import InventoryItem, RecipeCandidate
from core.planner import MealPlanService

NOW = datetime(2026, 10, 19, 12, 0)   # a Monday
WEEK = date(2026, 10, 19)


class FakeRecipes:
    def __init__(self, recipes: Iterable[RecipeCandidate]) -> None:
        self.by_id = {r.id: r for r in recipes}

    async def list_candidates(self) -> List[RecipeCandidate]:
        return [self.by_id[k] for k in sorted(self.by_id)]

    async def get_recipes(self, recipe_ids: Iterable[int]) -> Dict[int, RecipeCandidate]:
        return {i: self.by_id[i] for i in recipe_ids if i in self.by_id}


class FakeInventory:
    def __init__(self) -> None:
        self.items: Dict[int, List[InventoryItem]] = {}

    async def list_inventory(self, user_id: int) -> List[InventoryItem]:
        return list(self.items.get(user_id, []))


class FakeHistory:
    def __init__(self) -> None:
        self.cooked: List[Tuple[int, int, datetime]] = []
        self.favourites: Dict[int, Set[int]] = {}

    async def recent_recipe_ids(self, user_id: int, since: datetime) -> Set[int]:
        return {r for u, r, at in self.cooked if u == user_id and at >= since}

    async def favourite_recipe_ids(self, user_id: int) -> Set[int]:
        return set(self.favourites.get(user_id, set()))


class FakePreferences:
    """Version-checked store; ``conflicts`` makes the next N saves lose a race."""

    def __init__(self, conflicts: int = 0) -> None:
        self.rows: Dict[int, PreferenceVector] = {}
        self.conflicts = conflicts
        self.loads = 0

    async def load(self, user_id: int) -> PreferenceVector | None:
        self.loads += 1
        return self.rows.get(user_id)

    async def save(self, prefs: PreferenceVector) -> PreferenceVector:
        if self.conflicts:
            self.conflicts -= 1
            raise ConflictError("simulated race")
        stored = self.rows.get(prefs.user_id)
        if (stored.version if stored else 0) != prefs.version:
            raise ConflictError("stale version")
        saved = prefs.model_copy(update={"version": prefs.version + 1})
        self.rows[prefs.user_id] = saved
        return saved


class FakePlans:
    def __init__(self) -> None:
        self.plans: Dict[Tuple[int, date], MealPlan] = {}
        self._next_id = 1

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id - 1

    async def replace_plan(self, plan: MealPlan) -> MealPlan:
        saved = plan.model_copy(
            update={
                "id": self._id(),
                "slots": [s.model_copy(update={"id": self._id()}) for s in plan.slots],
            }
        )
        self.plans[(plan.user_id, plan.week_start)] = saved
        return saved

    async def get_plan(self, user_id: int, week_start: date) -> MealPlan | None:
        return self.plans.get((user_id, week_start))

    async def get_plan_by_id(self, plan_id: int) -> MealPlan | None:
        return next((p for p in self.plans.values() if p.id == plan_id), None)

    async def mark_slot_complete(self, plan_id: int, slot_id: int) -> bool:
        plan = await self.get_plan_by_id(plan_id)
        if plan is None:
            return False
        for slot in plan.slots:
            if slot.id == slot_id:
                slot.is_completed = True
                return True
        return False


class Harness:
    def __init__(self, recipes: Iterable[RecipeCandidate], conflicts: int = 0, retries: int = 3) -> None:
        self.recipes = FakeRecipes(recipes)
        self.inventory = FakeInventory()
        self.history = FakeHistory()
        self.preferences = FakePreferences(conflicts)
        self.plans = FakePlans()
        self.service = MealPlanService(
            self.recipes,
            self.inventory,
            self.history,
            self.preferences,
            self.plans,
            expiry_window_days=7,
            recent_cooking_days=14,
            preference_update_retries=retries,
            include_breakfast=False,
            clock=lambda: NOW,
        )


@pytest.fixture
def harness_factory():
    return Harness
