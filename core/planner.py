"""
core/planner.py
────────────────────────────────────────────────────────────────────────
`MealPlanService` – the entry points the outer service layer calls.

    generate_week_plan     score → select → replace the (user, week) plan
    record_interaction     atomic read-modify-write of the preference row
    score_recipe_for_user  read-only taste score ("why recommended")
    get_shopping_list      shortfall for the current week's open slots
    get_current_plan / mark_slot_complete

All reads for a planning run are independent and fetched concurrently;
scoring and selection are pure functions over that snapshot.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List

from config import settings
from core.errors import ConflictError, NotFoundError
from core.models.plan import MealPlan, MealSlot, ShoppingListEntry
from core.models.preference import InteractionSignal, PreferenceVector
from core.models.recipe import InventoryItem, RecipeCandidate
from core.plan_selector import select_week_plan
from core.preference_model import score_recipe, update_preferences
from core.scoring import ScoringContext, score_all
from core.shopping_list import aggregate_shopping_list
from services.repositories import (
    HistoryReader,
    InventoryReader,
    PlanStore,
    PreferenceStore,
    RecipeReader,
)

_LOG = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def week_start_for(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def build_context(
    inventory: List[InventoryItem],
    recent: set[int],
    favourites: set[int],
    household_size: int,
    today: date,
    expiry_window_days: int,
) -> ScoringContext:
    threshold = today + timedelta(days=expiry_window_days)
    return ScoringContext(
        owned_ingredient_ids=frozenset(i.ingredient_id for i in inventory),
        expiring_ingredient_ids=frozenset(
            i.ingredient_id for i in inventory
            if i.expiry_date is not None and i.expiry_date <= threshold
        ),
        recent_recipe_ids=frozenset(recent),
        favourite_recipe_ids=frozenset(favourites),
        household_size=household_size,
    )


class MealPlanService:
    def __init__(
        self,
        recipes: RecipeReader,
        inventory: InventoryReader,
        history: HistoryReader,
        preferences: PreferenceStore,
        plans: PlanStore,
        *,
        expiry_window_days: int | None = None,
        recent_cooking_days: int | None = None,
        preference_update_retries: int | None = None,
        include_breakfast: bool | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._recipes = recipes
        self._inventory = inventory
        self._history = history
        self._prefs = preferences
        self._plans = plans
        self._expiry_days = settings.expiry_window_days if expiry_window_days is None else expiry_window_days
        self._recent_days = settings.recent_cooking_days if recent_cooking_days is None else recent_cooking_days
        self._retries = settings.preference_update_retries if preference_update_retries is None else preference_update_retries
        self._breakfast = settings.plan_include_breakfast if include_breakfast is None else include_breakfast
        self._clock = clock

    # ─────────────────────────── planning ────────────────────────── #
    async def generate_week_plan(
        self, user_id: int, household_size: int, week_start: date
    ) -> MealPlan:
        now = self._clock()
        inventory, recent, favourites, candidates, prefs = await asyncio.gather(
            self._inventory.list_inventory(user_id),
            self._history.recent_recipe_ids(user_id, now - timedelta(days=self._recent_days)),
            self._history.favourite_recipe_ids(user_id),
            self._recipes.list_candidates(),
            self._prefs.load(user_id),
        )

        ctx = build_context(
            inventory, recent, favourites, household_size, now.date(), self._expiry_days
        )
        scored = score_all(candidates, ctx, prefs)
        if not scored:
            _LOG.warning("user %s: no candidates left after history filter", user_id)

        picks = select_week_plan(scored, include_breakfast=self._breakfast)
        plan = MealPlan(
            user_id=user_id,
            week_start=week_start,
            is_ai_generated=True,
            slots=[
                MealSlot(**p.model_dump(), servings_override=household_size, is_completed=False)
                for p in picks
            ],
        )
        saved = await self._plans.replace_plan(plan)
        _LOG.info(
            "user %s week %s: %d/%d candidates scored, %d slots filled",
            user_id, week_start, len(scored), len(candidates), len(saved.slots),
        )
        return saved

    async def get_current_plan(self, user_id: int, today: date | None = None) -> MealPlan | None:
        day = today or self._clock().date()
        return await self._plans.get_plan(user_id, week_start_for(day))

    async def mark_slot_complete(self, user_id: int, plan_id: int, slot_id: int) -> None:
        plan = await self._plans.get_plan_by_id(plan_id)
        if plan is None or plan.user_id != user_id:
            raise NotFoundError("meal plan", plan_id)
        if not await self._plans.mark_slot_complete(plan_id, slot_id):
            raise NotFoundError("meal plan slot", slot_id)

    # ─────────────────────────── learning ────────────────────────── #
    async def _get_recipe(self, recipe_id: int) -> RecipeCandidate:
        found = await self._recipes.get_recipes([recipe_id])
        if recipe_id not in found:
            raise NotFoundError("recipe", recipe_id)
        return found[recipe_id]

    async def record_interaction(
        self, user_id: int, recipe_id: int, signal: InteractionSignal
    ) -> PreferenceVector:
        recipe = await self._get_recipe(recipe_id)

        for attempt in range(1, self._retries + 1):
            current = await self._prefs.load(user_id) or PreferenceVector(user_id=user_id)
            updated = update_preferences(current, recipe, signal)
            try:
                saved = await self._prefs.save(updated)
            except ConflictError:
                if attempt == self._retries:
                    _LOG.error(
                        "user %s: preference update lost %d races – giving up", user_id, attempt
                    )
                    raise
                _LOG.warning("user %s: preference row changed, retry %d", user_id, attempt)
                continue
            _LOG.info(
                "user %s: %s on recipe %s → %d interactions",
                user_id, signal.kind, recipe_id, saved.interaction_count,
            )
            return saved

        raise ConflictError(f"preferences for user {user_id} not updated")  # pragma: no cover

    async def score_recipe_for_user(self, user_id: int, recipe_id: int) -> float:
        recipe, prefs = await asyncio.gather(
            self._get_recipe(recipe_id), self._prefs.load(user_id)
        )
        return score_recipe(prefs, recipe)

    # ─────────────────────────── shopping ────────────────────────── #
    async def get_shopping_list(
        self, user_id: int, today: date | None = None
    ) -> List[ShoppingListEntry]:
        plan = await self.get_current_plan(user_id, today)
        if plan is None:
            return []

        open_slots = [s for s in plan.slots if not s.is_completed]
        recipes, inventory = await asyncio.gather(
            self._recipes.get_recipes({s.recipe_id for s in open_slots}),
            self._inventory.list_inventory(user_id),
        )
        return aggregate_shopping_list(open_slots, recipes, inventory)
