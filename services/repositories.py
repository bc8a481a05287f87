"""
services/repositories.py
────────────────────────────────────────────────────────────────────────
Ports the planner depends on, plus their SQLAlchemy implementations.

The core only sees the Protocols below; tests plug in in-memory fakes,
production wires the `Sql*` classes onto an `async_sessionmaker`.
Storage failures leave this module as `InternalError` (detail logged),
lost preference races as `ConflictError`.
"""
from __future__ import annotations

import functools
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Protocol, Set, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import ConflictError, InternalError, MealPlanError
from core.models.plan import MealPlan, MealSlot
from core.models.preference import PreferenceVector
from core.models.recipe import InventoryItem, Nutrition, RecipeCandidate, RecipeIngredient
from services import db

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

REPLACE_PLAN_ATTEMPTS = 2


# ───────────────────────── ports ────────────────────────────
class RecipeReader(Protocol):
    async def list_candidates(self) -> List[RecipeCandidate]: ...

    async def get_recipes(self, recipe_ids: Iterable[int]) -> Dict[int, RecipeCandidate]: ...


class InventoryReader(Protocol):
    async def list_inventory(self, user_id: int) -> List[InventoryItem]: ...


class HistoryReader(Protocol):
    async def recent_recipe_ids(self, user_id: int, since: datetime) -> Set[int]: ...

    async def favourite_recipe_ids(self, user_id: int) -> Set[int]: ...


class PreferenceStore(Protocol):
    async def load(self, user_id: int) -> PreferenceVector | None: ...

    async def save(self, prefs: PreferenceVector) -> PreferenceVector:
        """Write if the stored version still equals ``prefs.version``
        (0 = no row yet); return the vector with its new version or raise
        ConflictError."""
        ...


class PlanStore(Protocol):
    async def replace_plan(self, plan: MealPlan) -> MealPlan: ...

    async def get_plan(self, user_id: int, week_start: date) -> MealPlan | None: ...

    async def get_plan_by_id(self, plan_id: int) -> MealPlan | None: ...

    async def mark_slot_complete(self, plan_id: int, slot_id: int) -> bool: ...


# ───────────────────────── helpers ──────────────────────────
def _guarded(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except MealPlanError:
            raise
        except SQLAlchemyError as exc:
            _LOG.error("%s failed: %s", fn.__qualname__, exc)
            raise InternalError() from exc

    return wrapper


def _to_plan(row: db.MealPlan, slots: Iterable[db.MealPlanSlot]) -> MealPlan:
    return MealPlan(
        id=row.id,
        user_id=row.user_id,
        week_start=row.week_start,
        is_ai_generated=row.is_ai_generated,
        slots=[
            MealSlot(
                id=s.id,
                day_of_week=s.day_of_week,
                meal_type=s.meal_type,
                recipe_id=s.recipe_id,
                servings_override=s.servings_override,
                is_completed=s.is_completed,
            )
            for s in slots
        ],
    )


def _to_prefs(row: db.UserPreference) -> PreferenceVector:
    return PreferenceVector(
        user_id=row.user_id,
        cuisine_weights=dict(row.cuisine_weights or {}),
        ingredient_weights=dict(row.ingredient_weights or {}),
        difficulty_weights=dict(row.difficulty_weights or {}),
        macro_bias=dict(row.macro_bias or {}),
        preferred_time_min=row.preferred_time_min,
        interaction_count=row.interaction_count,
        version=row.version,
    )


# ───────────────────────── catalog ──────────────────────────
class SqlRecipeReader:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def _build(self, s: AsyncSession, recipes: List[db.Recipe]) -> List[RecipeCandidate]:
        ids = [r.id for r in recipes]
        if not ids:
            return []

        lines = await s.execute(
            select(
                db.RecipeIngredient.recipe_id,
                db.RecipeIngredient.ingredient_id,
                db.RecipeIngredient.quantity_grams,
                db.Ingredient.name,
            )
            .join(db.Ingredient, db.Ingredient.id == db.RecipeIngredient.ingredient_id)
            .where(db.RecipeIngredient.recipe_id.in_(ids))
            .order_by(db.RecipeIngredient.recipe_id, db.RecipeIngredient.display_order, db.RecipeIngredient.id)
        )
        by_recipe: Dict[int, List[RecipeIngredient]] = {}
        for recipe_id, ingredient_id, grams, name in lines.all():
            by_recipe.setdefault(recipe_id, []).append(
                RecipeIngredient(ingredient_id=ingredient_id, name=name, quantity_grams=grams)
            )

        nutrition_rows = await s.scalars(
            select(db.RecipeNutrition).where(db.RecipeNutrition.recipe_id.in_(ids))
        )
        nutrition = {
            n.recipe_id: Nutrition(
                calories=n.calories,
                protein_g=n.protein_g,
                carbs_g=n.carbs_g,
                fat_g=n.fat_g,
                fiber_g=n.fiber_g,
            )
            for n in nutrition_rows
        }

        return [
            RecipeCandidate(
                id=r.id,
                name=r.name,
                cuisine=r.cuisine,
                category=r.category,
                difficulty=r.difficulty,
                servings=max(1, r.servings or 1),
                total_time_min=r.total_time_min,
                ingredients=by_recipe.get(r.id, []),
                nutrition=nutrition.get(r.id),
            )
            for r in recipes
        ]

    @_guarded
    async def list_candidates(self) -> List[RecipeCandidate]:
        async with self._sessions() as s:
            recipes = list(await s.scalars(select(db.Recipe).order_by(db.Recipe.id)))
            return await self._build(s, recipes)

    @_guarded
    async def get_recipes(self, recipe_ids: Iterable[int]) -> Dict[int, RecipeCandidate]:
        ids = sorted(set(recipe_ids))
        if not ids:
            return {}
        async with self._sessions() as s:
            recipes = list(
                await s.scalars(select(db.Recipe).where(db.Recipe.id.in_(ids)).order_by(db.Recipe.id))
            )
            return {c.id: c for c in await self._build(s, recipes)}


# ───────────────────────── pantry / history ─────────────────
class SqlInventoryReader:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    @_guarded
    async def list_inventory(self, user_id: int) -> List[InventoryItem]:
        async with self._sessions() as s:
            rows = await s.scalars(
                select(db.InventoryItem).where(db.InventoryItem.user_id == user_id)
            )
            return [
                InventoryItem(
                    ingredient_id=r.ingredient_id,
                    quantity_grams=r.quantity_grams or 0.0,
                    expiry_date=r.expiry_date,
                )
                for r in rows
            ]


class SqlHistoryReader:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    @_guarded
    async def recent_recipe_ids(self, user_id: int, since: datetime) -> Set[int]:
        async with self._sessions() as s:
            ids = await s.scalars(
                select(db.CookingHistory.recipe_id)
                .where(db.CookingHistory.user_id == user_id, db.CookingHistory.cooked_at >= since)
                .distinct()
            )
            return set(ids)

    @_guarded
    async def favourite_recipe_ids(self, user_id: int) -> Set[int]:
        async with self._sessions() as s:
            ids = await s.scalars(
                select(db.UserFavorite.recipe_id).where(db.UserFavorite.user_id == user_id)
            )
            return set(ids)


# ───────────────────────── preferences ──────────────────────
class SqlPreferenceStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    @_guarded
    async def load(self, user_id: int) -> PreferenceVector | None:
        async with self._sessions() as s:
            row = await s.get(db.UserPreference, user_id)
            return _to_prefs(row) if row else None

    @_guarded
    async def save(self, prefs: PreferenceVector) -> PreferenceVector:
        payload = {
            "cuisine_weights": prefs.cuisine_weights,
            "ingredient_weights": prefs.ingredient_weights,
            "difficulty_weights": prefs.difficulty_weights,
            "macro_bias": prefs.macro_bias,
            "preferred_time_min": prefs.preferred_time_min,
            "interaction_count": prefs.interaction_count,
        }
        new_version = prefs.version + 1

        if prefs.version == 0:
            # first interaction – a concurrent first insert trips the PK
            try:
                async with self._sessions.begin() as s:
                    s.add(db.UserPreference(user_id=prefs.user_id, version=new_version, **payload))
            except IntegrityError as exc:
                raise ConflictError(f"preferences for user {prefs.user_id} created concurrently") from exc
            return prefs.model_copy(update={"version": new_version})

        async with self._sessions.begin() as s:
            res = await s.execute(
                update(db.UserPreference)
                .where(
                    db.UserPreference.user_id == prefs.user_id,
                    db.UserPreference.version == prefs.version,
                )
                .values(version=new_version, **payload)
            )
            if res.rowcount != 1:
                raise ConflictError(f"preferences for user {prefs.user_id} changed since read")
        return prefs.model_copy(update={"version": new_version})


# ───────────────────────── plans ────────────────────────────
class SqlPlanStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def _slots(self, s: AsyncSession, plan_id: int) -> List[db.MealPlanSlot]:
        rows = await s.scalars(
            select(db.MealPlanSlot)
            .where(db.MealPlanSlot.meal_plan_id == plan_id)
            .order_by(db.MealPlanSlot.day_of_week, db.MealPlanSlot.id)
        )
        return list(rows)

    async def _write_plan(self, plan: MealPlan) -> tuple[MealPlan, bool]:
        async with self._sessions.begin() as s:
            existing = await s.scalar(
                select(db.MealPlan.id).where(
                    db.MealPlan.user_id == plan.user_id,
                    db.MealPlan.week_start == plan.week_start,
                )
            )
            if existing is not None:
                await s.execute(delete(db.MealPlanSlot).where(db.MealPlanSlot.meal_plan_id == existing))
                await s.execute(delete(db.MealPlan).where(db.MealPlan.id == existing))

            row = db.MealPlan(
                user_id=plan.user_id,
                week_start=plan.week_start,
                is_ai_generated=plan.is_ai_generated,
            )
            s.add(row)
            await s.flush()

            slot_rows = [
                db.MealPlanSlot(
                    meal_plan_id=row.id,
                    recipe_id=slot.recipe_id,
                    day_of_week=slot.day_of_week,
                    meal_type=slot.meal_type,
                    servings_override=slot.servings_override,
                    is_completed=slot.is_completed,
                )
                for slot in plan.slots
            ]
            s.add_all(slot_rows)
            await s.flush()
            return _to_plan(row, slot_rows), existing is not None

    @_guarded
    async def replace_plan(self, plan: MealPlan) -> MealPlan:
        """Delete the (user, week) plan with its slots and insert ``plan``,
        all inside one transaction.

        A concurrent generation for the same week trips the unique
        (user, week_start) constraint; the write is then repeated once,
        replacing the plan that won.
        """
        for attempt in range(1, REPLACE_PLAN_ATTEMPTS + 1):
            try:
                saved, replaced = await self._write_plan(plan)
                break
            except IntegrityError as exc:
                if attempt == REPLACE_PLAN_ATTEMPTS:
                    raise ConflictError(
                        f"plan for user {plan.user_id} week {plan.week_start} written concurrently"
                    ) from exc
                _LOG.warning(
                    "user %s week %s: concurrent plan write, retry %d",
                    plan.user_id, plan.week_start, attempt,
                )

        _LOG.info(
            "plan %s saved for user %s week %s (%d slots, replaced=%s)",
            saved.id, plan.user_id, plan.week_start, len(saved.slots), replaced,
        )
        return saved

    @_guarded
    async def get_plan(self, user_id: int, week_start: date) -> MealPlan | None:
        async with self._sessions() as s:
            row = await s.scalar(
                select(db.MealPlan).where(
                    db.MealPlan.user_id == user_id,
                    db.MealPlan.week_start == week_start,
                )
            )
            if row is None:
                return None
            return _to_plan(row, await self._slots(s, row.id))

    @_guarded
    async def get_plan_by_id(self, plan_id: int) -> MealPlan | None:
        async with self._sessions() as s:
            row = await s.get(db.MealPlan, plan_id)
            if row is None:
                return None
            return _to_plan(row, await self._slots(s, row.id))

    @_guarded
    async def mark_slot_complete(self, plan_id: int, slot_id: int) -> bool:
        async with self._sessions.begin() as s:
            res = await s.execute(
                update(db.MealPlanSlot)
                .where(db.MealPlanSlot.id == slot_id, db.MealPlanSlot.meal_plan_id == plan_id)
                .values(is_completed=True)
            )
            return res.rowcount == 1
