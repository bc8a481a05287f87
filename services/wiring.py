"""Build a `MealPlanService` backed by the SQL repositories."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.planner import MealPlanService
from services import db
from services.repositories import (
    SqlHistoryReader,
    SqlInventoryReader,
    SqlPlanStore,
    SqlPreferenceStore,
    SqlRecipeReader,
)


def sql_meal_plan_service(
    sessions: async_sessionmaker[AsyncSession] | None = None,
    **options,
) -> MealPlanService:
    sessions = sessions or db.session_factory()
    return MealPlanService(
        recipes=SqlRecipeReader(sessions),
        inventory=SqlInventoryReader(sessions),
        history=SqlHistoryReader(sessions),
        preferences=SqlPreferenceStore(sessions),
        plans=SqlPlanStore(sessions),
        **options,
    )
