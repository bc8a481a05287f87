"""
`python -m workers.generate_weekly_plan --user-id=123 [--household 2] [--week-start 2026-10-19]`
Run as Cloud Run Jobs or Cloud Tasks later.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date

from config import settings
from core.errors import MealPlanError
from core.planner import week_start_for
from services.db import engine
from services.wiring import sql_meal_plan_service

_LOG = logging.getLogger(__name__)


async def _run(uid: int, household: int, week_start: date) -> None:
    service = sql_meal_plan_service()
    try:
        plan = await service.generate_week_plan(uid, household, week_start)
    finally:
        await engine().dispose()
    print(f"plan {plan.id} for user {uid}, week of {plan.week_start}")
    for slot in sorted(plan.slots, key=lambda s: (s.day_of_week, s.meal_type)):
        print(f"  day {slot.day_of_week}  {slot.meal_type:<9} recipe {slot.recipe_id}")
    if not plan.slots:
        print("  (no slots could be filled)")


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--user-id", type=int, required=True)
    ap.add_argument("--household", type=int, default=1, help="people to cook for")
    ap.add_argument(
        "--week-start",
        type=date.fromisoformat,
        default=None,
        help="any day of the target week (YYYY-MM-DD); defaults to this week",
    )
    args = ap.parse_args()

    logging.basicConfig(level=settings.log_level)
    week = week_start_for(args.week_start or date.today())
    try:
        asyncio.run(_run(args.user_id, args.household, week))
    except (MealPlanError, RuntimeError) as exc:
        _LOG.error("plan generation failed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
