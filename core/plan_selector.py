"""
core/plan_selector.py
────────────────────────────────────────────────────────────────────────
Greedy week builder: 7 days × {lunch, dinner}, optionally breakfast.

One forward-only cursor walks the score-sorted candidates for the whole
week; breakfast, when enabled, has its own cursor over breakfast
recipes.  Whatever a cursor passes over, assigned or rejected, is gone
for the rest of the run, so a week can end with empty slots.  Dinner
must not repeat lunch's cuisine; there is no second pass when it does.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional

from core.models.plan import SlotAssignment
from core.models.recipe import ScoredRecipe

_LOG = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


def fits_meal_type(category: str | None, meal_type: str) -> bool:
    if category == "breakfast":
        return meal_type == "breakfast"
    if category == "dessert":
        return False
    return meal_type in ("lunch", "dinner")


_NO_CUISINE_RULE = object()


def _advance(
    cursor: Iterator[ScoredRecipe],
    used: set[int],
    meal_type: str,
    avoid_cuisine: object = _NO_CUISINE_RULE,
) -> Optional[ScoredRecipe]:
    for cand in cursor:
        if cand.recipe_id in used:
            continue
        if not fits_meal_type(cand.category, meal_type):
            continue
        if avoid_cuisine is not _NO_CUISINE_RULE and cand.cuisine == avoid_cuisine:
            continue
        return cand
    return None


def select_week_plan(
    scored: List[ScoredRecipe],
    include_breakfast: bool = False,
) -> List[SlotAssignment]:
    cursor = iter(scored)
    # breakfast-only recipes never fit lunch or dinner, so breakfast walks
    # its own pool and cannot eat into the main cursor
    breakfast_cursor = iter([s for s in scored if s.category == "breakfast"])
    used: set[int] = set()
    out: List[SlotAssignment] = []

    def _take(day: int, meal_type: str, pick: Optional[ScoredRecipe]) -> None:
        if pick is None:
            return
        used.add(pick.recipe_id)
        out.append(SlotAssignment(day_of_week=day, meal_type=meal_type, recipe_id=pick.recipe_id))

    for day in range(DAYS_PER_WEEK):
        if include_breakfast:
            _take(day, "breakfast", _advance(breakfast_cursor, used, "breakfast"))

        lunch = _advance(cursor, used, "lunch")
        _take(day, "lunch", lunch)
        lunch_cuisine = lunch.cuisine if lunch else None

        _take(
            day,
            "dinner",
            _advance(cursor, used, "dinner", avoid_cuisine=lunch_cuisine),
        )

    _LOG.debug("filled %d slots from %d candidates", len(out), len(scored))
    return out
