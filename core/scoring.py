"""
core/scoring.py
────────────────────────────────────────────────────────────────────────
Composite desirability score for every candidate recipe.

    total = 0.30 · ingredient_coverage
          + 0.25 · expiry_urgency
          + 0.25 · ml_preference       (core.preference_model.score_recipe)
          + 0.12 · nutrition_balance
          + 0.08 · variety_bonus

Recipes cooked inside the recent-history window never reach the formula;
they are dropped before scoring.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

import numpy as np

from core.models.preference import PreferenceVector
from core.models.recipe import RecipeCandidate, ScoredRecipe
from core.preference_model import score_recipe

_LOG = logging.getLogger(__name__)

# coverage · expiry · preference · nutrition · variety
SCORE_WEIGHTS = np.array([0.30, 0.25, 0.25, 0.12, 0.08])

DAILY_CALORIES = 2000.0
DAILY_PROTEIN_G = 50.0
WEEK_DAYS = 7

RECENT_PENALTY = -0.3
FAVOURITE_BONUS = 0.1
NEUTRAL_NUTRITION = 0.5


@dataclass(frozen=True)
class ScoringContext:
    """Read-only snapshot of one user's state for a single planning run."""

    owned_ingredient_ids: frozenset[int] = field(default_factory=frozenset)
    expiring_ingredient_ids: frozenset[int] = field(default_factory=frozenset)
    recent_recipe_ids: frozenset[int] = field(default_factory=frozenset)
    favourite_recipe_ids: frozenset[int] = field(default_factory=frozenset)
    household_size: int = 1


def ingredient_coverage(recipe: RecipeCandidate, ctx: ScoringContext) -> float:
    ids = recipe.ingredient_ids
    owned = sum(1 for i in ids if i in ctx.owned_ingredient_ids)
    return owned / max(1, len(ids))


def expiry_urgency(recipe: RecipeCandidate, ctx: ScoringContext) -> float:
    ids = recipe.ingredient_ids
    expiring = sum(1 for i in ids if i in ctx.expiring_ingredient_ids)
    return min(1.0, expiring / max(1, len(ids)))


def nutrition_balance(recipe: RecipeCandidate, household_size: int) -> float:
    """
    Share of the weekly calorie / protein target one cooking of the
    recipe covers for the household.  The target is the full week for
    every candidate; nothing is subtracted as meals get picked.
    """
    n = recipe.nutrition
    if n is None:
        return NEUTRAL_NUTRITION

    scale = household_size / max(1, recipe.servings)
    cal = (n.calories or 0.0) * scale
    pro = (n.protein_g or 0.0) * scale

    cal_gap = max(1.0, DAILY_CALORIES * WEEK_DAYS)
    pro_gap = max(1.0, DAILY_PROTEIN_G * WEEK_DAYS)
    return (min(1.0, cal / cal_gap) + min(1.0, pro / pro_gap)) / 2


def variety_bonus(recipe_id: int, ctx: ScoringContext) -> float:
    # recent recipes are filtered out in score_all, the penalty only
    # matters to callers scoring a single recipe
    if recipe_id in ctx.recent_recipe_ids:
        return RECENT_PENALTY
    if recipe_id in ctx.favourite_recipe_ids:
        return FAVOURITE_BONUS
    return 0.0


def component_scores(
    recipe: RecipeCandidate,
    ctx: ScoringContext,
    prefs: PreferenceVector | None,
) -> np.ndarray:
    return np.array([
        ingredient_coverage(recipe, ctx),
        expiry_urgency(recipe, ctx),
        score_recipe(prefs, recipe),
        nutrition_balance(recipe, ctx.household_size),
        variety_bonus(recipe.id, ctx),
    ])


def score_all(
    candidates: Iterable[RecipeCandidate],
    ctx: ScoringContext,
    prefs: PreferenceVector | None = None,
) -> List[ScoredRecipe]:
    """Score and rank candidates, best first; ties keep recipe-id order."""
    ordered = sorted(candidates, key=lambda r: r.id)
    scored: List[ScoredRecipe] = []
    skipped = 0

    for recipe in ordered:
        if recipe.id in ctx.recent_recipe_ids:
            skipped += 1
            continue
        total = float(np.dot(SCORE_WEIGHTS, component_scores(recipe, ctx, prefs)))
        scored.append(
            ScoredRecipe(
                recipe_id=recipe.id,
                total_score=total,
                cuisine=recipe.cuisine,
                category=recipe.category,
                total_time_min=recipe.total_time_min,
            )
        )

    # list.sort is stable → equal scores stay in ascending id order
    scored.sort(key=lambda s: s.total_score, reverse=True)
    _LOG.debug("scored %d candidates (%d recently cooked skipped)", len(scored), skipped)
    return scored
