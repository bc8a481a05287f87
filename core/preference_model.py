"""
core/preference_model.py
────────────────────────────────────────────────────────────────────────
Online taste learning, one small step per interaction.

Every weight moves with the same exponential-moving-average rule

    new = clamp(old + LEARNING_RATE · (signal − old), −1, 1)

rounded to 3 decimals.  Cuisine and difficulty see the full signal,
ingredients half of it, macro bias the recipe's calorie split scaled by
|signal|.  Both public functions are pure: they never touch storage.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from core.models.preference import InteractionSignal, PreferenceVector
from core.models.recipe import RecipeCandidate

_LOG = logging.getLogger(__name__)

LEARNING_RATE = 0.1
INGREDIENT_DAMPING = 0.5
NEUTRAL_SCORE = 0.5
TIME_TOLERANCE_MIN = 60.0

_RATING_SIGNALS = {5: 1.0, 4: 0.6, 3: 0.2, 2: -0.2, 1: -0.6}
_EVENT_SIGNALS = {"cooked": 0.5, "favourited": 0.8, "skipped": -0.3}


def signal_magnitude(signal: InteractionSignal) -> float:
    if signal.kind == "rated":
        return _RATING_SIGNALS.get(signal.rating or 0, 0.0)
    return _EVENT_SIGNALS[signal.kind]


def step_weight(old: float, signal: float) -> float:
    new = old + LEARNING_RATE * (signal - old)
    return round(min(1.0, max(-1.0, new)), 3)


def _update(weights: Dict[str, float], key: str, signal: float) -> None:
    weights[key] = step_weight(weights.get(key, 0.0), signal)


def _distinct_names(recipe: RecipeCandidate) -> List[str]:
    # a recipe may list the same ingredient on several lines
    return list(dict.fromkeys(i.name for i in recipe.ingredients))


# ──────────────────────────── update ──────────────────────────────── #
def update_preferences(
    prefs: PreferenceVector,
    recipe: RecipeCandidate,
    signal: InteractionSignal,
) -> PreferenceVector:
    """Return a new vector with ``signal`` about ``recipe`` folded in."""
    value = signal_magnitude(signal)

    cuisine = dict(prefs.cuisine_weights)
    difficulty = dict(prefs.difficulty_weights)
    ingredients = dict(prefs.ingredient_weights)
    macros = dict(prefs.macro_bias)

    if recipe.cuisine:
        _update(cuisine, recipe.cuisine, value)
    if recipe.difficulty:
        _update(difficulty, recipe.difficulty, value)

    for name in _distinct_names(recipe):
        _update(ingredients, name, value * INGREDIENT_DAMPING)

    n = recipe.nutrition
    if n is not None and (n.calories or 0) > 0:
        cal = float(n.calories)
        ratios = {
            "protein": (n.protein_g or 0.0) * 4 / cal,
            "carbs": (n.carbs_g or 0.0) * 4 / cal,
            "fat": (n.fat_g or 0.0) * 9 / cal,
        }
        for macro, ratio in ratios.items():
            # a bad experience pushes the bias away from this macro split
            directed = -ratio if value < 0 else ratio
            _update(macros, macro, directed * abs(value))

    preferred_time = prefs.preferred_time_min
    if value > 0 and recipe.total_time_min is not None:
        count = prefs.interaction_count
        preferred_time = int(
            (preferred_time * count + recipe.total_time_min) / (count + 1)
        )

    _LOG.debug(
        "prefs user=%s recipe=%s signal=%.2f count=%d",
        prefs.user_id, recipe.id, value, prefs.interaction_count + 1,
    )
    return prefs.model_copy(
        update={
            "cuisine_weights": cuisine,
            "difficulty_weights": difficulty,
            "ingredient_weights": ingredients,
            "macro_bias": macros,
            "preferred_time_min": preferred_time,
            "interaction_count": prefs.interaction_count + 1,
        }
    )


# ──────────────────────────── scoring ─────────────────────────────── #
def score_recipe(prefs: PreferenceVector | None, recipe: RecipeCandidate) -> float:
    """
    Taste score in [0, 1].

    Only components the model has an opinion on are averaged, so a recipe
    is never penalised for an unseen cuisine or ingredient.  Without a
    preference record, or without any matching component, the neutral
    midpoint 0.5 is returned.
    """
    if prefs is None:
        return NEUTRAL_SCORE

    parts: list[float] = []

    if recipe.cuisine and recipe.cuisine in prefs.cuisine_weights:
        parts.append(prefs.cuisine_weights[recipe.cuisine])

    if recipe.difficulty and recipe.difficulty in prefs.difficulty_weights:
        parts.append(prefs.difficulty_weights[recipe.difficulty])

    if recipe.total_time_min is not None:
        diff = abs(recipe.total_time_min - prefs.preferred_time_min)
        parts.append(1.0 - min(1.0, diff / TIME_TOLERANCE_MIN))

    known = [
        prefs.ingredient_weights[name]
        for name in _distinct_names(recipe)
        if name in prefs.ingredient_weights
    ]
    if known:
        parts.append(sum(known) / len(known))

    if not parts:
        return NEUTRAL_SCORE
    return min(1.0, max(0.0, sum(parts) / len(parts)))
