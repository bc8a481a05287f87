"""
MealPlanService end-to-end over in-memory repositories (see conftest.py).
"""
from __future__ import annotations

import asyncio
from datetime import date, timedelta

import pytest

from core.errors import ConflictError, NotFoundError
from core.models.preference import InteractionSignal, PreferenceVector
from core.models.recipe import InventoryItem, Nutrition, RecipeCandidate, RecipeIngredient
from core.planner import week_start_for
from tests.conftest import NOW, WEEK

USER = 42

CATALOG = [
    RecipeCandidate(id=1, name="Pancakes", cuisine="American", category="breakfast",
                    ingredients=[RecipeIngredient(ingredient_id=1, name="flour", quantity_grams=200)]),
    RecipeCandidate(id=2, name="Risotto", cuisine="Italian", difficulty="medium", total_time_min=40,
                    ingredients=[RecipeIngredient(ingredient_id=2, name="rice", quantity_grams=300),
                                 RecipeIngredient(ingredient_id=3, name="parmesan", quantity_grams=50)],
                    nutrition=Nutrition(calories=600, protein_g=20, carbs_g=90, fat_g=18)),
    RecipeCandidate(id=3, name="Tacos", cuisine="Mexican", difficulty="easy", total_time_min=25,
                    ingredients=[RecipeIngredient(ingredient_id=4, name="tortilla", quantity_grams=120),
                                 RecipeIngredient(ingredient_id=5, name="beans", quantity_grams=200)]),
]


def run(coro):
    return asyncio.run(coro)


# ── generate_week_plan ───────────────────────────────────────────────
def test_three_recipe_scenario(harness_factory):
    h = harness_factory(CATALOG)
    plan = run(h.service.generate_week_plan(USER, 2, WEEK))

    assert plan.id is not None
    assert plan.is_ai_generated
    assert len(plan.slots) <= 2
    assert {s.recipe_id for s in plan.slots} == {2, 3}
    assert not any(s.recipe_id == 1 and s.meal_type == "dinner" for s in plan.slots)
    assert all(s.servings_override == 2 and not s.is_completed for s in plan.slots)
    keys = [(s.day_of_week, s.meal_type) for s in plan.slots]
    assert len(keys) == len(set(keys))


def test_regeneration_replaces_plan(harness_factory):
    h = harness_factory(CATALOG)
    first = run(h.service.generate_week_plan(USER, 1, WEEK))
    second = run(h.service.generate_week_plan(USER, 3, WEEK))

    assert second.id != first.id
    assert list(h.plans.plans) == [(USER, WEEK)]
    assert run(h.service.get_current_plan(USER, WEEK + timedelta(days=3))) == second


def test_recently_cooked_never_planned(harness_factory):
    h = harness_factory(CATALOG)
    h.history.cooked.append((USER, 2, NOW - timedelta(days=3)))
    h.history.cooked.append((USER, 3, NOW - timedelta(days=20)))
    plan = run(h.service.generate_week_plan(USER, 1, WEEK))

    assert [s.recipe_id for s in plan.slots] == [3]


def test_expiring_pantry_item_wins_lunch(harness_factory):
    h = harness_factory(CATALOG)
    h.inventory.items[USER] = [
        InventoryItem(ingredient_id=4, quantity_grams=120, expiry_date=NOW.date() + timedelta(days=2)),
        InventoryItem(ingredient_id=2, quantity_grams=50, expiry_date=NOW.date() + timedelta(days=30)),
    ]
    plan = run(h.service.generate_week_plan(USER, 1, WEEK))
    lunch = next(s for s in plan.slots if s.meal_type == "lunch")
    assert lunch.recipe_id == 3


def test_empty_catalog_still_persists_an_empty_plan(harness_factory):
    h = harness_factory([])
    plan = run(h.service.generate_week_plan(USER, 1, WEEK))
    assert plan.slots == []
    assert (USER, WEEK) in h.plans.plans


# ── record_interaction ───────────────────────────────────────────────
def test_three_five_star_ratings(harness_factory):
    h = harness_factory(CATALOG)
    for _ in range(3):
        prefs = run(h.service.record_interaction(USER, 2, InteractionSignal.rated(5)))

    assert prefs.cuisine_weights["Italian"] == 0.271
    assert prefs.interaction_count == 3
    assert h.preferences.rows[USER].version == 3


def test_interaction_on_missing_recipe(harness_factory):
    h = harness_factory(CATALOG)
    with pytest.raises(NotFoundError):
        run(h.service.record_interaction(USER, 999, InteractionSignal.cooked()))
    assert USER not in h.preferences.rows


def test_lost_race_is_retried_with_fresh_read(harness_factory):
    h = harness_factory(CATALOG, conflicts=2, retries=3)
    prefs = run(h.service.record_interaction(USER, 3, InteractionSignal.favourited()))

    assert prefs.cuisine_weights == {"Mexican": 0.08}
    assert h.preferences.loads == 3


def test_conflict_surfaces_after_retry_budget(harness_factory):
    h = harness_factory(CATALOG, conflicts=5, retries=3)
    with pytest.raises(ConflictError):
        run(h.service.record_interaction(USER, 3, InteractionSignal.skipped()))
    assert h.preferences.loads == 3


def test_learned_preferences_reorder_plan(harness_factory):
    h = harness_factory(CATALOG)
    h.preferences.rows[USER] = PreferenceVector(
        user_id=USER, cuisine_weights={"Italian": 1.0, "Mexican": -1.0}, version=1
    )
    plan = run(h.service.generate_week_plan(USER, 1, WEEK))
    lunch = next(s for s in plan.slots if s.meal_type == "lunch")
    assert lunch.recipe_id == 2


# ── score_recipe_for_user ────────────────────────────────────────────
def test_score_for_new_user_is_neutral(harness_factory):
    h = harness_factory(CATALOG)
    assert run(h.service.score_recipe_for_user(USER, 2)) == 0.5


def test_score_after_interactions(harness_factory):
    h = harness_factory(CATALOG)
    run(h.service.record_interaction(USER, 2, InteractionSignal.rated(5)))
    score = run(h.service.score_recipe_for_user(USER, 2))
    assert 0.0 <= score <= 1.0
    assert score != 0.5


def test_score_for_missing_recipe(harness_factory):
    h = harness_factory(CATALOG)
    with pytest.raises(NotFoundError):
        run(h.service.score_recipe_for_user(USER, 999))


# ── shopping list / slot completion ──────────────────────────────────
def test_shopping_list_without_plan_is_empty(harness_factory):
    h = harness_factory(CATALOG)
    assert run(h.service.get_shopping_list(USER, NOW.date())) == []


def test_shopping_list_for_current_week(harness_factory):
    h = harness_factory(CATALOG)
    run(h.service.generate_week_plan(USER, 2, WEEK))
    h.inventory.items[USER] = [
        InventoryItem(ingredient_id=2, quantity_grams=500),
        InventoryItem(ingredient_id=5, quantity_grams=80),
    ]
    out = run(h.service.get_shopping_list(USER, NOW.date() + timedelta(days=4)))

    assert [(e.name, e.to_buy_grams) for e in out] == [
        ("beans", 120),
        ("parmesan", 50),
        ("tortilla", 120),
    ]


def test_completed_slots_drop_out_of_shopping_list(harness_factory):
    h = harness_factory(CATALOG)
    plan = run(h.service.generate_week_plan(USER, 1, WEEK))
    for slot in plan.slots:
        run(h.service.mark_slot_complete(USER, plan.id, slot.id))

    assert run(h.service.get_shopping_list(USER, NOW.date())) == []


def test_mark_slot_complete_checks_ownership(harness_factory):
    h = harness_factory(CATALOG)
    plan = run(h.service.generate_week_plan(USER, 1, WEEK))
    with pytest.raises(NotFoundError):
        run(h.service.mark_slot_complete(USER + 1, plan.id, plan.slots[0].id))
    with pytest.raises(NotFoundError):
        run(h.service.mark_slot_complete(USER, plan.id, 10_000))


def test_week_start_is_monday():
    assert week_start_for(date(2026, 10, 25)) == date(2026, 10, 19)
    assert week_start_for(date(2026, 10, 19)) == date(2026, 10, 19)
