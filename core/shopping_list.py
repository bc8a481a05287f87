"""
core/shopping_list.py
────────────────────────────────────────────────────────────────────────
What still has to be bought for the open part of a week's plan.

Needed grams are the recipe-as-written quantities summed over every
incomplete slot (no household rescaling); on-hand grams come from the
inventory snapshot.  Only ingredients with a real shortfall are listed,
sorted by name.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping

import pandas as pd

from core.models.plan import MealSlot, ShoppingListEntry
from core.models.recipe import InventoryItem, RecipeCandidate

_LOG = logging.getLogger(__name__)


def _requirements(
    slots: Iterable[MealSlot],
    recipes: Mapping[int, RecipeCandidate],
) -> pd.DataFrame:
    rows = []
    for slot in slots:
        if slot.is_completed:
            continue
        recipe = recipes.get(slot.recipe_id)
        if recipe is None:
            _LOG.warning("slot references unknown recipe %s – skipped", slot.recipe_id)
            continue
        for line in recipe.ingredients:
            if line.quantity_grams is None:
                continue
            rows.append({
                "ingredient_id": line.ingredient_id,
                "name": line.name,
                "needed_grams": float(line.quantity_grams),
            })
    return pd.DataFrame(rows, columns=["ingredient_id", "name", "needed_grams"])


def _on_hand(inventory: Iterable[InventoryItem]) -> Dict[int, float]:
    df = pd.DataFrame(
        [i.model_dump(include={"ingredient_id", "quantity_grams"}) for i in inventory],
        columns=["ingredient_id", "quantity_grams"],
    )
    if df.empty:
        return {}
    return df.groupby("ingredient_id")["quantity_grams"].sum().to_dict()


def aggregate_shopping_list(
    slots: Iterable[MealSlot],
    recipes: Mapping[int, RecipeCandidate],
    inventory: Iterable[InventoryItem],
) -> List[ShoppingListEntry]:
    need = _requirements(slots, recipes)
    if need.empty:
        return []

    need = (
        need.groupby("ingredient_id", as_index=False)
        .agg(name=("name", "first"), needed_grams=("needed_grams", "sum"))
    )
    have = _on_hand(inventory)
    need["have_grams"] = [float(have.get(i, 0.0)) for i in need["ingredient_id"]]
    need["to_buy_grams"] = (need["needed_grams"] - need["have_grams"]).round(3)

    short = need[need["to_buy_grams"] > 0].sort_values(["name", "ingredient_id"])
    _LOG.debug("shopping list: %d of %d ingredients short", len(short), len(need))

    return [
        ShoppingListEntry(
            ingredient_id=int(row.ingredient_id),
            name=row.name,
            needed_grams=round(float(row.needed_grams), 3),
            have_grams=round(float(row.have_grams), 3),
            to_buy_grams=float(row.to_buy_grams),
            in_inventory=bool(row.have_grams > 0),
        )
        for row in short.itertuples(index=False)
    ]
