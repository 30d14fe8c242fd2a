"""
Cost Calculator - recipe cost per serving from ingredient unit costs.
"""

import logging
from typing import Dict, Iterable, List, Sequence, Tuple

from menu_models import Ingredient, Recipe, RecipeLine
from menu_stats import round2

logger = logging.getLogger(__name__)


def _index_ingredients(ingredients: Iterable[Ingredient]) -> Dict[str, Ingredient]:
    return {ing.id: ing for ing in ingredients}


def cost_per_serving(recipe: Recipe, ingredients: Iterable[Ingredient]) -> float:
    """
    True cost per serving for a recipe given the ingredient master list.

    Lines whose ingredient id no longer resolves contribute 0. A recipe with
    no lines costs 0.
    """
    by_id = _index_ingredients(ingredients)
    total = 0.0
    dangling = 0
    for line in recipe.lines:
        ing = by_id.get(line.ingredient_id)
        if ing is None:
            dangling += 1
            continue
        total += ing.cost_per_unit * line.quantity

    if dangling:
        logger.debug(
            "Recipe %r has %d line(s) referencing unknown ingredients; costed at 0",
            recipe.menu_item_name, dangling,
        )
    return round2(total)


def line_cost(line: RecipeLine, ingredients: Iterable[Ingredient]) -> float:
    """Cost of a single recipe line (0 when the ingredient is gone)."""
    ing = _index_ingredients(ingredients).get(line.ingredient_id)
    return round2(ing.cost_per_unit * line.quantity) if ing else 0.0


def build_item_cost_map(recipes: Iterable[Recipe],
                        ingredients: Sequence[Ingredient]) -> Dict[str, float]:
    """menu_item_name -> cost per serving, for every recipe. Later recipes win on duplicate names."""
    ingredients = list(ingredients)
    return {recipe.menu_item_name: cost_per_serving(recipe, ingredients) for recipe in recipes}


def remove_ingredient(ingredients: Iterable[Ingredient],
                      recipes: Iterable[Recipe],
                      ingredient_id: str) -> Tuple[List[Ingredient], List[Recipe]]:
    """
    Delete an ingredient and cascade the delete through every recipe.

    Returns new ingredient and recipe lists; the inputs are left untouched.
    """
    kept_ingredients = [ing for ing in ingredients if ing.id != ingredient_id]
    kept_recipes = [
        Recipe(
            menu_item_name=recipe.menu_item_name,
            lines=tuple(line for line in recipe.lines if line.ingredient_id != ingredient_id),
        )
        for recipe in recipes
    ]
    return kept_ingredients, kept_recipes
