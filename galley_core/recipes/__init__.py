from galley_core.recipes.projection import device_ingredient_view, device_recipe_view
from galley_core.recipes.service import (
    create_ingredient,
    create_recipe,
    delete_recipe,
    get_ingredient,
    get_recipe,
    list_ingredients,
    list_recipes,
    publish_recipe,
    published_for_site,
    unpublish_recipe,
    update_ingredient,
    update_recipe,
)
from galley_core.recipes.types import (
    IngredientRecord,
    Nutrition,
    RecipeIngredient,
    RecipeRecord,
    RecipeStep,
)
from galley_core.recipes.validation import STEP_ACTIONS, validate_recipe

__all__ = [
    "STEP_ACTIONS",
    "IngredientRecord",
    "Nutrition",
    "RecipeIngredient",
    "RecipeRecord",
    "RecipeStep",
    "create_ingredient",
    "create_recipe",
    "delete_recipe",
    "device_ingredient_view",
    "device_recipe_view",
    "get_ingredient",
    "get_recipe",
    "list_ingredients",
    "list_recipes",
    "publish_recipe",
    "published_for_site",
    "unpublish_recipe",
    "update_ingredient",
    "update_recipe",
    "validate_recipe",
]
