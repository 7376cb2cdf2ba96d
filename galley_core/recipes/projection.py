from __future__ import annotations

from dataclasses import asdict

from galley_core.recipes.types import IngredientRecord, RecipeRecord


def device_recipe_view(recipe: RecipeRecord) -> dict[str, object]:
    """Recipe as served to devices: no authoring-only fields."""
    return {
        "id": recipe.id,
        "name": recipe.name,
        "estimated_prep_time_sec": recipe.prep_time_seconds,
        "estimated_cooking_time_sec": recipe.cook_time_seconds,
        "allergen_warnings": list(recipe.allergen_warnings),
        "ingredients": [
            {
                "ingredient_id": str(item.ingredient_id),
                "name": item.ingredient_name,
                "quantity_required": item.quantity,
                "unit": item.unit,
                "timing_step": item.timing_step,
                "is_critical": item.is_critical,
                "substitutes": [str(substitute) for substitute in item.substitutes],
            }
            for item in recipe.ingredients
        ],
        "steps": [
            {
                "step_number": step.step_number,
                "action": step.action,
                "parameters": step.parameters or {},
                "depends_on_steps": list(step.depends_on_steps),
            }
            for step in recipe.steps
        ],
        "version": recipe.version,
    }


def device_ingredient_view(ingredient: IngredientRecord) -> dict[str, object]:
    return {
        "id": ingredient.id,
        "name": ingredient.name,
        "moisture_type": ingredient.moisture_type,
        "shelf_life_minutes": ingredient.shelf_life_minutes,
        "allergen_info": list(ingredient.allergen_info),
        "nutrition": asdict(ingredient.nutrition) if ingredient.nutrition else None,
        "parameters": ingredient.parameters or {},
    }
