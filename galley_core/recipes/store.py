from __future__ import annotations

from dataclasses import asdict
from typing import Iterable

from galley_core.errors import NotFoundError
from galley_core.recipes.types import (
    IngredientRecord,
    Nutrition,
    RecipeIngredient,
    RecipeRecord,
    RecipeStep,
)
from galley_core.storage import collection_lock, control_uri, load_items, save_items
from galley_core.storage.coerce import (
    coerce_int,
    coerce_int_tuple,
    coerce_mapping,
    coerce_optional_str,
    coerce_str_tuple,
)


def recipe_registry_uri(base_uri: str) -> str:
    return control_uri(base_uri, "recipes.json")


def ingredient_registry_uri(base_uri: str) -> str:
    return control_uri(base_uri, "ingredients.json")


def load_recipes(base_uri: str) -> list[RecipeRecord]:
    return [_recipe_from_dict(item) for item in load_items(recipe_registry_uri(base_uri))]


def save_recipes(base_uri: str, recipes: Iterable[RecipeRecord]) -> str:
    return save_items(
        recipe_registry_uri(base_uri),
        [asdict(recipe) for recipe in recipes],
    )


def get_recipe(base_uri: str, recipe_id: str) -> RecipeRecord | None:
    return next(
        (recipe for recipe in load_recipes(base_uri) if recipe.id == recipe_id),
        None,
    )


def insert_recipe(base_uri: str, recipe: RecipeRecord) -> RecipeRecord:
    with collection_lock(recipe_registry_uri(base_uri)):
        recipes = load_recipes(base_uri)
        recipes.append(recipe)
        save_recipes(base_uri, recipes)
    return recipe


def update_recipe(base_uri: str, recipe: RecipeRecord) -> RecipeRecord:
    with collection_lock(recipe_registry_uri(base_uri)):
        recipes = load_recipes(base_uri)
        if not any(existing.id == recipe.id for existing in recipes):
            raise NotFoundError(f"Recipe not found: {recipe.id}")
        save_recipes(
            base_uri,
            [recipe if existing.id == recipe.id else existing for existing in recipes],
        )
    return recipe


def delete_recipe(base_uri: str, recipe_id: str) -> None:
    with collection_lock(recipe_registry_uri(base_uri)):
        recipes = load_recipes(base_uri)
        remaining = [recipe for recipe in recipes if recipe.id != recipe_id]
        if len(remaining) == len(recipes):
            raise NotFoundError(f"Recipe not found: {recipe_id}")
        save_recipes(base_uri, remaining)


def load_ingredients(base_uri: str) -> list[IngredientRecord]:
    return [
        _ingredient_from_dict(item)
        for item in load_items(ingredient_registry_uri(base_uri))
    ]


def save_ingredients(base_uri: str, ingredients: Iterable[IngredientRecord]) -> str:
    return save_items(
        ingredient_registry_uri(base_uri),
        [asdict(ingredient) for ingredient in ingredients],
    )


def get_ingredient(base_uri: str, ingredient_id: str) -> IngredientRecord | None:
    return next(
        (
            ingredient
            for ingredient in load_ingredients(base_uri)
            if ingredient.id == ingredient_id
        ),
        None,
    )


def insert_ingredient(base_uri: str, ingredient: IngredientRecord) -> IngredientRecord:
    with collection_lock(ingredient_registry_uri(base_uri)):
        ingredients = load_ingredients(base_uri)
        ingredients.append(ingredient)
        save_ingredients(base_uri, ingredients)
    return ingredient


def update_ingredient(base_uri: str, ingredient: IngredientRecord) -> IngredientRecord:
    with collection_lock(ingredient_registry_uri(base_uri)):
        ingredients = load_ingredients(base_uri)
        if not any(existing.id == ingredient.id for existing in ingredients):
            raise NotFoundError(f"Ingredient not found: {ingredient.id}")
        save_ingredients(
            base_uri,
            [
                ingredient if existing.id == ingredient.id else existing
                for existing in ingredients
            ],
        )
    return ingredient


def _recipe_from_dict(payload: dict[str, object]) -> RecipeRecord:
    return RecipeRecord(
        id=str(payload.get("id")),
        tenant_id=str(payload.get("tenant_id", "")),
        name=str(payload.get("name", "")),
        description=coerce_optional_str(payload.get("description")),
        category=coerce_optional_str(payload.get("category")),
        prep_time_seconds=coerce_int(payload.get("prep_time_seconds")),
        cook_time_seconds=coerce_int(payload.get("cook_time_seconds")),
        servings=coerce_int(payload.get("servings"), 1),
        allergen_warnings=coerce_str_tuple(payload.get("allergen_warnings")),
        ingredients=tuple(
            _recipe_ingredient_from_dict(item)
            for item in _dict_items(payload.get("ingredients"))
        ),
        steps=tuple(
            _recipe_step_from_dict(item) for item in _dict_items(payload.get("steps"))
        ),
        status=str(payload.get("status", "draft")),
        version=coerce_int(payload.get("version"), 1),
        published_at=coerce_optional_str(payload.get("published_at")),
        published_to_sites=coerce_str_tuple(payload.get("published_to_sites")),
        published_globally=bool(payload.get("published_globally", False)),
        created_at=str(payload.get("created_at", "")),
        updated_at=str(payload.get("updated_at", "")),
    )


def _recipe_ingredient_from_dict(payload: dict[str, object]) -> RecipeIngredient:
    timing_step = payload.get("timing_step")
    return RecipeIngredient(
        ingredient_id=str(payload.get("ingredient_id", "")),
        ingredient_name=str(payload.get("ingredient_name", "")),
        quantity=float(payload.get("quantity") or 0.0),
        unit=str(payload.get("unit", "")),
        prep_notes=coerce_optional_str(payload.get("prep_notes")),
        timing_step=int(timing_step) if timing_step is not None else None,
        is_critical=bool(payload.get("is_critical", False)),
        substitutes=coerce_str_tuple(payload.get("substitutes")),
    )


def _recipe_step_from_dict(payload: dict[str, object]) -> RecipeStep:
    return RecipeStep(
        step_number=coerce_int(payload.get("step_number")),
        action=str(payload.get("action", "")),
        parameters=coerce_mapping(payload.get("parameters")),
        depends_on_steps=coerce_int_tuple(payload.get("depends_on_steps")),
        name=coerce_optional_str(payload.get("name")),
        description=coerce_optional_str(payload.get("description")),
    )


def _ingredient_from_dict(payload: dict[str, object]) -> IngredientRecord:
    nutrition = payload.get("nutrition")
    shelf_life = payload.get("shelf_life_minutes")
    return IngredientRecord(
        id=str(payload.get("id")),
        tenant_id=str(payload.get("tenant_id", "")),
        name=str(payload.get("name", "")),
        moisture_type=str(payload.get("moisture_type", "dry")),
        shelf_life_minutes=int(shelf_life) if shelf_life is not None else None,
        allergen_info=coerce_str_tuple(payload.get("allergen_info")),
        nutrition=_nutrition_from_dict(nutrition) if isinstance(nutrition, dict) else None,
        parameters=coerce_mapping(payload.get("parameters")),
        is_active=bool(payload.get("is_active", True)),
        created_at=str(payload.get("created_at", "")),
        updated_at=str(payload.get("updated_at", "")),
    )


def _nutrition_from_dict(payload: dict[str, object]) -> Nutrition:
    return Nutrition(
        **{
            key: float(payload.get(key) or 0.0)
            for key in ("calories", "protein", "fat", "carbs", "fiber", "sodium", "sugar")
        }
    )


def _dict_items(value: object) -> list[dict[str, object]]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]
