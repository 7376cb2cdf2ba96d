from __future__ import annotations

import uuid
from dataclasses import replace
from typing import TYPE_CHECKING, Iterable

from galley_core.errors import ConflictError, NotFoundError, ValidationError
from galley_core.logging import get_logger
from galley_core.recipes.types import (
    MOISTURE_TYPES,
    RECIPE_DRAFT,
    RECIPE_PUBLISHED,
    RECIPE_STATUSES,
    IngredientRecord,
    Nutrition,
    RecipeIngredient,
    RecipeRecord,
    RecipeStep,
)
from galley_core.recipes.validation import validate_recipe
from galley_core.storage.coerce import normalize_ids
from galley_core.tenancy.scope import resolve_site_scope
from galley_core.timestamps import utc_now

if TYPE_CHECKING:
    from galley_core.stores import StoreBundle

logger = get_logger(__name__)


def create_recipe(
    stores: StoreBundle,
    *,
    tenant_id: str,
    name: str,
    ingredients: Iterable[RecipeIngredient],
    steps: Iterable[RecipeStep],
    description: str | None = None,
    category: str | None = None,
    prep_time_seconds: int = 0,
    cook_time_seconds: int = 0,
    servings: int = 1,
    allergen_warnings: Iterable[str] | None = None,
) -> RecipeRecord:
    ingredient_list = tuple(ingredients)
    validated_steps = _validate(stores, tenant_id, name, ingredient_list, tuple(steps))
    now = utc_now().isoformat()
    recipe = RecipeRecord(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        name=name.strip(),
        description=description,
        category=category,
        prep_time_seconds=prep_time_seconds,
        cook_time_seconds=cook_time_seconds,
        servings=servings,
        allergen_warnings=normalize_ids(allergen_warnings),
        ingredients=_denormalize_names(stores, ingredient_list),
        steps=validated_steps,
        status=RECIPE_DRAFT,
        version=1,
        published_at=None,
        published_to_sites=(),
        published_globally=False,
        created_at=now,
        updated_at=now,
    )
    stores.recipes.insert_recipe(recipe)
    logger.info(
        "Recipe created",
        extra={"recipe_id": recipe.id, "tenant_id": tenant_id},
    )
    return recipe


def get_recipe(
    stores: StoreBundle,
    recipe_id: str,
    *,
    tenant_id: str | None = None,
) -> RecipeRecord:
    recipe = stores.recipes.get_recipe(recipe_id)
    if recipe is None or (tenant_id and recipe.tenant_id != tenant_id):
        raise NotFoundError(f"Recipe not found: {recipe_id}")
    return recipe


def list_recipes(
    stores: StoreBundle,
    *,
    tenant_id: str | None = None,
    status: str | None = None,
) -> list[RecipeRecord]:
    if status and status not in RECIPE_STATUSES:
        raise ValidationError(f"Invalid recipe status: {status}")
    recipes = [
        recipe
        for recipe in stores.recipes.load_recipes()
        if (not tenant_id or recipe.tenant_id == tenant_id)
        and (not status or recipe.status == status)
    ]
    return sorted(recipes, key=lambda recipe: recipe.name.lower())


def update_recipe(
    stores: StoreBundle,
    recipe_id: str,
    *,
    name: str | None = None,
    ingredients: Iterable[RecipeIngredient] | None = None,
    steps: Iterable[RecipeStep] | None = None,
    description: str | None = None,
    category: str | None = None,
    prep_time_seconds: int | None = None,
    cook_time_seconds: int | None = None,
    servings: int | None = None,
    allergen_warnings: Iterable[str] | None = None,
    tenant_id: str | None = None,
) -> RecipeRecord:
    recipe = get_recipe(stores, recipe_id, tenant_id=tenant_id)
    if recipe.is_published():
        raise ConflictError("Published recipes must be unpublished before editing")
    ingredient_list = (
        tuple(ingredients) if ingredients is not None else recipe.ingredients
    )
    new_name = name if name is not None else recipe.name
    validated_steps = _validate(
        stores,
        recipe.tenant_id,
        new_name,
        ingredient_list,
        tuple(steps) if steps is not None else recipe.steps,
    )
    updated = replace(
        recipe,
        name=new_name.strip(),
        description=description if description is not None else recipe.description,
        category=category if category is not None else recipe.category,
        prep_time_seconds=(
            prep_time_seconds
            if prep_time_seconds is not None
            else recipe.prep_time_seconds
        ),
        cook_time_seconds=(
            cook_time_seconds
            if cook_time_seconds is not None
            else recipe.cook_time_seconds
        ),
        servings=servings if servings is not None else recipe.servings,
        allergen_warnings=(
            normalize_ids(allergen_warnings)
            if allergen_warnings is not None
            else recipe.allergen_warnings
        ),
        ingredients=_denormalize_names(stores, ingredient_list),
        steps=validated_steps,
        version=recipe.version + 1,
        updated_at=utc_now().isoformat(),
    )
    stores.recipes.update_recipe(updated)
    logger.info(
        "Recipe updated",
        extra={"recipe_id": recipe_id, "recipe_version": updated.version},
    )
    return updated


def delete_recipe(
    stores: StoreBundle,
    recipe_id: str,
    *,
    tenant_id: str | None = None,
) -> None:
    recipe = get_recipe(stores, recipe_id, tenant_id=tenant_id)
    if recipe.is_published():
        raise ConflictError("Published recipes must be unpublished before deleting")
    stores.recipes.delete_recipe(recipe_id)
    logger.info("Recipe deleted", extra={"recipe_id": recipe_id})


def publish_recipe(
    stores: StoreBundle,
    recipe_id: str,
    *,
    site_ids: Iterable[str] | None = None,
    publish_globally: bool = False,
    tenant_id: str | None = None,
) -> RecipeRecord:
    """Publish to more sites; the target set only ever grows until unpublish."""
    recipe = get_recipe(stores, recipe_id, tenant_id=tenant_id)
    requested = normalize_ids(site_ids)
    if not requested and not publish_globally:
        raise ValidationError("Publish requires site_ids or publish_globally")
    for site_id in requested:
        resolve_site_scope(stores.sites, site_id=site_id, tenant_id=recipe.tenant_id)
    _validate(
        stores,
        recipe.tenant_id,
        recipe.name,
        recipe.ingredients,
        recipe.steps,
    )
    now = utc_now().isoformat()
    updated = replace(
        recipe,
        status=RECIPE_PUBLISHED,
        published_at=now,
        published_to_sites=normalize_ids((*recipe.published_to_sites, *requested)),
        published_globally=recipe.published_globally or publish_globally,
        updated_at=now,
    )
    stores.recipes.update_recipe(updated)
    logger.info(
        "Recipe published",
        extra={
            "recipe_id": recipe_id,
            "recipe_version": updated.version,
            "published_to_sites": list(updated.published_to_sites),
        },
    )
    return updated


def unpublish_recipe(
    stores: StoreBundle,
    recipe_id: str,
    *,
    tenant_id: str | None = None,
) -> RecipeRecord:
    recipe = get_recipe(stores, recipe_id, tenant_id=tenant_id)
    updated = replace(
        recipe,
        status=RECIPE_DRAFT,
        published_at=None,
        published_to_sites=(),
        published_globally=False,
        updated_at=utc_now().isoformat(),
    )
    stores.recipes.update_recipe(updated)
    logger.info("Recipe unpublished", extra={"recipe_id": recipe_id})
    return updated


def published_for_site(
    stores: StoreBundle,
    *,
    tenant_id: str,
    site_id: str,
) -> list[RecipeRecord]:
    return [
        recipe
        for recipe in list_recipes(stores, tenant_id=tenant_id, status=RECIPE_PUBLISHED)
        if recipe.published_globally or site_id in recipe.published_to_sites
    ]


def create_ingredient(
    stores: StoreBundle,
    *,
    tenant_id: str,
    name: str,
    moisture_type: str,
    shelf_life_minutes: int | None = None,
    allergen_info: Iterable[str] | None = None,
    nutrition: Nutrition | None = None,
    parameters: dict[str, object] | None = None,
    is_active: bool = True,
) -> IngredientRecord:
    if not name.strip():
        raise ValidationError("Ingredient name is required")
    _check_ingredient_fields(moisture_type, shelf_life_minutes)
    now = utc_now().isoformat()
    ingredient = IngredientRecord(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        name=name.strip(),
        moisture_type=moisture_type,
        shelf_life_minutes=shelf_life_minutes,
        allergen_info=normalize_ids(allergen_info),
        nutrition=nutrition,
        parameters=parameters,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    stores.ingredients.insert_ingredient(ingredient)
    logger.info(
        "Ingredient created",
        extra={"ingredient_id": ingredient.id, "tenant_id": tenant_id},
    )
    return ingredient


def get_ingredient(
    stores: StoreBundle,
    ingredient_id: str,
    *,
    tenant_id: str | None = None,
) -> IngredientRecord:
    ingredient = stores.ingredients.get_ingredient(ingredient_id)
    if ingredient is None or (tenant_id and ingredient.tenant_id != tenant_id):
        raise NotFoundError(f"Ingredient not found: {ingredient_id}")
    return ingredient


def list_ingredients(
    stores: StoreBundle,
    *,
    tenant_id: str | None = None,
    active_only: bool = False,
) -> list[IngredientRecord]:
    ingredients = [
        ingredient
        for ingredient in stores.ingredients.load_ingredients()
        if (not tenant_id or ingredient.tenant_id == tenant_id)
        and (not active_only or ingredient.is_active)
    ]
    return sorted(ingredients, key=lambda ingredient: ingredient.name.lower())


def update_ingredient(
    stores: StoreBundle,
    ingredient_id: str,
    *,
    name: str | None = None,
    moisture_type: str | None = None,
    shelf_life_minutes: int | None = None,
    allergen_info: Iterable[str] | None = None,
    nutrition: Nutrition | None = None,
    parameters: dict[str, object] | None = None,
    is_active: bool | None = None,
    tenant_id: str | None = None,
) -> IngredientRecord:
    ingredient = get_ingredient(stores, ingredient_id, tenant_id=tenant_id)
    if name is not None and not name.strip():
        raise ValidationError("Ingredient name is required")
    updated = replace(
        ingredient,
        name=name.strip() if name is not None else ingredient.name,
        moisture_type=moisture_type or ingredient.moisture_type,
        shelf_life_minutes=(
            shelf_life_minutes
            if shelf_life_minutes is not None
            else ingredient.shelf_life_minutes
        ),
        allergen_info=(
            normalize_ids(allergen_info)
            if allergen_info is not None
            else ingredient.allergen_info
        ),
        nutrition=nutrition or ingredient.nutrition,
        parameters=parameters if parameters is not None else ingredient.parameters,
        is_active=ingredient.is_active if is_active is None else is_active,
        updated_at=utc_now().isoformat(),
    )
    _check_ingredient_fields(updated.moisture_type, updated.shelf_life_minutes)
    return stores.ingredients.update_ingredient(updated)


def _check_ingredient_fields(moisture_type: str, shelf_life_minutes: int | None) -> None:
    if moisture_type not in MOISTURE_TYPES:
        raise ValidationError(f"Invalid moisture_type: {moisture_type}")
    if shelf_life_minutes is not None and shelf_life_minutes < 0:
        raise ValidationError("shelf_life_minutes must be >= 0")


def _validate(
    stores: StoreBundle,
    tenant_id: str,
    name: str,
    ingredients: tuple[RecipeIngredient, ...],
    steps: tuple[RecipeStep, ...],
) -> tuple[RecipeStep, ...]:
    known = {
        ingredient.id
        for ingredient in stores.ingredients.load_ingredients()
        if ingredient.tenant_id == tenant_id
    }
    return validate_recipe(
        name=name,
        ingredients=ingredients,
        steps=steps,
        ingredient_exists=known.__contains__,
    )


def _denormalize_names(
    stores: StoreBundle,
    ingredients: tuple[RecipeIngredient, ...],
) -> tuple[RecipeIngredient, ...]:
    names = {
        ingredient.id: ingredient.name
        for ingredient in stores.ingredients.load_ingredients()
    }
    return tuple(
        item
        if item.ingredient_name
        else replace(item, ingredient_name=names.get(item.ingredient_id, ""))
        for item in ingredients
    )
