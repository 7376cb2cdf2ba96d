from __future__ import annotations

import pytest

from galley_core.errors import ConflictError, NotFoundError, ValidationError
from galley_core.recipes import (
    Nutrition,
    RecipeIngredient,
    RecipeStep,
    create_ingredient,
    delete_recipe,
    device_ingredient_view,
    device_recipe_view,
    get_recipe,
    list_ingredients,
    publish_recipe,
    published_for_site,
    unpublish_recipe,
    update_ingredient,
    update_recipe,
    validate_recipe,
)


def _ingredients(ingredient_id: str = "ing-1") -> list[RecipeIngredient]:
    return [
        RecipeIngredient(
            ingredient_id=ingredient_id,
            ingredient_name="Rice",
            quantity=100,
            unit="grams",
        )
    ]


def _validate(steps, known=("ing-1",)):
    return validate_recipe(
        name="Test",
        ingredients=_ingredients(),
        steps=steps,
        ingredient_exists=set(known).__contains__,
    )


@pytest.mark.core
def test_validate_recipe_normalizes_steps():
    steps = _validate(
        [
            RecipeStep(
                step_number=2,
                action="agitate",
                parameters={"speed": "slow_stir", "duration_sec": 30},
                depends_on_steps=(1, 1),
            ),
            RecipeStep(step_number=1, action="open_pot_lid"),
        ]
    )
    assert [step.step_number for step in steps] == [1, 2]
    assert steps[1].depends_on_steps == (1,)
    assert steps[1].parameters == {
        "speed": "slow_stir",
        "duration_sec": 30,
        "direction": "scraping",
    }
    assert steps[0].parameters == {}


@pytest.mark.core
@pytest.mark.parametrize(
    "steps",
    [
        [RecipeStep(step_number=1, action="open_pot_lid", depends_on_steps=(3,))],
        [
            RecipeStep(step_number=1, action="open_pot_lid", depends_on_steps=(2,)),
            RecipeStep(step_number=2, action="close_pot_lid"),
        ],
        [
            RecipeStep(step_number=1, action="open_pot_lid"),
            RecipeStep(step_number=1, action="close_pot_lid"),
        ],
        [RecipeStep(step_number=0, action="open_pot_lid")],
        [RecipeStep(step_number=1, action="open_pot_lid", depends_on_steps=(1,))],
    ],
)
def test_validate_recipe_rejects_bad_dependency_graphs(steps):
    with pytest.raises(ValidationError):
        _validate(steps)


@pytest.mark.core
def test_validate_recipe_checks_parameters():
    with pytest.raises(ValidationError, match="power_level"):
        _validate(
            [
                RecipeStep(
                    step_number=1,
                    action="heat",
                    parameters={"power_level": 150, "on_duration_sec": 10},
                )
            ]
        )
    with pytest.raises(ValidationError):
        _validate([RecipeStep(step_number=1, action="open_pot_lid", parameters={"x": 1})])
    with pytest.raises(ValidationError, match="unknown action"):
        _validate([RecipeStep(step_number=1, action="acquire_pot_from_staging")])
    with pytest.raises(ValidationError, match="unknown ingredient"):
        _validate(
            [
                RecipeStep(
                    step_number=1,
                    action="add_liquid",
                    parameters={"ingredient_id": "ing-2", "quantity": 50},
                )
            ]
        )


@pytest.mark.core
def test_validate_recipe_requires_known_ingredients():
    with pytest.raises(ValidationError):
        _validate([RecipeStep(step_number=1, action="open_pot_lid")], known=())


@pytest.mark.core
def test_create_recipe_fills_ingredient_names(recipe_factory, ingredient):
    recipe = recipe_factory()
    assert recipe.status == "draft"
    assert recipe.version == 1
    assert recipe.ingredients[0].ingredient_name == ingredient.name


@pytest.mark.core
def test_publish_accumulates_sites(stores, site, recipe_factory):
    stores.sites.register_site(
        tenant_id="tenant-1", region_id="region-1", name="Uptown", site_id="site-2"
    )
    recipe = recipe_factory()
    publish_recipe(stores, recipe.id, site_ids=["site-1"])
    published = publish_recipe(stores, recipe.id, site_ids=["site-2", "site-1"])

    assert published.status == "published"
    assert published.published_to_sites == ("site-1", "site-2")
    assert published.published_at is not None
    assert [r.id for r in published_for_site(stores, tenant_id="tenant-1", site_id="site-2")] == [
        recipe.id
    ]


@pytest.mark.core
def test_publish_requires_target(stores, site, recipe_factory):
    recipe = recipe_factory()
    with pytest.raises(ValidationError):
        publish_recipe(stores, recipe.id, site_ids=[])
    with pytest.raises(NotFoundError):
        publish_recipe(stores, recipe.id, site_ids=["nowhere"])


@pytest.mark.core
def test_global_publish_visible_everywhere(stores, site, recipe_factory):
    recipe = recipe_factory()
    publish_recipe(stores, recipe.id, publish_globally=True)
    visible = published_for_site(stores, tenant_id="tenant-1", site_id="any-site")
    assert [r.id for r in visible] == [recipe.id]
    assert published_for_site(stores, tenant_id="tenant-2", site_id="any-site") == []


@pytest.mark.core
def test_published_recipes_are_locked(stores, published_recipe):
    with pytest.raises(ConflictError):
        update_recipe(stores, published_recipe.id, name="Renamed")
    with pytest.raises(ConflictError):
        delete_recipe(stores, published_recipe.id)

    draft = unpublish_recipe(stores, published_recipe.id)
    assert draft.status == "draft"
    assert draft.published_to_sites == ()
    assert published_for_site(stores, tenant_id="tenant-1", site_id="site-1") == []

    renamed = update_recipe(stores, published_recipe.id, name="Renamed", servings=2)
    assert renamed.version == published_recipe.version + 1
    assert renamed.servings == 2

    delete_recipe(stores, published_recipe.id)
    with pytest.raises(NotFoundError):
        get_recipe(stores, published_recipe.id)


@pytest.mark.core
def test_ingredient_lifecycle(stores, ingredient):
    assert ingredient.moisture_type == "dry"
    with pytest.raises(ValidationError):
        create_ingredient(stores, tenant_id="tenant-1", name="Mud", moisture_type="damp")

    updated = update_ingredient(
        stores,
        ingredient.id,
        nutrition=Nutrition(calories=130, carbs=28),
        is_active=False,
    )
    assert updated.nutrition.calories == 130
    assert list_ingredients(stores, tenant_id="tenant-1", active_only=True) == []
    assert [i.id for i in list_ingredients(stores, tenant_id="tenant-1")] == [ingredient.id]


@pytest.mark.core
def test_device_views(published_recipe, ingredient):
    view = device_recipe_view(published_recipe)
    assert view["id"] == published_recipe.id
    assert view["steps"][1]["depends_on_steps"] == [1]
    assert view["ingredients"][0]["name"] == ingredient.name
    assert "tenant_id" not in view

    ingredient_view = device_ingredient_view(ingredient)
    assert ingredient_view["name"] == "Rice"
    assert ingredient_view["parameters"] == {}
