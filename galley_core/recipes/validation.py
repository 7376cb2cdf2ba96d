"""Recipe validation.

Steps must form a forward-only dependency graph and every step's parameters
must match the schema of its action.
"""

from __future__ import annotations

from typing import Callable, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from galley_core.errors import ValidationError
from galley_core.recipes.types import RecipeIngredient, RecipeStep


class _StepParameters(BaseModel):
    model_config = ConfigDict(extra="forbid")


class AddLiquidParameters(_StepParameters):
    ingredient_id: str
    ingredient_name: str | None = None
    metric: Literal["ml"] = "ml"
    quantity: float = Field(gt=0)


class AddSolidParameters(_StepParameters):
    ingredient_id: str
    ingredient_name: str | None = None
    metric: Literal["grams"] = "grams"
    quantity: float = Field(gt=0)


class AgitateParameters(_StepParameters):
    speed: Literal["slow_stir", "med_stir", "fast_stir", "coarse_grind"]
    duration_sec: int = Field(gt=0)
    direction: Literal["scraping", "cutting"] = "scraping"


class HeatParameters(_StepParameters):
    power_level: int = Field(ge=0, le=100)
    on_duration_sec: int = Field(gt=0)


class IngredientHandlingParameters(_StepParameters):
    ingredient_id: str | None = None


class NoParameters(_StepParameters):
    pass


STEP_PARAMETER_MODELS: dict[str, type[_StepParameters]] = {
    "add_liquid": AddLiquidParameters,
    "add_solid": AddSolidParameters,
    "agitate": AgitateParameters,
    "heat": HeatParameters,
    "pick_ingredient": IngredientHandlingParameters,
    "place_ingredient": IngredientHandlingParameters,
    "open_pot_lid": NoParameters,
    "close_pot_lid": NoParameters,
}
STEP_ACTIONS = tuple(sorted(STEP_PARAMETER_MODELS))


def validate_step_parameters(step: RecipeStep) -> dict[str, object]:
    """Return the step parameters normalized by the action's schema."""
    model = STEP_PARAMETER_MODELS.get(step.action)
    if model is None:
        raise ValidationError(
            f"Step {step.step_number}: unknown action {step.action!r}"
        )
    try:
        parsed = model.model_validate(step.parameters or {})
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"Step {step.step_number} ({step.action}): "
            f"invalid parameter {location or 'parameters'}: {first.get('msg')}"
        ) from exc
    return parsed.model_dump(exclude_none=True)


def validate_steps(steps: tuple[RecipeStep, ...] | list[RecipeStep]) -> None:
    seen: set[int] = set()
    for step in steps:
        if step.step_number <= 0:
            raise ValidationError(f"Step number must be positive: {step.step_number}")
        if step.step_number in seen:
            raise ValidationError(f"Duplicate step number: {step.step_number}")
        seen.add(step.step_number)
    for step in steps:
        for dependency in step.depends_on_steps:
            if dependency not in seen:
                raise ValidationError(
                    f"Step {step.step_number} depends on missing step {dependency}"
                )
            if dependency >= step.step_number:
                raise ValidationError(
                    f"Step {step.step_number} must depend on an earlier step "
                    f"(got {dependency})"
                )


def validate_recipe(
    *,
    name: str,
    ingredients: tuple[RecipeIngredient, ...] | list[RecipeIngredient],
    steps: tuple[RecipeStep, ...] | list[RecipeStep],
    ingredient_exists: Callable[[str], bool],
) -> tuple[RecipeStep, ...]:
    """Validate a recipe body and return its steps with normalized parameters."""
    if not name.strip():
        raise ValidationError("Recipe name is required")
    if not ingredients:
        raise ValidationError("Recipe must have at least one ingredient")
    if not steps:
        raise ValidationError("Recipe must have at least one step")
    for ingredient in ingredients:
        if not ingredient_exists(ingredient.ingredient_id):
            raise ValidationError(f"Unknown ingredient: {ingredient.ingredient_id}")
    validate_steps(steps)
    normalized: list[RecipeStep] = []
    for step in steps:
        parameters = validate_step_parameters(step)
        ingredient_id = parameters.get("ingredient_id")
        if ingredient_id is not None and not ingredient_exists(str(ingredient_id)):
            raise ValidationError(
                f"Step {step.step_number}: unknown ingredient {ingredient_id}"
            )
        normalized.append(
            RecipeStep(
                step_number=step.step_number,
                action=step.action,
                parameters=parameters,
                depends_on_steps=tuple(sorted(set(step.depends_on_steps))),
                name=step.name,
                description=step.description,
            )
        )
    return tuple(sorted(normalized, key=lambda step: step.step_number))
