from __future__ import annotations

from dataclasses import dataclass

RECIPE_DRAFT = "draft"
RECIPE_REVIEW = "review"
RECIPE_APPROVED = "approved"
RECIPE_PUBLISHED = "published"
RECIPE_ARCHIVED = "archived"
RECIPE_STATUSES = (
    RECIPE_DRAFT,
    RECIPE_REVIEW,
    RECIPE_APPROVED,
    RECIPE_PUBLISHED,
    RECIPE_ARCHIVED,
)

MOISTURE_TYPES = ("dry", "wet", "liquid")


@dataclass(frozen=True)
class RecipeIngredient:
    ingredient_id: str
    ingredient_name: str
    quantity: float
    unit: str
    prep_notes: str | None = None
    timing_step: int | None = None
    is_critical: bool = False
    substitutes: tuple[str, ...] = ()


@dataclass(frozen=True)
class RecipeStep:
    step_number: int
    action: str
    parameters: dict[str, object] | None = None
    depends_on_steps: tuple[int, ...] = ()
    name: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class RecipeRecord:
    id: str
    tenant_id: str
    name: str
    description: str | None
    category: str | None
    prep_time_seconds: int
    cook_time_seconds: int
    servings: int
    allergen_warnings: tuple[str, ...]
    ingredients: tuple[RecipeIngredient, ...]
    steps: tuple[RecipeStep, ...]
    status: str
    version: int
    published_at: str | None
    published_to_sites: tuple[str, ...]
    published_globally: bool
    created_at: str
    updated_at: str

    def is_published(self) -> bool:
        return self.status == RECIPE_PUBLISHED


@dataclass(frozen=True)
class Nutrition:
    calories: float = 0.0
    protein: float = 0.0
    fat: float = 0.0
    carbs: float = 0.0
    fiber: float = 0.0
    sodium: float = 0.0
    sugar: float = 0.0


@dataclass(frozen=True)
class IngredientRecord:
    id: str
    tenant_id: str
    name: str
    moisture_type: str
    shelf_life_minutes: int | None
    allergen_info: tuple[str, ...]
    nutrition: Nutrition | None
    parameters: dict[str, object] | None
    is_active: bool
    created_at: str
    updated_at: str
