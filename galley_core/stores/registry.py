from __future__ import annotations

import os
from dataclasses import dataclass

from galley_core.stores.interfaces import (
    FleetStore,
    IngredientStore,
    OrderStore,
    RecipeStore,
    SiteStore,
)
from galley_core.stores.json_store import (
    JsonFleetStore,
    JsonIngredientStore,
    JsonOrderStore,
    JsonRecipeStore,
    JsonSiteStore,
)


@dataclass(frozen=True)
class StoreBundle:
    sites: SiteStore
    fleet: FleetStore
    orders: OrderStore
    recipes: RecipeStore
    ingredients: IngredientStore


def get_store_bundle(base_uri: str) -> StoreBundle:
    backend = os.getenv("CONTROL_PLANE_STORE", "json").strip().lower()
    if backend != "json":
        raise ValueError(f"Unsupported control-plane store backend: {backend}")
    return StoreBundle(
        sites=JsonSiteStore(base_uri),
        fleet=JsonFleetStore(base_uri),
        orders=JsonOrderStore(base_uri),
        recipes=JsonRecipeStore(base_uri),
        ingredients=JsonIngredientStore(base_uri),
    )
