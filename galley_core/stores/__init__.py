from galley_core.stores.interfaces import (
    FleetStore,
    IngredientStore,
    OrderStore,
    RecipeStore,
    SiteStore,
)
from galley_core.stores.registry import StoreBundle, get_store_bundle

__all__ = [
    "FleetStore",
    "IngredientStore",
    "OrderStore",
    "RecipeStore",
    "SiteStore",
    "StoreBundle",
    "get_store_bundle",
]
