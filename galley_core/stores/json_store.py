from __future__ import annotations

from datetime import datetime
from typing import Iterable

from galley_core.fleet import store as fleet_store
from galley_core.fleet.types import DeviceRecord, HeartbeatRecord
from galley_core.orders import store as order_store
from galley_core.orders.types import OrderRecord
from galley_core.recipes import store as recipe_store
from galley_core.recipes.types import IngredientRecord, RecipeRecord
from galley_core.stores.interfaces import (
    FleetStore,
    IngredientStore,
    OrderStore,
    RecipeStore,
    SiteStore,
)
from galley_core.tenancy import store as site_store
from galley_core.tenancy.types import SiteRecord


class JsonSiteStore(SiteStore):
    def __init__(self, base_uri: str) -> None:
        self._base_uri = base_uri

    def load_sites(self) -> list[SiteRecord]:
        return site_store.load_sites(self._base_uri)

    def get_site(self, site_id: str) -> SiteRecord | None:
        return site_store.get_site(self._base_uri, site_id)

    def register_site(
        self,
        *,
        tenant_id: str,
        region_id: str,
        name: str,
        status: str = "active",
        site_id: str | None = None,
    ) -> SiteRecord:
        return site_store.register_site(
            base_uri=self._base_uri,
            tenant_id=tenant_id,
            region_id=region_id,
            name=name,
            status=status,
            site_id=site_id,
        )


class JsonFleetStore(FleetStore):
    def __init__(self, base_uri: str) -> None:
        self._base_uri = base_uri

    def load_devices(self) -> list[DeviceRecord]:
        return fleet_store.load_devices(self._base_uri)

    def get_device(self, device_id: str) -> DeviceRecord | None:
        return fleet_store.get_device(self._base_uri, device_id)

    def find_device_by_serial(self, serial: str) -> DeviceRecord | None:
        return fleet_store.find_device_by_serial(self._base_uri, serial)

    def insert_device(self, device: DeviceRecord) -> DeviceRecord:
        return fleet_store.insert_device(self._base_uri, device)

    def update_device(self, device: DeviceRecord) -> DeviceRecord:
        return fleet_store.update_device(self._base_uri, device)

    def delete_device(self, device_id: str) -> None:
        fleet_store.delete_device(self._base_uri, device_id)

    def append_heartbeat(
        self,
        heartbeat: HeartbeatRecord,
        *,
        now: datetime | None = None,
    ) -> HeartbeatRecord:
        return fleet_store.append_heartbeat(self._base_uri, heartbeat, now=now)

    def load_heartbeats(
        self,
        *,
        device_id: str | None = None,
        now: datetime | None = None,
    ) -> list[HeartbeatRecord]:
        return fleet_store.load_heartbeats(self._base_uri, device_id=device_id, now=now)


class JsonOrderStore(OrderStore):
    def __init__(self, base_uri: str) -> None:
        self._base_uri = base_uri

    def load_orders(self) -> list[OrderRecord]:
        return order_store.load_orders(self._base_uri)

    def get_order(self, order_id: str) -> OrderRecord | None:
        return order_store.get_order(self._base_uri, order_id)

    def find_order_by_reference(
        self,
        tenant_id: str,
        order_reference: str,
    ) -> OrderRecord | None:
        return order_store.find_order_by_reference(
            self._base_uri, tenant_id, order_reference
        )

    def find_order_by_device_order_id(
        self,
        site_id: str,
        device_order_id: str,
    ) -> OrderRecord | None:
        return order_store.find_order_by_device_order_id(
            self._base_uri, site_id, device_order_id
        )

    def insert_order(self, order: OrderRecord) -> OrderRecord:
        return order_store.insert_order(self._base_uri, order)

    def update_order(self, order: OrderRecord) -> OrderRecord:
        return order_store.update_order(self._base_uri, order)

    def update_orders(self, orders: Iterable[OrderRecord]) -> int:
        return order_store.update_orders(self._base_uri, orders)

    def reset_orphaned_orders(
        self,
        site_id: str,
        declared: set[str],
        *,
        updated_at: str,
    ) -> list[OrderRecord]:
        return order_store.reset_orphaned_orders(
            self._base_uri, site_id, declared, updated_at=updated_at
        )


class JsonRecipeStore(RecipeStore):
    def __init__(self, base_uri: str) -> None:
        self._base_uri = base_uri

    def load_recipes(self) -> list[RecipeRecord]:
        return recipe_store.load_recipes(self._base_uri)

    def get_recipe(self, recipe_id: str) -> RecipeRecord | None:
        return recipe_store.get_recipe(self._base_uri, recipe_id)

    def insert_recipe(self, recipe: RecipeRecord) -> RecipeRecord:
        return recipe_store.insert_recipe(self._base_uri, recipe)

    def update_recipe(self, recipe: RecipeRecord) -> RecipeRecord:
        return recipe_store.update_recipe(self._base_uri, recipe)

    def delete_recipe(self, recipe_id: str) -> None:
        recipe_store.delete_recipe(self._base_uri, recipe_id)


class JsonIngredientStore(IngredientStore):
    def __init__(self, base_uri: str) -> None:
        self._base_uri = base_uri

    def load_ingredients(self) -> list[IngredientRecord]:
        return recipe_store.load_ingredients(self._base_uri)

    def get_ingredient(self, ingredient_id: str) -> IngredientRecord | None:
        return recipe_store.get_ingredient(self._base_uri, ingredient_id)

    def insert_ingredient(self, ingredient: IngredientRecord) -> IngredientRecord:
        return recipe_store.insert_ingredient(self._base_uri, ingredient)

    def update_ingredient(self, ingredient: IngredientRecord) -> IngredientRecord:
        return recipe_store.update_ingredient(self._base_uri, ingredient)
