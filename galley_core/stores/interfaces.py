from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol

from galley_core.fleet.types import DeviceRecord, HeartbeatRecord
from galley_core.orders.types import OrderRecord
from galley_core.recipes.types import IngredientRecord, RecipeRecord
from galley_core.tenancy.types import SiteRecord


class SiteStore(Protocol):
    def load_sites(self) -> list[SiteRecord]:
        ...

    def get_site(self, site_id: str) -> SiteRecord | None:
        ...

    def register_site(
        self,
        *,
        tenant_id: str,
        region_id: str,
        name: str,
        status: str = "active",
        site_id: str | None = None,
    ) -> SiteRecord:
        ...


class FleetStore(Protocol):
    def load_devices(self) -> list[DeviceRecord]:
        ...

    def get_device(self, device_id: str) -> DeviceRecord | None:
        ...

    def find_device_by_serial(self, serial: str) -> DeviceRecord | None:
        ...

    def insert_device(self, device: DeviceRecord) -> DeviceRecord:
        ...

    def update_device(self, device: DeviceRecord) -> DeviceRecord:
        ...

    def delete_device(self, device_id: str) -> None:
        ...

    def append_heartbeat(
        self,
        heartbeat: HeartbeatRecord,
        *,
        now: datetime | None = None,
    ) -> HeartbeatRecord:
        ...

    def load_heartbeats(
        self,
        *,
        device_id: str | None = None,
        now: datetime | None = None,
    ) -> list[HeartbeatRecord]:
        ...


class OrderStore(Protocol):
    def load_orders(self) -> list[OrderRecord]:
        ...

    def get_order(self, order_id: str) -> OrderRecord | None:
        ...

    def find_order_by_reference(
        self,
        tenant_id: str,
        order_reference: str,
    ) -> OrderRecord | None:
        ...

    def find_order_by_device_order_id(
        self,
        site_id: str,
        device_order_id: str,
    ) -> OrderRecord | None:
        ...

    def insert_order(self, order: OrderRecord) -> OrderRecord:
        ...

    def update_order(self, order: OrderRecord) -> OrderRecord:
        ...

    def update_orders(self, orders: Iterable[OrderRecord]) -> int:
        ...

    def reset_orphaned_orders(
        self,
        site_id: str,
        declared: set[str],
        *,
        updated_at: str,
    ) -> list[OrderRecord]:
        ...


class RecipeStore(Protocol):
    def load_recipes(self) -> list[RecipeRecord]:
        ...

    def get_recipe(self, recipe_id: str) -> RecipeRecord | None:
        ...

    def insert_recipe(self, recipe: RecipeRecord) -> RecipeRecord:
        ...

    def update_recipe(self, recipe: RecipeRecord) -> RecipeRecord:
        ...

    def delete_recipe(self, recipe_id: str) -> None:
        ...


class IngredientStore(Protocol):
    def load_ingredients(self) -> list[IngredientRecord]:
        ...

    def get_ingredient(self, ingredient_id: str) -> IngredientRecord | None:
        ...

    def insert_ingredient(self, ingredient: IngredientRecord) -> IngredientRecord:
        ...

    def update_ingredient(self, ingredient: IngredientRecord) -> IngredientRecord:
        ...
