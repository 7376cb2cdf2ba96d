import os
import tempfile
from pathlib import Path

import pytest

from galley_core.config import get_config
from galley_core.pki import SelfSignedAuthority
from galley_core.recipes import (
    RecipeIngredient,
    RecipeStep,
    create_ingredient,
    create_recipe,
    publish_recipe,
)
from galley_core.stores import get_store_bundle

_TEST_CONTROL_ROOT: str | None = None


@pytest.fixture(autouse=True)
def _control_plane_env(monkeypatch: pytest.MonkeyPatch):
    def set_default(name: str, value: str) -> None:
        if not os.getenv(name):
            monkeypatch.setenv(name, value)

    set_default("ENV", "test")
    set_default("LOG_LEVEL", "INFO")
    set_default("CONTROL_PLANE_ROOT", _ensure_test_control_root())
    set_default("CONTROL_PLANE_STORE", "json")
    monkeypatch.setenv("EXTERNAL_URL", "https://galley.test")
    set_default("DEVICE_TOKEN_SECRET", "test-device-token-secret-0123456789")
    monkeypatch.delenv("OPERATOR_API_KEY", raising=False)
    monkeypatch.delenv("CA_CERT_PEM", raising=False)
    monkeypatch.delenv("CA_KEY_PEM", raising=False)
    monkeypatch.delenv("CA_CERT_PATH", raising=False)
    monkeypatch.delenv("CA_KEY_PATH", raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def _ensure_test_control_root() -> str:
    global _TEST_CONTROL_ROOT
    if _TEST_CONTROL_ROOT and Path(_TEST_CONTROL_ROOT).exists():
        return _TEST_CONTROL_ROOT

    _TEST_CONTROL_ROOT = tempfile.mkdtemp(prefix="galley_test_control_")
    return _TEST_CONTROL_ROOT


@pytest.fixture
def stores(tmp_path):
    return get_store_bundle(tmp_path.as_posix())


@pytest.fixture
def authority():
    return SelfSignedAuthority(organization="Galley", validity_days=365)


@pytest.fixture
def site(stores):
    return stores.sites.register_site(
        tenant_id="tenant-1",
        region_id="region-1",
        name="Downtown",
        site_id="site-1",
    )


@pytest.fixture
def ingredient(stores):
    return create_ingredient(
        stores,
        tenant_id="tenant-1",
        name="Rice",
        moisture_type="dry",
        shelf_life_minutes=240,
    )


@pytest.fixture
def recipe_factory(stores, ingredient):
    def _factory(name: str = "Fried Rice", **kwargs):
        return create_recipe(
            stores,
            tenant_id=kwargs.pop("tenant_id", "tenant-1"),
            name=name,
            ingredients=[
                RecipeIngredient(
                    ingredient_id=ingredient.id,
                    ingredient_name="",
                    quantity=200,
                    unit="grams",
                )
            ],
            steps=[
                RecipeStep(
                    step_number=1,
                    action="add_solid",
                    parameters={"ingredient_id": ingredient.id, "quantity": 200},
                ),
                RecipeStep(
                    step_number=2,
                    action="heat",
                    parameters={"power_level": 80, "on_duration_sec": 120},
                    depends_on_steps=(1,),
                ),
            ],
            **kwargs,
        )

    return _factory


@pytest.fixture
def published_recipe(stores, site, recipe_factory):
    recipe = recipe_factory()
    return publish_recipe(stores, recipe.id, site_ids=[site.id])
