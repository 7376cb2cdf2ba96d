from __future__ import annotations

import importlib

import pytest
from fastapi.testclient import TestClient

from galley_core.config import get_config


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setenv("CONTROL_PLANE_ROOT", tmp_path.as_posix())
    get_config.cache_clear()

    import galley_api.operator_service as service

    importlib.reload(service)
    return TestClient(service.app)


def _seed_site(client, site_id="site-1", tenant_id="tenant-1"):
    resp = client.post(
        "/api/v1/sites",
        json={
            "tenant_id": tenant_id,
            "region_id": "region-1",
            "name": "Downtown",
            "site_id": site_id,
        },
    )
    assert resp.status_code == 201
    return resp.json()


def _seed_device(client, site_id="site-1"):
    resp = client.post(
        "/api/v1/devices",
        json={
            "tenant_id": "tenant-1",
            "region_id": "region-1",
            "site_id": site_id,
            "name": "Wok Station",
            "kitchens": ["k1"],
        },
    )
    assert resp.status_code == 201
    return resp.json()


def _seed_recipe(client):
    resp = client.post(
        "/api/v1/ingredients",
        json={"tenant_id": "tenant-1", "name": "Rice", "moisture_type": "dry"},
    )
    assert resp.status_code == 201
    ingredient = resp.json()

    resp = client.post(
        "/api/v1/recipes",
        json={
            "tenant_id": "tenant-1",
            "name": "Fried Rice",
            "ingredients": [
                {"ingredient_id": ingredient["id"], "quantity": 200, "unit": "grams"}
            ],
            "steps": [
                {
                    "step_number": 1,
                    "action": "add_solid",
                    "parameters": {"ingredient_id": ingredient["id"], "quantity": 200},
                },
                {
                    "step_number": 2,
                    "action": "heat",
                    "parameters": {"power_level": 70, "on_duration_sec": 90},
                    "depends_on_steps": [1],
                },
            ],
        },
    )
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.api
def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["service"] == "galley-operator"


@pytest.mark.api
def test_device_provisioning_flow(client):
    _seed_site(client)
    device = _seed_device(client)
    assert device["status"] == "pending"
    assert "certificate_pem" not in device
    assert "private_key_pem" not in device

    resp = client.get(f"/api/v1/devices/{device['id']}/provisioning-bundle")
    assert resp.status_code == 200
    assert resp.headers["content-disposition"] == (
        f"attachment; filename=device-provisioning-{device['id']}.json"
    )
    bundle = resp.json()
    assert bundle["device_id"] == device["id"]
    assert bundle["endpoint"] == "https://galley.test/api/v1"
    assert bundle["ca_certificate"] == bundle["certificate"]
    assert bundle["recipe_poll_seconds"] == 300

    first = client.get(f"/api/v1/devices/{device['id']}").json()
    assert first["status"] == "provisioned"
    client.get(f"/api/v1/devices/{device['id']}/provisioning-bundle")
    again = client.get(f"/api/v1/devices/{device['id']}").json()
    assert again["certificate_serial"] == first["certificate_serial"]

    resp = client.post(f"/api/v1/devices/{device['id']}/regenerate-certificate")
    assert resp.status_code == 200
    assert resp.json()["certificate_serial"] != first["certificate_serial"]
    assert resp.json()["expires_at"]

    resp = client.get(f"/api/v1/devices/{device['id']}/provisioning-qrcode")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert "no-cache" in resp.headers["cache-control"]
    assert resp.content.startswith(b"\x89PNG")


@pytest.mark.api
def test_device_lifecycle_endpoints(client):
    _seed_site(client)
    device = _seed_device(client)
    device_id = device["id"]

    resp = client.put(f"/api/v1/devices/{device_id}", json={"name": "Renamed"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"
    assert resp.json()["kitchens"] == ["k1"]

    resp = client.put(f"/api/v1/devices/{device_id}/status", json={"status": "maintenance"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "maintenance"

    resp = client.put(f"/api/v1/devices/{device_id}/status", json={"status": "bogus"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_INPUT"

    resp = client.delete(f"/api/v1/devices/{device_id}")
    assert resp.status_code == 409
    assert resp.json()["code"] == "CONFLICT"

    resp = client.post(f"/api/v1/devices/{device_id}/deactivate")
    assert resp.json()["status"] == "deactivated"
    resp = client.post(f"/api/v1/devices/{device_id}/activate")
    assert resp.json()["status"] == "pending"

    resp = client.get("/api/v1/devices", params={"tenant_id": "tenant-1"})
    assert [item["id"] for item in resp.json()] == [device_id]
    resp = client.get("/api/v1/devices/offline", params={"threshold_seconds": 60})
    assert resp.status_code == 200
    assert resp.json() == []
    resp = client.get(f"/api/v1/devices/{device_id}/heartbeats")
    assert resp.json() == []

    assert client.delete(f"/api/v1/devices/{device_id}").status_code == 204
    resp = client.get(f"/api/v1/devices/{device_id}")
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


@pytest.mark.api
def test_duplicate_site_id_conflicts(client):
    _seed_site(client)
    resp = client.post(
        "/api/v1/sites",
        json={
            "tenant_id": "tenant-2",
            "region_id": "region-2",
            "name": "Elsewhere",
            "site_id": "site-1",
        },
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "CONFLICT"
    assert client.get("/api/v1/sites/site-1").json()["tenant_id"] == "tenant-1"


@pytest.mark.api
def test_second_device_for_site_conflicts(client):
    _seed_site(client)
    _seed_device(client)
    resp = client.post(
        "/api/v1/devices",
        json={
            "tenant_id": "tenant-1",
            "region_id": "region-1",
            "site_id": "site-1",
            "name": "Duplicate",
        },
    )
    assert resp.status_code == 409


@pytest.mark.api
def test_recipe_and_order_endpoints(client):
    _seed_site(client)
    recipe = _seed_recipe(client)
    assert recipe["status"] == "draft"
    assert recipe["ingredients"][0]["ingredient_name"] == "Rice"

    batch = {
        "tenant_id": "tenant-1",
        "region_id": "region-1",
        "site_id": "site-1",
        "order_reference": "REF",
        "items": [{"recipe_id": recipe["id"], "quantity": 3}],
    }
    resp = client.post("/api/v1/orders/batch", json=batch)
    assert resp.status_code == 400

    resp = client.post(f"/api/v1/recipes/{recipe['id']}/publish", json={})
    assert resp.status_code == 400
    resp = client.post(
        f"/api/v1/recipes/{recipe['id']}/publish", json={"site_ids": ["site-1"]}
    )
    assert resp.status_code == 200
    assert resp.json()["published_to_sites"] == ["site-1"]

    resp = client.put(f"/api/v1/recipes/{recipe['id']}", json={"name": "Edited"})
    assert resp.status_code == 409

    resp = client.post("/api/v1/orders/batch", json=batch)
    assert resp.status_code == 201
    orders = resp.json()
    assert [order["order_reference"] for order in orders] == ["REF-1", "REF-2", "REF-3"]
    group_id = orders[0]["group_id"]

    resp = client.get(f"/api/v1/orders/groups/{group_id}")
    assert len(resp.json()) == 3
    resp = client.get(
        "/api/v1/orders/lookup",
        params={"tenant_id": "tenant-1", "order_reference": "REF-2"},
    )
    assert resp.json()["id"] == orders[1]["id"]

    resp = client.put(f"/api/v1/orders/{orders[0]['id']}", json={"priority": 9})
    assert resp.json()["priority"] == 9

    resp = client.post(
        f"/api/v1/orders/{orders[0]['id']}/cancel", json={"reason": "sold out"}
    )
    assert resp.json()["status"] == "cancelled"
    assert resp.json()["error_message"] == "sold out"
    resp = client.post(f"/api/v1/orders/{orders[0]['id']}/cancel", json={})
    assert resp.status_code == 409

    resp = client.get("/api/v1/orders", params={"status": "pending"})
    assert len(resp.json()) == 2

    resp = client.delete(f"/api/v1/recipes/{recipe['id']}")
    assert resp.status_code == 409
    resp = client.post(f"/api/v1/recipes/{recipe['id']}/unpublish")
    assert resp.json()["status"] == "draft"
    assert client.delete(f"/api/v1/recipes/{recipe['id']}").status_code == 204


@pytest.mark.api
def test_invalid_recipe_rejected(client):
    resp = client.post(
        "/api/v1/ingredients",
        json={"tenant_id": "tenant-1", "name": "Water", "moisture_type": "liquid"},
    )
    ingredient_id = resp.json()["id"]
    resp = client.post(
        "/api/v1/recipes",
        json={
            "tenant_id": "tenant-1",
            "name": "Broken",
            "ingredients": [{"ingredient_id": ingredient_id, "quantity": 1, "unit": "ml"}],
            "steps": [
                {
                    "step_number": 1,
                    "action": "heat",
                    "parameters": {"power_level": 101, "on_duration_sec": 5},
                }
            ],
        },
    )
    assert resp.status_code == 400
    assert "power_level" in resp.json()["detail"]


@pytest.mark.api
def test_ingredient_endpoints(client):
    resp = client.post(
        "/api/v1/ingredients",
        json={
            "tenant_id": "tenant-1",
            "name": "Soy Sauce",
            "moisture_type": "liquid",
            "allergen_info": ["soy"],
            "nutrition": {"calories": 10, "sodium": 900},
        },
    )
    assert resp.status_code == 201
    ingredient = resp.json()
    assert ingredient["nutrition"]["sodium"] == 900

    resp = client.put(
        f"/api/v1/ingredients/{ingredient['id']}", json={"is_active": False}
    )
    assert resp.json()["is_active"] is False
    resp = client.get("/api/v1/ingredients", params={"active_only": True})
    assert resp.json() == []
    resp = client.get(f"/api/v1/ingredients/{ingredient['id']}")
    assert resp.json()["name"] == "Soy Sauce"


@pytest.mark.api
def test_operator_key_required_outside_dev(monkeypatch, tmp_path):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("CONTROL_PLANE_ROOT", tmp_path.as_posix())
    monkeypatch.setenv("OPERATOR_API_KEY", "operator-key")
    get_config.cache_clear()

    import galley_api.operator_service as service

    importlib.reload(service)
    client = TestClient(service.app)

    resp = client.get("/api/v1/devices")
    assert resp.status_code == 401
    assert resp.json()["code"] == "UNAUTHORIZED"
    resp = client.get("/api/v1/devices", headers={"x-api-key": "wrong"})
    assert resp.status_code == 401
    resp = client.get("/api/v1/devices", headers={"x-api-key": "operator-key"})
    assert resp.status_code == 200
