from __future__ import annotations

import importlib
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from galley_core.auth import issue_device_token
from galley_core.config import get_config
from galley_core.fleet import create_device, deactivate_device, provision_device
from galley_core.orders import BatchItem, cancel_order, create_batch


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setenv("CONTROL_PLANE_ROOT", tmp_path.as_posix())
    get_config.cache_clear()

    import galley_api.device_service as service

    importlib.reload(service)
    return TestClient(service.app)


@pytest.fixture
def device(client, stores, site, authority):
    created = create_device(
        stores,
        tenant_id=site.tenant_id,
        region_id=site.region_id,
        site_id=site.id,
        name="Line 1",
    )
    provisioned, _ = provision_device(
        stores, created.id, authority=authority, config=get_config()
    )
    return provisioned


@pytest.fixture
def headers(device):
    return {"x-device-id": device.id}


def _orders(stores, site, recipe, quantity=1):
    return create_batch(
        stores,
        tenant_id=site.tenant_id,
        region_id=site.region_id,
        site_id=site.id,
        order_reference="POS-1",
        items=[BatchItem(recipe_id=recipe.id, quantity=quantity)],
    )


@pytest.mark.api
def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["service"] == "galley-device"


@pytest.mark.api
def test_register_and_heartbeat(client, device, headers, stores):
    resp = client.post(
        "/api/v1/device/register",
        json={"device_id": device.id, "version": "1.4.0"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "registered": True,
        "device_id": device.id,
        "site_id": device.site_id,
        "tenant_id": device.tenant_id,
    }
    assert stores.fleet.get_device(device.id).status == "online"

    resp = client.post(
        "/api/v1/device/heartbeat",
        json={
            "device_id": device.id,
            "status": "online",
            "metrics": {"temperature_c": 41},
            "active_orders": [],
        },
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json() == {"acknowledged": True, "orders_reset": 0}
    assert len(stores.fleet.load_heartbeats(device_id=device.id)) == 1


@pytest.mark.api
def test_device_id_mismatch_forbidden(client, device, headers):
    resp = client.post(
        "/api/v1/device/register",
        json={"device_id": "someone-else"},
        headers=headers,
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"


@pytest.mark.api
def test_certificate_and_bearer_identity(client, device):
    cert_headers = {"x-client-cert": quote(device.certificate_pem)}
    resp = client.get("/api/v1/device/orders", headers=cert_headers)
    assert resp.status_code == 200

    token = issue_device_token(
        device,
        secret=get_config().device_token_secret,
        ttl_seconds=60,
    )
    resp = client.get(
        "/api/v1/device/orders", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 200

    resp = client.get("/api/v1/device/orders")
    assert resp.status_code == 401
    resp = client.get(
        "/api/v1/device/orders", headers={"Authorization": "Bearer not-a-token"}
    )
    assert resp.status_code == 401


@pytest.mark.api
def test_deactivated_device_refused(client, device, headers, stores):
    deactivate_device(stores, device.id)
    resp = client.get("/api/v1/device/recipes", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"


@pytest.mark.api
def test_recipe_and_ingredient_pull(client, headers, published_recipe, ingredient):
    resp = client.get("/api/v1/device/recipes", headers=headers)
    assert resp.status_code == 200
    recipes = resp.json()
    assert [recipe["id"] for recipe in recipes] == [published_recipe.id]
    assert recipes[0]["steps"][0]["action"] == "add_solid"

    resp = client.get("/api/v1/device/ingredients", headers=headers)
    assert [item["id"] for item in resp.json()] == [ingredient.id]


@pytest.mark.api
def test_order_pull_and_status_report(
    client, device, headers, stores, site, published_recipe
):
    first, second = _orders(stores, site, published_recipe, quantity=2)

    resp = client.get("/api/v1/device/orders", headers=headers)
    assert [order["id"] for order in resp.json()] == [first.id, second.id]

    report = {
        "status": "in_progress",
        "device_order_id": "dev-7",
        "tasks": [
            {
                "task_id": "t1",
                "step_number": 1,
                "action": "add_solid",
                "status": "in_progress",
                "parameters": {"quantity": 200},
                "subtasks": [
                    {
                        "parent_task_id": "t1",
                        "parent_action": "add_solid",
                        "action": "acquire_pot_from_staging",
                    }
                ],
            }
        ],
        "equipment": {"kitchen_name": "k1", "pots": ["pot-2"], "heater_id": "h1"},
    }
    resp = client.post(
        f"/api/v1/device/orders/{first.id}/status", json=report, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json() == {"updated": True}

    stored = stores.orders.get_order(first.id)
    assert stored.status == "in_progress"
    assert stored.sync_status == "synced"
    assert stored.tasks[0].parameters == '{"quantity": 200}'
    assert stored.tasks[0].subtasks[0].action == "acquire_pot_from_staging"
    assert stored.equipment.pots == ("pot-2",)

    resp = client.post(
        "/api/v1/device/heartbeat",
        json={"device_id": device.id, "status": "online", "active_orders": []},
        headers=headers,
    )
    assert resp.json()["orders_reset"] == 1
    assert stores.orders.get_order(first.id).status == "pending"

    cancel_order(stores, second.id)
    resp = client.post(
        f"/api/v1/device/orders/{second.id}/status",
        json={"status": "accepted"},
        headers=headers,
    )
    assert resp.status_code == 409

    resp = client.post(
        f"/api/v1/device/orders/{first.id}/status",
        json={"status": "teleported"},
        headers=headers,
    )
    assert resp.status_code == 400


@pytest.mark.api
def test_device_local_order(client, headers, stores, published_recipe):
    payload = {
        "device_order_id": "walkin-3",
        "recipe_id": published_recipe.id,
        "status": "in_progress",
        "customer_name": "Walk-in",
    }
    resp = client.post("/api/v1/device/orders", json=payload, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["order_reference"] == "LOCAL-walkin-3"
    assert body["sync_status"] == "synced"

    payload["status"] = "completed"
    resp = client.post("/api/v1/device/orders", json=payload, headers=headers)
    assert resp.json()["id"] == body["id"]
    assert stores.orders.get_order(body["id"]).status == "completed"
