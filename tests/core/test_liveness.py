from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from galley_core.errors import NotFoundError, ValidationError
from galley_core.fleet import create_device, record_heartbeat, register_device
from galley_core.fleet.store import new_heartbeat
from galley_core.orders import (
    BatchItem,
    DeviceReport,
    apply_device_report,
    create_batch,
    reset_orphaned_orders,
)
from galley_core.orders.store import order_registry_uri
from galley_core.storage import collection_lock


@pytest.fixture
def online_device(stores, site):
    device = create_device(
        stores,
        tenant_id=site.tenant_id,
        region_id=site.region_id,
        site_id=site.id,
        name="Line 1",
    )
    return register_device(stores, device.id, version="1.0.0")


def _in_progress_orders(stores, site, device, recipe, count):
    orders = create_batch(
        stores,
        tenant_id=site.tenant_id,
        region_id=site.region_id,
        site_id=site.id,
        order_reference="HB",
        items=[BatchItem(recipe_id=recipe.id, quantity=count)],
    )
    return [
        apply_device_report(
            stores, order.id, DeviceReport(status="in_progress"), device=device
        )
        for order in orders
    ]


@pytest.mark.core
def test_heartbeat_updates_device_and_log(stores, online_device):
    result = record_heartbeat(
        stores,
        online_device.id,
        status="online",
        version="1.0.1",
        metrics={"cpu": 0.4},
    )
    assert result.orders_reset == 0
    assert result.device.version == "1.0.1"
    assert result.device.last_heartbeat >= online_device.last_heartbeat

    heartbeats = stores.fleet.load_heartbeats(device_id=online_device.id)
    assert len(heartbeats) == 1
    assert heartbeats[0].metrics == {"cpu": 0.4}
    assert heartbeats[0].active_order_count == 0


@pytest.mark.core
def test_heartbeat_registered_alias_and_invalid_status(stores, online_device):
    result = record_heartbeat(stores, online_device.id, status="registered")
    assert result.device.status == "online"
    with pytest.raises(ValidationError):
        record_heartbeat(stores, online_device.id, status="provisioned")
    with pytest.raises(NotFoundError):
        record_heartbeat(stores, "missing", status="online")


@pytest.mark.core
def test_heartbeat_resets_orders_missing_from_device(
    stores, site, online_device, published_recipe
):
    first, second, third = _in_progress_orders(
        stores, site, online_device, published_recipe, 3
    )

    result = record_heartbeat(
        stores,
        online_device.id,
        status="online",
        active_orders=[first.id, second.id],
    )
    assert result.orders_reset == 1

    reset = stores.orders.get_order(third.id)
    assert reset.status == "pending"
    assert reset.device_order_id is None
    assert reset.sync_status == "pending"
    assert reset.synced_at is None
    assert stores.orders.get_order(first.id).status == "in_progress"

    again = record_heartbeat(
        stores,
        online_device.id,
        status="online",
        active_orders=[first.id, second.id],
    )
    assert again.orders_reset == 0


@pytest.mark.core
def test_heartbeat_resets_only_undeclared_active_orders(
    stores, site, online_device, published_recipe
):
    accepted, running, waiting = create_batch(
        stores,
        tenant_id=site.tenant_id,
        region_id=site.region_id,
        site_id=site.id,
        order_reference="ABC",
        items=[BatchItem(recipe_id=published_recipe.id, quantity=3)],
    )
    accepted = apply_device_report(
        stores,
        accepted.id,
        DeviceReport(status="accepted", device_order_id="dev-a"),
        device=online_device,
    )
    apply_device_report(
        stores,
        running.id,
        DeviceReport(status="in_progress", device_order_id="dev-b"),
        device=online_device,
    )

    result = record_heartbeat(
        stores, online_device.id, status="online", active_orders=[accepted.id]
    )
    assert result.orders_reset == 1

    reset = stores.orders.get_order(running.id)
    assert reset.status == "pending"
    assert reset.device_order_id is None
    kept = stores.orders.get_order(accepted.id)
    assert kept.status == "accepted"
    assert kept.device_order_id == "dev-a"
    assert kept.updated_at == accepted.updated_at
    untouched = stores.orders.get_order(waiting.id)
    assert untouched.status == "pending"
    assert untouched.updated_at == waiting.updated_at


@pytest.mark.core
def test_reconciliation_rereads_orders_under_lock(
    stores, tmp_path, site, online_device, published_recipe
):
    (order,) = _in_progress_orders(stores, site, online_device, published_recipe, 1)
    results = []
    worker = threading.Thread(
        target=lambda: results.append(reset_orphaned_orders(stores, site.id, []))
    )
    with collection_lock(order_registry_uri(tmp_path.as_posix())):
        worker.start()
        apply_device_report(
            stores, order.id, DeviceReport(status="completed"), device=online_device
        )
    worker.join(timeout=10)

    assert results == [0]
    completed = stores.orders.get_order(order.id)
    assert completed.status == "completed"
    assert completed.sync_status == "synced"


@pytest.mark.core
def test_heartbeat_matches_device_local_ids(stores, site, online_device, published_recipe):
    (order,) = _in_progress_orders(stores, site, online_device, published_recipe, 1)
    apply_device_report(
        stores,
        order.id,
        DeviceReport(status="in_progress", device_order_id="local-9"),
        device=online_device,
    )
    result = record_heartbeat(
        stores, online_device.id, status="online", active_orders=["local-9"]
    )
    assert result.orders_reset == 0
    assert stores.orders.get_order(order.id).status == "in_progress"


@pytest.mark.core
def test_heartbeat_survives_reconciliation_failure(
    stores, monkeypatch, site, online_device, published_recipe
):
    _in_progress_orders(stores, site, online_device, published_recipe, 1)

    def broken(*_args, **_kwargs):
        raise RuntimeError("disk gone")

    monkeypatch.setattr(stores.orders, "reset_orphaned_orders", broken)
    result = record_heartbeat(stores, online_device.id, status="online", active_orders=[])
    assert result.orders_reset == 0
    assert result.device.status == "online"


@pytest.mark.core
def test_heartbeat_retention(stores, online_device):
    old = datetime.now(timezone.utc) - timedelta(days=8)
    stores.fleet.append_heartbeat(
        new_heartbeat(
            device_id=online_device.id,
            status="online",
            version=None,
            metrics=None,
            active_order_count=0,
            retention_days=7,
            received_at=old,
        ),
        now=old,
    )
    assert stores.fleet.load_heartbeats(device_id=online_device.id) == []

    record_heartbeat(stores, online_device.id, status="online")
    assert len(stores.fleet.load_heartbeats(device_id=online_device.id)) == 1
