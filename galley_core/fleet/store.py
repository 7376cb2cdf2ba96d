from __future__ import annotations

import uuid
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Iterable

from galley_core.errors import ConflictError, NotFoundError
from galley_core.fleet.types import DeviceRecord, HeartbeatRecord
from galley_core.storage import collection_lock, control_uri, load_items, save_items
from galley_core.storage.coerce import (
    coerce_int,
    coerce_mapping,
    coerce_optional_str,
    coerce_str_tuple,
)
from galley_core.timestamps import parse_timestamp


def device_registry_uri(base_uri: str) -> str:
    return control_uri(base_uri, "devices.json")


def heartbeat_log_uri(base_uri: str) -> str:
    return control_uri(base_uri, "heartbeats.json")


def load_devices(base_uri: str) -> list[DeviceRecord]:
    return [
        _device_from_dict(item) for item in load_items(device_registry_uri(base_uri))
    ]


def save_devices(base_uri: str, devices: Iterable[DeviceRecord]) -> str:
    return save_items(
        device_registry_uri(base_uri),
        [asdict(device) for device in devices],
    )


def insert_device(base_uri: str, device: DeviceRecord) -> DeviceRecord:
    with collection_lock(device_registry_uri(base_uri)):
        devices = load_devices(base_uri)
        if any(existing.site_id == device.site_id for existing in devices):
            raise ConflictError(f"Site already has a device: {device.site_id}")
        devices.append(device)
        save_devices(base_uri, devices)
    return device


def update_device(base_uri: str, device: DeviceRecord) -> DeviceRecord:
    with collection_lock(device_registry_uri(base_uri)):
        devices = load_devices(base_uri)
        updated: list[DeviceRecord] = []
        found = False
        for existing in devices:
            if existing.id == device.id:
                updated.append(device)
                found = True
            else:
                updated.append(existing)
        if not found:
            raise NotFoundError(f"Device not found: {device.id}")
        save_devices(base_uri, updated)
    return device


def delete_device(base_uri: str, device_id: str) -> None:
    with collection_lock(device_registry_uri(base_uri)):
        devices = load_devices(base_uri)
        remaining = [device for device in devices if device.id != device_id]
        if len(remaining) == len(devices):
            raise NotFoundError(f"Device not found: {device_id}")
        save_devices(base_uri, remaining)


def get_device(base_uri: str, device_id: str) -> DeviceRecord | None:
    return next(
        (device for device in load_devices(base_uri) if device.id == device_id),
        None,
    )


def find_device_by_serial(base_uri: str, serial: str) -> DeviceRecord | None:
    if not serial:
        return None
    return next(
        (
            device
            for device in load_devices(base_uri)
            if device.certificate_serial == serial
        ),
        None,
    )


def append_heartbeat(
    base_uri: str,
    heartbeat: HeartbeatRecord,
    *,
    now: datetime | None = None,
) -> HeartbeatRecord:
    now = now or datetime.now(timezone.utc)
    uri = heartbeat_log_uri(base_uri)
    with collection_lock(uri):
        records = [
            record
            for record in _load_heartbeat_records(base_uri)
            if not _expired(record, now)
        ]
        records.append(heartbeat)
        save_items(uri, [asdict(record) for record in records])
    return heartbeat


def load_heartbeats(
    base_uri: str,
    *,
    device_id: str | None = None,
    now: datetime | None = None,
) -> list[HeartbeatRecord]:
    now = now or datetime.now(timezone.utc)
    return [
        record
        for record in _load_heartbeat_records(base_uri)
        if not _expired(record, now)
        and (device_id is None or record.device_id == device_id)
    ]


def new_heartbeat(
    *,
    device_id: str,
    status: str,
    version: str | None,
    metrics: dict[str, object] | None,
    active_order_count: int,
    retention_days: int,
    received_at: datetime | None = None,
) -> HeartbeatRecord:
    received_at = received_at or datetime.now(timezone.utc)
    return HeartbeatRecord(
        id=str(uuid.uuid4()),
        device_id=device_id,
        received_at=received_at.isoformat(),
        status=status,
        version=version,
        metrics=metrics,
        active_order_count=active_order_count,
        expires_at=(received_at + timedelta(days=retention_days)).isoformat(),
    )


def _expired(record: HeartbeatRecord, now: datetime) -> bool:
    expires_at = parse_timestamp(record.expires_at)
    return expires_at is not None and expires_at <= now


def _load_heartbeat_records(base_uri: str) -> list[HeartbeatRecord]:
    return [
        _heartbeat_from_dict(item) for item in load_items(heartbeat_log_uri(base_uri))
    ]


def _device_from_dict(payload: dict[str, object]) -> DeviceRecord:
    return DeviceRecord(
        id=str(payload.get("id")),
        tenant_id=str(payload.get("tenant_id", "")),
        region_id=str(payload.get("region_id", "")),
        site_id=str(payload.get("site_id", "")),
        name=str(payload.get("name", "")),
        version=coerce_optional_str(payload.get("version")),
        status=str(payload.get("status", "pending")),
        last_heartbeat=coerce_optional_str(payload.get("last_heartbeat")),
        kitchens=coerce_str_tuple(payload.get("kitchens")),
        certificate_pem=coerce_optional_str(payload.get("certificate_pem")),
        private_key_pem=coerce_optional_str(payload.get("private_key_pem")),
        certificate_serial=coerce_optional_str(payload.get("certificate_serial")),
        certificate_expiry=coerce_optional_str(payload.get("certificate_expiry")),
        registered_at=coerce_optional_str(payload.get("registered_at")),
        created_at=str(payload.get("created_at", "")),
        updated_at=str(payload.get("updated_at", "")),
    )


def _heartbeat_from_dict(payload: dict[str, object]) -> HeartbeatRecord:
    return HeartbeatRecord(
        id=str(payload.get("id")),
        device_id=str(payload.get("device_id", "")),
        received_at=str(payload.get("received_at", "")),
        status=str(payload.get("status", "")),
        version=coerce_optional_str(payload.get("version")),
        metrics=coerce_mapping(payload.get("metrics")),
        active_order_count=coerce_int(payload.get("active_order_count")),
        expires_at=str(payload.get("expires_at", "")),
    )
