"""Device registry and lifecycle state machine.

pending -> provisioned -> online -> offline/maintenance -> deactivated.
Activation wipes trust material and returns the device to pending.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Iterable

from galley_core.config import Config
from galley_core.errors import ConflictError, NotFoundError, ValidationError
from galley_core.fleet.types import (
    DELETABLE_STATUSES,
    DEVICE_STATUSES,
    OPERATOR_STATUSES,
    STATUS_ALIASES,
    STATUS_DEACTIVATED,
    STATUS_ONLINE,
    STATUS_PENDING,
    STATUS_PROVISIONED,
    DeviceRecord,
)
from galley_core.logging import get_logger
from galley_core.pki.authority import CertificateAuthority
from galley_core.pki.bundle import ProvisioningBundle, build_bundle
from galley_core.storage.coerce import normalize_ids
from galley_core.tenancy.scope import resolve_site_scope
from galley_core.timestamps import parse_timestamp, utc_now

if TYPE_CHECKING:
    from galley_core.stores import StoreBundle

logger = get_logger(__name__)


def normalize_status(value: str, allowed: Iterable[str]) -> str:
    status = STATUS_ALIASES.get(value.strip().lower(), value.strip().lower())
    if status not in allowed:
        raise ValidationError(f"Invalid device status: {value}")
    return status


def create_device(
    stores: StoreBundle,
    *,
    tenant_id: str,
    region_id: str,
    site_id: str,
    name: str,
    kitchens: Iterable[str] | None = None,
) -> DeviceRecord:
    if not name.strip():
        raise ValidationError("Device name is required")
    resolve_site_scope(
        stores.sites,
        site_id=site_id,
        tenant_id=tenant_id,
        region_id=region_id,
    )
    now = utc_now().isoformat()
    device = DeviceRecord(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        region_id=region_id,
        site_id=site_id,
        name=name.strip(),
        version=None,
        status=STATUS_PENDING,
        last_heartbeat=None,
        kitchens=normalize_ids(kitchens),
        certificate_pem=None,
        private_key_pem=None,
        certificate_serial=None,
        certificate_expiry=None,
        registered_at=None,
        created_at=now,
        updated_at=now,
    )
    stores.fleet.insert_device(device)
    logger.info(
        "Device created",
        extra={"device_id": device.id, "site_id": site_id, "tenant_id": tenant_id},
    )
    return device


def get_device(stores: StoreBundle, device_id: str) -> DeviceRecord:
    device = stores.fleet.get_device(device_id)
    if device is None:
        raise NotFoundError(f"Device not found: {device_id}")
    return device


def get_device_by_serial(stores: StoreBundle, serial: str) -> DeviceRecord:
    device = stores.fleet.find_device_by_serial(serial)
    if device is None:
        raise NotFoundError("No device bound to certificate serial")
    return device


def list_devices(
    stores: StoreBundle,
    *,
    tenant_id: str | None = None,
    site_id: str | None = None,
    status: str | None = None,
) -> list[DeviceRecord]:
    devices = stores.fleet.load_devices()
    if tenant_id:
        devices = [device for device in devices if device.tenant_id == tenant_id]
    if site_id:
        devices = [device for device in devices if device.site_id == site_id]
    if status:
        desired = normalize_status(status, DEVICE_STATUSES)
        devices = [device for device in devices if device.status == desired]
    return sorted(devices, key=lambda device: device.created_at)


def update_device(
    stores: StoreBundle,
    device_id: str,
    *,
    name: str | None = None,
    kitchens: Iterable[str] | None = None,
) -> DeviceRecord:
    device = get_device(stores, device_id)
    if name is not None and not name.strip():
        raise ValidationError("Device name is required")
    updated = replace(
        device,
        name=name.strip() if name is not None else device.name,
        kitchens=normalize_ids(kitchens) if kitchens is not None else device.kitchens,
        updated_at=utc_now().isoformat(),
    )
    return stores.fleet.update_device(updated)


def delete_device(stores: StoreBundle, device_id: str) -> None:
    device = get_device(stores, device_id)
    if device.status not in DELETABLE_STATUSES:
        raise ConflictError(
            f"Device must be pending or deactivated to delete (is {device.status})"
        )
    stores.fleet.delete_device(device_id)
    logger.info("Device deleted", extra={"device_id": device_id})


def provision_device(
    stores: StoreBundle,
    device_id: str,
    *,
    authority: CertificateAuthority,
    config: Config,
) -> tuple[DeviceRecord, ProvisioningBundle]:
    """Return the provisioning bundle, issuing a certificate on first use."""
    device = get_device(stores, device_id)
    if not device.has_certificate():
        device = _issue_certificate(
            stores,
            device,
            authority=authority,
            status=_provisioned_status(device),
        )
    certificate_pem = device.certificate_pem or ""
    bundle = build_bundle(
        config=config,
        device_id=device.id,
        tenant_id=device.tenant_id,
        site_id=device.site_id,
        certificate_pem=certificate_pem,
        private_key_pem=device.private_key_pem or "",
        ca_certificate_pem=authority.ca_certificate_pem(certificate_pem),
    )
    return device, bundle


def regenerate_certificate(
    stores: StoreBundle,
    device_id: str,
    *,
    authority: CertificateAuthority,
) -> DeviceRecord:
    device = get_device(stores, device_id)
    return _issue_certificate(
        stores, device, authority=authority, status=_provisioned_status(device)
    )


def revoke_certificate(stores: StoreBundle, device_id: str) -> DeviceRecord:
    device = get_device(stores, device_id)
    updated = replace(
        _without_certificate(device),
        status=STATUS_DEACTIVATED,
        updated_at=utc_now().isoformat(),
    )
    stores.fleet.update_device(updated)
    logger.info("Device deactivated", extra={"device_id": device_id})
    return updated


deactivate_device = revoke_certificate


def activate_device(stores: StoreBundle, device_id: str) -> DeviceRecord:
    device = get_device(stores, device_id)
    updated = replace(
        _without_certificate(device),
        status=STATUS_PENDING,
        registered_at=None,
        updated_at=utc_now().isoformat(),
    )
    stores.fleet.update_device(updated)
    logger.info("Device reset to pending", extra={"device_id": device_id})
    return updated


def register_device(
    stores: StoreBundle,
    device_id: str,
    *,
    version: str | None,
) -> DeviceRecord:
    device = get_device(stores, device_id)
    now = utc_now().isoformat()
    updated = replace(
        device,
        version=version or device.version,
        status=STATUS_ONLINE,
        registered_at=now,
        last_heartbeat=now,
        updated_at=now,
    )
    stores.fleet.update_device(updated)
    logger.info(
        "Device registered",
        extra={"device_id": device_id, "device_version": updated.version},
    )
    return updated


def set_device_status(stores: StoreBundle, device_id: str, status: str) -> DeviceRecord:
    desired = normalize_status(status, OPERATOR_STATUSES)
    device = get_device(stores, device_id)
    updated = replace(device, status=desired, updated_at=utc_now().isoformat())
    return stores.fleet.update_device(updated)


def touch_device(
    stores: StoreBundle,
    device: DeviceRecord,
    *,
    status: str,
    version: str | None,
    received_at: datetime,
) -> DeviceRecord:
    timestamp = received_at.isoformat()
    updated = replace(
        device,
        status=status,
        version=version or device.version,
        last_heartbeat=timestamp,
        updated_at=timestamp,
    )
    return stores.fleet.update_device(updated)


def offline_devices(
    stores: StoreBundle,
    *,
    threshold_seconds: int,
    now: datetime | None = None,
    tenant_id: str | None = None,
) -> list[DeviceRecord]:
    """Online devices whose last heartbeat is missing or older than the threshold."""
    if threshold_seconds <= 0:
        raise ValidationError("threshold_seconds must be positive")
    cutoff = (now or utc_now()) - timedelta(seconds=threshold_seconds)
    results: list[DeviceRecord] = []
    for device in stores.fleet.load_devices():
        if device.status != STATUS_ONLINE:
            continue
        if tenant_id and device.tenant_id != tenant_id:
            continue
        last_heartbeat = parse_timestamp(device.last_heartbeat)
        if last_heartbeat is None or last_heartbeat < cutoff:
            results.append(device)
    return results


def _issue_certificate(
    stores: StoreBundle,
    device: DeviceRecord,
    *,
    authority: CertificateAuthority,
    status: str,
) -> DeviceRecord:
    issued = authority.issue_certificate(device.id)
    updated = replace(
        device,
        certificate_pem=issued.certificate_pem,
        private_key_pem=issued.private_key_pem,
        certificate_serial=issued.serial,
        certificate_expiry=issued.not_after.isoformat(),
        status=status,
        updated_at=utc_now().isoformat(),
    )
    stores.fleet.update_device(updated)
    return updated


def _provisioned_status(device: DeviceRecord) -> str:
    # Issuing never lifts a deactivation; only pending devices advance.
    return STATUS_PROVISIONED if device.status == STATUS_PENDING else device.status


def _without_certificate(device: DeviceRecord) -> DeviceRecord:
    return replace(
        device,
        certificate_pem=None,
        private_key_pem=None,
        certificate_serial=None,
        certificate_expiry=None,
    )
