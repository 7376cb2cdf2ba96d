from galley_core.fleet.liveness import HeartbeatResult, record_heartbeat
from galley_core.fleet.registry import (
    activate_device,
    create_device,
    deactivate_device,
    delete_device,
    get_device,
    get_device_by_serial,
    list_devices,
    normalize_status,
    offline_devices,
    provision_device,
    regenerate_certificate,
    register_device,
    revoke_certificate,
    set_device_status,
    update_device,
)
from galley_core.fleet.types import DeviceRecord, HeartbeatRecord

__all__ = [
    "DeviceRecord",
    "HeartbeatRecord",
    "HeartbeatResult",
    "activate_device",
    "create_device",
    "deactivate_device",
    "delete_device",
    "get_device",
    "get_device_by_serial",
    "list_devices",
    "normalize_status",
    "offline_devices",
    "provision_device",
    "record_heartbeat",
    "regenerate_certificate",
    "register_device",
    "revoke_certificate",
    "set_device_status",
    "update_device",
]
