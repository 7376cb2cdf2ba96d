from __future__ import annotations

from dataclasses import asdict, dataclass

from galley_core.config import Config


@dataclass(frozen=True)
class ProvisioningBundle:
    device_id: str
    tenant_id: str
    site_id: str
    endpoint: str
    certificate: str
    private_key: str
    ca_certificate: str
    shared_secret: str
    recipe_poll_seconds: int
    order_poll_seconds: int

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def build_bundle(
    *,
    config: Config,
    device_id: str,
    tenant_id: str,
    site_id: str,
    certificate_pem: str,
    private_key_pem: str,
    ca_certificate_pem: str,
) -> ProvisioningBundle:
    return ProvisioningBundle(
        device_id=device_id,
        tenant_id=tenant_id,
        site_id=site_id,
        endpoint=config.api_base_url(),
        certificate=certificate_pem,
        private_key=private_key_pem,
        ca_certificate=ca_certificate_pem,
        shared_secret=config.device_token_secret,
        recipe_poll_seconds=config.recipe_poll_seconds,
        order_poll_seconds=config.order_poll_seconds,
    )


def bundle_url(config: Config, device_id: str) -> str:
    return f"{config.api_base_url()}/devices/{device_id}/provisioning-bundle"


def bundle_filename(device_id: str) -> str:
    return f"device-provisioning-{device_id}.json"
