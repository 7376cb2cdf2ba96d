from __future__ import annotations

import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Iterable

from galley_core.errors import ConflictError
from galley_core.storage import collection_lock, control_uri, load_items, save_items
from galley_core.tenancy.types import SiteRecord


def site_registry_uri(base_uri: str) -> str:
    return control_uri(base_uri, "sites.json")


def load_sites(base_uri: str) -> list[SiteRecord]:
    return [_site_from_dict(item) for item in load_items(site_registry_uri(base_uri))]


def save_sites(base_uri: str, sites: Iterable[SiteRecord]) -> str:
    return save_items(site_registry_uri(base_uri), [asdict(site) for site in sites])


def register_site(
    *,
    base_uri: str,
    tenant_id: str,
    region_id: str,
    name: str,
    status: str = "active",
    site_id: str | None = None,
) -> SiteRecord:
    now = datetime.now(timezone.utc).isoformat()
    site = SiteRecord(
        id=site_id or str(uuid.uuid4()),
        tenant_id=tenant_id,
        region_id=region_id,
        name=name,
        status=status,
        created_at=now,
        updated_at=now,
    )
    with collection_lock(site_registry_uri(base_uri)):
        sites = load_sites(base_uri)
        if any(existing.id == site.id for existing in sites):
            raise ConflictError(f"Site already exists: {site.id}")
        sites.append(site)
        save_sites(base_uri, sites)
    return site


def get_site(base_uri: str, site_id: str) -> SiteRecord | None:
    return next((site for site in load_sites(base_uri) if site.id == site_id), None)


def _site_from_dict(payload: dict[str, object]) -> SiteRecord:
    return SiteRecord(
        id=str(payload.get("id")),
        tenant_id=str(payload.get("tenant_id", "")),
        region_id=str(payload.get("region_id", "")),
        name=str(payload.get("name", "")),
        status=str(payload.get("status", "active")),
        created_at=str(payload.get("created_at", "")),
        updated_at=str(payload.get("updated_at", "")),
    )
