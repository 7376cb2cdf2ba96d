from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SiteRecord:
    id: str
    tenant_id: str
    region_id: str
    name: str
    status: str
    created_at: str
    updated_at: str
