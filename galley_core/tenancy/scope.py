from __future__ import annotations

from typing import TYPE_CHECKING

from galley_core.errors import NotFoundError, ValidationError
from galley_core.tenancy.types import SiteRecord

if TYPE_CHECKING:
    from galley_core.stores import SiteStore


def resolve_site_scope(
    sites: SiteStore,
    *,
    site_id: str,
    tenant_id: str,
    region_id: str | None = None,
) -> SiteRecord:
    """Resolve a site and check it belongs to the tenant (and region)."""
    site = sites.get_site(site_id)
    if site is None:
        raise NotFoundError(f"Site not found: {site_id}")
    if site.tenant_id != tenant_id:
        raise ValidationError("Site does not belong to tenant")
    if region_id is not None and site.region_id != region_id:
        raise ValidationError("Site does not belong to region")
    return site
