from galley_core.tenancy.scope import resolve_site_scope
from galley_core.tenancy.store import (
    get_site,
    load_sites,
    register_site,
    save_sites,
    site_registry_uri,
)
from galley_core.tenancy.types import SiteRecord

__all__ = [
    "SiteRecord",
    "get_site",
    "load_sites",
    "register_site",
    "resolve_site_scope",
    "save_sites",
    "site_registry_uri",
]
