"""Tenant roles and consortium aggregation."""

from catalog_search.consortium.tenants import (
    StaticTenantProvider,
    TenantProvider,
    TenantRole,
    index_name,
)

__all__ = ["StaticTenantProvider", "TenantProvider", "TenantRole", "index_name"]
