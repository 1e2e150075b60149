"""Tenant roles, effective tenant resolution and index naming."""

from abc import ABC, abstractmethod
from enum import Enum

from catalog_search.config import Settings
from catalog_search.metadata import ResourceDescription


class TenantRole(str, Enum):
    """Role of a tenant with respect to consortium sharing."""

    STANDALONE = "standalone"
    CENTRAL = "central"
    MEMBER = "member"


def index_name(resource: str, tenant: str) -> str:
    """Physical index name of a resource for a tenant.

    Example:
            >>> index_name("instance", "Diku")
            'instance_diku'
    """
    return f"{resource}_{tenant}".lower()


class TenantProvider(ABC):
    """Resolves consortium membership of tenants."""

    @abstractmethod
    def get_central_tenant(self, tenant: str) -> str | None:
        """Central tenant of the consortium ``tenant`` belongs to, if any."""

    def get_tenant(self, tenant: str) -> str:
        """Tenant whose shared indexes ``tenant`` reads and writes.

        Members resolve to their central tenant, everyone else to themselves.
        """
        central = self.get_central_tenant(tenant)
        return central if central is not None else tenant

    def role(self, tenant: str) -> TenantRole:
        central = self.get_central_tenant(tenant)
        if central is None:
            return TenantRole.STANDALONE
        if central == tenant:
            return TenantRole.CENTRAL
        return TenantRole.MEMBER

    def effective_tenant(self, description: ResourceDescription, tenant: str) -> str:
        """Tenant owning the index of ``description`` for a call made by ``tenant``."""
        if description.consortium_shared:
            return self.get_tenant(tenant)
        return tenant


class StaticTenantProvider(TenantProvider):
    """Tenant provider for a single consortium declared in settings."""

    def __init__(self, central_tenant: str | None = None, member_tenants: list[str] | None = None):
        self._central = central_tenant
        self._members = frozenset(member_tenants or [])

    @classmethod
    def from_settings(cls, settings: Settings) -> "StaticTenantProvider":
        return cls(settings.consortium_central_tenant, settings.consortium_member_tenants)

    def get_central_tenant(self, tenant: str) -> str | None:
        if self._central is None:
            return None
        if tenant == self._central or tenant in self._members:
            return self._central
        return None
