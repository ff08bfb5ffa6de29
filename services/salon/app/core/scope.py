"""Tenant scoping of storage keys.

``TenantScope.scoped_key`` is the only way repositories derive a storage key.
A scope without tenant is the legacy single-tenant mode and leaves keys
untouched, so data written before multi-tenancy stays reachable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

TENANT_KEY_PREFIX = "tenant-"


@dataclass(frozen=True)
class TenantScope:
    tenant_id: Optional[str] = None

    @classmethod
    def legacy(cls) -> "TenantScope":
        return cls(None)

    @classmethod
    def for_tenant(cls, tenant) -> "TenantScope":
        return cls(tenant.id if tenant is not None else None)

    @property
    def is_legacy(self) -> bool:
        return self.tenant_id is None

    @property
    def prefix(self) -> str:
        if self.tenant_id is None:
            return ""
        return tenant_key_prefix(self.tenant_id)

    def scoped_key(self, base_key: str) -> str:
        return f"{self.prefix}{base_key}"


def tenant_key_prefix(tenant_id: str) -> str:
    return f"{TENANT_KEY_PREFIX}{tenant_id}-"
