"""Push of the tenant directory to a remote PostgREST-style database.

Optional: without ``REMOTE_SYNC_URL`` nothing is pushed. Failures are logged
and returned as a :class:`SyncResult`; they never interrupt the caller.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.models.tenant import Tenant, TenantOwner

logger = logging.getLogger(__name__)

TENANTS_TABLE = "tenants"
OWNERS_TABLE = "tenant_owners"


@dataclass(frozen=True)
class SyncResult:
    success: bool
    message: str
    data: Optional[Any] = None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def tenant_row(tenant: Tenant) -> Dict[str, Any]:
    return {
        "id": tenant.id,
        "name": tenant.name,
        "slug": tenant.slug,
        "business_type": tenant.business_type,
        "logo": tenant.logo,
        "primary_color": tenant.primary_color,
        "secondary_color": tenant.secondary_color,
        "address": tenant.address,
        "phone": tenant.phone,
        "email": tenant.email,
        "website": tenant.website,
        "description": tenant.description,
        "is_active": tenant.is_active,
        "created_at": _iso(tenant.created_at),
        "updated_at": _iso(tenant.updated_at),
        "owner_id": tenant.owner_id,
        "subscription_plan": tenant.subscription.plan,
        "subscription_status": tenant.subscription.status,
        "subscription_expires_at": _iso(tenant.subscription.expires_at),
        "allow_online_booking": tenant.settings.allow_online_booking,
        "require_approval": tenant.settings.require_approval,
        "timezone": tenant.settings.time_zone,
        "currency": tenant.settings.currency,
        "language": tenant.settings.language,
    }


def owner_row(owner: TenantOwner) -> Dict[str, Any]:
    return {
        "id": owner.id,
        "email": owner.email,
        "first_name": owner.first_name,
        "last_name": owner.last_name,
        "phone": owner.phone,
        "password_hash": owner.password_hash,
        "is_email_verified": owner.is_email_verified,
        "created_at": _iso(owner.created_at),
        "last_login": _iso(owner.last_login),
    }


class RemoteSyncClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._base_url = base_url.rstrip("/")
        self._headers = headers
        self._client = client or httpx.Client()
        self._timeout = timeout

    @classmethod
    def from_env(cls) -> Optional["RemoteSyncClient"]:
        url = os.getenv("REMOTE_SYNC_URL")
        if not url:
            return None
        return cls(url, os.getenv("REMOTE_SYNC_KEY"))

    def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        response = self._client.request(
            method,
            f"{self._base_url}/{table}",
            headers={**self._headers, **kwargs.pop("headers", {})},
            timeout=self._timeout,
            **kwargs,
        )
        response.raise_for_status()
        return response

    def _upsert(self, table: str, rows: List[Dict[str, Any]]) -> httpx.Response:
        return self._request(
            "POST",
            table,
            params={"on_conflict": "id"},
            headers={"Prefer": "resolution=merge-duplicates"},
            json=rows,
        )

    def _guard(self, action: str, func) -> SyncResult:
        try:
            return func()
        except httpx.HTTPStatusError as exc:
            logger.warning("Remote sync %s failed: HTTP %s", action, exc.response.status_code)
            return SyncResult(False, f"Error during {action}: HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.warning("Remote sync %s failed: %s", action, exc)
            return SyncResult(False, f"Error during {action}: {exc}")

    def test_connection(self) -> SyncResult:
        def run():
            self._request("GET", TENANTS_TABLE, params={"select": "id", "limit": 1})
            return SyncResult(True, "Connection established")

        return self._guard("connection test", run)

    def sync_tenants(self, tenants: Iterable[Tenant], owners: Iterable[TenantOwner]) -> SyncResult:
        owners = list(owners)
        tenants = list(tenants)

        def run():
            if owners:
                self._upsert(OWNERS_TABLE, [owner_row(owner) for owner in owners])
            if tenants:
                self._upsert(TENANTS_TABLE, [tenant_row(tenant) for tenant in tenants])
            logger.info("Synced %d owners and %d tenants", len(owners), len(tenants))
            return SyncResult(True, f"Synced {len(tenants)} tenants and {len(owners)} owners")

        return self._guard("tenant sync", run)

    def create_tenant(self, tenant: Tenant, owner: TenantOwner) -> SyncResult:
        return self.sync_tenants([tenant], [owner])

    def update_tenant(self, tenant: Tenant) -> SyncResult:
        def run():
            self._request("PATCH", TENANTS_TABLE, params={"id": f"eq.{tenant.id}"}, json=tenant_row(tenant))
            return SyncResult(True, f"Tenant {tenant.slug} updated")

        return self._guard("tenant update", run)

    def delete_tenant(self, tenant_id: str) -> SyncResult:
        def run():
            self._request("DELETE", TENANTS_TABLE, params={"id": f"eq.{tenant_id}"})
            return SyncResult(True, f"Tenant {tenant_id} deleted")

        return self._guard("tenant delete", run)

    def fetch_tenants(self) -> SyncResult:
        def run():
            response = self._request("GET", TENANTS_TABLE, params={"select": "*"})
            return SyncResult(True, "Tenants fetched", data=response.json())

        return self._guard("tenant fetch", run)
