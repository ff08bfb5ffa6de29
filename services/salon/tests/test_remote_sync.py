"""Tests for pushing the tenant directory to a remote database."""

import json

import httpx
import pytest

from app.services.remote_sync import RemoteSyncClient, tenant_row
from app.services.tenant_directory import TenantDirectory


class RecordingTransport:
    def __init__(self, status_code=201):
        self.requests = []
        self.status_code = status_code

    def __call__(self, request):
        self.requests.append(request)
        if request.method == "GET":
            return httpx.Response(self.status_code, json=[{"id": "t1"}])
        return httpx.Response(self.status_code)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def remote(transport):
    return RemoteSyncClient(
        "https://db.example.com/rest/v1/",
        "anon-key",
        client=httpx.Client(transport=httpx.MockTransport(transport)),
    )


class TestRemoteSyncClient:
    def test_from_env_without_url(self, monkeypatch):
        monkeypatch.delenv("REMOTE_SYNC_URL", raising=False)

        assert RemoteSyncClient.from_env() is None

    def test_sync_upserts_owners_then_tenants(self, remote, transport, owner, tenant):
        result = remote.sync_tenants([tenant], [owner])

        assert result.success
        owners_request, tenants_request = transport.requests
        assert owners_request.url.path == "/rest/v1/tenant_owners"
        assert tenants_request.url.path == "/rest/v1/tenants"
        assert tenants_request.url.params["on_conflict"] == "id"
        assert tenants_request.headers["Prefer"] == "resolution=merge-duplicates"
        assert tenants_request.headers["apikey"] == "anon-key"
        assert tenants_request.headers["Authorization"] == "Bearer anon-key"
        [row] = json.loads(tenants_request.content)
        assert row == json.loads(json.dumps(tenant_row(tenant)))
        assert row["slug"] == "bella-vita"
        assert row["timezone"] == "America/Tijuana"

    def test_http_errors_become_results(self, owner, tenant):
        remote = RemoteSyncClient(
            "https://db.example.com/rest/v1",
            client=httpx.Client(transport=httpx.MockTransport(RecordingTransport(503))),
        )

        result = remote.sync_tenants([tenant], [owner])

        assert result.success is False
        assert "HTTP 503" in result.message

    def test_network_errors_become_results(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        remote = RemoteSyncClient(
            "https://db.example.com/rest/v1",
            client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

        assert remote.test_connection().success is False

    def test_update_and_delete_filter_by_id(self, remote, transport, tenant):
        assert remote.update_tenant(tenant).success
        assert remote.delete_tenant(tenant.id).success

        patch, delete = transport.requests
        assert (patch.method, patch.url.params["id"]) == ("PATCH", f"eq.{tenant.id}")
        assert (delete.method, delete.url.params["id"]) == ("DELETE", f"eq.{tenant.id}")

    def test_fetch_tenants(self, remote):
        result = remote.fetch_tenants()

        assert result.success
        assert result.data == [{"id": "t1"}]


class TestDirectoryPushesChanges:
    def test_create_update_and_delete_are_pushed(self, store, clock, remote, transport, owner):
        directory = TenantDirectory(store, remote_sync=remote, clock=clock)

        tenant = directory.create_tenant({"name": "Barbería Don Pepe", "slug": "don-pepe"}, owner.id).data
        directory.update_tenant(tenant.id, {"phone": "6641234567"})
        directory.delete_tenant(tenant.id)

        assert [(r.method, r.url.path.rsplit("/", 1)[-1]) for r in transport.requests] == [
            ("POST", "tenant_owners"),
            ("POST", "tenants"),
            ("PATCH", "tenants"),
            ("DELETE", "tenants"),
        ]

    def test_remote_failure_does_not_block_local_changes(self, store, clock, owner):
        remote = RemoteSyncClient(
            "https://db.example.com/rest/v1",
            client=httpx.Client(transport=httpx.MockTransport(RecordingTransport(500))),
        )
        directory = TenantDirectory(store, remote_sync=remote, clock=clock)

        result = directory.create_tenant({"name": "Barbería Don Pepe", "slug": "don-pepe"}, owner.id)

        assert result.success
        assert directory.get_tenant_by_slug("don-pepe") is not None
