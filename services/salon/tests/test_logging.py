import json

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from app.main import app
from shared.logging import tenant_slug_from_path


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _extract_json_logs(caplog):
    entries = []
    for record in caplog.records:
        try:
            entries.append(json.loads(record.getMessage()))
        except (json.JSONDecodeError, TypeError):
            continue
    return entries


def _request_logs(caplog):
    return [entry for entry in _extract_json_logs(caplog) if entry.get("event") == "request_completed"]


def test_request_logs_include_context(client, caplog):
    caplog.set_level("INFO")

    headers = {"X-Request-ID": "req-123", "X-Trace-ID": "trace-abc"}
    response = client.get("/", headers=headers)
    assert response.status_code == status.HTTP_200_OK

    request_logs = _request_logs(caplog)
    assert request_logs

    log_entry = request_logs[-1]
    assert log_entry["request_id"] == "req-123"
    assert log_entry["trace_id"] == "trace-abc"
    assert log_entry["path"] == "/"
    assert log_entry["method"] == "GET"
    assert log_entry["status_code"] == 200
    assert log_entry["tenant_slug"] is None
    assert response.headers["X-Request-ID"] == "req-123"


def test_tenant_routes_log_the_slug(client, caplog):
    caplog.set_level("INFO")

    response = client.get("/no-such-salon/services")
    assert response.status_code == status.HTTP_404_NOT_FOUND

    log_entry = _request_logs(caplog)[-1]
    assert log_entry["tenant_slug"] == "no-such-salon"
    assert log_entry["status_code"] == 404
    # trace id falls back to the generated request id
    assert log_entry["trace_id"] == log_entry["request_id"]


def test_tenant_slug_from_path():
    assert tenant_slug_from_path("/bella-vita/services") == "bella-vita"
    assert tenant_slug_from_path("/health", reserved={"health"}) is None
    assert tenant_slug_from_path("/") is None
