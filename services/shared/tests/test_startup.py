import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from shared.startup import ensure_schema, store_lifespan_factory


def _unavailable():
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_ensure_schema_retries_until_database_answers():
    metadata = MagicMock()
    metadata.create_all.side_effect = [_unavailable(), _unavailable(), None]

    asyncio.run(ensure_schema(service_name="salon", metadata=metadata, engine="engine", wait_seconds=0))

    assert metadata.create_all.call_count == 3
    metadata.create_all.assert_called_with(bind="engine")


def test_ensure_schema_gives_up_after_retries():
    metadata = MagicMock()
    metadata.create_all.side_effect = _unavailable()

    with pytest.raises(OperationalError):
        asyncio.run(
            ensure_schema(service_name="salon", metadata=metadata, engine="engine", retries=2, wait_seconds=0)
        )

    assert metadata.create_all.call_count == 2


def test_lifespan_creates_schema_without_listener_for_sql_store():
    metadata = MagicMock()
    app = FastAPI(lifespan=store_lifespan_factory(service_name="salon", metadata=metadata, engine="engine"))
    app.state.store = MagicMock()

    with TestClient(app):
        metadata.create_all.assert_called_once_with(bind="engine")

    app.state.store.listen.assert_not_called()
