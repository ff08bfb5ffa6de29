"""Async lifespan helpers shared by FastAPI services."""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql.schema import MetaData

from .kvstore import RedisKeyValueStore

logger = logging.getLogger(__name__)


async def ensure_schema(
    *,
    service_name: str,
    metadata: MetaData,
    engine,
    retries: int = 10,
    wait_seconds: float = 2.0,
) -> None:
    """Create tables, retrying while the database is still starting."""
    for attempt in range(retries):
        try:
            await asyncio.to_thread(metadata.create_all, bind=engine)
            return
        except OperationalError as exc:  # pragma: no cover - only triggered when DB is down
            if attempt == retries - 1:
                logger.error("[%s] Database unavailable after %s attempts, giving up.", service_name, retries)
                raise
            logger.warning(
                "[%s] Database unavailable, retrying in %ss (attempt %s): %s",
                service_name,
                wait_seconds,
                attempt + 1,
                exc,
            )
            await asyncio.sleep(wait_seconds)


def store_lifespan_factory(
    *,
    service_name: str,
    metadata: MetaData,
    engine,
    retries: int = 10,
    wait_seconds: float = 2.0,
):
    """Return a lifespan that prepares the schema and, when the app's store is
    Redis-backed, runs its change listener in a daemon thread."""

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        logger.info("Starting %s service...", service_name)
        await ensure_schema(
            service_name=service_name,
            metadata=metadata,
            engine=engine,
            retries=retries,
            wait_seconds=wait_seconds,
        )

        stop_event = threading.Event()
        listener: Optional[threading.Thread] = None
        store = getattr(app.state, "store", None)
        if isinstance(store, RedisKeyValueStore):
            listener = threading.Thread(
                target=store.listen,
                args=(stop_event,),
                name=f"{service_name}-storage-listener",
                daemon=True,
            )
            listener.start()

        yield

        stop_event.set()
        if listener is not None:
            await asyncio.to_thread(listener.join, 5.0)
        logger.info("%s service stopped", service_name)

    return _lifespan
