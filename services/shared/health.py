"""Liveness and readiness routes.

Readiness covers the database, the key-value store the service reads its
collections from, and Redis when one is configured.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import redis
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine

from .kvstore import KeyValueStore, StorageError

READINESS_CHECK_KEY = "__readiness_check__"


def check_database_health(engine: Optional[Engine]) -> bool:
    """Return True when ``SELECT 1`` succeeds on the engine."""
    if engine is None:
        return False

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception:
        return False


def check_redis_health(redis_client: Optional[redis.Redis]) -> Optional[bool]:
    """Ping Redis.

    Returns:
        True if Redis answered,
        False if Redis is configured but unavailable,
        None if Redis is not configured
    """
    if redis_client is None:
        return None

    try:
        redis_client.ping()
        return True
    except Exception:
        return False


def check_store_health(store: Optional[KeyValueStore]) -> Optional[bool]:
    """Read the readiness key; ``None`` when no store is wired."""
    if store is None:
        return None
    try:
        store.get(READINESS_CHECK_KEY)
        return True
    except StorageError:
        return False


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def create_health_router(
    service_name: str,
    database_engine: Optional[Engine] = None,
    redis_client: Optional[redis.Redis] = None,
    store: Optional[KeyValueStore] = None,
) -> APIRouter:
    """Build a router with /health and /ready.

    Args:
        service_name: Service name reported in the payload
        database_engine: Engine used by the SQL store and schema setup
        redis_client: Redis client (optional)
        store: Key-value store holding the tenant collections (optional)
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", status_code=status.HTTP_200_OK)
    def health():
        """Liveness: always 200 while the process is up."""
        return {
            "status": "ok",
            "service": service_name,
            "timestamp": _now_iso(),
        }

    @router.get("/ready", status_code=status.HTTP_200_OK)
    def ready():
        """Readiness: database required, Redis only when configured."""
        checks = {
            "database": check_database_health(database_engine),
            "redis": check_redis_health(redis_client),
            "storage": check_store_health(store),
        }
        all_healthy = checks["database"] and checks["redis"] is not False and checks["storage"] is not False

        return JSONResponse(
            content={
                "status": "ready" if all_healthy else "not_ready",
                "service": service_name,
                "timestamp": _now_iso(),
                "checks": checks,
            },
            status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return router
