import logging
import os
from html import escape

import redis
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from fastapi.responses import HTMLResponse

from app.context import SalonContextFactory
from app.core.database import Base, SessionLocal, engine
from app.routers import appointments, catalog, directory, rewards, salon, staff
from app.services.notifications import WebhookNotifier
from app.services.remote_sync import RemoteSyncClient
from app.services.tenant_directory import RESERVED_SLUGS, TenantDirectory
from shared import (
    RedisKeyValueStore,
    SqlKeyValueStore,
    create_health_router,
    load_service_config,
    store_lifespan_factory,
)
from shared.logging import RequestContextLogMiddleware, configure_logging

_CONFIG = load_service_config("salon")

service_logger = configure_logging(_CONFIG.name, level=_CONFIG.log_level)
logger = logging.getLogger(__name__)

tags_metadata = [
    {"name": "Directory", "description": "Listing and registration of businesses."},
    {"name": "Salon", "description": "Public profile, login, settings and themes of one business."},
    {"name": "Catalog", "description": "Services and products with price history."},
    {"name": "Staff", "description": "Staff roster; removals keep appointments consistent."},
    {"name": "Appointments", "description": "Online booking and appointment status."},
    {"name": "Rewards", "description": "Spend-based reward coupons."},
]


def _build_store():
    if _CONFIG.redis.url:
        logger.info("Using Redis key-value store (channel '%s')", _CONFIG.redis.channel)
        return RedisKeyValueStore.from_url(_CONFIG.redis.url, _CONFIG.redis.channel)
    return SqlKeyValueStore(SessionLocal)


def _build_notifier():
    url = os.getenv("NOTIFY_WEBHOOK_URL")
    if not url:
        return None
    return WebhookNotifier(url, os.getenv("NOTIFY_WEBHOOK_SECRET"))


_STORE = _build_store()

app = FastAPI(
    title="Salon Service",
    version="0.1.0",
    description="Multi-tenant booking back office for beauty salons, barbershops and spas.",
    openapi_tags=tags_metadata,
    root_path=_CONFIG.root_path,
    lifespan=store_lifespan_factory(service_name="salon", metadata=Base.metadata, engine=engine),
    docs_url=None,
    redoc_url="/redoc",
)

app.state.config = _CONFIG
app.state.store = _STORE
app.state.directory = TenantDirectory(_STORE, remote_sync=RemoteSyncClient.from_env())
app.state.contexts = SalonContextFactory(_STORE, notifier=_build_notifier())

app.add_middleware(RequestContextLogMiddleware, logger=service_logger, reserved_paths=RESERVED_SLUGS)


def custom_openapi_schema():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    schema["openapi"] = "3.0.3"
    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = custom_openapi_schema


# Swagger UI that resolves openapi.json relative to the mount path
@app.get("/docs", include_in_schema=False)
async def custom_swagger_ui_html():
    return HTMLResponse(f"""
    <!DOCTYPE html>
    <html>
    <head>
        <link type="text/css" rel="stylesheet" href="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui.css">
        <title>{escape(app.title)} - Swagger UI</title>
    </head>
    <body>
        <div id="swagger-ui"></div>
        <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui-bundle.js"></script>
        <script>
        const ui = SwaggerUIBundle({{
            url: window.location.pathname.replace(/\\/docs$/, '') + '/openapi.json',
            dom_id: '#swagger-ui',
            presets: [
                SwaggerUIBundle.presets.apis,
                SwaggerUIBundle.SwaggerUIStandalonePreset
            ],
            layout: "BaseLayout",
            deepLinking: true
        }})
        </script>
    </body>
    </html>
    """)


# Health check endpoints
health_router = create_health_router(
    service_name="salon",
    database_engine=engine,
    redis_client=redis.Redis.from_url(_CONFIG.redis.url) if _CONFIG.redis.url else None,
    store=_STORE,
)
app.include_router(health_router)

# fixed paths first; everything else is /{slug}
app.include_router(directory.router)
app.include_router(salon.router)
app.include_router(catalog.router)
app.include_router(staff.router)
app.include_router(appointments.router)
app.include_router(rewards.router)
