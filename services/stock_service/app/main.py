from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, FastAPI

from services.common import (
    DEFAULT_APP_NAME,
    ServiceSettings,
    build_app,
    configure_logging,
    create_schema,
    dispose_engines,
    get_session_factory,
    get_settings,
    resolve_database_url,
)

from .api.health import router as health_router
from .api.inventory import router as inventory_router
from .api.items import router as items_router
from .api.orders import router as orders_router
from .exception_handlers import setup_exception_handlers
from .locking import ItemLockRegistry
from .models import Base

SERVICE_NAME = "Stock Service"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./stock_service.db"
API_PREFIX = "/api"


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """Create the Stock Service FastAPI application."""

    resolved_settings = settings or ServiceSettings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database_url = resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.session_factory = get_session_factory(database_url, echo=resolved_settings.database_echo)
        app.state.lock_registry = ItemLockRegistry(enabled=resolved_settings.serialize_stock_mutations)
        if resolved_settings.auto_create_schema:
            await create_schema(database_url, Base.metadata)
        try:
            yield
        finally:
            app.state.session_factory = None
            app.state.lock_registry = None
            await dispose_engines()

    app = build_app(resolved_settings, lifespan=lifespan)
    setup_exception_handlers(app)

    api = APIRouter(prefix=API_PREFIX)
    api.include_router(items_router)
    api.include_router(inventory_router)
    api.include_router(orders_router)
    app.include_router(health_router)
    app.include_router(api)
    return app


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""

    settings = get_settings()
    uvicorn.run(
        "services.stock_service.app.main:app",
        host=settings.service_host,
        port=settings.service_port,
        log_level=settings.log_level.lower(),
    )


app = create_app()


if __name__ == "__main__":
    run()
