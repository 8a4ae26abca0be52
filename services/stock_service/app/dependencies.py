"""Dependency wiring for the stock service."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.common import ServiceSettings, lifespan_session

from .locking import ItemLockRegistry
from .repository import StockRepository
from .services import InventoryService, ItemService, OrderService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an AsyncSession for the current request lifecycle."""

    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with lifespan_session(session_factory) as session:
        yield session


def get_repository(session: AsyncSession = Depends(get_session)) -> StockRepository:
    """Provide a repository bound to the active session."""

    return StockRepository(session)


def get_app_settings(request: Request) -> ServiceSettings:
    return request.app.state.settings


def get_lock_registry(request: Request) -> ItemLockRegistry:
    return request.app.state.lock_registry


def get_actor(
    x_actor: str | None = Header(default=None, max_length=64),
    settings: ServiceSettings = Depends(get_app_settings),
) -> str:
    """Identity stamped on audit fields; falls back to the configured default actor."""

    actor = (x_actor or "").strip()
    return actor or settings.default_actor


def get_item_service(repository: StockRepository = Depends(get_repository)) -> ItemService:
    return ItemService(repository)


def get_inventory_service(
    repository: StockRepository = Depends(get_repository),
    locks: ItemLockRegistry = Depends(get_lock_registry),
) -> InventoryService:
    return InventoryService(repository, locks=locks)


def get_order_service(
    repository: StockRepository = Depends(get_repository),
    locks: ItemLockRegistry = Depends(get_lock_registry),
) -> OrderService:
    return OrderService(repository, locks=locks)
