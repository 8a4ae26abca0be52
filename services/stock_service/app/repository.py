"""Data access helpers for the stock service."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import Select, event, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from .models import AuditMixin, InventoryMovement, Item, MovementType, Order, RecordStatus

_Row = TypeVar("_Row", bound=AuditMixin)
_PENDING_KEY = "stock_after_commit"


def _run_pending(session: Session) -> None:
    pending = session.info[_PENDING_KEY]
    callbacks = list(pending)
    pending.clear()
    for callback in callbacks:
        callback()


def _drop_pending(session: Session) -> None:
    session.info[_PENDING_KEY].clear()


class StockRepository:
    """Persistence utilities for items, inventory movements and orders."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _page(
        self,
        model: type[_Row],
        *order_by,
        limit: int,
        offset: int,
    ) -> tuple[list[_Row], int]:
        active = model.status == RecordStatus.ACTIVE
        count: Select[tuple[int]] = select(func.count()).select_from(model).where(active)
        base: Select[tuple[_Row]] = select(model).where(active).order_by(*order_by)

        total = (await self.session.execute(count)).scalar_one()
        result = await self.session.execute(base.offset(offset).limit(limit))
        return list(result.scalars().unique()), total

    def after_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once, when the session's current transaction commits.

        Callbacks queued by a unit of work that is rolled back are dropped.
        """

        sync_session = self.session.sync_session
        pending = sync_session.info.get(_PENDING_KEY)
        if pending is None:
            pending = sync_session.info[_PENDING_KEY] = []
            event.listen(sync_session, "after_commit", _run_pending)
            event.listen(sync_session, "after_rollback", _drop_pending)
        pending.append(callback)

    # Items -------------------------------------------------------------------------------------

    async def create_item(self, *, name: str, price_cents: int, actor: str) -> Item:
        item = Item(name=name, price_cents=price_cents, create_by=actor)
        self.session.add(item)
        await self.session.flush()
        await self.session.refresh(item, attribute_names=["create_date", "status"])
        return item

    async def find_item_by_id(self, item_id: int) -> Item | None:
        return await self.session.get(Item, item_id)

    async def save_item(self, item: Item) -> Item:
        await self.session.flush()
        await self.session.refresh(item, attribute_names=["update_date"])
        return item

    async def list_items(self, *, limit: int, offset: int) -> tuple[list[Item], int]:
        return await self._page(Item, Item.id.asc(), limit=limit, offset=offset)

    # Inventory movements -----------------------------------------------------------------------

    async def add_movement(
        self,
        item: Item,
        *,
        qty: int,
        movement_type: MovementType,
        actor: str,
    ) -> InventoryMovement:
        movement = InventoryMovement(item=item, qty=qty, type=movement_type, create_by=actor)
        self.session.add(movement)
        await self.session.flush()
        await self.session.refresh(movement, attribute_names=["create_date", "status"])
        return movement

    async def find_movement_by_id(self, movement_id: int) -> InventoryMovement | None:
        return await self.session.get(InventoryMovement, movement_id)

    async def reload_movement(self, movement: InventoryMovement) -> InventoryMovement:
        """Re-read ``movement`` from the database, discarding the identity-map copy."""

        await self.session.refresh(movement)
        return movement

    async def save_movement(self, movement: InventoryMovement) -> InventoryMovement:
        await self.session.flush()
        await self.session.refresh(movement, attribute_names=["update_date"])
        return movement

    async def sum_qty_by_item_and_type(self, item_id: int, movement_type: MovementType) -> int:
        """Sum ``qty`` of active movements of one type for an item; ``0`` when there are none."""

        stmt = select(func.coalesce(func.sum(InventoryMovement.qty), 0)).where(
            InventoryMovement.item_id == item_id,
            InventoryMovement.type == movement_type,
            InventoryMovement.status == RecordStatus.ACTIVE,
        )
        return int((await self.session.execute(stmt)).scalar_one())

    async def list_movements(self, *, limit: int, offset: int) -> tuple[list[InventoryMovement], int]:
        return await self._page(InventoryMovement, InventoryMovement.id.asc(), limit=limit, offset=offset)

    # Orders ------------------------------------------------------------------------------------

    async def add_order(
        self,
        item: Item,
        *,
        order_no: str,
        qty: int,
        price_cents: int,
        actor: str,
    ) -> Order:
        order = Order(order_no=order_no, item=item, qty=qty, price_cents=price_cents, create_by=actor)
        self.session.add(order)
        await self.session.flush()
        await self.session.refresh(order, attribute_names=["create_date", "status"])
        return order

    async def find_order_by_order_no(self, order_no: str) -> Order | None:
        return await self.session.get(Order, order_no)

    async def exists_order_by_order_no(self, order_no: str) -> bool:
        stmt = select(func.count()).select_from(Order).where(Order.order_no == order_no)
        return (await self.session.execute(stmt)).scalar_one() > 0

    async def reload_order(self, order: Order) -> Order:
        await self.session.refresh(order)
        return order

    async def save_order(self, order: Order) -> Order:
        await self.session.flush()
        await self.session.refresh(order, attribute_names=["update_date"])
        return order

    async def list_orders(self, *, limit: int, offset: int) -> tuple[list[Order], int]:
        return await self._page(Order, Order.create_date.asc(), Order.order_no.asc(), limit=limit, offset=offset)
