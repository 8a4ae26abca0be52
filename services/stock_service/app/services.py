"""Service layer orchestrating item, inventory and order mutations.

Every business rule is checked before the first write. Writes go through the
caller's session, which commits or rolls back as one unit of work.
"""

from __future__ import annotations

import logging
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from .errors import AlreadyDeletedError, NotFoundError, OrderAlreadyDeletedError, UnexpectedError, ValidationError
from .ledger import StockLedger, StockValidator
from .locking import ItemLockRegistry
from .metrics import STOCK_MOVEMENTS_RECORDED_TOTAL, STOCK_ORDERS_PLACED_TOTAL, STOCK_SOFT_DELETES_TOTAL
from .models import InventoryMovement, Item, MovementType, Order
from .repository import StockRepository

_LOGGER = logging.getLogger(__name__)

_MIN_PRICE = Decimal("0.01")
_MAX_NAME_LENGTH = 50
_MAX_ORDER_NO_LENGTH = 10

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    rows: list[T]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.total else 0


def _to_cents(amount: Decimal) -> int:
    return int((amount * Decimal("100")).to_integral_value(rounding=ROUND_HALF_UP))


def _resolve_page(page: int, size: int, max_size: int | None) -> tuple[int, int]:
    """Translate a 1-based page into ``(limit, offset)``."""

    if page < 1:
        raise ValidationError("Page number must be 1 or higher.")
    if size < 1:
        raise ValidationError("Page size must be 1 or higher.")
    limit = min(size, max_size) if max_size else size
    return limit, (page - 1) * limit


def _require_positive_id(value: int | None, label: str) -> int:
    if value is None or value <= 0:
        raise ValidationError(f"{label} ID must be a positive number")
    return value


def _require_price(price: Decimal | None) -> int:
    if price is None or price < _MIN_PRICE:
        raise ValidationError("Price must be at least 0.01")
    return _to_cents(price)


def _parse_movement_type(value: MovementType | str | None) -> MovementType:
    try:
        return MovementType(value)
    except ValueError:
        raise ValidationError("Type must be 'T' or 'W'") from None


def _require_quantity(qty: int | None, *, minimum: int) -> int:
    if qty is None or qty < minimum:
        if minimum == 0:
            raise ValidationError("Quantity must be zero or positive")
        raise ValidationError(f"Quantity must be at least {minimum}")
    return qty


class ItemService:
    """Item catalogue with remaining stock taken from the ledger."""

    def __init__(self, repository: StockRepository) -> None:
        self.repository = repository
        self.ledger = StockLedger(repository)

    async def get_item(self, item_id: int) -> Item:
        _require_positive_id(item_id, "Item")
        item = await self.repository.find_item_by_id(item_id)
        if item is None:
            raise NotFoundError(f"Item not found with id: {item_id}")
        return item

    async def list_items(self, *, page: int, size: int, max_size: int | None = None) -> Page[Item]:
        limit, offset = _resolve_page(page, size, max_size)
        rows, total = await self.repository.list_items(limit=limit, offset=offset)
        return Page(rows=rows, total=total, page=page, size=limit)

    async def remaining_stock(self, item: Item) -> int:
        return await self.ledger.available(item.id)

    @staticmethod
    def _clean_name(name: str | None) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Item name must not be blank")
        if len(cleaned) > _MAX_NAME_LENGTH:
            raise ValidationError(f"Item name must be less than {_MAX_NAME_LENGTH} characters")
        return cleaned

    async def create_item(self, *, name: str, price: Decimal, actor: str) -> Item:
        cleaned = self._clean_name(name)
        price_cents = _require_price(price)
        try:
            item = await self.repository.create_item(name=cleaned, price_cents=price_cents, actor=actor)
        except SQLAlchemyError as exc:
            _LOGGER.exception("Failed to save item %r", cleaned)
            raise UnexpectedError(f"Failed to save item: {cleaned}") from exc
        _LOGGER.info("Item %s created by %s", item.id, actor)
        return item

    async def update_item(self, item_id: int, *, name: str, price: Decimal, actor: str) -> Item:
        item = await self.get_item(item_id)
        item.name = self._clean_name(name)
        item.price_cents = _require_price(price)
        item.update_by = actor
        updated = await self.repository.save_item(item)
        _LOGGER.info("Item %s updated by %s", item_id, actor)
        return updated

    async def delete_item(self, item_id: int, *, actor: str) -> Item:
        item = await self.get_item(item_id)
        if item.is_deleted:
            raise AlreadyDeletedError(f"Item with id {item_id} is already deleted.")
        item.mark_deleted(actor)
        deleted = await self.repository.save_item(item)
        self.repository.after_commit(STOCK_SOFT_DELETES_TOTAL.labels(entity="item").inc)
        _LOGGER.info("Item %s deleted by %s", item_id, actor)
        return deleted


class InventoryService:
    """Inventory movements guarded by the stock validator."""

    def __init__(self, repository: StockRepository, *, locks: ItemLockRegistry | None = None) -> None:
        self.repository = repository
        self.validator = StockValidator(repository)
        self.locks = locks if locks is not None else ItemLockRegistry()

    async def _require_item(self, item_id: int) -> Item:
        _require_positive_id(item_id, "Item")
        item = await self.repository.find_item_by_id(item_id)
        if item is None:
            raise NotFoundError(f"Item not found with id: {item_id}")
        return item

    @asynccontextmanager
    async def _hold_movement(self, movement: InventoryMovement, *item_ids: int) -> AsyncIterator[None]:
        """Lock ``item_ids`` plus the movement's item, then re-read the movement under those locks.

        A concurrent request may have edited, deleted or moved the row while this
        one waited. When it now belongs to an item that is not held, the locks
        are released and taken again for the new item.
        """

        while True:
            held = {*item_ids, movement.item_id}
            async with self.locks.hold(self.repository.session, *held):
                await self.repository.reload_movement(movement)
                if movement.item_id in held:
                    yield
                    return
            _LOGGER.debug("Inventory %s moved to item %s while waiting; retrying", movement.id, movement.item_id)

    async def get_movement(self, movement_id: int) -> InventoryMovement:
        _require_positive_id(movement_id, "Inventory")
        movement = await self.repository.find_movement_by_id(movement_id)
        if movement is None:
            raise NotFoundError(f"Inventory not found with id: {movement_id}")
        return movement

    async def list_movements(self, *, page: int, size: int, max_size: int | None = None) -> Page[InventoryMovement]:
        limit, offset = _resolve_page(page, size, max_size)
        rows, total = await self.repository.list_movements(limit=limit, offset=offset)
        return Page(rows=rows, total=total, page=page, size=limit)

    async def create_movement(
        self,
        *,
        item_id: int,
        qty: int,
        movement_type: MovementType | str,
        actor: str,
    ) -> InventoryMovement:
        qty = _require_quantity(qty, minimum=0)
        movement_type = _parse_movement_type(movement_type)
        item = await self._require_item(item_id)

        async with self.locks.hold(self.repository.session, item.id):
            await self.validator.validate(item.id, qty, movement_type)
            movement = await self.repository.add_movement(item, qty=qty, movement_type=movement_type, actor=actor)
            self.repository.after_commit(
                STOCK_MOVEMENTS_RECORDED_TOTAL.labels(type=movement_type.value, source="inventory").inc
            )

        _LOGGER.info("Recorded %s of %s for item %s by %s", movement_type.name, qty, item.id, actor)
        return movement

    async def update_movement(
        self,
        movement_id: int,
        *,
        item_id: int,
        qty: int,
        movement_type: MovementType | str,
        actor: str,
    ) -> InventoryMovement:
        """Rewrite a movement in place.

        The movement is loaded even when already deleted; its replacement is
        validated against the target item with the old row excluded. A deleted
        row is not in any balance, so nothing is excluded for it and it stays
        deleted. Moving an active top-up to another item also re-checks the
        item it leaves.
        """

        qty = _require_quantity(qty, minimum=0)
        movement_type = _parse_movement_type(movement_type)
        movement = await self.get_movement(movement_id)
        item = await self._require_item(item_id)

        async with self._hold_movement(movement, item.id):
            previous_item_id = movement.item_id
            await self.validator.validate(item.id, qty, movement_type, exclude_movement_id=movement.id)
            leaves_item = previous_item_id != item.id
            if leaves_item and not movement.is_deleted and movement.type == MovementType.TOP_UP:
                await self.validator.validate(
                    previous_item_id, 0, MovementType.TOP_UP, exclude_movement_id=movement.id
                )

            movement.item = item
            movement.qty = qty
            movement.type = movement_type
            movement.update_by = actor
            updated = await self.repository.save_movement(movement)

        _LOGGER.info("Inventory %s updated by %s", movement_id, actor)
        return updated

    async def delete_movement(self, movement_id: int, *, actor: str) -> InventoryMovement:
        movement = await self.get_movement(movement_id)

        async with self._hold_movement(movement):
            if movement.is_deleted:
                raise AlreadyDeletedError(f"Inventory with id {movement_id} is already deleted.")
            if movement.type == MovementType.TOP_UP:
                # Dropping a top-up must still leave the item's withdrawals covered.
                await self.validator.validate(
                    movement.item_id, 0, MovementType.TOP_UP, exclude_movement_id=movement.id
                )
            movement.mark_deleted(actor)
            deleted = await self.repository.save_movement(movement)
            self.repository.after_commit(STOCK_SOFT_DELETES_TOTAL.labels(entity="inventory").inc)

        _LOGGER.info("Inventory %s deleted by %s", movement_id, actor)
        return deleted


class OrderService:
    """Orders draw stock through a linked withdrawal movement."""

    def __init__(self, repository: StockRepository, *, locks: ItemLockRegistry | None = None) -> None:
        self.repository = repository
        self.validator = StockValidator(repository)
        self.locks = locks if locks is not None else ItemLockRegistry()

    @staticmethod
    def _clean_order_no(order_no: str | None) -> str:
        cleaned = (order_no or "").strip()
        if not cleaned:
            raise ValidationError("OrderNo must not be empty")
        if len(cleaned) > _MAX_ORDER_NO_LENGTH:
            raise ValidationError(f"OrderNo must be at most {_MAX_ORDER_NO_LENGTH} characters")
        return cleaned

    async def _require_item(self, item_id: int) -> Item:
        _require_positive_id(item_id, "Item")
        item = await self.repository.find_item_by_id(item_id)
        if item is None:
            raise NotFoundError(f"Item not found with id: {item_id}")
        return item

    async def get_order(self, order_no: str) -> Order:
        order_no = self._clean_order_no(order_no)
        order = await self.repository.find_order_by_order_no(order_no)
        if order is None:
            raise NotFoundError(f"Order not found with orderNo: {order_no}")
        return order

    async def list_orders(self, *, page: int, size: int, max_size: int | None = None) -> Page[Order]:
        limit, offset = _resolve_page(page, size, max_size)
        rows, total = await self.repository.list_orders(limit=limit, offset=offset)
        return Page(rows=rows, total=total, page=page, size=limit)

    async def create_order(self, *, order_no: str, item_id: int, qty: int, actor: str) -> Order:
        """Place an order at the item's current price and withdraw its quantity from stock.

        The order row and its withdrawal movement are written in the same unit
        of work; a storage failure in either raises ``UnexpectedError`` and the
        caller's session rolls both back.
        """

        order_no = self._clean_order_no(order_no)
        qty = _require_quantity(qty, minimum=1)
        if await self.repository.exists_order_by_order_no(order_no):
            raise ValidationError(f"Order with orderNo {order_no} already exists")
        item = await self._require_item(item_id)

        async with self.locks.hold(self.repository.session, item.id):
            await self.validator.validate_availability(item.id, qty)
            try:
                order = await self.repository.add_order(
                    item,
                    order_no=order_no,
                    qty=qty,
                    price_cents=item.price_cents,
                    actor=actor,
                )
                await self.repository.add_movement(item, qty=qty, movement_type=MovementType.WITHDRAWAL, actor=actor)
            except SQLAlchemyError as exc:
                _LOGGER.exception("Failed to persist order %s", order_no)
                raise UnexpectedError(f"Failed to create order {order_no}") from exc
            self.repository.after_commit(STOCK_ORDERS_PLACED_TOTAL.inc)
            self.repository.after_commit(
                STOCK_MOVEMENTS_RECORDED_TOTAL.labels(type=MovementType.WITHDRAWAL.value, source="order").inc
            )

        _LOGGER.info("Order %s placed for %s of item %s by %s", order_no, qty, item.id, actor)
        return order

    async def update_order(
        self,
        order_no: str,
        *,
        item_id: int,
        qty: int,
        price: Decimal,
        actor: str,
    ) -> Order:
        """Rewrite an active order.

        Only a quantity increase is checked against stock, and only for the
        increment. The withdrawal recorded when the order was placed keeps its
        original quantity.
        """

        qty = _require_quantity(qty, minimum=1)
        price_cents = _require_price(price)
        order = await self.get_order(order_no)
        if order.is_deleted:
            raise NotFoundError("Order has been deleted")
        item = await self._require_item(item_id)

        async with self.locks.hold(self.repository.session, item.id):
            await self.repository.reload_order(order)
            if order.is_deleted:
                raise NotFoundError("Order has been deleted")
            delta = qty - order.qty
            if delta > 0:
                await self.validator.validate_availability(item.id, delta)
            order.item = item
            order.qty = qty
            order.price_cents = price_cents
            order.update_by = actor
            updated = await self.repository.save_order(order)

        _LOGGER.info("Order %s updated by %s", order.order_no, actor)
        return updated

    async def delete_order(self, order_no: str, *, actor: str) -> Order:
        order = await self.get_order(order_no)
        if order.is_deleted:
            raise OrderAlreadyDeletedError("Order has already been deleted")
        order.mark_deleted(actor)
        deleted = await self.repository.save_order(order)
        self.repository.after_commit(STOCK_SOFT_DELETES_TOTAL.labels(entity="order").inc)
        _LOGGER.info("Order %s deleted by %s", order.order_no, actor)
        return deleted
