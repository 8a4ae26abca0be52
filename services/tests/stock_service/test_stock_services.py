from decimal import Decimal

import pytest
from prometheus_client import REGISTRY

from services.common.database import create_schema, dispose_engines, get_session_factory
from services.stock_service.app.errors import AlreadyDeletedError, InsufficientStockError
from services.stock_service.app.ledger import StockBalance, StockLedger
from services.stock_service.app.locking import ItemLockRegistry
from services.stock_service.app.models import Base, MovementType
from services.stock_service.app.repository import StockRepository
from services.stock_service.app.services import InventoryService, ItemService, OrderService


class _MetricTracker:
    def __init__(self, name: str, labels: dict[str, str] | None = None) -> None:
        self.name = name
        self.labels = labels or {}
        baseline = REGISTRY.get_sample_value(name, self.labels)
        self._baseline = baseline if baseline is not None else 0.0

    def delta(self) -> float:
        current = REGISTRY.get_sample_value(self.name, self.labels)
        value = current if current is not None else 0.0
        return value - self._baseline


async def _seed(session_factory, *, withdrawal: int) -> tuple[int, int]:
    """Create an item with a top-up of 10 and one withdrawal; return their ids."""

    async with session_factory() as session:
        repository = StockRepository(session)
        item = await ItemService(repository).create_item(name="Pen", price=Decimal("1.50"), actor="seed")
        inventory = InventoryService(repository)
        await inventory.create_movement(item_id=item.id, qty=10, movement_type=MovementType.TOP_UP, actor="seed")
        movement = await inventory.create_movement(
            item_id=item.id, qty=withdrawal, movement_type=MovementType.WITHDRAWAL, actor="seed"
        )
        await session.commit()
        return item.id, movement.id


@pytest.mark.asyncio
async def test_edit_revalidates_against_movement_changed_while_waiting(tmp_path) -> None:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}"
    await create_schema(database_url, Base.metadata)
    session_factory = get_session_factory(database_url)
    locks = ItemLockRegistry(enabled=True)

    try:
        item_id, movement_id = await _seed(session_factory, withdrawal=10)

        async with session_factory() as late, session_factory() as early:
            late_service = InventoryService(StockRepository(late), locks=locks)
            # Loaded while the withdrawal is still 10.
            await late_service.get_movement(movement_id)

            await InventoryService(StockRepository(early), locks=locks).update_movement(
                movement_id, item_id=item_id, qty=2, movement_type=MovementType.WITHDRAWAL, actor="early"
            )

            with pytest.raises(InsufficientStockError) as excinfo:
                await late_service.update_movement(
                    movement_id, item_id=item_id, qty=18, movement_type=MovementType.WITHDRAWAL, actor="late"
                )
            assert excinfo.value.available == -8
            await late.rollback()

        async with session_factory() as session:
            ledger = StockLedger(StockRepository(session))
            assert await ledger.balance(item_id) == StockBalance(total_top_up=10, total_withdrawal=2)
        assert locks.tracked_items == 0
    finally:
        await dispose_engines()


@pytest.mark.asyncio
async def test_delete_sees_deletion_committed_while_waiting(tmp_path) -> None:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}"
    await create_schema(database_url, Base.metadata)
    session_factory = get_session_factory(database_url)
    locks = ItemLockRegistry(enabled=True)
    deletes = _MetricTracker("stock_soft_deletes_total", {"entity": "inventory"})

    try:
        item_id, movement_id = await _seed(session_factory, withdrawal=4)

        async with session_factory() as late, session_factory() as early:
            late_service = InventoryService(StockRepository(late), locks=locks)
            stale = await late_service.get_movement(movement_id)
            assert not stale.is_deleted

            await InventoryService(StockRepository(early), locks=locks).delete_movement(movement_id, actor="early")

            with pytest.raises(AlreadyDeletedError):
                await late_service.delete_movement(movement_id, actor="late")
            await late.rollback()

        async with session_factory() as session:
            movement = await InventoryService(StockRepository(session)).get_movement(movement_id)
            assert movement.delete_by == "early"
            assert await StockLedger(StockRepository(session)).available(item_id) == 10
        assert deletes.delta() == 1
    finally:
        await dispose_engines()


@pytest.mark.asyncio
async def test_order_metrics_count_only_committed_orders(tmp_path) -> None:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}"
    await create_schema(database_url, Base.metadata)
    session_factory = get_session_factory(database_url)
    placed = _MetricTracker("stock_orders_placed_total")
    withdrawals = _MetricTracker("stock_movements_recorded_total", {"type": "W", "source": "order"})

    try:
        item_id, _ = await _seed(session_factory, withdrawal=0)

        async with session_factory() as session:
            orders = OrderService(StockRepository(session))

            await orders.create_order(order_no="ORD-1", item_id=item_id, qty=2, actor="alice")
            await session.rollback()
            assert placed.delta() == 0
            assert withdrawals.delta() == 0

            await orders.create_order(order_no="ORD-2", item_id=item_id, qty=3, actor="alice")
            assert placed.delta() == 0
            await session.commit()

        assert placed.delta() == 1
        assert withdrawals.delta() == 1

        async with session_factory() as session:
            repository = StockRepository(session)
            assert await repository.find_order_by_order_no("ORD-1") is None
            assert await StockLedger(repository).available(item_id) == 7
    finally:
        await dispose_engines()
