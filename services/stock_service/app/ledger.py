"""Stock balance calculation and validation.

Available stock for an item is the sum of its active top-up movements minus the
sum of its active withdrawal movements. Balances are aggregated from the ledger
on every call; nothing is cached, so two concurrent requests can both read the
same balance before either writes (see ``locking.ItemLockRegistry``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from services.common import get_tracer

from .errors import InsufficientStockError
from .metrics import STOCK_VALIDATIONS_TOTAL
from .models import InventoryMovement, MovementType

_LOGGER = logging.getLogger(__name__)
_TRACER = get_tracer(__name__)


class LedgerRepository(Protocol):
    async def sum_qty_by_item_and_type(self, item_id: int, movement_type: MovementType) -> int: ...

    async def find_movement_by_id(self, movement_id: int) -> InventoryMovement | None: ...


@dataclass(frozen=True)
class StockBalance:
    total_top_up: int = 0
    total_withdrawal: int = 0

    @property
    def available(self) -> int:
        return self.total_top_up - self.total_withdrawal

    @property
    def is_consistent(self) -> bool:
        return self.total_top_up >= self.total_withdrawal

    def apply(self, qty: int, movement_type: MovementType) -> StockBalance:
        """Return the balance with ``qty`` added to the bucket of ``movement_type``."""

        if movement_type == MovementType.TOP_UP:
            return StockBalance(self.total_top_up + qty, self.total_withdrawal)
        return StockBalance(self.total_top_up, self.total_withdrawal + qty)

    def without(self, qty: int, movement_type: MovementType) -> StockBalance:
        return self.apply(-qty, movement_type)


class StockLedger:
    """Balance calculator over the inventory ledger."""

    def __init__(self, repository: LedgerRepository) -> None:
        self.repository = repository

    async def balance(self, item_id: int) -> StockBalance:
        top_up = await self.repository.sum_qty_by_item_and_type(item_id, MovementType.TOP_UP)
        withdrawal = await self.repository.sum_qty_by_item_and_type(item_id, MovementType.WITHDRAWAL)
        return StockBalance(total_top_up=top_up, total_withdrawal=withdrawal)

    async def available(self, item_id: int) -> int:
        return (await self.balance(item_id)).available


class StockValidator:
    """Guards ledger writes so top-ups always cover withdrawals.

    The validator never writes. It raises ``InsufficientStockError`` when a
    proposed change would leave the item with more withdrawn than topped up.
    """

    def __init__(self, repository: LedgerRepository, ledger: StockLedger | None = None) -> None:
        self.repository = repository
        self.ledger = ledger or StockLedger(repository)

    async def validate(
        self,
        item_id: int,
        proposed_qty: int,
        proposed_type: MovementType,
        *,
        exclude_movement_id: int | None = None,
    ) -> StockBalance:
        """Check a proposed movement, optionally as a replacement for an existing one.

        When ``exclude_movement_id`` names an active movement counted in this
        item's totals, its quantity is taken out first so an in-place edit is
        judged as if the old row did not exist. An id that does not resolve is
        skipped without adjustment. Unlike a plain "subtract any active row"
        rule, a movement that belongs to another item is also skipped: its
        quantity is not part of this item's balance, and subtracting it would
        make room that does not exist.

        Returns the projected balance when the change is admissible.
        """

        with _TRACER.start_as_current_span("stock.validate") as span:
            span.set_attribute("stock.item_id", item_id)
            span.set_attribute("stock.proposed_qty", proposed_qty)
            span.set_attribute("stock.proposed_type", proposed_type.value)

            balance = await self.ledger.balance(item_id)
            if exclude_movement_id is not None:
                balance = await self._exclude(balance, item_id, exclude_movement_id)

            projected = balance.apply(proposed_qty, proposed_type)
            if not projected.is_consistent:
                STOCK_VALIDATIONS_TOTAL.labels(check="movement", outcome="rejected").inc()
                span.set_attribute("stock.outcome", "rejected")
                _LOGGER.warning(
                    "Rejected %s of %s for item %s: balance would become %s",
                    proposed_type.name,
                    proposed_qty,
                    item_id,
                    projected.available,
                )
                raise InsufficientStockError(
                    item_id,
                    available=projected.available,
                    required=proposed_qty,
                    message=(
                        f"Insufficient top-up quantity for item ID {item_id}. "
                        f"Withdrawal exceeds available stock (balance after change: {projected.available})."
                    ),
                )

            STOCK_VALIDATIONS_TOTAL.labels(check="movement", outcome="accepted").inc()
            span.set_attribute("stock.outcome", "accepted")
            return projected

    async def _exclude(self, balance: StockBalance, item_id: int, movement_id: int) -> StockBalance:
        excluded = await self.repository.find_movement_by_id(movement_id)
        if excluded is None:
            _LOGGER.warning("Movement %s to exclude was not found; validating without adjustment", movement_id)
            return balance
        if excluded.is_deleted or excluded.item_id != item_id:
            return balance
        return balance.without(excluded.qty, excluded.type)

    async def validate_availability(self, item_id: int, required_qty: int) -> StockBalance:
        """Accept iff the item's available stock covers ``required_qty``."""

        with _TRACER.start_as_current_span("stock.validate_availability") as span:
            span.set_attribute("stock.item_id", item_id)
            span.set_attribute("stock.required_qty", required_qty)

            balance = await self.ledger.balance(item_id)
            if balance.available < required_qty:
                STOCK_VALIDATIONS_TOTAL.labels(check="availability", outcome="rejected").inc()
                span.set_attribute("stock.outcome", "rejected")
                _LOGGER.warning(
                    "Insufficient stock for item %s: available %s, required %s",
                    item_id,
                    balance.available,
                    required_qty,
                )
                raise InsufficientStockError(item_id, available=balance.available, required=required_qty)

            STOCK_VALIDATIONS_TOTAL.labels(check="availability", outcome="accepted").inc()
            span.set_attribute("stock.outcome", "accepted")
            return balance
