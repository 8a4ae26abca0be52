"""Prometheus metrics for the stock service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter

# Stock validation ---------------------------------------------------------------------------
STOCK_VALIDATIONS_TOTAL: Final = Counter(
    "stock_validations_total",
    "Stock validator decisions by check kind and outcome.",
    labelnames=("check", "outcome"),
)

# Ledger writes ------------------------------------------------------------------------------
STOCK_MOVEMENTS_RECORDED_TOTAL: Final = Counter(
    "stock_movements_recorded_total",
    "Inventory movements written to the ledger.",
    labelnames=("type", "source"),
)

STOCK_ORDERS_PLACED_TOTAL: Final = Counter(
    "stock_orders_placed_total",
    "Orders accepted by the stock service.",
)

STOCK_SOFT_DELETES_TOTAL: Final = Counter(
    "stock_soft_deletes_total",
    "Rows moved to the deleted state.",
    labelnames=("entity",),
)
