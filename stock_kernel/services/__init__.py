"""Ledger services and the stock transaction boundary."""

from stock_kernel.services.adjustment_log import AdjustmentLog
from stock_kernel.services.aggregate_updater import ItemAggregateUpdater
from stock_kernel.services.allocation_engine import AllocationEngine
from stock_kernel.services.lot_store import LotStore
from stock_kernel.services.stock_coordinator import (
    StockCoordinator,
    StockOutcome,
    StockResult,
)
from stock_kernel.services.transaction import (
    VALID_TRANSITIONS,
    StockTransaction,
    TransactionState,
)

__all__ = [
    "AdjustmentLog",
    "AllocationEngine",
    "ItemAggregateUpdater",
    "LotStore",
    "StockCoordinator",
    "StockOutcome",
    "StockResult",
    "StockTransaction",
    "TransactionState",
    "VALID_TRANSITIONS",
]
