"""Domain models for the stock kernel."""

from stock_kernel.models.adjustment import AdjustmentModel
from stock_kernel.models.item import ItemModel
from stock_kernel.models.lot_tag import LotTagModel
from stock_kernel.models.stock_lot import StockLotModel

__all__ = [
    "AdjustmentModel",
    "ItemModel",
    "LotTagModel",
    "StockLotModel",
]
