"""Pure domain layer: value enums, boundary records, FIFO planning, clock."""

from stock_kernel.domain.allocation import LotBalance, plan_fifo
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import (
    AdjustmentContext,
    AdjustmentView,
    ItemData,
    ItemUpdate,
    ItemView,
    LotDetails,
    LotDraw,
    LotView,
)
from stock_kernel.domain.values import AdjustmentType, TagType

__all__ = [
    "AdjustmentContext",
    "AdjustmentType",
    "AdjustmentView",
    "Clock",
    "DeterministicClock",
    "ItemData",
    "ItemUpdate",
    "ItemView",
    "LotBalance",
    "LotDetails",
    "LotDraw",
    "LotView",
    "SystemClock",
    "TagType",
    "plan_fifo",
]
