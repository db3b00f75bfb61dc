"""
Allocation -- Pure FIFO planner.

Responsibility:
    Given an item's active lots and a requested decrement, decide how much
    to take from each lot.  Oldest received first; lots received on the
    same date are consumed in insertion (id) order.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The AllocationEngine service feeds
    it locked lot rows and applies the resulting draws.

Invariants enforced:
    - Plans never overdraw a lot: every draw is <= the lot's quantity.
    - sum(draw.amount) == requested amount, or nothing is planned at all.
      A short request raises InsufficientStockError before any write.

Failure modes:
    - InvalidArgumentError for a non-positive or non-integer amount.
    - InsufficientStockError when active stock < amount.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from stock_kernel.domain.dtos import LotDraw, require_quantity
from stock_kernel.exceptions import InsufficientStockError


@dataclass(frozen=True)
class LotBalance:
    """Quantity remaining in one lot, with its FIFO ordering key."""

    lot_id: int
    received_date: date
    quantity: int

    @property
    def fifo_key(self) -> tuple[date, int]:
        return (self.received_date, self.lot_id)


def plan_fifo(
    lots: Iterable[LotBalance],
    amount: int,
    item_id: int | None = None,
) -> tuple[LotDraw, ...]:
    """
    Plan a FIFO decrement of ``amount`` across ``lots``.

    Lots at quantity 0 are skipped.  The input order does not matter; lots
    are sorted by (received_date, lot_id).

    Returns:
        Ordered draws, oldest lot first.

    Raises:
        InvalidArgumentError: amount is not a positive integer.
        InsufficientStockError: active stock cannot cover ``amount``.
    """
    require_quantity("amount", amount, positive=True)

    active = sorted((lot for lot in lots if lot.quantity > 0), key=lambda lot: lot.fifo_key)

    available = sum(lot.quantity for lot in active)
    if available < amount:
        raise InsufficientStockError(item_id, requested=amount, available=available)

    draws: list[LotDraw] = []
    remaining = amount
    for lot in active:
        if remaining <= 0:
            break
        take = min(remaining, lot.quantity)
        draws.append(LotDraw(lot_id=lot.lot_id, amount=take))
        remaining -= take

    return tuple(draws)
