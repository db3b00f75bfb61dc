"""
AllocationEngine -- Turns a requested stock change into lot-level deltas.

Responsibility:
    Addition: always one new lot for the full quantity; lots are never
    merged, so each batch keeps its own receipt and expiry metadata.
    Subtraction: FIFO across the item's locked active lots.

Architecture position:
    Kernel > Services -- imperative shell around the pure planner in
    domain/allocation.py.  Invoked by StockCoordinator.

Invariants enforced:
    - The whole FIFO plan is computed from locked lot rows before the first
      decrement, so an InsufficientStockError leaves every lot untouched.
    - Each planned draw is <= the lot's locked quantity; LotStore re-checks.

Failure modes:
    - InvalidArgumentError: amount <= 0.
    - InsufficientStockError: active stock short of the request.
"""

from __future__ import annotations

import time
from datetime import date

from stock_kernel.domain.allocation import LotBalance, plan_fifo
from stock_kernel.domain.dtos import LotDraw, require_quantity
from stock_kernel.logging_config import elapsed_ms, get_logger
from stock_kernel.services.lot_store import LotStore

logger = get_logger("services.allocation_engine")


class AllocationEngine:
    """
    FIFO allocation over a LotStore.

    Contract:
        Runs inside the caller's transaction; the item row is already
        locked by the caller.
    """

    def __init__(self, lot_store: LotStore):
        self._lot_store = lot_store

    def add(
        self,
        item_id: int,
        amount: int,
        *,
        expiry_date: date | None = None,
        received_date: date | None = None,
        lot_code: str | None = None,
    ) -> int:
        """Create exactly one new lot holding ``amount``.  Returns its id."""
        require_quantity("amount", amount, positive=True)
        return self._lot_store.create_lot(
            item_id,
            amount,
            expiry_date=expiry_date,
            received_date=received_date,
            lot_code=lot_code,
        )

    def subtract_fifo(self, item_id: int, amount: int) -> tuple[LotDraw, ...]:
        """
        Take ``amount`` from the oldest active lots first.

        Returns:
            The applied draws, oldest lot first.

        Raises:
            InvalidArgumentError: amount is not positive.
            InsufficientStockError: nothing is written in that case.
        """
        require_quantity("amount", amount, positive=True)
        start = time.monotonic()

        lots = self._lot_store.list_active_lots(item_id, for_update=True)
        draws = plan_fifo(
            (
                LotBalance(lot_id=lot.id, received_date=lot.received_date, quantity=lot.quantity)
                for lot in lots
            ),
            amount,
            item_id=item_id,
        )

        for draw in draws:
            self._lot_store.decrement_lot(draw.lot_id, draw.amount)
            logger.debug(
                "fifo_lot_drawn",
                extra={"item_id": item_id, "lot_id": draw.lot_id, "amount": draw.amount},
            )

        logger.info(
            "fifo_subtraction_applied",
            extra={
                "item_id": item_id,
                "amount": amount,
                "lots_touched": len(draws),
                "duration_ms": elapsed_ms(start),
            },
        )
        return draws
