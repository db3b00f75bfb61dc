"""
AdjustmentLog -- Append-only audit record of lot-level quantity changes.

Responsibility:
    Writes one ``stock_adjustments`` row per (lot, delta) pair, with the
    acting user, department and reason denormalized onto the row.

Architecture position:
    Kernel > Services -- imperative shell.  Called by StockCoordinator
    after the AllocationEngine has mutated lots, inside the same
    transaction.

Invariants enforced:
    - Append only.  Rows are never updated or deleted (ORM listeners in
      db/immutability.py).
    - quantity > 0; direction lives in adjustment_type.

Failure modes:
    - InvalidArgumentError: non-positive amount or missing reason.
    - Storage errors propagate to the transaction scope.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import AdjustmentContext, parse_adjustment_type, require_quantity
from stock_kernel.domain.values import AdjustmentType
from stock_kernel.exceptions import InvalidArgumentError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.adjustment import AdjustmentModel
from stock_kernel.services.base import BaseService

logger = get_logger("services.adjustment_log")


class AdjustmentLog(BaseService[AdjustmentModel]):
    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        lot_id: int,
        item_id: int,
        amount: int,
        adjustment_type: AdjustmentType | str,
        context: AdjustmentContext,
    ) -> AdjustmentModel:
        """
        Append one adjustment row.

        Preconditions:
            ``context.reason`` is set; the coordinator fills in defaults.
        """
        require_quantity("amount", amount, positive=True)
        adjustment_type = parse_adjustment_type(adjustment_type)
        if context.reason is None:
            raise InvalidArgumentError("reason", "an adjustment needs a reason")

        adjustment = AdjustmentModel(
            lot_id=lot_id,
            item_id=item_id,
            quantity=amount,
            adjustment_type=adjustment_type.value,
            reason=context.reason,
            actor_id=context.actor_id,
            department_id=context.department_id,
            created_at=self._clock.now(),
        )
        self.session.add(adjustment)
        self.session.flush()

        logger.debug(
            "adjustment_recorded",
            extra={
                "adjustment_id": adjustment.id,
                "lot_id": lot_id,
                "item_id": item_id,
                "quantity": amount,
                "adjustment_type": adjustment_type.value,
            },
        )
        return adjustment
