"""
LotStore -- Data access for stock lots and their tags.

Responsibility:
    Owns every read and write of ``stock_lots`` and ``lot_tags``.  Hands out
    lots in the FIFO contract order and applies single-lot decrements.

Architecture position:
    Kernel > Services -- imperative shell.  Used by AllocationEngine,
    ItemAggregateUpdater and StockCoordinator inside a StockTransaction.

Invariants enforced:
    - FIFO order: (received_date ASC, id ASC).  id is the insertion-order
      tie breaker for lots sharing a received date.
    - A lot is never decremented below zero.  decrement_lot checks under
      the row lock and raises before writing.
    - At most one tag per (lot, tag_type); writes are upserts.

Failure modes:
    - InvalidArgumentError: non-positive quantity on create, bad tag input.
    - LotNotFoundError: unknown lot id.
    - InvariantViolationError: decrement larger than the lot's quantity.
    - IntegrityError / OperationalError propagate to the transaction scope.

Concurrency:
    Active-lot reads take ``SELECT ... FOR UPDATE`` row locks.  The caller
    has already locked the item row, so two transactions on the same item
    never interleave here.  SQLite ignores FOR UPDATE; there, BEGIN
    IMMEDIATE serializes writers instead.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import parse_tag_type, require_quantity
from stock_kernel.domain.values import TagType
from stock_kernel.exceptions import (
    InvalidArgumentError,
    InvariantViolationError,
    LotNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.lot_tag import LotTagModel
from stock_kernel.models.stock_lot import StockLotModel
from stock_kernel.services.base import BaseService

logger = get_logger("services.lot_store")


class LotStore(BaseService[StockLotModel]):
    """
    Lot persistence with strict ordering guarantees.

    Contract:
        All writes are flushed, never committed.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def _fifo_query(item_id: int):
        return (
            select(StockLotModel)
            .where(StockLotModel.item_id == item_id)
            .order_by(StockLotModel.received_date.asc(), StockLotModel.id.asc())
        )

    def list_active_lots(
        self,
        item_id: int,
        *,
        for_update: bool = True,
    ) -> tuple[StockLotModel, ...]:
        """
        Lots of ``item_id`` with quantity > 0, in FIFO order.

        Args:
            item_id: Owning item.
            for_update: Take row locks on the returned lots.
        """
        stmt = self._fifo_query(item_id).where(StockLotModel.quantity > 0)
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        return tuple(self.session.execute(stmt).scalars())

    def list_lots(self, item_id: int) -> tuple[StockLotModel, ...]:
        """All lots of ``item_id``, exhausted ones included, in FIFO order."""
        return tuple(self.session.execute(self._fifo_query(item_id)).scalars())

    def get_lot(self, lot_id: int, *, for_update: bool = False) -> StockLotModel:
        stmt = select(StockLotModel).where(StockLotModel.id == lot_id)
        if for_update:
            stmt = stmt.with_for_update()
        lot = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if lot is None:
            raise LotNotFoundError(lot_id)
        return lot

    def get_current_quantity(self, item_id: int) -> int:
        """Sum over all lots of the item, active or exhausted."""
        total = self.session.execute(
            select(func.coalesce(func.sum(StockLotModel.quantity), 0)).where(
                StockLotModel.item_id == item_id
            )
        ).scalar_one()
        return int(total)

    # =========================================================================
    # Writes
    # =========================================================================

    def create_lot(
        self,
        item_id: int,
        quantity: int,
        expiry_date: date | None = None,
        received_date: date | None = None,
        lot_code: str | None = None,
    ) -> int:
        """
        Insert a new lot and return its id.

        Postconditions:
            The lot is flushed and has a database-assigned id.
            ``received_date`` defaults to the clock's current date.
        """
        require_quantity("quantity", quantity, positive=True)

        lot = StockLotModel(
            item_id=item_id,
            quantity=quantity,
            received_date=received_date or self._clock.today(),
            expiry_date=expiry_date,
            lot_code=lot_code,
            created_at=self._clock.now(),
        )
        self.session.add(lot)
        self.session.flush()

        logger.debug(
            "lot_created",
            extra={
                "lot_id": lot.id,
                "item_id": item_id,
                "quantity": quantity,
                "received_date": lot.received_date,
            },
        )
        return lot.id

    def decrement_lot(self, lot_id: int, amount: int) -> None:
        """
        Take ``amount`` units out of one lot.

        Preconditions:
            0 < amount <= lot quantity.  AllocationEngine guarantees this;
            a violation here means a planning bug or a lost lock.

        Raises:
            LotNotFoundError: unknown lot.
            InvariantViolationError: amount not positive or exceeds quantity.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvariantViolationError(
                "lot_decrement_positive",
                f"decrement of lot {lot_id} must be a positive integer, got {amount!r}",
            )

        lot = self.get_lot(lot_id, for_update=True)

        # INVARIANT: lot quantity never goes negative
        if amount > lot.quantity:
            logger.error(
                "lot_overdraw_blocked",
                extra={
                    "lot_id": lot_id,
                    "item_id": lot.item_id,
                    "quantity": lot.quantity,
                    "requested": amount,
                },
            )
            raise InvariantViolationError(
                "lot_non_negative",
                f"lot {lot_id} holds {lot.quantity}, cannot take {amount}",
            )

        lot.quantity -= amount
        self.session.flush()

    def upsert_tag(
        self,
        lot_id: int,
        tag_type: TagType | str,
        tag_id: int,
    ) -> LotTagModel:
        """
        Attach (or re-point) a vendor / department / manufacturer tag.

        Writing the same (lot, tag_type) twice leaves one row carrying the
        last ``tag_id``.  A concurrent first insert for the same pair is
        resolved by retrying as an update under a savepoint.
        """
        tag_type = parse_tag_type(tag_type)
        if isinstance(tag_id, bool) or not isinstance(tag_id, int) or tag_id <= 0:
            raise InvalidArgumentError("tag_id", f"must be a positive integer id, got {tag_id!r}")

        self.get_lot(lot_id)

        tag = self._locked_tag(lot_id, tag_type)
        if tag is None:
            savepoint = self.session.begin_nested()
            try:
                tag = LotTagModel(lot_id=lot_id, tag_type=tag_type.value, tag_id=tag_id)
                self.session.add(tag)
                self.session.flush()
                savepoint.commit()
                logger.debug(
                    "lot_tag_created",
                    extra={"lot_id": lot_id, "tag_type": tag_type.value, "tag_id": tag_id},
                )
                return tag
            except IntegrityError:
                # Another transaction inserted the same pair first
                logger.debug(
                    "lot_tag_race_retry",
                    extra={"lot_id": lot_id, "tag_type": tag_type.value},
                )
                savepoint.rollback()
                self.session.expire_all()
                tag = self._locked_tag(lot_id, tag_type)
                if tag is None:
                    raise

        tag.tag_id = tag_id
        self.session.flush()
        logger.debug(
            "lot_tag_updated",
            extra={"lot_id": lot_id, "tag_type": tag_type.value, "tag_id": tag_id},
        )
        return tag

    def _locked_tag(self, lot_id: int, tag_type: TagType) -> LotTagModel | None:
        return self.session.execute(
            select(LotTagModel)
            .where(LotTagModel.lot_id == lot_id, LotTagModel.tag_type == tag_type.value)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
