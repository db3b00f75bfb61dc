"""
StockCoordinator -- Public entry point of the stock ledger.

Responsibility:
    Runs every logical stock operation (adjust, create, edit, delete, tag)
    as one StockTransaction: lock the item row, let the AllocationEngine
    mutate lots, append one adjustment per touched lot, recompute the
    item aggregate, commit.  Also serves the read projections.

Architecture position:
    Kernel > Services -- the transaction boundary.  Owns commit and
    rollback through StockTransaction; every other service only flushes.

Invariants enforced:
    - All-or-nothing: a failure at any step rolls the whole operation back.
      No lot, adjustment or aggregate change is partially visible.
    - Same-item operations serialize on the item row lock; different items
      do not contend.
    - on_hand is recomputed before every commit that touched the ledger.
    - A zero quantity delta on edit writes no adjustment rows.

Failure modes:
    - InsufficientStockError is a business condition.  It is returned inside
      StockResult (outcome INSUFFICIENT_STOCK), never raised.
    - InvalidArgumentError (and ItemNotFoundError / LotNotFoundError) are
      raised; input checks run before any storage access.
    - InvariantViolationError and StorageUnavailableError are raised after
      rollback and logged.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

from sqlalchemy.orm import Session

from stock_kernel.config import StockKernelConfig
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    AdjustmentContext,
    AdjustmentView,
    ItemData,
    ItemUpdate,
    ItemView,
    LotDetails,
    LotView,
    parse_adjustment_type,
    parse_tag_type,
    require_quantity,
)
from stock_kernel.domain.values import AdjustmentType, TagType
from stock_kernel.exceptions import (
    InsufficientStockError,
    InvalidArgumentError,
    InvariantViolationError,
    StorageUnavailableError,
)
from stock_kernel.logging_config import LogContext, elapsed_ms, get_logger
from stock_kernel.models.item import ItemModel
from stock_kernel.selectors.item_selector import ItemSelector
from stock_kernel.services.adjustment_log import AdjustmentLog
from stock_kernel.services.aggregate_updater import ItemAggregateUpdater
from stock_kernel.services.allocation_engine import AllocationEngine
from stock_kernel.services.lot_store import LotStore
from stock_kernel.services.transaction import StockTransaction

logger = get_logger("services.stock_coordinator")


class StockOutcome(str, Enum):
    """Outcome of a stock operation."""

    APPLIED = "applied"
    NO_CHANGE = "no_change"
    INSUFFICIENT_STOCK = "insufficient_stock"


@dataclass(frozen=True)
class StockResult:
    """
    Result of a stock operation.

    ``lot_ids`` lists the lots created or drawn from, in the order they
    were touched.  ``on_hand`` is the item total after the operation (or
    the unchanged total on INSUFFICIENT_STOCK).
    """

    outcome: StockOutcome
    item_id: int
    lot_ids: tuple[int, ...] = ()
    on_hand: int | None = None
    error: InsufficientStockError | None = None

    @property
    def is_success(self) -> bool:
        return self.outcome in (StockOutcome.APPLIED, StockOutcome.NO_CHANGE)


@dataclass(frozen=True)
class _Ledger:
    """The services of one transaction, all bound to its session."""

    lots: LotStore
    allocation: AllocationEngine
    adjustments: AdjustmentLog
    aggregates: ItemAggregateUpdater


class StockCoordinator:
    """
    Orchestrates stock operations over an injected session factory.

    Each public call acquires one session, runs in one storage transaction
    and releases the session before returning.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: StockKernelConfig | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or StockKernelConfig()

    def _ledger(self, session: Session) -> _Ledger:
        lots = LotStore(session, self._clock)
        return _Ledger(
            lots=lots,
            allocation=AllocationEngine(lots),
            adjustments=AdjustmentLog(session, self._clock),
            aggregates=ItemAggregateUpdater(session, lots, self._clock),
        )

    # =========================================================================
    # Ledger mutation
    # =========================================================================

    def adjust_stock(
        self,
        item_id: int,
        amount: int,
        adjustment_type: AdjustmentType | str,
        context: AdjustmentContext,
        lot: LotDetails | None = None,
    ) -> StockResult:
        """
        Change an item's stock by ``amount`` units.

        Addition creates one new lot (described by ``lot``) and tags it.
        Subtraction draws FIFO across the item's active lots.

        Raises:
            InvalidArgumentError: amount <= 0, unknown type, missing reason,
                lot details on a subtraction.
            ItemNotFoundError: unknown or deleted item.
        """
        adjustment_type = parse_adjustment_type(adjustment_type)
        require_quantity("amount", amount, positive=True)
        if context is None or context.reason is None:
            raise InvalidArgumentError("reason", "adjust_stock requires a reason")
        if lot is not None and adjustment_type is AdjustmentType.SUBTRACTION:
            raise InvalidArgumentError("lot", "lot details only apply to additions")

        def body(tx: StockTransaction, ledger: _Ledger) -> StockResult:
            ledger.aggregates.lock_item(item_id)
            lot_ids = self._apply_delta(
                tx, ledger, item_id, adjustment_type, amount, context, lot
            )
            on_hand = ledger.aggregates.recompute(item_id)
            return StockResult(StockOutcome.APPLIED, item_id, lot_ids, on_hand)

        result = self._run("adjust_stock", item_id, context, body)
        if result.outcome is StockOutcome.APPLIED:
            logger.info(
                "stock_adjusted",
                extra={
                    "item_id": item_id,
                    "adjustment_type": adjustment_type.value,
                    "amount": amount,
                    "lot_ids": list(result.lot_ids),
                    "on_hand": result.on_hand,
                },
            )
        return result

    def _apply_delta(
        self,
        tx: StockTransaction,
        ledger: _Ledger,
        item_id: int,
        adjustment_type: AdjustmentType,
        amount: int,
        context: AdjustmentContext,
        lot: LotDetails | None = None,
    ) -> tuple[int, ...]:
        """Mutate lots, then log one adjustment per touched lot."""
        if adjustment_type is AdjustmentType.ADDITION:
            lot = lot or LotDetails()
            lot_id = ledger.allocation.add(
                item_id,
                amount,
                expiry_date=lot.expiry_date,
                received_date=lot.received_date,
                lot_code=lot.lot_code,
            )
            for tag_type, tag_id in lot.tags().items():
                ledger.lots.upsert_tag(lot_id, tag_type, tag_id)
            tx.lots_mutated()
            ledger.adjustments.record(lot_id, item_id, amount, adjustment_type, context)
            tx.logged()
            return (lot_id,)

        draws = ledger.allocation.subtract_fifo(item_id, amount)
        tx.lots_mutated()
        for draw in draws:
            ledger.adjustments.record(
                draw.lot_id, item_id, draw.amount, adjustment_type, context
            )
        tx.logged()
        return tuple(draw.lot_id for draw in draws)

    # =========================================================================
    # Item lifecycle
    # =========================================================================

    def create_item(
        self,
        data: ItemData,
        context: AdjustmentContext | None = None,
    ) -> StockResult:
        """
        Insert an item and, for a positive opening quantity, its opening lot.

        The opening lot carries the vendor / department / manufacturer tags
        from ``data``.
        """
        context = (context or AdjustmentContext()).with_default_reason(
            self._config.opening_stock_reason
        )

        def body(tx: StockTransaction, ledger: _Ledger) -> StockResult:
            now = self._clock.now()
            item = ItemModel(
                name=data.name,
                unit=data.unit,
                category_id=data.category_id,
                department_id=data.department_id,
                price=data.price,
                threshold=data.threshold,
                opening_quantity=data.opening_quantity,
                on_hand=0,
                low_stock=False,
                media=list(data.media) if data.media is not None else None,
                created_at=now,
                updated_at=now,
                created_by_id=context.actor_id,
                updated_by_id=context.actor_id,
            )
            tx.session.add(item)
            tx.session.flush()

            lot_ids: tuple[int, ...] = ()
            if data.opening_quantity > 0:
                lot_ids = self._apply_delta(
                    tx,
                    ledger,
                    item.id,
                    AdjustmentType.ADDITION,
                    data.opening_quantity,
                    context,
                    data.opening_lot(),
                )
            on_hand = ledger.aggregates.recompute(item.id)
            return StockResult(StockOutcome.APPLIED, item.id, lot_ids, on_hand)

        result = self._run("create_item", None, context, body)
        logger.info(
            "item_created",
            extra={
                "item_id": result.item_id,
                "opening_quantity": data.opening_quantity,
                "on_hand": result.on_hand,
            },
        )
        return result

    def update_item(
        self,
        item_id: int,
        update: ItemUpdate,
        context: AdjustmentContext | None = None,
    ) -> StockResult:
        """
        Apply metadata changes and book ``target_quantity - current``.

        delta > 0 adds one lot, delta < 0 subtracts FIFO, delta == 0 leaves
        the ledger alone (no adjustment rows).  NO_CHANGE is returned when
        neither metadata nor stock changed.
        """
        context = (context or AdjustmentContext()).with_default_reason(
            self._config.item_edit_reason
        )

        def body(tx: StockTransaction, ledger: _Ledger) -> StockResult:
            item = ledger.aggregates.lock_item(item_id)
            changed = self._apply_metadata(item, update)
            if changed:
                item.updated_at = self._clock.now()
                item.updated_by_id = context.actor_id
                tx.session.flush()

            lot_ids: tuple[int, ...] = ()
            delta = 0
            if update.target_quantity is not None:
                delta = update.target_quantity - ledger.lots.get_current_quantity(item_id)
            if delta > 0:
                lot_ids = self._apply_delta(
                    tx,
                    ledger,
                    item_id,
                    AdjustmentType.ADDITION,
                    delta,
                    context,
                    update.addition_lot(),
                )
            elif delta < 0:
                lot_ids = self._apply_delta(
                    tx, ledger, item_id, AdjustmentType.SUBTRACTION, -delta, context
                )

            on_hand = ledger.aggregates.recompute(item_id)
            outcome = StockOutcome.APPLIED if (changed or delta) else StockOutcome.NO_CHANGE
            return StockResult(outcome, item_id, lot_ids, on_hand)

        result = self._run("update_item", item_id, context, body)
        logger.info(
            "item_updated",
            extra={
                "item_id": item_id,
                "outcome": result.outcome.value,
                "lot_ids": list(result.lot_ids),
                "on_hand": result.on_hand,
            },
        )
        return result

    @staticmethod
    def _apply_metadata(item: ItemModel, update: ItemUpdate) -> bool:
        changed = False
        for field in ("name", "unit", "category_id", "department_id", "price", "threshold"):
            value = getattr(update, field)
            if value is not None and getattr(item, field) != value:
                setattr(item, field, value)
                changed = True
        if update.media is not None and list(update.media) != (item.media or []):
            item.media = list(update.media)
            changed = True
        return changed

    def delete_item(
        self,
        item_id: int,
        context: AdjustmentContext | None = None,
    ) -> StockResult:
        """
        Soft-delete an item.

        Every remaining unit is drained FIFO with logged subtractions, then
        ``deleted_at`` is set, all in one transaction.  Lots and adjustments
        remain for audit.
        """
        context = (context or AdjustmentContext()).with_default_reason(
            self._config.item_deleted_reason
        )

        def body(tx: StockTransaction, ledger: _Ledger) -> StockResult:
            item = ledger.aggregates.lock_item(item_id)
            lot_ids: tuple[int, ...] = ()
            remaining = ledger.lots.get_current_quantity(item_id)
            if remaining > 0:
                lot_ids = self._apply_delta(
                    tx, ledger, item_id, AdjustmentType.SUBTRACTION, remaining, context
                )
            item.deleted_at = self._clock.now()
            item.updated_at = item.deleted_at
            item.updated_by_id = context.actor_id
            on_hand = ledger.aggregates.recompute(item_id)
            return StockResult(StockOutcome.APPLIED, item_id, lot_ids, on_hand)

        result = self._run("delete_item", item_id, context, body)
        logger.info(
            "item_deleted",
            extra={"item_id": item_id, "drained_lot_ids": list(result.lot_ids)},
        )
        return result

    def tag_lot(
        self,
        lot_id: int,
        tag_type: TagType | str,
        tag_id: int,
        context: AdjustmentContext | None = None,
    ) -> None:
        """Attach or re-point a vendor / department / manufacturer tag on a lot."""
        tag_type = parse_tag_type(tag_type)
        context = context or AdjustmentContext()

        def body(tx: StockTransaction, ledger: _Ledger) -> StockResult:
            lot = ledger.lots.get_lot(lot_id)
            item = ledger.aggregates.lock_item(lot.item_id)
            ledger.lots.upsert_tag(lot_id, tag_type, tag_id)
            return StockResult(StockOutcome.APPLIED, item.id, (lot_id,), item.on_hand)

        self._run("tag_lot", None, context, body)
        logger.info(
            "lot_tagged",
            extra={"lot_id": lot_id, "tag_type": tag_type.value, "tag_id": tag_id},
        )

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    def _run(
        self,
        operation: str,
        item_id: int | None,
        context: AdjustmentContext,
        body: Callable[[StockTransaction, _Ledger], StockResult],
    ) -> StockResult:
        """
        Execute ``body`` in one StockTransaction.

        ``body`` leaves the transaction in LOGGED (ledger touched) or STARTED
        (metadata only); _run marks it AGGREGATED and commits.
        """
        start = time.monotonic()
        with LogContext.bind(
            correlation_id=uuid4().hex,
            operation=operation,
            item_id=item_id,
            actor_id=context.actor_id,
            department_id=context.department_id,
        ):
            try:
                with StockTransaction(self._session_factory, operation) as tx:
                    result = body(tx, self._ledger(tx.session))
                    tx.aggregated()
                    tx.commit()
            except InsufficientStockError as exc:
                logger.info(
                    "insufficient_stock",
                    extra={
                        "item_id": exc.item_id,
                        "requested": exc.requested,
                        "available": exc.available,
                    },
                )
                return StockResult(
                    StockOutcome.INSUFFICIENT_STOCK,
                    item_id if item_id is not None else exc.item_id,
                    on_hand=exc.available,
                    error=exc,
                )
            except (InvariantViolationError, StorageUnavailableError):
                logger.error("stock_operation_failed", exc_info=True)
                raise

            logger.debug(
                "stock_operation_completed",
                extra={
                    "outcome": result.outcome.value,
                    "duration_ms": elapsed_ms(start),
                },
            )
            return result

    # =========================================================================
    # Reads
    # =========================================================================

    def get_item(self, item_id: int) -> ItemView | None:
        """Read-only projection of a live item, or None."""
        with self._session_factory() as session:
            return ItemSelector(session).get_item_view(item_id)

    def list_lots(self, item_id: int) -> tuple[LotView, ...]:
        """Every lot of the item, exhausted ones included, FIFO order."""
        with self._session_factory() as session:
            return ItemSelector(session).list_lots(item_id)

    def list_adjustments(self, item_id: int) -> tuple[AdjustmentView, ...]:
        """Audit trail of the item, oldest first.  Works for deleted items."""
        with self._session_factory() as session:
            return ItemSelector(session).list_adjustments(item_id)

    def list_low_stock_items(self) -> tuple[ItemView, ...]:
        with self._session_factory() as session:
            return ItemSelector(session).list_low_stock()
