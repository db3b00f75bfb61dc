"""
ItemAggregateUpdater -- Derived on-hand maintenance for the Item aggregate.

Responsibility:
    Locks the item row (the aggregate root) and rewrites its derived
    fields, ``on_hand`` and ``low_stock``, from the lot ledger.

Architecture position:
    Kernel > Services -- imperative shell.  Runs strictly after lot
    mutations and adjustment logging, before commit, inside the same
    StockTransaction.

Invariants enforced:
    - on_hand == sum(lot quantities) for the item.  Always re-summed from
      the lots, never maintained incrementally.
    - low_stock == (on_hand <= threshold).
    - updated_at comes from the injected Clock, like every other item write.
    - The item row lock is taken first in every stock operation, so all
      writers of one item serialize on it.

Failure modes:
    - ItemNotFoundError: unknown or deleted item.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.exceptions import ItemNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.item import ItemModel
from stock_kernel.services.base import BaseService
from stock_kernel.services.lot_store import LotStore

logger = get_logger("services.aggregate_updater")


class ItemAggregateUpdater(BaseService[ItemModel]):
    """Recomputes and persists the item's derived stock fields."""

    def __init__(self, session: Session, lot_store: LotStore, clock: Clock):
        super().__init__(session)
        self._lot_store = lot_store
        self._clock = clock

    def lock_item(self, item_id: int, *, include_deleted: bool = False) -> ItemModel:
        """
        ``SELECT ... FOR UPDATE`` the item row.

        Raises:
            ItemNotFoundError: no such item, or it is soft-deleted and
                ``include_deleted`` is False.
        """
        item = self.session.execute(
            select(ItemModel)
            .where(ItemModel.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if item is None or (item.is_deleted and not include_deleted):
            raise ItemNotFoundError(item_id)
        return item

    def recompute(self, item_id: int) -> int:
        """
        Re-sum the item's lots onto ``on_hand`` and refresh ``low_stock``.

        ``updated_at`` is stamped from the injected clock only when a
        derived field actually changes.

        Returns:
            The new on-hand total.
        """
        item = self.lock_item(item_id, include_deleted=True)
        on_hand = self._lot_store.get_current_quantity(item_id)
        previous = item.on_hand

        low_stock = on_hand <= item.threshold
        if (on_hand, low_stock) != (previous, item.low_stock):
            item.on_hand = on_hand
            item.low_stock = low_stock
            item.updated_at = self._clock.now()
            self.session.flush()

        logger.debug(
            "item_aggregate_recomputed",
            extra={
                "item_id": item_id,
                "previous_on_hand": previous,
                "on_hand": on_hand,
                "low_stock": item.low_stock,
            },
        )
        return on_hand
