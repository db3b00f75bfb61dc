"""
Module: stock_kernel.selectors.item_selector
Responsibility: Read-only projections of items, their lots and their
    adjustment history.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Soft-deleted items are invisible to get_item_view and
      list_low_stock; their adjustments stay listable for audit.
    - Lots are returned in FIFO order (received_date, id).
    - Adjustments are returned in insertion order.

Failure modes:
    - Returns None or an empty tuple on absence of data (never raises).
"""

from sqlalchemy import select

from stock_kernel.domain.dtos import AdjustmentView, ItemView, LotView
from stock_kernel.domain.values import TagType
from stock_kernel.models.adjustment import AdjustmentModel
from stock_kernel.models.item import ItemModel
from stock_kernel.models.lot_tag import LotTagModel
from stock_kernel.models.stock_lot import StockLotModel
from stock_kernel.selectors.base import BaseSelector


class ItemSelector(BaseSelector[ItemModel]):
    """Queries behind StockCoordinator.get_item and the audit listings."""

    def _lot_views(self, item_id: int, *, active_only: bool = True) -> tuple[LotView, ...]:
        stmt = (
            select(StockLotModel)
            .where(StockLotModel.item_id == item_id)
            .order_by(StockLotModel.received_date.asc(), StockLotModel.id.asc())
        )
        if active_only:
            stmt = stmt.where(StockLotModel.quantity > 0)
        lots = list(self.session.execute(stmt).scalars())
        if not lots:
            return ()

        tags: dict[int, dict[str, int]] = {lot.id: {} for lot in lots}
        rows = self.session.execute(
            select(LotTagModel).where(LotTagModel.lot_id.in_(list(tags)))
        ).scalars()
        for row in rows:
            tags[row.lot_id][TagType(row.tag_type).value] = row.tag_id

        return tuple(LotView.from_model(lot, tags[lot.id]) for lot in lots)

    def get_item_view(self, item_id: int) -> ItemView | None:
        """Item with its active lots and their tags, or None."""
        item = self.session.get(ItemModel, item_id, populate_existing=True)
        if item is None or item.is_deleted:
            return None
        return ItemView.from_model(item, self._lot_views(item_id))

    def list_lots(self, item_id: int) -> tuple[LotView, ...]:
        """Every lot of the item, exhausted ones included."""
        return self._lot_views(item_id, active_only=False)

    def list_adjustments(self, item_id: int) -> tuple[AdjustmentView, ...]:
        rows = self.session.execute(
            select(AdjustmentModel)
            .where(AdjustmentModel.item_id == item_id)
            .order_by(AdjustmentModel.id.asc())
        ).scalars()
        return tuple(AdjustmentView.from_model(row) for row in rows)

    def list_low_stock(self) -> tuple[ItemView, ...]:
        """Live items at or below their reorder threshold, by id."""
        items = self.session.execute(
            select(ItemModel)
            .where(ItemModel.low_stock.is_(True), ItemModel.deleted_at.is_(None))
            .order_by(ItemModel.id.asc())
        ).scalars()
        return tuple(ItemView.from_model(item) for item in items)
