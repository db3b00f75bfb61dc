"""
Module: stock_kernel.models.stock_lot
Responsibility: ORM persistence for stock lots.  Each lot is a dated batch of
    one item, the atomic unit FIFO allocation draws from.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity >= 0 (CHECK constraint; LotStore refuses to decrement below
      zero before the database ever sees it).
    - FIFO ordering key (received_date, id).  The composite index
      idx_stock_lot_fifo serves the active-lot scan.  item_id and
      received_date are structural and frozen after insert
      (db/immutability.py).
    - Lots are never deleted.  A lot at quantity 0 is inert but stays
      queryable for audit.

Failure modes:
    - IntegrityError on negative quantity or unknown item_id.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.db.types import IdentityType


class StockLotModel(Base):
    """
    Persistent stock lot.

    Contract:
        Created by an addition (LotStore.create_lot) with quantity > 0.
        Mutated only by LotStore.decrement_lot.  Remaining quantity is
        stored, not derived: FIFO reads it under a row lock.
    """

    __tablename__ = "stock_lots"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_lot_quantity_non_negative"),
        # Query: active lots for an item in FIFO order
        Index("idx_stock_lot_fifo", "item_id", "received_date", "id"),
        Index("idx_stock_lot_expiry", "expiry_date"),
    )

    item_id: Mapped[int] = mapped_column(
        IdentityType,
        ForeignKey("items.id"),
        nullable=False,
    )

    # INVARIANT: never negative
    quantity: Mapped[int] = mapped_column(nullable=False)

    # FIFO ordering date
    received_date: Mapped[date] = mapped_column(nullable=False)

    expiry_date: Mapped[date | None] = mapped_column(nullable=True)

    lot_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    @property
    def is_active(self) -> bool:
        return self.quantity > 0

    def __repr__(self) -> str:
        return (
            f"<StockLot {self.id}: item={self.item_id} qty={self.quantity} "
            f"received={self.received_date}>"
        )
