"""
Module: stock_kernel.models.item
Responsibility: ORM persistence for stock items, the aggregate root of the
    stock ledger.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py.

Invariants enforced:
    - on_hand is derived.  It equals the sum of the item's lot quantities and
      is written ONLY by ItemAggregateUpdater.recompute(), inside the same
      transaction as the ledger mutation that changed it.
    - low_stock is a cached display flag (on_hand <= threshold), written
      together with on_hand.
    - Soft deletion: deleted_at marks the end of the item's life.  Lots and
      adjustments remain queryable for audit.

Failure modes:
    - IntegrityError on negative on_hand / threshold / opening_quantity
      (CHECK constraints).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase
from stock_kernel.db.types import IdentityType


class ItemModel(TrackedBase):
    """
    Persistent stock item.

    Contract:
        Item metadata (name, unit, price, threshold, media) is written by
        StockCoordinator.create_item / update_item.  on_hand and low_stock
        are written only by ItemAggregateUpdater.

    Non-goals:
        - Does not store per-lot detail; see StockLotModel.
    """

    __tablename__ = "items"

    __table_args__ = (
        CheckConstraint("on_hand >= 0", name="ck_item_on_hand_non_negative"),
        CheckConstraint("threshold >= 0", name="ck_item_threshold_non_negative"),
        CheckConstraint(
            "opening_quantity >= 0", name="ck_item_opening_quantity_non_negative"
        ),
        Index("idx_item_low_stock", "low_stock"),
        Index("idx_item_deleted_at", "deleted_at"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    unit: Mapped[str] = mapped_column(String(50), nullable=False)

    category_id: Mapped[int | None] = mapped_column(IdentityType, nullable=True)

    department_id: Mapped[int | None] = mapped_column(IdentityType, nullable=True)

    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Reorder point
    threshold: Mapped[int] = mapped_column(nullable=False, default=0)

    opening_quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    # Derived: sum of lot quantities (ItemAggregateUpdater only)
    on_hand: Mapped[int] = mapped_column(nullable=False, default=0)

    # Derived: on_hand <= threshold (ItemAggregateUpdater only)
    low_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Opaque media descriptors supplied by the upload layer
    media: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Item {self.id}: {self.name} on_hand={self.on_hand} {self.unit}>"
