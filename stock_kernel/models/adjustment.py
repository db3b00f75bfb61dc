"""
Module: stock_kernel.models.adjustment
Responsibility: ORM persistence for stock adjustments, the append-only audit
    record of every lot-level quantity change.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py.

Invariants enforced:
    - Immutable once written.  UPDATE and DELETE are rejected by ORM
      listeners (db/immutability.py).  Corrections are new adjustments.
    - quantity > 0; direction is carried by adjustment_type.
    - One row per (lot, delta): a FIFO subtraction touching three lots
      writes three rows.

Audit relevance:
    Actor, department and reason are denormalized onto each row so the
    trail stays readable even after the item is deleted.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.db.types import IdentityType
from stock_kernel.domain.values import AdjustmentType


class AdjustmentModel(Base):
    """Immutable record of one quantity change to one lot."""

    __tablename__ = "stock_adjustments"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_adjustment_quantity_positive"),
        Index("idx_adjustment_lot", "lot_id"),
        Index("idx_adjustment_item_created", "item_id", "created_at"),
    )

    lot_id: Mapped[int] = mapped_column(
        IdentityType,
        ForeignKey("stock_lots.id"),
        nullable=False,
    )

    item_id: Mapped[int] = mapped_column(
        IdentityType,
        ForeignKey("items.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(nullable=False)

    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        String(20),
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(String(4000), nullable=False)

    actor_id: Mapped[int | None] = mapped_column(IdentityType, nullable=True)

    department_id: Mapped[int | None] = mapped_column(IdentityType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    @property
    def signed_quantity(self) -> int:
        if self.adjustment_type == AdjustmentType.SUBTRACTION:
            return -self.quantity
        return self.quantity

    def __repr__(self) -> str:
        return (
            f"<Adjustment {self.id}: lot={self.lot_id} "
            f"{self.adjustment_type} {self.quantity}>"
        )
