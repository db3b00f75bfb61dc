"""
Module: stock_kernel.models.lot_tag
Responsibility: Vendor / department / manufacturer tags attached to stock lots.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py.

Invariants enforced:
    - At most one tag of each TagType per lot: UNIQUE (lot_id, tag_type).
      Writes are upserts (LotStore.upsert_tag): a repeated write keeps one
      row and the last tag_id wins.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.db.types import IdentityType
from stock_kernel.domain.values import TagType


class LotTagModel(Base):
    """Many-to-many link between a lot and an external vendor/department/manufacturer."""

    __tablename__ = "lot_tags"

    __table_args__ = (
        UniqueConstraint("lot_id", "tag_type", name="uq_lot_tag_type"),
        Index("idx_lot_tag_target", "tag_type", "tag_id"),
    )

    lot_id: Mapped[int] = mapped_column(
        IdentityType,
        ForeignKey("stock_lots.id"),
        nullable=False,
    )

    tag_type: Mapped[TagType] = mapped_column(
        String(20),
        nullable=False,
    )

    tag_id: Mapped[int] = mapped_column(IdentityType, nullable=False)

    def __repr__(self) -> str:
        return f"<LotTag lot={self.lot_id} {self.tag_type}={self.tag_id}>"
