"""
BaseService -- abstract base for stock kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    ledger services.  Concrete services receive a SQLAlchemy ``Session`` and
    persist via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services.  LotStore, AdjustmentLog and ItemAggregateUpdater
    extend this class.  StockTransaction owns commit/rollback.

Failure modes:
    - A subclass calling ``session.commit()`` would make a half-applied
      FIFO subtraction visible to other transactions.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for ledger services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide projection queries; those live in
          ``stock_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
