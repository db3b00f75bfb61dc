"""
StockTransaction -- Explicit transaction scope for one logical stock operation.

Responsibility:
    Acquires a session from the injected factory, tracks the operation
    through named states, commits only when every step has run, and rolls
    back on anything else.  The session is always closed on exit.

Architecture position:
    Kernel > Services.  Used by StockCoordinator; every ledger service
    runs on ``transaction.session``.

State machine:
    STARTED -> LOTS_MUTATED -> LOGGED -> AGGREGATED -> COMMITTED
    STARTED -> AGGREGATED                       (metadata-only operations)
    any non-terminal state -> ROLLED_BACK

Invariants enforced:
    - Commit is only reachable from AGGREGATED, so on-hand is always
      recomputed before a ledger change becomes visible.
    - Rollback is a full undo through the storage transaction.  There is
      no manual compensation.
    - Leaving the scope without commit rolls back.

Failure modes:
    - InvalidTransactionTransitionError on an illegal state change.
    - StorageUnavailableError wrapping any SQLAlchemy DBAPIError
      (OperationalError, IntegrityError, ...), chained as ``__cause__``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum
from types import TracebackType

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from stock_kernel.exceptions import (
    InvalidTransactionTransitionError,
    StorageUnavailableError,
)
from stock_kernel.logging_config import elapsed_ms, get_logger

logger = get_logger("services.transaction")


class TransactionState(str, Enum):
    STARTED = "started"
    LOTS_MUTATED = "lots_mutated"
    LOGGED = "logged"
    AGGREGATED = "aggregated"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


# Allowed state transitions (from -> set of valid targets)
VALID_TRANSITIONS: dict[TransactionState, frozenset[TransactionState]] = {
    TransactionState.STARTED: frozenset({
        TransactionState.LOTS_MUTATED,
        TransactionState.AGGREGATED,
        TransactionState.ROLLED_BACK,
    }),
    TransactionState.LOTS_MUTATED: frozenset({
        TransactionState.LOGGED,
        TransactionState.ROLLED_BACK,
    }),
    TransactionState.LOGGED: frozenset({
        TransactionState.AGGREGATED,
        TransactionState.ROLLED_BACK,
    }),
    TransactionState.AGGREGATED: frozenset({
        TransactionState.COMMITTED,
        TransactionState.ROLLED_BACK,
    }),
    TransactionState.COMMITTED: frozenset(),
    TransactionState.ROLLED_BACK: frozenset(),
}

TERMINAL_STATES = frozenset({TransactionState.COMMITTED, TransactionState.ROLLED_BACK})


def _storage_detail(exc: DBAPIError) -> str:
    return str(exc.orig) if exc.orig is not None else str(exc)


class StockTransaction:
    """
    Context manager around one session and one storage transaction.

    Usage:
        with StockTransaction(session_factory, "adjust_stock") as tx:
            ...mutate lots via services on tx.session...
            tx.lots_mutated()
            ...record adjustments...
            tx.logged()
            ...recompute on-hand...
            tx.aggregated()
            tx.commit()
    """

    def __init__(self, session_factory: Callable[[], Session], operation: str):
        self._session_factory = session_factory
        self.operation = operation
        self._session: Session | None = None
        self._state: TransactionState | None = None
        self._started_at: float = 0.0

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> TransactionState | None:
        return self._state

    @property
    def session(self) -> Session:
        if self._session is None or self._state in TERMINAL_STATES:
            raise InvalidTransactionTransitionError(
                self.operation,
                str(self._state.value if self._state else "unopened"),
                "session_access",
            )
        return self._session

    def _transition(self, target: TransactionState) -> None:
        current = self._state
        allowed = VALID_TRANSITIONS.get(current, frozenset()) if current else frozenset()
        if target not in allowed:
            raise InvalidTransactionTransitionError(
                self.operation,
                current.value if current else "unopened",
                target.value,
            )
        self._state = target

    def lots_mutated(self) -> None:
        self._transition(TransactionState.LOTS_MUTATED)

    def logged(self) -> None:
        self._transition(TransactionState.LOGGED)

    def aggregated(self) -> None:
        self._transition(TransactionState.AGGREGATED)

    # =========================================================================
    # Commit / rollback
    # =========================================================================

    def commit(self) -> None:
        """
        Commit the storage transaction.

        Raises:
            InvalidTransactionTransitionError: not in AGGREGATED.
            StorageUnavailableError: the commit itself failed; the
                transaction is rolled back.
        """
        self._transition(TransactionState.COMMITTED)
        try:
            self._session.commit()
        except DBAPIError as exc:
            self._state = TransactionState.AGGREGATED
            self._rollback(reason=type(exc).__name__)
            raise StorageUnavailableError(self.operation, _storage_detail(exc)) from exc

        logger.debug(
            "stock_transaction_committed",
            extra={
                "operation": self.operation,
                "duration_ms": elapsed_ms(self._started_at),
            },
        )

    def rollback(self) -> None:
        """Abandon the operation explicitly."""
        self._rollback(reason="explicit")

    def _rollback(self, reason: str) -> None:
        from_state = self._state
        self._transition(TransactionState.ROLLED_BACK)
        try:
            self._session.rollback()
        except DBAPIError as exc:
            raise StorageUnavailableError(self.operation, _storage_detail(exc)) from exc
        finally:
            logger.warning(
                "stock_transaction_rolled_back",
                extra={
                    "operation": self.operation,
                    "from_state": from_state.value if from_state else None,
                    "reason": reason,
                },
            )

    # =========================================================================
    # Context manager
    # =========================================================================

    def __enter__(self) -> StockTransaction:
        if self._state is not None:
            raise InvalidTransactionTransitionError(
                self.operation, self._state.value, TransactionState.STARTED.value
            )
        self._session = self._session_factory()
        self._state = TransactionState.STARTED
        self._started_at = time.monotonic()
        logger.debug("stock_transaction_started", extra={"operation": self.operation})
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        try:
            if self._state not in TERMINAL_STATES:
                self._rollback(reason=exc_type.__name__ if exc_type else "not_committed")
        finally:
            self._session.close()

        if isinstance(exc, DBAPIError):
            raise StorageUnavailableError(self.operation, _storage_detail(exc)) from exc
        return False
