"""
ORM-Level Immutability Enforcement for the stock ledger.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|----------------------------------------------------------
Adjustment      | ALWAYS immutable: no UPDATE, no DELETE
StockLot        | Never deleted; item_id / received_date frozen after insert;
                | quantity never below zero

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below inspect the pending change and raise
ImmutabilityViolationError (or InvariantViolationError for a negative lot
quantity).  The flush is aborted and the database is never modified.

Bulk ``update()``/``delete()`` statements bypass mapper events.  Kernel code
never issues them against these tables.

===============================================================================
USAGE
===============================================================================

Called once at startup (bootstrap.build_coordinator, test conftest):

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from stock_kernel.exceptions import ImmutabilityViolationError, InvariantViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_LOT_STRUCTURAL_FIELDS = ("item_id", "received_date")


def _check_adjustment_immutability(mapper, connection, target):
    """Prevent any updates to Adjustment records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Adjustment",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Adjustment",
        entity_id=str(target.id),
        reason="Adjustments are append-only and cannot be modified",
    )


def _check_adjustment_delete(mapper, connection, target):
    """Prevent deletion of Adjustment records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Adjustment",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Adjustment",
        entity_id=str(target.id),
        reason="Adjustments are append-only and cannot be deleted",
    )


def _check_stock_lot_update(mapper, connection, target):
    """Freeze lot structure and keep the remaining quantity non-negative."""
    for field in _LOT_STRUCTURAL_FIELDS:
        history = get_history(target, field)
        if history.has_changes() and history.deleted:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "StockLot",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": field,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="StockLot",
                entity_id=str(target.id),
                reason=f"Field '{field}' cannot be changed after the lot is received",
            )

    if target.quantity is not None and target.quantity < 0:
        raise InvariantViolationError(
            "lot_non_negative",
            f"lot {target.id} quantity would become {target.quantity}",
        )


def _check_stock_lot_delete(mapper, connection, target):
    """Lots are kept for audit even at zero quantity."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockLot",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockLot",
        entity_id=str(target.id),
        reason="Stock lots cannot be deleted",
    )


def _listeners():
    from stock_kernel.models.adjustment import AdjustmentModel
    from stock_kernel.models.stock_lot import StockLotModel

    return (
        (AdjustmentModel, "before_update", _check_adjustment_immutability),
        (AdjustmentModel, "before_delete", _check_adjustment_delete),
        (StockLotModel, "before_update", _check_stock_lot_update),
        (StockLotModel, "before_delete", _check_stock_lot_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
