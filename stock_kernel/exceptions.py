"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StockKernelError:

    StockKernelError (base)
    |
    +-- InvalidArgumentError
    |   +-- ItemNotFoundError
    |   +-- LotNotFoundError
    |
    +-- InsufficientStockError
    |
    +-- InvariantViolationError
    |   +-- ImmutabilityViolationError
    |   +-- InvalidTransactionTransitionError
    |
    +-- StorageUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                          | When Raised
------------------------------|-----------------------------------------------
INVALID_ARGUMENT              | Malformed input, rejected before storage access
ITEM_NOT_FOUND                | Unknown or deleted item id
LOT_NOT_FOUND                 | Unknown lot id
INSUFFICIENT_STOCK            | FIFO subtraction exceeds active lot stock
INVARIANT_VIOLATION           | Lot would go negative, consistency check failed
IMMUTABILITY_VIOLATION        | Update/delete of an adjustment or lot delete
INVALID_TRANSACTION_TRANSITION| Stock transaction state machine misuse
STORAGE_UNAVAILABLE           | Connection loss, constraint failure

===============================================================================
HANDLING PATTERNS
===============================================================================

InsufficientStockError is a business condition. StockCoordinator catches it
at the transaction boundary, rolls back and returns it inside a StockResult,
so callers branch on ``result.outcome`` rather than on an exception:

    result = coordinator.adjust_stock(item_id, 10, "subtraction", ctx)
    if result.outcome is StockOutcome.INSUFFICIENT_STOCK:
        respond(409, code=result.error.code, available=result.error.available)

Every other error is raised after rollback and should be caught by type:

    except InvalidArgumentError as e:      -> caller bug / bad input
    except InvariantViolationError as e:   -> data-integrity bug, alert
    except StorageUnavailableError as e:   -> caller decides on retry
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Argument errors


class InvalidArgumentError(StockKernelError):
    """Malformed input rejected before any storage access."""

    code: str = "INVALID_ARGUMENT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid argument '{field}': {reason}")


class ItemNotFoundError(InvalidArgumentError):
    """Item does not exist or has been deleted."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__("item_id", f"item {item_id} not found")


class LotNotFoundError(InvalidArgumentError):
    """Stock lot does not exist."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, lot_id: int):
        self.lot_id = lot_id
        super().__init__("lot_id", f"lot {lot_id} not found")


# Business conditions


class InsufficientStockError(StockKernelError):
    """
    FIFO subtraction cannot be satisfied from the item's active lots.

    Not transient: retrying without new stock yields the same result.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: int | None, requested: int, available: int):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for item {item_id}: "
            f"requested {requested}, available {available}"
        )


# Integrity errors


class InvariantViolationError(StockKernelError):
    """An internal consistency rule was about to be broken."""

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, detail: str):
        self.invariant = invariant
        self.detail = detail
        super().__init__(f"Invariant '{invariant}' violated: {detail}")


class ImmutabilityViolationError(InvariantViolationError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            "immutability",
            f"{entity_type} {entity_id}: {reason}",
        )


class InvalidTransactionTransitionError(InvariantViolationError):
    """A stock transaction was driven through an illegal state change."""

    code: str = "INVALID_TRANSACTION_TRANSITION"

    def __init__(self, operation: str, from_state: str, to_state: str):
        self.operation = operation
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            "transaction_state",
            f"{operation}: {from_state} -> {to_state} is not allowed",
        )


# Storage errors


class StorageUnavailableError(StockKernelError):
    """
    The transactional store could not execute the operation.

    The original driver error is chained as ``__cause__``. No retry is
    attempted inside the kernel.
    """

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage unavailable during {operation}: {detail}")
