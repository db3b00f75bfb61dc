"""
DTOs -- Typed boundary records for the stock kernel.

Responsibility:
    Defines the immutable records that cross the kernel boundary: ItemData,
    ItemUpdate, AdjustmentContext and LotDetails (inputs), LotDraw (allocation
    output), and ItemView, LotView, AdjustmentView (read projections).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  from_model() class methods exist as
    boundary converters but are only invoked from the selector layer.

Invariants enforced:
    - Inputs are validated in __post_init__, before any storage access.
      Violations raise InvalidArgumentError.
    - Quantities are whole, non-negative ints (bool is not an int here).
    - Prices are Decimal.  Floats are refused.

Failure modes:
    - InvalidArgumentError on blank names, negative quantities, bad ids,
      unknown adjustment or tag types.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from stock_kernel.db.types import to_money
from stock_kernel.domain.values import AdjustmentType, TagType
from stock_kernel.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from stock_kernel.models.adjustment import AdjustmentModel
    from stock_kernel.models.item import ItemModel
    from stock_kernel.models.stock_lot import StockLotModel


# ---------------------------------------------------------------------------
# Field validation helpers
# ---------------------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_quantity(name: str, value: Any, *, positive: bool = False) -> int:
    """Validate a whole-unit quantity and return it."""
    if not _is_int(value):
        raise InvalidArgumentError(name, f"must be an integer, got {value!r}")
    if positive and value <= 0:
        raise InvalidArgumentError(name, f"must be positive, got {value}")
    if value < 0:
        raise InvalidArgumentError(name, f"cannot be negative, got {value}")
    return value


def _check_optional_id(name: str, value: Any) -> None:
    if value is None:
        return
    if not _is_int(value) or value <= 0:
        raise InvalidArgumentError(name, f"must be a positive integer id, got {value!r}")


def _check_optional_date(name: str, value: Any) -> None:
    # datetime is a date subclass but carries a time component
    if value is not None and (not isinstance(value, date) or isinstance(value, datetime)):
        raise InvalidArgumentError(name, f"must be a date, got {value!r}")


def _check_text(name: str, value: Any, max_length: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(name, "must be a non-blank string")
    if len(value) > max_length:
        raise InvalidArgumentError(name, f"longer than {max_length} characters")


def _coerce_price(value: Any) -> Decimal:
    try:
        price = to_money(value)
    except (TypeError, InvalidOperation) as exc:
        raise InvalidArgumentError("price", str(exc) or "not a number") from exc
    if not price.is_finite() or price < 0:
        raise InvalidArgumentError("price", f"must be a non-negative amount, got {value!r}")
    return price


def _freeze_media(value: Any) -> tuple[Any, ...] | None:
    if value is None:
        return None
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        raise InvalidArgumentError("media", "must be a list of media descriptors")
    return tuple(value)


def parse_adjustment_type(value: AdjustmentType | str) -> AdjustmentType:
    """Coerce ``"addition"``/``"subtraction"`` to AdjustmentType."""
    try:
        return AdjustmentType(value)
    except ValueError as exc:
        raise InvalidArgumentError(
            "adjustment_type", f"unknown adjustment type {value!r}"
        ) from exc


def parse_tag_type(value: TagType | str) -> TagType:
    try:
        return TagType(value)
    except ValueError as exc:
        raise InvalidArgumentError("tag_type", f"unknown tag type {value!r}") from exc


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdjustmentContext:
    """
    Who changed the stock, for which department, and why.

    ``reason`` may be omitted on item-level operations (create, edit,
    delete); the coordinator then fills in the configured default reason.
    A direct ``adjust_stock`` call requires it.
    """

    reason: str | None = None
    actor_id: int | None = None
    department_id: int | None = None

    def __post_init__(self) -> None:
        if self.reason is not None:
            _check_text("reason", self.reason, 4000)
        _check_optional_id("actor_id", self.actor_id)
        _check_optional_id("department_id", self.department_id)

    def with_default_reason(self, reason: str) -> AdjustmentContext:
        if self.reason is not None:
            return self
        return replace(self, reason=reason)


@dataclass(frozen=True)
class LotDetails:
    """Receipt metadata for the lot created by an addition."""

    expiry_date: date | None = None
    received_date: date | None = None
    lot_code: str | None = None
    vendor_id: int | None = None
    department_id: int | None = None
    manufacturer_id: int | None = None

    def __post_init__(self) -> None:
        _check_optional_date("expiry_date", self.expiry_date)
        _check_optional_date("received_date", self.received_date)
        if self.lot_code is not None:
            _check_text("lot_code", self.lot_code, 100)
        _check_optional_id("vendor_id", self.vendor_id)
        _check_optional_id("department_id", self.department_id)
        _check_optional_id("manufacturer_id", self.manufacturer_id)

    def tags(self) -> dict[TagType, int]:
        """The tags to upsert on the new lot, skipping unset ones."""
        candidates = {
            TagType.VENDOR: self.vendor_id,
            TagType.DEPARTMENT: self.department_id,
            TagType.MANUFACTURER: self.manufacturer_id,
        }
        return {tag_type: tag_id for tag_type, tag_id in candidates.items() if tag_id is not None}


@dataclass(frozen=True)
class ItemData:
    """
    Everything needed to create an item and its opening lot.

    Contract:
        ``opening_quantity > 0`` produces exactly one opening lot, tagged
        with the given vendor / department / manufacturer.
    """

    name: str
    unit: str
    category_id: int | None = None
    price: Decimal = Decimal("0")
    threshold: int = 0
    opening_quantity: int = 0
    expiry_date: date | None = None
    received_date: date | None = None
    lot_code: str | None = None
    vendor_id: int | None = None
    department_id: int | None = None
    manufacturer_id: int | None = None
    media: tuple[Any, ...] | None = None

    def __post_init__(self) -> None:
        _check_text("name", self.name, 255)
        _check_text("unit", self.unit, 50)
        _check_optional_id("category_id", self.category_id)
        object.__setattr__(self, "price", _coerce_price(self.price))
        require_quantity("threshold", self.threshold)
        require_quantity("opening_quantity", self.opening_quantity)
        object.__setattr__(self, "media", _freeze_media(self.media))
        # Shared lot/tag checks
        self.opening_lot()

    def opening_lot(self) -> LotDetails:
        return LotDetails(
            expiry_date=self.expiry_date,
            received_date=self.received_date,
            lot_code=self.lot_code,
            vendor_id=self.vendor_id,
            department_id=self.department_id,
            manufacturer_id=self.manufacturer_id,
        )


@dataclass(frozen=True)
class ItemUpdate:
    """
    Partial item edit.  ``None`` leaves a field unchanged.

    ``target_quantity`` is the desired on-hand total.  The difference to the
    current total is booked through the ledger; lot fields describe the
    lot created when the difference is positive.  As with ItemData, the
    department id doubles as that lot's department tag.
    """

    name: str | None = None
    unit: str | None = None
    category_id: int | None = None
    department_id: int | None = None
    price: Decimal | None = None
    threshold: int | None = None
    media: tuple[Any, ...] | None = None
    target_quantity: int | None = None
    expiry_date: date | None = None
    received_date: date | None = None
    lot_code: str | None = None
    vendor_id: int | None = None
    manufacturer_id: int | None = None

    def __post_init__(self) -> None:
        if self.name is not None:
            _check_text("name", self.name, 255)
        if self.unit is not None:
            _check_text("unit", self.unit, 50)
        _check_optional_id("category_id", self.category_id)
        _check_optional_id("department_id", self.department_id)
        _check_optional_id("vendor_id", self.vendor_id)
        _check_optional_id("manufacturer_id", self.manufacturer_id)
        if self.price is not None:
            object.__setattr__(self, "price", _coerce_price(self.price))
        if self.threshold is not None:
            require_quantity("threshold", self.threshold)
        if self.target_quantity is not None:
            require_quantity("target_quantity", self.target_quantity)
        object.__setattr__(self, "media", _freeze_media(self.media))
        self.addition_lot()

    def addition_lot(self) -> LotDetails:
        return LotDetails(
            expiry_date=self.expiry_date,
            received_date=self.received_date,
            lot_code=self.lot_code,
            vendor_id=self.vendor_id,
            department_id=self.department_id,
            manufacturer_id=self.manufacturer_id,
        )


# ---------------------------------------------------------------------------
# Allocation output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LotDraw:
    """One lot-level decrement produced by FIFO allocation."""

    lot_id: int
    amount: int


# ---------------------------------------------------------------------------
# Read projections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LotView:
    id: int
    quantity: int
    received_date: date
    expiry_date: date | None
    lot_code: str | None
    tags: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_model(cls, model: StockLotModel, tags: dict[str, int] | None = None) -> LotView:
        return cls(
            id=model.id,
            quantity=model.quantity,
            received_date=model.received_date,
            expiry_date=model.expiry_date,
            lot_code=model.lot_code,
            tags=dict(tags or {}),
        )


@dataclass(frozen=True)
class ItemView:
    """
    Read-only item projection handed to callers.

    ``lots`` holds only active lots (quantity > 0) in FIFO order.
    """

    id: int
    name: str
    unit: str
    category_id: int | None
    department_id: int | None
    price: Decimal
    threshold: int
    on_hand: int
    low_stock: bool
    media: tuple[Any, ...]
    lots: tuple[LotView, ...] = ()

    @classmethod
    def from_model(cls, model: ItemModel, lots: tuple[LotView, ...] = ()) -> ItemView:
        return cls(
            id=model.id,
            name=model.name,
            unit=model.unit,
            category_id=model.category_id,
            department_id=model.department_id,
            price=model.price,
            threshold=model.threshold,
            on_hand=model.on_hand,
            low_stock=model.low_stock,
            media=tuple(model.media or ()),
            lots=lots,
        )


@dataclass(frozen=True)
class AdjustmentView:
    id: int
    lot_id: int
    item_id: int
    quantity: int
    adjustment_type: AdjustmentType
    reason: str
    actor_id: int | None
    department_id: int | None
    created_at: datetime

    @property
    def signed_quantity(self) -> int:
        if self.adjustment_type is AdjustmentType.SUBTRACTION:
            return -self.quantity
        return self.quantity

    @classmethod
    def from_model(cls, model: AdjustmentModel) -> AdjustmentView:
        return cls(
            id=model.id,
            lot_id=model.lot_id,
            item_id=model.item_id,
            quantity=model.quantity,
            adjustment_type=AdjustmentType(model.adjustment_type),
            reason=model.reason,
            actor_id=model.actor_id,
            department_id=model.department_id,
            created_at=model.created_at,
        )
