"""
Module: stock_kernel.db.types
Responsibility: Shared column types and boundary value coercion.  Every
    model uses the same identity type.
Architecture position: Kernel > DB.  May be imported by models/, services/,
    and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Identities are autoincrement integers.  Insertion order (id) is the
      FIFO tie breaker for lots received on the same date.
    - Quantities are whole units (integers).  No floats anywhere.
    - Prices use Decimal (Numeric(38, 9) through Base.type_annotation_map).
"""

from decimal import Decimal

from sqlalchemy import BigInteger, Integer

# SQLite only autoincrements an INTEGER PRIMARY KEY (rowid alias), so the
# BIGINT identity degrades to INTEGER there.
IdentityType = BigInteger().with_variant(Integer(), "sqlite")


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Coerce a boundary price value to Decimal.

    Floats are refused: their binary representation cannot be stored
    exactly.

    Raises:
        TypeError: if ``value`` is a float or an unsupported type.
        decimal.InvalidOperation: if a string is not numeric.
    """
    if isinstance(value, (bool, float)):
        raise TypeError(f"price must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"price must be Decimal, int or str, got {type(value).__name__}")
