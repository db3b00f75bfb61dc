"""Database layer - engine, base classes, types, and immutability."""

from stock_kernel.db.base import Base, TrackedBase
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    make_session_factory,
)
from stock_kernel.db.types import IdentityType, to_money

__all__ = [
    "init_engine_from_url",
    "make_session_factory",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "IdentityType",
    "to_money",
]
