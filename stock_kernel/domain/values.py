"""
Value enums shared by the ORM models, the boundary DTOs and the services.

Pure module, zero I/O.  Models persist these as their string values.
"""

from enum import Enum


class AdjustmentType(str, Enum):
    """Direction of one lot-level quantity change."""

    ADDITION = "addition"
    SUBTRACTION = "subtraction"


class TagType(str, Enum):
    """Kind of external entity a lot can be tagged with (one per kind per lot)."""

    VENDOR = "vendor"
    DEPARTMENT = "department"
    MANUFACTURER = "manufacturer"
