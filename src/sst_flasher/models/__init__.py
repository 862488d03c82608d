"""
Chip registry for SST39SF flash devices.

Provides static lookups for chip capacity and manufacturer names.
"""

from .registry import (
    ChipProfile,
    DEFAULT_CAPACITY,
    MANUFACTURERS,
    UNKNOWN_CHIP_NAME,
    UNKNOWN_MANUFACTURER,
    lookup_chip,
    lookup_manufacturer,
    list_chips,
    max_capacity,
)

__all__ = [
    "ChipProfile",
    "DEFAULT_CAPACITY",
    "MANUFACTURERS",
    "UNKNOWN_CHIP_NAME",
    "UNKNOWN_MANUFACTURER",
    "lookup_chip",
    "lookup_manufacturer",
    "list_chips",
    "max_capacity",
]
