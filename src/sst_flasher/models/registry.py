"""
Chip registry for SST39SF parallel NOR flash devices.

Provides a single source of truth for:
- Device id -> chip name and capacity
- JEDEC manufacturer id -> vendor name

Both lookups are total: unknown ids resolve to a default entry instead of
raising, so an unrecognised chip can still be dumped or flashed.

Usage:
    from sst_flasher.models import lookup_chip, lookup_manufacturer

    profile = lookup_chip(0xB6)      # SST39SF020A, 262144 bytes
    vendor = lookup_manufacturer(0xBF)
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 512 * 1024
UNKNOWN_CHIP_NAME = "unknown"
UNKNOWN_MANUFACTURER = "Unknown"


@dataclass(frozen=True)
class ChipProfile:
    """Static description of a supported flash chip."""
    device_id: int
    name: str
    capacity: int
    known: bool = True

    @property
    def capacity_kib(self) -> int:
        return self.capacity // 1024


# ============================================================================
# CHIP REGISTRY
# ============================================================================

_CHIP_REGISTRY: Dict[int, ChipProfile] = {}


def _register_chip(profile: ChipProfile) -> None:
    """Register a chip profile."""
    _CHIP_REGISTRY[profile.device_id] = profile


def _init_registry() -> None:
    """Initialize the registry with the SST39SF family."""
    _register_chip(ChipProfile(device_id=0xB5, name="SST39SF010A", capacity=128 * 1024))
    _register_chip(ChipProfile(device_id=0xB6, name="SST39SF020A", capacity=256 * 1024))
    _register_chip(ChipProfile(device_id=0xB7, name="SST39SF040", capacity=512 * 1024))


_init_registry()


# JEDEC JEP106 bank 1 ids for vendors that ship 39SF-pinout parts
MANUFACTURERS: Dict[int, str] = {
    0x01: "AMD/Spansion",
    0x1F: "Atmel",
    0x20: "STMicroelectronics",
    0x37: "AMIC",
    0x4A: "Macronix (Excel)",
    0x89: "Intel",
    0x8C: "ESMT",
    0x9D: "PMC/ISSI",
    0xBF: "SST/Microchip",
    0xC2: "Macronix",
    0xDA: "Winbond",
}


def lookup_chip(device_id: int) -> ChipProfile:
    """
    Resolve a device id byte to a chip profile.

    Unknown ids fall back to an ``unknown`` profile with the largest
    capacity of the family, and a warning is logged.
    """
    profile = _CHIP_REGISTRY.get(device_id)
    if profile is not None:
        return profile

    logger.warning(
        "Cannot determine chip capacity for device id 0x%02X, defaulting to %d",
        device_id,
        DEFAULT_CAPACITY,
    )
    return ChipProfile(
        device_id=device_id,
        name=UNKNOWN_CHIP_NAME,
        capacity=DEFAULT_CAPACITY,
        known=False,
    )


def lookup_manufacturer(manufacturer_id: int) -> str:
    """Resolve a JEDEC manufacturer id, "Unknown" if not listed."""
    return MANUFACTURERS.get(manufacturer_id, UNKNOWN_MANUFACTURER)


def list_chips() -> List[ChipProfile]:
    """Return all known chip profiles ordered by device id."""
    return [_CHIP_REGISTRY[key] for key in sorted(_CHIP_REGISTRY)]


def max_capacity() -> int:
    """Largest capacity any supported (or defaulted) chip can have."""
    return max([DEFAULT_CAPACITY] + [p.capacity for p in _CHIP_REGISTRY.values()])
