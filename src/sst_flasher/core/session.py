"""
Session state and transfer buffer handling.

A FlashSession carries everything one end-to-end run needs: the open
transport, the selected mode and the chip identity. The chip capacity is
bound exactly once, when the chip is identified; every buffer size and
loop bound afterwards is derived from it.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from sst_flasher.models import max_capacity
from sst_flasher.protocol import BridgeTransport, ChipIdentity, FlashMode

logger = logging.getLogger(__name__)


class SessionStateError(Exception):
    """Session used out of order (e.g. capacity bound twice)."""


class ImageTooLargeError(Exception):
    """
    Raised when a source image does not fit on the chip.

    Attributes:
        size: Source image size in bytes
        capacity: Capacity it was checked against
    """
    def __init__(self, size: int, capacity: int):
        self.size = size
        self.capacity = capacity
        super().__init__(f"File too large ({size} bytes > {capacity} bytes capacity)")


@dataclass
class FlashSession:
    """
    One flashing/dumping run against a single bridge.

    Attributes:
        port: Serial port the bridge is attached to
        mode: Selected session mode
        transport: Open transport while the session is active
        identity: Chip identity once identified
    """
    port: str
    mode: FlashMode
    transport: Optional[BridgeTransport] = None
    identity: Optional[ChipIdentity] = None
    _capacity: Optional[int] = field(default=None, repr=False)

    @property
    def capacity(self) -> int:
        if self._capacity is None:
            raise SessionStateError("Chip capacity is not known before identification")
        return self._capacity

    def bind_chip(self, identity: ChipIdentity) -> None:
        """Record the identified chip and fix the session capacity."""
        if self._capacity is not None:
            raise SessionStateError(
                f"Capacity already bound to {self._capacity} bytes for this session"
            )
        self.identity = identity
        self._capacity = identity.capacity


def check_image_size(size: int, capacity: int) -> None:
    """Reject images that do not fit in ``capacity`` bytes."""
    if size > capacity:
        raise ImageTooLargeError(size, capacity)


def read_source_image(path: Union[str, Path]) -> bytes:
    """
    Read a flashing source file.

    The file is checked against the largest chip the flasher can address so
    that an oversized file is rejected before the port is opened.

    Raises:
        FileNotFoundError / OSError: If the file cannot be read
        ImageTooLargeError: If the file cannot fit on any supported chip
    """
    path = Path(path)
    data = path.read_bytes()
    check_image_size(len(data), max_capacity())
    logger.debug(f"Loaded {len(data)} bytes from {path}")
    return data


def build_transfer_buffer(data: bytes, capacity: int) -> bytearray:
    """
    Build the capacity-sized image programmed onto the chip.

    The buffer is zero filled and the source data overlaid at address 0.
    """
    check_image_size(len(data), capacity)
    buffer = bytearray(capacity)
    buffer[:len(data)] = data
    if len(data) < capacity:
        logger.debug(f"Padded image with {capacity - len(data)} zero bytes")
    return buffer
