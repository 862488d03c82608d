"""
Core module for the SST39SF flasher.

This module provides the single source of truth for:
- Session state and transfer buffers (session.py)
- Port parsing (parsing.py)
- Result objects (results.py)
- End-to-end write/dump/identify workflows (actions.py)

The CLI calls into this module rather than driving the protocol itself.
"""

from .session import (
    FlashSession,
    ImageTooLargeError,
    SessionStateError,
    build_transfer_buffer,
    check_image_size,
    read_source_image,
)
from .parsing import parse_port, list_serial_ports
from .results import OperationResult
from .actions import read_signature, write_flash, dump_flash

__all__ = [
    # Session
    "FlashSession",
    "ImageTooLargeError",
    "SessionStateError",
    "build_transfer_buffer",
    "check_image_size",
    "read_source_image",
    # Parsing
    "parse_port",
    "list_serial_ports",
    # Results
    "OperationResult",
    # Actions
    "read_signature",
    "write_flash",
    "dump_flash",
]
