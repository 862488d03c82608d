"""
SST Flasher - Program and dump SST39SF parallel NOR flash over a serial bridge

Host-side controller for the bridge's byte protocol: handshake, chip
identification, erase and per-byte program/verify or dump.
"""

__version__ = "0.1.0"

from sst_flasher.protocol import BridgeTransport, SSTFlasherProtocol
from sst_flasher.core import write_flash, dump_flash, read_signature

__all__ = [
    "BridgeTransport",
    "SSTFlasherProtocol",
    "write_flash",
    "dump_flash",
    "read_signature",
    "__version__",
]
