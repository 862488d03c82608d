"""Bridge protocol layer - serial transport and SST39SF command set."""

from .bridge_transport import (
    BridgeTransport,
    TransportError,
    TransportTimeout,
    DEFAULT_BAUD,
    DEFAULT_TIMEOUT,
)
from .sst_protocol import (
    SSTFlasherProtocol,
    FlashProtocolError,
    EraseError,
    VerifyError,
    FlashMode,
    VerifyPolicy,
    ChipIdentity,
    TransferStats,
    progress_percent,
    READY_MARKER,
    WRITE_ACK,
    ERASE_STARTED,
    ERASE_DONE,
)

__all__ = [
    # Transport
    "BridgeTransport",
    "TransportError",
    "TransportTimeout",
    "DEFAULT_BAUD",
    "DEFAULT_TIMEOUT",
    # Protocol
    "SSTFlasherProtocol",
    "FlashProtocolError",
    "EraseError",
    "VerifyError",
    "FlashMode",
    "VerifyPolicy",
    "ChipIdentity",
    "TransferStats",
    "progress_percent",
    "READY_MARKER",
    "WRITE_ACK",
    "ERASE_STARTED",
    "ERASE_DONE",
]
