"""
Core workflow actions for the SST39SF flasher.

This module exposes the end-to-end sessions the CLI calls. Each workflow
opens the bridge transport in a ``with`` block so the port is released on
every exit path, and reports its outcome as an OperationResult.
"""

import hashlib
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, Union

from sst_flasher.protocol import (
    BridgeTransport,
    ChipIdentity,
    FlashMode,
    FlashProtocolError,
    SSTFlasherProtocol,
    TransferStats,
    TransportError,
    VerifyPolicy,
    DEFAULT_BAUD,
    DEFAULT_TIMEOUT,
)
from .results import OperationResult
from .session import (
    FlashSession,
    ImageTooLargeError,
    SessionStateError,
    build_transfer_buffer,
    read_source_image,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
TransportFactory = Callable[..., BridgeTransport]

# Failures that are reported without a traceback
_EXPECTED_ERRORS = (
    TransportError,
    FlashProtocolError,
    ImageTooLargeError,
    SessionStateError,
    OSError,
)


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "sst_flasher"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def _fail(operation: str, port: str, exc: Exception, logs) -> OperationResult:
    if isinstance(exc, _EXPECTED_ERRORS):
        logger.error(f"{operation} failed: {exc}")
    else:
        logger.exception(f"{operation} failed")
    result = OperationResult.failure(operation=operation, error=str(exc), port=port)
    result.logs = logs
    return result


def _start_session(
    protocol: SSTFlasherProtocol,
    session: FlashSession,
    result_warnings: list,
) -> ChipIdentity:
    """Synchronize, select the session mode and identify the chip."""
    junk = protocol.wait_ready()
    if junk:
        result_warnings.append(f"{junk} junk bytes skipped before first RDY")

    protocol.select_mode(session.mode)

    identity = protocol.identify_chip()
    session.bind_chip(identity)
    if not identity.profile.known:
        result_warnings.append(
            f"Unknown device id 0x{identity.device_id:02X}, "
            f"assumed {identity.capacity} bytes"
        )
    return identity


def _identity_metadata(identity: ChipIdentity) -> dict:
    return {
        "manufacturer_id": identity.manufacturer_id,
        "device_id": identity.device_id,
        "manufacturer": identity.manufacturer,
        "chip": identity.name,
        "capacity": identity.capacity,
    }


def _stats_warnings(stats: TransferStats) -> list:
    warnings = []
    if stats.ack_errors:
        warnings.append(f"{stats.ack_errors} bytes were not acknowledged by the bridge")
    if stats.verify_errors:
        warnings.append(f"{stats.verify_errors} bytes failed readback verification")
    return warnings


def read_signature(
    port: str,
    baud: int = DEFAULT_BAUD,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    transport_factory: TransportFactory = BridgeTransport,
) -> OperationResult:
    """
    Identify the chip without reading or programming it.

    Returns:
        OperationResult with metadata["identity"] describing the chip
    """
    operation = "read_signature"
    with _capture_logs() as logs:
        try:
            session = FlashSession(port=port, mode=FlashMode.SIGNATURE)
            warnings: list = []

            with transport_factory(port, baudrate=baud, timeout=timeout) as transport:
                session.transport = transport
                protocol = SSTFlasherProtocol(transport)
                identity = _start_session(protocol, session, warnings)

            result = OperationResult.success(
                operation=operation,
                port=port,
                chip=identity.name,
                capacity=session.capacity,
                warnings=warnings,
            )
            result.metadata["identity"] = _identity_metadata(identity)
            result.logs = logs
            return result

        except Exception as e:
            return _fail(operation, port, e, logs)


def write_flash(
    port: str,
    source_path: Union[str, Path],
    baud: int = DEFAULT_BAUD,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    policy: VerifyPolicy = VerifyPolicy.LENIENT,
    progress_cb: Optional[ProgressCallback] = None,
    transport_factory: TransportFactory = BridgeTransport,
) -> OperationResult:
    """
    Erase the chip and program it from ``source_path``.

    The source is read and size-checked before the port is opened, and
    checked again against the identified capacity before the erase
    handshake is consumed.

    Args:
        port: Serial port path
        source_path: Flat binary image, at most chip capacity bytes
        baud: Baud rate
        timeout: Read timeout in seconds, None to block indefinitely
        policy: Per-byte mismatch policy
        progress_cb: Optional progress callback(index, total)
        transport_factory: Transport constructor (port, baudrate=, timeout=)

    Returns:
        OperationResult with ack/readback counters in metadata["transfer"]
    """
    operation = "write_flash"
    with _capture_logs() as logs:
        try:
            image = read_source_image(source_path)
            session = FlashSession(port=port, mode=FlashMode.WRITE)
            warnings: list = []

            logger.info(f"Flashing from {source_path} on {port}")
            with transport_factory(port, baudrate=baud, timeout=timeout) as transport:
                session.transport = transport
                protocol = SSTFlasherProtocol(transport, policy=policy)
                identity = _start_session(protocol, session, warnings)

                buffer = build_transfer_buffer(image, session.capacity)
                protocol.await_erase()
                stats = protocol.write_image(buffer, progress_cb)

            warnings.extend(_stats_warnings(stats))
            result = OperationResult.success(
                operation=operation,
                port=port,
                chip=identity.name,
                capacity=session.capacity,
                bytes_len=stats.bytes_transferred,
                warnings=warnings,
            )
            result.hashes["sha256"] = hashlib.sha256(buffer).hexdigest()
            result.metadata["identity"] = _identity_metadata(identity)
            result.metadata["source_bytes"] = len(image)
            result.metadata["transfer"] = {
                "ack_errors": stats.ack_errors,
                "verify_errors": stats.verify_errors,
            }
            result.logs = logs
            return result

        except Exception as e:
            return _fail(operation, port, e, logs)


def dump_flash(
    port: str,
    dest_path: Union[str, Path],
    baud: int = DEFAULT_BAUD,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    progress_cb: Optional[ProgressCallback] = None,
    transport_factory: TransportFactory = BridgeTransport,
) -> OperationResult:
    """
    Read the whole chip into ``dest_path``.

    The destination is only created once the chip has been identified.

    Returns:
        OperationResult with the dump size and sha256
    """
    operation = "dump_flash"
    with _capture_logs() as logs:
        try:
            session = FlashSession(port=port, mode=FlashMode.DUMP)
            warnings: list = []

            logger.info(f"Dumping to {dest_path} from {port}")
            with transport_factory(port, baudrate=baud, timeout=timeout) as transport:
                session.transport = transport
                protocol = SSTFlasherProtocol(transport)
                identity = _start_session(protocol, session, warnings)

                with open(dest_path, "wb") as sink:
                    stats = protocol.dump_image(session.capacity, sink, progress_cb)

            result = OperationResult.success(
                operation=operation,
                port=port,
                chip=identity.name,
                capacity=session.capacity,
                bytes_len=stats.bytes_transferred,
                warnings=warnings,
            )
            result.hashes["sha256"] = hashlib.sha256(Path(dest_path).read_bytes()).hexdigest()
            result.metadata["identity"] = _identity_metadata(identity)
            result.metadata["output"] = str(dest_path)
            result.logs = logs
            return result

        except Exception as e:
            return _fail(operation, port, e, logs)
