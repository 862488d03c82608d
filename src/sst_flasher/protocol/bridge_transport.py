"""
Bridge Transport Layer

Handles low-level serial communication with the microcontroller bridge
that drives the SST39SF parallel bus.

This module provides:
- Serial port initialization and configuration
- Raw and single-byte send/receive
- Optional read timeout (unbounded by default)
"""

import logging
from typing import Optional

try:
    import serial
except ImportError:
    raise ImportError("PySerial required: pip install pyserial")

logger = logging.getLogger(__name__)

DEFAULT_BAUD = 500000
# None blocks forever, matching the bridge firmware's expectations.
DEFAULT_TIMEOUT: Optional[float] = None


class TransportError(Exception):
    """Base exception for transport layer errors"""
    pass


class TransportTimeout(TransportError):
    """Bridge did not deliver the requested bytes within the timeout"""
    pass


class BridgeTransport:
    """
    Byte-oriented serial transport to the flasher bridge.

    The transport is a context manager; leaving the block closes the port
    on every path.

    Example:
        with BridgeTransport("/dev/ttyUSB0") as transport:
            transport.send_raw(b"RR")
            manufacturer = transport.read_byte()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUD,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ):
        """
        Initialize transport layer.

        Args:
            port: Serial port (e.g., "/dev/ttyUSB0", "COM3")
            baudrate: Serial baud rate (default 500000)
            timeout: Read timeout in seconds, None to block indefinitely
        """
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.ser: Optional[serial.Serial] = None

    def __enter__(self) -> "BridgeTransport":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return bool(self.ser and self.ser.is_open)

    def open(self) -> None:
        """
        Open serial port and configure it for the bridge.

        Raises:
            TransportError: If port cannot be opened
        """
        try:
            self.ser = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=8,
                parity='N',
                stopbits=1,
                timeout=self.timeout,
                write_timeout=self.timeout,
            )
            logger.debug(
                f"Opened {self.port} at {self.baudrate} bps "
                f"(timeout={self.timeout})"
            )
        except serial.SerialException as e:
            raise TransportError(f"Cannot open port {self.port}: {e}")

    def close(self) -> None:
        """Close serial port."""
        if self.ser and self.ser.is_open:
            self.ser.close()
            logger.debug(f"Closed {self.port}")
        self.ser = None

    def send_raw(self, data: bytes) -> None:
        """
        Send raw bytes to the bridge.

        Raises:
            TransportError: If write fails
        """
        if not self.is_open:
            raise TransportError("Serial port not open")

        try:
            written = self.ser.write(data)
            if written is not None and written != len(data):
                raise TransportError(
                    f"Incomplete write: sent {written}/{len(data)} bytes"
                )
            logger.debug(">>> %s", data.hex().upper())
        except serial.SerialTimeoutException as e:
            raise TransportTimeout(f"Write timed out: {e}")
        except serial.SerialException as e:
            raise TransportError(f"Write error: {e}")

    def recv_raw(self, length: int) -> bytes:
        """
        Receive exactly ``length`` bytes from the bridge.

        Blocks until all bytes arrive unless a timeout was configured.

        Raises:
            TransportTimeout: If fewer bytes arrived before the timeout
            TransportError: If read fails
        """
        if not self.is_open:
            raise TransportError("Serial port not open")

        try:
            data = self.ser.read(length)
        except serial.SerialException as e:
            raise TransportError(f"Read error: {e}")

        if len(data) != length:
            raise TransportTimeout(
                f"Bridge did not respond (got {len(data)}/{length} bytes "
                f"within {self.timeout}s)"
            )

        logger.debug("<<< %s", data.hex().upper())
        return data

    def send_byte(self, value: int) -> None:
        """Send a single byte value (0-255)."""
        self.send_raw(bytes([value]))

    def read_byte(self) -> int:
        """Receive a single byte and return it as an int."""
        return self.recv_raw(1)[0]


def open_serial(
    port: str,
    baudrate: int = DEFAULT_BAUD,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> BridgeTransport:
    """
    Open a bridge transport connection.

    Returns:
        BridgeTransport instance (already open)
    """
    transport = BridgeTransport(port, baudrate, timeout)
    transport.open()
    return transport
