"""
SST39SF Bridge Protocol Implementation

Host side of the byte protocol spoken by the flasher bridge firmware.
Every exchange is a single byte; there is no framing or checksum.

Protocol sequence:
1. Bridge boots and sends "RDY"
2. Send 'R' (signature request) followed by 'W' (write) or 'R' (dump)
3. Bridge answers "RDY" again
4. Bridge sends manufacturer id, then device id
5. Write only: bridge sends 'D' (erase started), then 'S' (erase done)
6. Capacity transfer cycles:
   - Write: send data byte → recv 'N' (programmed) → recv readback byte
   - Dump:  recv data byte
7. No end marker; the host stops after capacity bytes
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Optional

from sst_flasher.models import ChipProfile, lookup_chip, lookup_manufacturer
from .bridge_transport import BridgeTransport

logger = logging.getLogger(__name__)

# Protocol constants
READY_MARKER = b"RDY"
CMD_SIGNATURE = b"R"
CMD_WRITE = b"W"
CMD_DUMP = b"R"
WRITE_ACK = ord("N")
ERASE_STARTED = ord("D")
ERASE_DONE = ord("S")

ProgressCallback = Callable[[int, int], None]


class FlashProtocolError(Exception):
    """Errors raised by bridge protocol operations."""


class EraseError(FlashProtocolError):
    """Erase handshake returned an unexpected code."""


class VerifyError(FlashProtocolError):
    """Programming ack or readback mismatch under the strict policy."""


class FlashMode(Enum):
    """Session mode selected by the second command byte."""
    SIGNATURE = "signature"
    WRITE = "write"
    DUMP = "dump"


class VerifyPolicy(Enum):
    """What the transfer engine does with a per-byte mismatch."""
    LENIENT = "lenient"  # log and continue
    STRICT = "strict"    # raise VerifyError


@dataclass(frozen=True)
class ChipIdentity:
    """Identification bytes reported by the bridge, resolved via the registry."""
    manufacturer_id: int
    device_id: int
    manufacturer: str
    profile: ChipProfile

    @property
    def capacity(self) -> int:
        return self.profile.capacity

    @property
    def name(self) -> str:
        return self.profile.name


@dataclass
class TransferStats:
    """Counters accumulated by a transfer pass."""
    bytes_transferred: int = 0
    ack_errors: int = 0
    verify_errors: int = 0

    @property
    def clean(self) -> bool:
        return self.ack_errors == 0 and self.verify_errors == 0


def progress_percent(index: int, total: int) -> float:
    """Completion percentage reported after ``index`` has been processed."""
    return index / total * 100.0


def _printable(value: int) -> str:
    return chr(value) if 0x20 <= value < 0x7F else "."


class SSTFlasherProtocol:
    """
    Protocol driver for the SST39SF flasher bridge.

    Operates on an already-open transport; the caller owns its lifetime.
    """

    def __init__(
        self,
        transport: BridgeTransport,
        policy: VerifyPolicy = VerifyPolicy.LENIENT,
    ):
        self.transport = transport
        self.policy = policy

    def wait_ready(self) -> int:
        """
        Block until the bridge sends "RDY".

        Each marker position is matched independently: a byte that does not
        equal the expected byte is skipped as junk and the same position is
        tried again. Earlier positions are never re-examined.

        Returns:
            Number of junk bytes skipped
        """
        junk = 0
        for expected in READY_MARKER:
            while True:
                value = self.transport.read_byte()
                if value == expected:
                    break
                junk += 1
                logger.debug(
                    "Junk byte 0x%02X ('%s') while waiting for '%s', %d skipped so far",
                    value,
                    _printable(value),
                    chr(expected),
                    junk,
                )

        if junk:
            logger.warning(f"{junk} junk bytes skipped while waiting for RDY")
        return junk

    def select_mode(self, mode: FlashMode) -> None:
        """
        Send the signature request and mode byte, then wait for RDY.

        Signature-only sessions use the dump selector: the bridge reports the
        chip ids the same way and the host simply stops reading afterwards.
        """
        selector = CMD_WRITE if mode is FlashMode.WRITE else CMD_DUMP
        logger.debug(f"Selecting {mode.value} mode")
        self.transport.send_raw(CMD_SIGNATURE)
        self.transport.send_raw(selector)
        self.wait_ready()
        logger.info("Flasher ready")

    def identify_chip(self) -> ChipIdentity:
        """
        Read manufacturer and device id bytes.

        Unknown ids are not fatal; see models.lookup_chip.
        """
        manufacturer_id = self.transport.read_byte()
        device_id = self.transport.read_byte()

        manufacturer = lookup_manufacturer(manufacturer_id)
        profile = lookup_chip(device_id)

        logger.info(f"Manufacturer ID: 0x{manufacturer_id:02X} ({manufacturer})")
        logger.info(
            f"Device ID: 0x{device_id:02X} ({profile.name}, {profile.capacity} bytes)"
        )
        return ChipIdentity(
            manufacturer_id=manufacturer_id,
            device_id=device_id,
            manufacturer=manufacturer,
            profile=profile,
        )

    def await_erase(self) -> None:
        """
        Wait for the two-stage chip erase acknowledgment.

        Raises:
            EraseError: If either status byte is not the expected code
        """
        logger.info("Erasing chip...")
        started = self.transport.read_byte()
        if started != ERASE_STARTED:
            raise EraseError(
                f"Erase did not start: expected 'D', got 0x{started:02X} "
                f"('{_printable(started)}')"
            )

        done = self.transport.read_byte()
        if done != ERASE_DONE:
            raise EraseError(
                f"Erasing chip failed with code 0x{done:02X} ('{_printable(done)}')"
            )
        logger.info("Erasing complete")

    def program_byte(self, address: int, value: int, stats: TransferStats) -> None:
        """Program one byte and check the ack and readback."""
        self.transport.send_byte(value)

        ack = self.transport.read_byte()
        if ack != WRITE_ACK:
            stats.ack_errors += 1
            message = (
                f"Programming byte at address 0x{address:06X} failed "
                f"with code 0x{ack:02X} ('{_printable(ack)}')"
            )
            if self.policy is VerifyPolicy.STRICT:
                raise VerifyError(message)
            logger.warning(message)

        readback = self.transport.read_byte()
        if readback != value:
            stats.verify_errors += 1
            message = (
                f"Byte 0x{readback:02X} at address 0x{address:06X} "
                f"should be 0x{value:02X}"
            )
            if self.policy is VerifyPolicy.STRICT:
                raise VerifyError(message)
            logger.warning(message)

    def write_image(
        self,
        buffer: bytes,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> TransferStats:
        """
        Program every byte of ``buffer`` in address order.

        The buffer length is the chip capacity.

        Args:
            buffer: Capacity-sized image (see core.session.build_transfer_buffer)
            progress_cb: Optional callback(index, total) after each byte

        Returns:
            TransferStats with ack/readback mismatch counters
        """
        total = len(buffer)
        stats = TransferStats()
        logger.info(f"Programming {total} bytes...")

        for address in range(total):
            self.program_byte(address, buffer[address], stats)
            stats.bytes_transferred += 1
            if progress_cb:
                progress_cb(address, total)

        if not stats.clean:
            logger.warning(
                f"Programming finished with {stats.ack_errors} ack errors "
                f"and {stats.verify_errors} readback mismatches"
            )
        return stats

    def dump_image(
        self,
        capacity: int,
        sink: BinaryIO,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> TransferStats:
        """
        Read ``capacity`` bytes from the chip into ``sink`` in address order.

        There is nothing to verify against in dump mode.
        """
        stats = TransferStats()
        logger.info(f"Dumping {capacity} bytes...")

        for address in range(capacity):
            value = self.transport.read_byte()
            sink.write(bytes([value]))
            stats.bytes_transferred += 1
            if progress_cb:
                progress_cb(address, capacity)

        return stats
