"""Shared fakes for the bridge transport."""

from collections import deque

import pytest

from sst_flasher.protocol import TransportTimeout


CHIP_SIZES = {0xB5: 128 * 1024, 0xB6: 256 * 1024, 0xB7: 512 * 1024}


class ScriptedTransport:
    """Replays a fixed byte script and records everything the host sends."""

    def __init__(self, incoming: bytes = b""):
        self.incoming = bytearray(incoming)
        self.sent = bytearray()

    def send_raw(self, data: bytes) -> None:
        self.sent.extend(data)

    def send_byte(self, value: int) -> None:
        self.sent.append(value)

    def recv_raw(self, length: int) -> bytes:
        if len(self.incoming) < length:
            raise TransportTimeout("script exhausted")
        data = bytes(self.incoming[:length])
        del self.incoming[:length]
        return data

    def read_byte(self) -> int:
        return self.recv_raw(1)[0]


class SimulatedBridge:
    """
    In-memory model of the bridge firmware.

    Usable directly as a transport_factory: calling it records the port
    settings and returns the bridge itself.
    """

    def __init__(
        self,
        device_id: int = 0xB7,
        manufacturer_id: int = 0xBF,
        memory: bytes = None,
        boot_noise: bytes = b"",
        erase_codes: bytes = b"DS",
        nack_at=(),
        corrupt_at=(),
    ):
        self.device_id = device_id
        self.manufacturer_id = manufacturer_id
        self.size = CHIP_SIZES.get(device_id, 512 * 1024)
        self.memory = bytearray(memory if memory is not None else b"\xFF" * self.size)
        self.erase_codes = erase_codes
        self.nack_at = set(nack_at)
        self.corrupt_at = set(corrupt_at)

        self.rx = deque(boot_noise + b"RDY")
        self.sent = bytearray()
        self.command = bytearray()
        self.state = "command"
        self.write_cycles = 0
        self.opened = 0
        self.closed = 0
        self.port = None
        self.baudrate = None
        self.timeout = None

    def __call__(self, port, baudrate=None, timeout=None):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        return self

    def __enter__(self):
        self.opened += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed += 1

    def _ident(self) -> bytes:
        return b"RDY" + bytes([self.manufacturer_id, self.device_id])

    def _handle(self, value: int) -> None:
        if self.state == "command":
            self.command.append(value)
            if len(self.command) < 2:
                return
            if bytes(self.command) == b"RW":
                self.memory[:] = b"\xFF" * len(self.memory)
                self.rx.extend(self._ident() + self.erase_codes)
                self.state = "write"
            else:
                self.rx.extend(self._ident())
                self.rx.extend(self.memory[:self.size])
                self.state = "dump"
        elif self.state == "write":
            address = self.write_cycles
            self.memory[address] &= value
            readback = self.memory[address]
            if address in self.corrupt_at:
                readback ^= 0xFF
            ack = ord("E") if address in self.nack_at else ord("N")
            self.rx.extend((ack, readback))
            self.write_cycles += 1

    def send_raw(self, data: bytes) -> None:
        for value in data:
            self.sent.append(value)
            self._handle(value)

    def send_byte(self, value: int) -> None:
        self.send_raw(bytes([value]))

    def recv_raw(self, length: int) -> bytes:
        if len(self.rx) < length:
            raise TransportTimeout("bridge idle")
        return bytes(self.rx.popleft() for _ in range(length))

    def read_byte(self) -> int:
        return self.recv_raw(1)[0]


@pytest.fixture
def scripted():
    """Factory for ScriptedTransport instances."""
    return ScriptedTransport


@pytest.fixture
def make_bridge():
    """Factory for SimulatedBridge instances."""
    return SimulatedBridge
