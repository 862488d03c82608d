"""
Centralized parsing helpers for CLI values.
"""

from typing import List

import serial.tools.list_ports


def list_serial_ports() -> List:
    """Enumerate serial ports in a stable order (the COM port id table)."""
    return sorted(serial.tools.list_ports.comports(), key=lambda p: p.device)


def parse_port(value: str) -> str:
    """
    Resolve a port argument to a device path.

    Accepts:
        - A numeric COM port id: index into list_serial_ports()
        - A device path or name: "/dev/ttyUSB0", "COM3"

    Raises:
        ValueError: If the value is empty or the id is out of range.
    """
    value = (value or "").strip()
    if not value:
        raise ValueError("Serial port must not be empty")

    if value.isdigit():
        ports = list_serial_ports()
        index = int(value)
        if index >= len(ports):
            raise ValueError(
                f"COM port id {index} not found ({len(ports)} ports available). "
                "Run 'ports' to list them."
            )
        return ports[index].device

    return value
