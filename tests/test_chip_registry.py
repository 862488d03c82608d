"""Tests for the chip and manufacturer lookup tables."""

import logging

import pytest

from sst_flasher.models import (
    DEFAULT_CAPACITY,
    lookup_chip,
    lookup_manufacturer,
    list_chips,
    max_capacity,
)


@pytest.mark.parametrize(
    "device_id, name, capacity",
    [
        (0xB5, "SST39SF010A", 131072),
        (0xB6, "SST39SF020A", 262144),
        (0xB7, "SST39SF040", 524288),
    ],
)
def test_known_device_ids_resolve_to_capacity(device_id, name, capacity):
    profile = lookup_chip(device_id)
    assert profile.name == name
    assert profile.capacity == capacity
    assert profile.known is True


@pytest.mark.parametrize("device_id", [0x00, 0xB4, 0xB8, 0xFF])
def test_unknown_device_id_defaults_with_warning(device_id, caplog):
    with caplog.at_level(logging.WARNING, logger="sst_flasher"):
        profile = lookup_chip(device_id)

    assert profile.name == "unknown"
    assert profile.capacity == 524288 == DEFAULT_CAPACITY
    assert profile.known is False
    assert profile.device_id == device_id
    assert "defaulting to 524288" in caplog.text


def test_known_lookup_does_not_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="sst_flasher"):
        lookup_chip(0xB6)
    assert caplog.records == []


def test_manufacturer_lookup():
    assert lookup_manufacturer(0xBF) == "SST/Microchip"
    assert lookup_manufacturer(0x42) == "Unknown"


def test_list_chips_is_ordered_by_device_id():
    ids = [profile.device_id for profile in list_chips()]
    assert ids == [0xB5, 0xB6, 0xB7]
    assert [p.capacity_kib for p in list_chips()] == [128, 256, 512]


def test_max_capacity_covers_default():
    assert max_capacity() == 524288
