"""Tests for the bridge protocol state machine."""

import io
import logging

import pytest

from sst_flasher.protocol import (
    EraseError,
    FlashMode,
    SSTFlasherProtocol,
    TransportTimeout,
    VerifyError,
    VerifyPolicy,
    progress_percent,
)


class TestWaitReady:
    """Test the RDY synchronization matcher."""

    def test_clean_marker(self, scripted):
        transport = scripted(b"RDY")
        assert SSTFlasherProtocol(transport).wait_ready() == 0
        assert transport.incoming == b""

    def test_false_partial_match_is_not_restarted(self, scripted):
        """X R D R D Y: positions are matched one at a time, junk = X, R, D."""
        transport = scripted(b"XRDRDY" + b"\xBF")
        junk = SSTFlasherProtocol(transport).wait_ready()
        assert junk == 3
        # Nothing past the Y is consumed
        assert transport.incoming == b"\xBF"

    def test_junk_count_is_logged(self, scripted, caplog):
        transport = scripted(b"\x00\x00RDY")
        with caplog.at_level(logging.WARNING, logger="sst_flasher"):
            SSTFlasherProtocol(transport).wait_ready()
        assert "2 junk bytes skipped" in caplog.text

    @pytest.mark.parametrize("stream", [b"", b"R", b"RD", b"XXRD", b"DYR"])
    def test_never_matches_short_sequence(self, scripted, stream):
        transport = scripted(stream)
        with pytest.raises(TransportTimeout):
            SSTFlasherProtocol(transport).wait_ready()


class TestSelectMode:
    """Test the command dispatcher."""

    @pytest.mark.parametrize(
        "mode, expected",
        [
            (FlashMode.WRITE, b"RW"),
            (FlashMode.DUMP, b"RR"),
            (FlashMode.SIGNATURE, b"RR"),
        ],
    )
    def test_sends_selector_then_waits_ready(self, scripted, mode, expected):
        transport = scripted(b"RDY\xBF")
        SSTFlasherProtocol(transport).select_mode(mode)
        assert bytes(transport.sent) == expected
        assert transport.incoming == b"\xBF"


class TestIdentifyChip:
    """Test chip identification."""

    def test_reads_manufacturer_then_device(self, scripted):
        transport = scripted(b"\xBF\xB6")
        identity = SSTFlasherProtocol(transport).identify_chip()
        assert identity.manufacturer_id == 0xBF
        assert identity.device_id == 0xB6
        assert identity.manufacturer == "SST/Microchip"
        assert identity.name == "SST39SF020A"
        assert identity.capacity == 262144
        assert transport.sent == b""

    def test_unknown_ids_are_not_fatal(self, scripted):
        transport = scripted(b"\x42\x99")
        identity = SSTFlasherProtocol(transport).identify_chip()
        assert identity.manufacturer == "Unknown"
        assert identity.name == "unknown"
        assert identity.capacity == 524288


class TestAwaitErase:
    """Test the two-stage erase handshake."""

    def test_erase_ok(self, scripted):
        transport = scripted(b"DS")
        SSTFlasherProtocol(transport).await_erase()
        assert transport.incoming == b""

    def test_erase_not_started(self, scripted):
        transport = scripted(b"XS")
        with pytest.raises(EraseError) as ei:
            SSTFlasherProtocol(transport).await_erase()
        assert "did not start" in str(ei.value)
        # The second status byte is never read
        assert transport.incoming == b"S"

    def test_erase_failed_names_code(self, scripted):
        transport = scripted(b"DF")
        with pytest.raises(EraseError) as ei:
            SSTFlasherProtocol(transport).await_erase()
        assert "0x46" in str(ei.value)
        assert "'F'" in str(ei.value)


class TestWriteImage:
    """Test the programming loop."""

    def test_sends_each_byte_in_order(self, scripted):
        data = bytes([0x00, 0x7F, 0xFF])
        transport = scripted(b"N\x00N\x7FN\xFF")
        stats = SSTFlasherProtocol(transport).write_image(data)
        assert bytes(transport.sent) == data
        assert stats.bytes_transferred == 3
        assert stats.clean

    def test_lenient_logs_and_continues(self, scripted, caplog):
        data = bytes([0x11, 0x22, 0x33])
        # byte 0 nacked, byte 1 reads back wrong
        transport = scripted(b"E\x11N\x20N\x33")
        with caplog.at_level(logging.WARNING, logger="sst_flasher"):
            stats = SSTFlasherProtocol(transport).write_image(data)

        assert bytes(transport.sent) == data
        assert stats.bytes_transferred == 3
        assert stats.ack_errors == 1
        assert stats.verify_errors == 1
        assert "Byte 0x20 at address 0x000001 should be 0x22" in caplog.text
        assert "Programming byte at address 0x000000 failed" in caplog.text

    def test_strict_aborts_on_nack(self, scripted):
        transport = scripted(b"E\x11N\x22")
        protocol = SSTFlasherProtocol(transport, policy=VerifyPolicy.STRICT)
        with pytest.raises(VerifyError):
            protocol.write_image(bytes([0x11, 0x22]))
        assert bytes(transport.sent) == b"\x11"

    def test_strict_aborts_on_readback_mismatch(self, scripted):
        transport = scripted(b"N\x11N\x00N\x33")
        protocol = SSTFlasherProtocol(transport, policy=VerifyPolicy.STRICT)
        with pytest.raises(VerifyError) as ei:
            protocol.write_image(bytes([0x11, 0x22, 0x33]))
        assert "address 0x000001" in str(ei.value)
        assert bytes(transport.sent) == b"\x11\x22"

    def test_progress_matches_index_fraction(self, scripted):
        data = bytes(8)
        transport = scripted(b"N\x00" * 8)
        seen = []
        SSTFlasherProtocol(transport).write_image(
            data, progress_cb=lambda i, total: seen.append(progress_percent(i, total))
        )
        assert seen == pytest.approx([i / 8 * 100 for i in range(8)])
        assert seen == sorted(seen)


class TestDumpImage:
    """Test the dump loop."""

    def test_dump_copies_bytes_in_order(self, scripted):
        payload = bytes(range(16))
        transport = scripted(payload + b"extra")
        sink = io.BytesIO()
        calls = []

        stats = SSTFlasherProtocol(transport).dump_image(
            16, sink, progress_cb=lambda i, total: calls.append((i, total))
        )

        assert sink.getvalue() == payload
        assert stats.bytes_transferred == 16
        assert transport.sent == b""
        assert transport.incoming == b"extra"
        assert calls == [(i, 16) for i in range(16)]

    def test_dump_times_out_when_bridge_stops(self, scripted):
        transport = scripted(b"\x01\x02")
        with pytest.raises(TransportTimeout):
            SSTFlasherProtocol(transport).dump_image(4, io.BytesIO())


def test_progress_percent():
    assert progress_percent(0, 131072) == 0.0
    assert progress_percent(65536, 131072) == 50.0
    assert progress_percent(131071, 131072) == pytest.approx(131071 / 131072 * 100)
