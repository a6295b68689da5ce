"""Tests for USB-MIDI event packet handling and the USB transport."""

from unittest.mock import MagicMock, patch

import pytest
import usb.core

from midi_stream_mcp.transport.usb_midi import (
    USBMidiConnection,
    pack_single_bytes,
    unpack_event_packets,
)


def _connected(packets: list) -> tuple[USBMidiConnection, MagicMock, MagicMock]:
    """Build a connection with mocked endpoints, as if open() had succeeded."""
    conn = USBMidiConnection()
    ep_in = MagicMock(wMaxPacketSize=64)
    ep_in.read.side_effect = packets
    ep_out = MagicMock()
    conn._ep_in = ep_in
    conn._ep_out = ep_out
    conn._connected = True
    return conn, ep_in, ep_out


def test_unpack_channel_messages():
    """CIN 0x9 and 0x8 carry three MIDI bytes each."""
    data = bytes([0x09, 0x90, 0x3C, 0x40, 0x08, 0x80, 0x3C, 0x00])
    assert unpack_event_packets(data) == b"\x90\x3c\x40\x80\x3c\x00"


def test_unpack_short_messages():
    """Program change (CIN 0xC) has two valid bytes, clock (CIN 0xF) one."""
    data = bytes([0x0C, 0xC0, 0x05, 0x00, 0x0F, 0xF8, 0x00, 0x00])
    assert unpack_event_packets(data) == b"\xc0\x05\xf8"


def test_unpack_sysex_packets():
    """Sysex spans start/continue (0x4) and end (0x5-0x7) packets."""
    data = bytes([
        0x04, 0xF0, 0x7E, 0x7F,
        0x06, 0x09, 0xF7, 0x00,
    ])
    assert unpack_event_packets(data) == b"\xf0\x7e\x7f\x09\xf7"


def test_unpack_skips_reserved_and_partial():
    data = bytes([0x00, 0x00, 0x00, 0x00, 0x0F, 0xFA, 0x00, 0x00, 0x09, 0x90])
    assert unpack_event_packets(data) == b"\xfa"


def test_unpack_cable_filter():
    data = bytes([0x19, 0x91, 0x3C, 0x40, 0x09, 0x90, 0x3C, 0x40])
    assert unpack_event_packets(data, cable=1) == b"\x91\x3c\x40"
    assert unpack_event_packets(data, cable=0) == b"\x90\x3c\x40"


def test_pack_single_bytes():
    assert pack_single_bytes(b"\x90\x3c", cable=1) == bytes([
        0x1F, 0x90, 0x00, 0x00,
        0x1F, 0x3C, 0x00, 0x00,
    ])


def test_try_read_byte_buffers_packet():
    conn, ep_in, _ = _connected([
        bytes([0x09, 0x90, 0x3C, 0x40]),
        usb.core.USBTimeoutError("timeout"),
    ])
    assert [conn.try_read_byte() for _ in range(3)] == [0x90, 0x3C, 0x40]
    assert conn.try_read_byte() is None
    assert ep_in.read.call_count == 2


def test_try_read_byte_usb_error_is_no_data():
    conn, _, _ = _connected([usb.core.USBError("pipe error")])
    assert conn.try_read_byte() is None


def test_write_byte_sends_single_byte_packet():
    conn, _, ep_out = _connected([])
    conn.write_byte(0xF8)
    ep_out.write.assert_called_once_with(b"\x0f\xf8\x00\x00", timeout=1000)


def test_not_connected():
    conn = USBMidiConnection()
    assert conn.connected is False
    with pytest.raises(ConnectionError):
        conn.try_read_byte()
    with pytest.raises(ConnectionError):
        conn.write_byte(0xF8)


def test_open_no_device():
    """open() raises ConnectionError when nothing matches."""
    with patch("usb.core.find", return_value=None):
        with pytest.raises(ConnectionError):
            USBMidiConnection().open()


def test_open_by_vendor_and_product():
    with patch("usb.core.find", return_value=None) as find:
        with pytest.raises(ConnectionError):
            USBMidiConnection(vendor_id=0x0582, product_id=0x0160).open()
    find.assert_called_once_with(idVendor=0x0582, idProduct=0x0160)


def test_close_when_not_connected_is_noop():
    USBMidiConnection().close()
