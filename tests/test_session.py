"""Tests for the session wiring of transport, decoder and encoder."""

import pytest

from midi_stream_mcp.models.config import Parameter
from midi_stream_mcp.protocol.dispatch import MessageCollector, ProprietaryCollector
from midi_stream_mcp.protocol.messages import ControlChange, NoteOn, Sync
from midi_stream_mcp.session import DEFAULT_BAUD, MidiSession
from midi_stream_mcp.transport.base import LoopbackTransport


def test_begin_sets_filter_and_baud():
    transport = LoopbackTransport()
    session = MidiSession(transport)
    session.begin(channel=3)
    assert session.get_parameter(Parameter.CHANNEL_FILTER) == 3
    assert session.baud == DEFAULT_BAUD == 31250
    assert transport.baud == 31250


def test_begin_rejects_bad_channel():
    session = MidiSession(LoopbackTransport())
    with pytest.raises(ValueError):
        session.begin(channel=17)


def test_begin_without_set_baud():
    """Transports without set_baud are fine; the speed is only recorded."""

    class BareTransport:
        def try_read_byte(self):
            return None

        def write_byte(self, byte):
            pass

    session = MidiSession(BareTransport())
    session.begin(baud=38400)
    assert session.baud == 38400


def test_loopback_roundtrip():
    """Sent messages come back through the loopback and decode."""
    collector = MessageCollector()
    session = MidiSession(LoopbackTransport(), handler=collector)
    session.begin()
    session.send(NoteOn(1, 60, 100))
    session.encoder.send_control_change(1, 7, 100)
    session.encoder.send_control_change(1, 10, 64)
    session.encoder.send_sync()
    assert session.poll() == 9
    assert collector.messages == [
        NoteOn(1, 60, 100),
        ControlChange(1, 7, 100),
        ControlChange(1, 10, 64),
        Sync(),
    ]


def test_parameters_shared_by_decoder_and_encoder():
    session = MidiSession(LoopbackTransport())
    session.set_parameter(Parameter.SEND_FULL_COMMANDS, True)
    session.set_parameter(Parameter.CHANNEL_FILTER, 9)
    assert session.encoder.config.send_full_commands is True
    assert session.decoder.config.channel_filter == 9


def test_channel_filter_on_loopback():
    collector = MessageCollector()
    session = MidiSession(LoopbackTransport(), handler=collector)
    session.begin(channel=2)
    session.encoder.send_note_on(1, 60, 100)
    session.encoder.send_note_on(2, 62, 100)
    session.poll()
    assert collector.messages == [NoteOn(2, 62, 100)]


def test_proprietary_roundtrip():
    sink = ProprietaryCollector()
    session = MidiSession(LoopbackTransport(), sink=sink)
    session.send_proprietary(b"\x7e\x7f\x06\x01")
    session.poll()
    assert sink.completed == [b"\x7e\x7f\x06\x01"]
