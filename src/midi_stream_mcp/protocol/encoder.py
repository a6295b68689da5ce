"""MIDI encoder with running-status suppression.

Channel messages omit their status byte when it equals the last status
sent, unless full-command mode is on. Pitch change, song position and
song select are treated as global and always carry their status byte.
Every message, status-only system kinds included, records its status as
the last one sent, so the next channel message after a clock or tune
request carries its status again.
"""

from __future__ import annotations

import logging

from ..models.config import SessionConfig
from .messages import (
    ActiveSense,
    ChannelAfterTouch,
    Continue,
    ControlChange,
    MidiMessage,
    NoteOff,
    NoteOn,
    PitchChange,
    ProgramChange,
    Reset,
    SongPosition,
    SongSelect,
    Start,
    Stop,
    Sync,
    TuneRequest,
    VelocityChange,
)
from .status import DATA_MASK, Status

logger = logging.getLogger(__name__)

# Global kinds: status always sent, but still recorded as the last status
_ALWAYS_SEND_STATUS = (PitchChange, SongPosition, SongSelect)


class Encoder:
    """Turns messages into bytes and writes them to a transport.

    Usage::

        encoder = Encoder(transport)
        encoder.send_control_change(1, 7, 100)   # B0 07 64
        encoder.send_control_change(1, 10, 64)   # 0A 40 (running status)
    """

    def __init__(self, transport=None, config: SessionConfig | None = None) -> None:
        self.transport = transport
        self.config = config if config is not None else SessionConfig()
        self.last_status_sent: int | None = None

    def reset(self) -> None:
        """Forget the last status so the next message carries its own."""
        self.last_status_sent = None

    def encode(self, message: MidiMessage) -> bytes:
        """Return the bytes for ``message`` and update running-status state."""
        status = message.status_byte()
        data = message.data_bytes()

        if not data:
            self.last_status_sent = status
            return bytes([status])

        if isinstance(message, _ALWAYS_SEND_STATUS):
            send_status = True
        else:
            send_status = (
                self.config.send_full_commands or status != self.last_status_sent
            )
        self.last_status_sent = status

        if send_status:
            return bytes([status]) + data
        return data

    def encode_proprietary(self, payload: bytes) -> bytes:
        """Frame a vendor payload as ``F0 <payload> F7``.

        Payload bytes are masked to 7 bits. Running status is cleared.
        """
        self.last_status_sent = None
        return (
            bytes([Status.START_PROPRIETARY])
            + bytes(b & DATA_MASK for b in payload)
            + bytes([Status.END_PROPRIETARY])
        )

    def send(self, message: MidiMessage) -> bytes:
        """Encode ``message`` and write it. Returns the bytes written."""
        data = self.encode(message)
        self._write(data)
        return data

    def send_proprietary(self, payload: bytes) -> bytes:
        logger.debug("Sending %d-byte proprietary payload", len(payload))
        data = self.encode_proprietary(payload)
        self._write(data)
        return data

    def _write(self, data: bytes) -> None:
        if self.transport is None:
            raise ConnectionError("Encoder has no transport to write to")
        for byte in data:
            self.transport.write_byte(byte)

    # Convenience senders, one per message kind

    def send_note_off(self, channel: int, note: int, velocity: int) -> bytes:
        return self.send(NoteOff(channel, note, velocity))

    def send_note_on(self, channel: int, note: int, velocity: int) -> bytes:
        return self.send(NoteOn(channel, note, velocity))

    def send_velocity_change(self, channel: int, note: int, value: int) -> bytes:
        return self.send(VelocityChange(channel, note, value))

    def send_control_change(self, channel: int, controller: int, value: int) -> bytes:
        return self.send(ControlChange(channel, controller, value))

    def send_program_change(self, channel: int, program: int) -> bytes:
        return self.send(ProgramChange(channel, program))

    def send_channel_after_touch(self, channel: int, value: int) -> bytes:
        return self.send(ChannelAfterTouch(channel, value))

    def send_pitch_change(self, value: int, channel: int = 1) -> bytes:
        return self.send(PitchChange(value, channel))

    def send_song_position(self, position: int) -> bytes:
        return self.send(SongPosition(position))

    def send_song_select(self, song: int) -> bytes:
        return self.send(SongSelect(song))

    def send_tune_request(self) -> bytes:
        return self.send(TuneRequest())

    def send_sync(self) -> bytes:
        return self.send(Sync())

    def send_start(self) -> bytes:
        return self.send(Start())

    def send_continue(self) -> bytes:
        return self.send(Continue())

    def send_stop(self) -> bytes:
        return self.send(Stop())

    def send_active_sense(self) -> bytes:
        return self.send(ActiveSense())

    def send_reset(self) -> bytes:
        return self.send(Reset())
