"""Typed MIDI messages.

One frozen dataclass per message kind. Field order matches the argument
order of the kind's dispatch hook, so a message can be handed to a
handler as ``getattr(handler, msg.HANDLER)(*msg.args())``.

Fields are not range-checked here; the encoder masks every data byte to
7 bits and every channel to its nibble on the way out.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar

from .status import DATA_MASK, Status, channel_status


@dataclass(frozen=True)
class MidiMessage:
    """Base class for all message kinds."""

    STATUS: ClassVar[int] = 0
    KIND: ClassVar[str] = ""
    HANDLER: ClassVar[str] = ""

    def status_byte(self) -> int:
        """Canonical status byte for this message."""
        return self.STATUS

    def data_bytes(self) -> bytes:
        """Data bytes in wire order, each masked to 7 bits."""
        return b""

    def args(self) -> tuple[int, ...]:
        """Arguments passed to the dispatch hook."""
        return tuple(getattr(self, f.name) for f in fields(self))

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.KIND}
        for f in fields(self):
            d[f.name] = getattr(self, f.name)
        return d


class _ChannelScoped:
    """Mixin for kinds whose status low nibble carries the channel."""

    def status_byte(self) -> int:
        return channel_status(self.STATUS, self.channel)


def _split14(value: int) -> bytes:
    return bytes([value & DATA_MASK, (value >> 7) & DATA_MASK])


@dataclass(frozen=True)
class NoteOff(_ChannelScoped, MidiMessage):
    STATUS: ClassVar[int] = Status.NOTE_OFF
    KIND: ClassVar[str] = "note_off"
    HANDLER: ClassVar[str] = "on_note_off"

    channel: int
    note: int
    velocity: int

    def data_bytes(self) -> bytes:
        return bytes([self.note & DATA_MASK, self.velocity & DATA_MASK])


@dataclass(frozen=True)
class NoteOn(_ChannelScoped, MidiMessage):
    STATUS: ClassVar[int] = Status.NOTE_ON
    KIND: ClassVar[str] = "note_on"
    HANDLER: ClassVar[str] = "on_note_on"

    channel: int
    note: int
    velocity: int

    def data_bytes(self) -> bytes:
        return bytes([self.note & DATA_MASK, self.velocity & DATA_MASK])


@dataclass(frozen=True)
class VelocityChange(_ChannelScoped, MidiMessage):
    """Polyphonic key pressure (aftertouch) for a single note."""

    STATUS: ClassVar[int] = Status.VELOCITY_CHANGE
    KIND: ClassVar[str] = "velocity_change"
    HANDLER: ClassVar[str] = "on_velocity_change"

    channel: int
    note: int
    value: int

    def data_bytes(self) -> bytes:
        return bytes([self.note & DATA_MASK, self.value & DATA_MASK])


@dataclass(frozen=True)
class ControlChange(_ChannelScoped, MidiMessage):
    STATUS: ClassVar[int] = Status.CONTROL_CHANGE
    KIND: ClassVar[str] = "control_change"
    HANDLER: ClassVar[str] = "on_control_change"

    channel: int
    controller: int
    value: int

    def data_bytes(self) -> bytes:
        return bytes([self.controller & DATA_MASK, self.value & DATA_MASK])


@dataclass(frozen=True)
class ProgramChange(_ChannelScoped, MidiMessage):
    STATUS: ClassVar[int] = Status.PROGRAM_CHANGE
    KIND: ClassVar[str] = "program_change"
    HANDLER: ClassVar[str] = "on_program_change"

    channel: int
    program: int

    def data_bytes(self) -> bytes:
        return bytes([self.program & DATA_MASK])


@dataclass(frozen=True)
class ChannelAfterTouch(_ChannelScoped, MidiMessage):
    STATUS: ClassVar[int] = Status.CHANNEL_AFTER_TOUCH
    KIND: ClassVar[str] = "channel_after_touch"
    HANDLER: ClassVar[str] = "on_channel_after_touch"

    channel: int
    value: int

    def data_bytes(self) -> bytes:
        return bytes([self.value & DATA_MASK])


@dataclass(frozen=True)
class PitchChange(_ChannelScoped, MidiMessage):
    """Pitch wheel position, 14 bits (0x2000 is centre)."""

    STATUS: ClassVar[int] = Status.PITCH_CHANGE
    KIND: ClassVar[str] = "pitch_change"
    HANDLER: ClassVar[str] = "on_pitch_change"

    value: int
    channel: int = 1

    def data_bytes(self) -> bytes:
        return _split14(self.value)


@dataclass(frozen=True)
class SongPosition(MidiMessage):
    """Song position pointer in MIDI beats (16th notes), 14 bits."""

    STATUS: ClassVar[int] = Status.SONG_POSITION
    KIND: ClassVar[str] = "song_position"
    HANDLER: ClassVar[str] = "on_song_position"

    position: int

    def data_bytes(self) -> bytes:
        return _split14(self.position)


@dataclass(frozen=True)
class SongSelect(MidiMessage):
    STATUS: ClassVar[int] = Status.SONG_SELECT
    KIND: ClassVar[str] = "song_select"
    HANDLER: ClassVar[str] = "on_song_select"

    song: int

    def data_bytes(self) -> bytes:
        return bytes([self.song & DATA_MASK])


@dataclass(frozen=True)
class TuneRequest(MidiMessage):
    STATUS: ClassVar[int] = Status.TUNE_REQUEST
    KIND: ClassVar[str] = "tune_request"
    HANDLER: ClassVar[str] = "on_tune_request"


@dataclass(frozen=True)
class Sync(MidiMessage):
    """Timing clock, 24 per quarter note."""

    STATUS: ClassVar[int] = Status.SYNC
    KIND: ClassVar[str] = "sync"
    HANDLER: ClassVar[str] = "on_sync"


@dataclass(frozen=True)
class Start(MidiMessage):
    STATUS: ClassVar[int] = Status.START
    KIND: ClassVar[str] = "start"
    HANDLER: ClassVar[str] = "on_start"


@dataclass(frozen=True)
class Continue(MidiMessage):
    STATUS: ClassVar[int] = Status.CONTINUE
    KIND: ClassVar[str] = "continue"
    HANDLER: ClassVar[str] = "on_continue"


@dataclass(frozen=True)
class Stop(MidiMessage):
    STATUS: ClassVar[int] = Status.STOP
    KIND: ClassVar[str] = "stop"
    HANDLER: ClassVar[str] = "on_stop"


@dataclass(frozen=True)
class ActiveSense(MidiMessage):
    STATUS: ClassVar[int] = Status.ACTIVE_SENSE
    KIND: ClassVar[str] = "active_sense"
    HANDLER: ClassVar[str] = "on_active_sense"


@dataclass(frozen=True)
class Reset(MidiMessage):
    STATUS: ClassVar[int] = Status.RESET
    KIND: ClassVar[str] = "reset"
    HANDLER: ClassVar[str] = "on_reset"


MESSAGE_CLASSES: dict[str, type[MidiMessage]] = {
    cls.KIND: cls
    for cls in (
        NoteOff, NoteOn, VelocityChange, ControlChange, ProgramChange,
        ChannelAfterTouch, PitchChange, SongPosition, SongSelect,
        TuneRequest, Sync, Start, Continue, Stop, ActiveSense, Reset,
    )
}

# Kinds whose status byte alone is the whole message
STATUS_ONLY: dict[str, type[MidiMessage]] = {
    kind: cls for kind, cls in MESSAGE_CLASSES.items() if not fields(cls)
}


def message_from_dict(data: dict[str, Any]) -> MidiMessage:
    """Build a message from its ``to_dict()`` form.

    Raises:
        ValueError: If the type is unknown or a required field is missing.
    """
    kind = data.get("type")
    if kind not in MESSAGE_CLASSES:
        raise ValueError(
            f"Unknown message type {kind!r}. Valid: {list(MESSAGE_CLASSES)}"
        )
    cls = MESSAGE_CLASSES[kind]
    try:
        kwargs = {f.name: int(data[f.name]) for f in fields(cls) if f.name in data}
        return cls(**kwargs)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Bad fields for {kind}: {e}") from e
