"""Streaming MIDI decoder.

The decoder consumes one byte at a time and can be fed in any chunking;
all progress lives in a ``DecoderState`` that survives between calls.
``transition`` is the pure state machine; ``Decoder`` owns the current
state and delivers results to a handler and a proprietary sink.

Byte handling, in priority order:

1. Inside a proprietary bracket every byte except 0xF7 is payload and is
   forwarded to the sink, high bit or not.
2. A status byte resynchronizes: it starts collecting arguments for a new
   message, opens or closes a proprietary bracket, or (for the status-only
   system kinds) completes immediately without touching the pending
   message. Undefined status bytes drop whatever was pending.
3. A data byte is an argument of the pending message. When the last one
   arrives the message is built and dispatched, and the pending status is
   kept so further argument groups decode under running status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum

from ..models.config import ALL_CHANNELS, SessionConfig
from .dispatch import MidiHandler, ProprietarySink, dispatch
from .messages import (
    MESSAGE_CLASSES,
    ChannelAfterTouch,
    ControlChange,
    MidiMessage,
    NoteOff,
    NoteOn,
    PitchChange,
    ProgramChange,
    SongPosition,
    SongSelect,
    VelocityChange,
)
from .status import (
    ARGS_NEEDED,
    IMMEDIATE,
    Status,
    channel_of,
    classify,
    is_status,
    is_system,
    kind_of,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecoderState:
    """Decoder progress between bytes.

    ``args_needed`` is 0 when no message is pending and only changes on a
    status byte. ``args_received`` never exceeds it.
    """

    in_proprietary: bool = False
    pending_status: int = 0
    args_received: int = 0
    args_needed: int = 0
    first_arg: int = 0


INITIAL_STATE = DecoderState()


class ProprietaryEvent(Enum):
    OPEN = "open"
    DATA = "data"
    CLOSE = "close"


@dataclass(frozen=True)
class Step:
    """Result of feeding one byte: the next state plus anything to deliver."""

    state: DecoderState
    message: MidiMessage | None = None
    proprietary: ProprietaryEvent | None = None


_IMMEDIATE: dict[Status, MidiMessage] = {
    cls.STATUS: cls() for cls in MESSAGE_CLASSES.values() if cls.STATUS in IMMEDIATE
}

# (channel, first data byte, last data byte) -> message
_BUILDERS = {
    Status.NOTE_OFF: lambda ch, a, b: NoteOff(ch, a, b),
    # zero velocity "on" means "off"
    Status.NOTE_ON: lambda ch, a, b: NoteOn(ch, a, b) if b else NoteOff(ch, a, b),
    Status.VELOCITY_CHANGE: lambda ch, a, b: VelocityChange(ch, a, b),
    Status.CONTROL_CHANGE: lambda ch, a, b: ControlChange(ch, a, b),
    Status.PROGRAM_CHANGE: lambda ch, a, b: ProgramChange(ch, b),
    Status.CHANNEL_AFTER_TOUCH: lambda ch, a, b: ChannelAfterTouch(ch, b),
    Status.PITCH_CHANGE: lambda ch, a, b: PitchChange((b << 7) | a, ch),
    Status.SONG_POSITION: lambda ch, a, b: SongPosition((b << 7) | a),
    Status.SONG_SELECT: lambda ch, a, b: SongSelect(b),
}


def transition(
    state: DecoderState, byte: int, channel_filter: int = ALL_CHANNELS
) -> Step:
    """Advance the state machine by one byte.

    Args:
        state: Current decoder state.
        byte: Incoming byte, 0-255.
        channel_filter: 0 for all channels, else the only channel (1-16)
            whose completed messages are returned. Filtered messages still
            consume their bytes.

    Returns:
        A ``Step`` with the next state, the completed message (if any and
        not filtered out) and the proprietary event (if any).
    """
    if state.in_proprietary and byte != Status.END_PROPRIETARY:
        return Step(state, proprietary=ProprietaryEvent.DATA)

    if is_status(byte):
        return _status_byte(state, byte)

    return _data_byte(state, byte, channel_filter)


def _status_byte(state: DecoderState, byte: int) -> Step:
    status = classify(byte)

    if status is None:
        logger.debug("Undefined status byte 0x%02X, dropping pending message", byte)
        return Step(replace(state, pending_status=0, args_received=0, args_needed=0))

    if status in ARGS_NEEDED:
        return Step(replace(
            state,
            pending_status=byte,
            args_received=0,
            args_needed=ARGS_NEEDED[status],
        ))

    if status is Status.START_PROPRIETARY:
        return Step(replace(state, in_proprietary=True),
                    proprietary=ProprietaryEvent.OPEN)

    if status is Status.END_PROPRIETARY:
        return Step(replace(state, in_proprietary=False),
                    proprietary=ProprietaryEvent.CLOSE)

    return Step(state, message=_IMMEDIATE[status])


def _data_byte(state: DecoderState, byte: int, channel_filter: int) -> Step:
    if state.args_needed == 0:
        logger.debug("Data byte 0x%02X with no pending status, ignored", byte)
        return Step(state)

    received = state.args_received + 1
    if received < state.args_needed:
        return Step(replace(state, args_received=received, first_arg=byte))

    # Complete. Keep pending_status/args_needed for running status.
    next_state = replace(state, args_received=0)
    status = state.pending_status
    channel = channel_of(status)

    if (
        channel_filter != ALL_CHANNELS
        and not is_system(status)
        and channel != channel_filter
    ):
        logger.debug(
            "Filtered 0x%02X message on channel %d (listening on %d)",
            status, channel, channel_filter,
        )
        return Step(next_state)

    message = _BUILDERS[Status(kind_of(status))](channel, state.first_arg, byte)
    return Step(next_state, message=message)


class Decoder:
    """Resumable byte-stream decoder bound to a handler and a proprietary sink.

    Usage::

        decoder = Decoder(handler=MyHandler())
        decoder.feed(b"\\x90\\x3c\\x40")     # -> handler.on_note_on(1, 60, 64)
        decoder.poll(transport)              # drain whatever is available

    Messages are dispatched synchronously, in byte-arrival order, before
    the next byte is looked at.
    """

    def __init__(
        self,
        handler=None,
        sink: ProprietarySink | None = None,
        config: SessionConfig | None = None,
    ) -> None:
        self.handler = handler if handler is not None else MidiHandler()
        self.sink = sink if sink is not None else ProprietarySink()
        self.config = config if config is not None else SessionConfig()
        self._state = INITIAL_STATE

    @property
    def state(self) -> DecoderState:
        return self._state

    def reset(self) -> None:
        """Forget any pending message and leave a proprietary bracket."""
        self._state = INITIAL_STATE

    def receive(self, byte: int) -> MidiMessage | None:
        """Process a single byte.

        Returns:
            The message dispatched for this byte, or None.
        """
        step = transition(self._state, byte, self.config.channel_filter)
        self._state = step.state

        if step.proprietary is ProprietaryEvent.DATA:
            self.sink.on_data(byte)
        elif step.proprietary is ProprietaryEvent.OPEN:
            self.sink.on_bracket_open()
        elif step.proprietary is ProprietaryEvent.CLOSE:
            self.sink.on_bracket_close()

        if step.message is not None:
            dispatch(step.message, self.handler)
        return step.message

    def feed(self, data: bytes | bytearray | list[int]) -> int:
        """Process a chunk of bytes. Returns the number consumed."""
        for byte in data:
            self.receive(byte)
        return len(data)

    def poll(self, transport) -> int:
        """Drain ``transport`` until it has no byte ready.

        Returns:
            Number of bytes consumed.
        """
        count = 0
        while True:
            byte = transport.try_read_byte()
            if byte is None:
                break
            self.receive(byte)
            count += 1
        return count
