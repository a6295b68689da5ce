"""Status byte constants and classification helpers.

A status byte has its high bit set. Below 0xF0 the high nibble names the
message kind and the low nibble carries the channel; from 0xF0 upward the
byte is a system message used verbatim.
"""

from __future__ import annotations

from enum import IntEnum

STATUS_BIT = 0x80
DATA_MASK = 0x7F
CHANNEL_MASK = 0x0F
KIND_MASK = 0xF0
SYSTEM_BASE = 0xF0


class Status(IntEnum):
    """Status bytes as sent on the wire (channel kinds at channel 1)."""

    NOTE_OFF = 0x80
    NOTE_ON = 0x90
    VELOCITY_CHANGE = 0xA0
    CONTROL_CHANGE = 0xB0
    PROGRAM_CHANGE = 0xC0
    CHANNEL_AFTER_TOUCH = 0xD0
    PITCH_CHANGE = 0xE0
    START_PROPRIETARY = 0xF0
    SONG_POSITION = 0xF2
    SONG_SELECT = 0xF3
    TUNE_REQUEST = 0xF6
    END_PROPRIETARY = 0xF7
    SYNC = 0xF8
    START = 0xFA
    CONTINUE = 0xFB
    STOP = 0xFC
    ACTIVE_SENSE = 0xFE
    RESET = 0xFF


# Number of data bytes following each status that takes arguments
ARGS_NEEDED: dict[Status, int] = {
    Status.NOTE_OFF: 2,
    Status.NOTE_ON: 2,
    Status.VELOCITY_CHANGE: 2,
    Status.CONTROL_CHANGE: 2,
    Status.PITCH_CHANGE: 2,
    Status.SONG_POSITION: 2,
    Status.PROGRAM_CHANGE: 1,
    Status.CHANNEL_AFTER_TOUCH: 1,
    Status.SONG_SELECT: 1,
}

# Complete on their own status byte; they never disturb a pending message
IMMEDIATE: frozenset[Status] = frozenset({
    Status.TUNE_REQUEST,
    Status.SYNC,
    Status.START,
    Status.CONTINUE,
    Status.STOP,
    Status.ACTIVE_SENSE,
    Status.RESET,
})


def is_status(byte: int) -> bool:
    """Return True if ``byte`` has its high bit set."""
    return bool(byte & STATUS_BIT)


def kind_of(byte: int) -> int:
    """Strip the channel nibble from channel statuses; system statuses pass through."""
    if byte < SYSTEM_BASE:
        return byte & KIND_MASK
    return byte


def classify(byte: int) -> Status | None:
    """Map a status byte to its ``Status``, or None for undefined values (0xF1, 0xF4, ...)."""
    try:
        return Status(kind_of(byte))
    except ValueError:
        return None


def channel_of(byte: int) -> int:
    """Return the 1-based channel encoded in a channel status byte."""
    return (byte & CHANNEL_MASK) + 1


def channel_status(base: int, channel: int) -> int:
    """Build a channel status byte from its base value and a 1-based channel."""
    return base | ((channel - 1) & CHANNEL_MASK)


def is_system(byte: int) -> bool:
    """Return True for system statuses, which no channel filter applies to."""
    return byte >= SYSTEM_BASE
