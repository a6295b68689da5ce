"""Dispatch surface: where decoded messages and proprietary bytes are delivered.

A handler is any object with some of the ``on_*`` hooks below. Hooks it
does not define are skipped, so a handler only implements the kinds it
cares about::

    class NoteLogger:
        def on_note_on(self, channel, note, velocity):
            print("on", channel, note, velocity)

        def on_note_off(self, channel, note, velocity):
            print("off", channel, note, velocity)

``MidiHandler`` spells out the full hook set with no-op bodies for
editors and type checkers; subclassing it is optional. A handler may
instead define ``receive(message)`` to take every message as an object.
"""

from __future__ import annotations

import logging
from typing import Callable

from .messages import MidiMessage

logger = logging.getLogger(__name__)


class MidiHandler:
    """Every dispatch hook, each a no-op."""

    def on_note_off(self, channel: int, note: int, velocity: int) -> None:
        pass

    def on_note_on(self, channel: int, note: int, velocity: int) -> None:
        pass

    def on_velocity_change(self, channel: int, note: int, value: int) -> None:
        pass

    def on_control_change(self, channel: int, controller: int, value: int) -> None:
        pass

    def on_program_change(self, channel: int, program: int) -> None:
        pass

    def on_channel_after_touch(self, channel: int, value: int) -> None:
        pass

    def on_pitch_change(self, value: int, channel: int) -> None:
        pass

    def on_song_position(self, position: int) -> None:
        pass

    def on_song_select(self, song: int) -> None:
        pass

    def on_tune_request(self) -> None:
        pass

    def on_sync(self) -> None:
        pass

    def on_start(self) -> None:
        pass

    def on_continue(self) -> None:
        pass

    def on_stop(self) -> None:
        pass

    def on_active_sense(self) -> None:
        pass

    def on_reset(self) -> None:
        pass


def dispatch(message: MidiMessage, handler) -> None:
    """Invoke exactly one hook on ``handler`` for ``message``.

    A handler with a ``receive(message)`` method gets the message object
    itself; otherwise the kind's ``on_*`` hook is called with its fields.
    Missing hooks are a no-op.
    """
    receive = getattr(handler, "receive", None)
    if receive is not None:
        receive(message)
        return
    hook = getattr(handler, message.HANDLER, None)
    if hook is None:
        return
    hook(*message.args())


class MessageCollector:
    """Handler that records every dispatched message in arrival order."""

    def __init__(self) -> None:
        self.messages: list[MidiMessage] = []

    def receive(self, message: MidiMessage) -> None:
        self.messages.append(message)

    def clear(self) -> list[MidiMessage]:
        """Return the collected messages and start a new list."""
        messages, self.messages = self.messages, []
        return messages


class ProprietarySink:
    """Receives the payload of proprietary (system-exclusive) brackets.

    Bytes arrive exactly as seen on the wire between 0xF0 and 0xF7, high
    bit included.
    """

    def on_bracket_open(self) -> None:
        pass

    def on_data(self, byte: int) -> None:
        pass

    def on_bracket_close(self) -> None:
        pass


class ProprietaryCollector(ProprietarySink):
    """Sink that gathers each bracket into ``bytes`` and hands it to a callback."""

    def __init__(self, on_complete: Callable[[bytes], None] | None = None) -> None:
        self._on_complete = on_complete
        self._buffer = bytearray()
        self._open = False
        self.completed: list[bytes] = []

    def on_bracket_open(self) -> None:
        if self._open:
            logger.debug(
                "Proprietary bracket reopened, dropping %d byte(s)",
                len(self._buffer),
            )
        self._buffer.clear()
        self._open = True

    def on_data(self, byte: int) -> None:
        self._buffer.append(byte)

    def on_bracket_close(self) -> None:
        if not self._open:
            return
        payload = bytes(self._buffer)
        self._buffer.clear()
        self._open = False
        self.completed.append(payload)
        if self._on_complete is not None:
            self._on_complete(payload)

    def clear(self) -> list[bytes]:
        """Return the completed payloads and start a new list."""
        completed, self.completed = self.completed, []
        return completed
