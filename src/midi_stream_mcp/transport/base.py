"""Byte transport contract and an in-memory loopback implementation."""

from __future__ import annotations

import logging
from collections import deque
from typing import Protocol

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What the codec needs from a byte-serial line."""

    def try_read_byte(self) -> int | None:
        """Return the next received byte, or None if none is ready. Never blocks."""
        ...

    def write_byte(self, byte: int) -> None:
        ...


class LoopbackTransport:
    """In-memory transport: bytes written become readable.

    Also accepts injected bytes, which lets tests and the server's
    loopback mode play a remote sender.
    """

    def __init__(self, echo: bool = True) -> None:
        self._rx: deque[int] = deque()
        self._echo = echo
        self.written = bytearray()
        self.baud: int | None = None

    def set_baud(self, baud: int) -> None:
        self.baud = baud
        logger.debug("Loopback line speed set to %d baud (ignored)", baud)

    def try_read_byte(self) -> int | None:
        if not self._rx:
            return None
        return self._rx.popleft()

    def write_byte(self, byte: int) -> None:
        byte &= 0xFF
        self.written.append(byte)
        if self._echo:
            self._rx.append(byte)

    def inject(self, data: bytes | bytearray | list[int]) -> None:
        """Queue ``data`` as if it had arrived on the line."""
        self._rx.extend(b & 0xFF for b in data)

    @property
    def pending(self) -> int:
        """Number of received bytes not yet read."""
        return len(self._rx)
