"""A MIDI session: one transport, one config, one decoder and one encoder.

Usage::

    session = MidiSession(LoopbackTransport(), handler=MyHandler())
    session.begin(channel=0)
    session.send(NoteOn(1, 60, 100))
    session.encoder.send_control_change(1, 7, 100)
    session.poll()
"""

from __future__ import annotations

import logging

from .models.config import ALL_CHANNELS, Parameter, SessionConfig
from .protocol.decoder import Decoder
from .protocol.dispatch import ProprietarySink
from .protocol.encoder import Encoder
from .protocol.messages import MidiMessage

logger = logging.getLogger(__name__)

DEFAULT_BAUD = 31250


class MidiSession:
    """Pairs a transport with the decoder and encoder state for one line.

    The decoder and encoder share the session's ``SessionConfig``, so a
    parameter change is seen by both.
    """

    def __init__(
        self,
        transport,
        handler=None,
        sink: ProprietarySink | None = None,
        config: SessionConfig | None = None,
    ) -> None:
        self.transport = transport
        self.config = config if config is not None else SessionConfig()
        self.decoder = Decoder(handler=handler, sink=sink, config=self.config)
        self.encoder = Encoder(transport, config=self.config)
        self.baud: int | None = None

    def begin(self, channel: int = ALL_CHANNELS, baud: int = DEFAULT_BAUD) -> None:
        """Set the receive channel filter and record the line speed.

        The line speed only matters to transports that expose ``set_baud``.
        """
        self.config.set_parameter(Parameter.CHANNEL_FILTER, channel)
        self.baud = baud
        set_baud = getattr(self.transport, "set_baud", None)
        if set_baud is not None:
            set_baud(baud)
        logger.info(
            "MIDI session started (channel filter=%s, baud=%d)",
            channel or "all", baud,
        )

    def poll(self) -> int:
        """Decode every byte the transport has ready. Returns the byte count."""
        return self.decoder.poll(self.transport)

    def set_parameter(self, param: Parameter | str, value: int | bool) -> None:
        self.config.set_parameter(param, value)

    def get_parameter(self, param: Parameter | str) -> int | bool:
        return self.config.get_parameter(param)

    def send(self, message: MidiMessage) -> bytes:
        return self.encoder.send(message)

    def send_proprietary(self, payload: bytes) -> bytes:
        return self.encoder.send_proprietary(payload)
