"""Byte transports: in-memory loopback and USB-MIDI devices."""

from .base import LoopbackTransport, Transport
from .usb_midi import USBMidiConnection
