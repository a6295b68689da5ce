"""MIDI byte-stream codec with running status, exposed over MCP."""

__version__ = "0.1.0"
