"""MCP server entry point for a MIDI byte-stream session.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from dataclasses import fields
from typing import Any

from mcp.server.fastmcp import FastMCP

from .models.config import MAX_CHANNEL, Parameter
from .protocol.dispatch import MessageCollector, ProprietaryCollector
from .protocol.messages import (
    MESSAGE_CLASSES,
    STATUS_ONLY,
    ControlChange,
    MidiMessage,
    NoteOff,
    NoteOn,
    PitchChange,
    ProgramChange,
    SongPosition,
    message_from_dict,
)
from .protocol.status import DATA_MASK
from .session import DEFAULT_BAUD, MidiSession
from .transport.base import LoopbackTransport
from .transport.usb_midi import USBMidiConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "midi-stream",
    instructions="MCP server for sending and receiving MIDI over a byte-serial line",
)

MAX_14BIT = 0x3FFF

# Global session state
_session: MidiSession | None = None
_messages = MessageCollector()
_proprietary = ProprietaryCollector()


def _get_session() -> MidiSession:
    """Get the active session, raising if not connected."""
    if _session is None:
        raise RuntimeError(
            "Not connected to a MIDI port. Use the 'connect' tool first."
        )
    return _session


def _validate(message: MidiMessage) -> str | None:
    """Return an error string if any field is out of range, else None."""
    wide = isinstance(message, (PitchChange, SongPosition))
    for f in fields(message):
        value = getattr(message, f.name)
        if f.name == "channel":
            if not 1 <= value <= MAX_CHANNEL:
                return f"Channel must be 1-16, got {value}"
        elif wide:
            if not 0 <= value <= MAX_14BIT:
                return f"{f.name} must be 0-16383, got {value}"
        elif not 0 <= value <= DATA_MASK:
            return f"{f.name} must be 0-127, got {value}"
    return None


def _send(message: MidiMessage) -> dict[str, Any]:
    error = _validate(message)
    if error:
        return {"error": error}
    sent = _get_session().send(message)
    return {"message": message.to_dict(), "bytes": sent.hex(" ")}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    loopback: bool = False,
    vendor_id: int | None = None,
    product_id: int | None = None,
    channel: int = 0,
) -> dict[str, Any]:
    """Open a MIDI port and start a session.

    Args:
        loopback: Use an in-memory port where sent bytes are read back.
        vendor_id: USB vendor ID of the device (default: first USB-MIDI device).
        product_id: USB product ID of the device.
        channel: Receive channel filter, 0 for all channels or 1-16.
    """
    global _session
    if _session is not None:
        return {"connected": True, "message": "Already connected"}
    if not 0 <= channel <= MAX_CHANNEL:
        return {"error": "Channel must be 0-16"}

    if loopback:
        transport = LoopbackTransport()
        result: dict[str, Any] = {"connected": True, "port": "loopback"}
    else:
        transport = USBMidiConnection(vendor_id=vendor_id, product_id=product_id)
        info = transport.open()
        result = {
            "connected": True,
            "port": "usb",
            "manufacturer": info.manufacturer,
            "product": info.product,
        }

    _messages.clear()
    _proprietary.clear()
    _session = MidiSession(transport, handler=_messages, sink=_proprietary)
    _session.begin(channel=channel, baud=DEFAULT_BAUD)
    result["channel_filter"] = channel
    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the MIDI port and end the session."""
    global _session
    if _session is None:
        return {"disconnected": True}
    close = getattr(_session.transport, "close", None)
    if close is not None:
        close()
    _session = None
    return {"disconnected": True}


# ─── SEND TOOLS ───────────────────────────────────────────────────────

@mcp.tool()
def send_message(message: dict[str, Any]) -> dict[str, Any]:
    """Send any MIDI message given in dictionary form.

    Args:
        message: e.g. {"type": "note_on", "channel": 1, "note": 60, "velocity": 100}.
                 See the midi://catalog/messages resource for every type.
    """
    try:
        msg = message_from_dict(message)
    except ValueError as e:
        return {"error": str(e)}
    return _send(msg)


@mcp.tool()
def send_note_on(channel: int, note: int, velocity: int) -> dict[str, Any]:
    """Start a note.

    Args:
        channel: MIDI channel (1-16).
        note: Note number (0-127, 60 is middle C).
        velocity: Strike velocity (1-127; 0 is treated as note off by receivers).
    """
    return _send(NoteOn(channel, note, velocity))


@mcp.tool()
def send_note_off(channel: int, note: int, velocity: int = 0) -> dict[str, Any]:
    """Release a note.

    Args:
        channel: MIDI channel (1-16).
        note: Note number (0-127).
        velocity: Release velocity (0-127).
    """
    return _send(NoteOff(channel, note, velocity))


@mcp.tool()
def send_control_change(channel: int, controller: int, value: int) -> dict[str, Any]:
    """Move a controller (CC).

    Args:
        channel: MIDI channel (1-16).
        controller: Controller number (0-127, e.g. 7 volume, 64 sustain).
        value: Controller value (0-127).
    """
    return _send(ControlChange(channel, controller, value))


@mcp.tool()
def send_program_change(channel: int, program: int) -> dict[str, Any]:
    """Select a patch.

    Args:
        channel: MIDI channel (1-16).
        program: Program number (0-127).
    """
    return _send(ProgramChange(channel, program))


@mcp.tool()
def send_pitch_change(value: int, channel: int = 1) -> dict[str, Any]:
    """Move the pitch wheel.

    Args:
        value: 14-bit position (0-16383, 8192 is centre).
        channel: MIDI channel (1-16).
    """
    return _send(PitchChange(value, channel))


@mcp.tool()
def send_system(kind: str) -> dict[str, Any]:
    """Send a status-only system message.

    Args:
        kind: One of tune_request, sync, start, continue, stop, active_sense, reset.
    """
    if kind not in STATUS_ONLY:
        return {"error": f"Unknown system message '{kind}'. Valid: {list(STATUS_ONLY)}"}
    return _send(STATUS_ONLY[kind]())


@mcp.tool()
def send_proprietary(data_hex: str) -> dict[str, Any]:
    """Send a vendor-specific (system exclusive) payload.

    The payload is framed as F0 <data> F7; do not include the brackets.

    Args:
        data_hex: Payload as hex, e.g. "7e 7f 06 01".
    """
    try:
        payload = bytes.fromhex(data_hex)
    except ValueError:
        return {"error": f"Invalid hex payload: {data_hex!r}"}
    if any(b > DATA_MASK for b in payload):
        return {"error": "Payload bytes must be 00-7F"}

    sent = _get_session().send_proprietary(payload)
    return {"bytes": sent.hex(" "), "payload_length": len(payload)}


# ─── RECEIVE TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def poll() -> dict[str, Any]:
    """Read everything the port has received and decode it.

    Returns the messages and proprietary payloads completed during this call.
    """
    session = _get_session()
    count = session.poll()
    return {
        "bytes_read": count,
        "messages": [m.to_dict() for m in _messages.clear()],
        "proprietary": [p.hex(" ") for p in _proprietary.clear()],
    }


@mcp.tool()
def inject_bytes(data_hex: str) -> dict[str, Any]:
    """Simulate bytes arriving on a loopback port (for testing receive handling).

    Args:
        data_hex: Raw MIDI bytes as hex, e.g. "90 3c 40".
    """
    session = _get_session()
    if not isinstance(session.transport, LoopbackTransport):
        return {"error": "inject_bytes is only available on a loopback port"}
    try:
        data = bytes.fromhex(data_hex)
    except ValueError:
        return {"error": f"Invalid hex data: {data_hex!r}"}
    session.transport.inject(data)
    return {"injected": len(data)}


# ─── PARAMETER TOOLS ──────────────────────────────────────────────────

@mcp.tool()
def get_parameters() -> dict[str, Any]:
    """Read the session parameters (channel filter, full-command mode)."""
    return _get_session().config.to_dict()


@mcp.tool()
def set_parameter(name: str, value: int) -> dict[str, Any]:
    """Change a session parameter.

    Args:
        name: channel_filter (0 for all, 1-16) or send_full_commands (0/1).
        value: New value.
    """
    session = _get_session()
    try:
        session.set_parameter(name, value)
    except ValueError as e:
        return {"error": str(e)}
    return {name: session.get_parameter(name)}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("midi://session/status")
def resource_session_status() -> str:
    """Connection state and port details."""
    if _session is None:
        return json.dumps({"connected": False})

    transport = _session.transport
    status: dict[str, Any] = {"connected": True, "baud": _session.baud}
    if isinstance(transport, USBMidiConnection):
        info = transport.device_info
        status.update({
            "port": "usb",
            "manufacturer": info.manufacturer,
            "product": info.product,
            "vendor_id": f"0x{info.vendor_id:04X}",
            "product_id": f"0x{info.product_id:04X}",
        })
    else:
        status["port"] = "loopback"
    return json.dumps(status)


@mcp.resource("midi://session/config")
def resource_session_config() -> str:
    """Current session parameters."""
    if _session is None:
        return json.dumps({"parameters": {}})
    return json.dumps({"parameters": _session.config.to_dict()})


@mcp.resource("midi://catalog/messages")
def resource_message_catalog() -> str:
    """Every message type with its status byte and fields."""
    catalog = [
        {
            "type": kind,
            "status": f"0x{cls.STATUS:02X}",
            "fields": [f.name for f in fields(cls)],
        }
        for kind, cls in MESSAGE_CLASSES.items()
    ]
    return json.dumps({
        "messages": catalog,
        "parameters": [p.value for p in Parameter],
    })


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def play_phrase(description: str) -> str:
    """Guide the AI to play a short musical phrase.

    Args:
        description: What to play, e.g. "a C major arpeggio".
    """
    return f"""Play {description} on the connected MIDI port.
Consider:
- Note numbers: middle C is 60, one semitone per step
- Send a note_off (or note_on with velocity 0) for every note_on
- Use program_change first if a specific instrument is wanted
- Channel 10 is percussion on General MIDI devices

Use send_note_on / send_note_off, or send_message for other types.
Use poll to check for anything the device sent back."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
