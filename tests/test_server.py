"""Tests for the MCP server tools on a loopback port."""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

import pytest


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch.dict(sys.modules, {}):
        with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
            # Remove cached server module so it re-imports with our mock
            sys.modules.pop("midi_stream_mcp.server", None)
            import midi_stream_mcp.server as server_mod

    return server_mod


def _connected_server():
    server = _get_server_module()
    result = server.connect(loopback=True)
    assert result["connected"] is True
    return server


def test_tools_require_connection():
    server = _get_server_module()
    with pytest.raises(RuntimeError):
        server.poll()
    with pytest.raises(RuntimeError):
        server.send_note_on(1, 60, 100)


def test_connect_rejects_bad_channel():
    server = _get_server_module()
    assert "error" in server.connect(loopback=True, channel=17)
    assert server._session is None


def test_connect_twice():
    server = _connected_server()
    assert server.connect(loopback=True)["message"] == "Already connected"


def test_send_note_on_and_poll_echo():
    """On loopback, sent bytes come straight back as decoded messages."""
    server = _connected_server()
    result = server.send_note_on(1, 60, 100)
    assert result["bytes"] == "90 3c 64"
    assert result["message"]["type"] == "note_on"

    polled = server.poll()
    assert polled["bytes_read"] == 3
    assert polled["messages"] == [
        {"type": "note_on", "channel": 1, "note": 60, "velocity": 100}
    ]
    assert server.poll()["messages"] == []


def test_running_status_across_tools():
    server = _connected_server()
    server.send_control_change(1, 7, 100)
    assert server.send_control_change(1, 10, 64)["bytes"] == "0a 40"


def test_validation_errors():
    server = _connected_server()
    assert "error" in server.send_note_on(0, 60, 100)
    assert "error" in server.send_note_on(1, 128, 100)
    assert "error" in server.send_pitch_change(16384)
    assert "error" in server.send_program_change(17, 1)
    assert server.poll()["bytes_read"] == 0


def test_send_pitch_change_full_range():
    server = _connected_server()
    assert server.send_pitch_change(16383)["bytes"] == "e0 7f 7f"


def test_send_message():
    server = _connected_server()
    result = server.send_message({"type": "song_select", "song": 3})
    assert result["bytes"] == "f3 03"
    assert "error" in server.send_message({"type": "bogus"})
    assert "error" in server.send_message({"type": "note_on", "channel": 1})


def test_send_message_non_numeric_field():
    server = _connected_server()
    result = server.send_message(
        {"type": "note_on", "channel": None, "note": 1, "velocity": 2}
    )
    assert "error" in result
    assert server.poll()["bytes_read"] == 0


def test_send_system():
    server = _connected_server()
    assert server.send_system("start")["bytes"] == "fa"
    assert "error" in server.send_system("note_on")


def test_send_proprietary():
    server = _connected_server()
    result = server.send_proprietary("7e 7f 06 01")
    assert result["bytes"] == "f0 7e 7f 06 01 f7"
    assert server.poll()["proprietary"] == ["7e 7f 06 01"]


def test_send_proprietary_rejects_bad_payload():
    server = _connected_server()
    assert "error" in server.send_proprietary("zz")
    assert "error" in server.send_proprietary("7e 80")


def test_inject_bytes():
    """Injected bytes decode like a remote sender, zero-velocity note on included."""
    server = _connected_server()
    assert server.inject_bytes("f0 43 10 f7 90 3c 40 3c 00")["injected"] == 9
    polled = server.poll()
    assert polled["proprietary"] == ["43 10"]
    assert polled["messages"] == [
        {"type": "note_on", "channel": 1, "note": 60, "velocity": 64},
        {"type": "note_off", "channel": 1, "note": 60, "velocity": 0},
    ]
    assert "error" in server.inject_bytes("not hex")


def test_set_parameter_channel_filter():
    server = _connected_server()
    assert server.set_parameter("channel_filter", 2) == {"channel_filter": 2}
    server.inject_bytes("90 3c 40 91 3c 40")
    assert server.poll()["messages"] == [
        {"type": "note_on", "channel": 2, "note": 60, "velocity": 64}
    ]


def test_set_parameter_full_commands():
    server = _connected_server()
    assert server.set_parameter("send_full_commands", 1) == {"send_full_commands": True}
    server.send_control_change(1, 7, 100)
    assert server.send_control_change(1, 10, 64)["bytes"] == "b0 0a 40"


def test_set_parameter_errors():
    server = _connected_server()
    assert "error" in server.set_parameter("channel_filter", 17)
    assert "error" in server.set_parameter("tempo", 120)
    assert server.get_parameters() == {"channel_filter": 0, "send_full_commands": False}


def test_resources():
    server = _get_server_module()
    assert json.loads(server.resource_session_status()) == {"connected": False}
    server.connect(loopback=True, channel=5)
    status = json.loads(server.resource_session_status())
    assert status["port"] == "loopback"
    assert status["baud"] == 31250
    config = json.loads(server.resource_session_config())
    assert config["parameters"]["channel_filter"] == 5


def test_message_catalog():
    server = _get_server_module()
    catalog = json.loads(server.resource_message_catalog())
    assert len(catalog["messages"]) == 16
    entry = next(m for m in catalog["messages"] if m["type"] == "pitch_change")
    assert entry == {"type": "pitch_change", "status": "0xE0", "fields": ["value", "channel"]}
    assert catalog["parameters"] == ["channel_filter", "send_full_commands"]


def test_play_phrase_prompt():
    server = _get_server_module()
    assert "a C major arpeggio" in server.play_phrase("a C major arpeggio")


def test_disconnect():
    server = _connected_server()
    assert server.disconnect() == {"disconnected": True}
    assert server._session is None
    with pytest.raises(RuntimeError):
        server.poll()
