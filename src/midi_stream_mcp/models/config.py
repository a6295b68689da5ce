"""Session parameters shared by the decoder and the encoder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ALL_CHANNELS = 0
MAX_CHANNEL = 16


class Parameter(str, Enum):
    """Runtime-settable session parameters."""

    CHANNEL_FILTER = "channel_filter"
    SEND_FULL_COMMANDS = "send_full_commands"


@dataclass
class SessionConfig:
    """Channel filter and full-command mode for one session.

    ``channel_filter`` is 0 to accept every channel, or 1-16 to dispatch
    only that channel's messages. ``send_full_commands`` makes the encoder
    emit a status byte with every message instead of relying on running
    status.
    """

    channel_filter: int = ALL_CHANNELS
    send_full_commands: bool = False

    def __post_init__(self) -> None:
        _check_channel_filter(self.channel_filter)
        self.send_full_commands = bool(self.send_full_commands)

    def set_parameter(self, param: Parameter | str, value: int | bool) -> None:
        """Update a parameter.

        Raises:
            ValueError: If the parameter is unknown or the channel filter
                is outside 0-16.
        """
        param = _as_parameter(param)
        if param is Parameter.CHANNEL_FILTER:
            _check_channel_filter(value)
            self.channel_filter = int(value)
        else:
            self.send_full_commands = bool(value)

    def get_parameter(self, param: Parameter | str) -> int | bool:
        param = _as_parameter(param)
        if param is Parameter.CHANNEL_FILTER:
            return self.channel_filter
        return self.send_full_commands

    def to_dict(self) -> dict:
        return {
            Parameter.CHANNEL_FILTER.value: self.channel_filter,
            Parameter.SEND_FULL_COMMANDS.value: self.send_full_commands,
        }


def _as_parameter(param: Parameter | str) -> Parameter:
    try:
        return Parameter(param)
    except ValueError:
        raise ValueError(
            f"Unknown parameter {param!r}. Valid: {[p.value for p in Parameter]}"
        ) from None


def _check_channel_filter(value: int) -> None:
    if isinstance(value, bool) or not ALL_CHANNELS <= int(value) <= MAX_CHANNEL:
        raise ValueError(f"Channel filter must be 0-16, got {value}")
