# Channel (performance) messages: note on/off, controllers, pitch bend...
from __future__ import annotations
import enum
import typing
from .base import read_byte
from .exceptions import MidiDecodeError, MidiEncodeError


class ChannelEventType(enum.IntEnum):
    """MIDI channel message types, as the high nibble of the status byte"""

    NOTE_OFF = 0x80
    NOTE_ON = 0x90
    NOTE_AFTERTOUCH = 0xA0
    CONTROLLER = 0xB0
    PROGRAM_CHANGE = 0xC0
    CHANNEL_AFTERTOUCH = 0xD0
    PITCH_BEND = 0xE0

    def __repr__(self) -> str:
        return self.name


# Every channel event type with the fields it carries and their defaults.
# The order of the fields is the order of the data bytes.
CHANNEL_DEFAULTS: dict[ChannelEventType, dict[str, int]] = {
    ChannelEventType.NOTE_OFF: {"note": 0, "velocity": 127},
    ChannelEventType.NOTE_ON: {"note": 0, "velocity": 127},
    ChannelEventType.NOTE_AFTERTOUCH: {"note": 0, "pressure": 0},
    ChannelEventType.CONTROLLER: {"controller": 0, "value": 0},
    ChannelEventType.PROGRAM_CHANGE: {"program": 0},
    ChannelEventType.CHANNEL_AFTERTOUCH: {"pressure": 0},
    ChannelEventType.PITCH_BEND: {"value": 0},
}

PITCH_BEND_MIN = -8192
PITCH_BEND_MAX = 8191


def message_size(event_type: ChannelEventType) -> int:
    """Number of data bytes following the status byte"""
    if event_type == ChannelEventType.PITCH_BEND:
        return 2
    return len(CHANNEL_DEFAULTS[event_type])


def check_channel_props(event_type: ChannelEventType, props: typing.Mapping[str, typing.Any]) -> str | None:
    """Returns a description of the first out of range field, or None if every field is valid"""
    for name, value in props.items():
        if isinstance(value, bool) or not isinstance(value, int):
            return f"{name} should be an integer (got {value!r})"
        if event_type == ChannelEventType.PITCH_BEND:
            if not (PITCH_BEND_MIN <= value <= PITCH_BEND_MAX):
                return f"Pitch bend {value} is out of range."
        elif not (0 <= value <= 127):
            return f"{name.capitalize()} {value} is out of range."
    return None


def decode_channel_payload(event_type: ChannelEventType, infile: typing.BinaryIO) -> dict[str, int]:
    """Reads the data bytes of a channel message whose status byte has already been consumed"""
    data: list[int] = []
    for _ in range(message_size(event_type)):
        byte = read_byte(infile)
        if byte >= 0x80:
            raise MidiDecodeError(byte, f"a data byte for {event_type.name}", infile.tell() - 1)
        data.append(byte)

    if event_type == ChannelEventType.PITCH_BEND:
        # 14 bits, least significant byte first, centered on zero
        return {"value": data[0] + (data[1] << 7) - 8192}
    return dict(zip(CHANNEL_DEFAULTS[event_type], data))


def encode_channel_payload(event_type: ChannelEventType, props: typing.Mapping[str, int]) -> bytes:
    """Returns the data bytes of a channel message, excluding the status byte"""
    problem = check_channel_props(event_type, props)
    if problem is not None:
        raise MidiEncodeError(problem, f"valid {event_type.name} fields")

    if event_type == ChannelEventType.PITCH_BEND:
        value = props["value"] + 8192
        return bytes([value & 0x7F, value >> 7])
    return bytes(props[name] for name in CHANNEL_DEFAULTS[event_type])
