from __future__ import annotations
import enum
import math
import struct
import typing
from .base import bpm2tempo, tempo2bpm
from .config import get_config
from .exceptions import MidiDecodeError, MidiEncodeError


class MetaEventType(enum.IntEnum):
    """MIDI meta event types"""
    SEQUENCE_NUMBER = 0x00
    TEXT = 0x01
    COPYRIGHT_NOTICE = 0x02
    TRACK_NAME = 0x03
    INSTRUMENT_NAME = 0x04
    LYRIC = 0x05
    MARKER = 0x06
    CUE_POINT = 0x07
    PROGRAM_NAME = 0x08
    DEVICE_NAME = 0x09
    MIDI_CHANNEL_PREFIX = 0x20
    MIDI_PORT = 0x21
    END_OF_TRACK = 0x2F
    SET_TEMPO = 0x51
    SMPTE_OFFSET = 0x54
    TIME_SIGNATURE = 0x58
    KEY_SIGNATURE = 0x59
    SEQUENCER_SPECIFIC = 0x7F

    def __repr__(self) -> str:
        return self.name


TEXT_TYPES = frozenset({
    MetaEventType.TEXT,
    MetaEventType.COPYRIGHT_NOTICE,
    MetaEventType.TRACK_NAME,
    MetaEventType.INSTRUMENT_NAME,
    MetaEventType.LYRIC,
    MetaEventType.MARKER,
    MetaEventType.CUE_POINT,
    MetaEventType.PROGRAM_NAME,
    MetaEventType.DEVICE_NAME,
})

# Frame rates indexed by the top two bits of the SMPTE offset hour byte, 29.97 being 30 drop frame
SMPTE_RATES = (24, 25, 30, 29.97)

# Every meta event type with the fields it carries and their defaults
META_DEFAULTS: dict[MetaEventType, dict[str, typing.Any]] = {
    MetaEventType.SEQUENCE_NUMBER: {"number": 0},
    **{t: {"text": ""} for t in TEXT_TYPES},
    MetaEventType.MIDI_CHANNEL_PREFIX: {"channel": 0},
    MetaEventType.MIDI_PORT: {"port": 0},
    MetaEventType.END_OF_TRACK: {},
    MetaEventType.SET_TEMPO: {"tempo": 120},
    MetaEventType.SMPTE_OFFSET: {
        "rate": 24,
        "hours": 0,
        "minutes": 0,
        "seconds": 0,
        "frames": 0,
        "subframes": 0,
    },
    MetaEventType.TIME_SIGNATURE: {
        "numerator": 4,
        "denominator": 4,
        "metronome": 24,
        "clock_signals_per_beat": 24,
    },
    MetaEventType.KEY_SIGNATURE: {"note": 0, "major": True},
    MetaEventType.SEQUENCER_SPECIFIC: {"data": b""},
}

_MIN_LENGTH = {
    MetaEventType.SEQUENCE_NUMBER: 2,
    MetaEventType.MIDI_CHANNEL_PREFIX: 1,
    MetaEventType.MIDI_PORT: 1,
    MetaEventType.SET_TEMPO: 3,
    MetaEventType.SMPTE_OFFSET: 5,
    MetaEventType.TIME_SIGNATURE: 4,
    MetaEventType.KEY_SIGNATURE: 2,
}


def decode_meta_payload(meta_type: MetaEventType, data: bytes, offset: int) -> dict[str, typing.Any]:
    """Decodes the payload of a meta event into its fields

    `offset` is the position of the payload, used to report errors"""
    if meta_type == MetaEventType.SEQUENCE_NUMBER and len(data) == 0:
        # The number may be omitted
        return {}

    needed = _MIN_LENGTH.get(meta_type, 0)
    if len(data) < needed:
        raise MidiDecodeError(f"{len(data)} bytes", f"at least {needed} bytes for {meta_type.name}", offset)

    if meta_type == MetaEventType.SEQUENCE_NUMBER:
        # Little endian, unlike everything else in the file
        return {"number": struct.unpack('<H', data[:2])[0]}
    if meta_type in TEXT_TYPES:
        config = get_config()
        try:
            return {"text": data.decode(config.text_encoding, config.text_errors)}
        except UnicodeDecodeError as e:
            raise MidiDecodeError(repr(data), f"{config.text_encoding} text", offset + e.start) from e
    if meta_type == MetaEventType.MIDI_CHANNEL_PREFIX:
        return {"channel": data[0]}
    if meta_type == MetaEventType.MIDI_PORT:
        return {"port": data[0]}
    if meta_type == MetaEventType.END_OF_TRACK:
        return {}
    if meta_type == MetaEventType.SET_TEMPO:
        tttttt = int.from_bytes(data[:3], 'big')
        if tttttt == 0:
            raise MidiDecodeError(tttttt, "a non-zero tempo", offset)
        return {"tempo": tempo2bpm(tttttt)}
    if meta_type == MetaEventType.SMPTE_OFFSET:
        hr, mn, se, fr, ff = data[:5]
        return {
            "rate": SMPTE_RATES[hr >> 6],
            "hours": hr & 0x3F,
            "minutes": mn,
            "seconds": se,
            "frames": fr,
            "subframes": ff,
        }
    if meta_type == MetaEventType.TIME_SIGNATURE:
        nn, dd, cc, bb = data[:4]
        if bb == 0:
            raise MidiDecodeError(bb, "a non-zero count of 32nd notes per beat", offset + 3)
        return {
            "numerator": nn,
            "denominator": 2 ** dd,
            "metronome": cc,
            "clock_signals_per_beat": 192 / bb,
        }
    if meta_type == MetaEventType.KEY_SIGNATURE:
        sf, mi = struct.unpack('>bB', data[:2])
        return {"note": sf, "major": not mi}
    if meta_type == MetaEventType.SEQUENCER_SPECIFIC:
        return {"data": bytes(data)}
    raise MidiDecodeError(f"Invalid MetaEvent type: {meta_type}", "known MetaEvent type", offset)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_range(name: str, value, low: int, high: int) -> str | None:
    if not _is_int(value):
        return f"{name} should be an integer (got {value!r})"
    if not (low <= value <= high):
        return f"{name.capitalize()} {value} is out of range."
    return None


def check_meta_props(meta_type: MetaEventType, props: typing.Mapping[str, typing.Any]) -> str | None:
    """Returns a description of the first invalid field, or None if the fields can be encoded"""
    if meta_type == MetaEventType.SEQUENCE_NUMBER:
        return _check_range("number", props["number"], 0, 0xFFFF)
    if meta_type in TEXT_TYPES:
        if not isinstance(props["text"], str):
            return f"text should be a string (got {props['text']!r})"
        return None
    if meta_type == MetaEventType.MIDI_CHANNEL_PREFIX:
        return _check_range("channel", props["channel"], 0, 0xFF)
    if meta_type == MetaEventType.MIDI_PORT:
        return _check_range("port", props["port"], 0, 0xFF)
    if meta_type == MetaEventType.SET_TEMPO:
        bpm = props["tempo"]
        if not _is_number(bpm) or not math.isfinite(bpm) or bpm <= 0:
            return f"tempo should be a positive number of beats per minute (got {bpm!r})"
        if not (1 <= bpm2tempo(bpm) <= 0xFFFFFF):
            return f"Tempo {bpm} does not fit in 24 bits of microseconds per beat."
        return None
    if meta_type == MetaEventType.SMPTE_OFFSET:
        if props["rate"] not in SMPTE_RATES:
            return f"rate should be one of {SMPTE_RATES} (got {props['rate']!r})"
        return (
            _check_range("hours", props["hours"], 0, 0x3F)
            or _check_range("minutes", props["minutes"], 0, 0xFF)
            or _check_range("seconds", props["seconds"], 0, 0xFF)
            or _check_range("frames", props["frames"], 0, 0xFF)
            or _check_range("subframes", props["subframes"], 0, 0xFF)
        )
    if meta_type == MetaEventType.TIME_SIGNATURE:
        denominator = props["denominator"]
        if not _is_int(denominator) or denominator < 1 or denominator & (denominator - 1):
            return f"denominator should be a power of two (got {denominator!r})"
        if denominator.bit_length() - 1 > 0xFF:
            return f"Denominator {denominator} is out of range."
        clocks = props["clock_signals_per_beat"]
        if not _is_number(clocks) or not math.isfinite(clocks) or clocks <= 0 or not (1 <= round(192 / clocks) <= 0xFF):
            return f"clock_signals_per_beat should be 192 divided by 1 to 255 (got {clocks!r})"
        return _check_range("numerator", props["numerator"], 0, 0xFF) or _check_range("metronome", props["metronome"], 0, 0xFF)
    if meta_type == MetaEventType.KEY_SIGNATURE:
        if not isinstance(props["major"], bool):
            return f"major should be a boolean (got {props['major']!r})"
        return _check_range("note", props["note"], -128, 127)
    if meta_type == MetaEventType.SEQUENCER_SPECIFIC:
        if not isinstance(props["data"], (bytes, bytearray)):
            return f"data should be bytes (got {props['data']!r})"
        return None
    return None


def encode_meta_payload(meta_type: MetaEventType, props: typing.Mapping[str, typing.Any]) -> bytes:
    """Encodes the fields of a meta event into its payload, excluding the type and length"""
    problem = check_meta_props(meta_type, props)
    if problem is not None:
        raise MidiEncodeError(problem, f"valid {meta_type.name} fields")

    if meta_type == MetaEventType.SEQUENCE_NUMBER:
        return struct.pack('<H', props["number"])
    if meta_type in TEXT_TYPES:
        config = get_config()
        try:
            return props["text"].encode(config.text_encoding, config.text_errors)
        except UnicodeEncodeError as e:
            raise MidiEncodeError(props["text"], f"{config.text_encoding} text") from e
    if meta_type == MetaEventType.MIDI_CHANNEL_PREFIX:
        return bytes([props["channel"]])
    if meta_type == MetaEventType.MIDI_PORT:
        return bytes([props["port"]])
    if meta_type == MetaEventType.END_OF_TRACK:
        return b""
    if meta_type == MetaEventType.SET_TEMPO:
        return bpm2tempo(props["tempo"]).to_bytes(3, 'big')
    if meta_type == MetaEventType.SMPTE_OFFSET:
        return bytes([
            (SMPTE_RATES.index(props["rate"]) << 6) | props["hours"],
            props["minutes"],
            props["seconds"],
            props["frames"],
            props["subframes"],
        ])
    if meta_type == MetaEventType.TIME_SIGNATURE:
        return bytes([
            props["numerator"],
            props["denominator"].bit_length() - 1,
            props["metronome"],
            round(192 / props["clock_signals_per_beat"]),
        ])
    if meta_type == MetaEventType.KEY_SIGNATURE:
        return struct.pack('>bB', props["note"], 0 if props["major"] else 1)
    if meta_type == MetaEventType.SEQUENCER_SPECIFIC:
        return bytes(props["data"])
    raise MidiEncodeError(meta_type, "known MetaEvent type")


def key_signature_name(note: int, major: bool) -> str:
    """Returns the key signature as a string, like `Eb major`"""
    # Position on the line of fifths, counting from F
    idx = note + 1 if major else note + 4
    lof_idx = idx // 7
    if lof_idx > 0:
        lof = "#" * lof_idx
    elif lof_idx < 0:
        lof = "b" * -lof_idx
    else:
        lof = ""
    key = "FCGDAEB"[idx % 7]
    if major:
        return f"{key}{lof} major"
    return f"{key.lower()}{lof} minor"
