from __future__ import annotations
import typing
import struct
from dataclasses import dataclass
from functools import lru_cache
from .config import get_config
from .exceptions import MidiDecodeError, MidiEOFError, MidiEncodeError

# Largest value a 4 byte variable length integer can hold
MAX_VARIABLE_LENGTH_INT = 0x0FFFFFFF


@dataclass(frozen=True)
class VariableLengthInt:
    """Variable length integer class as specified in the MIDI 1.0 specification

    Seven bits per byte, most significant group first, with the top bit set on every byte but the last"""

    value: int
    data: bytes

    @staticmethod
    def read(infile: typing.BinaryIO, max_size: int | None = None) -> VariableLengthInt:
        """Reads a variable length integer from the infile"""
        if max_size is None:
            max_size = get_config().max_varint_bytes
        start = infile.tell()
        delta = 0
        bts: list[int] = []

        for _ in range(max_size):
            byte = read_byte(infile)
            delta = (delta << 7) | (byte & 0x7f)
            bts.append(byte)
            if byte < 0x80:
                return VariableLengthInt(delta, bytes(bts))
        raise MidiDecodeError(
            f"variable length integer longer than {max_size} bytes",
            "a terminated variable length integer",
            start,
        )

    @staticmethod
    @lru_cache(maxsize=1000)
    def from_int(value: int) -> VariableLengthInt:
        """Creates a VariableLengthInt from an integer, using the minimal number of bytes"""
        if not (0 <= value <= MAX_VARIABLE_LENGTH_INT):
            raise MidiEncodeError(value, f"an integer between 0 and 0x{MAX_VARIABLE_LENGTH_INT:X}")
        bts: list[int] = [value & 0x7f]
        rest = value >> 7
        while rest > 0:
            bts.append((rest & 0x7f) | 0x80)
            rest >>= 7
        return VariableLengthInt(value, bytes(bts[::-1]))

    def __repr__(self):
        return self.value.__repr__()


def read_byte(infile: typing.BinaryIO) -> int:
    byte = infile.read(1)
    if byte == b'':
        raise MidiEOFError("end of data", "one more byte", infile.tell())
    return ord(byte)


def read_bytes(infile: typing.BinaryIO, size: int, max_length: int | None = None) -> bytes:
    if max_length is None:
        max_length = get_config().max_payload_length
    if size > max_length:
        raise MidiDecodeError(f"length {size}", f"a length of at most {max_length}", infile.tell())
    bts = infile.read(size)
    if len(bts) < size:
        raise MidiEOFError(f"{len(bts)} bytes", f"{size} bytes", infile.tell())
    return bts


### Chunks ###

def read_chunk(expected: str, infile: typing.BinaryIO) -> bytes:
    """Reads a chunk header tagged `expected` and returns the chunk body"""
    header = infile.read(8)
    if len(header) < 8:
        raise MidiEOFError("end of data", f"{expected} chunk header", infile.tell())
    name, size = struct.unpack('>4sL', header)
    name = name.decode('latin-1')
    if name != expected:
        raise MidiDecodeError(name, expected, infile.tell())
    data = infile.read(size)
    if len(data) < size:
        raise MidiEOFError(f"{len(data)} bytes", f"{size} bytes of {expected} chunk", infile.tell())
    return data


def encode_chunk(name: str, data: bytes) -> bytes:
    """Frames data as a chunk: 4 byte ASCII tag, big endian 32 bit length, then the data"""
    tag = name.encode('ascii', errors='replace')
    if len(tag) != 4 or not name.isascii():
        raise MidiEncodeError(name, "a 4 character ASCII chunk type")
    if len(data) > 0xFFFFFFFF:
        raise MidiEncodeError(len(data), "a chunk length fitting in 32 bits")
    return struct.pack('>4sL', tag, len(data)) + data


### Timing ###

def tick2second(tick: int, ticks_per_beat: int, tempo: int) -> float:
    """Converts ticks to seconds. `tempo` is in microseconds per quarter note"""
    return tick * tempo * 1e-6 / ticks_per_beat


def second2tick(second: float, ticks_per_beat: int, tempo: int) -> int:
    """Converts seconds to ticks. `tempo` is in microseconds per quarter note"""
    return int(round(second / tempo * 1e6 * ticks_per_beat))


def bpm2tempo(bpm: float) -> int:
    """Converts beats per minute to microseconds per quarter note"""
    return int(round(60000000 / bpm))


def tempo2bpm(tempo: int) -> float:
    """Converts microseconds per quarter note to beats per minute"""
    return 60000000 / tempo
