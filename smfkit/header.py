from __future__ import annotations
import enum
import struct
import typing
from .base import read_chunk, encode_chunk
from .exceptions import MidiDecodeError, MidiEOFError, MidiNotMidiError, MidiNotSupportedError, MidiInvalidArgumentError, MidiEncodeError


class FileType(enum.IntEnum):
    """How the tracks of a MIDI file relate to each other"""

    SINGLE_TRACK = 0
    SYNC_TRACKS = 1
    ASYNC_TRACKS = 2

    def __repr__(self) -> str:
        return self.name


class Header:
    """Header of a MIDI file

    The track count is owned by the file holding this header and follows its track list."""

    def __init__(self, file_type: int = FileType.SYNC_TRACKS, track_count: int = 0, ticks_per_beat: int = 120):
        self.file_type = file_type
        self.ticks_per_beat = ticks_per_beat
        self._track_count = track_count

    @property
    def file_type(self) -> FileType:
        return self._file_type

    @file_type.setter
    def file_type(self, file_type: int):
        try:
            self._file_type = FileType(file_type)
        except ValueError:
            raise MidiInvalidArgumentError(f'File type "{file_type}" is not defined. Did you mean 0, 1 or 2?') from None

    @property
    def ticks_per_beat(self) -> int:
        return self._ticks_per_beat

    @ticks_per_beat.setter
    def ticks_per_beat(self, ticks_per_beat: int):
        if isinstance(ticks_per_beat, bool) or not isinstance(ticks_per_beat, int) or not (1 <= ticks_per_beat <= 65535):
            raise MidiInvalidArgumentError(f"Ticks per beat amount should be between 1 and 65535 (got {ticks_per_beat})")
        self._ticks_per_beat = ticks_per_beat

    @property
    def track_count(self) -> int:
        return self._track_count

    def __eq__(self, other) -> bool:
        if not isinstance(other, Header):
            return NotImplemented
        return (self.file_type, self.track_count, self.ticks_per_beat) == (other.file_type, other.track_count, other.ticks_per_beat)

    def __repr__(self) -> str:
        return f"Header(file_type={self.file_type!r}, track_count={self.track_count}, ticks_per_beat={self.ticks_per_beat})"


def parse_header(infile: typing.BinaryIO) -> Header:
    """Reads the MThd chunk. Raises MidiNotMidiError if the data does not start with one"""
    try:
        chunk = read_chunk('MThd', infile)
    except MidiDecodeError as e:
        raise MidiNotMidiError() from e

    if len(chunk) < 6:
        raise MidiEOFError(f"{len(chunk)} bytes", "a header of 6 bytes", infile.tell())
    # Longer headers are allowed by the format, the extra bytes are ignored
    format_, ntrks, division = struct.unpack('>HHH', chunk[:6])

    if division & 0x8000:
        raise MidiNotSupportedError("Expressing time in SMPTE format is not supported yet")
    division &= 0x7FFF

    if format_ not in FileType._value2member_map_:
        raise MidiDecodeError(format_, "a file type of 0, 1 or 2", infile.tell() - len(chunk))
    if division == 0:
        raise MidiDecodeError(division, "a positive number of ticks per beat", infile.tell() - len(chunk) + 4)
    return Header(format_, ntrks, division)


def encode_header(header: Header) -> bytes:
    """Encodes a header as a MThd chunk"""
    if header.track_count > 0xFFFF:
        raise MidiEncodeError(header.track_count, "at most 65535 tracks")
    # The top bit of the division would select SMPTE timing
    if header.ticks_per_beat > 0x7FFF:
        raise MidiEncodeError(header.ticks_per_beat, "at most 32767 ticks per beat")
    data = struct.pack('>HHH', header.file_type, header.track_count, header.ticks_per_beat)
    return encode_chunk('MThd', data)
