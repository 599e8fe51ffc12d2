from __future__ import annotations
import io
import logging
import typing
import dataclasses
from pathlib import Path
import line_profiler
from .base import tick2second, bpm2tempo
from .events import Event, MetaEvent, ChannelEvent
from .exceptions import MidiEncodeError, MidiNotMidiError
from .header import FileType, Header, parse_header, encode_header
from .message import ChannelEventType
from .meta import MetaEventType
from .track import Track, parse_track, encode_track

logger = logging.getLogger(__name__)

MIDI_SUFFIXES = (".mid", ".midi")

# 120 BPM, the tempo until the first set tempo event
DEFAULT_TEMPO = 500000


class Midifile:
    """A Standard MIDI file: a header and an ordered list of tracks

    The header's track count always equals the number of tracks held."""

    def __init__(self, data: bytes | None = None):
        self._header = Header()
        self._tracks: list[Track] = []
        if data is not None:
            self._read(data)

    @classmethod
    def from_path(cls, path: str | Path) -> Midifile:
        """Reads a .mid or .midi file from disk"""
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File {path} does not exist")
        if path.suffix.lower() not in MIDI_SUFFIXES:
            raise MidiNotMidiError(f"File {path} is not a midi file: found {path.suffix}")
        return cls(path.read_bytes())

    @classmethod
    def from_stream(cls, infile: typing.BinaryIO) -> Midifile:
        """Buffers a whole binary stream and decodes it"""
        return cls(infile.read())

    def save(self, path: str | Path):
        """Writes the encoded file to disk"""
        Path(path).write_bytes(self.get_data())

    @line_profiler.profile
    def _read(self, data: bytes):
        """Read the header and track chunks"""
        infile = io.BytesIO(data)
        header = parse_header(infile)
        tracks = [parse_track(infile) for _ in range(header.track_count)]

        if header.file_type == FileType.SINGLE_TRACK and len(tracks) > 1:
            logger.warning(f"Single track file declares {len(tracks)} tracks, keeping only the first one")
            tracks = tracks[:1]
        if infile.tell() < len(data):
            logger.debug(f"Ignoring {len(data) - infile.tell()} bytes after the last track")

        self._header = header
        self._tracks = tracks
        self._sync_track_count()
        logger.info(f"Decoded {header!r}")

    def get_data(self) -> bytes:
        """Returns the whole file encoded as bytes"""
        if self._header.file_type == FileType.SINGLE_TRACK and len(self._tracks) > 1:
            raise MidiEncodeError(f"{len(self._tracks)} tracks", "a single track for file type 0")
        data = encode_header(self._header) + b"".join(encode_track(track) for track in self._tracks)
        logger.info(f"Encoded {self._header!r} into {len(data)} bytes")
        return data

    def _sync_track_count(self):
        self._header._track_count = len(self._tracks)

    @property
    def header(self) -> Header:
        return self._header

    @property
    def file_type(self) -> FileType:
        return self._header.file_type

    @property
    def ticks_per_beat(self) -> int:
        return self._header.ticks_per_beat

    @property
    def tracks(self) -> list[Track]:
        """Returns a shallow copy of the track list"""
        return list(self._tracks)

    def get_track(self, index: int) -> Track:
        return self._tracks[index]

    def add_track(self, events: typing.Iterable[Event] | None = None, index: int | None = None) -> Track:
        """Inserts a new track holding the events at index, or appends it if no index is given"""
        track = Track(events)
        if index is None:
            index = len(self._tracks)
        self._tracks.insert(index, track)
        self._sync_track_count()
        return track

    def remove_track(self, index: int = -1) -> Track:
        """Removes and returns the track at index, the last one by default"""
        track = self._tracks.pop(index)
        self._sync_track_count()
        return track

    def __eq__(self, other) -> bool:
        if not isinstance(other, Midifile):
            return NotImplemented
        return self._header == other._header and self._tracks == other._tracks

    def __repr__(self) -> str:
        return f"Midifile({self._header!r})"

    @property
    def length(self) -> float:
        """Return the music length of this midi in seconds, up to the last note event"""
        if self.file_type == FileType.ASYNC_TRACKS:
            return max((calculate_length([track], self.ticks_per_beat) for track in self._tracks), default=0.)
        return calculate_length(self._tracks, self.ticks_per_beat)


def decode_file(data: bytes) -> Midifile:
    """Decodes the bytes of a whole MIDI file"""
    return Midifile(data)


def encode_file(midifile: Midifile) -> bytes:
    """Encodes a whole MIDI file into bytes"""
    return midifile.get_data()


def _is_end_of_track(event: Event) -> bool:
    return isinstance(event, MetaEvent) and event.meta_type == MetaEventType.END_OF_TRACK


def merge_tracks(tracks: typing.Iterable[Track]) -> Track:
    """Merges tracks into a single track ordered by absolute time, ending with one end of track event"""
    msgs: list[tuple[int, Event]] = []  # (abstime, event)
    end = 0
    for track in tracks:
        t = 0
        for event in track:
            t += event.delay
            if not _is_end_of_track(event):
                msgs.append((t, event))
        end = max(end, t)
    # Stable, so simultaneous events keep their track order
    msgs.sort(key=lambda x: x[0])

    events: list[Event] = []
    t = 0
    for abstime, event in msgs:
        events.append(dataclasses.replace(event, delay=abstime - t))
        t = abstime
    events.append(MetaEvent(MetaEventType.END_OF_TRACK, delay=end - t))
    return Track(events)


def calculate_length(tracks: typing.Iterable[Track], ticks_per_beat: int) -> float:
    """Calculates the time in seconds from the start until the last note on or note off event"""
    tempo = DEFAULT_TEMPO
    elapsed = 0.
    length = 0.
    for event in merge_tracks(tracks):
        if event.delay > 0:
            elapsed += tick2second(event.delay, ticks_per_beat, tempo)
        if isinstance(event, ChannelEvent) and event.channel_type in (ChannelEventType.NOTE_OFF, ChannelEventType.NOTE_ON):
            length = elapsed
        if isinstance(event, MetaEvent) and event.meta_type == MetaEventType.SET_TEMPO:
            tempo = bpm2tempo(event.tempo)
    return length
