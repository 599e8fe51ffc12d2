from __future__ import annotations
import io
import logging
import typing
from .base import read_chunk, encode_chunk
from .config import get_config
from .events import Event, parse_event, encode_event
from .exceptions import MidiDecodeError

logger = logging.getLogger(__name__)


class Track:
    """A track of a MIDI file: a sequence of events, each delayed relative to the previous one"""

    def __init__(self, events: typing.Iterable[Event] | None = None):
        self._events: list[Event] = list(events) if events is not None else []

    @property
    def events(self) -> list[Event]:
        """Returns a copy of the events of this track"""
        return list(self._events)

    def get_event(self, index: int) -> Event:
        return self._events[index]

    def add_event(self, event: Event, index: int | None = None) -> Track:
        """Inserts an event at index, or appends it if no index is given"""
        if index is None:
            index = len(self._events)
        self._events.insert(index, event)
        return self

    def remove_event(self, index: int = -1) -> Track:
        del self._events[index]
        return self

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> typing.Iterator[Event]:
        return iter(self._events)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Track):
            return NotImplemented
        return self._events == other._events

    def __repr__(self) -> str:
        return f"Track({self._events!r})"


def parse_track(infile: typing.BinaryIO) -> Track:
    """Reads a MTrk chunk and decodes all of its events"""
    data = read_chunk('MTrk', infile)
    base = infile.tell() - len(data)
    chunk = io.BytesIO(data)
    events: list[Event] = []
    running_status = None

    try:
        while chunk.tell() < len(data):
            event, running_status = parse_event(chunk, running_status)
            events.append(event)
    except MidiDecodeError as e:
        # Report the position in the whole file rather than in the chunk
        raise e.at(base) from e

    logger.debug(f"Decoded track of {len(events)} events at byte {base}")
    return Track(events)


def encode_track(track: Track, use_running_status: bool | None = None) -> bytes:
    """Encodes a track as a MTrk chunk"""
    if use_running_status is None:
        use_running_status = get_config().running_status
    data: list[bytes] = []
    running_status = None
    for event in track:
        encoded, running_status = encode_event(event, running_status, use_running_status)
        data.append(encoded)
    logger.debug(f"Encoded track of {len(data)} events")
    return encode_chunk('MTrk', b"".join(data))
