# Implements the MTrk events and the running status state machine
from __future__ import annotations
import io
import typing
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import line_profiler
from .base import VariableLengthInt, read_byte, read_bytes
from .config import get_config
from .exceptions import MidiDecodeError, MidiEncodeError, MidiInvalidEventError, MidiInvalidArgumentError
from .message import ChannelEventType, CHANNEL_DEFAULTS, check_channel_props, decode_channel_payload, encode_channel_payload
from .meta import MetaEventType, META_DEFAULTS, check_meta_props, decode_meta_payload, encode_meta_payload

META_STATUS = 0xFF
SYSEX_STATUSES = (0xF0, 0xF7)


def is_channel_status(status: int) -> bool:
    return 0x80 <= status < 0xF0


### Events ###


@dataclass(frozen=True)
class Event(ABC):
    """MIDI event base class. `delay` is the number of ticks since the previous event of the track"""

    delay: int = field(default=0, kw_only=True)

    def __post_init__(self):
        if isinstance(self.delay, bool) or not isinstance(self.delay, int) or self.delay < 0:
            raise MidiInvalidEventError(f"Event delay should be a non-negative integer (got {self.delay!r})")

    @property
    @abstractmethod
    def status(self) -> int:
        """The status byte introducing this event"""
        raise NotImplementedError

    def __getattr__(self, name: str):
        # Only reached when normal lookup fails: exposes the schema fields as attributes
        props = self.__dict__.get("props")
        if props is not None and name in props:
            return props[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")


def _merge_props(kind: str, event_type, defaults: dict[str, typing.Any], props) -> dict[str, typing.Any]:
    props = dict(props or {})
    unknown = sorted(set(props) - set(defaults))
    if unknown:
        raise MidiInvalidEventError(f"{kind} type {event_type.name} has no properties {unknown}")
    return {**defaults, **props}


@dataclass(frozen=True)
class MetaEvent(Event):
    """A meta event, only found in MIDI files, holding information about the sequence"""

    meta_type: MetaEventType
    # Compared, not hashed
    props: dict[str, typing.Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        super().__post_init__()
        try:
            meta_type = MetaEventType(self.meta_type)
        except ValueError:
            raise MidiInvalidEventError(f"Invalid MetaEvent type: {self.meta_type!r}") from None
        props = _merge_props("MetaEvent", meta_type, META_DEFAULTS[meta_type], self.props)
        problem = check_meta_props(meta_type, props)
        if problem is not None:
            raise MidiInvalidEventError(problem)
        object.__setattr__(self, "meta_type", meta_type)
        object.__setattr__(self, "props", props)

    @property
    def status(self) -> int:
        return META_STATUS


@dataclass(frozen=True)
class SysexEvent(Event):
    """A system exclusive event. The data is passed through uninterpreted"""

    sysex_type: int
    data: bytes = b""

    def __post_init__(self):
        super().__post_init__()
        if self.sysex_type not in (0x0, 0x7):
            raise MidiInvalidEventError(f"Sysex type should be 0x0 or 0x7 (got {self.sysex_type!r})")
        # bytes(5) would be five zero bytes
        if isinstance(self.data, (int, str)):
            raise MidiInvalidEventError(f"Sysex data should be bytes (got {self.data!r})")
        try:
            data = bytes(self.data)
        except (TypeError, ValueError) as e:
            raise MidiInvalidEventError(f"Sysex data should be bytes (got {self.data!r})") from e
        object.__setattr__(self, "data", data)

    @property
    def status(self) -> int:
        return 0xF0 | self.sysex_type

    @property
    def is_escape(self) -> bool:
        """Returns True if this is an F7 packet, used for continuations and escaped messages"""
        return self.sysex_type == 0x7


@dataclass(frozen=True)
class ChannelEvent(Event):
    """A channel event, addressed to one of the 16 MIDI channels"""

    channel_type: ChannelEventType
    props: dict[str, int] = field(default_factory=dict, hash=False)
    channel: int = 0

    def __post_init__(self):
        super().__post_init__()
        try:
            channel_type = ChannelEventType(self.channel_type)
        except ValueError:
            raise MidiInvalidEventError(f"Invalid ChannelEvent type: {self.channel_type!r}") from None
        if isinstance(self.channel, bool) or not isinstance(self.channel, int) or not (0 <= self.channel <= 15):
            raise MidiInvalidEventError(f"Channel {self.channel!r} is out of range.")
        props = _merge_props("ChannelEvent", channel_type, CHANNEL_DEFAULTS[channel_type], self.props)
        problem = check_channel_props(channel_type, props)
        if problem is not None:
            raise MidiInvalidEventError(problem)
        object.__setattr__(self, "channel_type", channel_type)
        object.__setattr__(self, "props", props)

    @property
    def status(self) -> int:
        return self.channel_type | self.channel

    @property
    def is_note_off(self) -> bool:
        """Returns True if this should instruct an instrument to stop playing"""
        if self.channel_type == ChannelEventType.NOTE_OFF:
            return True
        return self.channel_type == ChannelEventType.NOTE_ON and self.props["velocity"] == 0


### Parsing ###


def parse_meta_event(infile: typing.BinaryIO, delay: int) -> MetaEvent:
    """Parses a meta event, after its FF status byte"""
    type_offset = infile.tell()
    meta_msg_type = read_byte(infile)
    try:
        meta_type = MetaEventType(meta_msg_type)
    except ValueError:
        raise MidiDecodeError(f"Invalid MetaEvent type: 0x{meta_msg_type:X}", "known MetaEvent type", type_offset) from None
    length = VariableLengthInt.read(infile)
    offset = infile.tell()
    data = read_bytes(infile, length.value)
    return MetaEvent(meta_type, decode_meta_payload(meta_type, data, offset), delay=delay)


def parse_sysex_event(infile: typing.BinaryIO, delay: int, status: int) -> SysexEvent:
    """Parses a sysex event, after its F0 or F7 status byte"""
    length = VariableLengthInt.read(infile)
    data = read_bytes(infile, length.value)
    return SysexEvent(status & 0x0F, data, delay=delay)


def parse_channel_event(infile: typing.BinaryIO, delay: int, status: int) -> ChannelEvent:
    """Parses the data bytes of a channel event with the given status"""
    channel_type = ChannelEventType(status & 0xF0)
    props = decode_channel_payload(channel_type, infile)
    return ChannelEvent(channel_type, props, channel=status & 0x0F, delay=delay)


@line_profiler.profile
def parse_event(infile: typing.BinaryIO, running_status: int | None = None) -> tuple[Event, int | None]:
    """Parses one event (delta time, status, payload) and returns it with the running status for the next event

    Only channel statuses become the running status. Meta and sysex events leave it untouched."""
    delta_time = VariableLengthInt.read(infile)
    status_offset = infile.tell()
    status = read_byte(infile)

    if status < 0x80:
        if running_status is None:
            raise MidiDecodeError("undefined event status", "a status byte or a running status", status_offset)
        # The byte is the first data byte of an event reusing the previous status
        infile.seek(-1, io.SEEK_CUR)
        status = running_status
    elif is_channel_status(status):
        running_status = status

    event: Event
    if status == META_STATUS:
        event = parse_meta_event(infile, delta_time.value)
    elif status in SYSEX_STATUSES:
        event = parse_sysex_event(infile, delta_time.value, status)
    elif is_channel_status(status):
        event = parse_channel_event(infile, delta_time.value, status)
    else:
        raise MidiDecodeError(f"Unknown event status: 0x{status:X}", "known status type", status_offset)
    return event, running_status


### Encoding ###


def encode_event(event: Event, running_status: int | None = None, use_running_status: bool | None = None) -> tuple[bytes, int | None]:
    """Encodes one event and returns its bytes with the running status for the next event

    A channel event whose status equals the running status is written without its status byte.
    Meta and sysex events cancel the running status, so the next channel event is written in full."""
    if use_running_status is None:
        use_running_status = get_config().running_status
    if not isinstance(event, Event):
        raise MidiEncodeError(type(event).__name__, "a MetaEvent, SysexEvent or ChannelEvent")
    delta = VariableLengthInt.from_int(event.delay).data

    if isinstance(event, MetaEvent):
        payload = encode_meta_payload(event.meta_type, event.props)
        length = VariableLengthInt.from_int(len(payload)).data
        return delta + bytes([META_STATUS, event.meta_type]) + length + payload, None

    if isinstance(event, SysexEvent):
        length = VariableLengthInt.from_int(len(event.data)).data
        return delta + bytes([event.status]) + length + event.data, None

    if isinstance(event, ChannelEvent):
        payload = encode_channel_payload(event.channel_type, event.props)
        status = event.status
        if use_running_status and status == running_status:
            return delta + payload, status
        return delta + bytes([status]) + payload, status

    raise MidiEncodeError(type(event).__name__, "a MetaEvent, SysexEvent or ChannelEvent")


### Live messages ###


def decode_channel_message(data: bytes | typing.Sequence[int], delay: int = 0) -> ChannelEvent:
    """Decodes a fully statused channel message, as received from a device (no delta time, no running status)"""
    data = bytes(data)
    infile = io.BytesIO(data)
    status = read_byte(infile)
    if not is_channel_status(status):
        raise MidiDecodeError(status, "a channel message status", 0)
    event = parse_channel_event(infile, delay, status)
    if infile.tell() != len(data):
        raise MidiDecodeError(f"{len(data)} bytes", f"{infile.tell()} bytes for {event.channel_type.name}", infile.tell())
    return event


def encode_channel_message(event: ChannelEvent) -> bytes:
    """Encodes a channel event as a fully statused message, ignoring its delay"""
    if not isinstance(event, ChannelEvent):
        raise MidiInvalidArgumentError("Expected a channel event to be sent")
    return bytes([event.status]) + encode_channel_payload(event.channel_type, event.props)
