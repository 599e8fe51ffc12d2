# Standard MIDI files, implemented following:
# https://midi.org/midi-1-0-core-specifications
# https://www.music.mcgill.ca/~ich/classes/mumt306/StandardMIDIfileformat.html

from .exceptions import (
    MidiError,
    MidiDecodeError,
    MidiEOFError,
    MidiNotMidiError,
    MidiNotSupportedError,
    MidiEncodeError,
    MidiInvalidEventError,
    MidiInvalidArgumentError,
)
from .config import CodecConfig, get_config
from .base import VariableLengthInt, tick2second, second2tick, bpm2tempo, tempo2bpm
from .meta import MetaEventType
from .message import ChannelEventType
from .events import (
    Event,
    MetaEvent,
    SysexEvent,
    ChannelEvent,
    parse_event,
    encode_event,
    decode_channel_message,
    encode_channel_message,
)
from .header import FileType, Header
from .track import Track
from .file import Midifile, decode_file, encode_file, merge_tracks
