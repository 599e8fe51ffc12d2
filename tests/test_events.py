import io
import pytest
from smfkit.events import (
    MetaEvent,
    SysexEvent,
    ChannelEvent,
    parse_event,
    encode_event,
    decode_channel_message,
    encode_channel_message,
)
from smfkit.exceptions import MidiDecodeError, MidiEncodeError, MidiInvalidEventError, MidiInvalidArgumentError
from smfkit.message import ChannelEventType
from smfkit.meta import MetaEventType, key_signature_name


def parse_one(data: bytes, running_status=None):
    infile = io.BytesIO(data)
    event, running_status = parse_event(infile, running_status)
    assert infile.tell() == len(data)
    return event, running_status


def parse_all(data: bytes):
    infile = io.BytesIO(data)
    events = []
    running_status = None
    while infile.tell() < len(data):
        event, running_status = parse_event(infile, running_status)
        events.append(event)
    return events


def encode_all(events, use_running_status=True) -> bytes:
    data = b""
    running_status = None
    for event in events:
        encoded, running_status = encode_event(event, running_status, use_running_status)
        data += encoded
    return data


### Construction ###


def test_meta_event_unknown_type():
    """0x99 is not an assigned meta event type"""
    with pytest.raises(MidiInvalidEventError):
        MetaEvent(0x99)


def test_meta_event_defaults():
    event = MetaEvent(MetaEventType.TIME_SIGNATURE, {"numerator": 3})
    assert event.props == {"numerator": 3, "denominator": 4, "metronome": 24, "clock_signals_per_beat": 24}
    assert event.numerator == 3
    assert event.delay == 0


def test_meta_event_from_int_type():
    assert MetaEvent(0x51).meta_type == MetaEventType.SET_TEMPO
    assert MetaEvent(0x51).tempo == 120


def test_meta_event_unknown_property():
    with pytest.raises(MidiInvalidEventError):
        MetaEvent(MetaEventType.SET_TEMPO, {"bpm": 100})


def test_missing_attribute():
    with pytest.raises(AttributeError):
        MetaEvent(MetaEventType.END_OF_TRACK).text


def test_channel_event_unknown_type():
    with pytest.raises(MidiInvalidEventError):
        ChannelEvent(0x70)


@pytest.mark.parametrize("kwargs", [
    {"channel_type": ChannelEventType.NOTE_ON, "channel": 16},
    {"channel_type": ChannelEventType.NOTE_ON, "props": {"note": 128}},
    {"channel_type": ChannelEventType.CONTROLLER, "props": {"value": -1}},
    {"channel_type": ChannelEventType.PITCH_BEND, "props": {"value": 8192}},
    {"channel_type": ChannelEventType.PROGRAM_CHANGE, "props": {"velocity": 3}},
    {"channel_type": ChannelEventType.NOTE_OFF, "delay": -1},
])
def test_channel_event_invalid_fields(kwargs):
    with pytest.raises(MidiInvalidEventError):
        ChannelEvent(**kwargs)


def test_channel_event_status_and_note_off():
    event = ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60, "velocity": 0}, channel=9)
    assert event.status == 0x99
    assert event.is_note_off
    assert not ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60}).is_note_off


@pytest.mark.parametrize("meta_type, props", [
    (MetaEventType.SET_TEMPO, {"tempo": "fast"}),
    (MetaEventType.SET_TEMPO, {"tempo": 0}),
    (MetaEventType.SET_TEMPO, {"tempo": 1}),
    (MetaEventType.SET_TEMPO, {"tempo": float("nan")}),
    (MetaEventType.TRACK_NAME, {"text": 5}),
    (MetaEventType.TIME_SIGNATURE, {"denominator": 3}),
    (MetaEventType.TIME_SIGNATURE, {"clock_signals_per_beat": 0}),
    (MetaEventType.SMPTE_OFFSET, {"rate": 48}),
    (MetaEventType.SMPTE_OFFSET, {"hours": 64}),
    (MetaEventType.SEQUENCE_NUMBER, {"number": 0x10000}),
    (MetaEventType.MIDI_PORT, {"port": 256}),
    (MetaEventType.KEY_SIGNATURE, {"note": 128}),
    (MetaEventType.KEY_SIGNATURE, {"major": "yes"}),
    (MetaEventType.SEQUENCER_SPECIFIC, {"data": "abc"}),
])
def test_meta_event_invalid_fields(meta_type, props):
    with pytest.raises(MidiInvalidEventError):
        MetaEvent(meta_type, props)


def test_sysex_event_status():
    assert SysexEvent(0x0, [1, 2]).data == b"\x01\x02"
    assert SysexEvent(0x7, b"").status == 0xF7
    assert SysexEvent(0x7, b"").is_escape


@pytest.mark.parametrize("sysex_type, data", [(0x3, b""), (0x0, 5), (0x0, "abc"), (0x0, [256])])
def test_sysex_event_invalid_fields(sysex_type, data):
    with pytest.raises(MidiInvalidEventError):
        SysexEvent(sysex_type, data)


def test_events_are_hashable():
    note = ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60})
    same = ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60})
    tempo = MetaEvent(MetaEventType.SET_TEMPO, {"tempo": 100})
    sysex = SysexEvent(0x0, b"\x7E\xF7")
    assert hash(note) == hash(same)
    assert len({note, same, tempo, sysex, MetaEvent(MetaEventType.SET_TEMPO)}) == 4


### Meta events ###


def test_set_tempo_to_bpm():
    """500000 microseconds per quarter note is 120 beats per minute"""
    event, _ = parse_one(b"\x00\xFF\x51\x03\x07\xA1\x20")
    assert event.meta_type == MetaEventType.SET_TEMPO
    assert event.tempo == 120


def test_sequence_number_is_little_endian():
    event, _ = parse_one(b"\x00\xFF\x00\x02\x01\x00")
    assert event.number == 1


def test_sequence_number_may_be_omitted():
    event, _ = parse_one(b"\x00\xFF\x00\x00")
    assert event.number == 0


def test_text_events():
    event, _ = parse_one(b"\x10\xFF\x03\x05Piano")
    assert event.meta_type == MetaEventType.TRACK_NAME
    assert event.text == "Piano"
    assert event.delay == 0x10
    event, _ = parse_one(b"\x00\xFF\x09\x05" + "été".encode("utf-8"))
    assert event.meta_type == MetaEventType.DEVICE_NAME
    assert event.text == "été"


def test_text_must_decode():
    with pytest.raises(MidiDecodeError) as exc_info:
        parse_one(b"\x00\xFF\x01\x02a\xff")
    assert exc_info.value.offset == 5


def test_time_signature():
    event, _ = parse_one(b"\x00\xFF\x58\x04\x06\x03\x24\x08")
    assert event.props == {"numerator": 6, "denominator": 8, "metronome": 36, "clock_signals_per_beat": 24}


def test_key_signature():
    event, _ = parse_one(b"\x00\xFF\x59\x02\xFD\x01")
    assert event.note == -3
    assert event.major is False
    assert key_signature_name(event.note, event.major) == "c minor"
    assert key_signature_name(-3, True) == "Eb major"
    assert key_signature_name(6, True) == "F# major"


def test_smpte_offset():
    event, _ = parse_one(b"\x00\xFF\x54\x05\x61\x02\x03\x04\x05")
    assert event.props == {"rate": 25, "hours": 33, "minutes": 2, "seconds": 3, "frames": 4, "subframes": 5}


def test_channel_prefix_port_and_sequencer_specific():
    assert parse_one(b"\x00\xFF\x20\x01\x05")[0].channel == 5
    assert parse_one(b"\x00\xFF\x21\x01\x02")[0].port == 2
    assert parse_one(b"\x00\xFF\x7F\x03\x00\x00\x41")[0].data == b"\x00\x00\x41"
    assert parse_one(b"\x00\xFF\x2F\x00")[0].props == {}


def test_unknown_meta_type():
    with pytest.raises(MidiDecodeError) as exc_info:
        parse_one(b"\x00\xFF\x60\x00")
    assert exc_info.value.offset == 2
    assert exc_info.value.expected == "known MetaEvent type"


def test_short_meta_payload():
    with pytest.raises(MidiDecodeError):
        parse_one(b"\x00\xFF\x51\x02\x07\xA1")


def test_meta_events_keep_their_bytes():
    data = (
        b"\x00\xFF\x00\x02\x01\x00"
        b"\x00\xFF\x03\x05Piano"
        b"\x00\xFF\x51\x03\x07\xA1\x20"
        b"\x00\xFF\x54\x05\x61\x02\x03\x04\x05"
        b"\x00\xFF\x58\x04\x06\x03\x24\x08"
        b"\x00\xFF\x59\x02\xFD\x01"
        b"\x00\xFF\x7F\x01\x41"
        b"\x00\xFF\x2F\x00"
    )
    assert encode_all(parse_all(data)) == data


def test_encode_out_of_range():
    with pytest.raises(MidiEncodeError):
        encode_event(MetaEvent(MetaEventType.END_OF_TRACK, delay=0x10000000))


def test_encode_text_outside_the_encoding(monkeypatch):
    monkeypatch.setenv("SMFKIT_TEXT_ENCODING", "ascii")
    with pytest.raises(MidiEncodeError):
        encode_event(MetaEvent(MetaEventType.LYRIC, {"text": "été"}))


### Channel events ###


def test_pitch_bend_is_centered():
    assert parse_one(b"\x00\xE0\x00\x40")[0].value == 0
    assert parse_one(b"\x00\xE0\x00\x00")[0].value == -8192
    assert parse_one(b"\x00\xE0\x7F\x7F")[0].value == 8191


def test_pitch_bend_encoding():
    data, _ = encode_event(ChannelEvent(ChannelEventType.PITCH_BEND, {"value": -8192}, channel=1))
    assert data == b"\x00\xE1\x00\x00"
    data, _ = encode_event(ChannelEvent(ChannelEventType.PITCH_BEND, {"value": 0}))
    assert data == b"\x00\xE0\x00\x40"


@pytest.mark.parametrize("data, channel_type, props", [
    (b"\x00\x83\x3C\x40", ChannelEventType.NOTE_OFF, {"note": 60, "velocity": 64}),
    (b"\x00\x93\x3C\x40", ChannelEventType.NOTE_ON, {"note": 60, "velocity": 64}),
    (b"\x00\xA3\x3C\x10", ChannelEventType.NOTE_AFTERTOUCH, {"note": 60, "pressure": 16}),
    (b"\x00\xB3\x07\x64", ChannelEventType.CONTROLLER, {"controller": 7, "value": 100}),
    (b"\x00\xC3\x05", ChannelEventType.PROGRAM_CHANGE, {"program": 5}),
    (b"\x00\xD3\x22", ChannelEventType.CHANNEL_AFTERTOUCH, {"pressure": 34}),
])
def test_channel_events(data, channel_type, props):
    event, running_status = parse_one(data)
    assert event == ChannelEvent(channel_type, props, channel=3)
    assert running_status == data[1]
    assert encode_event(event)[0] == data


def test_data_byte_with_top_bit():
    with pytest.raises(MidiDecodeError) as exc_info:
        parse_one(b"\x00\x90\x3C\x90")
    assert exc_info.value.offset == 3


### Running status ###


def test_running_status_round_trip():
    """Two note ons on the same channel share one status byte"""
    events = [
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60, "velocity": 100}),
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 64, "velocity": 100}),
    ]
    data = encode_all(events)
    assert data == b"\x00\x90\x3C\x64\x00\x40\x64"
    assert parse_all(data) == events


def test_running_status_disabled():
    events = [
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60, "velocity": 100}),
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 64, "velocity": 100}),
    ]
    assert encode_all(events, use_running_status=False) == b"\x00\x90\x3C\x64\x00\x90\x40\x64"


def test_running_status_changes_with_channel():
    events = [
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60, "velocity": 100}),
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60, "velocity": 100}, channel=1),
    ]
    assert encode_all(events) == b"\x00\x90\x3C\x64\x00\x91\x3C\x64"


@pytest.mark.parametrize("between, between_data", [
    (MetaEvent(MetaEventType.TEXT, {"text": "a"}), b"\x00\xFF\x01\x01a"),
    (SysexEvent(0x0, b"\x7E\xF7"), b"\x00\xF0\x02\x7E\xF7"),
])
def test_meta_and_sysex_cancel_running_status_when_encoding(between, between_data):
    events = [
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60, "velocity": 100}),
        between,
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 62, "velocity": 100}, delay=2),
    ]
    data = encode_all(events)
    assert data == b"\x00\x90\x3C\x64" + between_data + b"\x02\x90\x3E\x64"
    assert parse_all(data) == events
    assert encode_event(between, 0x90)[1] is None


def test_running_status_survives_meta_and_sysex_when_decoding():
    """Files written by other tools may still reuse the status across meta and sysex events"""
    data = b"\x00\x90\x3C\x64\x01\xFF\x01\x01a\x00\xF0\x02\x7E\xF7\x02\x3E\x64"
    assert parse_all(data) == [
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60, "velocity": 100}),
        MetaEvent(MetaEventType.TEXT, {"text": "a"}, delay=1),
        SysexEvent(0x0, b"\x7E\xF7"),
        ChannelEvent(ChannelEventType.NOTE_ON, {"note": 62, "velocity": 100}, delay=2),
    ]


def test_meta_status_is_not_a_running_status():
    event, running_status = parse_one(b"\x00\xFF\x2F\x00", 0x92)
    assert event.meta_type == MetaEventType.END_OF_TRACK
    assert running_status == 0x92


def test_undefined_running_status():
    with pytest.raises(MidiDecodeError) as exc_info:
        parse_one(b"\x00\x3C\x64")
    assert exc_info.value.offset == 1


def test_unknown_status():
    with pytest.raises(MidiDecodeError) as exc_info:
        parse_one(b"\x00\xF1\x00")
    assert exc_info.value.offset == 1


def test_encode_non_event():
    with pytest.raises(MidiEncodeError):
        encode_event("note on")


### Live messages ###


def test_channel_messages():
    event = decode_channel_message(b"\x93\x3C\x40")
    assert event == ChannelEvent(ChannelEventType.NOTE_ON, {"note": 60, "velocity": 64}, channel=3)
    assert encode_channel_message(event) == b"\x93\x3C\x40"
    assert decode_channel_message([0xC0, 0x05], delay=7).delay == 7


@pytest.mark.parametrize("data", [b"\xF8", b"\x90\x3C", b"\x90\x3C\x40\x00"])
def test_bad_channel_messages(data):
    with pytest.raises(MidiDecodeError):
        decode_channel_message(data)


def test_only_channel_events_are_messages():
    with pytest.raises(MidiInvalidArgumentError):
        encode_channel_message(MetaEvent(MetaEventType.END_OF_TRACK))
