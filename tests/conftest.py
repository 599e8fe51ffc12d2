import struct
import pytest
from smfkit.config import get_config


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test reads the environment again"""
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def _build_smf(*tracks: bytes, file_type: int = 1, ticks_per_beat: int = 96, track_count: int | None = None) -> bytes:
    if track_count is None:
        track_count = len(tracks)
    header = b"MThd" + struct.pack(">LHHH", 6, file_type, track_count, ticks_per_beat)
    return header + b"".join(b"MTrk" + struct.pack(">L", len(t)) + t for t in tracks)


@pytest.fixture
def build_smf():
    """Builds the bytes of a MIDI file from raw track payloads"""
    return _build_smf


@pytest.fixture
def end_of_track() -> bytes:
    return b"\x00\xFF\x2F\x00"
