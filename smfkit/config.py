from __future__ import annotations
import os
import codecs
from dataclasses import dataclass
from functools import cache
from .exceptions import MidiInvalidArgumentError

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


@dataclass(frozen=True)
class CodecConfig:
    """Knobs of the SMF codec. Read from SMFKIT_* environment variables by `get_config`"""

    max_varint_bytes: int = 4
    max_payload_length: int = 1000000
    text_encoding: str = "utf-8"
    text_errors: str = "strict"
    running_status: bool = True

    def __post_init__(self):
        if not (1 <= self.max_varint_bytes <= 4):
            raise MidiInvalidArgumentError(f"Variable length integers are 1 to 4 bytes long (got {self.max_varint_bytes})")
        if self.max_payload_length < 0:
            raise MidiInvalidArgumentError(f"Maximum payload length must be non-negative (got {self.max_payload_length})")
        try:
            codecs.lookup(self.text_encoding)
            codecs.lookup_error(self.text_errors)
        except LookupError as e:
            raise MidiInvalidArgumentError(str(e)) from e

    @classmethod
    def from_env(cls) -> CodecConfig:
        defaults = cls()
        return cls(
            max_varint_bytes=_env_int("SMFKIT_MAX_VARINT_BYTES", defaults.max_varint_bytes),
            max_payload_length=_env_int("SMFKIT_MAX_PAYLOAD_LENGTH", defaults.max_payload_length),
            text_encoding=os.getenv("SMFKIT_TEXT_ENCODING", defaults.text_encoding),
            text_errors=os.getenv("SMFKIT_TEXT_ERRORS", defaults.text_errors),
            running_status=_env_bool("SMFKIT_RUNNING_STATUS", defaults.running_status),
        )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise MidiInvalidArgumentError(f"{name} should be an integer (got {value!r})")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    if value.lower() in _TRUE:
        return True
    if value.lower() in _FALSE:
        return False
    raise MidiInvalidArgumentError(f"{name} should be a boolean (got {value!r})")


@cache
def get_config() -> CodecConfig:
    """Returns the process wide codec configuration. Call `get_config.cache_clear()` to re-read the environment"""
    return CodecConfig.from_env()
