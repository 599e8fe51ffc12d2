from __future__ import annotations


def _format(arg) -> str:
    if isinstance(arg, bool):
        return str(arg)
    if isinstance(arg, int):
        return f"0x{arg:X}"
    if isinstance(arg, str):
        return f'"{arg}"'
    return str(arg)


class MidiError(Exception):
    """Base class of every error raised by smfkit"""
    pass


class MidiDecodeError(MidiError, ValueError):
    """Exception raised when decoding a MIDI file fails, which indicates a malformed file"""

    def __init__(self, actual, expected, offset: int | None = None):
        self.actual = actual
        self.expected = expected
        self.offset = offset
        message = f"Invalid MIDI file: expected {_format(expected)} but found {_format(actual)}"
        if offset is not None:
            message += f" (at byte {offset})"
        super().__init__(message)

    def at(self, base: int) -> MidiDecodeError:
        """Returns a copy of this error with the offset shifted by base"""
        offset = None if self.offset is None else self.offset + base
        return type(self)(self.actual, self.expected, offset)


class MidiEOFError(MidiDecodeError, EOFError):
    """Special subclass of MidiDecodeError for EOF errors"""
    pass


class MidiNotMidiError(MidiError, ValueError):
    """The data does not start with a MIDI header chunk"""

    def __init__(self, message: str = "Not a valid MIDI file"):
        super().__init__(message)


class MidiNotSupportedError(MidiError, NotImplementedError):
    """A valid MIDI feature which is not implemented"""
    pass


class MidiEncodeError(MidiError, ValueError):
    """Exception raised when a value cannot be represented in a MIDI file"""

    def __init__(self, actual, expected):
        self.actual = actual
        self.expected = expected
        super().__init__(f"MIDI encoding error: expected {_format(expected)} but found {_format(actual)}")


class MidiInvalidEventError(MidiError, ValueError):
    """Constructing an event with an unknown type or bad properties"""
    pass


class MidiInvalidArgumentError(MidiError, ValueError):
    """API misuse, like setting a value out of its allowed range"""
    pass
