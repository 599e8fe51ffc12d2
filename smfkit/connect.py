# Live MIDI devices, on top of mido ports
from __future__ import annotations
import logging
import typing
import mido
from .events import ChannelEvent, decode_channel_message, encode_channel_message, is_channel_status

logger = logging.getLogger(__name__)

Listener = typing.Callable[[ChannelEvent], None]


class _Emitter:
    def __init__(self):
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        self._listeners.remove(listener)

    def _emit(self, event: ChannelEvent):
        for listener in list(self._listeners):
            listener(event)


class Input(_Emitter):
    """An input device. Every channel message it receives is handed to the listeners as a ChannelEvent"""

    def __init__(self, name: str | None = None, port=None):
        super().__init__()
        if port is None:
            port = mido.open_input(name, callback=self._receive)
        else:
            port.callback = self._receive
        self.port = port
        self.name = port.name

    def _receive(self, message: mido.Message):
        data = message.bytes()
        if not data or not is_channel_status(data[0]):
            logger.debug(f"Ignoring non channel message from {self.name}: {message}")
            return
        self._emit(decode_channel_message(data))

    def close(self):
        self.port.close()


class Output:
    """An output device to which we can send channel events"""

    def __init__(self, name: str | None = None, port=None):
        if port is None:
            port = mido.open_output(name)
        self.port = port
        self.name = port.name

    def send(self, event: ChannelEvent):
        """Sends a channel event to the device. Raises MidiInvalidArgumentError for any other event"""
        data = encode_channel_message(event)
        self.port.send(mido.Message.from_bytes(data))

    def close(self):
        self.port.close()


class Driver(_Emitter):
    """Keeps track of the current input and output devices

    Events received by the current input are forwarded to the driver's listeners.
    Ports the driver opened from a name are closed when they are replaced."""

    def __init__(self):
        super().__init__()
        self.input: Input | None = None
        self.output: Output | None = None
        self._owns_input = False
        self._owns_output = False

    @staticmethod
    def input_names() -> list[str]:
        return mido.get_input_names()

    @staticmethod
    def output_names() -> list[str]:
        return mido.get_output_names()

    def set_input(self, input: Input | str | None):
        """Starts listening to an input, by name or instance, and stops listening to the previous one"""
        owned = isinstance(input, str)
        if owned:
            input = Input(input)
        if self.input is not None:
            self.input.remove_listener(self._emit)
            if self._owns_input and self.input is not input:
                logger.debug(f"Closing MIDI input {self.input.name}")
                self.input.close()
        self.input = input
        self._owns_input = owned
        if input is not None:
            input.add_listener(self._emit)
            logger.info(f"Listening to MIDI input {input.name}")

    def set_output(self, output: Output | str | None):
        owned = isinstance(output, str)
        if owned:
            output = Output(output)
        if self.output is not None and self._owns_output and self.output is not output:
            logger.debug(f"Closing MIDI output {self.output.name}")
            self.output.close()
        self.output = output
        self._owns_output = owned
        if output is not None:
            logger.info(f"Sending to MIDI output {output.name}")

    def close(self):
        """Stops using the current devices, closing those the driver opened"""
        self.set_input(None)
        self.set_output(None)

    def send(self, event: ChannelEvent):
        """Sends an event to the current output, if there is one"""
        if self.output is not None:
            self.output.send(event)
