"""MIDI channel-message codec.

Encodes parameter writes as Control-Change and NRPN byte sequences and
decodes inbound byte sequences into typed events.  ``decode`` never raises:
bytes arriving from hardware are outside our control, so anything malformed
comes back as an ``UnknownMessage`` carrying the raw dump.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import ClassVar, NamedTuple, Sequence

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

CC_DATA_MSB = 6
CC_DATA_LSB = 38
CC_NRPN_LSB = 98
CC_NRPN_MSB = 99
CC_RPN_LSB = 100
CC_RPN_MSB = 101

MAX_7BIT = 0x7F
MAX_14BIT = 0x3FFF
PITCH_BEND_CENTER = 8192

# Expected length per channel-message status (high nibble)
_MESSAGE_LENGTHS = {
    0x80: 3, 0x90: 3, 0xA0: 3, 0xB0: 3,
    0xC0: 2, 0xD0: 2, 0xE0: 3,
}


class MidiRangeError(ValueError):
    """Raised when an encode argument falls outside its MIDI range."""


def _require(label: str, value, upper: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= upper:
        raise MidiRangeError(f"{label} {value!r} out of range 0-{upper}")


def _cc(channel: int, controller: int, value: int) -> bytes:
    return bytes([0xB0 | (channel & 0x0F), controller & 0x7F, value & 0x7F])


def split_14bit(value: int) -> tuple[int, int]:
    """Return (msb, lsb) 7-bit halves of a 14-bit number."""
    return (value >> 7) & 0x7F, value & 0x7F


def join_14bit(msb: int, lsb: int) -> int:
    return ((msb & 0x7F) << 7) | (lsb & 0x7F)


def encode_cc(channel: int, controller: int, value: int) -> bytes:
    _require("channel", channel, 15)
    _require("controller", controller, MAX_7BIT)
    _require("value", value, MAX_7BIT)
    return _cc(channel, controller, value)


def encode_nrpn(channel: int, parameter: int, value: int) -> list[bytes]:
    """Encode a 14-bit NRPN write as four CC messages.

    The order is fixed: parameter MSB (99), parameter LSB (98), data MSB (6),
    data LSB (38).  Receivers latch the parameter number before the data, so
    the messages must reach the device in this order.
    """
    _require("channel", channel, 15)
    _require("parameter", parameter, MAX_14BIT)
    _require("value", value, MAX_14BIT)
    param_msb, param_lsb = split_14bit(parameter)
    data_msb, data_lsb = split_14bit(value)
    return [
        _cc(channel, CC_NRPN_MSB, param_msb),
        _cc(channel, CC_NRPN_LSB, param_lsb),
        _cc(channel, CC_DATA_MSB, data_msb),
        _cc(channel, CC_DATA_LSB, data_lsb),
    ]


def note_name(note) -> str:
    """Return the scientific pitch name for a MIDI note number (60 -> "C4")."""
    if isinstance(note, bool) or not isinstance(note, int) or not 0 <= note <= MAX_7BIT:
        return "Unknown"
    return f"{NOTE_NAMES[note % 12]}{note // 12 - 1}"


def hex_dump(data) -> str:
    if not isinstance(data, (bytes, bytearray, list, tuple)):
        return "N/A"
    parts = []
    for b in data:
        if isinstance(b, int) and not isinstance(b, bool) and b >= 0:
            parts.append(f"{b:02x}")
        else:
            parts.append(repr(b))
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Decoded events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MidiEvent:
    raw: tuple

    kind: ClassVar[str] = "Unknown"

    @property
    def channel_or_none(self) -> int | None:
        return None

    def describe(self) -> str:
        return f"{self.kind}: {hex_dump(self.raw)}"


@dataclass(frozen=True)
class EmptyMessage(MidiEvent):
    kind: ClassVar[str] = "Empty"

    def describe(self) -> str:
        return "Empty message"


@dataclass(frozen=True)
class UnknownMessage(MidiEvent):
    kind: ClassVar[str] = "Unknown"


@dataclass(frozen=True)
class SystemMessage(MidiEvent):
    kind: ClassVar[str] = "System"

    @property
    def is_sysex(self) -> bool:
        return self.raw[0] == 0xF0

    def describe(self) -> str:
        if self.is_sysex:
            return f"SysEx: {len(self.raw)} bytes ({hex_dump(self.raw)})"
        return f"System Message: {hex_dump(self.raw)}"


@dataclass(frozen=True)
class ChannelEvent(MidiEvent):
    channel: int  # 0-indexed

    @property
    def channel_or_none(self) -> int | None:
        return self.channel

    @property
    def display_channel(self) -> int:
        return self.channel + 1


@dataclass(frozen=True)
class NoteOff(ChannelEvent):
    note: int
    velocity: int

    kind: ClassVar[str] = "Note Off"

    @property
    def note_name(self) -> str:
        return note_name(self.note)

    def describe(self) -> str:
        return (f"Note Off: channel {self.display_channel}, note {self.note_name}, "
                f"velocity {self.velocity}")


@dataclass(frozen=True)
class NoteOn(ChannelEvent):
    note: int
    velocity: int

    kind: ClassVar[str] = "Note On"

    @property
    def note_name(self) -> str:
        return note_name(self.note)

    def describe(self) -> str:
        return (f"Note On: channel {self.display_channel}, note {self.note_name}, "
                f"velocity {self.velocity}")


@dataclass(frozen=True)
class Aftertouch(ChannelEvent):
    note: int
    pressure: int

    kind: ClassVar[str] = "Aftertouch"

    def describe(self) -> str:
        return (f"Aftertouch: channel {self.display_channel}, note {note_name(self.note)}, "
                f"pressure {self.pressure}")


@dataclass(frozen=True)
class ControlChange(ChannelEvent):
    controller: int
    value: int

    kind: ClassVar[str] = "Control Change"

    def describe(self) -> str:
        return (f"Control Change: channel {self.display_channel}, "
                f"controller {self.controller}, value {self.value}")


@dataclass(frozen=True)
class ProgramChange(ChannelEvent):
    program: int

    kind: ClassVar[str] = "Program Change"

    def describe(self) -> str:
        return f"Program Change: channel {self.display_channel}, program {self.program}"


@dataclass(frozen=True)
class ChannelPressure(ChannelEvent):
    pressure: int

    kind: ClassVar[str] = "Channel Pressure"

    def describe(self) -> str:
        return f"Channel Pressure: channel {self.display_channel}, pressure {self.pressure}"


@dataclass(frozen=True)
class PitchBend(ChannelEvent):
    value: int  # signed, -8192..+8191

    kind: ClassVar[str] = "Pitch Bend"

    def describe(self) -> str:
        return f"Pitch Bend: channel {self.display_channel}, value {self.value}"


def _is_byte(b) -> bool:
    return isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 0xFF


def decode(data: Sequence[int] | bytes | None) -> MidiEvent:
    if data is None:
        return EmptyMessage(raw=())
    try:
        raw = tuple(data)
    except TypeError:
        return UnknownMessage(raw=())
    if not raw:
        return EmptyMessage(raw=())
    if not all(_is_byte(b) for b in raw):
        return UnknownMessage(raw=raw)

    status = raw[0]
    if status < 0x80:
        # Data byte without a status byte (running status is not tracked)
        return UnknownMessage(raw=raw)
    kind = status & 0xF0
    if kind == 0xF0:
        return SystemMessage(raw=raw)

    length = _MESSAGE_LENGTHS[kind]
    if len(raw) < length or any(b > MAX_7BIT for b in raw[1:length]):
        return UnknownMessage(raw=raw)

    channel = status & 0x0F
    if kind == 0x80:
        return NoteOff(raw=raw, channel=channel, note=raw[1], velocity=raw[2])
    if kind == 0x90:
        if raw[2] == 0:
            return NoteOff(raw=raw, channel=channel, note=raw[1], velocity=0)
        return NoteOn(raw=raw, channel=channel, note=raw[1], velocity=raw[2])
    if kind == 0xA0:
        return Aftertouch(raw=raw, channel=channel, note=raw[1], pressure=raw[2])
    if kind == 0xB0:
        return ControlChange(raw=raw, channel=channel, controller=raw[1], value=raw[2])
    if kind == 0xC0:
        return ProgramChange(raw=raw, channel=channel, program=raw[1])
    if kind == 0xD0:
        return ChannelPressure(raw=raw, channel=channel, pressure=raw[1])
    return PitchBend(raw=raw, channel=channel,
                     value=join_14bit(raw[2], raw[1]) - PITCH_BEND_CENTER)


# ---------------------------------------------------------------------------
# NRPN receive side
# ---------------------------------------------------------------------------

class NrpnValue(NamedTuple):
    channel: int
    parameter: int
    value: int


@dataclass
class _NrpnLatch:
    param_msb: int | None = None
    param_lsb: int | None = None
    data_msb: int | None = None


class NrpnReceiver:
    """Reassembles NRPN writes from a stream of Control-Change events.

    Latches parameter MSB (99) and LSB (98), then data MSB (6); the value is
    reported when data LSB (38) arrives.  State is kept per channel.
    """

    def __init__(self) -> None:
        self._latches: dict[int, _NrpnLatch] = {}

    def reset(self) -> None:
        self._latches.clear()

    def feed(self, event: MidiEvent) -> NrpnValue | None:
        if not isinstance(event, ControlChange):
            return None
        latch = self._latches.setdefault(event.channel, _NrpnLatch())
        controller = event.controller
        if controller == CC_NRPN_MSB:
            latch.param_msb = event.value
            latch.param_lsb = None
            latch.data_msb = None
        elif controller == CC_NRPN_LSB:
            latch.param_lsb = event.value
            latch.data_msb = None
        elif controller in (CC_RPN_MSB, CC_RPN_LSB):
            # RPN selection deselects any NRPN on this channel
            self._latches[event.channel] = _NrpnLatch()
        elif controller == CC_DATA_MSB:
            latch.data_msb = event.value
        elif controller == CC_DATA_LSB:
            if None in (latch.param_msb, latch.param_lsb, latch.data_msb):
                return None
            result = NrpnValue(
                channel=event.channel,
                parameter=join_14bit(latch.param_msb, latch.param_lsb),
                value=join_14bit(latch.data_msb, event.value),
            )
            latch.data_msb = None
            return result
        return None
