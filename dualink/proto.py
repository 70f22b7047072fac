"""Binary wire format for events exchanged between devices."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Union

log = logging.getLogger(__name__)

# type: u8, time: u32, dx: f64, dy: f64 (pointer motion, the largest event)
MAX_EVENT_SIZE = 1 + 4 + 2 * 8

# Fits within a typical 1500-byte MTU with room for UDP/IP/DTLS headers.
MAX_BATCH_SIZE = 1200

# No valid event type uses this id.
BATCH_MAGIC = 0xFF

_MAX_BATCH_EVENTS = 254


class ProtocolError(Exception):
    """Received data violates the protocol."""


class Position(IntEnum):
    """Position of a client, as sent on the wire."""

    LEFT = 0
    RIGHT = 1
    TOP = 2
    BOTTOM = 3

    def __str__(self) -> str:
        return self.name.lower()


class EventType(IntEnum):
    """Identifier in the first byte of every encoded event."""

    POINTER_MOTION = 0
    POINTER_BUTTON = 1
    POINTER_AXIS = 2
    POINTER_AXIS_VALUE120 = 3
    KEYBOARD_KEY = 4
    KEYBOARD_MODIFIERS = 5
    PING = 6
    PONG = 7
    ENTER = 8
    LEAVE = 9
    ACK = 10


@dataclass(frozen=True)
class PointerMotion:
    time: int
    dx: float
    dy: float


@dataclass(frozen=True)
class PointerButton:
    time: int
    button: int
    state: int


@dataclass(frozen=True)
class PointerAxis:
    time: int
    axis: int
    value: float


@dataclass(frozen=True)
class PointerAxisDiscrete120:
    axis: int
    value: int


@dataclass(frozen=True)
class KeyboardKey:
    time: int
    key: int
    state: int


@dataclass(frozen=True)
class KeyboardModifiers:
    depressed: int
    latched: int
    locked: int
    group: int


InputEvent = Union[
    PointerMotion,
    PointerButton,
    PointerAxis,
    PointerAxisDiscrete120,
    KeyboardKey,
    KeyboardModifiers,
]


@dataclass(frozen=True)
class Enter:
    """The cursor entered the client's region at the given position."""

    pos: Position


@dataclass(frozen=True)
class Leave:
    """The cursor left the client's region."""

    serial: int


@dataclass(frozen=True)
class Ack:
    """Acknowledges an Enter or Leave event."""

    serial: int


@dataclass(frozen=True)
class Input:
    """An input event."""

    event: InputEvent


@dataclass(frozen=True)
class Ping:
    """Liveness probe; answered with Pong."""


@dataclass(frozen=True)
class Pong:
    """Answer to Ping; true if emulation is available."""

    alive: bool


ProtoEvent = Union[Enter, Leave, Ack, Input, Ping, Pong]

_INPUT_LAYOUTS: dict[type, tuple[EventType, struct.Struct, tuple[str, ...]]] = {
    PointerMotion: (EventType.POINTER_MOTION, struct.Struct(">Idd"), ("time", "dx", "dy")),
    PointerButton: (
        EventType.POINTER_BUTTON,
        struct.Struct(">III"),
        ("time", "button", "state"),
    ),
    PointerAxis: (EventType.POINTER_AXIS, struct.Struct(">IBd"), ("time", "axis", "value")),
    PointerAxisDiscrete120: (
        EventType.POINTER_AXIS_VALUE120,
        struct.Struct(">Bi"),
        ("axis", "value"),
    ),
    KeyboardKey: (EventType.KEYBOARD_KEY, struct.Struct(">IIB"), ("time", "key", "state")),
    KeyboardModifiers: (
        EventType.KEYBOARD_MODIFIERS,
        struct.Struct(">IIII"),
        ("depressed", "latched", "locked", "group"),
    ),
}

_INPUT_DECODERS = {kind: (cls, layout) for cls, (kind, layout, _) in _INPUT_LAYOUTS.items()}

_SIMPLE_TYPES: dict[type, EventType] = {
    Ping: EventType.PING,
    Pong: EventType.PONG,
    Enter: EventType.ENTER,
    Leave: EventType.LEAVE,
    Ack: EventType.ACK,
}

_U8 = struct.Struct(">B")
_U32 = struct.Struct(">I")


def event_type(event: ProtoEvent) -> EventType:
    """Return the wire identifier of an event."""
    if isinstance(event, Input):
        layout = _INPUT_LAYOUTS.get(type(event.event))
        if layout is None:
            raise TypeError(f"not an input event: {event.event!r}")
        return layout[0]
    kind = _SIMPLE_TYPES.get(type(event))
    if kind is None:
        raise TypeError(f"not a protocol event: {event!r}")
    return kind


def encode_event(event: ProtoEvent) -> bytes:
    """Encode a single event; the result is at most MAX_EVENT_SIZE bytes."""
    header = bytes([event_type(event)])
    try:
        if isinstance(event, Input):
            _, layout, names = _INPUT_LAYOUTS[type(event.event)]
            return header + layout.pack(*(getattr(event.event, n) for n in names))
        if isinstance(event, Ping):
            return header
        if isinstance(event, Pong):
            return header + _U8.pack(1 if event.alive else 0)
        if isinstance(event, Enter):
            return header + _U8.pack(int(Position(event.pos)))
        return header + _U32.pack(event.serial)
    except struct.error as e:
        raise ValueError(f"cannot encode {event!r}: {e}") from e


def decode_event(buf: bytes) -> ProtoEvent:
    """Decode a single event; short input is padded with zero bytes."""
    data = bytes(buf[:MAX_EVENT_SIZE]).ljust(MAX_EVENT_SIZE, b"\0")
    try:
        kind = EventType(data[0])
    except ValueError:
        raise ProtocolError(f"invalid event id: `{data[0]}`") from None
    decoder = _INPUT_DECODERS.get(kind)
    if decoder is not None:
        cls, layout = decoder
        return Input(cls(*layout.unpack_from(data, 1)))
    if kind is EventType.PING:
        return Ping()
    if kind is EventType.PONG:
        return Pong(data[1] != 0)
    if kind is EventType.ENTER:
        try:
            return Enter(Position(data[1]))
        except ValueError:
            raise ProtocolError(f"invalid position: `{data[1]}`") from None
    (serial,) = _U32.unpack_from(data, 1)
    return Leave(serial) if kind is EventType.LEAVE else Ack(serial)


def encode_batch(events: Iterable[ProtoEvent]) -> bytes:
    """Encode several events into one packet: ``[0xFF][count]([len][event])*``.

    Events that would push the packet beyond MAX_BATCH_SIZE are dropped.
    """
    events = list(events)
    if not 1 <= len(events) <= _MAX_BATCH_EVENTS:
        raise ValueError(f"a batch holds 1 to {_MAX_BATCH_EVENTS} events, got {len(events)}")
    buf = bytearray([BATCH_MAGIC, 0])
    count = 0
    for event in events:
        data = encode_event(event)
        if len(buf) + 1 + len(data) > MAX_BATCH_SIZE:
            break
        buf.append(len(data))
        buf += data
        count += 1
    buf[1] = count
    return bytes(buf)


def decode_packet(data: bytes) -> list[ProtoEvent]:
    """Decode a packet holding either a single event or a batch."""
    if not data:
        return []
    if data[0] != BATCH_MAGIC:
        return [decode_event(data)]
    if len(data) < 2:
        return []
    count = data[1]
    events: list[ProtoEvent] = []
    offset = 2
    for i in range(count):
        if offset >= len(data):
            log.warning(
                "batch truncated: expected %d events, got %d (offset=%d, len=%d)",
                count, i, offset, len(data),
            )
            break
        length = data[offset]
        offset += 1
        if offset + length > len(data):
            log.warning(
                "batch event %d truncated: need %d bytes at offset %d, have %d",
                i, length, offset, len(data) - offset,
            )
            break
        events.append(decode_event(data[offset:offset + min(length, MAX_EVENT_SIZE)]))
        offset += length
    return events