import pytest

from dualink.proto import (
    BATCH_MAGIC,
    MAX_BATCH_SIZE,
    MAX_EVENT_SIZE,
    Ack,
    Enter,
    EventType,
    Input,
    KeyboardKey,
    KeyboardModifiers,
    Leave,
    Ping,
    PointerAxis,
    PointerAxisDiscrete120,
    PointerButton,
    PointerMotion,
    Pong,
    Position,
    ProtocolError,
    decode_event,
    decode_packet,
    encode_batch,
    encode_event,
    event_type,
)

ALL_EVENTS = [
    Input(PointerMotion(time=7, dx=1.5, dy=-2.5)),
    Input(PointerButton(time=1, button=0x110, state=1)),
    Input(PointerAxis(time=3, axis=1, value=-15.0)),
    Input(PointerAxisDiscrete120(axis=0, value=-120)),
    Input(KeyboardKey(time=9, key=30, state=1)),
    Input(KeyboardModifiers(depressed=1, latched=2, locked=4, group=0)),
    Ping(),
    Pong(True),
    Pong(False),
    Enter(Position.TOP),
    Leave(42),
    Ack(4294967295),
]


def test_batch_roundtrip():
    events = [
        Input(PointerMotion(time=0, dx=1.5, dy=-2.5)),
        Ping(),
        Input(PointerButton(time=0, button=0x110, state=1)),
    ]
    encoded = encode_batch(events)
    assert encoded[0] == BATCH_MAGIC
    assert encoded[1] == 3
    decoded = decode_packet(encoded)
    assert len(decoded) == 3
    assert decoded == events


def test_legacy_single_event_decode():
    buf = encode_event(Ping()).ljust(MAX_EVENT_SIZE, b"\0")
    decoded = decode_packet(buf)
    assert len(decoded) == 1
    assert decoded == [Ping()]


@pytest.mark.parametrize("event", ALL_EVENTS)
def test_single_event_roundtrip(event):
    encoded = encode_event(event)
    assert len(encoded) <= MAX_EVENT_SIZE
    assert encoded[0] == event_type(event)
    assert decode_event(encoded) == event


def test_motion_is_largest_event():
    assert len(encode_event(ALL_EVENTS[0])) == MAX_EVENT_SIZE
    assert MAX_EVENT_SIZE == 21


def test_wire_bytes():
    assert encode_event(Ping()) == b"\x06"
    assert encode_event(Enter(Position.RIGHT)) == b"\x08\x01"
    assert encode_event(Ack(1)) == b"\x0a\x00\x00\x00\x01"


def test_event_type_values():
    assert event_type(Ping()) is EventType.PING
    assert event_type(Input(KeyboardKey(0, 1, 0))) is EventType.KEYBOARD_KEY
    assert EventType.ACK == 10


def test_position_display():
    assert [str(Position(value)) for value in range(4)] == [
        "left",
        "right",
        "top",
        "bottom",
    ]


def test_invalid_event_id():
    with pytest.raises(ProtocolError):
        decode_event(b"\x0b")


def test_invalid_position():
    with pytest.raises(ProtocolError):
        decode_event(b"\x08\x04")


def test_event_type_rejects_foreign_object():
    with pytest.raises(TypeError):
        event_type("not an event")


def test_encode_out_of_range_value():
    with pytest.raises(ValueError):
        encode_event(Leave(-1))


def test_empty_packet():
    assert decode_packet(b"") == []


def test_batch_without_count():
    assert decode_packet(bytes([BATCH_MAGIC])) == []


def test_batch_count_zero():
    assert decode_packet(bytes([BATCH_MAGIC, 0])) == []


def test_truncated_batch_keeps_complete_events():
    encoded = encode_batch([Ping(), Ack(3)])
    assert decode_packet(encoded[:-1]) == [Ping()]


def test_batch_with_fewer_events_than_count():
    encoded = bytearray(encode_batch([Ping()]))
    encoded[1] = 5
    assert decode_packet(bytes(encoded)) == [Ping()]


def test_batch_with_invalid_event_raises():
    with pytest.raises(ProtocolError):
        decode_packet(bytes([BATCH_MAGIC, 1, 1, 0x20]))


@pytest.mark.parametrize("count", [0, 255])
def test_batch_size_limits(count):
    with pytest.raises(ValueError):
        encode_batch([Ping()] * count)


def test_batch_stops_at_max_size():
    events = [Input(PointerMotion(time=i, dx=0.5, dy=0.25)) for i in range(254)]
    encoded = encode_batch(events)
    assert len(encoded) <= MAX_BATCH_SIZE
    decoded = decode_packet(encoded)
    assert len(decoded) == encoded[1]
    assert 0 < len(decoded) < 254
    assert decoded == events[: len(decoded)]


def test_batch_roundtrip_all_events():
    assert decode_packet(encode_batch(ALL_EVENTS)) == ALL_EVENTS