import ipaddress
import json

import pytest

from dualink.ipc import ClientConfig, ClientState, IpcError, Position, Status
from dualink.messages import (
    ActivateRequest,
    AuthorizedUpdatedEvent,
    AuthorizeKeyRequest,
    CaptureStatusEvent,
    ChangePortRequest,
    ConnectionAttemptEvent,
    CreatedEvent,
    CreateRequest,
    DeletedEvent,
    DeleteRequest,
    DeviceConnectedEvent,
    DeviceEnteredEvent,
    EmulationStatusEvent,
    EnableCaptureRequest,
    EnableEmulationRequest,
    EnumerateEvent,
    EnumerateRequest,
    ErrorEvent,
    GetKeyRemapRequest,
    IncomingDisconnectedEvent,
    KeyRemapStateEvent,
    NoSuchClientEvent,
    PortChangedEvent,
    PublicKeyFingerprintEvent,
    RemoveAuthorizedKeyRequest,
    ResetKeyRemapRequest,
    ResolveDnsRequest,
    SaveConfigurationRequest,
    SetKeyRemapRequest,
    StateEvent,
    SyncRequest,
    UpdateEnterHookRequest,
    UpdateFixIpsRequest,
    UpdateHostnameRequest,
    UpdatePortRequest,
    UpdatePositionRequest,
    decode_event,
    decode_request,
    encode_event,
    encode_request,
)

V4 = (ipaddress.ip_address("192.168.0.7"), 4242)
V6 = (ipaddress.ip_address("fe80::1"), 4242)


def _config():
    return ClientConfig(
        hostname="laptop",
        fix_ips=[ipaddress.ip_address("192.168.0.7")],
        pos=Position.RIGHT,
    )


def _state():
    return ClientState(active=True, active_addr=V4, ips={ipaddress.ip_address("192.168.0.7")})


EVENTS = [
    CreatedEvent(1, _config(), _state()),
    NoSuchClientEvent(3),
    StateEvent(2, _config(), ClientState()),
    DeletedEvent(5),
    PortChangedEvent(4242, None),
    PortChangedEvent(4243, "address in use"),
    EnumerateEvent([(0, _config(), _state()), (1, ClientConfig(), ClientState())]),
    EnumerateEvent([]),
    ErrorEvent("something failed"),
    CaptureStatusEvent(Status.ENABLED),
    EmulationStatusEvent(Status.DISABLED),
    AuthorizedUpdatedEvent({"ab:cd": "desktop"}),
    PublicKeyFingerprintEvent("ab:cd"),
    DeviceConnectedEvent(V4, "ab:cd"),
    DeviceEnteredEvent("ab:cd", V6, Position.TOP),
    IncomingDisconnectedEvent(V6),
    ConnectionAttemptEvent("ab:cd"),
    KeyRemapStateEvent({"ctrl": "cmd"}, {"KeyCapsLock": "KeyEsc"}),
]

REQUESTS = [
    ActivateRequest(1, True),
    CreateRequest(),
    ChangePortRequest(4242),
    DeleteRequest(2),
    EnumerateRequest(),
    ResolveDnsRequest(0),
    UpdateHostnameRequest(0, "laptop"),
    UpdateHostnameRequest(0, None),
    UpdatePortRequest(1, 4243),
    UpdatePositionRequest(1, Position.BOTTOM),
    UpdateFixIpsRequest(1, [ipaddress.ip_address("10.0.0.1"), ipaddress.ip_address("::1")]),
    EnableCaptureRequest(),
    EnableEmulationRequest(),
    SyncRequest(),
    AuthorizeKeyRequest("desktop", "ab:cd"),
    RemoveAuthorizedKeyRequest("ab:cd"),
    UpdateEnterHookRequest(3, "notify-send hi"),
    UpdateEnterHookRequest(3, None),
    SaveConfigurationRequest(),
    SetKeyRemapRequest({"ctrl": "cmd"}, {"KeyCapsLock": "KeyEsc"}),
    GetKeyRemapRequest(),
    ResetKeyRemapRequest(),
]


@pytest.mark.parametrize("event", EVENTS, ids=lambda e: type(e).__name__)
def test_event_roundtrip(event):
    line = encode_event(event)
    assert "\n" not in line
    assert decode_event(line) == event


@pytest.mark.parametrize("request_", REQUESTS, ids=lambda r: type(r).__name__)
def test_request_roundtrip(request_):
    line = encode_request(request_)
    assert "\n" not in line
    decoded = decode_request(line)
    assert type(decoded) is type(request_)
    assert decoded == request_


def test_unit_request_is_bare_string():
    assert encode_request(CreateRequest()) == '"Create"'


def test_empty_tuple_request_encoding():
    assert encode_request(EnumerateRequest()) == '{"Enumerate":[]}'


def test_tuple_request_encoding():
    assert encode_request(ActivateRequest(1, True)) == '{"Activate":[1,true]}'


def test_event_tag_is_the_variant_name():
    value = json.loads(encode_event(ConnectionAttemptEvent("fp")))
    assert list(value) == ["ConnectionAttempt"]
    assert value["ConnectionAttempt"] == {"fingerprint": "fp"}


def test_unit_request_accepts_null_payload():
    assert decode_request('{"Sync":null}') == SyncRequest()


def test_decode_bytes():
    assert decode_request(encode_request(DeleteRequest(7)).encode()) == DeleteRequest(7)


def test_invalid_json_raises():
    with pytest.raises(IpcError):
        decode_event("{not json")


def test_unknown_tag_raises():
    with pytest.raises(IpcError):
        decode_request('"Bogus"')


def test_missing_payload_raises():
    with pytest.raises(IpcError):
        decode_request('"Activate"')


def test_wrong_arity_raises():
    with pytest.raises(IpcError):
        decode_request('{"Activate":[1]}')


def test_port_out_of_range_raises():
    with pytest.raises(IpcError):
        decode_request('{"ChangePort":70000}')


def test_request_is_not_an_event():
    with pytest.raises(TypeError):
        encode_event(CreateRequest())
    with pytest.raises(IpcError):
        decode_event(encode_request(SyncRequest()))