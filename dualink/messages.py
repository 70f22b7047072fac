"""Events and requests exchanged over the frontend socket as JSON lines."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from dualink.ipc import (
    ClientConfig,
    ClientState,
    IpcError,
    Position,
    Status,
    _bool,
    _format_socket_addr,
    _list,
    _opt_str,
    _parse_ip,
    _parse_socket_addr,
    _str,
    _str_map,
    _u16,
    _u64,
)


def _fields(payload: Any, count: int) -> list:
    items = _list(payload)
    if len(items) != count:
        raise ValueError(f"expected {count} fields, got {len(items)}")
    return items


def _struct(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValueError(f"expected an object, got {payload!r}")
    return payload


class _Message:
    TAG: ClassVar[str] = ""
    UNIT: ClassVar[bool] = False

    def _payload(self) -> Any:
        raise NotImplementedError

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        raise NotImplementedError


class _Unit(_Message):
    UNIT: ClassVar[bool] = True

    def _payload(self) -> Any:
        return None

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        if payload is not None:
            raise ValueError(f"{cls.TAG} takes no value")
        return cls()


class _HandleOnly(_Message):
    handle: int

    def _payload(self) -> Any:
        return self.handle

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(_u64(payload))


# ---------------------------------------------------------------- events


@dataclass
class CreatedEvent(_Message):
    TAG: ClassVar[str] = "Created"
    handle: int
    config: ClientConfig
    state: ClientState

    def _payload(self) -> Any:
        return [self.handle, self.config.to_dict(), self.state.to_dict()]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        h, c, s = _fields(payload, 3)
        return cls(_u64(h), ClientConfig.from_dict(c), ClientState.from_dict(s))


@dataclass
class NoSuchClientEvent(_HandleOnly):
    TAG: ClassVar[str] = "NoSuchClient"
    handle: int


@dataclass
class StateEvent(CreatedEvent):
    TAG: ClassVar[str] = "State"


@dataclass
class DeletedEvent(_HandleOnly):
    TAG: ClassVar[str] = "Deleted"
    handle: int


@dataclass
class PortChangedEvent(_Message):
    TAG: ClassVar[str] = "PortChanged"
    port: int
    message: Optional[str] = None

    def _payload(self) -> Any:
        return [self.port, self.message]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        port, message = _fields(payload, 2)
        return cls(_u16(port), _opt_str(message))


@dataclass
class EnumerateEvent(_Message):
    TAG: ClassVar[str] = "Enumerate"
    clients: list = field(default_factory=list)

    def _payload(self) -> Any:
        return [[h, c.to_dict(), s.to_dict()] for h, c, s in self.clients]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        clients = []
        for entry in _list(payload):
            h, c, s = _fields(entry, 3)
            clients.append((_u64(h), ClientConfig.from_dict(c), ClientState.from_dict(s)))
        return cls(clients)


@dataclass
class ErrorEvent(_Message):
    TAG: ClassVar[str] = "Error"
    message: str

    def _payload(self) -> Any:
        return self.message

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(_str(payload))


@dataclass
class CaptureStatusEvent(_Message):
    TAG: ClassVar[str] = "CaptureStatus"
    status: Status

    def _payload(self) -> Any:
        return self.status.value

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(Status(_str(payload)))


@dataclass
class EmulationStatusEvent(CaptureStatusEvent):
    TAG: ClassVar[str] = "EmulationStatus"


@dataclass
class AuthorizedUpdatedEvent(_Message):
    TAG: ClassVar[str] = "AuthorizedUpdated"
    keys: dict = field(default_factory=dict)

    def _payload(self) -> Any:
        return dict(self.keys)

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(_str_map(payload))


@dataclass
class PublicKeyFingerprintEvent(_Message):
    TAG: ClassVar[str] = "PublicKeyFingerprint"
    fingerprint: str

    def _payload(self) -> Any:
        return self.fingerprint

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(_str(payload))


@dataclass
class DeviceConnectedEvent(_Message):
    TAG: ClassVar[str] = "DeviceConnected"
    addr: tuple
    fingerprint: str

    def _payload(self) -> Any:
        return {"addr": _format_socket_addr(self.addr), "fingerprint": self.fingerprint}

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        data = _struct(payload)
        return cls(_parse_socket_addr(data["addr"]), _str(data["fingerprint"]))


@dataclass
class DeviceEnteredEvent(_Message):
    TAG: ClassVar[str] = "DeviceEntered"
    fingerprint: str
    addr: tuple
    pos: Position

    def _payload(self) -> Any:
        return {
            "fingerprint": self.fingerprint,
            "addr": _format_socket_addr(self.addr),
            "pos": self.pos.value,
        }

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        data = _struct(payload)
        return cls(
            _str(data["fingerprint"]),
            _parse_socket_addr(data["addr"]),
            Position.parse(data["pos"]),
        )


@dataclass
class IncomingDisconnectedEvent(_Message):
    TAG: ClassVar[str] = "IncomingDisconnected"
    addr: tuple

    def _payload(self) -> Any:
        return _format_socket_addr(self.addr)

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(_parse_socket_addr(payload))


@dataclass
class ConnectionAttemptEvent(_Message):
    TAG: ClassVar[str] = "ConnectionAttempt"
    fingerprint: str

    def _payload(self) -> Any:
        return {"fingerprint": self.fingerprint}

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(_str(_struct(payload)["fingerprint"]))


@dataclass
class KeyRemapStateEvent(_Message):
    TAG: ClassVar[str] = "KeyRemapState"
    modifiers: dict = field(default_factory=dict)
    keys: dict = field(default_factory=dict)

    def _payload(self) -> Any:
        return {"modifiers": dict(self.modifiers), "keys": dict(self.keys)}

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        data = _struct(payload)
        return cls(_str_map(data["modifiers"]), _str_map(data["keys"]))


# -------------------------------------------------------------- requests


@dataclass
class ActivateRequest(_Message):
    TAG: ClassVar[str] = "Activate"
    handle: int
    active: bool

    def _payload(self) -> Any:
        return [self.handle, self.active]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        h, active = _fields(payload, 2)
        return cls(_u64(h), _bool(active))


@dataclass
class CreateRequest(_Unit):
    TAG: ClassVar[str] = "Create"


@dataclass
class ChangePortRequest(_Message):
    TAG: ClassVar[str] = "ChangePort"
    port: int

    def _payload(self) -> Any:
        return self.port

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(_u16(payload))


@dataclass
class DeleteRequest(_HandleOnly):
    TAG: ClassVar[str] = "Delete"
    handle: int


@dataclass
class EnumerateRequest(_Message):
    TAG: ClassVar[str] = "Enumerate"

    def _payload(self) -> Any:
        return []

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        _fields(payload, 0)
        return cls()


@dataclass
class ResolveDnsRequest(_HandleOnly):
    TAG: ClassVar[str] = "ResolveDns"
    handle: int


@dataclass
class UpdateHostnameRequest(_Message):
    TAG: ClassVar[str] = "UpdateHostname"
    handle: int
    hostname: Optional[str]

    def _payload(self) -> Any:
        return [self.handle, self.hostname]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        h, hostname = _fields(payload, 2)
        return cls(_u64(h), _opt_str(hostname))


@dataclass
class UpdatePortRequest(_Message):
    TAG: ClassVar[str] = "UpdatePort"
    handle: int
    port: int

    def _payload(self) -> Any:
        return [self.handle, self.port]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        h, port = _fields(payload, 2)
        return cls(_u64(h), _u16(port))


@dataclass
class UpdatePositionRequest(_Message):
    TAG: ClassVar[str] = "UpdatePosition"
    handle: int
    pos: Position

    def _payload(self) -> Any:
        return [self.handle, self.pos.value]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        h, pos = _fields(payload, 2)
        return cls(_u64(h), Position.parse(pos))


@dataclass
class UpdateFixIpsRequest(_Message):
    TAG: ClassVar[str] = "UpdateFixIps"
    handle: int
    ips: list = field(default_factory=list)

    def _payload(self) -> Any:
        return [self.handle, [str(ip) for ip in self.ips]]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        h, ips = _fields(payload, 2)
        return cls(_u64(h), [_parse_ip(ip) for ip in _list(ips)])


@dataclass
class EnableCaptureRequest(_Unit):
    TAG: ClassVar[str] = "EnableCapture"


@dataclass
class EnableEmulationRequest(_Unit):
    TAG: ClassVar[str] = "EnableEmulation"


@dataclass
class SyncRequest(_Unit):
    TAG: ClassVar[str] = "Sync"


@dataclass
class AuthorizeKeyRequest(_Message):
    TAG: ClassVar[str] = "AuthorizeKey"
    description: str
    fingerprint: str

    def _payload(self) -> Any:
        return [self.description, self.fingerprint]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        description, fingerprint = _fields(payload, 2)
        return cls(_str(description), _str(fingerprint))


@dataclass
class RemoveAuthorizedKeyRequest(_Message):
    TAG: ClassVar[str] = "RemoveAuthorizedKey"
    fingerprint: str

    def _payload(self) -> Any:
        return self.fingerprint

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        return cls(_str(payload))


@dataclass
class UpdateEnterHookRequest(_Message):
    TAG: ClassVar[str] = "UpdateEnterHook"
    handle: int
    cmd: Optional[str]

    def _payload(self) -> Any:
        return [self.handle, self.cmd]

    @classmethod
    def _from_payload(cls, payload: Any) -> _Message:
        h, cmd = _fields(payload, 2)
        return cls(_u64(h), _opt_str(cmd))


@dataclass
class SaveConfigurationRequest(_Unit):
    TAG: ClassVar[str] = "SaveConfiguration"


@dataclass
class SetKeyRemapRequest(KeyRemapStateEvent):
    TAG: ClassVar[str] = "SetKeyRemap"


@dataclass
class GetKeyRemapRequest(_Unit):
    TAG: ClassVar[str] = "GetKeyRemap"


@dataclass
class ResetKeyRemapRequest(_Unit):
    TAG: ClassVar[str] = "ResetKeyRemap"


_EVENTS: dict[str, type] = {
    cls.TAG: cls
    for cls in (
        CreatedEvent,
        NoSuchClientEvent,
        StateEvent,
        DeletedEvent,
        PortChangedEvent,
        EnumerateEvent,
        ErrorEvent,
        CaptureStatusEvent,
        EmulationStatusEvent,
        AuthorizedUpdatedEvent,
        PublicKeyFingerprintEvent,
        DeviceConnectedEvent,
        DeviceEnteredEvent,
        IncomingDisconnectedEvent,
        ConnectionAttemptEvent,
        KeyRemapStateEvent,
    )
}

_REQUESTS: dict[str, type] = {
    cls.TAG: cls
    for cls in (
        ActivateRequest,
        CreateRequest,
        ChangePortRequest,
        DeleteRequest,
        EnumerateRequest,
        ResolveDnsRequest,
        UpdateHostnameRequest,
        UpdatePortRequest,
        UpdatePositionRequest,
        UpdateFixIpsRequest,
        EnableCaptureRequest,
        EnableEmulationRequest,
        SyncRequest,
        AuthorizeKeyRequest,
        RemoveAuthorizedKeyRequest,
        UpdateEnterHookRequest,
        SaveConfigurationRequest,
        SetKeyRemapRequest,
        GetKeyRemapRequest,
        ResetKeyRemapRequest,
    )
}


def _encode(message: _Message, registry: dict[str, type], kind: str) -> str:
    if registry.get(getattr(message, "TAG", None)) is not type(message):
        raise TypeError(f"not a {kind}: {message!r}")
    value = message.TAG if message.UNIT else {message.TAG: message._payload()}
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _decode(line: str | bytes, registry: dict[str, type], kind: str) -> Any:
    try:
        value = json.loads(line)
    except ValueError as e:
        raise IpcError(f"invalid json: `{e}`") from e
    try:
        if isinstance(value, str):
            cls = registry[value]
            if not cls.UNIT:
                raise ValueError(f"{value} requires a value")
            return cls()
        if isinstance(value, dict) and len(value) == 1:
            ((tag, payload),) = value.items()
            return registry[tag]._from_payload(payload)
        raise ValueError(f"expected a {kind}")
    except (KeyError, TypeError, ValueError) as e:
        raise IpcError(f"invalid json: `invalid {kind}: {e}`") from e


def encode_event(event: _Message) -> str:
    """Serialize a frontend event to a single JSON line (without newline)."""
    return _encode(event, _EVENTS, "frontend event")


def decode_event(line: str | bytes) -> Any:
    """Parse a frontend event from a JSON line."""
    return _decode(line, _EVENTS, "frontend event")


def encode_request(request: _Message) -> str:
    """Serialize a frontend request to a single JSON line (without newline)."""
    return _encode(request, _REQUESTS, "frontend request")


def decode_request(line: str | bytes) -> Any:
    """Parse a frontend request from a JSON line."""
    return _decode(line, _REQUESTS, "frontend request")