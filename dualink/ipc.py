"""Types shared between the service and its frontends."""

from __future__ import annotations

import ipaddress
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
SocketAddress = tuple  # (IpAddress, port)

DEFAULT_PORT = 4242
SOCKET_NAME = "dualink.sock"

_U16_MAX = 0xFFFF
_U64_MAX = 2**64 - 1


class IpcError(Exception):
    """Error while communicating with the service."""


class IpcConnectionError(IpcError):
    """The connection to the service could not be established."""


class ConnectionTimeoutError(IpcConnectionError):
    """The service did not come online in time."""

    def __init__(self) -> None:
        super().__init__("connection timed out")


class SocketPathError(IpcConnectionError):
    """The location of the service socket could not be determined."""


class IpcListenerCreationError(IpcError):
    """The service socket could not be set up."""


class AlreadyRunningError(IpcListenerCreationError):
    """Another instance of the service owns the socket."""

    def __init__(self) -> None:
        super().__init__("service already running!")


class PositionParseError(ValueError):
    """A string did not name a position."""

    def __init__(self, pos: object) -> None:
        self.pos = pos
        super().__init__(f"not a valid position: {pos}")


class Position(Enum):
    """Side of the screen where a client sits."""

    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"

    def opposite(self) -> Position:
        return _OPPOSITES[self]

    @classmethod
    def parse(cls, text: str) -> Position:
        if isinstance(text, str):
            for pos in cls:
                if pos.value == text:
                    return pos
        raise PositionParseError(text)

    def __str__(self) -> str:
        return self.value


_OPPOSITES = {
    Position.LEFT: Position.RIGHT,
    Position.RIGHT: Position.LEFT,
    Position.TOP: Position.BOTTOM,
    Position.BOTTOM: Position.TOP,
}


class Status(Enum):
    """Whether input capture or emulation is available."""

    DISABLED = "Disabled"
    ENABLED = "Enabled"

    def __bool__(self) -> bool:
        return self is Status.ENABLED


def _uint(value: Any, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= maximum:
        raise ValueError(f"expected an unsigned integer up to {maximum}, got {value!r}")
    return value


def _u16(value: Any) -> int:
    return _uint(value, _U16_MAX)


def _u64(value: Any) -> int:
    return _uint(value, _U64_MAX)


def _str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else _str(value)


def _bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def _list(value: Any) -> list:
    if not isinstance(value, list):
        raise ValueError(f"expected a list, got {value!r}")
    return value


def _str_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        raise ValueError(f"expected a map, got {value!r}")
    return {_str(k): _str(v) for k, v in value.items()}


def _parse_ip(value: Any) -> IpAddress:
    return ipaddress.ip_address(_str(value))


def _ip_sort_key(ip: IpAddress) -> tuple[int, int]:
    return ip.version, int(ip)


def _format_socket_addr(addr: SocketAddress) -> str:
    ip, port = addr
    ip = ipaddress.ip_address(ip)
    return f"[{ip}]:{port}" if ip.version == 6 else f"{ip}:{port}"


def _parse_socket_addr(value: Any) -> SocketAddress:
    text = _str(value)
    host, sep, port = text.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid socket address: {text!r}")
    if host.startswith("[") and host.endswith("]"):
        ip: IpAddress = ipaddress.IPv6Address(host[1:-1])
    else:
        ip = ipaddress.IPv4Address(host)
    return ip, _u16(int(port))


@dataclass
class ClientConfig:
    """User supplied configuration of a client."""

    hostname: Optional[str] = None
    fix_ips: list = field(default_factory=list)
    port: int = DEFAULT_PORT
    pos: Position = Position.LEFT
    cmd: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "fix_ips": [str(ip) for ip in self.fix_ips],
            "port": self.port,
            "pos": self.pos.value,
            "cmd": self.cmd,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        if not isinstance(data, dict):
            raise ValueError(f"expected a client config, got {data!r}")
        return cls(
            hostname=_opt_str(data.get("hostname")),
            fix_ips=[_parse_ip(ip) for ip in _list(data["fix_ips"])],
            port=_u16(data["port"]),
            pos=Position.parse(data["pos"]),
            cmd=_opt_str(data.get("cmd")),
        )


@dataclass
class ClientState:
    """Runtime state of a client."""

    active: bool = False
    active_addr: Optional[SocketAddress] = None
    alive: bool = False
    dns_ips: list = field(default_factory=list)
    ips: set = field(default_factory=set)
    has_pressed_keys: bool = False
    resolving: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "active_addr": (
                None if self.active_addr is None else _format_socket_addr(self.active_addr)
            ),
            "alive": self.alive,
            "dns_ips": [str(ip) for ip in self.dns_ips],
            "ips": [str(ip) for ip in sorted(self.ips, key=_ip_sort_key)],
            "has_pressed_keys": self.has_pressed_keys,
            "resolving": self.resolving,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientState:
        if not isinstance(data, dict):
            raise ValueError(f"expected a client state, got {data!r}")
        addr = data.get("active_addr")
        return cls(
            active=_bool(data["active"]),
            active_addr=None if addr is None else _parse_socket_addr(addr),
            alive=_bool(data["alive"]),
            dns_ips=[_parse_ip(ip) for ip in _list(data["dns_ips"])],
            ips={_parse_ip(ip) for ip in _list(data["ips"])},
            has_pressed_keys=_bool(data["has_pressed_keys"]),
            resolving=_bool(data["resolving"]),
        )


def default_socket_path() -> Path:
    """Return the path of the service's unix socket."""
    if sys.platform == "darwin":
        home = os.environ.get("HOME")
        if home is None:
            raise SocketPathError("could not determine $HOME: `environment variable not found`")
        return Path(home) / "Library" / "Caches" / SOCKET_NAME
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir is None:
        raise SocketPathError(
            "could not determine $XDG_RUNTIME_DIR: `environment variable not found`"
        )
    return Path(runtime_dir) / SOCKET_NAME