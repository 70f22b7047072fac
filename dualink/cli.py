"""Command line frontend for the dualink service."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import sys
from typing import Any, Callable, Optional, Sequence

from dualink.connect_async import (
    AsyncFrontendEventReader,
    AsyncFrontendRequestWriter,
    connect_async,
)
from dualink.ipc import IpcConnectionError, IpcError, Position
from dualink.messages import (
    ActivateRequest,
    AuthorizeKeyRequest,
    CreatedEvent,
    CreateRequest,
    DeleteRequest,
    EnableCaptureRequest,
    EnableEmulationRequest,
    EnumerateEvent,
    EnumerateRequest,
    RemoveAuthorizedKeyRequest,
    SaveConfigurationRequest,
    UpdateEnterHookRequest,
    UpdateFixIpsRequest,
    UpdateHostnameRequest,
    UpdatePortRequest,
    UpdatePositionRequest,
)

_CONNECT_TIMEOUT = 0.5
_U64_MAX = 2**64 - 1


class CliError(Exception):
    """The command could not be carried out."""


class ServiceNotRunningError(CliError):
    """No service answered on the frontend socket."""

    def __init__(self, cause: object) -> None:
        self.cause = cause
        super().__init__(f"could not connect: `{cause}` - is the service running?")


def _port(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {text!r}") from None
    if not 0 <= value <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"port out of range: {text!r}")
    return value


def _handle(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid client id: {text!r}") from None
    if not 0 <= value <= _U64_MAX:
        raise argparse.ArgumentTypeError(f"client id out of range: {text!r}")
    return value


def _ip(text: str) -> Any:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ip address: {text!r}") from None


def _position(text: str) -> Position:
    try:
        return Position.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser of the command line interface."""
    parser = argparse.ArgumentParser(prog="lan-mouse-cli", description="LanMouse CLI interface")
    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    add = sub.add_parser("add-client", help="add a new client")
    add.add_argument("--hostname")
    add.add_argument("--port", type=_port)
    add.add_argument("--ips", type=_ip, action="append")
    add.add_argument("--enter-hook")

    for name, help_text in (
        ("remove-client", "remove an existing client"),
        ("activate", "activate a client"),
        ("deactivate", "deactivate a client"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("id", type=_handle)

    sub.add_parser("list", help="list configured clients")

    p = sub.add_parser("set-host", help="change hostname")
    p.add_argument("id", type=_handle)
    p.add_argument("host", nargs="?")

    p = sub.add_parser("set-port", help="change port")
    p.add_argument("id", type=_handle)
    p.add_argument("port", type=_port)

    p = sub.add_parser("set-position", help="set position")
    p.add_argument("id", type=_handle)
    p.add_argument("pos", type=_position)

    p = sub.add_parser("set-ips", help="set ips")
    p.add_argument("id", type=_handle)
    p.add_argument("ips", type=_ip, nargs="*")

    sub.add_parser("enable-capture", help="re-enable capture")
    sub.add_parser("enable-emulation", help="re-enable emulation")

    p = sub.add_parser("authorize-key", help="authorize a public key")
    p.add_argument("description")
    p.add_argument("sha256_fingerprint")

    p = sub.add_parser("remove-authorized-key", help="deauthorize a public key")
    p.add_argument("sha256_fingerprint")

    sub.add_parser("save-config", help="save configuration to file")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments; exits on invalid input."""
    return build_parser().parse_args(argv)


_SIMPLE: dict[str, Callable[[argparse.Namespace], Any]] = {
    "remove-client": lambda a: DeleteRequest(a.id),
    "activate": lambda a: ActivateRequest(a.id, True),
    "deactivate": lambda a: ActivateRequest(a.id, False),
    "set-host": lambda a: UpdateHostnameRequest(a.id, a.host),
    "set-port": lambda a: UpdatePortRequest(a.id, a.port),
    "set-position": lambda a: UpdatePositionRequest(a.id, a.pos),
    "set-ips": lambda a: UpdateFixIpsRequest(a.id, list(a.ips)),
    "enable-capture": lambda a: EnableCaptureRequest(),
    "enable-emulation": lambda a: EnableEmulationRequest(),
    "authorize-key": lambda a: AuthorizeKeyRequest(a.description, a.sha256_fingerprint),
    "remove-authorized-key": lambda a: RemoveAuthorizedKeyRequest(a.sha256_fingerprint),
    "save-config": lambda a: SaveConfigurationRequest(),
}


def _format_ips(ips: set) -> str:
    ordered = sorted(ips, key=lambda ip: (ip.version, int(ip)))
    return "{" + ", ".join(str(ip) for ip in ordered) + "}"


async def _add_client(
    args: argparse.Namespace, rx: AsyncFrontendEventReader, tx: AsyncFrontendRequestWriter
) -> None:
    await tx.request(CreateRequest())
    async for event in rx:
        if type(event) is not CreatedEvent:
            continue
        handle = event.handle
        if args.hostname is not None:
            await tx.request(UpdateHostnameRequest(handle, args.hostname))
        if args.port is not None:
            await tx.request(UpdatePortRequest(handle, args.port))
        if args.ips is not None:
            await tx.request(UpdateFixIpsRequest(handle, list(args.ips)))
        if args.enter_hook is not None:
            await tx.request(UpdateEnterHookRequest(handle, args.enter_hook))
        break


async def _list_clients(rx: AsyncFrontendEventReader, tx: AsyncFrontendRequestWriter) -> None:
    await tx.request(EnumerateRequest())
    async for event in rx:
        if not isinstance(event, EnumerateEvent):
            continue
        for handle, config, state in event.clients:
            host = config.hostname if config.hostname is not None else "unknown"
            active = "true" if state.active else "false"
            print(
                f"id {handle}: {host}:{config.port} ({config.pos}) "
                f"active: {active}, ips: {_format_ips(state.ips)}"
            )
        break


async def _dispatch(
    args: argparse.Namespace, rx: AsyncFrontendEventReader, tx: AsyncFrontendRequestWriter
) -> None:
    if args.command == "add-client":
        await _add_client(args, rx, tx)
    elif args.command == "list":
        await _list_clients(rx, tx)
    else:
        await tx.request(_SIMPLE[args.command](args))


async def execute(args: argparse.Namespace) -> None:
    """Connect to the service and carry out the parsed command."""
    try:
        rx, tx = await connect_async(_CONNECT_TIMEOUT)
    except IpcConnectionError as e:
        raise ServiceNotRunningError(e) from e
    try:
        await _dispatch(args, rx, tx)
    except IpcError as e:
        raise CliError(f"error communicating with service: {e}") from e
    finally:
        await tx.close()


async def run(args: argparse.Namespace) -> None:
    """Run the command described by the parsed arguments."""
    await execute(args)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of the command line interface; returns the exit status."""
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except CliError as e:
        print(e, file=sys.stderr)
        return 1
    return 0