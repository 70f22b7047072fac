"""Service side of the frontend socket."""

from __future__ import annotations

import asyncio
import errno
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from dualink.ipc import (
    AlreadyRunningError,
    IpcListenerCreationError,
    SocketPathError,
    default_socket_path,
)
from dualink.messages import SyncRequest, decode_request, encode_event

log = logging.getLogger(__name__)

_WINDOWS_HOST = "127.0.0.1"
_WINDOWS_PORT = 5252
_LINE_LIMIT = 1 << 24
_CLOSE_TIMEOUT = 1.0

_SYNC = object()
_CLOSED = object()


def _bind_error(e: OSError) -> IpcListenerCreationError:
    if e.errno == errno.EADDRINUSE:
        return AlreadyRunningError()
    return IpcListenerCreationError(f"failed to bind dualink socket: `{e}`")


def _remove_socket(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.debug("%s: could not remove socket: %s", path, e)


class AsyncFrontendListener:
    """Accepts frontend connections, yields their requests and broadcasts events.

    Iterating yields a SyncRequest whenever a frontend connects, followed by the
    requests it sends. A line that is not a valid request raises IpcError from
    ``__anext__``; iteration can continue afterwards.
    """

    def __init__(self) -> None:
        self._server: Optional[asyncio.AbstractServer] = None
        self._socket_path: Optional[Path] = None
        self._incoming: asyncio.Queue = asyncio.Queue()
        self._writers: list[asyncio.StreamWriter] = []
        self._connections: set[asyncio.StreamWriter] = set()
        self._closed = False

    @classmethod
    async def create(cls) -> AsyncFrontendListener:
        """Bind the service socket, refusing if another service owns it."""
        listener = cls()
        if sys.platform == "win32":
            try:
                listener._server = await asyncio.start_server(
                    listener._on_connect, _WINDOWS_HOST, _WINDOWS_PORT, limit=_LINE_LIMIT
                )
            except OSError as e:
                raise _bind_error(e) from e
            return listener

        try:
            path = default_socket_path()
        except SocketPathError as e:
            raise IpcListenerCreationError(f"could not determine socket-path: `{e}`") from e

        log.debug("remove socket: %s", path)
        if path.exists():
            try:
                _, writer = await asyncio.open_unix_connection(str(path))
            except OSError as e:
                log.debug("%s: %s - removing left behind socket", path, e)
                _remove_socket(path)
            else:
                writer.close()
                raise AlreadyRunningError()

        try:
            listener._server = await asyncio.start_unix_server(
                listener._on_connect, str(path), limit=_LINE_LIMIT
            )
        except OSError as e:
            raise _bind_error(e) from e
        listener._socket_path = path
        return listener

    async def _on_connect(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        if self._closed:
            writer.close()
            return
        self._writers.append(writer)
        self._connections.add(writer)
        await self._incoming.put(_SYNC)
        try:
            while True:
                try:
                    line = await reader.readline()
                except (OSError, ValueError):
                    break
                if not line:
                    break
                await self._incoming.put(line)
        finally:
            self._connections.discard(writer)

    async def broadcast(self, event: Any) -> None:
        """Send an event to every frontend, dropping those that fail."""
        data = f"{encode_event(event)}\n".encode()
        keep = []
        for writer in self._writers:
            if writer.is_closing():
                continue
            try:
                writer.write(data)
                await writer.drain()
            except OSError:
                continue
            keep.append(writer)
        self._writers = keep

    def __aiter__(self) -> AsyncFrontendListener:
        return self

    async def __anext__(self) -> Any:
        item = await self._incoming.get()
        if item is _CLOSED:
            self._incoming.put_nowait(_CLOSED)
            raise StopAsyncIteration
        if item is _SYNC:
            return SyncRequest()
        return decode_request(item)

    async def close(self) -> None:
        """Disconnect all frontends, stop listening and remove the socket."""
        if self._closed:
            return
        self._closed = True
        for writer in {*self._connections, *self._writers}:
            writer.close()
        self._writers.clear()
        if self._server is not None:
            self._server.close()
            try:
                await asyncio.wait_for(self._server.wait_closed(), _CLOSE_TIMEOUT)
            except asyncio.TimeoutError:
                log.debug("timed out waiting for frontend connections to close")
        if self._socket_path is not None:
            log.debug("remove socket: %s", self._socket_path)
            _remove_socket(self._socket_path)
        self._incoming.put_nowait(_CLOSED)

    async def __aenter__(self) -> AsyncFrontendListener:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()