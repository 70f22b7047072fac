"""Asynchronous connection from a frontend to the running service."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

from dualink.connect import exponential_back_off
from dualink.ipc import ConnectionTimeoutError, IpcError, default_socket_path
from dualink.messages import decode_event, encode_request

log = logging.getLogger(__name__)

_WINDOWS_HOST = "127.0.0.1"
_WINDOWS_PORT = 5252
_INITIAL_BACK_OFF = 0.01
_LINE_LIMIT = 1 << 24


class AsyncFrontendEventReader:
    """Async iterator over events sent by the service."""

    def __init__(self, reader: asyncio.StreamReader) -> None:
        self._reader = reader

    def __aiter__(self) -> AsyncFrontendEventReader:
        return self

    async def __anext__(self):
        try:
            line = await self._reader.readline()
        except (OSError, ValueError) as e:
            raise IpcError(f"io error occured: `{e}`") from e
        if not line:
            raise StopAsyncIteration
        return decode_event(line)


class AsyncFrontendRequestWriter:
    """Sends requests to the service."""

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer

    async def request(self, request) -> None:
        line = encode_request(request)
        log.debug("requesting: %s", line)
        try:
            self._writer.write(f"{line}\n".encode())
            await self._writer.drain()
        except OSError as e:
            raise IpcError(f"io error occured: `{e}`") from e

    async def close(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            pass


async def wait_for_service() -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Wait until the service socket accepts a connection."""
    if sys.platform == "win32":
        def opener():
            return asyncio.open_connection(_WINDOWS_HOST, _WINDOWS_PORT, limit=_LINE_LIMIT)
    else:
        path = str(default_socket_path())

        def opener():
            return asyncio.open_unix_connection(path, limit=_LINE_LIMIT)

    duration = _INITIAL_BACK_OFF
    while True:
        try:
            return await opener()
        except OSError:
            pass
        duration = exponential_back_off(duration)
        await asyncio.sleep(duration)


async def connect_async(
    timeout: Optional[float] = None,
) -> tuple[AsyncFrontendEventReader, AsyncFrontendRequestWriter]:
    """Connect to the service; give up after ``timeout`` seconds if given."""
    if timeout is None:
        reader, writer = await wait_for_service()
    else:
        try:
            reader, writer = await asyncio.wait_for(wait_for_service(), timeout)
        except asyncio.TimeoutError:
            raise ConnectionTimeoutError() from None
    return AsyncFrontendEventReader(reader), AsyncFrontendRequestWriter(writer)