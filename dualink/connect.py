"""Blocking connection from a frontend to the running service."""

from __future__ import annotations

import logging
import socket
import sys
import time
from typing import BinaryIO, Iterator, Optional

from dualink.ipc import IpcError, default_socket_path
from dualink.messages import decode_event, encode_request

log = logging.getLogger(__name__)

_WINDOWS_ADDRESS = ("127.0.0.1", 5252)
_INITIAL_BACK_OFF = 0.01
_MAX_BACK_OFF = 1.0


class FrontendEventReader:
    """Reads events from the service, one JSON document per line."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def __iter__(self) -> Iterator:
        return self

    def __next__(self):
        event = self.next_event()
        if event is None:
            raise StopIteration
        return event

    def next_event(self):
        """Return the next event, or None once the service closed the stream."""
        try:
            line = self._stream.readline()
        except OSError as e:
            raise IpcError(f"io error occured: `{e}`") from e
        if not line:
            return None
        return decode_event(line)


class FrontendRequestWriter:
    """Sends requests to the service, one JSON document per line."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def request(self, request) -> None:
        line = encode_request(request)
        log.debug("requesting: %s", line)
        self._stream.write(f"{line}\n".encode())
        self._stream.flush()

    def close(self) -> None:
        self._stream.close()


def exponential_back_off(duration: float) -> float:
    """Return the next retry delay in seconds: doubled, capped at one second."""
    return min(duration * 2, _MAX_BACK_OFF)


def wait_for_service() -> socket.socket:
    """Block until the service socket accepts a connection."""
    if sys.platform == "win32":
        family, target = socket.AF_INET, _WINDOWS_ADDRESS
    else:
        family, target = socket.AF_UNIX, str(default_socket_path())
    duration: Optional[float] = _INITIAL_BACK_OFF
    while True:
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.connect(target)
            return sock
        except OSError:
            sock.close()
        duration = exponential_back_off(duration)
        time.sleep(duration)


def connect() -> tuple[FrontendEventReader, FrontendRequestWriter]:
    """Connect to the service, waiting for it to come online."""
    sock = wait_for_service()
    reader = FrontendEventReader(sock.makefile("rb"))
    writer = FrontendRequestWriter(sock.makefile("wb"))
    # the file objects keep the connection open
    sock.close()
    return reader, writer