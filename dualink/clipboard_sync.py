"""Clipboard exchange between devices over length-prefixed JSON on TCP."""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from dualink.clipboard import ClipboardWatcher, platform_clipboard
from dualink.provider import ClipboardFormat

log = logging.getLogger(__name__)

CLIPBOARD_PORT_OFFSET = 1

_U32_MAX = 0xFFFFFFFF
_U64_MAX = 2**64 - 1
_LEN = struct.Struct(">I")
_EVENT_QUEUE_SIZE = 16
_WATCH_INTERVAL = 0.5


def max_message_size(max_image_bytes: int) -> int:
    """Largest accepted wire message for the given image size limit.

    Accounts for base64 expansion (4/3) and JSON framing (4096 bytes),
    saturating at the 64-bit maximum.
    """
    expanded = min(max_image_bytes * 4, _U64_MAX) // 3
    return min(expanded + 4096, _U64_MAX)


@dataclass
class ChangedMessage:
    """The peer's clipboard changed."""

    formats: list = field(default_factory=list)
    size_hint: int = 0


@dataclass
class RequestMessage:
    """Ask the peer for its clipboard data in a format."""

    format: ClipboardFormat


@dataclass
class TextDataMessage:
    """Clipboard text, as raw UTF-8 bytes."""

    data: bytes


@dataclass
class ImageDataMessage:
    """Clipboard image, as PNG bytes."""

    data: bytes


ClipboardMessage = Union[ChangedMessage, RequestMessage, TextDataMessage, ImageDataMessage]


@dataclass
class RemoteChanged:
    """A peer's clipboard changed; the formats can be pulled."""

    peer: tuple
    formats: list


@dataclass
class RemoteData:
    """Text clipboard data received from a peer."""

    text: str


@dataclass
class RemoteImageData:
    """Image clipboard data (PNG) received from a peer."""

    data: bytes


def encode_message(message: ClipboardMessage) -> bytes:
    """Serialize a clipboard message to JSON."""
    if isinstance(message, ChangedMessage):
        value: Any = {
            "Changed": {
                "formats": [f.value for f in message.formats],
                "size_hint": message.size_hint,
            }
        }
    elif isinstance(message, RequestMessage):
        value = {"Request": {"format": message.format.value}}
    elif isinstance(message, TextDataMessage):
        value = {"TextData": {"data": list(message.data)}}
    elif isinstance(message, ImageDataMessage):
        value = {"ImageData": {"data": base64.b64encode(message.data).decode("ascii")}}
    else:
        raise TypeError(f"not a clipboard message: {message!r}")
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def _byte_list(value: Any) -> bytes:
    if not isinstance(value, list):
        raise ValueError(f"expected a byte array, got {value!r}")
    if any(isinstance(b, bool) or not isinstance(b, int) or not 0 <= b <= 255 for b in value):
        raise ValueError("byte array holds values outside 0..255")
    return bytes(value)


def _u64(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U64_MAX:
        raise ValueError(f"expected an unsigned integer, got {value!r}")
    return value


def decode_message(data: Union[bytes, str]) -> ClipboardMessage:
    """Parse a clipboard message from JSON; raises ValueError if invalid."""
    value = json.loads(data)
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError("expected a clipboard message")
    ((tag, body),) = value.items()
    if not isinstance(body, dict):
        raise ValueError(f"{tag}: expected an object")
    try:
        if tag == "Changed":
            formats = body["formats"]
            if not isinstance(formats, list):
                raise ValueError("formats: expected a list")
            return ChangedMessage(
                [ClipboardFormat(f) for f in formats], _u64(body["size_hint"])
            )
        if tag == "Request":
            return RequestMessage(ClipboardFormat(body["format"]))
        if tag == "TextData":
            return TextDataMessage(_byte_list(body["data"]))
        if tag == "ImageData":
            encoded = body["data"]
            if not isinstance(encoded, str):
                raise ValueError("image data: expected a base64 string")
            try:
                return ImageDataMessage(base64.b64decode(encoded, validate=True))
            except binascii.Error as e:
                raise ValueError(f"invalid base64: {e}") from e
    except KeyError as e:
        raise ValueError(f"{tag}: missing field {e}") from e
    except TypeError as e:
        raise ValueError(f"{tag}: {e}") from e
    raise ValueError(f"unknown clipboard message: {tag!r}")


async def send_message(writer: Any, message: ClipboardMessage) -> None:
    """Write a length-prefixed JSON message."""
    payload = encode_message(message)
    if len(payload) > _U32_MAX:
        raise ValueError("message too large for wire protocol (>4GB)")
    writer.write(_LEN.pack(len(payload)) + payload)
    await writer.drain()


async def _answer_request(
    writer: Any, addr: tuple, fmt: ClipboardFormat, max_image_size: int
) -> bool:
    """Answer a data request; returns False if the connection failed."""
    log.debug("clipboard data request from %s: %s", addr, fmt)
    provider = platform_clipboard()
    if fmt is ClipboardFormat.TEXT:
        text = provider.get_text()
        if text is None:
            return True
        response: ClipboardMessage = TextDataMessage(text.encode("utf-8"))
    elif fmt is ClipboardFormat.IMAGE:
        png = provider.get_image()
        if png is None:
            return True
        if len(png) > max_image_size:
            log.warning(
                "local image too large to send: %d bytes (limit %d)", len(png), max_image_size
            )
            return True
        response = ImageDataMessage(png)
    else:
        log.debug("unsupported clipboard format requested: %s", fmt)
        return True
    try:
        await send_message(writer, response)
    except (OSError, ValueError):
        return False
    return True


async def handle_clipboard_peer(
    reader: asyncio.StreamReader,
    writer: Any,
    addr: tuple,
    events: asyncio.Queue,
    max_image_size: int,
) -> None:
    """Serve one peer connection until it closes or violates the size limit."""
    wire_limit = max_message_size(max_image_size)
    try:
        while True:
            try:
                header = await reader.readexactly(_LEN.size)
            except (asyncio.IncompleteReadError, OSError):
                break
            (length,) = _LEN.unpack(header)
            if length > wire_limit:
                log.warning(
                    "clipboard message too large from %s: %d bytes (limit %d)",
                    addr, length, wire_limit,
                )
                break
            try:
                payload = await reader.readexactly(length)
            except (asyncio.IncompleteReadError, OSError):
                break
            try:
                message = decode_message(payload)
            except ValueError as e:
                log.warning("invalid clipboard message from %s: %s", addr, e)
                continue

            if isinstance(message, ChangedMessage):
                log.debug("remote clipboard changed from %s: %s", addr, message.formats)
                await events.put(RemoteChanged(addr, message.formats))
            elif isinstance(message, TextDataMessage):
                try:
                    text = message.data.decode("utf-8")
                except UnicodeDecodeError:
                    continue
                log.debug("received clipboard text from %s: %d bytes", addr, len(message.data))
                await events.put(RemoteData(text))
            elif isinstance(message, ImageDataMessage):
                log.info("received clipboard image from %s: %d bytes", addr, len(message.data))
                await events.put(RemoteImageData(message.data))
            elif not await _answer_request(writer, addr, message.format, max_image_size):
                break
    finally:
        log.info("clipboard peer disconnected: %s", addr)
        writer.close()


async def run_clipboard_server(port: int, events: asyncio.Queue, max_image_size: int) -> None:
    """Accept clipboard peers on ``port`` and watch the local clipboard."""
    writers: set = set()

    async def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        addr = (peer[0], peer[1]) if peer else ("", 0)
        log.info("clipboard peer connected: %s", addr)
        writers.add(writer)
        try:
            await handle_clipboard_peer(reader, writer, addr, events, max_image_size)
        finally:
            writers.discard(writer)

    try:
        server = await asyncio.start_server(on_connect, "0.0.0.0", port)
    except OSError as e:
        log.warning("failed to start clipboard sync: %s", e)
        return
    log.info("clipboard sync listening on port %d", port)

    watcher = ClipboardWatcher(_WATCH_INTERVAL)
    try:
        while True:
            notification = await watcher.next()
            if notification is None:
                await server.serve_forever()
                return
            log.debug("local clipboard changed: %s", notification.formats)
    finally:
        server.close()
        for writer in list(writers):
            writer.close()
        await watcher.close()


async def send_clipboard_message(host: str, port: int, message: ClipboardMessage) -> None:
    """Connect to a peer's clipboard port (``port`` + 1) and send one message."""
    target_port = port + CLIPBOARD_PORT_OFFSET
    try:
        _, writer = await asyncio.open_connection(host, target_port)
    except OSError as e:
        log.debug("clipboard connect to %s:%d failed: %s", host, target_port, e)
        return
    try:
        await send_message(writer, message)
    except (OSError, ValueError) as e:
        log.debug("clipboard send to %s:%d failed: %s", host, target_port, e)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass


class ClipboardSync:
    """Runs the clipboard server and hands out what peers send.

    Must be created inside a running event loop.
    """

    def __init__(self, base_port: int, max_image_size: int) -> None:
        port = base_port + CLIPBOARD_PORT_OFFSET
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"clipboard port out of range: {port}")
        self._events: asyncio.Queue = asyncio.Queue(maxsize=_EVENT_QUEUE_SIZE)
        self._task = asyncio.get_running_loop().create_task(
            run_clipboard_server(port, self._events, max_image_size)
        )

    async def next_event(self) -> Optional[Any]:
        """Wait for the next event; None once the server has stopped."""
        if not self._events.empty():
            return self._events.get_nowait()
        if self._task.done():
            return None
        getter = asyncio.ensure_future(self._events.get())
        try:
            await asyncio.wait({getter, self._task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            getter.cancel()
            raise
        if getter.done():
            return getter.result()
        getter.cancel()
        return None

    async def close(self) -> None:
        """Stop the server."""
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass