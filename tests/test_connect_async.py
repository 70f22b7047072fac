import asyncio
import shutil
import tempfile

import pytest

from dualink.connect_async import (
    AsyncFrontendEventReader,
    connect_async,
    wait_for_service,
)
from dualink.ipc import (
    ConnectionTimeoutError,
    IpcError,
    SocketPathError,
    Status,
    default_socket_path,
)
from dualink.messages import (
    CaptureStatusEvent,
    DeletedEvent,
    ErrorEvent,
    UpdatePortRequest,
    decode_request,
    encode_event,
)


@pytest.fixture
def socket_path(monkeypatch):
    directory = tempfile.mkdtemp(dir="/tmp")
    monkeypatch.setenv("XDG_RUNTIME_DIR", directory)
    monkeypatch.setenv("HOME", directory)
    path = default_socket_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    yield path
    shutil.rmtree(directory, ignore_errors=True)


def _lines(*events):
    return "".join(encode_event(e) + "\n" for e in events).encode()


@pytest.mark.asyncio
async def test_reader_iterates_events():
    events = [ErrorEvent("e"), DeletedEvent(7)]
    stream = asyncio.StreamReader()
    stream.feed_data(_lines(*events))
    stream.feed_eof()
    received = [e async for e in AsyncFrontendEventReader(stream)]
    assert received == events


@pytest.mark.asyncio
async def test_reader_rejects_invalid_json():
    stream = asyncio.StreamReader()
    stream.feed_data(b"nope\n")
    stream.feed_eof()
    with pytest.raises(IpcError):
        await AsyncFrontendEventReader(stream).__anext__()


@pytest.mark.asyncio
async def test_timeout_without_service(socket_path):
    with pytest.raises(ConnectionTimeoutError):
        await connect_async(0.05)


@pytest.mark.asyncio
async def test_missing_environment(monkeypatch):
    monkeypatch.delenv("XDG_RUNTIME_DIR", raising=False)
    monkeypatch.delenv("HOME", raising=False)
    with pytest.raises(SocketPathError):
        await connect_async(0.5)


@pytest.mark.asyncio
async def test_receives_events_from_service(socket_path):
    events = [ErrorEvent("e"), DeletedEvent(7), CaptureStatusEvent(Status.ENABLED)]

    async def handle(reader, writer):
        writer.write(_lines(*events))
        await writer.drain()
        writer.close()

    server = await asyncio.start_unix_server(handle, path=str(socket_path))
    async with server:
        reader, writer = await connect_async(1.0)
        received = [e async for e in reader]
        await writer.close()
    assert received == events


@pytest.mark.asyncio
async def test_sends_requests_to_service(socket_path):
    received = asyncio.get_running_loop().create_future()

    async def handle(reader, writer):
        received.set_result(await reader.readline())
        writer.close()

    server = await asyncio.start_unix_server(handle, path=str(socket_path))
    async with server:
        reader, writer = await connect_async(1.0)
        await writer.request(UpdatePortRequest(2, 4243))
        line = await asyncio.wait_for(received, 1.0)
        await writer.close()
    assert line.endswith(b"\n")
    assert decode_request(line) == UpdatePortRequest(2, 4243)


@pytest.mark.asyncio
async def test_waits_for_service_to_come_online(socket_path):
    async def handle(reader, writer):
        writer.write(_lines(DeletedEvent(1)))
        await writer.drain()
        writer.close()

    pending = asyncio.ensure_future(wait_for_service())
    await asyncio.sleep(0.05)
    assert not pending.done()
    server = await asyncio.start_unix_server(handle, path=str(socket_path))
    async with server:
        stream_reader, stream_writer = await asyncio.wait_for(pending, 2.0)
        events = [e async for e in AsyncFrontendEventReader(stream_reader)]
        stream_writer.close()
    assert events == [DeletedEvent(1)]