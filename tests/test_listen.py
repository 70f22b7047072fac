import asyncio
import shutil
import stat
import tempfile
from pathlib import Path

import pytest

from dualink.connect_async import connect_async
from dualink.ipc import (
    AlreadyRunningError,
    IpcError,
    IpcListenerCreationError,
    default_socket_path,
)
from dualink.listen import AsyncFrontendListener
from dualink.messages import ActivateRequest, ErrorEvent, SyncRequest

TIMEOUT = 5


@pytest.fixture
def runtime_dir(monkeypatch):
    directory = Path(tempfile.mkdtemp(prefix="dl", dir="/tmp"))
    (directory / "Library" / "Caches").mkdir(parents=True)
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(directory))
    monkeypatch.setenv("HOME", str(directory))
    yield directory
    shutil.rmtree(directory, ignore_errors=True)


@pytest.mark.asyncio
async def test_connect_yields_sync_then_requests(runtime_dir):
    async with await AsyncFrontendListener.create() as listener:
        reader, writer = await connect_async(TIMEOUT)
        first = await asyncio.wait_for(anext(listener), TIMEOUT)
        await writer.request(ActivateRequest(3, True))
        second = await asyncio.wait_for(anext(listener), TIMEOUT)
        await writer.close()
    assert first == SyncRequest()
    assert second == ActivateRequest(3, True)


@pytest.mark.asyncio
async def test_broadcast_reaches_frontend(runtime_dir):
    async with await AsyncFrontendListener.create() as listener:
        reader, writer = await connect_async(TIMEOUT)
        assert await asyncio.wait_for(anext(listener), TIMEOUT) == SyncRequest()
        await listener.broadcast(ErrorEvent("boom"))
        event = await asyncio.wait_for(anext(reader), TIMEOUT)
        await writer.close()
    assert event == ErrorEvent("boom")


@pytest.mark.asyncio
async def test_invalid_line_raises_ipc_error(runtime_dir):
    async with await AsyncFrontendListener.create() as listener:
        _, raw = await asyncio.open_unix_connection(str(default_socket_path()))
        assert await asyncio.wait_for(anext(listener), TIMEOUT) == SyncRequest()
        raw.write(b"garbage\n")
        await raw.drain()
        with pytest.raises(IpcError):
            await asyncio.wait_for(anext(listener), TIMEOUT)
        raw.close()


@pytest.mark.asyncio
async def test_second_listener_is_refused(runtime_dir):
    async with await AsyncFrontendListener.create():
        with pytest.raises(AlreadyRunningError):
            await AsyncFrontendListener.create()


@pytest.mark.asyncio
async def test_left_behind_file_is_replaced(runtime_dir):
    path = default_socket_path()
    path.write_text("stale")
    async with await AsyncFrontendListener.create() as listener:
        is_socket = stat.S_ISSOCK(path.stat().st_mode)
        _, writer = await connect_async(TIMEOUT)
        first = await asyncio.wait_for(anext(listener), TIMEOUT)
        await writer.close()
    assert is_socket
    assert first == SyncRequest()


@pytest.mark.asyncio
async def test_close_removes_socket_and_ends_iteration(runtime_dir):
    listener = await AsyncFrontendListener.create()
    path = default_socket_path()
    assert path.exists()
    await listener.close()
    assert not path.exists()
    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(anext(listener), TIMEOUT)


@pytest.mark.asyncio
async def test_missing_socket_directory_variable(monkeypatch):
    monkeypatch.delenv("XDG_RUNTIME_DIR", raising=False)
    monkeypatch.delenv("HOME", raising=False)
    with pytest.raises(IpcListenerCreationError):
        await AsyncFrontendListener.create()