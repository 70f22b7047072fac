"""Watching the local clipboard for changes."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from dataclasses import dataclass, field
from typing import Optional

from dualink.macos_clipboard import MacOSClipboard
from dualink.provider import ClipboardFormat, ClipboardProvider, DummyClipboard

log = logging.getLogger(__name__)

_QUEUE_SIZE = 8


@dataclass
class ClipboardNotification:
    """The local clipboard content changed."""

    formats: list = field(default_factory=list)
    size_hint: int = 0


def platform_clipboard() -> ClipboardProvider:
    """Return the clipboard provider of the running platform."""
    if sys.platform == "darwin":
        return MacOSClipboard()
    return DummyClipboard()


def _native_provider() -> Optional[ClipboardProvider]:
    if sys.platform == "darwin":
        return MacOSClipboard()
    return None


async def poll_clipboard(
    provider: ClipboardProvider, queue: asyncio.Queue, interval: float
) -> None:
    """Poll the provider every ``interval`` seconds and queue change notifications."""
    last_count = provider.get_change_count()
    while True:
        await asyncio.sleep(interval)
        count = provider.get_change_count()
        if count == last_count:
            continue
        last_count = count
        formats = []
        size_hint = 0
        text = provider.get_text()
        if text is not None:
            size_hint = len(text.encode("utf-8"))
            formats.append(ClipboardFormat.TEXT)
        if provider.has_image():
            formats.append(ClipboardFormat.IMAGE)
        if formats:
            await queue.put(ClipboardNotification(formats, size_hint))


class ClipboardWatcher:
    """Reports changes of the local clipboard; must be created inside a running loop."""

    def __init__(
        self, poll_interval: float, provider: Optional[ClipboardProvider] = None
    ) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_SIZE)
        if provider is None:
            provider = _native_provider()
        if provider is None:
            log.warning("clipboard sync not supported on this platform")
            self._task: Optional[asyncio.Task] = None
        else:
            self._task = asyncio.get_running_loop().create_task(
                poll_clipboard(provider, self._queue, poll_interval)
            )

    async def next(self) -> Optional[ClipboardNotification]:
        """Wait for the next change; None once no more changes can come."""
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self._task is None or self._task.done():
            return None
        getter = asyncio.ensure_future(self._queue.get())
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
        """Stop polling."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task