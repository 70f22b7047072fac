"""Interface to the system clipboard."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional


class ClipboardFormat(Enum):
    """Kind of data held by the clipboard."""

    TEXT = "Text"
    IMAGE = "Image"


def _require_text(text: object) -> str:
    if not isinstance(text, str):
        raise TypeError(f"clipboard text must be str, not {type(text).__name__}")
    return text


def _require_bytes(data: object) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"clipboard image must be bytes, not {type(data).__name__}")
    return bytes(data)


class ClipboardProvider(ABC):
    """Access to a platform clipboard."""

    #: What a provider without image support reports as the clipboard image.
    _NO_IMAGE: Optional[bytes] = None

    @abstractmethod
    def get_text(self) -> Optional[str]:
        """Return the clipboard text, or None if there is none."""

    @abstractmethod
    def set_text(self, text: str) -> None:
        """Replace the clipboard content with text."""

    @abstractmethod
    def get_change_count(self) -> int:
        """Return a value that changes whenever the clipboard changes."""

    def get_image(self) -> Optional[bytes]:
        """Return the clipboard image as PNG bytes; without image support there is none."""
        return self._NO_IMAGE

    def set_image(self, data: bytes) -> None:
        """Replace the clipboard content with a PNG image.

        Providers without image support check the data and drop it.
        """
        _require_bytes(data)

    def has_image(self) -> bool:
        """Tell whether the clipboard holds an image, without reading it."""
        return False


class DummyClipboard(ClipboardProvider):
    """Clipboard for platforms without clipboard support: always empty."""

    _EMPTY_TEXT: Optional[str] = None
    _CHANGE_COUNT = 0

    def get_text(self) -> Optional[str]:
        return self._EMPTY_TEXT

    def set_text(self, text: str) -> None:
        # The text is checked and dropped: this clipboard stays empty.
        _require_text(text)

    def get_change_count(self) -> int:
        return self._CHANGE_COUNT