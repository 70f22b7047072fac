from typing import Optional

import pytest

from dualink.provider import ClipboardFormat, ClipboardProvider, DummyClipboard


class TextOnlyClipboard(ClipboardProvider):
    def __init__(self) -> None:
        self.text: Optional[str] = None
        self.changes = 0

    def get_text(self) -> Optional[str]:
        return self.text

    def set_text(self, text: str) -> None:
        self.text = text
        self.changes += 1

    def get_change_count(self) -> int:
        return self.changes


def test_dummy_clipboard_is_always_empty():
    clipboard = DummyClipboard()
    clipboard.set_text("hello world")
    assert clipboard.get_text() is None
    assert clipboard.get_change_count() == 0


def test_dummy_clipboard_has_no_image():
    clipboard = DummyClipboard()
    clipboard.set_image(b"\x89PNG\r\n\x1a\n")
    assert clipboard.get_image() is None
    assert clipboard.has_image() is False


def test_provider_is_abstract():
    with pytest.raises(TypeError):
        ClipboardProvider()


def test_subclass_gets_image_defaults():
    clipboard = TextOnlyClipboard()
    clipboard.set_text("abc")
    ClipboardProvider.set_image(clipboard, b"\x89PNG\r\n\x1a\n")
    assert clipboard.get_text() == "abc"
    assert clipboard.get_change_count() == 1
    assert ClipboardProvider.get_image(clipboard) is None
    assert ClipboardProvider.has_image(clipboard) is False


def test_format_values_round_trip():
    for fmt in ClipboardFormat:
        assert ClipboardFormat(fmt.value) is fmt
    assert ClipboardFormat("Text") is ClipboardFormat.TEXT
    assert ClipboardFormat("Image") is ClipboardFormat.IMAGE