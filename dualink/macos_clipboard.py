"""macOS clipboard through pbcopy, pbpaste, osascript and sips."""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import subprocess
from pathlib import Path
from typing import Optional

from dualink.provider import ClipboardProvider

log = logging.getLogger(__name__)

_PNG_MAGIC = b"\x89PNG"
_INFO_SCRIPT = 'tell application "System Events" to return (the clipboard info)'


def _run(args: list[str]) -> Optional[subprocess.CompletedProcess]:
    try:
        return subprocess.run(args, capture_output=True, check=False)
    except OSError as e:
        log.debug("failed to run %s: %s", args[0], e)
        return None


def _clipboard_info() -> Optional[str]:
    out = _run(["osascript", "-e", _INFO_SCRIPT])
    if out is None:
        return None
    return out.stdout.decode("utf-8", errors="replace")


def _read_and_remove(path: str) -> Optional[bytes]:
    try:
        return Path(path).read_bytes()
    except OSError:
        return None
    finally:
        _remove(path)


def _remove(path: str) -> None:
    with contextlib.suppress(OSError):
        os.remove(path)


def _read_image_script(png_path: str, tiff_path: str) -> str:
    return "\n".join(
        [
            "try",
            "  set pngData to (the clipboard as «class PNGf»)",
            f'  set outFile to open for access POSIX file "{png_path}" with write permission',
            "  set eof of outFile to 0",
            "  write pngData to outFile",
            "  close access outFile",
            '  return "ok:png"',
            "on error",
            "  try",
            "    set tiffData to (the clipboard as «class TIFF»)",
            f'    set outFile to open for access POSIX file "{tiff_path}" with write permission',
            "    set eof of outFile to 0",
            "    write tiffData to outFile",
            "    close access outFile",
            '    return "ok:tiff"',
            "  on error",
            '    return "no_image"',
            "  end try",
            "end try",
        ]
    )


def _write_image_script(path: str) -> str:
    return "\n".join(
        [
            "try",
            f'  set imgFile to POSIX file "{path}"',
            "  set imgData to read imgFile as «class PNGf»",
            "  set the clipboard to {«class PNGf»:imgData}",
            '  return "ok"',
            "on error errMsg",
            '  return "error:" & errMsg',
            "end try",
        ]
    )


class MacOSClipboard(ClipboardProvider):
    """Clipboard of the macOS pasteboard, exchanging images as PNG."""

    @staticmethod
    def info_has_image(info: str) -> bool:
        """Tell whether clipboard info output lists an image type."""
        return any(
            marker in info for marker in ("PNGf", "TIFF", "«class PNGf»", "«class TIFF»")
        )

    @staticmethod
    def temp_path(suffix: str) -> str:
        """Return a temporary file path unique to this process."""
        return f"/tmp/dualink_cb_{os.getpid()}_{suffix}"

    def get_text(self) -> Optional[str]:
        out = _run(["pbpaste"])
        if out is None or out.returncode != 0:
            return None
        text = out.stdout.decode("utf-8", errors="replace")
        return text or None

    def set_text(self, text: str) -> None:
        try:
            subprocess.run(["pbcopy"], input=text.encode("utf-8"), check=False)
        except OSError as e:
            log.warning("failed to run pbcopy: %s", e)

    def get_change_count(self) -> int:
        info = _clipboard_info()
        if info is None:
            return 0
        digest = hashlib.blake2b(info.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big")

    def get_image(self) -> Optional[bytes]:
        png_path = self.temp_path("read.png")
        tiff_path = self.temp_path("read.tiff")
        out = _run(["osascript", "-e", _read_image_script(png_path, tiff_path)])
        if out is None:
            return None
        result = out.stdout.decode("utf-8", errors="replace").strip()

        data: Optional[bytes] = None
        if result == "ok:png":
            data = _read_and_remove(png_path)
        elif result == "ok:tiff":
            converted = _run(["sips", "-s", "format", "png", tiff_path, "--out", png_path])
            _remove(tiff_path)
            if converted is not None and converted.returncode == 0:
                data = _read_and_remove(png_path)
            else:
                _remove(png_path)

        if data is None:
            return None
        if len(data) >= 8 and data[:4] == _PNG_MAGIC:
            return data
        log.warning("clipboard image data does not have valid PNG header")
        return None

    def set_image(self, data: bytes) -> None:
        path = self.temp_path("write.png")
        try:
            Path(path).write_bytes(data)
        except OSError as e:
            log.warning("failed to write temp image file: %s", e)
            return
        try:
            try:
                out = subprocess.run(
                    ["osascript", "-e", _write_image_script(path)],
                    capture_output=True,
                    check=False,
                )
            except OSError as e:
                log.warning("failed to run osascript for clipboard image: %s", e)
                return
            result = out.stdout.decode("utf-8", errors="replace").strip()
            if result.startswith("error:"):
                log.warning("failed to set clipboard image: %s", result)
            else:
                log.debug("clipboard image set: %d bytes", len(data))
        finally:
            _remove(path)

    def has_image(self) -> bool:
        info = _clipboard_info()
        return info is not None and self.info_has_image(info)