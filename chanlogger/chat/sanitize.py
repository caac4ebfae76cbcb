"""Chat text cleanup: encoding detection and formatting-code removal."""

from __future__ import annotations

import re

LEGACY_ENCODING = "cp1252"

COLOR_RE = re.compile(r"\x03(?:\d{1,2}(?:,\d{1,2})?)?")
RGB_COLOR_RE = re.compile(r"\x04(?:[0-9a-fA-F]{6}(?:,[0-9a-fA-F]{6})?)?")
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
# bold, italic, underline, strikethrough, monospace, reverse
FORMAT_TOGGLES_RE = re.compile(r"[\x02\x1d\x1f\x1e\x11\x16]")
RESET = "\x0f"


def decode_text(raw: bytes) -> str:
    """Decode as UTF-8 when the bytes are valid UTF-8, else as a legacy codepage."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode(LEGACY_ENCODING, errors="replace")


def strip_formatting(text: str) -> str:
    text = COLOR_RE.sub("", text)
    text = RGB_COLOR_RE.sub("", text)
    text = ANSI_ESCAPE_RE.sub("", text)
    text = FORMAT_TOGGLES_RE.sub("", text)
    return text.replace(RESET, "")


def sanitize(text: str | bytes) -> str:
    """Return display-clean text from a raw protocol payload.

    ``str`` input is expected to come from the transport, which decodes with
    ``surrogateescape``; the original bytes are recovered before detection.
    """
    raw = text if isinstance(text, bytes) else text.encode("utf-8", errors="surrogateescape")
    return strip_formatting(decode_text(raw))
