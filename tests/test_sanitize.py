from __future__ import annotations

import pytest

from chanlogger.chat.sanitize import decode_text, sanitize, strip_formatting


def test_formatting_reset_and_colour_removed():
    assert sanitize("\x02bold\x0fplain\x0304,05color") == "boldplaincolor"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("\x0312blue", "blue"),
        ("\x03bare", "bare"),
        ("\x04ff0000red", "red"),
        ("\x04FF0000,00ff00both", "both"),
        ("\x1b[31mred\x1b[0m", "red"),
        ("\x1ditalic\x1f \x1estrike\x11mono\x16rev", "italic strikemonorev"),
    ],
)
def test_strip_formatting(raw, expected):
    assert strip_formatting(raw) == expected


def test_utf8_bytes_are_decoded():
    assert decode_text("café ☕".encode()) == "café ☕"


def test_legacy_bytes_fall_back_to_cp1252():
    assert sanitize(b"caf\xe9 \x93quoted\x94") == "café “quoted”"


def test_surrogate_escaped_text_is_redecoded():
    assert sanitize("caf\udce9") == "café"


def test_plain_text_unchanged():
    assert sanitize("hello, world") == "hello, world"
