"""Recognise comma separated values (RFC 4180 style) text."""

from __future__ import annotations

from .settings import Flag, Settings

CSV_LINES = 10
"""Default number of lines examined; 0 means all."""

_QUOTE = ord('"')
_COMMA = ord(",")
_NEWLINE = ord("\n")


def _skip_quoted(data: bytes, pos: int) -> int:
    """Return the position just past the quoted field that starts at pos."""
    quote = False
    end = len(data)
    while pos < end:
        c = data[pos]
        pos += 1
        if c != _QUOTE:
            if quote:
                return pos - 1
            continue
        # A doubled quote is an escaped quote.
        quote = not quote
    return end


def parse_csv(data: bytes, max_lines: int = CSV_LINES) -> bool:
    """Whether data looks like CSV with a constant field count above one."""
    fields = 0
    expected = 0
    lines = 0
    pos = 0
    end = len(data)
    while pos < end:
        c = data[pos]
        pos += 1
        if c == _QUOTE:
            pos = _skip_quoted(data, pos)
        elif c == _COMMA:
            fields += 1
        elif c == _NEWLINE:
            lines += 1
            if max_lines and lines == max_lines:
                return expected > 1 and expected == fields
            if expected == 0:
                if fields == 0:
                    return False
                expected = fields
            elif expected != fields:
                return False
            fields = 0
    return expected > 1 and lines >= 2


def describe_csv(
    data: bytes,
    settings: Settings,
    looks_text: bool,
    code: str | None = None,
) -> str | None:
    """Describe data as CSV text.

    Returns None when it is not CSV, an empty string when only the
    encoding was asked for, else the MIME type or description.
    """
    if not looks_text:
        return None
    if settings.flags & (Flag.APPLE | Flag.EXTENSION):
        return None
    if not parse_csv(data):
        return None
    mime = settings.mime
    if mime == Flag.MIME_ENCODING:
        return ""
    if mime:
        return "text/csv"
    return f"CSV {code} text" if code else "CSV text"