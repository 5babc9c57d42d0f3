"""Recognise SIMH magnetic tape image files."""

from __future__ import annotations

from .settings import Flag, Settings

SIMH_TAPEMARKS = 10
"""Default number of tape marks examined; 0 means all."""

_END_OF_MEDIUM = 0xFFFFFFFF
_WORD = 4


class _BadLength(Exception):
    """A record length word uses reserved bits."""


def _read_length(data: bytes, pos: int) -> int:
    n = int.from_bytes(data[pos : pos + _WORD], "little")
    if n == _END_OF_MEDIUM:
        return n
    if (n & 0x00FFFFFF) != (n & 0x0FFFFFFF):
        raise _BadLength
    n &= 0x00FFFFFF
    if n & 1:
        n += 1
    return n


def parse_simh(data: bytes, max_tapemarks: int = SIMH_TAPEMARKS) -> bool:
    """Whether data looks like a SIMH tape image with at least one record."""
    end = len(data)
    pos = 0
    tapemarks = 0
    records = 0
    try:
        while end - pos >= _WORD:
            nbytes = _read_length(data, pos)
            pos += _WORD
            if (tapemarks or records) and nbytes == _END_OF_MEDIUM:
                break
            if nbytes == 0:
                tapemarks += 1
                if max_tapemarks and tapemarks == max_tapemarks:
                    break
                continue
            pos += nbytes
            if end - pos < _WORD:
                break
            trailer = _read_length(data, pos)
            pos += _WORD
            if nbytes != trailer:
                return False
            records += 1
    except _BadLength:
        return False
    if tapemarks * _WORD == pos:
        return False
    return records > 0


def describe_simh(data: bytes, settings: Settings) -> str | None:
    """Describe data as a SIMH tape image.

    Returns None when it is not one, an empty string when only the
    encoding was asked for, else the MIME type or description.
    """
    if settings.flags & (Flag.APPLE | Flag.EXTENSION):
        return None
    if not parse_simh(data):
        return None
    mime = settings.mime
    if mime == Flag.MIME_ENCODING:
        return ""
    if mime:
        return "application/SIMH-tape-data"
    return "SIMH tape data"