"""Recognise tar archives by their header checksum."""

from __future__ import annotations

import enum

from .settings import Flag, Settings

RECORD_SIZE = 512
_NAME = slice(0, 100)
_CHKSUM = slice(148, 156)
_MAGIC = slice(257, 265)

TMAGIC = b"ustar"
GNUTMAGIC = b"ustar  "
_GPKG_MATCH = b"/gpkg-1"
_SPACE = frozenset(b" \t\n\v\f\r")


class TarKind(enum.IntEnum):
    """Kind of tar header found."""

    NONE = 0
    OLD = 1
    POSIX = 2
    GNU = 3

    @property
    def description(self) -> str:
        """Human readable name of the archive kind."""
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    TarKind.NONE: "",
    TarKind.OLD: "tar archive",
    TarKind.POSIX: "POSIX tar archive",
    TarKind.GNU: "POSIX tar archive (GNU)",
}


def from_oct(field: bytes) -> int:
    """Decode an octal header field; -1 if blank or not octal."""
    n = len(field)
    if n == 0:
        return -1
    pos = 0
    while pos < n and field[pos] in _SPACE:
        pos += 1
    if pos == n:
        return -1
    value = 0
    while pos < n and 0x30 <= field[pos] <= 0x37:
        value = (value << 3) | (field[pos] - 0x30)
        pos += 1
    if pos < n and field[pos] != 0 and field[pos] not in _SPACE:
        return -1
    return value


def _cstr(raw: bytes, size: int) -> bytes:
    raw = raw[:size]
    nul = raw.find(b"\0")
    return raw if nul < 0 else raw[:nul]


def _magic_matches(field: bytes, literal: bytes) -> bool:
    size = len(field)
    return _cstr(field, size) == _cstr(literal, size)


def tar_kind(data: bytes) -> TarKind:
    """Classify the first record of data as a tar header."""
    if len(data) < RECORD_SIZE:
        return TarKind.NONE
    header = bytes(data[:RECORD_SIZE])

    name = header[_NAME]
    nul = name.find(b"\0")
    if nul >= len(_GPKG_MATCH) + 1 and name[:nul].endswith(_GPKG_MATCH):
        return TarKind.NONE

    recorded = from_oct(header[_CHKSUM])
    chksum = header[_CHKSUM]
    total = sum(header) - sum(chksum) + ord(" ") * len(chksum)
    if total != recorded:
        return TarKind.NONE

    magic = header[_MAGIC]
    if _magic_matches(magic, GNUTMAGIC):
        return TarKind.GNU
    if _magic_matches(magic, TMAGIC):
        return TarKind.POSIX
    return TarKind.OLD


def describe_tar(data: bytes, settings: Settings) -> str | None:
    """Describe data as a tar archive.

    Returns None when it is not one, an empty string when only the
    encoding was asked for, else the MIME type or description.
    """
    if settings.flags & (Flag.APPLE | Flag.EXTENSION):
        return None
    kind = tar_kind(data)
    if kind == TarKind.NONE:
        return None
    mime = settings.mime
    if mime == Flag.MIME_ENCODING:
        return ""
    if mime:
        return "application/x-tar"
    return kind.description