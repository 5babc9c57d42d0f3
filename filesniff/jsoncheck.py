"""Recognise JSON (RFC 7159) and newline delimited JSON text."""

from __future__ import annotations

from dataclasses import dataclass

from .settings import Flag, Settings

MAX_DEPTH = 500
"""Nesting level beyond which parsing gives up."""

_SPACE = frozenset(b" \n\r\t")
_DIGITS = frozenset(b"0123456789")
_XDIGITS = frozenset(b"0123456789abcdefABCDEF")
_SIMPLE_ESCAPES = frozenset(b'"\\/bfnrt')


@dataclass
class JsonStats:
    """Counts of the values seen while parsing."""

    array: int = 0
    constant: int = 0
    number: int = 0
    object: int = 0
    string: int = 0
    arrayn: int = 0

    @property
    def has_container(self) -> bool:
        """Whether a complete array or object was seen."""
        return bool(self.arrayn or self.object)


class _Parser:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.end = len(data)
        self.stats = JsonStats()

    def skip_space(self, pos: int) -> int:
        while pos < self.end and self.data[pos] in _SPACE:
            pos += 1
        return pos

    def parse_string(self, pos: int) -> tuple[bool, int]:
        data, end = self.data, self.end
        while pos < end:
            c = data[pos]
            pos += 1
            if c == 0:
                return False, pos
            if c == 0x5C:  # backslash
                if pos == end:
                    return False, pos
                e = data[pos]
                pos += 1
                if e in _SIMPLE_ESCAPES:
                    continue
                if e == ord("u"):
                    if end - pos < 4:
                        return False, end
                    for _ in range(4):
                        x = data[pos]
                        pos += 1
                        if x not in _XDIGITS:
                            return False, pos
                    continue
                return False, pos
            if c == ord('"'):
                return True, pos
        return False, pos

    def parse_array(self, pos: int, lvl: int) -> tuple[bool, int]:
        data, end = self.data, self.end
        while pos < end:
            pos = self.skip_space(pos)
            if pos == end:
                return False, pos
            if data[pos] == ord("]"):
                self.stats.arrayn += 1
                return True, pos + 1
            ok, pos = self.parse(pos, lvl + 1)
            if not ok or pos == end:
                return False, pos
            c = data[pos]
            if c == ord(","):
                pos += 1
                continue
            if c == ord("]"):
                self.stats.arrayn += 1
                return True, pos + 1
            return False, pos
        return False, pos

    def parse_object(self, pos: int, lvl: int) -> tuple[bool, int]:
        data, end = self.data, self.end
        while pos < end:
            pos = self.skip_space(pos)
            if pos == end:
                return False, pos
            if data[pos] == ord("}"):
                return True, pos + 1
            c = data[pos]
            pos += 1
            if c != ord('"'):
                return False, pos
            ok, pos = self.parse_string(pos)
            if not ok:
                return False, pos
            pos = self.skip_space(pos)
            if pos == end:
                return False, pos
            c = data[pos]
            pos += 1
            if c != ord(":"):
                return False, pos
            ok, pos = self.parse(pos, lvl + 1)
            if not ok or pos == end:
                return False, pos
            c = data[pos]
            pos += 1
            if c == ord(","):
                continue
            if c == ord("}"):
                return True, pos
            return False, pos - 1
        return False, pos

    def parse_number(self, pos: int) -> tuple[bool, int]:
        data, end = self.data, self.end
        got = False
        if pos == end:
            return False, pos
        if data[pos] == ord("-"):
            pos += 1
        while pos < end and data[pos] in _DIGITS:
            pos += 1
            got = True
        if pos == end:
            return got, pos
        if data[pos] == ord("."):
            pos += 1
        while pos < end and data[pos] in _DIGITS:
            pos += 1
            got = True
        if pos == end:
            return got, pos
        if got and data[pos] in b"eE":
            pos += 1
            got = False
            if pos == end:
                return got, pos
            if data[pos] in b"+-":
                pos += 1
            while pos < end and data[pos] in _DIGITS:
                pos += 1
                got = True
        return got, pos

    def parse_const(self, pos: int, word: bytes) -> tuple[bool, int]:
        # pos is just past the first letter, which already matched.
        new_pos = min(pos + len(word) - 1, self.end)
        for expected in word[1:]:
            if pos >= self.end:
                break
            if self.data[pos] != expected:
                return False, new_pos
            pos += 1
        return True, new_pos

    def parse(self, start: int, lvl: int) -> tuple[int, int]:
        stats = self.stats
        pos = first = self.skip_space(start)
        rv = False
        if pos != self.end:
            if lvl > MAX_DEPTH:
                return 0, start
            c = self.data[pos]
            pos += 1
            if c == ord('"'):
                rv, pos = self.parse_string(pos)
                field = "string"
            elif c == ord("["):
                rv, pos = self.parse_array(pos, lvl + 1)
                field = "array"
            elif c == ord("{"):
                rv, pos = self.parse_object(pos, lvl + 1)
                field = "object"
            elif c == ord("t"):
                rv, pos = self.parse_const(pos, b"true")
                field = "constant"
            elif c == ord("f"):
                rv, pos = self.parse_const(pos, b"false")
                field = "constant"
            elif c == ord("n"):
                rv, pos = self.parse_const(pos, b"null")
                field = "constant"
            else:
                rv, pos = self.parse_number(pos - 1)
                field = "number"
            if rv:
                setattr(stats, field, getattr(stats, field) + 1)
            pos = self.skip_space(pos)
        if lvl == 0:
            if not rv:
                return 0, pos
            if pos == self.end:
                return (1 if stats.has_container else 0), pos
            if self.data[first] == self.data[pos]:
                ok, pos = self.parse(pos, 1)
                if ok:
                    return (2 if stats.has_container else 0), pos
            return 0, pos
        return int(rv), pos


def parse_json(data: bytes) -> tuple[int, JsonStats]:
    """Parse data as JSON.

    Returns (kind, stats): kind is 0 when the data is not JSON holding an
    array or object, 1 for a single JSON text and 2 for newline delimited
    JSON.
    """
    parser = _Parser(bytes(data))
    kind, _ = parser.parse(0, 0)
    return kind, parser.stats


def describe_json(data: bytes, settings: Settings) -> str | None:
    """Describe data as JSON.

    Returns None when it is not JSON, an empty string when only the
    encoding was asked for, else the MIME type or description.
    """
    if settings.flags & (Flag.APPLE | Flag.EXTENSION):
        return None
    kind, _ = parse_json(data)
    if kind == 0:
        return None
    mime = settings.mime
    if mime == Flag.MIME_ENCODING:
        return ""
    if mime:
        return "application/json" if kind == 1 else "application/x-ndjson"
    return "JSON text data" if kind == 1 else "New Line Delimited JSON text data"