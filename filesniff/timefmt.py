"""Formatting of dates, times and numbers found in data, and warning output."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TextIO

MAX_CTIME = 0x3AFFF487CF
"""Largest time value that is formatted (the last second of year 9999)."""

INVALID_DATETIME = "*Invalid datetime*"
INVALID_NUMBER = "*Invalid number*"

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# Windows FILETIME: 100 ns ticks since 1601-01-01.
_FILETIME_TICKS = 10_000_000
_FILETIME_EPOCH_OFFSET = 11_644_473_600

_EPOCH = datetime(1970, 1, 1)
_C_SPACE = " \t\n\v\f\r"
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_U64 = (1 << 64) - 1


@dataclass
class WarningReporter:
    """Writes numbered warnings, suppressing them after a maximum count."""

    file: str | None = None
    line: int = 0
    max_warnings: int = 64
    stream: TextIO | None = None
    count: int = field(default=0)

    def warn(self, message: str) -> None:
        """Report one warning unless the maximum has been reached."""
        out = self.stream if self.stream is not None else sys.stderr
        self.count += 1
        if self.count == self.max_warnings:
            out.write(
                f"{self.file}, {self.line}: Maximum number of warnings "
                f"({self.max_warnings}) exceeded.\n"
            )
            out.write(
                f"{self.file}, {self.line}: Additional warnings are suppressed.\n"
            )
        if self.count >= self.max_warnings:
            return
        sys.stdout.flush()
        prefix = f"{self.file}, {self.line}: " if self.file else ""
        out.write(f"{prefix}Warning: {message}\n")


def _to_signed64(value: int) -> int:
    value &= _U64
    return value - (1 << 64) if value >= 1 << 63 else value


def _asctime(dt: datetime) -> str:
    return (
        f"{_WEEKDAYS[dt.weekday()]} {_MONTHS[dt.month - 1]}{dt.day:3d} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} {dt.year}"
    )


def fmt_datetime(value: int, local: bool = False, windows: bool = False) -> str:
    """Format a time stamp in asctime style, UTC unless local is set.

    With windows set, value counts 100 ns ticks since 1601 (FILETIME).
    """
    ticks = _to_signed64(value)
    if windows:
        seconds = abs(ticks) // _FILETIME_TICKS
        if ticks < 0:
            seconds = -seconds
        t = seconds - _FILETIME_EPOCH_OFFSET
    else:
        t = ticks
    if t > MAX_CTIME:
        return INVALID_DATETIME
    try:
        if local:
            dt = datetime.fromtimestamp(t)
        else:
            dt = _EPOCH + timedelta(seconds=t)
    except (OverflowError, OSError, ValueError):
        return INVALID_DATETIME
    return _asctime(dt)


def fmt_date(value: int) -> str:
    """Format a 16-bit MS-DOS date as 'Mon DD YYYY'."""
    value &= 0xFFFF
    day = value & 0x1F
    month = ((value >> 5) & 0xF) - 1
    if not 0 <= month <= 11:
        month = 0
    year = 1980 + (value >> 9)
    return f"{_MONTHS[month]} {day:02d} {year}"


def fmt_time(value: int) -> str:
    """Format a 16-bit MS-DOS time as 'HH:MM:SS'."""
    value &= 0xFFFF
    seconds = (value & 0x1F) * 2
    minutes = (value >> 5) & 0x3F
    hours = value >> 11
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def fmt_num(text: str, base: int = 8) -> str:
    """Convert a number written in base to decimal, as strtoull would."""
    if base != 0 and not 2 <= base <= 36:
        return INVALID_NUMBER
    pos = 0
    n = len(text)
    while pos < n and text[pos] in _C_SPACE:
        pos += 1
    negative = False
    if pos < n and text[pos] in "+-":
        negative = text[pos] == "-"
        pos += 1
    rest = text[pos:].lower()
    if base in (0, 16) and rest.startswith("0x") and len(rest) > 2 and rest[2] in _DIGITS[:16]:
        pos += 2
        base = 16
    elif base == 0:
        base = 8 if rest.startswith("0") else 10
    valid = _DIGITS[:base]
    start = pos
    value = 0
    while pos < n and text[pos].lower() in valid:
        value = value * base + valid.index(text[pos].lower())
        pos += 1
    if pos == start:
        # Nothing converted: the whole string is left over.
        return INVALID_NUMBER if text else "0"
    if pos < n or value > _U64:
        return INVALID_NUMBER
    if negative:
        value = (-value) & _U64
    return str(value)