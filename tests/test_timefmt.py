import datetime
import io
import time

import pytest

from filesniff.timefmt import (
    INVALID_DATETIME,
    INVALID_NUMBER,
    MAX_CTIME,
    WarningReporter,
    fmt_date,
    fmt_datetime,
    fmt_num,
    fmt_time,
)


def test_datetime_epoch():
    assert fmt_datetime(0) == "Thu Jan  1 00:00:00 1970"


def test_datetime_matches_asctime():
    for t in (1, 86_400 * 365, 1_000_000_000, 1_700_000_000):
        assert fmt_datetime(t) == time.asctime(time.gmtime(t))


def test_datetime_local_matches_asctime():
    t = 1_000_000_000
    assert fmt_datetime(t, local=True) == time.asctime(time.localtime(t))


def test_datetime_too_large_is_invalid():
    assert fmt_datetime(MAX_CTIME + 1) == INVALID_DATETIME


def test_datetime_windows_epoch_equals_unix_epoch():
    assert fmt_datetime(116444736000000000, windows=True) == fmt_datetime(0)


def test_datetime_windows_seconds_scale():
    base = 116444736000000000
    assert fmt_datetime(base + 10_000_000 * 3600, windows=True) == fmt_datetime(3600)


def test_date_pinned():
    assert fmt_date(0x21) == "Jan 01 1980"


@pytest.mark.parametrize("year,month,day", [(1980, 1, 1), (1999, 12, 31), (2020, 2, 29)])
def test_date_fields(year, month, day):
    value = ((year - 1980) << 9) | (month << 5) | day
    parts = fmt_date(value).split()
    assert int(parts[1]) == day
    assert int(parts[2]) == year
    assert parts[0] == datetime.date(year, month, day).strftime("%b")


def test_date_bad_month_uses_january():
    assert fmt_date(0x1 | (13 << 5)).split()[0] == fmt_date(0x21).split()[0]
    assert fmt_date(0x1).split()[0] == fmt_date(0x21).split()[0]


@pytest.mark.parametrize("h,m,s", [(0, 0, 0), (12, 34, 56), (23, 59, 58)])
def test_time_round_trip(h, m, s):
    value = (h << 11) | (m << 5) | (s // 2)
    assert fmt_time(value) == datetime.time(h, m, s).isoformat()


@pytest.mark.parametrize("text", ["0", "17", "777", "1234567"])
def test_num_octal(text):
    assert fmt_num(text, 8) == str(int(text, 8))


def test_num_hex():
    assert fmt_num("ff", 16) == str(0xFF)
    assert fmt_num("0x1f", 16) == str(0x1F)


def test_num_invalid_digit():
    assert fmt_num("19", 8) == INVALID_NUMBER
    assert fmt_num("12 ", 8) == INVALID_NUMBER
    assert fmt_num("   ", 8) == INVALID_NUMBER


def test_num_overflow():
    max_oct = "1" + "7" * 21
    assert fmt_num(max_oct, 8) == str(2**64 - 1)
    assert fmt_num("2" + "0" * 21, 8) == INVALID_NUMBER


def test_num_leading_space_accepted():
    assert fmt_num("  10", 8) == str(int("10", 8))


def test_warnings_printed_with_prefix():
    out = io.StringIO()
    reporter = WarningReporter(file="magic", line=3, stream=out)
    reporter.warn("bad")
    assert out.getvalue() == "magic, 3: Warning: bad\n"


def test_warnings_without_file():
    out = io.StringIO()
    WarningReporter(stream=out).warn("x")
    assert out.getvalue() == "Warning: x\n"


def test_warnings_suppressed_after_max():
    out = io.StringIO()
    reporter = WarningReporter(file="f", line=1, max_warnings=2, stream=out)
    for message in ("a", "b", "c", "d"):
        reporter.warn(message)
    text = out.getvalue()
    assert text.count("Warning:") == 1
    assert "Maximum number of warnings (2) exceeded." in text
    assert text.count("Additional warnings are suppressed.") == 1
    assert reporter.count == 4