import pytest

from filesniff.jsoncheck import JsonStats, describe_json, parse_json
from filesniff.settings import Flag, Settings


@pytest.mark.parametrize(
    "text",
    [
        b'{"a": 1}',
        b"[1, 2, 3]",
        b'  {"k": [true, false, null], "s": "x\\u00e9"}  \n',
        b'{"n": -1.5e+10}',
    ],
)
def test_single_document(text):
    kind, stats = parse_json(text)
    assert kind == 1
    assert stats.has_container


@pytest.mark.parametrize(
    "text",
    [
        b"",
        b"   ",
        b'"just a string"',
        b"42",
        b"true",
        b'{"a":}',
        b'{"a": nul}',
        b"[1, 2",
        b'{"a" 1}',
        b'["bad \\q escape"]',
        b'["\\u12"]',
        b"{1: 2}",
    ],
)
def test_not_json(text):
    kind, _ = parse_json(text)
    assert kind == 0
    assert describe_json(text, Settings()) is None


def test_newline_delimited():
    text = b'{"a": 1}\n{"b": 2}\n'
    kind, _ = parse_json(text)
    assert kind == 2
    assert describe_json(text, Settings()) == "New Line Delimited JSON text data"


def test_trailing_garbage_is_rejected():
    kind, _ = parse_json(b'{"a": 1} xyz')
    assert kind == 0


def test_stats_counts_values():
    kind, stats = parse_json(b'[1, "a", true]')
    assert kind == 1
    assert stats.array == stats.arrayn
    assert stats.number == stats.string == stats.constant
    assert stats.object == 0


def test_stats_default_empty():
    stats = JsonStats()
    assert not stats.has_container


def test_moderate_nesting_accepted():
    text = b"[" * 100 + b"]" * 100
    assert parse_json(text)[0] == 1


def test_excessive_nesting_rejected():
    text = b"[" * 300 + b"]" * 300
    assert parse_json(text)[0] == 0


def test_describe_plain():
    assert describe_json(b'{"a": 1}', Settings()) == "JSON text data"


def test_describe_mime():
    settings = Settings(flags=Flag.MIME_TYPE)
    assert describe_json(b"[1]", settings) == "application/json"
    assert describe_json(b"[1]\n[2]", settings) == "application/x-ndjson"


def test_describe_encoding_only():
    settings = Settings(flags=Flag.MIME_ENCODING)
    assert describe_json(b"[1]", settings) == ""


@pytest.mark.parametrize("flag", [Flag.APPLE, Flag.EXTENSION])
def test_describe_skipped_for_apple_and_extension(flag):
    assert describe_json(b'{"a": 1}', Settings(flags=flag)) is None