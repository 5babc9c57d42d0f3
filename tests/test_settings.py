import os

import pytest

from filesniff.settings import (
    DEFAULT_MAGIC,
    Flag,
    Param,
    Settings,
    default_magic_path,
    get_path,
)


def test_set_and_get_round_trip():
    s = Settings()
    for param in Param:
        s.set_param(param, 1234)
        assert s.get_param(param) == 1234


def test_short_params_truncate_to_16_bits():
    s = Settings()
    s.set_param(Param.INDIR_MAX, 0x10000 + 7)
    assert s.get_param(Param.INDIR_MAX) == 7


def test_wide_params_do_not_truncate():
    s = Settings()
    big = 0x10000 + 7
    s.set_param(Param.BYTES_MAX, big)
    assert s.get_param(Param.BYTES_MAX) == big
    s.set_param(Param.ELF_SHSIZE_MAX, big)
    assert s.elf_shsize_max == big


def test_param_by_integer():
    s = Settings()
    s.set_param(int(Param.NAME_MAX), 12)
    assert s.name_max == 12


def test_unknown_param_raises():
    s = Settings()
    with pytest.raises(ValueError):
        s.set_param(99, 1)
    with pytest.raises(ValueError):
        s.get_param(99)


def test_negative_value_raises():
    with pytest.raises(ValueError):
        Settings().set_param(Param.REGEX_MAX, -1)


def test_set_flags_and_mime():
    s = Settings()
    s.set_flags(Flag.MIME_TYPE | Flag.APPLE)
    assert s.flags & Flag.APPLE
    assert s.mime == Flag.MIME_TYPE
    s.set_flags(int(Flag.MIME))
    assert s.mime == Flag.MIME


def test_default_path_without_home():
    assert default_magic_path(None) == DEFAULT_MAGIC


def test_default_path_nothing_present(tmp_path):
    assert default_magic_path(str(tmp_path)) == DEFAULT_MAGIC


def test_default_path_user_mgc(tmp_path):
    (tmp_path / ".magic.mgc").write_bytes(b"")
    expected = f"{tmp_path}/.magic.mgc{os.pathsep}{DEFAULT_MAGIC}"
    assert default_magic_path(str(tmp_path)) == expected


def test_default_path_user_file(tmp_path):
    (tmp_path / ".magic").write_text("")
    expected = f"{tmp_path}/.magic{os.pathsep}{DEFAULT_MAGIC}"
    assert default_magic_path(str(tmp_path)) == expected


def test_default_path_user_dir(tmp_path):
    (tmp_path / ".magic").mkdir()
    assert default_magic_path(str(tmp_path)) == DEFAULT_MAGIC
    (tmp_path / ".magic" / "magic.mgc").write_bytes(b"")
    expected = f"{tmp_path}/.magic/magic.mgc{os.pathsep}{DEFAULT_MAGIC}"
    assert default_magic_path(str(tmp_path)) == expected


def test_get_path_explicit(monkeypatch):
    monkeypatch.setenv("MAGIC", "/from/env")
    assert get_path("/explicit", True) == "/explicit"


def test_get_path_env(monkeypatch):
    monkeypatch.setenv("MAGIC", "/from/env")
    assert get_path(None, False) == "/from/env"


def test_get_path_defaults(monkeypatch, tmp_path):
    monkeypatch.delenv("MAGIC", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert get_path(None, False) == DEFAULT_MAGIC
    (tmp_path / ".magic.mgc").write_bytes(b"")
    assert get_path(None, True).startswith(f"{tmp_path}/.magic.mgc")