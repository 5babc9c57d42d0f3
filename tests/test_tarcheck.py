import io
import tarfile

import pytest

from filesniff.settings import Flag, Settings
from filesniff.tarcheck import TarKind, describe_tar, from_oct, tar_kind


def make_archive(fmt, name="hello.txt", payload=b"hello\n"):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=fmt) as tar:
        info = tarfile.TarInfo(name)
        info.size = len(payload)
        tar.addfile(info, io.BytesIO(payload))
    return buf.getvalue()


def with_fixed_checksum(header):
    header = bytearray(header)
    header[148:156] = b" " * 8
    header[148:156] = b"%06o\0 " % sum(header)
    return bytes(header)


def test_ustar_is_posix():
    data = make_archive(tarfile.USTAR_FORMAT)
    assert tar_kind(data) is TarKind.POSIX
    assert describe_tar(data, Settings()) == "POSIX tar archive"


def test_gnu_format():
    data = make_archive(tarfile.GNU_FORMAT)
    assert tar_kind(data) is TarKind.GNU
    assert describe_tar(data, Settings()) == "POSIX tar archive (GNU)"


def test_old_format_without_magic():
    header = bytearray(make_archive(tarfile.USTAR_FORMAT)[:512])
    header[257:265] = b"\0" * 8
    data = with_fixed_checksum(header)
    assert tar_kind(data) is TarKind.OLD
    assert describe_tar(data, Settings()) == "tar archive"


def test_corrupted_header_rejected():
    header = bytearray(make_archive(tarfile.USTAR_FORMAT)[:512])
    header[0] ^= 0x01
    assert tar_kind(bytes(header)) is TarKind.NONE


def test_short_data_rejected():
    assert tar_kind(b"\0" * 100) is TarKind.NONE


def test_gpkg_package_left_to_other_rules():
    data = make_archive(tarfile.USTAR_FORMAT, name="pkg-1.0/gpkg-1")
    assert tar_kind(data) is TarKind.NONE


def test_from_oct_reads_padded_field():
    assert from_oct(b"  0755 \0") == 0o755
    assert from_oct(b"0000644\0") == 0o644


@pytest.mark.parametrize("field", [b"", b"        ", b"12x4\0\0\0\0", b"0789"])
def test_from_oct_invalid(field):
    assert from_oct(field) == -1


def test_describe_mime():
    data = make_archive(tarfile.GNU_FORMAT)
    assert describe_tar(data, Settings(flags=Flag.MIME_TYPE)) == "application/x-tar"
    assert describe_tar(data, Settings(flags=Flag.MIME_ENCODING)) == ""


def test_describe_not_tar():
    assert describe_tar(b"x" * 1024, Settings()) is None


@pytest.mark.parametrize("flag", [Flag.APPLE, Flag.EXTENSION])
def test_describe_skipped(flag):
    data = make_archive(tarfile.USTAR_FORMAT)
    assert describe_tar(data, Settings(flags=flag)) is None