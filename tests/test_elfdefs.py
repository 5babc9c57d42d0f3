import io
import struct

import pytest

from filesniff.elfdefs import (
    ELFCLASS32,
    ELFCLASS64,
    PT_NOTE,
    SHT_NOTE,
    AuxvEntry,
    CapEntry,
    DynamicEntry,
    ElfImage,
    ElfLayout,
    NoteHeader,
    ProgramHeader,
    SectionHeader,
)


def test_header_sizes_match_elf_spec():
    l32 = ElfLayout(ELFCLASS32)
    l64 = ElfLayout(ELFCLASS64)
    assert (l32.phdr_size, l64.phdr_size) == (32, 56)
    assert (l32.shdr_size, l64.shdr_size) == (40, 64)
    assert l32.nhdr_size == l64.nhdr_size == 12


def test_unknown_class_rejected():
    with pytest.raises(ValueError):
        ElfLayout(0)


@pytest.mark.parametrize("big", [False, True])
def test_program_header_32(big):
    order = ">" if big else "<"
    raw = struct.pack(order + "8I", PT_NOTE, 0x100, 0x2000, 0x3000, 0x40, 0x50, 5, 8)
    ph = ElfLayout(ELFCLASS32, big).program_header(raw)
    assert ph == ProgramHeader(PT_NOTE, 5, 0x100, 0x2000, 0x3000, 0x40, 0x50, 8)


@pytest.mark.parametrize("big", [False, True])
def test_program_header_64(big):
    order = ">" if big else "<"
    raw = struct.pack(order + "2I6Q", PT_NOTE, 7, 0x100, 0x2000, 0x3000, 0x40, 0x50, 16)
    ph = ElfLayout(ELFCLASS64, big).program_header(raw)
    assert ph == ProgramHeader(PT_NOTE, 7, 0x100, 0x2000, 0x3000, 0x40, 0x50, 16)


def test_program_header_zero_align_and_vaddr_read_as_four():
    raw = struct.pack("<8I", PT_NOTE, 0, 0, 0, 0, 0, 0, 0)
    ph = ElfLayout(ELFCLASS32).program_header(raw)
    assert ph.align == 4
    assert ph.vaddr == 4


def test_section_header_64():
    values = (1, SHT_NOTE, 2, 3, 0x400, 0x20, 4, 5, 8, 0)
    raw = struct.pack(">2I4Q2I2Q", *values)
    assert ElfLayout(ELFCLASS64, True).section_header(raw) == SectionHeader(*values)


def test_section_header_32():
    values = tuple(range(10))
    raw = struct.pack("<10I", *values)
    assert ElfLayout(ELFCLASS32).section_header(raw) == SectionHeader(*values)


def test_note_header_with_trailing_data():
    raw = struct.pack("<3I", 4, 16, 3) + b"GNU\0"
    assert ElfLayout(ELFCLASS64).note_header(raw) == NoteHeader(4, 16, 3)


def test_small_entries():
    l32 = ElfLayout(ELFCLASS32)
    l64 = ElfLayout(ELFCLASS64, True)
    raw32 = struct.pack("<2I", 1, 2)
    raw64 = struct.pack(">2Q", 1 << 40, 2)
    assert l32.dynamic_entry(raw32) == DynamicEntry(1, 2)
    assert l64.dynamic_entry(raw64) == DynamicEntry(1 << 40, 2)
    assert l32.capability(raw32) == CapEntry(1, 2)
    assert l64.auxv_entry(raw64) == AuxvEntry(1 << 40, 2)


def test_short_data_raises():
    with pytest.raises(ValueError):
        ElfLayout(ELFCLASS64).program_header(b"\0" * 55)
    with pytest.raises(ValueError):
        ElfLayout(ELFCLASS32).note_header(b"\0" * 11)


def test_u32_byte_order():
    data = b"\x00\x01\x02\x03\x04"
    assert ElfLayout(ELFCLASS32).u32(data, 1) == int.from_bytes(data[1:5], "little")
    assert ElfLayout(ELFCLASS32, True).u32(data, 0) == int.from_bytes(data[:4], "big")
    with pytest.raises(ValueError):
        ElfLayout(ELFCLASS32).u32(data, 2)


def test_image_from_bytes():
    image = ElfImage(b"abcdefgh")
    assert image.read(2, 3) == b"cde"
    assert image.read(6, 10) == b"gh"
    assert image.read(20, 4) == b""
    assert image.size == 8


def test_image_from_file_keeps_position():
    handle = io.BytesIO(b"0123456789")
    handle.seek(4)
    image = ElfImage(handle)
    assert image.read(7, 2) == b"78"
    assert handle.tell() == 4
    assert image.size == 10
    assert handle.tell() == 4


def test_image_negative_offset_raises():
    with pytest.raises(OSError):
        ElfImage(b"abc").read(-1, 2)