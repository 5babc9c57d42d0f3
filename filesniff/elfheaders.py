"""Walking ELF section and program headers to describe linking, notes and capabilities."""

from __future__ import annotations

import errno
import struct
from typing import BinaryIO

from .elfcore import read_note
from .elfdefs import (
    AV_386_AHF,
    AV_386_AMD_3DNow,
    AV_386_AMD_3DNowx,
    AV_386_AMD_LZCNT,
    AV_386_AMD_MMX,
    AV_386_AMD_SSE4A,
    AV_386_AMD_SYSC,
    AV_386_CMOV,
    AV_386_CX8,
    AV_386_CX16,
    AV_386_FPU,
    AV_386_FXSR,
    AV_386_MMX,
    AV_386_MON,
    AV_386_PAUSE,
    AV_386_POPCNT,
    AV_386_SEP,
    AV_386_SSE,
    AV_386_SSE2,
    AV_386_SSE3,
    AV_386_SSE4_1,
    AV_386_SSE4_2,
    AV_386_SSSE3,
    AV_386_TSC,
    AV_386_TSCP,
    AV_SPARC_ASI_BLK_INIT,
    AV_SPARC_DIV32,
    AV_SPARC_FJFMAU,
    AV_SPARC_FMAF,
    AV_SPARC_FSMULD,
    AV_SPARC_IMA,
    AV_SPARC_MUL32,
    AV_SPARC_POPC,
    AV_SPARC_V8PLUS,
    AV_SPARC_VIS,
    AV_SPARC_VIS2,
    CA_SUNW_HW_1,
    CA_SUNW_NULL,
    CA_SUNW_SF_1,
    DF_1_PIE,
    DT_FLAGS_1,
    DT_NEEDED,
    EI_CLASS,
    EI_DATA,
    ELFCLASS32,
    ELFCLASS64,
    ELFDATA2MSB,
    ELFMAG0,
    ELFMAG1,
    ELFMAG2,
    ELFMAG3,
    EM_386,
    EM_AMD64,
    EM_IA_64,
    EM_SPARC,
    EM_SPARC32PLUS,
    EM_SPARCV9,
    ET_CORE,
    ET_DYN,
    ET_EXEC,
    ET_REL,
    OLFMAG1,
    PT_DYNAMIC,
    PT_INTERP,
    PT_NOTE,
    SF1_SUNW_FPKNWN,
    SF1_SUNW_FPUSED,
    SF1_SUNW_MASK,
    SHT_NOTE,
    SHT_SUNW_cap,
    SHT_SYMTAB,
    ElfImage,
    ElfLayout,
)
from .elfnotes import FLAGS_IS_CORE, NoteState
from .settings import Flag, Settings

NBUFSIZE = 2024
"""Most bytes read from one note, interpreter or dynamic segment."""

_SECTION_NAME_MAX = 49
_EHDR_FORMATS = {ELFCLASS32: "16sHHIIIIIHHHHHH", ELFCLASS64: "16sHHIQQQIHHHHHH"}

_CAP_MACHINES = frozenset({EM_SPARC, EM_SPARCV9, EM_IA_64, EM_386, EM_AMD64})

_CAP_DESC_SPARC = (
    (AV_SPARC_MUL32, "MUL32"),
    (AV_SPARC_DIV32, "DIV32"),
    (AV_SPARC_FSMULD, "FSMULD"),
    (AV_SPARC_V8PLUS, "V8PLUS"),
    (AV_SPARC_POPC, "POPC"),
    (AV_SPARC_VIS, "VIS"),
    (AV_SPARC_VIS2, "VIS2"),
    (AV_SPARC_ASI_BLK_INIT, "ASI_BLK_INIT"),
    (AV_SPARC_FMAF, "FMAF"),
    (AV_SPARC_FJFMAU, "FJFMAU"),
    (AV_SPARC_IMA, "IMA"),
)

_CAP_DESC_386 = (
    (AV_386_FPU, "FPU"),
    (AV_386_TSC, "TSC"),
    (AV_386_CX8, "CX8"),
    (AV_386_SEP, "SEP"),
    (AV_386_AMD_SYSC, "AMD_SYSC"),
    (AV_386_CMOV, "CMOV"),
    (AV_386_MMX, "MMX"),
    (AV_386_AMD_MMX, "AMD_MMX"),
    (AV_386_AMD_3DNow, "AMD_3DNow"),
    (AV_386_AMD_3DNowx, "AMD_3DNowx"),
    (AV_386_FXSR, "FXSR"),
    (AV_386_SSE, "SSE"),
    (AV_386_SSE2, "SSE2"),
    (AV_386_PAUSE, "PAUSE"),
    (AV_386_SSE3, "SSE3"),
    (AV_386_MON, "MON"),
    (AV_386_CX16, "CX16"),
    (AV_386_AHF, "AHF"),
    (AV_386_TSCP, "TSCP"),
    (AV_386_AMD_SSE4A, "AMD_SSE4A"),
    (AV_386_POPCNT, "POPCNT"),
    (AV_386_AMD_LZCNT, "AMD_LZCNT"),
    (AV_386_SSSE3, "SSSE3"),
    (AV_386_SSE4_1, "SSE4.1"),
    (AV_386_SSE4_2, "SSE4.2"),
)

_CAP_TABLES = {
    EM_SPARC: _CAP_DESC_SPARC,
    EM_SPARC32PLUS: _CAP_DESC_SPARC,
    EM_SPARCV9: _CAP_DESC_SPARC,
    EM_386: _CAP_DESC_386,
    EM_IA_64: _CAP_DESC_386,
    EM_AMD64: _CAP_DESC_386,
}


def _hex(value: int) -> str:
    """Hexadecimal with a 0x prefix, except for zero, as printf's %#x does."""
    return f"{value:#x}" if value else "0"


def _pread(image: ElfImage, offset: int, length: int) -> bytes | None:
    """Bytes at offset, or None when the read fails outright."""
    try:
        return image.read(offset, length)
    except OSError:
        return None


def _printable(raw: bytes) -> str:
    """Text up to the first NUL with unprintable bytes as octal escapes."""
    out = []
    for c in raw:
        if c == 0:
            break
        out.append(chr(c) if 0x20 <= c < 0x7F else f"\\{c:03o}")
    return "".join(out)


def _walk_notes(
    state: NoteState,
    buf: bytes,
    layout: ElfLayout,
    align: int,
    image: ElfImage,
    ph_off: int,
    ph_num: int,
    fsize: int | None,
) -> None:
    size = len(buf)
    offset = 0
    while offset < size:
        offset = read_note(state, buf, offset, size, layout, align, image, ph_off, ph_num, fsize)
        if offset == 0:
            break


def _read_capabilities(
    state: NoteState, layout: ElfLayout, image: ElfImage, start: int, total: int, nbadcap: int
) -> tuple[int, int, int]:
    """Gather capability bits from a SUNW_cap section; returns (hw1, sf1, nbadcap)."""
    hw1 = sf1 = 0
    capsize = layout.cap_size
    pos = start
    consumed = 0
    while True:
        consumed += capsize
        if consumed > total:
            break
        chunk = _pread(image, pos, capsize)
        if chunk is None or len(chunk) != capsize:
            raise OSError(errno.EIO, f"cannot read capability at {pos}")
        pos += capsize
        if chunk[0] == ord("A"):
            break
        cap = layout.capability(chunk)
        if cap.tag == CA_SUNW_NULL:
            continue
        if cap.tag == CA_SUNW_HW_1:
            hw1 |= cap.val
        elif cap.tag == CA_SUNW_SF_1:
            sf1 |= cap.val
        else:
            state.emit(f", with unknown capability {_hex(cap.tag)} = {_hex(cap.val)}")
            bad = nbadcap
            nbadcap += 1
            if bad > 2:
                break
    return hw1, sf1, nbadcap


def describe_sections(
    state: NoteState,
    layout: ElfLayout,
    image: ElfImage,
    off: int,
    num: int,
    size: int,
    fsize: int | None,
    mach: int,
    strtab: int,
) -> None:
    """Describe the section headers: notes, debug info, stripping, capabilities.

    Raises ValueError for an oversized note section and OSError when
    capability data cannot be read.
    """
    if state.mime:
        return
    if num == 0:
        state.emit(", no section header")
        return
    if size != layout.shdr_size:
        state.emit(", corrupted section header size")
        return

    offs = off + size * strtab
    data = _pread(image, offs, size)
    if data is None or len(data) < size:
        state.emit(f", missing section headers at {offs}")
        return
    sh = layout.section_header(data)
    name_off = sh.offset
    if fsize is not None and fsize < name_off:
        state.emit(f", too large section header offset {name_off}")
        return

    stripped = True
    has_debug_info = False
    nbadcap = 0
    cap_hw1 = 0
    cap_sf1 = 0

    for _ in range(num):
        # The name is looked up through the header read last.
        offs = name_off + sh.name
        raw_name = _pread(image, offs, _SECTION_NAME_MAX)
        if raw_name is None:
            state.emit(f", can't read name of elf section at {offs}")
            return
        nul = raw_name.find(b"\0")
        if (raw_name if nul < 0 else raw_name[:nul]) == b".debug_info":
            has_debug_info = True
            stripped = False

        data = _pread(image, off, size)
        if data is None or len(data) < size:
            state.emit(f", can't read elf section at {off}")
            return
        sh = layout.section_header(data)
        off += size

        if sh.type == SHT_SYMTAB:
            stripped = False
        elif fsize is not None and sh.offset > fsize:
            continue

        if sh.type == SHT_NOTE:
            if fsize is not None and sh.size + sh.offset > fsize:
                state.emit(
                    f", note offset/size {_hex(sh.offset)}+{_hex(sh.size)} "
                    f"exceeds file size {_hex(fsize)}"
                )
                return
            limit = state.settings.elf_shsize_max
            if sh.size > limit:
                raise ValueError(f"Note section size too big ({sh.size} > {limit})")
            nbuf = _pread(image, sh.offset, sh.size)
            if nbuf is None or len(nbuf) < sh.size:
                state.emit(f", can't read elf note at {sh.offset}")
                return
            _walk_notes(state, nbuf, layout, 4, image, 0, 0, 0)
        elif sh.type == SHT_SUNW_cap:
            if mach not in _CAP_MACHINES or nbadcap > 5:
                continue
            hw1, sf1, nbadcap = _read_capabilities(
                state, layout, image, sh.offset, sh.size, nbadcap
            )
            cap_hw1 |= hw1
            cap_sf1 |= sf1

    if has_debug_info:
        state.emit(", with debug_info")
    state.emit(f", {'' if stripped else 'not '}stripped")

    if cap_hw1:
        table = _CAP_TABLES.get(mach)
        state.emit(", uses")
        if table is not None:
            for mask, name in table:
                if cap_hw1 & mask:
                    state.emit(f" {name}")
                    cap_hw1 &= ~mask
            if cap_hw1:
                state.emit(f" unknown hardware capability {_hex(cap_hw1)}")
        else:
            state.emit(f" hardware capability {_hex(cap_hw1)}")
    if cap_sf1:
        if cap_sf1 & SF1_SUNW_FPUSED:
            state.emit(
                ", uses frame pointer"
                if cap_sf1 & SF1_SUNW_FPKNWN
                else ", not known to use frame pointer"
            )
        cap_sf1 &= ~SF1_SUNW_MASK
        if cap_sf1:
            state.emit(f", with unknown software capability {_hex(cap_sf1)}")


def _scan_dynamic(state: NoteState, layout: ElfLayout, buf: bytes) -> tuple[bool, int]:
    """Return (pie, needed libraries) from a dynamic segment."""
    pie = False
    need = 0
    entsize = layout.dyn_size
    offset = 0
    while offset + entsize <= len(buf):
        entry = layout.dynamic_entry(buf[offset : offset + entsize])
        offset += entsize
        if entry.tag == DT_FLAGS_1:
            if entry.val & DF_1_PIE:
                pie = True
                state.mode |= 0o111
            else:
                state.mode &= ~0o111
        elif entry.tag == DT_NEEDED:
            need += 1
    return pie, need


def describe_program_headers(
    state: NoteState,
    layout: ElfLayout,
    image: ElfImage,
    off: int,
    num: int,
    size: int,
    fsize: int | None,
    sh_num: int,
) -> None:
    """Describe how an executable is linked, its interpreter and its notes."""
    if num == 0:
        state.emit(", no program header")
        return
    if size != layout.phdr_size:
        state.emit(", corrupted program header size")
        return

    mime = state.mime
    interp = b""
    need = 0
    pie = False
    dynamic = False

    for _ in range(num):
        data = _pread(image, off, size)
        if data is None or len(data) < size:
            state.emit(f", can't read elf program headers at {off}")
            return
        ph = layout.program_header(data)
        off += size
        align = 4

        if ph.type == PT_NOTE:
            if sh_num:
                # Notes were read through the section headers.
                continue
            align = ph.align
            if align & 0x80000000 or align < 4:
                state.emit(f", invalid note alignment {_hex(align)}")
                align = 4
        if ph.type not in (PT_DYNAMIC, PT_NOTE, PT_INTERP):
            if fsize is not None and ph.offset > fsize:
                continue
            if mime:
                continue
            continue

        nbuf = _pread(image, ph.offset, min(ph.filesz, NBUFSIZE))
        if nbuf is None:
            state.emit(f", can't read section at {ph.offset}")
            return

        if ph.type == PT_DYNAMIC:
            dynamic = True
            # DF_1 flags decide whether this is position independent.
            state.mode &= ~0o111
            seg_pie, seg_need = _scan_dynamic(state, layout, nbuf)
            pie = pie or seg_pie
            need += seg_need
        elif ph.type == PT_INTERP:
            need += 1
            if mime:
                continue
            if nbuf and nbuf[0]:
                raw = nbuf[:-1]
                nul = raw.find(b"\0")
                interp = raw if nul < 0 else raw[:nul]
            else:
                interp = b"*empty*"
        else:
            if mime:
                return
            _walk_notes(state, nbuf, layout, align, image, 0, 0, 0)

    if mime:
        return
    if dynamic:
        kind = "static-pie" if pie and need == 0 else "dynamically"
    else:
        kind = "statically"
    state.emit(f", {kind} linked")
    if interp:
        state.emit(f", interpreter {_printable(interp[: NBUFSIZE - 1])}")


def describe_core(
    state: NoteState,
    layout: ElfLayout,
    image: ElfImage,
    off: int,
    num: int,
    size: int,
    fsize: int | None,
) -> None:
    """Describe a core file from the notes in its program headers."""
    if state.mime:
        return
    if num == 0:
        state.emit(", no program header")
        return
    if size != layout.phdr_size:
        state.emit(", corrupted program header size")
        return

    ph_off, ph_num = off, num
    for _ in range(num):
        data = _pread(image, off, size)
        if data is None or len(data) < size:
            state.emit(f", can't read elf program headers at {off}")
            return
        ph = layout.program_header(data)
        off += size
        if fsize is not None and ph.offset > fsize:
            continue
        if ph.type != PT_NOTE:
            continue
        nbuf = _pread(image, ph.offset, min(ph.filesz, NBUFSIZE))
        if nbuf is None:
            state.emit(f" can't read note section at {ph.offset}")
            return
        _walk_notes(state, nbuf, layout, 4, image, ph_off, ph_num, fsize)


def _too_many(state: NoteState, what: str, count: int) -> None:
    state.emit(f", too many {what} ({count})")


def try_elf(
    data: bytes | bytearray | memoryview | BinaryIO, settings: Settings | None = None
) -> str | None:
    """Describe an ELF file given as bytes or a seekable binary file.

    Returns None when the data is not ELF, else the text that follows the
    basic type (empty when MIME output is asked for).  Raises ValueError
    when a limit stops the examination.
    """
    settings = settings if settings is not None else Settings()
    if settings.flags & (Flag.APPLE | Flag.EXTENSION):
        return None
    image = ElfImage(data)
    header = image.read(0, 64)
    if (
        len(header) < 4
        or header[0] != ELFMAG0
        or header[1] not in (ELFMAG1, OLFMAG1)
        or header[2] != ELFMAG2
        or header[3] != ELFMAG3
    ):
        return None

    state = NoteState(settings=settings)
    clazz = header[EI_CLASS] if len(header) > EI_CLASS else 0
    if clazz not in (ELFCLASS32, ELFCLASS64):
        state.emit(f", unknown class {clazz}")
        return state.text

    big_endian = len(header) > EI_DATA and header[EI_DATA] == ELFDATA2MSB
    layout = ElfLayout(clazz, big_endian)
    fmt = (">" if big_endian else "<") + _EHDR_FORMATS[clazz]
    if len(header) < struct.calcsize(fmt):
        return state.text
    (
        _ident, e_type, machine, _version, _entry, phoff, shoff, _flags,
        _ehsize, phentsize, phnum, shentsize, shnum, shstrndx,
    ) = struct.unpack_from(fmt, header, 0)
    fsize = image.size

    if e_type == ET_CORE:
        state.flags |= FLAGS_IS_CORE
        if phnum > settings.elf_phnum_max:
            _too_many(state, "program headers", phnum)
        else:
            describe_core(state, layout, image, phoff, phnum, phentsize, fsize)
    elif e_type in (ET_EXEC, ET_DYN):
        if phnum > settings.elf_phnum_max:
            _too_many(state, "program headers", phnum)
        else:
            describe_program_headers(
                state, layout, image, phoff, phnum, phentsize, fsize, shnum
            )
        if shnum > settings.elf_shnum_max:
            _too_many(state, "section headers", shnum)
        else:
            describe_sections(
                state, layout, image, shoff, shnum, shentsize, fsize, machine, shstrndx
            )
    elif e_type == ET_REL:
        if shnum > settings.elf_shnum_max:
            _too_many(state, "section headers", shnum)
        else:
            describe_sections(
                state, layout, image, shoff, shnum, shentsize, fsize, machine, shstrndx
            )

    if state.error:
        raise ValueError(state.error)
    return state.text