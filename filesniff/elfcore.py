"""Decoding of ELF core file notes and the note walker."""

from __future__ import annotations

from .elfdefs import (
    AT_LINUX_EGID,
    AT_LINUX_EUID,
    AT_LINUX_EXECFN,
    AT_LINUX_GID,
    AT_LINUX_PLATFORM,
    AT_LINUX_UID,
    ELFCLASS32,
    NETBSD_PROCINFO_NAME_SIZE,
    NETBSD_PROCINFO_OFFSETS,
    NETBSD_PROCINFO_SIZE,
    NT_AUXV,
    NT_NETBSD_CMODEL,
    NT_NETBSD_CORE_PROCINFO,
    NT_NETBSD_EMULATION,
    NT_NETBSD_MARCH,
    NT_NETBSD_VERSION,
    NT_PRPSINFO,
    ElfImage,
    ElfLayout,
)
from .elfnotes import (
    FLAGS_CORE_STYLE,
    FLAGS_DID_ANDROID_MEMTAG,
    FLAGS_DID_AUXV,
    FLAGS_DID_BUILD_ID,
    FLAGS_DID_CORE,
    FLAGS_DID_CORE_STYLE,
    FLAGS_DID_NETBSD_CMODEL,
    FLAGS_DID_NETBSD_EMULATION,
    FLAGS_DID_NETBSD_MARCH,
    FLAGS_DID_NETBSD_PAX,
    FLAGS_DID_NETBSD_UNKNOWN,
    FLAGS_DID_OS_NOTE,
    FLAGS_IS_CORE,
    OS_STYLE_FREEBSD,
    OS_STYLE_NAMES,
    OS_STYLE_NETBSD,
    OS_STYLE_SVR4,
    NoteState,
    build_id_note,
    memtag_note,
    os_note,
    pax_note,
)

# Offsets of the program name inside NT_PRPSINFO, larger ones first to
# avoid false matches on earlier data that happens to look like text.
_PRPS_OFFSETS32 = (100, 84, 44, 28, 48, 32, 8)
_PRPS_OFFSETS64 = (136, 120, 56, 40, 16)

_MAX_AUXV = 50
_STRING_BUF = 256
_COPY_LIMIT = 256
_QUOTES = frozenset(b"'\"`")
_SPACE = frozenset(b" \t\n\v\f\r")

_AUXV_TAGS = {
    AT_LINUX_EXECFN: ("execfn", True),
    AT_LINUX_PLATFORM: ("platform", True),
    AT_LINUX_UID: ("real uid", False),
    AT_LINUX_GID: ("real gid", False),
    AT_LINUX_EUID: ("effective uid", False),
    AT_LINUX_EGID: ("effective gid", False),
}

_NETBSD_NOTES = {
    NT_NETBSD_MARCH: (FLAGS_DID_NETBSD_MARCH, "compiled for"),
    NT_NETBSD_CMODEL: (FLAGS_DID_NETBSD_CMODEL, "compiler model"),
    NT_NETBSD_EMULATION: (FLAGS_DID_NETBSD_EMULATION, "emulation:"),
}


def _isprint(c: int) -> bool:
    return 0x20 <= c < 0x7F


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value >= 1 << 31 else value


def _name_is(buf: bytes, noff: int, namesz: int, name: bytes) -> bool:
    """Whether the note name is exactly name with its terminating NUL."""
    return namesz == len(name) + 1 and buf[noff : noff + namesz] == name + b"\0"


def _cstring(raw: bytes, width: int) -> str:
    """At most width bytes of raw, ending at the first NUL."""
    chunk = bytes(raw[: max(0, width)])
    nul = chunk.find(b"\0")
    if nul >= 0:
        chunk = chunk[:nul]
    return chunk.decode("latin-1")


def _printable(raw: bytes) -> str:
    """Text up to the first NUL with unprintable bytes as octal escapes."""
    out = []
    for c in raw:
        if c == 0:
            break
        out.append(chr(c) if _isprint(c) else f"\\{c:03o}")
    return "".join(out)


def _align_up(value: int, align: int) -> int:
    return ((value + align - 1) // align) * align


def _scan_name(buf: bytes, doff: int, rel: int, descsz: int, size: int) -> int | None:
    """Length of a plausible program name at rel, or None if there is none."""
    for j in range(16):
        noffset = doff + rel + j
        if noffset >= size or rel + j >= descsz:
            return None
        c = buf[noffset]
        if c == 0:
            return None if j == 0 else j
        if not _isprint(c) or c in _QUOTES:
            return None
    return 16


def _prps_program(
    buf: bytes, doff: int, descsz: int, size: int, offsets: tuple[int, ...]
) -> str | None:
    for i, start in enumerate(offsets):
        j = _scan_name(buf, doff, start, descsz, size)
        if j is None:
            continue
        # A match may lie in the middle of a string that begins earlier.
        chosen = i
        for k in range(i + 1, len(offsets)):
            if offsets[k] >= offsets[chosen]:
                continue
            # A name not terminated just before the arguments (qemu).
            if offsets[k] == offsets[chosen] - 16 and j == 16:
                continue
            span = range(doff + offsets[k], doff + offsets[chosen])
            if all(_isprint(buf[no]) for no in span):
                chosen = k
        cname = doff + offsets[chosen]
        end = cname
        while end < size and buf[end] and _isprint(buf[end]):
            end += 1
        # Linux appends a space to the command line.
        while end > cname and buf[end - 1] in _SPACE:
            end -= 1
        return bytes(buf[cname : min(end, cname + _COPY_LIMIT - 1)]).decode("latin-1")
    return None


def core_note(
    state: NoteState,
    buf: bytes,
    ntype: int,
    namesz: int,
    descsz: int,
    noff: int,
    doff: int,
    size: int,
    layout: ElfLayout,
) -> bool:
    """Describe a core file note: style, process name and ids; True if consumed."""
    size = min(size, len(buf))
    os_style = -1
    if (namesz == 4 and buf[noff : noff + 4] == b"CORE") or _name_is(
        buf, noff, namesz, b"CORE"
    ):
        os_style = OS_STYLE_SVR4
    if _name_is(buf, noff, namesz, b"FreeBSD"):
        os_style = OS_STYLE_FREEBSD
    if namesz >= 11 and buf[noff : noff + 11] == b"NetBSD-CORE":
        os_style = OS_STYLE_NETBSD

    if os_style != -1 and not state.flags & FLAGS_DID_CORE_STYLE:
        state.emit(f", {OS_STYLE_NAMES[os_style]}-style")
        state.flags |= FLAGS_DID_CORE_STYLE | os_style

    if os_style == OS_STYLE_NETBSD:
        if ntype != NT_NETBSD_CORE_PROCINFO:
            return False
        raw = bytes(buf[doff : doff + min(descsz, NETBSD_PROCINFO_SIZE)])
        info = raw.ljust(NETBSD_PROCINFO_SIZE, b"\0")

        def field(name: str) -> int:
            return layout.u32(info, NETBSD_PROCINFO_OFFSETS[name])

        name_at = NETBSD_PROCINFO_OFFSETS["name"]
        pname = _printable(info[name_at : name_at + NETBSD_PROCINFO_NAME_SIZE])[:31]
        state.emit(
            f", from '{pname}', pid={field('pid')}, uid={field('euid')}, "
            f"gid={field('egid')}, nlwps={field('nlwps')}, lwp={field('siglwp')} "
            f"(signal {field('signo')}/code {field('sigcode')})"
        )
        state.flags |= FLAGS_DID_CORE
        return True

    if os_style == OS_STYLE_FREEBSD:
        if ntype == NT_PRPSINFO and state.flags & FLAGS_IS_CORE:
            argoff = 4 + 4 + 17 if layout.elf_class == ELFCLASS32 else 4 + 4 + 8 + 17
            state.emit(f", from '{_cstring(buf[doff + argoff :], 80)}'")
            pidoff = argoff + 81 + 2
            if doff + pidoff + 4 <= size:
                state.emit(f", pid={layout.u32(buf, doff + pidoff)}")
            state.flags |= FLAGS_DID_CORE
        return False

    if ntype == NT_PRPSINFO and state.flags & FLAGS_IS_CORE:
        offsets = _PRPS_OFFSETS32 if layout.elf_class == ELFCLASS32 else _PRPS_OFFSETS64
        program = _prps_program(buf, doff, descsz, size, offsets)
        if program is not None:
            state.emit(f", from '{program}'")
            state.flags |= FLAGS_DID_CORE
            return True
    return False


def _offset_from_virtaddr(
    state: NoteState,
    layout: ElfLayout,
    image: ElfImage,
    off: int,
    num: int,
    fsize: int | None,
    virtaddr: int,
) -> int:
    """File offset of virtaddr according to the program headers, or 0."""
    phsize = layout.phdr_size
    for _ in range(num):
        try:
            data = image.read(off, phsize)
        except OSError:
            data = b""
        if len(data) < phsize:
            state.emit(f", can't read elf program header at {off}")
            return 0
        off += phsize
        ph = layout.program_header(data)
        if fsize is not None and ph.offset > fsize:
            continue
        if ph.vaddr <= virtaddr < ph.vaddr + ph.filesz:
            return ph.offset + (virtaddr - ph.vaddr)
    return 0


def _string_at_virtaddr(
    state: NoteState,
    layout: ElfLayout,
    image: ElfImage | None,
    ph_off: int,
    ph_num: int,
    fsize: int | None,
    virtaddr: int,
) -> str:
    """Printable string stored at virtaddr, or an empty string."""
    offset = 0
    data = b""
    if image is not None:
        offset = _offset_from_virtaddr(state, layout, image, ph_off, ph_num, fsize, virtaddr)
        if offset >= 0:
            try:
                data = image.read(offset, _STRING_BUF)
            except OSError:
                data = b""
    if not data:
        state.emit(f", can't read elf string at {offset}")
        return ""
    data = bytes(data[:-1]) + b"\0"
    end = 0
    while data[end] and _isprint(data[end]):
        end += 1
    if data[end] != 0:
        return ""
    return data[:end].decode("latin-1")


def auxv_note(
    state: NoteState,
    buf: bytes,
    ntype: int,
    descsz: int,
    doff: int,
    layout: ElfLayout,
    image: ElfImage | None,
    ph_off: int,
    ph_num: int,
    fsize: int | None,
) -> bool:
    """Describe the auxiliary vector of an SVR4-style core file; True if consumed."""
    wanted = FLAGS_IS_CORE | FLAGS_DID_CORE_STYLE
    if state.flags & wanted != wanted:
        return False
    if state.flags & FLAGS_CORE_STYLE != OS_STYLE_SVR4 or ntype != NT_AUXV:
        return False

    state.flags |= FLAGS_DID_AUXV
    elsize = layout.auxv_size
    nval = 0
    off = 0
    while off + elsize <= descsz:
        entry = layout.auxv_entry(buf[doff + off : doff + off + elsize])
        off += elsize
        # Bound the work done on hostile input.
        if nval >= _MAX_AUXV:
            state.error = "Too many ELF Auxv elements"
            return True
        nval += 1
        known = _AUXV_TAGS.get(entry.type)
        if known is None:
            continue
        tag, is_string = known
        if is_string:
            text = _string_at_virtaddr(state, layout, image, ph_off, ph_num, fsize, entry.val)
            if not text:
                continue
            state.emit(f", {tag}: '{text}'")
        else:
            state.emit(f", {tag}: {_int32(entry.val)}")
    return True


def read_note(
    state: NoteState,
    buf: bytes,
    offset: int,
    size: int,
    layout: ElfLayout,
    align: int,
    image: ElfImage | None,
    ph_off: int,
    ph_num: int,
    fsize: int | None,
) -> int:
    """Describe the note at offset; return the offset of the next, 0 to stop.

    A returned offset at or beyond size also ends the walk.
    """
    if state.notecount == 0:
        return 0
    state.notecount -= 1

    nhsize = layout.nhdr_size
    if nhsize + offset > size:
        return nhsize + offset
    header = layout.note_header(buf[offset : offset + nhsize])
    offset += nhsize
    namesz, descsz, ntype = header.namesz, header.descsz, header.type

    if namesz == 0 and descsz == 0:
        return offset if offset >= size else size
    if namesz & 0x80000000:
        state.emit(f", bad note name size {namesz:#x}")
        return 0
    if descsz & 0x80000000:
        state.emit(f", bad note description size {descsz:#x}")
        return 0

    noff = offset
    doff = _align_up(offset + namesz, align)
    if offset + namesz > size:
        return doff
    offset = _align_up(doff + descsz, align)
    if doff + descsz > size:
        return offset if offset >= size else size

    flags = state.flags
    if not flags & FLAGS_DID_OS_NOTE and os_note(
        state, buf, ntype, namesz, descsz, noff, doff, layout
    ):
        return offset
    if not state.flags & FLAGS_DID_BUILD_ID and build_id_note(
        state, buf, ntype, namesz, descsz, noff, doff
    ):
        return offset
    if not state.flags & FLAGS_DID_NETBSD_PAX and pax_note(
        state, buf, ntype, namesz, descsz, noff, doff, layout
    ):
        return offset
    if not state.flags & FLAGS_DID_ANDROID_MEMTAG and memtag_note(
        state, buf, ntype, namesz, descsz, noff, doff, layout
    ):
        return offset
    if not state.flags & FLAGS_DID_CORE and core_note(
        state, buf, ntype, namesz, descsz, noff, doff, size, layout
    ):
        return offset
    if not state.flags & FLAGS_DID_AUXV and auxv_note(
        state, buf, ntype, descsz, doff, layout, image, ph_off, ph_num, fsize
    ):
        return offset

    if _name_is(buf, noff, namesz, b"NetBSD"):
        descsz = min(descsz, 100)
        if ntype == NT_NETBSD_VERSION:
            return offset
        known = _NETBSD_NOTES.get(ntype)
        if known is None:
            if state.flags & FLAGS_DID_NETBSD_UNKNOWN:
                return offset
            state.flags |= FLAGS_DID_NETBSD_UNKNOWN
            state.emit(f", note={ntype}")
            return offset
        flag, tag = known
        if state.flags & flag:
            return offset
        state.flags |= flag
        state.emit(f", {tag}: {_cstring(buf[doff:], min(descsz, _COPY_LIMIT - 1))}")
    return offset