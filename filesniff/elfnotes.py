"""Decoding of ELF notes naming the target system, build id and hardening."""

from __future__ import annotations

from dataclasses import dataclass, field

from .elfdefs import (
    GNU_OS_HURD,
    GNU_OS_KFREEBSD,
    GNU_OS_KNETBSD,
    GNU_OS_LINUX,
    GNU_OS_SOLARIS,
    NT_ANDROID_MEMTAG,
    NT_ANDROID_VERSION,
    NT_DRAGONFLY_VERSION,
    NT_FREEBSD_VERSION,
    NT_GNU_BUILD_ID,
    NT_GNU_VERSION,
    NT_GO_BUILD_ID,
    NT_NETBSD_PAX,
    NT_NETBSD_VERSION,
    NT_OPENBSD_VERSION,
    ElfLayout,
)
from .settings import Flag, Settings

# Bits kept in NoteState.flags while walking the notes of one file.
FLAGS_CORE_STYLE = 0x0003
FLAGS_DID_CORE = 0x0004
FLAGS_DID_OS_NOTE = 0x0008
FLAGS_DID_BUILD_ID = 0x0010
FLAGS_DID_CORE_STYLE = 0x0020
FLAGS_DID_NETBSD_PAX = 0x0040
FLAGS_DID_NETBSD_MARCH = 0x0080
FLAGS_DID_NETBSD_CMODEL = 0x0100
FLAGS_DID_NETBSD_EMULATION = 0x0200
FLAGS_DID_NETBSD_UNKNOWN = 0x0400
FLAGS_DID_ANDROID_MEMTAG = 0x0800
FLAGS_IS_CORE = 0x1000
FLAGS_DID_AUXV = 0x2000

OS_STYLE_SVR4 = 0
OS_STYLE_FREEBSD = 1
OS_STYLE_NETBSD = 2
OS_STYLE_NAMES = ("SVR4", "FreeBSD", "NetBSD")

_GNU_OS_NAMES = {
    GNU_OS_LINUX: "Linux",
    GNU_OS_HURD: "Hurd",
    GNU_OS_SOLARIS: "Solaris",
    GNU_OS_KFREEBSD: "kFreeBSD",
    GNU_OS_KNETBSD: "kNetBSD",
}

_PAX_NAMES = ("+mprotect", "-mprotect", "+segvguard", "-segvguard", "+ASLR", "-ASLR")
_MEMTAG_NAMES = ("none", "async", "sync", "heap", "stack")

_BUILD_ID_KINDS = {8: "xxHash", 16: "md5/uuid", 20: "sha1"}

_COPY_LIMIT = 256


@dataclass
class NoteState:
    """Description text and bookkeeping gathered while reading notes."""

    settings: Settings = field(default_factory=Settings)
    flags: int = 0
    notecount: int | None = None
    mode: int = 0
    parts: list[str] = field(default_factory=list)
    error: str | None = None

    def __post_init__(self) -> None:
        if self.notecount is None:
            self.notecount = self.settings.elf_notes_max

    @property
    def mime(self) -> bool:
        """Whether a MIME answer was asked for, so no text is produced."""
        return bool(self.settings.flags & Flag.MIME)

    @property
    def text(self) -> str:
        """The description produced so far."""
        return "".join(self.parts)

    def emit(self, text: str) -> None:
        """Append text to the description unless MIME output was asked for."""
        if not self.mime:
            self.parts.append(text)


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value >= 1 << 31 else value


def _name_equals(buf: bytes, noff: int, namesz: int, name: bytes) -> bool:
    """Whether the note name is exactly name with its terminating NUL."""
    return namesz == len(name) + 1 and buf[noff : noff + namesz] == name + b"\0"


def _copy_str(raw: bytes, width: int, limit: int = _COPY_LIMIT) -> str:
    """Text of at most width bytes (and limit - 1), ending at the first NUL."""
    width = max(0, min(width, limit - 1))
    chunk = bytes(raw[:width])
    nul = chunk.find(b"\0")
    if nul >= 0:
        chunk = chunk[:nul]
    return chunk.decode("latin-1")


def netbsd_version(desc: int) -> str:
    """Describe a NetBSD version note value."""
    desc &= 0xFFFFFFFF
    out = [", for NetBSD"]
    # Old binaries carry the fixed, content-free value 199905.
    if desc > 100000000:
        ver_patch = (desc // 100) % 100
        ver_rel = (desc // 10000) % 100
        ver_min = (desc // 1000000) % 100
        ver_maj = desc // 100000000
        out.append(f" {ver_maj}.{ver_min}")
        if ver_maj >= 9:
            ver_patch += 100 * ver_rel
            ver_rel = 0
        if ver_rel == 0 and ver_patch != 0:
            out.append(f".{ver_patch}")
        elif ver_rel != 0:
            while ver_rel > 26:
                out.append("Z")
                ver_rel -= 26
            out.append(chr(ord("A") + ver_rel - 1))
    return "".join(out)


def freebsd_version(desc: int) -> str:
    """Describe a FreeBSD version note value (__FreeBSD_version)."""
    desc &= 0xFFFFFFFF
    signed = _int32(desc)
    out = [", for FreeBSD"]
    if desc == 460002:
        out.append(" 4.6.2")
    elif desc < 460100:
        out.append(f" {desc // 100000}.{desc // 10000 % 10}")
        if desc // 1000 % 10 > 0:
            out.append(f".{desc // 1000 % 10}")
        if desc % 1000 > 0 or desc % 100000 == 0:
            out.append(f" ({signed})")
    elif desc < 500000:
        out.append(f" {desc // 100000}.{desc // 10000 % 10 + desc // 1000 % 10}")
        if desc // 100 % 10 > 0:
            out.append(f" ({signed})")
        elif desc // 10 % 10 > 0:
            out.append(f".{desc // 10 % 10}")
    else:
        out.append(f" {_int32(desc // 100000)}.{desc // 1000 % 100}")
        if desc // 100 % 10 > 0 or desc % 100000 // 100 == 0:
            out.append(f" ({signed})")
        elif desc // 10 % 10 > 0:
            out.append(f".{desc // 10 % 10}")
    return "".join(out)


def os_note(
    state: NoteState,
    buf: bytes,
    ntype: int,
    namesz: int,
    descsz: int,
    noff: int,
    doff: int,
    layout: ElfLayout,
) -> bool:
    """Describe a note naming the target operating system; True if consumed."""
    if _name_equals(buf, noff, namesz, b"SuSE") and ntype == NT_GNU_VERSION and descsz == 2:
        state.flags |= FLAGS_DID_OS_NOTE
        state.emit(f", for SuSE {buf[doff]}.{buf[doff + 1]}")
        return True

    if _name_equals(buf, noff, namesz, b"GNU") and ntype == NT_GNU_VERSION and descsz == 16:
        words = [layout.u32(buf, doff + 4 * i) for i in range(4)]
        state.flags |= FLAGS_DID_OS_NOTE
        state.emit(", for GNU/")
        state.emit(_GNU_OS_NAMES.get(words[0], "<unknown>"))
        state.emit(" " + ".".join(str(_int32(w)) for w in words[1:]))
        return True

    if _name_equals(buf, noff, namesz, b"NetBSD") and ntype == NT_NETBSD_VERSION and descsz == 4:
        state.flags |= FLAGS_DID_OS_NOTE
        state.emit(netbsd_version(layout.u32(buf, doff)))
        return True

    if _name_equals(buf, noff, namesz, b"FreeBSD") and ntype == NT_FREEBSD_VERSION and descsz == 4:
        state.flags |= FLAGS_DID_OS_NOTE
        state.emit(freebsd_version(layout.u32(buf, doff)))
        return True

    if _name_equals(buf, noff, namesz, b"OpenBSD") and ntype == NT_OPENBSD_VERSION and descsz == 4:
        state.flags |= FLAGS_DID_OS_NOTE
        # The note's content is always zero.
        state.emit(", for OpenBSD")
        return True

    if (
        _name_equals(buf, noff, namesz, b"DragonFly")
        and ntype == NT_DRAGONFLY_VERSION
        and descsz == 4
    ):
        state.flags |= FLAGS_DID_OS_NOTE
        state.emit(", for DragonFly")
        desc = layout.u32(buf, doff)
        state.emit(f" {desc // 100000}.{desc // 10000 % 10}.{desc % 10000}")
        return True

    if _name_equals(buf, noff, namesz, b"Android") and ntype == NT_ANDROID_VERSION and descsz >= 4:
        state.flags |= FLAGS_DID_OS_NOTE
        api_level = layout.u32(buf, doff)
        state.emit(f", for Android {_int32(api_level)}")
        # NDK r14 and later add the NDK release and build, 64 bytes each.
        if descsz >= 4 + 64 + 64:
            release = _copy_str(buf[doff + 4 :], 64, 65)
            build = _copy_str(buf[doff + 4 + 64 :], 64, 65)
            state.emit(f", built by NDK {release} ({build})")

    return False


def build_id_note(
    state: NoteState,
    buf: bytes,
    ntype: int,
    namesz: int,
    descsz: int,
    noff: int,
    doff: int,
) -> bool:
    """Describe a GNU or Go build id note; True if consumed."""
    if (
        _name_equals(buf, noff, namesz, b"GNU")
        and ntype == NT_GNU_BUILD_ID
        and 4 <= descsz <= 20
    ):
        state.flags |= FLAGS_DID_BUILD_ID
        kind = _BUILD_ID_KINDS.get(descsz, "unknown")
        state.emit(f", BuildID[{kind}]=")
        state.emit(bytes(buf[doff : doff + descsz]).hex())
        return True
    if (
        namesz == 4
        and buf[noff : noff + 3] == b"Go\0"
        and ntype == NT_GO_BUILD_ID
        and descsz < 128
    ):
        state.emit(f", Go BuildID={_copy_str(buf[doff:], descsz)}")
        return True
    return False


def _bit_names(desc: int, names: tuple[str, ...]) -> str:
    return ",".join(name for i, name in enumerate(names) if desc & (1 << i))


def pax_note(
    state: NoteState,
    buf: bytes,
    ntype: int,
    namesz: int,
    descsz: int,
    noff: int,
    doff: int,
    layout: ElfLayout,
) -> bool:
    """Describe a NetBSD PaX note; True if consumed."""
    if not (_name_equals(buf, noff, namesz, b"PaX") and ntype == NT_NETBSD_PAX and descsz == 4):
        return False
    state.flags |= FLAGS_DID_NETBSD_PAX
    desc = layout.u32(buf, doff)
    if desc:
        state.emit(", PaX: ")
    state.emit(_bit_names(desc, _PAX_NAMES))
    return True


def memtag_note(
    state: NoteState,
    buf: bytes,
    ntype: int,
    namesz: int,
    descsz: int,
    noff: int,
    doff: int,
    layout: ElfLayout,
) -> bool:
    """Describe an Android memory tagging note; True if consumed."""
    if not (
        _name_equals(buf, noff, namesz, b"Android")
        and ntype == NT_ANDROID_MEMTAG
        and descsz == 4
    ):
        return False
    state.flags |= FLAGS_DID_ANDROID_MEMTAG
    desc = layout.u32(buf, doff)
    if desc:
        state.emit(", Android Memtag: ")
    state.emit(_bit_names(desc, _MEMTAG_NAMES))
    return True