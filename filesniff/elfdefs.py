"""ELF structure layouts and constants, and positional reads of an image."""

from __future__ import annotations

import errno
import io
import struct
from dataclasses import dataclass
from typing import BinaryIO

# e_ident
EI_NIDENT = 16
EI_MAG0 = 0
EI_MAG1 = 1
EI_MAG2 = 2
EI_MAG3 = 3
EI_CLASS = 4
EI_DATA = 5
EI_VERSION = 6
EI_PAD = 7

ELFMAG0 = 0x7F
ELFMAG1 = ord("E")
ELFMAG2 = ord("L")
ELFMAG3 = ord("F")
ELFMAG = b"\x7fELF"
OLFMAG1 = ord("O")
OLFMAG = b"\x7fOLF"

ELFCLASSNONE = 0
ELFCLASS32 = 1
ELFCLASS64 = 2

ELFDATANONE = 0
ELFDATA2LSB = 1
ELFDATA2MSB = 2

# e_type
ET_REL = 1
ET_EXEC = 2
ET_DYN = 3
ET_CORE = 4

# e_machine
EM_SPARC = 2
EM_386 = 3
EM_SPARC32PLUS = 18
EM_SPARCV9 = 43
EM_IA_64 = 50
EM_AMD64 = 62

# sh_type
SHT_SYMTAB = 2
SHT_NOTE = 7
SHT_DYNSYM = 11
SHT_SUNW_cap = 0x6FFFFFF5

# p_type
PT_NULL = 0
PT_LOAD = 1
PT_DYNAMIC = 2
PT_INTERP = 3
PT_NOTE = 4
PT_SHLIB = 5
PT_PHDR = 6
PT_NUM = 7

# Auxiliary vector types
AT_NULL = 0
AT_IGNORE = 1
AT_EXECFD = 2
AT_PHDR = 3
AT_PHENT = 4
AT_PHNUM = 5
AT_PAGESZ = 6
AT_BASE = 7
AT_FLAGS = 8
AT_ENTRY = 9
AT_LINUX_NOTELF = 10
AT_LINUX_UID = 11
AT_LINUX_EUID = 12
AT_LINUX_GID = 13
AT_LINUX_EGID = 14
AT_LINUX_PLATFORM = 15
AT_LINUX_HWCAP = 16
AT_LINUX_CLKTCK = 17
AT_LINUX_SECURE = 23
AT_LINUX_BASE_PLATFORM = 24
AT_LINUX_RANDOM = 25
AT_LINUX_HWCAP2 = 26
AT_LINUX_EXECFN = 31

# Core file notes
NT_PRSTATUS = 1
NT_PRFPREG = 2
NT_PRPSINFO = 3
NT_PRXREG = 4
NT_TASKSTRUCT = 4
NT_PLATFORM = 5
NT_AUXV = 6

NT_NETBSD_CORE_PROCINFO = 1
NT_NETBSD_CORE_AUXV = 2

# Executable notes
NT_NETBSD_VERSION = 1
NT_NETBSD_EMULATION = 2
NT_FREEBSD_VERSION = 1
NT_OPENBSD_VERSION = 1
NT_DRAGONFLY_VERSION = 1
NT_GNU_VERSION = 1
NT_GNU_HWCAP = 2
NT_GNU_BUILD_ID = 3
NT_NETBSD_PAX = 3
NT_NETBSD_MARCH = 5
NT_NETBSD_CMODEL = 6
NT_GO_BUILD_ID = 4
NT_ANDROID_VERSION = 1
NT_ANDROID_KUSER = 3
NT_ANDROID_MEMTAG = 4
NT_FREEBSD_PROCSTAT_AUXV = 16

NT_NETBSD_PAX_MPROTECT = 0x01
NT_NETBSD_PAX_NOMPROTECT = 0x02
NT_NETBSD_PAX_GUARD = 0x04
NT_NETBSD_PAX_NOGUARD = 0x08
NT_NETBSD_PAX_ASLR = 0x10
NT_NETBSD_PAX_NOASLR = 0x20

NT_ANDROID_MEMTAG_LEVEL_NONE = 0
NT_ANDROID_MEMTAG_LEVEL_ASYNC = 1
NT_ANDROID_MEMTAG_LEVEL_SYNC = 2
NT_ANDROID_MEMTAG_LEVEL_MASK = 3
NT_ANDROID_MEMTAG_HEAP = 4
NT_ANDROID_MEMTAG_STACK = 8

# GNU OS tags
GNU_OS_LINUX = 0
GNU_OS_HURD = 1
GNU_OS_SOLARIS = 2
GNU_OS_KFREEBSD = 3
GNU_OS_KNETBSD = 4

# NetBSD core process information: byte offsets of the fields read.
NETBSD_PROCINFO_SIZE = 160
NETBSD_PROCINFO_OFFSETS = {
    "signo": 8,
    "sigcode": 12,
    "pid": 80,
    "euid": 100,
    "egid": 112,
    "nlwps": 120,
    "name": 124,
    "siglwp": 156,
}
NETBSD_PROCINFO_NAME_SIZE = 32

# SunOS capabilities
CA_SUNW_NULL = 0
CA_SUNW_HW_1 = 1
CA_SUNW_SF_1 = 2

SF1_SUNW_FPKNWN = 0x01
SF1_SUNW_FPUSED = 0x02
SF1_SUNW_MASK = 0x03

AV_SPARC_MUL32 = 0x0001
AV_SPARC_DIV32 = 0x0002
AV_SPARC_FSMULD = 0x0004
AV_SPARC_V8PLUS = 0x0008
AV_SPARC_POPC = 0x0010
AV_SPARC_VIS = 0x0020
AV_SPARC_VIS2 = 0x0040
AV_SPARC_ASI_BLK_INIT = 0x0080
AV_SPARC_FMAF = 0x0100
AV_SPARC_FJFMAU = 0x4000
AV_SPARC_IMA = 0x8000

AV_386_FPU = 0x00000001
AV_386_TSC = 0x00000002
AV_386_CX8 = 0x00000004
AV_386_SEP = 0x00000008
AV_386_AMD_SYSC = 0x00000010
AV_386_CMOV = 0x00000020
AV_386_MMX = 0x00000040
AV_386_AMD_MMX = 0x00000080
AV_386_AMD_3DNow = 0x00000100
AV_386_AMD_3DNowx = 0x00000200
AV_386_FXSR = 0x00000400
AV_386_SSE = 0x00000800
AV_386_SSE2 = 0x00001000
AV_386_PAUSE = 0x00002000
AV_386_SSE3 = 0x00004000
AV_386_MON = 0x00008000
AV_386_CX16 = 0x00010000
AV_386_AHF = 0x00020000
AV_386_TSCP = 0x00040000
AV_386_AMD_SSE4A = 0x00080000
AV_386_POPCNT = 0x00100000
AV_386_AMD_LZCNT = 0x00200000
AV_386_SSSE3 = 0x00400000
AV_386_SSE4_1 = 0x00800000
AV_386_SSE4_2 = 0x01000000

# Dynamic section
DT_NULL = 0
DT_NEEDED = 1
DT_STRTAB = 5
DT_SONAME = 14
DT_RPATH = 15
DT_DEBUG = 21
DT_RUNPATH = 29
DT_FLAGS = 30
DT_FLAGS_1 = 0x6FFFFFFB

DF_ORIGIN = 0x00000001
DF_SYMBOLIC = 0x00000002
DF_TEXTREL = 0x00000004
DF_BIND_NOW = 0x00000008
DF_STATIC_TLS = 0x00000010

DF_1_NOW = 0x00000001
DF_1_PIE = 0x08000000


@dataclass(frozen=True)
class ProgramHeader:
    """A program header; zero align and vaddr read as 4."""

    type: int
    flags: int
    offset: int
    vaddr: int
    paddr: int
    filesz: int
    memsz: int
    align: int


@dataclass(frozen=True)
class SectionHeader:
    """A section header."""

    name: int
    type: int
    flags: int
    addr: int
    offset: int
    size: int
    link: int
    info: int
    addralign: int
    entsize: int


@dataclass(frozen=True)
class NoteHeader:
    """The fixed part of a note."""

    namesz: int
    descsz: int
    type: int


@dataclass(frozen=True)
class DynamicEntry:
    """An entry of the dynamic section."""

    tag: int
    val: int


@dataclass(frozen=True)
class CapEntry:
    """A SunOS capability entry."""

    tag: int
    val: int


@dataclass(frozen=True)
class AuxvEntry:
    """An auxiliary vector entry."""

    type: int
    val: int


@dataclass(frozen=True)
class ElfLayout:
    """Word size and byte order of an ELF file, and decoding of its records."""

    elf_class: int
    big_endian: bool = False

    def __post_init__(self) -> None:
        if self.elf_class not in (ELFCLASS32, ELFCLASS64):
            raise ValueError(f"unknown ELF class {self.elf_class}")

    @property
    def is64(self) -> bool:
        """Whether this is the 64-bit layout."""
        return self.elf_class == ELFCLASS64

    @property
    def _order(self) -> str:
        return ">" if self.big_endian else "<"

    def _format(self, fmt32: str, fmt64: str) -> str:
        return self._order + (fmt64 if self.is64 else fmt32)

    def _unpack(self, fmt32: str, fmt64: str, data: bytes) -> tuple[int, ...]:
        fmt = self._format(fmt32, fmt64)
        size = struct.calcsize(fmt)
        if len(data) < size:
            raise ValueError(f"need {size} bytes, got {len(data)}")
        return struct.unpack_from(fmt, data, 0)

    @property
    def phdr_size(self) -> int:
        """Size of a program header."""
        return struct.calcsize(self._format("8I", "2I6Q"))

    @property
    def shdr_size(self) -> int:
        """Size of a section header."""
        return struct.calcsize(self._format("10I", "2I4Q2I2Q"))

    @property
    def nhdr_size(self) -> int:
        """Size of a note header."""
        return 12

    @property
    def dyn_size(self) -> int:
        """Size of a dynamic entry."""
        return 16 if self.is64 else 8

    @property
    def cap_size(self) -> int:
        """Size of a capability entry."""
        return 16 if self.is64 else 8

    @property
    def auxv_size(self) -> int:
        """Size of an auxiliary vector entry."""
        return 16 if self.is64 else 8

    def program_header(self, data: bytes) -> ProgramHeader:
        """Decode a program header from the start of data."""
        if self.is64:
            ptype, flags, offset, vaddr, paddr, filesz, memsz, align = self._unpack(
                "", "2I6Q", data
            )
        else:
            ptype, offset, vaddr, paddr, filesz, memsz, flags, align = self._unpack(
                "8I", "", data
            )
        return ProgramHeader(
            type=ptype,
            flags=flags,
            offset=offset,
            vaddr=vaddr or 4,
            paddr=paddr,
            filesz=filesz,
            memsz=memsz,
            align=align or 4,
        )

    def section_header(self, data: bytes) -> SectionHeader:
        """Decode a section header from the start of data."""
        return SectionHeader(*self._unpack("10I", "2I4Q2I2Q", data))

    def note_header(self, data: bytes) -> NoteHeader:
        """Decode a note header from the start of data."""
        return NoteHeader(*self._unpack("3I", "3I", data))

    def dynamic_entry(self, data: bytes) -> DynamicEntry:
        """Decode a dynamic section entry from the start of data."""
        return DynamicEntry(*self._unpack("2I", "2Q", data))

    def capability(self, data: bytes) -> CapEntry:
        """Decode a capability entry from the start of data."""
        return CapEntry(*self._unpack("2I", "2Q", data))

    def auxv_entry(self, data: bytes) -> AuxvEntry:
        """Decode an auxiliary vector entry from the start of data."""
        return AuxvEntry(*self._unpack("2I", "2Q", data))

    def u32(self, data: bytes, offset: int = 0) -> int:
        """Read an unsigned 32-bit word at offset in the file's byte order."""
        if offset < 0 or len(data) < offset + 4:
            raise ValueError(f"no 32-bit word at offset {offset}")
        return struct.unpack_from(self._order + "I", data, offset)[0]


class ElfImage:
    """Random access to the bytes of a file or a buffer."""

    def __init__(self, source: bytes | bytearray | memoryview | BinaryIO) -> None:
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._data: bytes | None = bytes(source)
            self._file: BinaryIO | None = None
        else:
            self._data = None
            self._file = source

    @property
    def size(self) -> int:
        """Total number of bytes available."""
        if self._data is not None:
            return len(self._data)
        assert self._file is not None
        pos = self._file.tell()
        try:
            return self._file.seek(0, io.SEEK_END)
        finally:
            self._file.seek(pos)

    def read(self, offset: int, length: int) -> bytes:
        """Read up to length bytes at offset, leaving any file position as it was."""
        if offset < 0 or length < 0:
            raise OSError(errno.EINVAL, f"invalid read at {offset} of {length} bytes")
        if self._data is not None:
            return self._data[offset : offset + length]
        assert self._file is not None
        pos = self._file.tell()
        try:
            self._file.seek(offset)
            return self._file.read(length)
        finally:
            self._file.seek(pos)