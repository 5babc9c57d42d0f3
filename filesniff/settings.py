"""Detection settings: behaviour flags, tunable limits and database lookup."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass

DEFAULT_MAGIC = "/usr/share/misc/magic"
"""Location of the system magic database."""


class Flag(enum.IntFlag):
    """Flags that change how files are examined and reported."""

    NONE = 0x0000000
    DEBUG = 0x0000001
    SYMLINK = 0x0000002
    COMPRESS = 0x0000004
    DEVICES = 0x0000008
    MIME_TYPE = 0x0000010
    CONTINUE = 0x0000020
    CHECK = 0x0000040
    PRESERVE_ATIME = 0x0000080
    RAW = 0x0000100
    ERROR = 0x0000200
    MIME_ENCODING = 0x0000400
    MIME = MIME_TYPE | MIME_ENCODING
    APPLE = 0x0000800
    EXTENSION = 0x1000000
    COMPRESS_TRANSP = 0x2000000
    NO_COMPRESS_FORK = 0x4000000


class Param(enum.IntEnum):
    """Tunable limits of the detection engine."""

    INDIR_MAX = 0
    NAME_MAX = 1
    ELF_PHNUM_MAX = 2
    ELF_SHNUM_MAX = 3
    ELF_NOTES_MAX = 4
    REGEX_MAX = 5
    BYTES_MAX = 6
    ENCODING_MAX = 7
    ELF_SHSIZE_MAX = 8
    MAGWARN_MAX = 9


# Limits that are stored in 16 bits; larger values are truncated.
_SHORT_PARAMS = frozenset(
    {
        Param.INDIR_MAX,
        Param.NAME_MAX,
        Param.ELF_PHNUM_MAX,
        Param.ELF_SHNUM_MAX,
        Param.ELF_NOTES_MAX,
        Param.REGEX_MAX,
    }
)


@dataclass
class Settings:
    """Flags and limits used while identifying data."""

    flags: Flag = Flag.NONE
    indir_max: int = 50
    name_max: int = 50
    elf_phnum_max: int = 2048
    elf_shnum_max: int = 32768
    elf_notes_max: int = 256
    regex_max: int = 8192
    bytes_max: int = 7 * 1024 * 1024
    encoding_max: int = 65536
    elf_shsize_max: int = 128 * 1024 * 1024
    magwarn_max: int = 64

    @property
    def mime(self) -> Flag:
        """The MIME bits of the current flags."""
        return self.flags & Flag.MIME

    def set_param(self, param: Param | int, value: int) -> None:
        """Set a limit; raises ValueError for an unknown parameter."""
        param = Param(param)
        value = int(value)
        if value < 0:
            raise ValueError(f"negative value for {param.name}: {value}")
        if param in _SHORT_PARAMS:
            value &= 0xFFFF
        setattr(self, param.name.lower(), value)

    def get_param(self, param: Param | int) -> int:
        """Return a limit; raises ValueError for an unknown parameter."""
        return getattr(self, Param(param).name.lower())

    def set_flags(self, flags: Flag | int) -> None:
        """Replace all flags."""
        self.flags = Flag(flags)


def default_magic_path(home: str | None) -> str:
    """Search path for the database, preferring a per-user file under home."""
    if home is None:
        return DEFAULT_MAGIC
    user_path = f"{home}/.magic.mgc"
    if not os.path.exists(user_path):
        user_path = f"{home}/.magic"
        if not os.path.exists(user_path):
            return DEFAULT_MAGIC
        if os.path.isdir(user_path):
            user_path = f"{home}/.magic/magic.mgc"
            if not os.access(user_path, os.R_OK):
                return DEFAULT_MAGIC
    return f"{user_path}{os.pathsep}{DEFAULT_MAGIC}"


def get_path(magicfile: str | None, load: bool) -> str:
    """Resolve the database path from an explicit name, $MAGIC or defaults."""
    if magicfile is not None:
        return magicfile
    env = os.environ.get("MAGIC")
    if env is not None:
        return env
    if load:
        return default_magic_path(os.environ.get("HOME"))
    return DEFAULT_MAGIC