# filesniff

Identify what a piece of data holds by looking at its bytes. `filesniff`
recognises comma-separated text, JSON and newline-delimited JSON, SIMH tape
images, tar archives (old, POSIX and GNU) and ELF objects, and describes them
either in words or as a MIME type.

## Installation

```
pip install filesniff
```

## Usage

Each detector takes the raw bytes and a `Settings` object. The flags in
`Settings` choose the output style: plain description, MIME type
(`Flag.MIME_TYPE`) or encoding only (`Flag.MIME_ENCODING`). With
`Flag.APPLE` or `Flag.EXTENSION` set, the detectors do not answer.

```python
from filesniff.settings import Settings, Flag
from filesniff.csvcheck import describe_csv
from filesniff.jsoncheck import describe_json
from filesniff.simhcheck import describe_simh
from filesniff.tarcheck import describe_tar
from filesniff.elfheaders import try_elf

settings = Settings()

with open("data.json", "rb") as fh:
    print(describe_json(fh.read(), settings))   # "JSON text data"

with open("table.csv", "rb") as fh:
    print(describe_csv(fh.read(), settings, looks_text=True, code="ASCII"))
    # "CSV ASCII text"

mime = Settings()
mime.set_flags(Flag.MIME_TYPE)
with open("archive.tar", "rb") as fh:
    print(describe_tar(fh.read(), mime))        # "application/x-tar"

with open("/bin/ls", "rb") as fh:
    print(try_elf(fh, settings))                # ", dynamically linked, ..."
```

The `describe_*` functions return `None` when the data is not of their kind,
an empty string when only the encoding was asked for, and otherwise the MIME
type or description.

`try_elf` accepts bytes or a seekable binary file. It returns `None` for data
that is not ELF, and otherwise the text that follows the basic type (section
and program header details, notes, interpreter, build id, stripping); with
MIME output asked for that text is empty. It raises `ValueError` when a limit
stops the examination, such as a note section larger than
`Settings.elf_shsize_max`.

### Lower-level checks

- `filesniff.csvcheck.parse_csv(data, max_lines)`: whether the first lines
  have a constant number of fields above one.
- `filesniff.jsoncheck.parse_json(data)`: returns `(kind, stats)`, where kind
  is 0 (not JSON with an array or object), 1 (JSON) or 2 (newline delimited
  JSON), and `stats` is a `JsonStats` with counts of each value type.
- `filesniff.simhcheck.parse_simh(data, max_tapemarks)`
- `filesniff.tarcheck.tar_kind(data)` returning a `TarKind`, and
  `from_oct(field)` for octal header fields.
- `filesniff.elfdefs` holds the ELF constants, `ElfLayout` for decoding
  headers, notes, dynamic, capability and auxiliary vector entries in either
  word size and byte order, and `ElfImage` for positional reads.
- `filesniff.elfnotes` and `filesniff.elfcore` decode individual notes
  (operating system, build id, PaX, memory tagging, core process information
  and auxiliary vector) into a `NoteState`; `filesniff.elfheaders` walks the
  section and program headers (`describe_sections`,
  `describe_program_headers`, `describe_core`).

### Limits

`Settings.set_param(param, value)` and `Settings.get_param(param)` read and
change the limits, named by `Param`. Values for the 16-bit limits are
truncated to 16 bits; negative values and unknown parameters raise
`ValueError`. The ELF code uses `ELF_PHNUM_MAX`, `ELF_SHNUM_MAX`,
`ELF_NOTES_MAX` and `ELF_SHSIZE_MAX`; the other limits are stored for callers
to use.

### Magic database location

`filesniff.settings.get_path(magicfile, load)` resolves a magic database
path: an explicit argument first, then the `MAGIC` environment variable, then
(when `load` is true) per-user files found by `default_magic_path(home)`,
falling back to `/usr/share/misc/magic`.

### Formatting helpers

`filesniff.timefmt` formats Unix and Windows FILETIME time stamps
(`fmt_datetime`), MS-DOS dates and times (`fmt_date`, `fmt_time`) and numbers
written in another base (`fmt_num`). `WarningReporter` writes numbered
warnings to a stream and suppresses them after `max_warnings`.

## What it does not do

There is no command-line program. The package does not read or compile a
magic database: `get_path` only works out where one would be. It does not
open files by name, look inside compressed data, or match magic rules; it
recognises only the formats listed above, from bytes the caller supplies.

## Running the tests

```
pip install filesniff[test]
pytest
```