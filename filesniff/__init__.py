"""Content-based detection of CSV, JSON, SIMH tape, tar and ELF data."""

__version__ = "5.46.0"