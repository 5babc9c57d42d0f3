[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "filesniff"
version = "5.46.0"
description = "Content-based file type detection for CSV, JSON, SIMH tape, tar and ELF data"
requires-python = ">=3.10"
dependencies = []
keywords = ["file", "magic", "file-type", "elf", "tar", "json", "csv", "simh", "detection"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["filesniff"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
