"""
Destination path and permission-mode resolution for file sinks.

Mode precedence:
- discard path   -> default (never applied, the null device is not chmod'ed)
- mode unset     -> DEFAULT_FILE_MODE
- mode == 0      -> keep the permission bits of the existing file
- any other mode -> used verbatim
"""
from __future__ import annotations

import os
import stat

# Owner read/write only.
DEFAULT_FILE_MODE: int = 0o600

# Writes to this path are accepted and dropped without any real I/O.
DISCARD_PATH: str = os.devnull

# Zero mode: preserve whatever is on disk.
PRESERVE_FILE_MODE: int = 0


def normalize_path(path: str) -> str:
    """Return the trimmed destination path (may be empty)."""
    return path.strip()


def is_discard_path(path: str) -> bool:
    return path == DISCARD_PATH


def existing_file_mode(path: str) -> int:
    """Return the permission bits of an existing file.

    Raises OSError when the file cannot be stat'ed.
    """
    return stat.S_IMODE(os.stat(path).st_mode)


def resolve_file_mode(path: str, file_mode: int | None) -> int:
    """Apply the default/preserve/explicit precedence to ``file_mode``."""
    if is_discard_path(path) or file_mode is None:
        return DEFAULT_FILE_MODE

    if file_mode == PRESERVE_FILE_MODE:
        return existing_file_mode(path)

    return file_mode


def directory_mode(file_mode: int) -> int:
    """Mode used for parent directories created on open.

    Directories need the search bit wherever the file mode grants read,
    otherwise the file inside them could not be reached.
    """
    if file_mode == PRESERVE_FILE_MODE:
        return 0o700
    return file_mode | ((file_mode & 0o444) >> 2)
