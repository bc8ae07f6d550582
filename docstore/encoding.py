"""Key encoding helpers and paths of the database root directory."""

from __future__ import annotations

import struct
from pathlib import Path

_INT64 = struct.Struct(">q")
_UINT64 = struct.Struct(">Q")


def int64_to_bytes(n: int) -> bytes:
    """Encode a signed 64-bit integer as 8 big-endian bytes."""
    try:
        return _INT64.pack(n)
    except struct.error as exc:
        raise ValueError(f"{n} does not fit in a signed 64-bit integer") from exc


def bytes_to_int64(data: bytes) -> int:
    """Decode the first 8 big-endian bytes as a signed integer; 0 if too short."""
    if len(data) < _INT64.size:
        return 0
    return _INT64.unpack_from(data)[0]


def uint64_to_bytes(n: int) -> bytes:
    """Encode an unsigned 64-bit integer as 8 big-endian bytes."""
    try:
        return _UINT64.pack(n)
    except struct.error as exc:
        raise ValueError(f"{n} does not fit in an unsigned 64-bit integer") from exc


def root_path() -> Path:
    """Directory that holds all databases: ``~/.dbs``."""
    return Path.home() / ".dbs"


def path_exists(sub_path: str) -> bool:
    """Tell whether ``sub_path`` exists below the root directory."""
    return (root_path() / sub_path).exists()


def list_dirs(path: str) -> list[str]:
    """Names of the visible sub-directories of ``path`` below the root, sorted."""
    base = root_path() / path
    return sorted(
        entry.name
        for entry in base.iterdir()
        if entry.is_dir() and not entry.name.startswith(".")
    )