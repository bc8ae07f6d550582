"""A small ordered key/value file store with prefix seeks."""

from __future__ import annotations

import argparse
import shutil
import sqlite3
from pathlib import Path

SAMPLE_DATA = {
    "aaa0": "value0",
    "aaa1": "value1",
    "aaa2": "value2",
    "aaa3": "value3",
    "aaa4": "value4",
    "user0": "value0",
    "user1": "value1",
    "user2": "value2",
    "user3": "value3",
    "boxer0": "value4",
    "boxer1": "value5",
    "boxer2": "value6",
    "boxer3": "value7",
    "emple0": "value0",
    "emple1": "value1",
    "emple2": "value2",
    "emple3": "value3",
    "admin0": "value4",
    "admin1": "value5",
}


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


class KVStore:
    """Keys kept in byte order; opening a path discards what was there."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        if self.path.is_dir():
            shutil.rmtree(self.path)
        else:
            self.path.unlink(missing_ok=True)
        self._conn = sqlite3.connect(str(self.path), isolation_level=None)
        self._conn.execute("CREATE TABLE kv (key BLOB PRIMARY KEY, value BLOB NOT NULL)")

    def __enter__(self) -> "KVStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def set(self, key: bytes | str, value: bytes | str) -> None:
        """Store ``value`` under ``key``, replacing any earlier value."""
        self._conn.execute(
            "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
            (_as_bytes(key), _as_bytes(value)),
        )

    def get(self, key: bytes | str) -> bytes | None:
        """The value under ``key``, or None."""
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (_as_bytes(key),)).fetchone()
        return bytes(row[0]) if row else None

    def delete(self, key: bytes | str) -> None:
        """Remove ``key``; a missing key is ignored."""
        self._conn.execute("DELETE FROM kv WHERE key = ?", (_as_bytes(key),))

    def _seek(self, prefix: str) -> str | None:
        row = self._conn.execute(
            "SELECT key FROM kv WHERE key >= ? ORDER BY key LIMIT 1", (_as_bytes(prefix),)
        ).fetchone()
        return bytes(row[0]).decode("utf-8", errors="replace") if row else None

    def first_key(self, prefix: str) -> str | None:
        """The smallest key starting with ``prefix``, or None."""
        key = self._seek(prefix)
        if key is None or not key.startswith(prefix):
            return None
        return key

    def last_key(self, prefix: str) -> str | None:
        """The key a seek to ``prefix`` lands on: the smallest not below it, or None."""
        return self._seek(prefix)

    def close(self) -> None:
        """Close the file."""
        self._conn.close()


def main(argv: list[str] | None = None) -> int:
    """Fill a fresh store with sample keys and print prefix seeks."""
    parser = argparse.ArgumentParser(description="Try out prefix seeks.")
    parser.add_argument("--db", default="test.db", help="database file (replaced)")
    args = parser.parse_args(argv)

    with KVStore(args.db) as store:
        for key, value in SAMPLE_DATA.items():
            print("set:", key, value)
            store.set(key, value)
        for prefix in ("user", "emple", "uses", "m", "aaa", "xyz"):
            key = store.first_key(prefix)
            print(f"first key as {prefix}", key if key is not None else "is not found")
    return 0