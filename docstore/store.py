"""Document store kept in SQLite and queried with raw JSON text."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Callable

from .aggregate import AggregateError, count_docs, order, refields
from .aggregate import aggregate as group_records
from .encoding import int64_to_bytes, uint64_to_bytes
from .filter import FilterError, match
from .rawjson import COLLECTION, FIELDS, LIMIT, MATCH, SKIP, SORT, Result, join, parse

_DEFAULT_LIMIT = 1000
_DEFAULT_SYNC_MS = 200
_MIN_SYNC_MS = 50

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS buckets (name TEXT PRIMARY KEY)",
    "CREATE TABLE IF NOT EXISTS documents ("
    " bucket TEXT NOT NULL, key BLOB NOT NULL, value TEXT NOT NULL,"
    " PRIMARY KEY (bucket, key))",
)


class StoreError(Exception):
    """A query failed; the message is the reply sent back to the client."""


def _error(message: str) -> str:
    return json.dumps({"error": message})


def _as_query(query: Result | str) -> Result:
    return parse(query) if isinstance(query, str) else query


def _id_key(value: Result) -> bytes | None:
    try:
        return int64_to_bytes(value.as_int())
    except ValueError:
        return None


def _matches(query_filter: Result, document: str) -> bool:
    try:
        return match(query_filter, document)
    except FilterError as exc:
        raise StoreError(_error(str(exc))) from exc


def transaction(query: Result | str) -> str:
    """Reject a transaction request, naming how many actions it held."""
    actions = _as_query(query).get("transaction").array()
    raise StoreError(_error(f"transactions are not supported ({len(actions)} actions given)"))


def create_collection(query: Result | str) -> str:
    """Reject explicit creation: collections come into being on first insert."""
    name = _as_query(query).get(COLLECTION).text
    raise StoreError(_error(f"collection '{name}' is created by inserting into it"))


def delete_collection(query: Result | str) -> str:
    """Reject removal of a whole collection."""
    name = _as_query(query).get(COLLECTION).text
    raise StoreError(_error(f"deleting collection '{name}' is not supported"))


class Store:
    """Collections of JSON documents keyed by an increasing ``_id``."""

    def __init__(self, path: str | Path) -> None:
        self.path = path
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._sync_thread: threading.Thread | None = None
        self._sync_interval = _DEFAULT_SYNC_MS
        self._closed = False
        try:
            self._conn = sqlite3.connect(str(path), check_same_thread=False)
            for statement in _SCHEMA:
                self._conn.execute(statement)
            self._conn.commit()
            self._last_ids = self._load_last_ids()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        self.no_sync = True
        self.run_sync(100)

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _load_last_ids(self) -> dict[str, int]:
        names = [row[0] for row in self._conn.execute("SELECT name FROM buckets ORDER BY name")]
        ids: dict[str, int] = {}
        for name in names:
            row = self._conn.execute(
                "SELECT key FROM documents WHERE bucket = ? ORDER BY key DESC LIMIT 1", (name,)
            ).fetchone()
            key = bytes(row[0]) if row else b""
            ids[name] = int.from_bytes(key[:8], "big") if len(key) >= 8 else 0
        return ids

    # syncing

    def run_sync(self, duration: int) -> bool:
        """Commit pending writes every ``duration`` milliseconds in the background.

        Returns False when every write is already committed at once.
        """
        if not self.no_sync or self._closed:
            return False
        if not duration:
            duration = _DEFAULT_SYNC_MS
        self._sync_interval = max(duration, _MIN_SYNC_MS)
        if self._sync_thread is None or not self._sync_thread.is_alive():
            self._stop.clear()
            self._sync_thread = threading.Thread(
                target=self._sync_loop, name="docstore-sync", daemon=True
            )
            self._sync_thread.start()
        return True

    def _sync_loop(self) -> None:
        while not self._stop.wait(self._sync_interval / 1000):
            self._sync()

    def _sync(self) -> None:
        with self._lock:
            if not self._closed:
                self._conn.commit()

    def _after_write(self) -> None:
        if not self.no_sync:
            self._sync()

    def close(self) -> None:
        """Commit pending writes and close the database."""
        if self._closed:
            return
        self._stop.set()
        if self._sync_thread is not None:
            self._sync_thread.join()
        with self._lock:
            self._conn.commit()
            self._conn.close()
            self._closed = True

    # buckets

    def _has_bucket(self, name: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM buckets WHERE name = ?", (name,)).fetchone()
        return row is not None

    def _ensure_bucket(self, name: str) -> None:
        if not name:
            raise StoreError("bucket name required")
        self._conn.execute("INSERT OR IGNORE INTO buckets (name) VALUES (?)", (name,))

    def _rows(self, name: str) -> list[tuple[bytes, str]]:
        cursor = self._conn.execute(
            "SELECT key, value FROM documents WHERE bucket = ? ORDER BY key", (name,)
        )
        return [(bytes(key), value) for key, value in cursor]

    def _read(self, name: str, key: bytes) -> str:
        row = self._conn.execute(
            "SELECT value FROM documents WHERE bucket = ? AND key = ?", (name, key)
        ).fetchone()
        return row[0] if row else ""

    def _write(self, name: str, key: bytes, value: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO documents (bucket, key, value) VALUES (?, ?, ?)",
            (name, key, value),
        )

    def _remove(self, name: str, key: bytes) -> None:
        self._conn.execute("DELETE FROM documents WHERE bucket = ? AND key = ?", (name, key))

    def _require(self, name: str) -> None:
        if not self._has_bucket(name):
            raise StoreError(_error(f"collection {name} not found"))

    def _next_id(self, collection: str) -> int:
        self._last_ids[collection] = self._last_ids.get(collection, 0) + 1
        return self._last_ids[collection]

    # queries

    def handle_query(self, query: Result | str) -> str:
        """Run one JSON query and return the reply text."""
        parsed = _as_query(query)
        action = parsed.get("action").text

        def unsupported(_: Result) -> str:
            raise StoreError(_error(f"'{action}' is not supported"))

        handlers: dict[str, Callable[[Result], str]] = {
            "aggregate": self.aggregate,
            "count": lambda q: str(count_docs(self.get_data(q))),
            "sum": unsupported,
            "avg": unsupported,
            "min": unsupported,
            "max": unsupported,
            "findOne": self.find_one,
            "findMany": self.find_many,
            "findById": self.find_by_id,
            "insert": self.insert_one,
            "insertMany": self.insert_many,
            "updateById": self.update_by_id,
            "updateOne": self.update_one,
            "updateMany": self.update_many,
            "deleteById": self.delete_by_id,
            "deleteOne": self.delete_one,
            "deleteMany": self.delete_many,
            "transaction": transaction,
            "create_collection": create_collection,
            "delete_collection": delete_collection,
            "getCollections": lambda q: json.dumps({"collections": self.collections()}),
        }
        try:
            handler = handlers.get(action)
            if handler is None:
                raise StoreError(_error(f"unknown '{action}' action"))
            return handler(parsed)
        except (StoreError, AggregateError) as exc:
            return str(exc)

    def put(self, collection: str, value: str) -> None:
        """Store ``value`` under the collection's current last id."""
        with self._lock:
            self._ensure_bucket(collection)
            key = uint64_to_bytes(self._last_ids.get(collection, 0))
            self._write(collection, key, value)
            self._after_write()

    def get_data(self, query: Result | str) -> list[str]:
        """Documents matching ``match``, after ``skip``, at most ``limit`` (default 1000)."""
        query = _as_query(query)
        collection = query.get(COLLECTION).text
        if not collection:
            raise StoreError('{"error":"forgot collection name "}')
        skip = query.get(SKIP).as_int()
        limit = query.get(LIMIT).as_int() or _DEFAULT_LIMIT
        query_filter = query.get(MATCH)
        with self._lock:
            if not self._has_bucket(collection):
                raise StoreError(f"collection {collection} is not exists")
            rows = self._rows(collection)
        data: list[str] = []
        for _, value in rows:
            if limit == 0:
                break
            try:
                ok = match(query_filter, value)
            except FilterError as exc:
                raise StoreError(str(exc)) from exc
            if not ok:
                continue
            if skip:
                skip -= 1
                continue
            data.append(value)
            limit -= 1
        return data

    def insert_one(self, query: Result | str) -> str:
        """Insert ``data`` with the next ``_id`` of the collection."""
        query = _as_query(query)
        collection = query.get(COLLECTION).text
        if not collection:
            raise StoreError('{"error":"forgot collection"}')
        data = query.get("data").string
        if not data:
            raise StoreError('{"error":"forgot data"}')
        with self._lock:
            key = self._next_id(collection)
            try:
                self.put(collection, f'{{"_id":{key}, {data[1:]}')
            except StoreError:
                self._last_ids[collection] -= 1
                raise
        return f'{{"ak":"insert {key} success"}}'

    def insert_many(self, query: Result | str) -> str:
        """Insert every object of the ``data`` array, each with its own ``_id``."""
        query = _as_query(query)
        collection = query.get(COLLECTION).text
        with self._lock:
            for obj in query.get("data").array():
                key = self._next_id(collection)
                try:
                    self.put(collection, f'{{"_id":{key},{obj.string[1:]}')
                except StoreError:
                    self._last_ids[collection] -= 1
                    raise
                self._sync()
        return '{"ak":"insertMany Done"}'

    def find_one(self, query: Result | str) -> str:
        """First matching document after ``skip`` matches."""
        query = _as_query(query)
        collection = query.get(COLLECTION).text
        skip = query.get(SKIP).as_int()
        query_filter = query.get(MATCH)
        with self._lock:
            self._require(collection)
            rows = self._rows(collection)
        for _, value in rows:
            if not _matches(query_filter, value):
                continue
            if skip:
                skip -= 1
                continue
            if value:
                return value
            break
        return '{"status":"nothing match"}'

    def find_many(self, query: Result | str) -> str:
        """Matching documents as a JSON array, sorted and reshaped on request."""
        query = _as_query(query)
        data = self.get_data(query)
        sort_spec = query.get(SORT)
        if sort_spec.exists:
            data = order(data, sort_spec)
        data = refields(data, query.get(FIELDS))
        return "[" + ",".join(data) + "]"

    def find_by_id(self, query: Result | str) -> str:
        """The document stored under ``_id``, or an empty string."""
        query = _as_query(query)
        collection = query.get(COLLECTION).text
        key = _id_key(query.get("_id"))
        with self._lock:
            if not self._has_bucket(collection):
                raise StoreError(_error(f"collection {collection} not exist"))
            return "" if key is None else self._read(collection, key)

    def update_one(self, query: Result | str) -> str:
        """Merge ``data`` into the first matching document."""
        query = _as_query(query)
        query_filter = query.get(MATCH)
        new_obj = query.get("data").raw
        if not new_obj:
            raise StoreError('{"error":"no data to update"}')
        collection = query.get(COLLECTION).text
        with self._lock:
            self._require(collection)
            for key, value in self._rows(collection):
                if _matches(query_filter, value):
                    self._write(collection, key, join([value, new_obj]))
                    self._after_write()
                    break
        return '{"update:": "done"}'

    def update_many(self, query: Result | str) -> str:
        """Merge ``data`` into every matching document."""
        query = _as_query(query)
        query_filter = query.get(MATCH)
        new_obj = query.get("data").raw
        collection = query.get(COLLECTION).text
        with self._lock:
            self._require(collection)
            hits = [(k, v) for k, v in self._rows(collection) if _matches(query_filter, v)]
            for key, value in hits:
                self._write(collection, key, join([value, new_obj]))
            self._after_write()
        return "many items updated"

    def update_by_id(self, query: Result | str) -> str:
        """Merge ``data`` into the document stored under ``_id``."""
        query = _as_query(query)
        doc_id = query.get("_id").string
        if not doc_id:
            raise StoreError('{"error": "forget _id"}')
        new_obj = query.get("data").raw
        collection = query.get(COLLECTION).text
        with self._lock:
            old = self.find_by_id(query)
            key = _id_key(query.get("_id"))
            if not old or key is None:
                raise StoreError(_error(f"document {doc_id} not found"))
            self._write(collection, key, join([old, new_obj]))
            self._after_write()
        return f"{doc_id} updated"

    def delete_one(self, query: Result | str) -> str:
        """Delete the first matching document."""
        query = _as_query(query)
        collection = query.get(COLLECTION).text
        query_filter = query.get(MATCH)
        doc_id = ""
        with self._lock:
            self._require(collection)
            for key, value in self._rows(collection):
                if _matches(query_filter, value):
                    doc_id = str(int.from_bytes(key, "big"))
                    self._remove(collection, key)
                    self._after_write()
                    break
        return f'{{"result":"_id:{doc_id} deleted"}}'

    def delete_many(self, query: Result | str) -> str:
        """Delete every matching document."""
        query = _as_query(query)
        query_filter = query.get(MATCH)
        collection = query.get(COLLECTION).text
        with self._lock:
            self._require(collection)
            hits = [k for k, v in self._rows(collection) if _matches(query_filter, v)]
            for key in hits:
                self._remove(collection, key)
            self._after_write()
        return " many items has removed"

    def delete_by_id(self, query: Result | str) -> str:
        """Delete the document stored under ``_id``."""
        query = _as_query(query)
        doc_id = query.get("_id").string
        if not doc_id:
            raise StoreError('{"error": "_id is required"}')
        collection = query.get(COLLECTION).text
        with self._lock:
            if not self._has_bucket(collection):
                raise StoreError('{"error": "internal error"}')
            key = _id_key(query.get("_id"))
            if key is not None:
                self._remove(collection, key)
                self._after_write()
        return f'{{"aknowlge": "row {doc_id} deleted"}}'

    def aggregate(self, query: Result | str) -> str:
        """Group the matching documents as the query's ``group`` describes."""
        query = _as_query(query)
        records = self.get_data(query)
        if not records:
            return "[]"
        return group_records(query, records)

    def collections(self) -> list[str]:
        """Names of all collections, sorted."""
        with self._lock:
            return [row[0] for row in self._conn.execute("SELECT name FROM buckets ORDER BY name")]