"""Group concurrent write requests into batches applied by one writer thread."""

from __future__ import annotations

import argparse
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Callable, Sequence

MAX_PENDING = 30

_STOP = object()


@dataclass(frozen=True)
class Item:
    """One key/value pair to write into a bucket."""

    bucket: str
    key: bytes
    value: bytes


@dataclass
class Entry:
    """A write request: one item, or several applied together.

    ``done`` resolves to ``op`` once the entry is written, or carries the
    exception the sink raised for it.
    """

    op: int
    items: list[Item]
    done: Future = field(default_factory=Future, repr=False, compare=False)


Sink = Callable[[Sequence[Item]], None]


class BatchWriter:
    """Collects entries while a batch is being written and writes them next.

    Every entry's items go to ``sink`` in submission order. Entries are
    acknowledged only after the whole batch they belong to is written.
    """

    def __init__(self, sink: Sink) -> None:
        self._sink = sink
        self._queue: queue.Queue = queue.Queue(maxsize=MAX_PENDING)
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._closed = False
        self.batch_sizes: list[int] = []

    def start(self) -> None:
        """Start the writer thread; starting twice does nothing."""
        with self._lock:
            if self._closed:
                raise RuntimeError("writer is closed")
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._run, name="docstore-batch-writer", daemon=True
                )
                self._thread.start()

    def submit(self, entry: Entry) -> Future:
        """Queue ``entry`` for writing and return its ``done`` future."""
        if not entry.items:
            raise ValueError(f"entry {entry.op} has no items")
        with self._lock:
            if self._closed:
                raise RuntimeError("writer is closed")
        self._queue.put(entry)
        return entry.done

    def close(self) -> None:
        """Write what is still queued, then stop the writer thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
        if thread is None:
            self._drain_without_thread()
            return
        self._queue.put(_STOP)
        thread.join()

    def _drain_without_thread(self) -> None:
        batch = []
        while True:
            try:
                batch.append(self._queue.get_nowait())
            except queue.Empty:
                break
        if batch:
            self._write(batch)

    def _run(self) -> None:
        while True:
            first = self._queue.get()
            if first is _STOP:
                return
            batch = [first]
            stop = False
            while True:
                try:
                    pending = self._queue.get_nowait()
                except queue.Empty:
                    break
                if pending is _STOP:
                    stop = True
                    break
                batch.append(pending)
            self._write(batch)
            if stop:
                return

    def _write(self, batch: list[Entry]) -> None:
        self.batch_sizes.append(len(batch))
        outcomes: list[BaseException | None] = []
        for entry in batch:
            try:
                self._sink(entry.items)
            except Exception as exc:  # the failure belongs to this entry alone
                outcomes.append(exc)
            else:
                outcomes.append(None)
        for entry, error in zip(batch, outcomes):
            if error is None:
                entry.done.set_result(entry.op)
            else:
                entry.done.set_exception(error)


def _demo_entry(op: int) -> Entry:
    items = [Item("users", f"user:{op}".encode(), f"value:{op}".encode())]
    if op % 5 == 0:
        items.append(
            Item("contacts", f"user:{op + 100}".encode(), f"contacts value :{op + 100}".encode())
        )
    return Entry(op, items)


def main(argv: list[str] | None = None) -> int:
    """Send numbered write requests from many threads and report each outcome."""
    parser = argparse.ArgumentParser(description="Try out batched writes.")
    parser.add_argument("--count", type=int, default=50, help="number of requests")
    args = parser.parse_args(argv)

    buckets: dict[str, dict[bytes, bytes]] = {}
    print_lock = threading.Lock()

    def sink(items: Sequence[Item]) -> None:
        for item in items:
            buckets.setdefault(item.bucket, {})[item.key] = item.value

    writer = BatchWriter(sink)
    writer.start()

    def client(op: int) -> None:
        entry = _demo_entry(op)
        future = writer.submit(entry)
        try:
            result = future.result()
        except Exception as exc:
            with print_lock:
                print(f"failure {op}: {exc}")
            return
        with print_lock:
            if result == op:
                print(f"success {op}")
            else:
                print(f"failure {op}: {result}")

    threads = [threading.Thread(target=client, args=(op,)) for op in range(1, args.count + 1)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    writer.close()

    print(f"{len(writer.batch_sizes)} batches, {sum(len(b) for b in buckets.values())} keys")
    return 0