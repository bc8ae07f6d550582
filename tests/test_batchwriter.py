import threading

import pytest

from docstore.batchwriter import BatchWriter, Entry, Item, main


def _entry(op, bucket="users"):
    return Entry(op, [Item(bucket, f"user:{op}".encode(), f"value:{op}".encode())])


def test_done_resolves_to_op():
    written = []
    writer = BatchWriter(lambda items: written.extend(items))
    writer.start()
    futures = [writer.submit(_entry(op)) for op in range(1, 6)]
    results = [f.result(timeout=5) for f in futures]
    writer.close()
    assert results == [1, 2, 3, 4, 5]
    assert [item.key for item in written] == [f"user:{op}".encode() for op in range(1, 6)]


def test_batch_sizes_cover_every_entry():
    writer = BatchWriter(lambda items: None)
    writer.start()
    futures = [writer.submit(_entry(op)) for op in range(1, 21)]
    for f in futures:
        f.result(timeout=5)
    writer.close()
    assert sum(writer.batch_sizes) == 20


def test_entries_arriving_during_write_form_next_batch():
    started = threading.Event()
    release = threading.Event()
    calls = []

    def sink(items):
        calls.append(items[0].key)
        if len(calls) == 1:
            started.set()
            release.wait(5)

    writer = BatchWriter(sink)
    writer.start()
    first = writer.submit(_entry(1))
    assert started.wait(5)
    rest = [writer.submit(_entry(op)) for op in range(2, 6)]
    release.set()
    assert first.result(timeout=5) == 1
    assert [f.result(timeout=5) for f in rest] == [2, 3, 4, 5]
    writer.close()
    assert writer.batch_sizes == [1, 4]


def test_sink_failure_goes_to_its_entry_only():
    def sink(items):
        if len(items) > 1:
            raise RuntimeError("an error")

    writer = BatchWriter(sink)
    writer.start()
    single = writer.submit(_entry(1))
    pair = writer.submit(
        Entry(2, [Item("users", b"user:2", b"v"), Item("contacts", b"user:102", b"v")])
    )
    assert single.result(timeout=5) == 1
    with pytest.raises(RuntimeError, match="an error"):
        pair.result(timeout=5)
    writer.close()


def test_multi_item_entry_reaches_sink_whole():
    seen = []
    writer = BatchWriter(lambda items: seen.append(list(items)))
    writer.start()
    items = [Item("users", b"user:5", b"value:5"), Item("contacts", b"user:105", b"x")]
    assert writer.submit(Entry(5, items)).result(timeout=5) == 5
    writer.close()
    assert seen == [items]


def test_empty_entry_rejected():
    writer = BatchWriter(lambda items: None)
    with pytest.raises(ValueError):
        writer.submit(Entry(1, []))
    writer.close()


def test_submit_after_close_rejected():
    writer = BatchWriter(lambda items: None)
    writer.start()
    writer.close()
    with pytest.raises(RuntimeError):
        writer.submit(_entry(1))


def test_close_without_start_writes_queued_entries():
    written = []
    writer = BatchWriter(lambda items: written.extend(items))
    future = writer.submit(_entry(3))
    writer.close()
    assert future.result(timeout=5) == 3
    assert written[0].value == b"value:3"


def test_main_reports_every_request(capsys):
    assert main(["--count", "10"]) == 0
    lines = capsys.readouterr().out.splitlines()
    successes = {line for line in lines if line.startswith("success ")}
    assert successes == {f"success {op}" for op in range(1, 11)}
    assert not any(line.startswith("failure") for line in lines)