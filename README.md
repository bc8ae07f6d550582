# docstore

An embedded store for JSON documents, kept in a single SQLite file.
Documents live in named collections and each one gets an increasing
numeric `_id` on insert. Every operation is one JSON query string with an
`action` field, and every answer is a string as well, so the store can be
driven from Python, from a WebSocket client or from anything else that can
send text.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Using the store from Python

```python
from docstore.store import Store

with Store("people.db") as db:
    print(db.handle_query(
        '{"collection":"users", "action":"insert", "data":{"name":"adam", "age":23}}'
    ))
    print(db.handle_query(
        '{"collection":"users", "action":"findMany", "match":{"age":{"$gte":18}}}'
    ))
```

Writes are committed by a background thread every 100 ms, and on
`close()` (or when the `with` block ends). `run_sync(milliseconds)` changes
the interval; values below 50 are raised to 50, and 0 means 200.

`handle_query` dispatches on `action` and always returns text; a failure
comes back as its error message, usually `{"error": "..."}`.

| action           | what it does                                                  |
|------------------|---------------------------------------------------------------|
| `insert`         | add the object in `data` to `collection`                      |
| `insertMany`     | add every object of the array in `data`                       |
| `findOne`        | first document that fits `match`, after `skip` matches        |
| `findMany`       | fitting documents as an array; `skip`, `limit`, `sort`, `fields` |
| `findById`       | the document stored under `_id`, or an empty string           |
| `updateOne`      | merge `data` into the first fitting document                  |
| `updateMany`     | merge `data` into every fitting document                      |
| `updateById`     | merge `data` into the document stored under `_id`             |
| `deleteOne`      | remove the first fitting document                             |
| `deleteMany`     | remove every fitting document                                 |
| `deleteById`     | remove the document stored under `_id`                        |
| `count`          | number of fitting documents                                   |
| `aggregate`      | group and accumulate (see below)                              |
| `getCollections` | `{"collections": [...]}`, names sorted                        |

A collection comes into being with its first insert. `limit` defaults to
1000.

The same operations are methods of `Store`: `insert_one`, `insert_many`,
`find_one`, `find_many`, `find_by_id`, `update_one`, `update_many`,
`update_by_id`, `delete_one`, `delete_many`, `delete_by_id`, `aggregate`
and `collections`. Each takes the query as a string or as a parsed
`docstore.rawjson.Result`. Called directly they raise
`docstore.store.StoreError` (or `docstore.aggregate.AggregateError`) where
`handle_query` would return the message.

### Matching

A `match` object compares fields of a document; an empty or missing match
fits every document. A plain value means equality (`{"name":"adam"}`,
`{"age":18}`, `{"graded":true}`); an object holds operators:

- comparison: `$eq`, `$ne`, `$gt`, `$lt`, `$gte`, `$lte` (a string operand
  compares as text, a number as a number)
- text: `$st`, `$en`, `$c` (starts with, ends with, contains) and their
  negations `$nst`, `$nen`, `$nc`; `$glob` for a pattern with `*`, `?`,
  `[...]`, `[!...]` and `{a,b}`
- lists: `$in`, `$nin`, `$can`, `$nca`, `$cal`, `$ncal`, `$san`, `$nsa`,
  `$ean`, `$nea`
- logic: `$and` and `$or`, each taking an array of match objects

```json
{"$or":[{"name":{"$eq":"adam"}}, {"age":{"$eq":29}}]}
```

The matcher is usable on its own as `docstore.filter.match(filter, document)`;
an unknown operator raises `docstore.filter.FilterError`.

### Sorting and fields

`sort` maps field names to `1` (ascending) or anything else (descending).
`fields` maps a field name to `0` to drop it, or to a new name to rename
it. Renaming rewrites each document with its top-level scalar members
only: nested objects are left out and values other than numbers are
written as strings.

### Aggregation

```json
{"collection":"users", "action":"aggregate",
 "group":{"_id":"name", "total":{"$sum":"age"}, "n":{"$count":""}}}
```

Accumulators are `$count`, `$sum`, `$min`, `$max` and `$avg`. An
accumulator's field may be a field name or an expression
`{"$multiply":["a","b"]}`, with `$add`, `$sub` and `$div` as well. The
grouped results can be filtered, sorted and paged with `gmatch`, `gsort`,
`gskip` and `glimit` (default 1000). The helpers behind this, such as
`order`, `sum_by`, `average_by`, `count_by` and `refields`, live in
`docstore.aggregate`.

## Commands

- `docstore-server` serves a store over WebSocket: each message is a query
  and the reply is its result (text for text, binary for binary). Options:
  `--db` (default `docstore.db`), `--host` (default `127.0.0.1`), `--port`
  (default `8080`).
- `docstore-demo` inserts a random user into the `users` collection and
  prints two searches. Options: `--db` (default `test.db`), `--seed`.
- `docstore-kv` fills a fresh `docstore.kvstore.KVStore` with sample keys
  and prints the first key for several prefixes. Option: `--db` (default
  `test.db`; the file is replaced).
- `docstore-writer` sends numbered requests from many threads to a
  `docstore.batchwriter.BatchWriter`, which writes them in batches and
  acknowledges each entry after its batch is written. Option: `--count`
  (default 50).

## What it does not do

- The `transaction` action is refused: there are no multi-query
  transactions.
- `create_collection` and `delete_collection` are refused; collections are
  created by inserting and cannot be dropped as a whole.
- The top-level `sum`, `avg`, `min` and `max` actions are refused; use
  `aggregate` with the matching accumulator.
- The WebSocket server has no authentication and no access control.