"""Sorting, grouping and accumulation over lists of raw JSON documents."""

from __future__ import annotations

import functools
import json
import math
from typing import Callable, Sequence

from .filter import FilterError, match
from .rawjson import (
    GLIMIT,
    GMATCH,
    GSKIP,
    GSORT,
    JsonType,
    Result,
    delete,
    get,
    parse,
    set_value,
)

_DEFAULT_LIMIT = 1000
_NO_GROUP_ID = '{"code":0, "status":"a group specification must include an _id"}'
_MIN_START = float(9223372036854775807)
_MAX_START = float(-9223372036854775808)


class AggregateError(ValueError):
    """An aggregation request is malformed; the message is the reply text."""


def _as_result(value: Result | str) -> Result:
    return parse(value) if isinstance(value, str) else value


def _field(value: Result | str) -> Result:
    """A field spec; a plain string names a field."""
    if isinstance(value, str):
        return Result(JsonType.STRING, json.dumps(value), value, 0.0, True)
    return value


def _less(a: Result, b: Result, fields: list[tuple[str, bool]]) -> bool:
    for name, ascending in fields:
        left, right = a.get(name), b.get(name)
        if left.value() == right.value() and left.type == right.type:
            continue
        if left.type is JsonType.STRING:
            return left.text < right.text if ascending else left.text > right.text
        if left.type is JsonType.NUMBER:
            return left.num < right.num if ascending else left.num > right.num
        return True
    return False


def order(data: Sequence[str], params: Result | str) -> list[str]:
    """Sort documents by the fields of ``params``; 1 ascends, anything else descends."""
    params = _as_result(params)
    fields = [(key.text, value.as_int() == 1) for key, value in params.items()]
    docs = [parse(raw) for raw in data]

    def compare(a: Result, b: Result) -> int:
        if _less(a, b, fields):
            return -1
        if _less(b, a, fields):
            return 1
        return 0

    return [doc.raw for doc in sorted(docs, key=functools.cmp_to_key(compare))]


def _div(a: float, b: float) -> float:
    if b:
        return a / b
    if a == 0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


_BINARY: dict[str, Callable[[float, float], float]] = {
    "$multiply": lambda a, b: a * b,
    "$add": lambda a, b: a + b,
    "$sub": lambda a, b: a - b,
    "$div": _div,
}


def _values(id_field: str, field: Result, records: Sequence[str]) -> list[tuple[str, float]]:
    """(group id, value) for every record, as the field spec computes it."""
    if field.type is JsonType.STRING:
        return [(get(r, id_field).text, get(r, field.text).num) for r in records]
    if field.type is not JsonType.JSON:
        return []
    for op, args in field.items():
        compute = _BINARY.get(op.text)
        if compute is None:
            raise AggregateError(f"unknown {op.text} operator")
        first, second = args.get("0").text, args.get("1").text
        return [
            (get(r, id_field).text, compute(get(r, first).num, get(r, second).num))
            for r in records
        ]
    return []


def sum_by(id_field: str, field: Result | str, records: Sequence[str]) -> dict[str, float]:
    """Sum of the field, or of a binary expression, per group id."""
    totals: dict[str, float] = {}
    for gid, value in _values(id_field, _field(field), records):
        totals[gid] = totals.get(gid, 0.0) + value
    return totals


def min_by(id_field: str, field: Result | str, records: Sequence[str]) -> dict[str, float]:
    """Smallest value of the field, or of a binary expression, per group id."""
    values = _values(id_field, _field(field), records)
    result = {get(r, id_field).text: _MIN_START for r in records}
    for gid, value in values:
        if result[gid] > value:
            result[gid] = value
    return result


def max_by(id_field: str, field: Result | str, records: Sequence[str]) -> dict[str, float]:
    """Largest value of the field, or of a binary expression, per group id."""
    values = _values(id_field, _field(field), records)
    result = {get(r, id_field).text: _MAX_START for r in records}
    for gid, value in values:
        if result[gid] < value:
            result[gid] = value
    return result


def average_by(id_field: str, field: Result | str, records: Sequence[str]) -> dict[str, float]:
    """Mean of the field, or of a binary expression, per group id."""
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for gid, value in _values(id_field, _field(field), records):
        totals[gid] = totals.get(gid, 0.0) + value
        counts[gid] = counts.get(gid, 0) + 1
    return {gid: totals[gid] / count for gid, count in counts.items()}


def count_by(id_field: str, records: Sequence[str]) -> dict[str, int]:
    """Number of records per value of ``id_field``."""
    counts: dict[str, int] = {}
    for record in records:
        gid = get(record, id_field).text
        counts[gid] = counts.get(gid, 0) + 1
    return counts


def count_docs(records: Sequence[str]) -> int:
    """Number of records."""
    return len(records)


def count_field(field: str, records: Sequence[str]) -> int:
    """Number of records in which ``field`` exists."""
    return sum(1 for record in records if get(record, field).exists)


def _accumulate(op: str, id_field: str, field: Result, records: Sequence[str]) -> dict:
    if op == "$count":
        return count_by(id_field, records)
    accumulators = {"$max": max_by, "$min": min_by, "$sum": sum_by, "$avg": average_by}
    accumulate = accumulators.get(op)
    if accumulate is None:
        raise AggregateError(f"unknown '{op}' aggrigate operator !")
    return accumulate(id_field, field, records)


def aggregate(query: Result | str, records: Sequence[str]) -> str:
    """Group ``records`` as ``query["group"]`` says and return a JSON array.

    The groups are then filtered by ``gmatch``, sorted by ``gsort`` and
    paged by ``gskip`` and ``glimit`` (default 1000).
    """
    query = _as_result(query)
    if not records:
        return "[]"

    group = query.get("group")
    if not group.get("_id").exists:
        raise AggregateError(_NO_GROUP_ID)
    id_field = group.get("_id").text
    if get(records[0], id_field).text == "":
        raise AggregateError(f"field '{id_field}' is not exists")

    groups: dict[str, str] = {}
    message = ""
    for key, spec in group.items():
        name = key.text
        if name != "_id" and spec.type is not JsonType.JSON:
            message = f"The field '{name}' must be an accumulator object!"
            break
        if spec.type is JsonType.STRING:
            for record in records:
                value = get(record, spec.string).string
                groups[value] = set_value("", name, value)
        elif spec.type is JsonType.JSON:
            for op, field in spec.items():
                try:
                    results = _accumulate(op.text, id_field, field, records)
                except AggregateError as exc:
                    message = str(exc)
                    break
                for gid, value in results.items():
                    groups[gid] = set_value(groups.get(gid, ""), name, value)
        else:
            message = "opss! something wrrong!"
            break
    if message:
        raise AggregateError(message)

    group_filter = query.get(GMATCH)
    limit = query.get(GLIMIT).as_int() or _DEFAULT_LIMIT
    skip = query.get(GSKIP).as_int()

    def keep(doc: str) -> bool:
        try:
            return match(group_filter, doc)
        except FilterError:
            return False

    selected = [doc for doc in groups.values() if keep(doc)]
    sort_spec = query.get(GSORT)
    if sort_spec.exists:
        selected = order(selected, sort_spec)

    selected = [] if skip < 0 else selected[skip:]
    if limit > 0:
        selected = selected[:limit]
    return "[" + ",".join(selected) + "]"


def rekey(old_key: str, new_key: str, document: str) -> str:
    """Rename a top-level field, flattening the document to scalar members.

    Members whose value ends with ``}`` are dropped; numbers stay unquoted,
    every other value is written back as a string.
    """
    members = []
    for key, value in parse(document).items():
        name = new_key if key.string == old_key else key.string
        members.append((name, value.string))

    out = "{"
    for name, value in members:
        if value.endswith("}"):
            continue
        if parse(value).type is JsonType.NUMBER:
            out += f'"{name}":{value},'
        else:
            out += f'"{name}":"{value}",'
    return out[:-1] + "}"


def refields(data: Sequence[str], fields: Result | str) -> list[str]:
    """Remove fields mapped to 0 and rename fields mapped to a new name."""
    fields = _as_result(fields)
    spec: dict[str, str] = {}
    if fields.is_object:
        spec = {key.text: value.string for key, value in fields.items()}
    removed = [name for name, target in spec.items() if target == "0"]
    renamed = [(name, target) for name, target in spec.items() if target != "0"]

    result = []
    for doc in data:
        for name in removed:
            doc = delete(doc, name)
        for old, new in renamed:
            doc = rekey(old, new, doc)
        result.append(doc)
    return result