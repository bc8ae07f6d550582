"""Matching of JSON documents against query filters."""

from __future__ import annotations

import re
from typing import Callable

from .rawjson import JsonType, Result, get, parse


class FilterError(ValueError):
    """A filter uses an unknown operator or a malformed pattern."""


_STRING_OPS: dict[str, Callable[[str, str], bool]] = {
    "$st": lambda d, q: d.startswith(q),
    "$en": lambda d, q: d.endswith(q),
    "$c": lambda d, q: q in d,
    "$nst": lambda d, q: not d.startswith(q),
    "$nen": lambda d, q: not d.endswith(q),
    "$nc": lambda d, q: q not in d,
    "$gt": lambda d, q: d > q,
    "$lt": lambda d, q: d < q,
    "$gte": lambda d, q: d >= q,
    "$lte": lambda d, q: d <= q,
    "$eq": lambda d, q: d == q,
    "$ne": lambda d, q: d != q,
    "$glob": lambda d, q: is_match(q, d),
}

_NUMBER_OPS: dict[str, Callable[[float, float], bool]] = {
    "$gt": lambda d, q: d > q,
    "$lt": lambda d, q: d < q,
    "$gte": lambda d, q: d >= q,
    "$lte": lambda d, q: d <= q,
    "$eq": lambda d, q: d == q,
    "$ne": lambda d, q: d != q,
}


def _in(dval: Result, values: list[Result]) -> bool:
    if dval.type is JsonType.STRING:
        return any(dval.text == v.text for v in values)
    return any(dval.num == v.num for v in values)


_ARRAY_OPS: dict[str, Callable[[Result, list[Result]], bool]] = {
    "$in": _in,
    "$nin": lambda d, vs: not _in(d, vs),
    "$can": lambda d, vs: any(v.text in d.text for v in vs),
    "$nca": lambda d, vs: not any(v.text in d.text for v in vs),
    "$cal": lambda d, vs: all(v.text in d.text for v in vs),
    "$ncal": lambda d, vs: not all(v.text in d.text for v in vs),
    "$san": lambda d, vs: any(d.text.startswith(v.text) for v in vs),
    "$nsa": lambda d, vs: not any(d.text.startswith(v.text) for v in vs),
    "$ean": lambda d, vs: any(d.text.endswith(v.text) for v in vs),
    "$nea": lambda d, vs: not any(d.text.endswith(v.text) for v in vs),
}


def _quiet_match(query_filter: Result, data: str) -> bool:
    try:
        return match(query_filter, data)
    except FilterError:
        return False


def _apply(key: Result, qval: Result, op: str, arg: Result, dval: Result, data: str) -> bool:
    if arg.type is JsonType.STRING:
        check = _STRING_OPS.get(op)
        if check is None:
            raise FilterError(f"unknown '{op}' operation")
        return check(dval.text, arg.text)
    if op == "sub":
        return True
    if op in _NUMBER_OPS:
        return _NUMBER_OPS[op](dval.num, arg.num)
    if op in _ARRAY_OPS:
        return _ARRAY_OPS[op](dval, arg.array())
    if key.text == "$and":
        return all(_quiet_match(sub, data) for sub in qval.array())
    if key.text == "$or":
        return any(_quiet_match(sub, data) for sub in qval.array())
    raise FilterError(f"unknown {op} operator")


def _match_field(key: Result, qval: Result, data: str) -> bool:
    dval = get(data, key.text)
    if qval.type is JsonType.JSON:
        return all(_apply(key, qval, op.text, arg, dval, data) for op, arg in qval.items())
    if qval.type is JsonType.NUMBER and qval.num != dval.num:
        return False
    if qval.text != dval.text:
        return False
    return qval.type == dval.type


def match(query_filter: Result | str, data: str) -> bool:
    """Tell whether the document ``data`` satisfies ``query_filter``.

    An absent or empty filter matches every document.
    """
    if isinstance(query_filter, str):
        query_filter = parse(query_filter)
    return all(_match_field(key, qval, data) for key, qval in query_filter.items())


def _glob_to_regex(pattern: str, i: int = 0, in_alt: bool = False) -> tuple[str, int]:
    out: list[str] = []
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\":
            if i + 1 >= n:
                raise FilterError(f"bad glob pattern {pattern!r}")
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if c == "*":
            out.append(".*")
        elif c == "?":
            out.append(".")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end < 0:
                raise FilterError(f"bad glob pattern {pattern!r}")
            body = pattern[i + 1:end]
            negate = body.startswith("!")
            if negate:
                body = body[1:]
            if not body:
                raise FilterError(f"bad glob pattern {pattern!r}")
            escaped = "".join("-" if ch == "-" else re.escape(ch) for ch in body)
            out.append(f"[{'^' if negate else ''}{escaped}]")
            i = end
        elif c == "{":
            options: list[str] = []
            i += 1
            while True:
                part, i = _glob_to_regex(pattern, i, True)
                options.append(part)
                if i >= n:
                    raise FilterError(f"bad glob pattern {pattern!r}")
                if pattern[i] == "}":
                    break
                i += 1
            out.append("(?:" + "|".join(options) + ")")
        elif in_alt and c in ",}":
            return "".join(out), i
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out), i


_globs: dict[str, re.Pattern[str]] = {}


def is_match(pattern: str, text: str) -> bool:
    """Match ``text`` against a glob: ``*``, ``?``, ``[...]``, ``[!...]``, ``{a,b}``."""
    compiled = _globs.get(pattern)
    if compiled is None:
        regex, _ = _glob_to_regex(pattern)
        compiled = re.compile(regex, re.DOTALL)
        _globs[pattern] = compiled
    return compiled.fullmatch(text) is not None