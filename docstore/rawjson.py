"""Lenient access to raw JSON text that keeps the original bytes of values."""

from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass
from typing import Any, Iterator

# Query field names.
DB_NAME = "db"
COLLECTION = "collection"
MATCH = "match"
SUB_QUERY = "subQuery"
FIELDS = "fields"
SORT = "sort"
SKIP = "skip"
LIMIT = "limit"
GMATCH = "gmatch"
GSORT = "gsort"
GSKIP = "gskip"
GLIMIT = "glimit"
SEPARATOR = "-:-"


class JsonType(enum.IntEnum):
    NULL = 0
    FALSE = 1
    NUMBER = 2
    STRING = 3
    TRUE = 4
    JSON = 5


def _skip_ws(text: str, i: int) -> int:
    while i < len(text) and text[i] <= " ":
        i += 1
    return i


def _scan_string(text: str, i: int) -> int:
    i += 1
    while i < len(text):
        c = text[i]
        if c == "\\":
            i += 2
            continue
        if c == '"':
            return i + 1
        i += 1
    return len(text)


def _scan_value(text: str, i: int) -> int:
    c = text[i]
    if c == '"':
        return _scan_string(text, i)
    if c in "{[":
        depth = 0
        while i < len(text):
            c = text[i]
            if c == '"':
                i = _scan_string(text, i)
                continue
            if c in "{[":
                depth += 1
            elif c in "}]":
                depth -= 1
                if depth == 0:
                    return i + 1
            i += 1
        return len(text)
    j = i
    while j < len(text) and text[j] > " " and text[j] not in ",]}:":
        j += 1
    return max(j, i + 1)


def _members(text: str) -> Iterator[tuple[int, int, int, int]]:
    """Yield (key_start, key_end, value_start, value_end) of an object's members."""
    i = text.index("{") + 1 if "{" in text else len(text)
    n = len(text)
    while True:
        i = _skip_ws(text, i)
        if i >= n or text[i] == "}":
            return
        if text[i] == ",":
            i += 1
            continue
        if text[i] != '"':
            return
        kstart, kend = i, _scan_string(text, i)
        i = _skip_ws(text, kend)
        if i < n and text[i] in ":,":
            i = _skip_ws(text, i + 1)
        if i >= n or text[i] in "}]":
            return
        vend = _scan_value(text, i)
        yield kstart, kend, i, vend
        i = vend


def _elements(text: str) -> Iterator[str]:
    i = text.index("[") + 1
    n = len(text)
    while True:
        i = _skip_ws(text, i)
        if i >= n or text[i] == "]":
            return
        if text[i] in ",:":
            i += 1
            continue
        end = _scan_value(text, i)
        yield text[i:end]
        i = end


def _decode_string(raw: str) -> str:
    try:
        return json.loads(raw)
    except ValueError:
        return raw.strip('"')


def _make(raw: str) -> "Result":
    c = raw[0]
    if c == '"':
        return Result(JsonType.STRING, raw, _decode_string(raw), 0.0, True)
    if c in "{[":
        return Result(JsonType.JSON, raw, "", 0.0, True)
    if c == "t":
        return Result(JsonType.TRUE, raw, "", 0.0, True)
    if c == "f":
        return Result(JsonType.FALSE, raw, "", 0.0, True)
    if c == "-" or c.isdigit():
        try:
            num = float(raw)
        except ValueError:
            num = 0.0
        return Result(JsonType.NUMBER, raw, "", num, True)
    return Result(JsonType.NULL, raw, "", 0.0, True)


@dataclass(frozen=True)
class Result:
    """One JSON value: its type, raw text, string and number forms."""

    type: JsonType = JsonType.NULL
    raw: str = ""
    text: str = ""
    num: float = 0.0
    exists: bool = False

    @property
    def is_object(self) -> bool:
        return self.type is JsonType.JSON and self.raw.startswith("{")

    @property
    def is_array(self) -> bool:
        return self.type is JsonType.JSON and self.raw.startswith("[")

    @property
    def string(self) -> str:
        """The value as text: strings unquoted, other values as written."""
        if self.type is JsonType.STRING:
            return self.text
        if self.type is JsonType.NULL:
            return ""
        return self.raw

    def as_int(self) -> int:
        """The value as an integer, 0 when it has none."""
        if self.type is JsonType.NUMBER:
            return int(self.num) if math.isfinite(self.num) else 0
        if self.type is JsonType.STRING:
            try:
                return int(float(self.text))
            except ValueError:
                return 0
        if self.type is JsonType.TRUE:
            return 1
        return 0

    def get(self, path: str) -> "Result":
        """Follow a dot-separated path through objects and arrays."""
        current = self
        for part in path.split("."):
            current = current._child(part)
            if not current.exists:
                return Result()
        return current

    def _child(self, part: str) -> "Result":
        if self.is_object:
            for kstart, kend, vstart, vend in _members(self.raw):
                if _decode_string(self.raw[kstart:kend]) == part:
                    return _make(self.raw[vstart:vend])
        elif self.is_array:
            if part == "#":
                count = sum(1 for _ in _elements(self.raw))
                return _make(str(count))
            if part.isdigit():
                for index, raw in enumerate(_elements(self.raw)):
                    if index == int(part):
                        return _make(raw)
        return Result()

    def items(self) -> Iterator[tuple["Result", "Result"]]:
        """Yield (key, value) pairs; array keys are indexes, a scalar yields itself."""
        if self.is_object:
            for kstart, kend, vstart, vend in _members(self.raw):
                yield _make(self.raw[kstart:kend]), _make(self.raw[vstart:vend])
        elif self.is_array:
            for index, raw in enumerate(_elements(self.raw)):
                yield Result(JsonType.NUMBER, str(index), "", float(index), True), _make(raw)
        elif self.exists:
            yield Result(), self

    def array(self) -> list["Result"]:
        """Elements of an array; a single scalar becomes a one-element list."""
        if self.is_array:
            return [_make(raw) for raw in _elements(self.raw)]
        if not self.exists or self.type is JsonType.NULL:
            return []
        return [self]

    def value(self) -> Any:
        """The value as a Python object."""
        if self.type is JsonType.NUMBER:
            return self.num
        if self.type is JsonType.STRING:
            return self.text
        if self.type is JsonType.TRUE:
            return True
        if self.type is JsonType.FALSE:
            return False
        if self.type is JsonType.JSON:
            try:
                return json.loads(self.raw)
            except ValueError:
                return None
        return None


def parse(text: str) -> Result:
    """Parse the first JSON value in ``text``."""
    i = _skip_ws(text, 0)
    if i >= len(text):
        return Result()
    return _make(text[i:_scan_value(text, i)])


def get(text: str, path: str) -> Result:
    """Look up ``path`` in the JSON ``text``."""
    return parse(text).get(path)


def join(raws: list[str]) -> str:
    """Merge objects; later values win, keys keep their first position."""
    order: list[str] = []
    merged: dict[str, tuple[str, str]] = {}
    for raw in raws:
        doc = parse(raw)
        if not doc.is_object:
            continue
        for kstart, kend, vstart, vend in _members(doc.raw):
            key_raw = doc.raw[kstart:kend]
            key = _decode_string(key_raw)
            if key not in merged:
                order.append(key)
            merged[key] = (key_raw, doc.raw[vstart:vend])
    return "{" + ",".join(f"{merged[k][0]}:{merged[k][1]}" for k in order) + "}"


def _encode(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Result):
        return value.raw or "null"
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def set_value(text: str, path: str, value: Any) -> str:
    """Set ``path`` in a JSON object to ``value``; empty text starts an object."""
    doc = parse(text)
    if not doc.exists:
        text = "{}"
    elif not doc.is_object:
        raise ValueError("can only set values in a JSON object")
    head, _, rest = path.partition(".")
    for kstart, kend, vstart, vend in _members(text):
        if _decode_string(text[kstart:kend]) == head:
            old = text[vstart:vend]
            new = set_value(old if parse(old).is_object else "", rest, value) if rest else _encode(value)
            return text[:vstart] + new + text[vend:]
    new = set_value("", rest, value) if rest else _encode(value)
    member = json.dumps(head, ensure_ascii=False) + ":" + new
    close = text.rindex("}")
    has_members = any(True for _ in _members(text))
    return text[:close] + ("," if has_members else "") + member + text[close:]


def delete(text: str, path: str) -> str:
    """Remove ``path`` from a JSON object; text is unchanged if it is absent."""
    if not parse(text).is_object:
        return text
    head, _, rest = path.partition(".")
    for kstart, kend, vstart, vend in _members(text):
        if _decode_string(text[kstart:kend]) != head:
            continue
        if rest:
            return text[:vstart] + delete(text[vstart:vend], rest) + text[vend:]
        after = _skip_ws(text, vend)
        if after < len(text) and text[after] == ",":
            return text[:kstart] + text[_skip_ws(text, after + 1):]
        before = kstart - 1
        while before >= 0 and text[before] <= " ":
            before -= 1
        if before >= 0 and text[before] == ",":
            return text[:before] + text[vend:]
        return text[:kstart] + text[vend:]
    return text