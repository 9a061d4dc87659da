"""JSON / JSON5 entry points.

    from_str(text)                -> Result[JsonValue]
    from_str_prefix(text)         -> Result[(JsonValue, end_offset)]
    from_str_into(text, target)   -> Result[None]
    from_reader(handle)           -> Result[JsonValue]
    from_file(path)               -> Result[JsonValue]
    to_string(value)              -> Result[str]
    to_string_pretty(value)       -> Result[str]
    to_string_pretty_indent(value, indent) -> Result[str]
    to_writer(handle, value)      -> Result[None]
    to_writer_pretty(handle, value) -> Result[None]

Parsing functions accept ``json5=True`` for the JSON5 dialect,
``max_depth=`` to bound nesting, ``visitor=`` to build something other than
a JsonValue, and ``duplicate_keys=`` ("last", "first", "error") for the
default value visitor.  Serializing functions accept a JsonValue, any
object with a ``serialize`` method, or plain Python data.

Input may be ``str`` or UTF-8 ``bytes``; error offsets count characters of
the decoded text.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from ._constants import DEFAULT_INDENT, DEFAULT_MAX_DEPTH
from ._io import PathLike, decode_utf8, guard_write, read_file, read_handle, text_sink
from ._json_text import JsonDeserializer, JsonSerializer
from ._json_value import (
    NULL,
    Array,
    Bool,
    JsonValue,
    JsonValueVisitor,
    Null,
    Number,
    Object,
    String,
)
from ._result import Ok, Result
from ._value import DUP_LAST
from ._visitor import Visitor, run_guarded

__all__ = [
    "from_str", "from_str_prefix", "from_str_into", "from_reader", "from_file",
    "to_string", "to_string_pretty", "to_string_pretty_indent",
    "to_writer", "to_writer_pretty",
    "JsonValue", "Null", "NULL", "Bool", "Number", "String", "Array", "Object",
    "JsonValueVisitor", "JsonDeserializer", "JsonSerializer",
]

logger = logging.getLogger(__name__)


def _logged(res: Result[Any], action: str) -> Result[Any]:
    if res.is_err():
        logger.debug("JSON %s failed: %s", action, res.error)
    return res


def _parse(text: Any, visitor: Optional[Visitor], json5: bool, max_depth: int,
           duplicate_keys: str, whole: bool) -> Result[Any]:
    decoded = decode_utf8(text)
    if decoded.is_err():
        return _logged(decoded, "decode")
    if visitor is None:
        visitor = JsonValueVisitor(duplicate_keys)
    de = JsonDeserializer(decoded.value, json5=json5, max_depth=max_depth)

    def run() -> Result[Any]:
        res = de.deserialize_any(visitor)
        if res.is_err():
            return res
        if whole:
            end = de.end()
            if end.is_err():
                return end
            return res
        return Ok((res.value, de.offset))

    return _logged(run_guarded(max_depth, run), "parse")


# ── Parsing ───────────────────────────────────────────────────

def from_str(text: Any, *, json5: bool = False, max_depth: int = DEFAULT_MAX_DEPTH,
             visitor: Optional[Visitor] = None,
             duplicate_keys: str = DUP_LAST) -> Result[Any]:
    """Parse exactly one document; anything but whitespace after it is ERR_TRAILING_DATA."""
    return _parse(text, visitor, json5, max_depth, duplicate_keys, whole=True)


def from_str_prefix(text: Any, *, json5: bool = False, max_depth: int = DEFAULT_MAX_DEPTH,
                    visitor: Optional[Visitor] = None,
                    duplicate_keys: str = DUP_LAST) -> Result[Tuple[Any, int]]:
    """Parse one value from the front of ``text``.

    Returns ``Ok((value, end))`` where ``end`` is the offset just past the
    value; whatever follows is left alone.
    """
    return _parse(text, visitor, json5, max_depth, duplicate_keys, whole=False)


def from_str_into(text: Any, target: Any, *, json5: bool = False,
                  max_depth: int = DEFAULT_MAX_DEPTH) -> Result[None]:
    """Fill ``target`` in place through its ``deserialize(deserializer)`` method."""
    decoded = decode_utf8(text)
    if decoded.is_err():
        return _logged(decoded, "decode")
    de = JsonDeserializer(decoded.value, json5=json5, max_depth=max_depth)

    def run() -> Result[None]:
        res = de._stick(target.deserialize(de))
        if res.is_err():
            return res
        return de.end()

    return _logged(run_guarded(max_depth, run), "parse")


def from_reader(reader: Any, **kwargs: Any) -> Result[Any]:
    """Read a text or binary handle to the end and parse it like ``from_str``."""
    data = read_handle(reader)
    if data.is_err():
        return data
    return from_str(data.value, **kwargs)


def from_file(path: PathLike, **kwargs: Any) -> Result[Any]:
    data = read_file(path)
    if data.is_err():
        return data
    return from_str(data.value, **kwargs)


# ── Serializing ───────────────────────────────────────────────

def _emit(value: Any, write: Any, indent: Optional[str], max_depth: int) -> Result[None]:
    ser = JsonSerializer(write, indent=indent, max_depth=max_depth)

    def run() -> Result[None]:
        res = ser.serialize_value(value)
        if res.is_err():
            return res
        return ser.end()

    return _logged(run_guarded(max_depth, run), "serialize")


def _render(value: Any, indent: Optional[str], max_depth: int) -> Result[str]:
    parts = []
    res = _emit(value, parts.append, indent, max_depth)
    if res.is_err():
        return res
    return Ok("".join(parts))


def to_string(value: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Result[str]:
    """Compact text: no whitespace between tokens."""
    return _render(value, None, max_depth)


def to_string_pretty(value: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Result[str]:
    return _render(value, DEFAULT_INDENT, max_depth)


def to_string_pretty_indent(value: Any, indent: str, *,
                            max_depth: int = DEFAULT_MAX_DEPTH) -> Result[str]:
    """Pretty text with ``indent`` (spaces and/or tabs) per nesting level."""
    return _render(value, indent, max_depth)


def to_writer(writer: Any, value: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Result[None]:
    """Stream compact text into a text or binary handle.

    Output is written as it is produced; on Err the handle may hold a
    partial document.
    """
    return guard_write(writer, lambda: _emit(value, text_sink(writer), None, max_depth))


def to_writer_pretty(writer: Any, value: Any, *, indent: str = DEFAULT_INDENT,
                     max_depth: int = DEFAULT_MAX_DEPTH) -> Result[None]:
    return guard_write(writer, lambda: _emit(value, text_sink(writer), indent, max_depth))
