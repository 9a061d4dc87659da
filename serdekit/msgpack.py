"""MessagePack entry points.

    from_array_to_value(data)        -> Result[MsgpackValue]
    from_array(data, visitor)        -> Result[Any]
    from_array_into(data, target)    -> Result[None]
    from_reader(handle)              -> Result[MsgpackValue]
    from_file(path)                  -> Result[MsgpackValue]
    to_array(value)                  -> Result[bytes]
    to_writer(handle, value)         -> Result[None]
    to_file(path, value)             -> Result[None]
    to_string(value)                 -> Result[str]   hex dump, not a wire format

Decoding always consumes the whole buffer; leftover bytes are
ERR_TRAILING_DATA.  Encoding is canonical (see ``_msgpack_codec``) and
buffered, so a failed encode writes nothing to a handle or file.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ._constants import DEFAULT_MAX_DEPTH
from ._errors import ERR_IO, ErrorInfo
from ._io import PathLike, guard_write, read_file, read_handle, write_file
from ._msgpack_codec import MsgpackDeserializer, MsgpackSerializer
from ._msgpack_value import (
    NIL,
    Array,
    Bin,
    Bool,
    Ext,
    Float32,
    Float64,
    Int,
    Map,
    MsgpackValue,
    MsgpackValueVisitor,
    Nil,
    Str,
    UInt,
)
from ._result import OK_UNIT, Err, Ok, Result
from ._value import DUP_LAST
from ._visitor import Visitor, run_guarded

__all__ = [
    "from_array_to_value", "from_array", "from_array_into", "from_reader", "from_file",
    "to_array", "to_writer", "to_file", "to_string", "hexdump",
    "MsgpackValue", "Nil", "NIL", "Bool", "Int", "UInt", "Float32", "Float64",
    "Str", "Bin", "Array", "Map", "Ext",
    "MsgpackValueVisitor", "MsgpackDeserializer", "MsgpackSerializer",
]

logger = logging.getLogger(__name__)


def _logged(res: Result[Any], action: str) -> Result[Any]:
    if res.is_err():
        logger.debug("MessagePack %s failed: %s", action, res.error)
    return res


# ── Decoding ──────────────────────────────────────────────────

def from_array(data: bytes, visitor: Visitor, *,
               max_depth: int = DEFAULT_MAX_DEPTH) -> Result[Any]:
    """Decode one value from ``data`` through ``visitor``."""
    de = MsgpackDeserializer(data, max_depth=max_depth)

    def run() -> Result[Any]:
        res = de.deserialize_any(visitor)
        if res.is_err():
            return res
        end = de.end()
        if end.is_err():
            return end
        return res

    return _logged(run_guarded(max_depth, run), "decode")


def from_array_to_value(data: bytes, *, max_depth: int = DEFAULT_MAX_DEPTH,
                        duplicate_keys: str = DUP_LAST) -> Result[MsgpackValue]:
    return from_array(data, MsgpackValueVisitor(duplicate_keys), max_depth=max_depth)


def from_array_into(data: bytes, target: Any, *,
                    max_depth: int = DEFAULT_MAX_DEPTH) -> Result[None]:
    """Fill ``target`` in place through its ``deserialize(deserializer)`` method."""
    de = MsgpackDeserializer(data, max_depth=max_depth)

    def run() -> Result[None]:
        res = de._stick(target.deserialize(de))
        if res.is_err():
            return res
        return de.end()

    return _logged(run_guarded(max_depth, run), "decode")


def _decode(data: bytes, visitor: Optional[Visitor], max_depth: int,
            duplicate_keys: str) -> Result[Any]:
    if visitor is None:
        visitor = MsgpackValueVisitor(duplicate_keys)
    return from_array(data, visitor, max_depth=max_depth)


def from_reader(reader: Any, *, visitor: Optional[Visitor] = None,
                max_depth: int = DEFAULT_MAX_DEPTH,
                duplicate_keys: str = DUP_LAST) -> Result[Any]:
    data = read_handle(reader)
    if data.is_err():
        return data
    if isinstance(data.value, str):
        return _logged(Err(ErrorInfo(ERR_IO, "MessagePack needs a binary handle, got text")),
                       "read")
    return _decode(data.value, visitor, max_depth, duplicate_keys)


def from_file(path: PathLike, *, visitor: Optional[Visitor] = None,
              max_depth: int = DEFAULT_MAX_DEPTH,
              duplicate_keys: str = DUP_LAST) -> Result[Any]:
    data = read_file(path)
    if data.is_err():
        return data
    return _decode(data.value, visitor, max_depth, duplicate_keys)


# ── Encoding ──────────────────────────────────────────────────

def to_array(value: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Result[bytes]:
    """Encode a MsgpackValue, JsonValue, custom type or plain Python data."""
    ser = MsgpackSerializer(max_depth=max_depth)

    def run() -> Result[bytes]:
        res = ser.serialize_value(value)
        if res.is_err():
            return res
        res = ser.end()
        if res.is_err():
            return res
        return Ok(ser.getvalue())

    return _logged(run_guarded(max_depth, run), "encode")


def to_writer(writer: Any, value: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Result[None]:
    """Encode, then write the bytes to a binary handle in one call."""
    encoded = to_array(value, max_depth=max_depth)
    if encoded.is_err():
        return encoded

    def write() -> Result[None]:
        writer.write(encoded.value)
        return OK_UNIT

    return guard_write(writer, write)


def to_file(path: PathLike, value: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Result[None]:
    encoded = to_array(value, max_depth=max_depth)
    if encoded.is_err():
        return encoded
    return write_file(path, encoded.value)


def hexdump(data: bytes) -> str:
    """``b"\\x81\\xa1a"`` -> ``"81 a1 61"``."""
    return " ".join("{:02x}".format(b) for b in bytes(data))


def to_string(value: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Result[str]:
    """Encode ``value`` and render the bytes as a diagnostic hex dump."""
    return to_array(value, max_depth=max_depth).map(hexdump)
