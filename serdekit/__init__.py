"""serdekit — format-agnostic serialization over a visitor protocol.

One traversal engine, two wire formats (JSON/JSON5 text and MessagePack
binary), and a Result-based error model: nothing raises on bad input.

Quick start:
    >>> from serdekit import json, msgpack
    >>> value = json.from_str('{"a": 1, "b": [1, 2, 3]}').unwrap()
    >>> value["b"][2]
    Number(value=3)
    >>> msgpack.to_string(json.from_str('{"a": true}').unwrap()).unwrap()
    '81 a1 61 c3'
    >>> json.from_str("[1, 2,]").unwrap_err().kind
    'ERR_UNEXPECTED_TOKEN'
    >>> json.from_str("[1, 2,]", json5=True).unwrap().to_python()
    [1, 2]

Custom types implement ``serialize(serializer)`` and, for in-place
decoding, ``deserialize(deserializer)``; see :mod:`serdekit._visitor`.
"""

from __future__ import annotations

from . import json, msgpack
from ._constants import DEFAULT_MAX_DEPTH
from ._errors import (
    ALL_CODES,
    ERR_CUSTOM,
    ERR_DEPTH_EXCEEDED,
    ERR_DUPLICATE_KEY,
    ERR_INVALID_ESCAPE,
    ERR_INVALID_MSGPACK_TAG,
    ERR_INVALID_TYPE,
    ERR_INVALID_UTF8,
    ERR_IO,
    ERR_NUMBER_OUT_OF_RANGE,
    ERR_TRAILING_DATA,
    ERR_UNEXPECTED_END,
    ERR_UNEXPECTED_TOKEN,
    ErrorInfo,
    UnwrapError,
)
from ._json_value import JsonValue, JsonValueVisitor
from ._msgpack_value import MsgpackValue, MsgpackValueVisitor
from ._native import PythonVisitor, serialize_native
from ._result import NOTHING, OK_UNIT, Err, Ok, Option, Result, Some
from ._value import DUP_ERROR, DUP_FIRST, DUP_LAST
from ._visitor import (
    Deserializer,
    IgnoredAny,
    MapAccess,
    SeqAccess,
    Serializer,
    Visitor,
)

__version__ = "1.0.0"

__all__ = [
    # Entry modules
    "json",
    "msgpack",
    # Result / Option
    "Ok",
    "Err",
    "Result",
    "Some",
    "NOTHING",
    "Option",
    "OK_UNIT",
    # Errors
    "ErrorInfo",
    "UnwrapError",
    "ALL_CODES",
    "ERR_UNEXPECTED_TOKEN",
    "ERR_UNEXPECTED_END",
    "ERR_INVALID_ESCAPE",
    "ERR_INVALID_UTF8",
    "ERR_NUMBER_OUT_OF_RANGE",
    "ERR_DEPTH_EXCEEDED",
    "ERR_INVALID_TYPE",
    "ERR_INVALID_MSGPACK_TAG",
    "ERR_TRAILING_DATA",
    "ERR_IO",
    "ERR_DUPLICATE_KEY",
    "ERR_CUSTOM",
    # Visitor protocol
    "Serializer",
    "Deserializer",
    "Visitor",
    "SeqAccess",
    "MapAccess",
    "IgnoredAny",
    # Values
    "JsonValue",
    "JsonValueVisitor",
    "MsgpackValue",
    "MsgpackValueVisitor",
    "PythonVisitor",
    "serialize_native",
    "DUP_LAST",
    "DUP_FIRST",
    "DUP_ERROR",
    # Limits
    "DEFAULT_MAX_DEPTH",
]
