"""The MessagePack value tree and the visitor that materializes it.

    Nil | Bool | Int | UInt | Float32 | Float64 | Str | Bin
        | Array | Map | Ext

Int and UInt are two spellings of one wire integer: a non-negative Int
encodes to exactly the bytes the equal UInt does, so the two compare equal
(and hash alike) when their values match.  The decoder reports
non-negative integers as UInt and negative ones as Int.

Float32 rounds its value to single precision on construction so the node
already holds what the wire will carry.

Map keys may be any value, and a Map may hold the same key twice (the wire
allows it); the materializer's duplicate-key policy decides what a decoded
map keeps.
"""

from __future__ import annotations

import struct
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Tuple

from ._constants import INT64_MAX, INT64_MIN, UINT64_MAX
from ._result import Ok, Result
from ._value import (
    DUP_LAST,
    ValueNode,
    check_policy,
    collect_entries,
    collect_items,
    serialize_items,
    serialize_pairs,
)
from ._visitor import MapAccess, SeqAccess, Visitor


class MsgpackValue(ValueNode):
    __slots__ = ()


@dataclass(frozen=True)
class Nil(MsgpackValue):
    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_null()

    def to_python(self) -> None:
        return None


NIL = Nil()


@dataclass(frozen=True)
class Bool(MsgpackValue):
    value: bool

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_bool(self.value)

    def to_python(self) -> bool:
        return self.value


class _Integer(MsgpackValue):
    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _Integer):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(("int", self.value))

    def to_python(self) -> int:
        return self.value


@dataclass(frozen=True, eq=False)
class Int(_Integer):
    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError("Int needs an int, got {}".format(type(self.value).__name__))
        if not INT64_MIN <= self.value <= INT64_MAX:
            raise ValueError("{} does not fit a signed 64-bit integer".format(self.value))

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_int(self.value)


@dataclass(frozen=True, eq=False)
class UInt(_Integer):
    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError("UInt needs an int, got {}".format(type(self.value).__name__))
        if not 0 <= self.value <= UINT64_MAX:
            raise ValueError("{} does not fit an unsigned 64-bit integer".format(self.value))

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_uint(self.value)


@dataclass(frozen=True)
class Float32(MsgpackValue):
    value: float

    def __post_init__(self) -> None:
        try:
            single = struct.unpack(">f", struct.pack(">f", self.value))[0]
        except (OverflowError, struct.error):
            raise ValueError("{!r} is out of float32 range".format(self.value))
        object.__setattr__(self, "value", single)

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_float32(self.value)

    def to_python(self) -> float:
        return self.value


@dataclass(frozen=True)
class Float64(MsgpackValue):
    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_float(self.value)

    def to_python(self) -> float:
        return self.value


@dataclass(frozen=True)
class Str(MsgpackValue):
    value: str

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_string(self.value)

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class Bin(MsgpackValue):
    value: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bytes(self.value))

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_bytes(self.value)

    def to_python(self) -> bytes:
        return self.value


@dataclass(frozen=True)
class Ext(MsgpackValue):
    type_id: int
    data: bytes

    def __post_init__(self) -> None:
        if not -128 <= self.type_id <= 127:
            raise ValueError("ext type id must fit a signed byte, got {}".format(self.type_id))
        object.__setattr__(self, "data", bytes(self.data))

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_ext(self.type_id, self.data)

    def to_python(self) -> "Ext":
        # no native Python counterpart; the node itself is hashable
        return self


@dataclass(frozen=True)
class Array(MsgpackValue):
    items: Tuple[MsgpackValue, ...] = ()

    def __post_init__(self) -> None:
        items = tuple(self.items)
        for item in items:
            if not isinstance(item, MsgpackValue):
                raise TypeError("Array items must be MessagePack values, got {}".format(
                    type(item).__name__))
        object.__setattr__(self, "items", items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[MsgpackValue]:
        return iter(self.items)

    def __getitem__(self, index: int) -> MsgpackValue:
        return self.items[index]

    def serialize(self, serializer: Any) -> Result[None]:
        return serialize_items(serializer, self.items)

    def to_python(self) -> List[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class Map(MsgpackValue):
    """Ordered (key, value) pairs.  Accepts a mapping or an iterable of pairs."""

    pairs: Tuple[Tuple[MsgpackValue, MsgpackValue], ...] = ()

    def __post_init__(self) -> None:
        source = self.pairs
        pairs = tuple(source.items()) if isinstance(source, Mapping) else tuple(source)
        for key, value in pairs:
            if not isinstance(key, MsgpackValue) or not isinstance(value, MsgpackValue):
                raise TypeError("Map entries must be MessagePack values")
        object.__setattr__(self, "pairs", pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def __getitem__(self, key: MsgpackValue) -> MsgpackValue:
        for k, v in self.pairs:
            if k == key:
                return v
        raise KeyError(key)

    def serialize(self, serializer: Any) -> Result[None]:
        return serialize_pairs(serializer, self.pairs, len(self.pairs),
                               lambda key: key.serialize(serializer))

    def to_python(self) -> Dict[Any, Any]:
        return {_python_key(k): v.to_python() for k, v in self.pairs}


def _python_key(key: MsgpackValue) -> Any:
    if isinstance(key, Array):
        return tuple(_python_key(item) for item in key.items)
    if isinstance(key, Map):
        # dicts aren't hashable; keep the node
        return key
    return key.to_python()


# ── Materializer ──────────────────────────────────────────────

class MsgpackValueVisitor(Visitor):
    """Builds a MsgpackValue bottom-up.  Keys are materialized like values."""

    expecting = "a MessagePack value"

    def __init__(self, duplicate_keys: str = DUP_LAST) -> None:
        self.duplicate_keys = check_policy(duplicate_keys)

    def visit_null(self) -> Result[MsgpackValue]:
        return Ok(NIL)

    def visit_bool(self, value: bool) -> Result[MsgpackValue]:
        return Ok(Bool(value))

    def visit_int(self, value: int) -> Result[MsgpackValue]:
        if value > INT64_MAX:
            return Ok(UInt(value))
        return Ok(Int(value))

    def visit_uint(self, value: int) -> Result[MsgpackValue]:
        return Ok(UInt(value))

    def visit_float(self, value: float) -> Result[MsgpackValue]:
        return Ok(Float64(value))

    def visit_float32(self, value: float) -> Result[MsgpackValue]:
        return Ok(Float32(value))

    def visit_string(self, value: str) -> Result[MsgpackValue]:
        return Ok(Str(value))

    def visit_bytes(self, value: bytes) -> Result[MsgpackValue]:
        return Ok(Bin(value))

    def visit_ext(self, type_id: int, data: bytes) -> Result[MsgpackValue]:
        return Ok(Ext(type_id, data))

    def visit_seq(self, seq: SeqAccess) -> Result[MsgpackValue]:
        return collect_items(seq, self).map(Array)

    def visit_map(self, access: MapAccess) -> Result[MsgpackValue]:
        res = collect_entries(access, self, self, self.duplicate_keys)
        return res.map(Map)
