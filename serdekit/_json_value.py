"""The JSON value tree and the visitor that materializes it.

    Null | Bool | Number | String | Array | Object

``Number`` keeps the integer/float distinction the text had, so
``1`` and ``1.0`` survive a round trip as themselves and compare unequal.
``Object`` keeps members in insertion order; keys are unique strings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Tuple, Union

from ._constants import INT64_MAX, INT64_MIN, UINT64_MAX
from ._result import Ok, Option, Result, NOTHING, Some
from ._value import (
    DUP_LAST,
    ValueNode,
    check_policy,
    collect_entries,
    collect_items,
    serialize_items,
    serialize_pairs,
)
from ._visitor import MapAccess, SeqAccess, StringVisitor, Visitor


class JsonValue(ValueNode):
    __slots__ = ()


@dataclass(frozen=True)
class Null(JsonValue):
    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_null()

    def to_python(self) -> None:
        return None


NULL = Null()


@dataclass(frozen=True)
class Bool(JsonValue):
    value: bool

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_bool(self.value)

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True, eq=False)
class Number(JsonValue):
    value: Union[int, float]

    def __post_init__(self) -> None:
        # bool is an int subclass; True must never become Number(1).
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise TypeError("Number needs an int or float, got {}".format(
                type(self.value).__name__))
        if isinstance(self.value, int) and not INT64_MIN <= self.value <= UINT64_MAX:
            raise ValueError("integer {} is outside the 64-bit range".format(self.value))

    @property
    def is_float(self) -> bool:
        return isinstance(self.value, float)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Number):
            return NotImplemented
        return self.is_float == other.is_float and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.is_float, self.value))

    def serialize(self, serializer: Any) -> Result[None]:
        if self.is_float:
            return serializer.serialize_float(self.value)
        if self.value > INT64_MAX:
            return serializer.serialize_uint(self.value)
        return serializer.serialize_int(self.value)

    def to_python(self) -> Union[int, float]:
        return self.value


@dataclass(frozen=True)
class String(JsonValue):
    value: str

    def serialize(self, serializer: Any) -> Result[None]:
        return serializer.serialize_string(self.value)

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class Array(JsonValue):
    items: Tuple[JsonValue, ...] = ()

    def __post_init__(self) -> None:
        items = tuple(self.items)
        for item in items:
            if not isinstance(item, JsonValue):
                raise TypeError("Array items must be JSON values, got {}".format(
                    type(item).__name__))
        object.__setattr__(self, "items", items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[JsonValue]:
        return iter(self.items)

    def __getitem__(self, index: int) -> JsonValue:
        return self.items[index]

    def serialize(self, serializer: Any) -> Result[None]:
        return serialize_items(serializer, self.items)

    def to_python(self) -> List[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class Object(JsonValue):
    """Ordered members.  Accepts a mapping or an iterable of (key, value)."""

    members: Tuple[Tuple[str, JsonValue], ...] = ()

    def __post_init__(self) -> None:
        source = self.members
        pairs = tuple(source.items()) if isinstance(source, Mapping) else tuple(source)
        seen = set()
        for key, value in pairs:
            if not isinstance(key, str):
                raise TypeError("Object keys must be str, got {}".format(type(key).__name__))
            if key in seen:
                raise ValueError("duplicate Object key {!r}".format(key))
            if not isinstance(value, JsonValue):
                raise TypeError("Object values must be JSON values, got {}".format(
                    type(value).__name__))
            seen.add(key)
        object.__setattr__(self, "members", pairs)

    def __len__(self) -> int:
        return len(self.members)

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self.members)

    def __getitem__(self, key: str) -> JsonValue:
        for k, v in self.members:
            if k == key:
                return v
        raise KeyError(key)

    def get(self, key: str) -> Option[JsonValue]:
        for k, v in self.members:
            if k == key:
                return Some(v)
        return NOTHING

    def keys(self) -> List[str]:
        return [k for k, _ in self.members]

    def serialize(self, serializer: Any) -> Result[None]:
        return serialize_pairs(serializer, self.members, len(self.members),
                               serializer.serialize_key)

    def to_python(self) -> Dict[str, Any]:
        return {k: v.to_python() for k, v in self.members}


# ── Materializer ──────────────────────────────────────────────

class JsonValueVisitor(Visitor):
    """Builds a JsonValue bottom-up from whatever a Deserializer reports.

    Map keys must be strings; a MessagePack map with other keys fails with
    ERR_INVALID_TYPE.  Byte strings and extensions have no JSON form and
    are rejected the same way.
    """

    expecting = "a JSON value"

    def __init__(self, duplicate_keys: str = DUP_LAST) -> None:
        self.duplicate_keys = check_policy(duplicate_keys)

    def visit_null(self) -> Result[JsonValue]:
        return Ok(NULL)

    def visit_bool(self, value: bool) -> Result[JsonValue]:
        return Ok(Bool(value))

    def visit_int(self, value: int) -> Result[JsonValue]:
        return Ok(Number(value))

    def visit_float(self, value: float) -> Result[JsonValue]:
        return Ok(Number(value))

    def visit_string(self, value: str) -> Result[JsonValue]:
        return Ok(String(value))

    def visit_seq(self, seq: SeqAccess) -> Result[JsonValue]:
        return collect_items(seq, self).map(Array)

    def visit_map(self, access: MapAccess) -> Result[JsonValue]:
        res = collect_entries(access, StringVisitor(), self, self.duplicate_keys)
        return res.map(Object)

