"""Bridge between plain Python objects and the visitor protocol.

Serialize side: ``serialize_native`` walks dict/list/tuple/str/bytes/int/
float/bool/None, value nodes, and any object that has a ``serialize``
method (the custom-type contract), pushing primitives into a Serializer.

Deserialize side: ``PythonVisitor`` builds the same plain objects back.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ._constants import INT64_MAX, INT64_MIN, UINT64_MAX
from ._errors import ERR_INVALID_TYPE, ERR_NUMBER_OUT_OF_RANGE, invalid_type
from ._result import Err, Ok, Result
from ._value import DUP_LAST, check_policy, collect_entries, collect_items
from ._visitor import MapAccess, SeqAccess, Serializer, Visitor


def serialize_native(obj: Any, serializer: Serializer) -> Result[None]:
    if obj is None:
        return serializer.serialize_null()

    # bool before int: isinstance(True, int) is True, and True must stay
    # a boolean on the wire.
    if isinstance(obj, bool):
        return serializer.serialize_bool(obj)

    if isinstance(obj, int):
        if INT64_MIN <= obj <= INT64_MAX:
            return serializer.serialize_int(obj)
        if INT64_MAX < obj <= UINT64_MAX:
            return serializer.serialize_uint(obj)
        return serializer.fail(ERR_NUMBER_OUT_OF_RANGE,
                               "integer {} is outside the 64-bit range".format(obj))

    if isinstance(obj, float):
        return serializer.serialize_float(obj)

    if isinstance(obj, str):
        return serializer.serialize_string(obj)

    if isinstance(obj, (bytes, bytearray, memoryview)):
        return serializer.serialize_bytes(bytes(obj))

    # value nodes and user types
    serialize = getattr(obj, "serialize", None)
    if callable(serialize):
        return serialize(serializer)

    if isinstance(obj, (list, tuple)):
        res = serializer.begin_array(len(obj))
        if res.is_err():
            return res
        for item in obj:
            res = serialize_native(item, serializer)
            if res.is_err():
                return res
        return serializer.end_array()

    if isinstance(obj, dict):
        res = serializer.begin_object(len(obj))
        if res.is_err():
            return res
        for key, value in obj.items():
            res = serialize_native(key, serializer)
            if res.is_err():
                return res
            res = serialize_native(value, serializer)
            if res.is_err():
                return res
        return serializer.end_object()

    return serializer.fail(ERR_INVALID_TYPE,
                           "cannot serialize object of type {}".format(type(obj).__name__))


class PythonVisitor(Visitor):
    """Materializes plain Python objects: dict, list, str, int, float, ...

    MessagePack keys that decode to lists become tuples so they can key a
    dict; a map used as a key cannot be represented and is rejected.
    """

    expecting = "any value"

    def __init__(self, duplicate_keys: str = DUP_LAST) -> None:
        self.duplicate_keys = check_policy(duplicate_keys)

    def visit_null(self) -> Result[None]:
        return Ok(None)

    def visit_bool(self, value: bool) -> Result[bool]:
        return Ok(value)

    def visit_int(self, value: int) -> Result[int]:
        return Ok(value)

    def visit_float(self, value: float) -> Result[float]:
        return Ok(value)

    def visit_string(self, value: str) -> Result[str]:
        return Ok(value)

    def visit_bytes(self, value: bytes) -> Result[bytes]:
        return Ok(value)

    def visit_ext(self, type_id: int, data: bytes) -> Result[Any]:
        return Ok((type_id, data))

    def visit_seq(self, seq: SeqAccess) -> Result[List[Any]]:
        return collect_items(seq, self).map(list)

    def visit_map(self, access: MapAccess) -> Result[Dict[Any, Any]]:
        res = collect_entries(access, _PythonKeyVisitor(self), self, self.duplicate_keys)
        return res.map(dict)


class _PythonKeyVisitor(PythonVisitor):
    expecting = "a hashable key"

    def __init__(self, parent: PythonVisitor) -> None:
        super().__init__(parent.duplicate_keys)

    def visit_seq(self, seq: SeqAccess) -> Result[Any]:
        return collect_items(seq, self)

    def visit_map(self, access: MapAccess) -> Result[Any]:
        return Err(invalid_type("map", self.expecting))
