"""serdekit visitor protocol — the format-neutral middle of every operation.

Two directions, two interface pairs:

    value  --drives-->  Serializer     (serialize_* / begin_* / end_*)
    Deserializer  --drives-->  Visitor  (visit_* / visit_seq / visit_map)

A backend implements Serializer and/or Deserializer; a value type (the
value tree, the native bridge, or a user class) drives a Serializer or
supplies a Visitor.  Neither side knows which concrete partner it has, so
adding a format never touches this module.

Both halves share :class:`TraversalState`: a depth counter checked on every
container entry and a sticky error.  Once an operation records its first
``Err`` every later primitive returns that same ``Err`` without touching the
input again, so the work left after a failure is one unwind of the current
depth, not a scan of the remaining input.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from ._constants import (
    DEFAULT_MAX_DEPTH,
    FRAMES_PER_LEVEL,
    INT64_MAX,
    RECURSION_SLACK,
)
from ._errors import (
    ERR_DEPTH_EXCEEDED,
    ERR_INVALID_TYPE,
    ERR_NUMBER_OUT_OF_RANGE,
    ErrorInfo,
    invalid_type,
)
from ._result import NOTHING, OK_UNIT, Err, Ok, Option, Result, Some


# ── Shared state: depth guard + sticky error ──────────────────

class TraversalState:
    """Depth counter and sticky error for one serialize/deserialize call."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1, got {}".format(max_depth))
        self.max_depth = max_depth
        self.depth = 0
        self._error: Optional[Err] = None

    @property
    def error(self) -> Optional[Err]:
        """The sticky error, or None while the operation is healthy."""
        return self._error

    def _cursor(self) -> Optional[int]:
        """Current offset into the medium; backends override."""
        return None

    def _locate(self, offset: int) -> Dict[str, int]:
        return {"offset": offset}

    def _fail(self, kind: str, message: str, offset: Optional[int] = None) -> Err:
        if self._error is None:
            if offset is None:
                offset = self._cursor()
            if offset is None:
                info = ErrorInfo(kind, message)
            else:
                info = ErrorInfo(kind, message, **self._locate(offset))
            self._error = Err(info)
        return self._error

    def fail(self, kind: str, message: str) -> Err:
        """Record an error at the current position and return the sticky Err.

        Once an error is recorded, later calls return it unchanged.
        """
        return self._fail(kind, message)

    def _stick(self, result: Result[Any], offset: Optional[int] = None) -> Result[Any]:
        """Pass Ok through; record an Err (positioned) as the sticky error."""
        if result.is_ok():
            return result
        if self._error is None:
            info = result.error
            if not info.has_position:
                if offset is None:
                    offset = self._cursor()
                if offset is not None:
                    info = info.at(**self._locate(offset))
            self._error = Err(info)
        return self._error

    def _enter(self, offset: Optional[int] = None) -> Optional[Err]:
        if self.depth >= self.max_depth:
            return self._fail(
                ERR_DEPTH_EXCEEDED,
                "nesting depth exceeds max_depth {}".format(self.max_depth),
                offset,
            )
        self.depth += 1
        return None

    def _leave(self) -> None:
        self.depth -= 1


# ── Serializer capability set ─────────────────────────────────

class Serializer(TraversalState, ABC):
    """Primitive sink a value pushes itself into.

    Object entries are emitted as key then value.  ``serialize_key`` is the
    usual way to emit a key, but any primitive works in key position; the
    serializer tracks key/value parity itself and formats that only accept
    string keys reject the rest with ERR_INVALID_TYPE.
    """

    @abstractmethod
    def serialize_null(self) -> Result[None]: ...

    @abstractmethod
    def serialize_bool(self, value: bool) -> Result[None]: ...

    @abstractmethod
    def serialize_int(self, value: int) -> Result[None]:
        """Emit a signed 64-bit integer."""

    @abstractmethod
    def serialize_uint(self, value: int) -> Result[None]:
        """Emit an unsigned 64-bit integer."""

    @abstractmethod
    def serialize_float(self, value: float) -> Result[None]: ...

    @abstractmethod
    def serialize_string(self, value: str) -> Result[None]: ...

    @abstractmethod
    def serialize_bytes(self, value: bytes) -> Result[None]: ...

    @abstractmethod
    def begin_array(self, hint: Optional[int] = None) -> Result[None]: ...

    @abstractmethod
    def end_array(self) -> Result[None]: ...

    @abstractmethod
    def begin_object(self, hint: Optional[int] = None) -> Result[None]: ...

    @abstractmethod
    def end_object(self) -> Result[None]: ...

    def serialize_float32(self, value: float) -> Result[None]:
        return self.serialize_float(value)

    def serialize_ext(self, type_id: int, data: bytes) -> Result[None]:
        if self._error is not None:
            return self._error
        return self._fail(ERR_INVALID_TYPE,
                          "extension type {} has no representation in this format".format(type_id))

    def serialize_key(self, key: str) -> Result[None]:
        return self.serialize_string(key)

    def serialize_value(self, obj: Any) -> Result[None]:
        """Serialize a value node, a user type, or a plain Python object."""
        # _native imports this module
        from ._native import serialize_native
        return serialize_native(obj, self)

    def serialize_entry(self, key: str, value: Any) -> Result[None]:
        return self.serialize_key(key).and_then(lambda _: self.serialize_value(value))


# ── Deserializer capability set ───────────────────────────────

class Visitor:
    """Receives exactly one value from ``Deserializer.deserialize_any``.

    Every callback a subclass does not override rejects the value with
    ERR_INVALID_TYPE, naming what was found and ``expecting``.
    ``visit_uint`` falls back to ``visit_int`` and ``visit_float32`` to
    ``visit_float``, so visitors that don't care about width override one.
    """

    expecting = "a value"

    def _reject(self, found: str) -> Err:
        return Err(invalid_type(found, self.expecting))

    def visit_null(self) -> Result[Any]:
        return self._reject("null")

    def visit_bool(self, value: bool) -> Result[Any]:
        return self._reject("boolean")

    def visit_int(self, value: int) -> Result[Any]:
        return self._reject("integer")

    def visit_uint(self, value: int) -> Result[Any]:
        return self.visit_int(value)

    def visit_float(self, value: float) -> Result[Any]:
        return self._reject("float")

    def visit_float32(self, value: float) -> Result[Any]:
        return self.visit_float(value)

    def visit_string(self, value: str) -> Result[Any]:
        return self._reject("string")

    def visit_bytes(self, value: bytes) -> Result[Any]:
        return self._reject("bytes")

    def visit_ext(self, type_id: int, data: bytes) -> Result[Any]:
        return self._reject("extension")

    def visit_seq(self, seq: "SeqAccess") -> Result[Any]:
        return self._reject("array")

    def visit_map(self, access: "MapAccess") -> Result[Any]:
        return self._reject("map")


class SeqAccess(ABC):
    @abstractmethod
    def next_element(self, visitor: Visitor) -> Result[Option[Any]]:
        """Deserialize the next element, or ``Ok(NOTHING)`` at the end."""

    def size_hint(self) -> Optional[int]:
        return None


class MapAccess(ABC):
    @abstractmethod
    def next_key(self, visitor: Visitor) -> Result[Option[Any]]:
        """Deserialize the next key, or ``Ok(NOTHING)`` at the end."""

    @abstractmethod
    def next_value(self, visitor: Visitor) -> Result[Any]:
        """Deserialize the value that belongs to the key just read."""

    def next_entry(self, key_visitor: Visitor, value_visitor: Visitor) -> Result[Option[Any]]:
        res = self.next_key(key_visitor)
        if res.is_err() or res.value.is_none():
            return res
        key = res.value.value
        return self.next_value(value_visitor).map(lambda v: Some((key, v)))

    def size_hint(self) -> Optional[int]:
        return None


class Deserializer(TraversalState, ABC):
    """Pull side.  Backends implement ``deserialize_any`` and ``end``."""

    @abstractmethod
    def deserialize_any(self, visitor: Visitor) -> Result[Any]:
        """Read the next value and hand it to the matching visitor callback."""

    @abstractmethod
    def end(self) -> Result[None]:
        """Fail with ERR_TRAILING_DATA unless only padding remains."""

    def deserialize_null(self) -> Result[None]:
        return self.deserialize_any(NullVisitor())

    def deserialize_bool(self) -> Result[bool]:
        return self.deserialize_any(BoolVisitor())

    def deserialize_int(self) -> Result[int]:
        return self.deserialize_any(IntVisitor())

    def deserialize_uint(self) -> Result[int]:
        return self.deserialize_any(UIntVisitor())

    def deserialize_float(self) -> Result[float]:
        return self.deserialize_any(FloatVisitor())

    def deserialize_string(self) -> Result[str]:
        return self.deserialize_any(StringVisitor())

    def deserialize_bytes(self) -> Result[bytes]:
        return self.deserialize_any(BytesVisitor())

    def deserialize_seq(self, visitor: Visitor) -> Result[Any]:
        return self.deserialize_any(visitor)

    def deserialize_map(self, visitor: Visitor) -> Result[Any]:
        return self.deserialize_any(visitor)

    def deserialize_option(self, visitor: Visitor) -> Result[Option[Any]]:
        return self.deserialize_any(OptionVisitor(visitor))

    def deserialize_ignored(self) -> Result[None]:
        return self.deserialize_any(IgnoredAny())


# ── Stock visitors ────────────────────────────────────────────

class NullVisitor(Visitor):
    expecting = "null"

    def visit_null(self) -> Result[None]:
        return OK_UNIT


class BoolVisitor(Visitor):
    expecting = "a boolean"

    def visit_bool(self, value: bool) -> Result[bool]:
        return Ok(value)


class IntVisitor(Visitor):
    expecting = "a signed 64-bit integer"

    def visit_int(self, value: int) -> Result[int]:
        return Ok(value)

    def visit_uint(self, value: int) -> Result[int]:
        if value > INT64_MAX:
            return Err(ErrorInfo(ERR_NUMBER_OUT_OF_RANGE,
                                 "integer {} does not fit a signed 64-bit integer".format(value)))
        return Ok(value)


class UIntVisitor(Visitor):
    expecting = "an unsigned integer"

    def visit_int(self, value: int) -> Result[int]:
        if value < 0:
            return self._reject("negative integer")
        return Ok(value)

    def visit_uint(self, value: int) -> Result[int]:
        return Ok(value)


class FloatVisitor(Visitor):
    expecting = "a number"

    def visit_float(self, value: float) -> Result[float]:
        return Ok(value)

    def visit_int(self, value: int) -> Result[float]:
        return Ok(float(value))


class StringVisitor(Visitor):
    expecting = "a string"

    def visit_string(self, value: str) -> Result[str]:
        return Ok(value)


class BytesVisitor(Visitor):
    expecting = "a byte string"

    def visit_bytes(self, value: bytes) -> Result[bytes]:
        return Ok(value)


class OptionVisitor(Visitor):
    """``null`` becomes NOTHING; anything else goes to ``inner`` and is wrapped."""

    def __init__(self, inner: Visitor) -> None:
        self.inner = inner
        self.expecting = "null or " + inner.expecting

    def visit_null(self) -> Result[Option[Any]]:
        return Ok(NOTHING)

    def visit_bool(self, value: bool) -> Result[Any]:
        return self.inner.visit_bool(value).map(Some)

    def visit_int(self, value: int) -> Result[Any]:
        return self.inner.visit_int(value).map(Some)

    def visit_uint(self, value: int) -> Result[Any]:
        return self.inner.visit_uint(value).map(Some)

    def visit_float(self, value: float) -> Result[Any]:
        return self.inner.visit_float(value).map(Some)

    def visit_float32(self, value: float) -> Result[Any]:
        return self.inner.visit_float32(value).map(Some)

    def visit_string(self, value: str) -> Result[Any]:
        return self.inner.visit_string(value).map(Some)

    def visit_bytes(self, value: bytes) -> Result[Any]:
        return self.inner.visit_bytes(value).map(Some)

    def visit_ext(self, type_id: int, data: bytes) -> Result[Any]:
        return self.inner.visit_ext(type_id, data).map(Some)

    def visit_seq(self, seq: SeqAccess) -> Result[Any]:
        return self.inner.visit_seq(seq).map(Some)

    def visit_map(self, access: MapAccess) -> Result[Any]:
        return self.inner.visit_map(access).map(Some)


class IgnoredAny(Visitor):
    """Accepts and discards any value, walking containers to their end.

    Backends use it to skip whatever a visitor left unread, so the cursor
    always lands after the container it entered.
    """

    expecting = "anything"

    def visit_null(self) -> Result[None]:
        return OK_UNIT

    def visit_bool(self, value: bool) -> Result[None]:
        return OK_UNIT

    def visit_int(self, value: int) -> Result[None]:
        return OK_UNIT

    def visit_float(self, value: float) -> Result[None]:
        return OK_UNIT

    def visit_string(self, value: str) -> Result[None]:
        return OK_UNIT

    def visit_bytes(self, value: bytes) -> Result[None]:
        return OK_UNIT

    def visit_ext(self, type_id: int, data: bytes) -> Result[None]:
        return OK_UNIT

    def visit_seq(self, seq: SeqAccess) -> Result[None]:
        while True:
            res = seq.next_element(self)
            if res.is_err():
                return res
            if res.value.is_none():
                return OK_UNIT

    def visit_map(self, access: MapAccess) -> Result[None]:
        while True:
            res = access.next_entry(self, self)
            if res.is_err():
                return res
            if res.value.is_none():
                return OK_UNIT


# ── Python stack headroom ─────────────────────────────────────
# The walk is recursive, so max_depth also decides how many Python frames
# an operation may need.  CPython's default limit (1000) is below what
# DEFAULT_MAX_DEPTH requires, so entry points raise it for the duration of
# the call and put it back afterwards.

@contextmanager
def recursion_headroom(max_depth: int) -> Iterator[None]:
    needed = max_depth * FRAMES_PER_LEVEL + RECURSION_SLACK
    previous = sys.getrecursionlimit()
    if needed > previous:
        sys.setrecursionlimit(needed)
    try:
        yield
    finally:
        if needed > previous:
            sys.setrecursionlimit(previous)


def run_guarded(max_depth: int, operation: Callable[[], Result[Any]]) -> Result[Any]:
    """Run one operation with stack headroom; a stack overflow becomes an Err."""
    with recursion_headroom(max_depth):
        try:
            return operation()
        except RecursionError:
            # A user visitor that recurses more per level than budgeted.
            return Err(ErrorInfo(ERR_DEPTH_EXCEEDED,
                                 "Python recursion limit reached while walking nested data"))
