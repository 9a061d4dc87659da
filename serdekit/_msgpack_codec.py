"""MessagePack binary backend — tag-byte decoder and canonical encoder.

Wire layout (all multi-byte fields big-endian):

    positive fixint  0xxxxxxx                       0..127
    fixmap           1000nnnn  + n key/value pairs
    fixarray         1001nnnn  + n values
    fixstr           101nnnnn  + n UTF-8 bytes
    nil/false/true   c0 / c2 / c3
    bin 8/16/32      c4..c6    len  bytes
    ext 8/16/32      c7..c9    len  type:i8  data
    float 32/64      ca / cb   IEEE-754
    uint 8..64       cc..cf
    int 8..64        d0..d3
    fixext 1..16     d4..d8    type:i8  data
    str 8/16/32      d9..db    len  UTF-8 bytes
    array 16/32      dc / dd   count
    map 16/32        de / df   count
    negative fixint  111xxxxx                       -32..-1

0xc1 is reserved and never valid.

Encoding is canonical: every integer, length and count uses the smallest
form that holds it, non-negative integers always use the positive-fixint
/uint family (whether they arrived as signed or unsigned), and floats keep
the width they were declared with.  Equal values therefore encode to
identical bytes.  Decoding accepts any valid form.

Error offsets are byte offsets of the tag that started the failing value.
"""

from __future__ import annotations

import struct
from typing import Any, Callable, List, Optional

from ._constants import (
    DEFAULT_MAX_DEPTH,
    INT64_MAX,
    INT64_MIN,
    MP_ARRAY16,
    MP_ARRAY32,
    MP_BIN8,
    MP_BIN16,
    MP_BIN32,
    MP_EXT8,
    MP_EXT16,
    MP_EXT32,
    MP_FALSE,
    MP_FIXARRAY,
    MP_FIXEXT_SIZES,
    MP_FIXMAP,
    MP_FIXSTR,
    MP_FLOAT32,
    MP_FLOAT64,
    MP_INT8,
    MP_INT16,
    MP_INT32,
    MP_INT64,
    MP_MAP16,
    MP_MAP32,
    MP_NEGFIXINT,
    MP_NEVER_USED,
    MP_NIL,
    MP_POSFIXINT_MAX,
    MP_STR8,
    MP_STR16,
    MP_STR32,
    MP_TRUE,
    MP_UINT8,
    MP_UINT16,
    MP_UINT32,
    MP_UINT64,
    UINT64_MAX,
)
from ._errors import (
    ERR_INVALID_MSGPACK_TAG,
    ERR_INVALID_TYPE,
    ERR_INVALID_UTF8,
    ERR_NUMBER_OUT_OF_RANGE,
    ERR_TRAILING_DATA,
    ERR_UNEXPECTED_END,
)
from ._result import NOTHING, OK_UNIT, Err, Ok, Option, Result, Some
from ._visitor import (
    Deserializer,
    IgnoredAny,
    MapAccess,
    SeqAccess,
    Serializer,
    Visitor,
)

_U8 = struct.Struct(">B")
_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")
_I8 = struct.Struct(">b")
_I16 = struct.Struct(">h")
_I32 = struct.Struct(">i")
_I64 = struct.Struct(">q")
_F32 = struct.Struct(">f")
_F64 = struct.Struct(">d")

_UINTS = {MP_UINT8: _U8, MP_UINT16: _U16, MP_UINT32: _U32, MP_UINT64: _U64}
_INTS = {MP_INT8: _I8, MP_INT16: _I16, MP_INT32: _I32, MP_INT64: _I64}
_STR_LENS = {MP_STR8: _U8, MP_STR16: _U16, MP_STR32: _U32}
_BIN_LENS = {MP_BIN8: _U8, MP_BIN16: _U16, MP_BIN32: _U32}
_EXT_LENS = {MP_EXT8: _U8, MP_EXT16: _U16, MP_EXT32: _U32}
_ARRAY_LENS = {MP_ARRAY16: _U16, MP_ARRAY32: _U32}
_MAP_LENS = {MP_MAP16: _U16, MP_MAP32: _U32}

_MAX_LEN = 0xFFFFFFFF


# ── Decoder ───────────────────────────────────────────────────

class MsgpackDeserializer(Deserializer):
    """Reads one MessagePack value from ``data`` and drives a visitor."""

    def __init__(self, data: bytes, *, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        super().__init__(max_depth)
        self._buf = bytes(data)
        self.offset = 0
        self._start = 0

    def _cursor(self) -> Optional[int]:
        return self._start

    def _need(self, n: int, what: str) -> Optional[Err]:
        remaining = len(self._buf) - self.offset
        if remaining < n:
            return self._fail(ERR_UNEXPECTED_END,
                              "truncated {}: needs {} byte(s), {} remain".format(what, n, remaining),
                              self._start)
        return None

    def _read(self, fmt: struct.Struct, what: str) -> Result[Any]:
        err = self._need(fmt.size, what)
        if err is not None:
            return err
        value = fmt.unpack_from(self._buf, self.offset)[0]
        self.offset += fmt.size
        return Ok(value)

    def _read_bytes(self, n: int, what: str) -> Result[bytes]:
        err = self._need(n, what)
        if err is not None:
            return err
        data = self._buf[self.offset:self.offset + n]
        self.offset += n
        return Ok(data)

    def deserialize_any(self, visitor: Visitor) -> Result[Any]:
        if self._error is not None:
            return self._error
        buf, off = self._buf, self.offset
        if off >= len(buf):
            return self._fail(ERR_UNEXPECTED_END, "unexpected end of input, expected a value", off)
        self._start = off
        tag = buf[off]
        self.offset = off + 1

        # fixed families first, they cover most of the tag space
        if tag <= MP_POSFIXINT_MAX:
            return self._stick(visitor.visit_uint(tag))
        if tag >= MP_NEGFIXINT:
            return self._stick(visitor.visit_int(tag - 0x100))
        if MP_FIXMAP <= tag < MP_FIXARRAY:
            return self._map(off, tag & 0x0F, visitor)
        if MP_FIXARRAY <= tag < MP_FIXSTR:
            return self._seq(off, tag & 0x0F, visitor)
        if MP_FIXSTR <= tag < MP_NIL:
            return self._str(tag & 0x1F, visitor)

        if tag == MP_NIL:
            return self._stick(visitor.visit_null())
        if tag == MP_FALSE:
            return self._stick(visitor.visit_bool(False))
        if tag == MP_TRUE:
            return self._stick(visitor.visit_bool(True))
        if tag == MP_NEVER_USED:
            return self._fail(ERR_INVALID_MSGPACK_TAG, "tag 0xc1 is reserved", off)

        if tag in _UINTS:
            res = self._read(_UINTS[tag], "uint")
            if res.is_err():
                return res
            return self._stick(visitor.visit_uint(res.value))
        if tag in _INTS:
            res = self._read(_INTS[tag], "int")
            if res.is_err():
                return res
            value = res.value
            if value >= 0:
                return self._stick(visitor.visit_uint(value))
            return self._stick(visitor.visit_int(value))
        if tag == MP_FLOAT32:
            res = self._read(_F32, "float32")
            if res.is_err():
                return res
            return self._stick(visitor.visit_float32(res.value))
        if tag == MP_FLOAT64:
            res = self._read(_F64, "float64")
            if res.is_err():
                return res
            return self._stick(visitor.visit_float(res.value))

        if tag in _STR_LENS:
            res = self._read(_STR_LENS[tag], "str length")
            if res.is_err():
                return res
            return self._str(res.value, visitor)
        if tag in _BIN_LENS:
            res = self._read(_BIN_LENS[tag], "bin length")
            if res.is_err():
                return res
            res = self._read_bytes(res.value, "bin payload")
            if res.is_err():
                return res
            return self._stick(visitor.visit_bytes(res.value))
        if tag in MP_FIXEXT_SIZES:
            return self._ext(MP_FIXEXT_SIZES[tag], visitor)
        if tag in _EXT_LENS:
            res = self._read(_EXT_LENS[tag], "ext length")
            if res.is_err():
                return res
            return self._ext(res.value, visitor)
        if tag in _ARRAY_LENS:
            res = self._read(_ARRAY_LENS[tag], "array count")
            if res.is_err():
                return res
            return self._seq(off, res.value, visitor)
        if tag in _MAP_LENS:
            res = self._read(_MAP_LENS[tag], "map count")
            if res.is_err():
                return res
            return self._map(off, res.value, visitor)

        return self._fail(ERR_INVALID_MSGPACK_TAG, "unknown tag 0x{:02x}".format(tag), off)

    def _str(self, n: int, visitor: Visitor) -> Result[Any]:
        payload_at = self.offset
        res = self._read_bytes(n, "str payload")
        if res.is_err():
            return res
        try:
            text = res.value.decode("utf-8")
        except UnicodeDecodeError as e:
            return self._fail(ERR_INVALID_UTF8,
                              "invalid UTF-8 in str: {}".format(e.reason), payload_at + e.start)
        return self._stick(visitor.visit_string(text))

    def _ext(self, n: int, visitor: Visitor) -> Result[Any]:
        res = self._read(_I8, "ext type")
        if res.is_err():
            return res
        type_id = res.value
        res = self._read_bytes(n, "ext payload")
        if res.is_err():
            return res
        return self._stick(visitor.visit_ext(type_id, res.value))

    def _seq(self, start: int, count: int, visitor: Visitor) -> Result[Any]:
        # every element takes at least one byte
        err = self._need(count, "array")
        if err is not None:
            return err
        access = _MsgpackSeqAccess(self, count)
        return self._container(start, access, lambda: visitor.visit_seq(access))

    def _map(self, start: int, count: int, visitor: Visitor) -> Result[Any]:
        err = self._need(2 * count, "map")
        if err is not None:
            return err
        access = _MsgpackMapAccess(self, count)
        return self._container(start, access, lambda: visitor.visit_map(access))

    def _container(self, start: int, access: Any, visit: Callable[[], Result[Any]]) -> Result[Any]:
        err = self._enter(start)
        if err is not None:
            return err
        res = visit()
        if res.is_ok() and not access.done:
            rest = access.finish()
            if rest.is_err():
                res = rest
        self._leave()
        return self._stick(res, start)

    def end(self) -> Result[None]:
        if self._error is not None:
            return self._error
        if self.offset < len(self._buf):
            return self._fail(ERR_TRAILING_DATA,
                              "{} trailing byte(s) after the root value".format(
                                  len(self._buf) - self.offset),
                              self.offset)
        return OK_UNIT


class _MsgpackSeqAccess(SeqAccess):
    def __init__(self, de: MsgpackDeserializer, count: int) -> None:
        self._de = de
        self.remaining = count

    @property
    def done(self) -> bool:
        return self.remaining == 0

    def size_hint(self) -> Optional[int]:
        return self.remaining

    def next_element(self, visitor: Visitor) -> Result[Option[Any]]:
        de = self._de
        if de.error is not None:
            return de.error
        if self.remaining == 0:
            return Ok(NOTHING)
        self.remaining -= 1
        return de.deserialize_any(visitor).map(Some)

    def finish(self) -> Result[None]:
        return IgnoredAny().visit_seq(self)


class _MsgpackMapAccess(MapAccess):
    def __init__(self, de: MsgpackDeserializer, count: int) -> None:
        self._de = de
        self.remaining = count
        self._value_pending = False

    @property
    def done(self) -> bool:
        return self.remaining == 0 and not self._value_pending

    def size_hint(self) -> Optional[int]:
        return self.remaining

    def next_key(self, visitor: Visitor) -> Result[Option[Any]]:
        de = self._de
        if de.error is not None:
            return de.error
        if self._value_pending:
            res = self.next_value(IgnoredAny())
            if res.is_err():
                return res
        if self.remaining == 0:
            return Ok(NOTHING)
        self.remaining -= 1
        self._value_pending = True
        return de.deserialize_any(visitor).map(Some)

    def next_value(self, visitor: Visitor) -> Result[Any]:
        de = self._de
        if de.error is not None:
            return de.error
        if not self._value_pending:
            return de._fail(ERR_INVALID_TYPE, "next_value called without a key")
        self._value_pending = False
        return de.deserialize_any(visitor)

    def finish(self) -> Result[None]:
        return IgnoredAny().visit_map(self)


# ── Encoder ───────────────────────────────────────────────────

def _uint_bytes(value: int) -> bytes:
    if value <= MP_POSFIXINT_MAX:
        return bytes((value,))
    if value <= 0xFF:
        return bytes((MP_UINT8,)) + _U8.pack(value)
    if value <= 0xFFFF:
        return bytes((MP_UINT16,)) + _U16.pack(value)
    if value <= 0xFFFFFFFF:
        return bytes((MP_UINT32,)) + _U32.pack(value)
    return bytes((MP_UINT64,)) + _U64.pack(value)


def _negative_bytes(value: int) -> bytes:
    if value >= -32:
        return bytes((value & 0xFF,))
    if value >= -0x80:
        return bytes((MP_INT8,)) + _I8.pack(value)
    if value >= -0x8000:
        return bytes((MP_INT16,)) + _I16.pack(value)
    if value >= -0x80000000:
        return bytes((MP_INT32,)) + _I32.pack(value)
    return bytes((MP_INT64,)) + _I64.pack(value)


def _sized_header(n: int, fixed_base: Optional[int], fixed_max: int,
                  tags: List[int]) -> bytes:
    """Smallest header for a length/count ``n``; ``tags`` are the 8/16/32-bit forms."""
    if fixed_base is not None and n <= fixed_max:
        return bytes((fixed_base | n,))
    widths = [(0xFF, _U8), (0xFFFF, _U16), (0xFFFFFFFF, _U32)]
    if len(tags) == 2:
        widths = widths[1:]
    for (limit, fmt), tag in zip(widths, tags):
        if n <= limit:
            return bytes((tag,)) + fmt.pack(n)
    raise AssertionError("length checked by caller")


def _str_header(n: int) -> bytes:
    return _sized_header(n, MP_FIXSTR, 31, [MP_STR8, MP_STR16, MP_STR32])


def _bin_header(n: int) -> bytes:
    return _sized_header(n, None, -1, [MP_BIN8, MP_BIN16, MP_BIN32])


def _array_header(n: int) -> bytes:
    return _sized_header(n, MP_FIXARRAY, 15, [MP_ARRAY16, MP_ARRAY32])


def _map_header(n: int) -> bytes:
    return _sized_header(n, MP_FIXMAP, 15, [MP_MAP16, MP_MAP32])


def _ext_header(n: int, type_id: int) -> bytes:
    for tag, size in MP_FIXEXT_SIZES.items():
        if size == n:
            return bytes((tag,)) + _I8.pack(type_id)
    return _sized_header(n, None, -1, [MP_EXT8, MP_EXT16, MP_EXT32]) + _I8.pack(type_id)


_ARRAY = "array"
_MAP = "map"


class _Frame:
    __slots__ = ("kind", "count", "body", "expect_key")

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.count = 0
        self.body = bytearray()
        self.expect_key = kind == _MAP


class MsgpackSerializer(Serializer):
    """Builds canonical MessagePack bytes; read them with ``getvalue()``.

    Containers are buffered until closed so the header can carry the count
    actually written; size hints are not trusted.  Any value may be a map
    key.
    """

    def __init__(self, *, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        super().__init__(max_depth)
        self._out = bytearray()
        self._frames: List[_Frame] = []
        self._root_written = False

    def getvalue(self) -> bytes:
        return bytes(self._out)

    def _cursor(self) -> Optional[int]:
        return len(self._out) + sum(len(f.body) for f in self._frames)

    def _slot(self) -> Optional[Err]:
        if not self._frames:
            if self._root_written:
                return self._fail(ERR_INVALID_TYPE, "a MessagePack document holds exactly one root value")
            self._root_written = True
            return None
        frame = self._frames[-1]
        if frame.kind == _ARRAY:
            frame.count += 1
        else:
            if frame.expect_key:
                frame.count += 1
            frame.expect_key = not frame.expect_key
        return None

    def _put(self, data: bytes) -> Result[None]:
        err = self._slot()
        if err is not None:
            return err
        (self._frames[-1].body if self._frames else self._out).extend(data)
        return OK_UNIT

    def _too_long(self, what: str, n: int) -> Err:
        return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                          "{} of {} bytes exceeds the MessagePack limit".format(what, n))

    # ── primitives ──

    def serialize_null(self) -> Result[None]:
        if self._error is not None:
            return self._error
        return self._put(bytes((MP_NIL,)))

    def serialize_bool(self, value: bool) -> Result[None]:
        if self._error is not None:
            return self._error
        return self._put(bytes((MP_TRUE if value else MP_FALSE,)))

    def serialize_int(self, value: int) -> Result[None]:
        if self._error is not None:
            return self._error
        if not INT64_MIN <= value <= INT64_MAX:
            return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                              "{} does not fit a signed 64-bit integer".format(value))
        if value >= 0:
            return self._put(_uint_bytes(value))
        return self._put(_negative_bytes(value))

    def serialize_uint(self, value: int) -> Result[None]:
        if self._error is not None:
            return self._error
        if not 0 <= value <= UINT64_MAX:
            return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                              "{} does not fit an unsigned 64-bit integer".format(value))
        return self._put(_uint_bytes(value))

    def serialize_float(self, value: float) -> Result[None]:
        if self._error is not None:
            return self._error
        return self._put(bytes((MP_FLOAT64,)) + _F64.pack(value))

    def serialize_float32(self, value: float) -> Result[None]:
        if self._error is not None:
            return self._error
        try:
            packed = _F32.pack(value)
        except OverflowError:
            return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                              "{!r} is out of float32 range".format(value))
        return self._put(bytes((MP_FLOAT32,)) + packed)

    def serialize_string(self, value: str) -> Result[None]:
        if self._error is not None:
            return self._error
        try:
            data = value.encode("utf-8")
        except UnicodeEncodeError:
            return self._fail(ERR_INVALID_UTF8, "string contains a lone surrogate")
        if len(data) > _MAX_LEN:
            return self._too_long("str", len(data))
        return self._put(_str_header(len(data)) + data)

    def serialize_key(self, key: str) -> Result[None]:
        if self._error is not None:
            return self._error
        if not (self._frames and self._frames[-1].expect_key):
            return self._fail(ERR_INVALID_TYPE, "serialize_key called outside key position")
        return self.serialize_value(key)

    def serialize_bytes(self, value: bytes) -> Result[None]:
        if self._error is not None:
            return self._error
        if len(value) > _MAX_LEN:
            return self._too_long("bin", len(value))
        return self._put(_bin_header(len(value)) + bytes(value))

    def serialize_ext(self, type_id: int, data: bytes) -> Result[None]:
        if self._error is not None:
            return self._error
        if not -128 <= type_id <= 127:
            return self._fail(ERR_INVALID_TYPE,
                              "ext type id must fit a signed byte, got {}".format(type_id))
        if len(data) > _MAX_LEN:
            return self._too_long("ext", len(data))
        return self._put(_ext_header(len(data), type_id) + bytes(data))

    def begin_array(self, hint: Optional[int] = None) -> Result[None]:
        return self._open(_ARRAY)

    def begin_object(self, hint: Optional[int] = None) -> Result[None]:
        return self._open(_MAP)

    def _open(self, kind: str) -> Result[None]:
        if self._error is not None:
            return self._error
        err = self._slot()
        if err is not None:
            return err
        err = self._enter()
        if err is not None:
            return err
        self._frames.append(_Frame(kind))
        return OK_UNIT

    def end_array(self) -> Result[None]:
        return self._close(_ARRAY)

    def end_object(self) -> Result[None]:
        return self._close(_MAP)

    def _close(self, kind: str) -> Result[None]:
        if self._error is not None:
            return self._error
        if not self._frames or self._frames[-1].kind != kind:
            return self._fail(ERR_INVALID_TYPE, "end of {} without a matching begin".format(kind))
        frame = self._frames[-1]
        if kind == _MAP and not frame.expect_key:
            return self._fail(ERR_INVALID_TYPE, "map key has no value")
        if frame.count > _MAX_LEN:
            return self._too_long(kind, frame.count)
        self._frames.pop()
        self._leave()
        header = _array_header(frame.count) if kind == _ARRAY else _map_header(frame.count)
        parent = self._frames[-1].body if self._frames else self._out
        parent.extend(header)
        parent.extend(frame.body)
        return OK_UNIT

    def end(self) -> Result[None]:
        """Check that exactly one complete root value was written."""
        if self._error is not None:
            return self._error
        if self._frames:
            return self._fail(ERR_INVALID_TYPE,
                              "{} unclosed container(s)".format(len(self._frames)))
        if not self._root_written:
            return self._fail(ERR_INVALID_TYPE, "no value was serialized")
        return OK_UNIT
