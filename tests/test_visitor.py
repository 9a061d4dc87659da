"""Unit tests for the visitor protocol: custom types, stock visitors,
draining, the recursion guard, and sticky errors on the serializer side."""

from __future__ import annotations

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from serdekit import (
    ERR_CUSTOM,
    ERR_DEPTH_EXCEEDED,
    ERR_INVALID_TYPE,
    ERR_NUMBER_OUT_OF_RANGE,
    NOTHING,
    OK_UNIT,
    Err,
    ErrorInfo,
    IgnoredAny,
    Ok,
    Some,
    Visitor,
)
from serdekit import json as sjson
from serdekit import msgpack
from serdekit._json_text import JsonDeserializer, JsonSerializer
from serdekit._msgpack_codec import MsgpackDeserializer
from serdekit._visitor import (
    FloatVisitor,
    IntVisitor,
    OptionVisitor,
    StringVisitor,
    UIntVisitor,
    recursion_headroom,
    run_guarded,
)


# ── A user type that speaks the protocol ──────────────────────

class Point:
    def __init__(self, x: int = 0, y: int = 0) -> None:
        self.x = x
        self.y = y

    def serialize(self, ser):
        res = ser.begin_object(2)
        if res.is_err():
            return res
        res = ser.serialize_entry("x", self.x)
        if res.is_err():
            return res
        res = ser.serialize_entry("y", self.y)
        if res.is_err():
            return res
        return ser.end_object()

    def deserialize(self, de):
        return de.deserialize_map(_PointVisitor(self))


class _PointVisitor(Visitor):
    expecting = "a point"

    def __init__(self, target: Point) -> None:
        self.target = target

    def visit_map(self, access):
        while True:
            res = access.next_key(StringVisitor())
            if res.is_err():
                return res
            if res.value.is_none():
                return OK_UNIT
            key = res.value.unwrap()
            if key in ("x", "y"):
                res = access.next_value(IntVisitor())
                if res.is_err():
                    return res
                setattr(self.target, key, res.value)
            else:
                res = access.next_value(IgnoredAny())
                if res.is_err():
                    return res


class _PositiveVisitor(Visitor):
    expecting = "a positive integer"

    def visit_int(self, value):
        if value <= 0:
            return Err(ErrorInfo(ERR_CUSTOM, "{} is not positive".format(value)))
        return Ok(value)


class _FirstElement(Visitor):
    """Reads one element of an array and walks away."""

    expecting = "an array"

    def visit_seq(self, seq):
        return seq.next_element(IntVisitor()).map(lambda opt: opt.unwrap_or(None))

    def visit_map(self, access):
        return access.next_key(StringVisitor()).map(lambda opt: opt.unwrap_or(None))


class TestCustomType(unittest.TestCase):
    def test_serialize_json(self):
        self.assertEqual(sjson.to_string(Point(1, -2)).unwrap(), '{"x":1,"y":-2}')

    def test_serialize_pretty(self):
        self.assertEqual(sjson.to_string_pretty(Point(1, -2)).unwrap(),
                         '{\n  "x": 1,\n  "y": -2\n}')

    def test_serialize_msgpack(self):
        self.assertEqual(msgpack.to_array(Point(1, -2)).unwrap(), b"\x82\xa1x\x01\xa1y\xfe")

    def test_nested_in_native_data(self):
        text = sjson.to_string({"points": [Point(), Point(3, 4)]}).unwrap()
        self.assertEqual(text, '{"points":[{"x":0,"y":0},{"x":3,"y":4}]}')

    def test_deserialize_json_into(self):
        p = Point()
        self.assertTrue(sjson.from_str_into('{"y": 7, "extra": [1, {"a": 2}], "x": 5}', p).is_ok())
        self.assertEqual((p.x, p.y), (5, 7))

    def test_deserialize_msgpack_into(self):
        data = msgpack.to_array({"z": [1, 2], "x": 5, "y": -6}).unwrap()
        p = Point()
        self.assertTrue(msgpack.from_array_into(data, p).is_ok())
        self.assertEqual((p.x, p.y), (5, -6))

    def test_wrong_field_type_is_positioned(self):
        err = sjson.from_str_into('{"x": "a"}', Point()).unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_TYPE)
        self.assertEqual((err.offset, err.line, err.column), (6, 1, 7))
        self.assertIn("expected a signed 64-bit integer", err.message)

    def test_not_a_map(self):
        err = sjson.from_str_into("[1, 2]", Point()).unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_TYPE)
        self.assertEqual(err.offset, 0)

    def test_trailing_data_after_target(self):
        self.assertTrue(sjson.from_str_into('{"x":1} 2', Point()).is_err())
        self.assertTrue(msgpack.from_array_into(b"\x80\xc0", Point()).is_err())

    def test_custom_error_carries_position(self):
        err = sjson.from_str("[1, -4]", visitor=_ListOf(_PositiveVisitor())).unwrap_err()
        self.assertEqual(err.kind, ERR_CUSTOM)
        self.assertEqual(err.offset, 4)
        self.assertEqual(err.message, "-4 is not positive")

    def test_custom_error_binary_offset(self):
        err = msgpack.from_array(b"\x92\x01\xff", _ListOf(_PositiveVisitor())).unwrap_err()
        self.assertEqual(err.kind, ERR_CUSTOM)
        self.assertEqual(err.offset, 2)
        self.assertIsNone(err.line)


class _ListOf(Visitor):
    expecting = "an array"

    def __init__(self, inner: Visitor) -> None:
        self.inner = inner

    def visit_seq(self, seq):
        out = []
        while True:
            res = seq.next_element(self.inner)
            if res.is_err():
                return res
            if res.value.is_none():
                return Ok(out)
            out.append(res.value.unwrap())


# ── Stock visitors and typed pulls ────────────────────────────

class TestStockVisitors(unittest.TestCase):
    def test_int_visitor_rejects_large_uint(self):
        de = JsonDeserializer("18446744073709551615")
        self.assertEqual(de.deserialize_int().unwrap_err().kind, ERR_NUMBER_OUT_OF_RANGE)

    def test_int_visitor_accepts_small_uint(self):
        de = MsgpackDeserializer(b"\xcc\xff")
        self.assertEqual(de.deserialize_int(), Ok(255))

    def test_uint_visitor_rejects_negative(self):
        de = JsonDeserializer("-1")
        err = de.deserialize_uint().unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_TYPE)
        self.assertIn("negative integer", err.message)

    def test_float_visitor_accepts_ints(self):
        self.assertEqual(JsonDeserializer("3").deserialize_float(), Ok(3.0))
        self.assertEqual(MsgpackDeserializer(b"\xca\x3f\xc0\x00\x00").deserialize_float(), Ok(1.5))

    def test_typed_pull_mismatch(self):
        err = JsonDeserializer("true").deserialize_string().unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_TYPE)
        self.assertEqual(err.message, "invalid type: boolean, expected a string")

    def test_bytes_only_from_msgpack(self):
        self.assertEqual(MsgpackDeserializer(b"\xc4\x02ab").deserialize_bytes(), Ok(b"ab"))
        self.assertEqual(JsonDeserializer('"ab"').deserialize_bytes().unwrap_err().kind,
                         ERR_INVALID_TYPE)

    def test_option(self):
        self.assertIs(JsonDeserializer("null").deserialize_option(IntVisitor()).unwrap(), NOTHING)
        self.assertEqual(JsonDeserializer("4").deserialize_option(IntVisitor()), Ok(Some(4)))
        err = JsonDeserializer('"x"').deserialize_option(IntVisitor()).unwrap_err()
        self.assertIn("expected a signed 64-bit integer", err.message)

    def test_option_expecting(self):
        self.assertEqual(OptionVisitor(UIntVisitor()).expecting, "null or an unsigned integer")

    def test_ignored_skips_one_value(self):
        de = JsonDeserializer('{"a": [1, {"b": null}]}')
        self.assertEqual(de.deserialize_ignored(), OK_UNIT)
        self.assertEqual(de.end(), OK_UNIT)

    def test_null_pull(self):
        self.assertEqual(MsgpackDeserializer(b"\xc0").deserialize_null(), OK_UNIT)
        self.assertEqual(MsgpackDeserializer(b"\xc3").deserialize_bool(), Ok(True))

    def test_float_visitor_widens_float32(self):
        self.assertIsInstance(FloatVisitor().visit_float32(0.5).unwrap(), float)


# ── Draining what a visitor leaves unread ─────────────────────

class TestDraining(unittest.TestCase):
    def test_json_seq_remainder_is_skipped(self):
        res = sjson.from_str("[1, [2, 3], {\"k\": 4}]", visitor=_FirstElement())
        self.assertEqual(res, Ok(1))

    def test_json_map_value_is_skipped(self):
        res = sjson.from_str('{"a": [1, 2], "b": 3}', visitor=_FirstElement())
        self.assertEqual(res, Ok("a"))

    def test_json_drain_still_validates(self):
        res = sjson.from_str("[1, [2, 3}]", visitor=_FirstElement())
        self.assertTrue(res.is_err())

    def test_msgpack_remainder_is_skipped(self):
        data = msgpack.to_array([1, [2, 3], {"k": b"\x00"}]).unwrap()
        self.assertEqual(msgpack.from_array(data, _FirstElement()), Ok(1))

    def test_msgpack_map_remainder_is_skipped(self):
        data = msgpack.to_array({"a": [1, 2], "b": 3}).unwrap()
        self.assertEqual(msgpack.from_array(data, _FirstElement()), Ok("a"))

    def test_prefix_offset_after_drain(self):
        value, end = sjson.from_str_prefix("[1, 2, 3] tail", visitor=_FirstElement()).unwrap()
        self.assertEqual((value, end), (1, 9))


# ── Recursion guard ───────────────────────────────────────────

def _forever(n):
    return _forever(n + 1)


class TestRecursionGuard(unittest.TestCase):
    def test_runaway_recursion_becomes_err(self):
        err = run_guarded(10, lambda: _forever(0)).unwrap_err()
        self.assertEqual(err.kind, ERR_DEPTH_EXCEEDED)

    def test_headroom_restores_limit(self):
        before = sys.getrecursionlimit()
        with recursion_headroom(before):
            self.assertGreater(sys.getrecursionlimit(), before)
        self.assertEqual(sys.getrecursionlimit(), before)

    def test_headroom_never_lowers_limit(self):
        before = sys.getrecursionlimit()
        with recursion_headroom(1):
            self.assertEqual(sys.getrecursionlimit(), before)

    def test_bad_max_depth(self):
        with self.assertRaises(ValueError):
            JsonDeserializer("1", max_depth=0)


# ── Sticky errors ─────────────────────────────────────────────

class TestSerializerSticky(unittest.TestCase):
    def test_first_error_sticks(self):
        parts = []
        ser = JsonSerializer(parts.append)
        self.assertTrue(ser.begin_array().is_ok())
        first = ser.serialize_bytes(b"x")
        self.assertEqual(first.unwrap_err().kind, ERR_INVALID_TYPE)
        self.assertIs(ser.serialize_null(), first)
        self.assertIs(ser.end_array(), first)
        self.assertIs(ser.end(), first)
        self.assertIs(ser.error, first)
        self.assertEqual("".join(parts), "[")

    def test_second_root_rejected(self):
        ser = JsonSerializer([].append)
        self.assertTrue(ser.serialize_int(1).is_ok())
        self.assertEqual(ser.serialize_int(2).unwrap_err().kind, ERR_INVALID_TYPE)

    def test_non_string_key_rejected(self):
        self.assertEqual(sjson.to_string({1: 2}).unwrap_err().kind, ERR_INVALID_TYPE)

    def test_mismatched_close(self):
        ser = JsonSerializer([].append)
        ser.begin_array()
        self.assertEqual(ser.end_object().unwrap_err().kind, ERR_INVALID_TYPE)

    def test_dangling_key(self):
        ser = JsonSerializer([].append)
        ser.begin_object()
        ser.serialize_key("k")
        self.assertEqual(ser.end_object().unwrap_err().kind, ERR_INVALID_TYPE)

    def test_ext_has_no_json_form(self):
        err = sjson.to_string(msgpack.Ext(1, b"")).unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_TYPE)


if __name__ == "__main__":
    unittest.main()
