"""Unit tests for the bridge between plain Python objects and the visitor protocol."""

from __future__ import annotations

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from serdekit import (
    ERR_INVALID_TYPE,
    ERR_NUMBER_OUT_OF_RANGE,
    PythonVisitor,
    serialize_native,
)
from serdekit import json as sjson
from serdekit import msgpack
from serdekit._msgpack_codec import MsgpackSerializer


# ── serialize_native ──────────────────────────────────────────

class TestSerializeNative(unittest.TestCase):
    def test_bool_is_not_int(self):
        self.assertEqual(sjson.to_string([True, 1, False, 0]).unwrap(), "[true,1,false,0]")
        self.assertEqual(msgpack.to_array([True, 1]).unwrap().hex(), "92c301")

    def test_integer_ranges(self):
        self.assertEqual(sjson.to_string(2**64 - 1).unwrap(), "18446744073709551615")
        self.assertEqual(sjson.to_string(-(2**63)).unwrap(), "-9223372036854775808")
        for n in (2**64, -(2**63) - 1, 10**30):
            with self.subTest(n=n):
                err = sjson.to_string(n).unwrap_err()
                self.assertEqual(err.kind, ERR_NUMBER_OUT_OF_RANGE)
                self.assertEqual(msgpack.to_array(n).unwrap_err().kind, ERR_NUMBER_OUT_OF_RANGE)

    def test_tuple_is_array(self):
        self.assertEqual(sjson.to_string((1, (2, 3))).unwrap(), "[1,[2,3]]")

    def test_byte_types(self):
        for blob in (b"\x01\x02", bytearray(b"\x01\x02"), memoryview(b"\x01\x02")):
            with self.subTest(type=type(blob).__name__):
                self.assertEqual(msgpack.to_array(blob).unwrap(), b"\xc4\x02\x01\x02")

    def test_unknown_type(self):
        err = sjson.to_string({"k": object()}).unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_TYPE)
        self.assertIn("object", err.message)

    def test_set_is_rejected(self):
        self.assertEqual(msgpack.to_array({1, 2}).unwrap_err().kind, ERR_INVALID_TYPE)

    def test_dict_order_kept(self):
        self.assertEqual(sjson.to_string({"b": 1, "a": 2}).unwrap(), '{"b":1,"a":2}')

    def test_non_string_keys_in_msgpack(self):
        self.assertEqual(msgpack.to_array({1: None, None: True}).unwrap().hex(), "8201c0c0c3")

    def test_value_nodes_mix_with_native(self):
        value = sjson.from_str("[1, 2]").unwrap()
        self.assertEqual(sjson.to_string({"v": value, "n": None}).unwrap(), '{"v":[1,2],"n":null}')

    def test_sticky_error_returned_on_later_calls(self):
        ser = MsgpackSerializer()
        first = serialize_native(object(), ser)
        self.assertTrue(first.is_err())
        self.assertIs(serialize_native(2**70, ser), first)
        self.assertIs(serialize_native([1], ser), first)

    def test_public_fail_is_sticky(self):
        ser = MsgpackSerializer()
        first = ser.fail(ERR_INVALID_TYPE, "not representable")
        self.assertEqual(first.error.kind, ERR_INVALID_TYPE)
        self.assertIs(ser.fail(ERR_NUMBER_OUT_OF_RANGE, "later"), first)
        self.assertIs(ser.error, first)
        self.assertIs(ser.serialize_null(), first)


# ── PythonVisitor ─────────────────────────────────────────────

class TestPythonVisitor(unittest.TestCase):
    def test_json_document(self):
        res = sjson.from_str('{"a": [1, 2.5, "x", true, null], "b": {}}', visitor=PythonVisitor())
        self.assertEqual(res.unwrap(), {"a": [1, 2.5, "x", True, None], "b": {}})

    def test_u64_stays_int(self):
        self.assertEqual(sjson.from_str("18446744073709551615", visitor=PythonVisitor()).unwrap(),
                         2**64 - 1)

    def test_msgpack_bin_and_ext(self):
        data = msgpack.to_array([b"\x00", msgpack.Ext(3, b"ab")]).unwrap()
        self.assertEqual(msgpack.from_array(data, PythonVisitor()).unwrap(), [b"\x00", (3, b"ab")])

    def test_msgpack_array_key_becomes_tuple(self):
        data = bytes.fromhex("81" "92" "01" "a178" "c3")
        self.assertEqual(msgpack.from_array(data, PythonVisitor()).unwrap(), {(1, "x"): True})

    def test_msgpack_nested_array_key(self):
        data = bytes.fromhex("81" "92" "91c0" "02" "c2")
        self.assertEqual(msgpack.from_array(data, PythonVisitor()).unwrap(), {((None,), 2): False})

    def test_msgpack_map_key_rejected(self):
        data = bytes.fromhex("81" "81a161c0" "c3")
        err = msgpack.from_array(data, PythonVisitor()).unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_TYPE)
        self.assertEqual(err.offset, 1)

    def test_round_trip_through_both_formats(self):
        original = {"name": "serdekit", "sizes": [0, -1, 2**40], "ratio": 0.25, "ok": False}
        packed = msgpack.to_array(original).unwrap()
        self.assertEqual(msgpack.from_array(packed, PythonVisitor()).unwrap(), original)
        text = sjson.to_string(original).unwrap()
        self.assertEqual(sjson.from_str(text, visitor=PythonVisitor()).unwrap(), original)


if __name__ == "__main__":
    unittest.main()
