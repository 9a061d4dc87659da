"""Unit tests for the MessagePack backend and the serdekit.msgpack entry points."""

from __future__ import annotations

import io
import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from serdekit import (
    ERR_DEPTH_EXCEEDED,
    ERR_INVALID_MSGPACK_TAG,
    ERR_INVALID_TYPE,
    ERR_INVALID_UTF8,
    ERR_IO,
    ERR_NUMBER_OUT_OF_RANGE,
    ERR_TRAILING_DATA,
    ERR_UNEXPECTED_END,
)
from serdekit import json as sjson
from serdekit import msgpack
from serdekit.msgpack import (
    NIL,
    Array,
    Bin,
    Bool,
    Ext,
    Float32,
    Float64,
    Int,
    Map,
    MsgpackSerializer,
    Str,
    UInt,
)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1


def _hex(value):
    return msgpack.to_array(value).unwrap().hex()


def _decode(hex_text):
    return msgpack.from_array_to_value(bytes.fromhex(hex_text))


# ── Encoding ──────────────────────────────────────────────────

class TestEncode(unittest.TestCase):
    def test_json_object_to_msgpack(self):
        value = sjson.Object({"a": sjson.Bool(True)})
        self.assertEqual(msgpack.to_array(value).unwrap(), bytes([0x81, 0xA1, 0x61, 0xC3]))

    def test_scalars(self):
        self.assertEqual(_hex(None), "c0")
        self.assertEqual(_hex(False), "c2")
        self.assertEqual(_hex(True), "c3")
        self.assertEqual(_hex(1.5), "cb3ff8000000000000")
        self.assertEqual(_hex(Float32(1.5)), "ca3fc00000")
        self.assertEqual(_hex(b"\x01\x02"), "c4020102")

    def test_integer_widths(self):
        cases = [
            (0, "00"), (127, "7f"), (128, "cc80"), (255, "ccff"),
            (256, "cd0100"), (65535, "cdffff"), (65536, "ce00010000"),
            (2**32 - 1, "ceffffffff"), (2**32, "cf0000000100000000"),
            (UINT64_MAX, "cfffffffffffffffff"),
            (-1, "ff"), (-32, "e0"), (-33, "d0df"), (-128, "d080"),
            (-129, "d1ff7f"), (-32768, "d18000"), (-32769, "d2ffff7fff"),
            (-(2**31), "d280000000"), (-(2**31) - 1, "d3ffffffff7fffffff"),
            (INT64_MIN, "d38000000000000000"),
        ]
        for n, expected in cases:
            with self.subTest(n=n):
                self.assertEqual(_hex(n), expected)

    def test_signed_and_unsigned_encode_alike(self):
        for n in [0, 5, 200, 70000, INT64_MAX]:
            with self.subTest(n=n):
                self.assertEqual(_hex(Int(n)), _hex(UInt(n)))
        self.assertEqual(Int(5), UInt(5))
        self.assertEqual(hash(Int(5)), hash(UInt(5)))

    def test_string_widths(self):
        for n, prefix in [(0, "a0"), (31, "bf"), (32, "d920"), (255, "d9ff"),
                          (256, "da0100"), (65535, "daffff"), (65536, "db00010000")]:
            with self.subTest(n=n):
                self.assertTrue(_hex("x" * n).startswith(prefix))

    def test_string_length_counts_bytes(self):
        self.assertEqual(_hex("é"), "a2c3a9")

    def test_bin_widths(self):
        for n, prefix in [(0, "c400"), (255, "c4ff"), (256, "c50100"), (65536, "c600010000")]:
            with self.subTest(n=n):
                self.assertTrue(_hex(b"\x00" * n).startswith(prefix))

    def test_container_widths(self):
        for n, prefix in [(0, "90"), (15, "9f"), (16, "dc0010"), (65536, "dd00010000")]:
            with self.subTest(n=n):
                self.assertTrue(_hex([None] * n).startswith(prefix))
        for n, prefix in [(0, "80"), (15, "8f"), (16, "de0010")]:
            with self.subTest(map=n):
                self.assertTrue(_hex({i: None for i in range(n)}).startswith(prefix))

    def test_ext_forms(self):
        self.assertEqual(_hex(Ext(1, b"\x00")), "d40100")
        self.assertEqual(_hex(Ext(-1, b"\x01\x02\x03\x04")), "d6ff01020304")
        self.assertEqual(_hex(Ext(5, b"\x00" * 16)), "d805" + "00" * 16)
        self.assertEqual(_hex(Ext(1, b"abc")), "c70301616263")
        self.assertEqual(_hex(Ext(1, b"")), "c70001")
        self.assertTrue(_hex(Ext(2, b"\x00" * 256)).startswith("c8010002"))

    def test_size_hint_is_not_trusted(self):
        ser = MsgpackSerializer()
        ser.begin_array(10)
        ser.serialize_int(1)
        ser.end_array()
        self.assertEqual(ser.getvalue(), b"\x91\x01")

    def test_nested(self):
        value = sjson.from_str('{"a":[1,-2,1.5,"x",null]}').unwrap()
        self.assertEqual(_hex(value), "81a1619501fecb3ff8000000000000a178c0")

    def test_non_string_keys(self):
        self.assertEqual(_hex(Map([(Int(1), Str("one")), (Array([NIL]), Bool(True))])),
                         "8201a36f6e6591c0c3")

    def test_float32_overflow(self):
        ser = MsgpackSerializer()
        self.assertEqual(ser.serialize_float32(1e300).unwrap_err().kind, ERR_NUMBER_OUT_OF_RANGE)
        with self.assertRaises(ValueError):
            Float32(1e300)

    def test_integer_out_of_range(self):
        self.assertEqual(msgpack.to_array(2**64).unwrap_err().kind, ERR_NUMBER_OUT_OF_RANGE)
        self.assertEqual(msgpack.to_array(INT64_MIN - 1).unwrap_err().kind,
                         ERR_NUMBER_OUT_OF_RANGE)

    def test_lone_surrogate(self):
        self.assertEqual(msgpack.to_array("\ud800").unwrap_err().kind, ERR_INVALID_UTF8)

    def test_hex_dump(self):
        value = sjson.Object({"a": sjson.Bool(True)})
        self.assertEqual(msgpack.to_string(value).unwrap(), "81 a1 61 c3")
        self.assertEqual(msgpack.hexdump(b""), "")


# ── Decoding ──────────────────────────────────────────────────

class TestDecode(unittest.TestCase):
    def test_map(self):
        self.assertEqual(_decode("81a161c3").unwrap(), Map([(Str("a"), Bool(True))]))

    def test_signedness_of_decoded_integers(self):
        self.assertIsInstance(_decode("05").unwrap(), UInt)
        self.assertIsInstance(_decode("d005").unwrap(), UInt)
        self.assertIsInstance(_decode("ff").unwrap(), Int)
        self.assertEqual(_decode("d0ff").unwrap(), Int(-1))
        self.assertEqual(_decode("cfffffffffffffffff").unwrap(), UInt(UINT64_MAX))
        self.assertEqual(_decode("d38000000000000000").unwrap(), Int(INT64_MIN))

    def test_non_minimal_forms_accepted(self):
        self.assertEqual(_decode("cc05").unwrap(), UInt(5))
        self.assertEqual(_decode("d90161").unwrap(), Str("a"))
        self.assertEqual(_decode("dc000101").unwrap(), Array([UInt(1)]))
        self.assertEqual(_decode("df00000000").unwrap(), Map())

    def test_float_widths_survive(self):
        value = _decode("ca3fc00000").unwrap()
        self.assertIsInstance(value, Float32)
        self.assertEqual(value.value, 1.5)
        self.assertEqual(msgpack.to_array(value).unwrap().hex(), "ca3fc00000")
        self.assertIsInstance(_decode("cb3ff8000000000000").unwrap(), Float64)

    def test_bin_and_ext(self):
        self.assertEqual(_decode("c403010203").unwrap(), Bin(b"\x01\x02\x03"))
        self.assertEqual(_decode("d6ff01020304").unwrap(), Ext(-1, b"\x01\x02\x03\x04"))
        self.assertEqual(_decode("c70301616263").unwrap(), Ext(1, b"abc"))

    def test_reserved_tag(self):
        err = _decode("9201c1").unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_MSGPACK_TAG)
        self.assertEqual(err.offset, 2)

    def test_truncated_str8(self):
        err = msgpack.from_array_to_value(b"\xd9\x0aabc").unwrap_err()
        self.assertEqual(err.kind, ERR_UNEXPECTED_END)
        self.assertEqual(err.offset, 0)

    def test_truncated_forms(self):
        for hex_text in ["", "cd01", "cb00", "92", "9201", "81a161", "d6ff0102", "c7", "dd0000"]:
            with self.subTest(hex_text=hex_text):
                self.assertEqual(_decode(hex_text).unwrap_err().kind, ERR_UNEXPECTED_END)

    def test_huge_declared_count(self):
        err = _decode("ddffffffff").unwrap_err()
        self.assertEqual(err.kind, ERR_UNEXPECTED_END)

    def test_invalid_utf8(self):
        err = _decode("a2c328").unwrap_err()
        self.assertEqual(err.kind, ERR_INVALID_UTF8)
        self.assertEqual(err.offset, 1)

    def test_trailing_data(self):
        err = _decode("c0c0").unwrap_err()
        self.assertEqual(err.kind, ERR_TRAILING_DATA)
        self.assertEqual(err.offset, 1)

    def test_to_json(self):
        value = _decode("82a161cb3ff8000000000000a1629201c0").unwrap()
        self.assertEqual(sjson.to_string(value).unwrap(), '{"a":1.5,"b":[1,null]}')

    def test_to_json_rejects_non_string_keys(self):
        res = msgpack.from_array(bytes.fromhex("810102"), sjson.JsonValueVisitor())
        self.assertEqual(res.unwrap_err().kind, ERR_INVALID_TYPE)

    def test_to_json_rejects_bin(self):
        value = _decode("c40100").unwrap()
        self.assertEqual(sjson.to_string(value).unwrap_err().kind, ERR_INVALID_TYPE)


# ── Depth guard ───────────────────────────────────────────────

class TestDepth(unittest.TestCase):
    def test_1025_levels_rejected(self):
        err = msgpack.from_array_to_value(b"\x91" * 1025 + b"\xc0").unwrap_err()
        self.assertEqual(err.kind, ERR_DEPTH_EXCEEDED)
        self.assertEqual(err.offset, 1024)

    def test_1024_levels_accepted(self):
        self.assertTrue(msgpack.from_array_to_value(b"\x91" * 1024 + b"\xc0").is_ok())

    def test_deep_maps(self):
        data = b"\x81\xc0" * 1025 + b"\xc0"
        self.assertEqual(msgpack.from_array_to_value(data).unwrap_err().kind, ERR_DEPTH_EXCEEDED)

    def test_custom_max_depth(self):
        self.assertEqual(_decode("9191c0").unwrap().to_python(), [[None]])
        err = msgpack.from_array_to_value(bytes.fromhex("9191c0"), max_depth=1).unwrap_err()
        self.assertEqual(err.kind, ERR_DEPTH_EXCEEDED)


# ── Handles and files ─────────────────────────────────────────

class TestIO(unittest.TestCase):
    def test_writer_and_reader(self):
        buf = io.BytesIO()
        self.assertTrue(msgpack.to_writer(buf, {"k": [1, 2]}).is_ok())
        buf.seek(0)
        value = msgpack.from_reader(buf).unwrap()
        self.assertEqual(value.to_python(), {"k": [1, 2]})

    def test_failed_encode_writes_nothing(self):
        buf = io.BytesIO()
        self.assertTrue(msgpack.to_writer(buf, [1, object()]).is_err())
        self.assertEqual(buf.getvalue(), b"")

    def test_text_reader_rejected(self):
        self.assertEqual(msgpack.from_reader(io.StringIO("x")).unwrap_err().kind, ERR_IO)

    def test_file_round_trip(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "doc.msgpack")
            self.assertTrue(msgpack.to_file(path, ["a", 1.5, None]).is_ok())
            value = msgpack.from_file(path).unwrap()
        self.assertEqual(value, Array([Str("a"), Float64(1.5), NIL]))

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as d:
            self.assertEqual(msgpack.from_file(os.path.join(d, "x")).unwrap_err().kind, ERR_IO)

    def test_unwritable_path(self):
        with tempfile.TemporaryDirectory() as d:
            err = msgpack.to_file(os.path.join(d, "missing", "x.bin"), 1).unwrap_err()
        self.assertEqual(err.kind, ERR_IO)


if __name__ == "__main__":
    unittest.main()
