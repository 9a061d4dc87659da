"""serdekit golden-vector suite.

Runs every vector in tests/vectors/*.json.  A vector names its dialect
("json", "json5" or "msgpack"), an input (``input`` text or ``input_hex``
bytes), and the expected outcome: ``{"ok": canonical}`` where canonical is
compact JSON text or the hex of the canonical MessagePack encoding, or
``{"err": CODE}`` with an optional ``offset``.

Usage:
    python tests/test_vectors.py [--vectors-dir DIR]
    python -m pytest tests/test_vectors.py -v
    SERDEKIT_VECTORS_DIR=path/to/vectors python tests/test_vectors.py
"""

from __future__ import annotations

import argparse
import glob
import json
import os
import sys
import unittest
from typing import Any, Dict, List, Tuple

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from serdekit import DUP_LAST
from serdekit import json as sjson
from serdekit import msgpack

# ── Locate vector files ───────────────────────────────────────

_DEFAULT_DIR = os.path.join(os.path.dirname(__file__), "vectors")


def _vectors_dir() -> str:
    return os.environ.get("SERDEKIT_VECTORS_DIR") or _DEFAULT_DIR


def _load_vectors() -> List[dict]:
    files = sorted(glob.glob(os.path.join(_vectors_dir(), "*.json")))
    if not files:
        raise FileNotFoundError(
            "No vector files in {}. Set SERDEKIT_VECTORS_DIR or --vectors-dir.".format(
                _vectors_dir()))
    vectors: List[dict] = []
    for path in files:
        with open(path, "r", encoding="utf-8") as f:
            doc = json.load(f)
        for vec in doc["vectors"]:
            vec.setdefault("mode", doc["format"])
            vectors.append(vec)
    return vectors


def _input(vec: dict) -> Any:
    if "input_hex" in vec:
        return bytes.fromhex(vec["input_hex"])
    return vec["input"]


def _run_vector(vec: dict) -> Dict[str, Any]:
    """Execute one vector.  Returns {"ok": ...} or {"err": ..., "offset": ...}."""
    mode = vec["mode"]
    policy = vec.get("duplicate_keys", DUP_LAST)

    if mode in ("json", "json5"):
        res = sjson.from_str(_input(vec), json5=mode == "json5", duplicate_keys=policy)
        res = res.and_then(sjson.to_string)
    elif mode == "msgpack":
        res = msgpack.from_array_to_value(_input(vec), duplicate_keys=policy)
        res = res.and_then(msgpack.to_array).map(bytes.hex)
    else:
        return {"err": "UNKNOWN_MODE"}

    if res.is_ok():
        return {"ok": res.value}
    return {"err": res.error.kind, "offset": res.error.offset}


def _matches(got: Dict[str, Any], exp: Dict[str, Any]) -> bool:
    # offsets are only checked where the vector pins one
    return all(got.get(k) == v for k, v in exp.items())


# ── unittest integration ──────────────────────────────────────

class VectorTests(unittest.TestCase):
    """Dynamically generated: one test method per vector."""
    pass


def _make_test(vec: dict):
    def test_fn(self: unittest.TestCase) -> None:
        got = _run_vector(vec)
        self.assertTrue(_matches(got, vec["expect"]),
                        "{}: got {} expected {}".format(vec["test_id"], got, vec["expect"]))
    return test_fn


# Attach test methods at import time.
try:
    for _vec in _load_vectors():
        _name = "test_{}".format(_vec["test_id"])
        _fn = _make_test(_vec)
        _fn.__name__ = _name
        _fn.__qualname__ = "VectorTests.{}".format(_name)
        setattr(VectorTests, _name, _fn)
except FileNotFoundError:
    pass


# ── Standalone runner ─────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(description="serdekit golden-vector runner")
    parser.add_argument("--vectors-dir", default=None,
                        help="Directory with *.json vector files")
    args, _remaining = parser.parse_known_args()

    if args.vectors_dir:
        os.environ["SERDEKIT_VECTORS_DIR"] = args.vectors_dir

    passed = 0
    failures: List[Tuple[str, dict, dict]] = []

    for vec in _load_vectors():
        got = _run_vector(vec)
        if _matches(got, vec["expect"]):
            passed += 1
        else:
            failures.append((vec["test_id"], got, vec["expect"]))

    total = passed + len(failures)
    print("VECTORS: {}/{} PASS".format(passed, total))
    for tid, got, exp in failures:
        print("  FAIL {}: got={} expected={}".format(tid, got, exp))

    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
