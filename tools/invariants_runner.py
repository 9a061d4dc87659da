#!/usr/bin/env python3
# tools/invariants_runner.py
#
# Round-trip and canonical-form invariants (property tests) for serdekit.
#
# This runner:
# - generates random Python trees (dict/list/str/bytes/int/float/bool/None) within limits
# - checks MessagePack encode stability and the canonical fixpoint
# - checks JSON text round trips, pretty/compact agreement and the JSON5 superset
# - checks that JSON values survive a MessagePack round trip unchanged
#
# Exit code:
#   0 -> all checks passed
#   1 -> invariant violation

import os, sys, json, random
from typing import Any, Dict

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from serdekit import json as sjson, msgpack
from serdekit.json import JsonValueVisitor

SEED = int(os.environ.get("SERDEKIT_SEED", "1337"))
TRIALS = int(os.environ.get("SERDEKIT_TRIALS", "2000"))
MAX_GEN_DEPTH = int(os.environ.get("SERDEKIT_GEN_MAX_DEPTH", "6"))
MAX_KEYS = int(os.environ.get("SERDEKIT_GEN_MAX_KEYS", "6"))
MAX_LIST = int(os.environ.get("SERDEKIT_GEN_MAX_LIST", "6"))
MAX_STR = int(os.environ.get("SERDEKIT_GEN_MAX_STR", "24"))
MAX_BYTES = int(os.environ.get("SERDEKIT_GEN_MAX_BYTES", "32"))

random.seed(SEED)

# integer edges where the MessagePack encoder switches width
INT_EDGES = [0, 1, 127, 128, 255, 256, 65535, 65536, 2**32 - 1, 2**32, 2**63 - 1,
             2**64 - 1, -1, -32, -33, -128, -129, -32768, -32769, -2**31, -2**31 - 1, -2**63]

def rand_utf8_string() -> str:
    # Generate scalars excluding surrogate range; include tricky chars occasionally.
    out = []
    n = random.randint(0, MAX_STR)
    for _ in range(n):
        r = random.random()
        if r < 0.65:
            out.append(chr(random.randint(0x20, 0x7E)))
        elif r < 0.75:
            out.append(random.choice('"\\/\b\f\n\r\t\x00\x1f'))
        elif r < 0.85:
            out.append(chr(random.randint(0xA0, 0xFF)))
        elif r < 0.95:
            cp = random.randint(0x0100, 0xD7FF)  # exclude surrogates
            out.append(chr(cp))
        else:
            cp = random.randint(0x10000, 0x10FFFF)
            out.append(chr(cp))
    return "".join(out)

def rand_bytes() -> bytes:
    return bytes(random.getrandbits(8) for _ in range(random.randint(0, MAX_BYTES)))

def rand_int() -> int:
    if random.random() < 0.5:
        return random.choice(INT_EDGES)
    return random.randint(-2**63, 2**64 - 1)

def rand_float() -> float:
    r = random.random()
    if r < 0.2:
        return random.choice([0.0, -0.0, 1.0, 0.5, 1e300, -1e-300, 5e-324])
    if r < 0.6:
        return random.uniform(-1e6, 1e6)
    return random.uniform(-1.0, 1.0) * 10 ** random.randint(-300, 300)

def gen_scalar(allow_bytes: bool) -> Any:
    r = random.random()
    if r < 0.10:
        return None
    if r < 0.20:
        return random.random() < 0.5
    if r < 0.45:
        return rand_int()
    if r < 0.60:
        return rand_float()
    if allow_bytes and r < 0.70:
        return rand_bytes()
    return rand_utf8_string()

def gen_value(depth: int, allow_bytes: bool) -> Any:
    if depth >= MAX_GEN_DEPTH:
        return gen_scalar(allow_bytes)
    r = random.random()
    if r < 0.35:
        n = random.randint(0, MAX_KEYS)
        d: Dict[str, Any] = {}
        for _ in range(n):
            d[rand_utf8_string()] = gen_value(depth + 1, allow_bytes)
        return d
    if r < 0.60:
        n = random.randint(0, MAX_LIST)
        return [gen_value(depth + 1, allow_bytes) for _ in range(n)]
    return gen_scalar(allow_bytes)

def fail(label: str, context: Dict[str, Any]) -> int:
    print("INVARIANT FAIL:", label)
    print("CTX:", json.dumps(context, ensure_ascii=False, default=repr)[:2000])
    return 1

def check_msgpack(t: int, v: Any) -> int:
    # (1) encode stability (encode twice, same bytes)
    b1 = msgpack.to_array(v).unwrap()
    b2 = msgpack.to_array(v).unwrap()
    if b1 != b2:
        return fail("msgpack encode stability", {"trial": t})

    # (2) canonical fixpoint: decode + re-encode reproduces the bytes
    back = msgpack.from_array_to_value(b1)
    if back.is_err():
        return fail("msgpack decode of own output", {"trial": t, "err": str(back.error)})
    if msgpack.to_array(back.value).unwrap() != b1:
        return fail("msgpack canonical fixpoint", {"trial": t, "hex": b1.hex()})

    # (3) value trees round trip unchanged
    if msgpack.from_array_to_value(msgpack.to_array(back.value).unwrap()).unwrap() != back.value:
        return fail("msgpack value round trip", {"trial": t, "hex": b1.hex()})
    return 0

def check_json(t: int, v: Any) -> int:
    text = sjson.to_string(v).unwrap()

    # (4) compact text round trip: parse + print reproduces the text
    parsed = sjson.from_str(text)
    if parsed.is_err():
        return fail("json parse of own output", {"trial": t, "text": text, "err": str(parsed.error)})
    value = parsed.value
    if sjson.to_string(value).unwrap() != text:
        return fail("json text fixpoint", {"trial": t, "text": text})

    # (5) pretty and compact output parse to the same tree
    pretty = sjson.to_string_pretty(v).unwrap()
    if sjson.from_str(pretty).unwrap() != value:
        return fail("pretty/compact agreement", {"trial": t, "pretty": pretty})

    # (6) every strict document reads the same in JSON5
    if sjson.from_str(text, json5=True).unwrap() != value:
        return fail("json5 superset", {"trial": t, "text": text})

    # (7) JSON value -> MessagePack -> JSON value is the identity
    packed = msgpack.to_array(value).unwrap()
    if msgpack.from_array(packed, JsonValueVisitor()).unwrap() != value:
        return fail("json via msgpack", {"trial": t, "text": text, "hex": packed.hex()})
    return 0

def main() -> int:
    for t in range(TRIALS):
        rc = check_msgpack(t, gen_value(0, allow_bytes=True))
        if rc:
            return rc
        rc = check_json(t, gen_value(0, allow_bytes=False))
        if rc:
            return rc

    print(f"OK: invariants passed for TRIALS={TRIALS} seed={SEED}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
