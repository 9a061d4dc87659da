#!/usr/bin/env python3
# tools/fuzz_runner.py
#
# Robustness fuzzing for the serdekit decoders.
#
# Generates three fuzz categories:
#   A) truncated and bit-flipped MessagePack -> from_array_to_value
#   B) random JSON texts (valid + invalid + mutated) -> from_str, strict and JSON5
#   C) deep nesting past max_depth in both formats
#
# Every decode must return a Result (never raise), every error must carry a
# known code and an offset inside the input, and every Ok decode must
# re-encode to a canonical fixpoint.  Any violation prints a minimal repro
# payload and exits non-zero.

import os, sys, json, random
from typing import Any, Dict

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from serdekit import ALL_CODES, ERR_DEPTH_EXCEEDED
from serdekit import json as sjson, msgpack

SEED = int(os.environ.get("SERDEKIT_SEED", "4242"))
ROUNDS = int(os.environ.get("SERDEKIT_FUZZ_ROUNDS", "5000"))

random.seed(SEED)

def violation(label: str, ctx: Dict[str, Any]) -> None:
    print("VIOLATION:", label)
    print("CTX:", json.dumps(ctx, ensure_ascii=False, default=repr)[:4000])
    raise SystemExit(1)

def check_err(label: str, res: Any, size: int, ctx: Dict[str, Any]) -> None:
    info = res.error
    if info.kind not in ALL_CODES:
        violation(label + ": unknown error code", dict(ctx, err=str(info)))
    if info.offset is not None and not 0 <= info.offset <= size:
        violation(label + ": offset outside input", dict(ctx, err=str(info)))

# --- generators ---

def rand_ascii(nmax: int) -> str:
    n = random.randint(0, nmax)
    return "".join(chr(random.randint(0x20,0x7E)) for _ in range(n))

def rand_tree(depth: int = 0) -> Any:
    r = random.random()
    if depth > 5 or r < 0.4:
        return random.choice([None, True, False, random.randint(-2**63, 2**64-1),
                              random.uniform(-1e9, 1e9), rand_ascii(18)])
    if r < 0.7:
        return {rand_ascii(10): rand_tree(depth+1) for _ in range(random.randint(0,5))}
    return [rand_tree(depth+1) for _ in range(random.randint(0,5))]

def rand_msgpack() -> bytes:
    tree = rand_tree()
    if random.random() < 0.2:
        tree = [tree, bytes(random.getrandbits(8) for _ in range(random.randint(0,24))),
                msgpack.Ext(random.randint(-128,127), rand_ascii(20).encode())]
    return msgpack.to_array(tree).unwrap()

def mutate(data: bytes) -> bytes:
    b = bytearray(data)
    for _ in range(random.randint(1,3)):
        op = random.random()
        if op < 0.4 and b:
            b[random.randrange(len(b))] = random.getrandbits(8)
        elif op < 0.7 and b:
            del b[random.randrange(len(b))]
        else:
            b.insert(random.randint(0, len(b)), random.getrandbits(8))
    return bytes(b)

def rand_json_invalid() -> str:
    # Small set of known-invalid templates; keeps it deterministic.
    templates = [
        '{"a":',                   # unterminated
        '{"a":"x",}',              # trailing comma (strict)
        '{}{}',                    # two roots
        '{"a":"\\ud800"}',         # lone surrogate escape
        '{"a":"\\u00',             # bad escape termination
        '[1, 2',                   # unterminated array
        '[01]',                    # leading zero
        "{a: 'x' /* open",         # unterminated comment
        '[0x1, Infinity]',         # identifiers
    ]
    t = random.choice(templates)
    # Occasionally add random trailing bytes
    if random.random() < 0.3:
        t += 'xyz'
    return t

def mutate_text(text: str) -> str:
    chars = list(text)
    for _ in range(random.randint(1,3)):
        pos = random.randint(0, len(chars))
        ch = random.choice('{}[]:,"\'\\/*\n -0123456789eE.xtruefalsn' + chr(0x2028))
        if chars and random.random() < 0.5:
            chars[min(pos, len(chars)-1)] = ch
        else:
            chars.insert(pos, ch)
    return "".join(chars)

# --- checks ---

def fuzz_msgpack(i: int) -> None:
    data = rand_msgpack()
    if random.random() < 0.5:
        data = data[:random.randint(0, len(data)-1)]
        res = msgpack.from_array_to_value(data)
        if res.is_ok():
            violation("A truncated msgpack decoded", {"round": i, "hex": data.hex()})
    else:
        data = mutate(data)
        res = msgpack.from_array_to_value(data)
    ctx = {"round": i, "hex": data.hex()}
    if res.is_err():
        check_err("A msgpack", res, len(data), ctx)
        return
    canon = msgpack.to_array(res.value)
    if canon.is_err():
        violation("A decoded value does not re-encode", dict(ctx, err=str(canon.error)))
    again = msgpack.from_array_to_value(canon.value).unwrap()
    if msgpack.to_array(again).unwrap() != canon.value:
        violation("A canonical fixpoint", ctx)

def fuzz_json(i: int) -> None:
    r = random.random()
    if r < 0.4:
        text = sjson.to_string(rand_tree()).unwrap()
    elif r < 0.7:
        text = rand_json_invalid()
    else:
        text = mutate_text(sjson.to_string_pretty(rand_tree()).unwrap())
    for json5 in (False, True):
        ctx = {"round": i, "json5": json5, "text": text}
        res = sjson.from_str(text, json5=json5)
        if res.is_err():
            check_err("B json", res, len(text), ctx)
            info = res.error
            if info.line is not None:
                line = text.count("\n", 0, info.offset) + 1
                if info.line != line:
                    violation("B line number", dict(ctx, err=str(info)))
            continue
        out = sjson.to_string(res.value).unwrap()
        if sjson.from_str(out).unwrap() != res.value:
            violation("B json re-parse", dict(ctx, out=out))

def fuzz_depth(i: int) -> None:
    limit = random.randint(1, 64)
    n = limit + random.randint(1, 8)
    if random.random() < 0.5:
        text = "[" * n + "]" * n
        res = sjson.from_str(text, max_depth=limit)
        size = len(text)
    else:
        data = b"\x91" * n + b"\xc0"
        res = msgpack.from_array_to_value(data, max_depth=limit)
        size = len(data)
    if res.is_ok() or res.error.kind != ERR_DEPTH_EXCEEDED or res.error.offset != limit:
        violation("C depth limit", {"round": i, "limit": limit, "n": n, "size": size,
                                    "got": str(res.error) if res.is_err() else "ok"})

def main() -> int:
    for i in range(ROUNDS):
        r = random.random()
        try:
            if r < 0.45:
                fuzz_msgpack(i)
            elif r < 0.90:
                fuzz_json(i)
            else:
                fuzz_depth(i)
        except SystemExit:
            raise
        except Exception as e:
            print("CRASH:", type(e).__name__, e)
            print("CTX:", json.dumps({"round": i, "seed": SEED}))
            return 1

    print(f"OK: fuzz rounds={ROUNDS} seed={SEED} (no violations)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
