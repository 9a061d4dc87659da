"""serdekit constants — depth limits, integer ranges, MessagePack tag bytes.

Every default here is a documented factory default: callers override it
by passing keywords into the serializer/deserializer constructors or the
entry points.  Nothing in the package reads mutable global config.
"""

from __future__ import annotations

# ── Limits ────────────────────────────────────────────────────
# One unit of depth per array/object/map level.  The same counter bounds
# the value tree and the Python call stack used to walk it.
DEFAULT_MAX_DEPTH: int = 1024

# Python frames one nesting level may consume (deserialize_any ->
# visit_seq -> next_element -> deserialize_any, plus a user visitor or two).
FRAMES_PER_LEVEL: int = 8
RECURSION_SLACK: int = 200

DEFAULT_INDENT: str = "  "

# ── Integer ranges ────────────────────────────────────────────
# Python ints are arbitrary-precision; the wire formats are not.
INT64_MIN: int = -(2**63)
INT64_MAX: int = 2**63 - 1
UINT64_MAX: int = 2**64 - 1

# ── MessagePack tags ──────────────────────────────────────────
# Fixed-width families carry their payload in the low bits of the tag.
MP_POSFIXINT_MAX: int = 0x7F
MP_FIXMAP: int = 0x80        # 0x80–0x8f, low nibble = entry count
MP_FIXARRAY: int = 0x90      # 0x90–0x9f, low nibble = element count
MP_FIXSTR: int = 0xA0        # 0xa0–0xbf, low 5 bits = byte length
MP_NIL: int = 0xC0
MP_NEVER_USED: int = 0xC1
MP_FALSE: int = 0xC2
MP_TRUE: int = 0xC3
MP_BIN8: int = 0xC4
MP_BIN16: int = 0xC5
MP_BIN32: int = 0xC6
MP_EXT8: int = 0xC7
MP_EXT16: int = 0xC8
MP_EXT32: int = 0xC9
MP_FLOAT32: int = 0xCA
MP_FLOAT64: int = 0xCB
MP_UINT8: int = 0xCC
MP_UINT16: int = 0xCD
MP_UINT32: int = 0xCE
MP_UINT64: int = 0xCF
MP_INT8: int = 0xD0
MP_INT16: int = 0xD1
MP_INT32: int = 0xD2
MP_INT64: int = 0xD3
MP_FIXEXT1: int = 0xD4
MP_FIXEXT2: int = 0xD5
MP_FIXEXT4: int = 0xD6
MP_FIXEXT8: int = 0xD7
MP_FIXEXT16: int = 0xD8
MP_STR8: int = 0xD9
MP_STR16: int = 0xDA
MP_STR32: int = 0xDB
MP_ARRAY16: int = 0xDC
MP_ARRAY32: int = 0xDD
MP_MAP16: int = 0xDE
MP_MAP32: int = 0xDF
MP_NEGFIXINT: int = 0xE0     # 0xe0–0xff, -32..-1

# fixext payload size by tag
MP_FIXEXT_SIZES = {
    MP_FIXEXT1: 1,
    MP_FIXEXT2: 2,
    MP_FIXEXT4: 4,
    MP_FIXEXT8: 8,
    MP_FIXEXT16: 16,
}
