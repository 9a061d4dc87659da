"""JSON / JSON5 text backend — tokenizer, recursive-descent deserializer,
and compact/pretty serializer.

Grammar (both dialects; JSON5 only changes what the tokenizer accepts):

    value  := object | array | string | number | true | false | null
    object := '{' [ member (',' member)* [','] ] '}'
    member := key ':' value
    array  := '[' [ value (',' value)* [','] ] ']'

The bracketed trailing comma is JSON5-only.  JSON5 also adds // and /* */
comments, identifier keys, single-quoted strings, 0x integers and a few
extra string escapes.  Every standard JSON document reads the same under
either dialect.

Numbers
-------
The surface syntax decides the kind: a '.', 'e' or 'E' makes a float,
anything else is an integer.  Integer literals outside [-2^63, 2^64-1]
cannot be held as a wire integer and are read as floats instead; a float
that overflows to infinity is ERR_NUMBER_OUT_OF_RANGE.  On output,
integers are written bare and floats with Python's shortest round-trip
repr, which always carries a '.' or an exponent, so the kind survives.

Positions are character offsets into the decoded text, plus 1-based
line/column computed only when an error is reported.
"""

from __future__ import annotations

import math
import re
from collections import namedtuple
from typing import Any, Callable, Dict, List, Optional

from ._constants import DEFAULT_MAX_DEPTH, INT64_MAX, INT64_MIN, UINT64_MAX
from ._errors import (
    ERR_INVALID_ESCAPE,
    ERR_INVALID_TYPE,
    ERR_INVALID_UTF8,
    ERR_NUMBER_OUT_OF_RANGE,
    ERR_TRAILING_DATA,
    ERR_UNEXPECTED_END,
    ERR_UNEXPECTED_TOKEN,
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

# ── Tokenizer ─────────────────────────────────────────────────

T_STRING = "string"
T_NUMBER = "number"
T_IDENT = "identifier"
T_EOF = "end of input"
_PUNCT = "{}[]:,"

Token = namedtuple("Token", ["kind", "value", "start", "end"])

_JSON_WS = " \t\n\r"
# JSON5 whitespace: the JSON set plus VT, FF, NBSP, LS, PS and BOM.
_JSON5_EXTRA_WS = "\v\f\u00a0\u2028\u2029\ufeff"

_NUMBER = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_HEX_NUMBER = re.compile(r"-?0[xX][0-9a-fA-F]+")
_IDENT = re.compile(r"(?:[^\W\d]|\$)(?:\w|\$)*")
_HEX4 = re.compile(r"[0-9a-fA-F]{4}")
_HEX2 = re.compile(r"[0-9a-fA-F]{2}")

# Chunk = run of ordinary characters, then the character that stopped it.
_CHUNK = {
    '"': re.compile(r'([^"\\\x00-\x1f]*)(["\\\x00-\x1f])'),
    "'": re.compile(r"([^'\\\x00-\x1f]*)(['\\\x00-\x1f])"),
}

_ESCAPES = {
    '"': '"', "\\": "\\", "/": "/",
    "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t",
}
_JSON5_ESCAPES = {"'": "'", "v": "\v", "0": "\0"}
_LINE_CONTINUATIONS = "\n\u2028\u2029"
# Characters that end a JSON5 line comment.
_LINE_TERMINATORS = re.compile("[\n\r\u2028\u2029]")

# u64 max has 20 digits; longer integer literals skip int() entirely
# (int() also refuses very long digit strings on current CPython).
_MAX_INT_DIGITS = 20


class _Lexer:
    """Turns text into tokens on demand, one token of lookahead."""

    def __init__(self, text: str, json5: bool, fail: Callable[..., Err]) -> None:
        self.text = text
        self.json5 = json5
        self.pos = 0
        self.last_start = 0
        self.last_end = 0
        self._fail = fail
        self._peeked: Optional[Result[Token]] = None

    def peek(self) -> Result[Token]:
        if self._peeked is None:
            self._peeked = self._scan()
        return self._peeked

    def next(self) -> Result[Token]:
        res = self.peek()
        self._peeked = None
        if res.is_ok():
            self.last_start = res.value.start
            self.last_end = res.value.end
        return res

    def at_end(self) -> Result[Optional[int]]:
        """Skip padding; Ok(None) at end of input, else Ok(offset of leftovers)."""
        if self._peeked is not None:
            res = self._peeked
            if res.is_err():
                return res
            return Ok(None if res.value.kind == T_EOF else res.value.start)
        err = self._skip_whitespace()
        if err is not None:
            return err
        return Ok(None if self.pos >= len(self.text) else self.pos)

    # ── scanning ──

    def _skip_whitespace(self) -> Optional[Err]:
        text, n, pos = self.text, len(self.text), self.pos
        while pos < n:
            ch = text[pos]
            if ch in _JSON_WS:
                pos += 1
                continue
            if self.json5:
                if ch in _JSON5_EXTRA_WS:
                    pos += 1
                    continue
                if ch == "/" and pos + 1 < n:
                    nxt = text[pos + 1]
                    if nxt == "/":
                        eol = _LINE_TERMINATORS.search(text, pos + 2)
                        pos = n if eol is None else eol.end()
                        continue
                    if nxt == "*":
                        end = text.find("*/", pos + 2)
                        if end < 0:
                            self.pos = n
                            return self._fail(ERR_UNEXPECTED_END,
                                              "unterminated block comment", pos)
                        pos = end + 2
                        continue
            break
        self.pos = pos
        return None

    def _scan(self) -> Result[Token]:
        err = self._skip_whitespace()
        if err is not None:
            return err
        text, pos = self.text, self.pos
        if pos >= len(text):
            return Ok(Token(T_EOF, None, pos, pos))

        ch = text[pos]
        if ch in _PUNCT:
            self.pos = pos + 1
            return Ok(Token(ch, ch, pos, pos + 1))
        if ch == '"' or (ch == "'" and self.json5):
            return self._scan_string(ch)
        if ch == "-" or "0" <= ch <= "9":
            return self._scan_number()

        m = _IDENT.match(text, pos)
        if m is not None:
            word = m.group()
            if not self.json5 and word not in ("true", "false", "null"):
                return self._fail(ERR_UNEXPECTED_TOKEN,
                                  "unexpected identifier {!r}".format(word), pos)
            self.pos = m.end()
            return Ok(Token(T_IDENT, word, pos, m.end()))

        return self._fail(ERR_UNEXPECTED_TOKEN,
                          "unexpected character {!r}".format(ch), pos)

    def _scan_number(self) -> Result[Token]:
        text, start = self.text, self.pos

        if self.json5:
            m = _HEX_NUMBER.match(text, start)
            if m is not None:
                value = int(m.group(), 16)
                if not INT64_MIN <= value <= UINT64_MAX:
                    return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                                      "hex literal {} is outside the 64-bit range".format(m.group()),
                                      start)
                self.pos = m.end()
                return Ok(Token(T_NUMBER, value, start, m.end()))

        m = _NUMBER.match(text, start)
        if m is None:
            return self._fail(ERR_UNEXPECTED_TOKEN, "malformed number", start)
        literal = m.group()
        end = m.end()
        if end < len(text) and "0" <= text[end] <= "9":
            # the regex stops after a lone leading zero: "01", "-007"
            return self._fail(ERR_UNEXPECTED_TOKEN,
                              "leading zeros are not allowed in numbers", start)

        value: Any
        digits = literal.lstrip("-")
        if "." in literal or "e" in literal or "E" in literal:
            value = float(literal)
        elif len(digits) <= _MAX_INT_DIGITS and INT64_MIN <= int(literal) <= UINT64_MAX:
            value = int(literal)
        else:
            value = float(literal)
        if isinstance(value, float) and math.isinf(value):
            return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                              "number {} is out of range".format(_clip(literal)), start)
        self.pos = end
        return Ok(Token(T_NUMBER, value, start, end))

    def _scan_string(self, quote: str) -> Result[Token]:
        text, n, start = self.text, len(self.text), self.pos
        chunk = _CHUNK[quote]
        parts: List[str] = []
        pos = start + 1
        while True:
            m = chunk.match(text, pos)
            if m is None:
                return self._fail(ERR_UNEXPECTED_END, "unterminated string", start)
            content, stop = m.groups()
            parts.append(content)
            pos = m.end()
            if stop == quote:
                break
            if stop != "\\":
                return self._fail(ERR_UNEXPECTED_TOKEN,
                                  "unescaped control character {!r} in string".format(stop),
                                  pos - 1)

            backslash = pos - 1
            if pos >= n:
                return self._fail(ERR_UNEXPECTED_END, "unterminated string", start)
            esc = text[pos]
            if esc in _ESCAPES:
                parts.append(_ESCAPES[esc])
                pos += 1
            elif esc == "u":
                res = self._unicode_escape(backslash)
                if res.is_err():
                    return res
                char, pos = res.value
                parts.append(char)
            elif not self.json5:
                return self._fail(ERR_INVALID_ESCAPE,
                                  "invalid escape '\\{}'".format(esc), backslash)
            elif esc in _JSON5_ESCAPES and not (esc == "0" and text[pos + 1:pos + 2].isdigit()):
                parts.append(_JSON5_ESCAPES[esc])
                pos += 1
            elif esc == "x":
                if _HEX2.fullmatch(text, pos + 1, pos + 3) is None:
                    return self._fail(ERR_INVALID_ESCAPE, "malformed \\x escape", backslash)
                parts.append(chr(int(text[pos + 1:pos + 3], 16)))
                pos += 3
            elif esc in _LINE_CONTINUATIONS:
                pos += 1
            elif esc == "\r":
                pos += 2 if text[pos + 1:pos + 2] == "\n" else 1
            elif "1" <= esc <= "9" or esc == "0":
                return self._fail(ERR_INVALID_ESCAPE,
                                  "invalid escape '\\{}'".format(esc), backslash)
            else:
                # JSON5: any other character escapes to itself
                parts.append(esc)
                pos += 1

        self.pos = pos
        return Ok(Token(T_STRING, "".join(parts), start, pos))

    def _unicode_escape(self, backslash: int) -> Result[Any]:
        """Decode \\uXXXX (and a following low surrogate) starting at ``backslash``."""
        text = self.text
        if _HEX4.fullmatch(text, backslash + 2, backslash + 6) is None:
            return self._fail(ERR_INVALID_ESCAPE, "malformed \\u escape", backslash)
        cp = int(text[backslash + 2:backslash + 6], 16)
        pos = backslash + 6

        if 0xDC00 <= cp <= 0xDFFF:
            return self._fail(ERR_INVALID_ESCAPE,
                              "unpaired low surrogate \\u{:04x}".format(cp), backslash)
        if 0xD800 <= cp <= 0xDBFF:
            if (text[pos:pos + 2] != "\\u"
                    or _HEX4.fullmatch(text, pos + 2, pos + 6) is None):
                return self._fail(ERR_INVALID_ESCAPE,
                                  "unpaired high surrogate \\u{:04x}".format(cp), backslash)
            low = int(text[pos + 2:pos + 6], 16)
            if not 0xDC00 <= low <= 0xDFFF:
                return self._fail(ERR_INVALID_ESCAPE,
                                  "unpaired high surrogate \\u{:04x}".format(cp), backslash)
            cp = 0x10000 + ((cp - 0xD800) << 10) + (low - 0xDC00)
            pos += 6
        return Ok((chr(cp), pos))


def _clip(literal: str, limit: int = 32) -> str:
    return literal if len(literal) <= limit else literal[:limit] + "..."


def _describe(tok: Token) -> str:
    if tok.kind in (T_STRING, T_NUMBER, T_IDENT):
        return "{} {}".format(tok.kind, _clip(repr(tok.value)))
    if tok.kind == T_EOF:
        return T_EOF
    return repr(tok.kind)


# ── Deserializer ──────────────────────────────────────────────

class JsonDeserializer(Deserializer):
    """Reads one JSON (or JSON5) document and drives a visitor over it."""

    def __init__(self, text: str, *, json5: bool = False,
                 max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        super().__init__(max_depth)
        self.json5 = json5
        self._text = text
        self._lexer = _Lexer(text, json5, self._fail)

    @property
    def offset(self) -> int:
        """Offset just past the last token consumed."""
        return self._lexer.last_end

    def _cursor(self) -> Optional[int]:
        return self._lexer.last_start

    def _locate(self, offset: int) -> Dict[str, int]:
        line = self._text.count("\n", 0, offset) + 1
        column = offset - (self._text.rfind("\n", 0, offset) + 1) + 1
        return {"offset": offset, "line": line, "column": column}

    def _expected(self, what: str, tok: Token) -> Err:
        if tok.kind == T_EOF:
            return self._fail(ERR_UNEXPECTED_END,
                              "unexpected end of input, expected {}".format(what), tok.start)
        return self._fail(ERR_UNEXPECTED_TOKEN,
                          "expected {}, found {}".format(what, _describe(tok)), tok.start)

    def deserialize_any(self, visitor: Visitor) -> Result[Any]:
        if self._error is not None:
            return self._error
        res = self._lexer.next()
        if res.is_err():
            return res
        tok = res.value
        kind = tok.kind

        if kind == T_STRING:
            return self._stick(visitor.visit_string(tok.value))
        if kind == T_NUMBER:
            value = tok.value
            if isinstance(value, float):
                return self._stick(visitor.visit_float(value))
            if value > INT64_MAX:
                return self._stick(visitor.visit_uint(value))
            return self._stick(visitor.visit_int(value))
        if kind == T_IDENT:
            if tok.value == "null":
                return self._stick(visitor.visit_null())
            if tok.value == "true":
                return self._stick(visitor.visit_bool(True))
            if tok.value == "false":
                return self._stick(visitor.visit_bool(False))
            return self._fail(ERR_UNEXPECTED_TOKEN,
                              "unexpected identifier {!r}, expected a value".format(tok.value),
                              tok.start)
        if kind == "[":
            access = _JsonSeqAccess(self)
            return self._container(tok, access, lambda: visitor.visit_seq(access))
        if kind == "{":
            access = _JsonMapAccess(self)
            return self._container(tok, access, lambda: visitor.visit_map(access))
        return self._expected("a value", tok)

    def _container(self, tok: Token, access: Any, visit: Callable[[], Result[Any]]) -> Result[Any]:
        err = self._enter(tok.start)
        if err is not None:
            return err
        res = visit()
        if res.is_ok() and not access.done:
            rest = access.finish()
            if rest.is_err():
                res = rest
        self._leave()
        return self._stick(res, tok.start)

    def _more(self, close: str, first: bool) -> Result[bool]:
        """Consume separators; Ok(True) if another entry follows, Ok(False) at ``close``."""
        res = self._lexer.peek()
        if res.is_err():
            return res
        tok = res.value
        if tok.kind == close:
            self._lexer.next()
            return Ok(False)
        if first:
            return Ok(True)
        if tok.kind != ",":
            return self._expected("',' or '{}'".format(close), tok)
        self._lexer.next()
        res = self._lexer.peek()
        if res.is_err():
            return res
        tok = res.value
        if tok.kind == close:
            if not self.json5:
                return self._fail(ERR_UNEXPECTED_TOKEN,
                                  "trailing comma before '{}'".format(close), tok.start)
            self._lexer.next()
            return Ok(False)
        return Ok(True)

    def end(self) -> Result[None]:
        if self._error is not None:
            return self._error
        res = self._lexer.at_end()
        if res.is_err():
            return res
        if res.value is not None:
            return self._fail(ERR_TRAILING_DATA, "trailing data after the root value", res.value)
        return OK_UNIT


class _JsonSeqAccess(SeqAccess):
    def __init__(self, de: JsonDeserializer) -> None:
        self._de = de
        self._first = True
        self.done = False

    def next_element(self, visitor: Visitor) -> Result[Option[Any]]:
        de = self._de
        if de.error is not None:
            return de.error
        if self.done:
            return Ok(NOTHING)
        res = de._more("]", self._first)
        if res.is_err():
            return res
        self._first = False
        if not res.value:
            self.done = True
            return Ok(NOTHING)
        return de.deserialize_any(visitor).map(Some)

    def finish(self) -> Result[None]:
        return IgnoredAny().visit_seq(self)


class _JsonMapAccess(MapAccess):
    def __init__(self, de: JsonDeserializer) -> None:
        self._de = de
        self._first = True
        self._value_pending = False
        self.done = False

    def next_key(self, visitor: Visitor) -> Result[Option[Any]]:
        de = self._de
        if de.error is not None:
            return de.error
        if self.done:
            return Ok(NOTHING)
        if self._value_pending:
            res = self.next_value(IgnoredAny())
            if res.is_err():
                return res
        res = de._more("}", self._first)
        if res.is_err():
            return res
        self._first = False
        if not res.value:
            self.done = True
            return Ok(NOTHING)

        res = de._lexer.next()
        if res.is_err():
            return res
        key_tok = res.value
        if not (key_tok.kind == T_STRING or (key_tok.kind == T_IDENT and de.json5)):
            return de._expected("an object key", key_tok)
        res = de._lexer.next()
        if res.is_err():
            return res
        if res.value.kind != ":":
            return de._expected("':'", res.value)
        self._value_pending = True
        return de._stick(visitor.visit_string(key_tok.value), key_tok.start).map(Some)

    def next_value(self, visitor: Visitor) -> Result[Any]:
        de = self._de
        if de.error is not None:
            return de.error
        if not self._value_pending:
            return de._fail(ERR_INVALID_TYPE, "next_value called without a key")
        self._value_pending = False
        return de.deserialize_any(visitor)

    def finish(self) -> Result[None]:
        if self._value_pending:
            res = self.next_value(IgnoredAny())
            if res.is_err():
                return res
        return IgnoredAny().visit_map(self)


# ── Serializer ────────────────────────────────────────────────

_ESCAPE = re.compile(r'[\x00-\x1f\\"]')
_ESCAPE_MAP = {chr(i): "\\u{:04x}".format(i) for i in range(0x20)}
_ESCAPE_MAP.update({
    "\\": "\\\\", '"': '\\"',
    "\b": "\\b", "\f": "\\f", "\n": "\\n", "\r": "\\r", "\t": "\\t",
})
_SURROGATE = re.compile("[\ud800-\udfff]")

_ARRAY = "array"
_OBJECT = "object"


class _Frame:
    __slots__ = ("kind", "count", "expect_key")

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.count = 0
        self.expect_key = kind == _OBJECT


class JsonSerializer(Serializer):
    """Streams JSON text into ``write``.

    ``indent=None`` writes compact text; any whitespace string switches to
    pretty output with one indent unit per nesting level.  Text already
    handed to ``write`` stays there if a later call fails; callers discard
    partial output on Err.
    """

    def __init__(self, write: Callable[[str], Any], *, indent: Optional[str] = None,
                 max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        super().__init__(max_depth)
        if indent is not None and indent.strip(_JSON_WS):
            raise ValueError("indent must be JSON whitespace, got {!r}".format(indent))
        self._write = write
        self._indent = indent
        self._frames: List[_Frame] = []
        self._root_written = False
        self._written = 0

    def _cursor(self) -> Optional[int]:
        return self._written

    def _emit(self, text: str) -> None:
        self._written += len(text)
        self._write(text)

    def _newline(self, level: int) -> None:
        if self._indent is not None:
            self._emit("\n" + self._indent * level)

    def _separate(self, frame: _Frame) -> None:
        if frame.count:
            self._emit(",")
        self._newline(len(self._frames))
        frame.count += 1

    def _value_slot(self) -> Optional[Err]:
        """Write whatever separator precedes a (non-key) value."""
        if not self._frames:
            if self._root_written:
                return self._fail(ERR_INVALID_TYPE, "a JSON document holds exactly one root value")
            self._root_written = True
            return None
        frame = self._frames[-1]
        if frame.kind == _OBJECT:
            if frame.expect_key:
                return self._fail(ERR_INVALID_TYPE, "JSON object keys must be strings")
            frame.expect_key = True
            return None
        self._separate(frame)
        return None

    def _in_key_position(self) -> bool:
        return bool(self._frames) and self._frames[-1].expect_key

    def _scalar(self, text: str) -> Result[None]:
        err = self._value_slot()
        if err is not None:
            return err
        self._emit(text)
        return OK_UNIT

    # ── primitives ──

    def serialize_null(self) -> Result[None]:
        if self._error is not None:
            return self._error
        return self._scalar("null")

    def serialize_bool(self, value: bool) -> Result[None]:
        if self._error is not None:
            return self._error
        return self._scalar("true" if value else "false")

    def serialize_int(self, value: int) -> Result[None]:
        if self._error is not None:
            return self._error
        if not INT64_MIN <= value <= INT64_MAX:
            return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                              "{} does not fit a signed 64-bit integer".format(value))
        return self._scalar(str(int(value)))

    def serialize_uint(self, value: int) -> Result[None]:
        if self._error is not None:
            return self._error
        if not 0 <= value <= UINT64_MAX:
            return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                              "{} does not fit an unsigned 64-bit integer".format(value))
        return self._scalar(str(int(value)))

    def serialize_float(self, value: float) -> Result[None]:
        if self._error is not None:
            return self._error
        if not math.isfinite(value):
            return self._fail(ERR_NUMBER_OUT_OF_RANGE,
                              "{!r} has no JSON representation".format(value))
        return self._scalar(repr(float(value)))

    def serialize_string(self, value: str) -> Result[None]:
        if self._error is not None:
            return self._error
        if _SURROGATE.search(value):
            return self._fail(ERR_INVALID_UTF8, "string contains a lone surrogate")
        encoded = '"' + _ESCAPE.sub(lambda m: _ESCAPE_MAP[m.group()], value) + '"'
        if self._in_key_position():
            frame = self._frames[-1]
            frame.expect_key = False
            self._separate(frame)
            self._emit(encoded)
            self._emit(":" if self._indent is None else ": ")
            return OK_UNIT
        return self._scalar(encoded)

    def serialize_key(self, key: str) -> Result[None]:
        if self._error is not None:
            return self._error
        if not isinstance(key, str):
            return self._fail(ERR_INVALID_TYPE, "JSON object keys must be strings")
        if not self._in_key_position():
            return self._fail(ERR_INVALID_TYPE, "serialize_key called outside key position")
        return self.serialize_string(key)

    def serialize_bytes(self, value: bytes) -> Result[None]:
        if self._error is not None:
            return self._error
        return self._fail(ERR_INVALID_TYPE, "byte strings have no JSON representation")

    def begin_array(self, hint: Optional[int] = None) -> Result[None]:
        return self._open(_ARRAY, "[")

    def begin_object(self, hint: Optional[int] = None) -> Result[None]:
        return self._open(_OBJECT, "{")

    def _open(self, kind: str, bracket: str) -> Result[None]:
        if self._error is not None:
            return self._error
        err = self._value_slot()
        if err is not None:
            return err
        err = self._enter()
        if err is not None:
            return err
        self._emit(bracket)
        self._frames.append(_Frame(kind))
        return OK_UNIT

    def end_array(self) -> Result[None]:
        return self._close(_ARRAY, "]")

    def end_object(self) -> Result[None]:
        return self._close(_OBJECT, "}")

    def _close(self, kind: str, bracket: str) -> Result[None]:
        if self._error is not None:
            return self._error
        if not self._frames or self._frames[-1].kind != kind:
            return self._fail(ERR_INVALID_TYPE, "end_{} without a matching begin".format(kind))
        frame = self._frames[-1]
        if kind == _OBJECT and not frame.expect_key:
            return self._fail(ERR_INVALID_TYPE, "object key has no value")
        self._frames.pop()
        self._leave()
        if frame.count:
            self._newline(len(self._frames))
        self._emit(bracket)
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
