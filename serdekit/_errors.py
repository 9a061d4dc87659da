"""serdekit error codes, positional error info, and the unwrap exception.

Every expected failure travels as an ``Err(ErrorInfo)``; nothing in the
traversal code raises for bad input.  The only exception the package
raises on purpose is :class:`UnwrapError`, and that one means the caller
broke the Result contract (unwrapped an ``Err``), not that the input was bad.

Text backends report ``offset`` plus 1-based ``line``/``column``; the binary
backend reports a byte ``offset`` only.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

# ── Error codes ───────────────────────────────────────────────
# Grep-friendly strings shared by every backend.

ERR_UNEXPECTED_TOKEN: str = "ERR_UNEXPECTED_TOKEN"        # text syntax
ERR_UNEXPECTED_END: str = "ERR_UNEXPECTED_END"            # input ran out
ERR_INVALID_ESCAPE: str = "ERR_INVALID_ESCAPE"            # bad \ escape
ERR_INVALID_UTF8: str = "ERR_INVALID_UTF8"                # bad encoding
ERR_NUMBER_OUT_OF_RANGE: str = "ERR_NUMBER_OUT_OF_RANGE"  # overflow
ERR_DEPTH_EXCEEDED: str = "ERR_DEPTH_EXCEEDED"            # max_depth
ERR_INVALID_TYPE: str = "ERR_INVALID_TYPE"                # visitor mismatch
ERR_INVALID_MSGPACK_TAG: str = "ERR_INVALID_MSGPACK_TAG"  # unknown lead byte
ERR_TRAILING_DATA: str = "ERR_TRAILING_DATA"              # bytes after root
ERR_IO: str = "ERR_IO"                                    # reader/file
ERR_DUPLICATE_KEY: str = "ERR_DUPLICATE_KEY"              # dup-key policy
ERR_CUSTOM: str = "ERR_CUSTOM"                            # user types

ALL_CODES = (
    ERR_UNEXPECTED_TOKEN,
    ERR_UNEXPECTED_END,
    ERR_INVALID_ESCAPE,
    ERR_INVALID_UTF8,
    ERR_NUMBER_OUT_OF_RANGE,
    ERR_DEPTH_EXCEEDED,
    ERR_INVALID_TYPE,
    ERR_INVALID_MSGPACK_TAG,
    ERR_TRAILING_DATA,
    ERR_IO,
    ERR_DUPLICATE_KEY,
    ERR_CUSTOM,
)


@dataclass(frozen=True)
class ErrorInfo:
    """Payload of every ``Err``: what went wrong and where."""

    kind: str
    message: str
    offset: Optional[int] = None
    line: Optional[int] = None
    column: Optional[int] = None

    @property
    def has_position(self) -> bool:
        return self.offset is not None

    def at(self, offset: Optional[int], line: Optional[int] = None,
           column: Optional[int] = None) -> "ErrorInfo":
        """Return a copy carrying a position (used for visitor errors)."""
        return replace(self, offset=offset, line=line, column=column)

    def describe_position(self) -> str:
        if self.line is not None:
            return "line {} column {} (offset {})".format(
                self.line, self.column, self.offset)
        if self.offset is not None:
            return "offset {}".format(self.offset)
        return "unknown position"

    def __str__(self) -> str:
        if self.offset is None:
            return "[{}] {}".format(self.kind, self.message)
        return "[{}] {} at {}".format(self.kind, self.message,
                                      self.describe_position())


class UnwrapError(Exception):
    """Raised by ``unwrap``/``expect`` on ``Err`` or ``NOTHING``.

    The ``.code`` attribute mirrors ``info.kind`` so callers that catch this
    at a process boundary can report it the same way as any other code.
    """

    def __init__(self, msg: str, info: Optional[ErrorInfo] = None) -> None:
        super().__init__(msg)
        self.info = info
        self.code = info.kind if info is not None else None


def invalid_type(found: str, expected: str) -> ErrorInfo:
    return ErrorInfo(ERR_INVALID_TYPE,
                     "invalid type: {}, expected {}".format(found, expected))
