"""File and handle adapters shared by the entry modules.

The core only ever sees a complete in-memory buffer.  These helpers do the
buffering and turn ``OSError`` into ``ERR_IO`` and undecodable text into
``ERR_INVALID_UTF8``, so the entry points stay Result-only.
"""

from __future__ import annotations

import io
import logging
import os
from typing import Any, Callable, Union

from ._errors import ERR_INVALID_UTF8, ERR_IO, ErrorInfo
from ._result import OK_UNIT, Err, Ok, Result

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def _io_error(action: str, target: Any, e: OSError) -> Err:
    logger.debug("%s %s failed: %s", action, target, e)
    return Err(ErrorInfo(ERR_IO, "{} {}: {}".format(action, target, e)))


def decode_utf8(data: Union[str, bytes, bytearray]) -> Result[str]:
    if isinstance(data, str):
        return Ok(data)
    try:
        return Ok(bytes(data).decode("utf-8"))
    except UnicodeDecodeError as e:
        return Err(ErrorInfo(ERR_INVALID_UTF8,
                             "input is not valid UTF-8: {}".format(e.reason), offset=e.start))


def read_file(path: PathLike) -> Result[bytes]:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        return _io_error("reading", path, e)
    logger.debug("read %d bytes from %s", len(data), path)
    return Ok(data)


def read_handle(reader: Any) -> Result[Union[str, bytes]]:
    """Drain a text or binary handle."""
    try:
        data = reader.read()
    except OSError as e:
        return _io_error("reading from", type(reader).__name__, e)
    if data is None:
        # non-blocking raw stream with nothing buffered
        data = b""
    return Ok(data)


def write_file(path: PathLike, data: bytes) -> Result[None]:
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        return _io_error("writing", path, e)
    logger.debug("wrote %d bytes to %s", len(data), path)
    return OK_UNIT


def is_binary_handle(handle: Any) -> bool:
    if isinstance(handle, (io.RawIOBase, io.BufferedIOBase)):
        return True
    if isinstance(handle, io.TextIOBase):
        return False
    return "b" in getattr(handle, "mode", "")


def text_sink(handle: Any) -> Callable[[str], Any]:
    """A ``write(str)`` callable for a text or binary handle."""
    if is_binary_handle(handle):
        return lambda text: handle.write(text.encode("utf-8"))
    return handle.write


def guard_write(handle: Any, operation: Callable[[], Result[Any]]) -> Result[Any]:
    """Run a write-through operation, mapping OSError from the handle to ERR_IO."""
    try:
        return operation()
    except OSError as e:
        return _io_error("writing to", type(handle).__name__, e)
