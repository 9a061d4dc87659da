"""Result and Option — the return shape of every fallible operation.

    Ok(value)  | Err(ErrorInfo)
    Some(value) | NOTHING

Both are immutable.  Combinators build new values and never look at the
other variant's payload: ``Err.map`` returns the same ``Err`` object,
``Ok.map_err`` returns the same ``Ok``.  ``unwrap``/``expect`` on the failing
variant raise :class:`UnwrapError`; that is a bug in the caller, not a way
to report bad input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from ._errors import ErrorInfo, UnwrapError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def expect(self, msg: str) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_err(self) -> ErrorInfo:
        raise UnwrapError("called unwrap_err on Ok({!r})".format(self.value))

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        return Ok(fn(self.value))

    def map_err(self, fn: Callable[[ErrorInfo], ErrorInfo]) -> "Result[T]":
        return self

    def and_then(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        return fn(self.value)

    def ok(self) -> "Option[T]":
        return Some(self.value)

    def err(self) -> "Option[ErrorInfo]":
        return NOTHING

    def __repr__(self) -> str:
        return "Ok({!r})".format(self.value)


@dataclass(frozen=True)
class Err:
    error: ErrorInfo

    @property
    def kind(self) -> str:
        return self.error.kind

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        raise UnwrapError("called unwrap on Err: {}".format(self.error), self.error)

    def expect(self, msg: str) -> Any:
        raise UnwrapError("{}: {}".format(msg, self.error), self.error)

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_err(self) -> ErrorInfo:
        return self.error

    def map(self, fn: Callable[[Any], Any]) -> "Err":
        return self

    def map_err(self, fn: Callable[[ErrorInfo], ErrorInfo]) -> "Err":
        return Err(fn(self.error))

    def and_then(self, fn: Callable[[Any], Any]) -> "Err":
        return self

    def ok(self) -> "Option[Any]":
        return NOTHING

    def err(self) -> "Option[ErrorInfo]":
        return Some(self.error)

    def __repr__(self) -> str:
        return "Err({!r})".format(self.error)


Result = Union[Ok[T], Err]


# ── Option ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Some(Generic[T]):
    value: T

    def is_some(self) -> bool:
        return True

    def is_none(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def expect(self, msg: str) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> "Option[U]":
        return Some(fn(self.value))

    def and_then(self, fn: Callable[[T], "Option[U]"]) -> "Option[U]":
        return fn(self.value)

    def ok_or(self, info: ErrorInfo) -> "Result[T]":
        return Ok(self.value)

    def __repr__(self) -> str:
        return "Some({!r})".format(self.value)


class _Nothing:
    """The empty Option.  Use the ``NOTHING`` singleton."""

    __slots__ = ()

    def is_some(self) -> bool:
        return False

    def is_none(self) -> bool:
        return True

    def unwrap(self) -> Any:
        raise UnwrapError("called unwrap on NOTHING")

    def expect(self, msg: str) -> Any:
        raise UnwrapError(msg)

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, fn: Callable[[Any], Any]) -> "_Nothing":
        return self

    def and_then(self, fn: Callable[[Any], Any]) -> "_Nothing":
        return self

    def ok_or(self, info: ErrorInfo) -> Err:
        return Err(info)

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOTHING"


NOTHING = _Nothing()

Option = Union[Some[T], _Nothing]


OK_UNIT: Ok[None] = Ok(None)
