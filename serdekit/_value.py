"""Pieces shared by the JSON and MessagePack value trees.

Value nodes are frozen dataclasses whose containers hold tuples, so a tree
is immutable once built, each node owns its children, and any node can be
hashed (MessagePack allows arrays and maps as keys).

Duplicate keys
--------------
Both wire formats can carry the same key twice.  The backends pass every
entry through to the visitor untouched; the materializer decides:

    "last"   later value replaces the earlier one, at the first key's slot
             (what dict() does with repeated keys; the default)
    "first"  later entries are read and discarded
    "error"  ERR_DUPLICATE_KEY
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, Iterable, List, Optional, Tuple

from ._errors import ERR_DUPLICATE_KEY, ErrorInfo
from ._result import Err, Ok, Result
from ._visitor import IgnoredAny, MapAccess, SeqAccess, Visitor

DUP_LAST: str = "last"
DUP_FIRST: str = "first"
DUP_ERROR: str = "error"
DUPLICATE_POLICIES = (DUP_LAST, DUP_FIRST, DUP_ERROR)


def check_policy(policy: str) -> str:
    if policy not in DUPLICATE_POLICIES:
        raise ValueError("duplicate_keys must be one of {}, got {!r}".format(
            ", ".join(DUPLICATE_POLICIES), policy))
    return policy


class ValueNode(ABC):
    """Base of every value-tree node.  Subclasses are frozen dataclasses."""

    __slots__ = ()

    @abstractmethod
    def serialize(self, serializer: Any) -> Result[None]:
        """Push this node into *serializer*."""

    @abstractmethod
    def to_python(self) -> Any:
        """Plain Python equivalent of this node."""


def serialize_items(serializer: Any, items: Tuple[ValueNode, ...]) -> Result[None]:
    res = serializer.begin_array(len(items))
    if res.is_err():
        return res
    for item in items:
        res = item.serialize(serializer)
        if res.is_err():
            return res
    return serializer.end_array()


def serialize_pairs(serializer: Any, pairs: Iterable[Tuple[Any, ValueNode]],
                    count: int, emit_key: Any) -> Result[None]:
    """Emit an object/map; ``emit_key(key)`` writes the key in key position."""
    res = serializer.begin_object(count)
    if res.is_err():
        return res
    for key, value in pairs:
        res = emit_key(key)
        if res.is_err():
            return res
        res = value.serialize(serializer)
        if res.is_err():
            return res
    return serializer.end_object()


class MemberTable:
    """Collects map entries in order while applying a duplicate-key policy."""

    def __init__(self, policy: str) -> None:
        self.policy = policy
        self._pairs: List[Tuple[Any, Any]] = []
        self._index: Dict[Hashable, int] = {}

    def seen(self, key: Hashable) -> bool:
        return key in self._index

    def duplicate_error(self, key: Any) -> ErrorInfo:
        return ErrorInfo(ERR_DUPLICATE_KEY, "duplicate key {!r}".format(key))

    def put(self, key: Hashable, value: Any) -> None:
        slot: Optional[int] = self._index.get(key)
        if slot is None:
            self._index[key] = len(self._pairs)
            self._pairs.append((key, value))
        elif self.policy == DUP_LAST:
            self._pairs[slot] = (key, value)

    def pairs(self) -> Tuple[Tuple[Any, Any], ...]:
        return tuple(self._pairs)


# ── Pull loops used by both materializers ─────────────────────

def collect_items(seq: SeqAccess, visitor: Visitor) -> Result[Tuple[Any, ...]]:
    items: List[Any] = []
    while True:
        res = seq.next_element(visitor)
        if res.is_err():
            return res
        if res.value.is_none():
            return Ok(tuple(items))
        items.append(res.value.value)


def collect_entries(access: MapAccess, key_visitor: Visitor, value_visitor: Visitor,
                    policy: str) -> Result[Tuple[Tuple[Any, Any], ...]]:
    table = MemberTable(policy)
    while True:
        res = access.next_key(key_visitor)
        if res.is_err():
            return res
        if res.value.is_none():
            return Ok(table.pairs())
        key = res.value.value
        if table.seen(key):
            if policy == DUP_ERROR:
                return Err(table.duplicate_error(key))
            if policy == DUP_FIRST:
                res = access.next_value(IgnoredAny())
                if res.is_err():
                    return res
                continue
        res = access.next_value(value_visitor)
        if res.is_err():
            return res
        table.put(key, res.value)
