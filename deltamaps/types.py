"""
DeltaMaps Types
===============

Shared value types for delta collections and the streams built on them.

A ``MapDelta`` is one coalesced batch of change: the full state after the
batch (``all``) plus the keys that were added, modified and deleted while
the batch was open. The three change maps never share a key.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Generic,
    Hashable,
    Mapping,
    Optional,
    Protocol,
    Set,
    TypeVar,
    runtime_checkable,
)

K = TypeVar("K")
V = TypeVar("V")

# Returns True when ``current`` differs from ``previous``.
IsModified = Callable[[Any, Any], bool]


def _empty() -> Mapping:
    return MappingProxyType({})


class ChangeType(Enum):
    """Outcome of a key in one published batch."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@runtime_checkable
class IdObject(Protocol):
    """Any value carrying a stable identity key."""

    id: Hashable


@runtime_checkable
class MemberObject(Protocol):
    """An ``IdObject`` tagged with the subsets it belongs to."""

    id: Hashable
    member_of: Set[Hashable]


@runtime_checkable
class GroupObject(Protocol):
    """
    Accumulator produced by ``group_delta`` for one group key.

    ``add`` must be idempotent; ``remove`` reports whether the group still
    holds members afterwards.
    """

    id: Hashable

    def add(self, member: Any) -> None: ...

    def remove(self, member: Any) -> bool: ...


@dataclass(frozen=True)
class MapDelta(Generic[K, V]):
    """Immutable snapshot of one coalesced batch of change."""

    all: Mapping[K, V] = field(default_factory=_empty)
    added: Mapping[K, V] = field(default_factory=_empty)
    modified: Mapping[K, V] = field(default_factory=_empty)
    deleted: Mapping[K, V] = field(default_factory=_empty)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    def __len__(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    def __repr__(self) -> str:
        return (
            f"MapDelta(all={len(self.all)}, added={list(self.added)!r}, "
            f"modified={list(self.modified)!r}, deleted={list(self.deleted)!r})"
        )


@dataclass(frozen=True)
class DeltaMapSettings:
    """
    Construction settings for a delta collection.

    Attributes:
        is_modified: Comparator deciding whether a ``set`` on an existing key
            is a change. ``None`` treats every such ``set`` as a change.
        publish_empty: Publish the first batch even when it holds no changes.
    """

    is_modified: Optional[IsModified] = None
    publish_empty: bool = True
