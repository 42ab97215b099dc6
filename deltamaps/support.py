"""
DeltaMaps Support - Walking and Building Deltas
===============================================

Helpers shared by the operators and handy in tests:

- ``iter_changes`` flattens a ``MapDelta`` into ``(ChangeType, value)`` pairs,
  deletions first, then modifications, then additions.
- ``DeltaVisitor``/``process_elements`` dispatch those pairs to one method
  per ``ChangeType``.
- ``initial_delta`` re-expresses a delta as the initial state of a stream.
- ``create_delta`` builds a ``MapDelta`` from ``IdObject`` values.
"""

from types import MappingProxyType
from typing import Any, Dict, Generic, Iterable, Iterator, Mapping, Optional, Tuple, TypeVar, Union

from .types import ChangeType, MapDelta

V = TypeVar("V")


def iter_changes(delta: MapDelta[Any, V]) -> Iterator[Tuple[ChangeType, V]]:
    for value in delta.deleted.values():
        yield ChangeType.DELETED, value
    for value in delta.modified.values():
        yield ChangeType.MODIFIED, value
    for value in delta.added.values():
        yield ChangeType.ADDED, value


class DeltaVisitor(Generic[V]):
    """
    Receives the entries of a delta, one method per ``ChangeType``.

    Override only what you need; every method defaults to doing nothing.
    """

    def before(self, delta: MapDelta[Any, V]) -> None:
        pass

    def added(self, value: V) -> None:
        pass

    def modified(self, value: V) -> None:
        pass

    def deleted(self, value: V) -> None:
        pass

    def after(self, delta: MapDelta[Any, V]) -> None:
        pass

    def visit(self, change_type: ChangeType, value: V) -> None:
        if change_type is ChangeType.ADDED:
            self.added(value)
        elif change_type is ChangeType.MODIFIED:
            self.modified(value)
        elif change_type is ChangeType.DELETED:
            self.deleted(value)
        else:
            raise ValueError(f"Unknown change type: {change_type!r}")


def process_elements(delta: MapDelta[Any, V], visitor: DeltaVisitor[V]) -> None:
    """Feed every entry of ``delta`` to ``visitor``, between before/after."""
    visitor.before(delta)
    for change_type, value in iter_changes(delta):
        visitor.visit(change_type, value)
    visitor.after(delta)


def initial_delta(delta: MapDelta) -> MapDelta:
    """The same state as ``delta``, with every entry of ``all`` as added."""
    return MapDelta(all=delta.all, added=delta.all)


def _as_map(values: Optional[Union[Any, Iterable[Any]]]) -> Mapping:
    result: Dict[Any, Any] = {}
    if values is None:
        return MappingProxyType(result)
    if hasattr(values, "id"):
        values = [values]
    for value in values:
        result[value.id] = value
    return MappingProxyType(result)


def create_delta(
    all: Optional[Union[Any, Iterable[Any]]] = None,
    added: Optional[Union[Any, Iterable[Any]]] = None,
    modified: Optional[Union[Any, Iterable[Any]]] = None,
    deleted: Optional[Union[Any, Iterable[Any]]] = None,
) -> MapDelta:
    """
    Build a ``MapDelta`` keyed by ``id`` from single values or iterables.

    Example:
        ```python
        delta = create_delta(all=[a, b], added=b)
        assert list(delta.added) == [b.id]
        ```
    """
    return MapDelta(
        all=_as_map(all),
        added=_as_map(added),
        modified=_as_map(modified),
        deleted=_as_map(deleted),
    )
