"""
DeltaSet - Identity-Keyed Delta Collection
==========================================

A ``DeltaMap`` whose keys are always the ``id`` of the stored value. Adds
bulk operations that publish a single delta: ``add_multiple`` and
``replace``, which reconciles the set against a complete new membership.
"""

from typing import Any, Hashable, Iterable, Optional, Set, TypeVar

from .delta_map import DeltaHook, DeltaMap
from .types import IsModified

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class DeltaSet(DeltaMap[K, V]):
    """
    Set of ``IdObject`` values publishing changes through ``deltas``.

    Example:
        ```python
        users = DeltaSet()
        users.deltas.subscribe(lambda delta: print(sorted(delta.all)))

        users.add(User(id="ada"))                           # ['ada']
        users.replace([User(id="bob"), User(id="cy")])      # ['bob', 'cy']
        ```
    """

    def __init__(
        self,
        entries: Optional[Iterable[V]] = None,
        *,
        is_modified: Optional[IsModified] = None,
        publish_empty: bool = True,
        hook: Optional[DeltaHook[K, V]] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(
            None,
            is_modified=is_modified,
            publish_empty=publish_empty,
            hook=hook,
            key=key,
        )
        if entries is not None:
            for entry in entries:
                self._do_set(entry.id, entry)

    def add(self, entry: V) -> "DeltaSet[K, V]":
        """Add or modify ``entry`` under its own ``id``."""
        self._check_alive()
        self._do_set(entry.id, entry)
        self._publish_delta()
        return self

    def add_multiple(self, entries: Iterable[V]) -> None:
        """Add or modify several entries, published as one delta."""
        self._check_alive()
        for entry in entries:
            self._do_set(entry.id, entry)
        self._publish_delta()

    def set(self, key: Any, entry: V) -> "DeltaSet[K, V]":
        """Store ``entry`` under ``entry.id``; ``key`` is ignored."""
        return self.add(entry)

    def replace(self, entries: Iterable[V]) -> None:
        """
        Make the set hold exactly ``entries``, published as one delta.

        New ids are added, existing ids are updated (subject to
        ``is_modified``), and ids missing from ``entries`` are deleted.
        """
        self._check_alive()
        self._replace(entries)
        self._publish_delta()

    def _replace(self, entries: Iterable[V]) -> None:
        kept: Set[K] = set()
        for entry in entries:
            kept.add(entry.id)
            self._set_entry(entry)
        for key in [key for key in self._table if key not in kept]:
            self._do_delete(key)

    def _set_entry(self, entry: V) -> None:
        self._do_set(entry.id, entry)
