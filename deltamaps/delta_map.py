"""
DeltaMap - Diff-Tracking Key/Value Store
========================================

A ``DeltaMap`` is a mapping that publishes coalesced change-sets instead of
raw mutation events. Every ``set``/``delete`` updates the authoritative table
and three pending accumulators (added, modified, deleted); when the map is
not paused the pending change is published at once as a ``MapDelta`` on
``deltas``.

Between a pause and a resume any number of mutations collapse into a single
delta. The accumulators reconcile per key, so within one batch:

- a key added and then deleted never appears at all,
- a key that existed before the batch, deleted and then set again, appears
  once as modified,
- repeated sets of a new key stay a single addition.

Example:
    ```python
    settings = DeltaMap()
    settings.deltas.subscribe(print)

    settings.set("theme", "dark")       # MapDelta(all=1, added=['theme'], ...)

    with settings.batch():
        settings.set("font", "mono")
        settings.delete("font")
        settings.set("theme", "light")
    # MapDelta(all=1, added=[], modified=['theme'], deleted=[])
    ```
"""

import logging
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Generic,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Set,
    Tuple,
    TypeVar,
)

import numpy as np

from .exceptions import CollectionDestroyedError
from .stream import DeltaStream
from .types import IsModified, MapDelta

K = TypeVar("K")
V = TypeVar("V")


def values_differ(current: Any, previous: Any) -> bool:
    """
    Structural comparator for ``is_modified``.

    Values that compare equal are unchanged; NumPy arrays compare element-wise.
    Values that cannot be compared count as modified.
    """
    try:
        if isinstance(current, np.ndarray) or isinstance(previous, np.ndarray):
            if type(current) != type(previous):
                return True
            return not np.array_equal(current, previous)
        return bool(current != previous)
    except (ValueError, TypeError):
        return True


class DeltaHook(Generic[K, V]):
    """
    Extension point called for every effective change a ``DeltaMap`` applies.

    ``entry_set`` runs after a key was added or changed (``previous`` is None
    for a key that was absent); ``entry_deleted`` runs after a key was removed.
    A ``set`` rejected by ``is_modified`` calls neither.
    """

    def entry_set(self, key: K, value: V, previous: Optional[V]) -> None:
        pass

    def entry_deleted(self, key: K, previous: V) -> None:
        pass


class BatchContext:
    """Pauses a map for the ``with`` block; the outermost exit publishes."""

    def __init__(self, delta_map: "DeltaMap"):
        self._map = delta_map
        self._was_paused = False

    def __enter__(self):
        self._was_paused = self._map.paused
        self._map.pause_delta()
        return self._map

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._was_paused:
            self._map.resume_delta()
        return False


class DeltaMap(Mapping[K, V]):
    """
    Key/value map publishing coalesced ``MapDelta`` batches through ``deltas``.

    Args:
        entries: Optional ``(key, value)`` pairs to seed the map with. They
            are published as additions with the first batch.
        is_modified: ``is_modified(new, current)`` decides whether a ``set``
            on an existing key is a change. Defaults to always True.
        publish_empty: Publish the first batch even if it holds no changes,
            so the stream carries the (empty) initial state.
        hook: Receives every effective change, see ``DeltaHook``.
        key: Name used for the delta stream.

    Every publish copies the table into the delta's ``all``, so an unpaused
    mutation costs time proportional to the size of the map. Use ``batch()``
    for bulk changes.
    """

    _MISSING = object()

    def __init__(
        self,
        entries: Optional[Iterable[Tuple[K, V]]] = None,
        *,
        is_modified: Optional[IsModified] = None,
        publish_empty: bool = True,
        hook: Optional[DeltaHook[K, V]] = None,
        key: Optional[str] = None,
    ) -> None:
        self._table: Dict[K, V] = {}
        self._stream: DeltaStream[MapDelta[K, V]] = DeltaStream(
            key or type(self).__name__
        )
        self._is_modified = is_modified
        self._publish_empty = publish_empty
        self._hook = hook
        self._paused = False
        self._has_published = False
        self._destroyed = False
        self._reset_delta()

        if entries is not None:
            for entry_key, value in entries:
                self._do_set(entry_key, value)

    # ========================================================================
    # READ API
    # ========================================================================

    @property
    def deltas(self) -> DeltaStream[MapDelta[K, V]]:
        """The stream of published batches; replays the latest one."""
        return self._stream

    @property
    def observed(self) -> bool:
        return self._stream.observed

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def size(self) -> int:
        return len(self._table)

    def has(self, key: K) -> bool:
        return key in self._table

    def __getitem__(self, key: K) -> V:
        return self._table[key]

    def __contains__(self, key: object) -> bool:
        return key in self._table

    def __iter__(self) -> Iterator[K]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    # ========================================================================
    # MUTATION API
    # ========================================================================

    def set(self, key: K, value: V) -> "DeltaMap[K, V]":
        """Add or modify an entry and publish the change."""
        self._check_alive()
        self._do_set(key, value)
        self._publish_delta()
        return self

    def __setitem__(self, key: K, value: V) -> None:
        self.set(key, value)

    def delete(self, key: K) -> bool:
        """Delete an entry; returns False when the key was not present."""
        self._check_alive()
        deleted = self._do_delete(key)
        self._publish_delta()
        return deleted

    def __delitem__(self, key: K) -> None:
        if not self.delete(key):
            raise KeyError(key)

    def clear(self) -> None:
        """
        Delete every entry as one batch.

        The deletions are only published when somebody observes ``deltas``.
        An unobserved map drops its pending batch and, if it has published
        before, replays the empty state to the next subscriber.
        """
        self._check_alive()
        for key in list(self._table):
            self._do_delete(key)
        if self.observed:
            self._publish_delta()
        else:
            self._reset_delta()
            if self._has_published:
                self._stream.replace_last(self._pending_delta())

    # ========================================================================
    # BATCHING
    # ========================================================================

    def pause_delta(self) -> None:
        """Collect all changes until ``resume_delta`` is called."""
        self._paused = True

    def resume_delta(self) -> None:
        """Publish everything collected since ``pause_delta``."""
        self._paused = False
        self._publish_delta()

    def batch(self) -> BatchContext:
        """Context manager combining all changes in the block into one delta."""
        return BatchContext(self)

    def take_delta(self) -> MapDelta[K, V]:
        """Return the pending batch and start a new one without publishing."""
        delta = self._pending_delta()
        self._reset_delta()
        return delta

    def destroy(self) -> None:
        """Publish pending changes, delete everything, and complete ``deltas``."""
        if self._destroyed:
            return
        self.resume_delta()
        for key in list(self._table):
            self._do_delete(key)
        self._publish_delta()
        self._destroyed = True
        logging.debug(f"Destroyed {self._stream.key}")
        self._stream.complete()

    # ========================================================================
    # RECONCILIATION
    # ========================================================================

    def _do_set(self, key: K, value: V) -> None:
        previous = self._table.get(key, self._MISSING)

        if key in self._added:
            self._table[key] = value
            self._added[key] = value
        elif previous is not self._MISSING:
            if self._is_modified is not None and not self._is_modified(
                value, previous
            ):
                return
            self._table[key] = value
            self._modified[key] = value
        else:
            self._deleted.pop(key, None)
            self._table[key] = value
            if key in self._existed_before_batch:
                self._modified[key] = value
            else:
                self._added[key] = value

        if self._hook is not None:
            self._hook.entry_set(
                key, value, None if previous is self._MISSING else previous
            )

    def _do_delete(self, key: K) -> bool:
        if key not in self._table:
            return False

        previous = self._table.pop(key)
        if key in self._added:
            del self._added[key]
        else:
            self._modified.pop(key, None)
            self._deleted[key] = previous
            self._existed_before_batch.add(key)

        if self._hook is not None:
            self._hook.entry_deleted(key, previous)
        return True

    def _has_pending(self) -> bool:
        return bool(self._added or self._modified or self._deleted)

    def _pending_delta(self) -> MapDelta[K, V]:
        return MapDelta(
            all=MappingProxyType(dict(self._table)),
            added=MappingProxyType(self._added),
            modified=MappingProxyType(self._modified),
            deleted=MappingProxyType(self._deleted),
        )

    def _reset_delta(self) -> None:
        self._added: Dict[K, V] = {}
        self._modified: Dict[K, V] = {}
        self._deleted: Dict[K, V] = {}
        self._existed_before_batch: Set[K] = set()

    def _publish_delta(self) -> None:
        if self._paused:
            return
        if not self._has_pending() and (
            self._has_published or not self._publish_empty
        ):
            return
        delta = self._pending_delta()
        self._reset_delta()
        self._has_published = True
        self._stream.emit(delta)

    def _check_alive(self) -> None:
        if self._destroyed:
            raise CollectionDestroyedError(
                f"Cannot modify {self._stream.key}: it has been destroyed"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._table!r})"
