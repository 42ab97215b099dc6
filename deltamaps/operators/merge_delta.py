"""
Merge Delta - Union of Several Delta Streams
============================================

``merge_delta(*sources)`` publishes the union of several delta streams. An
entry stays in the merged result while at least one source holds it: a
deletion from one source is only passed on when no other source's latest
state still contains the id.

The sources are only subscribed while the merged stream itself has
subscribers. Each upstream delta produces at most one merged delta.
"""

import logging
from typing import Callable, Dict, Hashable, List, Mapping, Sequence, Set

from ..delta_set import DeltaSet
from ..stream import ConnectedStream, DeltaStream, Subscription
from ..support import DeltaVisitor, initial_delta, process_elements
from ..types import MapDelta


class _SourceVisitor(DeltaVisitor):
    """Applies one source delta to the merge set as a single batch."""

    def __init__(self, connection: "_MergeConnection", index: int) -> None:
        self._connection = connection
        self._index = index

    def before(self, delta: MapDelta) -> None:
        self._connection.snapshots[self._index] = delta.all
        self._connection.merge_set.pause_delta()

    def added(self, value) -> None:
        self._connection.merge_set.add(value)

    def modified(self, value) -> None:
        self._connection.merge_set.add(value)

    def deleted(self, value) -> None:
        if not self._connection.held_elsewhere(value.id, self._index):
            self._connection.merge_set.delete(value.id)

    def after(self, delta: MapDelta) -> None:
        self._connection.merge_set.resume_delta()


class _MergeConnection:
    """State of one subscription of a merged stream."""

    def __init__(self, sources: Sequence[DeltaStream], sink: DeltaStream) -> None:
        self.merge_set: DeltaSet = DeltaSet(key=f"{sink.key}:set")
        # source index -> latest ``all`` seen from that source
        self.snapshots: Dict[int, Mapping] = {}
        self._sink = sink
        self._started: Set[int] = set()
        self._completed: Set[int] = set()
        self._source_count = len(sources)
        self._forward = self.merge_set.deltas.subscribe(sink.emit)
        self._subscriptions: List[Subscription] = []
        for index, source in enumerate(sources):
            self._subscriptions.append(
                source.subscribe(
                    self._on_next_handler(index),
                    self._on_error,
                    self._on_complete_handler(index),
                )
            )

    def held_elsewhere(self, key: Hashable, index: int) -> bool:
        for source_index, snapshot in self.snapshots.items():
            if source_index != index and key in snapshot:
                return True
        return False

    def disconnect(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._forward.unsubscribe()
        self.snapshots.clear()

    def _on_next_handler(self, index: int):
        visitor = _SourceVisitor(self, index)

        def on_next(delta: MapDelta) -> None:
            if index not in self._started:
                self._started.add(index)
                delta = initial_delta(delta)
            process_elements(delta, visitor)

        return on_next

    def _on_error(self, error: BaseException) -> None:
        logging.debug(f"Upstream error in {self._sink.key}: {error!r}")
        self._sink.error(error)

    def _on_complete_handler(self, index: int):
        def on_complete() -> None:
            self._completed.add(index)
            if len(self._completed) == self._source_count:
                self._sink.complete()

        return on_complete


def merge_delta(*sources: DeltaStream[MapDelta]) -> ConnectedStream[MapDelta]:
    """
    Merge delta streams of ``IdObject`` values into one delta stream.

    Example:
        ```python
        everyone = merge_delta(staff.deltas, guests.deltas)
        everyone.subscribe(lambda delta: print(sorted(delta.all)))
        ```
    """
    if not sources:
        raise ValueError("merge_delta needs at least one source stream")

    def connect(sink: DeltaStream) -> Callable[[], None]:
        return _MergeConnection(sources, sink).disconnect

    return ConnectedStream(connect, key="merge_delta")
