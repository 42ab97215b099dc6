"""Transform every entry with a mapping function."""

from typing import Callable

from ..types import MapDelta
from .base import DeltaOperator, ScratchState


class MapOperator(DeltaOperator):
    """
    Replaces each added or modified entry by ``mapping(entry)``.

    Deletions are keyed by ``mapping(entry).id``, so ``mapping`` must map an
    entry to the same id every time it sees it.
    """

    name = "map_delta"

    def __init__(self, mapping: Callable[[object], object]) -> None:
        self._mapping = mapping

    def apply(self, state: ScratchState, delta: MapDelta) -> None:
        for entry in delta.modified.values():
            state.scratch.add(self._mapping(entry))
        for entry in delta.added.values():
            state.scratch.add(self._mapping(entry))
        for entry in delta.deleted.values():
            state.scratch.delete(self._mapping(entry).id)


def map_delta(mapping: Callable[[object], object]) -> MapOperator:
    return MapOperator(mapping)
