"""Keep only the entries that pass a predicate."""

from typing import Callable

from ..types import MapDelta
from .base import DeltaOperator, ScratchState


class FilterOperator(DeltaOperator):
    """
    Passes added and modified entries that satisfy ``predicate``.

    An entry that stops satisfying the predicate is deleted downstream;
    upstream deletions are always passed on.
    """

    name = "filter_delta"

    def __init__(self, predicate: Callable[[object], bool]) -> None:
        self._predicate = predicate

    def apply(self, state: ScratchState, delta: MapDelta) -> None:
        for entry in delta.modified.values():
            self._filter(state, entry)
        for entry in delta.added.values():
            self._filter(state, entry)
        for entry in delta.deleted.values():
            state.scratch.delete(entry.id)

    def _filter(self, state: ScratchState, entry) -> None:
        if self._predicate(entry):
            state.scratch.add(entry)
        else:
            state.scratch.delete(entry.id)


def filter_delta(predicate: Callable[[object], bool]) -> FilterOperator:
    return FilterOperator(predicate)
