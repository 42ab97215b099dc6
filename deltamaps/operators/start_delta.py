"""Pass-through operators: ``start_delta`` and ``tap_delta``."""

from typing import Optional

from ..support import DeltaVisitor, initial_delta, process_elements
from ..types import MapDelta
from .base import Operator, OperatorState


class StartOperator(Operator):
    """Re-expresses the first delta of each attachment as all-added."""

    name = "start_delta"

    def on_delta(self, state: OperatorState, delta: MapDelta) -> Optional[MapDelta]:
        if state.started:
            return delta
        state.started = True
        return initial_delta(delta)


class TapOperator(Operator):
    """Runs ``visitor`` over every delta and passes the delta on unchanged."""

    name = "tap_delta"

    def __init__(self, visitor: DeltaVisitor) -> None:
        self._visitor = visitor

    def on_delta(self, state: OperatorState, delta: MapDelta) -> Optional[MapDelta]:
        process_elements(delta, self._visitor)
        return delta


def start_delta() -> StartOperator:
    return StartOperator()


def tap_delta(visitor: DeltaVisitor) -> TapOperator:
    return TapOperator(visitor)
