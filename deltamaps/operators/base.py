"""
Delta Operator Base
===================

An operator is called with a delta stream and returns a new delta stream.
The returned stream is a ``ConnectedStream``: it subscribes upstream when it
gets its first subscriber and, for every attachment, builds fresh operator
state through ``create_state``. Per incoming delta ``on_delta`` returns the
delta to publish downstream, or None to publish nothing.

Operators that re-derive a delta (filter, map, group) extend
``DeltaOperator``. Their state owns a permanently paused ``DeltaSet`` used as
a scratch accumulator: the operator mutates it, then takes its pending
batch as the outgoing delta.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Optional

from ..delta_set import DeltaSet
from ..stream import ConnectedStream, DeltaStream
from ..support import initial_delta
from ..types import MapDelta


def _scratch_set() -> DeltaSet:
    scratch = DeltaSet(key="scratch")
    scratch.pause_delta()
    return scratch


@dataclass
class OperatorState:
    """State of one operator attachment."""

    started: bool = False


@dataclass
class ScratchState(OperatorState):
    scratch: DeltaSet = field(default_factory=_scratch_set)


class _Attachment:
    """Routes upstream signals of one connection through its operator."""

    def __init__(self, operator: "Operator", sink: DeltaStream) -> None:
        self._operator = operator
        self._state = operator.create_state()
        self._sink = sink

    def on_next(self, delta: MapDelta) -> None:
        result = self._operator.on_delta(self._state, delta)
        if result is not None:
            self._sink.emit(result)

    def on_error(self, error: BaseException) -> None:
        logging.debug(f"Upstream error in {self._sink.key}: {error!r}")
        self._sink.error(error)

    def on_complete(self) -> None:
        self._sink.complete()


class Operator(ABC):
    """Base class of all delta stream operators."""

    name = "operator"

    def __call__(self, source: DeltaStream[MapDelta]) -> DeltaStream[MapDelta]:
        return ConnectedStream(
            partial(self._connect, source), key=f"{self.name}({source.key})"
        )

    def _connect(self, source: DeltaStream, sink: DeltaStream) -> Callable[[], None]:
        attachment = _Attachment(self, sink)
        subscription = source.subscribe(
            attachment.on_next, attachment.on_error, attachment.on_complete
        )
        return subscription.unsubscribe

    def create_state(self) -> OperatorState:
        return OperatorState()

    @abstractmethod
    def on_delta(self, state: Any, delta: MapDelta) -> Optional[MapDelta]:
        pass


class DeltaOperator(Operator):
    """
    Operator deriving a new coalesced delta from each incoming one.

    Attachments start empty, so the first incoming delta is read as its full
    ``all`` being added. An incoming delta with an empty ``all`` resets the
    operator. Cycles that leave the scratch set unchanged publish nothing.
    """

    def create_state(self) -> ScratchState:
        return ScratchState()

    def on_delta(self, state: ScratchState, delta: MapDelta) -> Optional[MapDelta]:
        if not state.started:
            state.started = True
            delta = initial_delta(delta)

        if delta.all:
            self.apply(state, delta)
        else:
            self.reset(state)

        result = state.scratch.take_delta()
        return result if result.has_changes else None

    @abstractmethod
    def apply(self, state: ScratchState, delta: MapDelta) -> None:
        pass

    def reset(self, state: ScratchState) -> None:
        for key in list(state.scratch):
            state.scratch.delete(key)
