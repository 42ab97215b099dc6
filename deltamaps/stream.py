"""
DeltaMaps Streams - Synchronous Multicast Delta Streams
=======================================================

Delta collections publish their coalesced changes through a ``DeltaStream``:
a synchronous, ordered, multicast stream that remembers the last value it
emitted and replays it to every new subscriber. Late subscribers therefore
see the latest published state as soon as they subscribe.

A ``ConnectedStream`` is a derived stream that only holds its upstream
subscriptions while it has subscribers of its own. The first subscriber
connects it, the last unsubscribe disconnects it and discards whatever state
the connection built up.

Example:
    ```python
    stream = DeltaStream("numbers")
    stream.emit(1)

    received = []
    subscription = stream.subscribe(received.append)   # replays 1
    stream.emit(2)
    subscription.unsubscribe()
    stream.emit(3)

    print(received)  # [1, 2]
    ```
"""

import logging
import threading
from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, Generic, List, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")

# A stream operator turns one stream into another.
StreamOperator = Callable[["DeltaStream[Any]"], "DeltaStream[Any]"]


@dataclass(eq=False)
class _Observer:
    on_next: Optional[Callable[[Any], None]] = None
    on_error: Optional[Callable[[BaseException], None]] = None
    on_complete: Optional[Callable[[], None]] = None

    def next(self, value: Any) -> None:
        if self.on_next is not None:
            self.on_next(value)

    def error(self, error: BaseException) -> None:
        if self.on_error is None:
            raise error
        self.on_error(error)

    def complete(self) -> None:
        if self.on_complete is not None:
            self.on_complete()


class Subscription:
    """Handle returned by ``DeltaStream.subscribe``; unsubscribing is final."""

    def __init__(self, stream: "DeltaStream", observer: _Observer) -> None:
        self._stream = stream
        self._observer = observer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream._remove_observer(self._observer)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unsubscribe()
        return False


class DeltaStream(Generic[T]):
    """
    Multicast stream with a one-value replay cache.

    Emission is synchronous: ``emit`` returns after every current subscriber
    has handled the value, in subscription order.
    """

    _NOTHING = object()

    def __init__(self, key: Optional[str] = None) -> None:
        self._key = key or "<unnamed>"
        self._observers: List[_Observer] = []
        self._lock = threading.RLock()
        self._last: Any = self._NOTHING
        self._completed = False
        self._error: Optional[BaseException] = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def observed(self) -> bool:
        """True while the stream has at least one subscriber."""
        with self._lock:
            return bool(self._observers)

    @property
    def closed(self) -> bool:
        return self._completed or self._error is not None

    def subscribe(
        self,
        on_next: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> Subscription:
        observer = _Observer(on_next, on_error, on_complete)
        subscription = Subscription(self, observer)

        if self._error is not None:
            subscription._closed = True
            observer.error(self._error)
            return subscription

        with self._lock:
            self._observers.append(observer)

        if self._last is not self._NOTHING:
            observer.next(self._last)

        if self._completed:
            subscription.unsubscribe()
            observer.complete()
            return subscription

        self._on_subscribed()
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.unsubscribe()

    def emit(self, value: T) -> None:
        if self.closed:
            return
        self._last = value
        with self._lock:
            observers = tuple(self._observers)
        for observer in observers:
            observer.next(value)

    def error(self, error: BaseException) -> None:
        """
        Deliver ``error`` to every subscriber and close the stream.

        Subscribers without an ``on_error`` handler cannot receive it; once
        every other subscriber has been notified the error is re-raised to
        the caller.
        """
        if self.closed:
            return
        self._error = error
        with self._lock:
            observers = tuple(self._observers)
            self._observers.clear()
        unhandled = False
        try:
            for observer in observers:
                if observer.on_error is None:
                    unhandled = True
                else:
                    observer.on_error(error)
        finally:
            self._on_closed()
        if unhandled:
            raise error

    def complete(self) -> None:
        if self.closed:
            return
        self._completed = True
        with self._lock:
            observers = tuple(self._observers)
            self._observers.clear()
        for observer in observers:
            observer.complete()
        self._on_closed()

    def forget(self) -> None:
        """Drop the replay cache; the next subscriber starts without a value."""
        self._last = self._NOTHING

    def replace_last(self, value: T) -> None:
        """Swap the replay cache for ``value`` without emitting it."""
        self._last = value

    def pipe(self, *operators: StreamOperator) -> "DeltaStream[Any]":
        return reduce(lambda stream, operator: operator(stream), operators, self)

    def __rshift__(self, operator: StreamOperator) -> "DeltaStream[Any]":
        return operator(self)

    def _remove_observer(self, observer: _Observer) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _on_subscribed(self) -> None:
        pass

    def _on_closed(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._key!r}, observers={len(self._observers)})"


class ConnectedStream(DeltaStream[T]):
    """
    Derived stream that is connected upstream only while it is subscribed.

    ``connect`` receives this stream as its sink and returns a callable that
    tears the connection down again. Everything the connection creates lives
    until that teardown, so a reconnect always starts from empty state.
    """

    def __init__(
        self,
        connect: Callable[["DeltaStream[T]"], Callable[[], None]],
        key: Optional[str] = None,
    ) -> None:
        super().__init__(key)
        self._connect = connect
        self._disconnect: Optional[Callable[[], None]] = None
        self._connecting = False

    @property
    def connected(self) -> bool:
        return self._disconnect is not None

    def _on_subscribed(self) -> None:
        if self._disconnect is not None or self._connecting:
            return
        logging.debug(f"Connecting stream '{self._key}'")
        self._connecting = True
        try:
            disconnect = self._connect(self)
        finally:
            self._connecting = False
        if self.closed or not self.observed:
            disconnect()
        else:
            self._disconnect = disconnect

    def _remove_observer(self, observer: _Observer) -> None:
        super()._remove_observer(observer)
        if not self.observed and not self.closed:
            self._teardown()

    def _on_closed(self) -> None:
        self._teardown()

    def _teardown(self) -> None:
        disconnect, self._disconnect = self._disconnect, None
        if disconnect is None:
            return
        logging.debug(f"Disconnecting stream '{self._key}'")
        if not self.closed:
            self.forget()
        disconnect()
