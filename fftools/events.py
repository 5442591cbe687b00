"""Minimal synchronous event hook used to publish process output."""

import logging
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, TypeVar

logger = logging.getLogger("fftools")

T = TypeVar("T")


class EventHook(Generic[T]):
    """An ordered list of subscribers called with one payload each.

    Subscribers run inline, in subscription order, on the emitting task.
    """

    def __init__(self) -> None:
        self._handlers: list[Callable[[T], None]] = []

    def subscribe(self, handler: Callable[[T], None]) -> Callable[[T], None]:
        """Register ``handler``; returns it so this can be used as a decorator."""
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Callable[[T], None]) -> None:
        """Remove ``handler``. Removing an unknown handler is a no-op."""
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def emit(self, payload: T) -> None:
        # Snapshot so a handler may unsubscribe itself while running
        for handler in list(self._handlers):
            handler(payload)

    @contextmanager
    def subscribed(self, handler: Callable[[T], None]) -> Iterator[Callable[[T], None]]:
        """Keep ``handler`` subscribed for the duration of a ``with`` block."""
        self.subscribe(handler)
        try:
            yield handler
        finally:
            self.unsubscribe(handler)

    def relay_to(self, other: "EventHook[T]"):
        """Forward every payload to ``other`` while the returned context is open."""
        return self.subscribed(other.emit)

    def __len__(self) -> int:
        return len(self._handlers)

    def __bool__(self) -> bool:
        return True
