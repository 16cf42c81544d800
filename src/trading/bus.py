"""In-process broadcast channels.

Every gateway owns one `EventBus` per outward event stream (connectivity,
market data, trades, order updates, positions). Two kinds of subscriber:

- queue subscribers (`subscribe`): each gets its own unbounded queue, so
  publishing never blocks and never drops; consumers are expected to keep up.
- listeners (`listen`): plain callables run inline on publish, used by
  gateways that mirror another gateway's stream.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Generic, TypeVar

from observability.recorder import ObservabilityRecorder

_E = TypeVar("_E")


class EventBus(Generic[_E]):
    """Fan-out bus for one stream of events (gateway -> subscribers)."""

    def __init__(self, name: str, *, recorder: ObservabilityRecorder | None = None) -> None:
        """Create an event fan-out bus with optional observability recording."""
        self.name = name
        self._subscribers: set[asyncio.Queue[_E]] = set()
        self._listeners: list[Callable[[_E], None]] = []
        self._recorder = recorder
        self._latest: _E | None = None

    @property
    def latest(self) -> _E | None:
        """Most recently published event, if any."""
        return self._latest

    def subscribe(self) -> asyncio.Queue[_E]:
        """Create a new subscriber queue that will receive published events."""
        q: asyncio.Queue[_E] = asyncio.Queue()
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue[_E]) -> None:
        """Remove a subscriber queue (no further events will be delivered)."""
        self._subscribers.discard(q)

    def listen(self, callback: Callable[[_E], None]) -> None:
        """Call `callback(event)` inline for every future event."""
        self._listeners.append(callback)

    def publish(self, event: _E) -> None:
        """Deliver an event to all current listeners and subscriber queues."""
        self._latest = event
        if self._recorder is not None:
            self._recorder.record_message(event, kind="event", stage=self.name)
        for callback in list(self._listeners):
            callback(event)
        for q in list(self._subscribers):
            q.put_nowait(event)

    def publish_many(self, events: Iterable[_E]) -> None:
        """Publish multiple events sequentially, preserving order."""
        for event in events:
            self.publish(event)
