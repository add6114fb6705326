"""Trace emitter: fans observability events out to registered subscribers.

Every event is logged at DEBUG and delivered to each subscriber in
registration order.  Subscribers are external collaborators: a failing
subscriber is logged and does not abort the store operation that emitted
the event.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ravenvault.models.events import TraceEvent, TraceEventType

logger = logging.getLogger(__name__)

TraceSubscriber = Callable[[TraceEvent], None]


class TraceEmitter:
    """Builds ``TraceEvent`` records and routes them to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[TraceSubscriber] = []

    def subscribe(self, subscriber: TraceSubscriber) -> None:
        """Register a callable that receives every emitted event."""
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: TraceSubscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def emit(
        self,
        event_type: TraceEventType,
        source_component: str,
        payload: dict[str, Any] | None = None,
    ) -> TraceEvent:
        """Build, log and dispatch an event.  Returns the event."""
        event = TraceEvent(
            event_type=event_type,
            payload=payload or {},
            source_component=source_component,
        )
        logger.debug(
            "[%s] %s %s", source_component, event_type.value, event.payload
        )
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception(
                    "Trace subscriber %r failed on %s", subscriber, event_type.value
                )
        return event


class EventRecorder:
    """Subscriber that keeps every event in memory.

    Handy for diagnostics and tests::

        recorder = EventRecorder()
        emitter.subscribe(recorder)
    """

    def __init__(self) -> None:
        self.events: list[TraceEvent] = []

    def __call__(self, event: TraceEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: TraceEventType) -> list[TraceEvent]:
        return [e for e in self.events if e.event_type == event_type]
