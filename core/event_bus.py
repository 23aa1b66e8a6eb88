"""
Synchronous pub/sub for lead pipeline events.

Subscribers run in the publishing thread, in the order they subscribed.
A failing subscriber is logged and skipped so the rest still run; the lead
write that triggered the event is already committed by then.
"""

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List

from core.events import PipelineEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[PipelineEvent], None]


class EventBus:
    """Routes events to subscribers keyed by event class name."""

    def __init__(self):
        self._subscribers: DefaultDict[str, List[Subscriber]] = defaultdict(list)

    def subscribe(self, event_type: str, callback: Subscriber) -> None:
        """Register callback for events whose class is named event_type (e.g. 'LeadCompleted')."""
        self._subscribers[event_type].append(callback)

    def publish(self, event: PipelineEvent) -> None:
        """Deliver event to every subscriber of its type."""
        event_type = type(event).__name__

        for callback in list(self._subscribers.get(event_type, ())):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Subscriber %s failed on %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event_type,
                    event.event_id,
                )
