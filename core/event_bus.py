"""
In-process dispatch of lead and booking lifecycle events.

Publishing happens after the store write has committed, so a handler can
never undo or block the change it is told about. A failing handler is
logged and the remaining handlers still run.
"""

import logging
from collections import defaultdict
from typing import Callable

from core.events import EstateEvent

logger = logging.getLogger(__name__)

Handler = Callable[[EstateEvent], None]


class EventBus:
    """
    Synchronous pub/sub keyed by event class.

    A handler subscribed to a base class such as LeadEvent receives every
    subclass too. Delivery walks the published event's class hierarchy from
    the most specific class up; within one class, handlers run in the order
    they subscribed.
    """

    def __init__(self):
        self._handlers: dict[type[EstateEvent], list[Handler]] = defaultdict(list)

    def subscribe(self, event_cls: type[EstateEvent], handler: Handler) -> None:
        if not (isinstance(event_cls, type) and issubclass(event_cls, EstateEvent)):
            raise TypeError(f"Can only subscribe to EstateEvent classes, got {event_cls!r}")
        self._handlers[event_cls].append(handler)

    def handlers_for(self, event: EstateEvent) -> list[Handler]:
        """Handlers that would receive event, in delivery order."""
        return [
            handler
            for cls in type(event).__mro__
            if cls in self._handlers
            for handler in self._handlers[cls]
        ]

    def publish(self, event: EstateEvent) -> None:
        for handler in self.handlers_for(event):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "%s handler %s raised (event_id=%s)",
                    type(event).__name__,
                    getattr(handler, "__qualname__", repr(handler)),
                    event.event_id,
                )
