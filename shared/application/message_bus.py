"""
Message Bus

Routes domain events raised by the core to whatever collaborators
(notifications, analytics) registered for them. The core itself
registers nothing; handlers live outside it.
"""

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, Iterable, List, Type

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class MessageBus:
    """
    In-process event bus

    Any number of handlers per event type, called in registration order.
    A failing handler is logged and skipped; the events it missed are not
    replayed because the transaction that raised them has already committed.
    """

    def __init__(self):
        self._handlers: DefaultDict[Type[DomainEvent], List[EventHandler]] = defaultdict(list)

    def register_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        self._handlers[event_type].append(handler)
        logger.debug("Registered %s for %s", getattr(handler, '__name__', handler), event_type.__name__)

    def unregister_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish_events(self, events: Iterable[DomainEvent]):
        for event in events:
            event_type = type(event)
            handlers = list(self._handlers.get(event_type, ()))
            if not handlers:
                logger.debug("Nobody listens to %s", event_type.__name__)
                continue

            logger.info("Publishing %s (ID: %s)", event_type.__name__, event.event_id)
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "Handler %s failed on %s %s",
                        getattr(handler, '__name__', handler), event_type.__name__, event.event_id,
                    )


message_bus = MessageBus()
