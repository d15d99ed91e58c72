"""
Unit of Work

One database transaction per domain operation. Events recorded by the
aggregates touched inside it reach the message bus only once the
outermost transaction has committed; a rollback drops them.
"""

import logging
from typing import List

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class DjangoUnitOfWork:
    """
    ``transaction.atomic()`` plus event collection

    Usage:
        with DjangoUnitOfWork() as uow:
            reservation = _locked_reservation(reservation_id)
            reservation.move_to(ReservationStatus.CONFIRMED)
            reservation.save()
            uow.collect_events(reservation)
        # ReservationStatusChanged is published after commit

    Nested units join the caller's transaction, so their events wait for
    the caller's commit too.
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._atomic = transaction.atomic()

    def __enter__(self):
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            pending, self._events = self._events, []
            if pending:
                transaction.on_commit(lambda: self._publish(pending))
        elif self._events:
            logger.info("Transaction rolled back, dropping %d events", len(self._events))
            self._events = []
        return self._atomic.__exit__(exc_type, exc_val, exc_tb)

    def collect_events(self, *aggregates):
        """Move recorded events off each aggregate into this unit."""
        for aggregate in aggregates:
            recorded = aggregate.events
            if not recorded:
                continue
            self._events.extend(recorded)
            aggregate.clear_events()
            logger.debug(
                "Collected %d events from %s %s",
                len(recorded), type(aggregate).__name__, aggregate.pk,
            )

    @staticmethod
    def _publish(events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        message_bus.publish_events(events)
