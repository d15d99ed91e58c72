"""
Base Domain Classes

Building blocks shared by every context:
- ValueObject: Immutable objects compared by value
- DomainEvent: Something that happened to an aggregate
- EventRecorder: Mixin letting an aggregate root (a Django model here)
  collect domain events until the unit of work publishes them
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List
from uuid import UUID, uuid4


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects

    Value objects are immutable and have no identity.
    Two value objects are equal if all their attributes are equal.
    """
    pass


@dataclass(kw_only=True)
class DomainEvent:
    """
    Base class for domain events

    Domain events represent something that happened in the domain.
    They are published only after the surrounding transaction commits.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    aggregate_id: int | None = None

    def to_dict(self) -> dict:
        """Convert event to dictionary for serialization"""
        return {
            'event_id': str(self.event_id),
            'event_type': self.__class__.__name__,
            'occurred_at': self.occurred_at.isoformat(),
            'aggregate_id': self.aggregate_id,
        }


class EventRecorder:
    """
    Mixin for aggregate roots

    Aggregates are the consistency boundaries. They collect domain events
    that the unit of work publishes after a successful commit.
    """

    def _pending_events(self) -> List[DomainEvent]:
        # Django models do not run __init__ hooks we control, so the list
        # is created lazily on first use.
        events = self.__dict__.get('_domain_events')
        if events is None:
            events = []
            self.__dict__['_domain_events'] = events
        return events

    def add_event(self, event: DomainEvent):
        """Add a domain event to be published"""
        self._pending_events().append(event)

    def clear_events(self):
        """Clear all collected events (called after publishing)"""
        self._pending_events().clear()

    @property
    def events(self) -> List[DomainEvent]:
        """Get copy of collected events"""
        return list(self._pending_events())
