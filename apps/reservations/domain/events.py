"""
Reservation Domain Events

Published after the surrounding transaction commits. Notification and
analytics collaborators subscribe to them through the message bus.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class ServiceBookingAdded(DomainEvent):
    """
    Event: A service was added to a cart

    Triggers:
    - Refresh the provider's occupancy view
    """
    reservation_id: int
    booking_id: int
    service_id: int
    quantity: int


@dataclass(kw_only=True)
class ServiceBookingCancelled(DomainEvent):
    """
    Event: One line item was cancelled, the reservation stays as it is

    Triggers:
    - Notify the provider that places were released
    """
    reservation_id: int
    booking_id: int
    service_id: int


@dataclass(kw_only=True)
class ReservationCheckedOut(DomainEvent):
    """
    Event: Cart checked out (CART -> PENDING), code assigned

    Triggers:
    - Send the reservation code to the tourist
    - Ask each provider to confirm their line items
    """
    reservation_id: int
    user_id: int
    code: str
    total_amount: Decimal


@dataclass(kw_only=True)
class ReservationStatusChanged(DomainEvent):
    """Event: Any lifecycle move of a reservation"""
    reservation_id: int
    old_status: str
    new_status: str


@dataclass(kw_only=True)
class ReservationCancelled(DomainEvent):
    """
    Event: Reservation cancelled together with every line item

    Triggers:
    - Notify tourist and providers
    """
    reservation_id: int
    code: str | None
    cancelled_booking_ids: List[int] = field(default_factory=list)
