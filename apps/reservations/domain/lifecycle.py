"""
Reservation lifecycle

State transitions:
- CART -> PENDING (checkout, assigns the reservation code)
- CART -> CANCELLED (cart abandoned)
- PENDING -> CONFIRMED (at least one active booking)
- PENDING -> CANCELLED
- CONFIRMED -> COMPLETED (every service has taken place, when configured)
- CONFIRMED -> CANCELLED

Service bookings carry the same status values and follow their
reservation in lockstep, except that a cancelled line item stays
cancelled.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.state_machine import StateMachine


class ReservationStatus(models.TextChoices):
    CART = "cart", _("In cart")
    PENDING = "pending", _("Pending")
    CONFIRMED = "confirmed", _("Confirmed")
    CANCELLED = "cancelled", _("Cancelled")
    COMPLETED = "completed", _("Completed")


RESERVATION_LIFECYCLE = StateMachine(
    "Reservation",
    ReservationStatus,
    {
        ReservationStatus.CART: {ReservationStatus.PENDING, ReservationStatus.CANCELLED},
        ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
        ReservationStatus.CONFIRMED: {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED},
        ReservationStatus.CANCELLED: set(),
        ReservationStatus.COMPLETED: set(),
    },
)

# Line items may be dropped individually while their reservation is still live.
BOOKING_CANCELLABLE_FROM = frozenset(
    {ReservationStatus.CART, ReservationStatus.PENDING, ReservationStatus.CONFIRMED}
)


def lockstep_status(reservation_status: str, booking_status: str) -> ReservationStatus:
    """Status a line item takes when its reservation moves to ``reservation_status``."""
    if booking_status == ReservationStatus.CANCELLED:
        return ReservationStatus.CANCELLED
    return ReservationStatus(reservation_status)


def unfinished_slots(slots: Iterable, now: datetime) -> list:
    """Slots whose last occupied moment is still after ``now``."""
    return [slot for slot in slots if slot.ends_at > now]
