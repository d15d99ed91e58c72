"""
Service availability

Capacity check for service bookings. This module is pure: callers hand
in the service capacity, the bookings already holding the service and the
proposed booking, and get back a decision. Fetching rows and holding the
lock that makes the decision stick is the service layer's job.

A booking occupies its time window on every day of its inclusive date
range. A window that ends before it starts runs past midnight into the
next morning. Two bookings conflict when any of their daily intervals
intersect (half-open, so back-to-back slots do not collide).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator

from shared.domain.base import ValueObject
from shared.domain.exceptions import CapacityExceeded
from shared.domain.value_objects import DateRange, TimeWindow


@dataclass(frozen=True)
class BookedSlot(ValueObject):
    """Occupation of a service: when and by how many people"""
    dates: DateRange
    times: TimeWindow
    quantity: int
    booking_id: int | None = None

    def intervals(self) -> Iterator[tuple[datetime, datetime]]:
        for day in self.dates.days():
            yield self.times.span_on(day)

    @property
    def starts_at(self) -> datetime:
        return self.times.span_on(self.dates.start_date)[0]

    @property
    def ends_at(self) -> datetime:
        return self.times.span_on(self.dates.last_day)[1]

    def overlaps(self, other: 'BookedSlot') -> bool:
        # Cheap bounding check before comparing day by day
        if self.starts_at >= other.ends_at or other.starts_at >= self.ends_at:
            return False
        theirs = list(other.intervals())
        for start, end in self.intervals():
            for other_start, other_end in theirs:
                if start < other_end and other_start < end:
                    return True
        return False


@dataclass(frozen=True)
class AvailabilityDecision:
    capacity: int
    occupied: int
    requested: int

    @property
    def accepted(self) -> bool:
        return self.occupied + self.requested <= self.capacity

    @property
    def remaining(self) -> int:
        return max(self.capacity - self.occupied, 0)

    @property
    def reason(self) -> str:
        if self.accepted:
            return ""
        return (
            f"Requested {self.requested} but only {self.remaining} of "
            f"{self.capacity} places are free in this window"
        )


def occupied_quantity(existing: Iterable[BookedSlot], requested: BookedSlot) -> int:
    """Sum of quantities of existing slots overlapping ``requested``."""
    return sum(
        slot.quantity
        for slot in existing
        if (requested.booking_id is None or slot.booking_id != requested.booking_id)
        and slot.overlaps(requested)
    )


def check_capacity(
    capacity: int, existing: Iterable[BookedSlot], requested: BookedSlot
) -> AvailabilityDecision:
    return AvailabilityDecision(
        capacity=capacity,
        occupied=occupied_quantity(existing, requested),
        requested=requested.quantity,
    )


def ensure_capacity(
    capacity: int, existing: Iterable[BookedSlot], requested: BookedSlot
) -> AvailabilityDecision:
    """Return the accepting decision or raise CapacityExceeded."""
    decision = check_capacity(capacity, existing, requested)
    if not decision.accepted:
        raise CapacityExceeded(
            decision.reason,
            capacity=decision.capacity,
            occupied=decision.occupied,
            requested=decision.requested,
        )
    return decision


def candidate_day_bounds(dates: DateRange) -> tuple[date, date]:
    """
    Widest day range an overlapping booking can start or end in

    Overnight windows spill one day forward, so a booking ending the day
    before ``dates`` or starting the day after can still collide.
    """
    return dates.start_date - timedelta(days=1), dates.last_day + timedelta(days=1)
