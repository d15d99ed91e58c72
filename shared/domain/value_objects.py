"""
Common Value Objects

Value objects used across the reservation and plan contexts:
- Money: Monetary amounts with currency
- DateRange: Inclusive range of calendar days
- TimeWindow: Time-of-day window, possibly crossing midnight
- ReservationCode: Human-readable reservation code
"""

import random
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from string import ascii_uppercase, digits
from typing import Iterator

from shared.domain.base import ValueObject

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a monetary amount with currency.
    Immutable and supports the arithmetic needed for line-item totals.
    """
    amount: Decimal
    currency: str = 'PEN'

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        if self.currency not in ['PEN', 'USD', 'EUR']:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'PEN') -> 'Money':
        return cls(Decimal('0.00'), currency)

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, factor: int | Decimal) -> 'Money':
        """Multiply money by a quantity"""
        if not isinstance(factor, (int, Decimal)):
            raise TypeError("Can only multiply Money by int or Decimal")
        return Money(self.amount * Decimal(factor), self.currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Both ends are inclusive. A range without an explicit end date covers
    exactly one day. Used for multi-day service bookings and enrollments.
    """
    start_date: date
    end_date: date | None = None

    def __post_init__(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError(
                f"End date ({self.end_date}) cannot be before start date ({self.start_date})"
            )

    @property
    def last_day(self) -> date:
        return self.end_date if self.end_date is not None else self.start_date

    @property
    def is_multi_day(self) -> bool:
        return self.last_day > self.start_date

    def days(self) -> Iterator[date]:
        """Iterate every covered day, in order"""
        current = self.start_date
        while current <= self.last_day:
            yield current
            current += timedelta(days=1)

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Check if this range shares at least one day with another

        Ranges are inclusive, so DateRange(1, 3) and DateRange(3, 5) overlap.
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")
        return self.start_date <= other.last_day and other.start_date <= self.last_day

    def __len__(self) -> int:
        """Number of covered days"""
        return (self.last_day - self.start_date).days + 1

    def __str__(self):
        if not self.is_multi_day:
            return self.start_date.isoformat()
        return f"{self.start_date.isoformat()} - {self.last_day.isoformat()}"


def _minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class TimeWindow(ValueObject):
    """
    Time-of-day window

    An end time earlier than the start time means the window runs past
    midnight into the next morning. Equal times describe an empty window
    and are rejected.
    """
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.start_time == self.end_time:
            raise ValueError("Start time and end time cannot be equal")

    @property
    def wraps_midnight(self) -> bool:
        return self.end_time < self.start_time

    @property
    def duration_minutes(self) -> int:
        span = _minute_of_day(self.end_time) - _minute_of_day(self.start_time)
        if self.wraps_midnight:
            span += MINUTES_PER_DAY
        return span

    def span_on(self, day: date) -> tuple[datetime, datetime]:
        """Half-open [start, end) interval the window occupies when it begins on ``day``"""
        start = datetime.combine(day, self.start_time)
        end_day = day + timedelta(days=1) if self.wraps_midnight else day
        return start, datetime.combine(end_day, self.end_time)

    def __str__(self):
        return f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"


@dataclass(frozen=True)
class ReservationCode(ValueObject):
    """
    Reservation code value object

    Two uppercase letters, four digits and the issue date as ``yymmdd``,
    e.g. ``KT4821261019``.
    """
    value: str

    PATTERN = re.compile(r'^[A-Z]{2}[0-9]{4}[0-9]{6}$')

    def __post_init__(self):
        if not self.PATTERN.match(self.value):
            raise ValueError(f"Malformed reservation code: {self.value!r}")

    @classmethod
    def generate(cls, issued_on: date, rng: random.Random) -> 'ReservationCode':
        letters = ''.join(rng.choice(ascii_uppercase) for _ in range(2))
        numbers = ''.join(rng.choice(digits) for _ in range(4))
        return cls(f"{letters}{numbers}{issued_on.strftime('%y%m%d')}")

    def __str__(self):
        return self.value
