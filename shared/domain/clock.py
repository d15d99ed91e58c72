"""
Clock and randomness providers

Operations that compare against "now" or draw random characters take
these as explicit arguments so tests can pin them down.
"""

import random
from datetime import date, datetime
from typing import Protocol

from django.utils import timezone  # type: ignore


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Wall clock in the project's configured time zone"""

    def now(self) -> datetime:
        return timezone.localtime()

    def today(self) -> date:
        return timezone.localdate()


class FixedClock:
    """Clock frozen at a given instant"""

    def __init__(self, instant: datetime):
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def today(self) -> date:
        return self._instant.date()


system_clock = SystemClock()


def default_rng() -> random.Random:
    """Randomness source used when a caller does not inject one"""
    return random.SystemRandom()
