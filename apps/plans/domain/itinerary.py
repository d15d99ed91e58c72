"""
Plan itinerary validation

A plan lasting N days is described by PlanDay entries numbered 1..N.
Display order is free, day numbers are not: they must be unique and in
range, and a plan offered to the public must cover every day.

Days may run overnight (an end time earlier than the start time), in
which case the span continues into the next morning: 22:00-02:00 is 240
minutes, never a negative duration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import time
from typing import Iterable, Sequence

from shared.domain.base import ValueObject
from shared.domain.exceptions import IncompleteItinerary
from shared.domain.value_objects import TimeWindow


@dataclass(frozen=True)
class ItineraryDay(ValueObject):
    """One proposed day of a plan, before it is stored"""
    day_number: int
    title: str
    start_time: time
    end_time: time
    description: str = ''
    display_order: int | None = None
    estimated_duration_minutes: int | None = None
    notes: str = ''

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)

    @property
    def span_minutes(self) -> int:
        return self.window.duration_minutes

    def with_computed_duration(self) -> 'ItineraryDay':
        """Copy with display order and estimated duration filled in where missing"""
        updates = {}
        if self.estimated_duration_minutes is None:
            updates['estimated_duration_minutes'] = self.span_minutes
        if self.display_order is None:
            updates['display_order'] = self.day_number
        return replace(self, **updates) if updates else self


def span_minutes(start_time: time, end_time: time) -> int:
    """Length of a day's activities, wrapping past midnight when needed"""
    return TimeWindow(start_time, end_time).duration_minutes


def _day_problems(day: ItineraryDay, duration_days: int, tolerance: int) -> list[str]:
    label = f"Day {day.day_number}"
    problems = []
    if not 1 <= day.day_number <= duration_days:
        problems.append(f"{label} is outside 1..{duration_days}")
    try:
        span = day.span_minutes
    except ValueError:
        problems.append(f"{label} starts and ends at the same time")
        return problems
    estimate = day.estimated_duration_minutes
    if estimate is not None and abs(estimate - span) > tolerance:
        problems.append(
            f"{label} estimates {estimate} minutes but its times span {span} minutes"
        )
    return problems


def itinerary_problems(
    duration_days: int,
    days: Sequence[ItineraryDay],
    *,
    require_complete: bool,
    tolerance_minutes: int = 0,
) -> list[str]:
    """Every reason the proposed days cannot be stored for this plan, in order found."""

    problems = []
    if duration_days < 1:
        problems.append("A plan lasts at least one day")

    seen: set[int] = set()
    duplicates: set[int] = set()
    for day in days:
        if day.day_number in seen:
            duplicates.add(day.day_number)
        seen.add(day.day_number)
        problems.extend(_day_problems(day, duration_days, tolerance_minutes))

    for number in sorted(duplicates):
        problems.append(f"Day {number} appears more than once")

    if require_complete:
        if not days:
            problems.append("A published plan needs at least one day")
        missing = sorted(set(range(1, duration_days + 1)) - seen)
        if missing:
            problems.append(f"Missing days: {', '.join(str(n) for n in missing)}")
    return problems


def validate_itinerary(
    duration_days: int,
    days: Iterable[ItineraryDay],
    *,
    require_complete: bool,
    tolerance_minutes: int = 0,
) -> list[ItineraryDay]:
    """Return the days with computed durations, or raise IncompleteItinerary."""

    days = list(days)
    problems = itinerary_problems(
        duration_days,
        days,
        require_complete=require_complete,
        tolerance_minutes=tolerance_minutes,
    )
    if problems:
        raise IncompleteItinerary(problems)
    return [day.with_computed_duration() for day in days]
