"""
Plan and enrollment lifecycles

Plan status (publication is ACTIVE together with the public flag):
- DRAFT -> ACTIVE, INACTIVE
- ACTIVE -> INACTIVE, DRAFT
- INACTIVE -> ACTIVE, DRAFT

Enrollment status:
- PENDING -> CONFIRMED (capacity re-checked under the plan lock)
- PENDING -> CANCELLED
- CONFIRMED -> IN_PROGRESS (once the plan start date has arrived)
- CONFIRMED -> CANCELLED
- IN_PROGRESS -> COMPLETED (once the plan end date has passed)
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.exceptions import InvalidStateTransition
from shared.domain.state_machine import StateMachine
from shared.domain.value_objects import DateRange


class PlanStatus(models.TextChoices):
    DRAFT = "draft", _("Draft")
    ACTIVE = "active", _("Active")
    INACTIVE = "inactive", _("Inactive")


class Difficulty(models.TextChoices):
    EASY = "easy", _("Easy")
    MODERATE = "moderate", _("Moderate")
    HARD = "hard", _("Hard")


class EnrollmentStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    CONFIRMED = "confirmed", _("Confirmed")
    IN_PROGRESS = "in_progress", _("In progress")
    COMPLETED = "completed", _("Completed")
    CANCELLED = "cancelled", _("Cancelled")


class PaymentMethod(models.TextChoices):
    CASH = "cash", _("Cash")
    TRANSFER = "transfer", _("Bank transfer")
    CARD = "card", _("Card")
    WALLET_A = "wallet_a", _("Mobile wallet A")
    WALLET_B = "wallet_b", _("Mobile wallet B")


PLAN_LIFECYCLE = StateMachine(
    "Plan",
    PlanStatus,
    {
        PlanStatus.DRAFT: {PlanStatus.ACTIVE, PlanStatus.INACTIVE},
        PlanStatus.ACTIVE: {PlanStatus.INACTIVE, PlanStatus.DRAFT},
        PlanStatus.INACTIVE: {PlanStatus.ACTIVE, PlanStatus.DRAFT},
    },
)

ENROLLMENT_LIFECYCLE = StateMachine(
    "Enrollment",
    EnrollmentStatus,
    {
        EnrollmentStatus.PENDING: {EnrollmentStatus.CONFIRMED, EnrollmentStatus.CANCELLED},
        EnrollmentStatus.CONFIRMED: {EnrollmentStatus.IN_PROGRESS, EnrollmentStatus.CANCELLED},
        EnrollmentStatus.IN_PROGRESS: {EnrollmentStatus.COMPLETED},
        EnrollmentStatus.COMPLETED: set(),
        EnrollmentStatus.CANCELLED: set(),
    },
)

# Statuses in which payment details may be stored.
PAYABLE_STATUSES = frozenset(
    {EnrollmentStatus.CONFIRMED, EnrollmentStatus.IN_PROGRESS, EnrollmentStatus.COMPLETED}
)


def ensure_dates_allow(target: EnrollmentStatus, dates: DateRange, today: date) -> None:
    """Date rules for starting and finishing a plan."""

    if target == EnrollmentStatus.IN_PROGRESS and dates.start_date > today:
        raise InvalidStateTransition(
            f"Enrollment: the plan only starts on {dates.start_date}",
            current=EnrollmentStatus.CONFIRMED.value,
            target=target.value,
        )
    if target == EnrollmentStatus.COMPLETED and dates.last_day >= today:
        raise InvalidStateTransition(
            f"Enrollment: the plan runs until {dates.last_day}",
            current=EnrollmentStatus.IN_PROGRESS.value,
            target=target.value,
        )


def seats_taken(enrollments: Iterable[tuple[DateRange, int]], dates: DateRange) -> int:
    """Participants of other enrollments whose dates overlap ``dates``."""
    return sum(count for other, count in enrollments if other.overlaps_with(dates))
