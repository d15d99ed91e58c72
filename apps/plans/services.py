"""Domain services for plan itineraries and enrollments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Sequence

import structlog
from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError  # type: ignore
from django.db import models, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from shared.application.retry import retry_on_conflict
from shared.application.uow import DjangoUnitOfWork
from shared.domain.clock import Clock, system_clock
from shared.domain.exceptions import (
    CapacityExceeded,
    InvalidStateTransition,
    PaymentBeforeConfirmation,
    PlanNotAvailable,
)
from shared.domain.value_objects import DateRange

from .domain.events import EnrollmentCreated, EnrollmentPaymentRecorded, PlanPublished
from .domain.itinerary import ItineraryDay, validate_itinerary
from .domain.lifecycle import (
    PAYABLE_STATUSES,
    Difficulty,
    EnrollmentStatus,
    PaymentMethod,
    PlanStatus,
    ensure_dates_allow,
    seats_taken,
)
from .models import Plan, PlanDay, PlanEnrollment

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from django.contrib.auth.models import AbstractBaseUser

logger = structlog.get_logger(__name__)


@dataclass
class PlanSpec:
    """Everything needed to create a plan, apart from its days"""
    name: str
    creator: "AbstractBaseUser"
    capacity: int
    duration_days: int
    total_price: Decimal = Decimal("0.00")
    difficulty: str = Difficulty.MODERATE
    description: str = ""
    included_items: str = ""
    requirements: str = ""
    packing_list: str = ""
    is_public: bool = False
    status: str = PlanStatus.DRAFT
    primary_image: str = ""
    gallery_images: list[str] = field(default_factory=list)


@dataclass
class Payment:
    amount: Decimal
    method: str

    def __post_init__(self):
        if self.amount < 0:
            raise ValidationError("Amount paid cannot be negative.")
        if self.method not in PaymentMethod.values:
            raise ValidationError(f"Unknown payment method: {self.method}")


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def _locked_plan(plan_id: int) -> Plan:
    return _lock_queryset_if_possible(Plan.objects.all()).get(pk=plan_id)


def _checked_days(duration_days: int, days: Iterable[ItineraryDay], *, published: bool) -> list[ItineraryDay]:
    require_complete = published or not settings.PLAN_ALLOW_PARTIAL_DRAFT_ITINERARIES
    return validate_itinerary(
        duration_days,
        days,
        require_complete=require_complete,
        tolerance_minutes=settings.PLAN_DAY_DURATION_TOLERANCE_MINUTES,
    )


def _store_days(plan: Plan, days: Sequence[ItineraryDay]) -> list[PlanDay]:
    return PlanDay.objects.bulk_create([
        PlanDay(
            plan=plan,
            day_number=day.day_number,
            display_order=day.display_order,
            title=day.title,
            description=day.description,
            start_time=day.start_time,
            end_time=day.end_time,
            estimated_duration_minutes=day.estimated_duration_minutes,
            notes=day.notes,
        )
        for day in days
    ])


def _record_publication(plan: Plan, was_published: bool) -> None:
    if plan.is_published and not was_published:
        plan.add_event(PlanPublished(
            aggregate_id=plan.pk, plan_id=plan.pk, duration_days=plan.duration_days
        ))


@retry_on_conflict
def create_plan(spec: PlanSpec, days: Iterable[ItineraryDay]) -> Plan:
    """
    Create a plan together with its itinerary.

    Day numbers must be unique and within 1..duration_days. A plan created
    ACTIVE and public must cover every day; drafts may be partial when
    PLAN_ALLOW_PARTIAL_DRAFT_ITINERARIES is on.
    """

    status = PlanStatus(spec.status)
    published = status == PlanStatus.ACTIVE and spec.is_public
    checked = _checked_days(spec.duration_days, days, published=published)

    with DjangoUnitOfWork() as uow:
        plan = Plan.objects.create(
            name=spec.name,
            creator=spec.creator,
            capacity=spec.capacity,
            duration_days=spec.duration_days,
            total_price=spec.total_price,
            difficulty=spec.difficulty,
            description=spec.description,
            included_items=spec.included_items,
            requirements=spec.requirements,
            packing_list=spec.packing_list,
            is_public=spec.is_public,
            status=status,
            primary_image=spec.primary_image,
            gallery_images=list(spec.gallery_images),
        )
        _store_days(plan, checked)
        _record_publication(plan, was_published=False)
        uow.collect_events(plan)

    logger.info("plan_created", plan_id=plan.pk, days=len(checked), published=plan.is_published)
    return plan


@retry_on_conflict
def change_plan_status(plan_id: int, target_status: str) -> Plan:
    with DjangoUnitOfWork() as uow:
        plan = _locked_plan(plan_id)
        was_published = plan.is_published
        plan.move_to(target_status)
        if plan.is_published:
            _checked_days(plan.duration_days, plan.itinerary(), published=True)
        plan.save(update_fields=["status", "updated_at"])
        _record_publication(plan, was_published)
        uow.collect_events(plan)

    logger.info("plan_status_changed", plan_id=plan.pk, status=plan.status)
    return plan


@retry_on_conflict
def set_plan_visibility(plan_id: int, is_public: bool) -> Plan:
    with DjangoUnitOfWork() as uow:
        plan = _locked_plan(plan_id)
        was_published = plan.is_published
        plan.is_public = is_public
        if plan.is_published:
            _checked_days(plan.duration_days, plan.itinerary(), published=True)
        plan.save(update_fields=["is_public", "updated_at"])
        _record_publication(plan, was_published)
        uow.collect_events(plan)

    return plan


@retry_on_conflict
def replace_plan_days(plan_id: int, days: Iterable[ItineraryDay]) -> list[PlanDay]:
    """Swap the whole itinerary; a published plan must stay complete."""

    with transaction.atomic():
        plan = _locked_plan(plan_id)
        checked = _checked_days(plan.duration_days, days, published=plan.is_published)
        plan.days.all().delete()
        stored = _store_days(plan, checked)

    logger.info("plan_days_replaced", plan_id=plan.pk, days=len(stored))
    return stored


def _seats_taken(plan: Plan, dates: DateRange, *, exclude_enrollment_id=None) -> int:
    others = plan.enrollments.holding_places().overlapping(dates)
    if exclude_enrollment_id is not None:
        others = others.exclude(pk=exclude_enrollment_id)
    return seats_taken(
        (
            (DateRange(start, end), count)
            for start, end, count in others.values_list(
                "plan_start_date", "plan_end_date", "participant_count"
            )
        ),
        dates,
    )


def _ensure_plan_capacity(plan: Plan, dates: DateRange, participants: int, *, exclude_enrollment_id=None) -> None:
    taken = _seats_taken(plan, dates, exclude_enrollment_id=exclude_enrollment_id)
    if taken + participants > plan.capacity:
        raise CapacityExceeded(
            f"Requested {participants} places but only {max(plan.capacity - taken, 0)} of "
            f"{plan.capacity} are free for {dates}",
            capacity=plan.capacity,
            occupied=taken,
            requested=participants,
        )


def plan_dates(plan: Plan, dates: DateRange) -> DateRange:
    """Fill in the end date from the plan's length when the caller left it out."""
    if dates.end_date is not None:
        return dates
    return DateRange(dates.start_date, dates.start_date + timedelta(days=plan.duration_days - 1))


@retry_on_conflict
def enroll(
    user: "AbstractBaseUser",
    plan_id: int,
    dates: DateRange,
    participant_count: int = 1,
    *,
    special_requirements: str = "",
    comments: str = "",
    clock: Clock | None = None,
) -> PlanEnrollment:
    """Register ``user`` on a published plan as a PENDING enrollment."""

    if participant_count < 1:
        raise ValidationError("At least one participant is required.")
    clock = clock or system_clock

    with DjangoUnitOfWork() as uow:
        plan = _locked_plan(plan_id)
        if not plan.is_published:
            raise PlanNotAvailable(f"Plan {plan.pk} is not open for enrollment")

        dates = plan_dates(plan, dates)
        _ensure_plan_capacity(plan, dates, participant_count)

        enrollment = PlanEnrollment.objects.create(
            plan=plan,
            user=user,
            enrolled_at=clock.now(),
            plan_start_date=dates.start_date,
            plan_end_date=dates.last_day,
            participant_count=participant_count,
            special_requirements=special_requirements,
            comments=comments,
        )
        enrollment.add_event(EnrollmentCreated(
            aggregate_id=enrollment.pk,
            enrollment_id=enrollment.pk,
            plan_id=plan.pk,
            user_id=user.pk,
            participant_count=participant_count,
        ))
        uow.collect_events(enrollment)

    logger.info(
        "plan_enrollment_created",
        enrollment_id=enrollment.pk,
        plan_id=plan.pk,
        participants=participant_count,
    )
    return enrollment


def _locked_enrollment(enrollment_id: int) -> tuple[Plan, PlanEnrollment]:
    """Lock the plan first, then the enrollment, the same order ``enroll`` uses."""
    plan_id = PlanEnrollment.objects.values_list("plan_id", flat=True).get(pk=enrollment_id)
    plan = _locked_plan(plan_id)
    enrollment = _lock_queryset_if_possible(PlanEnrollment.objects.all()).get(pk=enrollment_id)
    enrollment.plan = plan
    return plan, enrollment


def _apply_payment(enrollment: PlanEnrollment, payment: Payment) -> None:
    if enrollment.status == EnrollmentStatus.PENDING:
        raise PaymentBeforeConfirmation(
            f"Enrollment {enrollment.pk} must be confirmed before payment is recorded"
        )
    if enrollment.status not in PAYABLE_STATUSES:
        raise InvalidStateTransition(
            f"Enrollment: cannot record payment while {enrollment.status}",
            current=enrollment.status,
        )
    enrollment.amount_paid = payment.amount
    enrollment.payment_method = payment.method
    enrollment.add_event(EnrollmentPaymentRecorded(
        aggregate_id=enrollment.pk,
        enrollment_id=enrollment.pk,
        amount=payment.amount,
        method=payment.method,
    ))


@retry_on_conflict
def transition_enrollment(
    enrollment_id: int,
    target_status: str,
    payment: Payment | None = None,
    *,
    clock: Clock | None = None,
) -> PlanEnrollment:
    """
    Move an enrollment along its lifecycle, optionally recording payment.

    Confirmation re-checks plan capacity under the plan lock. Payment is
    applied after the move, so it is accepted together with a confirmation
    but refused on an enrollment that stays PENDING.
    """

    clock = clock or system_clock
    target = EnrollmentStatus(target_status)

    with DjangoUnitOfWork() as uow:
        plan, enrollment = _locked_enrollment(enrollment_id)
        enrollment.move_to(target)

        if target == EnrollmentStatus.CONFIRMED:
            _ensure_plan_capacity(
                plan,
                enrollment.dates,
                enrollment.participant_count,
                exclude_enrollment_id=enrollment.pk,
            )
        ensure_dates_allow(target, enrollment.dates, clock.today())

        if payment is not None:
            _apply_payment(enrollment, payment)
        enrollment.save()
        uow.collect_events(enrollment)

    logger.info("plan_enrollment_transitioned", enrollment_id=enrollment.pk, status=enrollment.status)
    return enrollment


@retry_on_conflict
def record_payment(enrollment_id: int, payment: Payment) -> PlanEnrollment:
    with DjangoUnitOfWork() as uow:
        _, enrollment = _locked_enrollment(enrollment_id)
        _apply_payment(enrollment, payment)
        enrollment.save(update_fields=["amount_paid", "payment_method", "updated_at"])
        uow.collect_events(enrollment)

    logger.info("plan_enrollment_paid", enrollment_id=enrollment.pk, method=payment.method)
    return enrollment


def published_plans():
    """Plans open for enrollment."""
    return Plan.objects.published().order_by("name")


def available_spots(plan_id: int, dates: DateRange) -> int:
    plan = Plan.objects.get(pk=plan_id)
    dates = plan_dates(plan, dates)
    return max(plan.capacity - _seats_taken(plan, dates), 0)


def enrollment_summary(plan_id: int) -> dict[str, dict[str, int]]:
    """Enrollments and participants per status for one plan."""

    rows = (
        PlanEnrollment.objects.filter(plan_id=plan_id)
        .values("status")
        .annotate(enrollments=models.Count("id"), participants=models.Sum("participant_count"))
        .order_by()
    )
    summary = {status.value: {"enrollments": 0, "participants": 0} for status in EnrollmentStatus}
    for row in rows:
        summary[row["status"]] = {
            "enrollments": row["enrollments"],
            "participants": row["participants"] or 0,
        }
    return summary
