"""Plan models: itinerary products, their days and participant enrollments."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.base import EventRecorder
from shared.domain.value_objects import DateRange, Money

from .domain.events import EnrollmentStatusChanged
from .domain.itinerary import ItineraryDay
from .domain.lifecycle import (
    ENROLLMENT_LIFECYCLE,
    PLAN_LIFECYCLE,
    Difficulty,
    EnrollmentStatus,
    PaymentMethod,
    PlanStatus,
)


class PlanQuerySet(models.QuerySet):
    def published(self):
        return self.filter(status=PlanStatus.ACTIVE, is_public=True)


class Plan(EventRecorder, models.Model):
    """Packaged multi-day tour."""

    Status = PlanStatus
    Difficulty = Difficulty

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    included_items = models.TextField(blank=True)
    requirements = models.TextField(blank=True)
    packing_list = models.TextField(blank=True)
    capacity = models.PositiveIntegerField(help_text=_("Maximum participants at the same time."))
    duration_days = models.PositiveIntegerField(default=1)
    total_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    difficulty = models.CharField(
        max_length=20, choices=Difficulty.choices, default=Difficulty.MODERATE
    )
    is_public = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=PlanStatus.choices, default=PlanStatus.DRAFT)
    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_plans",
    )
    primary_image = models.CharField(max_length=255, blank=True)
    gallery_images = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PlanQuerySet.as_manager()

    class Meta:
        verbose_name = _("Plan")
        verbose_name_plural = _("Plans")
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(capacity__gte=1),
                name="plans_plan_capacity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(duration_days__gte=1),
                name="plans_plan_duration_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "is_public"], name="plans_plan_status_public_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def is_published(self) -> bool:
        return self.status == PlanStatus.ACTIVE and self.is_public

    def move_to(self, target: str) -> PlanStatus:
        old_status = PlanStatus(self.status)
        self.status = PLAN_LIFECYCLE.ensure(old_status, target)
        return old_status

    def itinerary(self) -> list[ItineraryDay]:
        return [day.as_itinerary_day() for day in self.days.all()]


class PlanDay(models.Model):
    plan = models.ForeignKey(Plan, on_delete=models.CASCADE, related_name="days")
    day_number = models.PositiveSmallIntegerField()
    display_order = models.PositiveSmallIntegerField(default=0)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    start_time = models.TimeField()
    end_time = models.TimeField()
    estimated_duration_minutes = models.PositiveIntegerField()
    notes = models.TextField(blank=True)

    class Meta:
        verbose_name = _("Plan day")
        verbose_name_plural = _("Plan days")
        ordering = ["display_order", "day_number"]
        constraints = [
            models.UniqueConstraint(fields=["plan", "day_number"], name="plans_day_number_unique"),
            models.CheckConstraint(
                condition=models.Q(day_number__gte=1),
                name="plans_day_number_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.plan_id} / day {self.day_number}: {self.title}"

    def as_itinerary_day(self) -> ItineraryDay:
        return ItineraryDay(
            day_number=self.day_number,
            title=self.title,
            start_time=self.start_time,
            end_time=self.end_time,
            description=self.description,
            display_order=self.display_order,
            estimated_duration_minutes=self.estimated_duration_minutes,
            notes=self.notes,
        )


class PlanEnrollmentQuerySet(models.QuerySet):
    def holding_places(self):
        return self.exclude(status=EnrollmentStatus.CANCELLED)

    def overlapping(self, dates: DateRange):
        return self.filter(plan_start_date__lte=dates.last_day, plan_end_date__gte=dates.start_date)

    def for_user(self, user):
        return self.filter(user=user)


class PlanEnrollment(EventRecorder, models.Model):
    """A user's places on a plan for a date range."""

    Status = EnrollmentStatus
    PaymentMethod = PaymentMethod

    plan = models.ForeignKey(Plan, on_delete=models.PROTECT, related_name="enrollments")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="plan_enrollments",
    )
    status = models.CharField(
        max_length=20,
        choices=EnrollmentStatus.choices,
        default=EnrollmentStatus.PENDING,
    )
    enrolled_at = models.DateTimeField(default=timezone.now)
    plan_start_date = models.DateField()
    plan_end_date = models.DateField()
    participant_count = models.PositiveIntegerField(default=1)
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    special_requirements = models.TextField(blank=True)
    comments = models.TextField(blank=True)
    user_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PlanEnrollmentQuerySet.as_manager()

    class Meta:
        verbose_name = _("Plan enrollment")
        verbose_name_plural = _("Plan enrollments")
        ordering = ["-enrolled_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(participant_count__gte=1),
                name="plans_enrollment_participants_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(plan_end_date__gte=models.F("plan_start_date")),
                name="plans_enrollment_valid_dates",
            ),
            models.CheckConstraint(
                condition=~models.Q(status=EnrollmentStatus.PENDING) | models.Q(amount_paid__isnull=True),
                name="plans_enrollment_unpaid_while_pending",
            ),
        ]
        indexes = [
            models.Index(fields=["plan", "status"], name="plans_enroll_plan_status_idx"),
            models.Index(fields=["plan", "plan_start_date", "plan_end_date"], name="plans_enroll_plan_dates_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} on {self.plan_id} ({self.dates}) [{self.status}]"

    @property
    def dates(self) -> DateRange:
        return DateRange(self.plan_start_date, self.plan_end_date)

    @property
    def total_price_calculated(self) -> Money:
        return Money(self.plan.total_price, settings.DEFAULT_CURRENCY) * self.participant_count

    def move_to(self, target: str) -> EnrollmentStatus:
        old_status = EnrollmentStatus(self.status)
        new_status = ENROLLMENT_LIFECYCLE.ensure(old_status, target)
        self.status = new_status
        self.add_event(EnrollmentStatusChanged(
            aggregate_id=self.pk,
            enrollment_id=self.pk,
            old_status=old_status.value,
            new_status=new_status.value,
        ))
        return old_status
