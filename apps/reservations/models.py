"""Reservation models: the cart aggregate and its service line items."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.base import EventRecorder
from shared.domain.value_objects import DateRange, Money, TimeWindow

from .domain.availability import BookedSlot, candidate_day_bounds
from .domain.events import ReservationStatusChanged
from .domain.lifecycle import RESERVATION_LIFECYCLE, ReservationStatus

# An abandoned cart is cancelled without ever receiving a code.
CODELESS_STATUSES = [ReservationStatus.CART, ReservationStatus.CANCELLED]


class ReservationQuerySet(models.QuerySet):
    def for_user(self, user):
        return self.filter(user=user)

    def for_provider(self, provider_id: int):
        return self.filter(service_bookings__provider_id=provider_id).distinct()

    def with_code_like(self, fragment: str):
        return self.filter(code__icontains=fragment)

    def created_between(self, start=None, end=None):
        reservations = self
        if start is not None:
            reservations = reservations.filter(created_at__gte=start)
        if end is not None:
            reservations = reservations.filter(created_at__lte=end)
        return reservations

    def status_summary(self) -> dict[str, int]:
        counts = dict(
            self.values_list("status").annotate(total=models.Count("id", distinct=True)).order_by()
        )
        summary = {status.value: counts.get(status.value, 0) for status in ReservationStatus}
        summary["total"] = sum(counts.values())
        return summary


class Reservation(EventRecorder, models.Model):
    """Tourist's cart, and after checkout the booking that groups its services."""

    Status = ReservationStatus

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reservations",
    )
    code = models.CharField(max_length=12, unique=True, null=True, blank=True, editable=False)
    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.CART,
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReservationQuerySet.as_manager()

    class Meta:
        verbose_name = _("Reservation")
        verbose_name_plural = _("Reservations")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(status__in=CODELESS_STATUSES) | models.Q(code__isnull=False)
                ),
                name="reservation_code_required_after_checkout",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "status"], name="reservation_user_status_idx"),
            models.Index(fields=["status", "created_at"], name="reservation_status_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Reservation {self.code or '(cart)'} [{self.status}]"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._stored_code = instance.__dict__.get("code")
        return instance

    def save(self, *args, **kwargs):  # type: ignore
        stored_code = getattr(self, "_stored_code", None)
        if stored_code is not None and self.code != stored_code:
            raise ValidationError(_("A reservation code cannot change once assigned."))
        if self.status not in CODELESS_STATUSES and not self.code:
            raise ValidationError(_("Only carts and abandoned carts may lack a code."))
        super().save(*args, **kwargs)
        self._stored_code = self.code

    def delete(self, *args, **kwargs):  # type: ignore
        if self.code:
            raise ValidationError(_("Reservations with a code are cancelled, never deleted."))
        return super().delete(*args, **kwargs)

    def move_to(self, target: str) -> ReservationStatus:
        """Apply a lifecycle transition in memory and record it. Returns the old status."""
        old_status = ReservationStatus(self.status)
        new_status = RESERVATION_LIFECYCLE.ensure(old_status, target)
        self.status = new_status
        self.add_event(ReservationStatusChanged(
            aggregate_id=self.pk,
            reservation_id=self.pk,
            old_status=old_status.value,
            new_status=new_status.value,
        ))
        return old_status

    @property
    def is_cart(self) -> bool:
        return self.status == ReservationStatus.CART

    @property
    def active_bookings(self):
        return self.service_bookings.exclude(status=ReservationStatus.CANCELLED)

    @property
    def total_amount(self) -> Money:
        total = Money.zero(settings.DEFAULT_CURRENCY)
        for booking in self.active_bookings:
            total = total + booking.subtotal
        return total


class ServiceBookingQuerySet(models.QuerySet):
    def active(self):
        return self.exclude(status=ReservationStatus.CANCELLED)

    def for_service(self, service_id: int):
        return self.filter(service_id=service_id)

    def near_dates(self, dates: DateRange):
        """Rows whose date range could overlap ``dates``; exact overlap is decided in Python."""
        first_day, last_day = candidate_day_bounds(dates)
        return self.filter(start_date__lte=last_day).filter(
            models.Q(end_date__isnull=True, start_date__gte=first_day)
            | models.Q(end_date__gte=first_day)
        )


class ServiceBooking(models.Model):
    """One service booked for a date range, time window and party size."""

    Status = ReservationStatus

    reservation = models.ForeignKey(
        Reservation,
        on_delete=models.CASCADE,
        related_name="service_bookings",
    )
    service = models.ForeignKey(
        "catalog.Service",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    provider = models.ForeignKey(
        "catalog.Provider",
        on_delete=models.PROTECT,
        related_name="service_bookings",
        help_text=_("Copied from the service when the booking is made."),
    )
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    start_time = models.TimeField()
    end_time = models.TimeField()
    duration_minutes = models.PositiveIntegerField(editable=False)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.CART,
    )
    client_notes = models.TextField(blank=True)
    provider_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ServiceBookingQuerySet.as_manager()

    class Meta:
        verbose_name = _("Service booking")
        verbose_name_plural = _("Service bookings")
        ordering = ["start_date", "start_time", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="service_booking_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(end_date__isnull=True) | models.Q(end_date__gte=models.F("start_date")),
                name="service_booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["service", "start_date", "end_date"], name="booking_service_dates_idx"),
            models.Index(fields=["provider", "status"], name="booking_provider_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.service_id} on {self.dates} {self.times} x{self.quantity}"

    @property
    def dates(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    @property
    def times(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)

    @property
    def slot(self) -> BookedSlot:
        return BookedSlot(
            dates=self.dates, times=self.times, quantity=self.quantity, booking_id=self.pk
        )

    @property
    def subtotal(self) -> Money:
        return Money(self.unit_price, settings.DEFAULT_CURRENCY) * self.quantity

    def clean(self) -> None:
        if self.quantity is None or self.quantity < 1:
            raise ValidationError(_("Quantity must be at least 1."))
        try:
            dates = self.dates
            times = self.times
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if times.wraps_midnight and not dates.is_multi_day:
            raise ValidationError(
                _("End time must be after start time unless the booking spans several days.")
            )
        self.duration_minutes = times.duration_minutes

    def save(self, *args, **kwargs):  # type: ignore
        self.clean()
        super().save(*args, **kwargs)

