"""Domain services for reservation workflows."""

from __future__ import annotations

import random
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError  # type: ignore
from django.db import IntegrityError, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.catalog.models import Service
from shared.application.retry import retry_on_conflict
from shared.application.uow import DjangoUnitOfWork
from shared.domain.clock import Clock, default_rng, system_clock
from shared.domain.exceptions import InvalidStateTransition
from shared.domain.value_objects import DateRange, TimeWindow

from .domain.availability import AvailabilityDecision, BookedSlot, check_capacity, ensure_capacity
from .domain.codes import code_candidates
from .domain.events import (
    ReservationCancelled,
    ReservationCheckedOut,
    ServiceBookingAdded,
    ServiceBookingCancelled,
)
from .domain.lifecycle import BOOKING_CANCELLABLE_FROM, ReservationStatus, lockstep_status, unfinished_slots
from .models import Reservation, ServiceBooking

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from django.contrib.auth.models import AbstractBaseUser

logger = structlog.get_logger(__name__)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def _locked_reservation(reservation_id: int) -> Reservation:
    return _lock_queryset_if_possible(Reservation.objects.all()).get(pk=reservation_id)


def _naive_local(moment: datetime) -> datetime:
    """Booking windows are stored as local wall-clock dates and times."""
    if timezone.is_aware(moment):
        return timezone.make_naive(moment)
    return moment


def _occupying_slots(service_id: int, dates: DateRange, *, exclude_booking_id=None) -> list[BookedSlot]:
    """Slots of the service that may hold places around ``dates``."""

    bookings = ServiceBooking.objects.for_service(service_id).active().near_dates(dates)
    if not settings.AVAILABILITY_COUNT_CART_BOOKINGS:
        bookings = bookings.exclude(status=ReservationStatus.CART)
    if exclude_booking_id is not None:
        bookings = bookings.exclude(pk=exclude_booking_id)
    return [booking.slot for booking in bookings]


def _validate_window(dates: DateRange, times: TimeWindow) -> None:
    if times.wraps_midnight and not dates.is_multi_day:
        raise ValidationError(
            "End time must be after start time unless the booking spans several days."
        )


@retry_on_conflict
def create_reservation(user: "AbstractBaseUser", *, notes: str = "") -> Reservation:
    """Open an empty cart for ``user``."""

    reservation = Reservation.objects.create(user=user, notes=notes)
    logger.info("reservation_created", reservation_id=reservation.pk, user_id=user.pk)
    return reservation


@retry_on_conflict
def get_or_create_cart(user: "AbstractBaseUser") -> Reservation:
    """Return the user's most recent open cart, opening one if there is none."""

    with transaction.atomic():
        cart = (
            Reservation.objects.for_user(user)
            .filter(status=ReservationStatus.CART)
            .order_by("-created_at", "-pk")
            .first()
        )
        if cart is not None:
            return cart
        return create_reservation(user)


@retry_on_conflict
def add_service_booking(
    reservation_id: int,
    service_id: int,
    dates: DateRange,
    times: TimeWindow,
    quantity: int = 1,
    notes: str = "",
) -> ServiceBooking:
    """
    Add a line item to a cart after checking the service's capacity.

    The service row is locked before existing bookings are read, so two
    requests for the same service are serialized and cannot both pass the
    capacity check.
    """

    if quantity < 1:
        raise ValidationError("Quantity must be at least 1.")
    _validate_window(dates, times)

    with DjangoUnitOfWork() as uow:
        reservation = _locked_reservation(reservation_id)
        if not reservation.is_cart:
            raise InvalidStateTransition(
                "Services can only be added while the reservation is in the cart",
                current=reservation.status,
            )

        service = _lock_queryset_if_possible(
            Service.objects.active().select_related("provider")
        ).get(pk=service_id)

        requested = BookedSlot(dates=dates, times=times, quantity=quantity)
        decision = ensure_capacity(
            service.capacity, _occupying_slots(service.pk, dates), requested
        )

        booking = ServiceBooking.objects.create(
            reservation=reservation,
            service=service,
            provider=service.provider,
            start_date=dates.start_date,
            end_date=dates.end_date,
            start_time=times.start_time,
            end_time=times.end_time,
            quantity=quantity,
            unit_price=service.reference_price,
            status=reservation.status,
            client_notes=notes,
        )
        reservation.add_event(ServiceBookingAdded(
            aggregate_id=reservation.pk,
            reservation_id=reservation.pk,
            booking_id=booking.pk,
            service_id=service.pk,
            quantity=quantity,
        ))
        uow.collect_events(reservation)

    logger.info(
        "service_booking_added",
        reservation_id=reservation.pk,
        booking_id=booking.pk,
        service_id=service.pk,
        quantity=quantity,
        remaining=decision.remaining - quantity,
    )
    return booking


def _assign_code(reservation: Reservation, clock: Clock, rng: random.Random) -> None:
    """Store the first free code candidate; a unique-constraint race counts as a collision."""

    max_attempts = settings.RESERVATION_CODE_MAX_ATTEMPTS
    for candidate in code_candidates(clock.today(), rng, max_attempts):
        if Reservation.objects.filter(code=candidate.value).exists():
            logger.warning("reservation_code_collision", code=candidate.value)
            continue
        reservation.code = candidate.value
        try:
            with transaction.atomic():
                reservation.save(update_fields=["code", "status", "updated_at"])
        except IntegrityError:
            logger.warning("reservation_code_collision", code=candidate.value, on="insert")
            reservation.code = None
            continue
        return


def _move_bookings_in_lockstep(reservation: Reservation) -> list[int]:
    """Align line item statuses with the reservation; returns ids of items that changed."""

    changed = []
    for booking in reservation.service_bookings.all():
        new_status = lockstep_status(reservation.status, booking.status)
        if booking.status != new_status:
            booking.status = new_status
            booking.save(update_fields=["status", "updated_at"])
            changed.append(booking.pk)
    return changed


def _recheck_capacity_for_checkout(reservation: Reservation) -> None:
    """
    Check every active line item against the places already held.

    Services are locked in id order, the same rows ``add_service_booking``
    locks. When cart items do not hold places, items of this cart that were
    already checked count towards the others.
    """

    bookings = list(reservation.active_bookings.order_by("service_id", "pk"))
    accepted: dict[int, list[BookedSlot]] = {}
    for booking in bookings:
        service = _lock_queryset_if_possible(Service.objects.all()).get(pk=booking.service_id)
        existing = _occupying_slots(service.pk, booking.dates, exclude_booking_id=booking.pk)
        if not settings.AVAILABILITY_COUNT_CART_BOOKINGS:
            existing += accepted.get(service.pk, [])
        ensure_capacity(service.capacity, existing, booking.slot)
        accepted.setdefault(service.pk, []).append(booking.slot)


@retry_on_conflict
def checkout_reservation(
    reservation_id: int,
    *,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> Reservation:
    """Move a cart to PENDING, assigning its reservation code."""

    clock = clock or system_clock
    rng = rng or default_rng()

    with DjangoUnitOfWork() as uow:
        reservation = _locked_reservation(reservation_id)
        if reservation.status != ReservationStatus.CART:
            raise InvalidStateTransition(
                f"Reservation: cannot check out from {reservation.status}",
                current=reservation.status,
                target=ReservationStatus.PENDING,
            )
        if not reservation.active_bookings.exists():
            raise InvalidStateTransition(
                "Reservation: an empty cart cannot be checked out",
                current=reservation.status,
                target=ReservationStatus.PENDING,
            )

        _recheck_capacity_for_checkout(reservation)
        reservation.move_to(ReservationStatus.PENDING)
        _assign_code(reservation, clock, rng)
        _move_bookings_in_lockstep(reservation)

        reservation.add_event(ReservationCheckedOut(
            aggregate_id=reservation.pk,
            reservation_id=reservation.pk,
            user_id=reservation.user_id,
            code=reservation.code,
            total_amount=reservation.total_amount.amount,
        ))
        uow.collect_events(reservation)

    logger.info("reservation_checked_out", reservation_id=reservation.pk, code=reservation.code)
    return reservation


def _cancel(reservation: Reservation) -> list[int]:
    reservation.move_to(ReservationStatus.CANCELLED)
    reservation.save(update_fields=["status", "updated_at"])
    cancelled = _move_bookings_in_lockstep(reservation)
    reservation.add_event(ReservationCancelled(
        aggregate_id=reservation.pk,
        reservation_id=reservation.pk,
        code=reservation.code,
        cancelled_booking_ids=cancelled,
    ))
    return cancelled


def _ensure_can_complete(reservation: Reservation, clock: Clock) -> None:
    if not settings.RESERVATION_COMPLETION_REQUIRES_ELAPSED_SERVICES:
        return
    now = _naive_local(clock.now())
    pending = unfinished_slots((b.slot for b in reservation.active_bookings), now)
    if pending:
        raise InvalidStateTransition(
            f"Reservation: {len(pending)} service(s) have not taken place yet",
            current=reservation.status,
            target=ReservationStatus.COMPLETED,
        )


@retry_on_conflict
def transition_reservation(
    reservation_id: int,
    target_status: str,
    *,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> Reservation:
    """
    Move a reservation along its lifecycle.

    CART -> PENDING is delegated to checkout. Cancelling cascades to every
    line item in the same transaction. Line items follow the reservation.
    """

    target = ReservationStatus(target_status)
    if target == ReservationStatus.PENDING:
        return checkout_reservation(reservation_id, clock=clock, rng=rng)

    clock = clock or system_clock

    with DjangoUnitOfWork() as uow:
        reservation = _locked_reservation(reservation_id)

        if target == ReservationStatus.CANCELLED:
            _cancel(reservation)
        else:
            old_status = reservation.move_to(target)
            if target == ReservationStatus.CONFIRMED and not reservation.active_bookings.exists():
                raise InvalidStateTransition(
                    "Reservation: nothing left to confirm, every service was cancelled",
                    current=old_status,
                    target=target,
                )
            if target == ReservationStatus.COMPLETED:
                _ensure_can_complete(reservation, clock)
            reservation.save(update_fields=["status", "updated_at"])
            _move_bookings_in_lockstep(reservation)

        uow.collect_events(reservation)

    logger.info("reservation_transitioned", reservation_id=reservation.pk, status=reservation.status)
    return reservation


def cancel_reservation(reservation_id: int) -> Reservation:
    return transition_reservation(reservation_id, ReservationStatus.CANCELLED)


@retry_on_conflict
def cancel_service_booking(booking_id: int) -> ServiceBooking:
    """Cancel one line item; the reservation keeps its status."""

    with DjangoUnitOfWork() as uow:
        booking = ServiceBooking.objects.only("reservation_id").get(pk=booking_id)
        reservation = _locked_reservation(booking.reservation_id)
        booking = ServiceBooking.objects.get(pk=booking_id)

        if booking.status not in BOOKING_CANCELLABLE_FROM:
            raise InvalidStateTransition(
                f"Service booking: cannot cancel from {booking.status}",
                current=booking.status,
                target=ReservationStatus.CANCELLED,
            )
        booking.status = ReservationStatus.CANCELLED
        booking.save(update_fields=["status", "updated_at"])

        reservation.add_event(ServiceBookingCancelled(
            aggregate_id=reservation.pk,
            reservation_id=reservation.pk,
            booking_id=booking.pk,
            service_id=booking.service_id,
        ))
        uow.collect_events(reservation)

    logger.info("service_booking_cancelled", booking_id=booking.pk, reservation_id=reservation.pk)
    return booking


@retry_on_conflict
def remove_service_booking(booking_id: int) -> None:
    """Drop a line item from a cart. Checked-out items are cancelled instead."""

    with transaction.atomic():
        booking = ServiceBooking.objects.only("reservation_id").get(pk=booking_id)
        reservation = _locked_reservation(booking.reservation_id)
        if not reservation.is_cart:
            raise InvalidStateTransition(
                "Only items still in the cart can be removed",
                current=reservation.status,
            )
        ServiceBooking.objects.filter(pk=booking_id).delete()

    logger.info("service_booking_removed", booking_id=booking_id, reservation_id=reservation.pk)


@retry_on_conflict
def empty_cart(reservation_id: int) -> int:
    """Remove every line item from a cart. Returns how many were removed."""

    with transaction.atomic():
        reservation = _locked_reservation(reservation_id)
        if not reservation.is_cart:
            raise InvalidStateTransition(
                "Only a cart can be emptied",
                current=reservation.status,
            )
        removed, _ = reservation.service_bookings.all().delete()

    logger.info("cart_emptied", reservation_id=reservation_id, removed=removed)
    return removed


def update_provider_notes(booking_id: int, notes: str) -> ServiceBooking:
    booking = ServiceBooking.objects.get(pk=booking_id)
    booking.provider_notes = notes
    booking.save(update_fields=["provider_notes", "updated_at"])
    return booking


def remaining_capacity(
    service_id: int,
    dates: DateRange,
    times: TimeWindow,
    *,
    exclude_booking_id: int | None = None,
) -> AvailabilityDecision:
    """Capacity check for a zero-size request; ``remaining`` is what could still be booked."""

    _validate_window(dates, times)
    service = Service.objects.get(pk=service_id)
    requested = BookedSlot(dates=dates, times=times, quantity=0, booking_id=exclude_booking_id)
    return check_capacity(
        service.capacity,
        _occupying_slots(service.pk, dates, exclude_booking_id=exclude_booking_id),
        requested,
    )


def status_summary(*, user=None, provider_id: int | None = None) -> dict[str, int]:
    reservations = Reservation.objects.all()
    if user is not None:
        reservations = reservations.for_user(user)
    if provider_id is not None:
        reservations = reservations.for_provider(provider_id)
    return reservations.status_summary()


def find_reservations(
    *,
    user=None,
    provider_id: int | None = None,
    code_fragment: str = "",
    created_from=None,
    created_to=None,
):
    """Search reservations by a piece of their code and by creation time, newest first."""

    reservations = Reservation.objects.all()
    if user is not None:
        reservations = reservations.for_user(user)
    if provider_id is not None:
        reservations = reservations.for_provider(provider_id)
    if code_fragment.strip():
        reservations = reservations.with_code_like(code_fragment.strip().upper())
    if created_from is not None or created_to is not None:
        reservations = reservations.created_between(created_from, created_to)
    return reservations.order_by("-created_at", "-pk")
