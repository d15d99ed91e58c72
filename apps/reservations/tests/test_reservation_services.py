"""Tests for the reservation workflows."""

from __future__ import annotations

import random
from datetime import date, datetime, time
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.catalog.models import Provider, Service
from apps.reservations import services
from apps.reservations.domain.events import ReservationCancelled, ReservationCheckedOut
from apps.reservations.models import Reservation, ServiceBooking
from shared.application.message_bus import message_bus
from shared.domain.clock import FixedClock
from shared.domain.exceptions import (
    CapacityExceeded,
    CodeGenerationExhausted,
    InvalidStateTransition,
)
from shared.domain.value_objects import DateRange, ReservationCode, TimeWindow

TOUR_DAY = date(2030, 7, 1)
MORNING = TimeWindow(time(9, 0), time(12, 0))


def local(*args) -> datetime:
    return timezone.make_aware(datetime(*args))


class ScriptedRandom:
    """Stands in for random.Random, returning characters from a fixed script."""

    def __init__(self, script: str):
        self._script = list(script)

    def choice(self, seq):
        return self._script.pop(0)


class ReservationTestMixin:
    def setUp(self) -> None:
        user_model = get_user_model()
        self.tourist = user_model.objects.create_user(username="tourist", password="pass")
        self.other_tourist = user_model.objects.create_user(username="other", password="pass")
        self.provider = Provider.objects.create(name="Lake Tours")
        self.kayak = Service.objects.create(
            provider=self.provider,
            name="Kayak trip",
            capacity=6,
            reference_price=Decimal("45.00"),
        )
        self.weaving = Service.objects.create(
            provider=self.provider,
            name="Weaving workshop",
            capacity=10,
            reference_price=Decimal("20.00"),
        )

    def _cart_with(self, user, service, quantity, *, dates=None, times=MORNING):
        reservation = services.create_reservation(user)
        services.add_service_booking(
            reservation.pk, service.pk, dates or DateRange(TOUR_DAY), times, quantity
        )
        return reservation

    def _checked_out(self, user=None, **kwargs):
        reservation = self._cart_with(user or self.tourist, self.kayak, 2, **kwargs)
        return services.checkout_reservation(
            reservation.pk, clock=FixedClock(local(2030, 6, 1, 10, 0))
        )


class AddServiceBookingTests(ReservationTestMixin, TestCase):
    def test_new_reservation_is_an_empty_cart(self) -> None:
        reservation = services.create_reservation(self.tourist)

        self.assertEqual(reservation.status, Reservation.Status.CART)
        self.assertIsNone(reservation.code)
        self.assertFalse(reservation.service_bookings.exists())

    def test_booking_copies_provider_price_and_duration(self) -> None:
        reservation = services.create_reservation(self.tourist)

        booking = services.add_service_booking(
            reservation.pk, self.kayak.pk, DateRange(TOUR_DAY), MORNING, 2, "Vegetarian lunch"
        )

        self.assertEqual(booking.provider, self.provider)
        self.assertEqual(booking.unit_price, Decimal("45.00"))
        self.assertEqual(booking.duration_minutes, 180)
        self.assertEqual(booking.status, ServiceBooking.Status.CART)
        self.assertEqual(booking.client_notes, "Vegetarian lunch")
        self.assertEqual(reservation.total_amount.amount, Decimal("90.00"))

    def test_capacity_six_accepts_only_one_party_of_four(self) -> None:
        self._cart_with(self.tourist, self.kayak, 4)
        second = services.create_reservation(self.other_tourist)

        with self.assertRaises(CapacityExceeded):
            services.add_service_booking(second.pk, self.kayak.pk, DateRange(TOUR_DAY), MORNING, 4)

        self.assertFalse(second.service_bookings.exists())
        services.add_service_booking(second.pk, self.kayak.pk, DateRange(TOUR_DAY), MORNING, 2)
        self.assertEqual(ServiceBooking.objects.filter(service=self.kayak).count(), 2)

    def test_other_services_and_windows_do_not_compete(self) -> None:
        self._cart_with(self.tourist, self.kayak, 6)

        self._cart_with(self.other_tourist, self.weaving, 10)
        self._cart_with(
            self.other_tourist, self.kayak, 6, times=TimeWindow(time(12, 0), time(15, 0))
        )

    def test_cancelled_booking_releases_places(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 6)
        booking = reservation.service_bookings.get()
        services.cancel_service_booking(booking.pk)

        self._cart_with(self.other_tourist, self.kayak, 6)

    @override_settings(AVAILABILITY_COUNT_CART_BOOKINGS=False)
    def test_cart_items_can_be_ignored_by_policy(self) -> None:
        self._cart_with(self.tourist, self.kayak, 6)

        self._cart_with(self.other_tourist, self.kayak, 6)

    @override_settings(AVAILABILITY_COUNT_CART_BOOKINGS=False)
    def test_checkout_claims_places_when_carts_do_not_hold_them(self) -> None:
        first = self._cart_with(self.tourist, self.kayak, 4)
        second = self._cart_with(self.other_tourist, self.kayak, 4)

        services.checkout_reservation(first.pk)
        with self.assertRaises(CapacityExceeded):
            services.checkout_reservation(second.pk)

        second.refresh_from_db()
        self.assertEqual(second.status, Reservation.Status.CART)
        self.assertIsNone(second.code)
        booked = sum(
            ServiceBooking.objects.filter(service=self.kayak)
            .exclude(status__in=[ServiceBooking.Status.CART, ServiceBooking.Status.CANCELLED])
            .values_list("quantity", flat=True)
        )
        self.assertLessEqual(booked, self.kayak.capacity)

    @override_settings(AVAILABILITY_COUNT_CART_BOOKINGS=False)
    def test_checkout_counts_items_of_the_same_cart(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 4)
        services.add_service_booking(reservation.pk, self.kayak.pk, DateRange(TOUR_DAY), MORNING, 4)

        with self.assertRaises(CapacityExceeded):
            services.checkout_reservation(reservation.pk)

    def test_overnight_window_needs_several_days(self) -> None:
        reservation = services.create_reservation(self.tourist)
        overnight = TimeWindow(time(22, 0), time(2, 0))

        with self.assertRaises(ValidationError):
            services.add_service_booking(reservation.pk, self.kayak.pk, DateRange(TOUR_DAY), overnight, 1)

        booking = services.add_service_booking(
            reservation.pk,
            self.kayak.pk,
            DateRange(TOUR_DAY, date(2030, 7, 2)),
            overnight,
            1,
        )
        self.assertEqual(booking.duration_minutes, 240)

    def test_services_are_only_added_to_carts(self) -> None:
        reservation = self._checked_out()

        with self.assertRaises(InvalidStateTransition):
            services.add_service_booking(reservation.pk, self.weaving.pk, DateRange(TOUR_DAY), MORNING, 1)

    def test_inactive_service_cannot_be_booked(self) -> None:
        self.kayak.is_active = False
        self.kayak.save()
        reservation = services.create_reservation(self.tourist)

        with self.assertRaises(Service.DoesNotExist):
            services.add_service_booking(reservation.pk, self.kayak.pk, DateRange(TOUR_DAY), MORNING, 1)

    def test_remaining_capacity_reports_free_places(self) -> None:
        self._cart_with(self.tourist, self.kayak, 4)

        decision = services.remaining_capacity(self.kayak.pk, DateRange(TOUR_DAY), MORNING)

        self.assertEqual(decision.remaining, 2)
        self.assertTrue(decision.accepted)


class CheckoutTests(ReservationTestMixin, TestCase):
    def test_checkout_assigns_code_and_moves_bookings_in_lockstep(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 2)
        services.add_service_booking(reservation.pk, self.weaving.pk, DateRange(TOUR_DAY), MORNING, 3)

        reservation = services.checkout_reservation(
            reservation.pk, clock=FixedClock(local(2030, 6, 1, 10, 0))
        )

        self.assertEqual(reservation.status, Reservation.Status.PENDING)
        self.assertRegex(reservation.code, r"^[A-Z]{2}[0-9]{4}[0-9]{6}$")
        self.assertTrue(reservation.code.endswith("300601"))
        self.assertEqual(
            set(reservation.service_bookings.values_list("status", flat=True)),
            {ServiceBooking.Status.PENDING},
        )

    def test_checkout_retries_on_collision(self) -> None:
        taken = Reservation.objects.create(
            user=self.other_tourist, code="AA0000300601", status=Reservation.Status.PENDING
        )
        reservation = self._cart_with(self.tourist, self.kayak, 1)

        reservation = services.checkout_reservation(
            reservation.pk,
            clock=FixedClock(local(2030, 6, 1, 10, 0)),
            rng=ScriptedRandom("AA0000BB1111"),
        )

        self.assertEqual(reservation.code, "BB1111300601")
        self.assertNotEqual(reservation.code, taken.code)

    @override_settings(RESERVATION_CODE_MAX_ATTEMPTS=3)
    def test_exhausted_code_space_is_fatal_and_changes_nothing(self) -> None:
        Reservation.objects.create(
            user=self.other_tourist, code="ZZ9999300601", status=Reservation.Status.PENDING
        )
        reservation = self._cart_with(self.tourist, self.kayak, 1)

        with self.assertRaises(CodeGenerationExhausted):
            services.checkout_reservation(
                reservation.pk,
                clock=FixedClock(local(2030, 6, 1, 10, 0)),
                rng=ScriptedRandom("ZZ9999" * 3),
            )

        reservation.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.Status.CART)
        self.assertIsNone(reservation.code)
        self.assertEqual(reservation.service_bookings.get().status, ServiceBooking.Status.CART)

    def test_empty_cart_cannot_be_checked_out(self) -> None:
        reservation = services.create_reservation(self.tourist)

        with self.assertRaises(InvalidStateTransition):
            services.checkout_reservation(reservation.pk)

    def test_checkout_twice_is_rejected(self) -> None:
        reservation = self._checked_out()

        with self.assertRaises(InvalidStateTransition):
            services.checkout_reservation(reservation.pk)

    def test_transition_to_pending_goes_through_checkout(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 1)

        reservation = services.transition_reservation(reservation.pk, "pending")

        self.assertIsNotNone(reservation.code)

    def test_checkout_event_is_published_after_commit(self) -> None:
        received = []
        message_bus.register_event_handler(ReservationCheckedOut, received.append)
        self.addCleanup(message_bus.unregister_event_handler, ReservationCheckedOut, received.append)
        reservation = self._cart_with(self.tourist, self.kayak, 2)

        with self.captureOnCommitCallbacks(execute=True):
            reservation = services.checkout_reservation(reservation.pk)

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].code, reservation.code)
        self.assertEqual(received[0].total_amount, Decimal("90.00"))


class TransitionTests(ReservationTestMixin, TestCase):
    def test_confirm_moves_bookings_along(self) -> None:
        reservation = self._checked_out()

        reservation = services.transition_reservation(reservation.pk, "confirmed")

        self.assertEqual(reservation.status, Reservation.Status.CONFIRMED)
        self.assertEqual(reservation.service_bookings.get().status, ServiceBooking.Status.CONFIRMED)

    def test_cart_cannot_skip_to_confirmed(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 1)

        with self.assertRaises(InvalidStateTransition):
            services.transition_reservation(reservation.pk, "confirmed")

        reservation.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.Status.CART)

    def test_nothing_to_confirm_when_every_booking_was_cancelled(self) -> None:
        reservation = self._checked_out()
        services.cancel_service_booking(reservation.service_bookings.get().pk)

        with self.assertRaises(InvalidStateTransition):
            services.transition_reservation(reservation.pk, "confirmed")

        reservation.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.Status.PENDING)

    def test_completion_waits_for_the_services_to_end(self) -> None:
        reservation = self._checked_out()
        services.transition_reservation(reservation.pk, "confirmed")

        with self.assertRaises(InvalidStateTransition):
            services.transition_reservation(
                reservation.pk, "completed", clock=FixedClock(local(2030, 7, 1, 11, 0))
            )

        reservation = services.transition_reservation(
            reservation.pk, "completed", clock=FixedClock(local(2030, 7, 1, 12, 0))
        )
        self.assertEqual(reservation.status, Reservation.Status.COMPLETED)
        self.assertEqual(reservation.service_bookings.get().status, ServiceBooking.Status.COMPLETED)

    @override_settings(RESERVATION_COMPLETION_REQUIRES_ELAPSED_SERVICES=False)
    def test_completion_time_check_can_be_left_to_callers(self) -> None:
        reservation = self._checked_out()
        services.transition_reservation(reservation.pk, "confirmed")

        reservation = services.transition_reservation(
            reservation.pk, "completed", clock=FixedClock(local(2030, 6, 1, 10, 0))
        )

        self.assertEqual(reservation.status, Reservation.Status.COMPLETED)

    def test_completed_reservation_cannot_be_cancelled(self) -> None:
        reservation = self._checked_out()
        services.transition_reservation(reservation.pk, "confirmed")
        services.transition_reservation(
            reservation.pk, "completed", clock=FixedClock(local(2030, 8, 1, 0, 0))
        )

        with self.assertRaises(InvalidStateTransition):
            services.cancel_reservation(reservation.pk)


class CancellationTests(ReservationTestMixin, TestCase):
    def test_cancelling_cascades_to_every_booking(self) -> None:
        reservation = self._checked_out()
        services.transition_reservation(reservation.pk, "confirmed")
        received = []
        message_bus.register_event_handler(ReservationCancelled, received.append)
        self.addCleanup(message_bus.unregister_event_handler, ReservationCancelled, received.append)

        with self.captureOnCommitCallbacks(execute=True):
            reservation = services.cancel_reservation(reservation.pk)

        self.assertEqual(reservation.status, Reservation.Status.CANCELLED)
        self.assertFalse(reservation.service_bookings.exclude(status=ServiceBooking.Status.CANCELLED).exists())
        self.assertEqual(len(received), 1)
        self.assertEqual(len(received[0].cancelled_booking_ids), 1)

    def test_cancelling_one_booking_keeps_the_reservation(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 1)
        services.add_service_booking(reservation.pk, self.weaving.pk, DateRange(TOUR_DAY), MORNING, 1)
        reservation = services.checkout_reservation(reservation.pk)
        kayak_booking = reservation.service_bookings.get(service=self.kayak)

        services.cancel_service_booking(kayak_booking.pk)

        reservation.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.Status.PENDING)
        self.assertEqual(reservation.active_bookings.count(), 1)
        self.assertEqual(reservation.total_amount.amount, Decimal("20.00"))

    def test_cancelled_booking_stays_cancelled_on_confirmation(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 1)
        services.add_service_booking(reservation.pk, self.weaving.pk, DateRange(TOUR_DAY), MORNING, 1)
        reservation = services.checkout_reservation(reservation.pk)
        services.cancel_service_booking(reservation.service_bookings.get(service=self.kayak).pk)

        services.transition_reservation(reservation.pk, "confirmed")

        statuses = dict(reservation.service_bookings.values_list("service_id", "status"))
        self.assertEqual(statuses[self.kayak.pk], ServiceBooking.Status.CANCELLED)
        self.assertEqual(statuses[self.weaving.pk], ServiceBooking.Status.CONFIRMED)

    def test_abandoned_cart_is_cancelled_without_a_code(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 1)

        reservation = services.cancel_reservation(reservation.pk)

        self.assertEqual(reservation.status, Reservation.Status.CANCELLED)
        self.assertIsNone(reservation.code)


class CartMaintenanceTests(ReservationTestMixin, TestCase):
    def test_get_or_create_cart_reuses_open_cart(self) -> None:
        first = services.get_or_create_cart(self.tourist)
        again = services.get_or_create_cart(self.tourist)

        self.assertEqual(first.pk, again.pk)
        services.add_service_booking(first.pk, self.kayak.pk, DateRange(TOUR_DAY), MORNING, 1)
        services.checkout_reservation(first.pk)
        self.assertNotEqual(services.get_or_create_cart(self.tourist).pk, first.pk)

    def test_remove_and_empty_only_touch_carts(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 1)
        services.add_service_booking(reservation.pk, self.weaving.pk, DateRange(TOUR_DAY), MORNING, 1)

        services.remove_service_booking(reservation.service_bookings.get(service=self.kayak).pk)
        self.assertEqual(reservation.service_bookings.count(), 1)

        self.assertEqual(services.empty_cart(reservation.pk), 1)
        self.assertFalse(reservation.service_bookings.exists())

        checked_out = self._checked_out()
        with self.assertRaises(InvalidStateTransition):
            services.remove_service_booking(checked_out.service_bookings.get().pk)
        with self.assertRaises(InvalidStateTransition):
            services.empty_cart(checked_out.pk)

    def test_provider_notes_are_saved(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 1)
        booking = reservation.service_bookings.get()

        services.update_provider_notes(booking.pk, "Meet at the pier")

        booking.refresh_from_db()
        self.assertEqual(booking.provider_notes, "Meet at the pier")

    def test_status_summary_counts_every_status(self) -> None:
        services.create_reservation(self.tourist)
        self._checked_out()

        summary = services.status_summary(user=self.tourist)

        self.assertEqual(summary["cart"], 1)
        self.assertEqual(summary["pending"], 1)
        self.assertEqual(summary["confirmed"], 0)
        self.assertEqual(summary["total"], 2)
        self.assertEqual(services.status_summary(provider_id=self.provider.pk)["total"], 1)

    def test_find_reservations_by_code_fragment(self) -> None:
        reservation = self._cart_with(self.tourist, self.kayak, 1)
        reservation = services.checkout_reservation(
            reservation.pk,
            clock=FixedClock(local(2030, 6, 1, 10, 0)),
            rng=ScriptedRandom("QX4821"),
        )
        services.create_reservation(self.other_tourist)

        found = list(services.find_reservations(code_fragment=" qx48 "))

        self.assertEqual(found, [reservation])
        self.assertEqual(list(services.find_reservations(code_fragment="ZZ")), [])
        self.assertEqual(services.find_reservations(user=self.tourist).count(), 1)

    def test_find_reservations_by_creation_window(self) -> None:
        old = services.create_reservation(self.tourist)
        Reservation.objects.filter(pk=old.pk).update(created_at=local(2020, 1, 15, 8, 0))
        recent = services.create_reservation(self.tourist)

        since_2021 = services.find_reservations(created_from=local(2021, 1, 1, 0, 0))
        before_2021 = services.find_reservations(created_to=local(2020, 12, 31, 23, 59))
        in_2020 = services.find_reservations(
            created_from=local(2020, 1, 1, 0, 0), created_to=local(2020, 12, 31, 23, 59)
        )

        self.assertEqual(list(since_2021), [recent])
        self.assertEqual(list(before_2021), [old])
        self.assertEqual(list(in_2020), [old])


class ReservationCodeIntegrityTests(ReservationTestMixin, TestCase):
    def test_code_never_changes_once_assigned(self) -> None:
        reservation = Reservation.objects.get(pk=self._checked_out().pk)
        reservation.code = str(ReservationCode.generate(TOUR_DAY, random.Random(3)))

        with self.assertRaises(ValidationError):
            reservation.save()

    def test_reservation_with_code_is_never_deleted(self) -> None:
        reservation = self._checked_out()

        with self.assertRaises(ValidationError):
            reservation.delete()

        cart = services.create_reservation(self.tourist)
        cart.delete()
        self.assertFalse(Reservation.objects.filter(pk=cart.pk).exists())

    def test_only_carts_may_lack_a_code(self) -> None:
        with self.assertRaises(ValidationError):
            Reservation.objects.create(user=self.tourist, status=Reservation.Status.PENDING)
