"""Concurrent reservation requests against a database that serializes writers."""

from __future__ import annotations

import threading
from datetime import date, datetime, time
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TransactionTestCase, override_settings
from django.utils import timezone

from apps.catalog.models import Provider, Service
from apps.reservations import services
from apps.reservations.models import Reservation, ServiceBooking
from shared.domain.clock import FixedClock
from shared.domain.exceptions import CapacityExceeded
from shared.domain.value_objects import DateRange, TimeWindow

TOUR_DAY = DateRange(date(2030, 7, 1))
HIKE = TimeWindow(time(9, 0), time(13, 0))
CHECKOUT_CLOCK = FixedClock(timezone.make_aware(datetime(2030, 6, 1, 10, 0)))


class RepeatingRandom:
    """Replays the same characters, so every caller draws the same codes."""

    def __init__(self, script: str):
        self._script = list(script)

    def choice(self, seq):
        return self._script.pop(0)


def run_concurrently(*calls) -> list:
    """Start every call at once; returns each call's result or raised exception."""

    barrier = threading.Barrier(len(calls))
    outcomes: list = [None] * len(calls)

    def worker(index, call) -> None:
        try:
            barrier.wait()
            outcomes[index] = call()
        except Exception as exc:  # noqa: BLE001 - reported back to the test
            outcomes[index] = exc
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


class ConcurrentReservationTests(TransactionTestCase):
    """Two parties of four race for a service with six places."""

    def setUp(self) -> None:
        if connection.vendor == "sqlite" and connection.is_in_memory_db():
            self.skipTest("threads need a shared, file-backed database")
        user_model = get_user_model()
        provider = Provider.objects.create(name="Canyon Guides")
        self.service = Service.objects.create(
            provider=provider, name="Canyon hike", capacity=6, reference_price=Decimal("50.00")
        )
        self.carts = [
            services.create_reservation(user_model.objects.create_user(username=f"racer{i}", password="pass"))
            for i in range(2)
        ]

    def _booked_quantity(self, *statuses) -> int:
        bookings = ServiceBooking.objects.filter(service=self.service)
        if statuses:
            bookings = bookings.filter(status__in=statuses)
        return sum(bookings.values_list("quantity", flat=True))

    def test_exactly_one_party_gets_the_places(self) -> None:
        outcomes = run_concurrently(*[
            lambda cart=cart: services.add_service_booking(cart.pk, self.service.pk, TOUR_DAY, HIKE, 4)
            for cart in self.carts
        ])

        self.assertEqual(sum(isinstance(o, ServiceBooking) for o in outcomes), 1)
        self.assertEqual(sum(isinstance(o, CapacityExceeded) for o in outcomes), 1)
        self.assertEqual(self._booked_quantity(), 4)

    @override_settings(AVAILABILITY_COUNT_CART_BOOKINGS=False)
    def test_exactly_one_cart_checks_out_when_carts_hold_nothing(self) -> None:
        for cart in self.carts:
            services.add_service_booking(cart.pk, self.service.pk, TOUR_DAY, HIKE, 4)

        outcomes = run_concurrently(*[
            lambda cart=cart: services.checkout_reservation(cart.pk, clock=CHECKOUT_CLOCK)
            for cart in self.carts
        ])

        self.assertEqual(sum(isinstance(o, Reservation) for o in outcomes), 1)
        self.assertEqual(sum(isinstance(o, CapacityExceeded) for o in outcomes), 1)
        self.assertEqual(self._booked_quantity(ServiceBooking.Status.PENDING), 4)
        self.assertEqual(Reservation.objects.filter(status=Reservation.Status.CART).count(), 1)

    def test_simultaneous_checkouts_never_share_a_code(self) -> None:
        for cart in self.carts:
            services.add_service_booking(cart.pk, self.service.pk, TOUR_DAY, HIKE, 2)

        outcomes = run_concurrently(*[
            lambda cart=cart: services.checkout_reservation(
                cart.pk, clock=CHECKOUT_CLOCK, rng=RepeatingRandom("AA0000BB1111")
            )
            for cart in self.carts
        ])

        self.assertTrue(all(isinstance(o, Reservation) for o in outcomes), outcomes)
        codes = set(Reservation.objects.values_list("code", flat=True))
        self.assertEqual(codes, {"AA0000300601", "BB1111300601"})
