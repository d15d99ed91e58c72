"""Concurrent enrollments against a database that serializes writers."""

from __future__ import annotations

import threading
from datetime import date, time
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TransactionTestCase

from apps.plans import services
from apps.plans.domain.itinerary import ItineraryDay
from apps.plans.models import Plan, PlanEnrollment
from shared.domain.exceptions import CapacityExceeded
from shared.domain.value_objects import DateRange

START = DateRange(date(2030, 9, 5))


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


class ConcurrentEnrollmentTests(TransactionTestCase):
    """Two groups of four race for a plan with six places."""

    def setUp(self) -> None:
        if connection.vendor == "sqlite" and connection.is_in_memory_db():
            self.skipTest("threads need a shared, file-backed database")
        user_model = get_user_model()
        organizer = user_model.objects.create_user(username="organizer", password="pass")
        self.groups = [
            user_model.objects.create_user(username=f"group{i}", password="pass") for i in range(2)
        ]
        days = [
            ItineraryDay(day_number=n, title=f"Day {n}", start_time=time(8, 0), end_time=time(17, 0))
            for n in (1, 2)
        ]
        self.plan = services.create_plan(
            services.PlanSpec(
                name="Ausangate loop",
                creator=organizer,
                capacity=6,
                duration_days=2,
                total_price=Decimal("420.00"),
                status=Plan.Status.ACTIVE,
                is_public=True,
            ),
            days,
        )

    def _places_held(self) -> int:
        enrollments = PlanEnrollment.objects.filter(plan=self.plan).holding_places()
        return sum(enrollments.values_list("participant_count", flat=True))

    def test_exactly_one_group_enrolls(self) -> None:
        outcomes = run_concurrently(*[
            lambda user=user: services.enroll(user, self.plan.pk, START, 4)
            for user in self.groups
        ])

        self.assertEqual(sum(isinstance(o, PlanEnrollment) for o in outcomes), 1)
        self.assertEqual(sum(isinstance(o, CapacityExceeded) for o in outcomes), 1)
        self.assertEqual(self._places_held(), 4)

    def test_confirmation_and_new_enrollment_share_the_plan_lock(self) -> None:
        first_group, second_group = self.groups
        pending = services.enroll(first_group, self.plan.pk, START, 4)

        outcomes = run_concurrently(
            lambda: services.transition_enrollment(pending.pk, PlanEnrollment.Status.CONFIRMED),
            lambda: services.enroll(second_group, self.plan.pk, START, 4),
        )

        confirmed, late = outcomes
        self.assertIsInstance(confirmed, PlanEnrollment)
        self.assertEqual(confirmed.status, PlanEnrollment.Status.CONFIRMED)
        self.assertIsInstance(late, CapacityExceeded)
        self.assertEqual(self._places_held(), 4)
