"""Tests for the shared value objects."""

import random
from datetime import date, datetime, time
from decimal import Decimal

import pytest

from shared.domain.value_objects import DateRange, Money, ReservationCode, TimeWindow


class TestMoney:
    def test_add_and_multiply(self):
        total = Money(Decimal("12.50")) * 3 + Money(Decimal("2.50"))
        assert total == Money(Decimal("40.00"))

    def test_rejects_mixed_currencies(self):
        with pytest.raises(ValueError):
            Money(Decimal("1"), "PEN") + Money(Decimal("1"), "USD")

    def test_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            Money(Decimal("-0.01"))


class TestDateRange:
    def test_single_day_without_end(self):
        dates = DateRange(date(2025, 7, 1))
        assert dates.last_day == date(2025, 7, 1)
        assert not dates.is_multi_day
        assert len(dates) == 1

    def test_days_are_inclusive(self):
        dates = DateRange(date(2025, 7, 1), date(2025, 7, 3))
        assert list(dates.days()) == [date(2025, 7, 1), date(2025, 7, 2), date(2025, 7, 3)]

    def test_touching_ranges_overlap(self):
        first = DateRange(date(2025, 7, 1), date(2025, 7, 3))
        second = DateRange(date(2025, 7, 3), date(2025, 7, 5))
        assert first.overlaps_with(second)
        assert not first.overlaps_with(DateRange(date(2025, 7, 4)))

    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValueError):
            DateRange(date(2025, 7, 3), date(2025, 7, 1))


class TestTimeWindow:
    def test_daytime_duration(self):
        assert TimeWindow(time(9, 0), time(11, 30)).duration_minutes == 150

    def test_overnight_window_wraps(self):
        window = TimeWindow(time(22, 0), time(2, 0))
        assert window.wraps_midnight
        assert window.duration_minutes == 240
        start, end = window.span_on(date(2025, 7, 1))
        assert start == datetime(2025, 7, 1, 22, 0)
        assert end == datetime(2025, 7, 2, 2, 0)

    def test_empty_window_is_rejected(self):
        with pytest.raises(ValueError):
            TimeWindow(time(10, 0), time(10, 0))


class TestReservationCode:
    def test_generated_code_format(self):
        code = ReservationCode.generate(date(2025, 10, 19), random.Random(7))
        assert ReservationCode.PATTERN.match(code.value)
        assert code.value.endswith("251019")

    def test_same_seed_gives_same_code(self):
        issued_on = date(2025, 10, 19)
        assert ReservationCode.generate(issued_on, random.Random(1)) == ReservationCode.generate(
            issued_on, random.Random(1)
        )

    @pytest.mark.parametrize("value", ["AB1234", "ab1234251019", "ABC234251019", "AB12342510190"])
    def test_malformed_codes_are_rejected(self, value):
        with pytest.raises(ValueError):
            ReservationCode(value)
