from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from rental_admin.db.models import BookingStatus
from rental_admin.errors import ValidationError
from rental_admin.pricing import (
    STATUS_TRANSITIONS,
    can_transition,
    parse_status,
    quote,
    quote_total,
    rental_days,
    validate_period,
)


def test_three_day_booking_at_fifty_a_day():
    priced = quote(date(2024, 1, 1), date(2024, 1, 4), Decimal("50.00"))
    assert priced.days == 3
    assert priced.total_amount == Decimal("150.00")


def test_partial_days_round_up_not_past_the_span():
    start = datetime(2024, 1, 1, 10, 0)
    end = datetime(2024, 1, 3, 9, 0)
    assert rental_days(start, end) == 2


def test_same_instant_counts_as_one_day():
    moment = datetime(2024, 5, 5, 12, 0, tzinfo=timezone.utc)
    assert rental_days(moment, moment) == 1


def test_one_microsecond_over_a_day_bills_two():
    start = datetime(2024, 1, 1)
    assert rental_days(start, start + timedelta(days=1, microseconds=1)) == 2
    assert rental_days(start, start + timedelta(days=1)) == 1


def test_iso_strings_are_accepted():
    assert rental_days("2024-01-01T00:00:00+00:00", "2024-01-08T00:00:00+00:00") == 7


@pytest.mark.parametrize(
    "days,rate",
    [(1, "19.99"), (2, "0"), (5, "33.33"), (14, "120.50"), (30, "7")],
)
def test_total_is_days_times_rate(days, rate):
    start = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)
    end = start + timedelta(days=days)
    assert quote_total(start, end, rate) == (Decimal(rate) * days).quantize(Decimal("0.01"))


def test_negative_rate_is_rejected():
    with pytest.raises(ValidationError):
        quote(date(2024, 1, 1), date(2024, 1, 2), "-1")


def test_end_before_start_is_rejected():
    with pytest.raises(ValidationError):
        validate_period(date(2024, 1, 5), date(2024, 1, 4))


def test_missing_dates_are_rejected():
    with pytest.raises(ValidationError):
        validate_period(None, date(2024, 1, 4))
    with pytest.raises(ValidationError):
        validate_period(date(2024, 1, 4), "")


def test_naive_value_takes_the_other_values_timezone():
    assert rental_days(datetime(2024, 1, 1), datetime(2024, 1, 2, tzinfo=timezone.utc)) == 1
    start, end = validate_period(datetime(2024, 1, 1, tzinfo=timezone.utc), date(2024, 1, 3))
    assert end == datetime(2024, 1, 3, tzinfo=timezone.utc)
    assert rental_days(start, end) == 2


def test_parse_status():
    assert parse_status("Active") is BookingStatus.ACTIVE
    assert parse_status(BookingStatus.CANCELLED) is BookingStatus.CANCELLED
    with pytest.raises(ValidationError):
        parse_status("archived")


def test_every_status_may_move_to_every_other():
    assert set(STATUS_TRANSITIONS) == set(BookingStatus)
    for current in BookingStatus:
        for target in BookingStatus:
            assert can_transition(current, target)
