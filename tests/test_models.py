from datetime import date, datetime, timedelta, timezone

from rental_admin.db.models import at_midnight_utc, parse_timestamp


def test_parse_timestamp_with_trimmed_fraction():
    # postgres drops trailing zeros from fractional seconds
    parsed = parse_timestamp("2024-01-01T10:00:00.12345+00:00")
    assert parsed == datetime(2024, 1, 1, 10, 0, 0, 123450, tzinfo=timezone.utc)


def test_parse_timestamp_with_offset():
    parsed = parse_timestamp("2024-06-01 08:00:00+02:00")
    assert parsed.utcoffset() == timedelta(hours=2)


def test_plain_date_is_naive_midnight():
    assert parse_timestamp(date(2024, 1, 2)) == datetime(2024, 1, 2)


def test_at_midnight_utc():
    assert at_midnight_utc(date(2024, 1, 2)) == datetime(2024, 1, 2, tzinfo=timezone.utc)
