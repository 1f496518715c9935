from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, FrozenSet, Tuple

from rental_admin.db.models import BookingStatus, parse_timestamp, to_decimal
from rental_admin.errors import ValidationError


ONE_DAY = timedelta(days=1)
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class BookingQuote:
    days: int
    daily_rate: Decimal
    total_amount: Decimal


# ----------------- PERIOD ------------------------

def _as_period(start: Any, end: Any) -> Tuple[datetime, datetime]:
    if start in (None, ""):
        raise ValidationError("start_date is required.")
    if end in (None, ""):
        raise ValidationError("end_date is required.")
    start_dt = parse_timestamp(start, "start_date")
    end_dt = parse_timestamp(end, "end_date")
    # a value without a timezone is read in the other value's timezone
    if start_dt.tzinfo is None and end_dt.tzinfo is not None:
        start_dt = start_dt.replace(tzinfo=end_dt.tzinfo)
    elif end_dt.tzinfo is None and start_dt.tzinfo is not None:
        end_dt = end_dt.replace(tzinfo=start_dt.tzinfo)
    return start_dt, end_dt


def validate_period(start: Any, end: Any) -> Tuple[datetime, datetime]:
    start_dt, end_dt = _as_period(start, end)
    if end_dt < start_dt:
        raise ValidationError("end_date must be on or after start_date.")
    return start_dt, end_dt


def rental_days(start: Any, end: Any) -> int:
    """Whole days billed for a period: any part of a day counts, minimum one."""
    start_dt, end_dt = _as_period(start, end)
    span = abs(end_dt - start_dt)
    # integer microseconds so the ceiling never suffers float rounding
    micros = span // timedelta(microseconds=1)
    per_day = ONE_DAY // timedelta(microseconds=1)
    days = -(-micros // per_day)
    return days or 1


def quote_total(start: Any, end: Any, daily_rate: Any) -> Decimal:
    return quote(start, end, daily_rate).total_amount


def quote(start: Any, end: Any, daily_rate: Any) -> BookingQuote:
    rate = to_decimal(daily_rate, "daily_rate")
    if rate < 0:
        raise ValidationError("daily_rate must not be negative.")
    days = rental_days(start, end)
    total = (rate * days).quantize(CENTS, rounding=ROUND_HALF_UP)
    return BookingQuote(days=days, daily_rate=rate, total_amount=total)


# ----------------- STATUS ------------------------

_ALL_STATUSES = frozenset(BookingStatus)

# Today every status may move to every other one. Tighten an entry here
# (e.g. make CANCELLED terminal) without touching callers.
STATUS_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: _ALL_STATUSES,
    BookingStatus.ACTIVE: _ALL_STATUSES,
    BookingStatus.COMPLETED: _ALL_STATUSES,
    BookingStatus.CANCELLED: _ALL_STATUSES,
}


def parse_status(value: Any) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in BookingStatus)
        raise ValidationError(f"Invalid status {value!r}. Use one of: {allowed}.") from None


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in STATUS_TRANSITIONS.get(current, frozenset())
