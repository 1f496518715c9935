from datetime import date, datetime, timezone
from decimal import Decimal

from rental_admin.admin_dashboard import FRAME_COLUMNS, booking_edit_fields, booking_stats, bookings_frame
from rental_admin.bookings import BookingRequest
from rental_admin.db.models import CustomerRenter


def _book(engine, car, customer, status, end=date(2024, 1, 4)):
    return engine.create(
        BookingRequest(
            car_id=car.id,
            renter=CustomerRenter(customer.id),
            start_date=date(2024, 1, 1),
            end_date=end,
            status=status,
        )
    )


def test_stats_count_every_status_and_skip_cancelled_revenue(engine, car, customers, customer_fields):
    customer = customers.create(customer_fields)
    _book(engine, car, customer, "active")
    _book(engine, car, customer, "completed", end=date(2024, 1, 2))
    _book(engine, car, customer, "cancelled")

    stats = booking_stats(engine.list())
    assert stats.total == 3
    assert stats.by_status == {"pending": 0, "active": 1, "completed": 1, "cancelled": 1}
    assert stats.revenue == Decimal("200.00")


def test_empty_stats():
    stats = booking_stats([])
    assert stats.total == 0
    assert set(stats.by_status.values()) == {0}
    assert stats.revenue == 0


def test_frame_flattens_joins(engine, car, customers, customer_fields):
    customer = customers.create(customer_fields)
    _book(engine, car, customer, "pending")

    frame = bookings_frame(engine.list())
    assert list(frame.columns) == FRAME_COLUMNS
    row = frame.iloc[0]
    assert row["vehicle"] == "Toyota Corolla"
    assert row["renter"] == "Ada Lovelace"
    assert row["days"] == 3
    assert row["total_amount"] == 150.0


def test_empty_frame_keeps_columns():
    assert list(bookings_frame([]).columns) == FRAME_COLUMNS


def test_edit_fields_move_booking_to_another_vehicle(engine, car, vehicles, customers, customer_fields):
    van = vehicles.create(
        {"make": "Ford", "model": "Transit", "year": 2021, "license_plate": "VN-1", "daily_rate": "80.00"}
    )
    customer = customers.create(customer_fields)
    booking = engine.create(
        BookingRequest(
            car_id=car.id,
            renter=CustomerRenter(customer.id),
            start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            end_date=datetime(2024, 1, 4, tzinfo=timezone.utc),
        )
    )

    fields = booking_edit_fields(van.id, date(2024, 1, 2), date(2024, 1, 7), "  late return ", 375.0)
    updated = engine.update(booking.id, fields)

    assert updated.car_id == van.id
    assert engine.get(booking.id).car.label == van.label
    assert updated.start_date == datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert updated.end_date == datetime(2024, 1, 7, tzinfo=timezone.utc)
    assert updated.notes == "late return"
    assert updated.total_amount == Decimal("375.00")


def test_edit_fields_clear_blank_notes():
    fields = booking_edit_fields("cars-1", date(2024, 1, 1), date(2024, 1, 2), "   ", 50)
    assert fields["notes"] is None
    assert fields["total_amount"] == "50.00"
