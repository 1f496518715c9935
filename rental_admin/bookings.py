"""Booking engine: creation, pricing, status changes and the composite
customer + booking create.

Role checks are not made here. Callers consult the session context
(``SessionContext.require_admin``) before changing status, deleting, or
passing an explicit status to ``create``.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional

from rental_admin.customers import CustomerRegistry, UpsertResult
from rental_admin.db.database import execute
from rental_admin.db.models import (
    BOOKINGS_TABLE,
    Booking,
    BookingStatus,
    Renter,
    make_renter,
    renter_columns,
    to_decimal,
    utc_now,
)
from rental_admin.errors import NotFound, PersistenceError, RentalError, ValidationError
from rental_admin.pricing import can_transition, parse_status, quote, validate_period
from rental_admin.vehicles import VehicleRegistry

logger = logging.getLogger(__name__)


# vehicle, customer and user snapshots embedded by foreign key
BOOKING_SELECT = "*, car:car_id(*), customer:customer_id(*), user:user_id(*)"

UPDATABLE_FIELDS = (
    "car_id",
    "customer_id",
    "user_id",
    "start_date",
    "end_date",
    "total_amount",
    "status",
    "notes",
)


@dataclass
class BookingRequest:
    car_id: str
    start_date: Any
    end_date: Any
    renter: Optional[Renter] = None
    notes: Optional[str] = None
    # only privileged callers may set this; None means pending
    status: Optional[BookingStatus] = None


class BookingEngine:
    def __init__(self, client, vehicles: VehicleRegistry, customers: CustomerRegistry):
        self.client = client
        self.vehicles = vehicles
        self.customers = customers

    def _table(self):
        return self.client.table(BOOKINGS_TABLE)

    # ----------------- QUERIES ------------------------

    def list(
        self,
        customer_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[Any] = None,
    ) -> List[Booking]:
        query = self._table().select(BOOKING_SELECT)
        if customer_id:
            query = query.eq("customer_id", customer_id)
        if user_id:
            query = query.eq("user_id", user_id)
        if status is not None:
            query = query.eq("status", parse_status(status).value)
        rows = execute(query.order("created_at", desc=True), "fetch bookings")
        return [Booking.from_row(r) for r in rows]

    def get(self, booking_id: str) -> Booking:
        rows = execute(
            self._table().select(BOOKING_SELECT).eq("id", booking_id).limit(1),
            "fetch booking",
        )
        if not rows:
            raise NotFound(f"Booking {booking_id} not found.")
        return Booking.from_row(rows[0])

    # ----------------- CREATE ------------------------

    def create(self, request: BookingRequest) -> Booking:
        if not request.car_id:
            raise ValidationError("Please select a vehicle.")
        if request.renter is None:
            raise ValidationError("Please provide customer information.")
        start, end = validate_period(request.start_date, request.end_date)
        status = parse_status(request.status) if request.status is not None else BookingStatus.PENDING

        vehicle = self.vehicles.get(request.car_id)
        priced = quote(start, end, vehicle.daily_rate)

        row: Dict[str, Any] = {
            "car_id": vehicle.id,
            **renter_columns(request.renter),
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "total_amount": str(priced.total_amount),
            "status": status.value,
            "notes": (request.notes or "").strip() or None,
            "created_at": utc_now().isoformat(),
        }
        rows = execute(self._table().insert(row), "create booking")
        if not rows:
            raise PersistenceError("Failed to insert booking. No data returned.")

        logger.info(
            "Created booking %s for vehicle %s: %d day(s), total %s",
            rows[0].get("id"), vehicle.id, priced.days, priced.total_amount,
        )
        return Booking.from_row(rows[0])

    def create_with_customer(
        self,
        request: BookingRequest,
        customer_fields: Dict[str, Any],
        is_new_customer: bool = True,
    ) -> Booking:
        """Resolve the customer, then create the booking for them.

        The two writes are separate requests. If the booking insert fails,
        the customer write is compensated: a customer inserted here is
        deleted, a customer updated here gets its previous fields back.
        """
        # Validate the booking half first so a bad period never touches customers.
        if not request.car_id:
            raise ValidationError("Please select a vehicle.")
        validate_period(request.start_date, request.end_date)

        customer_id = customer_fields.get("id")
        upsert: Optional[UpsertResult] = None
        if is_new_customer or not customer_id:
            upsert = self.customers.create_or_update(customer_fields)
            customer_id = upsert.customer.id

        user_id = getattr(request.renter, "user_id", None)
        resolved = BookingRequest(
            car_id=request.car_id,
            renter=make_renter(customer_id, user_id),
            start_date=request.start_date,
            end_date=request.end_date,
            notes=request.notes,
            status=request.status,
        )
        try:
            return self.create(resolved)
        except Exception:
            if upsert is not None:
                self._compensate(upsert)
            raise

    def _compensate(self, upsert: UpsertResult) -> None:
        customer = upsert.customer
        try:
            if upsert.created:
                logger.warning("Booking failed; removing customer %s created for it", customer.id)
                self.customers.delete(customer.id)
            elif upsert.previous is not None:
                logger.warning("Booking failed; restoring previous details of customer %s", customer.id)
                self.customers.restore(upsert.previous)
        except RentalError as e:
            # the booking error is what the caller needs to see
            logger.error("Could not compensate customer %s: %s", customer.id, e.message)

    # ----------------- UPDATE ------------------------

    def update(self, booking_id: str, fields: Dict[str, Any]) -> Booking:
        """Partial update. total_amount is stored as given, never recomputed;
        use ``pricing.quote`` when dates or the vehicle change."""
        unknown = set(fields) - set(UPDATABLE_FIELDS) - {"id", "created_at"}
        if unknown:
            raise ValidationError(f"Unknown booking fields: {', '.join(sorted(unknown))}.")

        row: Dict[str, Any] = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        if not row:
            return self.get(booking_id)

        if "customer_id" in row or "user_id" in row:
            current = self.get(booking_id)
            merged = make_renter(
                row.get("customer_id", current.customer_id),
                row.get("user_id", current.user_id),
            )
            row.update(renter_columns(merged))

        if "start_date" in row or "end_date" in row:
            current = self.get(booking_id)
            start, end = validate_period(
                row.get("start_date", current.start_date),
                row.get("end_date", current.end_date),
            )
            if "start_date" in row:
                row["start_date"] = start.isoformat()
            if "end_date" in row:
                row["end_date"] = end.isoformat()

        if "total_amount" in row:
            amount = to_decimal(row["total_amount"], "total_amount")
            if amount < 0:
                raise ValidationError("total_amount must not be negative.")
            row["total_amount"] = str(amount)
        if "status" in row:
            row["status"] = parse_status(row["status"]).value
        if "car_id" in row and not row["car_id"]:
            raise ValidationError("A booking must reference a vehicle.")

        rows = execute(self._table().update(row).eq("id", booking_id), "update booking")
        if not rows:
            raise NotFound(f"Booking {booking_id} not found.")
        return Booking.from_row(rows[0])

    def change_status(self, booking_id: str, status: Any) -> Booking:
        target = parse_status(status)
        current = self.get(booking_id)
        if not can_transition(current.status, target):
            raise ValidationError(
                f"A {current.status.value} booking cannot be marked as {target.value}."
            )

        rows = execute(
            self._table().update({"status": target.value}).eq("id", booking_id),
            "update booking status",
        )
        if not rows:
            raise NotFound(f"Booking {booking_id} not found.")
        logger.info("Booking %s marked as %s", booking_id, target.value)
        return Booking.from_row(rows[0])

    def delete(self, booking_id: str) -> None:
        rows = execute(self._table().delete().eq("id", booking_id), "delete booking")
        if not rows:
            raise NotFound(f"Booking {booking_id} not found.")
        logger.info("Deleted booking %s", booking_id)
