from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Any, Dict, List, Optional, Tuple

from email_validator import validate_email as _validate_email, EmailNotValidError

from rental_admin.db.database import execute
from rental_admin.db.models import (
    BOOKINGS_TABLE,
    CUSTOMERS_TABLE,
    Customer,
    parse_date,
    utc_now,
)
from rental_admin.errors import Conflict, NotFound, PersistenceError, ValidationError

logger = logging.getLogger(__name__)


CUSTOMER_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip_code",
    "license_number",
    "license_expiry",
    "user_id",
)
REQUIRED_FIELDS = ("first_name", "last_name", "email")


@dataclass
class UpsertResult:
    customer: Customer
    created: bool
    # the row as it was before an update, None when the customer is new
    previous: Optional[Customer] = None


# ----------------- VALIDATORS ------------------------

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    try:
        _validate_email(email, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def clean_customer_fields(fields: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    # a client-supplied id must never reach an insert or update
    fields = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
    unknown = set(fields) - set(CUSTOMER_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown customer fields: {', '.join(sorted(unknown))}.")

    if not partial:
        missing = [f for f in REQUIRED_FIELDS if not str(fields.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

    row: Dict[str, Any] = {}
    for name in ("first_name", "last_name"):
        if name in fields:
            value = str(fields[name] or "").strip()
            if not value:
                raise ValidationError(f"{name} must not be empty.")
            row[name] = value

    if "email" in fields:
        email = normalize_email(fields["email"])
        if not validate_email(email):
            raise ValidationError("Invalid email. Please try format: name@example.com")
        row["email"] = email

    for name in ("phone", "address", "city", "state", "zip_code", "license_number", "user_id"):
        if name in fields:
            value = fields[name]
            row[name] = value.strip() if isinstance(value, str) and value.strip() else None

    if "license_expiry" in fields:
        expiry = parse_date(fields["license_expiry"], "license_expiry")
        if expiry is not None and expiry <= date.today():
            raise ValidationError("Driver license has expired. Please provide a valid license.")
        row["license_expiry"] = expiry.isoformat() if expiry else None

    return row


# ----------------- REGISTRY ------------------------

class CustomerRegistry:
    def __init__(self, client):
        self.client = client

    def _table(self):
        return self.client.table(CUSTOMERS_TABLE)

    def list(self) -> List[Customer]:
        rows = execute(
            self._table().select("*").order("created_at", desc=True),
            "fetch customers",
        )
        return [Customer.from_row(r) for r in rows]

    def get(self, customer_id: str) -> Customer:
        rows = execute(
            self._table().select("*").eq("id", customer_id).limit(1),
            "fetch customer",
        )
        if not rows:
            raise NotFound(f"Customer {customer_id} not found.")
        return Customer.from_row(rows[0])

    def get_by_email(self, email: str) -> Optional[Customer]:
        """Look up by email. Absence is not an error."""
        email = normalize_email(email)
        if not email:
            return None
        rows = execute(
            self._table().select("*").eq("email", email).limit(1),
            "look up customer by email",
        )
        return Customer.from_row(rows[0]) if rows else None

    def get_by_user(self, user_id: str) -> Optional[Customer]:
        if not user_id:
            return None
        rows = execute(
            self._table().select("*").eq("user_id", user_id).limit(1),
            "look up customer by user",
        )
        return Customer.from_row(rows[0]) if rows else None

    def create(self, fields: Dict[str, Any]) -> Customer:
        """Insert a customer, or return the existing one holding that email."""
        customer, _ = self._create(clean_customer_fields(fields))
        return customer

    def _create(self, row: Dict[str, Any]) -> Tuple[Customer, bool]:
        existing = self.get_by_email(row["email"])
        if existing is not None:
            logger.warning("Customer with email %s already exists (%s)", row["email"], existing.id)
            return existing, False

        row = dict(row)
        row["created_at"] = utc_now().isoformat()
        rows = execute(self._table().insert(row), "create customer")
        if not rows:
            raise PersistenceError("Failed to insert customer. No data returned.")
        logger.info("Created customer %s", rows[0].get("id"))
        return Customer.from_row(rows[0]), True

    def update(self, customer_id: str, fields: Dict[str, Any]) -> Customer:
        row = clean_customer_fields(fields, partial=True)
        if not row:
            return self.get(customer_id)
        if "email" in row:
            holder = self.get_by_email(row["email"])
            if holder is not None and holder.id != customer_id:
                raise Conflict(f"Another customer already uses {row['email']}.")

        rows = execute(self._table().update(row).eq("id", customer_id), "update customer")
        if not rows:
            raise NotFound(f"Customer {customer_id} not found.")
        return Customer.from_row(rows[0])

    def create_or_update(self, fields: Dict[str, Any]) -> UpsertResult:
        """Update the customer holding this email, or create one.

        The lookup and the write are two requests. Without a unique index on
        customers.email two concurrent first-time calls can both insert.
        """
        row = clean_customer_fields(fields)

        existing = self.get_by_email(row["email"])
        if existing is not None:
            updated = self.update(existing.id, row)
            return UpsertResult(customer=updated, created=False, previous=existing)

        customer, created = self._create(row)
        if created:
            return UpsertResult(customer=customer, created=True)
        # someone else inserted this email between the two lookups
        updated = self.update(customer.id, row)
        return UpsertResult(customer=updated, created=False, previous=customer)

    def restore(self, customer: Customer) -> Customer:
        """Write a previously read row back as-is, without re-validating it."""
        rows = execute(
            self._table().update(customer.to_row()).eq("id", customer.id),
            "restore customer",
        )
        if not rows:
            raise NotFound(f"Customer {customer.id} not found.")
        return Customer.from_row(rows[0])

    def link_to_user(self, customer_id: str, user_id: str) -> Customer:
        if not customer_id or not user_id:
            raise ValidationError("Both a customer and a user are required to link them.")
        rows = execute(
            self._table().update({"user_id": user_id}).eq("id", customer_id),
            "link customer to user",
        )
        if not rows:
            raise NotFound(f"Customer {customer_id} not found.")
        logger.info("Linked customer %s to user %s", customer_id, user_id)
        return Customer.from_row(rows[0])

    def delete(self, customer_id: str) -> None:
        bookings = execute(
            self.client.table(BOOKINGS_TABLE).select("id").eq("customer_id", customer_id),
            "check customer bookings",
        )
        if bookings:
            raise Conflict("Cannot delete customer with existing bookings.")

        rows = execute(self._table().delete().eq("id", customer_id), "delete customer")
        if not rows:
            raise NotFound(f"Customer {customer_id} not found.")
        logger.info("Deleted customer %s", customer_id)
