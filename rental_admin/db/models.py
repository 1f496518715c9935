# rental_admin/db/models.py
"""
Supabase does not require ORM model classes; these dataclasses only give
the rows a shape on the Python side.
Tables created in your Supabase dashboard:

Table: cars
- id (uuid, PK)
- make, model (text)
- year (int)
- license_plate (text, unique)
- daily_rate (numeric)
- is_available (bool)
- image_url (text)
- created_at (timestamptz)

Table: customers
- id (uuid, PK)
- first_name, last_name (text)
- email (text, unique)
- phone, address, city, state, zip_code (text)
- license_number (text)
- license_expiry (date)
- user_id (uuid, FK → auth.users.id, nullable)
- created_at (timestamptz)

Table: bookings
- id (uuid, PK)
- car_id (uuid, FK → cars.id)
- customer_id (uuid, FK → customers.id, nullable)
- user_id (uuid, FK → profiles.id, nullable)
- start_date, end_date (timestamptz)
- total_amount (numeric)
- status (text: pending | active | completed | cancelled)
- notes (text)
- created_at (timestamptz)

Table: profiles
- id (uuid, PK, = auth.users.id)
- first_name, last_name, phone, email (text)
- is_admin (bool)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Union

from rental_admin.errors import ValidationError


VEHICLES_TABLE = "cars"
CUSTOMERS_TABLE = "customers"
BOOKINGS_TABLE = "bookings"
PROFILES_TABLE = "profiles"


# ----------------- VALUE HELPERS ------------------------

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def at_midnight_utc(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number.")
    try:
        # str() first so floats like 49.99 keep their printed value
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number.") from None


def parse_timestamp(value: Any, field_name: str = "date") -> datetime:
    """Accepts datetime, date or ISO-8601 text. Plain dates mean midnight."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Invalid {field_name}: {value!r}.") from None
    raise ValidationError(f"{field_name} is required.")


def parse_date(value: Any, field_name: str = "date") -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value!r}.") from None


def _iso(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _optional_timestamp(value: Any) -> Optional[datetime]:
    return parse_timestamp(value) if value not in (None, "") else None


# ----------------- STATUS ------------------------

class BookingStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ----------------- RENTER (tagged union) ------------------------

@dataclass(frozen=True)
class CustomerRenter:
    customer_id: str


@dataclass(frozen=True)
class UserRenter:
    user_id: str


@dataclass(frozen=True)
class CustomerAndUserRenter:
    customer_id: str
    user_id: str


Renter = Union[CustomerRenter, UserRenter, CustomerAndUserRenter]


def make_renter(customer_id: Optional[str] = None, user_id: Optional[str] = None) -> Renter:
    if customer_id and user_id:
        return CustomerAndUserRenter(customer_id=customer_id, user_id=user_id)
    if customer_id:
        return CustomerRenter(customer_id=customer_id)
    if user_id:
        return UserRenter(user_id=user_id)
    raise ValidationError("A booking needs a customer or a user to rent the vehicle.")


def renter_columns(renter: Renter) -> Dict[str, Optional[str]]:
    return {
        "customer_id": getattr(renter, "customer_id", None),
        "user_id": getattr(renter, "user_id", None),
    }


# ----------------- ROWS ------------------------

@dataclass
class Vehicle:
    id: Optional[str]
    make: str
    model: str
    year: int
    license_plate: str
    daily_rate: Decimal
    is_available: bool = True
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Vehicle":
        return cls(
            id=row.get("id"),
            make=row.get("make") or "",
            model=row.get("model") or "",
            year=int(row.get("year") or 0),
            license_plate=row.get("license_plate") or "",
            daily_rate=to_decimal(row.get("daily_rate", 0), "daily_rate"),
            is_available=bool(row.get("is_available", True)),
            image_url=row.get("image_url"),
            created_at=_optional_timestamp(row.get("created_at")),
        )

    @property
    def label(self) -> str:
        return f"{self.make} {self.model} ({self.license_plate})"


@dataclass
class Customer:
    id: Optional[str]
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    license_number: Optional[str] = None
    license_expiry: Optional[date] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Customer":
        return cls(
            id=row.get("id"),
            first_name=row.get("first_name") or "",
            last_name=row.get("last_name") or "",
            email=row.get("email") or "",
            phone=row.get("phone"),
            address=row.get("address"),
            city=row.get("city"),
            state=row.get("state"),
            zip_code=row.get("zip_code"),
            license_number=row.get("license_number"),
            license_expiry=parse_date(row.get("license_expiry"), "license_expiry"),
            user_id=row.get("user_id"),
            created_at=_optional_timestamp(row.get("created_at")),
        )

    def to_row(self) -> Dict[str, Any]:
        """Mutable columns only; id and created_at belong to the store."""
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "license_number": self.license_number,
            "license_expiry": _iso(self.license_expiry),
            "user_id": self.user_id,
        }

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Profile:
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_admin: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Profile":
        return cls(
            id=row["id"],
            first_name=row.get("first_name"),
            last_name=row.get("last_name"),
            phone=row.get("phone"),
            email=row.get("email"),
            # only a literal true grants the admin role
            is_admin=row.get("is_admin") is True,
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


@dataclass
class Booking:
    id: Optional[str]
    car_id: str
    renter: Renter
    start_date: datetime
    end_date: datetime
    total_amount: Decimal
    status: BookingStatus = BookingStatus.PENDING
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    # joined snapshots, present only when fetched with embeds
    car: Optional[Vehicle] = field(default=None, compare=False)
    customer: Optional[Customer] = field(default=None, compare=False)
    user: Optional[Profile] = field(default=None, compare=False)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Booking":
        car = row.get("car")
        customer = row.get("customer")
        user = row.get("user")
        return cls(
            id=row.get("id"),
            car_id=row.get("car_id"),
            renter=make_renter(row.get("customer_id"), row.get("user_id")),
            start_date=parse_timestamp(row.get("start_date"), "start_date"),
            end_date=parse_timestamp(row.get("end_date"), "end_date"),
            total_amount=to_decimal(row.get("total_amount", 0), "total_amount"),
            status=BookingStatus(row.get("status") or BookingStatus.PENDING.value),
            notes=row.get("notes"),
            created_at=_optional_timestamp(row.get("created_at")),
            car=Vehicle.from_row(car) if car else None,
            customer=Customer.from_row(customer) if customer else None,
            user=Profile.from_row(user) if user else None,
        )

    @property
    def customer_id(self) -> Optional[str]:
        return getattr(self.renter, "customer_id", None)

    @property
    def user_id(self) -> Optional[str]:
        return getattr(self.renter, "user_id", None)

    @property
    def renter_name(self) -> str:
        if self.customer is not None:
            return self.customer.full_name
        if self.user is not None:
            return self.user.full_name
        return ""
