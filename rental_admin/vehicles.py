from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from rental_admin.config import BookingConfig
from rental_admin.db.database import execute
from rental_admin.db.models import VEHICLES_TABLE, Vehicle, to_decimal, utc_now
from rental_admin.errors import Conflict, NotFound, PersistenceError, ValidationError

logger = logging.getLogger(__name__)


VEHICLE_FIELDS = (
    "make",
    "model",
    "year",
    "license_plate",
    "daily_rate",
    "is_available",
    "image_url",
)
REQUIRED_FIELDS = ("make", "model", "year", "license_plate", "daily_rate")


# ----------------- VALIDATORS ------------------------

def clean_vehicle_fields(
    fields: Dict[str, Any],
    cfg: BookingConfig,
    partial: bool = False,
) -> Dict[str, Any]:
    """Validate vehicle input and convert it to column values."""
    unknown = set(fields) - set(VEHICLE_FIELDS) - {"id", "created_at"}
    if unknown:
        raise ValidationError(f"Unknown vehicle fields: {', '.join(sorted(unknown))}.")

    if not partial:
        missing = [f for f in REQUIRED_FIELDS if fields.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

    row: Dict[str, Any] = {}
    for name in ("make", "model", "license_plate"):
        if name in fields:
            value = (fields[name] or "").strip()
            if not value:
                raise ValidationError(f"{name} must not be empty.")
            row[name] = value
    if "license_plate" in row:
        row["license_plate"] = row["license_plate"].upper()

    if "year" in fields:
        try:
            year = int(fields["year"])
        except (TypeError, ValueError):
            raise ValidationError("year must be a whole number.") from None
        if not cfg.min_vehicle_year <= year <= cfg.max_vehicle_year:
            raise ValidationError(
                f"year must be between {cfg.min_vehicle_year} and {cfg.max_vehicle_year}."
            )
        row["year"] = year

    if "daily_rate" in fields:
        rate = to_decimal(fields["daily_rate"], "daily_rate")
        if rate < 0:
            raise ValidationError("daily_rate must not be negative.")
        row["daily_rate"] = str(rate)

    if "is_available" in fields:
        row["is_available"] = bool(fields["is_available"])
    if "image_url" in fields:
        row["image_url"] = fields["image_url"] or None

    return row


# ----------------- REGISTRY ------------------------

class VehicleRegistry:
    def __init__(self, client, cfg: Optional[BookingConfig] = None):
        self.client = client
        self.cfg = cfg or BookingConfig()

    def _table(self):
        return self.client.table(VEHICLES_TABLE)

    def list(self, available_only: bool = False) -> List[Vehicle]:
        query = self._table().select("*")
        if available_only:
            query = query.eq("is_available", True)
        rows = execute(query.order("created_at", desc=True), "fetch vehicles")
        return [Vehicle.from_row(r) for r in rows]

    def get(self, vehicle_id: str) -> Vehicle:
        rows = execute(
            self._table().select("*").eq("id", vehicle_id).limit(1),
            "fetch vehicle",
        )
        if not rows:
            raise NotFound(f"Vehicle {vehicle_id} not found.")
        return Vehicle.from_row(rows[0])

    def _ensure_unique_plate(self, plate: str, vehicle_id: Optional[str] = None) -> None:
        rows = execute(
            self._table().select("id").eq("license_plate", plate),
            "check license plate",
        )
        if any(r.get("id") != vehicle_id for r in rows):
            raise Conflict(f"A vehicle with plate {plate} already exists.")

    def create(self, fields: Dict[str, Any]) -> Vehicle:
        row = clean_vehicle_fields(fields, self.cfg)
        row.setdefault("is_available", True)
        self._ensure_unique_plate(row["license_plate"])
        row["created_at"] = utc_now().isoformat()

        rows = execute(self._table().insert(row), "create vehicle")
        if not rows:
            raise PersistenceError("Failed to create vehicle. No data returned.")
        logger.info("Created vehicle %s (%s)", rows[0].get("id"), row["license_plate"])
        return Vehicle.from_row(rows[0])

    def update(self, vehicle_id: str, fields: Dict[str, Any]) -> Vehicle:
        row = clean_vehicle_fields(fields, self.cfg, partial=True)
        # id and created_at are never rewritten
        if not row:
            return self.get(vehicle_id)
        if "license_plate" in row:
            self._ensure_unique_plate(row["license_plate"], vehicle_id)

        rows = execute(self._table().update(row).eq("id", vehicle_id), "update vehicle")
        if not rows:
            raise NotFound(f"Vehicle {vehicle_id} not found.")
        return Vehicle.from_row(rows[0])

    def set_availability(self, vehicle_id: str, is_available: bool) -> Vehicle:
        return self.update(vehicle_id, {"is_available": is_available})

    def delete(self, vehicle_id: str) -> None:
        # Bookings that reference the vehicle are left in place.
        rows = execute(self._table().delete().eq("id", vehicle_id), "delete vehicle")
        if not rows:
            raise NotFound(f"Vehicle {vehicle_id} not found.")
        logger.info("Deleted vehicle %s", vehicle_id)
