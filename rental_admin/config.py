from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Any, Mapping, Optional

import streamlit as st

from rental_admin.errors import ConfigError


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ---------------------- DATA CLASSES ----------------------

@dataclass
class SupabaseConfig:
    url: str
    key: str


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class BookingConfig:
    currency: str = "USD"
    min_vehicle_year: int = 1900
    max_vehicle_year: int = date.today().year + 1


@dataclass
class AppConfig:
    supabase: SupabaseConfig
    logging: LoggingConfig
    booking: BookingConfig


# ---------------------- LOADING ----------------------

def load_config(secrets: Optional[Mapping[str, Any]] = None) -> AppConfig:
    if secrets is None:
        secrets = st.secrets

    # --- Supabase ---
    if "supabase" not in secrets:
        raise ConfigError("Missing [supabase] section in secrets.")
    section = secrets["supabase"]
    url = section.get("url", "")
    # The dashboard acts on behalf of the signed-in user, so the anon key is
    # preferred; a service key still works for single-operator installs.
    key = section.get("anon_key") or section.get("service_key") or ""
    if not url or not key:
        raise ConfigError("Supabase url and anon_key (or service_key) are required.")

    supabase_cfg = SupabaseConfig(url=url, key=key)

    # --- Logging ---
    log_section = secrets.get("logging", {})
    logging_cfg = LoggingConfig(level=str(log_section.get("level", "INFO")).upper())

    # --- Booking ---
    # users often store numbers as strings, converting to int keeps comparisons sane
    booking_section = secrets.get("booking", {})
    defaults = BookingConfig()
    booking_cfg = BookingConfig(
        currency=booking_section.get("currency", defaults.currency),
        min_vehicle_year=int(booking_section.get("min_vehicle_year", defaults.min_vehicle_year)),
        max_vehicle_year=int(booking_section.get("max_vehicle_year", defaults.max_vehicle_year)),
    )
    if booking_cfg.min_vehicle_year > booking_cfg.max_vehicle_year:
        raise ConfigError("min_vehicle_year must not exceed max_vehicle_year.")

    return AppConfig(
        supabase=supabase_cfg,
        logging=logging_cfg,
        booking=booking_cfg,
    )


def configure_logging(cfg: AppConfig) -> None:
    level = getattr(logging, cfg.logging.level, None)
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {cfg.logging.level}")
    logging.basicConfig(level=level, format=LOG_FORMAT)
