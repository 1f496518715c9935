from __future__ import annotations

import streamlit as st

from rental_admin.admin_dashboard import (
    invalidate,
    render_bookings,
    render_customers,
    render_overview,
    render_vehicles,
)
from rental_admin.auth import SessionContext
from rental_admin.booking_form import render_booking_form
from rental_admin.bookings import BookingEngine
from rental_admin.config import AppConfig, configure_logging, load_config
from rental_admin.customers import CustomerRegistry
from rental_admin.db.database import get_supabase_client
from rental_admin.errors import RentalError
from rental_admin.vehicles import VehicleRegistry

CACHED_LISTS = ("bookings", "vehicles", "available_vehicles", "customers")

PAGES = ["Dashboard", "Bookings", "New Booking", "Vehicles", "Customers"]


def _init_app_state(cfg: AppConfig):
    client = get_supabase_client(cfg)
    if "session_ctx" not in st.session_state:
        # started once per browser session; its state follows auth events only
        st.session_state.session_ctx = SessionContext(client).start()
    if "engine" not in st.session_state:
        vehicles = VehicleRegistry(client, cfg.booking)
        customers = CustomerRegistry(client)
        st.session_state.engine = BookingEngine(client, vehicles, customers)
    if "busy" not in st.session_state:
        st.session_state.busy = False


def render_login(session: SessionContext):
    st.title("🔐 Sign in")
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in")
    if submitted:
        try:
            session.login(email, password)
        except RentalError as e:
            st.error(e.message)
            return
        st.rerun()


def main():
    st.set_page_config(
        page_title="Vehicle Rental Admin",
        page_icon="🚗",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    cfg = load_config()
    configure_logging(cfg)
    _init_app_state(cfg)

    session: SessionContext = st.session_state.session_ctx
    engine: BookingEngine = st.session_state.engine
    currency = cfg.booking.currency

    if not session.is_authenticated:
        render_login(session)
        return

    # --- SIDEBAR NAVIGATION ---
    with st.sidebar:
        st.title("Navigation")
        menu = st.radio("Go to", PAGES)
        st.divider()
        name = session.profile.full_name if session.profile else ""
        st.caption(f"Signed in as {name or session.user.email}")
        if session.is_admin():
            st.caption("Role: administrator")
        if st.button("Refresh data"):
            invalidate(*CACHED_LISTS)
        if st.button("Sign out"):
            session.logout()
            invalidate(*CACHED_LISTS)
            st.rerun()

    if menu == "Dashboard":
        render_overview(engine, currency)
    elif menu == "Bookings":
        render_bookings(engine, session, currency)
    elif menu == "New Booking":
        render_booking_form(engine, session, currency)
    elif menu == "Vehicles":
        render_vehicles(engine.vehicles, session, currency)
    else:
        render_customers(engine.customers, session)


if __name__ == "__main__":
    main()
