from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Optional

import streamlit as st

from rental_admin.admin_dashboard import admin_only, cached, customer_inputs, invalidate, run_action
from rental_admin.auth import SessionContext
from rental_admin.bookings import BookingEngine, BookingRequest
from rental_admin.db.models import BookingStatus, Customer, at_midnight_utc, make_renter
from rental_admin.errors import RentalError
from rental_admin.pricing import quote


def _profile_defaults(session: SessionContext) -> Dict[str, Any]:
    profile = session.profile
    defaults: Dict[str, Any] = {"user_id": session.user.id if session.user is not None else None}
    if profile is not None:
        defaults.update(
            first_name=profile.first_name,
            last_name=profile.last_name,
            phone=profile.phone,
            email=profile.email,
        )
    if not defaults.get("email") and session.user is not None:
        defaults["email"] = getattr(session.user, "email", None)
    return defaults


def render_booking_form(engine: BookingEngine, session: SessionContext, currency: str):
    st.title("📝 New Booking")

    # --- 1. Vehicle ---
    st.subheader("1. Select Vehicle")
    available = cached("available_vehicles", lambda: engine.vehicles.list(available_only=True))
    if not available:
        st.warning("No available vehicles.")
        return
    by_id = {v.id: v for v in available}
    car_id = st.selectbox(
        "Vehicle",
        options=list(by_id),
        format_func=lambda i: f"{by_id[i].label} - {by_id[i].daily_rate} {currency}/day",
    )
    vehicle = by_id[car_id]
    if vehicle.image_url:
        st.image(vehicle.image_url, width=240)

    # --- 2. Customer ---
    st.subheader("2. Customer Info")
    lookup_email = st.text_input("Look up customer by email")
    existing: Optional[Customer] = None
    if lookup_email:
        try:
            existing = engine.customers.get_by_email(lookup_email)
        except RentalError as e:
            st.error(e.message)
        if existing is None:
            st.info("No customer with this email yet, fill in the details below.")
        else:
            st.success(f"Found {existing.full_name}. Changes below are saved with the booking.")

    if existing is not None:
        customer_fields = customer_inputs(f"booking-customer-{existing.id}", existing)
    elif session.user is not None and st.checkbox("Use my profile data"):
        customer_fields = customer_inputs("booking-customer-profile", defaults=_profile_defaults(session))
    else:
        customer_fields = customer_inputs("booking-customer")

    # --- 3. Details ---
    st.subheader("3. Booking Details")
    c1, c2 = st.columns(2)
    start_day = c1.date_input("Start date", value=date.today(), min_value=date.today())
    end_day = c2.date_input("End date", value=start_day + timedelta(days=1), min_value=start_day)
    notes = st.text_area("Notes")

    status: Optional[BookingStatus] = None
    if session.is_admin():
        status = st.selectbox(
            "Booking status",
            options=list(BookingStatus),
            format_func=lambda s: s.value.title(),
        )

    start = at_midnight_utc(start_day)
    end = at_midnight_utc(end_day)
    try:
        preview = quote(start, end, vehicle.daily_rate)
    except RentalError as e:
        st.error(e.message)
        return

    st.write("#### Booking Summary")
    st.write(f"**Vehicle:** {vehicle.make} {vehicle.model}")
    st.write(f"**Daily rate:** {preview.daily_rate} {currency}")
    st.write(f"**Total days:** {preview.days} day{'s' if preview.days != 1 else ''}")
    st.write(f"**Total amount:** {preview.total_amount:.2f} {currency}")

    if st.button("Create Booking", type="primary", disabled=st.session_state.get("busy", False)):
        user_id = session.user.id if session.user is not None else None
        request = BookingRequest(
            car_id=vehicle.id,
            # the customer half is filled in once the customer is resolved
            renter=make_renter(user_id=user_id) if user_id else None,
            start_date=start,
            end_date=end,
            notes=notes,
            status=status,
        )

        def submit():
            # the form always carries full customer details, so they are
            # saved by email whether the customer was found or typed in
            create = lambda: engine.create_with_customer(request, customer_fields, is_new_customer=True)
            # an explicit status is a privileged choice
            return admin_only(session, create) if status is not None else create()

        ok, booking = run_action(
            submit,
            "Booking created successfully",
        )
        if ok:
            invalidate("bookings", "customers")
            st.success(f"🎉 Booking `{booking.id}` created.")
