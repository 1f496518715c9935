from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd
import plotly.express as px
import streamlit as st

from rental_admin.auth import SessionContext
from rental_admin.bookings import BookingEngine
from rental_admin.customers import CustomerRegistry
from rental_admin.db.models import Booking, BookingStatus, Customer, at_midnight_utc
from rental_admin.errors import RentalError
from rental_admin.pricing import quote, rental_days
from rental_admin.vehicles import VehicleRegistry


FRAME_COLUMNS = [
    "id",
    "vehicle",
    "license_plate",
    "renter",
    "start_date",
    "end_date",
    "days",
    "total_amount",
    "status",
    "created_at",
]

STATUS_BADGES = {
    BookingStatus.PENDING: "🟡 Pending",
    BookingStatus.ACTIVE: "🔵 Active",
    BookingStatus.COMPLETED: "🟢 Completed",
    BookingStatus.CANCELLED: "🔴 Cancelled",
}


@dataclass
class BookingStats:
    total: int
    by_status: Dict[str, int]
    revenue: Decimal


# ---------------------- DATA ----------------------

def bookings_frame(bookings: List[Booking]) -> pd.DataFrame:
    records = [
        {
            "id": b.id,
            "vehicle": f"{b.car.make} {b.car.model}" if b.car else "",
            "license_plate": b.car.license_plate if b.car else "",
            "renter": b.renter_name,
            "start_date": b.start_date,
            "end_date": b.end_date,
            "days": rental_days(b.start_date, b.end_date),
            "total_amount": float(b.total_amount),
            "status": b.status.value,
            "created_at": b.created_at,
        }
        for b in bookings
    ]
    return pd.DataFrame(records, columns=FRAME_COLUMNS)


def booking_stats(bookings: List[Booking]) -> BookingStats:
    counts = {s.value: 0 for s in BookingStatus}
    frame = bookings_frame(bookings)
    if not frame.empty:
        for status, n in frame["status"].value_counts().items():
            counts[status] = int(n)
    # cancelled bookings never bring money in
    revenue = sum(
        (b.total_amount for b in bookings if b.status is not BookingStatus.CANCELLED),
        Decimal("0"),
    )
    return BookingStats(total=len(bookings), by_status=counts, revenue=revenue)


def booking_edit_fields(car_id: str, start_day: date, end_day: date, notes: str, total: float) -> Dict[str, Any]:
    return {
        "car_id": car_id,
        "start_date": at_midnight_utc(start_day),
        "end_date": at_midnight_utc(end_day),
        "notes": (notes or "").strip() or None,
        "total_amount": f"{total:.2f}",
    }


# ---------------------- ACTIONS ----------------------

def run_action(action: Callable[[], Any], success_message: Optional[str] = None) -> Tuple[bool, Any]:
    """Run one mutating action with a busy guard and a notification.

    On failure the cached page data is left untouched.
    """
    if st.session_state.get("busy"):
        st.warning("Another action is still running.")
        return False, None

    st.session_state.busy = True
    try:
        with st.spinner("Working..."):
            result = action()
    except RentalError as e:
        st.error(e.message)
        return False, None
    finally:
        st.session_state.busy = False

    if success_message:
        st.toast(success_message)
    return True, result


def cached(key: str, loader: Callable[[], Any]) -> Any:
    if key not in st.session_state:
        try:
            st.session_state[key] = loader()
        except RentalError as e:
            st.error(e.message)
            return []
    return st.session_state[key]


def invalidate(*keys: str) -> None:
    for key in keys:
        st.session_state.pop(key, None)


# ---------------------- PAGES ----------------------

def render_overview(engine: BookingEngine, currency: str):
    st.title("📊 Rental Dashboard")

    bookings = cached("bookings", engine.list)
    stats = booking_stats(bookings)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Bookings", stats.total)
    col2.metric("Active", stats.by_status[BookingStatus.ACTIVE.value])
    col3.metric("Pending", stats.by_status[BookingStatus.PENDING.value])
    col4.metric("Revenue", f"{stats.revenue:,.2f} {currency}")

    if not bookings:
        st.info("No bookings found in the database.")
        return

    chart_df = pd.DataFrame(
        {"status": list(stats.by_status.keys()), "bookings": list(stats.by_status.values())}
    )
    fig = px.bar(chart_df, x="status", y="bookings", title="Bookings by status")
    st.plotly_chart(fig, use_container_width=True)


def render_bookings(engine: BookingEngine, session: SessionContext, currency: str):
    st.title("🚗 Bookings")

    bookings = cached("bookings", engine.list)
    df = bookings_frame(bookings)

    status_filter = st.multiselect(
        "Filter by Status",
        options=[s.value for s in BookingStatus],
        default=[s.value for s in BookingStatus],
    )
    filtered_df = df[df["status"].isin(status_filter)] if status_filter else df

    st.dataframe(filtered_df, use_container_width=True, hide_index=True)

    csv = filtered_df.to_csv(index=False).encode("utf-8")
    st.download_button(
        "📥 Download as CSV",
        csv,
        "bookings.csv",
        "text/csv",
        key="download-csv",
    )

    if filtered_df.empty:
        return

    st.divider()
    by_id = {b.id: b for b in bookings}
    selected = st.selectbox(
        "Booking details",
        options=list(filtered_df["id"]),
        format_func=lambda i: f"{by_id[i].renter_name or 'Unknown'} · {by_id[i].start_date:%Y-%m-%d} · {i}",
    )
    if selected:
        render_booking_detail(engine, session, selected, currency)


def render_booking_detail(engine: BookingEngine, session: SessionContext, booking_id: str, currency: str):
    try:
        booking = engine.get(booking_id)
    except RentalError as e:
        st.error(e.message)
        return

    days = rental_days(booking.start_date, booking.end_date)
    left, right = st.columns([2, 1])
    with left:
        st.subheader(STATUS_BADGES[booking.status])
        if booking.car:
            st.write(
                f"**Vehicle:** {booking.car.make} {booking.car.model} ({booking.car.year}), "
                f"plate {booking.car.license_plate}, {booking.car.daily_rate} {currency}/day"
            )
        if booking.customer:
            st.write(
                f"**Customer:** {booking.customer.full_name}, {booking.customer.email}, "
                f"{booking.customer.phone or 'N/A'}"
            )
        elif booking.user:
            st.write(f"**Account:** {booking.user.full_name}, {booking.user.email or 'N/A'}")
        st.write(f"**Period:** {booking.start_date:%Y-%m-%d %H:%M} → {booking.end_date:%Y-%m-%d %H:%M}")
        st.write(f"**Duration:** {days} day{'s' if days != 1 else ''}")
        st.write(f"**Total:** {booking.total_amount:.2f} {currency}")
        if booking.notes:
            st.write(f"**Notes:** {booking.notes}")

    with st.expander("✏️ Edit booking"):
        render_booking_edit(engine, booking, currency)

    if not session.is_admin():
        return

    with right:
        st.write("### Update Status")
        for status in BookingStatus:
            if status is booking.status:
                continue
            if st.button(f"Mark as {status.value.title()}", key=f"status-{status.value}"):
                ok, _ = run_action(
                    lambda s=status: admin_only(session, lambda: engine.change_status(booking_id, s)),
                    f"Booking marked as {status.value}",
                )
                if ok:
                    invalidate("bookings")
                    st.rerun()

        st.write("### Danger zone")
        confirm = st.checkbox("I understand this cannot be undone", key=f"confirm-delete-{booking_id}")
        if st.button("Delete booking", disabled=not confirm, type="primary"):
            ok, _ = run_action(
                lambda: admin_only(session, lambda: engine.delete(booking_id)),
                "Booking deleted",
            )
            if ok:
                invalidate("bookings")
                st.rerun()


def render_booking_edit(engine: BookingEngine, booking: Booking, currency: str):
    """Vehicle, dates, notes and total. The total starts at the quote and may be overridden."""
    key = f"edit-{booking.id}"
    fleet = cached("vehicles", engine.vehicles.list)
    by_id = {v.id: v for v in fleet}
    if booking.car is not None:
        by_id.setdefault(booking.car.id, booking.car)
    if not by_id:
        st.warning("No vehicles to choose from.")
        return

    options = list(by_id)
    car_id = st.selectbox(
        "Vehicle",
        options=options,
        index=options.index(booking.car_id) if booking.car_id in by_id else 0,
        format_func=lambda i: by_id[i].label,
        key=f"{key}-car",
    )
    c1, c2 = st.columns(2)
    start_day = c1.date_input("Start date", value=booking.start_date.date(), key=f"{key}-start")
    end_day = c2.date_input(
        "End date", value=max(booking.end_date.date(), start_day), min_value=start_day, key=f"{key}-end"
    )
    notes = st.text_area("Notes", value=booking.notes or "", key=f"{key}-notes")

    start = at_midnight_utc(start_day)
    end = at_midnight_utc(end_day)
    try:
        preview = quote(start, end, by_id[car_id].daily_rate)
    except RentalError as e:
        st.error(e.message)
        return
    st.caption(f"Quote: {preview.days} day(s) × {preview.daily_rate} = {preview.total_amount:.2f} {currency}")
    total = st.number_input(
        f"Total amount ({currency})",
        min_value=0.0,
        value=float(preview.total_amount),
        step=1.0,
        format="%.2f",
        # a new quote resets the field, a manual edit overrides it
        key=f"{key}-total-{preview.total_amount}",
    )

    if st.button("Save changes", key=f"{key}-save"):
        fields = booking_edit_fields(car_id, start_day, end_day, notes, total)
        ok, _ = run_action(lambda: engine.update(booking.id, fields), "Booking updated")
        if ok:
            invalidate("bookings")
            st.rerun()


def render_vehicles(vehicles: VehicleRegistry, session: SessionContext, currency: str):
    st.title("🚙 Vehicles")

    fleet = cached("vehicles", vehicles.list)
    df = pd.DataFrame(
        [
            {
                "id": v.id,
                "make": v.make,
                "model": v.model,
                "year": v.year,
                "license_plate": v.license_plate,
                "daily_rate": float(v.daily_rate),
                "is_available": v.is_available,
                "image_url": v.image_url,
            }
            for v in fleet
        ]
    )
    if df.empty:
        st.info("No vehicles yet.")
    else:
        st.dataframe(
            df,
            use_container_width=True,
            hide_index=True,
            column_config={"image_url": st.column_config.ImageColumn("Image")},
        )

    with st.expander("➕ Add vehicle"):
        with st.form("vehicle-create", clear_on_submit=True):
            fields = _vehicle_inputs(currency)
            if st.form_submit_button("Create vehicle"):
                ok, _ = run_action(lambda: vehicles.create(fields), "Vehicle created successfully")
                if ok:
                    invalidate("vehicles", "available_vehicles")
                    st.rerun()

    if not fleet:
        return

    by_id = {v.id: v for v in fleet}
    selected = st.selectbox("Edit vehicle", options=list(by_id), format_func=lambda i: by_id[i].label)
    vehicle = by_id[selected]

    with st.form(f"vehicle-edit-{vehicle.id}"):
        fields = _vehicle_inputs(currency, vehicle)
        if st.form_submit_button("Update vehicle"):
            ok, _ = run_action(lambda: vehicles.update(vehicle.id, fields), "Vehicle updated successfully")
            if ok:
                invalidate("vehicles", "available_vehicles")
                st.rerun()

    toggle_label = "Mark unavailable" if vehicle.is_available else "Mark available"
    if st.button(toggle_label, key=f"toggle-vehicle-{vehicle.id}"):
        ok, _ = run_action(
            lambda: vehicles.set_availability(vehicle.id, not vehicle.is_available),
            "Availability updated",
        )
        if ok:
            invalidate("vehicles", "available_vehicles")
            st.rerun()

    if session.is_admin() and st.button("Delete vehicle", key=f"delete-vehicle-{vehicle.id}"):
        ok, _ = run_action(
            lambda: admin_only(session, lambda: vehicles.delete(vehicle.id)),
            "Vehicle deleted successfully",
        )
        if ok:
            invalidate("vehicles", "available_vehicles")
            st.rerun()


def _vehicle_inputs(currency: str, vehicle=None) -> Dict[str, Any]:
    c1, c2 = st.columns(2)
    make = c1.text_input("Make", value=vehicle.make if vehicle else "")
    model = c2.text_input("Model", value=vehicle.model if vehicle else "")
    year = c1.number_input("Year", min_value=1900, max_value=2100, step=1,
                           value=vehicle.year if vehicle else pd.Timestamp.now().year)
    plate = c2.text_input("License plate", value=vehicle.license_plate if vehicle else "")
    rate = c1.number_input(f"Daily rate ({currency})", min_value=0.0, step=1.0,
                           value=float(vehicle.daily_rate) if vehicle else 0.0)
    image_url = c2.text_input("Image URL", value=(vehicle.image_url or "") if vehicle else "")
    available = st.checkbox("Available for rent", value=vehicle.is_available if vehicle else True)
    return {
        "make": make,
        "model": model,
        "year": int(year),
        "license_plate": plate,
        "daily_rate": str(rate),
        "is_available": available,
        "image_url": image_url,
    }


def render_customers(customers: CustomerRegistry, session: SessionContext):
    st.title("👥 Customers")

    people = cached("customers", customers.list)
    df = pd.DataFrame(
        [
            {
                "id": c.id,
                "name": c.full_name,
                "email": c.email,
                "phone": c.phone,
                "city": c.city,
                "license_number": c.license_number,
                "license_expiry": c.license_expiry,
                "linked_user": c.user_id,
            }
            for c in people
        ]
    )
    if df.empty:
        st.info("No customers yet.")
        return
    st.dataframe(df, use_container_width=True, hide_index=True)

    by_id = {c.id: c for c in people}
    selected = st.selectbox(
        "Customer",
        options=list(by_id),
        format_func=lambda i: f"{by_id[i].full_name} <{by_id[i].email}>",
    )
    customer = by_id[selected]

    with st.form(f"customer-edit-{customer.id}"):
        fields = customer_inputs(f"customer-{customer.id}", customer)
        if st.form_submit_button("Update customer"):
            ok, _ = run_action(lambda: customers.update(customer.id, fields), "Customer updated successfully")
            if ok:
                invalidate("customers")
                st.rerun()

    c1, c2 = st.columns(2)
    if session.user is not None and customer.user_id != session.user.id:
        if c1.button("Link to my account"):
            ok, _ = run_action(
                lambda: customers.link_to_user(customer.id, session.user.id),
                "Customer linked to user account",
            )
            if ok:
                invalidate("customers")
                st.rerun()

    if session.is_admin() and c2.button("Delete customer"):
        ok, _ = run_action(
            lambda: admin_only(session, lambda: customers.delete(customer.id)),
            "Customer deleted successfully",
        )
        if ok:
            invalidate("customers")
            st.rerun()


def admin_only(session: SessionContext, action: Callable[[], Any]) -> Any:
    session.require_admin()
    return action()


def customer_inputs(
    prefix: str,
    customer: Optional[Customer] = None,
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Customer fields as entered in a form. Validation happens in the registry.

    ``defaults`` prefills a blank form, e.g. from the signed-in user's profile.
    """
    source: Dict[str, Any] = dict(defaults or {})
    if customer is not None:
        source = customer.to_row()

    def text(label: str, name: str, column=st) -> str:
        return column.text_input(label, value=source.get(name) or "", key=f"{prefix}-{name}")

    c1, c2 = st.columns(2)
    fields = {
        "first_name": text("First name", "first_name", c1),
        "last_name": text("Last name", "last_name", c2),
        "email": text("Email", "email", c1),
        "phone": text("Phone", "phone", c2),
        "address": text("Address", "address"),
        "city": text("City", "city", c1),
        "state": text("State", "state", c2),
        "zip_code": text("ZIP", "zip_code", c1),
        "license_number": text("Driver license number", "license_number", c2),
        "license_expiry": st.date_input(
            "License expiry",
            value=(customer.license_expiry if customer and customer.license_expiry
                   else date.today() + timedelta(days=365)),
            key=f"{prefix}-expiry",
        ),
    }
    if customer is not None or source.get("user_id"):
        fields["user_id"] = source.get("user_id")
    return fields
