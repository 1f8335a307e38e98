import datetime as dt

import streamlit as st
from pydantic import ValidationError

from payflow.models import (
    LOCKED_DATE_TYPES,
    PaymentEvent,
    PaymentPlan,
    PaymentType,
    available_payment_types,
    ensure_locked_dates,
)
from payflow.presets import PAYMENT_LABELS
from ui.property import _as_date


def _label(payment_type) -> str:
    return PAYMENT_LABELS.get(PaymentType(payment_type).value, str(payment_type))


def events_from_state(rows, delivery_date=None):
    events = [
        PaymentEvent(
            type=r["type"],
            value=float(r.get("value", 0.0)),
            date=_as_date(r.get("date")) or delivery_date or dt.date.today(),
        )
        for r in rows
    ]
    return PaymentPlan(events=ensure_locked_dates(events, delivery_date)).events


def events_to_state(events):
    return [e.model_dump(mode="json") for e in events]


def render_payments_editor(delivery_date=None):
    """Editable list of payment events. Returns validated events or ``None``."""
    st.session_state.setdefault("payments", [])
    rows = st.session_state.payments
    st.subheader("Payments")

    remove = None
    for i, row in enumerate(rows):
        ptype = PaymentType(row["type"])
        cols = st.columns([2, 2, 2, 1])
        cols[0].markdown(f"**{_label(ptype)}**")
        row["value"] = cols[1].number_input(
            "Value",
            min_value=0.0,
            value=float(row.get("value", 0.0)),
            key=f"payment_value_{ptype.value}",
        )
        locked = ptype in LOCKED_DATE_TYPES and delivery_date is not None
        row["date"] = cols[2].date_input(
            "Date",
            value=delivery_date if locked else (_as_date(row.get("date")) or dt.date.today()),
            disabled=locked,
            key=f"payment_date_{ptype.value}",
        ).isoformat()
        if cols[3].button("Remove", key=f"remove_{ptype.value}"):
            remove = i
    if remove is not None:
        rows.pop(remove)
        # removing a signal drops the ones that depend on it
        present = {r["type"] for r in rows}
        if PaymentType.SIGNAL_1.value not in present:
            rows[:] = [r for r in rows if r["type"] not in ("signal_2", "signal_3")]
        elif PaymentType.SIGNAL_2.value not in present:
            rows[:] = [r for r in rows if r["type"] != "signal_3"]

    try:
        events = events_from_state(rows, delivery_date)
    except ValidationError as exc:
        st.error(f"Invalid payments: {exc.errors()[0]['msg']}")
        return None

    options = available_payment_types(events)
    if options:
        cols = st.columns([3, 1])
        choice = cols[0].selectbox(
            "Add payment", options, format_func=_label, key="new_payment_type"
        )
        if cols[1].button("Add", key="add_payment"):
            rows.append(
                {
                    "type": PaymentType(choice).value,
                    "value": 0.0,
                    "date": (delivery_date or dt.date.today()).isoformat(),
                }
            )
            events = events_from_state(rows, delivery_date)
    st.session_state.payments = events_to_state(events)
    return events
