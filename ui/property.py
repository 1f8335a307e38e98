import datetime as dt

import streamlit as st
from pydantic import ValidationError

from payflow.calculators import notary_installment_value, notary_total_fee
from payflow.formatters import format_currency
from payflow.models import Property, ValuationInputs


def _as_date(value):
    if isinstance(value, dt.date):
        return value
    if value:
        return dt.date.fromisoformat(str(value))
    return None


def render_property_section():
    """Property, valuation and notary inputs. Returns the validated models."""
    st.session_state.setdefault("property", {})
    st.session_state.setdefault("valuation", {})
    p = st.session_state.property
    v = st.session_state.valuation

    with st.expander("Property", expanded=True):
        p["id"] = st.text_input("Unit", value=str(p.get("id", "")))
        p["enterprise_name"] = st.text_input(
            "Enterprise", value=str(p.get("enterprise_name", ""))
        )
        p["construction_start_date"] = st.date_input(
            "Construction Start", value=_as_date(p.get("construction_start_date"))
        )
        p["delivery_date"] = st.date_input(
            "Delivery Date", value=_as_date(p.get("delivery_date"))
        )

    with st.expander("Valuation & Income", expanded=True):
        v["appraisal_value"] = st.number_input(
            "Appraisal Value", min_value=0.0, value=float(v.get("appraisal_value", 0.0))
        )
        v["sale_value"] = st.number_input(
            "Sale Value", min_value=0.0, value=float(v.get("sale_value", 0.0))
        )
        v["gross_income"] = st.number_input(
            "Gross Income", min_value=0.0, value=float(v.get("gross_income", 0.0))
        )
        v["simulated_bank_installment"] = st.number_input(
            "Simulated Bank Installment",
            min_value=0.0,
            value=float(v.get("simulated_bank_installment", 0.0)),
        )
        v["financing_participants"] = int(
            st.number_input(
                "Financing Participants",
                min_value=1,
                max_value=4,
                value=int(v.get("financing_participants", 1)),
            )
        )
        v["installment_count"] = int(
            st.number_input(
                "Pro-Soluto Installments",
                min_value=1,
                value=int(v.get("installment_count") or 52),
            )
        )
        conditions = ["standard", "special"]
        v["condition"] = st.selectbox(
            "Condition",
            conditions,
            index=conditions.index(v.get("condition", "standard")),
        )

    with st.expander("Notary"):
        methods = ["card", "bank_slip"]
        v["notary_method"] = st.selectbox(
            "Payment Method",
            methods,
            index=methods.index(v.get("notary_method", "card")),
            format_func=lambda m: "Credit card" if m == "card" else "Bank slip",
        )
        if v["notary_method"] == "card":
            current = int(v.get("notary_installments", 1))
            v["notary_installments"] = int(
                st.number_input(
                    "Installments",
                    min_value=1,
                    max_value=12,
                    value=current if 1 <= current <= 12 else 1,
                )
            )
        else:
            current = int(v.get("notary_installments", 36))
            v["notary_installments"] = st.selectbox(
                "Installments", [36, 40], index=1 if current == 40 else 0
            )

    try:
        prop = Property(**p)
        inputs = ValuationInputs(**v)
    except ValidationError as exc:
        st.error(f"Invalid input: {exc.errors()[0]['msg']}")
        return None, None
    st.session_state.property = prop.model_dump(mode="json")
    st.session_state.valuation = inputs.model_dump(mode="json")

    fee = notary_total_fee(inputs.appraisal_value, inputs.financing_participants)
    installment = notary_installment_value(
        fee, inputs.notary_installments, inputs.notary_method
    )
    st.caption(f"Notary Fee: {format_currency(fee)}")
    st.caption(
        f"Notary Installment: {inputs.notary_installments}x {format_currency(installment)}"
    )
    return prop, inputs
