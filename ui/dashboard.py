import pandas as pd
import streamlit as st

from payflow.calculators import commitment_table
from payflow.formatters import format_currency
from payflow.models import FlowStatus
from payflow.presets import PAYMENT_LABELS


def render_rules(rules):
    for r in rules:
        if r.severity == "critical":
            st.error(f"[{r.code}] {r.message}")
        elif r.severity == "warn":
            st.warning(f"[{r.code}] {r.message}")
        else:
            st.info(f"[{r.code}] {r.message}")


def render_results(outcome, gross_income: float = 0.0):
    """Render the outcome of a payment-flow computation."""
    st.header("Results")
    for message in outcome.corrections:
        st.caption(f"Corrected: {message}")

    if outcome.status == FlowStatus.INCOMPLETE:
        st.warning(outcome.violation)
        return
    if outcome.status == FlowStatus.NOT_CORRECTED:
        st.error(f"Could not auto-correct the payment plan: {outcome.violation}")
        return
    render_rules(outcome.rules)
    if outcome.status == FlowStatus.INFEASIBLE:
        return

    res = outcome.result
    cols = st.columns(4)
    cols[0].metric("Pro-Soluto", format_currency(res.pro_soluto_value))
    cols[1].metric("Installment", f"{res.installment_count}x {format_currency(res.installment)}")
    cols[2].metric("Income Commitment", f"{res.income_commitment_pct:.2f}%")
    cols[3].metric("Pro-Soluto Commitment", f"{res.pro_soluto_commitment_pct:.2f}%")

    cols = st.columns(4)
    cols[0].metric("Total with Interest", format_currency(res.total_with_interest))
    cols[1].metric("Monthly Rate", f"{res.effective_rate * 100:.4f}%")
    cols[2].metric("Construction Insurance", format_currency(res.insurance.total))
    cols[3].metric("Notary", f"{format_currency(res.notary_fee)}")
    st.caption(f"Notary Installment: {format_currency(res.notary_installment)}")

    st.subheader("Payment Plan")
    plan = pd.DataFrame(
        [
            {
                "Payment": PAYMENT_LABELS.get(e.type.value, e.type.value),
                "Value": format_currency(e.value),
                "Date": e.date.strftime("%d/%m/%Y"),
            }
            for e in outcome.events
        ]
    )
    st.dataframe(plan, hide_index=True)

    t = res.totals
    st.caption(
        f"Entry: {format_currency(t.entry)} | Pro-Soluto: {format_currency(t.pro_soluto)} | "
        f"Financed: {format_currency(t.financed)} | Total Cost: {format_currency(t.total)}"
    )

    if res.stepped:
        st.subheader("Stepped Alternative")
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "Months": f"{p.first_month}-{p.last_month}",
                        "Installment": format_currency(p.installment),
                    }
                    for p in res.stepped
                ]
            ),
            hide_index=True,
        )

    table = commitment_table(res.insurance, res.installment, gross_income)
    if not table.empty:
        st.subheader("Monthly Commitment")
        st.dataframe(table, hide_index=True)
