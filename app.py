import json
import logging
import os

import streamlit as st

from core.integrations import apply_extracted_figures, figures_from_payload
from core.state import load_state, save_state
from core.version import __version__
from payflow.flow import compute_payment_flow
from payflow.insurance import InsuranceCache
from ui.dashboard import render_results
from ui.payments import events_to_state, render_payments_editor
from ui.property import render_property_section
from ui.sidebar import render_campaign_sidebar

logger = logging.getLogger(__name__)


@st.cache_resource
def insurance_cache() -> InsuranceCache:
    return InsuranceCache()


def configure_logging():
    level = os.environ.get("PAYFLOW_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def render_simulation_import(prop, inputs, events):
    """Merge figures pasted from a bank simulation or document extraction."""
    with st.expander("Import Simulation"):
        raw = st.text_area("Simulation JSON", key="simulation_json")
        lock = st.checkbox("Keep current appraisal value", key="lock_appraisal")
        if not st.button("Apply Simulation", key="apply_simulation"):
            return
        try:
            figures = figures_from_payload(json.loads(raw or "{}"))
        except ValueError as exc:
            st.error(f"Could not read simulation: {exc}")
            return
        new_inputs, new_events = apply_extracted_figures(
            inputs, events, figures, prop.delivery_date, lock_appraisal=lock
        )
        st.session_state.valuation = new_inputs.model_dump(mode="json")
        st.session_state.payments = events_to_state(new_events)
        save_state()
        st.rerun()


def render_calculator():
    """Main payment-flow form: inputs on the left, payments on the right."""
    campaign = render_campaign_sidebar()
    left, right = st.columns(2)
    with left:
        prop, inputs = render_property_section()
    with right:
        events = render_payments_editor(prop.delivery_date if prop else None)

    if prop is None or inputs is None or events is None:
        return None
    render_simulation_import(prop, inputs, events)
    save_state()

    if not st.button("Calculate", type="primary", key="calculate"):
        return None
    outcome = compute_payment_flow(
        inputs, events, prop, campaign, cache=insurance_cache()
    )
    if outcome.attempts:
        st.session_state.payments = events_to_state(outcome.events)
        save_state()
    st.session_state["last_outcome"] = outcome.status.value
    render_results(outcome, inputs.gross_income)
    return outcome


def main():
    configure_logging()
    st.set_page_config(page_title="Payment Flow Simulator", layout="wide")
    load_state()
    st.title("Payment Flow Simulator")
    st.caption(f"v{__version__}")
    render_calculator()


if __name__ == "__main__":
    main()
