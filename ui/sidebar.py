import streamlit as st

from payflow.models import CampaignSettings
from payflow.presets import DISCLAIMER


def render_campaign_sidebar() -> CampaignSettings:
    """Sidebar toggle for the signal campaign bonus."""
    st.session_state.setdefault("campaign", {"active": False, "percent_cap": 0.0})
    c = st.session_state.campaign

    st.sidebar.header("Campaign")
    c["active"] = st.sidebar.checkbox("Signal campaign active", value=bool(c.get("active")))
    pct = st.sidebar.number_input(
        "Campaign cap (% of sale value)",
        min_value=0.0,
        max_value=100.0,
        value=float(c.get("percent_cap", 0.0)) * 100,
        disabled=not c["active"],
    )
    c["percent_cap"] = pct / 100
    st.sidebar.caption(DISCLAIMER)
    return CampaignSettings(**c)
