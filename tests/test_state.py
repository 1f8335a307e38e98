import json
import streamlit as st
from core import state


def test_save_state_ignores_widget_keys(tmp_path, monkeypatch):
    file = tmp_path / "session.json"
    monkeypatch.setattr(state, "SESSION_FILE", str(file))
    st.session_state.clear()
    st.session_state["payments"] = []
    st.session_state["add_payment"] = True
    state.save_state()
    data = json.loads(file.read_text())
    assert "add_payment" not in data
    assert "payments" in data


def test_load_state_ignores_widget_keys(tmp_path, monkeypatch):
    file = tmp_path / "session.json"
    file.write_text(json.dumps({"payments": [], "add_payment": True}))
    monkeypatch.setattr(state, "SESSION_FILE", str(file))
    st.session_state.clear()
    state.load_state()
    assert "payments" in st.session_state
    assert "add_payment" not in st.session_state


def test_load_state_tolerates_corrupt_file(tmp_path, monkeypatch):
    file = tmp_path / "session.json"
    file.write_text("{not json")
    monkeypatch.setattr(state, "SESSION_FILE", str(file))
    st.session_state.clear()
    state.load_state()
    assert "payments" not in st.session_state
