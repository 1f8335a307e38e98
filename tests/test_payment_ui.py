from streamlit.testing.v1 import AppTest

from core import state


def calculator_app():
    import app

    app.render_calculator()


def _seed(at, payments):
    at.session_state["property"] = {
        "id": "A-101",
        "enterprise_name": "Jardim Europa",
        "construction_start_date": "2030-01-01",
        "delivery_date": "2035-06-01",
    }
    at.session_state["valuation"] = {
        "appraisal_value": 500000.0,
        "sale_value": 450000.0,
        "gross_income": 20000.0,
        "simulated_bank_installment": 3000.0,
        "financing_participants": 2,
        "installment_count": 52,
        "condition": "standard",
        "notary_method": "card",
        "notary_installments": 1,
    }
    at.session_state["payments"] = payments


def test_notary_caption(tmp_path, monkeypatch):
    monkeypatch.setattr(state, "SESSION_FILE", str(tmp_path / "s.json"))
    at = AppTest.from_function(calculator_app)
    _seed(at, [])
    at.run()
    captions = [c.value for c in at.caption]
    assert "Notary Fee: R$ 4.101,79" in captions


def test_calculate_applies_minimum_condition(tmp_path, monkeypatch):
    monkeypatch.setattr(state, "SESSION_FILE", str(tmp_path / "s.json"))
    at = AppTest.from_function(calculator_app)
    _seed(at, [{"type": "bank_financing", "value": 350000.0, "date": "2035-06-01"}])
    at.run()
    at.button(key="calculate").click().run()
    assert not at.exception
    assert at.session_state["last_outcome"] == "ok"
    types = {p["type"] for p in at.session_state["payments"]}
    assert {"signal_at_signing", "pro_soluto", "good_standing_bonus"} <= types


def test_calculate_without_property_is_incomplete(tmp_path, monkeypatch):
    monkeypatch.setattr(state, "SESSION_FILE", str(tmp_path / "s.json"))
    at = AppTest.from_function(calculator_app)
    at.session_state["valuation"] = {"sale_value": 450000.0}
    at.run()
    at.button(key="calculate").click().run()
    assert at.session_state["last_outcome"] == "incomplete"
