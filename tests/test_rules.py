from core.rules import evaluate_rules, has_blocking


def _codes(state):
    return {r.code for r in evaluate_rules(state)}


BASE = {
    "gross_income": 20000,
    "peak_commitment_pct": 30.0,
    "corrected_pro_soluto": 50000,
    "sale_value": 450000,
    "pro_soluto_cap": 0.1499,
    "pro_soluto_commitment_pct": 11.1,
    "installment_count": 52,
    "max_installments": 52,
}


def test_clean_state_has_no_blocking():
    res = evaluate_rules(BASE)
    assert not has_blocking(res)
    assert _codes(BASE) == set()


def test_income_commitment_over_limit():
    codes = _codes({**BASE, "peak_commitment_pct": 50.5})
    assert "INCOME_COMMITMENT_OVER_LIMIT" in codes
    assert "INCOME_COMMITMENT_OVER_LIMIT" not in _codes({**BASE, "peak_commitment_pct": 50.0})


def test_pro_soluto_over_cap_and_sale_value():
    assert "PRO_SOLUTO_OVER_CAP" in _codes({**BASE, "corrected_pro_soluto": 70000})
    assert "PRO_SOLUTO_OVER_SALE_VALUE" in _codes({**BASE, "pro_soluto_commitment_pct": 101})


def test_installments_over_limit():
    res = evaluate_rules({**BASE, "installment_count": 60})
    assert "INSTALLMENTS_OVER_LIMIT" in {r.code for r in res}
    assert has_blocking(res)


def test_no_income_is_a_warning():
    res = evaluate_rules({**BASE, "gross_income": 0})
    no_income = next(r for r in res if r.code == "NO_INCOME")
    assert no_income.severity == "warn"
    assert not has_blocking(res)


def test_good_standing_bonus_info():
    res = evaluate_rules({**BASE, "good_standing_bonus": 50000})
    info = next(r for r in res if r.code == "GOOD_STANDING_BONUS")
    assert info.severity == "info"
    assert info.context["value"] == 50000
