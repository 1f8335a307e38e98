from datetime import date

import pytest
from pydantic import ValidationError

from payflow.flow import compute_payment_flow
from payflow.insurance import InsuranceCache
from payflow.models import (
    CampaignSettings,
    FlowStatus,
    PaymentEvent,
    PaymentType,
    Property,
    ValuationInputs,
    event_value,
)
from payflow.presets import MAX_ALLOCATION_ATTEMPTS

TODAY = date(2026, 1, 15)
DELIVERY = date(2028, 6, 1)
PROP = Property(
    id="A-101",
    enterprise_name="Jardim Europa",
    construction_start_date=date(2025, 6, 1),
    delivery_date=DELIVERY,
)


def _inputs(**kw):
    base = dict(
        appraisal_value=500000,
        sale_value=450000,
        gross_income=20000,
        simulated_bank_installment=3000,
        financing_participants=2,
        installment_count=52,
    )
    base.update(kw)
    return ValuationInputs(**base)


def _financing(value):
    return [PaymentEvent(type=PaymentType.BANK_FINANCING, value=value, date=TODAY)]


def test_incomplete_inputs_stop_early():
    out = compute_payment_flow(_inputs(), _financing(1), None, today=TODAY)
    assert out.status == FlowStatus.INCOMPLETE
    no_delivery = PROP.model_copy(update={"delivery_date": None})
    out = compute_payment_flow(_inputs(), _financing(1), no_delivery, today=TODAY)
    assert out.status == FlowStatus.INCOMPLETE
    out = compute_payment_flow(_inputs(sale_value=0), _financing(1), PROP, today=TODAY)
    assert out.status == FlowStatus.INCOMPLETE
    assert out.result is None


def test_missing_construction_start_is_incomplete():
    no_start = PROP.model_copy(update={"construction_start_date": None})
    out = compute_payment_flow(_inputs(), _financing(350000), no_start, today=TODAY)
    assert out.status == FlowStatus.INCOMPLETE
    assert "construction start" in out.violation
    assert out.result is None
    assert out.attempts == 0


def test_flow_corrects_and_computes():
    cache = InsuranceCache()
    out = compute_payment_flow(_inputs(), _financing(350000), PROP, today=TODAY, cache=cache)
    assert out.status == FlowStatus.OK
    assert out.ok
    assert 1 <= out.attempts <= MAX_ALLOCATION_ATTEMPTS
    assert out.corrections
    res = out.result
    assert res.good_standing_bonus == 50000
    assert event_value(out.events, PaymentType.GOOD_STANDING_BONUS) == 50000
    assert res.pro_soluto_value > 0
    assert res.installment > 0
    assert res.total_with_interest == pytest.approx(res.installment * 52)
    assert res.effective_rate > 0
    assert res.notary_fee == pytest.approx(3991.79 + 110)
    assert res.notary_installment == pytest.approx(res.notary_fee)
    assert res.income_commitment_pct < 50
    assert res.totals.total == pytest.approx(450000 + res.notary_fee + res.insurance.total, abs=0.02)
    assert len(res.stepped) == 4
    assert len(cache) == 1


def test_locked_dates_follow_delivery():
    out = compute_payment_flow(_inputs(), _financing(350000), PROP, today=TODAY)
    for e in out.events:
        if e.type in (PaymentType.BANK_FINANCING, PaymentType.GOOD_STANDING_BONUS):
            assert e.date == DELIVERY


def test_valid_plan_needs_no_correction():
    first = compute_payment_flow(_inputs(), _financing(350000), PROP, today=TODAY)
    again = compute_payment_flow(_inputs(), first.events, PROP, today=TODAY)
    assert again.status == FlowStatus.OK
    assert again.attempts == 0
    assert again.corrections == []


def test_gives_up_after_bounded_attempts():
    inputs = _inputs(appraisal_value=200000, sale_value=200000)
    out = compute_payment_flow(inputs, _financing(195000), PROP, today=TODAY)
    assert out.status == FlowStatus.NOT_CORRECTED
    assert out.attempts == MAX_ALLOCATION_ATTEMPTS
    assert "below" in out.violation
    assert out.result is None


def test_installments_over_ceiling_is_infeasible():
    out = compute_payment_flow(_inputs(installment_count=70), _financing(350000), PROP, today=TODAY)
    assert out.status == FlowStatus.INFEASIBLE
    assert "INSTALLMENTS_OVER_LIMIT" in {r.code for r in out.rules}
    assert out.result is None


def test_special_enterprise_allows_sixty_installments():
    prop = PROP.model_copy(update={"enterprise_name": "Reserva Parque Clube"})
    out = compute_payment_flow(_inputs(installment_count=60), _financing(350000), prop, today=TODAY)
    assert out.status == FlowStatus.OK


def test_campaign_settings_flow_through():
    campaign = CampaignSettings(active=True, percent_cap=0.02)
    out = compute_payment_flow(_inputs(), _financing(350000), PROP, campaign, today=TODAY)
    assert out.status == FlowStatus.OK
    assert event_value(out.events, PaymentType.CAMPAIGN_BONUS) > 0


def test_broken_signal_order_rejected():
    events = _financing(350000) + [
        PaymentEvent(type=PaymentType.SIGNAL_2, value=1000, date=TODAY)
    ]
    with pytest.raises(ValidationError):
        compute_payment_flow(_inputs(), events, PROP, today=TODAY)
