from datetime import date

from core.integrations import apply_extracted_figures, figures_from_payload
from payflow.models import PaymentEvent, PaymentType, ValuationInputs, event_value

DELIVERY = date(2028, 6, 1)


def test_payload_accepts_both_key_styles():
    camel = figures_from_payload(
        {
            "appraisalValue": 500000,
            "grossIncome": "12000.50",
            "simulationInstallmentValue": 3100,
            "financingValue": 350000,
            "unrelated": "x",
        }
    )
    snake = figures_from_payload(
        {
            "appraisal_value": 500000,
            "gross_income": 12000.5,
            "simulated_bank_installment": 3100,
            "financing_value": 350000,
        }
    )
    assert camel == snake
    assert camel.gross_income == 12000.5


def test_apply_figures_updates_inputs_and_adds_financing():
    inputs = ValuationInputs(appraisal_value=400000, sale_value=450000)
    figures = figures_from_payload(
        {"appraisalValue": 500000, "grossIncome": 20000, "financingValue": 350000}
    )
    new_inputs, events = apply_extracted_figures(inputs, [], figures, DELIVERY)
    assert new_inputs.appraisal_value == 500000
    assert new_inputs.gross_income == 20000
    assert inputs.gross_income == 0
    assert event_value(events, PaymentType.BANK_FINANCING) == 350000
    assert events[0].date == DELIVERY


def test_apply_figures_replaces_financing_and_respects_lock():
    inputs = ValuationInputs(appraisal_value=400000, sale_value=450000)
    existing = [
        PaymentEvent(type=PaymentType.SIGNAL_AT_SIGNING, value=30000, date=date(2026, 1, 15)),
        PaymentEvent(type=PaymentType.BANK_FINANCING, value=300000, date=DELIVERY),
    ]
    figures = figures_from_payload({"appraisalValue": 500000, "financingValue": 320000})
    new_inputs, events = apply_extracted_figures(
        inputs, existing, figures, DELIVERY, lock_appraisal=True
    )
    assert new_inputs.appraisal_value == 400000
    assert [e.type for e in events] == [PaymentType.SIGNAL_AT_SIGNING, PaymentType.BANK_FINANCING]
    assert event_value(events, PaymentType.BANK_FINANCING) == 320000
