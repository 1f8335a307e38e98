"""Form-submission pipeline: validate, auto-correct, check rules, compute results."""

from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from core.rules import RuleResult, evaluate_rules, has_blocking
from payflow.allocator import (
    apply_minimum_condition,
    effective_sale_value,
    good_standing_bonus,
    validate_payment_sum,
)
from payflow.calculators import (
    corrected_pro_soluto,
    max_installments,
    notary_installment_value,
    notary_total_fee,
    peak_commitment,
    price_installment,
    pro_soluto_cap,
    solve_rate,
    stepped_installments,
)
from payflow.formatters import format_currency
from payflow.insurance import InsuranceCache, construction_insurance
from payflow.models import (
    AllocationContext,
    CampaignSettings,
    ComputationResult,
    CostTotals,
    FlowStatus,
    PaymentEvent,
    PaymentPlan,
    PaymentType,
    PaymentValidation,
    Property,
    ValuationInputs,
    ensure_locked_dates,
    event_value,
)
from payflow.presets import MAX_ALLOCATION_ATTEMPTS

logger = logging.getLogger(__name__)

ENTRY_TYPES = (
    PaymentType.SIGNAL_AT_SIGNING,
    PaymentType.SIGNAL_1,
    PaymentType.SIGNAL_2,
    PaymentType.SIGNAL_3,
    PaymentType.DISCOUNT,
    PaymentType.CAMPAIGN_BONUS,
)
FINANCED_TYPES = (PaymentType.BANK_FINANCING, PaymentType.FGTS)


class FlowOutcome(BaseModel):
    status: FlowStatus
    events: List[PaymentEvent] = Field(default_factory=list)
    result: Optional[ComputationResult] = None
    violation: Optional[str] = None
    validation: Optional[PaymentValidation] = None
    corrections: List[str] = Field(default_factory=list)
    rules: List[RuleResult] = Field(default_factory=list)
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.status == FlowStatus.OK


def _sum_message(validation: PaymentValidation) -> str:
    return (
        f"Payments add up to {format_currency(validation.actual)} but "
        f"{format_currency(validation.expected)} is required."
    )


def cost_totals(
    events: List[PaymentEvent], notary_fee: float, insurance_total: float
) -> CostTotals:
    entry = sum(e.value for e in events if e.type in ENTRY_TYPES)
    pro_soluto = event_value(events, PaymentType.PRO_SOLUTO)
    financed = sum(e.value for e in events if e.type in FINANCED_TYPES)
    return CostTotals(
        entry=entry,
        pro_soluto=pro_soluto,
        financed=financed,
        notary=notary_fee,
        insurance=insurance_total,
        total=entry + pro_soluto + financed + notary_fee + insurance_total,
    )


def compute_payment_flow(
    inputs: ValuationInputs,
    events: List[PaymentEvent],
    prop: Optional[Property],
    campaign: Optional[CampaignSettings] = None,
    today: Optional[dt.date] = None,
    cache: Optional[InsuranceCache] = None,
) -> FlowOutcome:
    """Run the full payment-flow computation for one form submission.

    Invalid plans are handed to the minimum-condition allocator and
    re-validated up to ``MAX_ALLOCATION_ATTEMPTS`` times. Business rules that
    cannot be auto-corrected stop the computation with ``INFEASIBLE``.
    """

    today = today or dt.date.today()
    campaign = campaign or CampaignSettings()
    if prop is None or (not prop.id and not prop.enterprise_name):
        return FlowOutcome(
            status=FlowStatus.INCOMPLETE,
            events=list(events),
            violation="Select a property before calculating.",
        )
    if prop.delivery_date is None:
        return FlowOutcome(
            status=FlowStatus.INCOMPLETE,
            events=list(events),
            violation="The selected property has no delivery date.",
        )
    if prop.construction_start_date is None:
        return FlowOutcome(
            status=FlowStatus.INCOMPLETE,
            events=list(events),
            violation="The selected property has no construction start date.",
        )
    if inputs.sale_value <= 0:
        return FlowOutcome(
            status=FlowStatus.INCOMPLETE,
            events=list(events),
            violation="Sale value must be greater than zero.",
        )

    delivery = prop.delivery_date
    current = PaymentPlan(events=ensure_locked_dates(events, delivery)).events
    context = AllocationContext.from_inputs(inputs, prop, campaign, today)

    validation = validate_payment_sum(current, inputs.appraisal_value, inputs.sale_value)
    corrections: List[str] = []
    attempts = 0
    while not validation.is_valid or validation.violation:
        if attempts >= MAX_ALLOCATION_ATTEMPTS:
            message = validation.violation or _sum_message(validation)
            logger.warning("could not auto-correct after %d attempts: %s", attempts, message)
            return FlowOutcome(
                status=FlowStatus.NOT_CORRECTED,
                events=current,
                violation=message,
                validation=validation,
                corrections=corrections,
                attempts=attempts,
            )
        corrections.append(validation.violation or _sum_message(validation))
        current = apply_minimum_condition(current, context)
        attempts += 1
        validation = validate_payment_sum(current, inputs.appraisal_value, inputs.sale_value)

    if attempts:
        logger.info("payment plan corrected in %d attempt(s)", attempts)

    n = inputs.installment_count or 0
    pro_soluto = event_value(current, PaymentType.PRO_SOLUTO)
    price = price_installment(pro_soluto, n, delivery, current, today)
    corrected = corrected_pro_soluto(pro_soluto, delivery, current, today)
    insurance = construction_insurance(
        prop.construction_start_date,
        delivery,
        inputs.simulated_bank_installment,
        today=today,
        cache=cache,
    )
    peak = peak_commitment(insurance, price.installment, inputs.gross_income)
    pro_soluto_pct = corrected / inputs.sale_value * 100 if inputs.sale_value > 0 else 0.0
    bonus = good_standing_bonus(inputs.appraisal_value, inputs.sale_value)

    rules = evaluate_rules(
        {
            "gross_income": inputs.gross_income,
            "peak_commitment_pct": peak,
            "corrected_pro_soluto": corrected,
            "sale_value": inputs.sale_value,
            "pro_soluto_cap": pro_soluto_cap(prop.enterprise_name, inputs.condition),
            "pro_soluto_commitment_pct": pro_soluto_pct,
            "installment_count": n,
            "max_installments": max_installments(prop.enterprise_name, inputs.condition),
            "good_standing_bonus": bonus,
        }
    )
    if has_blocking(rules):
        blocking = next(r for r in rules if r.severity == "critical")
        logger.info("payment plan infeasible: %s", blocking.code)
        return FlowOutcome(
            status=FlowStatus.INFEASIBLE,
            events=current,
            violation=blocking.message,
            validation=validation,
            corrections=corrections,
            rules=rules,
            attempts=attempts,
        )

    notary = notary_total_fee(inputs.appraisal_value, inputs.financing_participants)
    discount = event_value(current, PaymentType.DISCOUNT)
    result = ComputationResult(
        pro_soluto_value=pro_soluto,
        corrected_pro_soluto=corrected,
        installment_count=n,
        installment=price.installment,
        total_with_interest=price.total,
        effective_rate=solve_rate(n, price.installment, pro_soluto),
        income_commitment_pct=peak,
        pro_soluto_commitment_pct=pro_soluto_pct,
        insurance=insurance,
        notary_fee=notary,
        notary_installment=notary_installment_value(
            notary, inputs.notary_installments, inputs.notary_method
        ),
        good_standing_bonus=bonus,
        effective_sale_value=effective_sale_value(inputs.sale_value, discount),
        totals=cost_totals(current, notary, insurance.total),
        stepped=stepped_installments(pro_soluto, n, delivery, current, today),
        validation=validation,
    )
    return FlowOutcome(
        status=FlowStatus.OK,
        events=current,
        result=result,
        validation=validation,
        corrections=corrections,
        rules=rules,
        attempts=attempts,
    )
