"""Minimum-condition allocation of signal, pro-soluto and bonuses.

``apply_minimum_condition`` takes the user's payment events and returns a new
list in which the signal at signing, the pro-soluto and the bonuses are
sized so that the plan adds up to the calculation target while respecting
the signal floor, the pro-soluto cap and the income ceiling. The input list
is never modified.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional

from payflow.calculators import (
    add_months,
    max_principal_by_income,
    max_principal_by_percent_cap,
    nz,
    pro_soluto_cap,
)
from payflow.formatters import format_currency
from payflow.models import (
    STAGED_SIGNALS,
    AllocationContext,
    PaymentEvent,
    PaymentType,
    PaymentValidation,
    event_value,
    find_event,
)
from payflow.presets import INCOME_COMMITMENT_LIMIT, SIGNAL_MINIMUM_PCT, SUM_TOLERANCE

logger = logging.getLogger(__name__)

ALLOCATED_TYPES = (
    PaymentType.SIGNAL_AT_SIGNING,
    PaymentType.PRO_SOLUTO,
    PaymentType.CAMPAIGN_BONUS,
    PaymentType.GOOD_STANDING_BONUS,
)


def effective_sale_value(sale_value, discount) -> float:
    return nz(sale_value) - nz(discount)


def good_standing_bonus(appraisal_value, sale_value) -> float:
    """Credit granted when the appraisal exceeds the sale price."""

    return max(0.0, nz(appraisal_value) - nz(sale_value))


def calculation_target(appraisal_value, sale_value, discount=0.0) -> float:
    """Amount the payment events must add up to.

    The appraisal when a good-standing bonus applies; the discounted sale
    value when both the appraisal and the discounted value sit below the sale
    price; otherwise the larger of appraisal and discounted sale value.
    """

    appraisal = nz(appraisal_value)
    sale = nz(sale_value)
    if appraisal > sale:
        return appraisal
    effective = effective_sale_value(sale, discount)
    if appraisal < sale and effective < appraisal:
        return effective
    return max(appraisal, effective)


def signal_minimum(effective_sale) -> float:
    return SIGNAL_MINIMUM_PCT * nz(effective_sale)


def validate_payment_sum(
    events: List[PaymentEvent], appraisal_value, sale_value
) -> PaymentValidation:
    """Check that the events add up to the calculation target.

    The discount only counts toward the sum when a good-standing bonus
    applies. Independently of the sum, flags a signal at signing below the
    floor and a campaign bonus without excess signal to justify it.
    """

    bonus_applies = nz(appraisal_value) > nz(sale_value)
    discount = event_value(events, PaymentType.DISCOUNT)
    actual = sum(
        e.value for e in events if bonus_applies or e.type != PaymentType.DISCOUNT
    )
    expected = calculation_target(appraisal_value, sale_value, discount)
    difference = expected - actual

    violation = None
    minimum = signal_minimum(effective_sale_value(sale_value, discount))
    signal = find_event(events, PaymentType.SIGNAL_AT_SIGNING)
    # A signal sitting exactly at the minimum may carry a campaign bonus.
    if signal is not None and signal.value < minimum - SUM_TOLERANCE:
        if find_event(events, PaymentType.CAMPAIGN_BONUS) is not None:
            violation = (
                "Campaign bonus cannot exist while the signal at signing is "
                "below the minimum."
            )
        else:
            violation = (
                f"Signal at signing ({format_currency(signal.value)}) is below the "
                f"5.5% minimum of the final unit value ({format_currency(minimum)})."
            )

    return PaymentValidation(
        is_valid=abs(difference) < SUM_TOLERANCE,
        expected=expected,
        actual=actual,
        difference=difference,
        violation=violation,
    )


def _default_pro_soluto_date(events: List[PaymentEvent], today: dt.date) -> dt.date:
    signal_dates = [e.date for e in events if e.type in STAGED_SIGNALS]
    return add_months(max(signal_dates) if signal_dates else today, 1)


def _emit(
    payment_type: PaymentType,
    value: float,
    events: List[PaymentEvent],
    default_date: dt.date,
) -> Optional[PaymentEvent]:
    if value <= 0:
        return None
    prior = find_event(events, payment_type)
    return PaymentEvent(
        type=payment_type,
        value=round(value, 2),
        date=prior.date if prior is not None else default_date,
    )


def apply_minimum_condition(
    events: List[PaymentEvent], context: AllocationContext
) -> List[PaymentEvent]:
    """Return a corrected copy of ``events`` that meets the minimum condition."""

    today = context.today or dt.date.today()
    appraisal = nz(context.appraisal_value)
    sale = nz(context.sale_value)
    discount = event_value(events, PaymentType.DISCOUNT)
    effective = effective_sale_value(sale, discount)
    bonus_applies = appraisal > sale
    bonus = good_standing_bonus(appraisal, sale)
    target = calculation_target(appraisal, sale, discount)

    excluded = set(ALLOCATED_TYPES)
    if not bonus_applies:
        excluded.add(PaymentType.DISCOUNT)
    fixed_sum = sum(e.value for e in events if e.type not in excluded)
    remaining = target - fixed_sum - bonus

    passthrough = [e for e in events if e.type not in ALLOCATED_TYPES]
    locked_date = context.delivery_date or today
    bonus_event = _emit(PaymentType.GOOD_STANDING_BONUS, bonus, events, locked_date)

    if remaining <= 0:
        logger.debug("nothing left to allocate (remaining=%.2f)", remaining)
        return passthrough + ([bonus_event] if bonus_event else [])

    # Pro-soluto ceiling: percentage cap on the corrected value.
    cap_pct = pro_soluto_cap(context.enterprise_name, context.condition)
    percent_base = max_principal_by_percent_cap(
        effective * cap_pct, context.delivery_date, events, remaining, today
    )

    # Pro-soluto ceiling: income commitment.
    # Without an installment count nothing can be deferred.
    income_ceiling = (
        nz(context.gross_income) * INCOME_COMMITMENT_LIMIT
        - nz(context.simulated_bank_installment)
    )
    income_base = max_principal_by_income(
        income_ceiling,
        context.installment_count or 0,
        context.delivery_date,
        events,
        today,
        upper_bound=remaining,
    )

    deferred = max(0.0, min(percent_base, income_base, remaining))
    signal = remaining - deferred

    # Signal floor.
    minimum = signal_minimum(effective)
    if signal < minimum:
        shift = min(minimum - signal, deferred)
        signal += shift
        deferred -= shift

    # Re-balance against the remaining amount.
    gap = signal + deferred - remaining
    if gap > SUM_TOLERANCE:
        cut = min(gap, deferred)
        deferred -= cut
        gap -= cut
        if gap > 0:
            signal -= min(gap, max(0.0, signal - minimum))
    elif gap < -SUM_TOLERANCE:
        signal += -gap

    # Campaign bonus takes the signal excess above the floor, up to its cap.
    campaign_bonus = 0.0
    if context.campaign.active and signal > minimum + SUM_TOLERANCE:
        campaign_bonus = min(signal - minimum, effective * context.campaign.percent_cap)
        signal -= campaign_bonus
        over = signal + deferred + campaign_bonus - remaining
        if over > SUM_TOLERANCE:
            deferred = max(0.0, deferred - over)

    residual = remaining - (signal + deferred + campaign_bonus)
    if residual > SUM_TOLERANCE:
        signal += residual
    elif residual < -SUM_TOLERANCE:
        cut = min(-residual, deferred)
        deferred -= cut
        residual += cut
        if residual < 0:
            signal -= min(-residual, max(0.0, signal - minimum))

    logger.debug(
        "allocated target=%.2f signal=%.2f pro_soluto=%.2f campaign=%.2f bonus=%.2f",
        target,
        signal,
        deferred,
        campaign_bonus,
        bonus,
    )

    # Rounded amounts must still add up; push the cents into the signal.
    signal_r, deferred_r, campaign_r = (round(v, 2) for v in (signal, deferred, campaign_bonus))
    signal_r = round(signal_r + round(remaining - signal_r - deferred_r - campaign_r, 2), 2)

    allocated = [
        _emit(PaymentType.SIGNAL_AT_SIGNING, signal_r, events, today),
        _emit(PaymentType.PRO_SOLUTO, deferred_r, events, _default_pro_soluto_date(events, today)),
        _emit(PaymentType.CAMPAIGN_BONUS, campaign_r, events, locked_date),
        bonus_event,
    ]
    return passthrough + [e for e in allocated if e is not None]
