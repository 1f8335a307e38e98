from __future__ import annotations

import datetime as dt
import logging
import math
from typing import List, Optional, Sequence, Tuple

import pandas as pd
from dateutil.relativedelta import relativedelta

from payflow.models import (
    STAGED_SIGNALS,
    InsuranceResult,
    PaymentEvent,
    PriceInstallment,
    SteppedPeriod,
)
from payflow.presets import (
    BISECTION_ITERATIONS,
    BISECTION_PRECISION,
    MAX_INSTALLMENTS,
    NOTARY_BANK_SLIP_RATE,
    NOTARY_FEE_TIERS,
    NOTARY_PARTICIPANT_SURCHARGE,
    PRO_SOLUTO_CAP,
    RATE_AFTER_DELIVERY,
    RATE_BEFORE_DELIVERY,
    RATE_SOLVER_GUESS,
    RATE_SOLVER_ITERATIONS,
    RATE_SOLVER_MIN_DERIVATIVE,
    RATE_SOLVER_TOLERANCE,
    SPECIAL_ENTERPRISE,
    STEPPED_FACTORS,
)

logger = logging.getLogger(__name__)


def nz(x, default=0.0):
    """Return a float for ``x`` or a fallback value.

    Form fields arrive as ``None`` or ``NaN`` while the user is still typing;
    treating them as zero keeps the solvers from breaking mid-entry.
    """

    try:
        if x is None or (isinstance(x, float) and math.isnan(x)):
            return default
        return float(x)
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# Month arithmetic
# ---------------------------------------------------------------------------


def add_months(d: dt.date, months: int) -> dt.date:
    return d + relativedelta(months=months)


def start_of_month(d: dt.date) -> dt.date:
    return d.replace(day=1)


def months_between(start: dt.date, end: dt.date) -> int:
    """Whole months from ``start`` to ``end`` (negative when ``end`` is earlier)."""

    delta = relativedelta(end, start)
    return delta.years * 12 + delta.months


# ---------------------------------------------------------------------------
# Notary fees
# ---------------------------------------------------------------------------


def notary_fee(appraisal_value, tiers: Sequence[Tuple[float, float]] = NOTARY_FEE_TIERS) -> float:
    """Look up the notary fee for an appraisal value in the tier table."""

    value = nz(appraisal_value)
    if value <= 0:
        return 0.0
    for ceiling, fee in tiers:
        if value <= ceiling:
            return fee
    return tiers[-1][1]


def notary_total_fee(appraisal_value, participants: int = 1) -> float:
    """Tier fee plus the surcharge for each financing participant past the first."""

    base = notary_fee(appraisal_value)
    if base <= 0:
        return 0.0
    return base + NOTARY_PARTICIPANT_SURCHARGE * max(0, int(participants) - 1)


def annuity_payment(principal, rate, periods) -> float:
    """Level payment that amortizes ``principal`` over ``periods`` at ``rate``."""

    P = nz(principal)
    r = nz(rate)
    n = int(nz(periods))
    if P <= 0 or n <= 0:
        return 0.0
    if abs(r) < 1e-12:
        return P / n
    return P * r / (1 - (1 + r) ** (-n))


def notary_installment_value(total, count, method: str) -> float:
    total = nz(total)
    count = int(nz(count))
    if total <= 0 or count <= 0:
        return 0.0
    if method == "card":
        return total / count
    if method == "bank_slip":
        return annuity_payment(total, NOTARY_BANK_SLIP_RATE, count)
    raise ValueError(f"Unknown notary payment method: {method}")


# ---------------------------------------------------------------------------
# Property policy
# ---------------------------------------------------------------------------


def is_special_enterprise(enterprise_name: str) -> bool:
    return SPECIAL_ENTERPRISE.lower() in (enterprise_name or "").lower()


def pro_soluto_cap(enterprise_name: str, condition: str) -> float:
    """Maximum corrected pro-soluto as a fraction of the sale value."""

    if is_special_enterprise(enterprise_name) or condition == "special":
        return PRO_SOLUTO_CAP["special"]
    return PRO_SOLUTO_CAP["standard"]


def max_installments(enterprise_name: str, condition: str) -> int:
    return MAX_INSTALLMENTS[(is_special_enterprise(enterprise_name), condition)]


# ---------------------------------------------------------------------------
# Price-table amortization
# ---------------------------------------------------------------------------


def _monthly_rate(month: dt.date, delivery_date: dt.date) -> float:
    if start_of_month(month) < start_of_month(delivery_date):
        return RATE_BEFORE_DELIVERY
    return RATE_AFTER_DELIVERY


def grace_period_months(
    events: List[PaymentEvent], delivery_date: dt.date, today: Optional[dt.date] = None
) -> int:
    """Months of correction before the first pro-soluto installment.

    One base month, one per staged signal, plus the months already elapsed
    since delivery when the delivery date is in the past.
    """

    today = today or dt.date.today()
    grace = 1 + sum(1 for e in events if e.type in STAGED_SIGNALS)
    if delivery_date < today:
        grace += months_between(delivery_date, today)
    return grace


def _discount_factors(periods: int, delivery_date: dt.date, today: dt.date) -> List[float]:
    factors = []
    discount = 1.0
    for j in range(1, periods + 1):
        discount /= 1 + _monthly_rate(add_months(today, j), delivery_date)
        factors.append(discount)
    return factors


def _compound_grace(value: float, grace: int, delivery_date: dt.date, today: dt.date) -> float:
    for k in range(grace):
        value *= 1 + _monthly_rate(add_months(today, k), delivery_date)
    return value


def price_installment(
    principal,
    installments,
    delivery_date: Optional[dt.date],
    events: List[PaymentEvent],
    today: Optional[dt.date] = None,
) -> PriceInstallment:
    """Installment for a pro-soluto principal under the two-regime price table.

    Installments are discounted at 0.5%/month before the delivery month and
    1.5%/month from it onward. The level installment is then corrected
    through the grace period.
    """

    P = nz(principal)
    n = int(nz(installments))
    if P <= 0 or n <= 0 or delivery_date is None:
        return PriceInstallment(installment=0.0, total=0.0)
    today = today or dt.date.today()
    factor = sum(_discount_factors(n, delivery_date, today))
    if factor == 0:
        return PriceInstallment(installment=0.0, total=P)
    grace = grace_period_months(events, delivery_date, today)
    installment = _compound_grace(P / factor, grace, delivery_date, today)
    return PriceInstallment(installment=installment, total=installment * n)


def corrected_pro_soluto(
    value,
    delivery_date: Optional[dt.date],
    events: List[PaymentEvent],
    today: Optional[dt.date] = None,
) -> float:
    """Raw pro-soluto principal compounded through the grace period."""

    P = nz(value)
    if P <= 0:
        return 0.0
    if delivery_date is None:
        return P
    today = today or dt.date.today()
    grace = grace_period_months(events, delivery_date, today)
    return _compound_grace(P, grace, delivery_date, today)


def stepped_installments(
    principal,
    installments,
    delivery_date: Optional[dt.date],
    events: List[PaymentEvent],
    today: Optional[dt.date] = None,
    factors: Sequence[float] = STEPPED_FACTORS,
) -> List[SteppedPeriod]:
    """Decreasing plan: four near-equal periods paying 100/75/50/25% of the first installment."""

    n = int(nz(installments))
    if nz(principal) <= 0 or n <= 0 or delivery_date is None:
        return []
    today = today or dt.date.today()
    corrected = corrected_pro_soluto(principal, delivery_date, events, today)

    base, remainder = divmod(n, len(factors))
    lengths = [base + (1 if i < remainder else 0) for i in range(len(factors))]
    month_factor = []
    for f, length in zip(factors, lengths):
        month_factor.extend([f] * length)

    discounts = _discount_factors(n, delivery_date, today)
    weighted = sum(f * d for f, d in zip(month_factor, discounts))
    if weighted == 0:
        return []
    first = corrected / weighted

    periods = []
    month = 1
    for f, length in zip(factors, lengths):
        if length == 0:
            continue
        periods.append(
            SteppedPeriod(first_month=month, last_month=month + length - 1, installment=first * f)
        )
        month += length
    return periods


# ---------------------------------------------------------------------------
# Limit solvers
# ---------------------------------------------------------------------------


def _bisect_max(feasible, upper_bound: float) -> float:
    low, high = 0.0, max(0.0, nz(upper_bound))
    best = 0.0
    steps = 0
    for _ in range(BISECTION_ITERATIONS):
        if high - low < BISECTION_PRECISION:
            break
        steps += 1
        mid = (low + high) / 2
        if feasible(mid):
            best = mid
            low = mid
        else:
            high = mid
    logger.debug("bisection finished after %d steps at %.2f", steps, best)
    return best


def max_principal_by_income(
    max_installment,
    installments,
    delivery_date: Optional[dt.date],
    events: List[PaymentEvent],
    today: Optional[dt.date] = None,
    upper_bound: Optional[float] = None,
) -> float:
    """Largest pro-soluto principal whose installment fits ``max_installment``.

    The search runs over ``[0, upper_bound]``, defaulting the bound to the sum
    of the event values.
    """

    cap = nz(max_installment)
    if cap <= 0 or int(nz(installments)) <= 0:
        return 0.0
    today = today or dt.date.today()
    if upper_bound is None:
        upper_bound = sum(e.value for e in events)

    def fits(p):
        return price_installment(p, installments, delivery_date, events, today).installment <= cap

    return _bisect_max(fits, upper_bound)


def max_principal_by_percent_cap(
    max_corrected,
    delivery_date: Optional[dt.date],
    events: List[PaymentEvent],
    upper_bound,
    today: Optional[dt.date] = None,
) -> float:
    """Largest raw principal whose corrected value stays within ``max_corrected``."""

    cap = nz(max_corrected)
    if cap <= 0:
        return 0.0
    today = today or dt.date.today()

    def fits(p):
        return corrected_pro_soluto(p, delivery_date, events, today) <= cap

    return _bisect_max(fits, upper_bound)


def solve_rate(periods, installment, principal) -> float:
    """Periodic rate ``r`` such that ``installment`` amortizes ``principal``.

    Newton-Raphson on ``pv*(1+r)^n - pmt*((1+r)^n - 1)/r``.
    """

    n = int(nz(periods))
    pmt = nz(installment)
    pv = nz(principal)
    if n <= 0 or pmt <= 0 or pv <= 0:
        return 0.0
    r = RATE_SOLVER_GUESS
    for _ in range(RATE_SOLVER_ITERATIONS):
        try:
            g = (1 + r) ** n
            g1 = n * (1 + r) ** (n - 1)
            f = pv * g - pmt * (g - 1) / r
            df = pv * g1 - pmt * (g1 * r - (g - 1)) / (r * r)
        except (OverflowError, ZeroDivisionError):
            r /= 2
            continue
        if not (math.isfinite(f) and math.isfinite(df)):
            r /= 2
            continue
        if abs(df) < RATE_SOLVER_MIN_DERIVATIVE:
            break
        nxt = r - f / df
        if not math.isfinite(nxt):
            r /= 2
            continue
        if abs(nxt - r) < RATE_SOLVER_TOLERANCE:
            return nxt
        r = nxt
    return r


# ---------------------------------------------------------------------------
# Income commitment
# ---------------------------------------------------------------------------


def commitment_table(insurance: InsuranceResult, installment, gross_income) -> pd.DataFrame:
    """Monthly installment plus construction insurance against gross income."""

    cols = ["date", "insurance", "installment", "total", "commitment_pct", "is_payable"]
    if not insurance.breakdown:
        return pd.DataFrame(columns=cols)
    income = nz(gross_income)
    df = pd.DataFrame(
        [
            {"date": m.date, "insurance": m.value, "is_payable": m.is_payable}
            for m in insurance.breakdown
        ]
    )
    df["installment"] = nz(installment)
    df["total"] = df["insurance"] + df["installment"]
    df["commitment_pct"] = df["total"] / income * 100 if income > 0 else 0.0
    return df[cols]


def peak_commitment(insurance: InsuranceResult, installment, gross_income) -> float:
    """Highest monthly income commitment in percent over the payable months."""

    income = nz(gross_income)
    if income <= 0:
        return 0.0
    table = commitment_table(insurance, installment, income)
    payable = table[table["is_payable"].astype(bool)] if not table.empty else table
    if payable.empty:
        return nz(installment) / income * 100
    return float(payable["commitment_pct"].max())
