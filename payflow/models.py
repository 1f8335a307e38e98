from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class PaymentType(str, Enum):
    SIGNAL_AT_SIGNING = "signal_at_signing"
    SIGNAL_1 = "signal_1"
    SIGNAL_2 = "signal_2"
    SIGNAL_3 = "signal_3"
    PRO_SOLUTO = "pro_soluto"
    GOOD_STANDING_BONUS = "good_standing_bonus"
    DISCOUNT = "discount"
    CAMPAIGN_BONUS = "campaign_bonus"
    FGTS = "fgts"
    BANK_FINANCING = "bank_financing"


STAGED_SIGNALS = (PaymentType.SIGNAL_1, PaymentType.SIGNAL_2, PaymentType.SIGNAL_3)

# Dated at delivery whenever the delivery date is known.
LOCKED_DATE_TYPES = (
    PaymentType.GOOD_STANDING_BONUS,
    PaymentType.BANK_FINANCING,
    PaymentType.CAMPAIGN_BONUS,
    PaymentType.FGTS,
    PaymentType.DISCOUNT,
)

# Only the allocator creates these.
ALLOCATOR_ONLY_TYPES = (PaymentType.GOOD_STANDING_BONUS, PaymentType.CAMPAIGN_BONUS)


class PaymentEvent(BaseModel):
    type: PaymentType
    value: float = Field(0.0, ge=0)
    date: dt.date


class PaymentPlan(BaseModel):
    """A list of payment events that respects the ordering rules.

    Each type appears at most once and staged signals build on each other:
    ``signal_2`` needs ``signal_1`` and ``signal_3`` needs both.
    """

    events: List[PaymentEvent] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_events(self):
        types = [e.type for e in self.events]
        dupes = {t.value for t in types if types.count(t) > 1}
        if dupes:
            raise ValueError(f"Duplicate payment types: {', '.join(sorted(dupes))}")
        present = set(types)
        if PaymentType.SIGNAL_2 in present and PaymentType.SIGNAL_1 not in present:
            raise ValueError("signal_2 requires signal_1")
        if PaymentType.SIGNAL_3 in present and not {
            PaymentType.SIGNAL_1,
            PaymentType.SIGNAL_2,
        } <= present:
            raise ValueError("signal_3 requires signal_1 and signal_2")
        return self


class ValuationInputs(BaseModel):
    appraisal_value: float = Field(0.0, ge=0)
    sale_value: float = Field(0.0, ge=0)
    gross_income: float = Field(0.0, ge=0)
    simulated_bank_installment: float = Field(0.0, ge=0)
    financing_participants: int = Field(1, ge=1, le=4)
    installment_count: Optional[int] = Field(None, gt=0)
    condition: Literal["standard", "special"] = "standard"
    notary_method: Literal["card", "bank_slip"] = "card"
    notary_installments: int = 1

    @model_validator(mode="after")
    def _check_notary_installments(self):
        n = self.notary_installments
        if self.notary_method == "card" and not 1 <= n <= 12:
            raise ValueError("Card notary installments must be between 1 and 12")
        if self.notary_method == "bank_slip" and n not in (36, 40):
            raise ValueError("Bank slip notary installments must be 36 or 40")
        return self


class Property(BaseModel):
    id: str = ""
    enterprise_name: str = ""
    construction_start_date: Optional[dt.date] = None
    delivery_date: Optional[dt.date] = None

    @model_validator(mode="after")
    def _check_schedule(self):
        start, delivery = self.construction_start_date, self.delivery_date
        if start and delivery and start > delivery:
            raise ValueError("Construction start must not be after delivery")
        return self


class CampaignSettings(BaseModel):
    active: bool = False
    percent_cap: float = Field(0.0, ge=0, le=1)


class AllocationContext(BaseModel):
    """Everything the minimum-condition allocator reads besides the events."""

    appraisal_value: float = 0.0
    sale_value: float = 0.0
    gross_income: float = 0.0
    simulated_bank_installment: float = 0.0
    installment_count: Optional[int] = None
    delivery_date: Optional[dt.date] = None
    enterprise_name: str = ""
    condition: Literal["standard", "special"] = "standard"
    campaign: CampaignSettings = Field(default_factory=CampaignSettings)
    today: Optional[dt.date] = None

    @classmethod
    def from_inputs(
        cls,
        inputs: ValuationInputs,
        prop: Property,
        campaign: Optional[CampaignSettings] = None,
        today: Optional[dt.date] = None,
    ) -> "AllocationContext":
        return cls(
            appraisal_value=inputs.appraisal_value,
            sale_value=inputs.sale_value,
            gross_income=inputs.gross_income,
            simulated_bank_installment=inputs.simulated_bank_installment,
            installment_count=inputs.installment_count,
            delivery_date=prop.delivery_date,
            enterprise_name=prop.enterprise_name,
            condition=inputs.condition,
            campaign=campaign or CampaignSettings(),
            today=today,
        )


class MonthlyInsurance(BaseModel):
    date: dt.date
    value: float
    progress: float
    is_payable: bool


class InsuranceResult(BaseModel):
    total: float = 0.0
    breakdown: List[MonthlyInsurance] = Field(default_factory=list)


class PriceInstallment(BaseModel):
    installment: float = 0.0
    total: float = 0.0


class SteppedPeriod(BaseModel):
    first_month: int
    last_month: int
    installment: float


class PaymentValidation(BaseModel):
    is_valid: bool
    expected: float
    actual: float
    difference: float
    violation: Optional[str] = None


class CostTotals(BaseModel):
    entry: float = 0.0
    pro_soluto: float = 0.0
    financed: float = 0.0
    notary: float = 0.0
    insurance: float = 0.0
    total: float = 0.0


class ComputationResult(BaseModel):
    pro_soluto_value: float = 0.0
    corrected_pro_soluto: float = 0.0
    installment_count: int = 0
    installment: float = 0.0
    total_with_interest: float = 0.0
    effective_rate: float = 0.0
    income_commitment_pct: float = 0.0
    pro_soluto_commitment_pct: float = 0.0
    insurance: InsuranceResult = Field(default_factory=InsuranceResult)
    notary_fee: float = 0.0
    notary_installment: float = 0.0
    good_standing_bonus: float = 0.0
    effective_sale_value: float = 0.0
    totals: CostTotals = Field(default_factory=CostTotals)
    stepped: List[SteppedPeriod] = Field(default_factory=list)
    validation: Optional[PaymentValidation] = None


class FlowStatus(str, Enum):
    OK = "ok"
    INCOMPLETE = "incomplete"
    NOT_CORRECTED = "not_corrected"
    INFEASIBLE = "infeasible"


def event_value(events: List[PaymentEvent], payment_type: PaymentType) -> float:
    for e in events:
        if e.type == payment_type:
            return e.value
    return 0.0


def find_event(
    events: List[PaymentEvent], payment_type: PaymentType
) -> Optional[PaymentEvent]:
    return next((e for e in events if e.type == payment_type), None)


def available_payment_types(events: List[PaymentEvent]) -> List[PaymentType]:
    """Types the user may still add to ``events``."""

    present = {e.type for e in events}
    out = []
    for t in PaymentType:
        if t in present or t in ALLOCATOR_ONLY_TYPES:
            continue
        if t == PaymentType.SIGNAL_2 and PaymentType.SIGNAL_1 not in present:
            continue
        if t == PaymentType.SIGNAL_3 and PaymentType.SIGNAL_2 not in present:
            continue
        out.append(t)
    return out


def ensure_locked_dates(
    events: List[PaymentEvent], delivery_date: Optional[dt.date]
) -> List[PaymentEvent]:
    """Return a copy of ``events`` with locked types dated at delivery."""

    if delivery_date is None:
        return list(events)
    return [
        e.model_copy(update={"date": delivery_date}) if e.type in LOCKED_DATE_TYPES else e
        for e in events
    ]
