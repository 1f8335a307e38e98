from __future__ import annotations
from typing import Literal, List, Dict, Any
from pydantic import BaseModel, Field

from payflow.presets import INCOME_COMMITMENT_LIMIT


class RuleResult(BaseModel):
    code: str
    severity: Literal["info", "warn", "critical"]
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)


def evaluate_rules(state: dict) -> List[RuleResult]:
    res: List[RuleResult] = []

    gross_income = float(state.get("gross_income", 0.0))
    peak = float(state.get("peak_commitment_pct", 0.0))
    limit_pct = float(state.get("income_limit_pct", INCOME_COMMITMENT_LIMIT * 100))
    corrected = float(state.get("corrected_pro_soluto", 0.0))
    sale_value = float(state.get("sale_value", 0.0))
    cap = float(state.get("pro_soluto_cap", 0.0))
    pro_soluto_pct = float(state.get("pro_soluto_commitment_pct", 0.0))
    installments = int(state.get("installment_count", 0) or 0)
    max_installments = int(state.get("max_installments", 0) or 0)

    if gross_income <= 0:
        res.append(
            RuleResult(
                code="NO_INCOME",
                severity="warn",
                message="No income entered; income commitment is not meaningful.",
            )
        )

    if peak > limit_pct:
        res.append(
            RuleResult(
                code="INCOME_COMMITMENT_OVER_LIMIT",
                severity="critical",
                message=f"Income commitment ({peak:.2f}%) exceeds the {limit_pct:.0f}% limit.",
                context={"actual": peak, "limit": limit_pct},
            )
        )

    if pro_soluto_pct > 100:
        res.append(
            RuleResult(
                code="PRO_SOLUTO_OVER_SALE_VALUE",
                severity="critical",
                message=f"Pro-soluto commitment ({pro_soluto_pct:.2f}%) exceeds 100% of the sale value.",
                context={"actual": pro_soluto_pct},
            )
        )

    if sale_value > 0 and cap > 0 and corrected > sale_value * cap:
        res.append(
            RuleResult(
                code="PRO_SOLUTO_OVER_CAP",
                severity="critical",
                message=f"Corrected pro-soluto exceeds {cap * 100:.2f}% of the sale value.",
                context={"actual": corrected, "limit": sale_value * cap},
            )
        )

    if max_installments > 0 and installments > max_installments:
        res.append(
            RuleResult(
                code="INSTALLMENTS_OVER_LIMIT",
                severity="critical",
                message=f"Installment count ({installments}) exceeds the maximum of {max_installments}.",
                context={"actual": installments, "limit": max_installments},
            )
        )

    if float(state.get("good_standing_bonus", 0.0)) > 0:
        res.append(
            RuleResult(
                code="GOOD_STANDING_BONUS",
                severity="info",
                message="Appraisal exceeds the sale value; a good-standing bonus was added.",
                context={"value": float(state["good_standing_bonus"])},
            )
        )

    return res


def has_blocking(res: List[RuleResult]) -> bool:
    return any(r.severity == "critical" for r in res)
