"""Adapters for figures coming from outside collaborators.

Bank simulations and document extraction both hand back the same handful of
numbers. They are normalised here and merged into the form inputs the same
way regardless of where they came from.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from payflow.models import PaymentEvent, PaymentType, ValuationInputs

logger = logging.getLogger(__name__)

# payload key -> ExtractedFigures field
PAYLOAD_KEYS = {
    "appraisalValue": "appraisal_value",
    "appraisal_value": "appraisal_value",
    "grossIncome": "gross_income",
    "gross_income": "gross_income",
    "simulationInstallmentValue": "simulated_bank_installment",
    "simulated_bank_installment": "simulated_bank_installment",
    "financingValue": "financing_value",
    "financing_value": "financing_value",
}


class ExtractedFigures(BaseModel):
    appraisal_value: Optional[float] = Field(None, ge=0)
    gross_income: Optional[float] = Field(None, ge=0)
    simulated_bank_installment: Optional[float] = Field(None, ge=0)
    financing_value: Optional[float] = Field(None, ge=0)


def figures_from_payload(payload: Dict[str, Any]) -> ExtractedFigures:
    """Build ``ExtractedFigures`` from a simulation or extraction payload."""

    data = {}
    for key, value in (payload or {}).items():
        field = PAYLOAD_KEYS.get(key)
        if field is None or value is None:
            continue
        data[field] = float(value)
    return ExtractedFigures(**data)


def apply_extracted_figures(
    inputs: ValuationInputs,
    events: List[PaymentEvent],
    figures: ExtractedFigures,
    delivery_date: Optional[dt.date],
    lock_appraisal: bool = False,
    today: Optional[dt.date] = None,
) -> Tuple[ValuationInputs, List[PaymentEvent]]:
    """Merge collaborator figures into the form inputs and payment events.

    Income and the simulated installment always overwrite the form. The
    appraisal is left alone when ``lock_appraisal`` is set. A financing value
    replaces or adds the bank-financing event, dated at delivery.
    """

    update = {}
    if figures.gross_income is not None:
        update["gross_income"] = figures.gross_income
    if figures.simulated_bank_installment is not None:
        update["simulated_bank_installment"] = figures.simulated_bank_installment
    if figures.appraisal_value is not None and not lock_appraisal:
        update["appraisal_value"] = figures.appraisal_value
    new_inputs = inputs.model_copy(update=update)

    new_events = list(events)
    if figures.financing_value is not None:
        financing = PaymentEvent(
            type=PaymentType.BANK_FINANCING,
            value=figures.financing_value,
            date=delivery_date or today or dt.date.today(),
        )
        for i, e in enumerate(new_events):
            if e.type == PaymentType.BANK_FINANCING:
                new_events[i] = financing
                break
        else:
            new_events.append(financing)
    logger.debug("applied extracted figures: %s", sorted(update))
    return new_inputs, new_events
