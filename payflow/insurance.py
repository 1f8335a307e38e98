"""Construction-phase insurance estimate with an injectable TTL cache."""

from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Callable, Dict, Hashable, Optional, Tuple

from payflow.calculators import add_months, months_between, nz
from payflow.models import InsuranceResult, MonthlyInsurance
from payflow.presets import INSURANCE_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


class InsuranceCache:
    """Key/value store whose entries expire ``ttl`` seconds after being set.

    Expiry is checked lazily on lookup. ``clock`` returns the current time in
    seconds and can be replaced in tests.
    """

    def __init__(
        self,
        ttl: float = INSURANCE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[Hashable, Tuple[float, InsuranceResult]] = {}

    def get(self, key: Hashable) -> Optional[InsuranceResult]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at > self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: InsuranceResult) -> None:
        self._entries[key] = (self.clock(), value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def construction_insurance(
    start: Optional[dt.date],
    delivery: Optional[dt.date],
    reference_installment,
    today: Optional[dt.date] = None,
    cache: Optional[InsuranceCache] = None,
) -> InsuranceResult:
    """Monthly insurance that grows linearly with construction progress.

    Month ``i`` of ``m`` costs ``i/(m-1)`` of the reference installment. Only
    months from today onward count toward the total.
    """

    reference = nz(reference_installment)
    if start is None or delivery is None or start > delivery or reference <= 0:
        return InsuranceResult()

    key = (start.isoformat(), delivery.isoformat(), round(reference, 2))
    if cache is not None:
        hit = cache.get(key)
        if hit is not None and hit.breakdown:
            logger.debug("insurance cache hit for %s", key)
            return hit

    today = today or dt.date.today()
    months = months_between(start, delivery) + 1
    result = InsuranceResult()
    if months > 1:
        breakdown = []
        for i in range(months):
            month = add_months(start, i)
            progress = i / (months - 1)
            breakdown.append(
                MonthlyInsurance(
                    date=month,
                    value=progress * reference,
                    progress=progress,
                    is_payable=month >= today,
                )
            )
        total = sum(m.value for m in breakdown if m.is_payable)
        result = InsuranceResult(total=total, breakdown=breakdown)

    if cache is not None:
        cache.set(key, result)
    return result
