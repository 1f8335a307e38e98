"""Brazilian currency and percentage formatting helpers."""

from __future__ import annotations

import math
import re
from typing import Optional, Union

CURRENCY_SYMBOL = "R$"


def _group_thousands(amount: float) -> str:
    # 1234567.891 -> "1.234.567,89"
    text = f"{amount:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def cents_to_display(cents, include_symbol: bool = True) -> str:
    """Render an integer amount of cents as ``R$ 1.234,56``.

    ``None``, NaN and values that cannot be read as numbers show as zero so
    partially filled forms never break the layout.
    """

    try:
        value = float(cents)
    except (TypeError, ValueError):
        value = float("nan")
    if not math.isfinite(value):
        value = 0.0
    amount = value / 100
    text = _group_thousands(abs(amount))
    if amount < 0:
        text = "-" + text
    return f"{CURRENCY_SYMBOL} {text}" if include_symbol else text


def display_to_cents(text: Union[str, int, float, None]) -> Optional[int]:
    """Parse ``"R$ 1.234,56"`` (or a plain number) into integer cents.

    Returns ``None`` for empty or unparseable input. Halves round up.
    """

    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        value = float(text)
    else:
        cleaned = str(text).replace(CURRENCY_SYMBOL, "").strip()
        cleaned = re.sub(r"\s+", "", cleaned)
        if not cleaned:
            return None
        cleaned = cleaned.replace(".", "").replace(",", ".")
        try:
            value = float(cleaned)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return int(math.floor(value * 100 + 0.5))


def format_currency(value, include_symbol: bool = True) -> str:
    """Format an amount expressed in reais."""

    try:
        cents = float(value) * 100
    except (TypeError, ValueError):
        cents = 0.0
    return cents_to_display(cents, include_symbol=include_symbol)


def format_percentage(fraction, decimals: int = 2) -> str:
    try:
        value = float(fraction)
    except (TypeError, ValueError):
        return "N/A"
    if not math.isfinite(value):
        return "N/A"
    return f"{value * 100:.{decimals}f}%".replace(".", ",")
