"""
Currency Conversion

Rates are expressed relative to an anchor currency (USD by default):
rates[X] is "units of X per 1 unit of anchor". A conversion goes
source -> anchor -> target, so no pairwise table is needed.

DESIGN DECISION: A currency missing from the table (or with a zero rate)
is converted at rate 1 instead of raising. One bad entry must not break
the whole dashboard. The substitution is logged as a warning, because it
silently skews totals.
"""

import math
from typing import Mapping, Union

import structlog

from src.models.ledger import ANCHOR_CURRENCY, DEFAULT_RATES, Currency

logger = structlog.get_logger(__name__)

CurrencyLike = Union[Currency, str]
RateTable = Mapping[str, float]


def normalize_currency(value: CurrencyLike) -> str:
    """
    Normalize a currency code to its upper-case string form.

    Raises:
        ValueError: If the value is not a 3-letter code
    """
    if isinstance(value, Currency):
        return value.value
    normalized = str(value).strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def normalize_rates(rates: Mapping[CurrencyLike, object] | None) -> dict[str, float]:
    """
    Clean a user-edited rate table.

    Keys are normalized, non-numeric, non-finite and non-positive
    values are dropped, and the anchor currency is pinned to 1.
    """
    cleaned: dict[str, float] = {}
    for code, raw in (rates or DEFAULT_RATES).items():
        try:
            key = normalize_currency(code)
            rate = float(raw)
        except (TypeError, ValueError):
            logger.warning("rate_dropped", currency=str(code), rate=str(raw))
            continue
        if not math.isfinite(rate) or rate <= 0:
            logger.warning("rate_dropped", currency=key, rate=str(raw))
            continue
        cleaned[key] = rate
    cleaned[ANCHOR_CURRENCY.value] = 1.0
    return cleaned


def _rate_for(currency: str, rates: RateTable) -> float:
    rate = rates.get(currency)
    if not rate:
        logger.warning("missing_exchange_rate", currency=currency, assumed_rate=1.0)
        return 1.0
    return rate


def convert(
    amount: float,
    from_currency: CurrencyLike,
    to_currency: CurrencyLike,
    rates: RateTable,
) -> float:
    """
    Convert an amount between currencies through the anchor currency.

    Same-currency conversion returns the amount untouched and never looks
    at the rate table.

    Args:
        amount: Amount in `from_currency`
        from_currency: Source currency
        to_currency: Target currency
        rates: Units of each currency per 1 unit of the anchor

    Returns:
        The amount expressed in `to_currency`
    """
    source = normalize_currency(from_currency)
    target = normalize_currency(to_currency)
    if source == target:
        return amount
    return amount / _rate_for(source, rates) * _rate_for(target, rates)


__all__ = [
    "DEFAULT_RATES",
    "RateTable",
    "convert",
    "normalize_currency",
    "normalize_rates",
]
