"""
Currency normalisation to the reporting currency.

Single source of truth for converting (amount, currency) pairs. Rate tables
map currency code -> multiplier to the reporting currency and are always
passed in explicitly.
"""
from __future__ import annotations

from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from profit_os.config import config


ExchangeRateTable = Dict[str, float]


def _normalise_code(currency, reporting_currency: str) -> str:
    if currency is None or (not isinstance(currency, str) and pd.isna(currency)):
        return reporting_currency
    code = str(currency).strip().upper()
    return code or reporting_currency


def _usable(rate) -> bool:
    try:
        value = float(rate)
    except (TypeError, ValueError):
        return False
    return bool(np.isfinite(value)) and value != 0


def ensure_identity(rates: Optional[Mapping[str, float]],
                    reporting_currency: Optional[str] = None) -> ExchangeRateTable:
    """
    Return a copy of the rate table with upper-cased codes and the
    reporting currency's identity entry forced to 1.0.
    """
    reporting_currency = (reporting_currency or config.reporting_currency).upper()
    table = {}
    for code, rate in (rates or {}).items():
        if _usable(rate):
            table[str(code).strip().upper()] = float(rate)
    table[reporting_currency] = 1.0
    return table


def rate_for(currency, rates: Mapping[str, float],
             reporting_currency: Optional[str] = None) -> float:
    """
    Multiplier for ``currency``. Unknown currencies fall back to the
    reporting currency's own rate, then to 1.0.
    """
    reporting_currency = (reporting_currency or config.reporting_currency).upper()
    code = _normalise_code(currency, reporting_currency)
    rate = rates.get(code)
    if _usable(rate):
        return float(rate)
    identity = rates.get(reporting_currency)
    if _usable(identity):
        return float(identity)
    return 1.0


def to_base(amount, currency, rates: Mapping[str, float],
            reporting_currency: Optional[str] = None) -> float:
    """Convert an amount to the reporting currency. Missing amounts are 0."""
    value = pd.to_numeric(amount, errors="coerce") if amount is not None else np.nan
    if pd.isna(value):
        return 0.0
    return float(value) * rate_for(currency, rates, reporting_currency)


def to_base_series(amounts: pd.Series, currencies: Optional[pd.Series],
                   rates: Mapping[str, float],
                   reporting_currency: Optional[str] = None) -> pd.Series:
    """
    Vectorised ``to_base`` for aligned amount/currency columns.
    """
    reporting_currency = (reporting_currency or config.reporting_currency).upper()
    values = pd.to_numeric(amounts, errors="coerce").fillna(0.0).astype(float)
    if currencies is None:
        currencies = pd.Series(reporting_currency, index=values.index)

    codes = currencies.reindex(values.index)
    multipliers = codes.map(lambda c: rate_for(c, rates, reporting_currency)).astype(float)
    return values * multipliers


def unknown_currencies(currencies: pd.Series, rates: Mapping[str, float],
                       reporting_currency: Optional[str] = None) -> list:
    """Currency codes present in the data but absent from the rate table."""
    reporting_currency = (reporting_currency or config.reporting_currency).upper()
    codes = {_normalise_code(c, reporting_currency) for c in currencies.tolist()}
    return sorted(code for code in codes if not _usable(rates.get(code)))
