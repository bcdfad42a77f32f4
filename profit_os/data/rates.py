"""
Exchange-rate collaborator.

Fetches a currency -> reporting-currency multiplier table. Any failure is
logged and replaced by a static fallback table so the report is always
produced.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional, Sequence

import requests

from profit_os.config import FALLBACK_RATES, RATE_CURRENCIES, config
from profit_os.metrics.currency import ensure_identity


logger = logging.getLogger("profit-os.rates")

RateFetcher = Callable[[], Mapping[str, float]]


class RatesFetchError(Exception):
    """Raised when the rate source returns nothing usable."""


@dataclass
class RateTable:
    """Rates plus provenance for the advisory flags."""
    rates: Dict[str, float]
    is_fallback: bool = False
    source: str = "live"
    error: Optional[str] = None
    as_of: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def rebase_rates(eur_rates: Mapping[str, float], reporting_currency: str) -> Dict[str, float]:
    """
    Convert an EUR-based quote table (units of X per 1 EUR) into multipliers
    to the reporting currency (reporting units per 1 X).
    """
    reporting_currency = reporting_currency.upper()
    full = {"EUR": 1.0}
    for code, value in eur_rates.items():
        full[str(code).upper()] = float(value)

    reporting_per_eur = full.get(reporting_currency)
    if not reporting_per_eur:
        raise RatesFetchError(f"Rate source has no quote for {reporting_currency}")

    return {code: reporting_per_eur / value for code, value in full.items() if value}


def fetch_frankfurter_rates(currencies: Optional[Sequence[str]] = None,
                            url: Optional[str] = None,
                            timeout: Optional[float] = None,
                            reporting_currency: Optional[str] = None) -> Dict[str, float]:
    """Fetch the latest EUR-based rates and rebase them on the reporting currency."""
    currencies = list(currencies or RATE_CURRENCIES)
    reporting_currency = (reporting_currency or config.reporting_currency).upper()
    symbols = [c for c in currencies if c != "EUR"]
    if reporting_currency not in symbols and reporting_currency != "EUR":
        symbols.append(reporting_currency)

    try:
        response = requests.get(
            url or config.rates_api_url,
            params={"to": ",".join(symbols)},
            timeout=timeout or config.rates_timeout_seconds,
        )
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as e:
        raise RatesFetchError(f"Failed to fetch exchange rates: {e}") from e

    quotes = payload.get("rates") if isinstance(payload, dict) else None
    if not quotes:
        raise RatesFetchError("Rate source returned no rates")

    logger.debug("Rate source responded for %s", payload.get("date"))
    return rebase_rates(quotes, reporting_currency)


def fetch_exchange_rates(fetcher: Optional[RateFetcher] = None,
                         fallback: Optional[Mapping[str, float]] = None,
                         reporting_currency: Optional[str] = None) -> RateTable:
    """
    Fetch rates, falling back to a static table on any failure.

    Args:
        fetcher: Callable returning {currency: multiplier}; defaults to the
            Frankfurter API
        fallback: Table used when the fetch fails; defaults to FALLBACK_RATES
        reporting_currency: Currency all multipliers convert into
    """
    reporting_currency = (reporting_currency or config.reporting_currency).upper()
    fetcher = fetcher or (lambda: fetch_frankfurter_rates(reporting_currency=reporting_currency))
    fallback = FALLBACK_RATES if fallback is None else fallback

    try:
        rates = fetcher()
        if not rates:
            raise RatesFetchError("Rate source returned an empty table")
        return RateTable(rates=ensure_identity(rates, reporting_currency))
    except Exception as e:
        logger.warning("Using fallback exchange rates: %s", e, extra={"rates_source": "fallback"})
        return RateTable(
            rates=ensure_identity(fallback, reporting_currency),
            is_fallback=True,
            source="fallback",
            error=str(e),
        )


def static_rates(rates: Optional[Mapping[str, float]] = None,
                 reporting_currency: Optional[str] = None) -> RateTable:
    """Rate table from injected data without calling the rate source."""
    return RateTable(
        rates=ensure_identity(rates if rates is not None else FALLBACK_RATES, reporting_currency),
        source="static",
    )
